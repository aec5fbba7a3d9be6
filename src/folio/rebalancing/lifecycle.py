"""Rebalance lifecycle: the state machine governing rebalances, auctions and bids."""

from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from folio.access import grant_role, require_role, revoke_role
from folio.auction.bids import quote_bid, validate_bid
from folio.auction.lots import get_lot
from folio.auction.price_curve import compute_k
from folio.config import AuctionConfig
from folio.errors import (
    AuctionNotOngoingError,
    AuctionOngoingError,
    InvalidPricesError,
    InvalidTokensError,
    InvalidTTLError,
    InvariantViolationError,
    NonceMismatchError,
    RebalanceNotActiveError,
    RestrictedWindowError,
)
from folio.fixed_point import D18, D27, Rounding, mul_div
from folio.ledger import TokenLedger
from folio.logging_config import get_auction_logger
from folio.models import (
    Auction,
    AuctionBid,
    AuctionClosed,
    AuctionOpened,
    AuctionPair,
    Bid,
    FolioEvent,
    FolioState,
    LifecycleState,
    PriceControl,
    PriceRange,
    Rebalance,
    RebalanceEnded,
    RebalanceLimits,
    RebalanceStarted,
    Role,
    TokenRebalanceParams,
    WeightRange,
)
from folio.state.redis_backend import RedisStateBackend
from folio.validation import (
    validate_limits,
    validate_limits_narrowing,
    validate_price_override,
    validate_token_params,
    validate_tokens,
    validate_weight_narrowing,
)

logger = structlog.get_logger(__name__)


class Folio:
    """A tokenized basket and the state machine that rebalances it.

    Each public operation takes the caller identity and the execution
    timestamp ``now``. Mutating operations run inside ``_transaction``: they
    work on a deep copy of the state, which replaces the live state only if
    the operation returns normally. Events are published on commit: logged to
    the auction log and appended to ``events``, which keeps every event until
    a consumer takes them with ``drain_events``.
    """

    def __init__(
        self,
        folio_id: str,
        config: AuctionConfig,
        admin: Optional[str] = None,
        total_supply: int = 0,
    ):
        self._config = config
        self._state = FolioState(folio_id=folio_id, total_supply=total_supply)
        if admin is not None:
            grant_role(self._state.roles, admin, Role.ADMIN)
        self._auction_log = get_auction_logger()
        self._pending: list[FolioEvent] = []
        self.events: list[FolioEvent] = []

    # ------------------------------------------------------------------
    # Queries

    @property
    def address(self) -> str:
        """Holder identity of the folio in the token ledger."""
        return self._state.folio_id

    @property
    def state(self) -> FolioState:
        return self._state.model_copy(deep=True)

    @property
    def total_supply(self) -> int:
        return self._state.total_supply

    @property
    def rebalance(self) -> Optional[Rebalance]:
        if self._state.rebalance is None:
            return None
        return self._state.rebalance.model_copy(deep=True)

    def balance_of(self, token: str, holder: Optional[str] = None) -> int:
        return TokenLedger(self._state.balances).balance_of(token, holder or self.address)

    def get_auction(self, auction_id: int) -> Auction:
        auction = self._state.auctions.get(auction_id)
        if auction is None:
            raise AuctionNotOngoingError(f"unknown auction {auction_id}")
        return auction.model_copy(deep=True)

    def current_auction(self, now: int) -> Optional[Auction]:
        for auction in self._state.auctions.values():
            if auction.is_ongoing(now):
                return auction.model_copy(deep=True)
        return None

    def state_of(self, now: int) -> LifecycleState:
        rebalance = self._state.rebalance
        if rebalance is None:
            return LifecycleState.INACTIVE

        auctions = [a for a in self._state.auctions.values() if a.rebalance_nonce == rebalance.nonce]
        latest = max(auctions, key=lambda a: a.id) if auctions else None

        if latest is not None and latest.is_ongoing(now):
            return LifecycleState.AUCTION_OPEN
        if now >= rebalance.available_until:
            return LifecycleState.EXPIRED
        if latest is None:
            return LifecycleState.ACTIVE
        if latest.closed:
            return LifecycleState.AUCTION_CLOSED
        return LifecycleState.AUCTION_EXPIRED

    def drain_events(self) -> list[FolioEvent]:
        """Return the events published so far and forget them."""
        drained, self.events = self.events, []
        return drained

    def limit_span(self) -> int:
        """D18{BU/share} width of the current rebalance limits."""
        if self._state.rebalance is None:
            return 0
        return self._state.rebalance.limits.span

    # ------------------------------------------------------------------
    # Administration

    def grant_role(self, caller: str, account: str, role: Role) -> None:
        with self._transaction() as state:
            require_role(state.roles, caller, Role.ADMIN)
            grant_role(state.roles, account, role)
            logger.info("folio.role_granted", account=account, role=role.value)

    def revoke_role(self, caller: str, account: str, role: Role) -> None:
        with self._transaction() as state:
            require_role(state.roles, caller, Role.ADMIN)
            revoke_role(state.roles, account, role)
            logger.info("folio.role_revoked", account=account, role=role.value)

    def set_total_supply(self, caller: str, total_supply: int) -> None:
        """Share minting and redemption happen outside the engine; this syncs the result."""
        with self._transaction() as state:
            require_role(state.roles, caller, Role.ADMIN)
            if total_supply < 0:
                raise ValueError(f"negative supply: {total_supply}")
            state.total_supply = total_supply

    def fund(self, token: str, holder: str, amount: int) -> None:
        """Credit tokens arriving from outside the system (deposits, bidder inventory)."""
        with self._transaction() as state:
            TokenLedger(state.balances).credit(token, holder, amount)

    # ------------------------------------------------------------------
    # Rebalance lifecycle

    def start_rebalance(
        self,
        caller: str,
        tokens: list[TokenRebalanceParams],
        limits: RebalanceLimits,
        auction_launcher_window: int,
        ttl: int,
        now: int,
        price_control: Optional[PriceControl] = None,
    ) -> int:
        """Start a new rebalance, superseding the current one. Returns the nonce."""
        with self._transaction() as state:
            require_role(state.roles, caller, Role.REBALANCE_MANAGER)
            validate_token_params(tokens)
            validate_limits(limits)
            if ttl <= 0 or ttl > self._config.max_ttl:
                raise InvalidTTLError(f"ttl {ttl} outside (0, {self._config.max_ttl}]")
            if auction_launcher_window < 0 or auction_launcher_window > ttl:
                raise InvalidTTLError(
                    f"auction launcher window {auction_launcher_window} outside [0, {ttl}]"
                )

            self._close_ongoing_auction(state, now)

            nonce = (state.rebalance.nonce if state.rebalance else 0) + 1
            state.rebalance = Rebalance(
                nonce=nonce,
                tokens={p.token: p.model_copy(deep=True) for p in tokens},
                limits=limits.model_copy(),
                price_control=price_control or self._config.price_control,
                started_at=now,
                restricted_until=now + auction_launcher_window + self._config.restricted_auction_buffer,
                available_until=now + ttl,
            )

            self._emit(
                RebalanceStarted(
                    timestamp=now,
                    nonce=nonce,
                    tokens=[p.token for p in tokens],
                    limits=limits,
                    restricted_until=state.rebalance.restricted_until,
                    available_until=state.rebalance.available_until,
                )
            )
            return nonce

    def end_rebalance(self, caller: str, now: int) -> None:
        with self._transaction() as state:
            require_role(state.roles, caller, Role.ADMIN, Role.REBALANCE_MANAGER, Role.AUCTION_LAUNCHER)
            rebalance = state.rebalance
            if rebalance is None:
                raise RebalanceNotActiveError("no rebalance to end")

            self._close_ongoing_auction(state, now)
            rebalance.available_until = min(rebalance.available_until, now)
            self._emit(RebalanceEnded(timestamp=now, nonce=rebalance.nonce))

    def open_auction(
        self,
        caller: str,
        rebalance_nonce: int,
        now: int,
        tokens: Optional[list[str]] = None,
        weights: Optional[dict[str, WeightRange]] = None,
        prices: Optional[dict[str, PriceRange]] = None,
        limits: Optional[RebalanceLimits] = None,
    ) -> int:
        """Open an auction as the auction launcher. Returns the auction id.

        Args:
            tokens: Participating tokens, a subset of the rebalance (default: all)
            weights: Per-token weight ranges, each within the current range
            prices: Per-token price ranges, constrained by the price control level
            limits: Basket limits within the current range

        Overrides are written back to the rebalance, so ranges only narrow.
        """
        with self._transaction() as state:
            require_role(state.roles, caller, Role.AUCTION_LAUNCHER)
            rebalance = self._require_available(state, rebalance_nonce, now)
            self._require_no_ongoing_auction(state, now)

            tokens = list(rebalance.tokens) if tokens is None else list(tokens)
            weights = weights or {}
            prices = prices or {}
            validate_tokens(tokens)

            unknown = [t for t in tokens if t not in rebalance.tokens]
            unknown += [t for t in list(weights) + list(prices) if t not in tokens]
            if unknown:
                raise InvalidTokensError(f"tokens not in rebalance or auction: {unknown}")

            for token in tokens:
                current = rebalance.tokens[token]
                weight = weights.get(token, current.weight)
                price = prices.get(token, current.price)
                validate_weight_narrowing(token, current.weight, weight)
                validate_price_override(token, current.price, price, rebalance.price_control)
                rebalance.tokens[token] = TokenRebalanceParams(
                    token=token, weight=weight.model_copy(), price=price.model_copy()
                )

            if limits is not None:
                validate_limits_narrowing(rebalance.limits, limits)
                rebalance.limits = limits.model_copy()

            auction = self._open(state, rebalance, tokens, Role.AUCTION_LAUNCHER, now)

            # keep a quiet period between launcher auctions and permissionless opening
            quiet_until = auction.end + self._config.restricted_auction_buffer
            if rebalance.restricted_until < quiet_until:
                rebalance.restricted_until = quiet_until

            return auction.id

    def open_auction_unrestricted(self, caller: str, rebalance_nonce: int, now: int) -> int:
        """Open an auction over all tokens at governance spot values. Returns the auction id."""
        with self._transaction() as state:
            require_role(state.roles, caller, Role.PUBLIC)
            rebalance = self._require_available(state, rebalance_nonce, now)
            if now < rebalance.restricted_until:
                raise RestrictedWindowError(
                    f"auction launcher has exclusivity until {rebalance.restricted_until}"
                )
            self._require_no_ongoing_auction(state, now)

            auction = self._open(state, rebalance, list(rebalance.tokens), Role.PUBLIC, now)
            return auction.id

    def close_auction(self, caller: str, auction_id: int, now: int) -> None:
        """Close an auction. No-op if it is already closed or expired."""
        with self._transaction() as state:
            require_role(state.roles, caller, Role.ADMIN, Role.REBALANCE_MANAGER, Role.AUCTION_LAUNCHER)
            auction = state.auctions.get(auction_id)
            if auction is None:
                raise AuctionNotOngoingError(f"unknown auction {auction_id}")
            if auction.closed or now > auction.end:
                return
            auction.closed = True
            self._emit(AuctionClosed(timestamp=now, auction_id=auction_id))

    # ------------------------------------------------------------------
    # Bidding

    def get_bid(
        self,
        auction_id: int,
        sell: str,
        buy: str,
        timestamp: int,
        max_sell_amount: int,
    ) -> Bid:
        """Read-only quote for the largest bid available at ``timestamp``."""
        state = self._state
        auction, pair = self._require_biddable(state, auction_id, sell, buy)
        ledger = TokenLedger(state.balances)
        return quote_bid(
            auction,
            pair,
            timestamp,
            state.total_supply,
            ledger.balance_of(sell, self.address),
            ledger.balance_of(buy, self.address),
            max_sell_amount,
        )

    def bid(
        self,
        caller: str,
        auction_id: int,
        sell: str,
        buy: str,
        sell_amount: int,
        max_buy_amount: int,
        now: int,
    ) -> Bid:
        """Buy ``sell_amount`` of ``sell`` from the folio, paying in ``buy``."""
        with self._transaction() as state:
            auction, pair = self._require_biddable(state, auction_id, sell, buy)
            ledger = TokenLedger(state.balances)
            sell_balance = ledger.balance_of(sell, self.address)
            buy_balance = ledger.balance_of(buy, self.address)

            bid = validate_bid(
                auction,
                pair,
                now,
                state.total_supply,
                sell_balance,
                buy_balance,
                sell_amount,
                max_buy_amount,
            )
            lot = get_lot(pair, bid.price, state.total_supply, sell_balance, buy_balance)

            ledger.transfer(sell, self.address, caller, bid.sell_amount)
            ledger.transfer(buy, caller, self.address, bid.bid_amount)

            if ledger.balance_of(sell, self.address) < lot.min_sell_balance:
                raise InvariantViolationError(f"{sell} balance below floor {lot.min_sell_balance}")
            if ledger.balance_of(buy, self.address) > lot.max_buy_balance:
                raise InvariantViolationError(f"{buy} balance above ceiling {lot.max_buy_balance}")

            self._emit(
                AuctionBid(
                    timestamp=now,
                    auction_id=auction_id,
                    bidder=caller,
                    sell=sell,
                    buy=buy,
                    sell_amount=bid.sell_amount,
                    bid_amount=bid.bid_amount,
                    price=bid.price,
                )
            )
            return bid

    # ------------------------------------------------------------------
    # Persistence

    def to_state_dict(self) -> dict:
        """Serialize for state persistence."""
        return self._state.model_dump(mode="json")

    def restore_from_state(self, state: dict) -> None:
        """Restore from persisted state."""
        self._state = FolioState.model_validate(state)
        logger.info(
            "folio.restored",
            folio_id=self._state.folio_id,
            nonce=self._state.rebalance.nonce if self._state.rebalance else None,
            auctions=len(self._state.auctions),
        )

    def persist(self, backend: RedisStateBackend) -> None:
        """Save the committed state to ``backend``."""
        backend.save_state(self.to_state_dict())

    def restore(self, backend: RedisStateBackend) -> bool:
        """Load state saved by ``persist``. Returns False if ``backend`` holds none."""
        state = backend.load_state()
        if state is None:
            return False
        self.restore_from_state(state)
        return True

    # ------------------------------------------------------------------
    # Internals

    @contextmanager
    def _transaction(self) -> Iterator[FolioState]:
        draft = self._state.model_copy(deep=True)
        self._pending = []
        try:
            yield draft
        except Exception as e:
            self._pending = []
            logger.info("folio.reverted", folio_id=draft.folio_id, error=type(e).__name__, reason=str(e))
            raise

        self._state = draft
        for event in self._pending:
            self.events.append(event)
            self._auction_log.info(
                event.event,
                folio_id=draft.folio_id,
                event_time=event.timestamp,
                **event.model_dump(mode="json", exclude={"event", "timestamp"}),
            )
        self._pending = []

    def _emit(self, event: FolioEvent) -> None:
        self._pending.append(event)

    @staticmethod
    def _require_available(state: FolioState, nonce: int, now: int) -> Rebalance:
        rebalance = state.rebalance
        if rebalance is None:
            raise RebalanceNotActiveError("no rebalance has been started")
        if nonce != rebalance.nonce:
            raise NonceMismatchError(f"rebalance nonce is {rebalance.nonce}, got {nonce}")
        if now >= rebalance.available_until:
            raise RebalanceNotActiveError(f"rebalance {nonce} expired at {rebalance.available_until}")
        return rebalance

    @staticmethod
    def _require_no_ongoing_auction(state: FolioState, now: int) -> None:
        for auction in state.auctions.values():
            if auction.is_ongoing(now):
                raise AuctionOngoingError(f"auction {auction.id} is ongoing until {auction.end}")

    def _require_biddable(
        self, state: FolioState, auction_id: int, sell: str, buy: str
    ) -> tuple[Auction, AuctionPair]:
        auction = state.auctions.get(auction_id)
        if auction is None:
            raise AuctionNotOngoingError(f"unknown auction {auction_id}")
        if auction.closed:
            raise AuctionNotOngoingError(f"auction {auction_id} is closed")
        if state.rebalance is None or auction.rebalance_nonce != state.rebalance.nonce:
            raise AuctionNotOngoingError(f"auction {auction_id} belongs to a superseded rebalance")

        pair = auction.get_pair(sell, buy)
        if pair is None:
            raise InvalidTokensError(f"{sell}/{buy} is not a pair of auction {auction_id}")
        return auction, pair

    def _close_ongoing_auction(self, state: FolioState, now: int) -> None:
        for auction in state.auctions.values():
            if auction.is_ongoing(now):
                auction.closed = True
                self._emit(AuctionClosed(timestamp=now, auction_id=auction.id))

    def _open(
        self,
        state: FolioState,
        rebalance: Rebalance,
        tokens: list[str],
        opened_by: Role,
        now: int,
    ) -> Auction:
        start = now
        end = now + self._config.auction_length

        pairs: dict[str, AuctionPair] = {}
        for sell in tokens:
            for buy in tokens:
                if sell != buy:
                    pair = self._build_pair(rebalance, sell, buy, end - start)
                    pairs[pair.key] = pair

        auction = Auction(
            id=state.next_auction_id,
            rebalance_nonce=rebalance.nonce,
            tokens=tokens,
            pairs=pairs,
            start=start,
            end=end,
            opened_by=opened_by,
        )
        state.next_auction_id += 1
        state.auctions[auction.id] = auction

        for pair in pairs.values():
            self._emit(
                AuctionOpened(
                    timestamp=now,
                    auction_id=auction.id,
                    sell=pair.sell,
                    buy=pair.buy,
                    start_price=pair.start_price,
                    end_price=pair.end_price,
                    start=start,
                    end=end,
                )
            )

        logger.info(
            "folio.auction_opening",
            auction_id=auction.id,
            nonce=rebalance.nonce,
            opened_by=opened_by.value,
            tokens=tokens,
            limits=rebalance.limits.model_dump(),
            start=start,
            end=end,
        )
        return auction

    @staticmethod
    def _build_pair(rebalance: Rebalance, sell: str, buy: str, duration: int) -> AuctionPair:
        sell_params = rebalance.tokens[sell]
        buy_params = rebalance.tokens[buy]
        limits = rebalance.limits

        # D27{sellTok/share} = D18{BU/share} * D27{sellTok/BU} / D18
        sell_limit = mul_div(limits.spot, sell_params.weight.spot, D18, Rounding.CEIL)
        # D27{buyTok/share} = D18{BU/share} * D27{buyTok/BU} / D18
        buy_limit = mul_div(limits.spot, buy_params.weight.spot, D18, Rounding.FLOOR)

        # D27{buyTok/sellTok} = D27{UoA/sellTok} * D27 / D27{UoA/buyTok}
        start_price = mul_div(sell_params.price.high, D27, buy_params.price.low, Rounding.CEIL)
        end_price = mul_div(sell_params.price.low, D27, buy_params.price.high, Rounding.FLOOR)
        if end_price == 0:
            raise InvalidPricesError(f"{sell}/{buy} end price rounds to zero")

        return AuctionPair(
            sell=sell,
            buy=buy,
            sell_limit=sell_limit,
            buy_limit=buy_limit,
            start_price=start_price,
            end_price=end_price,
            k=compute_k(start_price, end_price, duration),
        )
