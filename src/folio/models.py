"""Domain models for the folio rebalancing system.

Amount fields are integers in the fixed-point unit noted beside them:
D18{BU/share} means ``basket units per share * 1e18``, D27{tok/BU} means
``token units per basket unit * 1e27`` and so on.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

MAX_LIMIT = 10**36  # D18{BU/share}
MAX_WEIGHT = 10**54  # D27{tok/BU}
MAX_TOKEN_PRICE = 10**45  # D27{UoA/tok}
MAX_TOKEN_PRICE_RANGE = 100  # {1} high / low
MAX_TOKEN_BUY_AMOUNT = 10**36  # {tok}
MAX_RATE = 10**54  # D27{tok/share}, "unbounded" limit

RESTRICTED_AUCTION_BUFFER = 120  # seconds
MIN_AUCTION_LENGTH = 60
MAX_AUCTION_LENGTH = 604800
MAX_TTL = 4 * 7 * 24 * 60 * 60


class Role(str, Enum):
    ADMIN = "ADMIN"
    REBALANCE_MANAGER = "REBALANCE_MANAGER"
    AUCTION_LAUNCHER = "AUCTION_LAUNCHER"
    PUBLIC = "PUBLIC"


class PriceControl(str, Enum):
    """How much latitude the auction launcher has over governance prices."""

    NONE = "NONE"
    PARTIAL = "PARTIAL"
    FULL = "FULL"


class LifecycleState(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    AUCTION_OPEN = "AUCTION_OPEN"
    AUCTION_CLOSED = "AUCTION_CLOSED"
    AUCTION_EXPIRED = "AUCTION_EXPIRED"
    EXPIRED = "EXPIRED"


class WeightRange(BaseModel):
    """D27{tok/BU} amount of a token in one basket unit."""

    low: int = Field(ge=0)
    spot: int = Field(ge=0)
    high: int = Field(ge=0)


class PriceRange(BaseModel):
    """D27{UoA/tok} price bounds for a token."""

    low: int = Field(ge=0)
    high: int = Field(ge=0)


class RebalanceLimits(BaseModel):
    """D18{BU/share} bounds on how many basket units back one share."""

    low: int = Field(ge=0)
    spot: int = Field(ge=0)
    high: int = Field(ge=0)

    @property
    def span(self) -> int:
        return self.high - self.low


class TokenRebalanceParams(BaseModel):
    token: str
    weight: WeightRange
    price: PriceRange


class Rebalance(BaseModel):
    nonce: int = Field(ge=1)
    tokens: dict[str, TokenRebalanceParams]
    limits: RebalanceLimits
    price_control: PriceControl = PriceControl.PARTIAL
    started_at: int
    restricted_until: int
    available_until: int


class AuctionPair(BaseModel):
    """Price curve and limits for one ordered (sell, buy) pair of an auction."""

    sell: str
    buy: str
    sell_limit: int  # D27{sellTok/share}
    buy_limit: int  # D27{buyTok/share}
    start_price: int  # D27{buyTok/sellTok}
    end_price: int  # D27{buyTok/sellTok}
    k: int  # D18{1/s}

    @property
    def key(self) -> str:
        return pair_key(self.sell, self.buy)


class Auction(BaseModel):
    id: int
    rebalance_nonce: int
    tokens: list[str]
    pairs: dict[str, AuctionPair]
    start: int
    end: int
    closed: bool = False
    opened_by: Role

    def is_ongoing(self, now: int) -> bool:
        return not self.closed and self.start <= now <= self.end

    def get_pair(self, sell: str, buy: str) -> Optional[AuctionPair]:
        return self.pairs.get(pair_key(sell, buy))


class Bid(BaseModel):
    """A priced bid; computed at call time, never stored."""

    auction_id: int
    sell: str
    buy: str
    sell_amount: int  # {sellTok}
    bid_amount: int  # {buyTok}
    price: int  # D27{buyTok/sellTok}


class LimitRange(BaseModel):
    """D27{tok/share} limit range emitted by the planner."""

    low: int
    spot: int
    high: int


class Trade(BaseModel):
    """A planned pairwise trade, the numeric basis for one auction pair."""

    sell: str
    buy: str
    sell_limit: LimitRange
    buy_limit: LimitRange
    start_price: int  # D27{buyTok/sellTok}
    end_price: int  # D27{buyTok/sellTok}
    avg_price_error: int = 0  # D18{1}


class FolioEvent(BaseModel):
    event: str
    timestamp: int


class RebalanceStarted(FolioEvent):
    event: Literal["rebalance.started"] = "rebalance.started"
    nonce: int
    tokens: list[str]
    limits: RebalanceLimits
    restricted_until: int
    available_until: int


class AuctionOpened(FolioEvent):
    event: Literal["auction.opened"] = "auction.opened"
    auction_id: int
    sell: str
    buy: str
    start_price: int
    end_price: int
    start: int
    end: int


class AuctionBid(FolioEvent):
    event: Literal["auction.bid"] = "auction.bid"
    auction_id: int
    bidder: str
    sell: str
    buy: str
    sell_amount: int
    bid_amount: int
    price: int


class AuctionClosed(FolioEvent):
    event: Literal["auction.closed"] = "auction.closed"
    auction_id: int


class RebalanceEnded(FolioEvent):
    event: Literal["rebalance.ended"] = "rebalance.ended"
    nonce: int


class FolioState(BaseModel):
    """Everything a folio owns. Mutated only through lifecycle transitions."""

    folio_id: str
    total_supply: int = Field(ge=0)  # {share}
    roles: dict[str, list[Role]] = Field(default_factory=dict)
    rebalance: Optional[Rebalance] = None
    auctions: dict[int, Auction] = Field(default_factory=dict)
    next_auction_id: int = 1
    balances: dict[str, dict[str, int]] = Field(default_factory=dict)  # token -> holder -> {tok}


def pair_key(sell: str, buy: str) -> str:
    return f"{sell}/{buy}"
