"""Trade planning - convert a target basket into pairwise auction trades."""

from decimal import Decimal
from typing import Optional, Sequence

import structlog

from folio.errors import PlannerError
from folio.logging_config import get_planner_logger
from folio.models import MAX_RATE, LimitRange, Trade
from folio.planner.basket import get_current_basket, get_share_pricing
from folio.planner.numbers import (
    D18,
    D27,
    DEFAULT_PRECISION,
    ONE,
    ZERO,
    Number,
    dec,
    emit,
    planner_context,
    scale,
    to_decimals,
)

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = Decimal("0.0001")


def get_trades(
    supply: int,
    tokens: Sequence[str],
    decimals: Sequence[int],
    current_basket: Sequence[int],
    target_basket: Sequence[int],
    prices: Sequence[Number],
    price_errors: Sequence[Number],
    dtf_price: Number,
    tolerance: Number = DEFAULT_TOLERANCE,
    eject_fully: bool = False,
    precision: int = DEFAULT_PRECISION,
) -> list[Trade]:
    """Greedily pair the biggest surplus with the biggest deficit until balanced.

    Large rebalances should be split up beforehand; this does not limit the
    volume of any single trade.

    Args:
        supply: {share} Folio share supply
        tokens: Token identifiers
        decimals: Decimals of each token
        current_basket: D18{1} Current fraction of value in each token
        target_basket: D18{1} Target fraction of value in each token
        prices: {USD/wholeTok} Price of each whole token
        price_errors: {1} Price uncertainty per token; 1 defers pricing to the launcher
        dtf_price: {USD/wholeShare} Share price
        tolerance: {1} Imbalances at or below this are left alone
        eject_fully: Leave the buy side unbounded when selling a token out of the basket

    Returns:
        At most ``len(tokens) - 1`` trades
    """
    n = len(tokens)
    if not (len(decimals) == len(current_basket) == len(target_basket) == len(prices) == len(price_errors) == n):
        raise PlannerError("token, decimal, basket, price and error inputs must have equal length")
    if supply <= 0:
        raise PlannerError(f"supply must be positive, got {supply}")

    planner_log = get_planner_logger()
    trades: list[Trade] = []

    with planner_context(precision):
        # {wholeShare}
        whole_supply = Decimal(supply) / D18
        usd = to_decimals(prices)
        dtf = to_decimals([dtf_price])[0]
        errors = [dec(e) for e in price_errors]
        tol = dec(tolerance)

        for token, error in zip(tokens, errors):
            if error < 0 or error > ONE:
                raise PlannerError(f"price error too large for {token}: {error}")

        # {1}
        current = [Decimal(c) / D18 for c in current_basket]
        target = [Decimal(t) / D18 for t in target_basket]

        # {USD} = {USD/wholeShare} * {wholeShare}
        shares_value = dtf * whole_supply

        logger.debug("trades.planning", tokens=list(tokens), shares_value=str(shares_value))

        while True:
            sell_index: Optional[int] = None
            buy_index: Optional[int] = None
            biggest_surplus = ZERO
            biggest_deficit = ZERO

            for i in range(n):
                diff = current[i] - target[i]
                if diff > tol:
                    surplus = diff * shares_value
                    if surplus > biggest_surplus:
                        biggest_surplus = surplus
                        sell_index = i
                elif -diff > tol:
                    deficit = -diff * shares_value
                    if deficit > biggest_deficit:
                        biggest_deficit = deficit
                        buy_index = i

            if sell_index is None or buy_index is None:
                return trades

            if len(trades) >= n - 1:
                raise PlannerError(f"trade planning did not converge within {n - 1} trades")

            x, y = sell_index, buy_index

            # {1} = {USD} / {USD}
            moved = min(biggest_surplus, biggest_deficit) / shares_value
            current[x] -= moved
            current[y] += moved

            trade = _make_trade(
                tokens[x],
                tokens[y],
                decimals[x],
                decimals[y],
                target[x],
                target[y],
                usd[x],
                usd[y],
                (errors[x] + errors[y]) / 2,
                shares_value,
                whole_supply,
                eject_fully,
            )
            trades.append(trade)

            planner_log.info(
                "planner.trade",
                sell=trade.sell,
                buy=trade.buy,
                sell_limit=trade.sell_limit.spot,
                buy_limit=trade.buy_limit.spot,
                start_price=trade.start_price,
                end_price=trade.end_price,
                moved=str(moved),
            )


def _make_trade(
    sell: str,
    buy: str,
    sell_decimals: int,
    buy_decimals: int,
    sell_target: Decimal,
    buy_target: Decimal,
    sell_usd: Decimal,
    buy_usd: Decimal,
    avg_error: Decimal,
    shares_value: Decimal,
    whole_supply: Decimal,
    eject_fully: bool,
) -> Trade:
    # {wholeTok/wholeShare} = {1} * {USD} / {USD/wholeTok} / {wholeShare}
    sell_whole = sell_target * shares_value / sell_usd / whole_supply
    buy_whole = buy_target * shares_value / buy_usd / whole_supply

    # D27{tok/share} = {wholeTok/wholeShare} * D27 * {tok/wholeTok} / {share/wholeShare}
    sell_limit = emit(sell_whole * D27 * scale(sell_decimals) / D18)
    buy_limit = emit(buy_whole * D27 * scale(buy_decimals) / D18)

    if avg_error >= ONE:
        # pricing deferred entirely to the auction launcher
        start_price = end_price = 0
        sell_range = LimitRange(low=0, spot=sell_limit, high=MAX_RATE)
        buy_range = LimitRange(low=min(1, buy_limit), spot=buy_limit, high=MAX_RATE)
    else:
        # {wholeBuyTok/wholeSellTok} = {USD/wholeSellTok} / {USD/wholeBuyTok}
        price = sell_usd / buy_usd

        # D27{buyTok/sellTok} = {wholeBuyTok/wholeSellTok} * D27 * {buyTok/wholeBuyTok} / {sellTok/wholeSellTok}
        to_d27 = D27 * scale(buy_decimals) / scale(sell_decimals)
        start_price = emit(price / (ONE - avg_error) * to_d27)
        end_price = emit(price * (ONE - avg_error) * to_d27)
        sell_range = LimitRange(low=sell_limit, spot=sell_limit, high=sell_limit)
        buy_range = LimitRange(low=buy_limit, spot=buy_limit, high=buy_limit)

    if eject_fully and sell_target == 0:
        buy_range = LimitRange(low=buy_range.low, spot=MAX_RATE, high=MAX_RATE)

    return Trade(
        sell=sell,
        buy=buy,
        sell_limit=sell_range,
        buy_limit=buy_range,
        start_price=start_price,
        end_price=end_price,
        avg_price_error=emit(avg_error * D18),
    )


def get_rebalance(
    supply: int,
    tokens: Sequence[str],
    decimals: Sequence[int],
    balances: Sequence[int],
    target_basket: Sequence[int],
    prices: Sequence[Number],
    price_errors: Sequence[Number],
    tolerance: Number = DEFAULT_TOLERANCE,
    eject_fully: bool = False,
    precision: int = DEFAULT_PRECISION,
) -> list[Trade]:
    """Plan trades from raw balances, pricing shares at current market value."""
    current_basket = get_current_basket(balances, decimals, prices)
    _, share_price = get_share_pricing(supply, balances, decimals, prices)

    return get_trades(
        supply,
        tokens,
        decimals,
        current_basket,
        target_basket,
        prices,
        price_errors,
        share_price,
        tolerance=tolerance,
        eject_fully=eject_fully,
        precision=precision,
    )
