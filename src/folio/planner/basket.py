"""Basket accounting: current fractions, share pricing and resulting baskets."""

from decimal import Decimal
from typing import Optional, Sequence

import structlog

from folio.errors import PlannerError
from folio.models import Trade
from folio.planner.numbers import (
    D18,
    D27,
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

DUST_FRACTION = Decimal("1e-6")


def _values(balances: Sequence[int], decimals: Sequence[int], prices: list[Decimal]) -> list[Decimal]:
    # {USD} = {tok} / {tok/wholeTok} * {USD/wholeTok}
    return [Decimal(bal) / scale(d) * p for bal, d, p in zip(balances, decimals, prices)]


def get_current_basket(
    balances: Sequence[int],
    decimals: Sequence[int],
    prices: Sequence[Number],
) -> list[int]:
    """Value-weighted basket fractions.

    Args:
        balances: {tok} Balance of each token
        decimals: Decimals of each token
        prices: {USD/wholeTok} Price of each whole token

    Returns:
        D18{1} fraction of total value held in each token, summing to ~1e18
    """
    with planner_context():
        values = _values(balances, decimals, to_decimals(prices))
        total = sum(values, ZERO)
        if total == 0:
            raise PlannerError("basket has no value")
        return [emit(v / total * D18) for v in values]


def get_share_pricing(
    supply: int,
    balances: Sequence[int],
    decimals: Sequence[int],
    prices: Sequence[Number],
) -> tuple[Decimal, Decimal]:
    """Returns ({USD} value of all shares, {USD/wholeShare} share price)."""
    if supply <= 0:
        raise PlannerError(f"supply must be positive, got {supply}")
    with planner_context():
        shares_value = sum(_values(balances, decimals, to_decimals(prices)), ZERO)
        if shares_value == 0:
            raise PlannerError("basket has no value")
        return shares_value, shares_value / (Decimal(supply) / D18)


def get_basket_portion(limit: int, decimals: int, price: Number, share_price: Number) -> Decimal:
    """{1} share of the basket value that a D27{tok/share} limit represents."""
    with planner_context():
        # {wholeTok/wholeShare} = D27{tok/share} / D27 * {share/wholeShare} / {tok/wholeTok}
        whole = Decimal(limit) / D27 * D18 / scale(decimals)
        return whole * dec(price) / dec(share_price)


def get_dust_amount(decimals: int, price: Number, dtf_price: Number) -> int:
    """D27{tok/share} amount of a token worth one millionth of a share."""
    with planner_context():
        price, dtf_price = to_decimals([price, dtf_price])
        # {wholeTok/wholeShare} = {1} * {USD/wholeShare} / {USD/wholeTok}
        whole = DUST_FRACTION * dtf_price / price
        return emit(whole * scale(decimals) * D27 / D18)


def _find(tokens: Sequence[str], token: str) -> int:
    try:
        return tokens.index(token)
    except ValueError:
        raise PlannerError(f"token {token} not in basket") from None


def _movable_value(
    trade: Trade,
    tokens: Sequence[str],
    decimals: Sequence[int],
    usd: list[Decimal],
    share_price: Decimal,
    current: list[Decimal],
    shares_value: Decimal,
    require_both: bool = False,
) -> Decimal:
    """{USD} value the trade can still move before hitting either limit.

    With ``require_both`` a side already at its limit caps the value at zero;
    otherwise only sides with room left bound it.
    """
    x = _find(tokens, trade.sell)
    y = _find(tokens, trade.buy)
    sell_target = get_basket_portion(trade.sell_limit.spot, decimals[x], usd[x], share_price)
    buy_target = get_basket_portion(trade.buy_limit.spot, decimals[y], usd[y], share_price)

    surplus = (current[x] - sell_target) * shares_value if current[x] > sell_target else None
    deficit = (buy_target - current[y]) * shares_value if current[y] < buy_target else None
    if require_both:
        return min(surplus or ZERO, deficit or ZERO)

    bounds = [b for b in (surplus, deficit) if b is not None]
    return min(bounds) if bounds else ZERO


def _check_market_price(trade: Trade, x: int, y: int, decimals: Sequence[int], usd: list[Decimal]) -> None:
    # D27{buyTok/sellTok} = {USD/wholeSellTok} / {USD/wholeBuyTok} * D27 * {buyTok/wholeBuyTok} / {sellTok/wholeSellTok}
    price = emit(usd[x] / usd[y] * D27 * scale(decimals[y]) / scale(decimals[x]))
    if price > trade.start_price or price < trade.end_price:
        raise PlannerError(f"price {price} out of range [{trade.end_price}, {trade.start_price}]")


def get_basket_from_trades(
    supply: int,
    trades: Sequence[Trade],
    tokens: Sequence[str],
    balances: Sequence[int],
    decimals: Sequence[int],
    prices: Sequence[Number],
) -> list[int]:
    """Resulting basket if the trades execute smallest first.

    Each step picks the trade with the least value left to move, checks that
    the market price lies inside its price range, and moves that much value
    from the sell token to the buy token.

    Returns:
        D18{1} basket, summing to exactly 1e18
    """
    remaining = list(trades)

    with planner_context():
        usd = to_decimals(prices)
        shares_value, share_price = get_share_pricing(supply, balances, decimals, usd)
        current = [v / shares_value for v in _values(balances, decimals, usd)]

        while remaining:
            index = 0
            smallest: Optional[Decimal] = None

            for i, trade in enumerate(remaining):
                value = _movable_value(trade, tokens, decimals, usd, share_price, current, shares_value)
                if smallest is None or value < smallest:
                    smallest = value
                    index = i

            trade = remaining.pop(index)
            x = _find(tokens, trade.sell)
            y = _find(tokens, trade.buy)
            _check_market_price(trade, x, y, decimals, usd)

            moved = smallest / shares_value
            current[x] -= moved
            current[y] += moved

            logger.debug("basket.trade_simulated", sell=trade.sell, buy=trade.buy, moved=str(moved))

        result = [emit(c * D18) for c in current]

    shortfall = emit(D18) - sum(result)
    if shortfall > 0:
        result[0] += shortfall
    return result


def get_basket_native(
    supply: int,
    trades: Sequence[Trade],
    tokens: Sequence[str],
    decimals: Sequence[int],
    current_basket: Sequence[int],
    prices: Sequence[Number],
    dtf_price: Number,
) -> list[int]:
    """Resulting basket of a native folio if the trades execute smallest first.

    Unlike ``get_basket_from_trades`` this starts from a basket breakdown and
    a quoted share price rather than balances. Trades with nothing left to
    move are ignored when picking the smallest. Once the value moved would
    reach the whole basket, what is left is split evenly over the trades not
    yet run, so an unbounded trade cannot move more than the basket holds.

    Args:
        supply: {share} Folio share supply
        current_basket: D18{1} Current fraction of value in each token
        prices: {USD/wholeTok} Price of each whole token
        dtf_price: {USD/wholeShare} Share price

    Returns:
        D18{1} basket
    """
    if supply <= 0:
        raise PlannerError(f"supply must be positive, got {supply}")
    remaining = list(trades)

    with planner_context():
        usd = to_decimals(prices)
        dtf = to_decimals([dtf_price])[0]
        shares_value = dtf * Decimal(supply) / D18
        current = [Decimal(c) / D18 for c in current_basket]
        accounted = ZERO

        while remaining:
            index = 0
            smallest = Decimal(D27) * D27

            for i, trade in enumerate(remaining):
                value = _movable_value(
                    trade, tokens, decimals, usd, dtf, current, shares_value, require_both=True
                )
                if ZERO < value < smallest:
                    smallest = value
                    index = i

            trade = remaining[index]
            x = _find(tokens, trade.sell)
            y = _find(tokens, trade.buy)
            _check_market_price(trade, x, y, decimals, usd)

            moved = smallest / shares_value
            if accounted + moved >= ONE:
                moved = (ONE - accounted) / len(remaining)
            accounted += moved

            current[x] -= moved
            current[y] += moved
            remaining.pop(index)

            logger.debug("basket.native_trade_simulated", sell=trade.sell, buy=trade.buy, moved=str(moved))

        return [emit(c * D18) for c in current]


def get_basket_tracking(
    trades: Sequence[Trade],
    tokens: Sequence[str],
    decimals: Sequence[int],
    prices: Sequence[Number],
) -> list[int]:
    """Recover the target basket of a tracking folio from its trade limits.

    Tracking folios use one spot limit per token across all trades, so the
    D27{tok/share} limits are themselves the basket ratios.

    Raises:
        PlannerError: If a token's limits differ between trades, or a token
            appears in no trade
    """
    ratios: list[int] = []

    for token in tokens:
        ratio: Optional[int] = None
        for trade in trades:
            if token == trade.sell:
                limit = trade.sell_limit.spot
            elif token == trade.buy:
                limit = trade.buy_limit.spot
            else:
                continue
            if ratio is not None and ratio != limit:
                raise PlannerError(f"basket ratios must be uniform: {token} has {ratio} and {limit}")
            ratio = limit

        if ratio is None:
            raise PlannerError(f"token {token} missing from trades")
        ratios.append(ratio)

    return get_current_basket(ratios, decimals, prices)


def normalize(basket: Sequence[Number]) -> list[Decimal]:
    """Scale fractions so they sum to one."""
    with planner_context():
        values = [dec(b) for b in basket]
        total = sum(values, ZERO)
        if total <= 0:
            raise PlannerError("basket sums to zero")
        return [v / total for v in values]
