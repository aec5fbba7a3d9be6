"""Rebalance and auction parameters derived from a target basket."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

import structlog

from folio.errors import PlannerError
from folio.models import (
    MAX_RATE,
    MAX_TOKEN_PRICE_RANGE,
    MAX_WEIGHT,
    PriceRange,
    RebalanceLimits,
    TokenRebalanceParams,
    Trade,
    WeightRange,
)
from folio.planner.numbers import D18, D27, ONE, ZERO, Number, dec, emit, planner_context, scale, to_decimals

logger = structlog.get_logger(__name__)


@dataclass
class AuctionOverride:
    """Launcher-supplied values for one pair of an auction."""

    sell_limit: int  # D27{sellTok/share}
    buy_limit: int  # D27{buyTok/share}
    start_price: int  # D27{buyTok/sellTok}
    end_price: int  # D27{buyTok/sellTok}


def _check_errors(tokens: Sequence[str], errors: list[Decimal]) -> None:
    for token, error in zip(tokens, errors):
        if error < 0 or error > ONE:
            raise PlannerError(f"price error too large for {token}: {error}")


def _pair_price(sell_usd: Decimal, buy_usd: Decimal, sell_decimals: int, buy_decimals: int) -> Decimal:
    # D27{buyTok/sellTok} = {USD/wholeSellTok} / {USD/wholeBuyTok} * D27 * {buyTok/wholeBuyTok} / {sellTok/wholeSellTok}
    return sell_usd / buy_usd * D27 * scale(buy_decimals) / scale(sell_decimals)


def _tokens_per_share(fraction: Decimal, dtf_price: Decimal, usd: Decimal, decimals: int) -> Decimal:
    # D27{tok/share} = {1} * {USD/wholeShare} / {USD/wholeTok} * {tok/wholeTok} * D27 / {share/wholeShare}
    return fraction * dtf_price / usd * scale(decimals) * D27 / D18


def get_start_rebalance(
    tokens: Sequence[str],
    decimals: Sequence[int],
    target_basket: Sequence[int],
    prices: Sequence[Number],
    price_errors: Sequence[Number],
    dtf_price: Number,
    weight_control: bool = True,
) -> tuple[list[TokenRebalanceParams], RebalanceLimits]:
    """Build ``start_rebalance`` arguments for a target basket.

    One basket unit starts out worth one share at ``dtf_price``. A tracking
    folio (``weight_control``) ranges each weight by its price error and pins
    the limits; a native folio pins the weights and ranges the limits by the
    value-weighted price error instead.

    Args:
        tokens: Token identifiers
        decimals: Decimals of each token
        target_basket: D18{1} Target fraction of value in each token
        prices: {USD/wholeTok} Price of each whole token
        price_errors: {1} Price uncertainty per token
        dtf_price: {USD/wholeShare} Share price

    Returns:
        (per-token rebalance params, basket limits)

    Raises:
        PlannerError: If an error is outside [0, 1] or a price range would
            exceed the allowed width
    """
    with planner_context():
        usd = to_decimals(prices)
        dtf = to_decimals([dtf_price])[0]
        errors = [dec(e) for e in price_errors]
        _check_errors(tokens, errors)
        targets = [Decimal(t) / D18 for t in target_basket]

        params: list[TokenRebalanceParams] = []
        for i, token in enumerate(tokens):
            spot = _tokens_per_share(targets[i], dtf, usd[i], decimals[i])
            margin = ONE - errors[i]

            if not weight_control:
                weight = WeightRange(low=emit(spot), spot=emit(spot), high=emit(spot))
            elif margin == ZERO:
                weight = WeightRange(low=0, spot=emit(spot), high=MAX_WEIGHT)
            else:
                weight = WeightRange(
                    low=emit(spot * margin),
                    spot=emit(spot),
                    high=min(MAX_WEIGHT, emit(spot / margin)),
                )

            # D27{USD/tok} = {USD/wholeTok} * D27 / {tok/wholeTok}
            unit_price = usd[i] * D27 / scale(decimals[i])
            low = emit(unit_price * margin)
            high = emit(unit_price / margin) if margin > ZERO else 0
            if low == 0 or high > MAX_TOKEN_PRICE_RANGE * low:
                raise PlannerError(
                    f"price range for {token} exceeds {MAX_TOKEN_PRICE_RANGE}x at error {errors[i]}"
                )

            params.append(
                TokenRebalanceParams(token=token, weight=weight, price=PriceRange(low=low, high=high))
            )

        if weight_control:
            limits = RebalanceLimits(low=emit(D18), spot=emit(D18), high=emit(D18))
        else:
            basket_error = sum((t * e for t, e in zip(targets, errors)), ZERO)
            if basket_error >= ONE:
                raise PlannerError(f"basket price error too large: {basket_error}")
            limits = RebalanceLimits(
                low=emit(D18 * (ONE - basket_error)),
                spot=emit(D18),
                high=emit(D18 / (ONE - basket_error)),
            )

    logger.info(
        "auctions.start_rebalance_planned",
        tokens=list(tokens),
        weight_control=weight_control,
        limits=limits.model_dump(),
    )
    return params, limits


def get_open_auction(
    trade: Trade,
    tokens: Sequence[str],
    decimals: Sequence[int],
    target_basket: Sequence[int],
    prices: Sequence[Number],
    price_errors: Sequence[Number],
    dtf_price: Number,
    eject_fully: bool = False,
) -> AuctionOverride:
    """Narrow a planned trade toward current market conditions.

    Limits are recomputed from the target basket at today's prices. The start
    price stays where the trade put it; the end price is raised to the market
    price less the pair's average error, but never above the start price.
    """
    x = _index(tokens, trade.sell)
    y = _index(tokens, trade.buy)

    with planner_context():
        usd = to_decimals(prices)
        dtf = to_decimals([dtf_price])[0]
        errors = [dec(e) for e in price_errors]
        _check_errors(tokens, errors)

        sell_target = Decimal(target_basket[x]) / D18
        buy_target = Decimal(target_basket[y]) / D18

        sell_limit = emit(_tokens_per_share(sell_target, dtf, usd[x], decimals[x]))
        buy_limit = emit(_tokens_per_share(buy_target, dtf, usd[y], decimals[y]))
        if eject_fully and sell_target == 0:
            buy_limit = MAX_RATE

        avg_error = (errors[x] + errors[y]) / 2
        market = _pair_price(usd[x], usd[y], decimals[x], decimals[y])

        start_price = trade.start_price
        end_price = max(trade.end_price, emit(market * (ONE - avg_error)))
        end_price = min(end_price, start_price)

    return AuctionOverride(
        sell_limit=sell_limit,
        buy_limit=buy_limit,
        start_price=start_price,
        end_price=end_price,
    )


def check_auction(
    trade: Trade,
    tokens: Sequence[str],
    prices: Sequence[Number],
    decimals: Sequence[int],
) -> bool:
    """True if the trade's price range contains the current market price."""
    x = _index(tokens, trade.sell)
    y = _index(tokens, trade.buy)

    with planner_context():
        usd = to_decimals(prices)
        price = emit(_pair_price(usd[x], usd[y], decimals[x], decimals[y]))

    return trade.end_price <= price <= trade.start_price


def _index(tokens: Sequence[str], token: str) -> int:
    try:
        return list(tokens).index(token)
    except ValueError:
        raise PlannerError(f"auction token {token} not found in tokens") from None
