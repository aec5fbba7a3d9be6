"""Lot sizing: how much of the sell token may trade right now."""

from dataclasses import dataclass

from folio.fixed_point import D27, Rounding, mul_div
from folio.models import MAX_TOKEN_BUY_AMOUNT, AuctionPair


@dataclass
class Lot:
    """Breakdown of the tradeable sell amount at one instant."""

    min_sell_balance: int  # {sellTok}
    max_buy_balance: int  # {buyTok}
    sell_available: int  # {sellTok}
    buy_available: int  # {buyTok}
    sell_available_from_buy: int  # {sellTok}, -1 when the buy side is non-binding
    lot: int  # {sellTok}


def get_lot(
    pair: AuctionPair,
    price: int,
    total_supply: int,
    sell_balance: int,
    buy_balance: int,
) -> Lot:
    """Compute the maximum sell amount that respects both token limits.

    Args:
        pair: Auction pair carrying D27{tok/share} sell/buy limits
        price: D27{buyTok/sellTok} current auction price
        total_supply: {share} outstanding shares
        sell_balance: {sellTok} folio balance of the sell token
        buy_balance: {buyTok} folio balance of the buy token

    The sell floor rounds up and the buy ceiling rounds down, so the folio
    never ends below its sell floor or above its buy ceiling.
    """
    # {sellTok} = D27{sellTok/share} * {share} / D27
    min_sell_balance = mul_div(pair.sell_limit, total_supply, D27, Rounding.CEIL)
    sell_available = max(0, sell_balance - min_sell_balance)

    # {buyTok} = D27{buyTok/share} * {share} / D27
    max_buy_balance = mul_div(pair.buy_limit, total_supply, D27, Rounding.FLOOR)
    buy_available = max(0, max_buy_balance - buy_balance)

    if buy_available > MAX_TOKEN_BUY_AMOUNT:
        sell_available_from_buy = -1
        lot = sell_available
    else:
        # {sellTok} = {buyTok} * D27 / D27{buyTok/sellTok}
        sell_available_from_buy = mul_div(buy_available, D27, price, Rounding.FLOOR)
        lot = min(sell_available, sell_available_from_buy)

    return Lot(
        min_sell_balance=min_sell_balance,
        max_buy_balance=max_buy_balance,
        sell_available=sell_available,
        buy_available=buy_available,
        sell_available_from_buy=sell_available_from_buy,
        lot=lot,
    )
