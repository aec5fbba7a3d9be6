"""Bid validation and pricing against the current lot."""

from typing import Optional

import structlog

from folio.auction.lots import get_lot
from folio.auction.price_curve import get_price
from folio.errors import InsufficientBalanceError, SlippageExceededError
from folio.fixed_point import D27, Rounding, mul_div
from folio.models import Auction, AuctionPair, Bid

logger = structlog.get_logger(__name__)


def validate_bid(
    auction: Auction,
    pair: AuctionPair,
    timestamp: int,
    total_supply: int,
    sell_balance: int,
    buy_balance: int,
    sell_amount: int,
    max_buy_amount: Optional[int],
) -> Bid:
    """Price ``sell_amount`` at ``timestamp`` and check it against the lot.

    Args:
        max_buy_amount: {buyTok} most the bidder will pay; None for no bound

    Raises:
        AuctionNotOngoingError: If ``timestamp`` is outside the auction window
        SlippageExceededError: If the bid costs more than ``max_buy_amount`` or nothing
        InsufficientBalanceError: If ``sell_amount`` is zero or exceeds the lot
    """
    price = get_price(pair, auction.start, auction.end, timestamp)

    # {buyTok} = {sellTok} * D27{buyTok/sellTok} / D27
    bid_amount = mul_div(sell_amount, price, D27, Rounding.CEIL)

    if bid_amount == 0 or (max_buy_amount is not None and bid_amount > max_buy_amount):
        raise SlippageExceededError(
            f"bid amount {bid_amount} outside (0, {max_buy_amount}]"
        )

    lot = get_lot(pair, price, total_supply, sell_balance, buy_balance)
    if sell_amount == 0 or sell_amount > lot.lot:
        raise InsufficientBalanceError(
            f"sell amount {sell_amount} exceeds lot {lot.lot}"
        )

    return Bid(
        auction_id=auction.id,
        sell=pair.sell,
        buy=pair.buy,
        sell_amount=sell_amount,
        bid_amount=bid_amount,
        price=price,
    )


def quote_bid(
    auction: Auction,
    pair: AuctionPair,
    timestamp: int,
    total_supply: int,
    sell_balance: int,
    buy_balance: int,
    max_sell_amount: int,
) -> Bid:
    """Largest bid available at ``timestamp``, capped at ``max_sell_amount``."""
    price = get_price(pair, auction.start, auction.end, timestamp)
    lot = get_lot(pair, price, total_supply, sell_balance, buy_balance)
    sell_amount = min(lot.lot, max_sell_amount)

    logger.debug(
        "bids.quote",
        auction_id=auction.id,
        pair=pair.key,
        price=price,
        lot=lot.lot,
        sell_amount=sell_amount,
    )

    if sell_amount == 0:
        raise InsufficientBalanceError(f"nothing to sell in {pair.key}: lot is {lot.lot}")

    return validate_bid(
        auction,
        pair,
        timestamp,
        total_supply,
        sell_balance,
        buy_balance,
        sell_amount,
        max_buy_amount=None,
    )
