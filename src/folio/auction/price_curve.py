"""Exponential-decay Dutch auction price curve."""

from folio.errors import AuctionNotOngoingError
from folio.fixed_point import D18, exp_neg, ln_d18, mul_div
from folio.models import AuctionPair


def compute_k(start_price: int, end_price: int, duration: int) -> int:
    """D18 decay constant ``ln(start_price / end_price) / duration``.

    Computed once when the auction opens.
    """
    if start_price == end_price or duration == 0:
        return 0
    # D18{1} = D27{buyTok/sellTok} * D18 / D27{buyTok/sellTok}
    ratio = mul_div(start_price, D18, end_price)
    return ln_d18(ratio) // duration


def get_price(pair: AuctionPair, start: int, end: int, timestamp: int) -> int:
    """D27{buyTok/sellTok} price of ``pair`` at ``timestamp``.

    Raises:
        AuctionNotOngoingError: If ``timestamp`` is outside ``[start, end]``
    """
    if timestamp < start or timestamp > end:
        raise AuctionNotOngoingError(
            f"timestamp {timestamp} outside auction window [{start}, {end}]"
        )

    # boundaries by lookup, no rounding error
    if timestamp == start:
        return pair.start_price
    if timestamp == end:
        return pair.end_price

    elapsed = timestamp - start
    price = exp_neg(pair.start_price, pair.k * elapsed)
    return max(price, pair.end_price)
