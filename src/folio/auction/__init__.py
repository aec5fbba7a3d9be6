"""Dutch auction pricing, lot sizing and bid validation."""

from folio.auction.bids import quote_bid, validate_bid
from folio.auction.lots import Lot, get_lot
from folio.auction.price_curve import compute_k, get_price

__all__ = [
    "Lot",
    "compute_k",
    "get_lot",
    "get_price",
    "quote_bid",
    "validate_bid",
]
