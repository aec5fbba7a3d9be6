"""Off-chain planner: target baskets to trades and auction parameters."""

from folio.planner.auctions import AuctionOverride, check_auction, get_open_auction, get_start_rebalance
from folio.planner.basket import (
    get_basket_from_trades,
    get_basket_native,
    get_basket_portion,
    get_basket_tracking,
    get_current_basket,
    get_dust_amount,
    get_share_pricing,
)
from folio.planner.numbers import to_decimals
from folio.planner.trades import get_rebalance, get_trades

__all__ = [
    "AuctionOverride",
    "check_auction",
    "get_basket_from_trades",
    "get_basket_native",
    "get_basket_portion",
    "get_basket_tracking",
    "get_current_basket",
    "get_dust_amount",
    "get_open_auction",
    "get_rebalance",
    "get_share_pricing",
    "get_start_rebalance",
    "get_trades",
    "to_decimals",
]
