"""Rebalance lifecycle: rebalances, auctions and bids for one folio."""

from folio.rebalancing.lifecycle import Folio

__all__ = ["Folio"]
