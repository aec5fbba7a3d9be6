"""Folio basket rebalancing: Dutch auction engine and off-chain trade planner."""
