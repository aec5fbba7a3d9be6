"""Basket snapshots: the planner's input file format."""

from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog
import yaml
from pydantic import BaseModel, Field, model_validator

from folio.config import PlannerConfig
from folio.planner.auctions import get_start_rebalance
from folio.planner.basket import get_current_basket, get_share_pricing, normalize
from folio.planner.numbers import D18, emit, planner_context
from folio.planner.trades import get_trades

logger = structlog.get_logger(__name__)


class TokenSnapshot(BaseModel):
    symbol: str
    decimals: int = Field(ge=0, le=36)
    balance: int = Field(ge=0)  # {tok}
    price: Decimal = Field(gt=0)  # {USD/wholeTok}
    price_error: Decimal = Field(default=Decimal("0.01"), ge=0, le=1)
    target: Decimal = Field(ge=0)  # {1}, normalized on use


class BasketSnapshot(BaseModel):
    """Point-in-time view of a folio plus its target basket."""

    supply: int = Field(gt=0)  # {share}
    dtf_price: Optional[Decimal] = Field(default=None, gt=0)  # {USD/wholeShare}
    weight_control: bool = True
    tokens: list[TokenSnapshot] = Field(min_length=2)

    @model_validator(mode="after")
    def symbols_unique(self):
        symbols = [t.symbol for t in self.tokens]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"duplicate token symbols: {symbols}")
        return self


def load_snapshot(path: Path) -> BasketSnapshot:
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    return BasketSnapshot(**raw)


def target_basket(snapshot: BasketSnapshot) -> list[int]:
    """D18{1} target basket summing to exactly 1e18."""
    fractions = normalize([t.target for t in snapshot.tokens])
    with planner_context():
        basket = [emit(f * D18) for f in fractions]
    residual = emit(D18) - sum(basket)
    largest = max(range(len(basket)), key=lambda i: basket[i])
    basket[largest] += residual
    return basket


def plan_snapshot(snapshot: BasketSnapshot, config: PlannerConfig) -> dict:
    """Trades and ``start_rebalance`` arguments for a snapshot."""
    symbols = [t.symbol for t in snapshot.tokens]
    decimals = [t.decimals for t in snapshot.tokens]
    balances = [t.balance for t in snapshot.tokens]
    prices = [t.price for t in snapshot.tokens]
    errors = [t.price_error for t in snapshot.tokens]
    target = target_basket(snapshot)

    current = get_current_basket(balances, decimals, prices)
    dtf_price = snapshot.dtf_price
    if dtf_price is None:
        _, dtf_price = get_share_pricing(snapshot.supply, balances, decimals, prices)

    trades = get_trades(
        snapshot.supply,
        symbols,
        decimals,
        current,
        target,
        prices,
        errors,
        dtf_price,
        tolerance=config.tolerance,
        eject_fully=config.eject_fully,
        precision=config.precision,
    )
    params, limits = get_start_rebalance(
        symbols,
        decimals,
        target,
        prices,
        errors,
        dtf_price,
        weight_control=snapshot.weight_control,
    )

    logger.info("snapshot.planned", tokens=symbols, trades=len(trades))

    return {
        "dtf_price": str(dtf_price),
        "current_basket": current,
        "target_basket": target,
        "trades": [t.model_dump() for t in trades],
        "start_rebalance": {
            "tokens": [p.model_dump() for p in params],
            "limits": limits.model_dump(),
        },
    }
