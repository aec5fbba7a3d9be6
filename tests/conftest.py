"""Shared test fixtures."""

import logging
from pathlib import Path

import pytest
import structlog
import yaml

from folio.auction import compute_k
from folio.config import AppConfig, AuctionConfig, Secrets, StoreConfig
from folio.logging_config import AUCTION_LOGGER, PLANNER_LOGGER
from folio.models import (
    Auction,
    AuctionPair,
    PriceRange,
    RebalanceLimits,
    Role,
    TokenRebalanceParams,
    WeightRange,
)
from folio.rebalancing import Folio

T0 = 1_767_225_600  # 2026-01-01T00:00:00Z
SUPPLY = 10**21  # 1000 shares

# D27{UoA/tok} for a $1 token: 1e27 / 10**decimals
USDC_PRICE = 10**21
DAI_PRICE = 10**9


@pytest.fixture
def auction_config() -> AuctionConfig:
    return AuctionConfig(auction_length=1800, restricted_auction_buffer=120, max_ttl=7 * 24 * 3600)


@pytest.fixture
def test_config(auction_config) -> AppConfig:
    """Provide a test configuration with safe defaults."""
    return AppConfig(
        auction=auction_config,
        store=StoreConfig(namespace="folio-test", state_ttl_days=7),
        logging={
            "level": "DEBUG",
            "app_log": "/tmp/test_folio.log",
            "auction_log": "/tmp/test_auctions.log",
            "planner_log": "/tmp/test_planner.log",
        },
    )


@pytest.fixture
def mock_secrets() -> Secrets:
    return Secrets(redis_host="redis.test", redis_port=6380, redis_password="test-password")


@pytest.fixture
def usdc_to_dai_params() -> list[TokenRebalanceParams]:
    """Sell all USDC for DAI: 0 USDC and 1 DAI per basket unit, prices +/-1%."""
    return [
        TokenRebalanceParams(
            token="USDC",
            weight=WeightRange(low=0, spot=0, high=0),
            price=PriceRange(low=USDC_PRICE * 99 // 100, high=USDC_PRICE * 101 // 100),
        ),
        TokenRebalanceParams(
            token="DAI",
            weight=WeightRange(low=9 * 10**26, spot=10**27, high=11 * 10**26),
            price=PriceRange(low=DAI_PRICE * 99 // 100, high=DAI_PRICE * 101 // 100),
        ),
    ]


@pytest.fixture
def limits() -> RebalanceLimits:
    return RebalanceLimits(low=9 * 10**17, spot=10**18, high=11 * 10**17)


@pytest.fixture
def folio(auction_config) -> Folio:
    """Folio holding 1000 USDC over 1000 shares, with a funded bidder."""
    f = Folio("folio-1", auction_config, admin="admin", total_supply=SUPPLY)
    f.grant_role("admin", "manager", Role.REBALANCE_MANAGER)
    f.grant_role("admin", "launcher", Role.AUCTION_LAUNCHER)
    f.fund("USDC", f.address, 1000 * 10**6)
    f.fund("DAI", "bidder", 10_000 * 10**18)
    return f


@pytest.fixture
def started_folio(folio, usdc_to_dai_params, limits) -> Folio:
    """Folio with rebalance 1 started at T0: 10 minute launcher window, 1 day ttl."""
    folio.start_rebalance("manager", usdc_to_dai_params, limits, 600, 86400, T0)
    return folio


@pytest.fixture
def sample_pair() -> AuctionPair:
    return AuctionPair(
        sell="USDC",
        buy="DAI",
        sell_limit=0,
        buy_limit=10**27,
        start_price=102 * 10**37,
        end_price=98 * 10**37,
        k=compute_k(102 * 10**37, 98 * 10**37, 1800),
    )


@pytest.fixture
def sample_auction(sample_pair) -> Auction:
    return Auction(
        id=1,
        rebalance_nonce=1,
        tokens=["USDC", "DAI"],
        pairs={sample_pair.key: sample_pair},
        start=T0,
        end=T0 + 1800,
        opened_by=Role.AUCTION_LAUNCHER,
    )


@pytest.fixture
def settings_file(tmp_path) -> Path:
    """Settings that keep log files inside the test's tmp_path."""
    path = tmp_path / "settings.yaml"
    with open(path, "w") as f:
        yaml.dump(
            {
                "logging": {
                    "level": "INFO",
                    "app_log": str(tmp_path / "logs" / "folio.log"),
                    "auction_log": str(tmp_path / "logs" / "auctions.log"),
                    "planner_log": str(tmp_path / "logs" / "planner.log"),
                }
            },
            f,
        )
    return path


@pytest.fixture
def restore_logging():
    """Undo what configure_logging does to stdlib logging and structlog."""
    loggers = [logging.getLogger(), logging.getLogger(AUCTION_LOGGER), logging.getLogger(PLANNER_LOGGER)]
    saved = [(lg, list(lg.handlers), lg.level) for lg in loggers]
    yield
    for lg, handlers, level in saved:
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers = handlers
        lg.setLevel(level)
    structlog.reset_defaults()
