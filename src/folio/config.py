"""Configuration loading and validation using Pydantic."""

from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from folio.models import (
    MAX_AUCTION_LENGTH,
    MAX_TTL,
    MIN_AUCTION_LENGTH,
    RESTRICTED_AUCTION_BUFFER,
    PriceControl,
)


class AuctionConfig(BaseModel):
    """Per-folio auction settings."""

    auction_length: int = Field(default=1800, ge=MIN_AUCTION_LENGTH, le=MAX_AUCTION_LENGTH)
    restricted_auction_buffer: int = Field(default=RESTRICTED_AUCTION_BUFFER, ge=0)
    max_ttl: int = Field(default=MAX_TTL, gt=0)
    price_control: PriceControl = PriceControl.PARTIAL


class PlannerConfig(BaseModel):
    """Settings for the off-chain basket/trade planner."""

    tolerance: Decimal = Field(default=Decimal("0.0001"), gt=0, lt=1)
    eject_fully: bool = False
    precision: int = Field(default=60, ge=28, le=200)


class StoreConfig(BaseModel):
    namespace: str = "folio"
    state_ttl_days: int = Field(default=30, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    app_log: str = "logs/folio.log"
    auction_log: str = "logs/auctions.log"
    planner_log: str = "logs/planner.log"
    max_bytes: int = 10485760
    backup_count: int = 5

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v):
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return v.upper()


class AppConfig(BaseModel):
    auction: AuctionConfig = Field(default_factory=AuctionConfig)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Secrets(BaseSettings):
    """Loaded from environment / .env file automatically."""

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def load_config(config_path: Path = Path("config/settings.yaml")) -> AppConfig:
    """Load and validate application configuration from YAML."""
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return AppConfig(**raw)
