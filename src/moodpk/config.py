# src/moodpk/config.py
import logging
import os
import sys
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .pharmacokinetics import DEFAULT_BODY_WEIGHT_KG, FORMULA_VERSION

load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class CacheConfig(BaseModel):
    """Result cache sizing and expiry."""

    max_size: int = Field(default=500, gt=0, description="Keys kept in the shared LRU order")
    ttl_seconds: float = Field(default=300.0, gt=0.0, description="Entry lifetime")
    sweep_interval_seconds: float = Field(
        default=60.0, gt=0.0, description="Interval of the background expiry sweep"
    )
    formula_version: int = Field(
        default=FORMULA_VERSION, ge=1, description="Formula version embedded in every key"
    )


class EngineConfig(BaseModel):
    """Defaults for curve generation."""

    default_body_weight_kg: float = Field(default=DEFAULT_BODY_WEIGHT_KG, gt=0.0)
    curve_points: int = Field(default=100, gt=0)


class LoggingConfig(BaseModel):
    level: LogLevel = Field(default="INFO", description="Logging level")


class AppConfig(BaseModel):
    cache: CacheConfig = Field(default_factory=CacheConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""
    cache_config = CacheConfig(
        max_size=int(os.getenv("MOODPK_CACHE_MAX_SIZE", "500")),
        ttl_seconds=float(os.getenv("MOODPK_CACHE_TTL_SECONDS", "300")),
        sweep_interval_seconds=float(os.getenv("MOODPK_CACHE_SWEEP_SECONDS", "60")),
        formula_version=int(os.getenv("MOODPK_FORMULA_VERSION", str(FORMULA_VERSION))),
    )
    engine_config = EngineConfig(
        default_body_weight_kg=float(os.getenv("MOODPK_BODY_WEIGHT_KG", str(DEFAULT_BODY_WEIGHT_KG))),
        curve_points=int(os.getenv("MOODPK_CURVE_POINTS", "100")),
    )
    logging_config = LoggingConfig(level=_level_to_literal(os.getenv("MOODPK_LOG_LEVEL", "INFO")))
    return AppConfig(cache=cache_config, engine=engine_config, logging=logging_config)


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Route log records to stderr; for entry points only, never library code."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, config.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
