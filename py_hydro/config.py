"""Configuration management."""

import logging

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.models import ConfluencePolicy, SourcePolicy


class Settings(BaseSettings):
    """Application settings pulled from HYDRO_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HYDRO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # River formation
    precipitation_scale: float = Field(default=50.0, gt=0, description="Precipitation to discharge factor")
    min_flux: int = Field(default=30, ge=1, description="Base discharge needed to form a river")
    min_river_length: int = Field(default=3, ge=1, description="Minimum cells for an accepted river")
    auto_adjust: bool = Field(default=True, description="Relax threshold until target_rivers is reached")
    target_rivers: int = Field(default=10, ge=0, description="River count the relaxation aims for")
    min_threshold: int = Field(default=8, ge=1, description="Floor for the relaxed threshold")
    confluence_policy: ConfluencePolicy = Field(
        default=ConfluencePolicy.REJECT, description="Reject or merge converging traces"
    )
    source_policy: SourcePolicy = Field(
        default=SourcePolicy.THRESHOLD, description="Trace from every cell above the threshold or only channel heads"
    )

    # River features
    delta_min_discharge: int = Field(default=500, ge=0, description="Mouth discharge needed for a delta")
    seasonal_precipitation: float = Field(default=30.0, ge=0, description="Seasonal river threshold")
    evaporation_rate: float = Field(default=0.1, ge=0, description="Lake evaporation per cell")
    name_seed: str = Field(default="default", description="Seed for river naming")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structlog on top of the standard library logger."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


settings = Settings()
