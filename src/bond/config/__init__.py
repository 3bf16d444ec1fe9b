"""Configuration: TOML discovery, settings and logging."""

from bond.config.discovery import find_config, read_toml
from bond.config.logging import configure_from, configure_logging
from bond.config.models import DatabaseConfig, LoggingConfig
from bond.config.settings import BondSettings

__all__ = [
    "BondSettings",
    "DatabaseConfig",
    "LoggingConfig",
    "configure_from",
    "configure_logging",
    "find_config",
    "read_toml",
]
