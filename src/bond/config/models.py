"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, bond.toml only holds overrides.
"""

from __future__ import annotations

from pydantic import BaseModel


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    url: str = "sqlite:///bond.db"
    echo: bool = False
    pool_pre_ping: bool = False
    sqlite_wal: bool = True
    sqlite_foreign_keys: bool = True


class LoggingConfig(BaseModel):
    """[logging] section.

    Applied by :func:`bond.open` only when ``enabled`` is set, so an
    application that configures logging itself is left alone.
    """

    model_config = {"frozen": True}

    enabled: bool = False
    verbose: bool = False
    log_json: bool = False
