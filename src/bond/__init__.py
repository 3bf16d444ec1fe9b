"""bond: entity stores over SQLAlchemy Core collections.

Typical use::

    session = bond.open("sqlite:///app.db")
    accounts = session.store("accounts")

    acct = Account(name="Pressly")
    accounts.save(acct)          # insert, acct.id is now set
    acct.disabled = True
    accounts.save(acct)          # update
    accounts.delete(acct)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bond.config.logging import configure_from
from bond.config.settings import BondSettings
from bond.database.engine import create_db_engine
from bond.errors import (
    BondError,
    ConfigError,
    ContractViolation,
    MetadataError,
    NoMoreRowsError,
    ValidationError,
    ZeroItemIDError,
)
from bond.mapper import Column, resolve_primary_key
from bond.model import Model
from bond.session import Session
from bond.store import Store

if TYPE_CHECKING:
    from sqlalchemy import MetaData

__version__ = "0.1.0"

__all__ = [
    "BondError",
    "BondSettings",
    "Column",
    "ConfigError",
    "ContractViolation",
    "MetadataError",
    "Model",
    "NoMoreRowsError",
    "Session",
    "Store",
    "ValidationError",
    "ZeroItemIDError",
    "open",
    "resolve_primary_key",
]

logger = logging.getLogger(__name__)


def open(  # noqa: A001
    url: str | None = None,
    *,
    settings: BondSettings | None = None,
    metadata: MetaData | None = None,
) -> Session:
    """Open a session on a new engine.

    *url* overrides ``settings.database.url``. Without *settings* they are
    loaded from the environment and any ``bond.toml`` found by walking up
    from the working directory. The returned session owns the engine and
    disposes it on :meth:`Session.close`.

    When ``settings.logging.enabled`` is set, logging is configured from the
    ``[logging]`` section before the engine is built.
    """
    if settings is None:
        settings = BondSettings.load()
    if settings.logging.enabled:
        configure_from(settings.logging)
    db_config = settings.database
    if url is not None:
        db_config = db_config.model_copy(update={"url": url})

    engine = create_db_engine(db_config)
    logger.debug("Opened engine for %s", engine.url)
    return Session(engine, metadata=metadata, owns_engine=True)
