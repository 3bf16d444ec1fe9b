"""Session: a live connection context plus a registry of stores.

A Session wraps either an :class:`~sqlalchemy.engine.Engine` or a
:class:`~sqlalchemy.engine.Connection`:

- **Engine**: every collection operation runs in its own
  ``engine.begin()`` block and commits on its own.
- **Connection**: operations run on that connection and never commit; the
  owner of the connection decides when its transaction ends.

Sessions derived from one another (:meth:`with_bind`,
:meth:`transaction`, ``Store.tx``) share table metadata, so a table is
reflected once however many sessions use it. Each session keeps its own
store registry.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import MetaData, Table, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from bond.database.collection import Collection
from bond.errors import ContractViolation, MetadataError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from bond.store import Store

logger = logging.getLogger(__name__)

# Table reflection mutates MetaData, which may be shared across sessions.
_reflect_lock = threading.Lock()


def collection_name_of(item: Any) -> str:
    """Collection name declared by a domain type or instance.

    Instances are asked through a ``collection_name()`` method first; types
    and instances both fall back to a ``__collection__`` class attribute.
    """
    model = item if isinstance(item, type) else type(item)
    name: str | None = None
    if not isinstance(item, type):
        method = getattr(item, "collection_name", None)
        if callable(method):
            name = method()
    if not name:
        name = getattr(model, "__collection__", None)
    if not name:
        msg = f"Cannot determine a collection name for {model.__qualname__}"
        raise MetadataError(msg)
    return str(name)


class Session:
    """Connection context shared by the stores built on it."""

    def __init__(
        self,
        bind: Engine | Connection,
        *,
        metadata: MetaData | None = None,
        owns_engine: bool = False,
    ) -> None:
        if not isinstance(bind, (Engine, Connection)):
            msg = f"Session needs an Engine or Connection, got {type(bind).__name__}"
            raise ContractViolation(msg)
        self._bind = bind
        self._metadata = metadata if metadata is not None else MetaData()
        self._owns_engine = owns_engine
        self._stores: dict[str, Store] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        kind = "connection" if self.in_transaction else "engine"
        return f"Session({kind}, url={self.engine.url!r})"

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def bind(self) -> Engine | Connection:
        return self._bind

    @property
    def engine(self) -> Engine:
        if isinstance(self._bind, Connection):
            return self._bind.engine
        return self._bind

    @property
    def metadata(self) -> MetaData:
        return self._metadata

    @property
    def in_transaction(self) -> bool:
        """True when bound to a caller-owned connection."""
        return isinstance(self._bind, Connection)

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Yield the connection an operation should run on.

        Engine-bound sessions open (and commit) a fresh transaction per
        call; connection-bound sessions yield their connection untouched.
        """
        if isinstance(self._bind, Connection):
            yield self._bind
            return
        with self._bind.begin() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a block of store calls as one unit of work.

        Yields a Session bound to a connection inside ``engine.begin()``:
        committed when the block exits normally, rolled back when it
        raises. A session that is already connection-bound yields itself,
        joining the outer transaction.

        Usage::

            with session.transaction() as tx:
                accounts.tx(tx).save(acct)
                users.tx(tx).save(user)
        """
        if isinstance(self._bind, Connection):
            yield self
            return
        with self._bind.begin() as conn:
            logger.debug("Transaction started")
            yield self.with_bind(conn)
        logger.debug("Transaction committed")

    def with_bind(self, bind: Engine | Connection) -> Session:
        """New session on *bind* sharing this session's table metadata."""
        return Session(bind, metadata=self._metadata)

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.debug("Ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        """Drop cached stores; dispose the engine if this session created it."""
        with self._lock:
            self._stores.clear()
        if self._owns_engine and isinstance(self._bind, Engine):
            self._bind.dispose()

    # ------------------------------------------------------------------
    # Collections and stores
    # ------------------------------------------------------------------

    def table(self, name: str) -> Table:
        """Table for *name*, reflected from the database on first use."""
        table = self._metadata.tables.get(name)
        if table is not None:
            return table
        with _reflect_lock:
            table = self._metadata.tables.get(name)
            if table is None:
                with self.connect() as conn:
                    table = Table(name, self._metadata, autoload_with=conn)
                logger.debug("Reflected table %s", name)
        return table

    def collection(self, name: str) -> Collection:
        return Collection(self, self.table(name))

    def collections(self) -> list[str]:
        """Names of all tables in the database."""
        with self.connect() as conn:
            return sorted(inspect(conn).get_table_names())

    def store(self, target: str | Any, store_class: type[Store] | None = None) -> Store:
        """Store for a collection name, a domain type or a domain instance.

        Stores are cached by collection name. Asking for a name with a
        different *store_class* than the cached one replaces the entry.
        """
        from bond.store import Store

        name = target if isinstance(target, str) else collection_name_of(target)
        cls = store_class or Store

        cached = self._stores.get(name)
        if cached is not None and (store_class is None or type(cached) is store_class):
            return cached

        with self._lock:
            cached = self._stores.get(name)
            if cached is None or (store_class is not None and type(cached) is not store_class):
                cached = cls(name, self)
                self._stores[name] = cached
        return cached

    def store_names(self) -> list[str]:
        """Names of the stores materialized so far."""
        return sorted(self._stores)

    def save(self, item: Any) -> None:
        """Save *item* through the store of its declared collection."""
        self.store(item).save(item)

    def delete(self, item: Any) -> None:
        """Delete *item* through the store of its declared collection."""
        self.store(item).delete(item)
