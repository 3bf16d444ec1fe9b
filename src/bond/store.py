"""Store: lifecycle-aware persistence for one collection.

Every write follows the same shape::

    pre-hook  ->  collection primitive  ->  post-hook

Hooks are optional and checked one by one (see :mod:`bond.hooks`). The
first exception stops the chain and reaches the caller unchanged. A failing
``before_*`` hook means nothing was written; a failing ``after_*`` hook
means the write already happened and reconciling is up to the caller.

Nothing here is atomic across steps. Scope a sequence to one transaction
with :meth:`Store.tx` or :meth:`Session.transaction`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.engine import Connection, Engine, Transaction

from bond.errors import ContractViolation, MetadataError, ZeroItemIDError
from bond.hooks import (
    HasAfterCreate,
    HasAfterDelete,
    HasAfterUpdate,
    HasBeforeCreate,
    HasBeforeDelete,
    HasBeforeUpdate,
    Identifiable,
    wants_validate,
)
from bond.mapper import MappedField, mapper
from bond.session import Session

if TYPE_CHECKING:
    from bond.database.collection import Collection
    from bond.database.result import Result

logger = logging.getLogger(__name__)


def _id_of(item: Any, pk: MappedField) -> Any:
    if isinstance(item, Identifiable):
        return item.get_id()
    return pk.get(item)


def _is_new(item: Any, pk: MappedField) -> bool:
    return bool(_id_of(item, pk) == pk.zero)


def _assign_id(item: Any, pk: MappedField, value: Any) -> None:
    if isinstance(item, Identifiable):
        item.set_id(value)
    else:
        pk.set(item, value)


class Store:
    """Entity store bound to one collection name and one session.

    Subclass to attach collection-specific queries; subclasses must keep the
    ``(name, session)`` constructor so :meth:`tx` can rebuild them::

        class AccountStore(Store):
            def active(self) -> list[Account]:
                return self.find({"disabled": False}).all(Account)

        accounts = session.store("accounts", AccountStore)
    """

    def __init__(self, name: str, session: Session) -> None:
        self._name = name
        self._session = session

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def session(self) -> Session:
        return self._session

    @property
    def collection(self) -> Collection:
        return self._session.collection(self._name)

    def find(self, *terms: Any) -> Result:
        """Query the collection through this store's session."""
        return self.collection.find(*terms)

    def truncate(self) -> None:
        self.collection.truncate()

    def exists(self) -> bool:
        return self.collection.exists()

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def append(self, item: Any) -> Any:
        """Insert *item* unconditionally and return the generated id.

        Runs ``validate`` and the create hooks, but leaves the id off the
        item. Use :meth:`insert` when the item should carry its new id.
        """
        if wants_validate(item):
            item.validate()
        if isinstance(item, HasBeforeCreate):
            item.before_create(self._session)

        item_id = self.collection.append(item)
        logger.debug("Appended to %s: id=%r", self._name, item_id)

        if isinstance(item, HasAfterCreate):
            item.after_create(self._session)
        return item_id

    def save(self, item: Any) -> None:
        """Insert *item* when its primary key is unset, update it otherwise."""
        pk = mapper.resolve_primary_key(item)

        if wants_validate(item):
            item.validate()

        if _is_new(item, pk):
            self.insert(item)
        else:
            self.update(item)

    def insert(self, item: Any) -> None:
        """Insert *item* and write the generated primary key back onto it.

        The id is assigned before ``after_create`` runs.

        Raises:
            MetadataError: If the type is frozen. Checked before any hook
                runs, since the id could not be written back.
        """
        pk = mapper.resolve_primary_key(item)
        if mapper.describe(item).frozen:
            msg = f"Cannot insert {type(item).__qualname__}: frozen types cannot take an id"
            raise MetadataError(msg)

        if isinstance(item, HasBeforeCreate):
            item.before_create(self._session)

        item_id = self.collection.append(item)
        _assign_id(item, pk, item_id)
        logger.debug("Inserted into %s: %s=%r", self._name, pk.column, item_id)

        if isinstance(item, HasAfterCreate):
            item.after_create(self._session)

    def update(self, item: Any) -> None:
        """Rewrite the stored record matching *item*'s primary key."""
        pk = mapper.resolve_primary_key(item)
        item_id = _id_of(item, pk)

        if isinstance(item, HasBeforeUpdate):
            item.before_update(self._session)

        self.collection.find({pk.column: item_id}).update(item)
        logger.debug("Updated %s: %s=%r", self._name, pk.column, item_id)

        if isinstance(item, HasAfterUpdate):
            item.after_update(self._session)

    def delete(self, item: Any) -> None:
        """Remove the stored record matching *item*'s primary key.

        Raises:
            ZeroItemIDError: If the primary key is unset. No hook runs and
                storage is not touched.
        """
        pk = mapper.resolve_primary_key(item)
        if _is_new(item, pk):
            raise ZeroItemIDError(
                f"Refusing to delete from {self._name!r}: {pk.attr} holds its zero value"
            )
        item_id = _id_of(item, pk)

        if isinstance(item, HasBeforeDelete):
            item.before_delete(self._session)

        self.collection.find({pk.column: item_id}).remove()
        logger.debug("Deleted from %s: %s=%r", self._name, pk.column, item_id)

        if isinstance(item, HasAfterDelete):
            item.after_delete(self._session)

    # ------------------------------------------------------------------
    # Rebinding
    # ------------------------------------------------------------------

    def tx(self, target: Transaction | Engine | Connection | Session) -> Store:
        """Copy of this store that runs against *target*.

        *target* may be a SQLAlchemy ``Transaction`` (its connection is
        used), an ``Engine``, a ``Connection`` or an existing
        :class:`Session` (used as is). The copy keeps the collection name
        and store class; it is independent of this store otherwise.

        Raises:
            ContractViolation: If *target* is none of the above.
        """
        if isinstance(target, Session):
            session = target
        elif isinstance(target, Transaction):
            session = self._session.with_bind(target.connection)
        elif isinstance(target, (Engine, Connection)):
            session = self._session.with_bind(target)
        else:
            msg = f"Cannot rebind store {self._name!r} to {type(target).__name__}"
            raise ContractViolation(msg)
        return type(self)(self._name, session)
