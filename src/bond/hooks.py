"""Optional capabilities a domain object may implement.

Each protocol is checked independently with ``isinstance`` before the
matching step runs; an object may implement ``after_create`` without
``before_create``. Hooks signal failure by raising.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from bond.session import Session

# pydantic v2 still ships a deprecated ``BaseModel.validate`` classmethod.
_PYDANTIC_VALIDATE = inspect.getattr_static(BaseModel, "validate", None)


@runtime_checkable
class HasValidate(Protocol):
    def validate(self) -> None: ...


@runtime_checkable
class HasBeforeCreate(Protocol):
    def before_create(self, session: Session) -> None: ...


@runtime_checkable
class HasAfterCreate(Protocol):
    def after_create(self, session: Session) -> None: ...


@runtime_checkable
class HasBeforeUpdate(Protocol):
    def before_update(self, session: Session) -> None: ...


@runtime_checkable
class HasAfterUpdate(Protocol):
    def after_update(self, session: Session) -> None: ...


@runtime_checkable
class HasBeforeDelete(Protocol):
    def before_delete(self, session: Session) -> None: ...


@runtime_checkable
class HasAfterDelete(Protocol):
    def after_delete(self, session: Session) -> None: ...


@runtime_checkable
class Identifiable(Protocol):
    """Explicit identity accessors.

    When an item implements these, the store reads the id through
    ``get_id`` and writes the generated one back through ``set_id``. Whether
    the item is new is still decided by comparing that id with the
    primary key's zero value.
    """

    def get_id(self) -> Any: ...

    def set_id(self, value: Any) -> None: ...

    def is_new_record(self) -> bool: ...


def wants_validate(item: Any) -> bool:
    """True when *item* defines its own ``validate()`` hook."""
    if not isinstance(item, HasValidate):
        return False
    if isinstance(item, BaseModel):
        return inspect.getattr_static(type(item), "validate", None) is not _PYDANTIC_VALIDATE
    return True
