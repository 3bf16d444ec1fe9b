"""Pydantic base class for domain objects persisted through a Store."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel

from bond.mapper import mapper


class Model(BaseModel):
    """Domain object with identity accessors and a collection name.

    Subclasses set ``__collection__`` and mark one field with
    ``Column(pk=True)``::

        class Account(Model):
            __collection__ = "accounts"

            id: Annotated[int, Column(pk=True, omitempty=True)] = 0
            name: str = ""
    """

    __collection__: ClassVar[str | None] = None

    @classmethod
    def collection_name(cls) -> str | None:
        return cls.__collection__

    def get_id(self) -> Any:
        return mapper.resolve_primary_key(self).get(self)

    def set_id(self, value: Any) -> None:
        mapper.resolve_primary_key(self).set(self, value)

    def is_new_record(self) -> bool:
        return mapper.resolve_primary_key(self).is_zero(self)
