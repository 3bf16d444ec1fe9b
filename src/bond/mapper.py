"""Field metadata cache: primary-key discovery and row marshaling.

Domain types declare their columns with :class:`Column` markers inside
``typing.Annotated``::

    class Account(BaseModel):
        id: Annotated[int, Column(pk=True, omitempty=True)] = 0
        name: str = ""
        created_at: Annotated[datetime | None, Column("created_at")] = None

Both pydantic models and dataclasses are supported. A type is inspected
once; the resulting :class:`ModelInfo` is memoized for the life of the
process. First use is serialized by a lock with a re-check so concurrent
callers always observe the same entry.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Annotated, Any, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from bond.errors import MetadataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Column:
    """Column marker placed in ``Annotated[...]`` metadata.

    Attributes:
        name: Column name in the collection; defaults to the attribute name.
        pk: Marks the primary-key field. Exactly one per type.
        omitempty: Leave the column out of written rows while the value
            equals the field's zero value (lets the database assign it).
    """

    name: str | None = None
    pk: bool = False
    omitempty: bool = False


@dataclass(frozen=True)
class MappedField:
    """Accessor and zero value for one attribute of a domain type."""

    attr: str
    column: str
    zero: Any
    omitempty: bool = False
    pk: bool = False

    def get(self, item: Any) -> Any:
        return getattr(item, self.attr)

    def set(self, item: Any, value: Any) -> None:
        setattr(item, self.attr, value)

    def is_zero(self, item: Any) -> bool:
        return bool(self.get(item) == self.zero)


@dataclass(frozen=True)
class ModelInfo:
    """Cached description of a domain type."""

    model: type
    fields: tuple[MappedField, ...]
    pk: MappedField | None
    frozen: bool = False

    def by_column(self, column: str) -> MappedField | None:
        for f in self.fields:
            if f.column == column:
                return f
        return None


def _strip_annotated(tp: Any) -> tuple[Any, tuple[Any, ...]]:
    if get_origin(tp) is Annotated:
        base, *extras = get_args(tp)
        return base, tuple(extras)
    return tp, ()


def _zero_of(tp: Any) -> Any:
    """Zero value of a bare type: ``int() == 0``, ``str() == ""``, else None."""
    tp, _ = _strip_annotated(tp)
    if get_origin(tp) is not None or not isinstance(tp, type):
        return None
    try:
        return tp()
    except Exception:
        return None


def _find_column(extras: Any) -> Column | None:
    for item in extras:
        if isinstance(item, Column):
            return item
    return None


def _inspect_pydantic(model: type[BaseModel]) -> list[MappedField]:
    mapped: list[MappedField] = []
    for attr, finfo in model.model_fields.items():
        column = _find_column(finfo.metadata)
        if finfo.is_required():
            zero = _zero_of(finfo.annotation)
        else:
            zero = finfo.get_default(call_default_factory=True)
        mapped.append(_mapped(attr, column, zero))
    return mapped


def _inspect_dataclass(model: type) -> list[MappedField]:
    try:
        hints = get_type_hints(model, include_extras=True)
    except (NameError, TypeError) as exc:
        msg = f"Cannot resolve type hints for {model.__qualname__}: {exc}"
        raise MetadataError(msg) from exc

    mapped: list[MappedField] = []
    for f in dataclasses.fields(model):
        hint = hints.get(f.name, f.type)
        _, extras = _strip_annotated(hint)
        if f.default is not dataclasses.MISSING:
            zero = f.default
        elif f.default_factory is not dataclasses.MISSING:
            zero = f.default_factory()
        else:
            zero = _zero_of(hint)
        mapped.append(_mapped(f.name, _find_column(extras), zero))
    return mapped


def _mapped(attr: str, column: Column | None, zero: Any) -> MappedField:
    if column is None:
        return MappedField(attr=attr, column=attr, zero=zero)
    return MappedField(
        attr=attr,
        column=column.name or attr,
        zero=zero,
        omitempty=column.omitempty,
        pk=column.pk,
    )


class StructMapper:
    """Per-type metadata cache.

    Reads are lock-free once a type is known. A miss takes the lock and
    checks again before inspecting, so a type is inspected at most once.
    """

    def __init__(self) -> None:
        self._cache: dict[type, ModelInfo] = {}
        self._lock = threading.Lock()

    def __contains__(self, model: object) -> bool:
        return model in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def describe(self, item: Any) -> ModelInfo:
        """Return the :class:`ModelInfo` for *item* (a type or an instance)."""
        model = item if isinstance(item, type) else type(item)
        info = self._cache.get(model)
        if info is not None:
            return info

        with self._lock:
            info = self._cache.get(model)
            if info is None:
                info = self._inspect(model)
                self._cache[model] = info
                logger.debug("Mapped %s (pk=%s)", model.__qualname__, info.pk and info.pk.attr)
        return info

    def resolve_primary_key(self, item: Any) -> MappedField:
        """Return the primary-key accessor for *item*.

        Raises:
            MetadataError: If the type declares no primary key.
        """
        info = self.describe(item)
        if info.pk is None:
            model = item if isinstance(item, type) else type(item)
            msg = f"{model.__qualname__} has no field marked Column(pk=True)"
            raise MetadataError(msg)
        return info.pk

    def _inspect(self, model: type) -> ModelInfo:
        if issubclass(model, BaseModel):
            mapped = _inspect_pydantic(model)
            frozen = bool(model.model_config.get("frozen"))
        elif dataclasses.is_dataclass(model):
            mapped = _inspect_dataclass(model)
            frozen = model.__dataclass_params__.frozen
        else:
            msg = (
                f"Unsupported type {model.__qualname__}: "
                "expected a pydantic model or a dataclass"
            )
            raise MetadataError(msg)

        pks = [f for f in mapped if f.pk]
        if len(pks) > 1:
            names = [f.attr for f in pks]
            msg = f"{model.__qualname__} marks more than one primary key: {names}"
            raise MetadataError(msg)

        return ModelInfo(
            model=model,
            fields=tuple(mapped),
            pk=pks[0] if pks else None,
            frozen=frozen,
        )

    # ------------------------------------------------------------------
    # Row marshaling
    # ------------------------------------------------------------------

    def to_row(self, item: Any) -> dict[str, Any]:
        """Map *item* to ``{column: value}``.

        Plain mappings are passed through as a copy. Omit-empty fields
        holding their zero value are left out.
        """
        if isinstance(item, dict):
            return dict(item)
        row: dict[str, Any] = {}
        for f in self.describe(item).fields:
            value = f.get(item)
            if f.omitempty and value == f.zero:
                continue
            row[f.column] = value
        return row

    def from_row[T](self, model: type[T], row: dict[str, Any]) -> T:
        """Construct a *model* instance from a row mapping."""
        info = self.describe(model)
        values = {f.attr: row[f.column] for f in info.fields if f.column in row}
        if issubclass(model, BaseModel):
            return model.model_validate(values)
        return model(**values)

    def assign_row[T](self, item: T, row: dict[str, Any]) -> T:
        """Copy row values onto an existing instance."""
        for f in self.describe(item).fields:
            if f.column in row:
                f.set(item, row[f.column])
        return item


mapper = StructMapper()

describe = mapper.describe
resolve_primary_key = mapper.resolve_primary_key
to_row = mapper.to_row
from_row = mapper.from_row
assign_row = mapper.assign_row
