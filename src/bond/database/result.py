"""Lazy query results over one collection.

A :class:`Result` holds the conditions, ordering and paging for a query and
runs nothing until a terminal method (``one``, ``all``, ``count``,
``update``, ``remove``) is called. Chainable methods return a new Result.

Conditions are mappings or SQLAlchemy expressions::

    coll.find({"name": "Pressly"})
    coll.find({"id >": 10, "disabled": False})
    coll.find({"id": [1, 2, 3]})          # IN
    coll.find(accounts.c.name.like("P%"))
"""

from __future__ import annotations

import logging
import operator
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnElement, Table, delete, func, select, update

from bond.errors import ContractViolation, NoMoreRowsError
from bond.mapper import mapper

if TYPE_CHECKING:
    from bond.session import Session

logger = logging.getLogger(__name__)

_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _condition(table: Table, key: str, value: Any) -> ColumnElement[bool]:
    name, _, op = key.strip().partition(" ")
    op = op.strip().upper() or "="
    try:
        col = table.c[name]
    except KeyError:
        msg = f"Collection {table.name!r} has no column {name!r}"
        raise ContractViolation(msg) from None

    if op == "IN" or (op in ("=", "==") and isinstance(value, (list, tuple, set, frozenset))):
        return col.in_(list(value))
    if op == "NOT IN":
        return col.not_in(list(value))
    if op == "LIKE":
        return col.like(value)
    if value is None and op in ("=", "=="):
        return col.is_(None)
    if value is None and op in ("!=", "<>"):
        return col.is_not(None)

    fn = _OPERATORS.get(op)
    if fn is None:
        msg = f"Unsupported operator {op!r} in condition {key!r}"
        raise ContractViolation(msg)
    return fn(col, value)


def build_conditions(table: Table, terms: Iterable[Any]) -> list[ColumnElement[bool]]:
    """Translate find() terms into SQLAlchemy where clauses."""
    clauses: list[ColumnElement[bool]] = []
    for term in terms:
        if term is None:
            continue
        if isinstance(term, dict):
            clauses.extend(_condition(table, key, value) for key, value in term.items())
        elif isinstance(term, ColumnElement):
            clauses.append(term)
        else:
            msg = f"Unsupported condition of type {type(term).__name__}"
            raise ContractViolation(msg)
    return clauses


def table_row(table: Table, item: Any) -> dict[str, Any]:
    """Marshal *item* and keep only the columns *table* actually has."""
    row = mapper.to_row(item)
    unknown = [key for key in row if key not in table.c]
    if unknown:
        logger.debug("Dropping columns %s not present in %s", unknown, table.name)
    return {key: value for key, value in row.items() if key in table.c}


class Result:
    """Query over a collection, bound to the session that created it."""

    def __init__(
        self,
        session: Session,
        table: Table,
        terms: tuple[Any, ...] = (),
        *,
        limit: int | None = None,
        offset: int | None = None,
        order: tuple[str, ...] = (),
    ) -> None:
        self._session = session
        self._table = table
        self._terms = terms
        self._limit = limit
        self._offset = offset
        self._order = order

    @property
    def session(self) -> Session:
        return self._session

    def _copy(self, **changes: Any) -> Result:
        state: dict[str, Any] = {
            "terms": self._terms,
            "limit": self._limit,
            "offset": self._offset,
            "order": self._order,
        }
        state.update(changes)
        return Result(self._session, self._table, **state)

    def where(self, *terms: Any) -> Result:
        """Add conditions (AND-ed with the existing ones)."""
        return self._copy(terms=self._terms + terms)

    def limit(self, n: int) -> Result:
        return self._copy(limit=n)

    def offset(self, n: int) -> Result:
        return self._copy(offset=n)

    def order_by(self, *columns: str) -> Result:
        """Sort by column names; a leading ``-`` sorts descending."""
        return self._copy(order=self._order + columns)

    # ------------------------------------------------------------------
    # Statement building
    # ------------------------------------------------------------------

    def _clauses(self) -> list[ColumnElement[bool]]:
        return build_conditions(self._table, self._terms)

    def _select(self) -> Any:
        stmt = select(self._table).where(*self._clauses())
        for name in self._order:
            if name.startswith("-"):
                stmt = stmt.order_by(self._table.c[name[1:]].desc())
            else:
                stmt = stmt.order_by(self._table.c[name])
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        return stmt

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    def one(self, into: Any = None) -> Any:
        """Fetch the first matching row.

        *into* may be a model type (a new instance is built), a model
        instance (filled in place) or None (a plain dict is returned).

        Raises:
            NoMoreRowsError: If nothing matches.
        """
        with self._session.connect() as conn:
            row = conn.execute(self._select().limit(1)).mappings().first()
        if row is None:
            msg = f"No rows in {self._table.name!r} match the query"
            raise NoMoreRowsError(msg)
        return _materialize(dict(row), into)

    def all(self, into: type | None = None) -> list[Any]:
        """Fetch every matching row, as *into* instances or dicts."""
        with self._session.connect() as conn:
            rows = conn.execute(self._select()).mappings().all()
        return [_materialize(dict(row), into) for row in rows]

    def count(self) -> int:
        stmt = select(func.count()).select_from(self._table).where(*self._clauses())
        with self._session.connect() as conn:
            return int(conn.execute(stmt).scalar_one() or 0)

    def exists(self) -> bool:
        return self.count() > 0

    def update(self, values: Any) -> int:
        """Write *values* (a model or a mapping) to every matching row.

        Returns the number of rows affected.
        """
        row = table_row(self._table, values)
        stmt = update(self._table).where(*self._clauses()).values(row)
        with self._session.connect() as conn:
            return conn.execute(stmt).rowcount

    def remove(self) -> int:
        """Delete every matching row. Returns the number removed."""
        stmt = delete(self._table).where(*self._clauses())
        with self._session.connect() as conn:
            return conn.execute(stmt).rowcount


def _materialize(row: dict[str, Any], into: Any) -> Any:
    if into is None:
        return row
    if isinstance(into, type):
        return mapper.from_row(into, row)
    return mapper.assign_row(into, row)
