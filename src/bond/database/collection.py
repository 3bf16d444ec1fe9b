"""Collection primitive over one SQLAlchemy table."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Table, delete, inspect, insert

from bond.database.result import Result, table_row

if TYPE_CHECKING:
    from bond.session import Session


class Collection:
    """Raw CRUD on a named table, executed through a session.

    No hooks run here and nothing is written back onto items; that is the
    store's job.
    """

    def __init__(self, session: Session, table: Table) -> None:
        self._session = session
        self._table = table

    @property
    def name(self) -> str:
        return self._table.name

    @property
    def table(self) -> Table:
        return self._table

    @property
    def session(self) -> Session:
        return self._session

    def append(self, item: Any) -> Any:
        """Insert *item* (a model or a mapping) and return its new primary key.

        Composite keys come back as a tuple.
        """
        row = table_row(self._table, item)
        stmt = insert(self._table)
        if row:
            stmt = stmt.values(row)
        with self._session.connect() as conn:
            key = conn.execute(stmt).inserted_primary_key
        if key is None:
            return None
        return key[0] if len(key) == 1 else tuple(key)

    def find(self, *terms: Any) -> Result:
        return Result(self._session, self._table, terms)

    def truncate(self) -> None:
        """Delete every row in the collection."""
        with self._session.connect() as conn:
            conn.execute(delete(self._table))

    def exists(self) -> bool:
        with self._session.connect() as conn:
            return inspect(conn).has_table(self._table.name, schema=self._table.schema)

    def __repr__(self) -> str:
        return f"Collection({self.name!r})"
