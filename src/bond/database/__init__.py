"""Collection and query primitives via SQLAlchemy Core."""

from bond.database.collection import Collection
from bond.database.engine import create_db_engine
from bond.database.result import Result, build_conditions

__all__ = [
    "Collection",
    "Result",
    "build_conditions",
    "create_db_engine",
]
