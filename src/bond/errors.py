"""Exception hierarchy for bond.

Operational failures derive from :class:`BondError`. Exceptions raised by a
domain object's own hooks and by SQLAlchemy pass through untouched, so a
caller sees exactly what failed.

:class:`ContractViolation` sits outside the hierarchy. It marks caller misuse
rather than a data condition, so ``except BondError`` does not catch it.
"""

from __future__ import annotations


class BondError(Exception):
    """Base class for bond operational errors."""


class MetadataError(BondError):
    """A domain type has no usable primary-key metadata.

    Raised when no field (or more than one) is marked as primary key, when the
    value is not a supported model type, or when no collection name can be
    determined for it.
    """


class ValidationError(BondError):
    """Raised by a domain object's ``validate()`` hook.

    Hooks may raise any exception; this one is offered so domain code has a
    conventional type to reach for.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ZeroItemIDError(BondError):
    """``delete`` was called on an item whose primary key is unset."""

    def __init__(self, message: str = "item has a zero primary key value") -> None:
        super().__init__(message)


class NoMoreRowsError(BondError):
    """A result expected at least one row and found none."""


class ConfigError(BondError):
    """Configuration file could not be parsed."""


class ContractViolation(TypeError):  # noqa: N818
    """An argument of an unsupported kind was passed to bond."""
