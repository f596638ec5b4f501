"""SQL dialects the query builder can render for, and how one is picked."""

from typing import Optional, Union

from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect

_DIALECT_CLASSES: tuple[type[Dialect], ...] = (
    MysqlDialect,
    PostgresDialect,
    SqliteDialect,
)

DEFAULT_DIALECT = MysqlDialect


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Return a Dialect instance for a URL scheme or driver name (e.g. 'sqlite', 'postgresql+psycopg2')."""
    normalized = (scheme or "").split("+")[0].lower()
    for dialect_cls in _DIALECT_CLASSES:
        if normalized in dialect_cls.SUPPORTED_SCHEMA:
            return dialect_cls()
    raise ValueError(f"Unsupported database scheme: {scheme}")


def resolve_dialect(dialect: Optional[Union[Dialect, str]] = None, connection=None) -> Dialect:
    """Pick the dialect statements are rendered with.

    An explicit dialect (instance or scheme name) wins, then the one carried by
    the connection, then MySQL.
    """
    if isinstance(dialect, str):
        return get_dialect_for_scheme(dialect)
    if dialect is not None:
        return dialect
    carried = getattr(connection, "dialect", None)
    if carried is not None:
        return resolve_dialect(carried)
    return DEFAULT_DIALECT()


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "DEFAULT_DIALECT",
    "get_dialect_for_scheme",
    "resolve_dialect",
]
