"""lectern: a read-only async ORM built on Pydantic and SQL."""

from .collection import Collection
from .connection import Connection, DbapiConnection, connect
from .errors import (
    LecternError,
    ConfigurationError,
    ConnectionNotInitializedError,
    RelationNotFoundError,
    UnsupportedRelationError,
    ReadOnlyViolationError,
    ModelNotFoundError,
)
from .guard import ensure_read_only_snippet, ensure_read_only_sql
from .model import Model
from .query import QueryBuilder
