"""Process-wide state shared by every model: connection, dialect, morph registry, pending loads."""

import asyncio
import logging
from typing import Any, Optional, Sequence

from .dialects import Dialect, resolve_dialect
from .errors import ConnectionNotInitializedError
from .guard import ensure_read_only_sql
from .morph import MorphRegistry

logger = logging.getLogger(__name__)


class ModelContext:
    """Registry held by the root `Model` class.

    Built once by `Model.init()` and replaced by `Model.reset()`, typically in
    test teardown.
    """

    def __init__(self, base: type, connection: Any = None, dialect: Optional[Dialect] = None):
        self.connection = connection
        self.dialect = resolve_dialect(dialect, connection)
        self.morphs = MorphRegistry(base)
        self.autoload = False
        self.loading: dict[str, asyncio.Future] = {}

    def require_connection(self) -> Any:
        if self.connection is None:
            raise ConnectionNotInitializedError()
        return self.connection

    async def select(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a read-only statement and return its rows as dicts."""
        connection = self.require_connection()
        ensure_read_only_sql(sql)
        logger.debug("%s %s", sql, list(params))
        result = await connection.query(sql, list(params))
        rows = result[0] if result else []
        return [dict(row) for row in rows]

    @staticmethod
    def loading_key(model_name: str, ids: Sequence[Any], relations: Sequence[str]) -> str:
        """Key identifying one batched load in `loading`."""
        sorted_ids = ",".join(sorted(str(id_) for id_ in ids))
        sorted_relations = ",".join(sorted(relations))
        return f"{model_name}:{sorted_ids}:{sorted_relations}"
