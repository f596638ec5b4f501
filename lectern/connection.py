"""Connection contract and a DB-API adapter implementing it."""

import logging
import re
import urllib.parse
from typing import Any, Protocol, Sequence, runtime_checkable

from .dialects import Dialect, get_dialect_for_scheme, resolve_dialect
from .guard import ensure_read_only_sql

logger = logging.getLogger(__name__)

_QUOTED_OR_PLACEHOLDER = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\?")


@runtime_checkable
class Connection(Protocol):
    """What lectern needs from a database connection.

    ``query`` returns a sequence whose first element is the list of rows,
    each row a mapping from column name to value.
    """

    async def query(self, sql: str, params: Sequence[Any]) -> Sequence[Any]:
        ...  # pylint: disable=unnecessary-ellipsis


class DbapiConnection:
    """Expose a DB-API 2.0 connection (sqlite3, pymysql, psycopg2) through `query`.

    Statements are written with ``?`` placeholders and translated to the
    driver's paramstyle. Every statement is checked against the read-only
    guard before it reaches the driver.
    """

    def __init__(self, raw: Any, dialect: Dialect | str = "sqlite"):
        self.raw = raw
        self.dialect = resolve_dialect(dialect)

    def _translate(self, sql: str) -> str:
        placeholder = self.dialect.PLACEHOLDER
        if placeholder == "?":
            return sql
        sql = sql.replace("%", "%%")
        return _QUOTED_OR_PLACEHOLDER.sub(
            lambda match: placeholder if match.group(0) == "?" else match.group(0),
            sql,
        )

    async def query(self, sql: str, params: Sequence[Any] = ()) -> tuple[list[dict[str, Any]], Any]:
        """Run a SELECT and return ``(rows, description)``."""
        ensure_read_only_sql(sql, "connection")
        logger.debug("%s %s", sql, list(params))
        cursor = self.raw.cursor()
        try:
            cursor.execute(self._translate(sql), tuple(params))
            description = cursor.description or ()
            columns = [column[0] for column in description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()
        return rows, description

    def close(self) -> None:
        """Close the underlying driver connection."""
        self.raw.close()


def connect(database_url: str) -> DbapiConnection:
    """Open a driver connection for the URL and wrap it in a DbapiConnection.

    The result is meant to be handed to `Model.init()`.
    """
    dialect = get_dialect_for_scheme(urllib.parse.urlparse(database_url).scheme)
    return DbapiConnection(dialect.connect(database_url), dialect)
