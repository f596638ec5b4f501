"""PostgreSQL dialect."""

import urllib.parse
from typing import Callable, ClassVar

from .base import Dialect


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (schemes postgresql, postgres)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")

    PLACEHOLDER: ClassVar[str] = "%s"

    F: ClassVar[dict[str, Callable[..., str]]] = {
        "random": lambda: "RANDOM()",
        "date": lambda column: f"CAST({column} AS DATE)",
        "month": lambda column: f"EXTRACT(MONTH FROM {column})",
        "year": lambda column: f"EXTRACT(YEAR FROM {column})",
        "day": lambda column: f"EXTRACT(DAY FROM {column})",
        "time": lambda column: f"CAST({column} AS TIME)",
    }

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return psycopg2.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port,
        )
