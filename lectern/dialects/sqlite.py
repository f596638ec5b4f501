"""SQLite dialect."""

import logging
import sqlite3
import urllib.parse
from typing import Callable, ClassVar

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)

    F: ClassVar[dict[str, Callable[..., str]]] = {
        "random": lambda: "RANDOM()",
        "date": lambda column: f"DATE({column})",
        "month": lambda column: f"CAST(strftime('%m', {column}) AS INTEGER)",
        "year": lambda column: f"CAST(strftime('%Y', {column}) AS INTEGER)",
        "day": lambda column: f"CAST(strftime('%d', {column}) AS INTEGER)",
        "time": lambda column: f"TIME({column})",
    }

    def connect(self, url: str) -> sqlite3.Connection:
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname or ":memory:"
        logger.info("Connecting to SQLite database %s", path)
        connection = sqlite3.connect(path)
        return connection
