"""MySQL dialect."""

import urllib.parse
from typing import Callable, ClassVar

from .base import Dialect


class MysqlDialect(Dialect):
    """Dialect for MySQL (scheme mysql)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("mysql",)

    PLACEHOLDER: ClassVar[str] = "%s"

    F: ClassVar[dict[str, Callable[..., str]]] = {
        "random": lambda: "RAND()",
        "date": lambda column: f"DATE({column})",
        "month": lambda column: f"MONTH({column})",
        "year": lambda column: f"YEAR({column})",
        "day": lambda column: f"DAY({column})",
        "time": lambda column: f"TIME({column})",
    }

    def connect(self, url: str):
        import pymysql  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        return pymysql.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port or 3306,
        )
