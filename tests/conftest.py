import sqlite3

import pytest

from lectern import DbapiConnection, Model
from tests.models import seed


class RecordingConnection:
    """Wrap a connection and keep every statement it runs, to count batches."""

    def __init__(self, inner: DbapiConnection):
        self.inner = inner
        self.dialect = inner.dialect
        self.statements: list[tuple[str, list]] = []

    @property
    def raw(self):
        return self.inner.raw

    async def query(self, sql, params=()):
        self.statements.append((sql, list(params)))
        return await self.inner.query(sql, params)

    def statements_on(self, table: str) -> list[tuple[str, list]]:
        """Statements whose main FROM clause reads `table`."""
        return [
            (sql, params) for sql, params in self.statements
            if " FROM " in sql and sql.split(" FROM ", 1)[1].split(" ", 1)[0] == table
        ]


@pytest.fixture(autouse=True)
def reset_models():
    """Give every test a fresh model context."""
    Model.reset()
    yield
    Model.reset()


@pytest.fixture(scope="function")
def db():
    """In-memory SQLite database with the test schema and data, installed as the model connection."""
    raw = sqlite3.connect(":memory:")
    seed(raw)
    connection = RecordingConnection(DbapiConnection(raw, "sqlite"))
    Model.init(connection)
    yield connection
    raw.close()
