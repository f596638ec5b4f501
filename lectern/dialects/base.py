"""Base Dialect type: SQL helpers and driver connection for each engine."""

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar

from pydantic import BaseModel


class _DialectF:
    """Helper for dialect.f: __getattr__ returns the callable from the dialect's F config."""

    __slots__ = ("_dialect",)

    def __init__(self, dialect: "Dialect") -> None:
        self._dialect = dialect

    def __getattr__(self, name: str) -> Callable[..., Any]:
        F = type(self._dialect).F  # pylint: disable=invalid-name
        if name in F:
            return F[name]
        raise AttributeError(name)


class Dialect(BaseModel, ABC):
    """Base for database dialects.

    A dialect knows how its engine spells the few functions the query builder
    cannot express portably (random ordering, date-part extraction), which
    placeholder its DB-API driver expects, and how to open a driver connection.
    """

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',), ('postgresql', 'postgres'))."""

    PLACEHOLDER: ClassVar[str] = "?"
    """Parameter placeholder of the DB-API driver ('?' for qmark, '%s' for format)."""

    F: ClassVar[dict[str, Callable[..., str]]] = {}
    """Dialect-specific SQL helpers (random, date, month, year, day, time).

    Access via dialect.f.month("created_at").
    """

    @property
    def f(self) -> _DialectF:
        """Access dialect-specific helpers by name (e.g. self.f.random())."""
        return _DialectF(self)

    @property
    def name(self) -> str:
        """Primary scheme of the dialect."""
        return self.SUPPORTED_SCHEMA[0]

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL.

        The return value is engine-specific (e.g. sqlite3.Connection, pymysql.Connection).
        """
        ...  # pylint: disable=unnecessary-ellipsis
