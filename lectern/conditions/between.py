"""BETWEEN / NOT BETWEEN condition."""

from typing import Any

from ._bases import Condition


class BetweenCondition(Condition):
    """``column [NOT] BETWEEN ? AND ?``, bound as low then high."""

    column: str
    low: Any = None
    high: Any = None
    negated: bool = False

    @property
    def kind(self) -> str:
        return "not_between" if self.negated else "between"

    @property
    def sql(self) -> str:
        keyword = "NOT BETWEEN" if self.negated else "BETWEEN"
        return f"{self.column} {keyword} ? AND ?"

    @property
    def values(self) -> tuple[Any, ...]:
        return (self.low, self.high)
