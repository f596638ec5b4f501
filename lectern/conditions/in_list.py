"""IN / NOT IN condition."""

from typing import Any

from pydantic import Field

from ._bases import Condition


class InCondition(Condition):
    """``column [NOT] IN (?, ...)``

    An empty list cannot be expressed in SQL, so it renders as the
    contradiction ``0=1`` (IN) or the tautology ``1=1`` (NOT IN).
    """

    column: str
    items: list[Any] = Field(default_factory=list)
    negated: bool = False

    @property
    def kind(self) -> str:
        return "not_in" if self.negated else "in"

    @property
    def sql(self) -> str:
        if not self.items:
            return "1=1" if self.negated else "0=1"
        placeholders = ", ".join("?" for _ in self.items)
        keyword = "NOT IN" if self.negated else "IN"
        return f"{self.column} {keyword} ({placeholders})"

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(self.items)

    def clone(self) -> "InCondition":
        return self.model_copy(update={"items": list(self.items)})
