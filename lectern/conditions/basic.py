"""Column-operator-value condition."""

from typing import Any

from ._bases import Condition


class BasicCondition(Condition):
    """``column operator ?``"""

    column: str
    operator: str = "="
    value: Any = None

    @property
    def kind(self) -> str:
        return "basic"

    @property
    def sql(self) -> str:
        return f"{self.column} {self.operator} ?"

    @property
    def values(self) -> tuple[Any, ...]:
        return (self.value,)
