"""IS NULL / IS NOT NULL condition."""

from ._bases import Condition


class NullCondition(Condition):
    """``column IS [NOT] NULL``"""

    column: str
    negated: bool = False

    @property
    def kind(self) -> str:
        return "not_null" if self.negated else "null"

    @property
    def sql(self) -> str:
        return f"{self.column} IS NOT NULL" if self.negated else f"{self.column} IS NULL"
