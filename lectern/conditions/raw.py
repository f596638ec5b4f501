"""Raw SQL condition, spliced verbatim inside parentheses."""

from typing import Any

from pydantic import Field

from ._bases import Condition


class RawCondition(Condition):
    """``(sql)`` with its own bindings.

    Callers are responsible for running the text through the read-only guard
    before building the node.
    """

    sql_text: str
    bindings: list[Any] = Field(default_factory=list)

    @property
    def kind(self) -> str:
        return "raw"

    @property
    def sql(self) -> str:
        return f"({self.sql_text})" if self.sql_text else ""

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(self.bindings)

    def clone(self) -> "RawCondition":
        return self.model_copy(update={"bindings": list(self.bindings)})
