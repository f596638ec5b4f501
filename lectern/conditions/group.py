"""Parenthesized group of condition nodes."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ._bases import Condition


class GroupCondition(Condition):
    """``(child AND/OR child ...)``, optionally negated as ``NOT (...)``.

    A group whose children render to nothing renders to nothing itself, so
    the renderer can drop it together with its connective.
    """

    children: list[Condition] = Field(default_factory=list)
    negated: bool = False

    @property
    def kind(self) -> str:
        return "group"

    @property
    def sql(self) -> str:
        from .render import render
        inner, _ = render(self.children)
        if not inner:
            return ""
        return f"NOT ({inner})" if self.negated else f"({inner})"

    @property
    def values(self) -> tuple[Any, ...]:
        from .render import render
        _, params = render(self.children)
        return tuple(params)

    def clone(self) -> GroupCondition:
        return self.model_copy(update={"children": [child.clone() for child in self.children]})
