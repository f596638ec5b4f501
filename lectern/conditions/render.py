"""Render a list of condition nodes to SQL text plus positional parameters."""

from typing import Any, Iterable

from ._bases import Condition


def render(conditions: Iterable[Condition]) -> tuple[str, list[Any]]:
    """Render nodes left to right, joining each to the previous one with its ``boolean``.

    Nodes rendering to an empty string (empty groups) are skipped along with
    their connective, so no stray ``AND ()`` or leading ``OR`` is produced.

    Returns:
        The SQL text (empty when nothing rendered) and the bound parameters,
        depth-first in placeholder order.
    """
    parts: list[str] = []
    params: list[Any] = []
    for condition in conditions:
        sql = condition.sql
        if not sql:
            continue
        if parts:
            parts.append(f" {condition.boolean} ")
        parts.append(sql)
        params.extend(condition.values)
    return "".join(parts), params


def clone_conditions(conditions: Iterable[Condition]) -> list[Condition]:
    """Deep-copy a condition list node by node."""
    return [condition.clone() for condition in conditions]
