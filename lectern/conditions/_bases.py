"""Base type for WHERE/HAVING condition nodes."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class Condition(BaseModel):
    """Base type for all condition nodes.

    ``boolean`` describes how the node combines with the sibling rendered
    before it; it is ignored for the first node of a list. Subclasses must
    implement ``sql`` and ``kind``; ``values`` lists the bound parameters in
    the same order as the ``?`` placeholders in ``sql``.
    """

    model_config = {"arbitrary_types_allowed": True}

    boolean: Literal["AND", "OR"] = "AND"

    @property
    def kind(self) -> str:
        """Tag of the node variant (``basic``, ``in``, ``not_null``...)."""
        raise NotImplementedError("Subclasses must implement `kind` property")

    @property
    def sql(self) -> str:
        """SQL fragment for this node, with ``?`` for bound parameters."""
        raise NotImplementedError("Subclasses must implement `sql` property")

    @property
    def values(self) -> tuple[Any, ...]:
        """Bound values for placeholders in ``sql``, in order."""
        return ()

    def clone(self) -> Condition:
        """Return a structural copy sharing no mutable container with this node."""
        return self.model_copy()
