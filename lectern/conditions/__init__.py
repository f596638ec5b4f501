"""Condition tree: typed WHERE/HAVING nodes and their SQL renderer."""

from ._bases import Condition
from .basic import BasicCondition
from .in_list import InCondition
from .null import NullCondition
from .between import BetweenCondition
from .raw import RawCondition
from .group import GroupCondition
from .render import render, clone_conditions

GroupCondition.model_rebuild()

__all__ = [
    "Condition",
    "BasicCondition",
    "InCondition",
    "NullCondition",
    "BetweenCondition",
    "RawCondition",
    "GroupCondition",
    "render",
    "clone_conditions",
]
