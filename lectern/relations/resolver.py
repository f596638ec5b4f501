"""Resolve a relation name on a model class to its descriptor."""

import functools
import inspect
import logging
from typing import Optional

from ..errors import RelationNotFoundError
from .descriptors import RelationDescriptor
from .recorder import RecordedRelation, RelationRecorder

logger = logging.getLogger(__name__)


@functools.cache
def _base_attribute_names() -> frozenset[str]:
    from ..model.base import Model  # pylint: disable=import-outside-toplevel
    return frozenset(dir(Model))


@functools.cache
def describe_relation(model: type, name: str) -> Optional[RelationDescriptor]:
    """Return the descriptor of relation `name` on `model`, or None.

    The model's explicit ``relations`` map wins; otherwise the relation method
    is called on a `RelationRecorder` and the descriptor it captured is
    returned. Missing attributes, non-methods and methods that raise while
    being probed all resolve to None.
    """
    explicit = (getattr(model, "_RELATIONS", None) or {}).get(name)
    if explicit is not None:
        return explicit
    if not name or name.startswith("_") or name in _base_attribute_names():
        return None
    method = getattr(model, name, None)
    if not inspect.isfunction(method):
        return None
    try:
        result = method(RelationRecorder(model))
    except Exception as error:  # pylint: disable=broad-exception-caught
        logger.debug("Probing %s.%s failed: %r", model.__name__, name, error)
        return None
    if isinstance(result, RecordedRelation):
        return result.descriptor
    return None


def relation_method_names(model: type) -> list[str]:
    """Names that may hold a relation of `model`.

    These are the keys of its explicit ``relations`` map and the plain
    functions declared on its own classes below `Model`, minus private names
    and ``scope_*`` methods.
    """
    from ..model.base import Model  # pylint: disable=import-outside-toplevel
    names = list(getattr(model, "_RELATIONS", None) or {})
    for cls in model.__mro__:
        if cls is Model:
            break
        for name, attribute in vars(cls).items():
            if inspect.isfunction(attribute) and not name.startswith(("_", "scope_")) and name not in names:
                names.append(name)
    return names


def get_relation(model: type, name: str) -> RelationDescriptor:
    """Like `describe_relation()`, but raise when the relation does not exist.

    Raises:
        RelationNotFoundError: if `name` is not a relation of `model`.
    """
    descriptor = describe_relation(model, name)
    if descriptor is None:
        raise RelationNotFoundError(model, name)
    return descriptor
