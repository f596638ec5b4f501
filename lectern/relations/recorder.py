"""Stand-in receiver used to discover relation descriptors without running queries."""

import inspect
import types
from typing import Any

from .descriptors import BelongsToManyDescriptor, RelationDescriptor
from .factory import RelationFactory


class RecordedRelation:
    """Marker returned by the recorder's relation methods.

    Constraint calls chained onto it are accepted and ignored, so relation
    methods that refine their query still resolve. ``with_pivot`` and ``as_``
    are kept because they change what a belongs-to-many load projects.

    A ``where`` chained inside a relation method therefore applies when the
    method is called on an instance, but not to ``with_``, ``has`` or
    ``with_count``. Pass a constraint callback to those instead.
    """

    def __init__(self, descriptor: RelationDescriptor):
        self._descriptor = descriptor

    @property
    def descriptor(self) -> RelationDescriptor:
        return self._descriptor

    def with_pivot(self, *columns):
        if isinstance(self._descriptor, BelongsToManyDescriptor):
            flat = []
            for column in columns:
                flat.extend(column if isinstance(column, (list, tuple)) else (column,))
            merged = tuple(dict.fromkeys(self._descriptor.pivot_columns + tuple(flat)))
            self._descriptor = self._descriptor.model_copy(update={"pivot_columns": merged})
        return self

    def as_(self, alias: str):
        if isinstance(self._descriptor, BelongsToManyDescriptor):
            self._descriptor = self._descriptor.model_copy(update={"pivot_alias": alias})
        return self

    def _chain(self, *_args, **_kwargs):
        return self

    def __getattr__(self, name: str):
        if name.startswith("__"):
            raise AttributeError(name)
        return self._chain


class RelationRecorder(RelationFactory):
    """Receiver a relation method is invoked on while resolving its descriptor.

    Relation-constructing methods capture their arguments; any other
    attribute is looked up on the model class, with plain functions bound to
    the recorder as they would be to an instance.
    """

    def __init__(self, model: type):
        self._model = model

    def _relation_owner(self) -> type:
        return self._model

    def _relation_for(self, descriptor: RelationDescriptor) -> RecordedRelation:
        return RecordedRelation(descriptor)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        attribute = getattr(self._model, name)
        if inspect.isfunction(attribute):
            return types.MethodType(attribute, self)
        return attribute
