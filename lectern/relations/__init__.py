"""Relation descriptors, the resolver that discovers them, and live relation queries."""

from .descriptors import (
    RelationDescriptor,
    BelongsToDescriptor,
    HasOneDescriptor,
    HasManyDescriptor,
    HasOneOfManyDescriptor,
    MorphOneDescriptor,
    MorphManyDescriptor,
    MorphOneOfManyDescriptor,
    MorphToDescriptor,
    BelongsToManyDescriptor,
    HasOneThroughDescriptor,
    HasManyThroughDescriptor,
)
from .factory import RelationFactory
from .recorder import RecordedRelation, RelationRecorder
from .relation import PendingRelation, Relation
from .resolver import describe_relation, get_relation, relation_method_names
