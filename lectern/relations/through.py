"""Compose two relations into a has-one/has-many-through relation."""

from ..errors import UnsupportedRelationError
from .resolver import get_relation

_FIRST_KINDS = ("hasOne", "hasMany")
_FINAL_KINDS = ("hasOne", "hasMany", "belongsTo")


class ThroughBuilder:
    """Result of ``factory.through(name)``; call `has()` with the relation on the intermediate model."""

    def __init__(self, factory, relation: str):
        self.factory = factory
        self.relation = relation

    def has(self, final_relation: str):
        owner = self.factory._relation_owner()
        first = get_relation(owner, self.relation)
        if first.kind not in _FIRST_KINDS:
            raise UnsupportedRelationError(
                f"Relationship '{self.relation}' on {owner.__name__} must be hasOne or hasMany to be used as a through relation"
            )
        through = first.related
        through_model = first.related_model(owner._context.morphs)
        final = get_relation(through_model, final_relation)
        if final.kind not in _FINAL_KINDS:
            raise UnsupportedRelationError(
                f"Relationship '{final_relation}' on {through_model.__name__} must be hasOne, hasMany or belongsTo"
            )
        if final.kind == "belongsTo":
            second_key, second_local_key = final.owner_key, final.foreign_key
        else:
            second_key, second_local_key = final.foreign_key, final.local_key
        make = self.factory.has_many_through
        if first.kind == "hasOne" and final.kind in ("hasOne", "belongsTo"):
            make = self.factory.has_one_through
        return make(final.related, through, first.foreign_key, second_key,
                    first.local_key, second_local_key)
