"""Relationship descriptors: one immutable record per relation kind."""

from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import BaseModel

from ..errors import ConfigurationError


def resolve_model(reference: Any, morphs) -> type:
    """Return the model class for a class or a morph alias.

    Raises:
        ConfigurationError: if an alias matches no registered model.
    """
    if not isinstance(reference, str):
        return reference
    model = morphs.model_for_type(reference)
    if model is None:
        raise ConfigurationError(f"Model '{reference}' not found in morph map")
    return model


class RelationDescriptor(BaseModel):
    """Linkage metadata of one relation, independent of any parent instance."""

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    kind: ClassVar[str] = ""
    """Relation kind (``belongsTo``, ``hasMany``, ``morphTo``...)."""

    many: ClassVar[bool] = False
    """Whether the relation yields a list rather than a single instance."""

    related: Any = None
    """Related model class, or a morph alias resolved through the registry."""

    def related_model(self, morphs) -> type:
        return resolve_model(self.related, morphs)


class BelongsToDescriptor(RelationDescriptor):
    kind: ClassVar[str] = "belongsTo"

    foreign_key: str
    """Column on the parent holding the owner's key."""
    owner_key: str = "id"


class HasOneDescriptor(RelationDescriptor):
    kind: ClassVar[str] = "hasOne"

    foreign_key: str
    """Column on the related table pointing back at the parent."""
    local_key: str = "id"


class HasManyDescriptor(HasOneDescriptor):
    kind: ClassVar[str] = "hasMany"
    many: ClassVar[bool] = True


class HasOneOfManyDescriptor(HasOneDescriptor):
    kind: ClassVar[str] = "hasOneOfMany"

    column: str = "created_at"
    aggregate: Literal["max", "min"] = "max"


class MorphOneDescriptor(RelationDescriptor):
    kind: ClassVar[str] = "morphOne"

    morph_name: str
    type_column: str
    id_column: str
    local_key: str = "id"


class MorphManyDescriptor(MorphOneDescriptor):
    kind: ClassVar[str] = "morphMany"
    many: ClassVar[bool] = True


class MorphOneOfManyDescriptor(MorphOneDescriptor):
    kind: ClassVar[str] = "morphOneOfMany"

    column: str = "created_at"
    aggregate: Literal["max", "min"] = "max"


class MorphToDescriptor(RelationDescriptor):
    """Polymorphic owner: the related model is read from ``type_column`` per row."""

    kind: ClassVar[str] = "morphTo"

    morph_name: str
    type_column: str
    id_column: str
    owner_key: str = "id"


class BelongsToManyDescriptor(RelationDescriptor):
    kind: ClassVar[str] = "belongsToMany"
    many: ClassVar[bool] = True

    table: str
    """Pivot table."""
    foreign_pivot_key: str
    """Pivot column pointing at the parent."""
    related_pivot_key: str
    """Pivot column pointing at the related model."""
    parent_key: str = "id"
    related_key: str = "id"
    pivot_columns: tuple[str, ...] = ()
    """Extra pivot columns projected onto each related instance."""
    pivot_alias: str = "pivot"


class HasOneThroughDescriptor(RelationDescriptor):
    """Related rows reached through an intermediate table.

    ``related.second_key = through.second_local_key`` joins the two tables and
    ``through.first_key = parent.local_key`` ties them to the parent.
    """

    kind: ClassVar[str] = "hasOneThrough"

    through: Any
    first_key: str
    second_key: str
    local_key: str = "id"
    second_local_key: str = "id"

    def through_model(self, morphs) -> type:
        return resolve_model(self.through, morphs)


class HasManyThroughDescriptor(HasOneThroughDescriptor):
    kind: ClassVar[str] = "hasManyThrough"
    many: ClassVar[bool] = True
