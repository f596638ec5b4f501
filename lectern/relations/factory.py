"""Relation-defining methods shared by models and the relation recorder."""

from __future__ import annotations

from typing import Any, Optional

from .descriptors import (
    BelongsToDescriptor,
    BelongsToManyDescriptor,
    HasManyDescriptor,
    HasManyThroughDescriptor,
    HasOneDescriptor,
    HasOneOfManyDescriptor,
    HasOneThroughDescriptor,
    MorphManyDescriptor,
    MorphOneDescriptor,
    MorphOneOfManyDescriptor,
    MorphToDescriptor,
    RelationDescriptor,
)


def _lower_name(reference: Any) -> str:
    return reference.lower() if isinstance(reference, str) else reference.__name__.lower()


class RelationFactory:
    """Builds relation descriptors with their default keys.

    Every method hands its descriptor to `_relation_for()`. On a model
    instance that returns a live relation query; on a `RelationRecorder` it
    returns a marker exposing the captured descriptor.
    """

    def _relation_owner(self) -> type:
        """Model class defining the relation."""
        raise NotImplementedError("_relation_owner")

    def _relation_for(self, descriptor: RelationDescriptor):
        raise NotImplementedError("_relation_for")

    def belongs_to(self, related, foreign_key: Optional[str] = None, owner_key: str = "id"):
        return self._relation_for(BelongsToDescriptor(
            related=related,
            foreign_key=foreign_key or f"{_lower_name(related)}_id",
            owner_key=owner_key,
        ))

    def has_one(self, related, foreign_key: Optional[str] = None, local_key: str = "id"):
        return self._relation_for(HasOneDescriptor(
            related=related,
            foreign_key=foreign_key or f"{_lower_name(self._relation_owner())}_id",
            local_key=local_key,
        ))

    def has_many(self, related, foreign_key: Optional[str] = None, local_key: str = "id"):
        return self._relation_for(HasManyDescriptor(
            related=related,
            foreign_key=foreign_key or f"{_lower_name(self._relation_owner())}_id",
            local_key=local_key,
        ))

    def has_one_of_many(self, related, foreign_key: Optional[str] = None,
                        column: str = "created_at", aggregate: str = "max",
                        local_key: str = "id"):
        return self._relation_for(HasOneOfManyDescriptor(
            related=related,
            foreign_key=foreign_key or f"{_lower_name(self._relation_owner())}_id",
            local_key=local_key,
            column=column,
            aggregate=aggregate.lower(),
        ))

    def latest_of_many(self, related, foreign_key: Optional[str] = None,
                       column: str = "created_at", local_key: str = "id"):
        return self.has_one_of_many(related, foreign_key, column, "max", local_key)

    def oldest_of_many(self, related, foreign_key: Optional[str] = None,
                       column: str = "created_at", local_key: str = "id"):
        return self.has_one_of_many(related, foreign_key, column, "min", local_key)

    def morph_one(self, related, name: str, type_column: Optional[str] = None,
                  id_column: Optional[str] = None, local_key: str = "id"):
        return self._relation_for(MorphOneDescriptor(
            related=related,
            morph_name=name,
            type_column=type_column or f"{name}_type",
            id_column=id_column or f"{name}_id",
            local_key=local_key,
        ))

    def morph_many(self, related, name: str, type_column: Optional[str] = None,
                   id_column: Optional[str] = None, local_key: str = "id"):
        return self._relation_for(MorphManyDescriptor(
            related=related,
            morph_name=name,
            type_column=type_column or f"{name}_type",
            id_column=id_column or f"{name}_id",
            local_key=local_key,
        ))

    def morph_one_of_many(self, related, name: str, column: str = "created_at",
                          aggregate: str = "max", type_column: Optional[str] = None,
                          id_column: Optional[str] = None, local_key: str = "id"):
        return self._relation_for(MorphOneOfManyDescriptor(
            related=related,
            morph_name=name,
            type_column=type_column or f"{name}_type",
            id_column=id_column or f"{name}_id",
            local_key=local_key,
            column=column,
            aggregate=aggregate.lower(),
        ))

    def latest_morph_of_many(self, related, name: str, column: str = "created_at", **keys):
        return self.morph_one_of_many(related, name, column, "max", **keys)

    def oldest_morph_of_many(self, related, name: str, column: str = "created_at", **keys):
        return self.morph_one_of_many(related, name, column, "min", **keys)

    def morph_to(self, name: str, type_column: Optional[str] = None,
                 id_column: Optional[str] = None, owner_key: str = "id"):
        return self._relation_for(MorphToDescriptor(
            morph_name=name,
            type_column=type_column or f"{name}_type",
            id_column=id_column or f"{name}_id",
            owner_key=owner_key,
        ))

    def belongs_to_many(self, related, table: Optional[str] = None,
                        foreign_pivot_key: Optional[str] = None,
                        related_pivot_key: Optional[str] = None,
                        parent_key: str = "id", related_key: str = "id"):
        parent_name = _lower_name(self._relation_owner())
        related_name = _lower_name(related)
        return self._relation_for(BelongsToManyDescriptor(
            related=related,
            table=table or "_".join(sorted((parent_name, related_name))),
            foreign_pivot_key=foreign_pivot_key or f"{parent_name}_id",
            related_pivot_key=related_pivot_key or f"{related_name}_id",
            parent_key=parent_key,
            related_key=related_key,
        ))

    def has_one_through(self, related, through, first_key: Optional[str] = None,
                        second_key: Optional[str] = None, local_key: str = "id",
                        second_local_key: str = "id"):
        return self._relation_for(HasOneThroughDescriptor(
            related=related,
            through=through,
            first_key=first_key or f"{_lower_name(self._relation_owner())}_id",
            second_key=second_key or f"{_lower_name(through)}_id",
            local_key=local_key,
            second_local_key=second_local_key,
        ))

    def has_many_through(self, related, through, first_key: Optional[str] = None,
                         second_key: Optional[str] = None, local_key: str = "id",
                         second_local_key: str = "id"):
        return self._relation_for(HasManyThroughDescriptor(
            related=related,
            through=through,
            first_key=first_key or f"{_lower_name(self._relation_owner())}_id",
            second_key=second_key or f"{_lower_name(through)}_id",
            local_key=local_key,
            second_local_key=second_local_key,
        ))

    def through(self, relation: str):
        """Start a has-one/has-many-through relation from an existing relation.

        ``self.through("users").has("posts")``
        """
        from .through import ThroughBuilder
        return ThroughBuilder(self, relation)
