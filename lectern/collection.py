"""Result collection returned by QueryBuilder.get()."""

from typing import Any, Optional


class Collection(list):
    """A list of model instances sharing one result set.

    Instances keep a back-reference to the collection they were fetched in,
    so lazily awaiting a relation on one of them can batch-load it for all of
    them when autoloading is enabled.
    """

    autoload: bool = False

    def with_relationship_autoloading(self, enabled: bool = True) -> "Collection":
        self.autoload = enabled
        for instance in self:
            instance._collection = self
        return self

    def _model(self) -> Optional[type]:
        return type(self[0]) if self else None

    async def load(self, *relations: Any) -> "Collection":
        """Eager load relations on every instance, reloading those already loaded."""
        if self:
            await self._model().load_relations(list(self), relations, force=True)
        return self

    async def load_missing(self, *relations: Any) -> "Collection":
        """Eager load relations not yet loaded on the instances."""
        if self:
            await self._model().load_relations(list(self), relations)
        return self

    async def load_count(self, *relations: str) -> "Collection":
        """Set ``<relation>_count`` on every instance with one query."""
        if self:
            await self._model().load_counts(list(self), relations)
        return self

    def pluck(self, attribute: str) -> list[Any]:
        return [getattr(instance, attribute, None) for instance in self]

    def model_keys(self) -> list[Any]:
        """Primary keys of the instances, in order."""
        return [instance.get_key() for instance in self]
