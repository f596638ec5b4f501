"""Morph-type registry: maps discriminator strings to model classes and back."""

from typing import Iterable, Optional

from .utils.find_subclass import find_subclass


class MorphRegistry:
    """Two-way mapping between morph types stored in the database and model classes.

    Without an explicit registration a model is known under its
    ``morph_class`` option, or failing that its class name.
    """

    def __init__(self, base: type):
        self.base = base
        self._map: dict[str, type] = {}

    def register(self, mapping: dict[str, type]) -> None:
        """Merge aliases into the registry."""
        self._map.update(mapping)

    @property
    def map(self) -> dict[str, type]:
        return dict(self._map)

    def _aliases(self, model: type) -> Iterable[str]:
        return (alias for alias, registered in self._map.items() if registered is model)

    def type_for_model(self, model: type) -> str:
        """Discriminator written for `model`: morph_class, then an alias, then the class name."""
        morph_class = getattr(model, "_MORPH_CLASS", None)
        if morph_class:
            return morph_class
        for alias in self._aliases(model):
            return alias
        return model.__name__

    def model_for_type(self, morph_type: str) -> Optional[type]:
        """Model class stored under `morph_type`, or None when nothing matches."""
        if not morph_type:
            return None
        if morph_type in self._map:
            return self._map[morph_type]
        return (find_subclass(self.base, morph_type, "_MORPH_CLASS")
                or find_subclass(self.base, morph_type))

    def possible_types_for_model(self, model: type) -> list[str]:
        """Every discriminator rows of `model` may have been stored with."""
        candidates = list(getattr(model, "_MORPH_TYPES", None) or ())
        morph_class = getattr(model, "_MORPH_CLASS", None)
        if morph_class:
            candidates.append(morph_class)
        candidates.extend(self._aliases(model))
        candidates.append(model.__name__)
        return list(dict.fromkeys(candidates))
