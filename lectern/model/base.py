"""Model base: read-only query entry points, relation access and serialization."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from pydantic import BaseModel, PrivateAttr
from pydantic_core import to_json

from ..collection import Collection
from ..context import ModelContext
from ..loading import EagerLoader
from ..query import QueryBuilder
from ..relations.factory import RelationFactory
from ..relations.relation import PendingRelation, Relation
from ..relations.resolver import describe_relation
from .hydratable import Hydratable
from .meta import ModelMeta

logger = logging.getLogger(__name__)


def _relation_names(relations: Iterable[Any]) -> list[str]:
    names = []
    for relation in relations:
        if isinstance(relation, str):
            names.append(relation.partition(":")[0].strip())
        elif isinstance(relation, dict):
            names.extend(name.partition(":")[0].strip() for name in relation)
        else:
            names.extend(_relation_names(relation))
    return names


class Model(Hydratable, RelationFactory, BaseModel, metaclass=ModelMeta):
    """Base class for read-only models.

    Subclasses declare columns as pydantic fields (or not at all: every
    selected column is kept as an extra attribute) and relations as plain
    methods::

        class User(Model, table="users", hidden=("password",)):
            def posts(self):
                return self.has_many(Post)

    Once loaded, ``user.posts`` is the related collection; before that it is
    the relation method, and ``await user.posts()`` runs the relation query.
    """

    model_config = {"extra": "allow", "arbitrary_types_allowed": True}

    _relations: dict[str, Any] = PrivateAttr(default_factory=dict)
    _collection: Optional[Collection] = PrivateAttr(default=None)
    _link: dict[str, Any] = PrivateAttr(default_factory=dict)

    def __getattribute__(self, name: str) -> Any:
        """Serve loaded relations ahead of the relation methods they shadow."""
        if not name.startswith("_"):
            try:
                private = object.__getattribute__(self, "__pydantic_private__")
            except AttributeError:
                private = None
            if private:
                relations = private.get("_relations")
                if relations and name in relations:
                    return relations[name]
        return super().__getattribute__(name)

    def __eq__(self, other: Any) -> bool:
        """Compare instances by class and primary key."""
        if not isinstance(other, Model):
            return NotImplemented
        if type(self) is not type(other):
            return False
        key = self.get_key()
        if key is None:
            return self is other
        return key == other.get_key()

    def __hash__(self):
        key = self.get_key()
        return hash((self.__class__, key)) if key is not None else id(self)

    def __deepcopy__(self, memo):
        """Return self to avoid copying Model instances."""
        return self

    # ----------------------------------------------------------- configuration

    @classmethod
    def init(cls, connection: Any, morph_map: Optional[dict[str, type]] = None,
             dialect: Any = None) -> ModelContext:
        """Install the connection every model queries through.

        Args:
            connection: Object with ``async query(sql, params)``, such as a `DbapiConnection`.
            morph_map: Optional morph aliases, ``{"post": Post}``.
            dialect: SQL dialect; defaults to the connection's, else MySQL.
        """
        Model._context = ModelContext(Model, connection, dialect)
        if morph_map:
            Model._context.morphs.register(morph_map)
        return Model._context

    @classmethod
    def reset(cls) -> None:
        """Forget the connection, morph map, autoload flag and pending loads."""
        Model._context = ModelContext(Model)
        describe_relation.cache_clear()

    @classmethod
    def automatically_eager_load_relationships(cls, enabled: bool = True) -> None:
        """Make awaiting a relation load it for the instance's whole result collection."""
        Model._context.autoload = enabled

    @classmethod
    def register_morph_map(cls, mapping: dict[str, type]) -> None:
        Model._context.morphs.register(mapping)

    @classmethod
    def get_morph_type_for_model(cls, model: Optional[type] = None) -> str:
        return Model._context.morphs.type_for_model(model or cls)

    @classmethod
    def get_model_for_morph_type(cls, morph_type: str) -> Optional[type]:
        return Model._context.morphs.model_for_type(morph_type)

    @classmethod
    def get_possible_morph_types_for_model(cls, model: Optional[type] = None) -> list[str]:
        return Model._context.morphs.possible_types_for_model(model or cls)

    @classmethod
    def _get_table_name(cls) -> str:
        """Return the SQL table name for this class."""
        return cls._TABLE or f"{cls.__name__.lower()}s"

    # ---------------------------------------------------------------- queries

    @classmethod
    def query(cls) -> QueryBuilder:
        """Return a QueryBuilder for this model with its default eager loads."""
        query = QueryBuilder(model=cls)
        if cls._WITH:
            query.with_(list(cls._WITH))
        return query

    @classmethod
    async def all(cls) -> Collection:
        return await cls.query().get()

    @classmethod
    def where(cls, *args: Any, **kwargs: Any) -> QueryBuilder:
        return cls.query().where(*args, **kwargs)

    @classmethod
    async def find(cls, id: Any):  # pylint: disable=redefined-builtin
        return await cls.query().find(id)

    @classmethod
    def with_(cls, relations: Any, callback=None) -> QueryBuilder:
        return cls.query().with_(relations, callback)

    def get_key(self) -> Any:
        """Primary key value, or None."""
        return getattr(self, self._PRIMARY_KEY, None)

    # -------------------------------------------------------------- relations

    def _relation_owner(self) -> type:
        return type(self)

    def _relation_for(self, descriptor) -> Relation:
        return Relation(self, descriptor)

    def relation(self, name: str) -> PendingRelation:
        """Deferred access to relation `name`: await it for the value, call it for the query."""
        return PendingRelation(self, name)

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def set_relation(self, name: str, value: Any) -> "Model":
        self._relations[name] = value
        return self

    def get_relation(self, name: str) -> Any:
        """Loaded value of relation `name`, or None when it was not loaded."""
        return self._relations.get(name)

    def unset_relation(self, name: str) -> "Model":
        self._relations.pop(name, None)
        return self

    @classmethod
    async def load_relations(cls, instances: list, relations: Iterable[Any], force: bool = False) -> list:
        """Eager load `relations` onto `instances` (all of this model) in batched queries."""
        instances = [instance for instance in instances if instance is not None]
        if not instances:
            return instances
        query = cls.query().with_only([])
        for relation in relations:
            query.with_(relation)
        await EagerLoader(query).load(instances, query.eager, force=force)
        return instances

    @classmethod
    async def load_counts(cls, instances: list, relations: Iterable[Any]) -> list:
        """Set ``<relation>_count`` attributes on `instances` with a single query."""
        instances = [instance for instance in instances if instance is not None]
        keys = [instance.get_key() for instance in instances if instance.get_key() is not None]
        if not keys:
            return instances
        table = cls._get_table_name()
        query = cls.query().with_only([]).without_global_scopes().with_trashed()
        query.select(f"{table}.{cls._PRIMARY_KEY}")
        for relation in relations:
            query.with_count(relation)
        counted = {}
        for row in await query.where_in(f"{table}.{cls._PRIMARY_KEY}", keys).get():
            counted[str(row.get_key())] = row
        for instance in instances:
            row = counted.get(str(instance.get_key()))
            if row is None:
                continue
            for column, value in (row.model_extra or {}).items():
                if column != cls._PRIMARY_KEY:
                    setattr(instance, column, value)
        return instances

    async def load(self, *relations: Any) -> "Model":
        """Load relations onto this instance, reloading those already loaded."""
        await type(self).load_relations([self], relations, force=True)
        return self

    async def load_missing(self, *relations: Any) -> "Model":
        """Load relations not yet loaded on this instance."""
        await type(self).load_relations([self], relations)
        return self

    async def load_count(self, *relations: Any) -> "Model":
        await type(self).load_counts([self], relations)
        return self

    async def load_for_all(self, *relations: Any) -> "Model":
        """Load relations for every instance of this one's collection when autoloading, else for self.

        Concurrent calls covering the same instances and relations share one
        in-flight load.
        """
        context = Model._context
        names = _relation_names(relations)
        collection = self._collection
        if collection is not None and (context.autoload or collection.autoload):
            targets = list(collection)
        else:
            targets = [self]
        key = context.loading_key(type(self).__name__, [target.get_key() for target in targets], names)
        future = context.loading.get(key)
        if future is None:
            future = asyncio.ensure_future(type(self).load_relations(targets, relations))
            context.loading[key] = future

            def forget(done: asyncio.Future) -> None:
                if context.loading.get(key) is done:
                    del context.loading[key]

            future.add_done_callback(forget)
        else:
            logger.debug("Joining pending load %s", key)
        await asyncio.shield(future)
        return self

    # ---------------------------------------------------------- serialization

    def to_dict(self) -> dict[str, Any]:
        """Columns and loaded relations as a dict, without hidden attributes."""
        hidden = set(self._HIDDEN)
        data = {**self.__dict__, **(self.__pydantic_extra__ or {})}
        data = {key: value for key, value in data.items() if key not in hidden}
        for name, value in self._relations.items():
            if name in hidden:
                continue
            if isinstance(value, list):
                data[name] = [item.to_dict() for item in value]
            elif isinstance(value, Model):
                data[name] = value.to_dict()
            else:
                data[name] = value
        return data

    def to_json(self) -> str:
        return to_json(self.to_dict()).decode()


Model._context = ModelContext(Model)
