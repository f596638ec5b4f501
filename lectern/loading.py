"""Batched eager loading of relations onto already-fetched model instances."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from typing import Any, Iterable, Iterator, Optional

from .collection import Collection
from .conditions import GroupCondition
from .relations.resolver import get_relation

logger = logging.getLogger(__name__)

IN_CHUNK_SIZE = 1000
"""Maximum number of keys bound in a single ``IN (...)`` list."""

DELETED_AT = "deleted_at"

_AGGREGATE_ALIAS = "lectern_aggregate"


def _chunks(keys: list[Any], size: int = IN_CHUNK_SIZE) -> Iterator[list[Any]]:
    for start in range(0, len(keys), size):
        yield keys[start:start + size]


def _key(value: Any) -> Optional[str]:
    """Dictionary key for a database key; ``1`` and ``"1"`` index the same."""
    return None if value is None else str(value)


def _unique_keys(values: Iterable[Any]) -> list[Any]:
    seen: set[str] = set()
    keys = []
    for value in values:
        key = _key(value)
        if key is None or key in seen:
            continue
        seen.add(key)
        keys.append(value)
    return keys


def _qualify(table: str, column: str) -> str:
    if "." in column or "(" in column or " " in column or column == "*":
        return column
    return f"{table}.{column}"


class EagerLoader:
    """Loads relation paths for a list of instances, one query per relation and key chunk.

    Constraint callbacks and column restrictions are read from the query that
    requested the loads, keyed by full dotted path.
    """

    def __init__(self, query):
        self.callbacks: dict[str, Any] = dict(query.eager_callbacks)
        self.columns: dict[str, list[str]] = dict(query.eager_columns)
        self.context = query.model._context

    @property
    def morphs(self):
        return self.context.morphs

    async def load(self, instances: list, names: Iterable[str], model: Optional[type] = None,
                   prefix: Optional[str] = None, force: bool = False) -> None:
        """Load `names` (dotted for nested relations) onto `instances`, in place.

        Instances already carrying a relation are skipped unless `force` is
        set; nested paths are still followed through their loaded values.

        Raises:
            RelationNotFoundError: if a name is not a relation of the model.
        """
        instances = [instance for instance in instances if instance is not None]
        if not instances:
            return
        model = model or type(instances[0])
        tree: dict[str, list[str]] = {}
        for name in names:
            head, _, rest = name.partition(".")
            nested = tree.setdefault(head, [])
            if rest and rest not in nested:
                nested.append(rest)

        for head, nested in tree.items():
            path = f"{prefix}.{head}" if prefix else head
            descriptor = get_relation(model, head)
            pending = instances if force else [
                instance for instance in instances if not instance.relation_loaded(head)
            ]
            if pending:
                await self._load_relation(model, pending, head, descriptor, path)
            if nested:
                await self._load_nested(instances, head, descriptor, nested, path, force)

    async def _load_nested(self, instances: list, name: str, descriptor, nested: list[str],
                           path: str, force: bool) -> None:
        children = []
        seen: set[int] = set()
        for instance in instances:
            value = instance.get_relation(name)
            for child in (value if isinstance(value, list) else (value,)):
                if child is not None and id(child) not in seen:
                    seen.add(id(child))
                    children.append(child)
        if not children:
            return
        if descriptor.kind == "morphTo":
            by_class: dict[type, list] = defaultdict(list)
            for child in children:
                by_class[type(child)].append(child)
            for child_model, group in by_class.items():
                await self.load(group, nested, model=child_model, prefix=path, force=force)
        else:
            await self.load(children, nested, model=type(children[0]), prefix=path, force=force)

    async def _load_relation(self, model: type, instances: list, name: str, descriptor, path: str) -> None:
        kind = descriptor.kind
        if kind == "belongsTo":
            await self._load_belongs_to(instances, name, descriptor, path)
        elif kind in ("hasOne", "hasMany", "hasOneOfMany"):
            await self._load_has(instances, name, descriptor, path)
        elif kind in ("morphOne", "morphMany", "morphOneOfMany"):
            await self._load_morph(model, instances, name, descriptor, path)
        elif kind == "morphTo":
            await self._load_morph_to(instances, name, descriptor, path)
        elif kind == "belongsToMany":
            await self._load_belongs_to_many(instances, name, descriptor, path)
        else:
            await self._load_through(instances, name, descriptor, path)

    # ------------------------------------------------------------------ queries

    async def _base_query(self, related: type, path: str, key_columns: Iterable[str]):
        """Query for `related` with the path's constraint callback and column restriction applied."""
        query = related.query()
        callback = self.callbacks.get(path)
        if callback is not None:
            outcome = callback(query)
            if inspect.isawaitable(outcome):
                await outcome
        if any(condition.boolean == "OR" for condition in query.wheres[1:]):
            query.wheres = [GroupCondition(children=query.wheres)]
        columns = self.columns.get(path)
        if columns:
            table = related._get_table_name()
            selected = [_qualify(table, column) for column in columns]
            for key in key_columns:
                qualified = _qualify(table, key)
                if qualified not in selected:
                    selected.append(qualified)
            query.select(selected)
        return query

    async def _fetch(self, base, column: str, keys: list[Any], path: str) -> Collection:
        results = Collection()
        for chunk in _chunks(keys):
            query = base.clone().where_in(column, chunk)
            results.extend(await query.get())
        logger.debug("Eager loaded %s: %d keys, %d chunks, %d rows",
                     path, len(keys), (len(keys) + IN_CHUNK_SIZE - 1) // IN_CHUNK_SIZE, len(results))
        return results

    @staticmethod
    def _share_collection(instances: list, results: Collection) -> None:
        autoload = any(getattr(instance._collection, "autoload", False) for instance in instances)
        for result in results:
            result._collection = results
        if autoload:
            results.with_relationship_autoloading()

    @staticmethod
    def _assign(instances: list, name: str, descriptor, index: dict[str, list], key_of) -> None:
        for instance in instances:
            matches = index.get(_key(key_of(instance)), [])
            if descriptor.many:
                instance.set_relation(name, Collection(matches))
            else:
                instance.set_relation(name, matches[0] if matches else None)

    @staticmethod
    def _assign_defaults(instances: list, name: str, descriptor) -> None:
        for instance in instances:
            instance.set_relation(name, Collection() if descriptor.many else None)

    @staticmethod
    def _index(results: Iterable, key_of) -> dict[str, list]:
        index: dict[str, list] = defaultdict(list)
        for result in results:
            index[_key(key_of(result))].append(result)
        return index

    def _of_many(self, query, related: type, descriptor, partition: list[str]) -> None:
        """Keep only rows holding the aggregate of their partition, lowest primary key first."""
        table = related._get_table_name()
        column = descriptor.column
        correlation = " AND ".join(f"{_AGGREGATE_ALIAS}.{key} = {table}.{key}" for key in partition)
        if related._SOFT_DELETES:
            correlation += f" AND {_AGGREGATE_ALIAS}.{DELETED_AT} IS NULL"
        aggregate = descriptor.aggregate.upper()
        query._where_raw(
            f"{table}.{column} = (SELECT {aggregate}({_AGGREGATE_ALIAS}.{column}) "
            f"FROM {table} AS {_AGGREGATE_ALIAS} WHERE {correlation})"
        )
        query.orders = []
        query.order_by(f"{table}.{column}", "desc" if descriptor.aggregate == "max" else "asc")
        query.order_by(f"{table}.{related._PRIMARY_KEY}", "asc")

    # -------------------------------------------------------------- per kind

    async def _load_belongs_to(self, instances: list, name: str, descriptor, path: str) -> None:
        keys = _unique_keys(getattr(instance, descriptor.foreign_key, None) for instance in instances)
        if not keys:
            self._assign_defaults(instances, name, descriptor)
            return
        related = descriptor.related_model(self.morphs)
        table = related._get_table_name()
        base = await self._base_query(related, path, [descriptor.owner_key])
        results = await self._fetch(base, f"{table}.{descriptor.owner_key}", keys, path)
        self._share_collection(instances, results)
        index = self._index(results, lambda result: getattr(result, descriptor.owner_key, None))
        self._assign(instances, name, descriptor, index,
                     lambda instance: getattr(instance, descriptor.foreign_key, None))

    async def _load_has(self, instances: list, name: str, descriptor, path: str) -> None:
        keys = _unique_keys(getattr(instance, descriptor.local_key, None) for instance in instances)
        if not keys:
            self._assign_defaults(instances, name, descriptor)
            return
        related = descriptor.related_model(self.morphs)
        table = related._get_table_name()
        base = await self._base_query(related, path, [descriptor.foreign_key])
        if descriptor.kind == "hasOneOfMany":
            self._of_many(base, related, descriptor, [descriptor.foreign_key])
        results = await self._fetch(base, f"{table}.{descriptor.foreign_key}", keys, path)
        self._share_collection(instances, results)
        index = self._index(results, lambda result: getattr(result, descriptor.foreign_key, None))
        self._assign(instances, name, descriptor, index,
                     lambda instance: getattr(instance, descriptor.local_key, None))

    async def _load_morph(self, model: type, instances: list, name: str, descriptor, path: str) -> None:
        keys = _unique_keys(getattr(instance, descriptor.local_key, None) for instance in instances)
        if not keys:
            self._assign_defaults(instances, name, descriptor)
            return
        related = descriptor.related_model(self.morphs)
        table = related._get_table_name()
        base = await self._base_query(related, path, [descriptor.id_column, descriptor.type_column])
        base.where_in(f"{table}.{descriptor.type_column}", self.morphs.possible_types_for_model(model))
        if descriptor.kind == "morphOneOfMany":
            self._of_many(base, related, descriptor, [descriptor.id_column, descriptor.type_column])
        results = await self._fetch(base, f"{table}.{descriptor.id_column}", keys, path)
        self._share_collection(instances, results)
        index = self._index(results, lambda result: getattr(result, descriptor.id_column, None))
        self._assign(instances, name, descriptor, index,
                     lambda instance: getattr(instance, descriptor.local_key, None))

    async def _load_morph_to(self, instances: list, name: str, descriptor, path: str) -> None:
        by_type: dict[str, list] = defaultdict(list)
        for instance in instances:
            morph_type = getattr(instance, descriptor.type_column, None)
            if morph_type:
                by_type[morph_type].append(instance)
            else:
                instance.set_relation(name, None)
        for morph_type, group in by_type.items():
            related = self.morphs.model_for_type(morph_type)
            if related is None:
                logger.debug("No model registered for morph type %r on %s", morph_type, path)
                self._assign_defaults(group, name, descriptor)
                continue
            keys = _unique_keys(getattr(instance, descriptor.id_column, None) for instance in group)
            if not keys:
                self._assign_defaults(group, name, descriptor)
                continue
            table = related._get_table_name()
            base = await self._base_query(related, path, [descriptor.owner_key])
            results = await self._fetch(base, f"{table}.{descriptor.owner_key}", keys, path)
            self._share_collection(group, results)
            index = self._index(results, lambda result: getattr(result, descriptor.owner_key, None))
            self._assign(group, name, descriptor, index,
                         lambda instance: getattr(instance, descriptor.id_column, None))

    async def _load_belongs_to_many(self, instances: list, name: str, descriptor, path: str) -> None:
        keys = _unique_keys(getattr(instance, descriptor.parent_key, None) for instance in instances)
        if not keys:
            self._assign_defaults(instances, name, descriptor)
            return
        related = descriptor.related_model(self.morphs)
        table = related._get_table_name()
        pivot = descriptor.table
        base = await self._base_query(related, path, [descriptor.related_key])
        base.columns = [f"{table}.*" if column == "*" else column for column in base.columns]
        base._select_raw(f"{pivot}.{descriptor.foreign_pivot_key} AS __pivot_fk")
        base.join(pivot, f"{table}.{descriptor.related_key}", "=", f"{pivot}.{descriptor.related_pivot_key}")
        alias = base.pivot.alias if base.pivot is not None else descriptor.pivot_alias
        base._set_pivot_source(pivot, alias, descriptor.pivot_columns)
        results = await self._fetch(base, f"{pivot}.{descriptor.foreign_pivot_key}", keys, path)
        self._share_collection(instances, results)
        index = self._index(results, lambda result: result._link.get("__pivot_fk"))
        self._assign(instances, name, descriptor, index,
                     lambda instance: getattr(instance, descriptor.parent_key, None))

    async def _load_through(self, instances: list, name: str, descriptor, path: str) -> None:
        keys = _unique_keys(getattr(instance, descriptor.local_key, None) for instance in instances)
        if not keys:
            self._assign_defaults(instances, name, descriptor)
            return
        related = descriptor.related_model(self.morphs)
        through_model = descriptor.through_model(self.morphs)
        table = related._get_table_name()
        through = through_model._get_table_name()
        base = await self._base_query(related, path, [descriptor.second_key])
        base.columns = [f"{table}.*" if column == "*" else column for column in base.columns]
        base._select_raw(f"{through}.{descriptor.first_key} AS __through_fk")
        base.join(through, f"{table}.{descriptor.second_key}", "=", f"{through}.{descriptor.second_local_key}")
        if through_model._SOFT_DELETES:
            base.where_null(f"{through}.{DELETED_AT}")
        results = await self._fetch(base, f"{through}.{descriptor.first_key}", keys, path)
        self._share_collection(instances, results)
        index = self._index(results, lambda result: result._link.get("__through_fk"))
        self._assign(instances, name, descriptor, index,
                     lambda instance: getattr(instance, descriptor.local_key, None))
