"""Live relation bound to one parent instance."""

from typing import Any

from .descriptors import RelationDescriptor


class Relation:
    """Query for the related rows of a single parent instance.

    Builder methods are forwarded to the underlying `QueryBuilder`, so a
    relation can be refined (``user.posts().where("published", True)``) and
    then awaited, or finished with any terminal method (``.count()``).
    Awaiting it returns a list for to-many relations and an instance or None
    otherwise.

    Constraints chained inside the relation method itself are part of this
    query. Eager loads and relationship filters resolve the method through
    `RelationRecorder`, which drops them.
    """

    def __init__(self, parent: Any, descriptor: RelationDescriptor):
        self.parent = parent
        self.descriptor = descriptor
        self.query = self._build_query()

    @property
    def _morphs(self):
        return type(self.parent)._context.morphs

    def _build_query(self):
        parent = self.parent
        descriptor = self.descriptor
        kind = descriptor.kind
        if kind == "morphTo":
            morph_type = getattr(parent, descriptor.type_column, None)
            related = self._morphs.model_for_type(morph_type) if morph_type else None
            self.related = related
            if related is None:
                query = type(parent).query().without_global_scopes()
                query.eager = []
                return query.where_raw("0 = 1")
            return related.query().where(
                f"{related._get_table_name()}.{descriptor.owner_key}", getattr(parent, descriptor.id_column, None)
            )

        related = descriptor.related_model(self._morphs)
        self.related = related
        query = related.query()
        table = related._get_table_name()
        if kind == "belongsTo":
            return query.where(f"{table}.{descriptor.owner_key}", getattr(parent, descriptor.foreign_key, None))
        if kind in ("hasOne", "hasMany", "hasOneOfMany"):
            query.where(f"{table}.{descriptor.foreign_key}", getattr(parent, descriptor.local_key, None))
            if kind == "hasOneOfMany":
                query.of_many(descriptor.column, descriptor.aggregate)
            return query
        if kind in ("morphOne", "morphMany", "morphOneOfMany"):
            types = self._morphs.possible_types_for_model(type(parent))
            query.where_in(f"{table}.{descriptor.type_column}", types)
            query.where(f"{table}.{descriptor.id_column}", getattr(parent, descriptor.local_key, None))
            if kind == "morphOneOfMany":
                query.of_many(descriptor.column, descriptor.aggregate)
            return query
        if kind == "belongsToMany":
            pivot = descriptor.table
            query.select(f"{table}.*")
            query.join(pivot, f"{table}.{descriptor.related_key}", "=", f"{pivot}.{descriptor.related_pivot_key}")
            query.where(f"{pivot}.{descriptor.foreign_pivot_key}", getattr(parent, descriptor.parent_key, None))
            return query._set_pivot_source(pivot, descriptor.pivot_alias, descriptor.pivot_columns)
        through = descriptor.through_model(self._morphs)._get_table_name()
        query.select(f"{table}.*")
        query.join(through, f"{table}.{descriptor.second_key}", "=", f"{through}.{descriptor.second_local_key}")
        return query.where(f"{through}.{descriptor.first_key}", getattr(parent, descriptor.local_key, None))

    async def get_results(self) -> Any:
        if self.descriptor.kind == "morphTo" and self.related is None:
            return None
        if self.descriptor.many:
            return await self.query.get()
        return await self.query.first()

    def __await__(self):
        return self.get_results().__await__()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name in ("query", "parent", "descriptor", "related"):
            raise AttributeError(name)
        attribute = getattr(self.query, name)
        if not callable(attribute):
            return attribute

        def forward(*args, **kwargs):
            result = attribute(*args, **kwargs)
            return self if result is self.query else result

        return forward

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.descriptor.kind} {type(self.parent).__name__} -> {self.query.to_sql()}>"


class PendingRelation:
    """Deferred access to one relation of an instance.

    Awaiting it loads the relation if needed (for the whole result collection
    when autoloading is on) and returns the loaded value. Calling it returns
    the live `Relation` query instead.
    """

    def __init__(self, instance: Any, name: str):
        self.instance = instance
        self.name = name

    async def _resolve(self) -> Any:
        if not self.instance.relation_loaded(self.name):
            await self.instance.load_for_all(self.name)
        return self.instance.get_relation(self.name)

    def __await__(self):
        return self._resolve().__await__()

    def __call__(self) -> Relation:
        return getattr(type(self.instance), self.name)(self.instance)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {type(self.instance).__name__}.{self.name}>"
