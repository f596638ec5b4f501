"""Query builder and execution for Model classes.

This module provides a fluent, mutable QueryBuilder that accumulates
projection, conditions, joins, unions, ordering, grouping and eager-load
requests, renders them to a single parameterized SELECT, runs it through the
model context's connection and hydrates the rows into model instances.
Relationship filters (``has``, ``where_has``, ``with_count``...) are rendered
as correlated subqueries built from relation descriptors.
"""

from __future__ import annotations

import inspect
import logging
import re
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, Literal, Optional

from pydantic import BaseModel, Field

from .collection import Collection
from .conditions import (
    BasicCondition,
    BetweenCondition,
    Condition,
    GroupCondition,
    InCondition,
    NullCondition,
    RawCondition,
    clone_conditions,
    render,
)
from .errors import ConfigurationError, ModelNotFoundError, RelationNotFoundError, UnsupportedRelationError
from .guard import ensure_read_only_snippet
from .loading import EagerLoader
from .relations.resolver import describe_relation, get_relation, relation_method_names

logger = logging.getLogger(__name__)

DELETED_AT = "deleted_at"
"""Column marking soft-deleted rows."""

_MISSING = object()

_OPERATORS = frozenset({
    "=", "<", ">", "<=", ">=", "<>", "!=", "<=>",
    "like", "not like", "ilike", "not ilike",
    "regexp", "not regexp", "is", "is not",
})

_INVERSE_OPERATORS: dict[str, str] = {
    "=": "!=",
    "!=": "=",
    "<>": "=",
    "<": ">=",
    "<=": ">",
    ">": "<=",
    ">=": "<",
    "like": "not like",
    "not like": "like",
    "ilike": "not ilike",
    "not ilike": "ilike",
    "is": "is not",
    "is not": "is",
}

_PLACEHOLDER_OR_QUOTED = re.compile(r"'(?:[^']|'')*'|\?")

_ALIASED = re.compile(r"^(.*?)\s+as\s+(\w+)\s*$", re.IGNORECASE)

_EXISTS_KINDS = (
    "hasOne", "hasMany", "hasOneOfMany",
    "belongsTo",
    "morphOne", "morphMany", "morphOneOfMany",
    "belongsToMany",
    "hasOneThrough", "hasManyThrough",
)


def _flatten(values: Iterable[Any]) -> list[Any]:
    flat = []
    for value in values:
        if isinstance(value, (list, tuple)):
            flat.extend(value)
        else:
            flat.append(value)
    return flat


def _sql_literal(value: Any) -> str:
    """Render a bound value as a SQL literal (debug output only)."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        value = value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
    text = str(value).replace("'", "''")
    return f"'{text}'"


class Join(BaseModel):
    """One JOIN clause."""

    kind: Literal["inner", "left", "right", "cross"] = "inner"
    table: str
    first: Optional[str] = None
    operator: str = "="
    second: Optional[str] = None

    @property
    def sql(self) -> str:
        if self.kind == "cross":
            return f"CROSS JOIN {self.table}"
        return f"{self.kind.upper()} JOIN {self.table} ON {self.first} {self.operator} {self.second}"


class Order(BaseModel):
    """One ORDER BY term; ``direction == "random"`` renders the dialect's random function."""

    column: Optional[str] = None
    direction: Literal["asc", "desc", "random"] = "asc"


class Union(BaseModel):
    """A query appended with UNION or UNION ALL."""

    model_config = {"arbitrary_types_allowed": True}

    query: Any
    all: bool = False


class PivotConfig(BaseModel):
    """Pivot columns projected by a belongs-to-many query, aliased ``{alias}__{column}``."""

    table: Optional[str] = None
    alias: str = "pivot"
    columns: list[str] = Field(default_factory=list)


class QueryBuilder(BaseModel):
    """Fluent SELECT builder for a Model.

    Chainable methods mutate the builder and return it; use `clone()` to
    branch. Terminal methods (`get`, `first`, aggregates...) are coroutines.
    """

    model_config = {"arbitrary_types_allowed": True}

    model: Any
    """The Model class rows are hydrated into."""
    table_name: Optional[str] = None
    """Explicit table set with table(); overrides the model's table."""
    columns: list[str] = Field(default_factory=lambda: ["*"])
    """Select list."""
    select_bindings: list[Any] = Field(default_factory=list)
    """Bound values of raw select expressions, in select-list order."""
    is_distinct: bool = False
    wheres: list[Condition] = Field(default_factory=list)
    """User WHERE conditions; scopes and soft-delete filters are added at render time."""
    joins: list[Join] = Field(default_factory=list)
    unions: list[Union] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    havings: list[Condition] = Field(default_factory=list)
    limit_value: Optional[int] = None
    """Optional LIMIT (stored to avoid shadowing the limit() method)."""
    offset_value: Optional[int] = None
    """Optional OFFSET (stored to avoid shadowing the offset() method)."""
    trashed: Literal["default", "with", "only"] = "default"
    """Soft-delete visibility, only meaningful for models declared with soft_deletes."""
    apply_global_scopes: bool = True
    eager: list[str] = Field(default_factory=list)
    """Relation paths to eager load after get(), dotted for nested relations."""
    eager_callbacks: dict[str, Any] = Field(default_factory=dict)
    """Constraint callbacks keyed by full relation path."""
    eager_columns: dict[str, list[str]] = Field(default_factory=dict)
    """Column restrictions keyed by full relation path."""
    pivot: Optional[PivotConfig] = None

    # ------------------------------------------------------------------ helpers

    @property
    def _context(self):
        return self.model._context

    @property
    def _dialect(self):
        return self.model._context.dialect

    def _table(self) -> str:
        return self.table_name or self.model._get_table_name()

    def _fresh(self, model: Any = None) -> QueryBuilder:
        """Empty builder for capturing the conditions of a callback."""
        if model is None:
            return type(self)(model=self.model, table_name=self.table_name)
        return type(self)(model=model)

    def _add(self, condition: Condition) -> QueryBuilder:
        self.wheres.append(condition)
        return self

    def clone(self) -> QueryBuilder:
        """Return an independent copy; mutating it never affects this builder."""
        return self.model_copy(update={
            "columns": list(self.columns),
            "select_bindings": list(self.select_bindings),
            "wheres": clone_conditions(self.wheres),
            "joins": [join.model_copy() for join in self.joins],
            "unions": [union.model_copy(update={"query": union.query.clone()}) for union in self.unions],
            "orders": [order.model_copy() for order in self.orders],
            "groups": list(self.groups),
            "havings": clone_conditions(self.havings),
            "eager": list(self.eager),
            "eager_callbacks": dict(self.eager_callbacks),
            "eager_columns": {path: list(columns) for path, columns in self.eager_columns.items()},
            "pivot": self.pivot.model_copy(update={"columns": list(self.pivot.columns)}) if self.pivot else None,
        })

    # --------------------------------------------------------------- projection

    def table(self, name: str) -> QueryBuilder:
        """Query `name` instead of the model's table."""
        self.table_name = name
        return self

    def select(self, *columns: str | list[str]) -> QueryBuilder:
        """Replace the select list."""
        self.columns = _flatten(columns) or ["*"]
        self.select_bindings = []
        return self

    def add_select(self, *columns: str | list[str]) -> QueryBuilder:
        """Append to the select list."""
        self.columns.extend(_flatten(columns))
        return self

    def select_raw(self, sql: str, bindings: Optional[list[Any]] = None) -> QueryBuilder:
        """Append a raw select expression, checked by the read-only guard."""
        ensure_read_only_snippet(sql, "select_raw")
        return self._select_raw(sql, bindings)

    def _select_raw(self, sql: str, bindings: Optional[list[Any]] = None) -> QueryBuilder:
        self.columns.append(sql)
        self.select_bindings.extend(bindings or ())
        return self

    def distinct(self, value: bool = True) -> QueryBuilder:
        self.is_distinct = value
        return self

    # ---------------------------------------------------------------- filtering

    def where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING,
              boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Add a condition.

        Accepted shapes are ``where(column, value)`` (operator ``=``),
        ``where(column, operator, value)``, ``where(callback)`` which groups
        whatever the callback adds in parentheses, and ``where({column: value})``.

        Raises:
            ValueError: if the operator is not a known comparison operator.
        """
        if callable(column):
            return self._where_nested(column, boolean)
        if isinstance(column, dict):
            return self._where_nested(
                lambda query: [query.where(key, val) for key, val in column.items()], boolean
            )
        if value is _MISSING:
            if operator is _MISSING:
                raise ValueError(f"No value given for where({column!r})")
            operator, value = "=", operator
        if not isinstance(operator, str) or operator.lower() not in _OPERATORS:
            raise ValueError(f"Illegal operator `{operator}` in where({column!r})")
        if value is None and operator.lower() in ("=", "is"):
            return self._add(NullCondition(column=column, boolean=boolean))
        if value is None and operator.lower() in ("!=", "<>", "is not"):
            return self._add(NullCondition(column=column, negated=True, boolean=boolean))
        return self._add(BasicCondition(column=column, operator=operator, value=value, boolean=boolean))

    def or_where(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        return self.where(column, operator, value, boolean="OR")

    def _where_nested(self, callback: Callable, boolean: str = "AND", negated: bool = False) -> QueryBuilder:
        sub = self._fresh()
        callback(sub)
        if sub.wheres:
            self._add(GroupCondition(children=sub.wheres, boolean=boolean, negated=negated))
        return self

    def where_not(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING,
                  boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Negated `where`: the inverse operator for a comparison, ``NOT (...)`` for a callback."""
        if callable(column):
            return self._where_nested(column, boolean, negated=True)
        if value is _MISSING:
            operator, value = "=", operator
        inverse = _INVERSE_OPERATORS.get(str(operator).lower())
        if inverse is not None:
            return self.where(column, inverse, value, boolean)
        return self._where_nested(lambda query: query.where(column, operator, value), boolean, negated=True)

    def or_where_not(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        return self.where_not(column, operator, value, boolean="OR")

    def where_in(self, column: str, values: Iterable[Any] | QueryBuilder,
                 boolean: Literal["AND", "OR"] = "AND", negated: bool = False) -> QueryBuilder:
        """``column IN (...)``; an empty list never matches. A QueryBuilder renders as a subquery."""
        if isinstance(values, QueryBuilder):
            sql, params = values._compile()
            keyword = "NOT IN" if negated else "IN"
            return self._add(RawCondition(sql_text=f"{column} {keyword} ({sql})", bindings=params, boolean=boolean))
        return self._add(InCondition(column=column, items=list(values), negated=negated, boolean=boolean))

    def where_not_in(self, column: str, values: Iterable[Any] | QueryBuilder,
                     boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """``column NOT IN (...)``; an empty list always matches."""
        return self.where_in(column, values, boolean, negated=True)

    def or_where_in(self, column: str, values: Iterable[Any] | QueryBuilder) -> QueryBuilder:
        return self.where_in(column, values, "OR")

    def or_where_not_in(self, column: str, values: Iterable[Any] | QueryBuilder) -> QueryBuilder:
        return self.where_in(column, values, "OR", negated=True)

    def where_null(self, column: str, boolean: Literal["AND", "OR"] = "AND", negated: bool = False) -> QueryBuilder:
        return self._add(NullCondition(column=column, negated=negated, boolean=boolean))

    def where_not_null(self, column: str, boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        return self.where_null(column, boolean, negated=True)

    def or_where_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, "OR")

    def or_where_not_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, "OR", negated=True)

    def where_between(self, column: str, values: tuple[Any, Any] | list[Any],
                      boolean: Literal["AND", "OR"] = "AND", negated: bool = False) -> QueryBuilder:
        low, high = values
        return self._add(BetweenCondition(column=column, low=low, high=high, negated=negated, boolean=boolean))

    def where_not_between(self, column: str, values: tuple[Any, Any] | list[Any],
                          boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        return self.where_between(column, values, boolean, negated=True)

    def or_where_between(self, column: str, values: tuple[Any, Any] | list[Any]) -> QueryBuilder:
        return self.where_between(column, values, "OR")

    def or_where_not_between(self, column: str, values: tuple[Any, Any] | list[Any]) -> QueryBuilder:
        return self.where_between(column, values, "OR", negated=True)

    def where_raw(self, sql: str, bindings: Optional[list[Any]] = None,
                  boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Add a raw condition, checked by the read-only guard."""
        ensure_read_only_snippet(sql, "where_raw")
        return self._where_raw(sql, bindings, boolean)

    def or_where_raw(self, sql: str, bindings: Optional[list[Any]] = None) -> QueryBuilder:
        ensure_read_only_snippet(sql, "or_where_raw")
        return self._where_raw(sql, bindings, "OR")

    def _where_raw(self, sql: str, bindings: Optional[list[Any]] = None, boolean: str = "AND") -> QueryBuilder:
        return self._add(RawCondition(sql_text=sql, bindings=list(bindings or ()), boolean=boolean))

    def _where_date_part(self, part: str, column: str, operator: Any, value: Any, boolean: str) -> QueryBuilder:
        if value is _MISSING:
            operator, value = "=", operator
        if isinstance(value, datetime):
            value = value.date().isoformat() if part == "date" else value.time().isoformat()
        elif isinstance(value, (date, time)):
            value = value.isoformat()
        wrapped = getattr(self._dialect.f, part)(column)
        return self.where(wrapped, operator, value, boolean)

    def where_date(self, column: str, operator: Any, value: Any = _MISSING, boolean: str = "AND") -> QueryBuilder:
        return self._where_date_part("date", column, operator, value, boolean)

    def where_month(self, column: str, operator: Any, value: Any = _MISSING, boolean: str = "AND") -> QueryBuilder:
        return self._where_date_part("month", column, operator, value, boolean)

    def where_year(self, column: str, operator: Any, value: Any = _MISSING, boolean: str = "AND") -> QueryBuilder:
        return self._where_date_part("year", column, operator, value, boolean)

    def where_day(self, column: str, operator: Any, value: Any = _MISSING, boolean: str = "AND") -> QueryBuilder:
        return self._where_date_part("day", column, operator, value, boolean)

    def where_time(self, column: str, operator: Any, value: Any = _MISSING, boolean: str = "AND") -> QueryBuilder:
        return self._where_date_part("time", column, operator, value, boolean)

    def where_column(self, first: str, operator: str, second: Optional[str] = None,
                     boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Compare two columns, ``where_column(a, b)`` meaning ``a = b``."""
        if second is None:
            operator, second = "=", operator
        if operator.lower() not in _OPERATORS:
            raise ValueError(f"Illegal operator `{operator}` in where_column({first!r})")
        return self._where_raw(f"{first} {operator} {second}", boolean=boolean)

    def or_where_column(self, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        return self.where_column(first, operator, second, "OR")

    def where_any(self, columns: list[str], operator: Any, value: Any = _MISSING,
                  boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Match when any of the columns satisfies the comparison."""
        return self._where_nested(
            lambda query: [query.or_where(column, operator, value) for column in columns], boolean
        )

    def where_all(self, columns: list[str], operator: Any, value: Any = _MISSING,
                  boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Match when every column satisfies the comparison."""
        return self._where_nested(
            lambda query: [query.where(column, operator, value) for column in columns], boolean
        )

    def where_none(self, columns: list[str], operator: Any, value: Any = _MISSING,
                   boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Match when no column satisfies the comparison."""
        return self._where_nested(
            lambda query: [query.or_where(column, operator, value) for column in columns], boolean, negated=True
        )

    def where_like(self, column: str, value: str, boolean: Literal["AND", "OR"] = "AND",
                   negated: bool = False) -> QueryBuilder:
        return self.where(column, "not like" if negated else "like", value, boolean)

    def where_not_like(self, column: str, value: str, boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        return self.where_like(column, value, boolean, negated=True)

    def or_where_like(self, column: str, value: str) -> QueryBuilder:
        return self.where_like(column, value, "OR")

    def or_where_not_like(self, column: str, value: str) -> QueryBuilder:
        return self.where_like(column, value, "OR", negated=True)

    def where_integer_in_raw(self, column: str, values: Iterable[Any],
                             boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """``column IN (1, 2, ...)`` with the integers inlined instead of bound."""
        integers = [int(value) for value in values]
        if not integers:
            return self._where_raw("0 = 1", boolean=boolean)
        return self._where_raw(f"{column} IN ({', '.join(map(str, integers))})", boolean=boolean)

    def where_integer_not_in_raw(self, column: str, values: Iterable[Any],
                                 boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """``column NOT IN (1, 2, ...)`` with the integers inlined; no-op for an empty list."""
        integers = [int(value) for value in values]
        if not integers:
            return self
        return self._where_raw(f"{column} NOT IN ({', '.join(map(str, integers))})", boolean=boolean)

    # --------------------------------------------------- relationship filtering

    def _existence_sql(self, relation: str, callback: Optional[Callable] = None,
                       count: bool = False) -> tuple[str, list[Any]]:
        """Correlated ``SELECT 1`` (or ``SELECT COUNT(*)``) subquery for a relation of this model.

        Raises:
            RelationNotFoundError: if the relation does not exist.
            UnsupportedRelationError: for morph-to relations, which need where_has_morph().
        """
        descriptor = get_relation(self.model, relation)
        if descriptor.kind not in _EXISTS_KINDS:
            raise UnsupportedRelationError(
                f"Relationship '{relation}' on {self.model.__name__} is {descriptor.kind}; use where_has_morph()"
            )
        parent = self._table()
        related = descriptor.related_model(self._context.morphs)
        related_table = related._get_table_name()
        alias = f"{related_table}_related" if related_table == parent else related_table
        source = f"{related_table} AS {alias}" if alias != related_table else related_table

        sub = self._fresh(related)
        if callback is not None:
            callback(sub)
        params: list[Any] = []
        kind = descriptor.kind
        if kind in ("hasOne", "hasMany", "hasOneOfMany"):
            link = f"{alias}.{descriptor.foreign_key} = {parent}.{descriptor.local_key}"
        elif kind == "belongsTo":
            link = f"{alias}.{descriptor.owner_key} = {parent}.{descriptor.foreign_key}"
        elif kind in ("morphOne", "morphMany", "morphOneOfMany"):
            types = self._context.morphs.possible_types_for_model(self.model)
            placeholders = ", ".join("?" for _ in types)
            link = (f"{alias}.{descriptor.id_column} = {parent}.{descriptor.local_key}"
                    f" AND {alias}.{descriptor.type_column} IN ({placeholders})")
            params.extend(types)
        elif kind == "belongsToMany":
            pivot = descriptor.table
            source += f" INNER JOIN {pivot} ON {alias}.{descriptor.related_key} = {pivot}.{descriptor.related_pivot_key}"
            link = f"{pivot}.{descriptor.foreign_pivot_key} = {parent}.{descriptor.parent_key}"
        else:
            through = descriptor.through_model(self._context.morphs)._get_table_name()
            source += f" INNER JOIN {through} ON {alias}.{descriptor.second_key} = {through}.{descriptor.second_local_key}"
            link = f"{through}.{descriptor.first_key} = {parent}.{descriptor.local_key}"

        select = "COUNT(*)" if count else "1"
        sql = f"SELECT {select} FROM {source} WHERE {link}"
        conditions, condition_params = sub._compile_conditions(qualifier=alias)
        if conditions:
            sql += f" AND ({conditions})"
            params.extend(condition_params)
        return sql, params

    def has(self, relation: str, operator: str = ">=", count: int = 1,
            boolean: Literal["AND", "OR"] = "AND", callback: Optional[Callable] = None,
            negated: bool = False) -> QueryBuilder:
        """Keep rows having related rows; dotted names test nested relations.

        ``has("posts")`` renders ``EXISTS (...)``; any other operator/count
        pair compares a correlated ``COUNT(*)`` subquery.
        """
        if "." in relation:
            head, rest = relation.split(".", 1)
            return self.has(
                head, boolean=boolean, negated=negated,
                callback=lambda query: query.has(rest, operator, count, callback=callback),
            )
        if operator == ">=" and count == 1:
            sql, params = self._existence_sql(relation, callback)
            keyword = "NOT EXISTS" if negated else "EXISTS"
            return self._where_raw(f"{keyword} ({sql})", params, boolean)
        if operator.lower() not in _OPERATORS:
            raise ValueError(f"Illegal operator `{operator}` in has({relation!r})")
        sql, params = self._existence_sql(relation, callback, count=True)
        condition = f"({sql}) {operator} ?"
        if negated:
            condition = f"NOT ({condition})"
        return self._where_raw(condition, params + [count], boolean)

    def or_has(self, relation: str, operator: str = ">=", count: int = 1) -> QueryBuilder:
        return self.has(relation, operator, count, "OR")

    def doesnt_have(self, relation: str, boolean: Literal["AND", "OR"] = "AND",
                    callback: Optional[Callable] = None) -> QueryBuilder:
        return self.has(relation, boolean=boolean, callback=callback, negated=True)

    def or_doesnt_have(self, relation: str) -> QueryBuilder:
        return self.doesnt_have(relation, "OR")

    def where_has(self, relation: str, callback: Optional[Callable] = None,
                  operator: str = ">=", count: int = 1) -> QueryBuilder:
        return self.has(relation, operator, count, "AND", callback)

    def or_where_has(self, relation: str, callback: Optional[Callable] = None,
                     operator: str = ">=", count: int = 1) -> QueryBuilder:
        return self.has(relation, operator, count, "OR", callback)

    def where_doesnt_have(self, relation: str, callback: Optional[Callable] = None) -> QueryBuilder:
        return self.doesnt_have(relation, "AND", callback)

    def or_where_doesnt_have(self, relation: str, callback: Optional[Callable] = None) -> QueryBuilder:
        return self.doesnt_have(relation, "OR", callback)

    def where_relation(self, relation: str, column: Any, operator: Any = _MISSING,
                       value: Any = _MISSING) -> QueryBuilder:
        """``where_has`` with a single condition on the related model."""
        return self.where_has(relation, lambda query: query.where(column, operator, value))

    def or_where_relation(self, relation: str, column: Any, operator: Any = _MISSING,
                          value: Any = _MISSING) -> QueryBuilder:
        return self.or_where_has(relation, lambda query: query.where(column, operator, value))

    def _infer_belongs_to(self, related: type) -> str:
        candidate = related.__name__.lower()
        descriptor = describe_relation(self.model, candidate)
        if descriptor is not None:
            return candidate
        for name in relation_method_names(self.model):
            descriptor = describe_relation(self.model, name)
            if descriptor is not None and descriptor.kind == "belongsTo" and (
                    descriptor.related is related or descriptor.related == related.__name__):
                return name
        raise RelationNotFoundError(self.model, candidate)

    def where_belongs_to(self, related: Any, relation: Optional[str] = None,
                         boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Keep rows owned by `related` (an instance or a list of instances of one model).

        The belongs-to relation is inferred from the owner's class when not named.

        Raises:
            UnsupportedRelationError: if the relation is not a belongs-to relation.
        """
        owners = list(related) if isinstance(related, (list, tuple)) else [related]
        if not owners:
            return self._where_raw("0=1", boolean=boolean)
        name = relation or self._infer_belongs_to(type(owners[0]))
        descriptor = get_relation(self.model, name)
        if descriptor.kind != "belongsTo":
            raise UnsupportedRelationError(
                f"Relationship '{name}' on {self.model.__name__} is {descriptor.kind}, not belongsTo"
            )
        column = f"{self._table()}.{descriptor.foreign_key}"
        keys = [getattr(owner, descriptor.owner_key) for owner in owners]
        if len(keys) == 1:
            return self.where(column, "=", keys[0], boolean)
        return self.where_in(column, keys, boolean)

    def or_where_belongs_to(self, related: Any, relation: Optional[str] = None) -> QueryBuilder:
        return self.where_belongs_to(related, relation, "OR")

    def _morph_to_descriptor(self, relation: str):
        descriptor = get_relation(self.model, relation)
        if descriptor.kind != "morphTo":
            raise UnsupportedRelationError(
                f"Relationship '{relation}' on {self.model.__name__} is {descriptor.kind}, not morphTo"
            )
        return descriptor

    def where_has_morph(self, relation: str, types: Any, callback: Optional[Callable] = None,
                        boolean: Literal["AND", "OR"] = "AND", negated: bool = False) -> QueryBuilder:
        """Keep rows whose morph-to owner is one of `types` and matches `callback`.

        Each type contributes ``(type_column = ? AND EXISTS (...))``; the
        clauses are joined with OR. An empty type list never matches.
        """
        descriptor = self._morph_to_descriptor(relation)
        if isinstance(types, (str, type)):
            types = [types]
        if not types:
            return self._where_raw("0=1", boolean=boolean)
        parent = self._table()
        morphs = self._context.morphs
        clauses: list[str] = []
        params: list[Any] = []
        for morph in types:
            model = morph if isinstance(morph, type) else morphs.model_for_type(morph)
            if model is None:
                raise ConfigurationError(f"Model '{morph}' not found in morph map")
            morph_type = morph if isinstance(morph, str) else morphs.type_for_model(model)
            related_table = model._get_table_name()
            sub = self._fresh(model)
            if callback is not None:
                callback(sub)
            exists = f"SELECT 1 FROM {related_table} WHERE {related_table}.{descriptor.owner_key} = {parent}.{descriptor.id_column}"
            conditions, condition_params = sub._compile_conditions()
            if conditions:
                exists += f" AND ({conditions})"
            keyword = "NOT EXISTS" if negated else "EXISTS"
            clauses.append(f"({parent}.{descriptor.type_column} = ? AND {keyword} ({exists}))")
            params.append(morph_type)
            params.extend(condition_params)
        return self._where_raw(" OR ".join(clauses), params, boolean)

    def or_where_has_morph(self, relation: str, types: Any, callback: Optional[Callable] = None) -> QueryBuilder:
        return self.where_has_morph(relation, types, callback, "OR")

    def where_doesnt_have_morph(self, relation: str, types: Any, callback: Optional[Callable] = None) -> QueryBuilder:
        return self.where_has_morph(relation, types, callback, negated=True)

    def where_morphed_to(self, relation: str, model: Any,
                         boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Keep rows whose morph-to relation points at `model` (an instance), or at nothing when None."""
        descriptor = self._morph_to_descriptor(relation)
        parent = self._table()
        if model is None:
            return self.where_null(f"{parent}.{descriptor.type_column}", boolean)
        morph_type = self._context.morphs.type_for_model(type(model))
        key = getattr(model, descriptor.owner_key)
        return self.where(
            lambda query: query.where(f"{parent}.{descriptor.type_column}", morph_type)
                               .where(f"{parent}.{descriptor.id_column}", key),
            boolean=boolean,
        )

    def or_where_morphed_to(self, relation: str, model: Any) -> QueryBuilder:
        return self.where_morphed_to(relation, model, "OR")

    # ------------------------------------------------------------ joins/unions

    def join(self, table: str, first: str, operator: str, second: Optional[str] = None,
             kind: Literal["inner", "left", "right"] = "inner") -> QueryBuilder:
        """``join(table, a, b)`` or ``join(table, a, "=", b)``."""
        if second is None:
            operator, second = "=", operator
        self.joins.append(Join(kind=kind, table=table, first=first, operator=operator, second=second))
        return self

    def left_join(self, table: str, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        return self.join(table, first, operator, second, kind="left")

    def right_join(self, table: str, first: str, operator: str, second: Optional[str] = None) -> QueryBuilder:
        return self.join(table, first, operator, second, kind="right")

    def cross_join(self, table: str) -> QueryBuilder:
        self.joins.append(Join(kind="cross", table=table))
        return self

    def union(self, query: QueryBuilder, all: bool = False) -> QueryBuilder:  # pylint: disable=redefined-builtin
        """Append `query` with UNION; this builder's ORDER BY/LIMIT/OFFSET apply to the whole union."""
        self.unions.append(Union(query=query, all=all))
        return self

    def union_all(self, query: QueryBuilder) -> QueryBuilder:
        return self.union(query, all=True)

    # ---------------------------------------------------------------- shaping

    def order_by(self, column: str, direction: str = "asc") -> QueryBuilder:
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Order direction must be 'asc' or 'desc', got `{direction}`")
        self.orders.append(Order(column=column, direction=direction))
        return self

    def order_by_desc(self, column: str) -> QueryBuilder:
        return self.order_by(column, "desc")

    def latest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, "desc")

    def oldest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, "asc")

    def in_random_order(self) -> QueryBuilder:
        self.orders.append(Order(direction="random"))
        return self

    def reorder(self, column: Optional[str] = None, direction: str = "asc") -> QueryBuilder:
        """Drop existing ordering, optionally ordering by `column` instead."""
        self.orders = []
        if column is not None:
            self.order_by(column, direction)
        return self

    def group_by(self, *columns: str | list[str]) -> QueryBuilder:
        self.groups.extend(_flatten(columns))
        return self

    def having(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING,
               boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        """Add a HAVING condition; same call shapes as `where`."""
        sub = self._fresh()
        sub.where(column, operator, value)
        if sub.wheres:
            self.havings.append(sub.wheres[0].model_copy(update={"boolean": boolean}))
        return self

    def or_having(self, column: Any, operator: Any = _MISSING, value: Any = _MISSING) -> QueryBuilder:
        return self.having(column, operator, value, "OR")

    def having_raw(self, sql: str, bindings: Optional[list[Any]] = None,
                   boolean: Literal["AND", "OR"] = "AND") -> QueryBuilder:
        ensure_read_only_snippet(sql, "having_raw")
        self.havings.append(RawCondition(sql_text=sql, bindings=list(bindings or ()), boolean=boolean))
        return self

    def limit(self, value: Optional[int]) -> QueryBuilder:
        self.limit_value = value
        return self

    def offset(self, value: Optional[int]) -> QueryBuilder:
        self.offset_value = value
        return self

    def of_many(self, column: str = "created_at", aggregate: str = "max") -> QueryBuilder:
        """Narrow the query to the single row holding the aggregate of `column`.

        The aggregate subquery is frozen from the current state, so later
        changes to this builder do not alter it. Ties resolve to the lowest
        primary key.
        """
        aggregate = aggregate.lower()
        if aggregate not in ("max", "min"):
            raise ValueError(f"Aggregate must be 'max' or 'min', got `{aggregate}`")
        sub = self.clone()
        sub.columns = [f"{aggregate.upper()}({column}) AS aggregate_value"]
        sub.select_bindings = []
        sub.limit_value = None
        sub.offset_value = None
        sub.orders = []
        sql, params = sub._compile()
        self._where_raw(f"{column} = ({sql})", params)
        self.orders = []
        self.order_by(column, "desc" if aggregate == "max" else "asc")
        self.order_by(f"{self._table()}.{self.model._PRIMARY_KEY}", "asc")
        return self.limit(1)

    def latest_of_many(self, column: str = "created_at") -> QueryBuilder:
        return self.of_many(column, "max")

    def oldest_of_many(self, column: str = "created_at") -> QueryBuilder:
        return self.of_many(column, "min")

    # ------------------------------------------------------------ soft deletes

    def with_trashed(self) -> QueryBuilder:
        self.trashed = "with"
        return self

    def only_trashed(self) -> QueryBuilder:
        self.trashed = "only"
        return self

    def without_trashed(self) -> QueryBuilder:
        self.trashed = "default"
        return self

    def without_global_scopes(self) -> QueryBuilder:
        self.apply_global_scopes = False
        return self

    # ----------------------------------------------------------- eager loading

    def with_(self, relations: Any, callback: Optional[Callable] = None) -> QueryBuilder:
        """Eager load relations after `get()`.

        `relations` is a name, a list of names, or a dict mapping names to a
        constraint callback or to a list of columns. Dotted names load nested
        relations and ``"name:col1,col2"`` restricts the loaded columns.
        """
        if isinstance(relations, str):
            relations = {relations: callback} if callback is not None else [relations]
        items = relations.items() if isinstance(relations, dict) else ((name, None) for name in relations)
        for name, option in items:
            name, _, column_list = name.partition(":")
            name = name.strip()
            if column_list:
                self.eager_columns[name] = [column.strip() for column in column_list.split(",") if column.strip()]
            if callable(option):
                self.eager_callbacks[name] = option
            elif isinstance(option, (list, tuple)):
                self.eager_columns[name] = list(option)
            if name not in self.eager:
                self.eager.append(name)
        return self

    def without(self, *relations: str | list[str]) -> QueryBuilder:
        """Cancel eager loading of the given relations."""
        for name in _flatten(relations):
            self.eager = [path for path in self.eager if path != name and not path.startswith(f"{name}.")]
            self.eager_callbacks.pop(name, None)
            self.eager_columns.pop(name, None)
        return self

    def with_only(self, relations: Any) -> QueryBuilder:
        """Replace every eager load request, including the model's defaults."""
        self.eager = []
        self.eager_callbacks = {}
        self.eager_columns = {}
        return self.with_(relations)

    def with_where_has(self, relation: str, callback: Optional[Callable] = None) -> QueryBuilder:
        """Filter by a relation and eager load it with the same constraint."""
        self.where_has(relation, callback)
        return self.with_(relation, callback)

    def with_count(self, relations: Any) -> QueryBuilder:
        """Select ``<relation>_count`` columns holding correlated relation counts.

        Accepts a name, a list of names or a dict of name to constraint
        callback; ``"posts as published"`` selects the count as ``published``.
        """
        if isinstance(relations, str):
            relations = [relations]
        items = relations.items() if isinstance(relations, dict) else ((name, None) for name in relations)
        for name, callback in items:
            aliased = _ALIASED.match(name)
            if aliased:
                name, alias = aliased.group(1).strip(), aliased.group(2)
            else:
                alias = f"{name.strip().replace('.', '_')}_count"
                name = name.strip()
            if "." in name:
                head, rest = name.split(".", 1)
                sql, params = self._existence_sql(
                    head, lambda query, rest=rest, callback=callback: query.has(rest, callback=callback), count=True
                )
            else:
                sql, params = self._existence_sql(name, callback, count=True)
            self._select_raw(f"({sql}) AS {alias}", params)
        return self

    def with_pivot(self, *columns: str | list[str]) -> QueryBuilder:
        """Project extra pivot columns onto each related instance of a belongs-to-many query."""
        if self.pivot is None:
            self.pivot = PivotConfig()
        for column in _flatten(columns):
            if column not in self.pivot.columns:
                self.pivot.columns.append(column)
        return self

    def as_(self, alias: str) -> QueryBuilder:
        """Name of the attribute pivot columns are gathered under (default ``pivot``)."""
        if self.pivot is None:
            self.pivot = PivotConfig()
        self.pivot.alias = alias
        return self

    def _set_pivot_source(self, table: str, alias: str = "pivot", columns: Iterable[str] = ()) -> QueryBuilder:
        if self.pivot is None:
            self.pivot = PivotConfig(alias=alias)
        self.pivot.table = table
        for column in columns:
            if column not in self.pivot.columns:
                self.pivot.columns.append(column)
        return self

    # --------------------------------------------------------------- scopes etc

    def scope(self, name: str, *args: Any, **kwargs: Any) -> QueryBuilder:
        """Apply the model's ``scope_<name>(query, ...)`` method, if it has one."""
        method = getattr(self.model, f"scope_{name}", None)
        if callable(method):
            method(self, *args, **kwargs)
        return self

    def tap(self, callback: Callable[[QueryBuilder], Any]) -> QueryBuilder:
        callback(self)
        return self

    def when(self, condition: Any, callback: Callable[[QueryBuilder], Any],
             default: Optional[Callable[[QueryBuilder], Any]] = None) -> QueryBuilder:
        """Run `callback` on the builder when `condition` is truthy, else `default`."""
        if condition:
            callback(self)
        elif default is not None:
            default(self)
        return self

    def unless(self, condition: Any, callback: Callable[[QueryBuilder], Any],
               default: Optional[Callable[[QueryBuilder], Any]] = None) -> QueryBuilder:
        return self.when(not condition, callback, default)

    # -------------------------------------------------------------- rendering

    def _soft_delete_condition(self, qualifier: Optional[str] = None) -> Optional[Condition]:
        if not self.model._SOFT_DELETES or self.trashed == "with":
            return None
        column = f"{qualifier or self._table()}.{DELETED_AT}"
        return NullCondition(column=column, negated=self.trashed == "only")

    def _global_scope_condition(self) -> Optional[Condition]:
        if not self.apply_global_scopes or not self.model._GLOBAL_SCOPES:
            return None
        sub = self._fresh()
        for scope in self.model._GLOBAL_SCOPES:
            scope(sub)
        return GroupCondition(children=sub.wheres)

    def _compile_conditions(self, qualifier: Optional[str] = None) -> tuple[str, list[Any]]:
        """Render user conditions followed by global scopes and the soft-delete filter."""
        injected = [condition for condition in (self._global_scope_condition(),
                                                self._soft_delete_condition(qualifier))
                    if condition is not None]
        conditions: list[Condition] = list(self.wheres)
        if injected and any(condition.boolean == "OR" for condition in conditions[1:]):
            conditions = [GroupCondition(children=conditions)]
        return render(conditions + injected)

    def _select_list(self) -> list[str]:
        columns = list(self.columns)
        if self.pivot is not None and self.pivot.table:
            columns.extend(
                f"{self.pivot.table}.{column} AS {self.pivot.alias}__{column}"
                for column in self.pivot.columns
            )
        return columns

    def _compile(self) -> tuple[str, list[Any]]:
        """Render the full statement and its parameters."""
        sql = "SELECT " + ("DISTINCT " if self.is_distinct else "") + ", ".join(self._select_list())
        sql += f" FROM {self._table()}"
        for join in self.joins:
            sql += f" {join.sql}"
        params = list(self.select_bindings)
        conditions, condition_params = self._compile_conditions()
        if conditions:
            sql += f" WHERE {conditions}"
            params.extend(condition_params)
        if self.groups:
            sql += " GROUP BY " + ", ".join(self.groups)
        having, having_params = render(self.havings)
        if having:
            sql += f" HAVING {having}"
            params.extend(having_params)
        for union in self.unions:
            union_sql, union_params = union.query._compile()
            sql += f" UNION {'ALL ' if union.all else ''}{union_sql}"
            params.extend(union_params)
        if self.orders:
            terms = [
                self._dialect.f.random() if order.direction == "random"
                else f"{order.column} {order.direction.upper()}"
                for order in self.orders
            ]
            sql += " ORDER BY " + ", ".join(terms)
        if self.limit_value is not None:
            sql += f" LIMIT {int(self.limit_value)}"
        if self.offset_value is not None:
            sql += f" OFFSET {int(self.offset_value)}"
        return sql, params

    @property
    def sql(self) -> str:
        return self._compile()[0]

    @property
    def values(self) -> list[Any]:
        return self._compile()[1]

    def to_sql(self) -> str:
        """SQL text with ``?`` placeholders."""
        return self._compile()[0]

    def to_raw_sql(self) -> str:
        """SQL text with parameters inlined as literals; for debugging, never executed."""
        sql, params = self._compile()
        remaining = iter(params)

        def substitute(match: re.Match) -> str:
            if match.group(0) != "?":
                return match.group(0)
            return _sql_literal(next(remaining, None))

        return _PLACEHOLDER_OR_QUOTED.sub(substitute, sql)

    def dump(self) -> QueryBuilder:
        """Log the SQL and its parameters at INFO level."""
        sql, params = self._compile()
        logger.info("%s %s", sql, params)
        return self

    # ---------------------------------------------------------------- execution

    async def _rows(self, sql: str, params: list[Any]) -> list[dict[str, Any]]:
        return await self._context.select(sql, params)

    async def get(self) -> Collection:
        """Run the query and return hydrated instances, with eager relations loaded."""
        sql, params = self._compile()
        rows = await self._rows(sql, params)
        pivot_alias = self.pivot.alias if self.pivot is not None and self.pivot.table else None
        instances = Collection(self.model._hydrate(row, pivot_alias) for row in rows)
        for instance in instances:
            instance._collection = instances
        if self.eager and instances:
            await EagerLoader(self).load(instances, self.eager)
        return instances

    async def first(self):
        """First matching instance, or None."""
        results = await self.clone().limit(1).get()
        return results[0] if results else None

    async def first_or_fail(self):
        """First matching instance.

        Raises:
            ModelNotFoundError: if nothing matches.
        """
        instance = await self.first()
        if instance is None:
            raise ModelNotFoundError("No results found for query")
        return instance

    async def first_or(self, default: Any = None):
        """First matching instance, else `default` (called, and awaited if needed, when callable)."""
        instance = await self.first()
        if instance is not None:
            return instance
        return await _resolve_default(default)

    async def find(self, id: Any):  # pylint: disable=redefined-builtin
        """Instance with primary key `id`; a list of ids returns a collection."""
        column = f"{self._table()}.{self.model._PRIMARY_KEY}"
        if isinstance(id, (list, tuple, set)):
            return await self.clone().where_in(column, list(id)).get()
        return await self.clone().where(column, "=", id).first()

    async def find_or_fail(self, id: Any):  # pylint: disable=redefined-builtin
        """Like `find`, raising ModelNotFoundError when nothing matches."""
        instance = await self.find(id)
        if instance is None:
            raise ModelNotFoundError(f"Model not found with id: {id}")
        return instance

    async def find_or(self, id: Any, default: Any = None):  # pylint: disable=redefined-builtin
        instance = await self.find(id)
        if instance is not None:
            return instance
        return await _resolve_default(default)

    async def value(self, column: str) -> Any:
        """Value of `column` on the first matching row, or None."""
        instance = await self.first()
        return None if instance is None else getattr(instance, column.rsplit(".", 1)[-1], None)

    async def pluck(self, column: str, key_column: Optional[str] = None) -> list[Any] | dict[Any, Any]:
        """Values of `column`, as a list or as a dict keyed by `key_column`."""
        results = await self.clone().get()
        column = column.rsplit(".", 1)[-1]
        if key_column is None:
            return [getattr(instance, column, None) for instance in results]
        key_column = key_column.rsplit(".", 1)[-1]
        return {getattr(instance, key_column, None): getattr(instance, column, None) for instance in results}

    async def _aggregate(self, function: str, column: str = "*") -> Any:
        sub = self.clone()
        sub.orders = []
        sub.limit_value = None
        sub.offset_value = None
        sub.pivot = None
        if sub.is_distinct and column != "*" and not (sub.groups or sub.unions):
            sub.is_distinct = False
            sub.columns = [f"{function}(DISTINCT {column}) AS aggregate"]
            sub.select_bindings = []
            sql, params = sub._compile()
        elif sub.groups or sub.unions or sub.is_distinct:
            inner, params = sub._compile()
            target = "*" if column == "*" else column.rsplit(".", 1)[-1]
            sql = f"SELECT {function}({target}) AS aggregate FROM ({inner}) AS aggregate_table"
        else:
            sub.columns = [f"{function}({column}) AS aggregate"]
            sub.select_bindings = []
            sql, params = sub._compile()
        rows = await self._rows(sql, params)
        return rows[0]["aggregate"] if rows else None

    async def count(self, column: str = "*") -> int:
        return int(await self._aggregate("COUNT", column) or 0)

    async def max(self, column: str) -> Any:
        return await self._aggregate("MAX", column)

    async def min(self, column: str) -> Any:
        return await self._aggregate("MIN", column)

    async def avg(self, column: str) -> Any:
        return await self._aggregate("AVG", column)

    async def sum(self, column: str) -> Any:
        return await self._aggregate("SUM", column) or 0

    async def exists(self) -> bool:
        sub = self.clone()
        sub.orders = []
        sub.pivot = None
        inner, params = sub._compile()
        rows = await self._rows(f"SELECT EXISTS({inner}) AS present", params)
        return bool(rows and rows[0]["present"])

    async def doesnt_exist(self) -> bool:
        return not await self.exists()

    async def chunk(self, size: int, callback: Callable[[Collection], Any]) -> bool:
        """Feed results to `callback` page by page until a page comes back empty.

        Pages are fetched with LIMIT/OFFSET on clones of this builder, ordered
        by primary key when no order was given. Returning False from the
        callback stops early.

        Returns:
            False if the callback stopped the iteration, True otherwise.
        """
        if size <= 0:
            raise ValueError("Chunk size must be positive")
        base = self.clone()
        if not base.orders:
            base.order_by(f"{base._table()}.{base.model._PRIMARY_KEY}")
        page = 0
        while True:
            results = await base.clone().offset(page * size).limit(size).get()
            if not results:
                return True
            outcome = callback(results)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if outcome is False:
                return False
            page += 1

    async def each(self, callback: Callable[[Any], Any], size: int = 1000) -> bool:
        """Call `callback` on every instance, fetching `size` rows at a time."""
        async def per_page(results: Collection):
            for instance in results:
                outcome = callback(instance)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if outcome is False:
                    return False
            return True
        return await self.chunk(size, per_page)


async def _resolve_default(default: Any) -> Any:
    if callable(default):
        default = default()
    if inspect.isawaitable(default):
        default = await default
    return default
