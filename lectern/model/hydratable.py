"""Hydratable mixin: instance-building from raw row data."""

import functools
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Json, TypeAdapter

from ..errors import ConfigurationError

LINK_COLUMNS = ("__pivot_fk", "__through_fk")
"""Columns selected by eager loads to index related rows; kept off the model's attributes."""

PIVOT_SEPARATOR = "__"

_CAST_TYPES: dict[str, Any] = {
    "integer": int,
    "int": int,
    "float": float,
    "double": float,
    "decimal": Decimal,
    "boolean": bool,
    "bool": bool,
    "string": str,
    "str": str,
    "datetime": datetime,
    "date": date,
    "array": Json[Any],
    "json": Json[Any],
    "object": Json[Any],
}


@functools.cache
def _adapter(cast: Any) -> TypeAdapter:
    if isinstance(cast, str):
        try:
            cast = _CAST_TYPES[cast.lower()]
        except KeyError as exc:
            raise ConfigurationError(f"Unknown cast type: {cast}") from exc
    return TypeAdapter(cast)


def cast_value(cast: Any, value: Any) -> Any:
    """Convert a column value with a cast name (``"integer"``, ``"json"``...) or a type."""
    if value is None:
        return None
    if isinstance(cast, str) and cast.lower() in ("array", "json", "object"):
        if not isinstance(value, (str, bytes, bytearray)):
            return value
    return _adapter(cast).validate_python(value)


class Hydratable:
    """Mixin that provides instance-building from raw row data (hydration)."""

    @classmethod
    def _extract_pivot(cls, row: dict[str, Any], alias: Optional[str]) -> dict[str, Any]:
        """Move ``{alias}__{column}`` entries into a nested ``{alias: {column: value}}`` dict."""
        if not alias:
            return row
        prefix = f"{alias}{PIVOT_SEPARATOR}"
        pivot = {key[len(prefix):]: row.pop(key) for key in list(row) if key.startswith(prefix)}
        if pivot:
            row[alias] = pivot
        return row

    @classmethod
    def _apply_schema(cls, row: dict[str, Any]) -> dict[str, Any]:
        schema = cls._SCHEMA
        if schema is None:
            return row
        if isinstance(schema, type) and issubclass(schema, BaseModel):
            parsed = schema.model_validate(row).model_dump()
        elif isinstance(schema, TypeAdapter):
            parsed = schema.validate_python(row)
        else:
            parsed = schema.parse(row)
        if isinstance(parsed, BaseModel):
            parsed = parsed.model_dump()
        return {**row, **parsed}

    @classmethod
    def _apply_casts(cls, row: dict[str, Any]) -> dict[str, Any]:
        for column, cast in cls._CASTS.items():
            if column in row:
                row[column] = cast_value(cast, row[column])
        return row

    @classmethod
    def _hydrate(cls, row: dict[str, Any], pivot_alias: Optional[str] = None):
        """Build an instance from a result row, without validation.

        Pivot columns are gathered first, then the model's schema and casts
        are applied to the remaining columns.
        """
        row = dict(row)
        link = {column: row.pop(column) for column in LINK_COLUMNS if column in row}
        row = cls._extract_pivot(row, pivot_alias)
        row = cls._apply_schema(row)
        row = cls._apply_casts(row)
        instance = cls.model_construct(**row)
        instance._link = link
        return instance
