"""Read-only gate applied to raw SQL fragments and to every executed statement."""

import re

from .errors import ReadOnlyViolationError


FORBIDDEN_SQL: tuple[str, ...] = (
    "insert",
    "update",
    "delete",
    "replace",
    "create",
    "drop",
    "alter",
    "truncate",
    "grant",
    "revoke",
    "load data",
    "into outfile",
)
"""Keywords that may not appear as whole words in any SQL lectern sends."""

_FORBIDDEN_PATTERNS = tuple(
    (keyword, re.compile(r"\b" + re.escape(keyword) + r"\b"))
    for keyword in FORBIDDEN_SQL
)
_WHITESPACE = re.compile(r"\s+")


def _normalize(sql: str) -> str:
    return _WHITESPACE.sub(" ", sql).strip().lower()


def ensure_read_only_snippet(snippet: str, context: str = "raw SQL") -> None:
    """Reject a fragment that chains statements or contains a write keyword.

    Keywords are matched as whole words, so identifiers such as
    ``created_at`` or ``updated_by`` are accepted.

    Raises:
        ReadOnlyViolationError: if the fragment is not safe to splice into a SELECT.
    """
    normalized = _normalize(snippet or "")
    if ";" in normalized:
        raise ReadOnlyViolationError(
            f"Read-only ORM violation in {context}: semicolons are not allowed"
        )
    for keyword, pattern in _FORBIDDEN_PATTERNS:
        if pattern.search(normalized):
            raise ReadOnlyViolationError(
                f"Read-only ORM violation in {context}: disallowed keyword '{keyword}'"
            )


def ensure_read_only_sql(sql: str, context: str = "query") -> None:
    """Reject a complete statement unless it is a plain SELECT."""
    normalized = _normalize(sql or "")
    if not normalized.startswith("select"):
        raise ReadOnlyViolationError(
            f"Read-only ORM violation in {context}: only SELECT statements are permitted"
        )
    ensure_read_only_snippet(normalized, context)
