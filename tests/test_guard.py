"""Tests for lectern.guard: ensure_read_only_snippet, ensure_read_only_sql."""

import pytest

from lectern.errors import ReadOnlyViolationError
from lectern.guard import FORBIDDEN_SQL, ensure_read_only_snippet, ensure_read_only_sql


class TestReadOnlySnippet:
    """Raw fragments are rejected when they could chain or write."""

    @pytest.mark.parametrize("keyword", FORBIDDEN_SQL)
    def test_every_forbidden_keyword_is_rejected(self, keyword):
        with pytest.raises(ReadOnlyViolationError, match=f"disallowed keyword '{keyword}'"):
            ensure_read_only_snippet(f"x = 1 OR {keyword.upper()} y", "where_raw")

    def test_semicolon_is_rejected(self):
        with pytest.raises(ReadOnlyViolationError, match="semicolons are not allowed"):
            ensure_read_only_snippet("1 = 1; SELECT 1")

    def test_keywords_match_whole_words_only(self):
        ensure_read_only_snippet("created_at > ? AND updated_by IS NULL AND deleted_at IS NULL")

    def test_whitespace_is_collapsed_before_matching(self):
        with pytest.raises(ReadOnlyViolationError, match="load data"):
            ensure_read_only_snippet("LOAD\n\t  DATA infile")

    def test_message_names_context(self):
        with pytest.raises(ReadOnlyViolationError, match="Read-only ORM violation in select_raw"):
            ensure_read_only_snippet("(DELETE FROM users)", "select_raw")

    def test_violation_is_a_value_error(self):
        with pytest.raises(ValueError):
            ensure_read_only_snippet("DROP TABLE users")


class TestReadOnlySql:
    """Whole statements must be plain SELECTs."""

    def test_select_passes(self):
        ensure_read_only_sql("  select * from users where id = ?")

    def test_non_select_is_rejected(self):
        with pytest.raises(ReadOnlyViolationError, match="only SELECT statements are permitted"):
            ensure_read_only_sql("UPDATE users SET name = ?")

    def test_select_with_write_keyword_is_rejected(self):
        with pytest.raises(ReadOnlyViolationError, match="'into outfile'"):
            ensure_read_only_sql("SELECT * FROM users INTO OUTFILE '/tmp/x'")
