"""Tests for lectern.dialects.mysql: F helpers and placeholder."""

from lectern.dialects import MysqlDialect


def test_mysql_f_helpers():
    d = MysqlDialect()
    assert d.f.random() == "RAND()"
    assert d.f.date("created_at") == "DATE(created_at)"
    assert d.f.year("created_at") == "YEAR(created_at)"
    assert d.f.month("created_at") == "MONTH(created_at)"
    assert d.f.day("created_at") == "DAY(created_at)"
    assert d.f.time("created_at") == "TIME(created_at)"


def test_mysql_uses_format_placeholders():
    assert MysqlDialect.PLACEHOLDER == "%s"
