"""Tests for lectern.model: class options, hydration, casts, equality and serialization."""

import copy
import json
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import BaseModel, TypeAdapter

from lectern import Collection, ConfigurationError, Model
from lectern.dialects import MysqlDialect, PostgresDialect
from lectern.model import cast_value
from tests.models import Country, Post, Profile, User


class Gadget(Model, table="gizmos", primary_key="uid", soft_deletes=True, hidden=("secret",), morph_class="gadget"):
    pass


class SubGadget(Gadget):
    pass


class ReadingSchema(BaseModel):
    value: float


class Reading(Model, schema=ReadingSchema):
    pass


class Meter(Model, schema=TypeAdapter(dict[str, int])):
    pass


class TestClassOptions:
    """Keyword options given in the class statement."""

    def test_options_are_stored(self):
        assert Gadget._TABLE == "gizmos"
        assert Gadget._PRIMARY_KEY == "uid"
        assert Gadget._SOFT_DELETES is True
        assert Gadget._HIDDEN == ("secret",)
        assert Gadget._MORPH_CLASS == "gadget"

    def test_options_are_inherited_except_morph_class(self):
        assert SubGadget._get_table_name() == "gizmos"
        assert SubGadget._PRIMARY_KEY == "uid"
        assert SubGadget._SOFT_DELETES is True
        assert SubGadget._HIDDEN == ("secret",)
        assert SubGadget._MORPH_CLASS is None

    def test_defaults(self):
        assert User._PRIMARY_KEY == "id"
        assert User._SOFT_DELETES is False
        assert Profile._get_table_name() == "profiles"
        assert Country._get_table_name() == "countries"
        assert Post._CASTS == {"published": "boolean"}


class TestContext:
    """Model.init(), reset() and the morph helpers."""

    def test_init_defaults_to_mysql(self):
        context = Model.init(object(), morph_map={"member": User})
        assert isinstance(context.dialect, MysqlDialect)
        assert User._context is context
        assert User.get_morph_type_for_model() == "member"
        assert Model.get_model_for_morph_type("member") is User

    def test_init_with_dialect(self):
        Model.init(object(), dialect=PostgresDialect())
        assert User.query().where_month("created_at", 3).to_sql() == \
            "SELECT * FROM users WHERE EXTRACT(MONTH FROM created_at) = ?"


class TestCasts:
    """cast_value() conversions."""

    @pytest.mark.parametrize("cast, value, expected", [
        ("integer", "7", 7),
        ("boolean", 0, False),
        ("float", "1.5", 1.5),
        ("decimal", "1.5", Decimal("1.5")),
        ("json", '{"a": [1, 2]}', {"a": [1, 2]}),
        ("array", [1, 2], [1, 2]),
        ("datetime", "2024-01-01 10:00:00", datetime(2024, 1, 1, 10, 0)),
        (int, "3", 3),
        ("integer", None, None),
    ])
    def test_cast_value(self, cast, value, expected):
        assert cast_value(cast, value) == expected

    def test_unknown_cast(self):
        with pytest.raises(ConfigurationError, match="Unknown cast type: nope"):
            cast_value("nope", 1)


class TestHydration:
    """Building instances from result rows."""

    def test_casts_pivot_and_link_columns(self):
        post = Post._hydrate({"id": 1, "published": 1, "pivot__weight": 2, "__pivot_fk": 9}, "pivot")
        assert post.published is True
        assert post.pivot == {"weight": 2}
        assert post._link == {"__pivot_fk": 9}
        assert set(post.model_extra) == {"id", "published", "pivot"}

    def test_pydantic_schema(self):
        reading = Reading._hydrate({"id": 1, "value": "2.5", "note": "x"})
        assert reading.value == 2.5
        assert reading.note == "x"

    def test_type_adapter_schema(self):
        assert Meter._hydrate({"id": 1, "value": "4"}).value == 4


class TestIdentity:
    """Equality and hashing by class and primary key."""

    def test_eq_and_hash(self):
        assert User.model_construct(id=1) == User.model_construct(id=1)
        assert User.model_construct(id=1) != User.model_construct(id=2)
        assert User.model_construct(id=1) != Post.model_construct(id=1)
        assert len({User.model_construct(id=1), User.model_construct(id=1)}) == 1

    def test_without_key_compares_identity(self):
        first, second = User.model_construct(), User.model_construct()
        assert first != second
        assert first == first

    def test_deepcopy_returns_self(self):
        user = User.model_construct(id=1)
        assert copy.deepcopy(user) is user


class TestSerialization:
    """to_dict() and to_json()."""

    def test_to_dict_hides_and_nests(self):
        user = User.model_construct(id=1, name="alice", password="secret")
        user.set_relation("posts", [Post.model_construct(id=2, title="hi")])
        user.set_relation("country", None)
        assert user.to_dict() == {"id": 1, "name": "alice", "posts": [{"id": 2, "title": "hi"}], "country": None}

    def test_to_json(self):
        user = User.model_construct(id=1, name="alice", password="secret")
        assert json.loads(user.to_json()) == {"id": 1, "name": "alice"}


class TestCollection:
    """Collection helpers that need no database."""

    def test_pluck_and_keys(self):
        users = Collection([User.model_construct(id=1, name="a"), User.model_construct(id=2, name="b")])
        assert users.pluck("name") == ["a", "b"]
        assert users.model_keys() == [1, 2]

    def test_autoloading_switch(self):
        users = Collection([User.model_construct(id=1)])
        assert users.with_relationship_autoloading() is users
        assert users.autoload is True
        assert users[0]._collection is users

    @pytest.mark.asyncio
    async def test_loading_empty_collection_is_noop(self):
        empty = Collection()
        assert await empty.load("posts") is empty
        assert await empty.load_count("posts") is empty
