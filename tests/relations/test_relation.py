"""Tests for lectern.relations.relation: live relation queries and deferred relation access."""

import pytest

from lectern.relations import PendingRelation, Relation
from tests.models import Country, Image, Post, User


def test_relation_query_sql():
    relation = User.model_construct(id=1).posts()
    assert isinstance(relation, Relation)
    assert relation.query.to_sql() == "SELECT * FROM posts WHERE posts.user_id = ? AND posts.deleted_at IS NULL"
    assert relation.query.values == [1]
    assert "hasMany User" in repr(relation)


def test_relation_forwards_builder_methods():
    relation = User.model_construct(id=1).posts()
    assert relation.where("published", True) is relation
    assert relation.to_sql().endswith("AND published = ? AND posts.deleted_at IS NULL")


def test_belongs_to_many_query_projects_pivot():
    sql = Post.model_construct(id=1).tags().to_sql()
    assert sql == (
        "SELECT tags.*, post_tag.weight AS pivot__weight FROM tags "
        "INNER JOIN post_tag ON tags.id = post_tag.tag_id WHERE post_tag.post_id = ?"
    )


class TestAwaitingRelations:
    """Awaiting a relation runs its query for one parent."""

    @pytest.mark.asyncio
    async def test_has_many(self, db):
        alice = await User.find(1)
        assert [post.id for post in await alice.posts().order_by("id")] == [1, 2]
        assert [post.id for post in await alice.posts().where("published", True)] == [1]
        assert await alice.posts().count() == 2

    @pytest.mark.asyncio
    async def test_constraints_inside_relation_method(self, db):
        alice = await User.find(1)
        assert [post.id for post in await alice.published_posts()] == [1]
        eager = await User.query().with_("published_posts").where("id", 1).first()
        assert sorted(post.id for post in eager.published_posts) == [1, 2]

    @pytest.mark.asyncio
    async def test_belongs_to(self, db):
        assert (await (await User.find(1)).country()).name == "France"
        assert await (await User.find(4)).country() is None

    @pytest.mark.asyncio
    async def test_latest_of_many(self, db):
        assert (await (await User.find(1)).latest_post()).id == 2
        assert (await (await User.find(3)).latest_post()).id == 5
        assert (await (await User.find(3)).oldest_post()).id == 5

    @pytest.mark.asyncio
    async def test_morph(self, db):
        alice = await User.find(1)
        assert sorted(image.id for image in await alice.images()) == [1, 2]
        owner = await (await Image.find(3)).imageable()
        assert isinstance(owner, Post) and owner.id == 1
        count = len(db.statements)
        assert await (await Image.find(4)).imageable() is None
        assert len(db.statements) == count + 1

    @pytest.mark.asyncio
    async def test_belongs_to_many(self, db):
        tags = await (await Post.find(1)).tags().order_by("tags.id")
        assert [(tag.name, tag.pivot) for tag in tags] == [("python", {"weight": 5}), ("sql", {"weight": 3})]

    @pytest.mark.asyncio
    async def test_through(self, db):
        france = await Country.find(1)
        assert sorted(post.id for post in await france.posts()) == [1, 2, 3]


class TestPendingRelation:
    """instance.relation(name): await for the loaded value, call for the query."""

    @pytest.mark.asyncio
    async def test_await_loads_once(self, db):
        alice = await User.find(1)
        pending = alice.relation("posts")
        assert isinstance(pending, PendingRelation)
        posts = await pending
        assert sorted(post.id for post in posts) == [1, 2]
        assert alice.posts is posts
        count = len(db.statements)
        assert await alice.relation("posts") is posts
        assert len(db.statements) == count

    @pytest.mark.asyncio
    async def test_call_returns_live_relation(self, db):
        alice = await User.find(1)
        await alice.relation("posts")
        relation = alice.relation("posts")()
        assert isinstance(relation, Relation)
        assert await relation.count() == 2


def test_relation_state_helpers():
    user = User.model_construct(id=1)
    assert callable(user.posts)
    assert not user.relation_loaded("posts")
    assert user.get_relation("posts") is None
    user.set_relation("posts", [])
    assert user.posts == []
    assert user.relation_loaded("posts")
    user.unset_relation("posts")
    assert callable(user.posts)
