"""Tests for lectern.model.base: lazy relation access, autoloading and load()/load_missing()/load_count()."""

import asyncio

import pytest

from lectern import Model
from tests.models import Post, User


class TestAutoload:
    """Awaiting a relation on one instance loads it for its whole collection."""

    @pytest.mark.asyncio
    async def test_concurrent_access_shares_one_query(self, db):
        Model.automatically_eager_load_relationships()
        users = await User.query().order_by("id").get()
        results = await asyncio.gather(*(user.relation("posts") for user in users))
        assert [len(posts) for posts in results] == [2, 1, 2, 0]
        assert len(db.statements_on("posts")) == 1
        assert Model._context.loading == {}

    @pytest.mark.asyncio
    async def test_collection_switch(self, db):
        users = (await User.query().order_by("id").get()).with_relationship_autoloading()
        await users[2].relation("country")
        assert all(user.relation_loaded("country") for user in users)
        assert users[0].country.name == "France"
        assert users[3].country is None

    @pytest.mark.asyncio
    async def test_without_autoload_only_self_is_loaded(self, db):
        users = await User.query().order_by("id").get()
        await users[0].relation("posts")
        assert users[0].relation_loaded("posts")
        assert not users[1].relation_loaded("posts")
        assert db.statements_on("posts")[0][1] == [1]

    @pytest.mark.asyncio
    async def test_autoload_propagates_to_related_results(self, db):
        Model.automatically_eager_load_relationships()
        users = await User.query().with_("posts").order_by("id").get()
        await users[0].posts[0].relation("comments")
        assert users[1].posts[0].relation_loaded("comments")
        assert len(db.statements_on("comments")) == 1

    @pytest.mark.asyncio
    async def test_reset_disables_autoload(self, db):
        Model.automatically_eager_load_relationships()
        Model.reset()
        assert Model._context.autoload is False


class TestExplicitLoading:
    """load(), load_missing() and load_count() on instances and collections."""

    @pytest.mark.asyncio
    async def test_load_and_load_missing(self, db):
        alice = await User.find(1)
        await alice.load("posts")
        assert len(db.statements_on("posts")) == 1
        await alice.load_missing("posts")
        assert len(db.statements_on("posts")) == 1
        await alice.load("posts")
        assert len(db.statements_on("posts")) == 2

    @pytest.mark.asyncio
    async def test_load_with_constraint(self, db):
        alice = await User.find(1)
        await alice.load({"posts": lambda q: q.where("published", True)})
        assert [post.id for post in alice.posts] == [1]

    @pytest.mark.asyncio
    async def test_collection_load_nested(self, db):
        users = await User.query().order_by("id").get()
        await users.load("posts.comments")
        assert sorted(comment.id for comment in users[0].posts[0].comments) in ([1, 2], [4])
        assert len(db.statements_on("comments")) == 1

    @pytest.mark.asyncio
    async def test_load_count(self, db):
        alice = await User.find(1)
        await alice.load_count("posts")
        assert alice.posts_count == 2
        users = await User.query().order_by("id").get()
        await users.load_count("posts", "images")
        assert [user.posts_count for user in users] == [2, 1, 2, 0]
        assert [user.images_count for user in users] == [2, 0, 0, 0]

    @pytest.mark.asyncio
    async def test_load_count_on_soft_deleting_model(self, db):
        posts = await Post.query().order_by("id").get()
        await posts.load_count("comments")
        assert [post.comments_count for post in posts] == [2, 1, 1, 0, 0]
