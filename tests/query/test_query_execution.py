"""Tests for lectern.query: running queries against SQLite and hydrating the rows."""

import pytest

from lectern import Collection, ConnectionNotInitializedError, ModelNotFoundError
from tests.models import Post, User


class TestFetching:
    """get(), first() and the finders."""

    @pytest.mark.asyncio
    async def test_get_returns_collection(self, db):
        users = await User.query().order_by("id").get()
        assert isinstance(users, Collection)
        assert [user.name for user in users] == ["alice", "bob", "carol", "dave"]
        assert all(user._collection is users for user in users)

    @pytest.mark.asyncio
    async def test_first(self, db):
        user = await User.query().where("name", "carol").first()
        assert user.id == 3
        assert await User.query().where("name", "nobody").first() is None
        assert db.statements[0][0] == "SELECT * FROM users WHERE name = ? LIMIT 1"

    @pytest.mark.asyncio
    async def test_find(self, db):
        assert (await User.find(2)).name == "bob"
        users = await User.query().order_by("id").find([1, 3])
        assert [user.name for user in users] == ["alice", "carol"]
        assert await User.find(99) is None

    @pytest.mark.asyncio
    async def test_fail_variants(self, db):
        with pytest.raises(ModelNotFoundError, match="Model not found with id: 99"):
            await User.query().find_or_fail(99)
        with pytest.raises(ModelNotFoundError, match="No results found for query"):
            await User.query().where("name", "nobody").first_or_fail()

    @pytest.mark.asyncio
    async def test_or_defaults(self, db):
        assert await User.query().where("id", 99).first_or("none") == "none"
        assert await User.query().find_or(99, lambda: "fallback") == "fallback"

        async def later():
            return "awaited"

        assert await User.query().find_or(99, later) == "awaited"
        assert (await User.query().find_or(1, "unused")).name == "alice"

    @pytest.mark.asyncio
    async def test_value_and_pluck(self, db):
        assert await User.query().where("id", 2).value("email") == "bob@example.com"
        assert await User.query().order_by("id").pluck("name") == ["alice", "bob", "carol", "dave"]
        assert await User.query().where_in("id", [1, 2]).pluck("users.name", "id") == {1: "alice", 2: "bob"}

    @pytest.mark.asyncio
    async def test_select_raw_bindings_reach_the_driver(self, db):
        user = await User.query().select("id").select_raw("? AS flag", [7]).where("id", 1).first()
        assert user.flag == 7
        assert db.statements[-1][1] == [7, 1]

    @pytest.mark.asyncio
    async def test_union(self, db):
        query = User.query().where("id", 1).union(User.query().where("id", 3)).order_by("id")
        assert await query.pluck("name") == ["alice", "carol"]

    @pytest.mark.asyncio
    async def test_where_month_uses_connection_dialect(self, db):
        query = Post.query().where_month("created_at", 1).order_by("id")
        assert "strftime('%m', created_at)" in query.to_sql()
        assert await query.pluck("id") == [1, 3]

    @pytest.mark.asyncio
    async def test_casts_applied(self, db):
        post = await Post.find(2)
        assert post.published is False


class TestAggregates:
    """count(), max(), sum() and exists()."""

    @pytest.mark.asyncio
    async def test_count(self, db):
        assert await User.query().count() == 4
        assert await User.query().where("country_id", 1).count() == 2

    @pytest.mark.asyncio
    async def test_count_ignores_order_and_limit(self, db):
        assert await User.query().order_by("name").limit(1).count() == 4

    @pytest.mark.asyncio
    async def test_grouped_count_counts_groups(self, db):
        query = User.query().select("country_id").group_by("country_id")
        assert await query.count() == 3
        assert "FROM (SELECT country_id FROM users GROUP BY country_id) AS aggregate_table" in db.statements[-1][0]

    @pytest.mark.asyncio
    async def test_distinct_count_of_column(self, db):
        assert await Post.query().distinct().count("user_id") == 3
        assert db.statements[-1][0] == \
            "SELECT COUNT(DISTINCT user_id) AS aggregate FROM posts WHERE posts.deleted_at IS NULL"

    @pytest.mark.asyncio
    async def test_max_min_sum(self, db):
        assert await Post.query().max("created_at") == "2024-05-01 10:00:00"
        assert await Post.query().min("id") == 1
        assert await Post.query().sum("user_id") == 10
        assert await Post.query().where("id", 99).sum("user_id") == 0

    @pytest.mark.asyncio
    async def test_exists(self, db):
        assert await User.query().where("name", "alice").exists() is True
        assert await User.query().where("name", "nobody").exists() is False
        assert await User.query().where("name", "nobody").doesnt_exist() is True


class TestSoftDeletes:
    """Soft-deleted rows are hidden unless asked for."""

    @pytest.mark.asyncio
    async def test_visibility(self, db):
        assert await Post.query().count() == 5
        assert await Post.query().with_trashed().count() == 6
        assert await Post.query().only_trashed().pluck("id") == [4]

    @pytest.mark.asyncio
    async def test_find_ignores_trashed(self, db):
        assert await Post.find(4) is None
        assert (await Post.query().with_trashed().find(4)).title == "Alice deleted"


class TestChunking:
    """chunk() and each()."""

    @pytest.mark.asyncio
    async def test_chunk_pages_in_key_order(self, db):
        pages = []
        finished = await User.query().chunk(2, lambda page: pages.append(page.model_keys()))
        assert finished is True
        assert pages == [[1, 2], [3, 4]]
        assert db.statements[0][0] == "SELECT * FROM users ORDER BY users.id ASC LIMIT 2 OFFSET 0"

    @pytest.mark.asyncio
    async def test_chunk_stops_on_false(self, db):
        pages = []

        async def collect(page):
            pages.append(page.model_keys())
            return False

        assert await User.query().chunk(2, collect) is False
        assert pages == [[1, 2]]

    @pytest.mark.asyncio
    async def test_chunk_size_must_be_positive(self, db):
        with pytest.raises(ValueError):
            await User.query().chunk(0, print)

    @pytest.mark.asyncio
    async def test_each(self, db):
        names = []
        await User.query().order_by("id").each(lambda user: names.append(user.name), size=3)
        assert names == ["alice", "bob", "carol", "dave"]


@pytest.mark.asyncio
async def test_query_without_connection():
    with pytest.raises(ConnectionNotInitializedError):
        await User.query().get()
