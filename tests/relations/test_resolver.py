"""Tests for lectern.relations: descriptor resolution through the relation recorder."""

import pytest

from lectern import Model
from lectern.errors import RelationNotFoundError, UnsupportedRelationError
from lectern.relations import (
    BelongsToDescriptor,
    BelongsToManyDescriptor,
    HasManyDescriptor,
    HasManyThroughDescriptor,
    HasOneDescriptor,
    HasOneOfManyDescriptor,
    MorphManyDescriptor,
    MorphOneOfManyDescriptor,
    MorphToDescriptor,
    describe_relation,
    get_relation,
    relation_method_names,
)
from tests.models import Comment, Country, Image, Post, Profile, Tag, User


class Shelf(Model, relations={"items": HasManyDescriptor(related="ShelfItem", foreign_key="shelf_id")}):
    def broken(self):
        raise RuntimeError("boom")

    def not_a_relation(self):
        return 42


class ShelfItem(Model):
    def shelf(self):
        return self.belongs_to(Shelf)

    def wrong_through(self):
        return self.through("shelf").has("items")


class TestDefaultKeys:
    """Relation methods produce descriptors with conventional keys."""

    def test_has_many(self):
        descriptor = describe_relation(User, "posts")
        assert isinstance(descriptor, HasManyDescriptor)
        assert descriptor.related is Post
        assert (descriptor.foreign_key, descriptor.local_key) == ("user_id", "id")
        assert descriptor.many

    def test_has_one(self):
        descriptor = describe_relation(User, "profile")
        assert isinstance(descriptor, HasOneDescriptor)
        assert not descriptor.many

    def test_belongs_to(self):
        descriptor = describe_relation(Post, "user")
        assert isinstance(descriptor, BelongsToDescriptor)
        assert (descriptor.foreign_key, descriptor.owner_key) == ("user_id", "id")
        assert describe_relation(Comment, "post").foreign_key == "post_id"

    def test_of_many(self):
        latest = describe_relation(User, "latest_post")
        assert isinstance(latest, HasOneOfManyDescriptor)
        assert (latest.column, latest.aggregate) == ("created_at", "max")
        assert describe_relation(User, "oldest_post").aggregate == "min"

    def test_morph(self):
        images = describe_relation(User, "images")
        assert isinstance(images, MorphManyDescriptor)
        assert (images.type_column, images.id_column) == ("imageable_type", "imageable_id")
        assert isinstance(describe_relation(User, "latest_image"), MorphOneOfManyDescriptor)
        owner = describe_relation(Image, "imageable")
        assert isinstance(owner, MorphToDescriptor)
        assert owner.kind == "morphTo"

    def test_belongs_to_many_pivot(self):
        tags = describe_relation(Post, "tags")
        assert isinstance(tags, BelongsToManyDescriptor)
        assert tags.table == "post_tag"
        assert (tags.foreign_pivot_key, tags.related_pivot_key) == ("post_id", "tag_id")
        assert tags.pivot_columns == ("weight",)
        assert tags.pivot_alias == "pivot"
        assert describe_relation(Tag, "posts").table == "post_tag"

    def test_has_many_through(self):
        posts = describe_relation(Country, "posts")
        assert isinstance(posts, HasManyThroughDescriptor)
        assert posts.through is User
        assert (posts.first_key, posts.second_key) == ("country_id", "user_id")

    def test_through_builder(self):
        composed = describe_relation(Country, "user_posts")
        assert composed == describe_relation(Country, "posts")


class TestProbing:
    """Probing is side-effect free and tolerant of non-relation methods."""

    def test_chained_constraints_are_ignored(self):
        descriptor = describe_relation(User, "published_posts")
        assert descriptor == describe_relation(User, "posts")

    def test_missing_attribute(self):
        assert describe_relation(User, "nope") is None

    def test_plain_column_name(self):
        assert describe_relation(User, "name") is None

    def test_base_methods_are_not_relations(self):
        assert describe_relation(User, "to_dict") is None
        assert describe_relation(User, "query") is None

    def test_raising_method(self):
        assert describe_relation(Shelf, "broken") is None

    def test_non_relation_return(self):
        assert describe_relation(Shelf, "not_a_relation") is None

    def test_explicit_relations_map(self):
        descriptor = describe_relation(Shelf, "items")
        assert descriptor.related_model(Model._context.morphs) is ShelfItem

    def test_resolution_is_idempotent(self):
        assert describe_relation(Post, "tags") is describe_relation(Post, "tags")

    def test_probe_runs_no_query(self):
        assert Model._context.connection is None
        assert describe_relation(Profile, "user") is not None

    def test_invalid_through_composition(self):
        assert describe_relation(ShelfItem, "wrong_through") is None
        with pytest.raises(UnsupportedRelationError, match="must be hasOne or hasMany"):
            ShelfItem.model_construct().wrong_through()


class TestGetRelation:
    """get_relation raises for unknown names."""

    def test_raises(self):
        with pytest.raises(RelationNotFoundError, match="Relationship 'nope' does not exist on model User"):
            get_relation(User, "nope")

    def test_error_is_an_attribute_error(self):
        with pytest.raises(AttributeError):
            get_relation(User, "nope")


def test_relation_method_names():
    assert relation_method_names(Shelf) == ["items", "broken", "not_a_relation"]
    names = relation_method_names(User)
    assert "posts" in names and "latest_image" in names
    assert not {"scope_named", "query", "to_dict", "load"} & set(names)
