"""Tests for lectern.morph: MorphRegistry and the Model morph classmethods."""

from lectern import Model
from tests.models import Image, Post, User, Video


class TestTypeForModel:
    """The discriminator written for a model: morph_class, then alias, then class name."""

    def test_class_name_by_default(self):
        assert Model.get_morph_type_for_model(User) == "User"

    def test_alias_from_morph_map(self):
        Model.register_morph_map({"user": User})
        assert User.get_morph_type_for_model() == "user"

    def test_morph_class_wins(self):
        Model.register_morph_map({"clip": Video})
        assert Model.get_morph_type_for_model(Video) == "video"


class TestModelForType:
    """Resolution order: morph map, morph_class, class name, else None."""

    def test_morph_map(self):
        Model.init(None, morph_map={"article": Post})
        assert Model.get_model_for_morph_type("article") is Post

    def test_morph_class(self):
        assert Model.get_model_for_morph_type("video") is Video

    def test_class_name(self):
        assert Model.get_model_for_morph_type("Image") is Image

    def test_unknown_is_none(self):
        assert Model.get_model_for_morph_type("Ghost") is None
        assert Model.get_model_for_morph_type("") is None

    def test_round_trip(self):
        Model.register_morph_map({"user": User})
        for model in (User, Post, Video, Image):
            morph_type = Model.get_morph_type_for_model(model)
            assert Model.get_model_for_morph_type(morph_type) is model


class TestPossibleTypes:
    """Every discriminator a model's rows may carry, without duplicates."""

    def test_all_sources_in_order(self):
        Model.register_morph_map({"clip": Video})
        assert Video.get_possible_morph_types_for_model() == ["legacy_video", "video", "clip", "Video"]

    def test_plain_model(self):
        assert Model.get_possible_morph_types_for_model(User) == ["User"]

    def test_register_merges(self):
        Model.register_morph_map({"user": User})
        Model.register_morph_map({"member": User})
        assert Model.get_possible_morph_types_for_model(User) == ["user", "member", "User"]

    def test_reset_forgets_map(self):
        Model.register_morph_map({"user": User})
        Model.reset()
        assert Model.get_morph_type_for_model(User) == "User"
