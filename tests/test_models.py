"""Tests for the property model, property references and enums."""

import pytest
from pydantic import ValidationError

from animgraph._enums import Easing, LogLevel, NodeKind, PropertyKind, StrEnumWithDoc
from animgraph._factory import STAR_PATH, create_node, create_property, initial_project
from animgraph._models import Keyframe, Property, PropertyStash, normalize_patch
from animgraph._refs import PropertyRef


class TestStrEnumWithDoc:
    """Tests for enums whose members carry docstrings."""

    def test_values_and_docs(self) -> None:
        assert PropertyKind.EXPRESSION.value == "expression"
        assert "evaluated every frame" in (PropertyKind.EXPRESSION.__doc__ or "")

    def test_member_without_doc(self) -> None:
        class Mode(StrEnumWithDoc):
            ON = "on", "Switched on"
            OFF = "off"

        assert Mode.OFF.__doc__ == ""
        assert Mode("on") is Mode.ON

    def test_members_are_strings(self) -> None:
        assert isinstance(NodeKind.RECT, str)
        assert NodeKind.RECT == "rect"
        assert f"{LogLevel.WARN}" == "warn"

    def test_derived_kinds(self) -> None:
        assert {k for k in PropertyKind if k.is_derived} == {PropertyKind.EXPRESSION, PropertyKind.REF}

    def test_id_prefix(self) -> None:
        assert NodeKind.VALUE.id_prefix == "var"
        assert NodeKind.CIRCLE.id_prefix == "circle"


class TestPropertyRef:
    """Tests for "node:prop" addresses."""

    def test_parse_and_render(self) -> None:
        ref = PropertyRef.parse("rect_0:x")
        assert ref == PropertyRef("rect_0", "x")
        assert str(ref) == "rect_0:x"

    @pytest.mark.parametrize("text", ["", "rect_0", ":x", "rect_0:", None, 42])
    def test_malformed_returns_none(self, text: object) -> None:
        assert PropertyRef.parse(text) is None

    def test_extra_segments_are_ignored(self) -> None:
        assert PropertyRef.parse("a:b:c") == PropertyRef("a", "b")

    def test_hashable_and_ordered(self) -> None:
        refs = {PropertyRef("b", "x"), PropertyRef("a", "y"), PropertyRef("a", "y")}
        assert sorted(refs) == [PropertyRef("a", "y"), PropertyRef("b", "x")]


class TestProperty:
    """Tests for Property records."""

    def test_models_are_frozen(self) -> None:
        prop = create_property(PropertyKind.NUMBER, 1)
        with pytest.raises(ValidationError):
            prop.value = 2  # type: ignore[misc]

    def test_merged_keeps_unmentioned_fields(self) -> None:
        keyframes = (Keyframe(time=0, value=1), Keyframe(time=1, value=2))
        prop = Property(type=PropertyKind.NUMBER, value=0, keyframes=keyframes)
        merged = prop.merged({"value": 5})
        assert merged.value == 5
        assert merged.keyframes == keyframes
        assert prop.value == 0

    def test_merged_coerces_patch_fields(self) -> None:
        prop = create_property(PropertyKind.NUMBER, 0)
        merged = prop.merged(
            {
                "type": "color",
                "keyframes": [{"time": 1, "value": "#ffffff", "easing": "step"}],
                "meta": {"last_value": 0, "last_type": "number"},
            },
        )
        assert merged.type is PropertyKind.COLOR
        assert merged.keyframes[0].easing is Easing.STEP
        assert merged.meta == PropertyStash(last_value=0, last_type=PropertyKind.NUMBER)

    def test_unknown_patch_field(self) -> None:
        with pytest.raises(ValueError, match="Unknown property fields"):
            normalize_patch({"colour": "red"})

    def test_snapshot_is_a_full_patch(self) -> None:
        prop = create_property(PropertyKind.STRING, "hi")
        assert prop.snapshot() == {"type": PropertyKind.STRING, "value": "hi", "keyframes": (), "meta": None}

    def test_is_animated(self) -> None:
        keyframes = (Keyframe(time=0, value=1),)
        assert Property(type=PropertyKind.NUMBER, keyframes=keyframes).is_animated is True
        assert Property(type=PropertyKind.EXPRESSION, value="t", keyframes=keyframes).is_animated is False


class TestFactory:
    """Tests for default nodes and the demo project."""

    def test_rect_defaults(self) -> None:
        node = create_node("rect", "rect_0")
        assert node.type is NodeKind.RECT
        assert node.properties["width"].value == 100
        assert node.properties["fill"].type is PropertyKind.COLOR
        assert set(node.properties) >= {"x", "y", "rotation", "scale", "opacity"}

    def test_vector_defaults(self) -> None:
        node = create_node(NodeKind.VECTOR, "vector_0")
        assert node.properties["path"].value == STAR_PATH
        assert node.properties["stroke_width"].value == 2

    def test_value_node_has_only_value(self) -> None:
        node = create_node(NodeKind.VALUE, "var_0")
        assert list(node.properties) == ["value"]

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError, match="triangle"):
            create_node("triangle", "t_0")

    def test_initial_project(self) -> None:
        project = initial_project()
        assert project.root_node_ids == ("rect_0", "circle_0")
        assert project.selection == "rect_0"
        assert project.nodes["rect_0"].properties["x"].type is PropertyKind.EXPRESSION
        assert len(project.nodes["circle_0"].properties["radius"].keyframes) == 3


class TestProjectState:
    """Tests for ProjectState helpers."""

    def test_get_property(self) -> None:
        project = initial_project()
        assert project.get_property("rect_0", "width") is not None
        assert project.get_property("rect_0", "nope") is None
        assert project.get_property("nope", "width") is None

    def test_with_node_shares_untouched_nodes(self) -> None:
        project = initial_project()
        rect = project.nodes["rect_0"]
        updated = project.with_node(rect.with_property("width", create_property(PropertyKind.NUMBER, 5)))
        assert updated.nodes["circle_0"] is project.nodes["circle_0"]
        assert updated.nodes["rect_0"].properties["width"].value == 5
        assert project.nodes["rect_0"].properties["width"].value == 100

    def test_variable_ids(self) -> None:
        project = initial_project()
        project = project.with_node(create_node(NodeKind.VALUE, "speed"))
        assert project.variable_ids() == ["speed"]
