"""Tests for the editing session."""

import pytest

from animgraph._enums import NodeKind, PropertyKind
from animgraph._eval_engine import FrameResult
from animgraph._models import ProjectState
from animgraph._session import Session


def _width(session: Session) -> float:
    return session.project.nodes["rect_0"].properties["width"].value


def _messages(session: Session) -> list[str]:
    return [entry.message for entry in session.console.entries]


class TestStructure:
    """Tests for node-level edits."""

    def test_add_node_is_undoable(self) -> None:
        session = Session()
        node_id = session.add_node(NodeKind.VECTOR)
        assert node_id == "vector_0"
        assert session.project.selection == "vector_0"
        session.undo()
        assert "vector_0" not in session.project.nodes

    def test_remove_node(self) -> None:
        session = Session()
        assert session.remove_node("ghost") is False
        assert session.remove_node("circle_0") is True
        assert session.project.root_node_ids == ("rect_0",)
        session.undo()
        assert session.project.root_node_ids == ("rect_0", "circle_0")

    def test_rename_node(self) -> None:
        session = Session()
        assert session.rename_node("rect_0", "circle_0") is False
        assert session.rename_node("rect_0", "box") is True
        assert "box" in session.project.nodes
        assert len(session.history.past) == 1

    def test_reorder_node(self) -> None:
        session = Session()
        session.reorder_node(0, 0)
        assert session.history.past == ()
        session.reorder_node(0, 1)
        assert session.project.root_node_ids == ("circle_0", "rect_0")

    def test_reorder_past_the_end_undoes(self) -> None:
        session = Session()
        session.reorder_node(0, 10)
        assert session.project.root_node_ids == ("circle_0", "rect_0")
        session.undo()
        assert session.project.root_node_ids == ("rect_0", "circle_0")

    def test_clear(self) -> None:
        session = Session()
        session.clear()
        assert session.project.nodes == {}
        session.undo()
        assert set(session.project.nodes) == {"rect_0", "circle_0"}

    def test_history_limit(self) -> None:
        session = Session(history_limit=2)
        for kind in ("rect", "circle", "vector"):
            session.add_node(kind)
        assert len(session.history.past) == 2


class TestLiveEdits:
    """Tests for property edits that bypass the history until committed."""

    def test_commit_records_one_step(self) -> None:
        session = Session()
        session.update_property("rect_0", "width", {"value": 120})
        session.update_property("rect_0", "width", {"value": 140})
        assert _width(session) == 140
        assert session.history.past == ()

        assert session.commit_property("rect_0", "width", label="Resize") is True
        [command] = session.history.past
        assert command.name == "Resize"
        session.undo()
        assert _width(session) == 100
        session.redo()
        assert _width(session) == 140

    def test_cancel_restores(self) -> None:
        session = Session()
        session.update_property("rect_0", "width", {"value": 120})
        session.cancel_property("rect_0", "width")
        assert _width(session) == 100
        assert session.history.past == ()

    def test_commit_without_change(self) -> None:
        session = Session()
        assert session.commit_property("rect_0", "width") is False
        session.update_property("rect_0", "width", {"value": 100})
        assert session.commit_property("rect_0", "width") is False
        assert session.history.past == ()

    def test_unknown_property_is_ignored(self) -> None:
        session = Session()
        session.update_property("rect_0", "ghost", {"value": 1})
        assert session.commit_property("rect_0", "ghost") is False


class TestSetProperty:
    """Tests for committed property edits and cycle reporting."""

    def test_ref_cycle_is_reported_but_applied(self) -> None:
        session = Session()
        assert session.set_property("circle_0", "x", {"type": PropertyKind.REF, "value": "rect_0:x"}) is False
        assert session.set_property("rect_0", "x", {"type": PropertyKind.REF, "value": "circle_0:x"}) is True
        assert session.project.nodes["rect_0"].properties["x"].value == "circle_0:x"

    def test_expression_self_reference(self) -> None:
        session = Session()
        patch = {"type": PropertyKind.EXPRESSION, "value": "ctx.get('rect_0', 'width') + 1"}
        assert session.set_property("rect_0", "width", patch) is True

    def test_literal_has_no_cycle(self) -> None:
        session = Session()
        assert session.set_property("rect_0", "width", {"value": 5}) is False
        assert session.has_cycle("rect_0", "ghost") is False

    def test_switch_property_type_round_trip(self) -> None:
        session = Session()
        session.switch_property_type("rect_0", "x", PropertyKind.NUMBER)
        x = session.project.nodes["rect_0"].properties["x"]
        assert x.type is PropertyKind.NUMBER
        assert x.meta is not None
        assert x.meta.last_expression == "math.sin(t * 2) * 200"

        session.switch_property_type("rect_0", "x", "expression")
        x = session.project.nodes["rect_0"].properties["x"]
        assert x.type is PropertyKind.EXPRESSION
        assert x.value == "math.sin(t * 2) * 200"

        session.switch_property_type("rect_0", "x", PropertyKind.EXPRESSION)
        assert len(session.history.past) == 2

    def test_toggle_keyframe(self) -> None:
        session = Session()
        session.toggle_keyframe("rect_0", "width", 2)
        [keyframe] = session.project.nodes["rect_0"].properties["width"].keyframes
        assert (keyframe.time, keyframe.value) == (2, 100)
        session.toggle_keyframe("rect_0", "width", 2)
        assert session.project.nodes["rect_0"].properties["width"].keyframes == ()

    def test_toggle_keyframe_on_expression_freezes_value(self) -> None:
        session = Session()
        session.set_time(1)
        session.toggle_keyframe("rect_0", "rotation")
        rotation = session.project.nodes["rect_0"].properties["rotation"]
        assert rotation.type is PropertyKind.NUMBER
        assert rotation.keyframes[0].value == pytest.approx(45)


class TestPlayback:
    """Tests for transient playback state."""

    def test_tick_advances_and_wraps(self) -> None:
        session = Session()
        session.tick(0.5)
        assert session.project.meta.current_time == 0

        session.toggle_play()
        session.tick(0.5)
        assert session.project.meta.current_time == pytest.approx(0.5)

        session.set_time(9.9)
        assert session.project.meta.is_playing is False
        session.toggle_play()
        session.tick(0.2)
        assert session.project.meta.current_time == 0

    def test_transient_changes_are_not_recorded(self) -> None:
        session = Session()
        session.select("circle_0")
        session.set_time(3)
        session.update_meta(fps=30)
        assert session.project.selection == "circle_0"
        assert session.project.meta.fps == 30
        assert session.history.past == ()

    def test_evaluate_uses_current_time(self) -> None:
        session = Session()
        session.set_time(2)
        frame = session.evaluate()
        assert isinstance(frame, FrameResult)
        assert frame.time == 2
        assert frame.get_value("rect_0", "rotation") == pytest.approx(90)


class TestRunScript:
    """Tests for scripts run through the session."""

    def test_success_is_one_history_entry(self) -> None:
        session = Session()
        assert session.run_script("addNode('rect')\naddNode('circle')") is True
        assert _messages(session) == ["> Running Script...", "Script executed. 2 operations committed."]
        [command] = session.history.past
        assert command.name == "Run Script"

        session.undo()
        assert set(session.project.nodes) == {"rect_0", "circle_0"}

    def test_no_changes(self) -> None:
        session = Session()
        assert session.run_script("x = 1") is True
        assert _messages(session) == ["> Running Script...", "Script executed (No changes made)."]
        assert session.history.past == ()

    def test_failure_leaves_project_untouched(self) -> None:
        session = Session(ProjectState())
        source = "addNode('rect')\naddNode('rect')\naddNode('rect')\nraise ValueError('stop')"
        assert session.run_script(source) is False
        assert session.project.nodes == {}
        assert session.history.past == ()
        assert _messages(session) == ["> Running Script...", "ValueError: stop"]
