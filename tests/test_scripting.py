"""Tests for transactional script execution."""

import ast
from dataclasses import dataclass, field

import pytest

from animgraph._commands import Command
from animgraph._console import ConsoleLog
from animgraph._enums import LogLevel, NodeKind, PropertyKind
from animgraph._factory import initial_project
from animgraph._models import ProjectState
from animgraph._sandbox import compile_source
from animgraph._scripting import SCRIPT_BATCH_LABEL, execute_script, name_variables


@dataclass
class ScriptRun:
    ok: bool
    before: ProjectState
    committed: list[Command] = field(default_factory=list)
    console: ConsoleLog = field(default_factory=ConsoleLog)

    @property
    def after(self) -> ProjectState:
        state = self.before
        for command in self.committed:
            state = command.redo(state)
        return state

    def messages(self, level: LogLevel | None = None) -> list[str]:
        return [e.message for e in self.console.entries if level is None or e.level is level]


def run_script(source: str, project: ProjectState | None = None) -> ScriptRun:
    before = project if project is not None else initial_project()
    committed: list[Command] = []
    console = ConsoleLog()
    ok = execute_script(source, lambda: before, committed.append, console)
    return ScriptRun(ok=ok, before=before, committed=committed, console=console)


class TestTransaction:
    """Scripts commit everything or nothing."""

    def test_success_commits_one_batch(self) -> None:
        result = run_script("r = addNode('rect')\nr.x = 100\nr.width = '250'")
        assert result.ok is True
        [batch] = result.committed
        assert batch.name == SCRIPT_BATCH_LABEL
        assert len(batch.children) == 3
        rect = result.after.nodes["rect_1"].properties
        assert rect["x"].value == 100
        assert rect["width"].value == 250

    def test_failure_commits_nothing(self) -> None:
        source = "addNode('rect')\naddNode('rect')\naddNode('rect')\nraise ValueError('stop')"
        result = run_script(source, ProjectState())
        assert result.ok is False
        assert result.committed == []
        assert result.messages(LogLevel.ERROR) == ["ValueError: stop"]

    def test_script_without_edits_commits_nothing(self) -> None:
        result = run_script("x = 1\nlog('just looking')")
        assert result.ok is True
        assert result.committed == []
        assert result.messages(LogLevel.INFO) == ["just looking"]

    def test_sandbox_violation_fails(self) -> None:
        result = run_script("import os")
        assert result.ok is False
        assert result.messages(LogLevel.ERROR)[0].startswith("SandboxError")

    def test_later_statements_see_earlier_edits(self) -> None:
        result = run_script("a = addNode('circle')\nb = addNode('circle')\nlog(a.id, b.id)")
        assert result.messages() == ["circle_1 circle_2"]


class TestScriptApi:
    """Tests for the functions available to scripts."""

    def test_snake_case_aliases(self) -> None:
        result = run_script("n = add_node('vector')\nmove_down(n)")
        assert result.after.root_node_ids == ("rect_0", "vector_0", "circle_0")

    def test_remove_node(self) -> None:
        result = run_script("removeNode(circle_0)\nremoveNode('rect_0')")
        assert result.after.nodes == {}

    def test_remove_unknown_node_fails(self) -> None:
        result = run_script("removeNode('ghost')")
        assert result.ok is False
        assert "ghost" in result.messages(LogLevel.ERROR)[0]

    def test_move_up_and_down(self) -> None:
        result = run_script("moveUp(circle_0)\nmoveUp(circle_0)")
        assert result.after.root_node_ids == ("circle_0", "rect_0")
        [batch] = result.committed
        assert len(batch.children) == 1

    def test_clear(self) -> None:
        result = run_script("clear()\naddNode('rect')")
        assert list(result.after.nodes) == ["rect_0"]

    def test_log_levels(self) -> None:
        result = run_script("log('a', [1, 2])\nwarn('b')\nerror('c')")
        assert [(e.level, e.message) for e in result.console.entries] == [
            (LogLevel.INFO, "a [1, 2]"),
            (LogLevel.WARN, "b"),
            (LogLevel.ERROR, "c"),
        ]

    def test_ctx_reads_working_state(self) -> None:
        result = run_script("rect_0.width = 40\nlog(ctx.get('rect_0', 'width'), t)")
        assert result.messages() == ["40 0"]


class TestCreateVariable:
    """Tests for variable creation and naming."""

    def test_named_after_assignment_target(self) -> None:
        result = run_script("speed = createVariable(5)\nlog(speed + 1)")
        speed = result.after.nodes["speed"]
        assert speed.type is NodeKind.VALUE
        assert speed.properties["value"].value == 5
        assert result.messages() == ["6"]

    def test_explicit_name(self) -> None:
        result = run_script("createVariable('gain', 0.5)")
        assert result.after.nodes["gain"].properties["value"].value == 0.5

    def test_inferred_kinds(self) -> None:
        result = run_script("c = createVariable('#ff0000')\nl = createVariable([1, 2])\nf = createVariable(True)")
        nodes = result.after.nodes
        assert nodes["c"].properties["value"].type is PropertyKind.COLOR
        assert nodes["l"].properties["value"].type is PropertyKind.ARRAY
        assert nodes["f"].properties["value"].type is PropertyKind.BOOLEAN

    def test_without_value_keeps_default(self) -> None:
        result = run_script("v = createVariable()")
        assert result.after.nodes["v"].properties["value"].value == 0

    def test_name_collision_keeps_generated_id(self) -> None:
        result = run_script("a = createVariable(1)\nb = createVariable('a', 2)\nlog(b.id)")
        assert result.ok is True
        assert result.messages(LogLevel.WARN) == ["Cannot name variable 'a', keeping 'var_0'."]
        assert result.after.nodes["var_0"].properties["value"].value == 2
        assert result.messages(LogLevel.INFO) == ["var_0"]

    def test_function_value_becomes_expression(self) -> None:
        result = run_script("double = createVariable(lambda x: x * 2)\nlog(double(4))")
        value = result.after.nodes["double"].properties["value"]
        assert value.type is PropertyKind.EXPRESSION
        assert value.value == "lambda x: x * 2"
        assert result.messages() == ["8"]


class TestNodeHandles:
    """Tests for reading and writing nodes through handles."""

    def test_read_evaluated_properties(self) -> None:
        result = run_script("circle_0.radius = rect_0.width / 4\nlog(rect_0.id, rect_0.type, rect_0.missing)")
        assert result.after.nodes["circle_0"].properties["radius"].value == 25
        assert result.messages() == ["rect_0 rect None"]

    def test_rename_through_id(self) -> None:
        result = run_script("rect_0.id = 'cube'\nrect_0.x = 5")
        nodes = result.after.nodes
        assert "rect_0" not in nodes
        assert nodes["cube"].properties["x"].value == 5
        assert nodes["cube"].properties["x"].type is PropertyKind.NUMBER

    def test_rename_to_taken_id_fails(self) -> None:
        result = run_script("rect_0.id = 'circle_0'")
        assert result.ok is False
        assert result.messages(LogLevel.WARN)[0].startswith("Cannot rename 'rect_0' to 'circle_0'")

    def test_unknown_property_aborts(self) -> None:
        result = run_script("rect_0.width = 1\nrect_0.nope = 1")
        assert result.ok is False
        assert result.committed == []
        assert result.messages(LogLevel.WARN) == ["Property 'nope' does not exist on node 'rect_0'"]

    def test_assign_function(self) -> None:
        result = run_script("def pulse():\n    return math.sin(t) * 10\nrect_0.x = pulse\nrect_0.y = lambda: t * 2")
        rect = result.after.nodes["rect_0"].properties
        assert rect["x"].type is PropertyKind.EXPRESSION
        assert rect["x"].value == "return math.sin(t) * 10"
        assert rect["y"].value == "t * 2"

    def test_assign_variable_snapshot(self) -> None:
        result = run_script("speed = createVariable(5)\nrect_0.width = speed")
        width = result.after.nodes["rect_0"].properties["width"]
        assert width.type is PropertyKind.NUMBER
        assert width.value == 5

    def test_assign_function_variable_links_it(self) -> None:
        result = run_script("double = createVariable(lambda x: x * 2)\nrect_0.x = double")
        x = result.after.nodes["rect_0"].properties["x"]
        assert x.type is PropertyKind.EXPRESSION
        assert x.value == "return double"

    def test_value_kind_follows_assignment(self) -> None:
        result = run_script("v = createVariable(1)\nv.value = 'hello'")
        value = result.after.nodes["v"].properties["value"]
        assert value.type is PropertyKind.STRING
        assert value.value == "hello"

    def test_non_numeric_value_aborts(self) -> None:
        result = run_script("rect_0.x = 1\nrect_0.width = abs")
        assert result.ok is False
        assert result.committed == []
        message = result.messages(LogLevel.ERROR)[0]
        assert message.startswith("Cannot set rect_0.width:")
        assert message.endswith("is not a number")

    def test_unparsable_string_is_kept(self) -> None:
        result = run_script("rect_0.width = 'wide'")
        width = result.after.nodes["rect_0"].properties["width"]
        assert width.type is PropertyKind.NUMBER
        assert width.value == "wide"

    def test_literal_over_expression(self) -> None:
        result = run_script("rect_0.rotation = 90")
        rotation = result.after.nodes["rect_0"].properties["rotation"]
        assert rotation.type is PropertyKind.NUMBER
        assert rotation.value == 90

    def test_dict_variable_fields(self) -> None:
        result = run_script("cfg = createVariable({'size': 3})\nlog(cfg.size)")
        assert result.messages() == ["3"]


class TestNameVariables:
    """Tests for the assignment rewrite."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("speed = createVariable(5)", "speed = createVariable('speed', 5)"),
            ("v = add_variable()", "v = add_variable('v', None)"),
            ("a = createVariable('x', 1)", "a = createVariable('x', 1)"),
            ("a = b = createVariable(1)", "a = b = createVariable(1)"),
            ("a = addNode('rect')", "a = addNode('rect')"),
        ],
    )
    def test_rewrite(self, source: str, expected: str) -> None:
        assert ast.unparse(name_variables(compile_source(source).tree)) == expected

    def test_original_tree_is_untouched(self) -> None:
        code = compile_source("speed = createVariable(5)")
        name_variables(code.tree)
        assert ast.unparse(code.tree) == "speed = createVariable(5)"
