"""Time-parameterized property graph for motion graphics."""

__all__ = [
    "AddNodeResult",
    "AudioFrame",
    "Command",
    "CommandError",
    "Commands",
    "ConsoleLog",
    "DependencyGraph",
    "Easing",
    "EvaluationContext",
    "FrameResult",
    "History",
    "Keyframe",
    "LogEntry",
    "LogLevel",
    "Node",
    "NodeHandle",
    "NodeKind",
    "ProjectAnalysis",
    "ProjectFormatError",
    "ProjectMeta",
    "ProjectState",
    "Property",
    "PropertyKind",
    "PropertyRef",
    "PropertyStash",
    "SandboxError",
    "ScriptError",
    "Session",
    "analyze_project",
    "create_node",
    "create_property",
    "dump_project",
    "evaluate_frame",
    "evaluate_property",
    "execute_script",
    "find_unused_variables",
    "initial_project",
    "interpolate_keyframes",
    "load_project",
    "parse_project",
    "save_project",
    "would_create_cycle",
]

from ._commands import AddNodeResult, Command, CommandError, Commands
from ._console import ConsoleLog, LogEntry
from ._enums import Easing, LogLevel, NodeKind, PropertyKind
from ._eval_engine import EvaluationContext, FrameResult, evaluate_frame, evaluate_property
from ._factory import create_node, create_property, initial_project
from ._graph import DependencyGraph, ProjectAnalysis, analyze_project, find_unused_variables, would_create_cycle
from ._history import History
from ._io import ProjectFormatError, dump_project, load_project, parse_project, save_project
from ._keyframes import interpolate_keyframes
from ._models import AudioFrame, Keyframe, Node, ProjectMeta, ProjectState, Property, PropertyStash
from ._refs import PropertyRef
from ._sandbox import SandboxError
from ._scripting import NodeHandle, ScriptError, execute_script
from ._session import Session
