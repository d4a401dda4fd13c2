"""Fake-controller compilation.

A fake-controller document is a YAML sequence with one entry per controlled
joint::

    - gripper_finger_left:
        position: {pos-of: gripper_finger_right}
    - wrist_counterweight:
        position: {sub: [{pos-of: wrist}, 0.0]}
        velocitiy: {vel-of: wrist}
        effort: 0.0

Each channel (``position``, ``velocitiy``, ``effort``) holds an expression
that replaces the physically integrated value of that joint. Compilation is
all-or-nothing: the first error aborts it and no partially filled channel
maps ever reach the host.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from kinesim.constants import CHANNEL_KEYS
from kinesim.dsl.coercion import coerce_name
from kinesim.dsl.compiler import ExpressionCompiler
from kinesim.dsl.errors import (
    ControllerParseError,
    ExpressionCompileError,
    StructuralError,
    TypeCoercionError,
    UnknownJointError,
    format_path,
)
from kinesim.dsl.graph import BoundExpression, ExpressionGraph
from kinesim.dsl.nodes import NodeHandle
from kinesim.dsl.registry import OperatorRegistry
from kinesim.joints import JointResolver, JointState
from kinesim.logging import get_logger
from kinesim.yaml_loader import load_document

__all__ = [
    "ChannelValues",
    "FakeControllers",
    "compile_controllers",
    "load_controller_document",
    "load_controller_file",
]

logger = get_logger(__name__)

ChannelMap = Mapping[int, BoundExpression]


@dataclass(frozen=True, slots=True)
class ChannelValues:
    """Values of every fake controller at one instant, keyed by joint index."""

    position: dict[int, float] = field(default_factory=dict)
    velocity: dict[int, float] = field(default_factory=dict)
    effort: dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class FakeControllers:
    """Compiled fake controllers, ready for the host's simulation loop.

    Attributes:
        graph: Sealed graph owning every expression below.
        position: Joint index → expression overriding the joint's position.
        velocity: Joint index → expression overriding the joint's velocity.
        effort: Joint index → expression overriding the joint's effort.
    """

    graph: ExpressionGraph
    position: ChannelMap = field(default_factory=lambda: MappingProxyType({}))
    velocity: ChannelMap = field(default_factory=lambda: MappingProxyType({}))
    effort: ChannelMap = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.position) + len(self.velocity) + len(self.effort)

    def channels(self) -> Iterator[tuple[str, ChannelMap]]:
        """Yield ``(channel, mapping)`` for position, velocity and effort."""
        yield "position", self.position
        yield "velocity", self.velocity
        yield "effort", self.effort

    def evaluate(self) -> ChannelValues:
        """Evaluate every expression once against the current joint state."""
        return ChannelValues(
            position={idx: expr.value() for idx, expr in self.position.items()},
            velocity={idx: expr.value() for idx, expr in self.velocity.items()},
            effort={idx: expr.value() for idx, expr in self.effort.items()},
        )

    def apply(self, state: JointState | None = None) -> ChannelValues:
        """Evaluate all expressions, then write the results into ``state``.

        All expressions see the state as it was before this call, so the
        order of the entries in the controller document does not matter.

        Args:
            state: State to write into; defaults to the state the graph
                reads from.

        Returns:
            The values that were written.
        """
        target = state if state is not None else self.graph.state
        values = self.evaluate()
        for channel in ("position", "velocity", "effort"):
            array = target.channel(channel)
            for idx, value in getattr(values, channel).items():
                array[idx] = value
        return values


def _is_sequence(document: Any) -> bool:
    return isinstance(document, Sequence) and not isinstance(document, (str, bytes))


def _split_entry(entry: Any, position: int) -> tuple[str, Mapping[Any, Any]]:
    path = (f"[{position}]",)
    if not isinstance(entry, Mapping) or len(entry) != 1:
        raise StructuralError(
            "Fake controllers need to be a mapping with exactly one joint name",
            document=entry,
            path=path,
        )
    ((key, channels),) = entry.items()
    coerced = coerce_name(key)
    if not coerced.ok or coerced.value is None:
        raise TypeCoercionError(
            "joint name", document=entry, path=path, detail=coerced.error
        )
    joint_name = coerced.value
    if not isinstance(channels, Mapping):
        raise StructuralError(
            "Channels of a fake controller need to be a mapping",
            document=channels,
            path=(joint_name,),
        )
    return joint_name, channels


def compile_controllers(
    document: Any,
    resolver: JointResolver,
    *,
    registry: OperatorRegistry | None = None,
    graph: ExpressionGraph | None = None,
) -> FakeControllers:
    """Compile a fake-controller document.

    Args:
        document: Parsed YAML document (a sequence of joint entries).
        resolver: Joint model the expressions are bound against.
        registry: Operator table; defaults to the built-in operators.
        graph: Graph to compile into, for callers that pre-bind named
            expressions. A fresh graph over ``resolver.state`` by default.
            On failure the graph holds unreachable nodes and should be
            discarded.

    Returns:
        FakeControllers whose graph is sealed.

    Raises:
        ExpressionCompileError: The first problem found anywhere in the
            document. Nothing is returned in that case.

    Example:
        ```python
        controllers = compile_controllers(
            [{"j2": {"position": {"pos-of": "j1"}}}], model
        )
        controllers.apply()
        ```
    """
    if not _is_sequence(document):
        raise StructuralError(
            "Fake controllers node needs to be a sequence", document=document
        )

    compiler = ExpressionCompiler(resolver, graph=graph, registry=registry)
    handles: dict[str, dict[int, NodeHandle]] = {
        channel: {} for channel in CHANNEL_KEYS.values()
    }

    try:
        for position, entry in enumerate(document):
            joint_name, channels = _split_entry(entry, position)
            if not resolver.has_joint(joint_name):
                raise UnknownJointError(joint_name, document=entry, path=(joint_name,))
            idx = resolver.joint_index(joint_name)

            for key in channels:
                if key not in CHANNEL_KEYS:
                    logger.warning(
                        "fake_controller_key_ignored",
                        joint=joint_name,
                        key=key,
                        expected=list(CHANNEL_KEYS),
                    )
            for key, channel in CHANNEL_KEYS.items():
                if key in channels:
                    handles[channel][idx] = compiler.compile(
                        channels[key], (joint_name, key)
                    )
    except ExpressionCompileError as e:
        logger.warning(
            "fake_controllers_compile_failed",
            entry=e.entry,
            joint=e.joint,
            channel=e.channel,
            path=format_path(e.path),
            error=e.reason,
        )
        raise

    result = compiler.graph
    result.seal()
    controllers = FakeControllers(
        graph=result,
        **{
            channel: MappingProxyType(
                {idx: result.expression(h) for idx, h in channel_handles.items()}
            )
            for channel, channel_handles in handles.items()
        },
    )
    logger.info(
        "fake_controllers_compiled",
        position=len(controllers.position),
        velocity=len(controllers.velocity),
        effort=len(controllers.effort),
        nodes=len(result),
    )
    return controllers


def load_controller_document(text: str) -> Any:
    """Parse YAML text into a controller document.

    Raises:
        ControllerParseError: If the text is empty, not valid YAML, or nested
            too deeply for the YAML composer.
    """
    if not text or text.isspace():
        raise ControllerParseError("Empty fake controller document")
    try:
        return load_document(text)
    except yaml.YAMLError as e:
        line_number = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line_number = mark.line + 1
        raise ControllerParseError(
            f"YAML syntax error: {e}", line_number=line_number
        ) from e
    except RecursionError as e:
        # PyYAML composes nested collections recursively.
        raise ControllerParseError("YAML document is nested too deeply") from e


def load_controller_file(path: Path) -> Any:
    """Read and parse a controller file.

    Raises:
        ControllerParseError: If the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise ControllerParseError(f"Cannot read {path}: {e.strerror}") from e
    return load_controller_document(text)
