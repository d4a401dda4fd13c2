"""Expression graph: node arena and evaluator.

An ``ExpressionGraph`` owns every node compiled from one controller
document. Nodes live in an append-only list and refer to their children by
index; a child is always appended before its parent, so the graph is
acyclic by construction. Once compilation succeeds the graph is sealed and
never changes again; reconfiguring means compiling a new graph and dropping
the old one as a unit.

Evaluation semantics:
- All arithmetic is float64 and follows IEEE-754. Division by zero yields
  ``inf``/``-inf`` (or ``nan`` for ``0/0``) and ``sin``/``cos`` of an
  infinity yield ``nan``; nothing raises.
- ``min``/``max`` use ``numpy.minimum``/``numpy.maximum``: if either operand
  is ``nan`` the result is ``nan``.
- Joint indices are not bounds-checked; they were resolved against the
  joint model at compile time.

A sealed graph holds no mutable state of its own, so any number of threads
may evaluate it concurrently as long as the host does not resize the joint
state arrays underneath it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import numpy as np

from kinesim.dsl.errors import GraphSealedError
from kinesim.dsl.nodes import (
    BinaryKind,
    BinaryOp,
    Constant,
    ExpressionNode,
    FractionKind,
    JointLimitConst,
    JointSignal,
    JointSignalFraction,
    LimitKind,
    NodeHandle,
    SignalKind,
    UnaryKind,
    UnaryOp,
)
from kinesim.joints import JointLimits, JointState

__all__ = ["ExpressionGraph", "BoundExpression"]

_BINARY_UFUNCS = {
    BinaryKind.ADD: np.add,
    BinaryKind.SUB: np.subtract,
    BinaryKind.MUL: np.multiply,
    BinaryKind.DIV: np.true_divide,
    BinaryKind.MIN: np.minimum,
    BinaryKind.MAX: np.maximum,
}

_UNARY_UFUNCS = {
    UnaryKind.ABS: np.absolute,
    UnaryKind.SIN: np.sin,
    UnaryKind.COS: np.cos,
}


class ExpressionGraph:
    """Arena of expression nodes evaluated against one ``JointState``.

    Attributes:
        state: Joint state that joint-signal nodes read from.
        sealed: True once compilation finished.

    Example:
        ```python
        graph = ExpressionGraph(model.state)
        two = graph.add(Constant(2.0))
        pos = graph.add(JointSignal(SignalKind.POSITION, 0))
        total = graph.add(BinaryOp(BinaryKind.ADD, left=two, right=pos))
        graph.seal()
        graph.evaluate(total)
        ```
    """

    def __init__(self, state: JointState) -> None:
        self.state = state
        self._nodes: list[ExpressionNode] = []
        self._bindings: dict[str, NodeHandle] = {}
        self._sealed = False

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ExpressionNode]:
        return iter(self._nodes)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def bindings(self) -> Mapping[str, NodeHandle]:
        """Read-only view of the name → handle table."""
        return MappingProxyType(self._bindings)

    def node(self, handle: NodeHandle) -> ExpressionNode:
        return self._nodes[handle]

    def add(self, node: ExpressionNode) -> NodeHandle:
        """Append ``node`` and return its handle.

        Raises:
            GraphSealedError: If the graph is sealed.
            ValueError: If ``node`` refers to a handle not yet in the graph.
        """
        if self._sealed:
            raise GraphSealedError()
        for child in _children(node):
            if not 0 <= child < len(self._nodes):
                raise ValueError(
                    f"Node refers to handle {child}, graph has {len(self._nodes)} nodes"
                )
        self._nodes.append(node)
        return len(self._nodes) - 1

    def bind(self, name: str, handle: NodeHandle) -> None:
        """Register ``handle`` under ``name`` for bare-identifier references.

        The compiler only looks names up; whoever owns the graph decides
        what gets bound, and must do so before compiling.
        """
        if self._sealed:
            raise GraphSealedError()
        if not 0 <= handle < len(self._nodes):
            raise ValueError(f"Cannot bind '{name}' to unknown handle {handle}")
        self._bindings[name] = handle

    def lookup(self, name: str) -> NodeHandle | None:
        return self._bindings.get(name)

    def seal(self) -> None:
        self._sealed = True

    def expression(self, handle: NodeHandle) -> BoundExpression:
        """Return a callable view of ``handle`` for hosts."""
        if not 0 <= handle < len(self._nodes):
            raise IndexError(f"No node with handle {handle}")
        return BoundExpression(self, handle)

    def evaluate(self, handle: NodeHandle) -> float:
        """Evaluate the expression rooted at ``handle`` against current state."""
        with np.errstate(all="ignore"):
            return float(self._evaluate(handle))

    def _evaluate(self, handle: NodeHandle) -> np.float64:
        node = self._nodes[handle]
        match node:
            case Constant(value=value):
                return np.float64(value)
            case BinaryOp(kind=kind, left=left, right=right):
                return _BINARY_UFUNCS[kind](self._evaluate(left), self._evaluate(right))
            case UnaryOp(kind=kind, operand=operand):
                return _UNARY_UFUNCS[kind](self._evaluate(operand))
            case JointSignal(kind=kind, joint_index=idx):
                return self._signal(kind, idx)
            case JointSignalFraction(kind=kind, joint_index=idx, limits=limits):
                if kind is FractionKind.POSITION_FRAC:
                    lower = np.float64(limits.lower)
                    return (self.state.position[idx] - lower) / (
                        np.float64(limits.upper) - lower
                    )
                if kind is FractionKind.VELOCITY_FRAC:
                    return self.state.velocity[idx] / np.float64(limits.velocity)
                return self.state.effort[idx] / np.float64(limits.effort)
            case JointLimitConst(kind=kind, limits=limits):
                return _limit_value(kind, limits)
        raise TypeError(f"Unknown expression node {node!r}")

    def _signal(self, kind: SignalKind, idx: int) -> np.float64:
        if kind is SignalKind.POSITION:
            return self.state.position[idx]
        if kind is SignalKind.VELOCITY:
            return self.state.velocity[idx]
        return self.state.effort[idx]

    def describe(self, handle: NodeHandle) -> str:
        """Render the expression at ``handle`` in document order.

        ``sub`` and ``div`` are printed with their operands in the order they
        were written, e.g. ``sub(pos-of(j1), 1.0)``.
        """
        node = self._nodes[handle]
        match node:
            case Constant(value=value):
                return repr(value)
            case BinaryOp(kind=kind, left=left, right=right):
                return f"{kind.value}({self.describe(right)}, {self.describe(left)})"
            case UnaryOp(kind=kind, operand=operand):
                return f"{kind.value}({self.describe(operand)})"
            case JointSignal() | JointSignalFraction() | JointLimitConst():
                return f"{node.kind.value}({node.joint_name})"
        raise TypeError(f"Unknown expression node {node!r}")


def _children(node: ExpressionNode) -> tuple[NodeHandle, ...]:
    if isinstance(node, BinaryOp):
        return (node.left, node.right)
    if isinstance(node, UnaryOp):
        return (node.operand,)
    return ()


def _limit_value(kind: LimitKind, limits: JointLimits) -> np.float64:
    if kind is LimitKind.POS_LOWER:
        return np.float64(limits.lower)
    if kind is LimitKind.POS_UPPER:
        return np.float64(limits.upper)
    if kind is LimitKind.POS_SPREAD:
        return np.float64(limits.upper) - np.float64(limits.lower)
    if kind is LimitKind.VEL_LIMIT:
        return np.float64(limits.velocity)
    return np.float64(limits.effort)


@dataclass(frozen=True, slots=True)
class BoundExpression:
    """A compiled expression as handed to the host.

    Attributes:
        graph: Graph that owns the expression's nodes.
        handle: Root node of the expression.
    """

    graph: ExpressionGraph
    handle: NodeHandle

    def value(self) -> float:
        """Evaluate against the current joint state."""
        return self.graph.evaluate(self.handle)

    def __str__(self) -> str:
        return self.graph.describe(self.handle)
