"""Node types of a compiled expression graph.

Every node is a frozen dataclass carrying only the fields its variant needs,
and every variant carries a ``kind`` tag. The kind enums use the DSL
keywords as their values, so ``BinaryKind("sub")`` is the node kind built
for a ``sub:`` mapping.

Joint nodes keep the joint name only for diagnostics; evaluation uses the
resolved index and limits.

Children are referenced by ``NodeHandle`` (an index into the owning
``ExpressionGraph``), never by object, so a node is meaningless outside the
graph that created it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from kinesim.joints import JointLimits

__all__ = [
    "NodeHandle",
    "ConstantKind",
    "BinaryKind",
    "UnaryKind",
    "SignalKind",
    "FractionKind",
    "LimitKind",
    "Constant",
    "BinaryOp",
    "UnaryOp",
    "JointSignal",
    "JointSignalFraction",
    "JointLimitConst",
    "ExpressionNode",
]

NodeHandle: TypeAlias = int


class ConstantKind(str, Enum):
    CONSTANT = "constant"


class BinaryKind(str, Enum):
    """Two-operand arithmetic. Sub and Div are not commutative."""

    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    MIN = "min"
    MAX = "max"


class UnaryKind(str, Enum):
    ABS = "abs"
    SIN = "sin"
    COS = "cos"


class SignalKind(str, Enum):
    """Live joint-state reads."""

    POSITION = "pos-of"
    VELOCITY = "vel-of"
    EFFORT = "eff-of"


class FractionKind(str, Enum):
    """Live joint-state reads normalized by the joint's limits."""

    POSITION_FRAC = "f-pos-of"
    VELOCITY_FRAC = "f-vel-of"
    EFFORT_FRAC = "f-eff-of"


class LimitKind(str, Enum):
    """Limit values, constant once the joint model is loaded."""

    POS_LOWER = "pos-lim-low-of"
    POS_UPPER = "pos-lim-hig-of"
    POS_SPREAD = "pos-lim-len-of"
    VEL_LIMIT = "vel-lim-of"
    EFF_LIMIT = "eff-lim-of"


@dataclass(frozen=True, slots=True)
class Constant:
    value: float
    kind: ConstantKind = ConstantKind.CONSTANT


@dataclass(frozen=True, slots=True)
class BinaryOp:
    """Binary operation evaluated as ``left <op> right``.

    The compiler stores the first element of the document sequence as
    ``right`` and the second as ``left``.
    """

    kind: BinaryKind
    left: NodeHandle
    right: NodeHandle


@dataclass(frozen=True, slots=True)
class UnaryOp:
    kind: UnaryKind
    operand: NodeHandle


@dataclass(frozen=True, slots=True)
class JointSignal:
    kind: SignalKind
    joint_index: int
    joint_name: str = ""


@dataclass(frozen=True, slots=True)
class JointSignalFraction:
    kind: FractionKind
    joint_index: int
    limits: JointLimits
    joint_name: str = ""


@dataclass(frozen=True, slots=True)
class JointLimitConst:
    kind: LimitKind
    limits: JointLimits
    joint_name: str = ""


ExpressionNode: TypeAlias = (
    Constant | BinaryOp | UnaryOp | JointSignal | JointSignalFraction | JointLimitConst
)
