"""Operator registry for the expression DSL.

Maps each operator keyword (the single key of an operator mapping) to an
``OperatorSpec`` describing what the keyword's value must look like and
which node kind it builds:

=====================================  ===========  ===================
Keywords                               Argument     Node
=====================================  ===========  ===================
pos-of, vel-of, eff-of                 joint name   JointSignal
f-pos-of, f-vel-of, f-eff-of           joint name   JointSignalFraction
pos-lim-low-of, pos-lim-hig-of,        joint name   JointLimitConst
pos-lim-len-of, vel-lim-of, eff-lim-of
add, sub, mul, div, min, max           2-sequence   BinaryOp
abs, sin, cos                          1-sequence   UnaryOp
=====================================  ===========  ===================

The table is fixed; ``default_registry()`` returns the shared instance.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from functools import cache

from kinesim.dsl.errors import UnknownOperatorError
from kinesim.dsl.nodes import (
    BinaryKind,
    FractionKind,
    LimitKind,
    SignalKind,
    UnaryKind,
)

__all__ = [
    "ArgumentShape",
    "OperatorKind",
    "OperatorSpec",
    "OperatorRegistry",
    "default_registry",
]

OperatorKind = BinaryKind | UnaryKind | SignalKind | FractionKind | LimitKind


class ArgumentShape(str, Enum):
    """Shape the value of an operator mapping must have."""

    JOINT_NAME = "joint name"
    PAIR = "sequence of 2 expressions"
    SINGLE = "sequence of 1 expression"

    @property
    def arity(self) -> int:
        """Number of sub-expressions, 0 for joint accessors."""
        if self is ArgumentShape.PAIR:
            return 2
        if self is ArgumentShape.SINGLE:
            return 1
        return 0


@dataclass(frozen=True, slots=True)
class OperatorSpec:
    """Construction rule for one operator keyword.

    Attributes:
        keyword: The DSL key, e.g. ``"f-pos-of"``.
        shape: Required shape of the key's value.
        kind: Node kind to build.
        required_limits: Joint limit fields the node reads when evaluated.
    """

    keyword: str
    shape: ArgumentShape
    kind: OperatorKind
    required_limits: tuple[str, ...] = field(default_factory=tuple)


_REQUIRED_LIMITS: dict[OperatorKind, tuple[str, ...]] = {
    FractionKind.POSITION_FRAC: ("lower", "upper"),
    FractionKind.VELOCITY_FRAC: ("velocity",),
    FractionKind.EFFORT_FRAC: ("effort",),
    LimitKind.POS_LOWER: ("lower",),
    LimitKind.POS_UPPER: ("upper",),
    LimitKind.POS_SPREAD: ("lower", "upper"),
    LimitKind.VEL_LIMIT: ("velocity",),
    LimitKind.EFF_LIMIT: ("effort",),
}


class OperatorRegistry:
    """Lookup table from operator keyword to ``OperatorSpec``.

    Example:
        ```python
        registry = default_registry()
        spec = registry.get("sub")
        spec.shape.arity  # 2
        "pos-of" in registry  # True
        ```
    """

    def __init__(self, specs: Iterable[OperatorSpec]) -> None:
        self._specs: dict[str, OperatorSpec] = {}
        for spec in specs:
            if spec.keyword in self._specs:
                raise ValueError(f"Operator '{spec.keyword}' registered twice")
            self._specs[spec.keyword] = spec

    def __contains__(self, keyword: object) -> bool:
        return keyword in self._specs

    def __iter__(self) -> Iterator[OperatorSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._specs)

    def get(self, keyword: str) -> OperatorSpec:
        """Look up the spec for ``keyword``.

        Raises:
            UnknownOperatorError: If the keyword is not registered. The error
                carries no document or path; the compiler raises its own
                instance with both.
        """
        if keyword not in self._specs:
            raise UnknownOperatorError(keyword, available=self._specs)
        return self._specs[keyword]

    def find(self, keyword: str) -> OperatorSpec | None:
        return self._specs.get(keyword)


def _builtin_specs() -> Iterator[OperatorSpec]:
    for kind in (*SignalKind, *FractionKind, *LimitKind):
        yield OperatorSpec(
            kind.value,
            ArgumentShape.JOINT_NAME,
            kind,
            _REQUIRED_LIMITS.get(kind, ()),
        )
    for kind in BinaryKind:
        yield OperatorSpec(kind.value, ArgumentShape.PAIR, kind)
    for kind in UnaryKind:
        yield OperatorSpec(kind.value, ArgumentShape.SINGLE, kind)


@cache
def default_registry() -> OperatorRegistry:
    """Return the registry of all built-in operators."""
    return OperatorRegistry(_builtin_specs())
