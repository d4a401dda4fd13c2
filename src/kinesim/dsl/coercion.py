"""Scalar coercion for compiler leaves.

YAML scalars arrive as ``int``, ``float``, ``bool`` or ``str`` depending on
how the loader typed them. The compiler needs to know, without catching
exceptions, whether a scalar is a number, a joint name or a reference name.
The functions here return a ``Coercion`` describing the outcome; the
compiler decides which error to raise.
"""

from __future__ import annotations

import math
import re
import sys
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

__all__ = [
    "Coercion",
    "coerce_float",
    "coerce_name",
    "is_identifier",
]

T = TypeVar("T")

# Joint names in URDF files routinely contain '-', '.' and '/'.
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-./]*$")

_NUMBER_RE = re.compile(
    r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$"
)
_LARGEST_INT_DOUBLE = int(sys.float_info.max)


@dataclass(frozen=True, slots=True)
class Coercion(Generic[T]):
    """Outcome of a coercion attempt.

    Exactly one of ``value`` and ``error`` is set.
    """

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_identifier(text: str) -> bool:
    """Return True if ``text`` can name a joint or a bound expression."""
    return bool(_IDENTIFIER_RE.match(text))


def coerce_float(raw: Any) -> Coercion[float]:
    """Read ``raw`` as a double.

    Accepts ``int`` and ``float`` values and decimal/scientific numeric text.
    Booleans are rejected even though Python treats them as integers.
    ``.inf``/``.nan`` YAML literals arrive as floats and are kept; the same
    words as plain strings are not numbers.
    """
    if isinstance(raw, bool):
        return Coercion(error=f"boolean {raw!r} is not a number")
    if isinstance(raw, int) and abs(raw) > _LARGEST_INT_DOUBLE:
        return Coercion(error=f"integer {raw} overflows a double")
    if isinstance(raw, (int, float)):
        return Coercion(value=float(raw))
    if isinstance(raw, str):
        text = raw.strip()
        if not _NUMBER_RE.match(text):
            return Coercion(error=f"'{raw}' is not numeric text")
        value = float(text)
        if math.isinf(value):
            return Coercion(error=f"'{raw}' overflows a double")
        return Coercion(value=value)
    return Coercion(error=f"{type(raw).__name__} is not a scalar")


def coerce_name(raw: Any) -> Coercion[str]:
    """Read ``raw`` as a joint or reference name.

    Integers are accepted as their decimal text, so a joint named ``1`` can
    be written unquoted. Booleans and floats are rejected: their YAML source
    text cannot be recovered.
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        return Coercion(value=str(raw))
    if not isinstance(raw, str):
        return Coercion(error=f"{type(raw).__name__} {raw!r} is not a name")
    name = raw.strip()
    if not name:
        return Coercion(error="empty name")
    return Coercion(value=name)
