"""Error types for the fake-controller expression DSL.

Exception Hierarchy:
    DSLError (base for all DSL errors)
    ├── ControllerParseError (YAML text could not be parsed)
    ├── GraphSealedError (node added to a graph after compilation finished)
    └── ExpressionCompileError (document could not be compiled)
        ├── StructuralError (wrong document shape or element count)
        │   └── UnsupportedShapeError (value of a kind no rule accepts)
        ├── UnknownOperatorError (single-key mapping with unknown key)
        ├── AmbiguousOperatorError (mapping with zero or several keys)
        ├── UnknownJointError (joint name not in the model)
        ├── MissingLimitError (operator needs a limit the joint lacks)
        ├── UndefinedReferenceError (bare identifier with no binding)
        └── TypeCoercionError (scalar of the wrong kind)

Compile errors are raised where the problem is found and propagate to the
caller unchanged. Each one records the offending sub-document and the path
that led to it, e.g. ``elbow > position > sub[1] > pos-of``, so that a
mistake can be located in a large configuration without re-wrapping the
error at every level.
"""

from __future__ import annotations

import re
import reprlib
from collections.abc import Iterable
from typing import Any

from kinesim.exceptions import KinesimError

__all__ = [
    "DSLError",
    "ControllerParseError",
    "GraphSealedError",
    "ExpressionCompileError",
    "StructuralError",
    "UnsupportedShapeError",
    "UnknownOperatorError",
    "AmbiguousOperatorError",
    "UnknownJointError",
    "MissingLimitError",
    "UndefinedReferenceError",
    "TypeCoercionError",
    "format_path",
]

_DOCUMENT_PREVIEW_LIMIT = 200
_ENTRY_RE = re.compile(r"^\[\d+\]$")

# Nested levels past maxlevel render as "...".
_preview_repr = reprlib.Repr()
_preview_repr.maxlevel = 8
_preview_repr.maxdict = _preview_repr.maxlist = _preview_repr.maxtuple = 64
_preview_repr.maxstring = _preview_repr.maxother = _DOCUMENT_PREVIEW_LIMIT


def format_path(path: Iterable[str]) -> str:
    """Render a compile path as ``a > b > c`` (``<root>`` when empty)."""
    rendered = " > ".join(path)
    return rendered or "<root>"


def _preview(document: Any) -> str:
    text = _preview_repr.repr(document)
    if len(text) > _DOCUMENT_PREVIEW_LIMIT:
        text = text[: _DOCUMENT_PREVIEW_LIMIT - 3] + "..."
    return text


class DSLError(KinesimError):
    """Base exception for all DSL-related errors."""

    pass


class ControllerParseError(DSLError):
    """Exception raised when a controller document is not valid YAML.

    Attributes:
        message: Human-readable error message.
        line_number: 1-indexed line of the syntax error, if known.
    """

    def __init__(self, message: str, line_number: int | None = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class GraphSealedError(DSLError):
    """Raised when a node is added to a graph whose compilation finished."""

    def __init__(self) -> None:
        super().__init__("Expression graph is sealed; recompile to change it")


class ExpressionCompileError(DSLError):
    """Base exception for failures while compiling a controller document.

    Attributes:
        message: Full message including path and document preview.
        reason: The bare description of the problem.
        document: The sub-document that could not be compiled.
        path: Breadcrumbs from the document root to ``document``.
    """

    def __init__(
        self,
        reason: str,
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.reason = reason
        self.document = document
        self.path = tuple(path)
        super().__init__(
            f"{reason} at {format_path(self.path)}: {_preview(document)}"
        )

    @property
    def entry(self) -> int | None:
        """Index of the controller entry, for errors in the entry's own shape."""
        if self.path and _ENTRY_RE.match(self.path[0]):
            return int(self.path[0][1:-1])
        return None

    @property
    def joint(self) -> str | None:
        """Name of the controlled joint whose entry failed, if known."""
        if not self.path or self.entry is not None:
            return None
        return self.path[0]

    @property
    def channel(self) -> str | None:
        """Channel key (``position``, ``velocitiy``, ``effort``), if known."""
        return self.path[1] if len(self.path) > 1 else None


class StructuralError(ExpressionCompileError):
    """The document has the wrong shape or the wrong number of elements."""

    pass


class UnsupportedShapeError(StructuralError):
    """A value whose kind (e.g. a bare list or null) no grammar rule accepts."""

    def __init__(self, document: Any, path: tuple[str, ...] = ()) -> None:
        super().__init__(
            f"Unsupported node of type {type(document).__name__} for a "
            "double expression",
            document=document,
            path=path,
        )


class UnknownOperatorError(ExpressionCompileError):
    """A single-key mapping whose key is not a known operator.

    Attributes:
        operator: The unrecognized key.
        available: Known operator keys, sorted.
    """

    def __init__(
        self,
        operator: str,
        available: Iterable[str] = (),
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.operator = operator
        self.available = tuple(sorted(available))
        reason = f"'{operator}' is not a valid name for a double expression"
        if self.available:
            reason += f" (known operators: {', '.join(self.available)})"
        super().__init__(reason, document=document, path=path)


class AmbiguousOperatorError(ExpressionCompileError):
    """A mapping in operator position that does not have exactly one key.

    Attributes:
        keys: The keys found in the mapping.
    """

    def __init__(
        self,
        keys: Iterable[Any],
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.keys = tuple(keys)
        super().__init__(
            "Only mappings with exactly one key can be translated into double "
            f"expressions, got {len(self.keys)}",
            document=document,
            path=path,
        )


class UnknownJointError(ExpressionCompileError):
    """A joint name that the joint model does not contain.

    Attributes:
        joint_name: The unresolved name.
    """

    def __init__(
        self,
        joint_name: str,
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.joint_name = joint_name
        super().__init__(
            f"Unknown joint '{joint_name}'", document=document, path=path
        )


class MissingLimitError(ExpressionCompileError):
    """An operator needs a limit that the joint model does not define.

    Attributes:
        joint_name: Joint whose limits were consulted.
        limits: Names of the undefined limit fields.
    """

    def __init__(
        self,
        joint_name: str,
        limits: Iterable[str],
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.joint_name = joint_name
        self.limits = tuple(limits)
        super().__init__(
            f"Joint '{joint_name}' has no {', '.join(self.limits)} limit",
            document=document,
            path=path,
        )


class UndefinedReferenceError(ExpressionCompileError):
    """A bare identifier with no bound expression of that name.

    Attributes:
        name: The identifier.
        available: Names currently bound in the graph, sorted.
    """

    def __init__(
        self,
        name: str,
        available: Iterable[str] = (),
        document: Any = None,
        path: tuple[str, ...] = (),
    ) -> None:
        self.name = name
        self.available = tuple(sorted(available))
        reason = f"Undefined expression '{name}'"
        if self.available:
            reason += f" (bound names: {', '.join(self.available)})"
        super().__init__(reason, document=document, path=path)


class TypeCoercionError(ExpressionCompileError):
    """A scalar that cannot be read as the kind of value required.

    Attributes:
        expected: What was required, e.g. ``"number"`` or ``"joint name"``.
    """

    def __init__(
        self,
        expected: str,
        document: Any = None,
        path: tuple[str, ...] = (),
        detail: str | None = None,
    ) -> None:
        self.expected = expected
        reason = f"Expected a {expected}"
        if detail:
            reason += f" ({detail})"
        super().__init__(reason, document=document, path=path)
