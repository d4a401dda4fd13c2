"""Recursive-descent compiler from document nodes to expression graphs.

The expression language has no syntax of its own: structure comes from the
YAML nesting, so each document shape maps to exactly one grammar rule:

- number, or numeric text             → Constant
- ``{<operator>: <argument>}``         → node built per the operator registry
- identifier text                      → previously bound node (named reference)

Compilation appends nodes to an ``ExpressionGraph`` bottom-up and returns
the handle of the root. Errors are raised at the point of failure with the
path that led there and propagate unchanged. Operator nesting is limited to
``max_depth`` levels (100 by default); deeper documents raise a
``StructuralError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from kinesim.dsl.coercion import coerce_float, coerce_name, is_identifier
from kinesim.dsl.errors import (
    AmbiguousOperatorError,
    MissingLimitError,
    StructuralError,
    TypeCoercionError,
    UndefinedReferenceError,
    UnknownJointError,
    UnknownOperatorError,
    UnsupportedShapeError,
    format_path,
)
from kinesim.dsl.graph import ExpressionGraph
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
from kinesim.dsl.registry import (
    ArgumentShape,
    OperatorRegistry,
    OperatorSpec,
    default_registry,
)
from kinesim.joints import JointResolver
from kinesim.logging import get_logger

__all__ = ["ExpressionCompiler"]

logger = get_logger(__name__)

Path = tuple[str, ...]

DEFAULT_MAX_DEPTH = 100


def _is_sequence(document: Any) -> bool:
    return isinstance(document, Sequence) and not isinstance(document, (str, bytes))


class ExpressionCompiler:
    """Compiles expression documents into one ``ExpressionGraph``.

    Attributes:
        resolver: Joint model used to bind joint names.
        graph: Graph that receives every compiled node.
        registry: Operator table.
        max_depth: Deepest operator nesting accepted in one expression.

    Example:
        ```python
        compiler = ExpressionCompiler(model)
        handle = compiler.compile({"add": [{"pos-of": "j1"}, 2.0]})
        compiler.graph.evaluate(handle)
        ```
    """

    def __init__(
        self,
        resolver: JointResolver,
        graph: ExpressionGraph | None = None,
        registry: OperatorRegistry | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.resolver = resolver
        self.graph = graph if graph is not None else ExpressionGraph(resolver.state)
        self.registry = registry if registry is not None else default_registry()
        self.max_depth = max_depth
        self._depth = 0

    def compile(self, document: Any, path: Path = ()) -> NodeHandle:
        """Compile ``document`` and return the handle of its root node.

        Args:
            document: Parsed YAML value of one expression.
            path: Breadcrumbs locating ``document`` in the whole
                configuration, used in error messages.

        Raises:
            ExpressionCompileError: A subclass describing the first problem
                found.
        """
        if isinstance(document, Mapping):
            return self._compile_nested(document, path)
        if isinstance(document, bool):
            raise TypeCoercionError(
                "number", document=document, path=path, detail="booleans are not numbers"
            )
        if isinstance(document, str):
            return self._compile_text(document, path)
        if isinstance(document, (int, float)):
            coerced = coerce_float(document)
            if not coerced.ok or coerced.value is None:
                raise TypeCoercionError(
                    "number", document=document, path=path, detail=coerced.error
                )
            return self.graph.add(Constant(coerced.value))
        raise UnsupportedShapeError(document, path=path)

    def _compile_nested(self, document: Mapping[Any, Any], path: Path) -> NodeHandle:
        # Each operator level costs a few interpreter stack frames.
        if self._depth >= self.max_depth:
            raise StructuralError(
                f"Expression nested deeper than {self.max_depth} operators",
                document=document,
                path=path,
            )
        self._depth += 1
        try:
            return self._compile_operator(document, path)
        finally:
            self._depth -= 1

    def _compile_text(self, text: str, path: Path) -> NodeHandle:
        coerced = coerce_float(text)
        if coerced.ok and coerced.value is not None:
            return self.graph.add(Constant(coerced.value))
        name = text.strip()
        if not is_identifier(name):
            raise TypeCoercionError(
                "number or expression name",
                document=text,
                path=path,
                detail=coerced.error,
            )
        handle = self.graph.lookup(name)
        if handle is None:
            raise UndefinedReferenceError(
                name, available=self.graph.bindings, document=text, path=path
            )
        return handle

    def _compile_operator(self, document: Mapping[Any, Any], path: Path) -> NodeHandle:
        if len(document) != 1:
            raise AmbiguousOperatorError(document.keys(), document=document, path=path)

        ((key, argument),) = document.items()
        spec = self.registry.find(key) if isinstance(key, str) else None
        if spec is None:
            raise UnknownOperatorError(
                str(key),
                available=self.registry.keys(),
                document=document,
                path=path,
            )

        if spec.shape is ArgumentShape.JOINT_NAME:
            handle = self._compile_joint_accessor(spec, argument, (*path, spec.keyword))
        elif spec.shape is ArgumentShape.PAIR:
            # First element is stored as right, second as left.
            right, left = self._operands(spec, argument, path)
            handle = self.graph.add(
                BinaryOp(BinaryKind(spec.kind), left=left, right=right)
            )
        else:
            (operand,) = self._operands(spec, argument, path)
            handle = self.graph.add(UnaryOp(UnaryKind(spec.kind), operand))

        logger.debug(
            "expression_compiled",
            operator=spec.keyword,
            path=format_path((*path, spec.keyword)),
            handle=handle,
        )
        return handle

    def _operands(
        self, spec: OperatorSpec, argument: Any, path: Path
    ) -> list[NodeHandle]:
        if not _is_sequence(argument) or len(argument) != spec.shape.arity:
            raise StructuralError(
                f"'{spec.keyword}' takes a {spec.shape.value}",
                document=argument,
                path=(*path, spec.keyword),
            )
        return [
            self.compile(element, (*path, f"{spec.keyword}[{position}]"))
            for position, element in enumerate(argument)
        ]

    def _compile_joint_accessor(
        self, spec: OperatorSpec, argument: Any, path: Path
    ) -> NodeHandle:
        coerced = coerce_name(argument)
        if not coerced.ok or coerced.value is None:
            raise TypeCoercionError(
                "joint name", document=argument, path=path, detail=coerced.error
            )
        joint_name = coerced.value
        if not self.resolver.has_joint(joint_name):
            raise UnknownJointError(joint_name, document=argument, path=path)

        limits = self.resolver.joint_limits(joint_name)
        missing = limits.missing(spec.required_limits)
        if missing:
            raise MissingLimitError(joint_name, missing, document=argument, path=path)

        kind = spec.kind
        node: ExpressionNode
        if isinstance(kind, SignalKind):
            node = JointSignal(kind, self.resolver.joint_index(joint_name), joint_name)
        elif isinstance(kind, FractionKind):
            node = JointSignalFraction(
                kind, self.resolver.joint_index(joint_name), limits, joint_name
            )
        elif isinstance(kind, LimitKind):
            node = JointLimitConst(kind, limits, joint_name)
        else:
            raise TypeError(f"Operator '{spec.keyword}' does not take a joint name")
        return self.graph.add(node)
