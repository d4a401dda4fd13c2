"""Fake-controller expression DSL.

Expressions are written as nested YAML values instead of text, so the
"parser" is a recursive walk over the document:

    position:
      add:
        - {pos-of: shoulder}
        - {mul: [0.5, {f-vel-of: elbow}]}

Module Structure
----------------
- nodes.py: tagged node variants (Constant, BinaryOp, UnaryOp, joint nodes)
- graph.py: ExpressionGraph arena and evaluator, BoundExpression
- registry.py: operator keyword table
- coercion.py: scalar coercion results
- compiler.py: ExpressionCompiler (one expression document → graph handle)
- controllers.py: compile_controllers (whole controller document)
- errors.py: compile error hierarchy

Compiled graphs are sealed and side-effect free, and may be evaluated from
several threads at once.
"""

from __future__ import annotations

from kinesim.dsl.compiler import ExpressionCompiler
from kinesim.dsl.controllers import (
    ChannelValues,
    FakeControllers,
    compile_controllers,
    load_controller_document,
    load_controller_file,
)
from kinesim.dsl.errors import (
    AmbiguousOperatorError,
    ControllerParseError,
    DSLError,
    ExpressionCompileError,
    GraphSealedError,
    MissingLimitError,
    StructuralError,
    TypeCoercionError,
    UndefinedReferenceError,
    UnknownJointError,
    UnknownOperatorError,
    UnsupportedShapeError,
)
from kinesim.dsl.graph import BoundExpression, ExpressionGraph
from kinesim.dsl.registry import (
    ArgumentShape,
    OperatorRegistry,
    OperatorSpec,
    default_registry,
)

__all__: list[str] = [
    # Compilation
    "ExpressionCompiler",
    "compile_controllers",
    "load_controller_document",
    "load_controller_file",
    "FakeControllers",
    "ChannelValues",
    # Graph
    "ExpressionGraph",
    "BoundExpression",
    # Registry
    "ArgumentShape",
    "OperatorRegistry",
    "OperatorSpec",
    "default_registry",
    # Errors
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
]
