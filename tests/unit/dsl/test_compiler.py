from __future__ import annotations

import math
import textwrap
from typing import Any

import pytest
import yaml

from kinesim.dsl.compiler import ExpressionCompiler
from kinesim.dsl.controllers import load_controller_document
from kinesim.dsl.errors import (
    AmbiguousOperatorError,
    MissingLimitError,
    StructuralError,
    TypeCoercionError,
    UndefinedReferenceError,
    UnknownJointError,
    UnknownOperatorError,
    UnsupportedShapeError,
)
from kinesim.dsl.graph import ExpressionGraph
from kinesim.dsl.nodes import (
    BinaryKind,
    BinaryOp,
    Constant,
    JointSignal,
    SignalKind,
)
from kinesim.dsl.registry import ArgumentShape, OperatorRegistry, default_registry
from kinesim.joints import JointModel, JointSpec


@pytest.fixture
def compiler(joint_model: JointModel) -> ExpressionCompiler:
    return ExpressionCompiler(joint_model)


def _value(compiler: ExpressionCompiler, document: Any) -> float:
    return compiler.graph.evaluate(compiler.compile(document))


class TestConstants:
    @pytest.mark.parametrize(
        ("document", "expected"),
        [(2, 2.0), (-0.5, -0.5), ("3.25", 3.25), ("1e-3", 0.001), (0, 0.0)],
    )
    def test_constant_round_trip(
        self, compiler: ExpressionCompiler, document: Any, expected: float
    ) -> None:
        handle = compiler.compile(document)
        assert compiler.graph.node(handle) == Constant(expected)
        assert compiler.graph.evaluate(handle) == expected

    def test_yaml_infinity(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, yaml.safe_load(".inf")) == math.inf

    @pytest.mark.parametrize("document", [True, False])
    def test_booleans_rejected(
        self, compiler: ExpressionCompiler, document: bool
    ) -> None:
        with pytest.raises(TypeCoercionError):
            compiler.compile(document)

    @pytest.mark.parametrize("document", ["1.2.3", "not a number", "-"])
    def test_non_numeric_text(self, compiler: ExpressionCompiler, document: str) -> None:
        with pytest.raises(TypeCoercionError):
            compiler.compile(document)

    @pytest.mark.parametrize("document", [None, [1.0, 2.0], []])
    def test_unsupported_shapes(
        self, compiler: ExpressionCompiler, document: Any
    ) -> None:
        with pytest.raises(UnsupportedShapeError):
            compiler.compile(document)


class TestJointAccessors:
    def test_pos_of(
        self, compiler: ExpressionCompiler, joint_model: JointModel
    ) -> None:
        handle = compiler.compile({"pos-of": "j2"})
        assert compiler.graph.node(handle) == JointSignal(SignalKind.POSITION, 1, "j2")

        joint_model.set_state("j2", position=1.25)
        assert compiler.graph.evaluate(handle) == 1.25

    def test_f_pos_of(
        self, compiler: ExpressionCompiler, joint_model: JointModel
    ) -> None:
        joint_model.set_state("j1", position=0.5)
        assert _value(compiler, {"f-pos-of": "j1"}) == 0.75

    def test_limit_constants(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, {"pos-lim-low-of": "j2"}) == -2.0
        assert _value(compiler, {"pos-lim-hig-of": "j2"}) == 2.0
        assert _value(compiler, {"pos-lim-len-of": "j2"}) == 4.0
        assert _value(compiler, {"vel-lim-of": "j3"}) == 4.0
        assert _value(compiler, {"eff-lim-of": "j3"}) == 20.0

    def test_unknown_joint(self, compiler: ExpressionCompiler) -> None:
        with pytest.raises(UnknownJointError) as exc_info:
            compiler.compile({"pos-of": "j9"}, ("j2", "position"))
        assert exc_info.value.joint_name == "j9"
        assert exc_info.value.path == ("j2", "position", "pos-of")

    @pytest.mark.parametrize("argument", [True, 1.5, None, ["j1"], ""])
    def test_joint_name_must_be_text(
        self, compiler: ExpressionCompiler, argument: Any
    ) -> None:
        with pytest.raises(TypeCoercionError):
            compiler.compile({"vel-of": argument})

    @pytest.mark.parametrize(
        ("keyword", "missing"),
        [
            ("f-pos-of", ("lower", "upper")),
            ("pos-lim-low-of", ("lower",)),
            ("pos-lim-len-of", ("lower", "upper")),
        ],
    )
    def test_missing_limit(
        self, compiler: ExpressionCompiler, keyword: str, missing: tuple[str, ...]
    ) -> None:
        with pytest.raises(MissingLimitError) as exc_info:
            compiler.compile({keyword: "j3"})
        assert exc_info.value.joint_name == "j3"
        assert exc_info.value.limits == missing

    def test_integer_joint_name(self) -> None:
        """Unquoted numeric joint names arrive from YAML as int."""
        model = JointModel([JointSpec("1"), JointSpec("on")])
        compiler = ExpressionCompiler(model)
        model.set_state("1", position=0.5)
        model.set_state("on", position=2.0)

        document = load_controller_document("add: [{pos-of: 1}, {pos-of: on}]")
        assert compiler.graph.evaluate(compiler.compile(document)) == 2.5

    def test_continuous_joint_signals_need_no_limits(
        self, compiler: ExpressionCompiler
    ) -> None:
        assert _value(compiler, {"pos-of": "j3"}) == 0.0


class TestOperators:
    def test_add_joint_and_constant(
        self, compiler: ExpressionCompiler, joint_model: JointModel
    ) -> None:
        joint_model.set_state("j1", position=3.0)
        assert _value(compiler, {"add": [{"pos-of": "j1"}, 2.0]}) == 5.0

    def test_sub_is_second_minus_first(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, {"sub": [1.0, 4.0]}) == 3.0
        assert _value(compiler, {"sub": [4.0, 1.0]}) == -3.0

    def test_div_is_second_over_first(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, {"div": [4.0, 1.0]}) == 0.25

    def test_operand_storage(self, compiler: ExpressionCompiler) -> None:
        handle = compiler.compile({"sub": [1.0, 4.0]})
        node = compiler.graph.node(handle)
        assert isinstance(node, BinaryOp)
        assert node.kind is BinaryKind.SUB
        assert compiler.graph.node(node.right) == Constant(1.0)
        assert compiler.graph.node(node.left) == Constant(4.0)

    @pytest.mark.parametrize("keyword", ["add", "mul", "min", "max"])
    def test_commutative_operators(
        self, compiler: ExpressionCompiler, keyword: str
    ) -> None:
        forward = _value(compiler, {keyword: [-1.5, 3.0]})
        backward = _value(compiler, {keyword: [3.0, -1.5]})
        assert forward == backward

    def test_division_by_zero(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, {"div": [0.0, 1.0]}) == math.inf
        assert math.isnan(_value(compiler, {"div": [0.0, 0.0]}))

    def test_unary(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, {"abs": [-2.5]}) == 2.5
        assert _value(compiler, {"cos": [0.0]}) == 1.0
        assert _value(compiler, {"sin": [{"mul": [0.0, 5.0]}]}) == 0.0

    def test_nested_document(
        self, compiler: ExpressionCompiler, joint_model: JointModel
    ) -> None:
        joint_model.set_state("j1", position=0.5, velocity=1.0)
        document = yaml.safe_load(
            textwrap.dedent(
                """
                max:
                  - {mul: [{f-vel-of: j1}, {vel-lim-of: j2}]}
                  - {sub: [{pos-lim-low-of: j1}, {pos-of: j1}]}
                """
            )
        )
        # max(0.5 * 1.0, 0.5 - (-1.0))
        assert _value(compiler, document) == 1.5

    def test_unknown_operator(self, compiler: ExpressionCompiler) -> None:
        with pytest.raises(UnknownOperatorError) as exc_info:
            compiler.compile({"pow": [1.0, 2.0]}, ("j1", "effort"))
        assert exc_info.value.operator == "pow"
        assert exc_info.value.path == ("j1", "effort")
        assert "sub" in exc_info.value.available

    def test_non_string_operator_key(self, compiler: ExpressionCompiler) -> None:
        with pytest.raises(UnknownOperatorError):
            compiler.compile({1: [1.0, 2.0]})

    @pytest.mark.parametrize(
        "document", [{}, {"add": [1.0, 2.0], "sub": [1.0, 2.0]}]
    )
    def test_ambiguous_mapping(
        self, compiler: ExpressionCompiler, document: dict[str, Any]
    ) -> None:
        with pytest.raises(AmbiguousOperatorError):
            compiler.compile(document)

    @pytest.mark.parametrize(
        "document",
        [
            {"add": [1.0]},
            {"add": [1.0, 2.0, 3.0]},
            {"add": 1.0},
            {"add": "1.0"},
            {"abs": []},
            {"abs": [1.0, 2.0]},
            {"sin": 0.5},
        ],
    )
    def test_wrong_operand_count(
        self, compiler: ExpressionCompiler, document: dict[str, Any]
    ) -> None:
        with pytest.raises(StructuralError):
            compiler.compile(document)

    def test_error_path_points_at_operand(self, compiler: ExpressionCompiler) -> None:
        with pytest.raises(UnknownJointError) as exc_info:
            compiler.compile(
                {"add": [1.0, {"mul": [2.0, {"pos-of": "j9"}]}]},
                ("j2", "position"),
            )
        assert exc_info.value.path == (
            "j2",
            "position",
            "add[1]",
            "mul[1]",
            "pos-of",
        )
        assert "j2 > position > add[1] > mul[1] > pos-of" in exc_info.value.message


class TestNamedReferences:
    def test_bound_name_resolves_to_existing_node(self, joint_model: JointModel) -> None:
        graph = ExpressionGraph(joint_model.state)
        gain = graph.add(Constant(0.5))
        graph.bind("gain", gain)
        compiler = ExpressionCompiler(joint_model, graph=graph)

        handle = compiler.compile({"mul": ["gain", 4.0]})
        assert graph.evaluate(handle) == 2.0
        assert compiler.compile("gain") == gain

    def test_undefined_name(self, compiler: ExpressionCompiler) -> None:
        with pytest.raises(UndefinedReferenceError) as exc_info:
            compiler.compile("offset", ("j1", "position"))
        assert exc_info.value.name == "offset"
        assert exc_info.value.path == ("j1", "position")

    def test_compiler_never_binds(self, compiler: ExpressionCompiler) -> None:
        compiler.compile({"add": [1.0, 2.0]})
        assert len(compiler.graph.bindings) == 0


class TestDeterminism:
    def test_recompiling_yields_identical_graphs(self, joint_model: JointModel) -> None:
        document = {"div": [{"f-eff-of": "j2"}, {"abs": [{"vel-of": "j1"}]}]}
        first = ExpressionCompiler(joint_model)
        second = ExpressionCompiler(joint_model)

        assert first.compile(document) == second.compile(document)
        assert list(first.graph) == list(second.graph)


def test_custom_registry_restricts_operators(joint_model: JointModel) -> None:
    registry = OperatorRegistry(
        spec for spec in default_registry() if spec.shape is ArgumentShape.JOINT_NAME
    )
    compiler = ExpressionCompiler(joint_model, registry=registry)

    assert compiler.compile({"pos-of": "j1"}) == 0
    with pytest.raises(UnknownOperatorError):
        compiler.compile({"add": [1.0, 2.0]})


def _nested(operator: str, depth: int) -> Any:
    document: Any = 1.0
    for _ in range(depth):
        document = {operator: [document]}
    return document


class TestNestingLimit:
    """Operator nesting is bounded so deep documents fail cleanly."""

    def test_deeply_nested_expression_is_a_compile_error(
        self, compiler: ExpressionCompiler
    ) -> None:
        with pytest.raises(StructuralError, match="nested deeper than 100") as exc_info:
            compiler.compile(_nested("abs", 1000), ("j1", "position"))

        error = exc_info.value
        assert error.path[:3] == ("j1", "position", "abs[0]")
        assert len(error.path) == 2 + 100
        assert len(error.message) < 3000

    def test_nesting_at_the_limit_compiles(self, compiler: ExpressionCompiler) -> None:
        assert _value(compiler, _nested("abs", 100)) == 1.0

    def test_custom_limit(self, joint_model: JointModel) -> None:
        compiler = ExpressionCompiler(joint_model, max_depth=3)
        assert _value(compiler, _nested("cos", 3)) == pytest.approx(
            math.cos(math.cos(math.cos(1.0)))
        )
        with pytest.raises(StructuralError):
            compiler.compile(_nested("cos", 4))

    def test_depth_resets_after_failure(self, joint_model: JointModel) -> None:
        compiler = ExpressionCompiler(joint_model, max_depth=5)
        with pytest.raises(StructuralError):
            compiler.compile(_nested("abs", 6))
        assert _value(compiler, _nested("abs", 5)) == 1.0
