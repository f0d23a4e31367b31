"""
Tests for the expression evaluator.
"""

import dataclasses
import math
from typing import Any

import pytest

from invokers.expr import (
    DEFAULT_EXPRESSION_LIMITS,
    UNDEFINED,
    DivisionByZeroError,
    EvaluationContext,
    EvaluationError,
    Evaluator,
    ExprValue,
    FunctionRegistry,
    IdentifierNode,
    ResourceLimitError,
    SecurityError,
    parse,
)
from invokers.expr.evaluator import evaluate


def eval_expr(
    expression: str,
    bindings: dict[str, Any] | None = None,
    functions: FunctionRegistry | None = None,
    **limit_overrides: int,
) -> ExprValue:
    """Helper to parse and evaluate an expression."""
    limits = dataclasses.replace(DEFAULT_EXPRESSION_LIMITS, **limit_overrides)
    ast = parse(expression, limits)
    context = EvaluationContext(
        bindings=bindings or {},
        limits=limits,
        source=expression,
        functions=functions,
    )
    return evaluate(ast, context)


class TestLiterals:
    """Tests for literal evaluation."""

    def test_evaluates_number_literals(self):
        assert eval_expr("42") == 42
        assert eval_expr("3.14") == pytest.approx(3.14)

    def test_evaluates_string_literal(self):
        assert eval_expr("'hello'") == "hello"

    def test_evaluates_booleans_and_null(self):
        assert eval_expr("true") is True
        assert eval_expr("false") is False
        assert eval_expr("null") is None


class TestIdentifiers:
    """Tests for identifier resolution."""

    def test_resolves_binding(self):
        assert eval_expr("name", {"name": "Ada"}) == "Ada"

    def test_missing_identifier_is_undefined(self):
        assert eval_expr("missing") is UNDEFINED

    def test_this_is_an_ordinary_binding(self):
        assert eval_expr("this.id", {"this": {"id": 7}}) == 7

    def test_denied_identifier_node_raises(self):
        context = EvaluationContext(bindings={"constructor": 1})
        with pytest.raises(SecurityError):
            Evaluator(context).evaluate(IdentifierNode(position=0, name="constructor"))


class TestMemberAccess:
    """Tests for property reads."""

    def test_reads_nested_properties(self):
        bindings = {"user": {"address": {"city": "Paris"}}}
        assert eval_expr("user.address.city", bindings) == "Paris"

    def test_missing_property_is_undefined(self):
        assert eval_expr("user.missing", {"user": {}}) is UNDEFINED

    def test_property_of_null_is_undefined(self):
        assert eval_expr("user.name", {"user": None}) is UNDEFINED
        assert eval_expr("missing.deeply.nested") is UNDEFINED

    def test_property_of_number_is_undefined(self):
        assert eval_expr("n.value", {"n": 5}) is UNDEFINED

    def test_length_of_array_and_string(self):
        assert eval_expr("items.length", {"items": [1, 2, 3]}) == 3
        assert eval_expr("'abc'.length") == 3


class TestIndexAccess:
    """Tests for bracket reads."""

    def test_reads_array_element(self):
        assert eval_expr("items[1]", {"items": ["a", "b", "c"]}) == "b"

    def test_reads_string_key(self):
        assert eval_expr("obj['key']", {"obj": {"key": "value"}}) == "value"

    def test_computed_key(self):
        bindings = {"obj": {"ab": 1}, "suffix": "b"}
        assert eval_expr("obj['a' + suffix]", bindings) == 1

    def test_digit_string_reads_array_element(self):
        assert eval_expr("items['0']", {"items": ["first"]}) == "first"

    def test_out_of_range_is_undefined(self):
        bindings = {"items": [1, 2, 3]}
        assert eval_expr("items[10]", bindings) is UNDEFINED
        assert eval_expr("items[-1]", bindings) is UNDEFINED

    def test_index_beyond_ceiling_is_undefined(self):
        items = list(range(5))
        assert eval_expr("items[10001]", {"items": items}) is UNDEFINED

    def test_fractional_and_non_scalar_indices_are_undefined(self):
        bindings = {"items": [1, 2, 3], "key": [0]}
        assert eval_expr("items[1.5]", bindings) is UNDEFINED
        assert eval_expr("items[key]", bindings) is UNDEFINED
        assert eval_expr("items[true]", bindings) is UNDEFINED

    def test_denied_key_is_undefined(self):
        bindings = {"obj": {"a": 1}}
        assert eval_expr("obj['constructor']", bindings) is UNDEFINED
        assert eval_expr("obj['__proto__']", bindings) is UNDEFINED


class TestArithmetic:
    """Tests for arithmetic operators."""

    def test_precedence(self):
        assert eval_expr("2 + 3 * 4") == 14
        assert eval_expr("(2 + 3) * 4") == 20

    def test_division_produces_fraction(self):
        assert eval_expr("5 / 2") == 2.5
        assert eval_expr("10 / 4") == 2.5

    def test_remainder_follows_dividend_sign(self):
        assert eval_expr("10 % 3") == 1
        assert eval_expr("-7 % 3") == -1

    def test_remainder_by_zero_is_nan(self):
        assert math.isnan(eval_expr("5 % 0"))

    def test_division_by_zero_raises(self):
        with pytest.raises(DivisionByZeroError, match="Division by zero"):
            eval_expr("5 / 0")
        with pytest.raises(DivisionByZeroError):
            eval_expr("0 / 0.0")

    def test_division_by_zero_from_binding_raises(self):
        with pytest.raises(DivisionByZeroError):
            eval_expr("total / count", {"total": 10, "count": 0})

    def test_division_by_coerced_zero_is_infinite(self):
        assert eval_expr("1 / false") == math.inf

    def test_plus_concatenates_strings(self):
        assert eval_expr("'a' + 1") == "a1"
        assert eval_expr("1 + '2'") == "12"
        assert eval_expr("'n: ' + 1.0") == "n: 1"

    def test_plus_concatenates_arrays_as_strings(self):
        assert eval_expr("items + ''", {"items": [1, 2]}) == "1,2"

    def test_booleans_coerce_to_numbers(self):
        assert eval_expr("true + 1") == 2
        assert eval_expr("'6' * '7'") == 42

    def test_unary_minus_coerces(self):
        assert eval_expr("-'5'") == -5
        assert math.isnan(eval_expr("-'abc'"))


class TestComparison:
    """Tests for relational and equality operators."""

    def test_relational_numbers_and_strings(self):
        assert eval_expr("1 < 2") is True
        assert eval_expr("2 <= 1") is False
        assert eval_expr("'a' < 'b'") is True
        assert eval_expr("'10' < 9") is False

    def test_relational_with_non_numeric_string_is_false(self):
        assert eval_expr("'abc' < 1") is False
        assert eval_expr("'abc' >= 1") is False

    def test_loose_and_strict_equality(self):
        assert eval_expr("1 == '1'") is True
        assert eval_expr("1 === '1'") is False
        assert eval_expr("0 == false") is True
        assert eval_expr("'' == 0") is True
        assert eval_expr("1 !== 1") is False
        assert eval_expr("1 != 2") is True

    def test_null_equals_missing_only_loosely(self):
        assert eval_expr("null == missing") is True
        assert eval_expr("null === missing") is False
        assert eval_expr("null == 0") is False


class TestLogical:
    """Tests for logical operators."""

    def test_or_returns_first_truthy_operand(self):
        assert eval_expr("0 || 'default'") == "default"
        assert eval_expr("name || 'anon'", {"name": "Ada"}) == "Ada"
        assert eval_expr("null || 5") == 5

    def test_and_returns_deciding_operand(self):
        assert eval_expr("'a' && 'b'") == "b"
        assert eval_expr("0 && 'b'") == 0

    def test_not(self):
        assert eval_expr("!0") is True
        assert eval_expr("!'a'") is False
        assert eval_expr("!!items", {"items": []}) is True

    def test_both_operands_are_always_evaluated(self):
        with pytest.raises(DivisionByZeroError):
            eval_expr("false && 1 / 0")
        with pytest.raises(EvaluationError, match="Unknown function"):
            eval_expr("true || nope()")


class TestConditional:
    """Tests for the conditional operator."""

    def test_right_associative_chains(self):
        assert eval_expr("1 ? 2 : 0 ? 3 : 4") == 2
        assert eval_expr("0 ? 2 : 1 ? 3 : 4") == 3
        assert eval_expr("0 ? 2 : 0 ? 3 : 4") == 4

    def test_empty_collections_are_truthy(self):
        assert eval_expr("items ? 'yes' : 'no'", {"items": []}) == "yes"
        assert eval_expr("obj ? 'yes' : 'no'", {"obj": {}}) == "yes"

    def test_only_taken_branch_is_evaluated(self):
        assert eval_expr("true ? 1 : 1 / 0") == 1


class TestMissingOperands:
    """Arithmetic and comparison with null, missing values and NaN."""

    def test_arithmetic_yields_nan(self):
        assert math.isnan(eval_expr("missing + 1"))
        assert math.isnan(eval_expr("null * 2"))
        assert math.isnan(eval_expr("user.age - 1", {"user": {}}))

    def test_relational_yields_false(self):
        assert eval_expr("missing > 1") is False
        assert eval_expr("missing < 1") is False
        assert eval_expr("null >= 0") is False

    def test_division_by_missing_is_nan(self):
        assert math.isnan(eval_expr("1 / missing"))


class TestFunctionCalls:
    """Tests for helper calls."""

    def test_calls_builtin_helper(self):
        assert eval_expr("capitalize(name)", {"name": "ada"}) == "Ada"

    def test_custom_registry(self):
        functions: FunctionRegistry = {"double": lambda args, ctx: args[0] * 2}
        assert eval_expr("double(4)", functions=functions) == 8

    def test_unknown_function_raises(self):
        with pytest.raises(EvaluationError, match="Unknown function: nope"):
            eval_expr("nope(1)")


class TestContextHandling:
    """Tests for the context boundary."""

    def test_callables_in_context_are_stripped(self):
        bindings = {"fn": lambda: 1, "obj": {"method": print}}
        assert eval_expr("fn", bindings) is UNDEFINED
        assert eval_expr("obj.method", bindings) is UNDEFINED

    def test_context_is_not_mutated(self):
        bindings = {"user": {"name": "Ada", "tags": ["a"]}}
        snapshot = {"user": {"name": "Ada", "tags": ["a"]}}
        eval_expr("user.name + tags.length", bindings)
        assert bindings == snapshot

    def test_reads_host_object_attributes(self):
        class Address:
            city = "Paris"

        class User:
            def __init__(self):
                self.name = "Ada"
                self._secret = "hidden"
                self.address = Address()

            def greet(self):
                return "hi"

        bindings = {"user": User()}
        assert eval_expr("user.name", bindings) == "Ada"
        assert eval_expr("user.address.city", bindings) == "Paris"
        assert eval_expr("user._secret", bindings) is UNDEFINED
        assert eval_expr("user.greet", bindings) is UNDEFINED
        assert eval_expr("user + ''", bindings) == "[object Object]"


class TestRecursionLimit:
    """Tests for the evaluator depth ceiling."""

    def test_accepts_depth_at_limit(self):
        assert eval_expr("+".join(["1"] * 100)) == 100

    def test_rejects_depth_past_limit(self):
        with pytest.raises(ResourceLimitError) as exc_info:
            eval_expr("+".join(["1"] * 101))
        assert exc_info.value.limit_name == "max_recursion_depth"

    def test_honours_custom_limit(self):
        with pytest.raises(ResourceLimitError):
            eval_expr("1+1+1+1+1+1", max_recursion_depth=5)
        assert eval_expr("1+1+1+1+1", max_recursion_depth=5) == 5


class TestDeterminism:
    """Evaluation is a pure function of the AST and context."""

    def test_same_ast_and_context_give_same_result(self):
        ast = parse("items.length > 1 ? join(items, '-') : 'none'")
        context = EvaluationContext(bindings={"items": ["a", "b"]})
        assert evaluate(ast, context) == evaluate(ast, context) == "a-b"
