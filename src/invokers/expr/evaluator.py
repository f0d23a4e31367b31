"""
Expression evaluator.

Evaluates an AST against a set of variable bindings and returns a value.

Soft failure semantics:
- Unknown identifiers, missing properties and out-of-range indices evaluate
  to UNDEFINED instead of raising.
- Arithmetic involving null, UNDEFINED or NaN yields NaN; relational
  comparisons involving them yield False.
- Deny-listed identifiers raise SecurityError, division by the number zero
  raises DivisionByZeroError and nesting past the recursion ceiling raises
  ResourceLimitError.

Both operands of ``&&`` and ``||`` are always evaluated.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .ast import (
    ArrayAccessNode,
    AstNode,
    BinaryOpNode,
    ConditionalNode,
    FunctionCallNode,
    IdentifierNode,
    LiteralNode,
    MemberAccessNode,
    UnaryOpNode,
)
from .builtins import BUILTIN_FUNCTIONS, BuiltinContext, FunctionRegistry, call_builtin
from .errors import DivisionByZeroError, EvaluationError, ResourceLimitError, SecurityError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_recursion_depth
from .sandbox import ContextSanitizer, HostObjectAdapter, is_safe_property
from .values import (
    NAN,
    UNDEFINED,
    ExprValue,
    is_nan,
    is_nullish,
    is_number,
    is_object,
    is_truthy,
    loose_equals,
    normalize_number,
    strict_equals,
    to_js_string,
    to_number,
    to_primitive,
)

_ARITHMETIC_OPERATORS = frozenset({"+", "-", "*", "/", "%"})


@dataclass
class EvaluationContext:
    """Evaluation context with variable bindings."""

    bindings: Optional[Mapping[str, Any]] = None
    """Variable bindings available to expressions. Never mutated."""

    limits: Optional[ExpressionLimits] = None
    """Expression limits."""

    source: Optional[str] = None
    """Source expression for error reporting."""

    functions: Optional[FunctionRegistry] = None
    """Helper function registry."""

    now: Optional[float] = None
    """Wall-clock time for time-relative helpers, in seconds since the epoch."""


@dataclass
class EvaluationResult:
    """Result of expression evaluation."""

    value: ExprValue
    """The evaluated value."""

    success: bool
    """Whether evaluation succeeded."""

    error: Optional[str] = None
    """Error message if evaluation failed."""

    error_type: Optional[str] = None
    """Class name of the error if evaluation failed."""


class Evaluator:
    """
    Evaluates an AST node and returns the result.

    One evaluator serves one evaluation: it owns a sanitized copy of the
    bindings taken at construction.
    """

    def __init__(self, context: EvaluationContext):
        self._limits = context.limits or DEFAULT_EXPRESSION_LIMITS
        self._source = context.source or ""
        self._functions = (
            BUILTIN_FUNCTIONS if context.functions is None else context.functions
        )
        self._now = context.now
        self._bindings: Dict[str, Any] = ContextSanitizer(self._limits).sanitize_context(
            context.bindings
        )

    @property
    def bindings(self) -> Mapping[str, Any]:
        return self._bindings

    def evaluate(self, node: AstNode) -> ExprValue:
        """Evaluates an AST node and returns the value."""
        try:
            return self._evaluate(node, 1)
        except RecursionError:
            raise ResourceLimitError(
                "max_recursion_depth",
                self._limits.max_recursion_depth,
                position=node.position,
                expression=self._source,
            ) from None

    def _evaluate(self, node: AstNode, depth: int) -> ExprValue:
        check_recursion_depth(depth, self._limits, node.position, self._source)

        if isinstance(node, LiteralNode):
            return node.value

        if isinstance(node, IdentifierNode):
            return self._evaluate_identifier(node)

        if isinstance(node, BinaryOpNode):
            return self._evaluate_binary_op(node, depth)

        if isinstance(node, UnaryOpNode):
            return self._evaluate_unary_op(node, depth)

        if isinstance(node, MemberAccessNode):
            obj = self._evaluate(node.object, depth + 1)
            return self._read_property(obj, node.property)

        if isinstance(node, ArrayAccessNode):
            return self._evaluate_array_access(node, depth)

        if isinstance(node, ConditionalNode):
            test = self._evaluate(node.test, depth + 1)
            branch = node.consequent if is_truthy(test) else node.alternate
            return self._evaluate(branch, depth + 1)

        if isinstance(node, FunctionCallNode):
            return self._evaluate_function_call(node, depth)

        raise EvaluationError(
            f"Unknown AST node type: {type(node).__name__}",
            getattr(node, "position", None),
            self._source,
        )

    def _evaluate_identifier(self, node: IdentifierNode) -> ExprValue:
        """Evaluates an identifier reference."""
        if not is_safe_property(node.name, self._limits):
            raise SecurityError(
                f"Access to '{node.name}' is not allowed", node.position, self._source
            )
        return self._bindings.get(node.name, UNDEFINED)

    def _read_property(self, obj: ExprValue, name: Any) -> ExprValue:
        """Reads a named property; anything not readable is UNDEFINED."""
        if is_nullish(obj) or not is_safe_property(name, self._limits):
            return UNDEFINED

        if isinstance(obj, dict):
            return obj.get(name, UNDEFINED)

        if isinstance(obj, HostObjectAdapter):
            return obj.get(name)

        if isinstance(obj, (list, str)):
            if name == "length":
                return len(obj)
            if name.isdigit() and name.isascii():
                return self._read_index(obj, int(name))

        return UNDEFINED

    def _read_index(self, obj: ExprValue, index: int) -> ExprValue:
        if index < 0 or index > self._limits.max_array_index:
            return UNDEFINED
        if isinstance(obj, (list, str)):
            return obj[index] if index < len(obj) else UNDEFINED
        if isinstance(obj, dict):
            return obj.get(str(index), UNDEFINED)
        return UNDEFINED

    def _evaluate_array_access(self, node: ArrayAccessNode, depth: int) -> ExprValue:
        """Evaluates index access (obj[index])."""
        obj = self._evaluate(node.object, depth + 1)
        index = self._evaluate(node.index, depth + 1)

        if isinstance(index, str):
            return self._read_property(obj, index)

        if is_number(index) and not is_nan(index) and not math.isinf(index):
            if index != int(index):
                return UNDEFINED
            return self._read_index(obj, int(index))

        # Only string and integer indices are allowed
        return UNDEFINED

    def _evaluate_function_call(self, node: FunctionCallNode, depth: int) -> ExprValue:
        """Evaluates a helper function call."""
        args = [self._evaluate(arg, depth + 1) for arg in node.args]
        builtin_context = BuiltinContext(
            limits=self._limits,
            position=node.position,
            source=self._source,
            now=self._now,
        )
        return call_builtin(node.name, args, builtin_context, self._functions)

    def _evaluate_unary_op(self, node: UnaryOpNode, depth: int) -> ExprValue:
        """Evaluates a unary operation."""
        value = self._evaluate(node.operand, depth + 1)

        if node.operator == "!":
            return not is_truthy(value)

        if node.operator == "-":
            return -to_number(value)

        raise EvaluationError(
            f"Unknown unary operator: {node.operator}", node.position, self._source
        )

    def _evaluate_binary_op(self, node: BinaryOpNode, depth: int) -> ExprValue:
        """Evaluates a binary operation. Both operands are always evaluated."""
        left = self._evaluate(node.left, depth + 1)
        right = self._evaluate(node.right, depth + 1)
        operator = node.operator

        if _is_missing(left) or _is_missing(right):
            return self._evaluate_missing_operand(operator, left, right)

        if operator == "+":
            if isinstance(left, str) or isinstance(right, str) or is_object(left) or is_object(right):
                return to_js_string(left) + to_js_string(right)
            return normalize_number(to_number(left) + to_number(right))

        if operator == "-":
            return normalize_number(to_number(left) - to_number(right))

        if operator == "*":
            return normalize_number(_multiply(to_number(left), to_number(right)))

        if operator == "/":
            if is_number(right) and right == 0:
                raise DivisionByZeroError(node.position, self._source)
            return _divide(to_number(left), to_number(right))

        if operator == "%":
            return _remainder(to_number(left), to_number(right))

        if operator == "===":
            return strict_equals(left, right)

        if operator == "!==":
            return not strict_equals(left, right)

        if operator == "==":
            return loose_equals(left, right)

        if operator == "!=":
            return not loose_equals(left, right)

        if operator in ("<", ">", "<=", ">="):
            return _compare(operator, left, right)

        if operator == "&&":
            return right if is_truthy(left) else left

        if operator == "||":
            return left if is_truthy(left) else right

        raise EvaluationError(
            f"Unknown binary operator: {operator}", node.position, self._source
        )

    @staticmethod
    def _evaluate_missing_operand(operator: str, left: ExprValue, right: ExprValue) -> ExprValue:
        """Reduced rule set used when either operand is null, UNDEFINED or NaN."""
        if operator == "===":
            return strict_equals(left, right)
        if operator == "!==":
            return not strict_equals(left, right)
        if operator == "==":
            return loose_equals(left, right)
        if operator == "!=":
            return not loose_equals(left, right)
        if operator == "&&":
            return right if is_truthy(left) else left
        if operator == "||":
            return left if is_truthy(left) else right
        if operator in _ARITHMETIC_OPERATORS:
            return NAN
        return False


def _is_missing(value: ExprValue) -> bool:
    return is_nullish(value) or is_nan(value)


def _multiply(left: float, right: float) -> float:
    if is_nan(left) or is_nan(right):
        return NAN
    if (math.isinf(left) and right == 0) or (math.isinf(right) and left == 0):
        return NAN
    return left * right


def _divide(left: float, right: float) -> float:
    if is_nan(left) or is_nan(right):
        return NAN
    if right == 0:
        # Only reachable through coercion, e.g. 1 / false
        if left == 0:
            return NAN
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    try:
        return left / right
    except OverflowError:
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


def _remainder(left: float, right: float) -> float:
    if is_nan(left) or is_nan(right) or right == 0 or math.isinf(left):
        return NAN
    if math.isinf(right):
        return left
    if isinstance(left, int) and isinstance(right, int):
        # Result takes the sign of the dividend
        result = abs(left) % abs(right)
        return -result if left < 0 else result
    return math.fmod(left, right)


def _compare(operator: str, left: ExprValue, right: ExprValue) -> bool:
    left = to_primitive(left)
    right = to_primitive(right)

    if not (isinstance(left, str) and isinstance(right, str)):
        left = to_number(left)
        right = to_number(right)
        if is_nan(left) or is_nan(right):
            return False

    if operator == "<":
        return left < right
    if operator == ">":
        return left > right
    if operator == "<=":
        return left <= right
    return left >= right


def evaluate(ast: AstNode, context: EvaluationContext) -> ExprValue:
    """
    Evaluates an AST against a context and returns the value.

    Args:
        ast: The AST to evaluate
        context: The evaluation context with bindings

    Returns:
        The evaluated value; UNDEFINED for missing data

    Raises:
        SecurityError: If a deny-listed identifier is referenced
        DivisionByZeroError: If the expression divides by zero
        ResourceLimitError: If the recursion ceiling is exceeded
        EvaluationError: If a helper call fails
    """
    return Evaluator(context).evaluate(ast)
