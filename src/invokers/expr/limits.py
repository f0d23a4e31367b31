"""
Resource limits for expression parsing, evaluation and interpolation.

These limits protect against resource exhaustion attacks and
overly complex expressions. Override them per engine with
``dataclasses.replace(DEFAULT_EXPRESSION_LIMITS, ...)`` or through
``EngineConfig``.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import ResourceLimitError


@dataclass(frozen=True)
class ExpressionLimits:
    """Expression limits configuration."""

    # Maximum expression string length in characters
    max_expression_length: int = 10000

    # Maximum number of tokens (excluding EOF)
    max_token_count: int = 1000

    # Maximum evaluator recursion depth (AST nesting)
    max_recursion_depth: int = 100

    # Maximum parser nesting (parentheses, unary chains, ternaries, indexes)
    max_parse_depth: int = 50

    # Number of parsed expressions kept in the LRU cache
    cache_capacity: int = 100

    # Evaluations allowed per rate-limit window
    max_evaluations_per_window: int = 1000

    # Rate-limit window in milliseconds
    rate_limit_window_ms: int = 1000

    # Maximum template length before truncation
    max_template_length: int = 10000

    # Maximum placeholders evaluated per template
    max_placeholders: int = 50

    # Maximum nesting depth copied from the context
    max_sanitize_depth: int = 50

    # Maximum keys copied per nested mapping
    max_sanitize_keys: int = 50

    # Maximum elements copied per array
    max_sanitize_array_length: int = 1000

    # Largest integer accepted as an index
    max_array_index: int = 10000

    # Longest property name that may be read
    max_property_name_length: int = 50


# Default expression limits.
#
# These values are chosen to allow reasonable expressions while
# preventing resource exhaustion.
DEFAULT_EXPRESSION_LIMITS = ExpressionLimits()


def check_expression_length(
    expression: str, limits: Optional[ExpressionLimits] = None
) -> None:
    """Validates that expression length is within limits."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if len(expression) > limits.max_expression_length:
        raise ResourceLimitError(
            "max_expression_length", limits.max_expression_length, len(expression)
        )


def check_token_count(count: int, limits: Optional[ExpressionLimits] = None) -> None:
    """Validates the number of tokens produced so far."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if count > limits.max_token_count:
        raise ResourceLimitError("max_token_count", limits.max_token_count, count)


def check_parse_depth(
    depth: int,
    limits: Optional[ExpressionLimits] = None,
    position: Optional[int] = None,
    source: Optional[str] = None,
) -> None:
    """Validates parser nesting depth."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_parse_depth:
        raise ResourceLimitError(
            "max_parse_depth", limits.max_parse_depth, depth, position, source
        )


def check_recursion_depth(
    depth: int,
    limits: Optional[ExpressionLimits] = None,
    position: Optional[int] = None,
    source: Optional[str] = None,
) -> None:
    """Validates evaluator recursion depth."""
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    if depth > limits.max_recursion_depth:
        raise ResourceLimitError(
            "max_recursion_depth", limits.max_recursion_depth, depth, position, source
        )
