"""
Expression engine.

``ExpressionEngine`` ties the pipeline together: it asks its rate limiter for
permission, looks up (or compiles) the AST in its LRU cache and runs a fresh
evaluator against the supplied context. Each engine owns its own cache and
limiter; share an engine to share them.
"""

import logging
import time
from typing import Any, Callable, Mapping, Optional

from .ast import AstNode, ast_to_string
from .builtins import FunctionRegistry
from .cache import ExpressionCache
from .config import EngineConfig
from .errors import (
    DivisionByZeroError,
    EvaluationError,
    ExpressionError,
)
from .evaluator import EvaluationContext, EvaluationResult, Evaluator
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits
from .parser import parse
from .rate_limiter import SlidingWindowRateLimiter
from .values import UNDEFINED, ExprValue

logger = logging.getLogger(__name__)


class ExpressionEngine:
    """Evaluates expression strings with caching and rate limiting."""

    def __init__(
        self,
        limits: Optional[ExpressionLimits] = None,
        functions: Optional[FunctionRegistry] = None,
        clock: Optional[Callable[[], float]] = None,
        wall_clock: Optional[Callable[[], float]] = None,
    ):
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._functions = functions
        self._wall_clock = wall_clock or time.time
        self._cache = ExpressionCache(self._limits.cache_capacity)
        self._rate_limiter = SlidingWindowRateLimiter(
            max_events=self._limits.max_evaluations_per_window,
            window_ms=self._limits.rate_limit_window_ms,
            clock=clock,
        )
        # Set while consecutive calls are being denied; only the first one warns
        self._throttled = False

    @classmethod
    def from_config(
        cls, config: EngineConfig | Mapping[str, Any] | None = None, **kwargs: Any
    ) -> "ExpressionEngine":
        """Creates an engine from an EngineConfig or an equivalent mapping."""
        if config is None:
            config = EngineConfig()
        elif not isinstance(config, EngineConfig):
            config = EngineConfig.model_validate(dict(config))
        return cls(limits=config.resolve_limits(), **kwargs)

    @property
    def limits(self) -> ExpressionLimits:
        return self._limits

    @property
    def cache(self) -> ExpressionCache:
        return self._cache

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._rate_limiter

    def compile(self, expression: str) -> AstNode:
        """Returns the AST for an expression, parsing it on a cache miss."""
        return self._cache.get_or_compile(expression, self._parse)

    def _parse(self, expression: str) -> AstNode:
        ast = parse(expression, self._limits)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "expression_compiled",
                extra={"expression": expression, "ast": ast_to_string(ast)},
            )
        return ast

    def evaluate_ast(self, ast: AstNode, context: Optional[Mapping[str, Any]] = None, source: str = "") -> ExprValue:
        """Evaluates a compiled AST. No rate limiting, no error filtering."""
        evaluation_context = EvaluationContext(
            bindings=context,
            limits=self._limits,
            source=source,
            functions=self._functions,
            now=self._wall_clock(),
        )
        return Evaluator(evaluation_context).evaluate(ast)

    def evaluate(self, expression: str, context: Optional[Mapping[str, Any]] = None) -> ExprValue:
        """
        Evaluates an expression string against a context.

        Returns UNDEFINED without raising when the rate limit is exhausted, and
        when a helper call fails (the failure is logged).

        Raises:
            ExpressionSyntaxError: If the expression is malformed
            SecurityError: If the expression touches blocked input
            ResourceLimitError: If a length, token, nesting or recursion ceiling is hit
            DivisionByZeroError: If the expression divides by zero
        """
        if not self._rate_limiter.try_acquire():
            log = logger.debug if self._throttled else logger.warning
            self._throttled = True
            log(
                "expression_rate_limited",
                extra={"limit": self._rate_limiter.max_events},
            )
            return UNDEFINED
        self._throttled = False

        ast = self.compile(expression)
        try:
            return self.evaluate_ast(ast, context, expression)
        except DivisionByZeroError:
            raise
        except EvaluationError as error:
            logger.error(
                "expression_evaluation_failed",
                extra={"expression": expression, "error": str(error)},
            )
            return UNDEFINED

    def evaluate_safe(
        self, expression: str, context: Optional[Mapping[str, Any]] = None
    ) -> EvaluationResult:
        """Evaluates an expression and reports failures in the result instead of raising."""
        try:
            value = self.evaluate(expression, context)
            return EvaluationResult(value=value, success=True)
        except ExpressionError as error:
            return EvaluationResult(
                value=UNDEFINED,
                success=False,
                error=str(error),
                error_type=type(error).__name__,
            )


def evaluate(
    expression: str,
    context: Optional[Mapping[str, Any]] = None,
    engine: Optional[ExpressionEngine] = None,
) -> ExprValue:
    """
    Evaluates an expression string.

    Without an engine the call runs on a throwaway engine, so nothing is
    cached and no rate limit carries over between calls.
    """
    engine = engine or ExpressionEngine()
    return engine.evaluate(expression, context)
