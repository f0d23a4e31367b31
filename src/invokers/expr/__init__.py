"""
Sandboxed expression engine.

This module provides a side-effect-free expression language for evaluating
untrusted expressions against a caller-supplied context and for
interpolating ``{{ expr }}`` placeholders into template strings.
"""

# Core types and utilities
from .ast import (
    ArrayAccessNode,
    AstNode,
    AstNodeBase,
    BinaryOperator,
    BinaryOpNode,
    ConditionalNode,
    FunctionCallNode,
    IdentifierNode,
    LiteralNode,
    MemberAccessNode,
    UnaryOperator,
    UnaryOpNode,
    ast_to_string,
)

# Builtins
from .builtins import (
    BUILTIN_FUNCTIONS,
    BuiltinContext,
    BuiltinFunction,
    FunctionRegistry,
    call_builtin,
    is_builtin_function,
)

# Cache and rate limiting
from .cache import CacheStats, ExpressionCache

# Configuration
from .config import ENV_VAR_EXPR_CONFIG, EngineConfig, load_engine_config

# Engine
from .engine import ExpressionEngine, evaluate
from .errors import (
    BuiltinError,
    DivisionByZeroError,
    EvaluationError,
    ExpressionError,
    ExpressionSyntaxError,
    ParseError,
    ResourceLimitError,
    SecurityError,
    TokenizerError,
)

# Evaluator
from .evaluator import (
    EvaluationContext,
    EvaluationResult,
    Evaluator,
)

# Interpolation
from .interpolation import (
    DataContextStore,
    Interpolator,
    generate_uid,
    get_deep_value,
    interpolate,
)
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
)

# Parser
from .parser import (
    Parser,
    parse,
)
from .rate_limiter import SlidingWindowRateLimiter

# Sandbox
from .sandbox import (
    DENIED_IDENTIFIERS,
    ContextSanitizer,
    HostObjectAdapter,
    is_denied_identifier,
    is_safe_property,
    sanitize_context,
)

# Tokenizer
from .tokenizer import (
    Token,
    Tokenizer,
    TokenType,
    tokenize,
)

# Values
from .values import (
    MAX_SAFE_INTEGER,
    NAN,
    UNDEFINED,
    ExprValue,
    get_type_name,
    is_truthy,
    is_undefined,
    loose_equals,
    normalize_number,
    number_from_text,
    strict_equals,
    to_js_string,
    to_number,
)

__all__ = [
    # AST types
    "AstNode",
    "AstNodeBase",
    "LiteralNode",
    "IdentifierNode",
    "MemberAccessNode",
    "ArrayAccessNode",
    "FunctionCallNode",
    "UnaryOpNode",
    "BinaryOpNode",
    "ConditionalNode",
    "UnaryOperator",
    "BinaryOperator",
    "ast_to_string",
    # Errors
    "ExpressionError",
    "ExpressionSyntaxError",
    "TokenizerError",
    "ParseError",
    "SecurityError",
    "ResourceLimitError",
    "EvaluationError",
    "DivisionByZeroError",
    "BuiltinError",
    # Limits
    "ExpressionLimits",
    "DEFAULT_EXPRESSION_LIMITS",
    # Values
    "ExprValue",
    "UNDEFINED",
    "NAN",
    "MAX_SAFE_INTEGER",
    "get_type_name",
    "is_truthy",
    "is_undefined",
    "loose_equals",
    "normalize_number",
    "number_from_text",
    "strict_equals",
    "to_js_string",
    "to_number",
    # Sandbox
    "DENIED_IDENTIFIERS",
    "ContextSanitizer",
    "HostObjectAdapter",
    "is_denied_identifier",
    "is_safe_property",
    "sanitize_context",
    # Tokenizer
    "Token",
    "TokenType",
    "Tokenizer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # Evaluator
    "EvaluationContext",
    "EvaluationResult",
    "Evaluator",
    # Builtins
    "BuiltinFunction",
    "BuiltinContext",
    "FunctionRegistry",
    "BUILTIN_FUNCTIONS",
    "call_builtin",
    "is_builtin_function",
    # Cache and rate limiting
    "CacheStats",
    "ExpressionCache",
    "SlidingWindowRateLimiter",
    # Engine
    "ExpressionEngine",
    "evaluate",
    # Interpolation
    "DataContextStore",
    "Interpolator",
    "generate_uid",
    "get_deep_value",
    "interpolate",
    # Configuration
    "ENV_VAR_EXPR_CONFIG",
    "EngineConfig",
    "load_engine_config",
]
