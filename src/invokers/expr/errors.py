"""
Error types for the expression evaluation engine.

All expression errors extend ExpressionError for consistent handling.
"""

from typing import Optional


class ExpressionError(Exception):
    """
    Base error class for all expression-related errors.
    """

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.position = position
        self.expression = expression

    def format_with_context(self) -> str:
        """
        Returns a formatted error message with position context.
        """
        if self.expression is None or self.position is None:
            return self.message

        pointer = " " * self.position + "^"
        return f"{self.message}\n  {self.expression}\n  {pointer}"


class ExpressionSyntaxError(ExpressionError):
    """
    Malformed expression. Raised by the tokenizer and the parser.
    """

    pass


class TokenizerError(ExpressionSyntaxError):
    """
    Error thrown during tokenization (lexical analysis).
    """

    pass


class ParseError(ExpressionSyntaxError):
    """
    Error thrown during parsing (syntax analysis).
    """

    pass


class SecurityError(ExpressionError):
    """
    Error thrown when an expression touches a blocked identifier, property
    or pattern. Never degraded to a soft failure.
    """

    pass


class ResourceLimitError(ExpressionError):
    """
    Error thrown when a length, token, nesting or recursion ceiling is exceeded.
    """

    def __init__(
        self,
        limit_name: str,
        limit: int,
        actual: Optional[int] = None,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        if actual is None:
            message = f"Limit exceeded: {limit_name} (limit: {limit})"
        else:
            message = f"Limit exceeded: {limit_name} (limit: {limit}, actual: {actual})"
        super().__init__(message, position, expression)
        self.limit_name = limit_name
        self.limit = limit
        self.actual = actual


class EvaluationError(ExpressionError):
    """
    Error thrown during evaluation (runtime error).
    """

    pass


class DivisionByZeroError(EvaluationError):
    """
    Error thrown when an expression divides by the number zero.
    """

    def __init__(
        self,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        super().__init__("Division by zero", position, expression)


class BuiltinError(EvaluationError):
    """
    Error thrown when a helper function encounters an error.
    """

    def __init__(
        self,
        function_name: str,
        message: str,
        position: Optional[int] = None,
        expression: Optional[str] = None,
    ):
        full_message = f"{function_name}: {message}"
        super().__init__(full_message, position, expression)
        self.function_name = function_name
