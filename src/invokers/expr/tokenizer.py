"""
Tokenizer (lexer) for the expression language.

Converts expression strings into a stream of tokens for the parser and
rejects dangerous input before any parsing happens.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from .errors import SecurityError, TokenizerError
from .limits import (
    DEFAULT_EXPRESSION_LIMITS,
    ExpressionLimits,
    check_expression_length,
    check_token_count,
)
from .sandbox import is_denied_identifier


class TokenType(Enum):
    """Token types produced by the tokenizer."""

    NUMBER = "NUMBER"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"
    IDENTIFIER = "IDENTIFIER"
    OPERATOR = "OPERATOR"
    DOT = "DOT"
    COMMA = "COMMA"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    COLON = "COLON"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    """A token produced by the tokenizer."""

    kind: TokenType
    text: str
    position: int


# Token patterns in priority order; the first match wins.
TOKEN_PATTERNS: Tuple[Tuple[TokenType, Pattern[str]], ...] = (
    (TokenType.NUMBER, re.compile(r"[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")),
    (TokenType.STRING, re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"", re.DOTALL)),
    (TokenType.BOOLEAN, re.compile(r"(?:true|false)(?![a-zA-Z0-9_$])")),
    (TokenType.NULL, re.compile(r"null(?![a-zA-Z0-9_$])")),
    (TokenType.IDENTIFIER, re.compile(r"[a-zA-Z_$][a-zA-Z0-9_$]*")),
    (TokenType.OPERATOR, re.compile(r"===|!==|==|!=|<=|>=|&&|\|\||[<>+\-*/%?!]")),
    (TokenType.DOT, re.compile(r"\.")),
    (TokenType.COMMA, re.compile(r",")),
    (TokenType.LPAREN, re.compile(r"\(")),
    (TokenType.RPAREN, re.compile(r"\)")),
    (TokenType.LBRACKET, re.compile(r"\[")),
    (TokenType.RBRACKET, re.compile(r"\]")),
    (TokenType.COLON, re.compile(r":")),
)

# Invocation and global-access shapes rejected anywhere in the input.
DANGEROUS_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"eval\s*\(",
        r"Function\s*\(",
        r"setTimeout\s*\(",
        r"setInterval\s*\(",
        r"XMLHttpRequest",
        r"fetch\s*\(",
        r"import\s*\(",
        r"require\s*\(",
        r"process\.",
        r"globalThis\.",
        r"window\.",
        r"document\.",
        r"console\.",
        r"alert\s*\(",
        r"prompt\s*\(",
        r"confirm\s*\(",
    )
)

BANNED_CHARACTERS = ("\u0000", "\u2028", "\u2029")

_WHITESPACE = re.compile(r"\s+")

# Characters of context shown on each side of a lexing error
_SNIPPET_RADIUS = 10


class Tokenizer:
    """Tokenizer for expression strings."""

    def __init__(self, source: str, limits: Optional[ExpressionLimits] = None):
        self._source = source
        self._limits = limits or DEFAULT_EXPRESSION_LIMITS
        self._position = 0
        self._tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """Tokenizes the source expression and returns all tokens."""
        if not isinstance(self._source, str):
            raise TokenizerError("Expression must be a string")

        check_expression_length(self._source, self._limits)
        self._check_security()

        source = self._source
        while self._position < len(source):
            whitespace = _WHITESPACE.match(source, self._position)
            if whitespace:
                self._position = whitespace.end()
                continue

            self._scan_token()

        self._tokens.append(Token(TokenType.EOF, "", self._position))
        return self._tokens

    def _check_security(self) -> None:
        if any(ch in self._source for ch in BANNED_CHARACTERS):
            raise SecurityError("Expression contains invalid characters")

        for pattern in DANGEROUS_PATTERNS:
            match = pattern.search(self._source)
            if match:
                raise SecurityError(
                    "Expression contains potentially unsafe operations",
                    match.start(),
                    self._source,
                )

    def _scan_token(self) -> None:
        check_token_count(len(self._tokens) + 1, self._limits)

        for token_type, pattern in TOKEN_PATTERNS:
            match = pattern.match(self._source, self._position)
            if not match:
                continue

            text = match.group(0)
            if token_type == TokenType.IDENTIFIER and is_denied_identifier(text):
                raise SecurityError(
                    f"Access to '{text}' is not allowed", self._position, self._source
                )

            self._tokens.append(Token(token_type, text, self._position))
            self._position = match.end()
            return

        raise self._unexpected_character()

    def _unexpected_character(self) -> TokenizerError:
        cursor = self._position
        ch = self._source[cursor]
        start = max(0, cursor - _SNIPPET_RADIUS)
        end = min(len(self._source), cursor + _SNIPPET_RADIUS)
        snippet = self._source[start:end]
        pointer = " " * (cursor - start) + "^"
        return TokenizerError(
            f"Unexpected character '{ch}' at position {cursor}\n{snippet}\n{pointer}",
            cursor,
            self._source,
        )


def tokenize(source: str, limits: Optional[ExpressionLimits] = None) -> List[Token]:
    """
    Tokenizes an expression string into tokens.

    Args:
        source: The expression string to tokenize
        limits: Optional expression limits

    Returns:
        List of tokens, terminated by an EOF token

    Raises:
        TokenizerError: If the input is not a string or contains an invalid character
        SecurityError: If the input contains a banned character, pattern or identifier
        ResourceLimitError: If the input is too long or produces too many tokens
    """
    tokenizer = Tokenizer(source, limits)
    return tokenizer.tokenize()
