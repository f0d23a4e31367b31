"""
Parser for the expression language.

Parses a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Precedence (lowest to highest):
1. Conditional: ? : (right-associative)
2. Logical OR: ||
3. Logical AND: &&
4. Equality: ===, !==, ==, !=
5. Relational: <, >, <=, >=
6. Additive: +, -
7. Multiplicative: *, /, %
8. Unary: !, -
9. Postfix: . [] ()
10. Primary: literals, identifiers, parentheses
"""

from typing import List, Optional, Sequence

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
from .errors import ParseError
from .limits import DEFAULT_EXPRESSION_LIMITS, ExpressionLimits, check_parse_depth
from .tokenizer import Token, TokenType, tokenize
from .values import number_from_text

_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def decode_string_literal(text: str) -> str:
    """Strips the quotes from a STRING token and resolves backslash escapes."""
    body = text[1:-1]
    if "\\" not in body:
        return body

    chars: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            escaped = body[i + 1]
            # Unknown escapes stand for the escaped character itself
            chars.append(_ESCAPES.get(escaped, escaped))
            i += 2
        else:
            chars.append(ch)
            i += 1
    return "".join(chars)


class Parser:
    """Parser for expression token streams."""

    def __init__(
        self,
        tokens: Sequence[Token],
        source: str = "",
        limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
    ):
        self._tokens = tokens
        self._source = source
        self._limits = limits
        self._current = 0
        self._depth = 0

    def parse(self) -> AstNode:
        """Parses the token stream into an AST."""
        ast = self._parse_conditional()

        if not self._is_at_end():
            token = self._peek()
            raise ParseError(
                f"Unexpected token '{token.text}' at position {token.position}. "
                "Expected end of expression.",
                token.position,
                self._source,
            )

        return ast

    # ============================================================
    # Token Helpers
    # ============================================================

    def _is_at_end(self) -> bool:
        return self._peek().kind == TokenType.EOF

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _advance(self) -> Token:
        if not self._is_at_end():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().kind == token_type

    def _match(self, token_type: TokenType) -> bool:
        if self._check(token_type):
            self._advance()
            return True
        return False

    def _match_operator(self, *operators: str) -> bool:
        if self._check(TokenType.OPERATOR) and self._peek().text in operators:
            self._advance()
            return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if self._check(token_type):
            return self._advance()
        token = self._peek()
        found = token.text or token.kind.value
        raise ParseError(
            f"{message}. Found '{found}' at position {token.position}",
            token.position,
            self._source,
        )

    def _enter(self) -> None:
        self._depth += 1
        check_parse_depth(self._depth, self._limits, self._peek().position, self._source)

    def _leave(self) -> None:
        self._depth -= 1

    # ============================================================
    # Expression Parsing (by precedence, lowest to highest)
    # ============================================================

    def _parse_conditional(self) -> AstNode:
        """Parses conditionals: test ? consequent : alternate"""
        self._enter()
        position = self._peek().position
        node = self._parse_or()

        if self._match_operator("?"):
            consequent = self._parse_conditional()
            self._consume(
                TokenType.COLON, "Expected ':' after '?' in conditional expression"
            )
            # The alternate recurses into the conditional rule: a?b:c?d:e
            alternate = self._parse_conditional()
            node = ConditionalNode(
                position=position,
                test=node,
                consequent=consequent,
                alternate=alternate,
            )

        self._leave()
        return node

    def _parse_or(self) -> AstNode:
        """Parses logical OR: ||"""
        node = self._parse_and()

        while self._match_operator("||"):
            position = self._previous().position
            right = self._parse_and()
            node = BinaryOpNode(position=position, left=node, operator="||", right=right)

        return node

    def _parse_and(self) -> AstNode:
        """Parses logical AND: &&"""
        node = self._parse_equality()

        while self._match_operator("&&"):
            position = self._previous().position
            right = self._parse_equality()
            node = BinaryOpNode(position=position, left=node, operator="&&", right=right)

        return node

    def _parse_equality(self) -> AstNode:
        """Parses equality: ===, !==, ==, !="""
        node = self._parse_relational()

        while self._match_operator("===", "!==", "==", "!="):
            token = self._previous()
            right = self._parse_relational()
            node = BinaryOpNode(
                position=token.position, left=node, operator=token.text, right=right
            )

        return node

    def _parse_relational(self) -> AstNode:
        """Parses relational: <, >, <=, >="""
        node = self._parse_additive()

        while self._match_operator("<", ">", "<=", ">="):
            token = self._previous()
            right = self._parse_additive()
            node = BinaryOpNode(
                position=token.position, left=node, operator=token.text, right=right
            )

        return node

    def _parse_additive(self) -> AstNode:
        """Parses additive: +, -"""
        node = self._parse_multiplicative()

        while self._match_operator("+", "-"):
            token = self._previous()
            right = self._parse_multiplicative()
            node = BinaryOpNode(
                position=token.position, left=node, operator=token.text, right=right
            )

        return node

    def _parse_multiplicative(self) -> AstNode:
        """Parses multiplicative: *, /, %"""
        node = self._parse_unary()

        while self._match_operator("*", "/", "%"):
            token = self._previous()
            right = self._parse_unary()
            node = BinaryOpNode(
                position=token.position, left=node, operator=token.text, right=right
            )

        return node

    def _parse_unary(self) -> AstNode:
        """Parses unary: !, -"""
        if self._match_operator("!", "-"):
            token = self._previous()
            self._enter()
            operand = self._parse_unary()
            self._leave()
            return UnaryOpNode(
                position=token.position, operator=token.text, operand=operand
            )

        return self._parse_postfix()

    def _parse_postfix(self) -> AstNode:
        """Parses postfix: . [] ()"""
        node = self._parse_primary()

        while True:
            if self._match(TokenType.DOT):
                position = self._previous().position
                prop_token = self._consume(
                    TokenType.IDENTIFIER, "Expected property name after '.'"
                )
                node = MemberAccessNode(
                    position=position, object=node, property=prop_token.text
                )
            elif self._match(TokenType.LBRACKET):
                position = self._previous().position
                index = self._parse_conditional()
                self._consume(TokenType.RBRACKET, "Expected ']' after array index")
                node = ArrayAccessNode(position=position, object=node, index=index)
            elif self._match(TokenType.LPAREN):
                # Only named helpers can be called
                if not isinstance(node, IdentifierNode):
                    raise ParseError(
                        "Only named functions can be called",
                        self._previous().position,
                        self._source,
                    )
                args = self._parse_argument_list()
                node = FunctionCallNode(
                    position=node.position, name=node.name, args=tuple(args)
                )
            else:
                break

        return node

    def _parse_argument_list(self) -> List[AstNode]:
        """Parses function argument list (already consumed opening paren)."""
        args: List[AstNode] = []

        if not self._check(TokenType.RPAREN):
            args.append(self._parse_conditional())
            while self._match(TokenType.COMMA):
                args.append(self._parse_conditional())

        self._consume(TokenType.RPAREN, "Expected ')' after function arguments")
        return args

    def _parse_primary(self) -> AstNode:
        """Parses primary expressions: literals, identifiers, parentheses."""
        token = self._peek()
        position = token.position

        if self._match(TokenType.NUMBER):
            return LiteralNode(position=position, value=number_from_text(token.text))

        if self._match(TokenType.STRING):
            return LiteralNode(position=position, value=decode_string_literal(token.text))

        if self._match(TokenType.BOOLEAN):
            return LiteralNode(position=position, value=token.text == "true")

        if self._match(TokenType.NULL):
            return LiteralNode(position=position, value=None)

        if self._match(TokenType.IDENTIFIER):
            return IdentifierNode(position=position, name=token.text)

        if self._match(TokenType.LPAREN):
            expr = self._parse_conditional()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        found = token.text or token.kind.value
        raise ParseError(
            f"Unexpected token at position {position}: '{found}'",
            position,
            self._source,
        )


def parse_tokens(
    tokens: Sequence[Token],
    source: str = "",
    limits: ExpressionLimits = DEFAULT_EXPRESSION_LIMITS,
) -> AstNode:
    """Parses an already tokenized expression."""
    return Parser(tokens, source, limits).parse()


def parse(
    source: str, limits: Optional[ExpressionLimits] = None
) -> AstNode:
    """
    Parses an expression string into an AST.

    Args:
        source: The expression string to parse
        limits: Optional expression limits

    Returns:
        The parsed AST

    Raises:
        TokenizerError: If tokenization fails
        ParseError: If parsing fails
        SecurityError: If the source contains blocked input
        ResourceLimitError: If the source is too long, too long in tokens or too deeply nested
    """
    limits = limits or DEFAULT_EXPRESSION_LIMITS
    tokens = tokenize(source, limits)
    return parse_tokens(tokens, source, limits)
