"""
Abstract Syntax Tree (AST) node types for the expression language.

The AST is produced by the parser, cached by the engine and consumed by the
evaluator. Nodes are frozen so a cached tree can be shared between
evaluations.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Literal, Sequence, Union

# ============================================================
# Operator Types
# ============================================================

UnaryOperator = Literal["!", "-"]

BinaryOperator = Literal[
    "*",
    "/",
    "%",
    "+",
    "-",
    "<",
    "<=",
    ">",
    ">=",
    "===",
    "!==",
    "==",
    "!=",
    "&&",
    "||",
]

LiteralValue = Union[str, int, float, bool, None]


# ============================================================
# AST Node Types
# ============================================================


@dataclass(frozen=True)
class AstNodeBase(ABC):
    """Base class for all AST nodes."""

    position: int
    """Position in source expression (for error reporting)."""


@dataclass(frozen=True)
class LiteralNode(AstNodeBase):
    """Number, string, boolean or null literal."""

    value: LiteralValue

    @property
    def type(self) -> Literal["Literal"]:
        return "Literal"


@dataclass(frozen=True)
class IdentifierNode(AstNodeBase):
    """Identifier node."""

    name: str

    @property
    def type(self) -> Literal["Identifier"]:
        return "Identifier"


@dataclass(frozen=True)
class BinaryOpNode(AstNodeBase):
    """Binary operator node."""

    left: "AstNode"
    operator: BinaryOperator
    right: "AstNode"

    @property
    def type(self) -> Literal["BinaryOp"]:
        return "BinaryOp"


@dataclass(frozen=True)
class UnaryOpNode(AstNodeBase):
    """Unary operator node."""

    operator: UnaryOperator
    operand: "AstNode"

    @property
    def type(self) -> Literal["UnaryOp"]:
        return "UnaryOp"


@dataclass(frozen=True)
class MemberAccessNode(AstNodeBase):
    """Member access node (e.g., obj.property)."""

    object: "AstNode"
    property: str

    @property
    def type(self) -> Literal["MemberAccess"]:
        return "MemberAccess"


@dataclass(frozen=True)
class ArrayAccessNode(AstNodeBase):
    """Index access node (e.g., items[0], obj["key"])."""

    object: "AstNode"
    index: "AstNode"

    @property
    def type(self) -> Literal["ArrayAccess"]:
        return "ArrayAccess"


@dataclass(frozen=True)
class ConditionalNode(AstNodeBase):
    """Conditional node (test ? consequent : alternate)."""

    test: "AstNode"
    consequent: "AstNode"
    alternate: "AstNode"

    @property
    def type(self) -> Literal["Conditional"]:
        return "Conditional"


@dataclass(frozen=True)
class FunctionCallNode(AstNodeBase):
    """Helper function call node."""

    name: str
    args: Sequence["AstNode"]

    @property
    def type(self) -> Literal["FunctionCall"]:
        return "FunctionCall"


# Union type for all AST nodes
AstNode = Union[
    LiteralNode,
    IdentifierNode,
    BinaryOpNode,
    UnaryOpNode,
    MemberAccessNode,
    ArrayAccessNode,
    ConditionalNode,
    FunctionCallNode,
]


# ============================================================
# AST Utilities
# ============================================================


def ast_to_string(node: AstNode, indent: int = 0) -> str:
    """Returns a human-readable representation of an AST node for debugging."""
    prefix = "  " * indent

    if isinstance(node, LiteralNode):
        if isinstance(node.value, str):
            return f'{prefix}Literal: "{node.value}"'
        return f"{prefix}Literal: {node.value!r}"

    if isinstance(node, IdentifierNode):
        return f"{prefix}Identifier: {node.name}"

    if isinstance(node, MemberAccessNode):
        return f"{prefix}MemberAccess: .{node.property}\n{ast_to_string(node.object, indent + 1)}"

    if isinstance(node, ArrayAccessNode):
        return (
            f"{prefix}ArrayAccess:\n"
            f"{prefix}  object:\n{ast_to_string(node.object, indent + 2)}\n"
            f"{prefix}  index:\n{ast_to_string(node.index, indent + 2)}"
        )

    if isinstance(node, FunctionCallNode):
        args_str = "\n".join(ast_to_string(a, indent + 1) for a in node.args)
        return f"{prefix}FunctionCall: {node.name}\n{args_str}".rstrip("\n")

    if isinstance(node, UnaryOpNode):
        return f"{prefix}UnaryOp: {node.operator}\n{ast_to_string(node.operand, indent + 1)}"

    if isinstance(node, BinaryOpNode):
        return (
            f"{prefix}BinaryOp: {node.operator}\n"
            f"{ast_to_string(node.left, indent + 1)}\n"
            f"{ast_to_string(node.right, indent + 1)}"
        )

    if isinstance(node, ConditionalNode):
        return (
            f"{prefix}Conditional:\n"
            f"{prefix}  test:\n{ast_to_string(node.test, indent + 2)}\n"
            f"{prefix}  consequent:\n{ast_to_string(node.consequent, indent + 2)}\n"
            f"{prefix}  alternate:\n{ast_to_string(node.alternate, indent + 2)}"
        )

    return f"{prefix}Unknown: {node}"
