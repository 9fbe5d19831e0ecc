"""
klang - AST Node Definitions
Immutable tree produced by the parser and walked by the interpreter.
"""

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ASTNode:
    """Base class for all AST nodes. `line` is ignored by equality."""
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ProgramNode(ASTNode):
    """Root node of the program."""
    statements: Tuple[ASTNode, ...] = ()


# ---------------------------------------------------------------------- expressions

@dataclass(frozen=True)
class NumberNode(ASTNode):
    """An integer literal."""
    value: int = 0


@dataclass(frozen=True)
class VariableNode(ASTNode):
    """A variable reference, resolved when evaluated."""
    name: str = ""


@dataclass(frozen=True)
class BinaryOpNode(ASTNode):
    """left (+|-|*|/) right"""
    op: str = ""
    left: ASTNode = None
    right: ASTNode = None


@dataclass(frozen=True)
class ComparisonNode(ASTNode):
    """left (==|!=|>|<|>=|<=) right"""
    op: str = ""
    left: ASTNode = None
    right: ASTNode = None


@dataclass(frozen=True)
class LogicalOpNode(ASTNode):
    """left (and|or) right, short-circuiting."""
    op: str = ""
    left: ASTNode = None
    right: ASTNode = None


# ---------------------------------------------------------------------- statements

@dataclass(frozen=True)
class AssignmentNode(ASTNode):
    """identifier = expression"""
    name: str = ""
    value: ASTNode = None


@dataclass(frozen=True)
class PrintNode(ASTNode):
    """print(e1, e2, ...)"""
    values: Tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class IfNode(ASTNode):
    """if condition then body end"""
    condition: ASTNode = None
    body: Tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class WhileNode(ASTNode):
    """while condition then body end"""
    condition: ASTNode = None
    body: Tuple[ASTNode, ...] = ()


@dataclass(frozen=True)
class ForNode(ASTNode):
    """for var_name = start to end body end"""
    var_name: str = ""
    start: ASTNode = None
    end: ASTNode = None
    body: Tuple[ASTNode, ...] = ()


STATEMENT_NODES = (AssignmentNode, PrintNode, IfNode, WhileNode, ForNode)
