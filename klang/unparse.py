"""
klang - Source Generator
Renders an AST back to canonical klang source text.

Parsing the generated text yields a tree equal to the one it came from,
which makes this a convenient self-check for the parser.
"""

from typing import List
from .ast_nodes import (
    ProgramNode, AssignmentNode, PrintNode, IfNode, WhileNode, ForNode,
    NumberNode, VariableNode, BinaryOpNode, ComparisonNode, LogicalOpNode,
    ASTNode, STATEMENT_NODES
)


class UnparseError(Exception):
    def __init__(self, message: str, line: int = 0):
        super().__init__(f"[UnparseError] Line {line}: {message}")
        self.line = line


_PREC = {'+': 1, '-': 1, '*': 2, '/': 2}


class SourceGenerator:
    def __init__(self, indent: str = "    "):
        self._indent = indent
        self._lines: List[str] = []

    def generate(self, node: ASTNode) -> str:
        """Return source text for a program, a statement or an expression."""
        if isinstance(node, STATEMENT_NODES) or isinstance(node, ProgramNode):
            self._lines = []
            if isinstance(node, ProgramNode):
                for stmt in node.statements:
                    self._emit_statement(stmt, 0)
            else:
                self._emit_statement(node, 0)
            return "\n".join(self._lines) + "\n"
        return self._emit_value(node)

    # ------------------------------------------------------------------ statements

    def _emit_statement(self, node: ASTNode, depth: int) -> None:
        pad = self._indent * depth

        if isinstance(node, AssignmentNode):
            self._lines.append(f"{pad}{node.name} = {self._emit_expr(node.value)}")
            return

        if isinstance(node, PrintNode):
            if not node.values:
                raise UnparseError("print needs at least one value", node.line)
            args = ", ".join(self._emit_value(v) for v in node.values)
            self._lines.append(f"{pad}print({args})")
            return

        if isinstance(node, IfNode):
            self._lines.append(f"{pad}if {self._emit_condition(node.condition)} then")
            self._emit_body(node.body, depth)
            return

        if isinstance(node, WhileNode):
            self._lines.append(f"{pad}while {self._emit_condition(node.condition)} then")
            self._emit_body(node.body, depth)
            return

        if isinstance(node, ForNode):
            start = self._emit_expr(node.start)
            end = self._emit_expr(node.end)
            self._lines.append(f"{pad}for {node.var_name} = {start} to {end}")
            self._emit_body(node.body, depth)
            return

        raise UnparseError(f"Not a statement: {type(node).__name__}", getattr(node, 'line', 0))

    def _emit_body(self, body, depth: int) -> None:
        for stmt in body:
            self._emit_statement(stmt, depth + 1)
        self._lines.append(f"{self._indent * depth}end")

    # ------------------------------------------------------------------ conditions

    def _emit_value(self, node: ASTNode) -> str:
        """A print argument: plain expression or condition."""
        if isinstance(node, (ComparisonNode, LogicalOpNode)):
            return self._emit_condition(node)
        return self._emit_expr(node)

    def _emit_condition(self, node: ASTNode) -> str:
        if isinstance(node, ComparisonNode):
            return f"{self._emit_expr(node.left)} {node.op} {self._emit_expr(node.right)}"

        if isinstance(node, LogicalOpNode):
            # and/or share one left-associative level; conditions cannot be parenthesised
            if not isinstance(node.right, ComparisonNode):
                raise UnparseError("right operand of a logical operator must be a comparison", node.line)
            return f"{self._emit_condition(node.left)} {node.op} {self._emit_condition(node.right)}"

        raise UnparseError(f"Condition must be a comparison, got {type(node).__name__}",
                           getattr(node, 'line', 0))

    # ------------------------------------------------------------------ expressions

    def _emit_expr(self, node: ASTNode) -> str:
        if isinstance(node, NumberNode):
            if node.value < 0:
                # No unary minus in the language
                return f"(0 - {-node.value})"
            return str(node.value)

        if isinstance(node, VariableNode):
            return node.name

        if isinstance(node, BinaryOpNode):
            if node.op not in _PREC:
                raise UnparseError(f"Unknown arithmetic operator {node.op!r}", node.line)
            left  = self._maybe_paren(node.left, node.op, right_side=False)
            right = self._maybe_paren(node.right, node.op, right_side=True)
            return f"{left} {node.op} {right}"

        raise UnparseError(f"Not an expression: {type(node).__name__}", getattr(node, 'line', 0))

    def _maybe_paren(self, node: ASTNode, parent_op: str, right_side: bool) -> str:
        """Parenthesise sub-expressions that would otherwise re-associate."""
        code = self._emit_expr(node)
        if isinstance(node, BinaryOpNode):
            prec, parent = _PREC[node.op], _PREC[parent_op]
            if prec < parent or (right_side and prec == parent):
                return f"({code})"
        return code
