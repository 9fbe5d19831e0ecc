"""
klang - Tree-walking Interpreter
Executes statements and evaluates expressions against a symbol table.

Loop bodies are walked again on every iteration; nodes are never modified,
so the same subtree can be executed any number of times.
"""

import operator
import sys
from typing import Callable, Dict, TextIO
from .ast_nodes import (
    ProgramNode, AssignmentNode, PrintNode, IfNode, WhileNode, ForNode,
    NumberNode, VariableNode, BinaryOpNode, ComparisonNode, LogicalOpNode,
    ASTNode
)
from .symbols import SymbolTable, VarType


class InterpreterError(Exception):
    def __init__(self, message: str, line: int = 0):
        super().__init__(f"[{type(self).__name__}] Line {line}: {message}")
        self.line = line


class UndefinedVariableError(InterpreterError):
    def __init__(self, name: str, line: int = 0):
        super().__init__(f"Undefined variable '{name}'", line)
        self.name = name


class DivisionByZeroError(InterpreterError):
    def __init__(self, line: int = 0):
        super().__init__("Division by zero", line)


class InvalidOperatorError(InterpreterError):
    def __init__(self, op: str, line: int = 0):
        super().__init__(f"Invalid operator {op!r}", line)
        self.op = op


def _truncating_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


_ARITH: Dict[str, Callable[[int, int], int]] = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': _truncating_div,
}

_COMPARE: Dict[str, Callable[[int, int], bool]] = {
    '==': operator.eq,
    '!=': operator.ne,
    '>':  operator.gt,
    '<':  operator.lt,
    '>=': operator.ge,
    '<=': operator.le,
}


class Interpreter:
    def __init__(self, symbols: SymbolTable = None, out: TextIO = None):
        self.symbols = symbols if symbols is not None else SymbolTable()
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    # ------------------------------------------------------------------ public

    def run(self, program: ProgramNode) -> None:
        for stmt in program.statements:
            self.execute(stmt)

    def execute(self, node: ASTNode) -> None:
        self._visit(node)

    def evaluate(self, node: ASTNode) -> int:
        return self._visit(node)

    # ------------------------------------------------------------------ visitor

    def _visit(self, node: ASTNode):
        method = f"_visit_{type(node).__name__}"
        visitor = getattr(self, method, None)
        if visitor is None:
            raise InterpreterError(f"Cannot evaluate node {type(node).__name__}", getattr(node, 'line', 0))
        return visitor(node)

    def _truthy(self, node: ASTNode) -> bool:
        return self.evaluate(node) != 0

    # ------------------------------------------------------------------ expressions

    def _visit_NumberNode(self, node: NumberNode) -> int:
        return node.value

    def _visit_VariableNode(self, node: VariableNode) -> int:
        sym = self.symbols.lookup(node.name)
        if sym is None:
            raise UndefinedVariableError(node.name, node.line)
        return sym.value

    def _visit_BinaryOpNode(self, node: BinaryOpNode) -> int:
        fn = _ARITH.get(node.op)
        if fn is None:
            raise InvalidOperatorError(node.op, node.line)
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        if node.op == '/' and right == 0:
            raise DivisionByZeroError(node.line)
        return fn(left, right)

    def _visit_ComparisonNode(self, node: ComparisonNode) -> int:
        fn = _COMPARE.get(node.op)
        if fn is None:
            raise InvalidOperatorError(node.op, node.line)
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return 1 if fn(left, right) else 0

    def _visit_LogicalOpNode(self, node: LogicalOpNode) -> int:
        if node.op == 'and':
            if not self._truthy(node.left):
                return 0
            return 1 if self._truthy(node.right) else 0
        if node.op == 'or':
            if self._truthy(node.left):
                return 1
            return 1 if self._truthy(node.right) else 0
        raise InvalidOperatorError(node.op, node.line)

    # ------------------------------------------------------------------ statements

    def _visit_AssignmentNode(self, node: AssignmentNode) -> None:
        value = self.evaluate(node.value)
        self.symbols.set(node.name, VarType.INTEGER, value, node.line)

    def _visit_PrintNode(self, node: PrintNode) -> None:
        values = [self.evaluate(v) for v in node.values]
        self.out.write(" ".join(str(v) for v in values) + "\n")

    def _visit_IfNode(self, node: IfNode) -> None:
        if self._truthy(node.condition):
            self._execute_body(node.body)

    def _visit_WhileNode(self, node: WhileNode) -> None:
        while self._truthy(node.condition):
            self._execute_body(node.body)

    def _visit_ForNode(self, node: ForNode) -> None:
        start = self.evaluate(node.start)
        end = self.evaluate(node.end)
        name = node.var_name
        self.symbols.set(name, VarType.INTEGER, start, node.line)

        # The counter lives in the symbol table: the body may reassign it
        while self.symbols.get(name) <= end:
            self._execute_body(node.body)
            self.symbols.set(name, VarType.INTEGER, self.symbols.get(name) + 1, node.line)

    def _execute_body(self, body) -> None:
        for stmt in body:
            self.execute(stmt)
