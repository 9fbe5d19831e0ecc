"""
klang - Recursive Descent Parser
Pulls tokens from a Lexer one at a time and builds the AST statement by statement.
"""

from typing import Iterator, List
from .lexer import Lexer, Token, TokenType
from .ast_nodes import (
    ProgramNode, AssignmentNode, PrintNode, IfNode, WhileNode, ForNode,
    NumberNode, VariableNode, BinaryOpNode, ComparisonNode, LogicalOpNode,
    ASTNode
)


class ParseError(Exception):
    def __init__(self, message: str, line: int):
        super().__init__(f"[ParseError] Line {line}: {message}")
        self.line = line


_CMP = {
    TokenType.EQ:  '==',
    TokenType.NEQ: '!=',
    TokenType.LTE: '<=',
    TokenType.GTE: '>=',
    TokenType.LT:  '<',
    TokenType.GT:  '>',
}

_LOGICAL = {
    TokenType.AND: 'and',
    TokenType.OR:  'or',
}


def _describe(tok: Token) -> str:
    if tok.type == TokenType.EOF:
        return "end of input"
    return f"{tok.type.name} ({tok.value!r})"


class Parser:
    def __init__(self, lexer: Lexer):
        self._lexer = lexer
        self._current = lexer.next_token()

    # ------------------------------------------------------------------ helpers

    def _peek(self) -> Token:
        return self._current

    def _expect(self, ttype: TokenType) -> Token:
        """Consume the current token if it is of the given type, else fail."""
        tok = self._current
        if tok.type != ttype:
            raise ParseError(f"Expected {ttype.name} but got {_describe(tok)}", tok.line)
        self._current = self._lexer.next_token()
        return tok

    def _advance(self) -> Token:
        return self._expect(self._current.type)

    def _match(self, *types: TokenType) -> bool:
        return self._current.type in types

    # ------------------------------------------------------------------ public

    def at_end(self) -> bool:
        return self._match(TokenType.EOF)

    def parse_statement(self) -> ASTNode:
        """Parse the next top-level statement."""
        return self._parse_statement()

    def statements(self) -> Iterator[ASTNode]:
        """Yield top-level statements lazily until end of input."""
        while not self.at_end():
            yield self._parse_statement()

    def parse(self) -> ProgramNode:
        return ProgramNode(statements=tuple(self.statements()), line=1)

    # ------------------------------------------------------------------ statements

    def _parse_statement(self) -> ASTNode:
        tok = self._peek()

        if tok.type == TokenType.IF:
            return self._parse_if()
        if tok.type == TokenType.WHILE:
            return self._parse_while()
        if tok.type == TokenType.FOR:
            return self._parse_for()
        if tok.type == TokenType.PRINT:
            return self._parse_print()
        if tok.type == TokenType.IDENTIFIER:
            return self._parse_assignment()

        raise ParseError(f"Unexpected {_describe(tok)} at start of statement", tok.line)

    def _parse_body(self) -> tuple:
        """statement* up to and including the closing 'end'."""
        body: List[ASTNode] = []
        while not self._match(TokenType.END):
            if self.at_end():
                raise ParseError("Expected END but reached end of input", self._peek().line)
            body.append(self._parse_statement())
        self._expect(TokenType.END)
        return tuple(body)

    def _parse_if(self) -> IfNode:
        if_tok = self._expect(TokenType.IF)
        condition = self._parse_condition()
        self._expect(TokenType.THEN)
        body = self._parse_body()
        return IfNode(condition=condition, body=body, line=if_tok.line)

    def _parse_while(self) -> WhileNode:
        while_tok = self._expect(TokenType.WHILE)
        condition = self._parse_condition()
        self._expect(TokenType.THEN)
        body = self._parse_body()
        return WhileNode(condition=condition, body=body, line=while_tok.line)

    def _parse_for(self) -> ForNode:
        for_tok = self._expect(TokenType.FOR)
        name_tok = self._expect(TokenType.IDENTIFIER)
        self._expect(TokenType.ASSIGN)
        start = self._parse_expression()
        self._expect(TokenType.TO)
        end = self._parse_expression()
        body = self._parse_body()
        return ForNode(var_name=name_tok.value, start=start, end=end, body=body, line=for_tok.line)

    def _parse_assignment(self) -> AssignmentNode:
        name_tok = self._expect(TokenType.IDENTIFIER)
        self._expect(TokenType.ASSIGN)
        value = self._parse_expression()
        return AssignmentNode(name=name_tok.value, value=value, line=name_tok.line)

    def _parse_print(self) -> PrintNode:
        print_tok = self._expect(TokenType.PRINT)
        self._expect(TokenType.LPAREN)
        values = [self._parse_print_arg()]
        while self._match(TokenType.COMMA):
            self._advance()
            values.append(self._parse_print_arg())
        self._expect(TokenType.RPAREN)
        return PrintNode(values=tuple(values), line=print_tok.line)

    def _parse_print_arg(self) -> ASTNode:
        # A plain expression, or a full condition when a comparison follows it
        expr = self._parse_expression()
        if self._peek().type in _CMP:
            return self._parse_condition(expr)
        return expr

    # ------------------------------------------------------------------ conditions

    def _parse_condition(self, first_left: ASTNode = None) -> ASTNode:
        left = self._parse_simple_condition(first_left)

        while self._peek().type in _LOGICAL:
            op_tok = self._advance()
            right = self._parse_simple_condition()
            left = LogicalOpNode(op=_LOGICAL[op_tok.type], left=left, right=right, line=op_tok.line)

        return left

    def _parse_simple_condition(self, left: ASTNode = None) -> ComparisonNode:
        if left is None:
            left = self._parse_expression()
        op_tok = self._peek()
        if op_tok.type not in _CMP:
            raise ParseError(f"Expected comparison operator but got {_describe(op_tok)}", op_tok.line)
        self._advance()
        right = self._parse_expression()
        return ComparisonNode(op=_CMP[op_tok.type], left=left, right=right, line=op_tok.line)

    # ------------------------------------------------------------------ expressions

    def _parse_expression(self) -> ASTNode:
        left = self._parse_term()

        while self._match(TokenType.OPERATOR) and self._peek().value in ('+', '-'):
            op_tok = self._advance()
            right = self._parse_term()
            left = BinaryOpNode(op=op_tok.value, left=left, right=right, line=op_tok.line)

        return left

    def _parse_term(self) -> ASTNode:
        left = self._parse_factor()

        while self._match(TokenType.OPERATOR) and self._peek().value in ('*', '/'):
            op_tok = self._advance()
            right = self._parse_factor()
            left = BinaryOpNode(op=op_tok.value, left=left, right=right, line=op_tok.line)

        return left

    def _parse_factor(self) -> ASTNode:
        tok = self._peek()

        if tok.type == TokenType.INTEGER:
            self._advance()
            return NumberNode(value=int(tok.value), line=tok.line)

        if tok.type == TokenType.IDENTIFIER:
            self._advance()
            return VariableNode(name=tok.value, line=tok.line)

        if tok.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        raise ParseError(f"Unexpected token {_describe(tok)} in expression", tok.line)
