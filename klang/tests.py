"""
klang - Test Suite
Tests for Lexer, Parser, Symbol Table, Interpreter, Source Generator, Runner and CLI.
"""

import sys
import os
import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout, redirect_stderr
from enum import Enum
from unittest import mock

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from klang.lexer import Lexer, tokenize, TokenType, LexerError
from klang.parser import Parser, ParseError
from klang.ast_nodes import (
    ProgramNode, AssignmentNode, PrintNode, IfNode, WhileNode, ForNode,
    NumberNode, VariableNode, BinaryOpNode, ComparisonNode, LogicalOpNode,
    ASTNode
)
from klang.symbols import SymbolTable, ScopedSymbolTable, VarType, TypeMismatchError
from klang.interpreter import (
    Interpreter, InterpreterError, UndefinedVariableError,
    DivisionByZeroError, InvalidOperatorError
)
from klang.unparse import SourceGenerator, UnparseError
from klang.runner import run_source, run_file, parse_source, ast_to_json, KlangError
from klang import cli


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════

def token_types(source: str):
    return [t.type for t in tokenize(source) if t.type != TokenType.EOF]


def parse_(source: str) -> ProgramNode:
    return Parser(Lexer(source.strip())).parse()


def run_(source: str, symbols: SymbolTable = None):
    """Run source through a bare Interpreter; return (stdout text, symbols)."""
    out = io.StringIO()
    interp = Interpreter(symbols=symbols, out=out)
    parser = Parser(Lexer(source.strip()))
    try:
        for stmt in parser.statements():
            interp.execute(stmt)
    finally:
        run_.last_output = out.getvalue()
    return out.getvalue(), interp.symbols


def num(v):
    return NumberNode(value=v)


def var(name):
    return VariableNode(name=name)


class _OtherType(Enum):
    FLAG = "flag"


# ═══════════════════════════════════════════════════════════════════════════════
# Lexer Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestLexer(unittest.TestCase):

    def test_integer_is_one_token(self):
        toks = tokenize("123")
        self.assertEqual(len(toks), 2)
        self.assertEqual(toks[0].type, TokenType.INTEGER)
        self.assertEqual(toks[0].value, "123")

    def test_identifier(self):
        toks = tokenize("my_var2")
        self.assertEqual(toks[0].type, TokenType.IDENTIFIER)
        self.assertEqual(toks[0].value, "my_var2")

    def test_keywords(self):
        types = token_types("print if then end and or for to while")
        self.assertEqual(types, [
            TokenType.PRINT, TokenType.IF, TokenType.THEN, TokenType.END,
            TokenType.AND, TokenType.OR, TokenType.FOR, TokenType.TO, TokenType.WHILE,
        ])

    def test_keyword_prefix_is_identifier(self):
        toks = tokenize("ending iffy")
        self.assertEqual(toks[0].type, TokenType.IDENTIFIER)
        self.assertEqual(toks[1].type, TokenType.IDENTIFIER)

    def test_digits_then_letters_split(self):
        self.assertEqual(token_types("12ab"), [TokenType.INTEGER, TokenType.IDENTIFIER])

    def test_comparison_ops(self):
        types = token_types("a == b != c <= d >= e < f > g")
        self.assertEqual(types[1::2], [
            TokenType.EQ, TokenType.NEQ, TokenType.LTE,
            TokenType.GTE, TokenType.LT, TokenType.GT,
        ])

    def test_assign_vs_equal(self):
        self.assertEqual(token_types("x=1"), [TokenType.IDENTIFIER, TokenType.ASSIGN, TokenType.INTEGER])
        self.assertEqual(token_types("x==1"), [TokenType.IDENTIFIER, TokenType.EQ, TokenType.INTEGER])

    def test_arithmetic_and_punctuation(self):
        toks = [t for t in tokenize("( 1 + 2 - 3 * 4 / 5 , )") if t.type != TokenType.EOF]
        self.assertEqual([t.value for t in toks], ["(", "1", "+", "2", "-", "3", "*", "4", "/", "5", ",", ")"])
        self.assertEqual(toks[2].type, TokenType.OPERATOR)
        self.assertEqual(toks[0].type, TokenType.LPAREN)
        self.assertEqual(toks[10].type, TokenType.COMMA)

    def test_bare_bang_is_error(self):
        with self.assertRaises(LexerError) as ctx:
            tokenize("x ! y")
        self.assertIn("'!'", str(ctx.exception))

    def test_invalid_character(self):
        with self.assertRaises(LexerError) as ctx:
            tokenize("x = 1\ny = $")
        self.assertIn("'$'", str(ctx.exception))
        self.assertEqual(ctx.exception.line, 2)
        self.assertEqual(ctx.exception.column, 5)

    def test_eof_is_repeatable(self):
        lexer = Lexer("x")
        lexer.next_token()
        self.assertEqual(lexer.next_token().type, TokenType.EOF)
        self.assertEqual(lexer.next_token().type, TokenType.EOF)

    def test_empty_source(self):
        self.assertEqual([t.type for t in tokenize("  \n\t ")], [TokenType.EOF])

    def test_line_tracking(self):
        toks = tokenize("a\nb\n\nc")
        lines = {t.value: t.line for t in toks if t.type != TokenType.EOF}
        self.assertEqual(lines, {"a": 1, "b": 2, "c": 4})

    def test_lexing_is_lazy(self):
        lexer = Lexer("x = 1 $")
        self.assertEqual(lexer.next_token().value, "x")
        self.assertEqual(lexer.next_token().value, "=")
        self.assertEqual(lexer.next_token().value, "1")
        with self.assertRaises(LexerError):
            lexer.next_token()

    def test_seek_restores_offset(self):
        lexer = Lexer("a\nb\nc")
        lexer.next_token()
        lexer.next_token()
        saved = lexer.offset
        self.assertEqual(lexer.next_token().value, "c")
        self.assertEqual(lexer.next_token().type, TokenType.EOF)
        lexer.seek(saved)
        tok = lexer.next_token()
        self.assertEqual(tok.value, "c")
        self.assertEqual(tok.line, 3)

    def test_seek_out_of_range(self):
        with self.assertRaises(ValueError):
            Lexer("abc").seek(10)


# ═══════════════════════════════════════════════════════════════════════════════
# Parser Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestParser(unittest.TestCase):

    def test_assignment(self):
        stmt = parse_("x = 5").statements[0]
        self.assertIsInstance(stmt, AssignmentNode)
        self.assertEqual(stmt.name, "x")
        self.assertEqual(stmt.value, num(5))

    def test_precedence(self):
        value = parse_("x = 2 + 3 * 4").statements[0].value
        self.assertEqual(value, BinaryOpNode(op="+", left=num(2),
                                             right=BinaryOpNode(op="*", left=num(3), right=num(4))))

    def test_parentheses(self):
        value = parse_("x = (2 + 3) * 4").statements[0].value
        self.assertEqual(value, BinaryOpNode(op="*", left=BinaryOpNode(op="+", left=num(2), right=num(3)),
                                             right=num(4)))

    def test_left_associative(self):
        value = parse_("x = 10 - 3 - 2").statements[0].value
        self.assertEqual(value, BinaryOpNode(op="-", left=BinaryOpNode(op="-", left=num(10), right=num(3)),
                                             right=num(2)))

    def test_print_many(self):
        stmt = parse_("print(1, x, 2 * y)").statements[0]
        self.assertIsInstance(stmt, PrintNode)
        self.assertEqual(len(stmt.values), 3)
        self.assertEqual(stmt.values[1], var("x"))

    def test_print_condition_argument(self):
        stmt = parse_("print(1 < 2 or x > 0)").statements[0]
        self.assertIsInstance(stmt.values[0], LogicalOpNode)
        self.assertEqual(stmt.values[0].op, "or")

    def test_if(self):
        stmt = parse_("if x > 1 then y = 2 print(y) end").statements[0]
        self.assertIsInstance(stmt, IfNode)
        self.assertEqual(stmt.condition, ComparisonNode(op=">", left=var("x"), right=num(1)))
        self.assertEqual(len(stmt.body), 2)

    def test_empty_body(self):
        stmt = parse_("while 1 == 0 then end").statements[0]
        self.assertIsInstance(stmt, WhileNode)
        self.assertEqual(stmt.body, ())

    def test_for(self):
        stmt = parse_("for i = 1 to n + 1\n print(i)\nend").statements[0]
        self.assertIsInstance(stmt, ForNode)
        self.assertEqual(stmt.var_name, "i")
        self.assertEqual(stmt.start, num(1))
        self.assertEqual(stmt.end, BinaryOpNode(op="+", left=var("n"), right=num(1)))
        self.assertEqual(len(stmt.body), 1)

    def test_nested_blocks(self):
        stmt = parse_("""
while i < 3 then
    for j = 1 to 2
        if j == 2 then print(i, j) end
    end
    i = i + 1
end
""").statements[0]
        self.assertIsInstance(stmt.body[0], ForNode)
        self.assertIsInstance(stmt.body[0].body[0], IfNode)
        self.assertIsInstance(stmt.body[1], AssignmentNode)

    def test_logical_ops_left_associative(self):
        cond = parse_("if a < 1 or b < 2 and c < 3 then end").statements[0].condition
        self.assertEqual(cond.op, "and")
        self.assertIsInstance(cond.left, LogicalOpNode)
        self.assertEqual(cond.left.op, "or")
        self.assertIsInstance(cond.right, ComparisonNode)

    def test_multiple_statements(self):
        ast = parse_("x = 1\ny = 2\nprint(x + y)")
        self.assertEqual(len(ast.statements), 3)

    def test_line_numbers(self):
        ast = parse_("x = 1\n\nprint(x)")
        self.assertEqual(ast.statements[0].line, 1)
        self.assertEqual(ast.statements[1].line, 3)

    def test_forward_reference_parses(self):
        ast = parse_("print(never_assigned)")
        self.assertEqual(ast.statements[0].values[0], var("never_assigned"))

    def test_bare_expression_condition_rejected(self):
        with self.assertRaises(ParseError):
            parse_("if x then print(1) end")

    def test_missing_end(self):
        with self.assertRaises(ParseError) as ctx:
            parse_("if 1 == 1 then print(1)")
        self.assertIn("end of input", str(ctx.exception))

    def test_assignment_is_not_an_expression(self):
        with self.assertRaises(ParseError):
            parse_("if x > 0 and (x = 99) > 0 then print(1) end")

    def test_missing_then(self):
        with self.assertRaises(ParseError):
            parse_("while 1 == 1 print(1) end")

    def test_bad_statement_start(self):
        with self.assertRaises(ParseError) as ctx:
            parse_("then x = 1")
        self.assertIn("THEN", str(ctx.exception))

    def test_bad_factor(self):
        with self.assertRaises(ParseError):
            parse_("x = * 2")

    def test_unclosed_paren(self):
        with self.assertRaises(ParseError):
            parse_("x = (1 + 2")

    def test_print_requires_parens(self):
        with self.assertRaises(ParseError):
            parse_("print 1")

    def test_statements_are_parsed_on_demand(self):
        parser = Parser(Lexer("print(1) print(2) $"))
        stmts = parser.statements()
        self.assertIsInstance(next(stmts), PrintNode)
        with self.assertRaises(LexerError):
            next(stmts)

    def test_at_end(self):
        parser = Parser(Lexer("x = 1"))
        self.assertFalse(parser.at_end())
        parser.parse_statement()
        self.assertTrue(parser.at_end())


# ═══════════════════════════════════════════════════════════════════════════════
# Symbol Table Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestSymbolTable(unittest.TestCase):

    def test_set_and_get(self):
        table = SymbolTable()
        table.set("x", VarType.INTEGER, 3)
        table.set("x", VarType.INTEGER, 4)
        self.assertEqual(table.get("x"), 4)
        self.assertIn("x", table)
        self.assertEqual(len(table), 1)

    def test_missing_name(self):
        table = SymbolTable()
        self.assertIsNone(table.lookup("nope"))
        with self.assertRaises(KeyError):
            table.get("nope")

    def test_rows_keep_binding_order(self):
        table = SymbolTable()
        table.set("b", VarType.INTEGER, 1)
        table.set("a", VarType.INTEGER, 2)
        rows = table.rows()
        self.assertEqual([r.name for r in rows], ["b", "a"])
        self.assertEqual([r.address for r in rows], [0, 1])
        self.assertTrue(all(r.scope == "global" for r in rows))

    def test_type_mismatch(self):
        table = SymbolTable()
        table.set("x", VarType.INTEGER, 1)
        with self.assertRaises(TypeMismatchError) as ctx:
            table.set("x", _OtherType.FLAG, 1, line=7)
        self.assertEqual(ctx.exception.name, "x")
        self.assertEqual(ctx.exception.line, 7)
        self.assertEqual(table.get("x"), 1)


class TestScopedSymbolTable(unittest.TestCase):

    def test_inner_scope_shadows_and_pops(self):
        table = ScopedSymbolTable()
        table.set("x", VarType.INTEGER, 1)
        table.push_scope("loop")
        table.set("y", VarType.INTEGER, 2)
        self.assertEqual(table.get("x"), 1)
        self.assertEqual(table.lookup("y").scope, "loop")
        self.assertEqual(table.depth, 2)
        table.pop_scope()
        self.assertNotIn("y", table)
        self.assertEqual(len(table), 1)

    def test_assignment_updates_outer_binding(self):
        table = ScopedSymbolTable()
        table.set("x", VarType.INTEGER, 1)
        table.push_scope()
        table.set("x", VarType.INTEGER, 5)
        table.pop_scope()
        self.assertEqual(table.get("x"), 5)

    def test_global_scope_cannot_be_popped(self):
        with self.assertRaises(RuntimeError):
            ScopedSymbolTable().pop_scope()

    def test_type_mismatch(self):
        table = ScopedSymbolTable()
        table.set("x", VarType.INTEGER, 1)
        table.push_scope()
        with self.assertRaises(TypeMismatchError):
            table.set("x", _OtherType.FLAG, 0)

    def test_interpreter_runs_on_scoped_table(self):
        out, table = run_("for i = 1 to 3 s = i end print(s, i)", symbols=ScopedSymbolTable())
        self.assertEqual(out, "3 4\n")
        self.assertEqual([r.name for r in table.rows()], ["i", "s"])


# ═══════════════════════════════════════════════════════════════════════════════
# Interpreter Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestInterpreter(unittest.TestCase):

    def test_print_literal(self):
        for literal in ("0", "7", "2147483647", "123456789012345678901234567890"):
            out, _ = run_(f"print({literal})")
            self.assertEqual(out, literal + "\n")

    def test_precedence(self):
        self.assertEqual(run_("print(2 + 3 * 4)")[0], "14\n")
        self.assertEqual(run_("print((2 + 3) * 4)")[0], "20\n")
        self.assertEqual(run_("print(10 - 3 - 2)")[0], "5\n")
        self.assertEqual(run_("print(100 / 10 / 5)")[0], "2\n")

    def test_division_truncates_toward_zero(self):
        self.assertEqual(run_("print(7 / 2)")[0], "3\n")
        self.assertEqual(run_("print((0 - 7) / 2)")[0], "-3\n")
        self.assertEqual(run_("print(7 / (0 - 2))")[0], "-3\n")
        self.assertEqual(run_("print((0 - 7) / (0 - 2))")[0], "3\n")

    def test_division_by_zero(self):
        with self.assertRaises(DivisionByZeroError):
            run_("x = 1 / 0")
        self.assertEqual(run_.last_output, "")

    def test_division_by_zero_variable(self):
        with self.assertRaises(DivisionByZeroError) as ctx:
            run_("z = 0\n\nprint(5 / z)")
        self.assertEqual(ctx.exception.line, 3)

    def test_undefined_variable(self):
        with self.assertRaises(UndefinedVariableError) as ctx:
            run_("print(y)")
        self.assertEqual(ctx.exception.name, "y")

    def test_assignment(self):
        out, symbols = run_("x = 4\nx = x * x\nprint(x)")
        self.assertEqual(out, "16\n")
        self.assertEqual(symbols.get("x"), 16)

    def test_print_many_values(self):
        self.assertEqual(run_("a = 1 print(a, a + 1, a + 2)")[0], "1 2 3\n")

    def test_comparisons_yield_zero_or_one(self):
        out, _ = run_("print(1 == 1, 1 != 1, 2 > 1, 2 < 1, 2 >= 2, 3 <= 2)")
        self.assertEqual(out, "1 0 1 0 1 0\n")

    def test_and_short_circuits(self):
        out, symbols = run_("x = 0\nif x > 0 and 1 / x > 0 then print(1) end")
        self.assertEqual(out, "")
        self.assertEqual(symbols.get("x"), 0)

    def test_and_skips_undefined_right(self):
        self.assertEqual(run_("print(1 > 2 and missing > 0)")[0], "0\n")

    def test_or_short_circuits(self):
        self.assertEqual(run_("print(1 < 2 or 1 / 0 > 0)")[0], "1\n")

    def test_and_evaluates_right_when_needed(self):
        with self.assertRaises(DivisionByZeroError):
            run_("print(1 < 2 and 1 / 0 > 0)")

    def test_or_evaluates_right_when_needed(self):
        self.assertEqual(run_("print(1 > 2 or 2 > 1)")[0], "1\n")
        self.assertEqual(run_("print(1 > 2 or 2 < 1)")[0], "0\n")

    def test_if_false_has_no_effects(self):
        out, symbols = run_("if 1 > 2 then y = 5 print(y) end")
        self.assertEqual(out, "")
        self.assertNotIn("y", symbols)

    def test_if_true_runs_body_once(self):
        self.assertEqual(run_("c = 0 if c == 0 then c = c + 1 print(c) end")[0], "1\n")

    def test_while(self):
        out, symbols = run_("""
n = 3
while n > 0 then
    print(n)
    n = n - 1
end
""")
        self.assertEqual(out, "3\n2\n1\n")
        self.assertEqual(symbols.get("n"), 0)

    def test_while_false_from_start(self):
        self.assertEqual(run_("while 1 == 0 then print(1) end")[0], "")

    def test_for_is_inclusive(self):
        out, symbols = run_("for i = 1 to 5 print(i) end")
        self.assertEqual(out, "1\n2\n3\n4\n5\n")
        self.assertEqual(symbols.get("i"), 6)

    def test_for_bound_is_snapshot(self):
        out, symbols = run_("""
n = 3
for i = 1 to n
    n = 10
    print(i)
end
""")
        self.assertEqual(out, "1\n2\n3\n")
        self.assertEqual(symbols.get("n"), 10)
        self.assertEqual(symbols.get("i"), 4)

    def test_for_start_after_end(self):
        out, symbols = run_("for i = 5 to 1 print(i) end")
        self.assertEqual(out, "")
        self.assertEqual(symbols.get("i"), 5)

    def test_for_variable_mutated_in_body(self):
        out, symbols = run_("""
for i = 1 to 10
    print(i)
    i = i + 4
end
""")
        self.assertEqual(out, "1\n6\n")
        self.assertEqual(symbols.get("i"), 11)

    def test_sequential_loops_reuse_variable(self):
        out, _ = run_("""
for i = 1 to 2 print(i) end
for i = 7 to 8 print(i) end
""")
        self.assertEqual(out, "1\n2\n7\n8\n")

    def test_nested_loops(self):
        out, _ = run_("""
for i = 1 to 3
    row = 0
    for j = 1 to i
        row = row + j
    end
    print(i, row)
end
""")
        self.assertEqual(out, "1 1\n2 3\n3 6\n")

    def test_same_loop_node_executed_twice(self):
        stmt = parse_("for k = 1 to 2 print(k) end").statements[0]
        out = io.StringIO()
        interp = Interpreter(out=out)
        interp.execute(stmt)
        interp.execute(stmt)
        self.assertEqual(out.getvalue(), "1\n2\n1\n2\n")

    def test_run_program(self):
        out = io.StringIO()
        Interpreter(out=out).run(parse_("a = 2 b = a * 21 print(b)"))
        self.assertEqual(out.getvalue(), "42\n")

    def test_evaluate(self):
        interp = Interpreter()
        interp.symbols.set("x", VarType.INTEGER, 6)
        expr = BinaryOpNode(op="*", left=var("x"), right=num(7))
        self.assertEqual(interp.evaluate(expr), 42)

    def test_for_variable_type_mismatch(self):
        symbols = SymbolTable()
        symbols.set("i", _OtherType.FLAG, 0)
        with self.assertRaises(TypeMismatchError) as ctx:
            run_("for i = 1 to 2 print(i) end", symbols=symbols)
        self.assertEqual(ctx.exception.name, "i")
        self.assertEqual(run_.last_output, "")

    def test_type_mismatch_propagates(self):
        symbols = SymbolTable()
        symbols.set("flag", _OtherType.FLAG, 1)
        with self.assertRaises(TypeMismatchError):
            run_("flag = 2", symbols=symbols)

    def test_invalid_operators(self):
        interp = Interpreter()
        for node in (BinaryOpNode(op="%", left=num(1), right=num(2)),
                     ComparisonNode(op="=<", left=num(1), right=num(2)),
                     LogicalOpNode(op="xor", left=num(1), right=num(0))):
            with self.assertRaises(InvalidOperatorError):
                interp.evaluate(node)

    def test_unknown_node(self):
        with self.assertRaises(InterpreterError):
            Interpreter().execute(ASTNode())

    def test_output_before_error_is_kept(self):
        with self.assertRaises(UndefinedVariableError):
            run_("print(1)\nprint(2)\nprint(nope)\nprint(3)")
        self.assertEqual(run_.last_output, "1\n2\n")


# ═══════════════════════════════════════════════════════════════════════════════
# Source Generator Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestSourceGenerator(unittest.TestCase):

    SAMPLE = """
n = 10
total = 0
for i = 1 to n
    if i / 2 * 2 == i and i > 2 or i == 1 then
        total = total + i * (i - 1)
    end
end
while total > 100 then
    total = total - (3 - 1) / (2 * 1)
end
print(total, n - (1 - 2), total >= 1)
"""

    def test_round_trip(self):
        program = parse_(self.SAMPLE)
        text = SourceGenerator().generate(program)
        self.assertEqual(parse_(text), program)

    def test_round_trip_is_stable(self):
        once = SourceGenerator().generate(parse_(self.SAMPLE))
        twice = SourceGenerator().generate(parse_(once))
        self.assertEqual(once, twice)

    def test_layout(self):
        text = SourceGenerator().generate(parse_("if x>1 then y=x*2 end"))
        self.assertEqual(text, "if x > 1 then\n    y = x * 2\nend\n")

    def test_minimal_parentheses(self):
        gen = SourceGenerator()
        self.assertEqual(gen.generate(parse_("x = 2 + 3 * 4").statements[0].value), "2 + 3 * 4")
        self.assertEqual(gen.generate(parse_("x = (2 + 3) * 4").statements[0].value), "(2 + 3) * 4")
        self.assertEqual(gen.generate(parse_("x = 10 - (3 - 2)").statements[0].value), "10 - (3 - 2)")
        self.assertEqual(gen.generate(parse_("x = (10 - 3) - 2").statements[0].value), "10 - 3 - 2")

    def test_logical_right_operand_must_be_comparison(self):
        cmp_ = ComparisonNode(op="<", left=num(1), right=num(2))
        node = IfNode(condition=LogicalOpNode(op="or", left=cmp_,
                                              right=LogicalOpNode(op="and", left=cmp_, right=cmp_)))
        with self.assertRaises(UnparseError):
            SourceGenerator().generate(node)

    def test_condition_must_be_comparison(self):
        with self.assertRaises(UnparseError):
            SourceGenerator().generate(WhileNode(condition=var("x")))


# ═══════════════════════════════════════════════════════════════════════════════
# Runner Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestRunner(unittest.TestCase):

    def test_run_source(self):
        out = io.StringIO()
        symbols = run_source("x = 2\nprint(x * 3)", out=out)
        self.assertEqual(out.getvalue(), "6\n")
        self.assertEqual(symbols.get("x"), 2)

    def test_runtime_error_is_wrapped(self):
        out = io.StringIO()
        with self.assertRaises(KlangError) as ctx:
            run_source("print(1)\nx = 1 / 0\nprint(2)", out=out)
        self.assertIsInstance(ctx.exception.__cause__, DivisionByZeroError)
        self.assertIn("Division by zero", str(ctx.exception))
        self.assertEqual(out.getvalue(), "1\n")

    def test_statement_runs_before_later_syntax_error(self):
        out = io.StringIO()
        with self.assertRaises(KlangError) as ctx:
            run_source("print(1)\nprint(", out=out)
        self.assertIsInstance(ctx.exception.__cause__, ParseError)
        self.assertEqual(out.getvalue(), "1\n")

    def test_lexer_error_is_wrapped(self):
        with self.assertRaises(KlangError) as ctx:
            run_source("x = 1 # comment", out=io.StringIO())
        self.assertIsInstance(ctx.exception.__cause__, LexerError)

    def test_type_mismatch_is_wrapped(self):
        symbols = SymbolTable()
        symbols.set("x", _OtherType.FLAG, 0)
        with self.assertRaises(KlangError) as ctx:
            run_source("x = 1", out=io.StringIO(), symbols=symbols)
        self.assertIsInstance(ctx.exception.__cause__, TypeMismatchError)

    def test_debug_logs_to_stderr(self):
        err = io.StringIO()
        with redirect_stderr(err):
            run_source("x = 1\nprint(x)", out=io.StringIO(), debug=True)
        self.assertIn("[klang]", err.getvalue())
        self.assertIn("2 top-level statements", err.getvalue())

    def test_quiet_by_default(self):
        err = io.StringIO()
        with redirect_stderr(err):
            run_source("x = 1", out=io.StringIO())
        self.assertEqual(err.getvalue(), "")

    def test_run_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "prog.kl")
            with open(path, "w", encoding="utf-8") as f:
                f.write("for i = 1 to 3 print(i * i) end\n")
            out = io.StringIO()
            run_file(path, out=out)
        self.assertEqual(out.getvalue(), "1\n4\n9\n")

    def test_long_sum_is_wrapped(self):
        source = "print(" + " + ".join(["1"] * 1000) + ")"
        out = io.StringIO()
        with self.assertRaises(KlangError) as ctx:
            run_source(source, out=out)
        self.assertIsInstance(ctx.exception.__cause__, RecursionError)
        self.assertIn("nested too deeply", str(ctx.exception))
        self.assertEqual(out.getvalue(), "")

    def test_deeply_nested_blocks_are_wrapped(self):
        source = "x = 1\n" + "if x == 1 then\n" * 1000 + "print(x)\n" + "end\n" * 1000
        with self.assertRaises(KlangError) as ctx:
            run_source(source, out=io.StringIO())
        self.assertIsInstance(ctx.exception.__cause__, RecursionError)

    def test_deeply_nested_parentheses_are_wrapped(self):
        with self.assertRaises(KlangError) as ctx:
            parse_source("x = " + "(" * 1000 + "1" + ")" * 1000)
        self.assertIsInstance(ctx.exception.__cause__, RecursionError)

    def test_parse_source_error(self):
        with self.assertRaises(KlangError):
            parse_source("x = ")

    def test_ast_to_json(self):
        data = json.loads(ast_to_json(parse_source("print(1 + x)")))
        self.assertEqual(data["_type"], "ProgramNode")
        printed = data["statements"][0]
        self.assertEqual(printed["_type"], "PrintNode")
        self.assertEqual(printed["values"][0]["op"], "+")
        self.assertEqual(printed["values"][0]["right"], {"_type": "VariableNode", "line": 1, "name": "x"})


# ═══════════════════════════════════════════════════════════════════════════════
# CLI Tests
# ═══════════════════════════════════════════════════════════════════════════════

class TestCLI(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def _write(self, source: str) -> str:
        path = os.path.join(self._tmp.name, "prog.kl")
        with open(path, "w", encoding="utf-8") as f:
            f.write(source)
        return path

    def _main(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        code = 0
        with redirect_stdout(out), redirect_stderr(err):
            try:
                cli.main(list(argv))
            except SystemExit as e:
                code = e.code
        return code, out.getvalue(), err.getvalue()

    def test_run(self):
        code, out, err = self._main(self._write("x = 3\nprint(x, x * x)\n"))
        self.assertEqual(code, 0)
        self.assertEqual(out, "3 9\n")
        self.assertEqual(err, "")

    def test_error_exit_status(self):
        code, out, err = self._main(self._write("print(1)\nprint(y)\n"))
        self.assertEqual(code, 1)
        self.assertEqual(out, "1\n")
        self.assertIn("Undefined variable 'y'", err)

    def test_missing_file(self):
        code, _, err = self._main(os.path.join(self._tmp.name, "missing.kl"))
        self.assertEqual(code, 1)
        self.assertIn("not found", err)

    def test_emit_ast(self):
        code, out, _ = self._main(self._write("x = 1"), "--emit-ast")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["statements"][0]["_type"], "AssignmentNode")

    def test_unparse(self):
        code, out, _ = self._main(self._write("while x<3 then x=x+1 end"), "--unparse")
        self.assertEqual(code, 0)
        self.assertEqual(out, "while x < 3 then\n    x = x + 1\nend\n")

    def test_dump_symbols(self):
        code, _, err = self._main(self._write("a = 1\nb = a + 1"), "--dump-symbols")
        self.assertEqual(code, 0)
        lines = err.strip().splitlines()
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[2].split()[-2:] == ["b", "2"])

    def test_deep_program_exit_status(self):
        code, out, err = self._main(self._write("print(" + " + ".join(["1"] * 1000) + ")"))
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("nested too deeply", err)

    def test_deep_program_unparse_exit_status(self):
        code, _, err = self._main(self._write("x = " + " - ".join(["1"] * 1000)), "--unparse")
        self.assertEqual(code, 1)
        self.assertIn("nested too deeply", err)

    def test_directory_input(self):
        code, _, err = self._main(self._tmp.name)
        self.assertEqual(code, 1)
        self.assertIn("[klang] Error: Cannot read", err)

    def test_non_utf8_input(self):
        path = os.path.join(self._tmp.name, "latin1.kl")
        with open(path, "wb") as f:
            f.write(b"x = 1 \xff\xfe\n")
        code, _, err = self._main(path)
        self.assertEqual(code, 1)
        self.assertIn("[klang] Error: Cannot read", err)

    def test_stdin(self):
        with mock.patch.object(sys, "stdin", io.StringIO("print(5 / 2)")):
            code, out, _ = self._main("-")
        self.assertEqual(code, 0)
        self.assertEqual(out, "2\n")


if __name__ == "__main__":
    unittest.main(verbosity=2)
