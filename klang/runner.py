"""
klang - Runner
Drives the pipeline: parse one top-level statement, execute it, repeat
until the source is exhausted.
"""

import json
import sys
from typing import TextIO
from .lexer import Lexer, LexerError
from .parser import Parser, ParseError
from .ast_nodes import ProgramNode
from .interpreter import Interpreter, InterpreterError
from .symbols import SymbolTable, TypeMismatchError


class KlangError(Exception):
    """Unified error wrapper; the originating error is kept as __cause__."""
    pass


_PHASE_ERRORS = (LexerError, ParseError, InterpreterError, TypeMismatchError)

NESTED_TOO_DEEPLY = "[klang] Error: program nested too deeply"


def run_source(
    source: str,
    out: TextIO = None,
    symbols: SymbolTable = None,
    debug: bool = False,
) -> SymbolTable:
    """
    Execute klang source text.

    Parameters
    ----------
    source   : klang source code string
    out      : stream `print` writes to (default: sys.stdout)
    symbols  : variable store to run against (default: a fresh SymbolTable)
    debug    : print progress messages to stderr

    Returns
    -------
    The symbol table as left by the program.

    Raises
    ------
    KlangError on the first lexical, syntax or runtime error. Output
    written by statements before the failing one is not retracted.
    """

    def log(msg):
        if debug:
            print(f"[klang] {msg}", file=sys.stderr)

    interpreter = Interpreter(symbols=symbols, out=out)
    count = 0

    try:
        parser = Parser(Lexer(source))
        while not parser.at_end():
            stmt = parser.parse_statement()
            count += 1
            log(f"  statement {count}: {type(stmt).__name__} (line {stmt.line})")
            interpreter.execute(stmt)
    except _PHASE_ERRORS as e:
        log(f"  aborted after {count} statement(s)")
        raise KlangError(str(e)) from e
    except RecursionError as e:
        log(f"  aborted after {count} statement(s)")
        raise KlangError(NESTED_TOO_DEEPLY) from e

    log(f"  {count} top-level statements executed, {len(interpreter.symbols)} variables bound")
    return interpreter.symbols


def run_file(path: str, **kwargs) -> SymbolTable:
    """Read a klang file and execute it."""
    with open(path, "r", encoding="utf-8") as f:
        source = f.read()
    return run_source(source, **kwargs)


def parse_source(source: str) -> ProgramNode:
    """Parse a whole program without executing it."""
    try:
        return Parser(Lexer(source)).parse()
    except (LexerError, ParseError) as e:
        raise KlangError(str(e)) from e
    except RecursionError as e:
        raise KlangError(NESTED_TOO_DEEPLY) from e


# ── AST serialization (for --emit-ast) ────────────────────────────────────────

def ast_to_json(node) -> str:
    return json.dumps(_node_to_dict(node), indent=2)


def _node_to_dict(node):
    if node is None:
        return None
    if isinstance(node, (list, tuple)):
        return [_node_to_dict(n) for n in node]
    if not hasattr(node, '__dataclass_fields__'):
        return node  # primitive
    d = {"_type": type(node).__name__}
    for field_name in node.__dataclass_fields__:
        val = getattr(node, field_name)
        d[field_name] = _node_to_dict(val)
    return d
