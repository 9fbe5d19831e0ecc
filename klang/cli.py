"""
klang - Command Line Interface

Usage:
    klang program.kl [--debug] [--dump-symbols]
    klang program.kl --emit-ast | --unparse
    python -m klang program.kl
"""

import sys
import argparse


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="klang",
        description="klang — a minimal imperative language interpreter",
    )
    parser.add_argument("input", help="Path to the klang source file ('-' reads standard input)")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print interpreter progress to stderr",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--emit-ast",
        action="store_true",
        dest="emit_ast",
        help="Print the parsed AST as JSON instead of running the program",
    )
    mode.add_argument(
        "--unparse",
        action="store_true",
        help="Print the program in canonical form instead of running it",
    )
    parser.add_argument(
        "--dump-symbols",
        action="store_true",
        dest="dump_symbols",
        help="Print the symbol table to stderr after the program finishes",
    )

    args = parser.parse_args(argv)

    from .runner import run_source, parse_source, ast_to_json, KlangError, NESTED_TOO_DEEPLY
    from .unparse import SourceGenerator, UnparseError

    try:
        if args.input == "-":
            source = sys.stdin.read()
        else:
            with open(args.input, "r", encoding="utf-8") as f:
                source = f.read()
    except FileNotFoundError:
        print(f"[klang] Error: Input file not found: {args.input!r}", file=sys.stderr)
        sys.exit(1)
    except (OSError, UnicodeDecodeError) as e:
        print(f"[klang] Error: Cannot read {args.input!r}: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.emit_ast:
            print(ast_to_json(parse_source(source)))
        elif args.unparse:
            sys.stdout.write(SourceGenerator().generate(parse_source(source)))
        else:
            symbols = run_source(source, debug=args.debug)
            if args.dump_symbols:
                _dump_symbols(symbols)
    except (KlangError, UnparseError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except RecursionError:
        print(NESTED_TOO_DEEPLY, file=sys.stderr)
        sys.exit(1)


def _dump_symbols(symbols):
    print(f"{'ADDR':>4}  {'TYPE':<4}  {'SCOPE':<8}  {'NAME':<16}  VALUE", file=sys.stderr)
    for sym in symbols.rows():
        print(f"{sym.address:>4}  {sym.type.value:<4}  {sym.scope:<8}  {sym.name:<16}  {sym.value}",
              file=sys.stderr)


if __name__ == "__main__":
    main()
