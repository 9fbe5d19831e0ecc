"""klang — a minimal imperative language: tokenizer, parser, AST and tree-walking interpreter."""

__version__ = "0.1.0"
