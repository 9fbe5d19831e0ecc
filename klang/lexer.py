"""
klang - Lexer
Turns klang source text into a lazy stream of tokens.
"""

import re
from dataclasses import dataclass
from typing import List
from enum import Enum, auto


class TokenType(Enum):
    # Literals
    INTEGER    = auto()
    IDENTIFIER = auto()
    # Operators / punctuation
    ASSIGN     = auto()   # =
    OPERATOR   = auto()   # + - * /
    LPAREN     = auto()   # (
    RPAREN     = auto()   # )
    COMMA      = auto()   # ,
    # Comparisons
    EQ         = auto()   # ==
    NEQ        = auto()   # !=
    LTE        = auto()   # <=
    GTE        = auto()   # >=
    LT         = auto()   # <
    GT         = auto()   # >
    # Logical keywords
    AND        = auto()
    OR         = auto()
    # Control keywords
    IF         = auto()
    THEN       = auto()
    END        = auto()
    WHILE      = auto()
    FOR        = auto()
    TO         = auto()
    PRINT      = auto()
    # Sentinel
    EOF        = auto()


KEYWORDS = {
    "print": TokenType.PRINT,
    "if":    TokenType.IF,
    "then":  TokenType.THEN,
    "end":   TokenType.END,
    "and":   TokenType.AND,
    "or":    TokenType.OR,
    "for":   TokenType.FOR,
    "to":    TokenType.TO,
    "while": TokenType.WHILE,
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int = 1
    column: int = 1

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, line={self.line})"


class LexerError(Exception):
    def __init__(self, message: str, line: int, column: int = 0):
        super().__init__(f"[LexerError] Line {line}: {message}")
        self.line = line
        self.column = column


# Token specification: ordered list of (TokenType, regex) pairs.
# Two-character operators come before their one-character prefixes.
_TOKEN_SPEC = [
    (TokenType.EQ,         r'=='),
    (TokenType.NEQ,        r'!='),
    (TokenType.LTE,        r'<='),
    (TokenType.GTE,        r'>='),
    (TokenType.LT,         r'<'),
    (TokenType.GT,         r'>'),
    (TokenType.ASSIGN,     r'='),
    (TokenType.INTEGER,    r'\d+'),
    (TokenType.IDENTIFIER, r'[A-Za-z_][A-Za-z0-9_]*'),
    (TokenType.OPERATOR,   r'[+\-*/]'),
    (TokenType.LPAREN,     r'\('),
    (TokenType.RPAREN,     r'\)'),
    (TokenType.COMMA,      r','),
]

_MASTER_RE = re.compile(
    r'(?:' + '|'.join(f'(?P<T{i}>{spec[1]})' for i, spec in enumerate(_TOKEN_SPEC)) + r')',
    re.ASCII
)

_WHITESPACE_RE = re.compile(r'[ \t\r\f\v]+')
_NEWLINE_RE    = re.compile(r'\n')


class Lexer:
    """
    Produces tokens on demand from a complete source text.

    Once the input is exhausted every further call to next_token() returns
    an EOF token.
    """

    def __init__(self, source: str):
        self._source = source
        self._pos = 0
        self._line = 1
        self._line_start = 0

    @property
    def offset(self) -> int:
        """Raw source offset the next scan starts from."""
        return self._pos

    def seek(self, offset: int) -> None:
        """Restart scanning from a previously saved offset."""
        if not 0 <= offset <= len(self._source):
            raise ValueError(f"offset {offset} outside source of length {len(self._source)}")
        self._pos = offset
        self._line = self._source.count('\n', 0, offset) + 1
        self._line_start = self._source.rfind('\n', 0, offset) + 1

    def next_token(self) -> Token:
        source = self._source
        length = len(source)

        while self._pos < length:
            m = _WHITESPACE_RE.match(source, self._pos)
            if m:
                self._pos = m.end()
                continue

            m = _NEWLINE_RE.match(source, self._pos)
            if m:
                self._line += 1
                self._pos = m.end()
                self._line_start = self._pos
                continue

            column = self._pos - self._line_start + 1
            m = _MASTER_RE.match(source, self._pos)
            if not m:
                char = source[self._pos]
                if char == '!':
                    raise LexerError("Unexpected character: '!' (expected '!=')", self._line, column)
                raise LexerError(f"Unexpected character: {char!r}", self._line, column)

            raw = m.group(0)
            tok_type = _TOKEN_SPEC[int(m.lastgroup[1:])][0]

            # Reclassify identifiers that are keywords
            if tok_type == TokenType.IDENTIFIER:
                tok_type = KEYWORDS.get(raw, TokenType.IDENTIFIER)

            self._pos = m.end()
            return Token(tok_type, raw, self._line, column)

        return Token(TokenType.EOF, '', self._line, self._pos - self._line_start + 1)


def tokenize(source: str) -> List[Token]:
    """
    Convert klang source string into a list of Tokens, EOF included.
    Raises LexerError on unrecognized characters.
    """
    lexer = Lexer(source)
    tokens: List[Token] = []
    while True:
        tok = lexer.next_token()
        tokens.append(tok)
        if tok.type == TokenType.EOF:
            return tokens
