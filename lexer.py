"""
alc-lisp Lexer
Splits source text into positioned tokens using pyparsing scanners
"""

from typing import List, Tuple
from dataclasses import dataclass

from pyparsing import (
    MatchFirst, ParseFatalException, ParserElement, Regex, col, lineno
)

from error_handling import AlcLexError


class TokenKind:
    """Token classification tags"""
    LPAREN = "LParen"
    RPAREN = "RParen"
    LSQUARE = "LSquare"
    RSQUARE = "RSquare"
    SINGLE_QUOTE = "SingleQuote"
    STRING = "StringLiteral"
    WORD = "Word"
    NUMBER = "NumberLiteral"
    COMMENT = "Comment"
    UNKNOWN = "Unknown"


SINGLE_CHAR_TOKENS = {
    '(': TokenKind.LPAREN,
    ')': TokenKind.RPAREN,
    '[': TokenKind.LSQUARE,
    ']': TokenKind.RSQUARE,
    "'": TokenKind.SINGLE_QUOTE,
}

# Characters that may start or continue a word besides letters and digits
WORD_SYMBOLS = "+-/*_=?!<>"


@dataclass(frozen=True)
class Position:
    """1-based line and column of a code point"""
    line: int
    col: int

    def __str__(self) -> str:
        return f"{self.line}:{self.col}"


@dataclass(frozen=True)
class Token:
    """A lexeme with its kind and source range.

    ``end`` is the column just past the last code point of the lexeme.
    """
    kind: str
    value: str
    start: Position
    end: Position

    def __str__(self) -> str:
        return f"{self.kind}({self.value})"


def position_at(source: str, loc: int) -> Position:
    """Convert a string offset into a Position"""
    return Position(lineno(loc, source), col(loc, source))


def _tagged(kind: str, pattern: str) -> ParserElement:
    return Regex(pattern).set_name(kind).set_parse_action(lambda t: (kind, t[0]))


def _unterminated_string(source: str, loc: int, tokens):
    raise ParseFatalException(source, loc, "unterminated string literal")


def build_token_grammar() -> ParserElement:
    """Build the scanner used by Lexer.

    Alternatives are tried in order; the last one accepts any single
    non-whitespace character so scanning never stalls.
    """
    symbols = "".join("\\" + c for c in WORD_SYMBOLS)
    single = Regex(r"[()\[\]']").set_name("delimiter").set_parse_action(
        lambda t: (SINGLE_CHAR_TOKENS[t[0]], t[0]))

    scanner = MatchFirst([
        _tagged(TokenKind.COMMENT, r";[^\n]*"),
        _tagged(TokenKind.STRING, r'"[^"]*"'),
        Regex(r'"[^"]*').set_name("unterminated string").set_parse_action(_unterminated_string),
        single,
        _tagged(TokenKind.NUMBER, r"[+-]?\d[^\W_]*"),
        _tagged(TokenKind.WORD, rf"(?:[^\W\d]|[{symbols}])[\w{symbols}]*"),
        _tagged(TokenKind.UNKNOWN, r"\S"),
    ])
    return scanner.parse_with_tabs()


class Lexer:
    """Single left-to-right scan over the source text"""

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self._scanner = build_token_grammar()
        self._tokens: List[Token] = []

    def parse(self) -> List[Token]:
        """Tokenize the whole source, raising AlcLexError on unterminated strings"""
        tokens = []
        try:
            for result, start, end in self._scanner.scan_string(self.source):
                kind, text = result[0]
                tokens.append(Token(kind, text, position_at(self.source, start),
                                    position_at(self.source, end)))
        except ParseFatalException as e:
            raise AlcLexError(e.msg, (e.lineno, e.col), source_line=e.line) from e

        self._tokens = tokens
        return list(tokens)

    def tokens(self) -> List[Token]:
        return list(self._tokens)

    def __str__(self) -> str:
        return "\n".join(f"{t.start}-{t.end} {t}" for t in self._tokens)


def tokenize(source: str, filename: str = "<input>") -> List[Token]:
    """Tokenize source text in one call"""
    return Lexer(source, filename).parse()


def strip_comments(tokens: List[Token]) -> List[Token]:
    return [t for t in tokens if t.kind != TokenKind.COMMENT]


def token_summary(tokens: List[Token]) -> List[Tuple[str, str]]:
    """(kind, value) pairs, handy for debugging output and tests"""
    return [(t.kind, t.value) for t in tokens]
