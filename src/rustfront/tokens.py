from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .spans import Span


class TokenKind(str, Enum):
    # Identifiers (keywords are identifiers too) and lifetimes
    IDENT = "IDENT"
    LIFETIME = "LIFETIME"

    # Literals; the lexeme is the literal body without quotes, prefix or suffix
    BYTE = "BYTE"
    CHAR = "CHAR"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    STR = "STR"
    STR_RAW = "STR_RAW"
    BYTE_STR = "BYTE_STR"
    BYTE_STR_RAW = "BYTE_STR_RAW"

    DOC_COMMENT = "DOC_COMMENT"

    # Delimiters
    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    OPEN_BRACKET = "["
    CLOSE_BRACKET = "]"
    OPEN_BRACE = "{"
    CLOSE_BRACE = "}"

    # Punctuation / operators
    EQ = "="
    LT = "<"
    LE = "<="
    EQEQ = "=="
    NE = "!="
    GE = ">="
    GT = ">"
    ANDAND = "&&"
    OROR = "||"
    NOT = "!"
    TILDE = "~"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    CARET = "^"
    AND = "&"
    OR = "|"
    SHL = "<<"
    SHR = ">>"
    PLUSEQ = "+="
    MINUSEQ = "-="
    STAREQ = "*="
    SLASHEQ = "/="
    PERCENTEQ = "%="
    CARETEQ = "^="
    ANDEQ = "&="
    OREQ = "|="
    SHLEQ = "<<="
    SHREQ = ">>="
    AT = "@"
    DOT = "."
    DOTDOT = ".."
    DOTDOTDOT = "..."
    COMMA = ","
    SEMI = ";"
    COLON = ":"
    MODSEP = "::"
    RARROW = "->"
    LARROW = "<-"
    FATARROW = "=>"
    POUND = "#"
    DOLLAR = "$"
    QUESTION = "?"

    EOF = "EOF"


LITERAL_KINDS: frozenset[TokenKind] = frozenset(
    {
        TokenKind.BYTE,
        TokenKind.CHAR,
        TokenKind.INTEGER,
        TokenKind.FLOAT,
        TokenKind.STR,
        TokenKind.STR_RAW,
        TokenKind.BYTE_STR,
        TokenKind.BYTE_STR_RAW,
    }
)

# Punctuation sorted longest first so the lexer can use maximal munch.
PUNCTUATION: tuple[tuple[str, TokenKind], ...] = tuple(
    sorted(
        ((k.value, k) for k in TokenKind if k.value != k.name),
        key=lambda p: -len(p[0]),
    )
)

# Keywords that can never be used as identifiers.
STRICT_KEYWORDS: frozenset[str] = frozenset(
    {
        "as", "break", "const", "continue", "crate", "else", "enum", "extern",
        "false", "fn", "for", "if", "impl", "in", "let", "loop", "match", "mod",
        "move", "mut", "pub", "ref", "return", "static", "struct", "trait",
        "true", "type", "unsafe", "use", "where", "while",
    }
)

# Keywords that are still valid as a path segment.
PATH_SEGMENT_KEYWORDS: frozenset[str] = frozenset({"self", "Self", "super"})

RESERVED_KEYWORDS: frozenset[str] = frozenset(
    {
        "abstract", "alignof", "become", "box", "do", "final", "macro",
        "offsetof", "override", "priv", "proc", "pure", "sizeof", "typeof",
        "unsized", "virtual", "yield",
    }
)


class DelimToken(str, Enum):
    PAREN = "paren"
    BRACKET = "bracket"
    BRACE = "brace"

    @property
    def open_kind(self) -> TokenKind:
        return _OPEN[self]

    @property
    def close_kind(self) -> TokenKind:
        return _CLOSE[self]

    @classmethod
    def from_open(cls, kind: TokenKind) -> DelimToken | None:
        return _BY_OPEN.get(kind)

    @classmethod
    def from_close(cls, kind: TokenKind) -> DelimToken | None:
        return _BY_CLOSE.get(kind)


_OPEN = {
    DelimToken.PAREN: TokenKind.OPEN_PAREN,
    DelimToken.BRACKET: TokenKind.OPEN_BRACKET,
    DelimToken.BRACE: TokenKind.OPEN_BRACE,
}
_CLOSE = {
    DelimToken.PAREN: TokenKind.CLOSE_PAREN,
    DelimToken.BRACKET: TokenKind.CLOSE_BRACKET,
    DelimToken.BRACE: TokenKind.CLOSE_BRACE,
}
_BY_OPEN = {v: k for k, v in _OPEN.items()}
_BY_CLOSE = {v: k for k, v in _CLOSE.items()}


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    lexeme: str
    span: Span
    suffix: str | None = None  # literal type suffix, e.g. "u8"
    raw_hashes: int = 0  # number of `#` around a raw string

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.lexeme!r}, {self.span.lo}..{self.span.hi})"

    def is_ident(self, name: str | None = None) -> bool:
        return self.kind is TokenKind.IDENT and (name is None or self.lexeme == name)

    def is_keyword(self, name: str) -> bool:
        return self.kind is TokenKind.IDENT and self.lexeme == name

    def is_any_keyword(self) -> bool:
        return self.kind is TokenKind.IDENT and (
            self.lexeme in STRICT_KEYWORDS
            or self.lexeme in RESERVED_KEYWORDS
            or self.lexeme in PATH_SEGMENT_KEYWORDS
        )

    def is_lit(self) -> bool:
        return self.kind in LITERAL_KINDS

    def is_open_delim(self) -> bool:
        return DelimToken.from_open(self.kind) is not None

    def is_close_delim(self) -> bool:
        return DelimToken.from_close(self.kind) is not None


def token_to_string(tok: Token) -> str:
    """Source text of a token, rebuilt from its parts."""
    k = tok.kind
    suffix = tok.suffix or ""
    if k is TokenKind.EOF:
        return "<eof>"
    if k is TokenKind.STR:
        return f'"{tok.lexeme}"{suffix}'
    if k is TokenKind.STR_RAW:
        h = "#" * tok.raw_hashes
        return f'r{h}"{tok.lexeme}"{h}{suffix}'
    if k is TokenKind.BYTE_STR:
        return f'b"{tok.lexeme}"{suffix}'
    if k is TokenKind.BYTE_STR_RAW:
        h = "#" * tok.raw_hashes
        return f'br{h}"{tok.lexeme}"{h}{suffix}'
    if k is TokenKind.CHAR:
        return f"'{tok.lexeme}'{suffix}"
    if k is TokenKind.BYTE:
        return f"b'{tok.lexeme}'{suffix}"
    if k in (TokenKind.INTEGER, TokenKind.FLOAT):
        return tok.lexeme + suffix
    return tok.lexeme
