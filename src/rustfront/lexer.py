from __future__ import annotations

import logging
import string

from .codemap import SourceFile
from .diagnostics import Handler
from .spans import Span
from .tokens import PUNCTUATION, Token, TokenKind


log = logging.getLogger(__name__)

_DEC = frozenset("0123456789")
_SIMPLE_ESCAPES = frozenset("nrt\\'\"0")


def _utf8_len(c: str) -> int:
    o = ord(c)
    if o < 0x80:
        return 1
    if o < 0x800:
        return 2
    if o < 0x10000:
        return 3
    return 4


def _is_ident_start(c: str) -> bool:
    return c != "" and (c == "_" or c.isalpha() or (c > "\x7f" and c.isidentifier()))


def _is_ident_continue(c: str) -> bool:
    return c != "" and (c == "_" or c.isalnum() or (c > "\x7f" and ("a" + c).isidentifier()))


def _digit_value(c: str) -> int | None:
    if c and c in string.hexdigits:
        return int(c, 16)
    return None


def _escape_char(c: str) -> str:
    if c.isprintable() and c.isascii():
        return c
    if c in "\n\r\t":
        return {"\n": "\\n", "\r": "\\r", "\t": "\\t"}[c]
    return f"\\u{{{ord(c):x}}}"


class StringReader:
    """Streaming lexer over one registered source file.

    `next_token` never raises for bad input: problems are reported to the
    handler and lexing carries on. A literal that fails validation keeps its
    span but gets a placeholder body (`"??"` for strings, `"?"` for chars and
    bytes), so the literal decoders only ever see well-formed text.
    """

    def __init__(self, handler: Handler, filemap: SourceFile) -> None:
        self.handler = handler
        self.filemap = filemap
        self.src = filemap.src
        self.i = 0  # index into src
        self.pos = filemap.start_pos  # absolute byte position of src[i]
        log.debug("lexing %s (%d bytes)", filemap.name, filemap.end_pos - filemap.start_pos)
        # A shebang line is not Rust, `#![attr]` is.
        if self.src.startswith("#!") and not self.src.startswith("#!["):
            while not self.eof() and self.peek() != "\n":
                self.bump()

    # -- cursor -----------------------------------------------------------

    def eof(self) -> bool:
        return self.i >= len(self.src)

    def peek(self, n: int = 0) -> str:
        j = self.i + n
        if j >= len(self.src):
            return ""
        return self.src[j]

    def bump(self, n: int = 1) -> None:
        for _ in range(n):
            if self.eof():
                return
            self.pos += _utf8_len(self.src[self.i])
            self.i += 1

    def err(self, lo: int, message: str, hi: int | None = None) -> None:
        self.handler.span_err(Span(lo, self.pos if hi is None else hi), message)

    # -- tokens -----------------------------------------------------------

    def next_token(self) -> Token:
        while True:
            if self.eof():
                return Token(TokenKind.EOF, "", Span(self.pos, self.pos))
            c = self.peek()
            if c.isspace():
                self.bump()
                continue
            if c == "/" and self.peek(1) == "/":
                tok = self._scan_line_comment()
            elif c == "/" and self.peek(1) == "*":
                tok = self._scan_block_comment()
            else:
                tok = self._scan_token()
            if tok is not None:
                return tok

    def _scan_token(self) -> Token | None:
        lo = self.pos
        c = self.peek()

        if c == "b" and self.peek(1) == "'":
            return self._scan_byte()
        if c == "b" and self.peek(1) == '"':
            return self._scan_cooked_string(prefix=2, byte=True)
        if c == "b" and self.peek(1) == "r" and self._raw_string_ahead(2):
            return self._scan_raw_string(prefix=2, byte=True)
        if c == "r" and self._raw_string_ahead(1):
            return self._scan_raw_string(prefix=1, byte=False)

        if _is_ident_start(c):
            start = self.i
            while _is_ident_continue(self.peek()):
                self.bump()
            return Token(TokenKind.IDENT, self.src[start : self.i], Span(lo, self.pos))

        if c in _DEC:
            return self._scan_number()
        if c == "'":
            return self._scan_char_or_lifetime()
        if c == '"':
            return self._scan_cooked_string(prefix=1, byte=False)

        for text, kind in PUNCTUATION:
            if self.src.startswith(text, self.i):
                self.bump(len(text))
                return Token(kind, text, Span(lo, self.pos))

        self.bump()
        self.err(lo, f"unknown start of token: {_escape_char(c)}")
        return None

    def _scan_suffix(self) -> str | None:
        if not _is_ident_start(self.peek()):
            return None
        start = self.i
        while _is_ident_continue(self.peek()):
            self.bump()
        return self.src[start : self.i]

    # -- comments ---------------------------------------------------------

    def _scan_line_comment(self) -> Token | None:
        lo = self.pos
        start = self.i
        # `///` (but not `////`) and `//!` are doc comments.
        is_doc = (self.peek(2) == "/" and self.peek(3) != "/") or self.peek(2) == "!"
        self.bump(2)
        while not self.eof():
            c = self.peek()
            if c == "\n" or (c == "\r" and self.peek(1) == "\n"):
                break
            if c == "\r" and is_doc:
                self.err(self.pos, "bare CR not allowed in doc-comment", self.pos + 1)
            self.bump()
        if not is_doc:
            return None
        return Token(TokenKind.DOC_COMMENT, self.src[start : self.i], Span(lo, self.pos))

    def _scan_block_comment(self) -> Token | None:
        lo = self.pos
        start = self.i
        # `/**` (but not `/***` or `/**/`) and `/*!` are doc comments.
        is_doc = (self.peek(2) == "*" and self.peek(3) not in ("*", "/")) or self.peek(2) == "!"
        self.bump(2)
        depth = 1
        has_cr = False
        while depth > 0:
            if self.eof():
                self.err(lo, "unterminated block doc-comment" if is_doc else "unterminated block comment")
                break
            c = self.peek()
            if c == "/" and self.peek(1) == "*":
                depth += 1
                self.bump(2)
            elif c == "*" and self.peek(1) == "/":
                depth -= 1
                self.bump(2)
            else:
                has_cr = has_cr or c == "\r"
                self.bump()
        if not is_doc:
            return None
        text = self.src[start : self.i]
        if has_cr:
            text = self._translate_crlf(text, lo, "bare CR not allowed in block doc-comment")
        return Token(TokenKind.DOC_COMMENT, text, Span(lo, self.pos))

    def _translate_crlf(self, text: str, lo: int, message: str) -> str:
        out: list[str] = []
        for i, c in enumerate(text):
            if c == "\r":
                if text[i + 1 : i + 2] == "\n":
                    continue
                at = lo + len(text[:i].encode("utf-8"))
                self.err(at, message, at + 1)
            out.append(c)
        return "".join(out)

    # -- escapes ----------------------------------------------------------

    def _scan_escape(self, delim: str, ascii_only: bool) -> bool:
        """Validate one escape starting at the backslash; returns validity."""
        esc_lo = self.pos
        self.bump()
        c = self.peek()
        if c == "":
            return False
        if c in _SIMPLE_ESCAPES:
            self.bump()
            return True
        if c == "x":
            self.bump()
            return self._scan_hex_escape(esc_lo, delim, ascii_only)
        if c == "u":
            self.bump()
            if self.peek() != "{":
                self.handler.struct_span_err(
                    Span(esc_lo, self.pos), "incorrect unicode escape sequence"
                ).help("format of unicode escape sequences is `\\u{…}`").emit()
                return False
            valid = self._scan_unicode_escape(esc_lo)
            if ascii_only:
                self.err(esc_lo, "unicode escape sequences cannot be used as bytes or in byte string")
                return False
            return valid
        if delim == '"' and (c == "\n" or (c == "\r" and self.peek(1) == "\n")):
            # Line continuation; the decoder drops the whitespace that follows.
            self.bump()
            return True
        self.bump()
        self.err(esc_lo, f"unknown character escape: {_escape_char(c)}")
        return False

    def _scan_hex_escape(self, esc_lo: int, delim: str, ascii_only: bool) -> bool:
        value = 0
        for _ in range(2):
            c = self.peek()
            if c == "" or c == delim:
                self.err(esc_lo, "numeric character escape is too short")
                return False
            d = _digit_value(c)
            if d is None:
                self.err(self.pos, f"illegal character in numeric character escape: {_escape_char(c)}", self.pos + _utf8_len(c))
                return False
            value = value * 16 + d
            self.bump()
        if not ascii_only and value > 0x7F:
            self.err(
                esc_lo,
                "this form of character escape may only be used with characters in the range [\\x00-\\x7f]",
            )
            return False
        return True

    def _scan_unicode_escape(self, esc_lo: int) -> bool:
        self.bump()  # {
        count = 0
        value = 0
        valid = True
        while self.peek() != "}":
            c = self.peek()
            if c in ("", '"', "'", "\n"):
                self.err(esc_lo, "unterminated unicode escape (needed a `}`)")
                return False
            d = _digit_value(c)
            if d is None:
                self.err(self.pos, f"invalid character in unicode escape: {_escape_char(c)}", self.pos + _utf8_len(c))
                valid = False
            else:
                value = value * 16 + d
            count += 1
            self.bump()
        self.bump()  # }
        if count > 6:
            self.err(esc_lo, "overlong unicode escape (can have at most 6 hex digits)")
            return False
        if count == 0:
            self.err(esc_lo, "empty unicode escape (must have at least 1 hex digit)")
            return False
        if valid and (value > 0x10FFFF or 0xD800 <= value <= 0xDFFF):
            self.err(esc_lo, "invalid unicode character escape")
            return False
        return valid

    # -- quoted literals --------------------------------------------------

    def _scan_char_or_lifetime(self) -> Token:
        lo = self.pos
        self.bump()  # '
        c = self.peek()

        # 'a is a lifetime unless it is closed right away: 'a'
        if _is_ident_start(c) and self.peek(1) != "'":
            start = self.i - 1
            while _is_ident_continue(self.peek()):
                self.bump()
            if self.peek() == "'":
                self.bump()
                self.err(lo, "character literal may only contain one codepoint")
                return Token(TokenKind.CHAR, "?", Span(lo, self.pos), self._scan_suffix())
            return Token(TokenKind.LIFETIME, self.src[start : self.i], Span(lo, self.pos))

        return self._scan_quoted_char(lo, TokenKind.CHAR, ascii_only=False)

    def _scan_byte(self) -> Token:
        lo = self.pos
        self.bump(2)  # b'
        return self._scan_quoted_char(lo, TokenKind.BYTE, ascii_only=True)

    def _scan_quoted_char(self, lo: int, kind: TokenKind, *, ascii_only: bool) -> Token:
        what = "byte" if ascii_only else "character"
        body_start = self.i
        c = self.peek()
        if c == "":
            self.err(lo, f"unterminated {what} constant")
            return Token(kind, "?", Span(lo, self.pos))
        if c == "'":
            self.bump()
            self.err(lo, f"empty {what} literal")
            return Token(kind, "?", Span(lo, self.pos), self._scan_suffix())

        valid = True
        if c == "\\":
            valid = self._scan_escape("'", ascii_only)
        else:
            if c in "\n\r\t":
                self.err(self.pos, f"{what} constant must be escaped: {_escape_char(c)}", self.pos + 1)
                valid = False
            elif ascii_only and not c.isascii():
                self.err(
                    self.pos,
                    "byte constant must be ASCII. Use a \\xHH escape for a non-ASCII byte",
                    self.pos + _utf8_len(c),
                )
                valid = False
            self.bump()

        if self.peek() != "'":
            while not self.eof() and self.peek() not in ("'", "\n"):
                self.bump()
            if self.peek() == "'":
                self.bump()
                self.err(lo, f"{what} literal may only contain one codepoint")
            else:
                self.err(lo, f"unterminated {what} constant")
            return Token(kind, "?", Span(lo, self.pos))

        body = self.src[body_start : self.i]
        self.bump()  # '
        return Token(kind, body if valid else "?", Span(lo, self.pos), self._scan_suffix())

    def _scan_cooked_string(self, *, prefix: int, byte: bool) -> Token:
        lo = self.pos
        self.bump(prefix)
        body_start = self.i
        body_end = self.i
        valid = True
        while True:
            if self.eof():
                self.err(lo, "unterminated double quote byte string" if byte else "unterminated double quote string")
                valid = False
                body_end = self.i
                break
            c = self.peek()
            if c == '"':
                body_end = self.i
                self.bump()
                break
            if c == "\\":
                if not self._scan_escape('"', byte):
                    valid = False
                continue
            if c == "\r" and self.peek(1) != "\n":
                self.err(self.pos, "bare CR not allowed in string, use \\r instead", self.pos + 1)
                valid = False
            elif byte and not c.isascii():
                self.err(
                    self.pos,
                    "byte constant must be ASCII. Use a \\xHH escape for a non-ASCII byte",
                    self.pos + _utf8_len(c),
                )
                valid = False
            self.bump()
        body = self.src[body_start:body_end] if valid else "??"
        kind = TokenKind.BYTE_STR if byte else TokenKind.STR
        return Token(kind, body, Span(lo, self.pos), self._scan_suffix())

    def _raw_string_ahead(self, offset: int) -> bool:
        j = self.i + offset
        while j < len(self.src) and self.src[j] == "#":
            j += 1
        return j < len(self.src) and self.src[j] == '"'

    def _scan_raw_string(self, *, prefix: int, byte: bool) -> Token:
        lo = self.pos
        self.bump(prefix)
        hashes = 0
        while self.peek() == "#":
            hashes += 1
            self.bump()
        self.bump()  # "
        closing = '"' + "#" * hashes
        body_start = self.i
        body_end = self.i
        valid = True
        while True:
            if self.eof():
                self.err(lo, "unterminated raw string")
                valid = False
                body_end = self.i
                break
            c = self.peek()
            if c == '"' and self.src.startswith(closing, self.i):
                body_end = self.i
                self.bump(len(closing))
                break
            if c == "\r" and self.peek(1) != "\n":
                self.err(self.pos, "bare CR not allowed in raw string", self.pos + 1)
                valid = False
            elif byte and not c.isascii():
                self.err(self.pos, "raw byte string must be ASCII", self.pos + _utf8_len(c))
                valid = False
            self.bump()
        body = self.src[body_start:body_end] if valid else "??"
        kind = TokenKind.BYTE_STR_RAW if byte else TokenKind.STR_RAW
        return Token(kind, body, Span(lo, self.pos), self._scan_suffix(), hashes)

    # -- numbers ----------------------------------------------------------

    def _scan_number(self) -> Token:
        lo = self.pos
        start = self.i
        base = 10
        if self.peek() == "0":
            n = self.peek(1)
            if n in ("b", "o", "x"):
                self.bump(2)
                base = {"b": 2, "o": 8, "x": 16}[n]
                # Small bases are scanned as decimal so stray digits get a
                # precise error.
                num_digits = self._scan_digits(base, 16 if base == 16 else 10)
            elif n in _DEC or n in ("_", "."):
                self.bump()
                num_digits = self._scan_digits(10, 10) + 1
            else:
                # just a 0
                self.bump()
                return Token(TokenKind.INTEGER, "0", Span(lo, self.pos), self._scan_suffix())
        else:
            num_digits = self._scan_digits(10, 10)

        if num_digits == 0 and base != 10:
            self.err(lo, "no valid digits found for number")
            return Token(TokenKind.INTEGER, "0", Span(lo, self.pos), self._scan_suffix())

        # 1.5 is a float; 1..2 and 1.foo() are not.
        if self.peek() == "." and self.peek(1) != "." and not _is_ident_start(self.peek(1)):
            self.bump()
            if self.peek() in _DEC:
                self._scan_digits(10, 10)
                self._scan_float_exponent()
            self._check_float_base(lo, base)
            return Token(TokenKind.FLOAT, self.src[start : self.i], Span(lo, self.pos), self._scan_suffix())
        if self.peek() in ("e", "E"):
            self._scan_float_exponent()
            self._check_float_base(lo, base)
            return Token(TokenKind.FLOAT, self.src[start : self.i], Span(lo, self.pos), self._scan_suffix())
        return Token(TokenKind.INTEGER, self.src[start : self.i], Span(lo, self.pos), self._scan_suffix())

    def _scan_digits(self, real_radix: int, scan_radix: int) -> int:
        count = 0
        while True:
            c = self.peek()
            if c == "_":
                self.bump()
                continue
            d = _digit_value(c)
            if d is None or d >= scan_radix:
                return count
            if d >= real_radix:
                self.err(self.pos, f"invalid digit for a base {real_radix} literal", self.pos + 1)
            count += 1
            self.bump()

    def _scan_float_exponent(self) -> None:
        if self.peek() not in ("e", "E"):
            return
        lo = self.pos
        self.bump()
        if self.peek() in ("+", "-"):
            self.bump()
        if self._scan_digits(10, 10) == 0:
            self.err(lo, "expected at least one digit in exponent")

    def _check_float_base(self, lo: int, base: int) -> None:
        if base == 16:
            self.err(lo, "hexadecimal float literal is not supported")
        elif base == 8:
            self.err(lo, "octal float literal is not supported")
        elif base == 2:
            self.err(lo, "binary float literal is not supported")


def tokenize(handler: Handler, filemap: SourceFile) -> list[Token]:
    """All tokens of `filemap`, ending with EOF."""
    reader = StringReader(handler, filemap)
    out: list[Token] = []
    while True:
        tok = reader.next_token()
        out.append(tok)
        if tok.kind is TokenKind.EOF:
            return out
