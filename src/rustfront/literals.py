"""
    Decoders that turn the raw text of literal tokens into typed values.

    Inputs are literal bodies as the lexer hands them over: quotes, `b`/`r`
    prefixes, raw-string hashes and type suffixes are already stripped. The
    lexer is responsible for rejecting malformed escapes, so text that does
    not decode here is a front-end bug and raises InternalCompilerError.
    Numeric literals are different: bad suffixes and out-of-range values are
    user errors, reported to the handler while decoding carries on.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from .ast import (
    UNSUFFIXED,
    ByteLit,
    ByteStrLit,
    CharLit,
    FloatLit,
    FloatTy,
    FloatUnsuffixedLit,
    IntLit,
    IntTy,
    LitIntType,
    LitKind,
    Signed,
    StrLit,
    UintTy,
    Unsigned,
)
from .diagnostics import Handler
from .errors import InternalCompilerError
from .spans import Span
from .tokens import Token, TokenKind


log = logging.getLogger(__name__)

_SIMPLE_ESCAPES: dict[str, str] = {
    '"': '"',
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    "'": "'",
    "0": "\0",
}
_SIMPLE_BYTE_ESCAPES: dict[int, int] = {ord(k): ord(v) for k, v in _SIMPLE_ESCAPES.items()}

_DIGITS = "0123456789abcdef"
_WHITESPACE = frozenset(" \n\r\t")
_BYTE_WHITESPACE = frozenset(b" \n\r\t")
_BACKSLASH = ord("\\")
_CR = ord("\r")
_LF = ord("\n")

_U64_MAX = 2**64 - 1

_RADIX_PREFIXES = {"x": 16, "o": 8, "b": 2}

_INT_SUFFIXES: dict[str, LitIntType] = {
    "isize": Signed(IntTy.ISIZE),
    "i8": Signed(IntTy.I8),
    "i16": Signed(IntTy.I16),
    "i32": Signed(IntTy.I32),
    "i64": Signed(IntTy.I64),
    "usize": Unsigned(UintTy.USIZE),
    "u8": Unsigned(UintTy.U8),
    "u16": Unsigned(UintTy.U16),
    "u32": Unsigned(UintTy.U32),
    "u64": Unsigned(UintTy.U64),
}


def _parse_radix(digits: str | bytes, radix: int) -> int | None:
    """Strict unsigned parse: no sign, no underscores, no whitespace."""
    if isinstance(digits, bytes):
        digits = digits.decode("ascii", errors="replace")
    if not digits:
        return None
    value = 0
    for c in digits:
        d = _DIGITS.find(c.lower()) if len(c.lower()) == 1 else -1
        if d < 0 or d >= radix:
            return None
        value = value * radix + d
    return value


def _scalar(value: int | None) -> str | None:
    if value is None or value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return None
    return chr(value)


def _esc(lit: str, length: int) -> tuple[str, int] | None:
    if len(lit) < length:
        return None
    c = _scalar(_parse_radix(lit[2:length], 16))
    return None if c is None else (c, length)


def char_lit(lit: str) -> tuple[str, int]:
    """Decode the character or escape at the start of `lit`.

    Returns the character and the number of characters consumed; `lit` may
    run on past the escape.
    """
    if len(lit) == 1 and lit != "\\":
        return lit, 1
    if len(lit) < 2 or lit[0] != "\\":
        raise InternalCompilerError(f"lexer accepted invalid char escape `{lit}`")

    simple = _SIMPLE_ESCAPES.get(lit[1])
    if simple is not None:
        return simple, 2

    msg = f"lexer should have rejected a bad character escape {lit}"
    kind = lit[1]
    if kind in ("x", "X"):
        out = _esc(lit, 4)
    elif kind == "u":
        if lit[2:3] == "{":
            end = lit.find("}")
            if end < 0:
                raise InternalCompilerError(msg)
            digits = lit[3:end]
            c = _scalar(_parse_radix(digits, 16))
            out = None if c is None else (c, len(digits) + 4)
        else:
            out = _esc(lit, 6)
    elif kind == "U":
        out = _esc(lit, 10)
    else:
        out = None

    if out is None:
        raise InternalCompilerError(msg)
    return out


def _eat_whitespace(lit: str, i: int) -> int:
    while i < len(lit) and lit[i] in _WHITESPACE:
        i += 1
    return i


def str_lit(lit: str) -> str:
    """Unescape the body of a cooked string literal."""
    log.debug("str_lit: given %r", lit)
    out: list[str] = []
    i = 0
    n = len(lit)
    while i < n:
        c = lit[i]
        if c == "\\":
            if i + 1 >= n:
                raise InternalCompilerError(f"lexer should have rejected {lit!r} at {i}")
            nxt = lit[i + 1]
            if nxt == "\n":
                i = _eat_whitespace(lit, i + 1)
            elif nxt == "\r":
                if lit[i + 2 : i + 3] != "\n":
                    raise InternalCompilerError("lexer accepted bare CR")
                i = _eat_whitespace(lit, i + 2)
            else:
                ch, consumed = char_lit(lit[i:])
                out.append(ch)
                i += consumed
        elif c == "\r":
            if lit[i + 1 : i + 2] != "\n":
                raise InternalCompilerError("lexer accepted bare CR")
            out.append("\n")
            i += 2
        else:
            out.append(c)
            i += 1
    res = "".join(out)
    log.debug("str_lit: returning %r", res)
    return res


def raw_str_lit(lit: str) -> str:
    """Raw string bodies only get CRLF folded to LF."""
    log.debug("raw_str_lit: given %r", lit)
    out: list[str] = []
    i = 0
    while i < len(lit):
        c = lit[i]
        if c == "\r":
            if lit[i + 1 : i + 2] != "\n":
                raise InternalCompilerError("lexer accepted bare CR")
            out.append("\n")
            i += 2
        else:
            out.append(c)
            i += 1
    return "".join(out)


def _as_bytes(lit: str | bytes) -> bytes:
    return lit.encode("utf-8") if isinstance(lit, str) else lit


def byte_lit(lit: str | bytes) -> tuple[int, int]:
    """Decode the byte or escape at the start of `lit`; like `char_lit`."""
    data = _as_bytes(lit)
    if len(data) == 1:
        return data[0], 1
    if not data or data[0] != _BACKSLASH:
        raise InternalCompilerError(f"lexer accepted invalid byte literal {data!r} step 0")
    if len(data) < 2:
        raise InternalCompilerError(f"lexer accepted invalid byte literal {data!r} step 1")
    simple = _SIMPLE_BYTE_ESCAPES.get(data[1])
    if simple is not None:
        return simple, 2
    value = _parse_radix(data[2:4], 16) if len(data) >= 4 else None
    if value is None:
        raise InternalCompilerError(f"lexer accepted invalid byte literal {data!r} step 3")
    if value > 0xFF:
        raise InternalCompilerError(f"lexer accepted invalid byte literal {data!r} step 2")
    return value, 4


def byte_str_lit(lit: str | bytes) -> bytes:
    """Unescape the body of a byte string literal."""
    data = _as_bytes(lit)
    out = bytearray()
    i = 0
    n = len(data)
    while i < n:
        b = data[i]
        if b == _BACKSLASH:
            if i + 1 >= n:
                raise InternalCompilerError(f"lexer should have rejected {data!r} at {i}")
            nxt = data[i + 1]
            if nxt == _LF:
                i += 1
                while i < n and data[i] in _BYTE_WHITESPACE:
                    i += 1
            elif nxt == _CR:
                if i + 2 >= n or data[i + 2] != _LF:
                    raise InternalCompilerError("lexer accepted bare CR")
                i += 2
                while i < n and data[i] in _BYTE_WHITESPACE:
                    i += 1
            else:
                value, consumed = byte_lit(data[i:])
                out.append(value)
                i += consumed
        elif b == _CR:
            if i + 1 >= n or data[i + 1] != _LF:
                raise InternalCompilerError("lexer accepted bare CR")
            out.append(_LF)
            i += 2
        else:
            out.append(b)
            i += 1
    return bytes(out)


def looks_like_width_suffix(first_chars: Sequence[str], s: str) -> bool:
    """True for suffixes shaped like `i32` or `u1234`."""
    return len(s) > 1 and s[0] in first_chars and all("0" <= c <= "9" for c in s[1:])


def filtered_float_lit(data: str, suffix: str | None, handler: Handler, span: Span) -> LitKind:
    log.debug("filtered_float_lit: %s, %r", data, suffix)
    if suffix is None:
        return FloatUnsuffixedLit(data)
    if suffix == "f32":
        return FloatLit(data, FloatTy.F32)
    if suffix == "f64":
        return FloatLit(data, FloatTy.F64)
    if len(suffix) >= 2 and looks_like_width_suffix("f", suffix):
        handler.struct_span_err(span, f"invalid width `{suffix[1:]}` for float literal").help(
            "valid widths are 32 and 64"
        ).emit()
    else:
        handler.struct_span_err(span, f"invalid suffix `{suffix}` for float literal").help(
            "valid suffixes are `f32` and `f64`"
        ).emit()
    return FloatUnsuffixedLit(data)


def float_lit(s: str, suffix: str | None, handler: Handler, span: Span) -> LitKind:
    log.debug("float_lit: %r, %r", s, suffix)
    # The value is kept as text; range checks happen after parsing.
    return filtered_float_lit(s.replace("_", ""), suffix, handler, span)


def integer_lit(s: str, suffix: str | None, handler: Handler, span: Span) -> LitKind:
    # s is ASCII, so indexing by character is indexing by byte.
    s = s.replace("_", "")
    log.debug("integer_lit: %s, %r", s, suffix)

    orig = s
    base = 10
    ty: LitIntType = UNSUFFIXED

    if len(s) > 1 and s[0] == "0":
        base = _RADIX_PREFIXES.get(s[1], 10)

    # 1f64 and 2f32 etc. are valid float literals.
    if suffix is not None and looks_like_width_suffix("f", suffix):
        if base == 16:
            handler.span_err(span, "hexadecimal float literal is not supported")
        elif base == 8:
            handler.span_err(span, "octal float literal is not supported")
        elif base == 2:
            handler.span_err(span, "binary float literal is not supported")
        return filtered_float_lit(s, suffix, handler, span)

    if base != 10:
        s = s[2:]

    if suffix is not None:
        if not suffix:
            handler.span_bug(span, "found empty literal suffix in Some")
        known = _INT_SUFFIXES.get(suffix)
        if known is not None:
            ty = known
        elif looks_like_width_suffix("iu", suffix):
            # i<digits> and u<digits> look like widths.
            handler.struct_span_err(span, f"invalid width `{suffix[1:]}` for integer literal").help(
                "valid widths are 8, 16, 32 and 64"
            ).emit()
        else:
            handler.struct_span_err(span, f"invalid suffix `{suffix}` for numeric literal").help(
                "the suffix must be one of the integral types (`u32`, `isize`, etc)"
            ).emit()

    log.debug(
        "integer_lit: the type is %r, base %d, the new string is %r, the original string was %r, "
        "the original suffix was %r",
        ty,
        base,
        s,
        orig,
        suffix,
    )

    value = _parse_radix(s, base)
    if value is not None and value <= _U64_MAX:
        return IntLit(value, ty)

    # Small bases are lexed as if they were base 10 (`0b10201`); the lexer
    # has already reported the bad digit, and "too large" would be wrong.
    already_errored = base < 10 and any(c.isdigit() and c.isascii() and int(c) >= base for c in s)
    if not already_errored:
        handler.span_err(span, "int literal is too large")
    return IntLit(0, ty)


_SUFFIX_NOUNS = {
    TokenKind.BYTE: "byte literal",
    TokenKind.CHAR: "char literal",
    TokenKind.STR: "string literal",
    TokenKind.STR_RAW: "string literal",
    TokenKind.BYTE_STR: "byte string literal",
    TokenKind.BYTE_STR_RAW: "byte string literal",
}


def lit_from_token(tok: Token, handler: Handler) -> LitKind:
    """Decode a literal token into its AST value."""
    k = tok.kind
    if tok.suffix is not None and k in _SUFFIX_NOUNS:
        handler.span_err(tok.span, f"{_SUFFIX_NOUNS[k]} with a suffix is invalid")

    if k is TokenKind.BYTE:
        return ByteLit(byte_lit(tok.lexeme)[0])
    if k is TokenKind.CHAR:
        return CharLit(char_lit(tok.lexeme)[0])
    if k is TokenKind.STR:
        return StrLit(str_lit(tok.lexeme))
    if k is TokenKind.STR_RAW:
        return StrLit(raw_str_lit(tok.lexeme), tok.raw_hashes)
    if k is TokenKind.BYTE_STR:
        return ByteStrLit(byte_str_lit(tok.lexeme))
    if k is TokenKind.BYTE_STR_RAW:
        # Raw byte strings are taken verbatim.
        return ByteStrLit(tok.lexeme.encode("utf-8"))
    if k is TokenKind.INTEGER:
        return integer_lit(tok.lexeme, tok.suffix, handler, tok.span)
    if k is TokenKind.FLOAT:
        return float_lit(tok.lexeme, tok.suffix, handler, tok.span)
    handler.span_bug(tok.span, f"{k.name} is not a literal token")
