from __future__ import annotations

import pytest

from rustfront.codemap import CodeMap
from rustfront.diagnostics import Handler, Level
from rustfront.lexer import tokenize
from rustfront.spans import Span
from rustfront.tokens import Token, TokenKind as K


def _lex(src: str) -> tuple[list[Token], Handler]:
    cm = CodeMap()
    fm = cm.new_filemap("<test>", src)
    h = Handler(cm)
    return tokenize(h, fm), h


def _kinds(src: str) -> list[K]:
    toks, _ = _lex(src)
    return [t.kind for t in toks]


def test_identifiers_punctuation_and_spans() -> None:
    toks, h = _lex("fn a(b: i32) -> u8 { b <<= 1; }")
    assert [t.lexeme for t in toks[:-1]] == [
        "fn", "a", "(", "b", ":", "i32", ")", "->", "u8", "{", "b", "<<=", "1", ";", "}",
    ]
    assert toks[0].span == Span(0, 2)
    assert toks[-1].kind is K.EOF
    assert not h.diagnostics


def test_literal_tokens_carry_body_and_suffix() -> None:
    toks, h = _lex(r"""1u8 0x1F 2.5f32 1e10 'c' b'x' "s"x r#"raw"# b"bs" br"rb" 1..2""")
    got = [(t.kind, t.lexeme, t.suffix) for t in toks[:-1]]
    assert got == [
        (K.INTEGER, "1", "u8"),
        (K.INTEGER, "0x1F", None),
        (K.FLOAT, "2.5", "f32"),
        (K.FLOAT, "1e10", None),
        (K.CHAR, "c", None),
        (K.BYTE, "x", None),
        (K.STR, "s", "x"),
        (K.STR_RAW, "raw", None),
        (K.BYTE_STR, "bs", None),
        (K.BYTE_STR_RAW, "rb", None),
        (K.INTEGER, "1", None),
        (K.DOTDOT, "..", None),
        (K.INTEGER, "2", None),
    ]
    assert toks[7].raw_hashes == 1
    assert not h.diagnostics


def test_method_call_on_integer_is_not_a_float() -> None:
    assert _kinds("1.foo()")[:3] == [K.INTEGER, K.DOT, K.IDENT]


def test_lifetimes_and_chars() -> None:
    toks, _ = _lex("&'a T 'b' '\\n'")
    assert (toks[1].kind, toks[1].lexeme) == (K.LIFETIME, "'a")
    assert (toks[3].kind, toks[3].lexeme) == (K.CHAR, "b")
    assert (toks[4].kind, toks[4].lexeme) == (K.CHAR, "\\n")


def test_comments_are_skipped_and_doc_comments_kept() -> None:
    toks, _ = _lex("// plain\n//// also plain\n/* a /* nested */ b */ /// doc\n//! inner\n/** block */ x")
    docs = [t.lexeme for t in toks if t.kind is K.DOC_COMMENT]
    assert docs == ["/// doc", "//! inner", "/** block */"]
    assert toks[-2].lexeme == "x"


def test_crlf_in_block_doc_comment_is_normalised() -> None:
    toks, h = _lex("/** a\r\n b */")
    assert toks[0].lexeme == "/** a\n b */"
    assert not h.diagnostics


def test_shebang_is_skipped() -> None:
    assert _kinds("#!/usr/bin/env run\nfn") == [K.IDENT, K.EOF]
    assert _kinds("#![attr]")[:3] == [K.POUND, K.NOT, K.OPEN_BRACKET]


def test_spans_count_utf8_bytes() -> None:
    toks, _ = _lex('"é" x')
    assert toks[0].span == Span(0, 4)
    assert toks[1].span == Span(5, 6)


@pytest.mark.parametrize(
    "src,message,kind,placeholder",
    [
        ('"\\q"', "unknown character escape: q", K.STR, "??"),
        ('"\\x80"', "this form of character escape may only be used with characters in the range [\\x00-\\x7f]", K.STR, "??"),
        ('"\\u{110000}"', "invalid unicode character escape", K.STR, "??"),
        ('"\\u{1234567}"', "overlong unicode escape (can have at most 6 hex digits)", K.STR, "??"),
        ('"\\u{}"', "empty unicode escape (must have at least 1 hex digit)", K.STR, "??"),
        ("'\\u41'", "incorrect unicode escape sequence", K.CHAR, "?"),
        ("b'é'", "byte constant must be ASCII. Use a \\xHH escape for a non-ASCII byte", K.BYTE, "?"),
        ("b'\\u{41}'", "unicode escape sequences cannot be used as bytes or in byte string", K.BYTE, "?"),
        ('"a\rb"', "bare CR not allowed in string, use \\r instead", K.STR, "??"),
        ("''", "empty character literal", K.CHAR, "?"),
        ('"abc', "unterminated double quote string", K.STR, "??"),
    ],
)
def test_invalid_literals_are_reported_and_replaced(src: str, message: str, kind: K, placeholder: str) -> None:
    toks, h = _lex(src)
    assert message in h.messages(Level.ERROR)
    assert toks[0].kind is kind
    assert toks[0].lexeme == placeholder


@pytest.mark.parametrize(
    "src,message",
    [
        ("0b102", "invalid digit for a base 2 literal"),
        ("0x", "no valid digits found for number"),
        ("1e+", "expected at least one digit in exponent"),
        ("0x1.5", "hexadecimal float literal is not supported"),
        ("/* open", "unterminated block comment"),
        ("€", "unknown start of token: \\u{20ac}"),
    ],
)
def test_lexical_errors_are_reported(src: str, message: str) -> None:
    toks, h = _lex(src)
    assert message in h.messages(Level.ERROR)
    assert toks[-1].kind is K.EOF


def test_byte_string_hex_escape_may_exceed_ascii() -> None:
    toks, h = _lex('b"\\xff"')
    assert toks[0].lexeme == "\\xff"
    assert not h.diagnostics
