from __future__ import annotations

from rustfront import ParseSess, parse_tts_from_source_str
from rustfront.api import filemap_to_tts, string_to_filemap
from rustfront.diagnostics import Level
from rustfront.spans import Span
from rustfront.tokens import DelimToken, Token, TokenKind as K
from rustfront.tokenstream import Delimited, TtDelimited, TtToken, flatten_tts


def sp(lo: int, hi: int) -> Span:
    return Span(lo, hi)


def _tts(src: str, sess: ParseSess | None = None):
    sess = sess or ParseSess()
    return filemap_to_tts(sess, string_to_filemap(sess, "<test>", src)), sess


def test_string_to_tts() -> None:
    tts = parse_tts_from_source_str("bogofile", "fn a (b : i32) { b; }")
    assert tts == [
        TtToken(Token(K.IDENT, "fn", sp(0, 2))),
        TtToken(Token(K.IDENT, "a", sp(3, 4))),
        TtDelimited(
            sp(5, 14),
            Delimited(
                DelimToken.PAREN,
                sp(5, 6),
                (
                    TtToken(Token(K.IDENT, "b", sp(6, 7))),
                    TtToken(Token(K.COLON, ":", sp(8, 9))),
                    TtToken(Token(K.IDENT, "i32", sp(10, 13))),
                ),
                sp(13, 14),
            ),
        ),
        TtDelimited(
            sp(15, 21),
            Delimited(
                DelimToken.BRACE,
                sp(15, 16),
                (
                    TtToken(Token(K.IDENT, "b", sp(17, 18))),
                    TtToken(Token(K.SEMI, ";", sp(18, 19))),
                ),
                sp(20, 21),
            ),
        ),
    ]


def test_macro_rules_tts() -> None:
    tts = parse_tts_from_source_str("bogofile", "macro_rules! zip (($a)=>($a))")
    assert len(tts) == 4
    assert tts[0].tok.is_ident("macro_rules")
    assert tts[1].tok.kind is K.NOT
    assert tts[2].tok.is_ident("zip")

    body = tts[3].delimited
    assert body.delim is DelimToken.PAREN
    first, arrow, second = body.tts
    assert arrow.tok.kind is K.FATARROW
    for group in (first.delimited, second.delimited):
        assert group.delim is DelimToken.PAREN
        dollar, ident = group.tts
        assert dollar.tok.kind is K.DOLLAR
        assert ident.tok.is_ident("a")


def test_independent_sessions_give_equal_trees() -> None:
    src = "fn main() { let x = [1, 2]; foo!(x); }"
    a, _ = _tts(src)
    b, _ = _tts(src)
    assert a == b


def test_flatten_restores_the_token_sequence() -> None:
    tts, _ = _tts("f(a[1], {b})")
    assert [t.lexeme for t in flatten_tts(tts)] == ["f", "(", "a", "[", "1", "]", ",", "{", "b", "}", ")"]


def test_unclosed_delimiter_is_reported_and_closed() -> None:
    tts, sess = _tts("fn f() { a")
    h = sess.span_diagnostic
    assert h.messages(Level.ERROR) == ["this file contains an un-closed delimiter"]
    assert h.diagnostics[0].children[0].message == "did you mean to close this delimiter?"
    group = tts[-1]
    assert isinstance(group, TtDelimited)
    assert group.delimited.close_span == sp(10, 10)
    assert group.span == sp(7, 10)


def test_unexpected_close_delimiter_is_dropped() -> None:
    tts, sess = _tts("a ) b")
    assert sess.span_diagnostic.messages() == ["unexpected close delimiter: `)`"]
    assert [tt.tok.lexeme for tt in tts] == ["a", "b"]


def test_incorrect_close_delimiter_closes_inner_groups() -> None:
    tts, sess = _tts("{ ( }")
    h = sess.span_diagnostic
    assert h.messages() == ["incorrect close delimiter: `}`"]
    assert h.diagnostics[0].children[0].message == "unclosed delimiter"
    (outer,) = tts
    assert outer.delimited.delim is DelimToken.BRACE
    (inner,) = outer.delimited.tts
    assert inner.delimited.delim is DelimToken.PAREN
    assert inner.delimited.close_span == sp(4, 4)


def test_incorrect_close_delimiter_without_match_is_skipped() -> None:
    tts, sess = _tts("( ] )")
    assert sess.span_diagnostic.messages() == ["incorrect close delimiter: `]`"]
    (group,) = tts
    assert group.delimited.tts == ()
    assert group.delimited.close_span == sp(4, 5)
