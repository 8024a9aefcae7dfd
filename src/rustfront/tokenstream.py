from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .diagnostics import Handler
from .lexer import StringReader
from .spans import Span
from .tokens import DelimToken, Token, TokenKind


@dataclass(frozen=True, slots=True)
class Delimited:
    """A group of token trees between a matching pair of delimiters."""

    delim: DelimToken
    open_span: Span
    tts: tuple[TokenTree, ...]
    close_span: Span

    def open_token(self) -> Token:
        kind = self.delim.open_kind
        return Token(kind, kind.value, self.open_span)

    def close_token(self) -> Token:
        kind = self.delim.close_kind
        return Token(kind, kind.value, self.close_span)


@dataclass(frozen=True, slots=True)
class TtToken:
    tok: Token

    @property
    def span(self) -> Span:
        return self.tok.span


@dataclass(frozen=True, slots=True)
class TtDelimited:
    span: Span  # from the open delimiter to the close delimiter
    delimited: Delimited


TokenTree = TtToken | TtDelimited


def _delimited(delim: DelimToken, open_span: Span, tts: list[TokenTree], close_span: Span) -> TtDelimited:
    return TtDelimited(
        span=Span(open_span.lo, max(open_span.lo, close_span.hi)),
        delimited=Delimited(delim, open_span, tuple(tts), close_span),
    )


def parse_all_token_trees(handler: Handler, reader: StringReader) -> list[TokenTree]:
    """Group every token of `reader` into token trees.

    Never raises for bad input. Stray close delimiters are reported and
    dropped; a close delimiter matching an outer group closes the groups
    opened inside it; groups still open at end of file are reported and
    closed with a zero-width span.
    """
    top: list[TokenTree] = []
    # (delimiter, opening token, trees collected so far)
    stack: list[tuple[DelimToken, Token, list[TokenTree]]] = []

    def current() -> list[TokenTree]:
        return stack[-1][2] if stack else top

    def close_top(close_span: Span) -> None:
        delim, open_tok, tts = stack.pop()
        current().append(_delimited(delim, open_tok.span, tts, close_span))

    while True:
        tok = reader.next_token()

        if tok.kind is TokenKind.EOF:
            while stack:
                open_tok = stack[-1][1]
                handler.struct_span_err(tok.span, "this file contains an un-closed delimiter").span_help(
                    open_tok.span, "did you mean to close this delimiter?"
                ).emit()
                close_top(tok.span.shrink_to_lo())
            return top

        opening = DelimToken.from_open(tok.kind)
        if opening is not None:
            stack.append((opening, tok, []))
            continue

        closing = DelimToken.from_close(tok.kind)
        if closing is None:
            current().append(TtToken(tok))
            continue

        if not stack:
            handler.span_err(tok.span, f"unexpected close delimiter: `{tok.lexeme}`")
            continue
        if stack[-1][0] is closing:
            close_top(tok.span)
            continue

        db = handler.struct_span_err(tok.span, f"incorrect close delimiter: `{tok.lexeme}`")
        db.span_note(stack[-1][1].span, "unclosed delimiter")
        db.emit()
        if any(delim is closing for delim, _, _ in stack):
            while stack[-1][0] is not closing:
                close_top(tok.span.shrink_to_lo())
            close_top(tok.span)


def iter_tokens(tts: Iterable[TokenTree]) -> Iterator[Token]:
    for tt in tts:
        if isinstance(tt, TtToken):
            yield tt.tok
        else:
            d = tt.delimited
            yield d.open_token()
            yield from iter_tokens(d.tts)
            yield d.close_token()


def flatten_tts(tts: Iterable[TokenTree]) -> list[Token]:
    """The flat token sequence of `tts`, delimiters included."""
    return list(iter_tokens(tts))
