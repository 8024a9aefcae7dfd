from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .spans import Span

if TYPE_CHECKING:
    from .diagnostics import Handler


@dataclass(slots=True)
class ParseError(Exception):
    """A user-facing syntax error raised by a grammar production."""

    span: Span
    message: str
    hint: str | None = None
    location: str | None = None  # "file:line:col", filled in when known

    def __str__(self) -> str:
        base = f"{self.location}: {self.message}" if self.location else self.message
        if self.hint:
            return f"{base}\nhint: {self.hint}"
        return base

    def emit(self, handler: Handler) -> None:
        """Record this error in `handler` as a regular error diagnostic."""
        db = handler.struct_span_err(self.span, self.message)
        if self.hint:
            db.help(self.hint)
        db.emit()


class FatalError(Exception):
    """A fatal diagnostic has been emitted; the current parse is over.

    Raised by whoever called `Handler.fatal`/`Handler.span_fatal`, and meant to
    be caught only at an entry-point boundary.
    """

    def __init__(self, message: str = "aborting due to previous error") -> None:
        super().__init__(message)
        self.message = message


class InternalCompilerError(Exception):
    """A front-end invariant was broken.

    The literal decoders raise this when they are handed text the lexer should
    have rejected. It signals a bug in the front end, never bad user input.
    """

    def __init__(self, message: str, span: Span | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.span = span
