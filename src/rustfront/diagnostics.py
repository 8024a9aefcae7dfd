"""
    Diagnostic sink shared by the lexer, the literal decoders and the parser.

    Every diagnostic is kept in memory on the `Handler` (so callers and tests
    can inspect them) and is also logged on the `rustfront.diagnostics` logger,
    which is how diagnostics reach a terminal. Rendering is plain: one
    `file:line:col: level: message` line plus indented help/note children.

    Levels:
    - bug: a front-end invariant was broken; raises InternalCompilerError.
    - fatal: the current parse cannot continue; the caller raises FatalError.
    - error: user error, processing continues with a substitute value.
    - warning, note, help: informational.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import NoReturn

from .codemap import CodeMap
from .errors import FatalError, InternalCompilerError
from .spans import Span


class Level(str, Enum):
    BUG = "bug"
    FATAL = "fatal"
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"
    HELP = "help"

    @property
    def label(self) -> str:
        if self is Level.BUG:
            return "error: internal compiler error"
        if self is Level.FATAL:
            return "error"
        return self.value

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS: dict[Level, int] = {
    Level.BUG: logging.CRITICAL,
    Level.FATAL: logging.CRITICAL,
    Level.ERROR: logging.ERROR,
    Level.WARNING: logging.WARNING,
    Level.NOTE: logging.INFO,
    Level.HELP: logging.INFO,
}


@dataclass(frozen=True, slots=True)
class SubDiagnostic:
    level: Level
    message: str
    span: Span | None = None


@dataclass(slots=True)
class Diagnostic:
    level: Level
    message: str
    span: Span | None = None
    children: list[SubDiagnostic] = field(default_factory=list)

    def is_error(self) -> bool:
        return self.level in (Level.BUG, Level.FATAL, Level.ERROR)


class DiagnosticBuilder:
    """Accumulates children for a diagnostic until it is emitted or cancelled."""

    def __init__(self, handler: Handler, diagnostic: Diagnostic) -> None:
        self.handler = handler
        self.diagnostic = diagnostic
        self._done = False

    def help(self, message: str) -> DiagnosticBuilder:
        self.diagnostic.children.append(SubDiagnostic(Level.HELP, message))
        return self

    def span_help(self, span: Span, message: str) -> DiagnosticBuilder:
        self.diagnostic.children.append(SubDiagnostic(Level.HELP, message, span))
        return self

    def note(self, message: str) -> DiagnosticBuilder:
        self.diagnostic.children.append(SubDiagnostic(Level.NOTE, message))
        return self

    def span_note(self, span: Span, message: str) -> DiagnosticBuilder:
        self.diagnostic.children.append(SubDiagnostic(Level.NOTE, message, span))
        return self

    def emit(self) -> None:
        if self._done:
            return
        self._done = True
        self.handler.emit(self.diagnostic)

    def cancel(self) -> None:
        self._done = True

    @property
    def cancelled(self) -> bool:
        return self._done


class Handler:
    """Append-only diagnostic stream for one compilation."""

    def __init__(
        self,
        codemap: CodeMap | None = None,
        *,
        logger: logging.Logger | None = None,
        can_emit_warnings: bool = True,
    ) -> None:
        self.codemap = codemap
        self.logger = logger or logging.getLogger("rustfront.diagnostics")
        self.can_emit_warnings = can_emit_warnings
        self.diagnostics: list[Diagnostic] = []
        self.err_count = 0

    # -- emission ---------------------------------------------------------

    def emit(self, diagnostic: Diagnostic) -> None:
        if diagnostic.level is Level.WARNING and not self.can_emit_warnings:
            return
        self.diagnostics.append(diagnostic)
        if diagnostic.is_error():
            self.err_count += 1
        self.logger.log(
            diagnostic.level.log_level,
            self.render(diagnostic),
            extra=self._location_extra(diagnostic.span) | {"diagnostic_level": diagnostic.level.label},
        )

    def _location_extra(self, span: Span | None) -> dict[str, object]:
        if span is None or self.codemap is None or not self.codemap.files:
            return {}
        try:
            loc = self.codemap.lookup_char_pos(span.lo)
        except ValueError:
            return {}
        return {
            "source_file_path": loc.file.name,
            "source_line": loc.line,
            "source_column": loc.column,
        }

    def render(self, diagnostic: Diagnostic) -> str:
        """Message text plus indented children, without the location prefix."""
        lines = [diagnostic.message]
        for child in diagnostic.children:
            prefix = child.level.label
            if child.span is not None and self.codemap is not None:
                try:
                    prefix = f"{self.codemap.lookup_char_pos(child.span.lo).format()}: {prefix}"
                except ValueError:
                    pass
            lines.append(f"  = {prefix}: {child.message}")
        return "\n".join(lines)

    # -- builders ---------------------------------------------------------

    def struct_span_err(self, span: Span, message: str) -> DiagnosticBuilder:
        return DiagnosticBuilder(self, Diagnostic(Level.ERROR, message, span))

    def struct_err(self, message: str) -> DiagnosticBuilder:
        return DiagnosticBuilder(self, Diagnostic(Level.ERROR, message))

    def struct_span_warn(self, span: Span, message: str) -> DiagnosticBuilder:
        return DiagnosticBuilder(self, Diagnostic(Level.WARNING, message, span))

    def struct_span_fatal(self, span: Span, message: str) -> DiagnosticBuilder:
        return DiagnosticBuilder(self, Diagnostic(Level.FATAL, message, span))

    # -- one-shot helpers -------------------------------------------------

    def span_err(self, span: Span, message: str) -> None:
        self.struct_span_err(span, message).emit()

    def err(self, message: str) -> None:
        self.struct_err(message).emit()

    def span_warn(self, span: Span, message: str) -> None:
        self.struct_span_warn(span, message).emit()

    def span_fatal(self, span: Span, message: str) -> FatalError:
        """Emit a fatal diagnostic and return the exception the caller raises."""
        self.struct_span_fatal(span, message).emit()
        return FatalError(message)

    def fatal(self, message: str) -> FatalError:
        self.emit(Diagnostic(Level.FATAL, message))
        return FatalError(message)

    def span_bug(self, span: Span, message: str) -> NoReturn:
        self.emit(Diagnostic(Level.BUG, message, span))
        raise InternalCompilerError(message, span)

    def bug(self, message: str) -> NoReturn:
        self.emit(Diagnostic(Level.BUG, message))
        raise InternalCompilerError(message)

    # -- queries ----------------------------------------------------------

    def has_errors(self) -> bool:
        return self.err_count > 0

    def abort_if_errors(self) -> None:
        if self.err_count:
            raise FatalError()

    def messages(self, level: Level | None = None) -> list[str]:
        return [d.message for d in self.diagnostics if level is None or d.level is level]

    def format_all(self) -> str:
        out: list[str] = []
        for d in self.diagnostics:
            where = ""
            if d.span is not None and self.codemap is not None:
                extra = self._location_extra(d.span)
                if extra:
                    where = f"{extra['source_file_path']}:{extra['source_line']}:{extra['source_column']}: "
            out.append(f"{where}{d.level.label}: {self.render(d)}")
        return "\n".join(out)


class DiagnosticRecordFormatter(logging.Formatter):
    """Format diagnostic log records in a compiler-like format for console display."""

    def formatMessage(self, record: logging.LogRecord) -> str:
        # filename:line:col
        source_file: str = record.__dict__.get("source_file_path", "")
        source_line = record.__dict__.get("source_line", None)
        source_column = record.__dict__.get("source_column", None)
        location = ":".join(str(s) for s in (source_file, source_line, source_column) if s)

        level = record.__dict__.get("diagnostic_level") or record.levelname.lower()
        message = record.__dict__["message"]
        return ": ".join(s for s in (location, level, message) if s)


def configure_logging(verbosity: int = 0) -> logging.Logger:
    """Attach a console handler to the package logger (used by the CLI)."""
    logger = logging.getLogger("rustfront")
    if verbosity >= 2:
        logger.setLevel(logging.DEBUG)
    elif verbosity == 1:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.WARNING)
    if not any(isinstance(h.formatter, DiagnosticRecordFormatter) for h in logger.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.DEBUG)
        stream_handler.setFormatter(DiagnosticRecordFormatter())
        logger.addHandler(stream_handler)
    return logger
