from __future__ import annotations

import logging

import pytest

from rustfront.codemap import CodeMap
from rustfront.diagnostics import DiagnosticRecordFormatter, Handler, Level, configure_logging
from rustfront.errors import FatalError, InternalCompilerError, ParseError
from rustfront.spans import Span


def _handler() -> Handler:
    cm = CodeMap()
    cm.new_filemap("x.rs", "fn main() {\n    1u7;\n}\n")
    return Handler(cm)


def test_errors_are_counted_and_kept() -> None:
    h = _handler()
    h.span_err(Span(16, 19), "invalid width `7` for integer literal")
    h.span_warn(Span(0, 2), "unused")
    assert h.err_count == 1
    assert h.has_errors()
    assert h.messages() == ["invalid width `7` for integer literal", "unused"]
    assert h.messages(Level.WARNING) == ["unused"]


def test_warnings_can_be_suppressed() -> None:
    h = Handler(can_emit_warnings=False)
    h.span_warn(Span(0, 1), "quiet")
    assert h.diagnostics == []


def test_builder_children_and_format_all() -> None:
    h = _handler()
    h.struct_span_err(Span(16, 19), "bad suffix").help("try `u8`").span_note(Span(0, 2), "here").emit()
    out = h.format_all()
    assert out.splitlines() == [
        "x.rs:2:5: error: bad suffix",
        "  = help: try `u8`",
        "  = x.rs:1:1: note: here",
    ]


def test_builder_emits_once_and_can_be_cancelled() -> None:
    h = Handler()
    db = h.struct_err("once")
    db.emit()
    db.emit()
    cancelled = h.struct_err("never")
    cancelled.cancel()
    cancelled.emit()
    assert h.messages() == ["once"]
    assert cancelled.cancelled


def test_fatal_returns_the_exception_to_raise() -> None:
    h = _handler()
    err = h.span_fatal(Span(0, 2), "couldn't read")
    assert isinstance(err, FatalError)
    assert err.message == "couldn't read"
    assert h.diagnostics[0].level is Level.FATAL
    assert isinstance(h.fatal("again"), FatalError)
    assert h.err_count == 2


def test_bug_raises_internal_error() -> None:
    h = _handler()
    with pytest.raises(InternalCompilerError) as e:
        h.span_bug(Span(0, 2), "broken invariant")
    assert e.value.span == Span(0, 2)
    with pytest.raises(InternalCompilerError):
        h.bug("also broken")
    assert h.messages(Level.BUG) == ["broken invariant", "also broken"]


def test_internal_error_is_not_a_user_error() -> None:
    assert not issubclass(InternalCompilerError, (ParseError, FatalError))
    assert not issubclass(FatalError, ParseError)


def test_abort_if_errors() -> None:
    h = Handler()
    h.abort_if_errors()
    h.err("boom")
    with pytest.raises(FatalError):
        h.abort_if_errors()


def test_parse_error_emit_and_str() -> None:
    h = _handler()
    e = ParseError(Span(16, 19), "expected `;`", hint="add a semicolon", location="x.rs:2:5")
    assert str(e) == "x.rs:2:5: expected `;`\nhint: add a semicolon"
    e.emit(h)
    assert h.diagnostics[0].message == "expected `;`"
    assert h.diagnostics[0].children[0].message == "add a semicolon"


def test_diagnostics_are_logged_with_location(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="rustfront.diagnostics")
    h = _handler()
    h.span_err(Span(16, 19), "bad")
    (record,) = caplog.records
    assert record.levelno == logging.ERROR
    assert record.source_file_path == "x.rs"
    assert (record.source_line, record.source_column) == (2, 5)
    assert DiagnosticRecordFormatter().format(record) == "x.rs:2:5: error: bad"


def test_configure_logging_sets_levels() -> None:
    logger = configure_logging(2)
    assert logger.name == "rustfront"
    assert logger.level == logging.DEBUG
    configure_logging(0)
    assert logger.level == logging.WARNING
    formatted = [h for h in logger.handlers if isinstance(h.formatter, DiagnosticRecordFormatter)]
    assert len(formatted) == 1
