from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path

from .spans import Span


class SpanSnippetError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class SourceFile:
    """One registered source unit.

    `start_pos`/`end_pos` delimit the file in the global position space;
    `lines` holds the absolute position of every line start.
    """

    name: str
    src: str
    start_pos: int
    end_pos: int
    lines: tuple[int, ...]
    abs_path: str | None = None
    src_bytes: bytes = field(default=b"", repr=False, compare=False)

    def contains(self, pos: int) -> bool:
        return self.start_pos <= pos <= self.end_pos

    def lookup_line(self, pos: int) -> int:
        """0-based index of the line containing `pos`."""
        return max(bisect_right(self.lines, pos) - 1, 0)

    def get_line(self, line_index: int) -> str:
        begin = self.lines[line_index] - self.start_pos
        end = self.src_bytes.find(b"\n", begin)
        if end < 0:
            end = len(self.src_bytes)
        return self.src_bytes[begin:end].decode("utf-8")

    def slice(self, lo: int, hi: int) -> str:
        return self.src_bytes[lo - self.start_pos : hi - self.start_pos].decode("utf-8")


@dataclass(frozen=True, slots=True)
class Loc:
    """A user-facing location; line and column are 1-based."""

    file: SourceFile
    line: int
    column: int

    def format(self) -> str:
        return f"{self.file.name}:{self.line}:{self.column}"


class CodeMap:
    """Registry of every source file seen during one compilation."""

    def __init__(self) -> None:
        self._files: list[SourceFile] = []

    @property
    def files(self) -> tuple[SourceFile, ...]:
        return tuple(self._files)

    def next_start_pos(self) -> int:
        if not self._files:
            return 0
        # Leave a one position gap so the end of a file never equals the
        # start of the next one.
        return self._files[-1].end_pos + 1

    def new_filemap(self, filename: str, src: str, abs_path: str | None = None) -> SourceFile:
        if src.startswith("\ufeff"):
            src = src[1:]
        data = src.encode("utf-8")
        start = self.next_start_pos()
        lines = [start]
        i = data.find(b"\n")
        while i >= 0:
            lines.append(start + i + 1)
            i = data.find(b"\n", i + 1)
        fm = SourceFile(
            name=filename,
            src=src,
            start_pos=start,
            end_pos=start + len(data),
            lines=tuple(lines),
            abs_path=abs_path,
            src_bytes=data,
        )
        self._files.append(fm)
        return fm

    def load_file(self, path: str | Path) -> SourceFile:
        """Read `path` as UTF-8 and register it.

        Raises OSError or UnicodeDecodeError. Line endings are kept as they
        are on disk; CRLF handling belongs to the lexer and the decoders.
        """
        p = Path(path)
        src = p.read_bytes().decode("utf-8")
        return self.new_filemap(str(path), src, abs_path=str(p.resolve()))

    def get_filemap(self, filename: str) -> SourceFile | None:
        for fm in self._files:
            if fm.name == filename:
                return fm
        return None

    def lookup_filemap(self, pos: int) -> SourceFile:
        starts = [fm.start_pos for fm in self._files]
        idx = bisect_right(starts, pos) - 1
        if idx < 0 or not self._files[idx].contains(pos):
            raise ValueError(f"position {pos} is not inside any registered file")
        return self._files[idx]

    def lookup_char_pos(self, pos: int) -> Loc:
        fm = self.lookup_filemap(pos)
        line = fm.lookup_line(pos)
        prefix = fm.slice(fm.lines[line], pos)
        return Loc(file=fm, line=line + 1, column=len(prefix) + 1)

    def span_to_filename(self, span: Span) -> str:
        return self.lookup_filemap(span.lo).name

    def span_to_string(self, span: Span) -> str:
        if not self._files:
            return "no-location"
        lo = self.lookup_char_pos(span.lo)
        hi = self.lookup_char_pos(span.hi)
        return f"{lo.file.name}:{lo.line}:{lo.column}: {hi.line}:{hi.column}"

    def span_to_snippet(self, span: Span) -> str:
        try:
            lo_file = self.lookup_filemap(span.lo)
            hi_file = self.lookup_filemap(span.hi)
        except ValueError as e:
            raise SpanSnippetError(str(e)) from e
        if lo_file is not hi_file:
            raise SpanSnippetError(f"span {span} crosses files {lo_file.name} and {hi_file.name}")
        return lo_file.slice(span.lo, span.hi)
