from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .codemap import CodeMap
from .diagnostics import Handler


class ParseSess:
    """State for one compilation: diagnostics, source map and the stack of
    module files currently being parsed.

    A session is cumulative (files and diagnostics are never dropped), so use
    a fresh one per compilation.
    """

    def __init__(self, span_diagnostic: Handler | None = None, code_map: CodeMap | None = None) -> None:
        if code_map is None:
            code_map = span_diagnostic.codemap if span_diagnostic and span_diagnostic.codemap else CodeMap()
        if span_diagnostic is None:
            span_diagnostic = Handler(code_map)
        elif span_diagnostic.codemap is None:
            span_diagnostic.codemap = code_map
        self.span_diagnostic = span_diagnostic
        self.code_map = code_map
        # Used to determine and report recursive module inclusions.
        self._included_mod_stack: list[Path] = []

    @classmethod
    def with_span_handler(cls, handler: Handler, code_map: CodeMap) -> ParseSess:
        return cls(span_diagnostic=handler, code_map=code_map)

    @property
    def codemap(self) -> CodeMap:
        return self.code_map

    # -- inclusion guard --------------------------------------------------

    @property
    def included_mods(self) -> tuple[Path, ...]:
        return tuple(self._included_mod_stack)

    def push_included_mod(self, path: str | Path) -> None:
        self._included_mod_stack.append(Path(path))

    def peek_included_mod(self) -> Path | None:
        return self._included_mod_stack[-1] if self._included_mod_stack else None

    def pop_included_mod(self) -> Path:
        if not self._included_mod_stack:
            raise IndexError("pop from an empty module inclusion stack")
        return self._included_mod_stack.pop()

    def is_included(self, path: str | Path) -> bool:
        return Path(path) in self._included_mod_stack

    @contextmanager
    def including(self, path: str | Path) -> Iterator[Path]:
        """Keep `path` on the inclusion stack while the block runs."""
        p = Path(path)
        self.push_included_mod(p)
        try:
            yield p
        finally:
            self.pop_included_mod()
