from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from pathlib import Path

from . import ast
from .codemap import SourceFile
from .lexer import StringReader
from .parser import Parser
from .session import ParseSess
from .spans import DUMMY_SP, Span
from .tokens import TokenKind
from .tokenstream import TokenTree, flatten_tts, parse_all_token_trees


log = logging.getLogger(__name__)

CrateConfig = Sequence[ast.MetaItem]


def _io_reason(e: Exception) -> str:
    if isinstance(e, UnicodeDecodeError):
        return "stream did not contain valid UTF-8"
    if isinstance(e, OSError) and e.strerror:
        return f"{e.strerror} (os error {e.errno})"
    return str(e)


# -- source ingestion -----------------------------------------------------


def file_to_filemap(sess: ParseSess, path: str | Path, span: Span | None = None) -> SourceFile:
    """Register the file at `path` in the session's source map.

    This is the only place source files are read. A file that cannot be read
    (or is not UTF-8) is a fatal diagnostic, anchored at `span` when given.
    """
    try:
        fm = sess.codemap.load_file(path)
    except (OSError, UnicodeDecodeError) as e:
        msg = f'couldn\'t read "{path}": {_io_reason(e)}'
        if span is not None:
            raise sess.span_diagnostic.span_fatal(span, msg) from e
        raise sess.span_diagnostic.fatal(msg) from e
    log.debug("loaded %s at %d..%d", fm.name, fm.start_pos, fm.end_pos)
    return fm


def string_to_filemap(sess: ParseSess, name: str, source: str) -> SourceFile:
    return sess.codemap.new_filemap(name, source)


def filemap_to_tts(sess: ParseSess, filemap: SourceFile) -> list[TokenTree]:
    """Lex `filemap` into token trees. Lexical errors are reported, not raised."""
    reader = StringReader(sess.span_diagnostic, filemap)
    return parse_all_token_trees(sess.span_diagnostic, reader)


def tts_to_parser(sess: ParseSess, tts: Sequence[TokenTree], cfg: CrateConfig) -> Parser:
    return Parser(sess, cfg, flatten_tts(tts))


def new_parser_from_tts(sess: ParseSess, cfg: CrateConfig, tts: Sequence[TokenTree]) -> Parser:
    return tts_to_parser(sess, tts, cfg)


def filemap_to_parser(sess: ParseSess, filemap: SourceFile, cfg: CrateConfig) -> Parser:
    end_pos = filemap.end_pos
    parser = tts_to_parser(sess, filemap_to_tts(sess, filemap), cfg)

    # An empty file has nothing to anchor EOF on but its own end.
    if parser.token.kind is TokenKind.EOF and parser.span == DUMMY_SP:
        parser.span = Span(end_pos, end_pos)

    parser.directory = Path(filemap.abs_path or filemap.name).parent
    return parser


def new_parser_from_source_str(sess: ParseSess, cfg: CrateConfig, name: str, source: str) -> Parser:
    return filemap_to_parser(sess, string_to_filemap(sess, name, source), cfg)


def new_parser_from_file(sess: ParseSess, cfg: CrateConfig, path: str | Path) -> Parser:
    return filemap_to_parser(sess, file_to_filemap(sess, path), cfg)


def new_sub_parser_from_file(
    sess: ParseSess,
    cfg: CrateConfig,
    path: str | Path,
    owns_directory: bool,
    module_name: str | None,
    sp: Span,
) -> Parser:
    """Parser for an out-of-line module file; read errors are reported at `sp`."""
    p = filemap_to_parser(sess, file_to_filemap(sess, path, sp), cfg)
    p.owns_directory = owns_directory
    p.root_module_name = module_name
    return p


def parse_sub_module_from_file(
    sess: ParseSess,
    cfg: CrateConfig,
    path: str | Path,
    owns_directory: bool,
    module_name: str | None,
    sp: Span,
) -> tuple[list[ast.Attribute], ast.Mod]:
    """Parse one module file while it sits on the session's inclusion stack."""
    with sess.including(path):
        p = new_sub_parser_from_file(sess, cfg, path, owns_directory, module_name, sp)
        inner_lo = p.span.lo
        attrs = p.parse_inner_attributes()
        module = p.parse_mod_items(TokenKind.EOF, inner_lo)
    return attrs, dataclasses.replace(module, inline=False)


# -- entry points ---------------------------------------------------------


def _session(sess: ParseSess | None) -> ParseSess:
    return ParseSess() if sess is None else sess


def parse_crate_from_file(path: str | Path, cfg: CrateConfig = (), sess: ParseSess | None = None) -> ast.Crate:
    sess = _session(sess)
    crate = new_parser_from_file(sess, cfg, path).parse_crate_mod()
    log.info("parsed crate %s (%d items)", path, len(crate.module.items))
    return crate


def parse_crate_attrs_from_file(
    path: str | Path, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> list[ast.Attribute]:
    return new_parser_from_file(_session(sess), cfg, path).parse_inner_attributes()


def parse_crate_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> ast.Crate:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_crate_mod()


def parse_crate_attrs_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> list[ast.Attribute]:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_inner_attributes()


def parse_expr_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> ast.Expr:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_expr()


def parse_item_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> ast.Item | None:
    """The first item of `source`, or None when it does not start with one."""
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_item()


def parse_meta_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> ast.MetaItem:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_meta_item()


def parse_stmt_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> ast.Stmt | None:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_stmt()


def parse_tts_from_source_str(
    name: str, source: str, cfg: CrateConfig = (), sess: ParseSess | None = None
) -> list[TokenTree]:
    return new_parser_from_source_str(_session(sess), cfg, name, source).parse_all_token_trees()
