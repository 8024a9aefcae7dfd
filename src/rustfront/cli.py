from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum

from .api import file_to_filemap, filemap_to_tts, parse_crate_from_file, parse_meta_from_source_str
from .diagnostics import configure_logging
from .errors import FatalError, ParseError
from .lexer import tokenize
from .literals import lit_from_token
from .pprust import crate_to_string, lit_kind_to_string, tts_to_string
from .session import ParseSess


def _to_jsonable(obj):
    if is_dataclass(obj):
        return {k: _to_jsonable(v) for k, v in asdict(obj).items()}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return list(obj)
    if isinstance(obj, tuple):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, list):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    return obj


def _dump(obj) -> None:
    print(json.dumps(_to_jsonable(obj), indent=2, sort_keys=True))


def _run_one(sess: ParseSess, path: str, args: argparse.Namespace) -> None:
    cfg = tuple(parse_meta_from_source_str("<cfg>", spec, sess=sess) for spec in args.cfg)

    if args.tts:
        tts = filemap_to_tts(sess, file_to_filemap(sess, path))
        if args.json:
            _dump(tts)
        else:
            print(tts_to_string(tts))
        return

    if args.literals:
        fm = file_to_filemap(sess, path)
        handler = sess.span_diagnostic
        for tok in tokenize(handler, fm):
            if not tok.is_lit():
                continue
            value = lit_from_token(tok, handler)
            where = sess.codemap.lookup_char_pos(tok.span.lo).format()
            print(f"{where}: {sess.codemap.span_to_snippet(tok.span)} => {lit_kind_to_string(value)}")
        return

    crate = parse_crate_from_file(path, cfg, sess=sess)
    if args.json:
        _dump(crate)
    elif args.pretty:
        sys.stdout.write(crate_to_string(crate))
    else:
        print(f"{path}: {len(crate.module.items)} items")


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="rustfront", description="Parse Rust source files")
    ap.add_argument("files", nargs="+", help="Crate root files")
    ap.add_argument(
        "--cfg",
        action="append",
        default=[],
        metavar="SPEC",
        help="Crate configuration meta item, e.g. 'feature = \"x\"' (repeatable)",
    )
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--tts", action="store_true", help="Print the token trees instead of parsing")
    mode.add_argument("--literals", action="store_true", help="Print every literal token and its decoded value")
    mode.add_argument("--pretty", action="store_true", help="Pretty-print the parsed crate")
    ap.add_argument("--json", action="store_true", help="Print parsed AST (or token trees) as JSON")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="More logging (repeatable)")
    args = ap.parse_args(argv)

    configure_logging(args.verbose)

    status = 0
    for path in args.files:
        sess = ParseSess()
        try:
            _run_one(sess, path, args)
        except ParseError as e:
            e.emit(sess.span_diagnostic)
        except FatalError:
            status = 1
        if sess.span_diagnostic.has_errors():
            status = 1
    return status
