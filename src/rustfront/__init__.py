from __future__ import annotations

import logging

from .api import (
    parse_crate_attrs_from_file,
    parse_crate_attrs_from_source_str,
    parse_crate_from_file,
    parse_crate_from_source_str,
    parse_expr_from_source_str,
    parse_item_from_source_str,
    parse_meta_from_source_str,
    parse_stmt_from_source_str,
    parse_tts_from_source_str,
)
from .diagnostics import Handler
from .errors import FatalError, InternalCompilerError, ParseError
from .session import ParseSess

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "FatalError",
    "Handler",
    "InternalCompilerError",
    "ParseError",
    "ParseSess",
    "parse_crate_attrs_from_file",
    "parse_crate_attrs_from_source_str",
    "parse_crate_from_file",
    "parse_crate_from_source_str",
    "parse_expr_from_source_str",
    "parse_item_from_source_str",
    "parse_meta_from_source_str",
    "parse_stmt_from_source_str",
    "parse_tts_from_source_str",
]
