from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path as FsPath

from . import ast
from .ast import AttrStyle, BinOpKind, UnOp, Visibility
from .errors import ParseError
from .literals import lit_from_token
from .session import ParseSess
from .spans import DUMMY_SP, Span
from .tokens import (
    RESERVED_KEYWORDS,
    STRICT_KEYWORDS,
    DelimToken,
    Token,
    TokenKind,
    token_to_string,
)
from .tokenstream import Delimited, TokenTree, TtDelimited, TtToken


log = logging.getLogger(__name__)

K = TokenKind

# Binary operators with their precedence; larger binds tighter.
_BINOPS: dict[TokenKind, tuple[BinOpKind, int]] = {
    K.OROR: (BinOpKind.OR, 1),
    K.ANDAND: (BinOpKind.AND, 2),
    K.EQEQ: (BinOpKind.EQ, 3),
    K.NE: (BinOpKind.NE, 3),
    K.LT: (BinOpKind.LT, 3),
    K.LE: (BinOpKind.LE, 3),
    K.GT: (BinOpKind.GT, 3),
    K.GE: (BinOpKind.GE, 3),
    K.OR: (BinOpKind.BIT_OR, 4),
    K.CARET: (BinOpKind.BIT_XOR, 5),
    K.AND: (BinOpKind.BIT_AND, 6),
    K.SHL: (BinOpKind.SHL, 7),
    K.SHR: (BinOpKind.SHR, 7),
    K.PLUS: (BinOpKind.ADD, 8),
    K.MINUS: (BinOpKind.SUB, 8),
    K.STAR: (BinOpKind.MUL, 9),
    K.SLASH: (BinOpKind.DIV, 9),
    K.PERCENT: (BinOpKind.REM, 9),
}
_AS_PREC = 10

_ASSIGN_OPS: dict[TokenKind, BinOpKind] = {
    K.PLUSEQ: BinOpKind.ADD,
    K.MINUSEQ: BinOpKind.SUB,
    K.STAREQ: BinOpKind.MUL,
    K.SLASHEQ: BinOpKind.DIV,
    K.PERCENTEQ: BinOpKind.REM,
    K.CARETEQ: BinOpKind.BIT_XOR,
    K.ANDEQ: BinOpKind.BIT_AND,
    K.OREQ: BinOpKind.BIT_OR,
    K.SHLEQ: BinOpKind.SHL,
    K.SHREQ: BinOpKind.SHR,
}

_UNOPS: dict[TokenKind, UnOp] = {K.MINUS: UnOp.NEG, K.NOT: UnOp.NOT, K.STAR: UnOp.DEREF}

# Keywords that can start an expression.
_EXPR_KEYWORDS = frozenset({"true", "false", "if", "while", "loop", "return", "break", "continue", "unsafe"})

_EXPR_START = frozenset(
    {K.MODSEP, K.OPEN_PAREN, K.OPEN_BRACKET, K.OPEN_BRACE, K.NOT, K.MINUS, K.STAR, K.AND, K.ANDAND, K.LIFETIME}
)

# Path parsing modes: generic arguments need `::<` in expressions, take a
# bare `<` in types and are not allowed in module paths.
_EXPR_PATH = "expr"
_TYPE_PATH = "type"
_MOD_PATH = "mod"

_NO_IDENT = ast.Ident(DUMMY_SP, "")


def _is_keyword_name(name: str) -> bool:
    return name in STRICT_KEYWORDS or name in RESERVED_KEYWORDS


def _is_inner_doc(text: str) -> bool:
    return text.startswith("//!") or text.startswith("/*!")


def _is_block_like(e: ast.Expr) -> bool:
    if isinstance(e, (ast.BlockExpr, ast.If, ast.While, ast.Loop)):
        return True
    return isinstance(e, ast.MacExpr) and e.mac.delim is DelimToken.BRACE


class Parser:
    """Recursive-descent parser over a flat token sequence.

    Grammar productions raise ParseError on the first syntax error. Errors
    that do not stop the parse (bad literal suffixes, stray attributes) go to
    the session's diagnostic handler instead.
    """

    def __init__(self, sess: ParseSess, cfg: Sequence[ast.MetaItem], tokens: Sequence[Token]) -> None:
        self.sess = sess
        self.cfg: ast.CrateConfig = tuple(cfg)
        toks = list(tokens)
        if not toks or toks[-1].kind is not K.EOF:
            toks.append(Token(K.EOF, "", DUMMY_SP))
        self._tokens = toks
        self._pos = 0
        self.token = toks[0]
        self.span = toks[0].span
        self.prev_span = DUMMY_SP
        # Directory that out-of-line `mod x;` declarations are resolved in.
        self.directory = FsPath(".")
        self.owns_directory = True
        self.root_module_name: str | None = None
        # Names (or `#[path]` values) of the inline modules being parsed.
        self.mod_path_stack: list[str] = []

    # -- token cursor -----------------------------------------------------

    def bump(self) -> None:
        self.prev_span = self.span
        if self._pos < len(self._tokens) - 1:
            self._pos += 1
        tok = self._tokens[self._pos]
        span = tok.span
        if tok.kind is K.EOF and span.is_dummy():
            span = self.prev_span.shrink_to_hi()
        self.token = tok
        self.span = span

    def look_ahead(self, n: int) -> Token:
        return self._tokens[min(self._pos + n, len(self._tokens) - 1)]

    def check(self, kind: TokenKind) -> bool:
        return self.token.kind is kind

    def eat(self, kind: TokenKind) -> bool:
        if self.token.kind is kind:
            self.bump()
            return True
        return False

    def expect(self, kind: TokenKind) -> Token:
        tok = self.token
        if tok.kind is not kind:
            raise self.error(f"expected `{kind.value}`, found `{self.this_token_to_string()}`")
        self.bump()
        return tok

    def check_keyword(self, kw: str) -> bool:
        return self.token.is_keyword(kw)

    def eat_keyword(self, kw: str) -> bool:
        if self.token.is_keyword(kw):
            self.bump()
            return True
        return False

    def expect_keyword(self, kw: str) -> None:
        if not self.eat_keyword(kw):
            raise self.error(f"expected `{kw}`, found `{self.this_token_to_string()}`")

    def expect_gt(self) -> None:
        """Consume a `>`, splitting `>>`, `>=` and `>>=` when needed."""
        k = self.token.kind
        if k is K.GT:
            self.bump()
        elif k is K.SHR:
            self._split_token(K.GT)
        elif k is K.GE:
            self._split_token(K.EQ)
        elif k is K.SHREQ:
            self._split_token(K.GE)
        else:
            raise self.error(f"expected `>`, found `{self.this_token_to_string()}`")

    def _split_token(self, rest: TokenKind) -> None:
        sp = self.span
        self.prev_span = Span(sp.lo, sp.lo + 1, sp.expn_id)
        tok = Token(rest, rest.value, Span(sp.lo + 1, sp.hi, sp.expn_id))
        self._tokens[self._pos] = tok
        self.token = tok
        self.span = tok.span

    def this_token_to_string(self) -> str:
        return token_to_string(self.token)

    def error(self, message: str, *, span: Span | None = None, hint: str | None = None) -> ParseError:
        sp = self.span if span is None else span
        return ParseError(span=sp, message=message, hint=hint, location=self._location(sp))

    def _location(self, span: Span) -> str | None:
        codemap = self.sess.codemap
        if not codemap.files:
            return None
        try:
            return codemap.lookup_char_pos(span.lo).format()
        except ValueError:
            return None

    # -- identifiers and paths --------------------------------------------

    def parse_ident(self) -> ast.Ident:
        tok = self.token
        if tok.kind is K.IDENT:
            if _is_keyword_name(tok.lexeme):
                raise self.error(f"expected identifier, found keyword `{tok.lexeme}`")
            self.bump()
            return ast.Ident(tok.span, tok.lexeme)
        raise self.error(f"expected identifier, found `{self.this_token_to_string()}`")

    def parse_path(self, mode: str = _EXPR_PATH) -> ast.Path:
        lo = self.span.lo
        is_global = self.eat(K.MODSEP)
        segments: list[ast.PathSegment] = []
        while True:
            ident = self.parse_ident()
            args: tuple[ast.Ty, ...] = ()
            if mode == _TYPE_PATH and self.check(K.LT):
                args = self._parse_generic_args()
            elif mode == _EXPR_PATH and self.check(K.MODSEP) and self.look_ahead(1).kind is K.LT:
                self.bump()
                args = self._parse_generic_args()
            segments.append(ast.PathSegment(ident, args))
            if self.check(K.MODSEP) and self.look_ahead(1).kind is K.IDENT:
                self.bump()
                continue
            break
        return ast.Path(Span(lo, self.prev_span.hi), is_global, tuple(segments))

    def _parse_generic_args(self) -> tuple[ast.Ty, ...]:
        self.expect(K.LT)
        args: list[ast.Ty] = []
        while self.token.kind not in (K.GT, K.SHR, K.GE, K.SHREQ):
            if self.check(K.LIFETIME):
                self.bump()
            else:
                args.append(self.parse_ty())
            if not self.eat(K.COMMA):
                break
        self.expect_gt()
        return tuple(args)

    # -- literals ---------------------------------------------------------

    def parse_lit(self) -> ast.Lit:
        tok = self.token
        if tok.is_keyword("true") or tok.is_keyword("false"):
            self.bump()
            return ast.Lit(tok.span, ast.BoolLit(tok.lexeme == "true"))
        if tok.is_lit():
            self.bump()
            return ast.Lit(tok.span, lit_from_token(tok, self.sess.span_diagnostic))
        raise self.error(f"unexpected token: `{self.this_token_to_string()}`")

    # -- attributes -------------------------------------------------------

    def _doc_attr(self, tok: Token, style: AttrStyle) -> ast.Attribute:
        lit = ast.Lit(tok.span, ast.StrLit(tok.lexeme))
        return ast.Attribute(tok.span, style, ast.MetaNameValue(tok.span, "doc", lit), is_sugared_doc=True)

    def parse_outer_attributes(self) -> list[ast.Attribute]:
        attrs: list[ast.Attribute] = []
        while True:
            if self.check(K.POUND):
                attrs.append(self.parse_attribute(permit_inner=False))
            elif self.check(K.DOC_COMMENT):
                tok = self.token
                if _is_inner_doc(tok.lexeme):
                    raise self.error(
                        "expected outer doc comment",
                        hint="inner doc comments like this (starting with `//!` or `/*!`) can only appear "
                        "before items",
                    )
                attrs.append(self._doc_attr(tok, AttrStyle.OUTER))
                self.bump()
            else:
                return attrs

    def parse_inner_attributes(self) -> list[ast.Attribute]:
        attrs: list[ast.Attribute] = []
        while True:
            if self.check(K.POUND) and self.look_ahead(1).kind is K.NOT:
                attrs.append(self.parse_attribute(permit_inner=True))
            elif self.check(K.DOC_COMMENT) and _is_inner_doc(self.token.lexeme):
                attrs.append(self._doc_attr(self.token, AttrStyle.INNER))
                self.bump()
            else:
                return attrs

    def parse_attribute(self, permit_inner: bool) -> ast.Attribute:
        lo = self.span.lo
        self.expect(K.POUND)
        style = AttrStyle.OUTER
        if self.check(K.NOT):
            if not permit_inner:
                raise self.error(
                    "an inner attribute is not permitted in this context",
                    hint="inner attributes and doc comments, like `#![no_std]` or `//! My crate`, annotate the "
                    "item enclosing them, and are usually found at the beginning of source files. Outer "
                    "attributes, like `#[test]` annotate the item following them.",
                )
            self.bump()
            style = AttrStyle.INNER
        self.expect(K.OPEN_BRACKET)
        value = self.parse_meta_item()
        self.expect(K.CLOSE_BRACKET)
        return ast.Attribute(Span(lo, self.prev_span.hi), style, value)

    def parse_meta_item(self) -> ast.MetaItem:
        lo = self.span.lo
        tok = self.token
        if tok.kind is not K.IDENT:
            raise self.error(f"expected identifier, found `{self.this_token_to_string()}`")
        self.bump()
        name = tok.lexeme

        if self.eat(K.EQ):
            suffix = self.token.suffix
            lit = self.parse_lit()
            if suffix is not None:
                self.sess.span_diagnostic.struct_span_err(
                    lit.span, "suffixed literals are not allowed in attributes"
                ).help(
                    "instead of using a suffixed literal (1u8, 1.0f32, etc.), use an unsuffixed version "
                    "(1, 1.0, etc.)."
                ).emit()
            return ast.MetaNameValue(Span(lo, self.prev_span.hi), name, lit)

        if self.eat(K.OPEN_PAREN):
            items: list[ast.MetaItem] = []
            while not self.check(K.CLOSE_PAREN):
                items.append(self.parse_meta_item())
                if not self.eat(K.COMMA):
                    break
            self.expect(K.CLOSE_PAREN)
            return ast.MetaList(Span(lo, self.prev_span.hi), name, tuple(items))

        return ast.MetaWord(Span(lo, self.prev_span.hi), name)

    # -- token trees ------------------------------------------------------

    def parse_token_tree(self) -> TokenTree:
        tok = self.token
        if tok.is_open_delim():
            return self._parse_delimited()
        if tok.is_close_delim():
            raise self.error(f"unexpected close delimiter: `{tok.lexeme}`")
        if tok.kind is K.EOF:
            raise self.error("unexpected end of file")
        self.bump()
        return TtToken(tok)

    def _parse_delimited(self) -> TtDelimited:
        delim = DelimToken.from_open(self.token.kind)
        if delim is None:
            raise self.error(f"expected open delimiter, found `{self.this_token_to_string()}`")
        open_span = self.span
        self.bump()
        tts: list[TokenTree] = []
        while not self.check(delim.close_kind):
            if self.check(K.EOF):
                raise self.error("this file contains an un-closed delimiter")
            tts.append(self.parse_token_tree())
        close_span = self.span
        self.bump()
        return TtDelimited(Span(open_span.lo, close_span.hi), Delimited(delim, open_span, tuple(tts), close_span))

    def parse_all_token_trees(self) -> list[TokenTree]:
        tts: list[TokenTree] = []
        while not self.check(K.EOF):
            tts.append(self.parse_token_tree())
        return tts

    def _parse_mac(self, path: ast.Path, lo: int) -> ast.Mac:
        self.expect(K.NOT)
        tt = self._parse_delimited()
        d = tt.delimited
        return ast.Mac(Span(lo, self.prev_span.hi), path, d.tts, d.delim)

    # -- crate and modules ------------------------------------------------

    def parse_crate_mod(self) -> ast.Crate:
        lo = self.span.lo
        attrs = self.parse_inner_attributes()
        module = self.parse_mod_items(K.EOF, lo)
        return ast.Crate(Span(lo, self.span.lo), module, tuple(attrs), self.cfg)

    def parse_mod_items(self, term: TokenKind, inner_lo: int) -> ast.Mod:
        items: list[ast.Item] = []
        while (item := self.parse_item()) is not None:
            items.append(item)
        if not self.eat(term):
            raise self.error(f"expected item, found `{self.this_token_to_string()}`")
        hi = inner_lo if self.span.is_dummy() else self.prev_span.hi
        return ast.Mod(Span(inner_lo, max(inner_lo, hi)), tuple(items))

    def _push_mod_path(self, ident: ast.Ident, attrs: Sequence[ast.Attribute]) -> None:
        self.mod_path_stack.append(ast.first_attr_value_str_by_name(list(attrs), "path") or ident.name)

    def _parse_item_mod(self, lo: int, vis: Visibility, attrs: list[ast.Attribute]) -> ast.Item:
        id_span = self.span
        ident = self.parse_ident()
        if self.eat(K.SEMI):
            inner_attrs, module = self._eval_src_mod(ident, attrs, id_span)
            return ast.Item(Span(lo, self.prev_span.hi), ident, tuple(attrs + inner_attrs), vis, module)

        self.expect(K.OPEN_BRACE)
        inner_lo = self.span.lo
        self._push_mod_path(ident, attrs)
        try:
            inner_attrs = self.parse_inner_attributes()
            module = self.parse_mod_items(K.CLOSE_BRACE, inner_lo)
        finally:
            self.mod_path_stack.pop()
        return ast.Item(Span(lo, self.prev_span.hi), ident, tuple(attrs + inner_attrs), vis, module)

    def _submod_path(
        self, ident: ast.Ident, attrs: Sequence[ast.Attribute], id_span: Span
    ) -> tuple[FsPath, bool]:
        dir_path = self.directory.joinpath(*self.mod_path_stack)
        from_attr = ast.first_attr_value_str_by_name(list(attrs), "path")
        if from_attr is not None:
            return dir_path / from_attr, True

        name = ident.name
        default_path = dir_path / f"{name}.rs"
        secondary_path = dir_path / name / "mod.rs"
        default_exists = default_path.exists()
        secondary_exists = secondary_path.exists()

        if not self.owns_directory:
            this_module = self.mod_path_stack[-1] if self.mod_path_stack else self.root_module_name
            hint = f"maybe move this module `{this_module}` to its own directory via `{this_module}/mod.rs`"
            if default_exists or secondary_exists:
                hint += f"; or maybe `use` the module `{name}` instead of possibly redeclaring it"
            raise self.error("cannot declare a new module at this location", span=id_span, hint=hint)

        if default_exists and not secondary_exists:
            return default_path, False
        if secondary_exists and not default_exists:
            return secondary_path, True
        if not default_exists:
            raise self.error(
                f"file not found for module `{name}`",
                span=id_span,
                hint=f'name the file either {name}.rs or {name}/mod.rs inside the directory "{dir_path}"',
            )
        raise self.error(
            f"file for module `{name}` found at both {name}.rs and {name}/mod.rs",
            span=id_span,
            hint="delete or rename one of them to remove the ambiguity",
        )

    def _eval_src_mod(
        self, ident: ast.Ident, attrs: Sequence[ast.Attribute], id_span: Span
    ) -> tuple[list[ast.Attribute], ast.Mod]:
        from .api import parse_sub_module_from_file

        path, owns_directory = self._submod_path(ident, attrs, id_span)
        stack = self.sess.included_mods
        if self.sess.is_included(path):
            cycle = stack[stack.index(path) :]
            chain = " -> ".join(str(p) for p in (*cycle, path))
            raise self.error(f"circular modules: {chain}", span=id_span)
        log.debug("loading module `%s` from %s", ident.name, path)
        return parse_sub_module_from_file(self.sess, self.cfg, path, owns_directory, ident.name, id_span)

    # -- items ------------------------------------------------------------

    def parse_item(self) -> ast.Item | None:
        attrs = self.parse_outer_attributes()
        lo = self.span.lo
        vis = Visibility.PUBLIC if self.eat_keyword("pub") else Visibility.INHERITED
        item = self._parse_item_kind(lo, vis, attrs)
        if item is not None:
            return item
        if vis is Visibility.PUBLIC:
            raise self.error("unmatched visibility `pub`", span=self.prev_span)
        if attrs:
            self._unused_attrs(attrs, "expected item after attributes")
        return None

    def _unused_attrs(self, attrs: Sequence[ast.Attribute], message: str) -> None:
        last = attrs[-1]
        if last.is_sugared_doc:
            message = "expected item after doc comment"
        self.sess.span_diagnostic.span_err(last.span, message)

    def _parse_item_kind(self, lo: int, vis: Visibility, attrs: list[ast.Attribute]) -> ast.Item | None:
        """Parse the item that starts at the current token, if any."""
        if self.eat_keyword("use"):
            view_path = self.parse_view_path()
            self.expect(K.SEMI)
            return self._mk_item(lo, _NO_IDENT, attrs, vis, ast.Use(view_path))

        if self.check_keyword("extern") and self.look_ahead(1).is_keyword("crate"):
            self.bump()
            self.bump()
            ident = self.parse_ident()
            orig_name = None
            if self.eat_keyword("as"):
                orig_name = ident.name
                ident = self.parse_ident()
            self.expect(K.SEMI)
            return self._mk_item(lo, ident, attrs, vis, ast.ExternCrate(orig_name))

        if self.check_keyword("const") and self.look_ahead(1).is_keyword("fn"):
            self.bump()
            self.bump()
            return self._parse_item_fn(lo, vis, attrs, const=True)
        if self.check_keyword("unsafe") and self.look_ahead(1).is_keyword("fn"):
            self.bump()
            self.bump()
            return self._parse_item_fn(lo, vis, attrs, unsafe=True)
        if self.eat_keyword("fn"):
            return self._parse_item_fn(lo, vis, attrs)

        if self.eat_keyword("const"):
            ident = self.parse_ident()
            self.expect(K.COLON)
            ty = self.parse_ty()
            self.expect(K.EQ)
            expr = self.parse_expr()
            self.expect(K.SEMI)
            return self._mk_item(lo, ident, attrs, vis, ast.Const(ty, expr))
        if self.eat_keyword("static"):
            mutable = self.eat_keyword("mut")
            ident = self.parse_ident()
            self.expect(K.COLON)
            ty = self.parse_ty()
            self.expect(K.EQ)
            expr = self.parse_expr()
            self.expect(K.SEMI)
            return self._mk_item(lo, ident, attrs, vis, ast.Static(ty, mutable, expr))

        if self.eat_keyword("mod"):
            return self._parse_item_mod(lo, vis, attrs)
        if self.eat_keyword("struct"):
            return self._parse_item_struct(lo, vis, attrs)
        if self.eat_keyword("impl"):
            return self._parse_item_impl(lo, vis, attrs)

        # Item macro: `foo!(...);`, `foo! { ... }` or `macro_rules! name { ... }`
        tok = self.token
        if tok.kind is K.IDENT and not _is_keyword_name(tok.lexeme) and self.look_ahead(1).kind is K.NOT:
            path = self.parse_path(_MOD_PATH)
            mac_lo = path.span.lo
            self.expect(K.NOT)
            ident = _NO_IDENT
            if self.check(K.IDENT):
                ident = self.parse_ident()
            tt = self._parse_delimited()
            mac = ast.Mac(Span(mac_lo, self.prev_span.hi), path, tt.delimited.tts, tt.delimited.delim)
            if mac.delim is not DelimToken.BRACE:
                self.expect(K.SEMI)
            return self._mk_item(lo, ident, attrs, vis, ast.MacItem(mac))

        return None

    def _mk_item(
        self, lo: int, ident: ast.Ident, attrs: Sequence[ast.Attribute], vis: Visibility, node: ast.ItemKind
    ) -> ast.Item:
        return ast.Item(Span(lo, self.prev_span.hi), ident, tuple(attrs), vis, node)

    def _parse_item_fn(
        self, lo: int, vis: Visibility, attrs: list[ast.Attribute], *, unsafe: bool = False, const: bool = False
    ) -> ast.Item:
        ident = self.parse_ident()
        generics = self.parse_generics()
        decl = self.parse_fn_decl()
        self._parse_where_clause()
        body = self.parse_block()
        return self._mk_item(lo, ident, attrs, vis, ast.Fn(decl, generics, body, unsafe, const))

    def parse_generics(self) -> ast.Generics:
        if not self.check(K.LT):
            return ast.Generics(DUMMY_SP)
        lo = self.span.lo
        self.bump()
        lifetimes: list[str] = []
        ty_params: list[ast.Ident] = []
        while self.token.kind not in (K.GT, K.SHR, K.GE, K.SHREQ):
            if self.check(K.LIFETIME):
                lifetimes.append(self.token.lexeme)
                self.bump()
                if self.eat(K.COLON):
                    while self.eat(K.LIFETIME) and self.eat(K.PLUS):
                        pass
            else:
                ty_params.append(self.parse_ident())
                if self.eat(K.COLON):
                    self._parse_bounds()
            if not self.eat(K.COMMA):
                break
        self.expect_gt()
        return ast.Generics(Span(lo, self.prev_span.hi), tuple(lifetimes), tuple(ty_params))

    def _parse_bounds(self) -> None:
        while True:
            if not self.eat(K.LIFETIME):
                self.eat(K.QUESTION)
                self.parse_path(_TYPE_PATH)
            if not self.eat(K.PLUS):
                return

    def _parse_where_clause(self) -> None:
        if not self.eat_keyword("where"):
            return
        while not self.check(K.OPEN_BRACE) and not self.check(K.SEMI) and not self.check(K.EOF):
            if self.eat(K.LIFETIME):
                self.expect(K.COLON)
                while self.eat(K.LIFETIME) and self.eat(K.PLUS):
                    pass
            else:
                self.parse_ty()
                self.expect(K.COLON)
                self._parse_bounds()
            if not self.eat(K.COMMA):
                return

    def parse_fn_decl(self) -> ast.FnDecl:
        lo = self.span.lo
        self.expect(K.OPEN_PAREN)
        inputs: list[ast.Arg] = []
        variadic = False

        self_arg = self._parse_self_arg()
        if self_arg is not None:
            inputs.append(self_arg)
            if not self.check(K.CLOSE_PAREN):
                self.expect(K.COMMA)

        while not self.check(K.CLOSE_PAREN):
            if self.eat(K.DOTDOTDOT):
                variadic = True
                break
            inputs.append(self.parse_arg())
            if not self.eat(K.COMMA):
                break
        self.expect(K.CLOSE_PAREN)
        output = self.parse_ret_ty()
        return ast.FnDecl(Span(lo, self.prev_span.hi), tuple(inputs), output, variadic)

    def parse_ret_ty(self) -> ast.FunctionRetTy:
        if self.eat(K.RARROW):
            return self.parse_ty()
        return ast.DefaultReturn(self.span.shrink_to_lo())

    def parse_arg(self) -> ast.Arg:
        lo = self.span.lo
        pat = self.parse_pat()
        self.expect(K.COLON)
        ty = self.parse_ty()
        return ast.Arg(Span(lo, self.prev_span.hi), pat, ty)

    def _parse_self_arg(self) -> ast.Arg | None:
        """`self`, `mut self`, `self: T`, `&self`, `&mut self` and `&'a self`."""
        lo = self.span.lo
        t0 = self.token

        def is_self(tok: Token, after: Token) -> bool:
            return tok.is_keyword("self") and after.kind is not K.MODSEP

        if is_self(t0, self.look_ahead(1)) or (
            t0.is_keyword("mut") and is_self(self.look_ahead(1), self.look_ahead(2))
        ):
            mutable = self.eat_keyword("mut")
            ident = ast.Ident(self.span, "self")
            self.bump()
            ty: ast.Ty = self.parse_ty() if self.eat(K.COLON) else ast.ImplicitSelfTy(ident.span)
            return ast.Arg(Span(lo, self.prev_span.hi), ast.IdentPat(ident.span, ident, mutable), ty)

        if t0.kind is not K.AND:
            return None
        n = 1
        has_lifetime = self.look_ahead(n).kind is K.LIFETIME
        if has_lifetime:
            n += 1
        mutable = self.look_ahead(n).is_keyword("mut")
        if mutable:
            n += 1
        if not is_self(self.look_ahead(n), self.look_ahead(n + 1)):
            return None

        self.bump()  # &
        lifetime = None
        if has_lifetime:
            lifetime = self.token.lexeme
            self.bump()
        if mutable:
            self.bump()
        ident = ast.Ident(self.span, "self")
        self.bump()
        ty = ast.RefTy(Span(lo, self.prev_span.hi), mutable, ast.ImplicitSelfTy(ident.span), lifetime)
        return ast.Arg(Span(lo, self.prev_span.hi), ast.IdentPat(ident.span, ident), ty)

    def parse_view_path(self) -> ast.ViewPath:
        lo = self.span.lo
        if self.check(K.OPEN_BRACE) or (self.check(K.MODSEP) and self.look_ahead(1).kind is K.OPEN_BRACE):
            is_global = self.eat(K.MODSEP)
            items = self._parse_path_list_items()
            path = ast.Path(Span(lo, lo), is_global, ())
            return ast.ViewPathList(Span(lo, self.prev_span.hi), path, items)

        path = self.parse_path(_MOD_PATH)
        if self.eat(K.MODSEP):
            if self.eat(K.STAR):
                return ast.ViewPathGlob(Span(lo, self.prev_span.hi), path)
            if self.check(K.OPEN_BRACE):
                items = self._parse_path_list_items()
                return ast.ViewPathList(Span(lo, self.prev_span.hi), path, items)
            raise self.error(f"expected identifier, found `{self.this_token_to_string()}`")

        ident = path.segments[-1].identifier
        if self.eat_keyword("as"):
            ident = self.parse_ident()
        return ast.ViewPathSimple(Span(lo, self.prev_span.hi), ident, path)

    def _parse_path_list_items(self) -> tuple[ast.PathListItem, ...]:
        self.expect(K.OPEN_BRACE)
        items: list[ast.PathListItem] = []
        while not self.check(K.CLOSE_BRACE):
            lo = self.span.lo
            name = self.parse_ident()
            rename = self.parse_ident() if self.eat_keyword("as") else None
            items.append(ast.PathListItem(Span(lo, self.prev_span.hi), name, rename))
            if not self.eat(K.COMMA):
                break
        self.expect(K.CLOSE_BRACE)
        return tuple(items)

    def _parse_item_struct(self, lo: int, vis: Visibility, attrs: list[ast.Attribute]) -> ast.Item:
        ident = self.parse_ident()
        generics = self.parse_generics()
        fields: list[ast.StructField] = []
        if self.eat(K.SEMI):
            return self._mk_item(lo, ident, attrs, vis, ast.Struct((), generics, "unit"))

        if self.eat(K.OPEN_PAREN):
            while not self.check(K.CLOSE_PAREN):
                f_lo = self.span.lo
                f_attrs = self.parse_outer_attributes()
                f_vis = Visibility.PUBLIC if self.eat_keyword("pub") else Visibility.INHERITED
                ty = self.parse_ty()
                fields.append(ast.StructField(Span(f_lo, self.prev_span.hi), None, ty, f_vis, tuple(f_attrs)))
                if not self.eat(K.COMMA):
                    break
            self.expect(K.CLOSE_PAREN)
            self._parse_where_clause()
            self.expect(K.SEMI)
            return self._mk_item(lo, ident, attrs, vis, ast.Struct(tuple(fields), generics, "tuple"))

        self._parse_where_clause()
        self.expect(K.OPEN_BRACE)
        while not self.check(K.CLOSE_BRACE):
            f_lo = self.span.lo
            f_attrs = self.parse_outer_attributes()
            f_vis = Visibility.PUBLIC if self.eat_keyword("pub") else Visibility.INHERITED
            f_ident = self.parse_ident()
            self.expect(K.COLON)
            ty = self.parse_ty()
            fields.append(ast.StructField(Span(f_lo, self.prev_span.hi), f_ident, ty, f_vis, tuple(f_attrs)))
            if not self.eat(K.COMMA):
                break
        self.expect(K.CLOSE_BRACE)
        return self._mk_item(lo, ident, attrs, vis, ast.Struct(tuple(fields), generics, "struct"))

    def _parse_item_impl(self, lo: int, vis: Visibility, attrs: list[ast.Attribute]) -> ast.Item:
        generics = self.parse_generics()
        first = self.parse_ty()
        trait_ref = None
        if self.eat_keyword("for"):
            if not isinstance(first, ast.PathTy):
                raise self.error("expected a trait, found type", span=first.span)
            trait_ref = first.path
            self_ty = self.parse_ty()
        else:
            self_ty = first
        self._parse_where_clause()
        self.expect(K.OPEN_BRACE)
        self.parse_inner_attributes()
        items: list[ast.Item] = []
        while not self.eat(K.CLOSE_BRACE):
            i_attrs = self.parse_outer_attributes()
            i_lo = self.span.lo
            i_vis = Visibility.PUBLIC if self.eat_keyword("pub") else Visibility.INHERITED
            item = self._parse_item_kind(i_lo, i_vis, i_attrs)
            if item is None:
                raise self.error(f"expected item, found `{self.this_token_to_string()}`")
            items.append(item)
        node = ast.Impl(generics, self_ty, trait_ref, tuple(items))
        return self._mk_item(lo, _NO_IDENT, attrs, vis, node)

    # -- types ------------------------------------------------------------

    def parse_ty(self) -> ast.Ty:
        lo = self.span.lo
        tok = self.token

        if self.eat(K.OPEN_PAREN):
            if self.eat(K.CLOSE_PAREN):
                return ast.TupTy(Span(lo, self.prev_span.hi))
            elems = [self.parse_ty()]
            trailing_comma = False
            while self.eat(K.COMMA):
                trailing_comma = True
                if self.check(K.CLOSE_PAREN):
                    break
                elems.append(self.parse_ty())
            self.expect(K.CLOSE_PAREN)
            if len(elems) == 1 and not trailing_comma:
                return ast.ParenTy(Span(lo, self.prev_span.hi), elems[0])
            return ast.TupTy(Span(lo, self.prev_span.hi), tuple(elems))

        if tok.kind is K.ANDAND:
            # `&&T` is `& &T`
            self._split_token(K.AND)
            inner = self.parse_ty()
            return ast.RefTy(Span(lo, self.prev_span.hi), False, inner)

        if self.eat(K.AND):
            lifetime = None
            if self.check(K.LIFETIME):
                lifetime = self.token.lexeme
                self.bump()
            mutable = self.eat_keyword("mut")
            inner = self.parse_ty()
            return ast.RefTy(Span(lo, self.prev_span.hi), mutable, inner, lifetime)

        if self.eat(K.STAR):
            if self.eat_keyword("mut"):
                mutable = True
            elif self.eat_keyword("const"):
                mutable = False
            else:
                raise self.error(
                    "expected mut or const in raw pointer type",
                    hint="use `*mut T` or `*const T` as appropriate",
                )
            inner = self.parse_ty()
            return ast.PtrTy(Span(lo, self.prev_span.hi), mutable, inner)

        if self.eat(K.OPEN_BRACKET):
            inner = self.parse_ty()
            if self.eat(K.SEMI):
                length = self.parse_expr()
                self.expect(K.CLOSE_BRACKET)
                return ast.ArrayTy(Span(lo, self.prev_span.hi), inner, length)
            self.expect(K.CLOSE_BRACKET)
            return ast.SliceTy(Span(lo, self.prev_span.hi), inner)

        if tok.is_ident("_"):
            self.bump()
            return ast.InferTy(tok.span)

        if tok.kind is K.IDENT or tok.kind is K.MODSEP:
            path = self.parse_path(_TYPE_PATH)
            return ast.PathTy(path.span, path)

        raise self.error(f"expected type, found `{self.this_token_to_string()}`")

    # -- patterns ---------------------------------------------------------

    def parse_pat(self) -> ast.Pat:
        lo = self.span.lo
        tok = self.token

        if tok.kind is K.AND:
            self.bump()
            mutable = self.eat_keyword("mut")
            sub = self.parse_pat()
            return ast.RefPat(Span(lo, self.prev_span.hi), sub, mutable)

        if self.eat(K.OPEN_PAREN):
            elems: list[ast.Pat] = []
            while not self.check(K.CLOSE_PAREN):
                elems.append(self.parse_pat())
                if not self.eat(K.COMMA):
                    break
            self.expect(K.CLOSE_PAREN)
            return ast.TuplePat(Span(lo, self.prev_span.hi), tuple(elems))

        if tok.is_ident("_"):
            self.bump()
            return ast.WildPat(tok.span)

        if tok.is_keyword("ref") or tok.is_keyword("mut"):
            by_ref = self.eat_keyword("ref")
            mutable = self.eat_keyword("mut")
            ident = self.parse_ident()
            return ast.IdentPat(Span(lo, self.prev_span.hi), ident, mutable, by_ref)

        if tok.is_lit() or tok.is_keyword("true") or tok.is_keyword("false") or tok.kind is K.MINUS:
            expr = self._parse_prefix()
            return ast.LitPat(Span(lo, self.prev_span.hi), expr)

        if tok.kind is K.IDENT:
            ident = self.parse_ident()
            return ast.IdentPat(ident.span, ident)

        raise self.error(f"expected pattern, found `{self.this_token_to_string()}`")

    # -- statements and blocks --------------------------------------------

    def parse_block(self) -> ast.Block:
        lo = self.span.lo
        self.expect(K.OPEN_BRACE)
        self.parse_inner_attributes()
        stmts: list[ast.Stmt] = []
        while not self.eat(K.CLOSE_BRACE):
            if self.check(K.EOF):
                raise self.error(f"expected `}}`, found `{self.this_token_to_string()}`")
            stmt = self._parse_full_stmt()
            if stmt is not None:
                stmts.append(stmt)
        return ast.Block(Span(lo, self.prev_span.hi), tuple(stmts))

    def _parse_full_stmt(self) -> ast.Stmt | None:
        """A statement inside a block, with its trailing semicolon."""
        stmt = self.parse_stmt()
        if stmt is None:
            return None
        if isinstance(stmt, ast.Local):
            self.expect(K.SEMI)
            return ast.Local(Span(stmt.span.lo, self.prev_span.hi), stmt.pat, stmt.ty, stmt.init, stmt.attrs)
        if isinstance(stmt, ast.ExprStmt):
            if self.eat(K.SEMI):
                return ast.SemiStmt(Span(stmt.span.lo, self.prev_span.hi), stmt.expr)
            if not _is_block_like(stmt.expr) and not self.check(K.CLOSE_BRACE):
                raise self.error(
                    f"expected one of `.`, `;`, `?`, `}}`, or an operator, found `{self.this_token_to_string()}`"
                )
        return stmt

    def parse_stmt(self) -> ast.Stmt | None:
        attrs = self.parse_outer_attributes()
        lo = self.span.lo

        if self.eat_keyword("let"):
            pat = self.parse_pat()
            ty = self.parse_ty() if self.eat(K.COLON) else None
            init = self.parse_expr() if self.eat(K.EQ) else None
            return ast.Local(Span(lo, self.prev_span.hi), pat, ty, init, tuple(attrs))

        # Macro calls in statement position are expressions, except for
        # `macro_rules!` definitions.
        tok = self.token
        if tok.kind is K.IDENT and tok.lexeme != "macro_rules" and self.look_ahead(1).kind is K.NOT:
            e = self.parse_expr()
            return ast.ExprStmt(Span(lo, e.span.hi), e)

        vis = Visibility.PUBLIC if self.eat_keyword("pub") else Visibility.INHERITED
        item = self._parse_item_kind(lo, vis, attrs)
        if item is not None:
            return ast.ItemStmt(item.span, item)
        if vis is Visibility.PUBLIC:
            raise self.error("unmatched visibility `pub`", span=self.prev_span)

        if self.check(K.SEMI) or self.check(K.CLOSE_BRACE) or self.check(K.EOF):
            if attrs:
                self._unused_attrs(attrs, "expected statement after outer attribute")
            self.eat(K.SEMI)
            return None

        e = self._parse_block_like() if self._starts_block_like() else self.parse_expr()
        return ast.ExprStmt(Span(lo, e.span.hi), e)

    def _starts_block_like(self) -> bool:
        tok = self.token
        if tok.kind is K.OPEN_BRACE:
            return True
        if tok.is_keyword("if") or tok.is_keyword("while") or tok.is_keyword("loop"):
            return True
        if tok.is_keyword("unsafe"):
            return self.look_ahead(1).kind is K.OPEN_BRACE
        return tok.kind is K.LIFETIME and self.look_ahead(1).kind is K.COLON

    # -- expressions ------------------------------------------------------

    def parse_expr(self) -> ast.Expr:
        lo = self.span.lo
        lhs = self._parse_binary(0)
        kind = self.token.kind
        if kind is K.EQ:
            self.bump()
            rhs = self.parse_expr()
            return ast.Assign(Span(lo, self.prev_span.hi), lhs, rhs)
        op = _ASSIGN_OPS.get(kind)
        if op is not None:
            self.bump()
            rhs = self.parse_expr()
            return ast.AssignOp(Span(lo, self.prev_span.hi), op, lhs, rhs)
        return lhs

    def _parse_binary(self, min_prec: int) -> ast.Expr:
        lo = self.span.lo
        lhs = self._parse_prefix()
        while True:
            if self.check_keyword("as") and _AS_PREC >= min_prec:
                self.bump()
                ty = self.parse_ty()
                lhs = ast.Cast(Span(lo, self.prev_span.hi), lhs, ty)
                continue
            entry = _BINOPS.get(self.token.kind)
            if entry is None:
                return lhs
            op, prec = entry
            if prec < min_prec:
                return lhs
            self.bump()
            rhs = self._parse_binary(prec + 1)
            lhs = ast.Binary(Span(lo, self.prev_span.hi), op, lhs, rhs)

    def _parse_prefix(self) -> ast.Expr:
        lo = self.span.lo
        kind = self.token.kind
        unop = _UNOPS.get(kind)
        if unop is not None:
            self.bump()
            e = self._parse_prefix()
            return ast.Unary(Span(lo, self.prev_span.hi), unop, e)
        if kind is K.ANDAND:
            # `&&x` is `& &x`
            self._split_token(K.AND)
            e = self._parse_prefix()
            return ast.AddrOf(Span(lo, self.prev_span.hi), False, e)
        if kind is K.AND:
            self.bump()
            mutable = self.eat_keyword("mut")
            e = self._parse_prefix()
            return ast.AddrOf(Span(lo, self.prev_span.hi), mutable, e)
        return self._parse_postfix(self._parse_primary())

    def _parse_call_args(self) -> tuple[ast.Expr, ...]:
        self.expect(K.OPEN_PAREN)
        args: list[ast.Expr] = []
        while not self.check(K.CLOSE_PAREN):
            args.append(self.parse_expr())
            if not self.eat(K.COMMA):
                break
        self.expect(K.CLOSE_PAREN)
        return tuple(args)

    def _parse_postfix(self, e: ast.Expr) -> ast.Expr:
        lo = e.span.lo
        while True:
            if self.eat(K.DOT):
                tok = self.token
                if tok.kind is K.IDENT:
                    ident = self.parse_ident()
                    if self.check(K.MODSEP) and self.look_ahead(1).kind is K.LT:
                        self.bump()
                        self._parse_generic_args()
                    if self.check(K.OPEN_PAREN):
                        args = self._parse_call_args()
                        e = ast.MethodCall(Span(lo, self.prev_span.hi), e, ident, args)
                    else:
                        e = ast.Field(Span(lo, self.prev_span.hi), e, ident)
                elif tok.kind is K.INTEGER and tok.suffix is None and tok.lexeme.isdigit():
                    self.bump()
                    e = ast.TupField(Span(lo, self.prev_span.hi), e, int(tok.lexeme))
                else:
                    raise self.error(f"unexpected token: `{self.this_token_to_string()}`")
            elif self.check(K.OPEN_PAREN):
                args = self._parse_call_args()
                e = ast.Call(Span(lo, self.prev_span.hi), e, args)
            elif self.eat(K.OPEN_BRACKET):
                index = self.parse_expr()
                self.expect(K.CLOSE_BRACKET)
                e = ast.Index(Span(lo, self.prev_span.hi), e, index)
            elif self.eat(K.QUESTION):
                e = ast.Try(Span(lo, self.prev_span.hi), e)
            else:
                return e

    def _can_begin_expr(self) -> bool:
        tok = self.token
        if tok.is_lit() or tok.kind in _EXPR_START:
            return True
        if tok.kind is K.IDENT:
            return not _is_keyword_name(tok.lexeme) or tok.lexeme in _EXPR_KEYWORDS
        return False

    def _parse_label(self) -> str | None:
        if self.check(K.LIFETIME):
            label = self.token.lexeme
            self.bump()
            return label
        return None

    def _parse_block_like(self) -> ast.Expr:
        lo = self.span.lo
        label = None
        if self.check(K.LIFETIME) and self.look_ahead(1).kind is K.COLON:
            label = self._parse_label()
            self.bump()
            if not (self.check_keyword("while") or self.check_keyword("loop")):
                raise self.error(f"expected `while` or `loop` after a label, found `{self.this_token_to_string()}`")

        if self.eat_keyword("if"):
            return self._parse_if(lo)
        if self.eat_keyword("while"):
            cond = self.parse_expr()
            body = self.parse_block()
            return ast.While(Span(lo, self.prev_span.hi), cond, body, label)
        if self.eat_keyword("loop"):
            body = self.parse_block()
            return ast.Loop(Span(lo, self.prev_span.hi), body, label)
        unsafe = self.eat_keyword("unsafe")
        block = self.parse_block()
        return ast.BlockExpr(Span(lo, self.prev_span.hi), block, unsafe)

    def _parse_if(self, lo: int) -> ast.If:
        cond = self.parse_expr()
        then = self.parse_block()
        orelse: ast.Expr | None = None
        if self.eat_keyword("else"):
            else_lo = self.span.lo
            if self.eat_keyword("if"):
                orelse = self._parse_if(else_lo)
            else:
                block = self.parse_block()
                orelse = ast.BlockExpr(Span(else_lo, self.prev_span.hi), block)
        return ast.If(Span(lo, self.prev_span.hi), cond, then, orelse)

    def _parse_primary(self) -> ast.Expr:
        lo = self.span.lo
        tok = self.token

        if tok.is_lit() or tok.is_keyword("true") or tok.is_keyword("false"):
            lit = self.parse_lit()
            return ast.LitExpr(lit.span, lit)

        if self.eat(K.OPEN_PAREN):
            if self.eat(K.CLOSE_PAREN):
                return ast.Tup(Span(lo, self.prev_span.hi))
            elems = [self.parse_expr()]
            trailing_comma = False
            while self.eat(K.COMMA):
                trailing_comma = True
                if self.check(K.CLOSE_PAREN):
                    break
                elems.append(self.parse_expr())
            self.expect(K.CLOSE_PAREN)
            if len(elems) == 1 and not trailing_comma:
                return ast.Paren(Span(lo, self.prev_span.hi), elems[0])
            return ast.Tup(Span(lo, self.prev_span.hi), tuple(elems))

        if self.eat(K.OPEN_BRACKET):
            items: list[ast.Expr] = []
            while not self.check(K.CLOSE_BRACKET):
                items.append(self.parse_expr())
                if not self.eat(K.COMMA):
                    break
            self.expect(K.CLOSE_BRACKET)
            return ast.Array(Span(lo, self.prev_span.hi), tuple(items))

        if self._starts_block_like():
            return self._parse_block_like()

        if self.eat_keyword("return"):
            value = self.parse_expr() if self._can_begin_expr() else None
            return ast.Ret(Span(lo, self.prev_span.hi), value)
        if self.eat_keyword("break"):
            label = self._parse_label()
            value = self.parse_expr() if self._can_begin_expr() else None
            return ast.Break(Span(lo, self.prev_span.hi), label, value)
        if self.eat_keyword("continue"):
            label = self._parse_label()
            return ast.Continue(Span(lo, self.prev_span.hi), label)

        if tok.kind is K.IDENT or tok.kind is K.MODSEP:
            path = self.parse_path(_EXPR_PATH)
            if self.check(K.NOT) and self.look_ahead(1).is_open_delim():
                mac = self._parse_mac(path, lo)
                return ast.MacExpr(mac.span, mac)
            return ast.PathExpr(path.span, path)

        raise self.error(f"expected expression, found `{self.this_token_to_string()}`")
