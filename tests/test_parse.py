from __future__ import annotations

from pathlib import Path

import pytest

from rustfront import (
    FatalError,
    ParseError,
    ParseSess,
    parse_crate_attrs_from_file,
    parse_crate_attrs_from_source_str,
    parse_crate_from_file,
    parse_crate_from_source_str,
    parse_expr_from_source_str,
    parse_item_from_source_str,
    parse_meta_from_source_str,
    parse_stmt_from_source_str,
)
from rustfront import ast as A
from rustfront.api import new_parser_from_source_str
from rustfront.diagnostics import Level
from rustfront.pprust import expr_to_string, item_to_string, meta_item_to_string
from rustfront.spans import DUMMY_SP, Span
from rustfront.tokens import TokenKind
from rustfront.visit import Visitor, walk_item, walk_pat


def sp(lo: int, hi: int) -> Span:
    return Span(lo, hi)


def _path(lo: int, hi: int, name: str) -> A.Path:
    return A.Path(sp(lo, hi), False, (A.PathSegment(A.Ident(sp(lo, hi), name)),))


def _write(root: Path, files: dict[str, str]) -> None:
    for rel, src in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(src, encoding="utf-8")


# -- expressions and statements ---------------------------------------------


def test_path_expr() -> None:
    assert parse_expr_from_source_str("<test>", "a") == A.PathExpr(sp(0, 1), _path(0, 1, "a"))


def test_global_path_expr() -> None:
    e = parse_expr_from_source_str("<test>", "::a::b")
    assert e == A.PathExpr(
        sp(0, 6),
        A.Path(
            sp(0, 6),
            True,
            (A.PathSegment(A.Ident(sp(2, 3), "a")), A.PathSegment(A.Ident(sp(5, 6), "b"))),
        ),
    )


def test_keyword_in_path_is_an_error() -> None:
    with pytest.raises(ParseError) as e:
        parse_expr_from_source_str("<test>", "::abc::def::return")
    assert e.value.message == "expected identifier, found keyword `return`"
    assert e.value.location == "<test>:1:13"


def test_return_expr() -> None:
    e = parse_expr_from_source_str("<test>", "return d")
    assert e == A.Ret(sp(0, 8), A.PathExpr(sp(7, 8), _path(7, 8, "d")))


@pytest.mark.parametrize(
    "src,expected",
    [
        ("3 + 4", "3 + 4"),
        ("a::z.froob(b,&(987+3))", "a::z.froob(b, &(987 + 3))"),
        ("x = y as u8 << 2", "x = y as u8 << 2"),
        ("v[0].1?", "v[0].1?"),
    ],
)
def test_exprs_print_back(src: str, expected: str) -> None:
    assert expr_to_string(parse_expr_from_source_str("<test>", src)) == expected


def test_binary_spans() -> None:
    e = parse_expr_from_source_str("<test>", "3 + 4")
    assert isinstance(e, A.Binary)
    assert e.span == sp(0, 5)
    assert e.op is A.BinOpKind.ADD
    assert e.rhs == A.LitExpr(sp(4, 5), A.Lit(sp(4, 5), A.IntLit(4)))


def test_parse_stmt() -> None:
    s = parse_stmt_from_source_str("<test>", "b;")
    assert s == A.ExprStmt(sp(0, 1), A.PathExpr(sp(0, 1), _path(0, 1, "b")))


def test_parse_let_stmt() -> None:
    s = parse_stmt_from_source_str("<test>", "let mut x: u8 = 1")
    assert isinstance(s, A.Local)
    assert s.pat == A.IdentPat(sp(4, 9), A.Ident(sp(8, 9), "x"), mutable=True)
    assert s.init == A.LitExpr(sp(16, 17), A.Lit(sp(16, 17), A.IntLit(1)))


def test_parse_ident_pat() -> None:
    parser = new_parser_from_source_str(ParseSess(), (), "<test>", "b")
    assert parser.parse_pat() == A.IdentPat(sp(0, 1), A.Ident(sp(0, 1), "b"))
    assert parser.token.kind is TokenKind.EOF


def test_empty_sources_give_none() -> None:
    assert parse_item_from_source_str("<test>", "") is None
    assert parse_stmt_from_source_str("<test>", "") is None
    assert parse_item_from_source_str("<test>", "1 + 2") is None


def test_stray_attribute_is_reported() -> None:
    sess = ParseSess()
    assert parse_item_from_source_str("<test>", "#[inline]", sess=sess) is None
    assert sess.span_diagnostic.messages(Level.ERROR) == ["expected item after attributes"]


def test_empty_file_eof_is_anchored_at_its_end() -> None:
    sess = ParseSess()
    sess.codemap.new_filemap("first.rs", "abc")
    parser = new_parser_from_source_str(sess, (), "empty.rs", "")
    assert parser.token.kind is TokenKind.EOF
    assert parser.span == sp(4, 4)


# -- items ------------------------------------------------------------------


def test_parse_fundecl() -> None:
    item = parse_item_from_source_str("<test>", "fn a (b : i32) { b; }")
    b_path = _path(17, 18, "b")
    assert item == A.Item(
        sp(0, 21),
        A.Ident(sp(3, 4), "a"),
        (),
        A.Visibility.INHERITED,
        A.Fn(
            A.FnDecl(
                sp(5, 14),
                (
                    A.Arg(
                        sp(6, 13),
                        A.IdentPat(sp(6, 7), A.Ident(sp(6, 7), "b")),
                        A.PathTy(sp(10, 13), _path(10, 13, "i32")),
                    ),
                ),
                A.DefaultReturn(sp(15, 15)),
            ),
            A.Generics(DUMMY_SP),
            A.Block(sp(15, 21), (A.SemiStmt(sp(17, 19), A.PathExpr(sp(17, 18), b_path)),)),
        ),
    )


@pytest.mark.parametrize(
    "src",
    [
        "use foo::bar::baz;",
        "use foo::bar as baz;",
        "use foo::*;",
        "use foo::{a, b as c};",
        "extern crate foo;",
        "extern crate foo as bar;",
        "pub const N: usize = 4;",
        "struct P(pub u8, i32);",
    ],
)
def test_items_print_back(src: str) -> None:
    item = parse_item_from_source_str("<test>", src)
    assert item is not None
    assert item_to_string(item) == src


def test_extern_crate_rename() -> None:
    item = parse_item_from_source_str("<test>", "extern crate foo as bar;")
    assert item.ident.name == "bar"
    assert item.node == A.ExternCrate("foo")


class _SelfArgSpans(Visitor):
    def __init__(self) -> None:
        self.spans: list[Span] = []

    def visit_pat(self, pat: A.Pat) -> None:
        if isinstance(pat, A.IdentPat):
            self.spans.append(pat.ident.span)
        else:
            walk_pat(self, pat)


@pytest.mark.parametrize(
    "src",
    [
        "impl z { fn a (&self, &myarg: i32) {} }",
        "impl z { fn a (&mut self, &myarg: i32) {} }",
        "impl z { fn a (&'a self, &myarg: i32) {} }",
        "impl z { fn a (self, &myarg: i32) {} }",
        "impl z { fn a (self: Foo, &myarg: i32) {} }",
    ],
)
def test_self_arg_spans_cover_the_keyword(src: str) -> None:
    sess = ParseSess()
    item = parse_item_from_source_str("<test>", src, sess=sess)
    v = _SelfArgSpans()
    walk_item(v, item)
    snippets = [sess.codemap.span_to_snippet(s) for s in v.spans]
    assert snippets == ["self", "myarg"]


def test_nested_attributes_on_inner_items() -> None:
    src = """pub fn mk_file_writer(path: &Path, flags: &[FileFlag])
                   -> Result<Box<Writer>, String> {
    #[cfg(windows)]
    fn wb() -> c_int {
      (O_WRONLY | libc::consts::os::extra::O_BINARY) as c_int
    }

    #[cfg(unix)]
    fn wb() -> c_int { O_WRONLY as c_int }

    let mut fflags: c_int = wb();
}"""
    sess = ParseSess()
    item = parse_item_from_source_str("<test>", src, sess=sess)
    assert not sess.span_diagnostic.has_errors()
    first, second, local = item.node.body.stmts
    for stmt, cfg in ((first, "cfg(windows)"), (second, "cfg(unix)")):
        assert isinstance(stmt, A.ItemStmt)
        (attr,) = stmt.item.attrs
        assert meta_item_to_string(attr.value) == cfg
    assert isinstance(local, A.Local)
    assert local.pat.ident.name == "fflags"


def test_crlf_doc_comments() -> None:
    item = parse_item_from_source_str("<test>", "/// doc comment\r\nfn foo() {}")
    assert A.first_attr_value_str_by_name(item.attrs, "doc") == "/// doc comment"

    item = parse_item_from_source_str("<test>", "/// doc comment\r\n/// line 2\r\nfn foo() {}")
    docs = [a.value.lit.node.value for a in item.attrs]
    assert docs == ["/// doc comment", "/// line 2"]

    item = parse_item_from_source_str("<test>", "/** doc comment\r\n *  with CRLF */\r\nfn foo() {}")
    assert A.first_attr_value_str_by_name(item.attrs, "doc") == "/** doc comment\n *  with CRLF */"


def test_macro_delimited_span() -> None:
    sess = ParseSess()
    e = parse_expr_from_source_str("<test>", "foo!( fn main() { body } )", sess=sess)
    assert isinstance(e, A.MacExpr)
    last = e.mac.tts[-1]
    assert sess.codemap.span_to_snippet(last.span) == "{ body }"


# -- meta items and crate attributes -----------------------------------------


def test_meta_name_value() -> None:
    mi = parse_meta_from_source_str("<cfg>", 'feature = "x"')
    assert mi == A.MetaNameValue(sp(0, 13), "feature", A.Lit(sp(10, 13), A.StrLit("x")))


def test_meta_list() -> None:
    mi = parse_meta_from_source_str("<cfg>", "cfg(unix, not(windows))")
    assert isinstance(mi, A.MetaList)
    assert [m.name for m in mi.items] == ["unix", "not"]
    assert meta_item_to_string(mi) == "cfg(unix, not(windows))"


def test_meta_suffixed_literal_is_reported() -> None:
    sess = ParseSess()
    mi = parse_meta_from_source_str("<cfg>", "x = 1u8", sess=sess)
    assert mi.lit.node == A.IntLit(1, A.Unsigned(A.UintTy.U8))
    (d,) = sess.span_diagnostic.diagnostics
    assert d.message == "suffixed literals are not allowed in attributes"
    assert d.children[0].level is Level.HELP


def test_crate_attrs() -> None:
    attrs = parse_crate_attrs_from_source_str("<test>", '#![crate_type = "lib"]\n//! docs\nfn f() {}')
    assert [a.style for a in attrs] == [A.AttrStyle.INNER, A.AttrStyle.INNER]
    assert attrs[0].name == "crate_type"
    assert attrs[1].is_sugared_doc


def test_crate_keeps_config() -> None:
    cfg = [parse_meta_from_source_str("<cfg>", "unix")]
    crate = parse_crate_from_source_str("<test>", "#![no_std]\nfn f() {}\n", cfg)
    assert crate.config == tuple(cfg)
    assert [a.name for a in crate.attrs] == ["no_std"]
    assert [i.ident.name for i in crate.module.items] == ["f"]


def test_inner_attribute_in_item_position_is_an_error() -> None:
    with pytest.raises(ParseError) as e:
        parse_crate_from_source_str("<test>", "fn f() {}\n#![no_std]\n")
    assert e.value.message == "an inner attribute is not permitted in this context"
    assert e.value.hint


# -- files and out-of-line modules -------------------------------------------


def test_crate_from_file_loads_sub_modules(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "lib.rs": 'mod a;\nmod b;\n#[path = "other.rs"] mod c;\nmod d { mod e; }\n',
            "a.rs": "pub fn fa() {}\n",
            "b/mod.rs": "//! module b\nmod inner;\n",
            "b/inner.rs": "const X: u8 = 1;\n",
            "other.rs": "fn fc() {}\n",
            "d/e.rs": "fn fe() {}\n",
        },
    )
    sess = ParseSess()
    crate = parse_crate_from_file(tmp_path / "lib.rs", sess=sess)
    assert not sess.span_diagnostic.has_errors()

    a, b, c, d = crate.module.items
    assert [i.ident.name for i in (a, b, c, d)] == ["a", "b", "c", "d"]
    assert not a.node.inline
    assert a.node.items[0].ident.name == "fa"
    assert b.attrs[-1].is_sugared_doc
    (inner,) = b.node.items
    assert inner.node.items[0].ident.name == "X"
    assert c.node.items[0].ident.name == "fc"
    assert d.node.inline
    (e,) = d.node.items
    assert e.node.items[0].ident.name == "fe"

    assert sess.codemap.span_to_snippet(inner.node.items[0].span) == "const X: u8 = 1;"
    assert sess.included_mods == ()


def test_crate_attrs_from_file(tmp_path: Path) -> None:
    _write(tmp_path, {"main.rs": "#![allow(dead_code)]\n#![no_std]\nfn f() {}\n"})
    attrs = parse_crate_attrs_from_file(tmp_path / "main.rs")
    assert [a.name for a in attrs] == ["allow", "no_std"]


def test_module_in_non_owning_file_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, {"lib.rs": "mod a;\n", "a.rs": "mod z;\n"})
    with pytest.raises(ParseError) as e:
        parse_crate_from_file(tmp_path / "lib.rs")
    assert e.value.message == "cannot declare a new module at this location"
    assert "`a/mod.rs`" in e.value.hint


def test_missing_module_file(tmp_path: Path) -> None:
    _write(tmp_path, {"lib.rs": "mod x;\n"})
    with pytest.raises(ParseError) as e:
        parse_crate_from_file(tmp_path / "lib.rs")
    assert e.value.message == "file not found for module `x`"
    assert e.value.location.endswith("lib.rs:1:5")


def test_ambiguous_module_file(tmp_path: Path) -> None:
    _write(tmp_path, {"lib.rs": "mod x;\n", "x.rs": "", "x/mod.rs": ""})
    with pytest.raises(ParseError) as e:
        parse_crate_from_file(tmp_path / "lib.rs")
    assert e.value.message == "file for module `x` found at both x.rs and x/mod.rs"


def test_circular_modules(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "a.rs": '#[path = "b.rs"] mod b;\n',
            "b.rs": '#[path = "a.rs"] mod a;\n',
        },
    )
    sess = ParseSess()
    with pytest.raises(ParseError) as e:
        parse_crate_from_file(tmp_path / "a.rs", sess=sess)
    assert e.value.message.startswith("circular modules: ")
    assert sess.included_mods == ()


def test_unreadable_crate_root_is_fatal(tmp_path: Path) -> None:
    sess = ParseSess()
    with pytest.raises(FatalError) as e:
        parse_crate_from_file(tmp_path / "nope.rs", sess=sess)
    assert e.value.message.startswith("couldn't read \"")
    assert sess.span_diagnostic.diagnostics[0].level is Level.FATAL


def test_unreadable_module_file_is_fatal_at_the_declaration(tmp_path: Path) -> None:
    _write(tmp_path, {"lib.rs": '#[path = "gone.rs"] mod g;\n'})
    sess = ParseSess()
    with pytest.raises(FatalError):
        parse_crate_from_file(tmp_path / "lib.rs", sess=sess)
    (d,) = sess.span_diagnostic.diagnostics
    assert d.span == sp(24, 25)
    assert sess.included_mods == ()


def test_non_utf8_file_is_fatal(tmp_path: Path) -> None:
    (tmp_path / "bad.rs").write_bytes(b"fn \xff() {}")
    with pytest.raises(FatalError) as e:
        parse_crate_from_file(tmp_path / "bad.rs")
    assert "stream did not contain valid UTF-8" in e.value.message
