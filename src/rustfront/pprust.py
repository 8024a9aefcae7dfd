from __future__ import annotations

from collections.abc import Iterable

from . import ast as A
from .tokens import DelimToken, token_to_string
from .tokenstream import TokenTree, TtToken


def crate_to_string(crate: A.Crate) -> str:
    out: list[str] = [attribute_to_string(a) for a in crate.attrs]
    if out:
        out.append("")
    for it in crate.module.items:
        out.extend(_format_item(it, indent=0))
        out.append("")

    while out and out[-1] == "":
        out.pop()
    return "\n".join(out) + "\n"


def item_to_string(item: A.Item) -> str:
    return "\n".join(_format_item(item, indent=0))


def block_to_string(block: A.Block) -> str:
    return "\n".join(_format_block(block))


def stmt_to_string(stmt: A.Stmt) -> str:
    return "\n".join(_format_stmt(stmt))


def attribute_to_string(attr: A.Attribute) -> str:
    v = attr.value
    if attr.is_sugared_doc and isinstance(v, A.MetaNameValue) and isinstance(v.lit.node, A.StrLit):
        return v.lit.node.value
    bang = "!" if attr.style is A.AttrStyle.INNER else ""
    return f"#{bang}[{meta_item_to_string(v)}]"


def meta_item_to_string(mi: A.MetaItem) -> str:
    if isinstance(mi, A.MetaList):
        return f"{mi.name}({', '.join(meta_item_to_string(m) for m in mi.items)})"
    if isinstance(mi, A.MetaNameValue):
        return f"{mi.name} = {lit_to_string(mi.lit)}"
    return mi.name


# -- literals -------------------------------------------------------------


_CHAR_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


def _escape(s: str, quote: str) -> str:
    out = []
    for c in s:
        if c in _CHAR_ESCAPES:
            out.append(_CHAR_ESCAPES[c])
        elif c == quote:
            out.append("\\" + c)
        elif not c.isprintable():
            out.append(f"\\u{{{ord(c):x}}}")
        else:
            out.append(c)
    return "".join(out)


def _escape_byte(b: int, quote: str) -> str:
    c = chr(b)
    if c in _CHAR_ESCAPES:
        return _CHAR_ESCAPES[c]
    if c == quote:
        return "\\" + c
    if 0x20 <= b < 0x7F:
        return c
    return f"\\x{b:02x}"


def lit_kind_to_string(node: A.LitKind) -> str:
    if isinstance(node, A.StrLit):
        if node.raw_hashes is None:
            return f'"{_escape(node.value, chr(34))}"'
        h = "#" * node.raw_hashes
        return f'r{h}"{node.value}"{h}'
    if isinstance(node, A.ByteStrLit):
        return 'b"' + "".join(_escape_byte(b, '"') for b in node.value) + '"'
    if isinstance(node, A.ByteLit):
        return f"b'{_escape_byte(node.value, chr(39))}'"
    if isinstance(node, A.CharLit):
        return f"'{_escape(node.value, chr(39))}'"
    if isinstance(node, A.IntLit):
        ty = node.ty
        suffix = "" if isinstance(ty, A.Unsuffixed) else ty.ty.value
        return f"{node.value}{suffix}"
    if isinstance(node, A.FloatLit):
        return node.text + node.ty.value
    if isinstance(node, A.FloatUnsuffixedLit):
        return node.text
    return "true" if node.value else "false"


def lit_to_string(lit: A.Lit) -> str:
    return lit_kind_to_string(lit.node)


# -- token trees ----------------------------------------------------------


def tt_to_string(tt: TokenTree) -> str:
    if isinstance(tt, TtToken):
        return token_to_string(tt.tok)
    d = tt.delimited
    open_, close = d.delim.open_kind.value, d.delim.close_kind.value
    if not d.tts:
        return open_ + close
    return f"{open_} {tts_to_string(d.tts)} {close}"


def tts_to_string(tts: Iterable[TokenTree]) -> str:
    return " ".join(tt_to_string(tt) for tt in tts)


def _mac_to_string(mac: A.Mac) -> str:
    body = tts_to_string(mac.tts)
    open_, close = mac.delim.open_kind.value, mac.delim.close_kind.value
    if mac.delim is DelimToken.BRACE and body:
        body = f" {body} "
    return f"{mac.path}!{open_}{body}{close}"


# -- paths, types, patterns -----------------------------------------------


def path_to_string(path: A.Path, *, colons_before_args: bool = False) -> str:
    parts = []
    for seg in path.segments:
        s = seg.identifier.name
        if seg.args:
            sep = "::" if colons_before_args else ""
            s += f"{sep}<{', '.join(ty_to_string(t) for t in seg.args)}>"
        parts.append(s)
    return ("::" if path.is_global else "") + "::".join(parts)


def ty_to_string(ty: A.Ty) -> str:
    if isinstance(ty, A.PathTy):
        return path_to_string(ty.path)
    if isinstance(ty, A.RefTy):
        lt = f"{ty.lifetime} " if ty.lifetime else ""
        mut = "mut " if ty.mutable else ""
        return f"&{lt}{mut}{ty_to_string(ty.ty)}"
    if isinstance(ty, A.PtrTy):
        return f"*{'mut' if ty.mutable else 'const'} {ty_to_string(ty.ty)}"
    if isinstance(ty, A.SliceTy):
        return f"[{ty_to_string(ty.ty)}]"
    if isinstance(ty, A.ArrayTy):
        return f"[{ty_to_string(ty.ty)}; {expr_to_string(ty.len)}]"
    if isinstance(ty, A.TupTy):
        if len(ty.elems) == 1:
            return f"({ty_to_string(ty.elems[0])},)"
        return f"({', '.join(ty_to_string(t) for t in ty.elems)})"
    if isinstance(ty, A.ParenTy):
        return f"({ty_to_string(ty.ty)})"
    if isinstance(ty, A.ImplicitSelfTy):
        return "Self"
    return "_"


def pat_to_string(pat: A.Pat) -> str:
    if isinstance(pat, A.IdentPat):
        ref = "ref " if pat.by_ref else ""
        mut = "mut " if pat.mutable else ""
        return f"{ref}{mut}{pat.ident}"
    if isinstance(pat, A.RefPat):
        return f"&{'mut ' if pat.mutable else ''}{pat_to_string(pat.pat)}"
    if isinstance(pat, A.TuplePat):
        if len(pat.elems) == 1:
            return f"({pat_to_string(pat.elems[0])},)"
        return f"({', '.join(pat_to_string(p) for p in pat.elems)})"
    if isinstance(pat, A.LitPat):
        return expr_to_string(pat.expr)
    return "_"


# -- expressions ----------------------------------------------------------


def _exprs(es: Iterable[A.Expr]) -> str:
    return ", ".join(expr_to_string(e) for e in es)


def _labelled(label: str | None, s: str) -> str:
    return f"{label}: {s}" if label else s


def expr_to_string(e: A.Expr) -> str:
    if isinstance(e, A.PathExpr):
        return path_to_string(e.path, colons_before_args=True)
    if isinstance(e, A.LitExpr):
        return lit_to_string(e.lit)
    if isinstance(e, A.Binary):
        return f"{expr_to_string(e.lhs)} {e.op.value} {expr_to_string(e.rhs)}"
    if isinstance(e, A.Unary):
        return e.op.value + expr_to_string(e.expr)
    if isinstance(e, A.AddrOf):
        return f"&{'mut ' if e.mutable else ''}{expr_to_string(e.expr)}"
    if isinstance(e, A.Assign):
        return f"{expr_to_string(e.lhs)} = {expr_to_string(e.rhs)}"
    if isinstance(e, A.AssignOp):
        return f"{expr_to_string(e.lhs)} {e.op.value}= {expr_to_string(e.rhs)}"
    if isinstance(e, A.Cast):
        return f"{expr_to_string(e.expr)} as {ty_to_string(e.ty)}"
    if isinstance(e, A.Call):
        return f"{expr_to_string(e.func)}({_exprs(e.args)})"
    if isinstance(e, A.MethodCall):
        return f"{expr_to_string(e.receiver)}.{e.method}({_exprs(e.args)})"
    if isinstance(e, A.Field):
        return f"{expr_to_string(e.expr)}.{e.ident}"
    if isinstance(e, A.TupField):
        return f"{expr_to_string(e.expr)}.{e.index}"
    if isinstance(e, A.Index):
        return f"{expr_to_string(e.expr)}[{expr_to_string(e.index)}]"
    if isinstance(e, A.Paren):
        return f"({expr_to_string(e.expr)})"
    if isinstance(e, A.Tup):
        if len(e.elems) == 1:
            return f"({expr_to_string(e.elems[0])},)"
        return f"({_exprs(e.elems)})"
    if isinstance(e, A.Array):
        return f"[{_exprs(e.elems)}]"
    if isinstance(e, A.BlockExpr):
        return ("unsafe " if e.unsafe else "") + block_to_string(e.block)
    if isinstance(e, A.If):
        s = f"if {expr_to_string(e.cond)} {block_to_string(e.then)}"
        if e.orelse is not None:
            s += f" else {expr_to_string(e.orelse)}"
        return s
    if isinstance(e, A.While):
        return _labelled(e.label, f"while {expr_to_string(e.cond)} {block_to_string(e.body)}")
    if isinstance(e, A.Loop):
        return _labelled(e.label, f"loop {block_to_string(e.body)}")
    if isinstance(e, A.Ret):
        return "return" if e.expr is None else f"return {expr_to_string(e.expr)}"
    if isinstance(e, A.Break):
        parts = ["break"]
        if e.label:
            parts.append(e.label)
        if e.expr is not None:
            parts.append(expr_to_string(e.expr))
        return " ".join(parts)
    if isinstance(e, A.Continue):
        return f"continue {e.label}" if e.label else "continue"
    if isinstance(e, A.Try):
        return expr_to_string(e.expr) + "?"
    if isinstance(e, A.MacExpr):
        return _mac_to_string(e.mac)
    return f"/* unsupported expression: {type(e).__name__} */"


# -- statements and blocks ------------------------------------------------


def _format_block(block: A.Block) -> list[str]:
    if not block.stmts:
        return ["{ }"]
    out = ["{"]
    for st in block.stmts:
        out.extend(_indent(line, 4) for line in _format_stmt(st))
    out.append("}")
    return out


def _format_stmt(st: A.Stmt) -> list[str]:
    if isinstance(st, A.Local):
        out = [attribute_to_string(a) for a in st.attrs]
        s = "let " + pat_to_string(st.pat)
        if st.ty is not None:
            s += ": " + ty_to_string(st.ty)
        if st.init is not None:
            s += " = " + expr_to_string(st.init)
        out.extend((s + ";").split("\n"))
        return out
    if isinstance(st, A.ItemStmt):
        return _format_item(st.item, indent=0)
    if isinstance(st, A.SemiStmt):
        return (expr_to_string(st.expr) + ";").split("\n")
    return expr_to_string(st.expr).split("\n")


# -- items ----------------------------------------------------------------


def _format_generics(g: A.Generics) -> str:
    if g.is_empty():
        return ""
    return "<" + ", ".join([*g.lifetimes, *(t.name for t in g.ty_params)]) + ">"


def _format_arg(arg: A.Arg) -> str:
    ty = arg.ty
    if isinstance(ty, A.ImplicitSelfTy):
        return pat_to_string(arg.pat)
    if isinstance(ty, A.RefTy) and isinstance(ty.ty, A.ImplicitSelfTy):
        lt = f"{ty.lifetime} " if ty.lifetime else ""
        return f"&{lt}{'mut ' if ty.mutable else ''}self"
    return f"{pat_to_string(arg.pat)}: {ty_to_string(ty)}"


def _format_fn_decl(decl: A.FnDecl) -> str:
    args = [_format_arg(a) for a in decl.inputs]
    if decl.variadic:
        args.append("...")
    s = f"({', '.join(args)})"
    if not isinstance(decl.output, A.DefaultReturn):
        s += " -> " + ty_to_string(decl.output)
    return s


def _format_view_path(vp: A.ViewPath) -> str:
    if isinstance(vp, A.ViewPathSimple):
        s = path_to_string(vp.path)
        if vp.path.segments[-1].identifier.name != vp.ident.name:
            s += f" as {vp.ident}"
        return s
    if isinstance(vp, A.ViewPathGlob):
        return path_to_string(vp.path) + "::*"
    items = ", ".join(i.name.name + (f" as {i.rename}" if i.rename else "") for i in vp.items)
    prefix = path_to_string(vp.path)
    if vp.path.segments:
        prefix += "::"
    return f"{prefix}{{{items}}}"


def _format_body(head: str, items: Iterable[A.Item], *, indent: int) -> list[str]:
    out = [_indent(head + " {", indent)]
    for it in items:
        out.extend(_format_item(it, indent=indent + 4))
    out.append(_indent("}", indent))
    return out


def _format_item(item: A.Item, *, indent: int) -> list[str]:
    out = [_indent(attribute_to_string(a), indent) for a in item.attrs]
    vis = "pub " if item.vis is A.Visibility.PUBLIC else ""
    node = item.node
    name = item.ident.name

    if isinstance(node, A.ExternCrate):
        if node.orig_name is not None:
            out.append(_indent(f"{vis}extern crate {node.orig_name} as {name};", indent))
        else:
            out.append(_indent(f"{vis}extern crate {name};", indent))
    elif isinstance(node, A.Use):
        out.append(_indent(f"{vis}use {_format_view_path(node.view_path)};", indent))
    elif isinstance(node, A.Fn):
        quals = ("const " if node.const else "") + ("unsafe " if node.unsafe else "")
        head = f"{vis}{quals}fn {name}{_format_generics(node.generics)}{_format_fn_decl(node.decl)} "
        lines = _format_block(node.body)
        lines[0] = head + lines[0]
        out.extend(_indent(line, indent) for line in lines)
    elif isinstance(node, A.Mod):
        if node.inline:
            out.extend(_format_body(f"{vis}mod {name}", node.items, indent=indent))
        else:
            out.append(_indent(f"{vis}mod {name};", indent))
    elif isinstance(node, A.Const):
        out.append(_indent(f"{vis}const {name}: {ty_to_string(node.ty)} = {expr_to_string(node.expr)};", indent))
    elif isinstance(node, A.Static):
        mut = "mut " if node.mutable else ""
        out.append(
            _indent(f"{vis}static {mut}{name}: {ty_to_string(node.ty)} = {expr_to_string(node.expr)};", indent)
        )
    elif isinstance(node, A.Struct):
        out.extend(_format_struct(f"{vis}struct {name}{_format_generics(node.generics)}", node, indent=indent))
    elif isinstance(node, A.Impl):
        head = f"{vis}impl{_format_generics(node.generics)} "
        if node.trait_ref is not None:
            head += f"{path_to_string(node.trait_ref)} for "
        out.extend(_format_body(head + ty_to_string(node.self_ty), node.items, indent=indent))
    elif isinstance(node, A.MacItem):
        mac = node.mac
        s = _mac_to_string(mac)
        if name:
            s = s.replace("!", f"! {name} ", 1)
        if mac.delim is not DelimToken.BRACE:
            s += ";"
        out.append(_indent(s, indent))
    else:
        out.append(_indent(f"/* unsupported item: {type(node).__name__} */", indent))
    return out


def _format_struct(head: str, node: A.Struct, *, indent: int) -> list[str]:
    def field_vis(f: A.StructField) -> str:
        return "pub " if f.vis is A.Visibility.PUBLIC else ""

    if node.kind == "unit":
        return [_indent(head + ";", indent)]
    if node.kind == "tuple":
        fields = ", ".join(field_vis(f) + ty_to_string(f.ty) for f in node.fields)
        return [_indent(f"{head}({fields});", indent)]
    out = [_indent(head + " {", indent)]
    for f in node.fields:
        out.extend(_indent(attribute_to_string(a), indent + 4) for a in f.attrs)
        out.append(_indent(f"{field_vis(f)}{f.ident}: {ty_to_string(f.ty)},", indent + 4))
    out.append(_indent("}", indent))
    return out


def _indent(s: str, n: int) -> str:
    if not s:
        return s
    return "\n".join((" " * n + line) if line else line for line in s.split("\n"))
