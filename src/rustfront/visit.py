from __future__ import annotations

from . import ast as A


class Visitor:
    """Depth-first AST walker.

    Each `visit_*` method walks the children of its node by default;
    override one to inspect nodes of that kind, and call the matching
    `walk_*` function to keep descending.
    """

    def visit_crate(self, crate: A.Crate) -> None:
        walk_crate(self, crate)

    def visit_item(self, item: A.Item) -> None:
        walk_item(self, item)

    def visit_attribute(self, attr: A.Attribute) -> None:
        pass

    def visit_ident(self, ident: A.Ident) -> None:
        pass

    def visit_path(self, path: A.Path) -> None:
        walk_path(self, path)

    def visit_lit(self, lit: A.Lit) -> None:
        pass

    def visit_ty(self, ty: A.Ty) -> None:
        walk_ty(self, ty)

    def visit_pat(self, pat: A.Pat) -> None:
        walk_pat(self, pat)

    def visit_expr(self, expr: A.Expr) -> None:
        walk_expr(self, expr)

    def visit_stmt(self, stmt: A.Stmt) -> None:
        walk_stmt(self, stmt)

    def visit_block(self, block: A.Block) -> None:
        walk_block(self, block)

    def visit_fn_decl(self, decl: A.FnDecl) -> None:
        walk_fn_decl(self, decl)

    def visit_generics(self, generics: A.Generics) -> None:
        for ident in generics.ty_params:
            self.visit_ident(ident)

    def visit_struct_field(self, f: A.StructField) -> None:
        for attr in f.attrs:
            self.visit_attribute(attr)
        if f.ident is not None:
            self.visit_ident(f.ident)
        self.visit_ty(f.ty)

    def visit_mac(self, mac: A.Mac) -> None:
        self.visit_path(mac.path)


def walk_crate(v: Visitor, crate: A.Crate) -> None:
    for attr in crate.attrs:
        v.visit_attribute(attr)
    for item in crate.module.items:
        v.visit_item(item)


def walk_path(v: Visitor, path: A.Path) -> None:
    for seg in path.segments:
        v.visit_ident(seg.identifier)
        for ty in seg.args:
            v.visit_ty(ty)


def _walk_view_path(v: Visitor, vp: A.ViewPath) -> None:
    v.visit_path(vp.path)
    if isinstance(vp, A.ViewPathSimple):
        v.visit_ident(vp.ident)
    elif isinstance(vp, A.ViewPathList):
        for item in vp.items:
            v.visit_ident(item.name)
            if item.rename is not None:
                v.visit_ident(item.rename)


def walk_item(v: Visitor, item: A.Item) -> None:
    for attr in item.attrs:
        v.visit_attribute(attr)
    if item.ident.name:
        v.visit_ident(item.ident)

    node = item.node
    if isinstance(node, A.Use):
        _walk_view_path(v, node.view_path)
    elif isinstance(node, A.Fn):
        v.visit_generics(node.generics)
        v.visit_fn_decl(node.decl)
        v.visit_block(node.body)
    elif isinstance(node, A.Mod):
        for it in node.items:
            v.visit_item(it)
    elif isinstance(node, (A.Const, A.Static)):
        v.visit_ty(node.ty)
        v.visit_expr(node.expr)
    elif isinstance(node, A.Struct):
        v.visit_generics(node.generics)
        for f in node.fields:
            v.visit_struct_field(f)
    elif isinstance(node, A.Impl):
        v.visit_generics(node.generics)
        if node.trait_ref is not None:
            v.visit_path(node.trait_ref)
        v.visit_ty(node.self_ty)
        for it in node.items:
            v.visit_item(it)
    elif isinstance(node, A.MacItem):
        v.visit_mac(node.mac)


def walk_fn_decl(v: Visitor, decl: A.FnDecl) -> None:
    for arg in decl.inputs:
        v.visit_pat(arg.pat)
        v.visit_ty(arg.ty)
    if not isinstance(decl.output, A.DefaultReturn):
        v.visit_ty(decl.output)


def walk_ty(v: Visitor, ty: A.Ty) -> None:
    if isinstance(ty, A.PathTy):
        v.visit_path(ty.path)
    elif isinstance(ty, (A.RefTy, A.PtrTy, A.SliceTy, A.ParenTy)):
        v.visit_ty(ty.ty)
    elif isinstance(ty, A.ArrayTy):
        v.visit_ty(ty.ty)
        v.visit_expr(ty.len)
    elif isinstance(ty, A.TupTy):
        for t in ty.elems:
            v.visit_ty(t)


def walk_pat(v: Visitor, pat: A.Pat) -> None:
    if isinstance(pat, A.IdentPat):
        v.visit_ident(pat.ident)
    elif isinstance(pat, A.RefPat):
        v.visit_pat(pat.pat)
    elif isinstance(pat, A.TuplePat):
        for p in pat.elems:
            v.visit_pat(p)
    elif isinstance(pat, A.LitPat):
        v.visit_expr(pat.expr)


def walk_block(v: Visitor, block: A.Block) -> None:
    for stmt in block.stmts:
        v.visit_stmt(stmt)


def walk_stmt(v: Visitor, stmt: A.Stmt) -> None:
    if isinstance(stmt, A.Local):
        for attr in stmt.attrs:
            v.visit_attribute(attr)
        v.visit_pat(stmt.pat)
        if stmt.ty is not None:
            v.visit_ty(stmt.ty)
        if stmt.init is not None:
            v.visit_expr(stmt.init)
    elif isinstance(stmt, A.ItemStmt):
        v.visit_item(stmt.item)
    else:
        v.visit_expr(stmt.expr)


def walk_expr(v: Visitor, e: A.Expr) -> None:
    if isinstance(e, A.PathExpr):
        v.visit_path(e.path)
    elif isinstance(e, A.LitExpr):
        v.visit_lit(e.lit)
    elif isinstance(e, (A.Binary, A.Assign, A.AssignOp)):
        v.visit_expr(e.lhs)
        v.visit_expr(e.rhs)
    elif isinstance(e, (A.Unary, A.AddrOf, A.Paren, A.Try, A.TupField)):
        v.visit_expr(e.expr)
    elif isinstance(e, A.Cast):
        v.visit_expr(e.expr)
        v.visit_ty(e.ty)
    elif isinstance(e, A.Call):
        v.visit_expr(e.func)
        for arg in e.args:
            v.visit_expr(arg)
    elif isinstance(e, A.MethodCall):
        v.visit_expr(e.receiver)
        v.visit_ident(e.method)
        for arg in e.args:
            v.visit_expr(arg)
    elif isinstance(e, A.Field):
        v.visit_expr(e.expr)
        v.visit_ident(e.ident)
    elif isinstance(e, A.Index):
        v.visit_expr(e.expr)
        v.visit_expr(e.index)
    elif isinstance(e, (A.Tup, A.Array)):
        for x in e.elems:
            v.visit_expr(x)
    elif isinstance(e, A.BlockExpr):
        v.visit_block(e.block)
    elif isinstance(e, A.If):
        v.visit_expr(e.cond)
        v.visit_block(e.then)
        if e.orelse is not None:
            v.visit_expr(e.orelse)
    elif isinstance(e, A.While):
        v.visit_expr(e.cond)
        v.visit_block(e.body)
    elif isinstance(e, A.Loop):
        v.visit_block(e.body)
    elif isinstance(e, (A.Ret, A.Break)):
        if e.expr is not None:
            v.visit_expr(e.expr)
    elif isinstance(e, A.MacExpr):
        v.visit_mac(e.mac)
