from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .spans import Span
from .tokens import DelimToken

if TYPE_CHECKING:
    from .tokenstream import TokenTree


# -- literal values -------------------------------------------------------


class IntTy(str, Enum):
    ISIZE = "isize"
    I8 = "i8"
    I16 = "i16"
    I32 = "i32"
    I64 = "i64"


class UintTy(str, Enum):
    USIZE = "usize"
    U8 = "u8"
    U16 = "u16"
    U32 = "u32"
    U64 = "u64"


class FloatTy(str, Enum):
    F32 = "f32"
    F64 = "f64"


@dataclass(frozen=True, slots=True)
class Signed:
    ty: IntTy


@dataclass(frozen=True, slots=True)
class Unsigned:
    ty: UintTy


@dataclass(frozen=True, slots=True)
class Unsuffixed:
    pass


UNSUFFIXED = Unsuffixed()

LitIntType = Signed | Unsigned | Unsuffixed


@dataclass(frozen=True, slots=True)
class StrLit:
    value: str
    raw_hashes: int | None = None  # None for a cooked string


@dataclass(frozen=True, slots=True)
class ByteStrLit:
    value: bytes


@dataclass(frozen=True, slots=True)
class ByteLit:
    value: int


@dataclass(frozen=True, slots=True)
class CharLit:
    value: str


@dataclass(frozen=True, slots=True)
class IntLit:
    value: int
    ty: LitIntType = UNSUFFIXED


@dataclass(frozen=True, slots=True)
class FloatLit:
    text: str  # underscores removed, not converted
    ty: FloatTy


@dataclass(frozen=True, slots=True)
class FloatUnsuffixedLit:
    text: str


@dataclass(frozen=True, slots=True)
class BoolLit:
    value: bool


LitKind = StrLit | ByteStrLit | ByteLit | CharLit | IntLit | FloatLit | FloatUnsuffixedLit | BoolLit


# -- nodes ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Node:
    span: Span


@dataclass(frozen=True, slots=True)
class Lit(Node):
    node: LitKind


@dataclass(frozen=True, slots=True)
class Ident(Node):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class PathSegment:
    identifier: Ident
    # Generic arguments, e.g. `Vec::<u8>` or `Vec<u8>` in type position.
    args: tuple[Ty, ...] = ()


@dataclass(frozen=True, slots=True)
class Path(Node):
    is_global: bool
    segments: tuple[PathSegment, ...]

    def __str__(self) -> str:
        lead = "::" if self.is_global else ""
        return lead + "::".join(s.identifier.name for s in self.segments)


# -- attributes -----------------------------------------------------------


class AttrStyle(str, Enum):
    OUTER = "outer"
    INNER = "inner"


@dataclass(frozen=True, slots=True)
class MetaWord(Node):
    name: str


@dataclass(frozen=True, slots=True)
class MetaList(Node):
    name: str
    items: tuple[MetaItem, ...] = ()


@dataclass(frozen=True, slots=True)
class MetaNameValue(Node):
    name: str
    lit: Lit


MetaItem = MetaWord | MetaList | MetaNameValue

# Crate configuration: the `--cfg` items a crate is parsed under.
CrateConfig = tuple[MetaItem, ...]


@dataclass(frozen=True, slots=True)
class Attribute(Node):
    style: AttrStyle
    value: MetaItem
    is_sugared_doc: bool = False

    @property
    def name(self) -> str:
        return self.value.name


def first_attr_value_str_by_name(attrs: tuple[Attribute, ...] | list[Attribute], name: str) -> str | None:
    for attr in attrs:
        v = attr.value
        if attr.name == name and isinstance(v, MetaNameValue) and isinstance(v.lit.node, StrLit):
            return v.lit.node.value
    return None


# -- types ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PathTy(Node):
    path: Path


@dataclass(frozen=True, slots=True)
class RefTy(Node):
    mutable: bool
    ty: Ty
    lifetime: str | None = None


@dataclass(frozen=True, slots=True)
class PtrTy(Node):
    mutable: bool
    ty: Ty


@dataclass(frozen=True, slots=True)
class SliceTy(Node):
    ty: Ty


@dataclass(frozen=True, slots=True)
class ArrayTy(Node):
    ty: Ty
    len: Expr


@dataclass(frozen=True, slots=True)
class TupTy(Node):
    elems: tuple[Ty, ...] = ()


@dataclass(frozen=True, slots=True)
class ParenTy(Node):
    ty: Ty


@dataclass(frozen=True, slots=True)
class InferTy(Node):
    pass


@dataclass(frozen=True, slots=True)
class ImplicitSelfTy(Node):
    """Type of a `self`/`&self`/`&mut self` argument."""


Ty = PathTy | RefTy | PtrTy | SliceTy | ArrayTy | TupTy | ParenTy | InferTy | ImplicitSelfTy


# -- patterns -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IdentPat(Node):
    ident: Ident
    mutable: bool = False
    by_ref: bool = False


@dataclass(frozen=True, slots=True)
class WildPat(Node):
    pass


@dataclass(frozen=True, slots=True)
class RefPat(Node):
    pat: Pat
    mutable: bool = False


@dataclass(frozen=True, slots=True)
class TuplePat(Node):
    elems: tuple[Pat, ...] = ()


@dataclass(frozen=True, slots=True)
class LitPat(Node):
    expr: Expr


Pat = IdentPat | WildPat | RefPat | TuplePat | LitPat


# -- expressions ----------------------------------------------------------


class BinOpKind(str, Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"
    AND = "&&"
    OR = "||"
    BIT_XOR = "^"
    BIT_AND = "&"
    BIT_OR = "|"
    SHL = "<<"
    SHR = ">>"
    EQ = "=="
    LT = "<"
    LE = "<="
    NE = "!="
    GE = ">="
    GT = ">"


class UnOp(str, Enum):
    DEREF = "*"
    NOT = "!"
    NEG = "-"


@dataclass(frozen=True, slots=True)
class Mac(Node):
    """A macro invocation `path!(tts)`; the token trees are never expanded."""

    path: Path
    tts: tuple[TokenTree, ...] = ()
    delim: DelimToken = DelimToken.PAREN


@dataclass(frozen=True, slots=True)
class PathExpr(Node):
    path: Path


@dataclass(frozen=True, slots=True)
class LitExpr(Node):
    lit: Lit


@dataclass(frozen=True, slots=True)
class Binary(Node):
    op: BinOpKind
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True, slots=True)
class Unary(Node):
    op: UnOp
    expr: Expr


@dataclass(frozen=True, slots=True)
class AddrOf(Node):
    mutable: bool
    expr: Expr


@dataclass(frozen=True, slots=True)
class Assign(Node):
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True, slots=True)
class AssignOp(Node):
    op: BinOpKind
    lhs: Expr
    rhs: Expr


@dataclass(frozen=True, slots=True)
class Cast(Node):
    expr: Expr
    ty: Ty


@dataclass(frozen=True, slots=True)
class Call(Node):
    func: Expr
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True, slots=True)
class MethodCall(Node):
    receiver: Expr
    method: Ident
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True, slots=True)
class Field(Node):
    expr: Expr
    ident: Ident


@dataclass(frozen=True, slots=True)
class TupField(Node):
    expr: Expr
    index: int


@dataclass(frozen=True, slots=True)
class Index(Node):
    expr: Expr
    index: Expr


@dataclass(frozen=True, slots=True)
class Paren(Node):
    expr: Expr


@dataclass(frozen=True, slots=True)
class Tup(Node):
    elems: tuple[Expr, ...] = ()


@dataclass(frozen=True, slots=True)
class Array(Node):
    elems: tuple[Expr, ...] = ()


@dataclass(frozen=True, slots=True)
class BlockExpr(Node):
    block: Block
    unsafe: bool = False


@dataclass(frozen=True, slots=True)
class If(Node):
    cond: Expr
    then: Block
    orelse: Expr | None = None  # another If or a BlockExpr


@dataclass(frozen=True, slots=True)
class While(Node):
    cond: Expr
    body: Block
    label: str | None = None


@dataclass(frozen=True, slots=True)
class Loop(Node):
    body: Block
    label: str | None = None


@dataclass(frozen=True, slots=True)
class Ret(Node):
    expr: Expr | None = None


@dataclass(frozen=True, slots=True)
class Break(Node):
    label: str | None = None
    expr: Expr | None = None


@dataclass(frozen=True, slots=True)
class Continue(Node):
    label: str | None = None


@dataclass(frozen=True, slots=True)
class Try(Node):
    expr: Expr


@dataclass(frozen=True, slots=True)
class MacExpr(Node):
    mac: Mac


Expr = (
    PathExpr | LitExpr | Binary | Unary | AddrOf | Assign | AssignOp | Cast | Call | MethodCall
    | Field | TupField | Index | Paren | Tup | Array | BlockExpr | If | While | Loop | Ret
    | Break | Continue | Try | MacExpr
)


# -- statements -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Local(Node):
    pat: Pat
    ty: Ty | None = None
    init: Expr | None = None
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True, slots=True)
class ItemStmt(Node):
    item: Item


@dataclass(frozen=True, slots=True)
class ExprStmt(Node):
    """An expression statement without a trailing semicolon."""

    expr: Expr


@dataclass(frozen=True, slots=True)
class SemiStmt(Node):
    """An expression statement terminated by `;` (included in the span)."""

    expr: Expr


Stmt = Local | ItemStmt | ExprStmt | SemiStmt


@dataclass(frozen=True, slots=True)
class Block(Node):
    stmts: tuple[Stmt, ...] = ()


# -- items ----------------------------------------------------------------


class Visibility(str, Enum):
    INHERITED = "inherited"
    PUBLIC = "pub"


@dataclass(frozen=True, slots=True)
class Arg(Node):
    pat: Pat
    ty: Ty


@dataclass(frozen=True, slots=True)
class DefaultReturn(Node):
    """No `-> T`; the span is the empty span where the arrow would go."""


FunctionRetTy = DefaultReturn | Ty


@dataclass(frozen=True, slots=True)
class FnDecl(Node):
    inputs: tuple[Arg, ...]
    output: FunctionRetTy
    variadic: bool = False


@dataclass(frozen=True, slots=True)
class Generics(Node):
    lifetimes: tuple[str, ...] = ()
    ty_params: tuple[Ident, ...] = ()

    def is_empty(self) -> bool:
        return not self.lifetimes and not self.ty_params


@dataclass(frozen=True, slots=True)
class ViewPathSimple(Node):
    """`use a::b;` or `use a::b as c;`; `ident` is the bound name."""

    ident: Ident
    path: Path


@dataclass(frozen=True, slots=True)
class ViewPathGlob(Node):
    path: Path


@dataclass(frozen=True, slots=True)
class PathListItem(Node):
    name: Ident
    rename: Ident | None = None


@dataclass(frozen=True, slots=True)
class ViewPathList(Node):
    path: Path
    items: tuple[PathListItem, ...] = ()


ViewPath = ViewPathSimple | ViewPathGlob | ViewPathList


@dataclass(frozen=True, slots=True)
class ExternCrate:
    orig_name: str | None = None  # set for `extern crate orig as ident;`


@dataclass(frozen=True, slots=True)
class Use:
    view_path: ViewPath


@dataclass(frozen=True, slots=True)
class Fn:
    decl: FnDecl
    generics: Generics
    body: Block
    unsafe: bool = False
    const: bool = False


@dataclass(frozen=True, slots=True)
class Mod:
    inner: Span  # span of the module contents
    items: tuple[Item, ...] = ()
    inline: bool = True


@dataclass(frozen=True, slots=True)
class Const:
    ty: Ty
    expr: Expr


@dataclass(frozen=True, slots=True)
class Static:
    ty: Ty
    mutable: bool
    expr: Expr


@dataclass(frozen=True, slots=True)
class StructField(Node):
    ident: Ident | None  # None for tuple-struct fields
    ty: Ty
    vis: Visibility = Visibility.INHERITED
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True, slots=True)
class Struct:
    fields: tuple[StructField, ...]
    generics: Generics
    kind: str = "struct"  # "struct" | "tuple" | "unit"


@dataclass(frozen=True, slots=True)
class Impl:
    generics: Generics
    self_ty: Ty
    trait_ref: Path | None = None
    items: tuple[Item, ...] = ()


@dataclass(frozen=True, slots=True)
class MacItem:
    mac: Mac


ItemKind = ExternCrate | Use | Fn | Mod | Const | Static | Struct | Impl | MacItem


@dataclass(frozen=True, slots=True)
class Item(Node):
    ident: Ident
    attrs: tuple[Attribute, ...]
    vis: Visibility
    node: ItemKind


@dataclass(frozen=True, slots=True)
class Crate(Node):
    module: Mod
    attrs: tuple[Attribute, ...] = ()
    config: CrateConfig = field(default_factory=tuple)
