from __future__ import annotations

import random
import string
from dataclasses import dataclass

from .. import ast as A


@dataclass(frozen=True, slots=True)
class CorpusCase:
    name: str
    source: str
    # Decoded value of every literal, in source order.
    expected: tuple[A.LitKind, ...]


_INT_TYS: list[A.LitIntType] = [
    *(A.Signed(t) for t in A.IntTy),
    *(A.Unsigned(t) for t in A.UintTy),
]

_PLAIN = string.ascii_letters + string.digits + " !#$%&()*+,-./:;<=>?@[]^_`{|}~"
_UNICODE = "éü中文λ€"
_SCALARS = [0x41, 0xE9, 0x3BB, 0x4E2D, 0x20AC, 0x1F600, 0x10FFFF]
_SIMPLE = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", "0": "\0", '"': '"', "'": "'"}


def generate_literal_cases(*, seed: int, count: int) -> list[CorpusCase]:
    r = random.Random(seed)
    return [_gen_case(r, f"case_{i:06d}.rs") for i in range(count)]


def generate_corpus_files(*, seed: int, count: int) -> list[tuple[str, str]]:
    """Generate a deterministic crate as a *file set*.

    Returns a list of (relative_path, source). `lib.rs` declares every other
    file as an out-of-line module (`mod case_000000;`, ...).
    """
    cases = generate_literal_cases(seed=seed, count=count)
    root = ["//! generated crate", ""]
    for case in cases:
        root.append(f"mod {case.name.removesuffix('.rs')};")
    files = [("lib.rs", "\n".join(root) + "\n")]
    files.extend((case.name, case.source) for case in cases)
    return files


def _gen_case(r: random.Random, name: str) -> CorpusCase:
    lines: list[str] = []
    expected: list[A.LitKind] = []
    for i in range(r.randint(1, 12)):
        ty, src, value = r.choice(_GENERATORS)(r)
        if r.random() < 0.15:
            lines.append(f"/// constant number {i}")
        lines.append(f"pub const C{i}: {ty} = {src};")
        expected.append(value)
    if r.random() < 0.5:
        ty, src, value = _gen_int(r)
        lines.append("")
        lines.append("fn body() {")
        lines.append(f"    let x: {ty} = {src};")
        lines.append("    x;")
        lines.append("}")
        expected.append(value)
    return CorpusCase(name, "\n".join(lines) + "\n", tuple(expected))


# -- literal generators: (type, source text, decoded value) ---------------


def _underscored(r: random.Random, digits: str) -> str:
    if len(digits) < 2 or r.random() < 0.7:
        return digits
    k = r.randrange(1, len(digits))
    return digits[:k] + "_" + digits[k:]


def _gen_int(r: random.Random) -> tuple[str, str, A.LitKind]:
    value = r.choice([0, 1, 255, 2**32, 2**64 - 1, r.randrange(0, 2**64)])
    base = r.choice(["", "0x", "0o", "0b"])
    if base == "0x":
        digits = f"{value:x}"
    elif base == "0o":
        digits = f"{value:o}"
    elif base == "0b":
        digits = f"{value:b}"
    else:
        digits = str(value)
    ty: A.LitIntType = A.UNSUFFIXED
    suffix = ""
    if r.random() < 0.4:
        ty = r.choice(_INT_TYS)
        suffix = ty.ty.value
    rust_ty = suffix or "u64"
    return rust_ty, base + _underscored(r, digits) + suffix, A.IntLit(value, ty)


def _gen_float(r: random.Random) -> tuple[str, str, A.LitKind]:
    text = f"{r.randint(0, 99999)}.{r.randint(0, 999)}"
    if r.random() < 0.3:
        text += r.choice(["e", "E"]) + r.choice(["", "+", "-"]) + str(r.randint(0, 30))
    src = _underscored(r, text.split(".")[0]) + "." + text.split(".", 1)[1]
    if r.random() < 0.5:
        ty = r.choice(list(A.FloatTy))
        return ty.value, src + ty.value, A.FloatLit(text, ty)
    return "f64", src, A.FloatUnsuffixedLit(text)


def _gen_escaped(r: random.Random) -> tuple[str, str]:
    """One unit of a cooked string or char body: (source, value)."""
    k = r.random()
    if k < 0.6:
        c = r.choice(_PLAIN)
        return c, c
    if k < 0.7:
        c = r.choice(_UNICODE)
        return c, c
    if k < 0.85:
        e = r.choice(list(_SIMPLE))
        return "\\" + e, _SIMPLE[e]
    if k < 0.93:
        b = r.randrange(0, 0x80)
        return f"\\x{b:02x}", chr(b)
    s = r.choice(_SCALARS)
    return f"\\u{{{s:x}}}", chr(s)


def _gen_str(r: random.Random) -> tuple[str, str, A.LitKind]:
    src, value = [], []
    for _ in range(r.randint(0, 20)):
        s, v = _gen_escaped(r)
        src.append(s)
        value.append(v)
        if r.random() < 0.05:
            # Line continuation: the newline and following indentation vanish.
            src.append("\\\n        x")
            value.append("x")
    return "&'static str", '"' + "".join(src) + '"', A.StrLit("".join(value))


def _gen_raw_str(r: random.Random) -> tuple[str, str, A.LitKind]:
    hashes = r.randint(0, 2)
    alphabet = _PLAIN.replace("#", "") + "\\" + ('"' if hashes else "")
    body = "".join(r.choice(alphabet) for _ in range(r.randint(0, 20)))
    h = "#" * hashes
    return "&'static str", f'r{h}"{body}"{h}', A.StrLit(body, hashes)


def _gen_char(r: random.Random) -> tuple[str, str, A.LitKind]:
    s, v = _gen_escaped(r)
    return "char", f"'{s}'", A.CharLit(v)


def _gen_byte(r: random.Random) -> tuple[str, str, A.LitKind]:
    if r.random() < 0.5:
        c = r.choice(string.ascii_letters + string.digits)
        return "u8", f"b'{c}'", A.ByteLit(ord(c))
    b = r.randrange(0, 0x100)
    return "u8", f"b'\\x{b:02x}'", A.ByteLit(b)


def _gen_byte_str(r: random.Random) -> tuple[str, str, A.LitKind]:
    src, value = [], bytearray()
    for _ in range(r.randint(0, 16)):
        if r.random() < 0.7:
            c = r.choice(string.ascii_letters + string.digits + " ")
            src.append(c)
            value.append(ord(c))
        else:
            b = r.randrange(0, 0x100)
            src.append(f"\\x{b:02x}")
            value.append(b)
    return "&'static [u8]", 'b"' + "".join(src) + '"', A.ByteStrLit(bytes(value))


def _gen_bool(r: random.Random) -> tuple[str, str, A.LitKind]:
    v = r.random() < 0.5
    return "bool", "true" if v else "false", A.BoolLit(v)


_GENERATORS = [
    _gen_int,
    _gen_int,
    _gen_float,
    _gen_str,
    _gen_str,
    _gen_raw_str,
    _gen_char,
    _gen_byte,
    _gen_byte_str,
    _gen_bool,
]
