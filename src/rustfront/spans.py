from __future__ import annotations

from dataclasses import dataclass


# Expansion id carried by spans that did not come out of a macro expansion.
NO_EXPANSION = -1


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open range [lo, hi) of absolute byte positions.

    Positions live in the global position space of a `CodeMap`; the owning
    source file is found by looking the position up there.
    """

    lo: int
    hi: int
    expn_id: int = NO_EXPANSION

    def __post_init__(self) -> None:
        if self.lo > self.hi:
            raise ValueError(f"span lo {self.lo} is past hi {self.hi}")

    def to(self, end: Span) -> Span:
        """Span from the start of self to the end of `end`."""
        return Span(self.lo, max(self.lo, end.hi), self.expn_id)

    def shrink_to_lo(self) -> Span:
        return Span(self.lo, self.lo, self.expn_id)

    def shrink_to_hi(self) -> Span:
        return Span(self.hi, self.hi, self.expn_id)

    def is_dummy(self) -> bool:
        return self == DUMMY_SP


DUMMY_SP = Span(0, 0)


def mk_sp(lo: int, hi: int) -> Span:
    return Span(lo, hi)
