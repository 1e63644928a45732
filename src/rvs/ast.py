"""
Rvs Expression Tree
===================
Immutable representation of variable definitions, as handed over by the
external parser.

Node variants (closed set):
- Literal, EnumItem, Identifier
- Range, Pattern, Sequence
- SampleWithReplacement, SampleWithoutReplacement
- WeightedSampleWithReplacement, WeightedSampleWithoutReplacement
- UnaryOp, BinaryOp

Nodes never hold evaluation state. Per-variable state lives in rvs.state,
built alongside each tree by the compiler.

str(node) renders DSL-like text:
    [0, 7]                 Range
    Pattern(1, 2, 3)       Pattern
    Sequence(0, 3, 1)      Sequence
    r{1, 2}                SampleWithReplacement
    {1, 2}                 SampleWithoutReplacement
    r{2: 1, 3: 2}          WeightedSampleWithReplacement
    {2: 1, 3: 2}           WeightedSampleWithoutReplacement
    a.copy                 Identifier with a variable method
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple

UNARY_OPS = ("~",)
BINARY_OPS = ("|", "^", "&", "<<", ">>", "+", "-", "*", "/", "%")
METHODS = ("prev", "next", "copy")


@dataclass(frozen=True)
class SourcePosition:
    """Diagnostic position supplied by the parser."""
    line: int
    column: int
    file: Optional[str] = None

    def __str__(self) -> str:
        loc = f"{self.line}:{self.column}"
        return f"{self.file}:{loc}" if self.file else loc


class Expr:
    """Base class of all expression nodes."""

    __slots__ = ()

    def children(self) -> Tuple["Expr", ...]:
        return ()


def _join(items) -> str:
    return ", ".join(str(i) for i in items)


# ---- leaves ----

@dataclass(frozen=True)
class Literal(Expr):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class EnumItem(Expr):
    """Named constant, bound to its value when the enum is declared."""
    name: str
    value: int

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Identifier(Expr):
    """
    Reference by name: "Enum.ITEM", a bare "ITEM", an enum type "Enum",
    or an earlier-declared variable.

    A variable reference may carry a method:
    - None or "prev": read the variable's value for this cycle
    - "next": advance the variable once more and read the new value
    - "copy": private clone of the variable's expression, with its own state
    """
    path: str
    method: Optional[str] = None
    position: Optional[SourcePosition] = field(default=None, compare=False)

    def __post_init__(self):
        if self.method is not None and self.method not in METHODS:
            raise ValueError(f"Unknown variable method: {self.method!r}")

    def __str__(self) -> str:
        return self.path if self.method is None else f"{self.path}.{self.method}"


# ---- deterministic generators ----

@dataclass(frozen=True)
class Range(Expr):
    """Inclusive uniform integer range [min, max]."""
    min: Expr
    max: Expr

    def children(self):
        return (self.min, self.max)

    def __str__(self) -> str:
        return f"[{self.min}, {self.max}]"


@dataclass(frozen=True)
class Pattern(Expr):
    members: Tuple[Expr, ...]

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))

    def children(self):
        return self.members

    def __str__(self) -> str:
        return f"Pattern({_join(self.members)})"


@dataclass(frozen=True)
class Sequence(Expr):
    """Arithmetic progression first..last; bounds re-evaluated each cycle."""
    first: Expr
    last: Expr
    increment: Expr = Literal(1)

    def children(self):
        return (self.first, self.last, self.increment)

    def __str__(self) -> str:
        return f"Sequence({self.first}, {self.last}, {self.increment})"


# ---- samplers ----

@dataclass(frozen=True)
class Weighted:
    """A (weight, expression) pair. For depleting pools the weight is a count."""
    weight: int
    expr: Expr

    def __str__(self) -> str:
        return f"{self.weight}: {self.expr}"


@dataclass(frozen=True)
class SampleWithReplacement(Expr):
    members: Tuple[Expr, ...]

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))

    def children(self):
        return self.members

    def __str__(self) -> str:
        return f"r{{{_join(self.members)}}}"


@dataclass(frozen=True)
class SampleWithoutReplacement(Expr):
    members: Tuple[Expr, ...]

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))

    def children(self):
        return self.members

    def __str__(self) -> str:
        return f"{{{_join(self.members)}}}"


@dataclass(frozen=True)
class WeightedSampleWithReplacement(Expr):
    members: Tuple[Weighted, ...]

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))

    @property
    def weights(self) -> Tuple[int, ...]:
        return tuple(m.weight for m in self.members)

    def children(self):
        return tuple(m.expr for m in self.members)

    def __str__(self) -> str:
        return f"r{{{_join(self.members)}}}"


@dataclass(frozen=True)
class WeightedSampleWithoutReplacement(Expr):
    members: Tuple[Weighted, ...]

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))

    @property
    def weights(self) -> Tuple[int, ...]:
        return tuple(m.weight for m in self.members)

    def children(self):
        return tuple(m.expr for m in self.members)

    def __str__(self) -> str:
        return f"{{{_join(self.members)}}}"


# ---- composed expressions ----

@dataclass(frozen=True)
class UnaryOp(Expr):
    op: str
    operand: Expr

    def __post_init__(self):
        if self.op not in UNARY_OPS:
            raise ValueError(f"Unknown unary operator: {self.op!r}")

    def children(self):
        return (self.operand,)

    def __str__(self) -> str:
        return f"{self.op}{self.operand}"


@dataclass(frozen=True)
class BinaryOp(Expr):
    op: str
    left: Expr
    right: Expr

    def __post_init__(self):
        if self.op not in BINARY_OPS:
            raise ValueError(f"Unknown binary operator: {self.op!r}")

    def children(self):
        return (self.left, self.right)

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


# ---- declarations ----

@dataclass(frozen=True)
class EnumItemDecl:
    name: str
    value: Optional[int] = None


@dataclass(frozen=True)
class EnumDecl:
    """Enumeration. Items without a value take their position (0, 1, 2, ...)."""
    name: str
    items: Tuple[EnumItemDecl, ...]
    position: Optional[SourcePosition] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Declaration:
    """`name = expr;` as parsed."""
    name: str
    expr: Expr
    position: Optional[SourcePosition] = field(default=None, compare=False)

    def __str__(self) -> str:
        return f"{self.name} = {self.expr};"


@dataclass(frozen=True)
class Forest:
    """Complete parser output: enum tables plus ordered variable declarations."""
    declarations: Tuple[Declaration, ...] = ()
    enums: Tuple[EnumDecl, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "declarations", tuple(self.declarations))
        object.__setattr__(self, "enums", tuple(self.enums))


def walk(expr: Expr):
    """Yield expr and all of its descendants, depth first."""
    yield expr
    for child in expr.children():
        yield from walk(child)
