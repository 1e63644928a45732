"""
Rvs Variable State
==================
Mutable state cells, one tree of cells per declared variable, mirroring the
shape of its (immutable) expression tree.

A cell records the most recent (value, done) of its node plus whatever the
node needs to advance: a cursor for Pattern, the running value for
Sequence, the selected member for samplers, a depleting pool for the
without-replacement samplers and a cached cumulative table for weighted
picks.

State machine per cell: Uninitialized (ready=False) -> Ready on first
evaluation. There is no terminal state; done is a per-cycle output.
"""

from __future__ import annotations
from typing import Callable, List, Tuple

from rvs import ast
from rvs.sampling import Pool, WeightedPool, WeightedTable


# --- Identifier bindings (resolved once by the compiler) ---

class ConstBinding:
    """Enum item: a fixed value."""
    __slots__ = ("value",)

    def __init__(self, value: int):
        self.value = value

    def __repr__(self):
        return f"ConstBinding({self.value})"


class EnumTypeBinding:
    """Enum type: uniform draw over the enum's item values."""
    __slots__ = ("enum", "values")

    def __init__(self, enum: str, values: Tuple[int, ...]):
        self.enum = enum
        self.values = values

    def __repr__(self):
        return f"EnumTypeBinding({self.enum}, {self.values})"


class VariableBinding:
    """
    Earlier-declared variable, by registry index.

    With advance set (`a.next`) the variable's own state is stepped again
    on every read; otherwise its value for the current cycle is read.
    """
    __slots__ = ("name", "index", "advance")

    def __init__(self, name: str, index: int, advance: bool = False):
        self.name = name
        self.index = index
        self.advance = advance

    def __repr__(self):
        suffix = ".next" if self.advance else ""
        return f"VariableBinding({self.name}{suffix}@{self.index})"


class CopyBinding:
    """`a.copy`: a private cell tree built from a's expression."""
    __slots__ = ("name", "cell")

    def __init__(self, name: str, cell: "Cell"):
        self.name = name
        self.cell = cell

    def __repr__(self):
        return f"CopyBinding({self.name})"


# --- Cells ---

class Cell:
    __slots__ = ("node", "children", "value", "done", "ready")

    def __init__(self, node: ast.Expr, children: List["Cell"]):
        self.node = node
        self.children = children
        self.value = 0
        self.done = False
        self.ready = False

    def reset(self) -> None:
        """Back to Uninitialized, recursively."""
        self.value = 0
        self.done = False
        self.ready = False
        for child in self.children:
            child.reset()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.node}, value={self.value}, done={self.done})"


class IdentifierCell(Cell):
    __slots__ = ("binding",)

    def __init__(self, node, binding):
        # A copy owns its cell tree; reset reaches it through children
        children = [binding.cell] if isinstance(binding, CopyBinding) else []
        super().__init__(node, children)
        self.binding = binding


class PatternCell(Cell):
    __slots__ = ("cursor",)

    def __init__(self, node, children):
        super().__init__(node, children)
        self.cursor = 0

    def reset(self) -> None:
        super().reset()
        self.cursor = 0


class SequenceCell(Cell):
    __slots__ = ("current", "direction", "needs_reset")

    def __init__(self, node, children):
        super().__init__(node, children)
        self.current = 0
        self.direction = 1
        self.needs_reset = True

    def reset(self) -> None:
        super().reset()
        self.current = 0
        self.direction = 1
        self.needs_reset = True


class SampleCell(Cell):
    """
    With-replacement sampler. current is the member being played out; it
    stays selected until that member reports done.
    """
    __slots__ = ("current",)

    def __init__(self, node, children):
        super().__init__(node, children)
        self.current = None

    def reset(self) -> None:
        super().reset()
        self.current = None


class WeightedCell(SampleCell):
    __slots__ = ("table",)

    def __init__(self, node, children):
        super().__init__(node, children)
        self.table = WeightedTable(node.weights)


class PoolCell(Cell):
    """
    Without-replacement sampler. final marks that drawing current emptied
    the pool; the sampler is done once that member is done.
    """
    __slots__ = ("pool", "current", "final")

    def __init__(self, node, children):
        super().__init__(node, children)
        self.pool = self._make_pool(node, children)
        self.current = None
        self.final = False

    def _make_pool(self, node, children):
        return Pool(len(children))

    def reset(self) -> None:
        super().reset()
        self.pool.refill()
        self.current = None
        self.final = False


class WeightedPoolCell(PoolCell):
    __slots__ = ()

    def _make_pool(self, node, children):
        return WeightedPool(node.weights)


_CELL_TYPES = {
    ast.Pattern: PatternCell,
    ast.Sequence: SequenceCell,
    ast.SampleWithReplacement: SampleCell,
    ast.SampleWithoutReplacement: PoolCell,
    ast.WeightedSampleWithReplacement: WeightedCell,
    ast.WeightedSampleWithoutReplacement: WeightedPoolCell,
}


def build_cell(node: ast.Expr, resolve: Callable[[ast.Identifier], object]) -> Cell:
    """
    Build the state tree for an expression.

    resolve maps each Identifier to a binding; it raises for names that
    cannot be bound.
    """
    if isinstance(node, ast.Identifier):
        return IdentifierCell(node, resolve(node))

    children = [build_cell(child, resolve) for child in node.children()]
    cell_type = _CELL_TYPES.get(type(node), Cell)
    return cell_type(node, children)
