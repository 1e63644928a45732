"""
Rvs Evaluator
=============
Advances a state-cell tree by one step and returns (value, done).

Dispatch is over the closed set of node types; an unknown node type is a
programming error (TypeError), never silently skipped.

Composed expressions operate on 32-bit unsigned words:
- results are wrapped modulo 2**32
- '~' is the bitwise complement of the 32-bit word
- shifts by 32 or more give 0
- '/' and '%' by zero raise ArithmeticEvaluationError

Samplers play a selected member out: a new member is drawn only after the
current one reports done. A without-replacement sampler is done when the
member that emptied its pool is done. Literal members are always done, so
they give one draw per cycle.
"""

from __future__ import annotations
from typing import Callable, Tuple

from rvs import ast
from rvs.backend import RandomSource
from rvs.errors import ArithmeticEvaluationError, DynamicIncrementError, DynamicRangeError
from rvs.sampling import uniform_pick
from rvs.state import Cell, ConstBinding, CopyBinding, EnumTypeBinding, VariableBinding

WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1


def apply_unary(op: str, operand: int) -> int:
    if op == "~":
        return ~operand & WORD_MASK
    raise ValueError(f"Unknown unary operator: {op!r}")


def apply_binary(op: str, l: int, r: int) -> int:
    if op == "|":
        res = l | r
    elif op == "^":
        res = l ^ r
    elif op == "&":
        res = l & r
    elif op == "<<":
        res = l << r if r < WORD_BITS else 0
    elif op == ">>":
        res = l >> r if r < WORD_BITS else 0
    elif op == "+":
        res = l + r
    elif op == "-":
        res = l - r
    elif op == "*":
        res = l * r
    elif op == "/":
        if r == 0:
            raise ArithmeticEvaluationError(f"division by zero: {l} / 0")
        res = l // r
    elif op == "%":
        if r == 0:
            raise ArithmeticEvaluationError(f"modulo by zero: {l} % 0")
        res = l % r
    else:
        raise ValueError(f"Unknown binary operator: {op!r}")
    return res & WORD_MASK


class Evaluator:
    """
    Evaluates cell trees against a random source.

    variable_cell resolves a VariableBinding index to the referenced
    variable's top-level cell. Plain references read that variable's value
    for the current cycle; `.next` references step it again.
    """

    def __init__(self, source: RandomSource, variable_cell: Callable[[int], Cell]):
        self.source = source
        self.variable_cell = variable_cell

    def evaluate(self, cell: Cell) -> Tuple[int, bool]:
        node = cell.node

        if isinstance(node, ast.Literal):
            value, done = node.value, True
        elif isinstance(node, ast.EnumItem):
            value, done = node.value, True
        elif isinstance(node, ast.Identifier):
            value, done = self._identifier(cell)
        elif isinstance(node, ast.Range):
            value, done = self._range(cell)
        elif isinstance(node, ast.Pattern):
            value, done = self._pattern(cell)
        elif isinstance(node, ast.Sequence):
            value, done = self._sequence(cell)
        elif isinstance(node, (ast.SampleWithReplacement, ast.WeightedSampleWithReplacement)):
            value, done = self._sample(cell)
        elif isinstance(node, (ast.SampleWithoutReplacement, ast.WeightedSampleWithoutReplacement)):
            value, done = self._pool(cell)
        elif isinstance(node, ast.UnaryOp):
            operand, done = self.evaluate(cell.children[0])
            value = apply_unary(node.op, operand)
        elif isinstance(node, ast.BinaryOp):
            l, l_done = self.evaluate(cell.children[0])
            r, r_done = self.evaluate(cell.children[1])
            value = apply_binary(node.op, l, r)
            done = l_done or r_done
        else:
            raise TypeError(f"Cannot evaluate node of type {type(node).__name__}")

        cell.value = value
        cell.done = done
        cell.ready = True
        return value, done

    def values(self, cells) -> Tuple[int, ...]:
        return tuple(self.evaluate(c)[0] for c in cells)

    # ---- variants ----

    def _identifier(self, cell) -> Tuple[int, bool]:
        binding = cell.binding
        if isinstance(binding, ConstBinding):
            return binding.value, True
        if isinstance(binding, EnumTypeBinding):
            return binding.values[uniform_pick(self.source, len(binding.values))], True
        if isinstance(binding, VariableBinding):
            target = self.variable_cell(binding.index)
            if binding.advance:
                return self.evaluate(target)
            return target.value, target.done
        if isinstance(binding, CopyBinding):
            return self.evaluate(binding.cell)
        raise TypeError(f"Unknown identifier binding: {binding!r}")

    def _range(self, cell) -> Tuple[int, bool]:
        lo, hi = self.values(cell.children)
        if lo > hi:
            raise DynamicRangeError(f"range {cell.node} evaluated to [{lo}, {hi}] with min > max")
        return self.source.uniform_int(lo, hi), True

    def _pattern(self, cell) -> Tuple[int, bool]:
        i = cell.cursor
        value, _ = self.evaluate(cell.children[i])
        n = len(cell.children)
        cell.cursor = (i + 1) % n
        return value, i == n - 1

    def _sequence(self, cell) -> Tuple[int, bool]:
        first, last, increment = self.values(cell.children)
        if increment == 0:
            raise DynamicIncrementError(f"sequence {cell.node} evaluated a zero increment")

        step = abs(increment)
        direction = 1 if last >= first else -1
        cell.direction = direction

        if not cell.ready or cell.needs_reset:
            current = first
            cell.needs_reset = False
        else:
            current = cell.current + step * direction
            if _passed(current, last, direction):
                current = first

        cell.current = current
        done = _passed(current + step * direction, last, direction)
        return current, done

    def _sample(self, cell) -> Tuple[int, bool]:
        if cell.current is None:
            if isinstance(cell.node, ast.WeightedSampleWithReplacement):
                cell.current = cell.table.draw(self.source)
            else:
                cell.current = uniform_pick(self.source, len(cell.children))

        value, done = self.evaluate(cell.children[cell.current])
        if done:
            cell.current = None
        return value, done

    def _pool(self, cell) -> Tuple[int, bool]:
        if cell.current is None:
            cell.current, cell.final = cell.pool.draw(self.source)

        value, member_done = self.evaluate(cell.children[cell.current])
        if not member_done:
            return value, False

        done = cell.final
        cell.current = None
        cell.final = False
        return value, done


def _passed(value: int, last: int, direction: int) -> bool:
    return value > last if direction > 0 else value < last
