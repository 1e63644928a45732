"""
Rvs Model Compiler
==================
Builds an evaluable `Model` from a parsed `Forest`.

Compilation:
- Enum tables: item values default to their position (0, 1, 2, ...)
  unless explicit.
- Declarations, in order: each expression tree is validated and given a
  parallel state-cell tree. Identifiers are bound once, against enum items
  first, then enum types, then variables registered EARLIER in declaration
  order. Forward and self references are rejected, so reference cycles
  cannot exist. A variable reference may be `a.prev` (same as `a`),
  `a.next` (steps a again) or `a.copy` (private clone of a's expression).

Construction errors (unresolved identifier, duplicate name, empty pool,
negative weight, zero increment, min > max) abort compilation; no partial
model is returned.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from typing import Dict, List, NamedTuple, Optional, Tuple

from rvs import ast
from rvs.backend import RandomSource, create_source
from rvs.config import EngineConfig
from rvs.errors import (
    ConstructionError,
    DuplicateDeclarationError,
    EmptyPoolError,
    EvaluationError,
    InvalidRangeError,
    InvalidWeightError,
    UnresolvedIdentifierError,
    ZeroIncrementError,
)
from rvs.evaluator import Evaluator
from rvs.state import (
    Cell,
    ConstBinding,
    CopyBinding,
    EnumTypeBinding,
    VariableBinding,
    build_cell,
)

logger = logging.getLogger(__name__)


class CycleResult(NamedTuple):
    name: str
    value: int
    done: bool


class SymbolTable:
    """
    Name resolution tables.

    Enum items are reachable as "Enum.ITEM" and, when unambiguous, as a
    bare "ITEM". Variables are appended in declaration order and never
    removed.
    """

    def __init__(self):
        self.enum_items: Dict[str, int] = {}
        self.bare_items: Dict[str, List[Tuple[str, int]]] = {}
        self.enum_types: Dict[str, Tuple[int, ...]] = {}
        self.variables: Dict[str, int] = {}
        self.expressions: Dict[str, ast.Expr] = {}
        # Names declared anywhere in the forest; lets forward references
        # be reported as such rather than as unknown names.
        self.declared_later: Dict[str, ast.SourcePosition] = {}

    def add_enum(self, enum: ast.EnumDecl) -> None:
        if enum.name in self.enum_types:
            raise DuplicateDeclarationError(
                f"enum '{enum.name}' is declared more than once", position=enum.position
            )

        values = []
        seen = set()
        for pos, item in enumerate(enum.items):
            if item.name in seen:
                raise DuplicateDeclarationError(
                    f"enum '{enum.name}' declares item '{item.name}' more than once",
                    position=enum.position,
                )
            seen.add(item.name)

            value = pos if item.value is None else item.value
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConstructionError(
                    f"enum item '{enum.name}.{item.name}' must have a non-negative integer value, got {value!r}",
                    position=enum.position,
                )
            self.enum_items[f"{enum.name}.{item.name}"] = value
            self.bare_items.setdefault(item.name, []).append((enum.name, value))
            values.append(value)

        if not values:
            raise EmptyPoolError(f"enum '{enum.name}' has no items", position=enum.position)
        self.enum_types[enum.name] = tuple(values)

    def add_variable(self, name: str, index: int, expr: ast.Expr) -> None:
        self.variables[name] = index
        self.expressions[name] = expr

    def resolve(self, ident: ast.Identifier, variable: Optional[str] = None, allow_next: bool = True):
        """
        Bind an identifier, or raise UnresolvedIdentifierError.

        "a.copy" / "a.next" / "a.prev" written as a plain path is read as a
        method call when "a" is a variable and no enum item has that name.
        """
        path = ident.path
        method = ident.method

        if method is None:
            if path in self.enum_items:
                return ConstBinding(self.enum_items[path])

            candidates = self.bare_items.get(path, [])
            if len(candidates) == 1:
                return ConstBinding(candidates[0][1])
            if len(candidates) > 1:
                enums = ", ".join(e for e, _ in candidates)
                raise UnresolvedIdentifierError(
                    f"'{path}' is ambiguous; it is an item of enums {enums}",
                    variable=variable, position=ident.position,
                )

            if path in self.enum_types:
                return EnumTypeBinding(path, self.enum_types[path])

            base, _, suffix = path.rpartition(".")
            if base and suffix in ast.METHODS and path not in self.variables:
                path, method = base, suffix

        if path in self.variables:
            return self._bind_variable(path, method, ident, variable, allow_next)

        if path == variable:
            message = f"'{path}' references itself"
        elif path in self.declared_later:
            message = f"'{path}' is referenced before it is declared"
        elif method is not None:
            message = f"'{path}.{method}': '{path}' is not a variable"
        else:
            message = f"'{path}' is not declared"
        raise UnresolvedIdentifierError(message, variable=variable, position=ident.position)

    def _bind_variable(self, name, method, ident, variable, allow_next):
        index = self.variables[name]
        if method == "copy":
            def resolve(inner):
                return self.resolve(inner, variable=variable, allow_next=allow_next)
            return CopyBinding(name, build_cell(self.expressions[name], resolve))
        if method == "next":
            if not allow_next:
                raise ConstructionError(
                    f"'{name}.next' would advance '{name}' outside a cycle",
                    variable=variable, position=ident.position,
                )
            return VariableBinding(name, index, advance=True)
        return VariableBinding(name, index)


def validate(expr: ast.Expr, variable: Optional[str] = None, position=None) -> None:
    """Static checks on one expression tree."""
    for node in ast.walk(expr):
        if isinstance(node, ast.Range):
            if isinstance(node.min, ast.Literal) and isinstance(node.max, ast.Literal):
                if node.min.value > node.max.value:
                    raise InvalidRangeError(
                        f"range {node} has min > max", variable=variable, position=position
                    )

        elif isinstance(node, ast.Sequence):
            if isinstance(node.increment, ast.Literal) and node.increment.value == 0:
                raise ZeroIncrementError(
                    f"sequence {node} has a zero increment", variable=variable, position=position
                )

        elif isinstance(node, (ast.SampleWithReplacement, ast.SampleWithoutReplacement)):
            if not node.members:
                raise EmptyPoolError(
                    "cannot sample from an empty set", variable=variable, position=position
                )

        elif isinstance(node, (ast.WeightedSampleWithReplacement, ast.WeightedSampleWithoutReplacement)):
            if not node.members:
                raise EmptyPoolError(
                    "cannot sample from an empty set", variable=variable, position=position
                )
            for w in node.weights:
                if isinstance(w, bool) or not isinstance(w, int) or w < 0:
                    raise InvalidWeightError(
                        f"weight {w!r} is not a non-negative integer", variable=variable, position=position
                    )
            if isinstance(node, ast.WeightedSampleWithoutReplacement) and sum(node.weights) == 0:
                raise EmptyPoolError(
                    f"weighted pool {node} has zero total count", variable=variable, position=position
                )


class Model:
    """
    Ordered registry of compiled variables plus the cycle driver.

    Invariants:
    - names[i] <-> declarations[i] <-> cells[i]; entries are only appended
      during compilation.
    - Declaration order is evaluation order and output order.
    - The random source is owned exclusively by this model.
    """

    def __init__(self, declarations, cells, symbols: SymbolTable, source: RandomSource):
        self._declarations: List[ast.Declaration] = list(declarations)
        self._cells: List[Cell] = list(cells)
        self._names: List[str] = [d.name for d in self._declarations]
        self._symbols = symbols
        self._source = source
        self._evaluator = Evaluator(source, self._cells.__getitem__)
        self.cycle = 0

    # ---- registry access ----

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._names)

    @property
    def source(self) -> RandomSource:
        return self._source

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name) -> bool:
        return name in self._symbols.variables

    def __iter__(self):
        return iter(self._names)

    def _index(self, name: str) -> int:
        try:
            return self._symbols.variables[name]
        except KeyError:
            raise KeyError(f"Variable '{name}' not found in model.") from None

    def declaration(self, name: str) -> ast.Declaration:
        return self._declarations[self._index(name)]

    def expression(self, name: str) -> ast.Expr:
        return self.declaration(name).expr

    # ---- cycle driver ----

    def advance_cycle(self) -> List[CycleResult]:
        """
        Advances every variable by one cycle, in declaration order.

        On an EvaluationError the failing variable keeps its previous value,
        variables after it are not advanced, and the error is re-raised with
        the variable name and source position attached.
        """
        for decl, cell in zip(self._declarations, self._cells):
            try:
                self._evaluator.evaluate(cell)
            except EvaluationError as err:
                if err.variable is None:
                    err.variable = decl.name
                if err.position is None:
                    err.position = decl.position
                logger.debug("Cycle %d failed at '%s': %s", self.cycle, decl.name, err.message)
                raise

        self.cycle += 1
        logger.debug("Cycle %d complete", self.cycle)
        return self.results()

    def results(self) -> List[CycleResult]:
        """(name, value, done) of the most recent cycle, in declaration order."""
        return [CycleResult(n, c.value, c.done) for n, c in zip(self._names, self._cells)]

    def current_value(self, name: str) -> int:
        """Most recent value; 0 before the first cycle."""
        return self._cells[self._index(name)].value

    def current_done(self, name: str) -> bool:
        """Most recent done flag; False before the first cycle."""
        return self._cells[self._index(name)].done

    def evaluate_once(self, expr: ast.Expr) -> int:
        """
        Evaluates an anonymous expression exactly once on transient state.

        Identifiers may name enum items, enum types or any registered
        variable (read at its current value, or `.copy`). `.next` is
        rejected since it would advance a variable. Draws come from the
        model's random source, which is rewound afterwards so the model's
        own stream is unchanged.
        """
        validate(expr)

        def resolve(ident):
            return self._symbols.resolve(ident, allow_next=False)

        cell = build_cell(expr, resolve)
        saved = self._source.get_state()
        try:
            value, _ = self._evaluator.evaluate(cell)
        finally:
            self._source.set_state(saved)
        return value

    # ---- lifecycle ----

    def seed(self, seed: int) -> None:
        """Restart the random stream. Variable state is untouched; see reset()."""
        self._source.seed(seed)
        logger.debug("Reseeded %s source with %d", self._source.name, seed)

    def reset(self) -> None:
        """Return every variable to Uninitialized (cursors, pools, sequences)."""
        for cell in self._cells:
            cell.reset()
        self.cycle = 0

    def __repr__(self) -> str:
        return (
            f"Model(variables={len(self)}, cycle={self.cycle}, "
            f"source={self._source.name}, seed={self._source.current_seed})"
        )


class ModelCompiler:
    """
    Compiles a parsed Forest into a Model.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def compile(self, forest: ast.Forest) -> Model:
        symbols = SymbolTable()
        for enum in forest.enums:
            symbols.add_enum(enum)

        for decl in forest.declarations:
            symbols.declared_later.setdefault(decl.name, decl.position)

        declarations = []
        cells = []
        for decl in forest.declarations:
            if decl.name in symbols.variables:
                raise DuplicateDeclarationError(
                    f"'{decl.name}' is declared more than once",
                    variable=decl.name, position=decl.position,
                )
            if decl.name in symbols.enum_types:
                raise DuplicateDeclarationError(
                    f"'{decl.name}' is already declared as an enum",
                    variable=decl.name, position=decl.position,
                )

            validate(decl.expr, variable=decl.name, position=decl.position)

            def resolve(ident, _name=decl.name, _pos=decl.position):
                if ident.position is None and _pos is not None:
                    ident = replace(ident, position=_pos)
                return symbols.resolve(ident, variable=_name)

            cells.append(build_cell(decl.expr, resolve))
            declarations.append(decl)
            symbols.add_variable(decl.name, len(cells) - 1, decl.expr)

        source = create_source(self.config.backend, self.config.seed)
        model = Model(declarations, cells, symbols, source)
        logger.info(
            "Compiled %d variables (%d enums), %s seed=%d",
            len(model), len(symbols.enum_types), source.name, source.current_seed,
        )
        return model


def compile_forest(forest: ast.Forest, seed: int = 0, backend: Optional[str] = None) -> Model:
    """Shortcut: compile with an explicit seed and optional backend name."""
    config = EngineConfig().override(seed=seed, backend=backend)
    return ModelCompiler(config).compile(forest)
