"""
Rvs Errors
==========
Structured exceptions raised while building or evaluating a model.

Every error carries:
- kind:     "construction", "evaluation" or "format"
- variable: name of the offending variable (None when not applicable)
- position: SourcePosition forwarded verbatim from the parser (or None)
"""

from __future__ import annotations


class RvsError(Exception):
    """Base class for all rvs errors."""

    kind = "error"

    def __init__(self, message, variable=None, position=None):
        super().__init__(message)
        self.message = message
        self.variable = variable
        self.position = position

    def __str__(self) -> str:
        parts = []
        if self.position is not None:
            parts.append(f"{self.position}:")
        if self.variable is not None:
            parts.append(f"variable '{self.variable}':")
        parts.append(self.message)
        return " ".join(parts)


class ConstructionError(RvsError, ValueError):
    """The forest is inconsistent; no model is built."""

    kind = "construction"


class EvaluationError(RvsError):
    """A variable could not be evaluated on the current cycle."""

    kind = "evaluation"


class ForestFormatError(RvsError, ValueError):
    """A serialized forest document is malformed."""

    kind = "format"


# --- Construction errors ---

class UnresolvedIdentifierError(ConstructionError):
    pass


class DuplicateDeclarationError(ConstructionError):
    pass


class EmptyPoolError(ConstructionError):
    pass


class InvalidWeightError(ConstructionError):
    pass


class InvalidRangeError(ConstructionError):
    """min > max. Raised at construction for literal bounds."""


class ZeroIncrementError(ConstructionError):
    """Sequence with a zero increment. Raised at construction for literals."""


# --- Evaluation errors ---

class WeightSumError(EvaluationError):
    """No eligible member to draw: all weights are zero."""


class ArithmeticEvaluationError(EvaluationError):
    pass


class DynamicRangeError(EvaluationError):
    """Range bounds evaluated to min > max on this cycle."""


class DynamicIncrementError(EvaluationError):
    """Sequence increment evaluated to zero on this cycle."""
