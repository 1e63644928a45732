"""
Forest Loader
=============
Reads a serialized, already-parsed expression forest (JSON) into rvs.ast
objects. This is the hand-off format between an external DSL parser and the
evaluation engine; no DSL text is parsed here.

Document layout:

    {
      "enums": [
        {"name": "Color", "items": [{"name": "RED"}, {"name": "BLUE", "value": 4}]}
      ],
      "variables": [
        {"name": "a", "expr": {"type": "range", "min": 0, "max": 7},
         "position": {"line": 1, "column": 1, "file": "stim.rvs"}}
      ]
    }

Validation is done by the pydantic schemas in rvs.schema; their errors are
re-raised as ForestFormatError naming the offending location, e.g.
"variables[1].expr.members[0]".
"""

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from rvs import ast
from rvs.errors import ForestFormatError
from rvs.schema import EXPR_TYPES, ExprDoc, ForestDoc

_EXPR = TypeAdapter(ExprDoc)

_SAMPLERS = {
    "sample_with_replacement": ast.SampleWithReplacement,
    "sample_without_replacement": ast.SampleWithoutReplacement,
}

_WEIGHTED_SAMPLERS = {
    "weighted_sample_with_replacement": ast.WeightedSampleWithReplacement,
    "weighted_sample_without_replacement": ast.WeightedSampleWithoutReplacement,
}


def _location(where, loc):
    """Dotted path from a pydantic error location, without union tags."""
    out = where
    for part in loc:
        if isinstance(part, int):
            out += f"[{part}]"
        elif part in EXPR_TYPES:
            continue
        else:
            out = f"{out}.{part}" if out else str(part)
    return out or "document"


def _format_error(exc: ValidationError, where="") -> ForestFormatError:
    errors = exc.errors()
    first = errors[0]
    message = f"{_location(where, first['loc'])}: {first['msg']}"
    if len(errors) > 1:
        message += f" (and {len(errors) - 1} more)"
    return ForestFormatError(message)


def expr_from_dict(obj, where="expr") -> ast.Expr:
    """Decode one expression."""
    try:
        doc = _EXPR.validate_python(obj)
    except ValidationError as e:
        raise _format_error(e, where) from None
    return doc.to_ast()


def forest_from_dict(doc) -> ast.Forest:
    """Decode a whole forest document."""
    try:
        forest = ForestDoc.model_validate(doc)
    except ValidationError as e:
        raise _format_error(e) from None
    return forest.to_ast()


def load_forest(path) -> ast.Forest:
    """Read and decode a forest JSON file."""
    path = Path(path)
    with open(path, "r") as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            raise ForestFormatError(f"{path}: invalid JSON: {e}") from e
    return forest_from_dict(doc)


# --- Encoding ---

def position_to_dict(pos):
    if pos is None:
        return None
    out = {"line": pos.line, "column": pos.column}
    if pos.file:
        out["file"] = pos.file
    return out


def expr_to_dict(expr):
    """Encode one expression (canonical {"type": ...} form)."""
    if isinstance(expr, ast.Literal):
        return {"type": "literal", "value": expr.value}
    if isinstance(expr, ast.EnumItem):
        return {"type": "enum_item", "name": expr.name, "value": expr.value}
    if isinstance(expr, ast.Identifier):
        out = {"type": "identifier", "path": expr.path}
        if expr.method is not None:
            out["method"] = expr.method
        if expr.position is not None:
            out["position"] = position_to_dict(expr.position)
        return out
    if isinstance(expr, ast.Range):
        return {"type": "range", "min": expr_to_dict(expr.min), "max": expr_to_dict(expr.max)}
    if isinstance(expr, ast.Pattern):
        return {"type": "pattern", "members": [expr_to_dict(m) for m in expr.members]}
    if isinstance(expr, ast.Sequence):
        return {
            "type": "sequence",
            "first": expr_to_dict(expr.first),
            "last": expr_to_dict(expr.last),
            "increment": expr_to_dict(expr.increment),
        }
    for kind, cls in _SAMPLERS.items():
        if type(expr) is cls:
            return {"type": kind, "members": [expr_to_dict(m) for m in expr.members]}
    for kind, cls in _WEIGHTED_SAMPLERS.items():
        if type(expr) is cls:
            return {
                "type": kind,
                "members": [{"weight": m.weight, "expr": expr_to_dict(m.expr)} for m in expr.members],
            }
    if isinstance(expr, ast.UnaryOp):
        return {"type": "unary", "op": expr.op, "operand": expr_to_dict(expr.operand)}
    if isinstance(expr, ast.BinaryOp):
        return {"type": "binary", "op": expr.op, "left": expr_to_dict(expr.left), "right": expr_to_dict(expr.right)}
    raise TypeError(f"Cannot encode node of type {type(expr).__name__}")


def forest_to_dict(forest: ast.Forest) -> dict:
    enums = []
    for e in forest.enums:
        items = []
        for item in e.items:
            entry = {"name": item.name}
            if item.value is not None:
                entry["value"] = item.value
            items.append(entry)
        enums.append({"name": e.name, "items": items})

    variables = []
    for d in forest.declarations:
        entry = {"name": d.name, "expr": expr_to_dict(d.expr)}
        if d.position is not None:
            entry["position"] = position_to_dict(d.position)
        variables.append(entry)

    return {"enums": enums, "variables": variables}
