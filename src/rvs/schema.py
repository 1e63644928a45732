"""Pydantic schemas for serialized forest documents.

Expressions are a `type`-discriminated union. Two shorthands are accepted
wherever an expression is expected: a bare int is a literal and a bare
string is an identifier. Weighted members are {"weight": w, "expr": e}
objects or [w, e] pairs; enum items may be plain strings.

Each schema converts itself to rvs.ast with to_ast().
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    StrictInt,
    StrictStr,
    field_validator,
)

from rvs import ast

EXPR_TYPES = (
    "literal",
    "enum_item",
    "identifier",
    "range",
    "pattern",
    "sequence",
    "sample_with_replacement",
    "sample_without_replacement",
    "weighted_sample_with_replacement",
    "weighted_sample_without_replacement",
    "unary",
    "binary",
)


def _expr_shorthand(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("booleans are not expressions")
    if isinstance(value, int):
        return {"type": "literal", "value": value}
    if isinstance(value, str):
        return {"type": "identifier", "path": value}
    if isinstance(value, BaseModel):
        return value
    if not isinstance(value, dict):
        raise ValueError(f"cannot decode {type(value).__name__} as an expression")
    if "type" not in value:
        raise ValueError("missing key 'type'")
    if value["type"] not in EXPR_TYPES:
        raise ValueError(f"unknown expression type {value['type']!r}")
    return value


def _weighted_pair(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ValueError("weighted pair must be [weight, expr]")
        return {"weight": value[0], "expr": value[1]}
    return value


def _enum_item_shorthand(value: Any) -> Any:
    if isinstance(value, str):
        return {"name": value}
    return value


class _Doc(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class PositionDoc(_Doc):
    line: StrictInt
    column: StrictInt
    file: Optional[StrictStr] = None

    def to_ast(self) -> ast.SourcePosition:
        return ast.SourcePosition(self.line, self.column, self.file)


def _position(doc: Optional[PositionDoc]) -> Optional[ast.SourcePosition]:
    return doc.to_ast() if doc is not None else None


# ---- expressions ----

class LiteralDoc(_Doc):
    type: Literal["literal"]
    value: StrictInt

    def to_ast(self) -> ast.Expr:
        return ast.Literal(self.value)


class EnumItemDoc(_Doc):
    type: Literal["enum_item"]
    name: StrictStr
    value: StrictInt

    def to_ast(self) -> ast.Expr:
        return ast.EnumItem(self.name, self.value)


class IdentifierDoc(_Doc):
    type: Literal["identifier"]
    path: StrictStr = Field(min_length=1)
    method: Optional[Literal["prev", "next", "copy"]] = None
    position: Optional[PositionDoc] = None

    def to_ast(self) -> ast.Expr:
        return ast.Identifier(self.path, method=self.method, position=_position(self.position))


class RangeDoc(_Doc):
    type: Literal["range"]
    min: ExprDoc
    max: ExprDoc

    def to_ast(self) -> ast.Expr:
        return ast.Range(self.min.to_ast(), self.max.to_ast())


class PatternDoc(_Doc):
    type: Literal["pattern"]
    members: List[ExprDoc]

    def to_ast(self) -> ast.Expr:
        return ast.Pattern([m.to_ast() for m in self.members])


class SequenceDoc(_Doc):
    """increment defaults to 1."""

    type: Literal["sequence"]
    first: ExprDoc
    last: ExprDoc
    increment: Optional[ExprDoc] = None

    def to_ast(self) -> ast.Expr:
        increment = self.increment.to_ast() if self.increment is not None else ast.Literal(1)
        return ast.Sequence(self.first.to_ast(), self.last.to_ast(), increment)


class SampleDoc(_Doc):
    type: Literal["sample_with_replacement", "sample_without_replacement"]
    members: List[ExprDoc]

    def to_ast(self) -> ast.Expr:
        cls = ast.SampleWithReplacement if self.type == "sample_with_replacement" else ast.SampleWithoutReplacement
        return cls([m.to_ast() for m in self.members])


class WeightedDoc(_Doc):
    weight: StrictInt
    expr: ExprDoc

    def to_ast(self) -> ast.Weighted:
        return ast.Weighted(self.weight, self.expr.to_ast())


WeightedPairDoc = Annotated[WeightedDoc, BeforeValidator(_weighted_pair)]


class WeightedSampleDoc(_Doc):
    type: Literal["weighted_sample_with_replacement", "weighted_sample_without_replacement"]
    members: List[WeightedPairDoc]

    def to_ast(self) -> ast.Expr:
        if self.type == "weighted_sample_with_replacement":
            cls = ast.WeightedSampleWithReplacement
        else:
            cls = ast.WeightedSampleWithoutReplacement
        return cls([m.to_ast() for m in self.members])


class UnaryDoc(_Doc):
    type: Literal["unary"]
    op: StrictStr
    operand: ExprDoc

    @field_validator("op")
    @classmethod
    def check_op(cls, v):
        if v not in ast.UNARY_OPS:
            raise ValueError(f"Unknown unary operator: {v!r}")
        return v

    def to_ast(self) -> ast.Expr:
        return ast.UnaryOp(self.op, self.operand.to_ast())


class BinaryDoc(_Doc):
    type: Literal["binary"]
    op: StrictStr
    left: ExprDoc
    right: ExprDoc

    @field_validator("op")
    @classmethod
    def check_op(cls, v):
        if v not in ast.BINARY_OPS:
            raise ValueError(f"Unknown binary operator: {v!r}")
        return v

    def to_ast(self) -> ast.Expr:
        return ast.BinaryOp(self.op, self.left.to_ast(), self.right.to_ast())


ExprDoc = Annotated[
    Union[
        LiteralDoc,
        EnumItemDoc,
        IdentifierDoc,
        RangeDoc,
        PatternDoc,
        SequenceDoc,
        SampleDoc,
        WeightedSampleDoc,
        UnaryDoc,
        BinaryDoc,
    ],
    Discriminator("type"),
    BeforeValidator(_expr_shorthand),
]


# ---- declarations ----

class EnumMemberDoc(_Doc):
    name: StrictStr
    value: Optional[StrictInt] = None


class EnumDoc(_Doc):
    name: StrictStr
    items: List[Annotated[EnumMemberDoc, BeforeValidator(_enum_item_shorthand)]]
    position: Optional[PositionDoc] = None

    def to_ast(self) -> ast.EnumDecl:
        items = [ast.EnumItemDecl(item.name, item.value) for item in self.items]
        return ast.EnumDecl(self.name, items, position=_position(self.position))


class VariableDoc(_Doc):
    name: StrictStr = Field(min_length=1)
    expr: ExprDoc
    position: Optional[PositionDoc] = None

    def to_ast(self) -> ast.Declaration:
        return ast.Declaration(self.name, self.expr.to_ast(), position=_position(self.position))


class ForestDoc(_Doc):
    """A whole forest document."""

    enums: List[EnumDoc] = Field(default_factory=list)
    variables: List[VariableDoc] = Field(default_factory=list)

    def to_ast(self) -> ast.Forest:
        return ast.Forest(
            declarations=[v.to_ast() for v in self.variables],
            enums=[e.to_ast() for e in self.enums],
        )


for _model in (
    RangeDoc,
    PatternDoc,
    SequenceDoc,
    SampleDoc,
    WeightedDoc,
    WeightedSampleDoc,
    UnaryDoc,
    BinaryDoc,
    VariableDoc,
    ForestDoc,
):
    _model.model_rebuild()
