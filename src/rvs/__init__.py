from .ast import (
    BinaryOp,
    Declaration,
    EnumDecl,
    EnumItem,
    EnumItemDecl,
    Forest,
    Identifier,
    Literal,
    Pattern,
    Range,
    SampleWithReplacement,
    SampleWithoutReplacement,
    Sequence,
    SourcePosition,
    UnaryOp,
    Weighted,
    WeightedSampleWithReplacement,
    WeightedSampleWithoutReplacement,
)
from .compiler import CycleResult, Model, ModelCompiler, compile_forest
from .config import EngineConfig
from .errors import ConstructionError, EvaluationError, RvsError

__version__ = "0.1.0"
