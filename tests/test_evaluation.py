"""
Cycle Evaluation Semantics
==========================
Drives compiled models cycle by cycle and checks each expression variant:
ranges, patterns, sequences, the four samplers, composed expressions and
cross-variable references.
"""

import sys
import os
from collections import Counter
import pytest

# Setup path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from rvs.ast import (
    BinaryOp,
    Declaration,
    EnumDecl,
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
from rvs.compiler import compile_forest
from rvs.errors import (
    ArithmeticEvaluationError,
    DynamicIncrementError,
    DynamicRangeError,
    EvaluationError,
    WeightSumError,
)


def L(*values):
    return [Literal(v) for v in values]


def build(*decls, enums=(), seed=0):
    forest = Forest(
        declarations=[Declaration(name, expr) for name, expr in decls],
        enums=enums,
    )
    return compile_forest(forest, seed=seed)


def trace(model, name, cycles):
    out = []
    for _ in range(cycles):
        model.advance_cycle()
        out.append((model.current_value(name), model.current_done(name)))
    return out


# ---- Range ----

def test_range_containment():
    m = build(("a", Range(Literal(3), Literal(9))))
    values = [v for v, _ in trace(m, "a", 500)]
    assert all(3 <= v <= 9 for v in values)
    assert set(values) == set(range(3, 10))


def test_range_is_done_every_cycle():
    m = build(("a", Range(Literal(0), Literal(1))))
    assert all(done for _, done in trace(m, "a", 10))


def test_range_bounds_follow_other_variables():
    m = build(
        ("lo", Pattern(L(0, 10))),
        ("a", Range(Identifier("lo"), BinaryOp("+", Identifier("lo"), Literal(2)))),
    )
    for _ in range(50):
        m.advance_cycle()
        lo = m.current_value("lo")
        assert lo <= m.current_value("a") <= lo + 2


def test_dynamic_range_error_keeps_previous_value():
    m = build(
        ("hi", Pattern(L(5, 0))),
        ("a", Range(Literal(1), Identifier("hi"))),
    )
    m.advance_cycle()
    before = m.current_value("a")

    with pytest.raises(DynamicRangeError) as info:
        m.advance_cycle()
    assert info.value.variable == "a"
    assert info.value.kind == "evaluation"
    assert m.current_value("a") == before


# ---- Pattern ----

def test_pattern_cyclicity():
    members = [3, 1, 4, 1, 5]
    m = build(("p", Pattern(L(*members))))
    got = trace(m, "p", 15)
    assert [v for v, _ in got] == members * 3
    assert [d for _, d in got] == [False, False, False, False, True] * 3


def test_pattern_members_evaluated_fresh():
    m = build(("p", Pattern([Range(Literal(10), Literal(12)), Literal(0)])))
    got = [v for v, _ in trace(m, "p", 20)]
    assert got[1::2] == [0] * 10
    assert all(10 <= v <= 12 for v in got[0::2])


# ---- Sequence ----

def test_sequence_wraparound():
    m = build(("s", Sequence(Literal(0), Literal(3), Literal(1))))
    assert trace(m, "s", 5) == [(0, False), (1, False), (2, False), (3, True), (0, False)]


def test_sequence_descending():
    m = build(("s", Sequence(Literal(3), Literal(0), Literal(1))))
    assert [v for v, _ in trace(m, "s", 6)] == [3, 2, 1, 0, 3, 2]


def test_sequence_step_that_overshoots_last():
    m = build(("s", Sequence(Literal(0), Literal(5), Literal(2))))
    assert trace(m, "s", 4) == [(0, False), (2, False), (4, True), (0, False)]


def test_sequence_increment_magnitude_only():
    m = build(("s", Sequence(Literal(0), Literal(2), Literal(-1))))
    assert [v for v, _ in trace(m, "s", 4)] == [0, 1, 2, 0]


def test_sequence_single_value():
    m = build(("s", Sequence(Literal(7), Literal(7))))
    assert trace(m, "s", 3) == [(7, True)] * 3


def test_sequence_bounds_reevaluated_every_cycle():
    # last grows by one each cycle: 1, 2, 3, ...
    m = build(
        ("n", Sequence(Literal(1), Literal(100), Literal(1))),
        ("s", Sequence(Literal(0), Identifier("n"), Literal(1))),
    )
    got = [v for v, _ in trace(m, "s", 6)]
    # cycle 1: n=1 -> 0; cycle 2: n=2 -> 1; ... current never passes n
    assert got == [0, 1, 2, 3, 4, 5]


def test_sequence_zero_increment_at_runtime():
    m = build(
        ("inc", Pattern(L(1, 0))),
        ("s", Sequence(Literal(0), Literal(9), Identifier("inc"))),
    )
    m.advance_cycle()
    with pytest.raises(DynamicIncrementError):
        m.advance_cycle()


# ---- Samplers ----

def test_sample_with_replacement_members_only():
    m = build(("a", SampleWithReplacement(L(2, 4, 8))))
    values = {v for v, _ in trace(m, "a", 200)}
    assert values == {2, 4, 8}


def test_without_replacement_exhaustion():
    members = [1, 2, 4, 8]
    m = build(("a", SampleWithoutReplacement(L(*members))))
    for _ in range(25):
        got = trace(m, "a", len(members))
        assert sorted(v for v, _ in got) == members
        assert [d for _, d in got] == [False, False, False, True]


def test_without_replacement_duplicate_members():
    m = build(("a", SampleWithoutReplacement(L(0, 0, 0, 0))))
    got = trace(m, "a", 16)
    assert got == [(0, False), (0, False), (0, False), (0, True)] * 4


def test_weighted_without_replacement_accounting():
    m = build(("w", WeightedSampleWithoutReplacement([
        Weighted(2, Literal(10)),
        Weighted(3, Literal(20)),
    ])))
    for _ in range(10):
        got = trace(m, "w", 5)
        assert Counter(v for v, _ in got) == {10: 2, 20: 3}
        assert [d for _, d in got] == [False, False, False, False, True]


def test_weighted_with_replacement_zero_weight_unreachable():
    m = build(("w", WeightedSampleWithReplacement([
        Weighted(0, Literal(1)),
        Weighted(5, Literal(2)),
    ])))
    assert {v for v, _ in trace(m, "w", 100)} == {2}


def test_weighted_with_replacement_proportional():
    m = build(("w", WeightedSampleWithReplacement([
        Weighted(1, Literal(0)),
        Weighted(9, Literal(1)),
    ])), seed=17)
    ones = sum(v for v, _ in trace(m, "w", 2000))
    assert abs(ones / 2000 - 0.9) < 0.04


def test_zero_weight_sum_is_an_evaluation_error():
    forest = Forest(declarations=[
        Declaration("ok", Literal(1)),
        Declaration("w", WeightedSampleWithReplacement([Weighted(0, Literal(1)), Weighted(0, Literal(2))]),
                    position=SourcePosition(4, 1, "stim.rvs")),
    ])
    m = compile_forest(forest)
    with pytest.raises(WeightSumError) as info:
        m.advance_cycle()
    err = info.value
    assert isinstance(err, EvaluationError)
    assert err.variable == "w"
    assert err.position == SourcePosition(4, 1, "stim.rvs")
    assert "stim.rvs:4:1" in str(err)
    # Earlier variables were evaluated; the failing one was not
    assert m.current_value("ok") == 1
    assert m.current_done("w") is False


def test_without_replacement_plays_out_nested_members():
    m = build(("a", SampleWithoutReplacement([Pattern(L(0, 1)), Pattern(L(2, 3))])), seed=4)
    for _ in range(100):
        m.advance_cycle()
        first = m.current_value("a")
        rest = [v for v, _ in trace(m, "a", 3)]
        if first == 0:
            assert rest == [1, 2, 3]
        else:
            assert first == 2
            assert rest == [3, 0, 1]


def test_without_replacement_done_when_all_members_done():
    m = build(("a", SampleWithoutReplacement([Pattern(L(0, 0)), Pattern(L(0, 0))])))
    assert m.current_done("a") is False
    assert trace(m, "a", 16) == [(0, False), (0, False), (0, False), (0, True)] * 4


def test_weighted_without_replacement_waits_for_nested_members():
    m = build(("a", WeightedSampleWithoutReplacement([
        Weighted(1, Pattern(L(0, 0))),
        Weighted(1, Pattern(L(0, 0))),
    ])))
    assert [d for _, d in trace(m, "a", 8)] == [False, False, False, True] * 2


def test_with_replacement_stays_on_member_until_done():
    m = build(("a", SampleWithReplacement([Pattern(L(0, 1)), Pattern(L(2, 3))])), seed=8)
    got = trace(m, "a", 40)
    pairs = [(got[i][0], got[i + 1][0]) for i in range(0, 40, 2)]
    assert set(pairs) <= {(0, 1), (2, 3)}
    assert len(set(pairs)) == 2
    assert [d for _, d in got] == [False, True] * 20


def test_weighted_with_replacement_stays_on_member_until_done():
    m = build(("a", WeightedSampleWithReplacement([
        Weighted(1, Pattern(L(5, 6))),
        Weighted(0, Literal(7)),
    ])))
    assert trace(m, "a", 6) == [(5, False), (6, True)] * 3


# ---- Composed expressions ----

@pytest.mark.parametrize("op,l,r,expected", [
    ("|", 0b1010, 0b0101, 0b1111),
    ("^", 0b1100, 0b1010, 0b0110),
    ("&", 0b1100, 0b1010, 0b1000),
    ("<<", 1, 4, 16),
    ("<<", 1, 32, 0),
    ("<<", 0x8000_0000, 1, 0),
    (">>", 256, 4, 16),
    ("+", 0xFFFF_FFFF, 1, 0),
    ("-", 0, 1, 0xFFFF_FFFF),
    ("*", 0x10000, 0x10000, 0),
    ("/", 7, 2, 3),
    ("%", 7, 3, 1),
])
def test_binary_ops_wrap_to_32_bits(op, l, r, expected):
    m = build(("x", BinaryOp(op, Literal(l), Literal(r))))
    m.advance_cycle()
    assert m.current_value("x") == expected


def test_unary_complement():
    m = build(("x", UnaryOp("~", Literal(0))))
    m.advance_cycle()
    assert m.current_value("x") == 0xFFFF_FFFF


@pytest.mark.parametrize("op", ["/", "%"])
def test_division_by_zero(op):
    m = build(("x", BinaryOp(op, Literal(1), Literal(0))))
    with pytest.raises(ArithmeticEvaluationError):
        m.advance_cycle()


def test_composed_done_is_either_operand():
    m = build(("x", BinaryOp("+", Pattern(L(1, 2)), Pattern(L(10, 20, 30)))))
    got = trace(m, "x", 6)
    assert [v for v, _ in got] == [11, 22, 31, 12, 21, 32]
    assert [d for _, d in got] == [False, True, True, True, False, True]


# ---- References ----

def test_reference_reads_current_cycle_value():
    m = build(
        ("a", SampleWithoutReplacement(L(1, 2, 3))),
        ("b", BinaryOp("*", Identifier("a"), Literal(10))),
    )
    for _ in range(12):
        results = m.advance_cycle()
        assert results[1].value == results[0].value * 10


def test_enum_items_and_types():
    enums = [EnumDecl("Op", [EnumItemDecl("READ"), EnumItemDecl("WRITE"), EnumItemDecl("NOP", 7)])]
    m = build(
        ("w", Identifier("Op.WRITE")),
        ("n", Identifier("NOP")),
        ("any", Identifier("Op")),
        ("pick", SampleWithReplacement([Identifier("Op.READ"), Identifier("Op.NOP")])),
        enums=enums,
    )
    seen = set()
    picks = set()
    for _ in range(100):
        m.advance_cycle()
        assert m.current_value("w") == 1
        assert m.current_value("n") == 7
        seen.add(m.current_value("any"))
        picks.add(m.current_value("pick"))
    assert seen == {0, 1, 7}
    assert picks == {0, 7}


def test_results_in_declaration_order():
    m = build(("z", Literal(1)), ("a", Literal(2)), ("m", Literal(3)))
    results = m.advance_cycle()
    assert [r.name for r in results] == ["z", "a", "m"]
    assert [r.value for r in results] == [1, 2, 3]
    assert m.results() == results
    assert m.cycle == 1


# ---- Variable methods ----

def test_prev_reads_like_a_plain_reference():
    m = build(
        ("a", SampleWithReplacement(L(1, 2, 3))),
        ("b", Identifier("a", method="prev")),
        ("c", Identifier("a.prev")),
    )
    for _ in range(20):
        a, b, c = (r.value for r in m.advance_cycle())
        assert a == b == c


def test_next_advances_the_referenced_variable():
    m = build(
        ("a", Pattern(L(1, 2, 3, 4))),
        ("b", Identifier("a", method="next")),
    )
    got = []
    for _ in range(4):
        results = m.advance_cycle()
        got.append((results[0].value, results[1].value, results[1].done))
    # a is stepped twice per cycle and reports its latest value
    assert got == [(2, 2, False), (4, 4, True)] * 2


def test_copy_has_private_state():
    m = build(
        ("a", Pattern(L(1, 2, 3))),
        ("b", Pattern([Identifier("a", method="copy"), Literal(9)])),
    )
    got_a = []
    got_b = []
    for _ in range(7):
        m.advance_cycle()
        got_a.append(m.current_value("a"))
        got_b.append(m.current_value("b"))
    assert got_a == [1, 2, 3, 1, 2, 3, 1]
    assert got_b == [1, 9, 2, 9, 3, 9, 1]


def test_copy_written_as_dotted_path():
    m = build(
        ("a", Sequence(Literal(0), Literal(2))),
        ("b", Identifier("a.copy")),
    )
    assert trace(m, "b", 4) == [(0, False), (1, False), (2, True), (0, False)]


def test_reset_restarts_copies():
    m = build(
        ("a", SampleWithoutReplacement(L(1, 2, 3, 4))),
        ("b", Identifier("a", method="copy")),
    )
    m.seed(21)
    first = [m.advance_cycle() for _ in range(6)]
    m.reset()
    m.seed(21)
    assert [m.advance_cycle() for _ in range(6)] == first
