import math

import pytest

from seqtag.types import Outcome, Sample, Sequence, Span


def test_span_rejects_invalid_bounds():
    with pytest.raises(ValueError):
        Span(-1, 2)
    with pytest.raises(ValueError):
        Span(3, 2)
    assert Span(2, 2).length() == 0


def test_span_equality_ignores_probability():
    assert Span(0, 2, "PER", prob=0.3) == Span(0, 2, "PER", prob=0.9)
    assert Span(0, 2, "PER") != Span(0, 2, "LOC")
    assert hash(Span(0, 2, "PER", prob=0.3)) == hash(Span(0, 2, "PER"))


def test_span_ordering_by_start_end_then_type():
    spans = [Span(3, 4, "B"), Span(0, 2, "A"), Span(0, 1, "Z"), Span(0, 2), Span(0, 2, "-")]
    assert sorted(spans) == [Span(0, 1, "Z"), Span(0, 2), Span(0, 2, "-"), Span(0, 2, "A"), Span(3, 4, "B")]


def test_span_relations():
    outer = Span(2, 6)
    assert outer.contains(Span(3, 5))
    assert outer.contains(2) and not outer.contains(6)
    assert outer.starts_with(Span(2, 4))
    assert not outer.starts_with(Span(3, 4))
    assert outer.intersects(Span(5, 8))
    assert not outer.intersects(Span(6, 8))
    assert outer.crosses(Span(5, 8))
    assert not outer.crosses(Span(3, 4))


def test_span_covered_text_and_shift():
    tokens = ["John", "Smith", "went", "home"]
    assert Span(0, 2).covered_text(tokens) == ["John", "Smith"]
    assert Span(1, 3).covered_text("abcd") == "bc"
    with pytest.raises(ValueError):
        Span(2, 5).covered_text(tokens)
    shifted = Span(1, 2, "PER", prob=0.5).shifted(3)
    assert (shifted.start, shifted.end, shifted.type, shifted.prob) == (4, 5, "PER", 0.5)


def test_span_str():
    assert str(Span(0, 2, "PER")) == "[0..2) PER"
    assert str(Span(1, 3)) == "[1..3)"


def test_sequence_extend_is_non_destructive():
    root = Sequence()
    assert root.size() == 0 and root.score == 0.0

    a = root.extend("x", 0.5)
    b = a.extend("y", 0.25)
    c = a.extend("z", 1.0)

    assert a.outcomes == ("x",)
    assert b.outcomes == ("x", "y") and c.outcomes == ("x", "z")
    assert b.probs == (0.5, 0.25)
    assert b.score == pytest.approx(math.log(0.5) + math.log(0.25))
    assert b.outcome(1) == "y" and b.prob(0) == 0.5


def test_sequence_zero_probability_scores_negative_infinity():
    assert Sequence().extend("x", 0.0).score == float("-inf")


def test_sequence_from_outcomes():
    seq = Sequence.from_outcomes(["a", "b"])
    assert seq.probs == (1.0, 1.0)
    assert seq.score == 0.0
    assert seq.size() == 2


def test_outcome_render():
    assert Outcome("other").render() == "other"
    assert Outcome("start", "PER").render() == "PER-start"


def test_sample_defaults():
    sample = Sample(tokens=("a",))
    assert sample.spans == ()
    assert sample.document_start is False
