import math
import unittest

from seqtag.beam_search import BeamSearch
from seqtag.types import Sequence


class IdentityContextGenerator:
    """Uses the input token itself as the only feature."""

    def get_context(self, index, sequence, prior_outcomes, additional_context):
        return [sequence[index]]


class IdentityModel:
    """Gives 0.8 to the outcome named by the feature and splits 0.2 among the rest."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    @property
    def num_outcomes(self):
        return len(self._outcomes)

    def get_outcome(self, index):
        return self._outcomes[index]

    def eval(self, contexts):
        self.calls += 1
        other = 0.2 / (len(self._outcomes) - 1)
        return [0.8 if outcome == contexts[0] else other for outcome in self._outcomes]


class FixedModel:
    """Returns the same distribution at every position."""

    def __init__(self, outcomes, probs):
        self._outcomes = list(outcomes)
        self._probs = list(probs)

    @property
    def num_outcomes(self):
        return len(self._outcomes)

    def get_outcome(self, index):
        return self._outcomes[index]

    def eval(self, contexts):
        return list(self._probs)


class RejectingValidator:
    def __init__(self, *rejected):
        self.rejected = set(rejected)

    def valid_sequence(self, index, input_sequence, outcomes, outcome):
        return outcome not in self.rejected


class RecordingContextGenerator(IdentityContextGenerator):
    def __init__(self):
        self.seen = []

    def get_context(self, index, sequence, prior_outcomes, additional_context):
        self.seen.append((index, tuple(prior_outcomes), additional_context))
        return super().get_context(index, sequence, prior_outcomes, additional_context)


OUTCOMES = ["1", "2", "3"]


def make_search(size, validator=None, cache_size=0, model=None):
    return BeamSearch(
        size,
        IdentityContextGenerator(),
        model if model is not None else IdentityModel(OUTCOMES),
        validator=validator,
        cache_size=cache_size,
    )


class TestBeamSearch(unittest.TestCase):
    def test_zero_length_input_yields_one_empty_sequence(self):
        bs = make_search(3)
        result = bs.best_sequences(3, [])
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].outcomes, ())
        self.assertEqual(bs.best_sequence([]).score, 0.0)

    def test_one_element_input(self):
        seq = make_search(3).best_sequence(["1"])
        self.assertIsNotNone(seq)
        self.assertEqual(seq.outcomes, ("1",))
        self.assertAlmostEqual(seq.score, math.log(0.8))

    def test_best_sequence(self):
        tokens = ["1", "2", "3", "2", "1"]
        seq = make_search(2).best_sequence(tokens)
        self.assertEqual(list(seq.outcomes), tokens)
        self.assertEqual(seq.probs, (0.8,) * 5)

    def test_best_sequence_with_validator(self):
        tokens = ["1", "2", "3", "2", "1"]
        seq = make_search(2, validator=RejectingValidator("2")).best_sequence(tokens)
        self.assertIsNotNone(seq)
        self.assertEqual(seq.size(), len(tokens))
        self.assertEqual(seq.outcome(0), "1")
        self.assertNotEqual(seq.outcome(1), "2")
        self.assertEqual(seq.outcome(2), "3")
        self.assertNotEqual(seq.outcome(3), "2")
        self.assertEqual(seq.outcome(4), "1")

    def test_results_are_sorted_and_bounded_by_beam_width(self):
        tokens = ["1", "2", "3", "2"]
        result = make_search(3).best_sequences(10, tokens)
        self.assertEqual(len(result), 3)
        scores = [s.score for s in result]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(list(result[0].outcomes), tokens)

    def test_num_sequences_limits_result(self):
        result = make_search(3).best_sequences(2, ["1", "2"])
        self.assertEqual(len(result), 2)

    def test_search_is_deterministic(self):
        tokens = ["1", "3", "3", "2", "1", "2"]
        first = make_search(2).best_sequences(2, tokens)
        second = make_search(2).best_sequences(2, tokens)
        self.assertEqual(first, second)

    def test_rejecting_every_outcome_kills_the_beam(self):
        bs = make_search(2, validator=RejectingValidator(*OUTCOMES))
        self.assertEqual(bs.best_sequences(2, ["1", "2"]), [])
        self.assertIsNone(bs.best_sequence(["1", "2"]))

    def test_fallback_expands_outcomes_below_threshold(self):
        # Beam width 1 only branches into "a"; the validator forbids it.
        model = FixedModel(["a", "b", "c"], [0.7, 0.2, 0.1])
        bs = make_search(1, validator=RejectingValidator("a"), model=model)
        seq = bs.best_sequence(["x", "y"])
        self.assertEqual(seq.outcomes, ("b", "b"))

    def test_ties_at_threshold_are_all_explored(self):
        model = FixedModel(["a", "b", "c"], [0.4, 0.4, 0.2])
        result = make_search(1, model=model).best_sequences(1, ["x"])
        # Both tied outcomes were expanded; the earlier one wins the single slot.
        self.assertEqual(result[0].outcomes, ("a",))

    def test_min_sequence_score_prunes_hypotheses(self):
        bs = make_search(3)
        # log(0.8) * 4 is about -0.89, log(0.8) * 5 about -1.12.
        self.assertEqual(list(bs.best_sequence(["1", "2", "3", "2"], min_sequence_score=-1.0).outcomes), ["1", "2", "3", "2"])
        self.assertIsNone(bs.best_sequence(["1", "2", "3", "2", "1"], min_sequence_score=-1.0))

    def test_zero_probability_outcomes_are_discarded(self):
        model = FixedModel(["a", "b"], [1.0, 0.0])
        result = make_search(2, model=model).best_sequences(2, ["x"])
        self.assertEqual([s.outcomes for s in result], [("a",)])

    def test_context_generator_receives_hypothesis_and_additional_context(self):
        cg = RecordingContextGenerator()
        bs = BeamSearch(1, cg, IdentityModel(OUTCOMES))
        bs.best_sequence(["1", "2"], additional_context="extra")
        self.assertEqual(cg.seen, [(0, (), "extra"), (1, ("1",), "extra")])

    def test_cache_avoids_repeated_evaluation(self):
        model = IdentityModel(OUTCOMES)
        bs = make_search(3, cache_size=16, model=model)
        bs.best_sequence(["1", "1", "1"])
        self.assertEqual(model.calls, 1)
        self.assertGreater(bs.cache_info().hits, 0)

    def test_without_cache_every_parent_is_evaluated(self):
        model = IdentityModel(OUTCOMES)
        bs = make_search(3, model=model)
        bs.best_sequence(["1", "1", "1"])
        self.assertEqual(model.calls, 1 + 3 + 3)
        self.assertIsNone(bs.cache_info())

    def test_outcomes_property(self):
        self.assertEqual(make_search(2).outcomes, OUTCOMES)

    def test_invalid_beam_size(self):
        with self.assertRaises(ValueError):
            make_search(0)

    def test_returned_sequences_are_independent(self):
        result = make_search(3).best_sequences(3, ["1", "2"])
        self.assertTrue(all(isinstance(s, Sequence) for s in result))
        self.assertEqual(len({s.outcomes for s in result}), len(result))


if __name__ == "__main__":
    unittest.main()
