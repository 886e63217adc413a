"""
Unit Tests for the prediction engine: StreakAnalyzer, pattern detectors,
BridgeBreakHeuristic, RuleClassifier, ModelPerformanceTracker and
EnsemblePredictor.

Histories are built by hand so every expected vote can be worked out
from the rule tables in the model docstrings.
"""
import copy
import random
import sys
import os

import pytest

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..')
sys.path.insert(0, PROJECT_ROOT)

from config import HIGH, LOW, OUTCOMES, VOTE_NONE, VOTE_LOW, VOTE_HIGH, LEDGER_MODELS
from app.ml.streak_analyzer import StreakAnalyzer, analyze_streak, count_switches, get_outcomes
from app.ml.pattern_detector import (
    TrendDetector, ShortPatternDetector, MeanDeviationDetector, RecentSwitchDetector,
    DETECTORS, most_frequent_motif,
)
from app.ml.bridge_break import BridgeBreakHeuristic, score_deviation
from app.ml.rule_classifier import RuleClassifier
from app.ml import ensemble
from app.ml.ensemble import (
    EnsemblePredictor, ModelPerformanceTracker, is_bad_pattern, to_percentage,
)

H, L = HIGH, LOW


def make_history(outcomes, scores=None, start_id=1000):
    """Rounds with consecutive ids; High scores 13 and Low scores 7 unless given."""
    if scores is None:
        scores = [13 if o == HIGH else 7 for o in outcomes]
    return [
        {'id': start_id + i, 'outcome': o, 'score': s}
        for i, (o, s) in enumerate(zip(outcomes, scores))
    ]


def alternating(n, first=H):
    second = L if first == H else H
    return [first if i % 2 == 0 else second for i in range(n)]


def detector_vote(detector_cls, history):
    detector = detector_cls()
    detector.load_history(history)
    return detector.vote()


# Streak of 5 High after a choppy run: break_prob caps at 0.85
BREAKING_HIGH = [L, H, L, H, L, H, L] + [H] * 5
# Streak of 4 Low with break_prob 0
SHORT_LOW_RUN = [L, H, L, H, L, H] + [L] * 4


# ─── Streak Analyzer ──────────────────────────────────────────────────

class TestStreakAnalyzer:
    def test_empty_history(self):
        state = analyze_streak([])
        assert state['streak'] == 0
        assert state['outcome'] is None
        assert state['break_prob'] == 0.0

    def test_streak_counts_trailing_run(self):
        analyzer = StreakAnalyzer()
        analyzer.load_history(make_history([L, L, H, H, H]))
        assert analyzer.get_streak() == (3, H)

    def test_alternating_twenty(self):
        state = analyze_streak(make_history(alternating(20)))
        assert state['streak'] == 1
        assert state['switches'] == 14
        assert state['break_prob'] == 0.0

    def test_long_streak(self):
        state = analyze_streak(make_history([H] * 10))
        assert state['streak'] == 10
        assert state['switches'] == 0
        assert state['balance'] == pytest.approx(1.0)
        assert state['break_prob'] == pytest.approx(0.75)

    def test_medium_streak_capped(self):
        state = analyze_streak(make_history(BREAKING_HIGH))
        assert state['streak'] == 5
        assert state['outcome'] == H
        assert state['switches'] == 7
        assert state['break_prob'] == pytest.approx(0.85)

    def test_short_streak_on_choppy_table(self):
        state = analyze_streak(make_history(alternating(8) + [L, L]))
        assert state['streak'] == 3
        assert state['switches'] == 7
        assert state['break_prob'] == pytest.approx(0.3)

    def test_short_streak_on_calm_table(self):
        state = analyze_streak(make_history([H, H, H]))
        assert state['break_prob'] == 0.0

    @pytest.mark.parametrize('n', [1, 2, 3, 5, 7, 12, 15, 25, 40])
    def test_properties_hold_for_any_length(self, n):
        rng = random.Random(n)
        history = make_history([rng.choice(OUTCOMES) for _ in range(n)])
        state = analyze_streak(history)
        assert 1 <= state['streak'] <= n
        assert 0.0 <= state['break_prob'] <= 0.9
        assert 0 <= state['switches'] <= 14

        heuristic = BridgeBreakHeuristic()
        heuristic.load_history(history)
        assert 0.0 <= heuristic.vote(state)['break_prob'] <= 0.9

    def test_window_helpers(self):
        history = make_history([H, L, L, H])
        assert get_outcomes(history, 2) == [L, H]
        assert get_outcomes(history, 10) == [H, L, L, H]
        assert count_switches([H, L, L, H]) == 2


# ─── Pattern Detectors ────────────────────────────────────────────────

class TestPatternDetectors:
    @pytest.mark.parametrize('detector_cls', DETECTORS)
    def test_too_short_history(self, detector_cls):
        assert detector_vote(detector_cls, make_history([H, L])) == VOTE_NONE

    @pytest.mark.parametrize('detector_cls', DETECTORS)
    def test_likely_break_votes_against_streak(self, detector_cls):
        assert detector_vote(detector_cls, make_history(BREAKING_HIGH)) == VOTE_LOW

    @pytest.mark.parametrize('detector_cls', DETECTORS)
    def test_streak_at_threshold_continues(self, detector_cls):
        # 10 High gives break_prob exactly 0.75, which is not above the threshold
        assert detector_vote(detector_cls, make_history([H] * 10)) == VOTE_HIGH

    @pytest.mark.parametrize('detector_cls', [
        ShortPatternDetector, MeanDeviationDetector, RecentSwitchDetector,
    ])
    def test_four_streak_short_circuits_pattern_detectors(self, detector_cls):
        assert detector_vote(detector_cls, make_history(SHORT_LOW_RUN)) == VOTE_LOW

    def test_supplied_streak_state_is_used(self):
        history = make_history([H, L, H, L, H])
        forced = {'streak': 6, 'outcome': H, 'break_prob': 0.9}
        detector = TrendDetector()
        detector.load_history(history)
        assert detector.vote(forced) == VOTE_LOW

    def test_most_frequent_motif_prefers_first_seen(self):
        motif, count = most_frequent_motif(alternating(8, first=L), 3)
        assert motif == (L, H, L)
        assert count == 3
        assert most_frequent_motif([H, L], 3) == (None, 0)

    def test_trend_motif(self):
        # HLHL repeats 4 times and ends on the latest outcome → Low
        assert detector_vote(TrendDetector, make_history(alternating(10))) == VOTE_LOW

    def test_trend_weighted_imbalance(self):
        history = make_history([H, H, H, L, H, H, L, H])
        detector = TrendDetector()
        detector.load_history(history)
        high_score, low_score = detector.weighted_scores()
        assert low_score == pytest.approx(1.2 ** 3 + 1.2 ** 6)
        assert high_score > low_score
        assert detector.vote() == VOTE_HIGH

    def test_trend_fallback_votes_against_last(self):
        assert detector_vote(TrendDetector, make_history([L, L, H, H, L, H])) == VOTE_LOW

    def test_short_pattern_motif(self):
        history = make_history(alternating(8, first=L))
        assert detector_vote(ShortPatternDetector, history) == VOTE_HIGH

    def test_short_pattern_fallback(self):
        history = make_history([L, L, L, H, H, H, L, H])
        assert detector_vote(ShortPatternDetector, history) == VOTE_LOW

    def test_mean_deviation_votes_minority(self):
        history = make_history([H, H, H, L] * 3)
        assert detector_vote(MeanDeviationDetector, history) == VOTE_LOW

    def test_mean_deviation_balanced_votes_against_last(self):
        history = make_history(alternating(12))
        assert detector_vote(MeanDeviationDetector, history) == VOTE_HIGH

    def test_recent_switch_both_branches_vote_against_last(self):
        choppy = make_history(alternating(10))
        calm = make_history([H, H, H, L, L, L, H, H, H, L])
        assert detector_vote(RecentSwitchDetector, choppy) == VOTE_HIGH
        assert detector_vote(RecentSwitchDetector, calm) == VOTE_HIGH


# ─── Bridge-Break Heuristic ───────────────────────────────────────────

class TestBridgeBreak:
    def _vote(self, history):
        heuristic = BridgeBreakHeuristic()
        heuristic.load_history(history)
        return heuristic.vote()

    def test_insufficient_data(self):
        result = self._vote(make_history([H, H]))
        assert result['direction'] == VOTE_NONE
        assert result['break_prob'] == 0.0
        assert 'insufficient' in result['rationale']

    def test_long_streak_breaks(self):
        result = self._vote(make_history([H] * 10))
        assert result['break_prob'] == pytest.approx(0.9)
        assert result['direction'] == VOTE_LOW
        assert 'long' in result['rationale']

    def test_volatile_scores(self):
        history = make_history(SHORT_LOW_RUN, scores=[3, 18] * 5)
        assert score_deviation(history) == pytest.approx(7.5)
        result = self._vote(history)
        assert result['break_prob'] == pytest.approx(0.1)
        assert result['direction'] == VOTE_LOW
        assert 'deviation' in result['rationale']

    def test_repeating_motif(self):
        history = make_history([H] + [L] * 5, scores=[10] * 6)
        result = self._vote(history)
        assert result['break_prob'] == pytest.approx(0.35 + 0.1 + (4 / 6) * 0.25 + 0.05)
        assert result['direction'] == VOTE_HIGH
        assert 'repeating motif' in result['rationale']

    def test_no_signal_floors_probability(self):
        result = self._vote(make_history(alternating(6)))
        assert result['break_prob'] == pytest.approx(0.15)
        assert result['direction'] == VOTE_LOW
        assert result['rationale'].startswith('[Bridge]')

    def test_missing_scores_count_as_zero(self):
        history = make_history([H, L, H], scores=[None, 10, None])
        assert score_deviation(history) == pytest.approx(40 / 9)


# ─── Rule-Based Classifier ────────────────────────────────────────────

class TestRuleClassifier:
    def _classify(self, outcomes, scores=None, seed=1):
        if scores is None:
            scores = [9] * len(outcomes)
        classifier = RuleClassifier(rng=random.Random(seed))
        classifier.load_history(make_history(outcomes, scores))
        return classifier.classify()

    def test_insufficient_history(self):
        result = self._classify([H, L])
        assert result['rule'] == 'random'
        assert result['outcome'] in OUTCOMES
        assert 'insufficient history' in result['rationale']

    def test_three_motif(self):
        result = self._classify([H, L, H])
        assert result['outcome'] == L
        assert result['rule'] == 'motif3'
        assert '1-1 alternation' in result['rationale']

    def test_three_motif_low(self):
        assert self._classify([L, H, L])['outcome'] == H

    def test_four_motif(self):
        result = self._classify([L, L, H, H])
        assert result['outcome'] == L
        assert result['rule'] == 'motif4'

    def test_long_run(self):
        result = self._classify([L, H, L] + [H] * 6)
        assert result['outcome'] == L
        assert result['rule'] == 'long_run'

    def test_long_run_needs_nine_rounds(self):
        assert self._classify([H] * 8)['rule'] != 'long_run'

    def test_score_average(self):
        assert self._classify([H, H, L], scores=[15] * 3)['outcome'] == H
        low = self._classify([H, H, L], scores=[5] * 3)
        assert low['outcome'] == L
        assert low['rule'] == 'score_average'

    def test_recent_majority(self):
        result = self._classify([H, H, L, H, H])
        assert result['outcome'] == L
        assert result['rule'] == 'recent_majority'

    def test_total_majority(self):
        result = self._classify([H, H, H, H, H, L, L, H, H, L])
        assert result['outcome'] == L
        assert result['rule'] == 'total_majority'

    def test_random_fallback_is_seeded(self):
        first = self._classify([H, L, L, H], seed=42)
        second = self._classify([H, L, L, H], seed=42)
        assert first['rule'] == 'random'
        assert first['outcome'] == second['outcome']

    def test_every_rationale_is_tagged(self):
        for outcomes in ([H, L, H], [L, L, H, H], [H, H, L, H, H], [H, L, L, H]):
            assert self._classify(outcomes)['rationale'].startswith('[Classifier]')


# ─── Model Performance Tracker ────────────────────────────────────────

class TestModelPerformanceTracker:
    def test_neutral_without_ledger(self):
        tracker = ModelPerformanceTracker()
        history = make_history([H] * 5)
        assert tracker.get_multiplier(history, 'trend') == 1.0
        assert tracker.get_multiplier(history, 'unknown') == 1.0

    def test_neutral_on_short_history(self):
        tracker = ModelPerformanceTracker({'trend': {1000: VOTE_HIGH}})
        assert tracker.get_multiplier(make_history([H]), 'trend') == 1.0

    def test_perfect_record_caps_at_max(self):
        history = make_history([H] * 11)
        ledger = {'trend': {r['id']: VOTE_HIGH for r in history[:-1]}}
        tracker = ModelPerformanceTracker(ledger)
        assert tracker.get_multiplier(history, 'trend') == 1.5

    def test_wrong_record_floors_at_min(self):
        history = make_history([H] * 11)
        ledger = {'trend': {r['id']: VOTE_LOW for r in history[:-1]}}
        assert ModelPerformanceTracker(ledger).get_multiplier(history, 'trend') == 0.5

    def test_half_right_is_neutral(self):
        history = make_history([H] * 11)
        votes = {}
        for i, r in enumerate(history[:-1]):
            votes[r['id']] = VOTE_HIGH if i % 2 == 0 else VOTE_LOW
        tracker = ModelPerformanceTracker({'short': votes})
        assert tracker.get_multiplier(history, 'short') == pytest.approx(1.0)

    def test_window_bounded_by_history(self):
        history = make_history([H, L, L])
        # Prediction stored under round 1000 was for round 1001 (Low)
        ledger = {'mean': {1000: VOTE_LOW, 1001: VOTE_LOW}}
        assert ModelPerformanceTracker(ledger).get_multiplier(history, 'mean') == 1.5

    def test_record_keeps_only_ledger_models(self):
        tracker = ModelPerformanceTracker()
        tracker.record(7, {'trend': VOTE_HIGH, 'classifier': HIGH})
        assert tracker.ledger['trend'] == {7: VOTE_HIGH}
        assert 'classifier' not in tracker.ledger
        assert set(tracker.ledger) == set(LEDGER_MODELS)

    def test_multipliers_in_range(self):
        rng = random.Random(3)
        history = make_history([rng.choice(OUTCOMES) for _ in range(30)])
        ledger = {name: {r['id']: rng.choice([VOTE_NONE, VOTE_LOW, VOTE_HIGH])
                         for r in history} for name in LEDGER_MODELS}
        for value in ModelPerformanceTracker(ledger).get_multipliers(history).values():
            assert 0.5 <= value <= 1.5


# ─── Ensemble Predictor ───────────────────────────────────────────────

class TestEnsemblePredictor:
    def _predictor(self, seed=0):
        return EnsemblePredictor(rng=random.Random(seed), verbose=False)

    def test_empty_history(self):
        prediction, ledger = self._predictor().predict([], {})
        assert prediction['outcome'] in OUTCOMES
        assert prediction['confidence'] == 0
        assert 'no history' in prediction['rationale']
        assert prediction['bridge'] is None
        assert all(len(votes) == 0 for votes in ledger.values())

    def test_ledger_grows_one_entry_per_model(self):
        history = make_history(alternating(20))
        _, ledger = self._predictor().predict(history, {})
        for name in LEDGER_MODELS:
            assert list(ledger[name]) == [history[-1]['id']]

        longer = history + make_history([H], start_id=history[-1]['id'] + 1)
        _, ledger = self._predictor().predict(longer, ledger)
        for name in LEDGER_MODELS:
            assert len(ledger[name]) == 2
            assert longer[-1]['id'] in ledger[name]

    def test_caller_ledger_is_returned(self):
        ledger = {}
        _, returned = self._predictor().predict(make_history([H, L, H, H, L]), ledger)
        assert returned is ledger

    def test_alternating_twenty(self):
        prediction, _ = self._predictor().predict(make_history(alternating(20)), {})
        assert prediction['streak']['break_prob'] == 0.0
        assert prediction['bad_pattern'] is True
        assert prediction['outcome'] in OUTCOMES
        assert 0 <= prediction['confidence'] <= 100

    def test_long_run_is_bad_pattern(self):
        prediction, _ = self._predictor().predict(make_history([H] * 10), {})
        assert prediction['bad_pattern'] is True
        assert prediction['classifier']['rule'] == 'long_run'

    def test_is_bad_pattern(self):
        assert is_bad_pattern(make_history(alternating(16)))
        assert is_bad_pattern(make_history([L] * 10))
        assert not is_bad_pattern(make_history([H, H, H, L, L, L, H, H, H]))
        assert not is_bad_pattern(make_history([H, L]))

    def test_short_history_repeats_last_outcome(self):
        prediction, _ = self._predictor().predict(make_history([L, H, H, H]), {})
        for name in ('trend', 'short', 'mean', 'switch', 'bridge'):
            assert prediction['votes'][name] == VOTE_HIGH
        assert prediction['bridge']['break_prob'] == 0.0

    def test_same_inputs_same_prediction(self):
        history = make_history([H, L, L, H, L, H, H, H, L, H, L, L])
        ledger = {name: {r['id']: VOTE_HIGH for r in history[:-1]} for name in LEDGER_MODELS}
        first, _ = self._predictor(seed=5).predict(history, copy.deepcopy(ledger))
        second, _ = self._predictor(seed=5).predict(history, copy.deepcopy(ledger))
        assert first['outcome'] == second['outcome']
        assert first['confidence'] == second['confidence']
        assert first['rationale'] == second['rationale']

    def test_confidence_range_on_random_histories(self):
        rng = random.Random(11)
        ledger = {}
        rounds = make_history([rng.choice(OUTCOMES) for _ in range(60)],
                              scores=[rng.randint(3, 18) for _ in range(60)])
        predictor = self._predictor()
        for i in range(1, len(rounds)):
            prediction, ledger = predictor.predict(rounds[:i], ledger)
            assert 0 <= prediction['confidence'] <= 100
            assert prediction['outcome'] in OUTCOMES
            assert prediction['rationale'].startswith('[Final]')

    def test_winning_side_sets_confidence(self):
        prediction, _ = self._predictor().predict(make_history(alternating(12)), {})
        high, low = prediction['high_weight'], prediction['low_weight']
        winner = max(high, low)
        assert prediction['outcome'] == (H if high > low else L)
        assert prediction['confidence'] == to_percentage(winner / (high + low))

    def test_tie_picks_random_at_fifty(self, monkeypatch):
        monkeypatch.setattr(ensemble, 'BASE_WEIGHTS', {
            name: 0.0 for name in ensemble.BASE_WEIGHTS})
        monkeypatch.setattr(ensemble, 'IMBALANCE_BONUS', 0.0)
        prediction, _ = self._predictor().predict(make_history(alternating(10)), {})
        assert prediction['confidence'] == 50
        assert prediction['outcome'] in OUTCOMES
        assert 'balanced' in prediction['rationale']

    def test_bridge_boost_goes_opposite_its_vote(self, monkeypatch):
        history = make_history([H] * 10)
        boosted, _ = self._predictor().predict(history, {})
        assert boosted['bridge']['direction'] == VOTE_LOW

        monkeypatch.setattr(ensemble, 'BRIDGE_BOOST', 0.0)
        plain, _ = self._predictor().predict(history, {})
        assert boosted['high_weight'] - plain['high_weight'] == pytest.approx(0.2, abs=1e-3)
        assert boosted['low_weight'] == pytest.approx(plain['low_weight'])

    def test_imbalance_bonus(self, monkeypatch):
        history = make_history([H, H, H, L, H, H, L, H, H, H])
        with_bonus, _ = self._predictor().predict(history, {})

        monkeypatch.setattr(ensemble, 'IMBALANCE_BONUS', 0.0)
        without, _ = self._predictor().predict(history, {})
        assert with_bonus['high_weight'] - without['high_weight'] == pytest.approx(0.15, abs=1e-3)
        assert with_bonus['low_weight'] == pytest.approx(without['low_weight'])

    def test_module_predict(self):
        prediction, ledger = ensemble.predict(make_history([H, L, H]), None,
                                              rng=random.Random(0))
        assert prediction['outcome'] in OUTCOMES
        assert set(ledger) == set(LEDGER_MODELS)

    @pytest.mark.parametrize('fraction,expected', [
        (0.666, 67), (0.5, 50), (0.125, 13), (1.2, 100), (-0.1, 0),
    ])
    def test_to_percentage(self, fraction, expected):
        assert to_percentage(fraction) == expected
