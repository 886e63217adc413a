"""
Ensemble Predictor - Master orchestrator combining all sub-models.
Turns each sub-model's vote into a weighted contribution and emits the
majority outcome with a confidence and the deciding rationale.

Adaptive features:
  - Per-model ledger of past votes, scored against what actually happened
  - Rolling-accuracy multiplier on each model's base weight
  - Table-state corrections (choppy/long-run dampening, imbalance, bridge break)

The engine keeps no state between calls. The caller owns the ledger,
passes it in, and gets the same (mutated) dict back.
"""

import random

from config import (
    HIGH, LOW, VOTE_NONE, VOTE_LOW, VOTE_HIGH,
    LEDGER_MODELS, BASE_WEIGHTS, MIN_HISTORY_FOR_DETECTORS,
    PERFORMANCE_ROUNDS, PERFORMANCE_MIN_MULTIPLIER, PERFORMANCE_MAX_MULTIPLIER,
    STREAK_WINDOW, MIN_ROUNDS_FOR_VOTE,
    BAD_PATTERN_SWITCHES, BAD_PATTERN_STREAK, BAD_PATTERN_DAMPEN,
    IMBALANCE_WINDOW, IMBALANCE_HIGH_COUNT, IMBALANCE_LOW_COUNT, IMBALANCE_BONUS,
    BRIDGE_BOOST_THRESHOLD, BRIDGE_BOOST,
    outcome_to_vote,
)
from app.ml.streak_analyzer import StreakAnalyzer, get_outcomes, count_switches
from app.ml.pattern_detector import (
    TrendDetector, ShortPatternDetector, MeanDeviationDetector, RecentSwitchDetector,
)
from app.ml.bridge_break import BridgeBreakHeuristic
from app.ml.rule_classifier import RuleClassifier, random_outcome


# ─── Model Performance Tracker ────────────────────────────────────────

class ModelPerformanceTracker:
    """Scores each ledger-tracked model on its last resolved predictions.

    The ledger maps model name → {round_id: vote}. A vote stored under a
    round id was made when that round was the latest one, so it is a
    prediction for the round right after it.
    """

    MODEL_NAMES = LEDGER_MODELS

    def __init__(self, ledger=None):
        self.ledger = ledger if ledger is not None else {}
        for name in self.MODEL_NAMES:
            self.ledger.setdefault(name, {})

    def record(self, round_id, votes):
        """Store each model's vote for the round after `round_id`.

        Args:
            round_id: id of the latest observed round
            votes: dict name → vote code
        """
        for name in self.MODEL_NAMES:
            if name in votes:
                self.ledger[name][round_id] = votes[name]

    def get_multiplier(self, history, model_name, rounds=PERFORMANCE_ROUNDS):
        """Rolling accuracy multiplier in [0.5, 1.5]; 1.0 means neutral."""
        predictions = self.ledger.get(model_name)
        if not predictions or len(history) < 2:
            return 1.0

        rounds = min(rounds, len(history) - 1)
        correct = 0
        for i in range(rounds):
            vote = predictions.get(history[-(i + 2)]['id'], VOTE_NONE)
            actual = history[-(i + 1)]['outcome']
            if (vote == VOTE_LOW and actual == LOW) or (vote == VOTE_HIGH and actual == HIGH):
                correct += 1

        score = 1 + (correct - rounds / 2) / (rounds / 2) if rounds > 0 else 1.0
        return min(PERFORMANCE_MAX_MULTIPLIER, max(PERFORMANCE_MIN_MULTIPLIER, score))

    def get_multipliers(self, history):
        return {name: self.get_multiplier(history, name) for name in self.MODEL_NAMES}


# ─── Table-state checks ───────────────────────────────────────────────

def is_bad_pattern(history, streak_state=None):
    """Choppy table (9+ switches in the last 15) or a run of 10+."""
    if len(history) < MIN_ROUNDS_FOR_VOTE:
        return False

    switches = count_switches(get_outcomes(history, STREAK_WINDOW))
    if streak_state is None:
        analyzer = StreakAnalyzer()
        analyzer.load_history(history)
        streak_state = analyzer.analyze()

    return switches >= BAD_PATTERN_SWITCHES or streak_state['streak'] >= BAD_PATTERN_STREAK


def to_percentage(confidence):
    """Fraction → integer percentage, rounded half-up, clamped to [0, 100]."""
    return max(0, min(100, int(confidence * 100 + 0.5)))


class EnsemblePredictor:
    def __init__(self, rng=None, verbose=True):
        self.rng = rng or random.Random()
        self.verbose = verbose

    def _log(self, message):
        if self.verbose:
            print(message)

    def _collect_votes(self, history, streak_state):
        """Run every sub-model once. Returns (votes, bridge, classifier)."""
        if len(history) < MIN_HISTORY_FOR_DETECTORS:
            # Too little history for the detectors: they all repeat the last outcome
            repeat = outcome_to_vote(history[-1]['outcome'])
            votes = {name: repeat for name in ('trend', 'short', 'mean', 'switch')}
            bridge = {
                'direction': repeat,
                'break_prob': 0.0,
                'rationale': '[Bridge] short history, repeating the last outcome',
            }
        else:
            votes = {}
            for detector_cls in (TrendDetector, ShortPatternDetector,
                                 MeanDeviationDetector, RecentSwitchDetector):
                detector = detector_cls()
                detector.load_history(history)
                votes[detector.name] = detector.vote(streak_state)

            heuristic = BridgeBreakHeuristic()
            heuristic.load_history(history)
            bridge = heuristic.vote(streak_state)

        votes['bridge'] = bridge['direction']

        classifier = RuleClassifier(rng=self.rng)
        classifier.load_history(history)
        return votes, bridge, classifier.classify()

    def predict(self, history, ledger=None):
        """Predict the round after the last one in `history`.

        Args:
            history: list of {'id', 'outcome', 'score'} dicts, oldest first
            ledger: per-model vote ledger from the previous call (or None)

        Returns:
            (prediction dict, ledger)
        """
        if ledger is None:
            ledger = {}
        tracker = ModelPerformanceTracker(ledger)

        if not history:
            self._log("[Ensemble] No history available, random prediction")
            return {
                'outcome': random_outcome(self.rng),
                'confidence': 0,
                'rationale': '[Final] no history available, random pick',
                'bridge': None,
                'high_weight': 0.0,
                'low_weight': 0.0,
                'votes': {},
                'multipliers': {},
                'bad_pattern': False,
                'streak': None,
            }, ledger

        analyzer = StreakAnalyzer()
        analyzer.load_history(history)
        streak_state = analyzer.analyze()

        votes, bridge, classified = self._collect_votes(history, streak_state)
        tracker.record(history[-1]['id'], votes)

        multipliers = tracker.get_multipliers(history)
        weights = {name: BASE_WEIGHTS[name] * multipliers[name] for name in LEDGER_MODELS}
        weights['classifier'] = BASE_WEIGHTS['classifier']

        high_weight = 0.0
        low_weight = 0.0
        for name, vote in votes.items():
            if vote == VOTE_LOW:
                low_weight += weights[name]
            elif vote == VOTE_HIGH:
                high_weight += weights[name]

        if classified['outcome'] == HIGH:
            high_weight += weights['classifier']
        else:
            low_weight += weights['classifier']

        bad_pattern = is_bad_pattern(history, streak_state)
        if bad_pattern:
            self._log("[Ensemble] Bad pattern detected, reducing confidence")
            high_weight *= BAD_PATTERN_DAMPEN
            low_weight *= BAD_PATTERN_DAMPEN

        high_in_window = get_outcomes(history, IMBALANCE_WINDOW).count(HIGH)
        if high_in_window >= IMBALANCE_HIGH_COUNT:
            high_weight += IMBALANCE_BONUS
            self._log(f"[Ensemble] Adjusting for High-heavy window ({high_in_window}/{IMBALANCE_WINDOW})")
        elif high_in_window <= IMBALANCE_LOW_COUNT:
            low_weight += IMBALANCE_BONUS
            self._log(f"[Ensemble] Adjusting for Low-heavy window ({high_in_window}/{IMBALANCE_WINDOW} High)")

        if bridge['break_prob'] > BRIDGE_BOOST_THRESHOLD:
            self._log(f"[Ensemble] High bridge break probability: {bridge['break_prob']:.2f} "
                  f"{bridge['rationale']}")
            # Boost goes to the side opposite the bridge vote's code
            if bridge['direction'] == VOTE_LOW:
                high_weight += BRIDGE_BOOST
            elif bridge['direction'] == VOTE_HIGH:
                low_weight += BRIDGE_BOOST

        total_weight = high_weight + low_weight
        if high_weight > low_weight:
            outcome = HIGH
            rationale = (f'[Final] Predict High with total weight {high_weight:.2f} '
                         f'vs {low_weight:.2f} for Low')
            confidence = high_weight / total_weight if total_weight > 0 else 0.5
        elif low_weight > high_weight:
            outcome = LOW
            rationale = (f'[Final] Predict Low with total weight {low_weight:.2f} '
                         f'vs {high_weight:.2f} for High')
            confidence = low_weight / total_weight if total_weight > 0 else 0.5
        else:
            outcome = random_outcome(self.rng)
            rationale = (f'[Final] Weights balanced ({high_weight:.2f} vs {low_weight:.2f}), '
                         f'random pick')
            confidence = 0.5

        votes['classifier'] = classified['outcome']
        prediction = {
            'outcome': outcome,
            'confidence': to_percentage(confidence),
            'rationale': rationale,
            'bridge': bridge,
            'classifier': classified,
            'high_weight': round(high_weight, 4),
            'low_weight': round(low_weight, 4),
            'votes': votes,
            'multipliers': {k: round(v, 3) for k, v in multipliers.items()},
            'bad_pattern': bad_pattern,
            'streak': streak_state,
        }

        self._log(f"[Ensemble] Prediction: {outcome} ({prediction['confidence']}%)")
        return prediction, ledger


def predict(history, ledger=None, rng=None):
    """Single entry point: predict(history, ledger) → (prediction, ledger)."""
    return EnsemblePredictor(rng=rng).predict(history, ledger)
