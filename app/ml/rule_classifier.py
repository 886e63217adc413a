"""
Rule-Based Classifier — Ordered decision rules over short motifs, long
runs and running score averages. Votes directly with an outcome and always
explains which rule fired.
"""

import random

from config import (
    HIGH, LOW,
    CLASSIFIER_LONG_RUN, CLASSIFIER_LONG_RUN_MIN_HISTORY,
    CLASSIFIER_SCORE_WINDOW, CLASSIFIER_HIGH_SCORE, CLASSIFIER_LOW_SCORE,
    CLASSIFIER_TOTAL_MARGIN, MIN_ROUNDS_FOR_VOTE,
)
from app.ml.streak_analyzer import get_outcomes

# Exact tail motifs → vote
THREE_MOTIFS = {
    (HIGH, LOW, HIGH): (LOW, '1-1 alternation High-Low-High'),
    (LOW, HIGH, LOW): (HIGH, '1-1 alternation Low-High-Low'),
}
FOUR_MOTIFS = {
    (HIGH, HIGH, LOW, LOW): (HIGH, '2-2 pairs High-High-Low-Low'),
    (LOW, LOW, HIGH, HIGH): (LOW, '2-2 pairs Low-Low-High-High'),
}


def random_outcome(rng):
    return HIGH if rng.random() < 0.5 else LOW


class RuleClassifier:
    """First matching rule wins:

      a) 3-motif alternation
      b) 4-motif pairs
      c) last 6 identical (needs 9+ rounds) → opposite
      d) trailing-5 average score > 10 → High, < 8 → Low
      e) trailing-5 majority by more than 1 → minority
      f) whole-history majority by more than 2 → minority
      g) random
    """

    name = 'classifier'

    def __init__(self, rng=None):
        self.round_history = []
        self.rng = rng or random.Random()

    def load_history(self, history):
        self.round_history = list(history)

    def _result(self, outcome, rule, rationale):
        return {'outcome': outcome, 'rule': rule, 'rationale': f'[Classifier] {rationale}'}

    def classify(self):
        """Return {'outcome', 'rule', 'rationale'}."""
        history = self.round_history
        if len(history) < MIN_ROUNDS_FOR_VOTE:
            return self._result(random_outcome(self.rng), 'random',
                                'insufficient history, random pick')

        last_three = tuple(get_outcomes(history, 3))
        if last_three in THREE_MOTIFS:
            outcome, label = THREE_MOTIFS[last_three]
            return self._result(outcome, 'motif3', f'{label} motif → next {outcome}')

        if len(history) >= 4:
            last_four = tuple(get_outcomes(history, 4))
            if last_four in FOUR_MOTIFS:
                outcome, label = FOUR_MOTIFS[last_four]
                return self._result(outcome, 'motif4', f'{label} motif → next {outcome}')

        if len(history) >= CLASSIFIER_LONG_RUN_MIN_HISTORY:
            tail = get_outcomes(history, CLASSIFIER_LONG_RUN)
            if all(o == HIGH for o in tail):
                return self._result(LOW, 'long_run',
                                    f'High run too long ({CLASSIFIER_LONG_RUN}) → Low')
            if all(o == LOW for o in tail):
                return self._result(HIGH, 'long_run',
                                    f'Low run too long ({CLASSIFIER_LONG_RUN}) → High')

        recent = history[-CLASSIFIER_SCORE_WINDOW:]
        scores = [r.get('score') or 0 for r in recent]
        average = sum(scores) / (len(scores) or 1)
        if average > CLASSIFIER_HIGH_SCORE:
            return self._result(HIGH, 'score_average',
                                f'high average score ({average:.1f}) → High')
        elif average < CLASSIFIER_LOW_SCORE:
            return self._result(LOW, 'score_average',
                                f'low average score ({average:.1f}) → Low')

        recent_outcomes = [r['outcome'] for r in recent]
        high_count = recent_outcomes.count(HIGH)
        low_count = recent_outcomes.count(LOW)
        if high_count > low_count + 1:
            return self._result(LOW, 'recent_majority',
                                f'High majority ({high_count}/{len(recent)}) → Low')
        elif low_count > high_count + 1:
            return self._result(HIGH, 'recent_majority',
                                f'Low majority ({low_count}/{len(recent)}) → High')

        outcomes = get_outcomes(history)
        total_high = outcomes.count(HIGH)
        total_low = outcomes.count(LOW)
        if total_high > total_low + CLASSIFIER_TOTAL_MARGIN:
            return self._result(LOW, 'total_majority', 'High leads overall → Low')
        elif total_low > total_high + CLASSIFIER_TOTAL_MARGIN:
            return self._result(HIGH, 'total_majority', 'Low leads overall → High')

        return self._result(random_outcome(self.rng), 'random', 'balanced history, random pick')
