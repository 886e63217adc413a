"""
Bridge-Break Heuristic — Refines the streak break probability with score
dispersion and motif repetition, and votes on whether the current run
("bridge") is about to break.
"""

import numpy as np

from config import (
    HIGH, VOTE_NONE, VOTE_LOW, VOTE_HIGH,
    MIN_ROUNDS_FOR_VOTE,
    BRIDGE_WINDOW, BRIDGE_MOTIF_LENGTH, BRIDGE_MOTIF_MIN_COUNT,
    BRIDGE_LONG_STREAK, BRIDGE_LONG_BOOST, BRIDGE_LONG_CAP,
    BRIDGE_VOLATILE_STREAK, BRIDGE_DEVIATION_THRESHOLD,
    BRIDGE_VOLATILE_BOOST, BRIDGE_VOLATILE_CAP,
    BRIDGE_MOTIF_TAIL, BRIDGE_MOTIF_BOOST, BRIDGE_MOTIF_CAP,
    BRIDGE_DEFAULT_PENALTY, BRIDGE_DEFAULT_FLOOR,
    BRIDGE_BREAK_THRESHOLD,
)
from app.ml.streak_analyzer import StreakAnalyzer, get_outcomes
from app.ml.pattern_detector import most_frequent_motif


def score_deviation(history, window=BRIDGE_WINDOW):
    """Mean absolute deviation of the trailing scores from their mean.

    Missing scores count as 0.
    """
    recent = history[-window:]
    if not recent:
        return 0.0
    scores = np.array([r.get('score') or 0 for r in recent], dtype=float)
    return float(np.mean(np.abs(scores - scores.mean())))


class BridgeBreakHeuristic:
    """Priority rules, first match wins:

      streak >= 6                       → +0.15 (cap 0.9)
      streak >= 4 and deviation > 3     → +0.10 (cap 0.85)
      repeating 3-motif, last 5 = streak → +0.05 (cap 0.8)
      otherwise                         → -0.15 (floor 0.15)

    An adjusted probability above 0.65 votes for the break.
    """

    name = 'bridge'

    def __init__(self):
        self.round_history = []

    def load_history(self, history):
        self.round_history = list(history)

    def vote(self, streak_state=None):
        """Return {'direction', 'break_prob', 'rationale'}."""
        if len(self.round_history) < MIN_ROUNDS_FOR_VOTE:
            return {
                'direction': VOTE_NONE,
                'break_prob': 0.0,
                'rationale': '[Bridge] insufficient data to judge a break',
            }

        if streak_state is None:
            analyzer = StreakAnalyzer()
            analyzer.load_history(self.round_history)
            streak_state = analyzer.analyze()

        streak = streak_state['streak']
        current = streak_state['outcome']
        prob = streak_state['break_prob']

        recent = get_outcomes(self.round_history, BRIDGE_WINDOW)
        deviation = score_deviation(self.round_history)
        motif, motif_count = most_frequent_motif(recent, BRIDGE_MOTIF_LENGTH)
        is_repeating = motif is not None and motif_count >= BRIDGE_MOTIF_MIN_COUNT
        tail = recent[-BRIDGE_MOTIF_TAIL:]

        if streak >= BRIDGE_LONG_STREAK:
            prob = min(prob + BRIDGE_LONG_BOOST, BRIDGE_LONG_CAP)
            rationale = f'[Bridge] streak of {streak} {current} is long, break likely'
        elif streak >= BRIDGE_VOLATILE_STREAK and deviation > BRIDGE_DEVIATION_THRESHOLD:
            prob = min(prob + BRIDGE_VOLATILE_BOOST, BRIDGE_VOLATILE_CAP)
            rationale = f'[Bridge] large score deviation ({deviation:.1f}), break chance rising'
        elif is_repeating and all(o == current for o in tail):
            prob = min(prob + BRIDGE_MOTIF_BOOST, BRIDGE_MOTIF_CAP)
            rationale = f'[Bridge] repeating motif {",".join(motif)} detected, break possible'
        else:
            prob = max(prob - BRIDGE_DEFAULT_PENALTY, BRIDGE_DEFAULT_FLOOR)
            rationale = '[Bridge] no strong break signal, follow the streak'

        if prob > BRIDGE_BREAK_THRESHOLD:
            direction = VOTE_LOW if current == HIGH else VOTE_HIGH
        else:
            direction = VOTE_HIGH if current == HIGH else VOTE_LOW

        return {
            'direction': direction,
            'break_prob': prob,
            'rationale': rationale,
        }
