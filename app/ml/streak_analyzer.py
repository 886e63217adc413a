"""
Streak Analyzer — Current run length and break probability.

Counts how many trailing rounds share the last outcome, then estimates how
likely that run is to end from two table statistics over the trailing 15
rounds:
  - switches: adjacent pairs whose outcomes differ
  - balance:  |High - Low| / window size

Every other sub-model starts from this analysis, so the ensemble runs it
once per prediction and hands the result down.
"""

from config import (
    HIGH, LOW,
    STREAK_WINDOW,
    LONG_STREAK, LONG_STREAK_CAP,
    MEDIUM_STREAK, MEDIUM_STREAK_CAP,
    SHORT_STREAK, SHORT_STREAK_SWITCHES, SHORT_STREAK_BREAK_PROB,
)


def get_outcomes(history, window=None):
    """Outcome strings of the trailing `window` rounds (all rounds if None)."""
    rounds = history[-window:] if window else history
    return [r['outcome'] for r in rounds]


def count_switches(outcomes):
    """Number of adjacent pairs whose outcomes differ."""
    return sum(1 for i in range(1, len(outcomes)) if outcomes[i] != outcomes[i - 1])


class StreakAnalyzer:
    """Measures the trailing run and turns it into a break probability.

    Thresholds are empirical and first-match-wins:
      streak >= 8 → 0.6 + switches/15 + balance*0.15   (cap 0.9)
      streak >= 5 → 0.35 + switches/10 + balance*0.25  (cap 0.85)
      streak >= 3 and switches >= 7 → 0.3
      otherwise   → 0
    """

    def __init__(self):
        self.round_history = []

    def load_history(self, history):
        self.round_history = list(history)

    def get_streak(self):
        """Return (streak_length, streak_outcome). (0, None) for no data."""
        if not self.round_history:
            return 0, None

        current = self.round_history[-1]['outcome']
        streak = 1
        for i in range(len(self.round_history) - 2, -1, -1):
            if self.round_history[i]['outcome'] == current:
                streak += 1
            else:
                break
        return streak, current

    def analyze(self):
        """Full streak state used by the detectors and the bridge heuristic.

        Returns:
            dict with 'streak', 'outcome', 'break_prob', 'switches', 'balance'
        """
        streak, current = self.get_streak()
        if streak == 0:
            return {
                'streak': 0,
                'outcome': None,
                'break_prob': 0.0,
                'switches': 0,
                'balance': 0.0,
            }

        recent = get_outcomes(self.round_history, STREAK_WINDOW)
        switches = count_switches(recent)
        high_count = recent.count(HIGH)
        low_count = recent.count(LOW)
        balance = abs(high_count - low_count) / len(recent)

        if streak >= LONG_STREAK:
            break_prob = min(0.6 + switches / 15 + balance * 0.15, LONG_STREAK_CAP)
        elif streak >= MEDIUM_STREAK:
            break_prob = min(0.35 + switches / 10 + balance * 0.25, MEDIUM_STREAK_CAP)
        elif streak >= SHORT_STREAK and switches >= SHORT_STREAK_SWITCHES:
            break_prob = SHORT_STREAK_BREAK_PROB
        else:
            break_prob = 0.0

        return {
            'streak': streak,
            'outcome': current,
            'break_prob': break_prob,
            'switches': switches,
            'balance': balance,
        }


def analyze_streak(history):
    analyzer = StreakAnalyzer()
    analyzer.load_history(history)
    return analyzer.analyze()
