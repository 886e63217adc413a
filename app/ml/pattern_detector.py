"""
Pattern Detectors — Four independent directional voters over the outcome
history: Trend, Short-Pattern, Mean-Deviation and Recent-Switch.

Each detector looks at a different trailing window and statistic, and all
of them share two rules:
  - fewer than 3 rounds → VOTE_NONE
  - a long enough current streak decides the vote on its own: break
    probability above 0.75 votes against the streak, anything lower
    votes for it to continue
"""

from collections import Counter

import numpy as np

from config import (
    HIGH, VOTE_NONE, VOTE_LOW, VOTE_HIGH,
    MIN_ROUNDS_FOR_VOTE, STREAK_BREAK_THRESHOLD,
    TREND_STREAK_TRIGGER, PATTERN_STREAK_TRIGGER,
    TREND_WINDOW, TREND_DECAY_BASE, TREND_MOTIF_WINDOW, TREND_MOTIF_LENGTH,
    TREND_MOTIF_MIN_COUNT, TREND_IMBALANCE,
    SHORT_WINDOW, SHORT_MOTIF_LENGTH, SHORT_MOTIF_MIN_COUNT,
    MEAN_WINDOW, MEAN_BALANCE_THRESHOLD,
    SWITCH_WINDOW, SWITCH_CHOPPY_COUNT,
    opposite_outcome, outcome_to_vote,
)
from app.ml.streak_analyzer import StreakAnalyzer, get_outcomes, count_switches


def most_frequent_motif(outcomes, length):
    """Most common run of `length` consecutive outcomes.

    Ties go to the motif seen first. Returns (motif_tuple, count), or
    (None, 0) when the sequence is shorter than `length`.
    """
    if len(outcomes) < length:
        return None, 0

    counts = Counter(
        tuple(outcomes[i:i + length]) for i in range(len(outcomes) - length + 1)
    )
    motif, count = counts.most_common(1)[0]
    return motif, count


def vote_against(outcome):
    """Vote for the opposite of `outcome`."""
    return outcome_to_vote(opposite_outcome(outcome))


def streak_vote(streak_state):
    """Break → vote against the streak outcome, otherwise vote with it."""
    if streak_state['break_prob'] > STREAK_BREAK_THRESHOLD:
        return VOTE_LOW if streak_state['outcome'] == HIGH else VOTE_HIGH
    return VOTE_HIGH if streak_state['outcome'] == HIGH else VOTE_LOW


def motif_vote(motif, last_outcome):
    """Vote from a recurring motif.

    A motif ending on something other than the latest outcome votes High,
    one ending on the latest outcome votes Low.
    """
    return VOTE_HIGH if motif[-1] != last_outcome else VOTE_LOW


class BaseDetector:
    """Common guard and streak short-circuit for all pattern detectors."""

    name = None
    streak_trigger = PATTERN_STREAK_TRIGGER

    def __init__(self):
        self.round_history = []

    def load_history(self, history):
        self.round_history = list(history)

    def vote(self, streak_state=None):
        """Return VOTE_NONE, VOTE_LOW or VOTE_HIGH for the next round.

        Args:
            streak_state: output of StreakAnalyzer.analyze() for the same
                history. Computed here when not supplied.
        """
        if len(self.round_history) < MIN_ROUNDS_FOR_VOTE:
            return VOTE_NONE

        if streak_state is None:
            analyzer = StreakAnalyzer()
            analyzer.load_history(self.round_history)
            streak_state = analyzer.analyze()

        if streak_state['streak'] >= self.streak_trigger:
            return streak_vote(streak_state)

        return self._vote_from_window()

    def _vote_from_window(self):
        raise NotImplementedError


class TrendDetector(BaseDetector):
    """Recency-weighted trend with a 4-motif override."""

    name = 'trend'
    streak_trigger = TREND_STREAK_TRIGGER

    def weighted_scores(self):
        """(high_score, low_score) with weight 1.2**i, oldest round i=0."""
        recent = get_outcomes(self.round_history, TREND_WINDOW)
        weights = np.power(TREND_DECAY_BASE, np.arange(len(recent)))
        is_high = np.array([o == HIGH for o in recent], dtype=bool)
        high_score = float(weights[is_high].sum())
        low_score = float(weights[~is_high].sum())
        return high_score, low_score

    def _vote_from_window(self):
        recent = get_outcomes(self.round_history, TREND_WINDOW)
        high_score, low_score = self.weighted_scores()
        total = high_score + low_score

        recent_ten = get_outcomes(self.round_history, TREND_MOTIF_WINDOW)
        motif, count = most_frequent_motif(recent_ten, TREND_MOTIF_LENGTH)

        if motif is not None and count >= TREND_MOTIF_MIN_COUNT:
            return motif_vote(motif, recent_ten[-1])
        elif total > 0 and abs(high_score - low_score) / total >= TREND_IMBALANCE:
            return VOTE_HIGH if high_score > low_score else VOTE_LOW

        return vote_against(recent[-1])


class ShortPatternDetector(BaseDetector):
    """3-motif repetition over the last 8 rounds."""

    name = 'short'

    def _vote_from_window(self):
        recent = get_outcomes(self.round_history, SHORT_WINDOW)
        motif, count = most_frequent_motif(recent, SHORT_MOTIF_LENGTH)

        if motif is not None and count >= SHORT_MOTIF_MIN_COUNT:
            return motif_vote(motif, recent[-1])

        return vote_against(recent[-1])


class MeanDeviationDetector(BaseDetector):
    """Mean reversion: a lopsided last 12 rounds votes for the minority."""

    name = 'mean'

    def _vote_from_window(self):
        recent = get_outcomes(self.round_history, MEAN_WINDOW)
        high_count = recent.count(HIGH)
        low_count = len(recent) - high_count
        balance = abs(high_count - low_count) / len(recent)

        if balance < MEAN_BALANCE_THRESHOLD:
            return vote_against(recent[-1])

        return VOTE_HIGH if low_count > high_count else VOTE_LOW


class RecentSwitchDetector(BaseDetector):
    """Switch-frequency detector over the last 10 rounds.

    The choppy and the calm branch currently resolve to the same vote
    (against the last outcome).
    """

    name = 'switch'

    def _vote_from_window(self):
        recent = get_outcomes(self.round_history, SWITCH_WINDOW)
        switches = count_switches(recent)

        if switches >= SWITCH_CHOPPY_COUNT:
            return vote_against(recent[-1])
        return vote_against(recent[-1])


DETECTORS = (TrendDetector, ShortPatternDetector, MeanDeviationDetector, RecentSwitchDetector)
