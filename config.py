"""
Configuration constants for the High/Low Ensemble Prediction Service.
Single source of truth for all tunable parameters.
"""

import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ─── Outcomes ────────────────────────────────────────────────────────
HIGH = 'High'
LOW = 'Low'
OUTCOMES = (HIGH, LOW)

# Vote direction codes stored in the model ledger
VOTE_NONE = 0                       # Sub-model refused to vote (too little data)
VOTE_LOW = 1
VOTE_HIGH = 2

# Upstream feeds label rounds in several ways, all mapped onto HIGH/LOW
OUTCOME_ALIASES = {
    'high': HIGH, 'tài': HIGH, 'tai': HIGH, 't': HIGH, 'big': HIGH,
    'low': LOW, 'xỉu': LOW, 'xiu': LOW, 'x': LOW, 'small': LOW,
}

# ─── Streak Analyzer ─────────────────────────────────────────────────
STREAK_WINDOW = 15                  # Trailing rounds for switches/balance
LONG_STREAK = 8                     # 0.6 + switches/15 + balance*0.15, cap 0.9
LONG_STREAK_CAP = 0.9
MEDIUM_STREAK = 5                   # 0.35 + switches/10 + balance*0.25, cap 0.85
MEDIUM_STREAK_CAP = 0.85
SHORT_STREAK = 3                    # Flat 0.3 when the table is choppy
SHORT_STREAK_SWITCHES = 7
SHORT_STREAK_BREAK_PROB = 0.3

# ─── Pattern Detectors ───────────────────────────────────────────────
MIN_ROUNDS_FOR_VOTE = 3             # Fewer rounds → VOTE_NONE
STREAK_BREAK_THRESHOLD = 0.75       # Short-circuit votes "break" above this
TREND_STREAK_TRIGGER = 5
PATTERN_STREAK_TRIGGER = 4          # Short / Mean / Switch detectors

TREND_WINDOW = 15
TREND_DECAY_BASE = 1.2              # weight = 1.2 ** index, oldest = index 0
TREND_MOTIF_WINDOW = 10
TREND_MOTIF_LENGTH = 4
TREND_MOTIF_MIN_COUNT = 3
TREND_IMBALANCE = 0.25

SHORT_WINDOW = 8
SHORT_MOTIF_LENGTH = 3
SHORT_MOTIF_MIN_COUNT = 2

MEAN_WINDOW = 12
MEAN_BALANCE_THRESHOLD = 0.35

SWITCH_WINDOW = 10
SWITCH_CHOPPY_COUNT = 6

# ─── Bridge-Break Heuristic ──────────────────────────────────────────
BRIDGE_WINDOW = 20
BRIDGE_MOTIF_LENGTH = 3
BRIDGE_MOTIF_MIN_COUNT = 3
BRIDGE_LONG_STREAK = 6              # +0.15, cap 0.9
BRIDGE_LONG_BOOST = 0.15
BRIDGE_LONG_CAP = 0.9
BRIDGE_VOLATILE_STREAK = 4          # +0.10 when score deviation > 3, cap 0.85
BRIDGE_DEVIATION_THRESHOLD = 3.0
BRIDGE_VOLATILE_BOOST = 0.10
BRIDGE_VOLATILE_CAP = 0.85
BRIDGE_MOTIF_TAIL = 5               # Last 5 must all match the streak outcome
BRIDGE_MOTIF_BOOST = 0.05
BRIDGE_MOTIF_CAP = 0.8
BRIDGE_DEFAULT_PENALTY = 0.15       # No signal: -0.15, floor 0.15
BRIDGE_DEFAULT_FLOOR = 0.15
BRIDGE_BREAK_THRESHOLD = 0.65

# ─── Rule-Based Classifier ───────────────────────────────────────────
CLASSIFIER_LONG_RUN = 6             # Last 6 identical...
CLASSIFIER_LONG_RUN_MIN_HISTORY = 9  # ...only once 9 rounds exist
CLASSIFIER_SCORE_WINDOW = 5
CLASSIFIER_HIGH_SCORE = 10.0
CLASSIFIER_LOW_SCORE = 8.0
CLASSIFIER_TOTAL_MARGIN = 2

# ─── Model Performance Tracker ───────────────────────────────────────
LEDGER_MODELS = ('trend', 'short', 'mean', 'switch', 'bridge')
PERFORMANCE_ROUNDS = 10             # Rolling window of resolved predictions
PERFORMANCE_MIN_MULTIPLIER = 0.5
PERFORMANCE_MAX_MULTIPLIER = 1.5

# ─── Ensemble Weights ────────────────────────────────────────────────
# Base weights are scaled by each model's performance multiplier.
# The classifier has no ledger, so its weight is never scaled.
BASE_WEIGHTS = {
    'trend': 0.2,
    'short': 0.2,
    'mean': 0.25,
    'switch': 0.2,
    'bridge': 0.15,
    'classifier': 0.2,
}
MIN_HISTORY_FOR_DETECTORS = 5       # Below this, detectors repeat the last outcome

BAD_PATTERN_SWITCHES = 9            # Trailing-15 switches that mark a choppy table
BAD_PATTERN_STREAK = 10
BAD_PATTERN_DAMPEN = 0.8

IMBALANCE_WINDOW = 10
IMBALANCE_HIGH_COUNT = 7            # >= 7 High in last 10 → +0.15 High
IMBALANCE_LOW_COUNT = 3             # <= 3 High in last 10 → +0.15 Low
IMBALANCE_BONUS = 0.15

BRIDGE_BOOST_THRESHOLD = 0.65
BRIDGE_BOOST = 0.2

# ─── Sessions ────────────────────────────────────────────────────────
DEFAULT_SESSION_ID = 'default'
SESSION_PREDICTION_LOG = 50         # Recent predictions kept per session

# ─── Upstream Feed ───────────────────────────────────────────────────
UPSTREAM_URL = os.environ.get(
    'UPSTREAM_URL', 'https://binhtool90-hitclub-predict.onrender.com/api/taixiu')
UPSTREAM_TIMEOUT = float(os.environ.get('UPSTREAM_TIMEOUT', '15'))
UPSTREAM_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; hilo-ensemble/1.0)',
    'Accept': 'application/json',
    'Cache-Control': 'no-cache',
}

# ─── File Paths ──────────────────────────────────────────────────────
USERDATA_DIR = os.path.join(BASE_DIR, 'userdata')

# ─── Server Settings ─────────────────────────────────────────────────
HOST = '0.0.0.0'
PORT = int(os.environ.get('PORT', '3000'))
DEBUG = False
SECRET_KEY = os.environ.get('SECRET_KEY', 'hilo-ensemble-prediction-service')
SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')
SERVICE_NAME = 'High/Low Ensemble Predictor'


def opposite_outcome(outcome):
    return LOW if outcome == HIGH else HIGH


def outcome_to_vote(outcome):
    if outcome == HIGH:
        return VOTE_HIGH
    if outcome == LOW:
        return VOTE_LOW
    return VOTE_NONE


def vote_to_outcome(vote):
    if vote == VOTE_HIGH:
        return HIGH
    if vote == VOTE_LOW:
        return LOW
    return None
