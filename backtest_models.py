#!/usr/bin/env python3
"""
Ensemble Backtester — Replay a recorded history through the engine.

This is a STANDALONE script. It does NOT touch the running service.
It feeds the history one round at a time, predicting each next round with
a single ledger carried through the whole replay, exactly as a live
session would.

Usage:
    python backtest_models.py                 # all userdata/*.json files
    python backtest_models.py history.json    # one file
"""

import sys
import os
import json
import random
from collections import defaultdict

import numpy as np

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import USERDATA_DIR, LEDGER_MODELS, vote_to_outcome
from app.feed.history_fetcher import extract_rows, normalize_history
from app.ml.ensemble import EnsemblePredictor

CONFIDENCE_BANDS = [(0, 55), (55, 65), (65, 75), (75, 101)]
ROLLING_WINDOW = 100


def load_rounds(path):
    with open(path, encoding='utf-8') as f:
        history, skipped = normalize_history(extract_rows(json.load(f)))
    if skipped:
        print(f"  {os.path.basename(path)}: skipped {skipped} malformed rounds")
    return history


def load_userdata(paths=None):
    """Load rounds from the given files, or from every userdata/*.json."""
    if not paths:
        if not os.path.isdir(USERDATA_DIR):
            return []
        paths = [os.path.join(USERDATA_DIR, name)
                 for name in sorted(os.listdir(USERDATA_DIR)) if name.endswith('.json')]

    rounds = []
    for path in paths:
        rounds.extend(load_rounds(path))
    return rounds


def run_backtest(rounds, warmup=10, seed=0):
    """Predict every round after `warmup` and score the predictions.

    Returns:
        dict with overall, per-model and per-confidence-band hit rates
    """
    predictor = EnsemblePredictor(rng=random.Random(seed), verbose=False)
    ledger = {}

    hits = []
    band_hits = defaultdict(list)
    model_hits = {name: [] for name in LEDGER_MODELS}

    for i in range(warmup, len(rounds)):
        history = rounds[:i]
        actual = rounds[i]['outcome']

        prediction, ledger = predictor.predict(history, ledger)

        hit = prediction['outcome'] == actual
        hits.append(1 if hit else 0)

        for lo, hi in CONFIDENCE_BANDS:
            if lo <= prediction['confidence'] < hi:
                band_hits[(lo, hi)].append(1 if hit else 0)
                break

        for name in LEDGER_MODELS:
            voted = vote_to_outcome(ledger[name].get(history[-1]['id']))
            if voted is not None:
                model_hits[name].append(1 if voted == actual else 0)

    def rate(values):
        return float(np.mean(values) * 100) if values else 0.0

    return {
        'evaluated': len(hits),
        'hit_rate': rate(hits),
        'rolling_rate': rate(hits[-ROLLING_WINDOW:]),
        'models': {name: (len(v), rate(v)) for name, v in model_hits.items()},
        'bands': {band: (len(v), rate(v)) for band, v in band_hits.items()},
    }


def print_report(report):
    print(f"\n{'='*60}")
    print(f"  ENSEMBLE BACKTEST")
    print(f"  Evaluated: {report['evaluated']} rounds | Random baseline: 50.0%")
    print(f"{'='*60}")
    print(f"  Overall hit rate:   {report['hit_rate']:.1f}%")
    print(f"  Last {ROLLING_WINDOW} rounds:     {report['rolling_rate']:.1f}%")

    print(f"\n  {'Model':<12} {'Votes':>6} {'Rate':>8} {'vs Random':>10}")
    print(f"  {'-'*38}")
    for name, (count, model_rate) in report['models'].items():
        print(f"  {name:<12} {count:>6} {model_rate:>7.1f}% {model_rate - 50:>+9.1f}%")

    print(f"\n  {'Confidence':<12} {'Count':>6} {'Rate':>8}")
    print(f"  {'-'*28}")
    for lo, hi in CONFIDENCE_BANDS:
        count, band_rate = report['bands'].get((lo, hi), (0, 0.0))
        label = f"{lo}-{min(hi, 100)}%"
        print(f"  {label:<12} {count:>6} {band_rate:>7.1f}%")
    print(f"{'='*60}\n")


if __name__ == '__main__':
    rounds = load_userdata(sys.argv[1:])
    if len(rounds) < 20:
        print("ERROR: Need at least 20 rounds (userdata/*.json or a path argument)")
        sys.exit(1)

    print(f"Loaded {len(rounds)} rounds")
    print_report(run_backtest(rounds))
