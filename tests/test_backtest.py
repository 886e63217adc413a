"""
Tests for backtest_models.py: loading recorded history and replaying it.
"""
import json
import random
import sys
import os

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..')
sys.path.insert(0, PROJECT_ROOT)

from config import HIGH, LOW, LEDGER_MODELS
from backtest_models import load_rounds, load_userdata, run_backtest, print_report


def _rounds(n, seed=0):
    rng = random.Random(seed)
    rounds = []
    for i in range(n):
        score = rng.randint(3, 18)
        rounds.append({'id': i, 'outcome': HIGH if score >= 11 else LOW, 'score': score})
    return rounds


class TestBacktest:
    def test_load_rounds_skips_malformed(self, tmp_path):
        path = tmp_path / 'history.json'
        path.write_text(json.dumps({'data': [
            {'Phien': 1, 'Ket_qua': 'Tài', 'Tong': 12},
            {'Phien': 2, 'Ket_qua': 'Xỉu'},
        ]}), encoding='utf-8')
        rounds = load_rounds(str(path))
        assert rounds == [{'id': 1, 'outcome': HIGH, 'score': 12.0}]

    def test_bundled_userdata_loads(self):
        rounds = load_userdata()
        assert len(rounds) >= 20
        assert {r['outcome'] for r in rounds} <= {HIGH, LOW}

    def test_run_backtest(self):
        report = run_backtest(_rounds(80), warmup=10, seed=1)
        assert report['evaluated'] == 70
        assert 0.0 <= report['hit_rate'] <= 100.0
        assert set(report['models']) == set(LEDGER_MODELS)
        assert sum(count for count, _ in report['bands'].values()) == 70

    def test_run_backtest_is_reproducible(self):
        rounds = _rounds(50, seed=4)
        assert run_backtest(rounds, seed=9) == run_backtest(rounds, seed=9)

    def test_print_report(self, capsys):
        print_report(run_backtest(_rounds(30), warmup=10))
        assert 'ENSEMBLE BACKTEST' in capsys.readouterr().out
