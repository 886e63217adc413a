"""
Session Manager - Owns one model ledger per logical game session, keeps
prediction hit/miss stats, and serializes predictions per session.

Everything lives in memory: a restart starts every session from an empty
ledger, which only resets the short-term accuracy weighting.
"""

import threading
from collections import deque
from datetime import datetime

from config import DEFAULT_SESSION_ID, SESSION_PREDICTION_LOG
from app.ml.ensemble import EnsemblePredictor


class SessionManager:
    def __init__(self):
        self.sessions = {}
        self._registry_lock = threading.Lock()

    def _new_session(self, session_id):
        now = datetime.now().isoformat()
        return {
            'id': session_id,
            'created_at': now,
            'updated_at': now,
            'ledger': {},
            'lock': threading.Lock(),
            'pending': None,
            'predictions': deque(maxlen=SESSION_PREDICTION_LOG),
            'stats': {
                'total_predictions': 0,
                'resolved': 0,
                'hits': 0,
                'misses': 0,
            },
        }

    def get_or_create(self, session_id=None):
        session_id = session_id or DEFAULT_SESSION_ID
        with self._registry_lock:
            if session_id not in self.sessions:
                self.sessions[session_id] = self._new_session(session_id)
                print(f"[Session] Created session '{session_id}'")
            return self.sessions[session_id]

    def _resolve_pending(self, session, history):
        """Score the previous prediction once its round shows up in history."""
        pending = session['pending']
        if not pending:
            return

        actual = None
        for round_ in reversed(history):
            if round_['id'] == pending['round_id']:
                actual = round_['outcome']
                break
        if actual is None:
            return

        hit = actual == pending['prediction']
        stats = session['stats']
        stats['resolved'] += 1
        if hit:
            stats['hits'] += 1
        else:
            stats['misses'] += 1

        pending['actual'] = actual
        pending['result'] = 'HIT' if hit else 'MISS'
        session['pending'] = None
        print(f"[Session] Round {pending['round_id']}: {pending['result']} "
              f"(predicted {pending['prediction']}, actual {actual})")

    def run_prediction(self, history, session_id=None, rng=None):
        """Predict the next round using (and updating) this session's ledger.

        The session lock is held for the whole read-modify-write of the
        ledger, so one prediction per session is in flight at a time.

        Returns:
            prediction dict from EnsemblePredictor.predict
        """
        session = self.get_or_create(session_id)
        with session['lock']:
            self._resolve_pending(session, history)

            prediction, session['ledger'] = EnsemblePredictor(rng=rng).predict(
                history, session['ledger'])

            session['stats']['total_predictions'] += 1
            session['updated_at'] = datetime.now().isoformat()

            if history:
                next_round = history[-1]['id'] + 1
                # Re-predicting the same round replaces the pending entry
                if session['pending'] and session['pending']['round_id'] == next_round:
                    session['pending'].update({
                        'prediction': prediction['outcome'],
                        'confidence': prediction['confidence'],
                    })
                else:
                    entry = {
                        'round_id': next_round,
                        'prediction': prediction['outcome'],
                        'confidence': prediction['confidence'],
                        'result': 'PENDING',
                    }
                    session['pending'] = entry
                    session['predictions'].appendleft(entry)

            return prediction

    def get_summary(self, session_id=None):
        """Stats for a session. Unknown ids get an empty summary and are not registered."""
        session_id = session_id or DEFAULT_SESSION_ID
        with self._registry_lock:
            session = self.sessions.get(session_id)
        if session is None:
            session = self._new_session(session_id)

        with session['lock']:
            stats = dict(session['stats'])
            resolved = stats['resolved']
            stats['accuracy'] = round(stats['hits'] / resolved * 100, 1) if resolved else 0.0
            return {
                'id': session['id'],
                'created_at': session['created_at'],
                'updated_at': session['updated_at'],
                'stats': stats,
                'ledger_size': {name: len(votes) for name, votes in session['ledger'].items()},
                'predictions': [dict(p) for p in session['predictions']],
            }

    def reset_session(self, session_id=None):
        session_id = session_id or DEFAULT_SESSION_ID
        with self._registry_lock:
            existed = self.sessions.pop(session_id, None) is not None
        print(f"[RESET] Cleared session '{session_id}'")
        return existed

    def list_sessions(self):
        with self._registry_lock:
            return [
                {
                    'id': s['id'],
                    'created_at': s['created_at'],
                    'total_predictions': s['stats']['total_predictions'],
                }
                for s in self.sessions.values()
            ]
