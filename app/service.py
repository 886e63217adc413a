"""
Prediction service shared by the HTTP routes and the SocketIO handlers:
gets the history, runs the engine under the session's ledger and shapes
the response.
"""

from app.feed.history_fetcher import fetch_history, normalize_round
from app.session.session_manager import SessionManager

session_mgr = SessionManager()


class NoHistoryError(Exception):
    """Upstream returned no rounds at all."""


def format_prediction(history, prediction, session_id):
    """Map an engine prediction onto the public response shape."""
    last = history[-1] if history else None
    bridge = prediction.get('bridge')
    return {
        'session': session_id,
        'previous_round': last['id'] if last else None,
        'total': last['score'] if last else None,
        'result': last['outcome'] if last else None,
        'next_round': last['id'] + 1 if last else None,
        'prediction': prediction['outcome'],
        'confidence': prediction['confidence'],
        'explanation': bridge['rationale'] if bridge else prediction['rationale'],
        'rationale': prediction['rationale'],
        'high_weight': prediction['high_weight'],
        'low_weight': prediction['low_weight'],
        'break_prob': round(bridge['break_prob'], 3) if bridge else 0.0,
        'votes': prediction['votes'],
    }


def predict_from_upstream(session_id=None, rng=None):
    """Fetch the upstream history and predict its next round.

    Raises:
        UpstreamError: upstream unreachable or unusable
        NoHistoryError: upstream returned an empty history
    """
    history = fetch_history()
    if not history:
        raise NoHistoryError('No history available from upstream')
    return predict_from_rows(history, session_id, rng=rng, normalized=True)


def predict_from_rows(rows, session_id=None, rng=None, normalized=False):
    """Predict from a caller-supplied history.

    Raises:
        MalformedRoundError: a row is missing its id, outcome or score
    """
    history = list(rows) if normalized else [normalize_round(r) for r in rows]
    session = session_mgr.get_or_create(session_id)
    prediction = session_mgr.run_prediction(history, session['id'], rng=rng)
    return format_prediction(history, prediction, session['id'])
