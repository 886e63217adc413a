"""
SocketIO Event Handlers - Real-time predictions for connected dashboards.
"""

from flask_socketio import emit

from app import socketio
from config import SERVICE_NAME
from app.feed.history_fetcher import UpstreamError, MalformedRoundError
from app.service import (
    session_mgr, predict_from_upstream, predict_from_rows, NoHistoryError,
)


@socketio.on('connect')
def handle_connect():
    emit('connected', {
        'message': f'Connected to {SERVICE_NAME}',
        'sessions': session_mgr.list_sessions(),
    })


@socketio.on('request_prediction')
def handle_request_prediction(data=None):
    """Predict from a supplied history, or from upstream when none is given."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        emit('error', {'message': 'Payload must be an object'})
        return

    session_id = data.get('session')
    history = data.get('history')

    try:
        if history is None:
            result = predict_from_upstream(session_id)
        elif isinstance(history, list):
            result = predict_from_rows(history, session_id)
        else:
            emit('error', {'message': "'history' must be a list of rounds"})
            return
    except NoHistoryError as e:
        emit('error', {'message': str(e)})
        return
    except UpstreamError as e:
        print(f"[SocketIO] Upstream error: {e}")
        emit('error', {'message': 'Upstream history source unavailable'})
        return
    except MalformedRoundError as e:
        emit('error', {'message': f'Malformed round: {e}'})
        return
    except Exception as e:
        print(f"[SocketIO] ERROR: {e}")
        emit('error', {'message': 'Internal server error'})
        return

    emit('prediction_result', result)


@socketio.on('get_stats')
def handle_get_stats(data=None):
    session_id = data.get('session') if isinstance(data, dict) else None
    emit('stats_update', session_mgr.get_summary(session_id))
