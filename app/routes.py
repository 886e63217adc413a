"""
HTTP Routes - Prediction, stats and health endpoints.
"""

from flask import Blueprint, jsonify, request

from config import SERVICE_NAME
from app.feed.history_fetcher import UpstreamError, MalformedRoundError
from app.service import (
    session_mgr, predict_from_upstream, predict_from_rows, NoHistoryError,
)

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    return jsonify({
        'service': SERVICE_NAME,
        'endpoints': ['/health', '/api/predict', '/api/stats', '/api/reset'],
    })


@main_bp.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': SERVICE_NAME})


@main_bp.route('/api/predict', methods=['GET'])
def predict_upstream():
    session_id = request.args.get('session')
    try:
        return jsonify(predict_from_upstream(session_id))
    except NoHistoryError as e:
        return jsonify({'error': str(e)}), 404
    except UpstreamError as e:
        print(f"[API] Upstream error: {e}")
        return jsonify({'error': 'Upstream history source unavailable'}), 502
    except Exception as e:
        print(f"[API] ERROR: {e}")
        return jsonify({'error': 'Internal server error'}), 500


@main_bp.route('/api/predict', methods=['POST'])
def predict_supplied():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get('history'), list):
        return jsonify({'error': "Body must be JSON with a 'history' list"}), 400

    session_id = data.get('session') or request.args.get('session')
    try:
        return jsonify(predict_from_rows(data['history'], session_id))
    except MalformedRoundError as e:
        return jsonify({'error': f'Malformed round: {e}'}), 400
    except Exception as e:
        print(f"[API] ERROR: {e}")
        return jsonify({'error': 'Internal server error'}), 500


@main_bp.route('/api/stats')
def stats():
    session_id = request.args.get('session')
    return jsonify({
        'session': session_mgr.get_summary(session_id),
        'sessions': session_mgr.list_sessions(),
    })


@main_bp.route('/api/reset', methods=['POST'])
def reset():
    session_id = request.args.get('session')
    if session_id is None:
        data = request.get_json(silent=True) or {}
        session_id = data.get('session')
    cleared = session_mgr.reset_session(session_id)
    return jsonify({'status': 'reset', 'cleared': cleared})
