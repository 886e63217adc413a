"""
Flask Application Factory with SocketIO and CORS initialization.
"""

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO

from config import SECRET_KEY, SOCKETIO_ASYNC_MODE

socketio = SocketIO()


def create_app():
    app = Flask(__name__)

    app.config['SECRET_KEY'] = SECRET_KEY
    app.json.ensure_ascii = False

    CORS(app)

    from app.routes import main_bp
    app.register_blueprint(main_bp)

    socketio.init_app(app, cors_allowed_origins="*", async_mode=SOCKETIO_ASYNC_MODE)

    from app import socketio_handlers  # noqa: F401

    @app.after_request
    def add_no_cache_headers(response):
        """Predictions change every round; never let clients cache them."""
        if response.content_type and 'application/json' in response.content_type:
            response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
            response.headers['Pragma'] = 'no-cache'
            response.headers['Expires'] = '0'
        return response

    return app
