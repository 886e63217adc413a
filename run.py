#!/usr/bin/env python3
"""
High/Low Ensemble Prediction Service - Entry Point
Start the Flask + SocketIO server.
"""

import os
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import HOST, PORT, DEBUG, UPSTREAM_URL, SOCKETIO_ASYNC_MODE, SERVICE_NAME

from app import create_app, socketio

app = create_app()

if __name__ == '__main__':
    print("=" * 60)
    print(f"  {SERVICE_NAME} v1.0")
    print("=" * 60)
    print(f"  Server:    http://localhost:{PORT}")
    print(f"  Upstream:  {UPSTREAM_URL}")
    print(f"  Async:     {SOCKETIO_ASYNC_MODE}")
    print(f"  Debug:     {DEBUG}")
    print("=" * 60)
    print()

    socketio.run(app, host=HOST, port=PORT, debug=DEBUG, use_reloader=False)
