import os
import sys

# The eventlet server loop is only needed for run.py; tests use plain threads
os.environ.setdefault('SOCKETIO_ASYNC_MODE', 'threading')

PROJECT_ROOT = os.path.join(os.path.dirname(__file__), '..')
sys.path.insert(0, PROJECT_ROOT)
