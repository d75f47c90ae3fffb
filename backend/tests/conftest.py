import os
import sys
from collections import namedtuple

import pytest

# Ensure the backend root (containing the `gamehub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gamehub import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:5173']
    NIM_PILE_SIZE = 21
    NIM_MAX_TAKE = 3
    NIM_LAST_TAKE_WINS = False
    FINISHED_GAME_TTL_SEC = 30
    IDLE_GAME_TTL_SEC = 0
    GC_INTERVAL_SEC = 0


Player = namedtuple('Player', ['name', 'http', 'sio'])


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gamehub.models  # noqa: F401
        db.create_all()
    # Requests and socket events each push their own context, so `g` (and
    # Flask-Login's cached user) is not shared between players
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def hub(flask_app):
    return flask_app.extensions['gamehub']


@pytest.fixture()
def make_player(flask_app):
    """Register a user and, optionally, open a Socket.IO connection for them.

    Each player gets its own Flask test client so the login cookie is
    carried into its socket connection.
    """
    sockets = []

    def _make(username, connect=True):
        http = flask_app.test_client()
        res = http.post('/register', json={'username': username, 'password': 'password'})
        assert res.status_code == 201
        sio = None
        if connect:
            sio = socketio.test_client(flask_app, namespace='/ws', flask_test_client=http)
            sockets.append(sio)
            assert sio.is_connected('/ws')
        return Player(username, http, sio)

    yield _make
    for sio in sockets:
        try:
            if sio.is_connected('/ws'):
                sio.disconnect(namespace='/ws')
        except Exception:
            pass


def drain(sio):
    """Empty a test client's queue, returning (event name, payload) pairs."""
    return [(pkt['name'], pkt['args'][0] if pkt['args'] else None) for pkt in sio.get_received('/ws')]


def payloads(events, name):
    return [payload for event, payload in events if event == name]
