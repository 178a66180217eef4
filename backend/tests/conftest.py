import os
import sys
import pytest

# Ensure the backend root (containing the `golflive` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from golflive import create_app, db, socketio, get_engine


TEAMS = {
    'teams': {
        'green': {'name': 'Green', 'color': '#2e7d32', 'players': ['Alice', 'Bob']},
        'red': {'name': 'Red', 'color': '#c62828', 'players': ['Carl', 'Dana']},
    }
}


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SNAPSHOT_BACKEND = 'sql'
    TEAMS = TEAMS
    ACTIVE_TOURNAMENT_NAME = None
    AUTO_REGISTER_PLAYERS = True
    DEFAULT_TOTAL_ROUNDS = 1


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def engine(flask_app):
    return get_engine(flask_app)


@pytest.fixture()
def tournament(engine):
    """Four scratch players on a par-72 course, two rounds."""
    return engine.create_tournament(
        'Spring Open', course='Test Links 72 113',
        players=['Alice 0', 'Bob 0', 'Carl 0', 'Dana 0'], total_rounds=2,
    )


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
