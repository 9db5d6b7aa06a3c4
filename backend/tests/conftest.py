import os
import sys
import pytest

# Ensure the backend root (containing the `improvboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from improvboard import create_app, db, socketio
from improvboard.services import Board


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    LOGIN_DISABLED = True
    CORS_ORIGINS = ['http://localhost:5173']
    LOG_LEVEL = 'INFO'
    PERSIST_STATE = True
    LOAD_STATE_ON_BOOT = False
    SEED_DEFAULT_TEMPLATES = False
    CLOCK_TICK_SEC = 0
    MATCH_TIMER_TICK_MS = 100
    REPORT_DIR = None
    INTEROP_SOURCE = 'mon-pacing'
    INTEROP_AUTH_REQUIRED = False
    INTEROP_TOKEN_MAX_AGE_SEC = 3600
    PUBLIC_URL = None
    DEFAULT_OPERATOR = 'referee'
    DEFAULT_OPERATOR_PASSWORD = 'password'


class Recorder:
    """Subscriber that keeps every published (event, payload, room)."""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload, room=None):
        self.events.append((event, payload, room))

    def named(self, event):
        return [payload for name, payload, _ in self.events if name == event]

    def clear(self):
        self.events.clear()


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TaskCollector:
    """Spawn function that queues background work instead of running it."""

    def __init__(self):
        self.tasks = []

    def __call__(self, fn, *args):
        self.tasks.append((fn, args))

    def run(self, index=-1):
        fn, args = self.tasks[index]
        return fn(*args)


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def tasks():
    return TaskCollector()


@pytest.fixture()
def board(recorder, fake_clock, tasks):
    b = Board(clock=fake_clock, match_spawn=tasks, sleep=lambda seconds: fake_clock.advance(seconds))
    b.broadcaster.subscribe(recorder)
    return b


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import improvboard.models  # noqa: F401
        db.create_all()
        yield application
        application.extensions['improvboard'].matches.shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
