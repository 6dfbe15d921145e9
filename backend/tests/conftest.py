import os
import sys
import random
import pytest

# Ensure the backend root (containing the `tambola` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tambola import create_app, db, socketio
from tambola.services.game.pool import TicketPool
from tambola.services.game.scheduler import DrawTimer
from tambola.services.game.service import GameService


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    LOG_LEVEL = 'DEBUG'
    ROOM_CODE_LENGTH = 6
    MAX_TICKETS_PER_PLAYER = 3
    DEFAULT_DRAW_INTERVAL_SEC = 5
    MIN_DRAW_INTERVAL_SEC = 1
    GENERATOR_MAX_ATTEMPTS = 10
    POOL_AUTOSEED = 0
    RETAIN_DISCONNECTED_PLAYERS = True


class RecordingBroadcaster:
    """Collects events instead of emitting them."""

    def __init__(self):
        self.events = []

    def to_room(self, room_code, event, data):
        self.events.append(('room', room_code, event, data))

    def to_channel(self, channel, event, data):
        self.events.append(('channel', channel, event, data))

    def named(self, event):
        return [e for e in self.events if e[2] == event]

    def for_channel(self, channel, event=None):
        return [e for e in self.events if e[0] == 'channel' and e[1] == channel
                and (event is None or e[2] == event)]

    def clear(self):
        self.events = []


class ManualTimers:
    """Timer factory driven by a fake clock.

    ``advance(seconds)`` fires every live timer whose deadline passes, in
    deadline order, and records the clock time of each firing.
    """

    def __init__(self):
        self.now = 0.0
        self.started = []
        self._due = {}
        self.fired_at = []

    def start(self, interval, callback, label=''):
        timer = DrawTimer(interval, callback, label)
        self.started.append(timer)
        self._due[timer] = self.now + interval
        return timer

    def live(self):
        return [t for t in self.started if not t.cancelled]

    def advance(self, seconds):
        end = self.now + seconds
        while True:
            pending = [(due, t) for t, due in self._due.items() if not t.cancelled and due <= end]
            if not pending:
                break
            due, timer = min(pending, key=lambda p: p[0])
            self.now = due
            self._due[timer] = due + timer.interval
            timer.fire()
            self.fired_at.append(due)
        self.now = end


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import tambola.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def pool(flask_app):
    ticket_pool = TicketPool()
    ticket_pool.seed(20, rng=random.Random(7))
    return ticket_pool


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def timers():
    return ManualTimers()


@pytest.fixture()
def service(pool, broadcaster, timers):
    return GameService(pool, broadcaster, timers, config={
        'ROOM_CODE_LENGTH': 6,
        'MAX_TICKETS_PER_PLAYER': 3,
        'DEFAULT_DRAW_INTERVAL_SEC': 5,
        'MIN_DRAW_INTERVAL_SEC': 1,
        'RETAIN_DISCONNECTED_PLAYERS': True,
    }, rng=random.Random(42))


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
