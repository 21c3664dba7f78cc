import logging
import os
import sys
import pytest

# Ensure the project root (containing the `birdbattle` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from birdbattle import create_app, socketio
from birdbattle.models import PlayerState
from birdbattle.services.game import DEFAULT_CATALOG, ConnectionSupervisor, Room, SupervisorSettings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = 'http://localhost:3000'
    SOCKETIO_NAMESPACE = '/'
    ROOM_CLEANUP_DELAY_SEC = 5
    RECONNECT_GRACE_SEC = 30
    STALE_ROOM_MAX_AGE_SEC = 3600
    STALE_SWEEP_INTERVAL_SEC = 60
    DEFAULT_PLAYER_HP = 100
    MAX_NAME_LENGTH = 32


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms
        return self.now


class ManualScheduler:
    """Stand-in for TimerScheduler: timers fire only when a test says so."""

    def __init__(self):
        self.timers = {}
        self.periodic = []

    def schedule(self, key, delay_sec, callback, *args):
        self.timers[key] = (delay_sec, callback, args)
        return delay_sec

    def cancel(self, key):
        return self.timers.pop(key, None) is not None

    def pending(self, key):
        return key in self.timers

    def fire(self, key):
        _, callback, args = self.timers.pop(key)
        callback(*args)

    def every(self, interval_sec, callback):
        self.periodic.append((interval_sec, callback))


class Recorder:
    """Collects everything the supervisor emits, per connection."""

    def __init__(self):
        self.sent = []

    def __call__(self, event, payload, sid):
        self.sent.append((event, payload, sid))

    def events(self, sid, name=None):
        return [p for (e, p, s) in self.sent if s == sid and (name is None or e == name)]

    def names(self, sid):
        return [e for (e, _, s) in self.sent if s == sid]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def supervisor(recorder, scheduler, clock):
    return ConnectionSupervisor(
        emit=recorder,
        scheduler=scheduler,
        logger=logging.getLogger('birdbattle.tests'),
        settings=SupervisorSettings(),
        clock=clock,
    )


@pytest.fixture()
def room(clock):
    return Room(
        'room_1700000000000_test',
        PlayerState(slot=1, name='Ann', connection_id='sid-ann'),
        PlayerState(slot=2, name='Bo', connection_id='sid-bo'),
        DEFAULT_CATALOG,
        clock=clock,
    )


@pytest.fixture()
def battle_room(room):
    """Room already in progress: Ann on phoenix, Bo on shadowfeather."""
    room.select_bird(1, 'phoenix', lock=True)
    room.select_bird(2, 'shadowfeather', lock=True)
    return room


@pytest.fixture()
def flask_app(scheduler, clock):
    application = create_app(TestConfig, scheduler=scheduler, clock=clock)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
