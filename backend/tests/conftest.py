import os
import sys

import pytest

# Ensure the backend root (containing the `gamehub` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gamehub.config import Config, RoomSettings
from gamehub.game.lifecycle import RoomLifecycle
from gamehub.game.models import Player
from gamehub.game.session import RoomSession
from gamehub.game.sync import GameSynchronizer
from gamehub.identity import PLAYER_ID_KEY, SessionContext
from gamehub.server import create_app
from gamehub.store.memory import MemoryRoomStore

START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now=START_MS):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


class FixedDice:
    """Stands in for random.Random: hands out queued die faces."""

    def __init__(self, *faces):
        self.faces = list(faces)

    def randint(self, a, b):
        return self.faces.pop(0)

    def choices(self, population, k):
        return list(population[:k])


class CodeSequence:
    """Hands out room codes in order."""

    def __init__(self, *codes):
        self.codes = list(codes)

    def choices(self, population, k):
        return list(self.codes.pop(0))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SOCKETIO_ASYNC_MODE = 'threading'
    TRUST_PROXY_HEADERS = False
    SESSION_TICK_SEC = 0.05


ALICE = Player(id='alice01', name='Alice')
BOB = Player(id='bob0001', name='Bob')
CAROL = Player(id='carol01', name='Carol')


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return MemoryRoomStore()


@pytest.fixture()
def settings():
    return RoomSettings()


@pytest.fixture()
def lifecycle(store, settings, clock):
    return RoomLifecycle(store, settings, clock)


@pytest.fixture()
def sync(store, settings, clock):
    return GameSynchronizer(store, settings, clock)


@pytest.fixture()
def make_session(store, settings, clock):
    def factory(player, rng=None, presence_mode=None):
        context = SessionContext({PLAYER_ID_KEY: player.id}).load_or_create()
        context.save_name(player.name)
        changes, errors = [], []
        s = settings
        if presence_mode is not None:
            s = RoomSettings(presence_mode=presence_mode)
        session = RoomSession(
            store,
            context,
            connection_id=f'conn-{player.id}',
            settings=s,
            clock=clock,
            rng=rng,
            on_change=changes.append,
            on_error=errors.append,
        )
        session.changes = changes
        session.errors = errors
        return session

    return factory


@pytest.fixture()
def flask_app():
    application, _socketio = create_app(TestConfig)
    application.extensions['test_socketio'] = _socketio
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def socketio(flask_app):
    return flask_app.extensions['test_socketio']


@pytest.fixture()
def room_store(flask_app):
    return flask_app.extensions['gamehub']['store']
