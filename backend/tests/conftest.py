import heapq
import os
import random
import sys
import pytest

# Ensure the backend root (containing the `debate` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from debate import create_app, socketio
from debate.services.broadcast import BroadcastGateway
from debate.services.lobbies.service import build_lobby_service
from debate.services.lobbies.topics import TopicPool


TOPICS = [
    'Cats are better than dogs',
    'Breakfast is the most important meal',
    'Books beat films',
    'Summer beats winter',
    'Trains beat planes',
    'Tea beats coffee',
    'Mountains beat beaches',
]


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    TOPICS_FILE = os.path.join(BACKEND_ROOT, 'topics.txt')
    REAPER_ENABLED = True


class ManualScheduler:
    """Deterministic stand-in for BackgroundScheduler driven by ``advance``."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = 0

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        heapq.heappush(self._queue, (self.now + delay, self._seq, callback, args))
        self._seq += 1

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, callback, args = heapq.heappop(self._queue)
            self.now = due
            callback(*args)
        self.now = target

    @property
    def pending(self):
        return len(self._queue)


class RecordingGateway(BroadcastGateway):
    def __init__(self):
        self.events = []

    def send_to_group(self, code, event, payload=None):
        self.events.append({'to': 'group', 'code': code, 'member': None, 'name': event, 'payload': payload})

    def send_to_member(self, code, identity, event, payload=None):
        self.events.append({'to': 'member', 'code': code, 'member': identity, 'name': event, 'payload': payload})

    def names(self, member=None):
        return [e['name'] for e in self.events if member is None or e['member'] == member]

    def payloads(self, event):
        return [e['payload'] for e in self.events if e['name'] == event]

    def last(self, event):
        payloads = self.payloads(event)
        return payloads[-1] if payloads else None

    def phases(self):
        return [p['phase'] for p in self.payloads('game-phase-update')]

    def clear(self):
        self.events = []


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def gateway():
    return RecordingGateway()


@pytest.fixture()
def service(scheduler, gateway):
    svc = build_lobby_service({}, scheduler, gateway, topics=TopicPool(TOPICS), rng=random.Random(7))
    svc.start_reaper()
    return svc


@pytest.fixture()
def lobby(service):
    """A lobby hosted by Alice with Bob joined; returns its code."""
    code = service.create_lobby('Alice')['code']
    service.join_lobby(code, 'Bob')
    return code


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler)
    with application.app_context():
        yield application


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


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        c = socketio.test_client(flask_app, namespace='/ws')
        clients.append(c)
        return c

    yield _make
    for c in clients:
        try:
            if c.is_connected('/ws'):
                c.disconnect(namespace='/ws')
        except Exception:
            pass
