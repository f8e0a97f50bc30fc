import pytest

from handlers import ArenaServer
from registry import RoomRegistry


class ManualScheduler:
    """Records background tasks instead of running them."""

    def __init__(self):
        self.tasks = []
        self.sleeps = []

    def start_background_task(self, target, *args, **kwargs):
        self.tasks.append((target, args, kwargs))
        return target

    def sleep(self, seconds):
        self.sleeps.append(seconds)


class RecordingTransport:
    def __init__(self):
        self.sent = []
        self.rooms = {}  # {sid: room_code}

    def emit(self, event, data=None, to=None):
        self.sent.append((event, data, to))

    def enter_room(self, sid, code):
        self.rooms[sid] = code

    def leave_room(self, sid, code):
        if self.rooms.get(sid) == code:
            del self.rooms[sid]

    def events(self, name):
        return [(data, to) for event, data, to in self.sent if event == name]


@pytest.fixture
def registry():
    reg = RoomRegistry()
    yield reg
    reg.close()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def arena(registry, transport, scheduler):
    return ArenaServer(registry, transport, scheduler)


@pytest.fixture
def make_room(registry):
    def _make_room(count=2, map_type='neon_void', duration=60):
        room = registry.create_room('p0', 'P0', {'mapType': map_type, 'duration': duration})
        for i in range(1, count):
            registry.join_room(room.code, f'p{i}', f'P{i}')
        return room
    return _make_room
