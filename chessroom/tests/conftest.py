import pytest

from chessroom.rules import ChessRules
from chessroom.state import SessionPhase, Side, initial_state
from chessroom.transport import CONNECT, DISCONNECT, Channel
from chessroom.errors import TransportError


class FakeChannel(Channel):
    """Records requests and lets tests push server events and acks by hand."""

    def __init__(self):
        self.handlers = {}
        self.sent = []  # (name, data, ack)
        self.connected = False
        self.closed = False

    def on(self, name, handler):
        self.handlers.setdefault(name, []).append(handler)

    def emit(self, name, data=None, ack=None):
        if not self.connected:
            raise TransportError("Not connected")
        self.sent.append((name, data or {}, ack))

    async def connect(self):
        self.signal_connect()

    async def close(self):
        self.closed = True

    # helpers
    def signal_connect(self):
        self.connected = True
        for handler in self.handlers.get(CONNECT, []):
            handler()

    def signal_disconnect(self, reason="gone"):
        self.connected = False
        for handler in self.handlers.get(DISCONNECT, []):
            handler(reason)

    def push(self, name, data=None):
        for handler in self.handlers.get(name, []):
            handler(data or {})

    def names(self):
        return [name for name, _, _ in self.sent]

    def last(self, name):
        for sent_name, data, ack in reversed(self.sent):
            if sent_name == name:
                return data, ack
        raise AssertionError(f"{name} was never sent")


class _Handle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    def __init__(self, start=1000.0):
        self.value = start

    def __call__(self):
        return self.value


class ManualScheduler:
    """call_later() stand-in driven by a ManualClock."""

    def __init__(self, clock):
        self.clock = clock
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = _Handle(self.clock.value + delay, callback, args)
        self.handles.append(handle)
        return handle

    def pending(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds):
        target = self.clock.value + seconds
        while True:
            due = [h for h in self.pending() if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.handles.remove(handle)
            self.clock.value = handle.when
            handle.callback(*handle.args)
        self.clock.value = target


@pytest.fixture
def oracle():
    return ChessRules()


@pytest.fixture
def playing():
    """A started game in room "abc123", local side moves first."""
    return initial_state().update(
        room_code="abc123",
        local_color=Side.FIRST,
        phase=SessionPhase.PLAYING,
        position="start",
        color_locked=True,
    )


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)
