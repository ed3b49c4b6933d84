"""
Pytest configuration and fixtures for mqtt-to-sqlite.

Provides test doubles for the broker transport, the repair action, the wall
clock and the shutdown token, so the supervisor can be driven
deterministically without sockets, subprocesses or real sleeps.
"""

import sqlite3
from collections import deque

import pytest

from mqtt_to_sqlite.errors import ConnectError, SubscribeError
from mqtt_to_sqlite.models import InboundMessage, MessageRecord
from mqtt_to_sqlite.shutdown import ShutdownToken
from mqtt_to_sqlite.store import StoreWriter

ENV_KEYS = (
    "MQTT_BROKER",
    "MQTT_PORT",
    "MQTT_CLIENT_ID",
    "MQTT_TOPIC",
    "MQTT_DB_PATH",
    "MQTT_KEEPALIVE",
    "NETWORK_FIX_SCRIPT",
    "RECONNECT_MIN_S",
    "RECONNECT_MAX_S",
    "REPAIR_MIN_INTERVAL_S",
    "REPAIR_TIMEOUT_S",
    "LOG_LEVEL",
)


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingShutdown(ShutdownToken):
    """ShutdownToken whose waits return immediately and are recorded."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None) -> bool:
        self.waits.append(timeout)
        return self.cancelled


class RecordingRepairAction:
    def __init__(self, rc: int = 0, error: Exception = None):
        self.rc = rc
        self.error = error
        self.runs = 0

    def run(self) -> int:
        self.runs += 1
        if self.error is not None:
            raise self.error
        return self.rc


class FakeTransport:
    """Scripted broker transport.

    Each poll() executes the next scripted step. When the script runs out the
    shutdown token (if any) is cancelled, which ends the supervisor's loop.
    """

    endpoint = "fake-broker:1883"

    def __init__(self, shutdown=None, connect_failures: int = 0, subscribe_error: bool = False):
        self.shutdown = shutdown
        self.connect_failures = connect_failures
        self.subscribe_error = subscribe_error
        self.listener = None
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.subscriptions = []
        self.closed = False
        self._steps = deque()
        self._disconnect_pending = False

    # ---- Transport protocol ----

    def bind(self, listener):
        self.listener = listener

    def connect(self):
        self.connect_calls += 1
        if self.connect_failures > 0:
            self.connect_failures -= 1
            raise ConnectError("connection refused")

    def subscribe(self, topic_filter, qos=0):
        if self.subscribe_error:
            raise SubscribeError("the client is not currently connected")
        self.subscriptions.append((topic_filter, qos))

    def poll(self, timeout):
        if self._disconnect_pending:
            self._disconnect_pending = False
            self.listener.on_transport_disconnected(0)
            return False
        if not self._steps:
            if self.shutdown is not None:
                self.shutdown.cancel("script exhausted")
            return True
        return self._steps.popleft()()

    def disconnect(self):
        self.disconnect_calls += 1
        self._disconnect_pending = True

    def close(self):
        self.closed = True

    # ---- script builders ----

    def step(self, fn):
        def _run():
            fn()
            return True

        self._steps.append(_run)
        return self

    def connack(self, rc: int = 0):
        return self.step(lambda: self.listener.on_transport_connected(rc))

    def message(self, topic: str, payload: bytes = b"", qos: int = 0, retain: bool = False):
        msg = InboundMessage(topic=topic, payload=payload, qos=qos, retain=retain)
        return self.step(lambda: self.listener.on_transport_message(msg))

    def drop(self, rc: int = 7):
        def _run():
            self.listener.on_transport_disconnected(rc)
            return False

        self._steps.append(_run)
        return self

    def vanish(self):
        """Session ends without a disconnect callback."""
        self._steps.append(lambda: False)
        return self


def read_records(path) -> list[MessageRecord]:
    """All rows of the messages table in id order."""
    conn = sqlite3.connect(str(path))
    try:
        rows = conn.execute(
            "SELECT id, ts, topic, payload, qos, retain FROM messages ORDER BY id"
        ).fetchall()
    finally:
        conn.close()
    return [MessageRecord.from_row(r) for r in rows]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host MQTT_* variables out of Settings."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def shutdown():
    return RecordingShutdown()


@pytest.fixture
def repair_action():
    return RecordingRepairAction()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "mqtt_messages.db"


@pytest.fixture
def store(db_path, clock):
    """Open StoreWriter on a temp file using the fake clock."""
    writer = StoreWriter(db_path, clock=clock)
    writer.open()
    yield writer
    writer.close()


@pytest.fixture
def transport(shutdown):
    return FakeTransport(shutdown=shutdown)


@pytest.fixture
def transport_factory(shutdown):
    """Build FakeTransports bound to the test's shutdown token."""

    def _make(**kwargs):
        return FakeTransport(shutdown=shutdown, **kwargs)

    return _make


@pytest.fixture
def records(db_path):
    """Callable returning the persisted rows of db_path."""
    return lambda: read_records(db_path)
