"""
Connection supervisor: one broker session, kept alive forever.

    DISCONNECTED -> CONNECTING -> CONNECTED -> SUBSCRIBED
         ^                                        |
         +---- repair, backoff wait <-- disconnect +

Everything runs on the thread that calls run(): transport callbacks, store
writes and repair runs. No locks are needed as long as that stays true.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from loguru import logger

from .errors import ConnectError, SubscribeError
from .metrics import CONNECT_ATTEMPTS_TOTAL, DISCONNECTS_TOTAL, MESSAGES_RECEIVED_TOTAL
from .models import InboundMessage
from .policy import BackoffPolicy
from .repair import RepairTrigger
from .shutdown import ShutdownToken
from .transport import Transport

SUBSCRIBE_QOS = 0
TRACE_PAYLOAD_CHARS = 200


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    STOPPED = "stopped"


class MessageSink(Protocol):
    def insert(self, topic: str, payload: bytes, qos: int, retain: bool): ...


class ConnectionSupervisor:
    def __init__(
        self,
        transport: Transport,
        sink: MessageSink,
        repair: RepairTrigger,
        *,
        topic_filter: str = "#",
        backoff: Optional[BackoffPolicy] = None,
        poll_interval: float = 1.0,
        drain_ticks: int = 5,
    ):
        self._transport = transport
        self._sink = sink
        self._repair = repair
        self._topic_filter = topic_filter
        self._backoff = backoff or BackoffPolicy()
        self._poll_interval = poll_interval
        self._drain_ticks = drain_ticks
        self._state = ConnectionState.DISCONNECTED
        self._token: Optional[ShutdownToken] = None
        transport.bind(self)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    @property
    def _live(self) -> bool:
        return self._state in (
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.SUBSCRIBED,
        )

    @property
    def _stopping(self) -> bool:
        return self._token is not None and self._token.cancelled

    # ---------- run loop ----------

    def run(self, shutdown: Optional[ShutdownToken] = None) -> None:
        """Connect, receive, repair and reconnect until shutdown is cancelled."""
        token = shutdown or ShutdownToken()
        self._token = token
        logger.info(
            f"Supervisor starting: broker={self._transport.endpoint} topic={self._topic_filter}"
        )
        try:
            while not token.cancelled:
                if self._connect():
                    self._pump(token)
                if token.cancelled:
                    break
                self._wait_before_reconnect(token)
        finally:
            logger.info(f"Shutdown requested ({token.reason or 'loop exit'})")
            self._close_session()
            self._state = ConnectionState.STOPPED
            logger.info("Supervisor stopped")

    def _connect(self) -> bool:
        self._state = ConnectionState.CONNECTING
        logger.info(f"Connecting to {self._transport.endpoint}")
        try:
            self._transport.connect()
        except ConnectError as e:
            self._state = ConnectionState.DISCONNECTED
            CONNECT_ATTEMPTS_TOTAL.labels(outcome="failure").inc()
            logger.error(f"Connect failed: {e}")
            self._repair.trigger_repair()
            return False
        return True

    def _pump(self, token: ShutdownToken) -> None:
        """Drive the transport until the session ends or shutdown is requested."""
        while not token.cancelled:
            alive = self._transport.poll(self._poll_interval)
            if self._state is ConnectionState.DISCONNECTED:
                return
            if not alive:
                # Session ended without a disconnect callback
                self.on_transport_disconnected(None)
                return

    def _wait_before_reconnect(self, token: ShutdownToken) -> None:
        delay = self._backoff.next_delay()
        logger.info(f"Reconnecting in {delay:.1f}s")
        token.wait(delay)

    def _close_session(self) -> None:
        if self._live:
            logger.info("Requesting broker disconnect")
            self._transport.disconnect()
            for _ in range(self._drain_ticks):
                if not self._transport.poll(self._poll_interval):
                    break
                if self._state is ConnectionState.DISCONNECTED:
                    break
            if self._live:
                self.on_transport_disconnected(None)
        self._transport.close()

    # ---------- transport callbacks ----------

    def on_transport_connected(self, return_code: int) -> None:
        logger.info(f"Connected with rc={return_code}")
        if return_code != 0:
            CONNECT_ATTEMPTS_TOTAL.labels(outcome="refused").inc()
            logger.warning(f"Broker refused the session (rc={return_code})")
            return

        self._state = ConnectionState.CONNECTED
        self._backoff.reset()
        CONNECT_ATTEMPTS_TOTAL.labels(outcome="success").inc()
        try:
            self._transport.subscribe(self._topic_filter, SUBSCRIBE_QOS)
        except SubscribeError as e:
            logger.error(f"Subscribe to {self._topic_filter} failed: {e}")
            return
        self._state = ConnectionState.SUBSCRIBED
        logger.info(f"Subscribed to {self._topic_filter}")

    def on_transport_disconnected(self, return_code: Optional[int]) -> None:
        if not self._live:
            return
        self._state = ConnectionState.DISCONNECTED
        DISCONNECTS_TOTAL.inc()
        if self._stopping:
            logger.warning(f"Disconnected (rc={return_code})")
        else:
            logger.warning(f"Disconnected (rc={return_code}). Attempting repair + reconnect")
        self._repair.trigger_repair()

    def on_transport_message(self, message: InboundMessage) -> None:
        MESSAGES_RECEIVED_TOTAL.inc()
        self._sink.insert(message.topic, message.payload, message.qos, message.retain)
        logger.debug(f"MSG {message.topic} => {message.payload_text[:TRACE_PAYLOAD_CHARS]}")
