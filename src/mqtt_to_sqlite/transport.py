"""
Broker transport boundary.

The supervisor talks to the broker only through the Transport protocol and
receives events through TransportListener callbacks. PahoTransport is the
production adapter over paho-mqtt; its network loop is pumped by the caller
(poll), so every callback runs on the supervisor's thread. paho's own
reconnect scheduling is not used.
"""

from __future__ import annotations

from typing import Optional, Protocol

import paho.mqtt.client as mqtt
from loguru import logger
from pydantic import ValidationError

from .errors import ConnectError, SubscribeError, TransportError
from .models import InboundMessage


class TransportListener(Protocol):
    def on_transport_connected(self, return_code: int) -> None: ...

    def on_transport_disconnected(self, return_code: Optional[int]) -> None: ...

    def on_transport_message(self, message: InboundMessage) -> None: ...


class Transport(Protocol):
    """What the supervisor needs from a broker client."""

    endpoint: str

    def bind(self, listener: TransportListener) -> None: ...

    def connect(self) -> None:
        """Start a session. Raises ConnectError; the handshake result arrives via the listener."""
        ...

    def subscribe(self, topic_filter: str, qos: int = 0) -> None:
        """Queue a subscribe request. Raises SubscribeError."""
        ...

    def poll(self, timeout: float) -> bool:
        """Pump network I/O for up to timeout seconds. False once the session is gone."""
        ...

    def disconnect(self) -> None: ...

    def close(self) -> None: ...


def _code(reason_code) -> int:
    """paho v2 hands over ReasonCode objects; plain ints from older paths."""
    value = getattr(reason_code, "value", reason_code)
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1


class PahoTransport:
    def __init__(
        self,
        host: str,
        port: int,
        client_id: str,
        keepalive: int = 30,
    ):
        self.host = host
        self.port = port
        self.client_id = client_id
        self.keepalive = keepalive
        self._listener: Optional[TransportListener] = None
        try:
            self._client = mqtt.Client(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=client_id,
                clean_session=True,
                protocol=mqtt.MQTTv311,
            )
        except (ValueError, OSError) as e:
            raise TransportError(f"cannot create MQTT client {client_id!r}: {e}") from e
        self._client.on_connect = self._handle_connect
        self._client.on_disconnect = self._handle_disconnect
        self._client.on_message = self._handle_message

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def bind(self, listener: TransportListener) -> None:
        self._listener = listener

    # ---------- requests ----------

    def connect(self) -> None:
        try:
            rc = self._client.connect(self.host, self.port, keepalive=self.keepalive)
        except (OSError, ValueError) as e:
            raise ConnectError(f"{self.endpoint}: {e}") from e
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectError(f"{self.endpoint}: {mqtt.error_string(rc)}")

    def subscribe(self, topic_filter: str, qos: int = 0) -> None:
        try:
            rc, _mid = self._client.subscribe(topic_filter, qos)
        except ValueError as e:
            raise SubscribeError(str(e)) from e
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise SubscribeError(mqtt.error_string(rc))

    def poll(self, timeout: float) -> bool:
        rc = self._client.loop(timeout=timeout)
        return rc == mqtt.MQTT_ERR_SUCCESS

    def disconnect(self) -> None:
        rc = self._client.disconnect()
        if rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
            logger.warning(f"disconnect request failed: {mqtt.error_string(rc)}")

    def close(self) -> None:
        # Drops the socket without callbacks if a session is still half-open
        sock = self._client.socket()
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass

    # ---------- paho callbacks (VERSION2 signatures) ----------

    def _handle_connect(self, client, userdata, connect_flags, reason_code, properties=None):
        if self._listener is not None:
            self._listener.on_transport_connected(_code(reason_code))

    def _handle_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        if self._listener is not None:
            self._listener.on_transport_disconnected(_code(reason_code))

    def _handle_message(self, client, userdata, msg):
        if self._listener is None:
            return
        try:
            message = InboundMessage(
                topic=msg.topic,
                payload=msg.payload,
                qos=msg.qos,
                retain=bool(msg.retain),
            )
        except (UnicodeDecodeError, ValidationError) as e:
            logger.warning(f"dropping undecodable message: {e}")
            return
        self._listener.on_transport_message(message)
