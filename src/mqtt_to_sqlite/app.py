"""
Process orchestrator: wires settings, store, transport, repair and supervisor.
"""

from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import Settings, get_settings
from .errors import StoreInitError, TransportError
from .policy import BackoffPolicy
from .repair import RepairTrigger, ShellRepairAction
from .shutdown import ShutdownToken, install_signal_handlers
from .store import StoreWriter
from .supervisor import ConnectionSupervisor
from .transport import PahoTransport

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} [{level}] {message}"


def configure_logging(level: str = "INFO") -> None:
    """Timestamped, leveled lines on stderr."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)


def build_supervisor(
    settings: Settings, store: StoreWriter, transport: PahoTransport
) -> ConnectionSupervisor:
    repair = RepairTrigger(
        ShellRepairAction(settings.NETWORK_FIX_SCRIPT, timeout=settings.repair_timeout),
        min_interval=settings.REPAIR_MIN_INTERVAL_S,
    )
    backoff = BackoffPolicy(
        min_delay=settings.RECONNECT_MIN_S,
        max_delay=settings.RECONNECT_MAX_S,
    )
    return ConnectionSupervisor(
        transport,
        store,
        repair,
        topic_filter=settings.MQTT_TOPIC,
        backoff=backoff,
    )


def run(settings: Optional[Settings] = None, shutdown: Optional[ShutdownToken] = None) -> int:
    """Run the ingester in the foreground. Returns the process exit code."""
    settings = settings or get_settings()
    shutdown = shutdown or ShutdownToken()

    logger.info(
        f"mqtt-to-sqlite: broker={settings.MQTT_BROKER}:{settings.MQTT_PORT} "
        f"topic={settings.MQTT_TOPIC} db={settings.db_path} client_id={settings.client_id}"
    )

    restore_signals = install_signal_handlers(shutdown)
    try:
        store = StoreWriter(settings.db_path)
        try:
            store.open()
        except StoreInitError as e:
            logger.error(f"Failed to init DB at {settings.db_path}: {e}")
            return 1

        with store:
            try:
                transport = PahoTransport(
                    settings.MQTT_BROKER,
                    settings.MQTT_PORT,
                    settings.client_id,
                    keepalive=settings.MQTT_KEEPALIVE,
                )
            except TransportError as e:
                logger.error(f"Failed to create MQTT session: {e}")
                return 1

            supervisor = build_supervisor(settings, store, transport)
            supervisor.run(shutdown)
        return 0
    finally:
        restore_signals()
