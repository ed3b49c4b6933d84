"""
MQTT to SQLite ingester

Subscribes to an MQTT broker and writes every message into a SQLite table,
keeping the broker session alive across network loss and running a throttled
network repair command on each disconnect.

Usage:
    from mqtt_to_sqlite import StoreWriter, RepairTrigger, ShellRepairAction
    from mqtt_to_sqlite import ConnectionSupervisor, PahoTransport, ShutdownToken

    with StoreWriter("./mqtt_messages.db") as store:
        transport = PahoTransport("192.168.4.1", 1883, "mqtt2sqlite-1")
        repair = RepairTrigger(ShellRepairAction("./handle_network_error.sh"))
        ConnectionSupervisor(transport, store, repair, topic_filter="#").run(ShutdownToken())
"""

from .config import Settings, get_settings
from .models import InboundMessage, MessageRecord
from .policy import BackoffPolicy
from .repair import RepairTrigger, ShellRepairAction
from .shutdown import ShutdownToken
from .store import StoreWriter
from .supervisor import ConnectionState, ConnectionSupervisor
from .transport import PahoTransport

__version__ = "1.0.0"
__all__ = [
    "Settings",
    "get_settings",
    "InboundMessage",
    "MessageRecord",
    "BackoffPolicy",
    "RepairTrigger",
    "ShellRepairAction",
    "ShutdownToken",
    "StoreWriter",
    "ConnectionState",
    "ConnectionSupervisor",
    "PahoTransport",
]
