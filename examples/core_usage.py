"""
Example usage of the mqtt_to_sqlite library.

Shows the store on its own, and a supervisor wired by hand instead of through
the `mqtt-to-sqlite run` command.
"""

import sqlite3

from mqtt_to_sqlite import (
    BackoffPolicy,
    ConnectionSupervisor,
    PahoTransport,
    RepairTrigger,
    ShellRepairAction,
    ShutdownToken,
    StoreWriter,
)
from mqtt_to_sqlite.app import configure_logging
from mqtt_to_sqlite.shutdown import install_signal_handlers

DB_PATH = "./mqtt_messages.db"


def store_example():
    """Write and read back rows without a broker."""
    print("=== Store ===")

    with StoreWriter(DB_PATH) as store:
        rec = store.insert("obk681BA32A/state", b"on", 0, False)
        print(f"Inserted row id={rec.id} ts={rec.ts}")

    conn = sqlite3.connect(DB_PATH)
    try:
        rows = conn.execute(
            "SELECT id, topic, payload FROM messages ORDER BY id DESC LIMIT 5"
        ).fetchall()
    finally:
        conn.close()
    print(f"Latest rows: {rows}")


def supervisor_example():
    """Run against a broker until Ctrl-C."""
    print("\n=== Supervisor ===")

    configure_logging("DEBUG")
    token = ShutdownToken()
    restore = install_signal_handlers(token)

    try:
        with StoreWriter(DB_PATH) as store:
            transport = PahoTransport("192.168.4.1", 1883, "mqtt2sqlite-example")
            repair = RepairTrigger(
                ShellRepairAction("./scripts/handle_network_error.sh", timeout=30),
                min_interval=20,
            )
            supervisor = ConnectionSupervisor(
                transport,
                store,
                repair,
                topic_filter="obk681BA32A/#",
                backoff=BackoffPolicy(min_delay=2, max_delay=60, jitter=True),
            )
            supervisor.run(token)
    finally:
        restore()


if __name__ == "__main__":
    store_example()
    supervisor_example()

    print("\n=== Examples Complete ===")
