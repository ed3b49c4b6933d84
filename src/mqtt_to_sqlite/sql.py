from __future__ import annotations

# Fast-ish settings for flash-backed devices; safe for a single writer.
PRAGMAS: tuple[str, ...] = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
)

CREATE_MESSAGES = """
CREATE TABLE IF NOT EXISTS messages (
    id       INTEGER PRIMARY KEY AUTOINCREMENT,
    ts       INTEGER NOT NULL,
    topic    TEXT    NOT NULL,
    payload  TEXT    NOT NULL,
    qos      INTEGER NOT NULL,
    retain   INTEGER NOT NULL
)
"""

CREATE_INDEXES: tuple[str, ...] = (
    "CREATE INDEX IF NOT EXISTS idx_messages_ts ON messages(ts)",
    "CREATE INDEX IF NOT EXISTS idx_messages_topic ON messages(topic)",
)

# Column order matches MessageRecord.insert_params()
INSERT_MESSAGE = "INSERT INTO messages (ts, topic, payload, qos, retain) VALUES (?, ?, ?, ?, ?)"


def schema_statements() -> list[str]:
    """DDL in execution order; every statement is IF NOT EXISTS."""
    return [CREATE_MESSAGES, *CREATE_INDEXES]
