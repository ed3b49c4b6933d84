"""
Custom exceptions for the MQTT-to-SQLite ingester.

Only the store-init and transport-allocation failures are fatal; everything
else is caught at the component boundary, logged, and ingestion continues.
"""

from __future__ import annotations

import sqlite3


class MqttToSqliteError(Exception):
    """Base error for the ingester."""

    pass


class StoreError(MqttToSqliteError):
    """Errors raised by the SQLite store."""

    pass


class StoreInitError(StoreError):
    """Database could not be opened, configured, or prepared (fatal)."""

    pass


class StoreWriteError(StoreError):
    """A single insert failed."""

    pass


class ConstraintViolation(StoreWriteError):
    """NOT NULL / CHECK / trigger-raised constraint failures."""

    pass


class StorageFull(StoreWriteError):
    """Disk or database is full."""

    pass


class StoreCorrupt(StoreWriteError):
    """Database file is malformed or not a database."""

    pass


class TransportError(MqttToSqliteError):
    """Errors raised by the broker transport."""

    pass


class ConnectError(TransportError):
    """Connecting to the broker failed."""

    pass


class SubscribeError(TransportError):
    """Subscribe request was rejected by the client."""

    pass


def map_db_error(e: Exception) -> StoreError:
    name = getattr(e, "sqlite_errorname", "") or ""
    text = str(e)
    lowered = text.lower()

    if isinstance(e, sqlite3.IntegrityError) or name.startswith("SQLITE_CONSTRAINT"):
        return ConstraintViolation(text)
    if name == "SQLITE_FULL" or "disk is full" in lowered:
        return StorageFull(text)
    if name in ("SQLITE_CORRUPT", "SQLITE_NOTADB") or "malformed" in lowered:
        return StoreCorrupt(text)
    if "not a database" in lowered:
        return StoreCorrupt(text)
    return StoreWriteError(text)
