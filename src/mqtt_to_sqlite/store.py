"""
SQLite store writer.

Owns the single connection to the database file and the insert path. The
connection is in autocommit mode, so every insert is its own transaction and a
row is either fully written or absent. The insert SQL is compiled once at
open() and then served from sqlite3's per-connection statement cache on every
call.
"""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger
from pydantic import ValidationError

from . import sql as q
from .errors import StoreInitError, map_db_error
from .metrics import STORE_WRITES_TOTAL, STORE_WRITE_LATENCY
from .models import MessageRecord, payload_to_text


class StoreWriter:
    def __init__(
        self,
        path: Union[str, Path],
        *,
        clock: Callable[[], float] = time.time,
        timeout: float = 5.0,
    ):
        self._path = str(path)
        self._clock = clock
        self._timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._cur: Optional[sqlite3.Cursor] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # ---------- lifecycle ----------

    def open(self) -> "StoreWriter":
        """Open the database, apply pragmas, create schema, compile the insert.

        Raises StoreInitError on any failure; the connection is closed again.
        """
        if self._conn is not None:
            return self
        try:
            self._conn = sqlite3.connect(self._path, timeout=self._timeout, isolation_level=None)
            for pragma in q.PRAGMAS:
                self._conn.execute(pragma)
            self.init_schema()
            self._cur = self._conn.cursor()
            self._prepare_insert()
        except sqlite3.Error as e:
            self.close()
            raise StoreInitError(f"cannot initialise {self._path}: {e}") from e
        logger.info(f"Store ready at {self._path}")
        return self

    def init_schema(self) -> None:
        """Create the messages table and its indexes if they are missing."""
        if self._conn is None:
            raise StoreInitError("store is not open")
        for stmt in q.schema_statements():
            self._conn.execute(stmt)

    def _prepare_insert(self) -> None:
        # EXPLAIN compiles the statement without writing a row
        self._cur.execute("EXPLAIN " + q.INSERT_MESSAGE, (0, "", "", 0, 0)).fetchall()

    def close(self) -> None:
        """Close the connection; safe to call multiple times."""
        if self._cur is not None:
            try:
                self._cur.close()
            except sqlite3.Error:
                pass
            self._cur = None
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.warning(f"sqlite close failed: {e}")
            self._conn = None

    def __enter__(self) -> "StoreWriter":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ---------- writes ----------

    def insert(
        self, topic: str, payload: Optional[bytes], qos: int, retain: bool
    ) -> Optional[MessageRecord]:
        """Persist one message. Never raises; returns None if the row was not written."""
        if self._cur is None:
            logger.error(f"insert skipped for topic={topic}: store is not open")
            STORE_WRITES_TOTAL.labels(status="failure").inc()
            return None

        try:
            record = MessageRecord(
                ts=int(self._clock()),
                topic=topic,
                payload=payload_to_text(payload),
                qos=qos,
                retain=bool(retain),
            )
        except ValidationError as e:
            logger.error(f"insert rejected for topic={topic!r}: {e.error_count()} invalid field(s)")
            STORE_WRITES_TOTAL.labels(status="failure").inc()
            return None

        t0 = time.perf_counter()
        try:
            self._cur.execute(q.INSERT_MESSAGE, record.insert_params())
        except sqlite3.Error as e:
            err = map_db_error(e)
            logger.error(f"insert failed for topic={topic} ({type(err).__name__}): {err}")
            STORE_WRITES_TOTAL.labels(status="failure").inc()
            return None
        finally:
            STORE_WRITE_LATENCY.observe(time.perf_counter() - t0)

        STORE_WRITES_TOTAL.labels(status="success").inc()
        return record.model_copy(update={"id": self._cur.lastrowid})
