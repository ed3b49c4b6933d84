"""
Unit tests for StoreWriter.

Tests:
- Idempotent schema + index creation
- Durability pragmas
- Insert round-trip and arrival-order ids
- Failed writes are logged and dropped, never raised
- Payload text conversion (empty, NUL-terminated, invalid UTF-8)
- Fatal init errors
"""

import sqlite3

import pytest

from mqtt_to_sqlite.errors import StoreInitError
from mqtt_to_sqlite.store import StoreWriter


def _schema_objects(path):
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute(
            "SELECT type, name FROM sqlite_master WHERE tbl_name = 'messages' ORDER BY type, name"
        ).fetchall()
    finally:
        conn.close()


class TestSchema:
    def test_open_creates_table_and_indexes(self, store, db_path):
        assert _schema_objects(db_path) == [
            ("index", "idx_messages_topic"),
            ("index", "idx_messages_ts"),
            ("table", "messages"),
        ]

    def test_schema_init_twice_is_idempotent(self, store, db_path, clock):
        """Running init against an existing file neither errors nor duplicates objects."""
        store.init_schema()
        store.close()

        with StoreWriter(db_path, clock=clock) as again:
            again.init_schema()

        assert len(_schema_objects(db_path)) == 3

    def test_existing_rows_survive_reopen(self, store, db_path, clock, records):
        store.insert("a/b", b"1", 0, False)
        store.close()

        with StoreWriter(db_path, clock=clock) as again:
            again.insert("a/b", b"2", 0, False)

        assert [r.payload for r in records()] == ["1", "2"]


class TestPragmas:
    def test_wal_journal(self, store, db_path):
        conn = sqlite3.connect(str(db_path))
        try:
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        finally:
            conn.close()

    def test_relaxed_sync(self, store):
        # 1 == NORMAL
        assert store._conn.execute("PRAGMA synchronous").fetchone()[0] == 1


class TestInsert:
    def test_round_trip(self, store, clock, records):
        """Latest row matches what was inserted; ts is the writer's clock at insert time."""
        rec = store.insert("obk681BA32A/state", b"hello", 1, False)

        assert rec is not None
        latest = records()[-1]
        assert latest.topic == "obk681BA32A/state"
        assert latest.payload == "hello"
        assert latest.qos == 1
        assert latest.retain is False
        assert abs(latest.ts - clock.now) <= 1
        assert latest.id == rec.id

    def test_ts_is_integer_epoch_seconds(self, store, clock, records):
        clock.now = 1_700_000_123.9
        store.insert("t", b"x", 0, False)
        assert records()[0].ts == 1_700_000_123

    def test_ids_strictly_increase_in_arrival_order(self, store, records):
        ids = [store.insert(f"dev/{i}", str(i).encode(), 0, False).id for i in range(20)]

        rows = records()
        assert len(rows) == 20
        assert ids == sorted(ids)
        assert len(set(ids)) == 20
        assert [r.payload for r in rows] == [str(i) for i in range(20)]

    def test_retain_flag_stored_as_int(self, store, db_path):
        store.insert("t", b"x", 2, True)
        conn = sqlite3.connect(str(db_path))
        try:
            assert conn.execute("SELECT qos, retain FROM messages").fetchone() == (2, 1)
        finally:
            conn.close()

    def test_failed_write_does_not_block_next(self, store, records):
        """A failure on message k is dropped; message k+1 is still recorded."""
        store._conn.execute(
            "CREATE TRIGGER reject_boom BEFORE INSERT ON messages "
            "WHEN NEW.payload = 'boom' BEGIN SELECT RAISE(ABORT, 'rejected'); END"
        )

        assert store.insert("t", b"before", 0, False) is not None
        assert store.insert("t", b"boom", 0, False) is None
        assert store.insert("t", b"after", 0, False) is not None

        assert [r.payload for r in records()] == ["before", "after"]

    def test_invalid_qos_rejected_without_row(self, store, records):
        assert store.insert("t", b"x", 3, False) is None
        assert records() == []

    def test_insert_when_closed_returns_none(self, db_path):
        writer = StoreWriter(db_path)
        assert writer.insert("t", b"x", 0, False) is None


class TestPayloadText:
    def test_empty_payload_stored_as_empty_string(self, store, records):
        store.insert("t", b"", 0, False)
        store.insert("t", None, 0, False)
        assert [r.payload for r in records()] == ["", ""]

    def test_payload_truncated_at_nul(self, store, records):
        store.insert("t", b"abc\x00def", 0, False)
        assert records()[0].payload == "abc"

    def test_invalid_utf8_replaced(self, store, records):
        store.insert("t", b"\xff\xfeok", 0, False)
        assert records()[0].payload.endswith("ok")
        assert "�" in records()[0].payload


class TestInitErrors:
    def test_missing_directory_is_fatal(self, tmp_path):
        writer = StoreWriter(tmp_path / "nope" / "db.sqlite")
        with pytest.raises(StoreInitError):
            writer.open()
        assert not writer.is_open

    def test_not_a_database_is_fatal(self, tmp_path):
        p = tmp_path / "garbage.db"
        p.write_bytes(b"this is definitely not a sqlite file" * 100)
        with pytest.raises(StoreInitError):
            StoreWriter(p).open()

    def test_close_is_idempotent(self, store):
        store.close()
        store.close()
        assert not store.is_open
