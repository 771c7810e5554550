# src/farmledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Unknown types are not coerced; a non-JSON value in farm state is a bug and
    must fail the write.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the farm runtime.

    One durable file holds the farm snapshot. Connections are never shared
    between threads; every read or write opens its own.

    SQLite allows only one writer at a time, so BEGIN IMMEDIATE can transiently
    fail with "database is locked". write_tx() retries within a deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """Return a safe PRAGMA synchronous value.

        Defaults:
          - prod        -> FULL
          - dev/testnet -> NORMAL

        Override with FARM_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("FARM_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("FARM_SQLITE_SYNCHRONOUS") or default).strip().upper()

        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if raw not in allowed:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        p = Path(self.path)
        p.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("FARM_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0

        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        # WAL is required unless explicitly waived.
        allow_non_wal = (os.environ.get("FARM_SQLITE_ALLOW_NON_WAL") or "").strip() in {"1", "true", "TRUE"}
        try:
            row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
            mode = ""
            if row is not None:
                mode = str(row[0]).strip().lower()
            if mode and mode != "wal" and not allow_non_wal:
                raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")
        except Exception:
            if not allow_non_wal:
                con.close()
                raise

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")

        wal_ckpt = max(1, _env_int("FARM_SQLITE_WAL_AUTOCHECKPOINT", 1000))
        con.execute(f"PRAGMA wal_autocheckpoint={wal_ckpt};")

        busy_ms = max(0, _env_int("FARM_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")

        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS farm_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  revision INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE / COMMIT until a deadline
          - exponential backoff with jitter
          - then raise (fail closed)
        """
        deadline_ms = max(250, _env_int("FARM_SQLITE_WRITE_DEADLINE_MS", 30_000))
        deadline_ts = _now_ms() + deadline_ms

        base_sleep = max(0.001, float(_env_int("FARM_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("FARM_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        def _retry(stmt: str, con: sqlite3.Connection) -> None:
            attempt = 0
            while True:
                try:
                    con.execute(stmt)
                    return
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

        with self.connection() as con:
            _retry("BEGIN IMMEDIATE;", con)
            try:
                yield con
                _retry("COMMIT;", con)
            except Exception:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass
                raise


class SqliteFarmStore:
    """Farm snapshot store persisted in SQLite.

      - read(): load the latest snapshot
      - write(st): overwrite the snapshot atomically, bumping the revision

    The authoritative snapshot is a single row.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM farm_state WHERE id=1;").fetchone() is not None

    def revision(self) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT revision FROM farm_state WHERE id=1;").fetchone()
            return int(row["revision"]) if row is not None else 0

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM farm_state WHERE id=1;").fetchone()
            if row is None:
                raise FileNotFoundError("sqlite farm_state is missing")
            st = json.loads(str(row["state_json"]))
            if not isinstance(st, dict):
                raise ValueError("farm_state is not a JSON object")
            return st

    def write(self, st: Json) -> int:
        if not isinstance(st, dict):
            raise ValueError("farm state write expects dict")
        payload = _canon_json(st)
        now = _now_ms()
        with self._db.write_tx() as con:
            row = con.execute("SELECT revision FROM farm_state WHERE id=1;").fetchone()
            rev = (int(row["revision"]) if row is not None else 0) + 1
            con.execute(
                """
                INSERT INTO farm_state(id, revision, state_json, updated_ts_ms)
                VALUES(1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  revision=excluded.revision,
                  state_json=excluded.state_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (rev, payload, now),
            )
        return rev
