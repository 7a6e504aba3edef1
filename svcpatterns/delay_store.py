"""Storage of delayed messages in sharded SQLite tables."""

from __future__ import annotations

import enum
import sqlite3
import threading
import time
from dataclasses import dataclass, replace
from typing import Optional, Sequence

DEFAULT_TABLES = (
    "delay_msg_db_0.delay_msg_tab_0",
    "delay_msg_db_0.delay_msg_tab_1",
    "delay_msg_db_1.delay_msg_tab_0",
    "delay_msg_db_1.delay_msg_tab_1",
)


class DelayMsgStatus(enum.IntEnum):
    WAITING = 0
    COMPLETED = 1


@dataclass(frozen=True)
class StoredDelayMsg:
    """A delayed message as kept in a table; times are epoch milliseconds."""

    topic: str
    value: bytes
    deadline: int
    key: Optional[str] = None
    status: DelayMsgStatus = DelayMsgStatus.WAITING
    id: Optional[int] = None
    ctime: int = 0
    utime: int = 0


def _now_ms() -> int:
    return int(time.time() * 1000)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class DelayMsgDAO:
    """Spreads delayed messages over several tables in round-robin order.

    The connection may be shared between threads; all access is serialised.
    """

    def __init__(
        self, connection: sqlite3.Connection, tables: Sequence[str] = DEFAULT_TABLES
    ) -> None:
        if not tables:
            raise ValueError("at least one table is required")
        self._conn = connection
        self._tables = tuple(tables)
        self._index = 0
        self._lock = threading.Lock()

    @property
    def tables(self) -> tuple[str, ...]:
        return self._tables

    def _check_table(self, table: str) -> str:
        if table not in self._tables:
            raise ValueError(f"unknown table {table!r}")
        return _quote(table)

    def create_tables(self) -> None:
        """Create every table and its indexes if they do not exist yet."""
        with self._lock, self._conn:
            for table in self._tables:
                quoted = _quote(table)
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {quoted} ("
                    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                    "topic TEXT NOT NULL, "
                    "value BLOB, "
                    '"key" TEXT UNIQUE, '
                    "deadline INTEGER NOT NULL, "
                    "status INTEGER NOT NULL, "
                    "ctime INTEGER NOT NULL, "
                    "utime INTEGER NOT NULL)"
                )
                for column in ("deadline", "utime"):
                    index = _quote(f"{table}_{column}_idx")
                    self._conn.execute(
                        f"CREATE INDEX IF NOT EXISTS {index} ON {quoted} ({column})"
                    )

    def insert(self, msg: StoredDelayMsg) -> tuple[str, StoredDelayMsg]:
        """Store ``msg`` as waiting in the next table in turn.

        Returns the table used and the message as stored.
        """
        now = _now_ms()
        with self._lock:
            self._index += 1
            table = self._tables[self._index % len(self._tables)]
            with self._conn:
                cursor = self._conn.execute(
                    f"INSERT INTO {_quote(table)} "
                    '(topic, value, "key", deadline, status, ctime, utime) '
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        msg.topic,
                        bytes(msg.value),
                        msg.key,
                        msg.deadline,
                        int(DelayMsgStatus.WAITING),
                        now,
                        now,
                    ),
                )
        stored = replace(
            msg,
            id=cursor.lastrowid,
            status=DelayMsgStatus.WAITING,
            ctime=now,
            utime=now,
        )
        return table, stored

    def complete(self, table: str, *args: int) -> int:
        """Mark the messages with the given ids completed; return how many."""
        quoted = self._check_table(table)
        if not args:
            return 0
        placeholders = ", ".join("?" for _ in args)
        with self._lock, self._conn:
            cursor = self._conn.execute(
                f"UPDATE {quoted} SET status = ?, utime = ? "
                f"WHERE id IN ({placeholders})",
                (int(DelayMsgStatus.COMPLETED), _now_ms(), *args),
            )
        return cursor.rowcount

    def find_delay_msg(self, table: str, limit: int) -> list[StoredDelayMsg]:
        """Return up to ``limit`` waiting messages that are due, newest first."""
        quoted = self._check_table(table)
        with self._lock:
            rows = self._conn.execute(
                f'SELECT id, topic, value, "key", deadline, status, ctime, utime '
                f"FROM {quoted} WHERE status = ? AND deadline <= ? "
                "ORDER BY ctime DESC LIMIT ?",
                (int(DelayMsgStatus.WAITING), _now_ms(), limit),
            ).fetchall()
        return [
            StoredDelayMsg(
                id=row[0],
                topic=row[1],
                value=bytes(row[2] or b""),
                key=row[3],
                deadline=row[4],
                status=DelayMsgStatus(row[5]),
                ctime=row[6],
                utime=row[7],
            )
            for row in rows
        ]