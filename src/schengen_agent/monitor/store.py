# src/schengen_agent/monitor/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .errors import StoreError
from .models import Account, HistoryEntry, Portal, Task, TaskStatus

logger = logging.getLogger(__name__)


class AgentStore:
    """
    SQLite store for tasks, accounts, settings and status history.

    Every public method is atomic at the single-record level; nothing here spans
    records in one transaction. sqlite3 errors surface as StoreError.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    _TASK_COLUMNS: dict[str, str] = {
        "account_id": "INTEGER",
        "full_name": "TEXT NOT NULL DEFAULT ''",
        "passport_no": "TEXT NOT NULL DEFAULT ''",
        "birth_date": "TEXT NOT NULL DEFAULT ''",
        "country": "TEXT NOT NULL DEFAULT ''",
        "city": "TEXT NOT NULL DEFAULT ''",
        "center": "TEXT NOT NULL DEFAULT ''",
        "earliest_date": "TEXT NOT NULL DEFAULT ''",
        "latest_date": "TEXT NOT NULL DEFAULT ''",
        "status": "TEXT NOT NULL DEFAULT 'ready'",
        "booked_date": "TEXT",
        "appointment_details": "TEXT",
        "last_reminder": "TEXT",
    }

    def __init__(self, db_path: str | Path = "agent.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("AgentStore ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _conn(self, op: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreError(f"{op}: cannot open {self._db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"{op} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._conn("ensure_schema") as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    full_name TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    portal TEXT NOT NULL,
                    username TEXT NOT NULL,
                    password TEXT NOT NULL DEFAULT ''
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    old_status TEXT NOT NULL,
                    new_status TEXT NOT NULL,
                    details TEXT NOT NULL DEFAULT '',
                    timestamp TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing task columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}
            for name, decl in self._TASK_COLUMNS.items():
                if name in cols:
                    continue
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("AgentStore migration: added column tasks.%s", name)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_history_task ON history(task_id)")

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            account_id=int(row["account_id"]) if row["account_id"] is not None else None,
            full_name=str(row["full_name"] or ""),
            passport_no=str(row["passport_no"] or ""),
            birth_date=str(row["birth_date"] or ""),
            country=str(row["country"] or ""),
            city=str(row["city"] or ""),
            center=str(row["center"] or ""),
            earliest_date=str(row["earliest_date"] or ""),
            latest_date=str(row["latest_date"] or ""),
            status=TaskStatus.from_db(row["status"]),
            booked_date=row["booked_date"],
            appointment_details=row["appointment_details"],
            last_reminder=row["last_reminder"],
        )

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        try:
            portal = Portal(row["portal"])
        except ValueError:
            logger.warning("Account %s has unknown portal %r", row["id"], row["portal"])
            portal = Portal.IDATA
        return Account(
            id=int(row["id"]),
            portal=portal,
            username=str(row["username"] or ""),
            password=str(row["password"] or ""),
        )

    @staticmethod
    def _row_to_history(row: sqlite3.Row) -> HistoryEntry:
        return HistoryEntry(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            old_status=TaskStatus.from_db(row["old_status"]),
            new_status=TaskStatus.from_db(row["new_status"]),
            details=str(row["details"] or ""),
            timestamp=str(row["timestamp"]),
        )

    # ---- tasks ----

    def list_tasks(self) -> list[Task]:
        with self._conn("list_tasks") as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
            return [self._row_to_task(r) for r in rows]

    def get_task(self, task_id: int) -> Task | None:
        with self._conn("get_task") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None

    def put_task(self, task: Task) -> int:
        """Insert (id is None) or replace a task. Returns its id."""
        values = (
            task.account_id,
            task.full_name,
            task.passport_no,
            task.birth_date,
            task.country,
            task.city,
            task.center,
            task.earliest_date,
            task.latest_date,
            task.status.value,
            task.booked_date,
            task.appointment_details,
            task.last_reminder,
        )
        with self._conn("put_task") as conn:
            cur = conn.cursor()
            if task.id is None:
                cur.execute(
                    """
                    INSERT INTO tasks(
                        account_id, full_name, passport_no, birth_date,
                        country, city, center, earliest_date, latest_date,
                        status, booked_date, appointment_details, last_reminder
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values,
                )
                rowid = cur.lastrowid
                if rowid is None:
                    raise StoreError("SQLite did not return lastrowid for tasks insert")
                task_id = int(rowid)
            else:
                task_id = int(task.id)
                cur.execute(
                    """
                    INSERT OR REPLACE INTO tasks(
                        id, account_id, full_name, passport_no, birth_date,
                        country, city, center, earliest_date, latest_date,
                        status, booked_date, appointment_details, last_reminder
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (task_id, *values),
                )
        logger.debug("Task saved id=%s status=%s", task_id, task.status.value)
        return task_id

    def delete_task(self, task_id: int) -> None:
        with self._conn("delete_task") as conn:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))

    def try_transition(
        self,
        task_id: int,
        *,
        expected: TaskStatus,
        new_status: TaskStatus,
        booked_date: str | None = None,
        appointment_details: str | None = None,
    ) -> bool:
        """
        Conditional status change.

        Atomically transitions:
          status == expected -> status = new_status (+ booking fields)

        Returns True only if this call moved the row.
        """
        with self._conn("try_transition") as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET status = ?,
                    booked_date = COALESCE(?, booked_date),
                    appointment_details = COALESCE(?, appointment_details)
                WHERE id = ?
                  AND status = ?
                """,
                (
                    new_status.value,
                    booked_date,
                    appointment_details,
                    int(task_id),
                    expected.value,
                ),
            )
            return cur.rowcount == 1

    # ---- accounts ----

    def list_accounts(self) -> list[Account]:
        with self._conn("list_accounts") as conn:
            rows = conn.execute("SELECT * FROM accounts ORDER BY id ASC").fetchall()
            return [self._row_to_account(r) for r in rows]

    def get_account(self, account_id: int) -> Account | None:
        with self._conn("get_account") as conn:
            row = conn.execute("SELECT * FROM accounts WHERE id = ?", (int(account_id),)).fetchone()
            return self._row_to_account(row) if row else None

    def put_account(self, account: Account) -> int:
        with self._conn("put_account") as conn:
            cur = conn.cursor()
            if account.id is None:
                cur.execute(
                    "INSERT INTO accounts(portal, username, password) VALUES (?, ?, ?)",
                    (account.portal.value, account.username, account.password),
                )
                rowid = cur.lastrowid
                if rowid is None:
                    raise StoreError("SQLite did not return lastrowid for accounts insert")
                return int(rowid)

            cur.execute(
                "INSERT OR REPLACE INTO accounts(id, portal, username, password) VALUES (?, ?, ?, ?)",
                (int(account.id), account.portal.value, account.username, account.password),
            )
            return int(account.id)

    def delete_account(self, account_id: int) -> None:
        """Referencing tasks are left alone; their account_id simply stops resolving."""
        with self._conn("delete_account") as conn:
            conn.execute("DELETE FROM accounts WHERE id = ?", (int(account_id),))

    # ---- settings ----

    def get_all_settings(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        with self._conn("get_all_settings") as conn:
            for row in conn.execute("SELECT key, value FROM settings").fetchall():
                try:
                    out[str(row["key"])] = json.loads(row["value"])
                except json.JSONDecodeError:
                    logger.warning("Ignoring undecodable setting %r", row["key"])
        return out

    def put_setting(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StoreError(f"setting {key!r} is not JSON-serializable: {e}") from e
        with self._conn("put_setting") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings(key, value) VALUES (?, ?)",
                (key, encoded),
            )

    # ---- history ----

    def append_history(self, entry: HistoryEntry) -> int:
        with self._conn("append_history") as conn:
            cur = conn.execute(
                """
                INSERT INTO history(task_id, old_status, new_status, details, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    int(entry.task_id),
                    entry.old_status.value,
                    entry.new_status.value,
                    entry.details,
                    entry.timestamp,
                ),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for history insert")
            return int(rowid)

    def list_history(self, task_id: int) -> list[HistoryEntry]:
        """History of one task, newest first."""
        with self._conn("list_history") as conn:
            rows = conn.execute(
                "SELECT * FROM history WHERE task_id = ? ORDER BY timestamp DESC, id DESC",
                (int(task_id),),
            ).fetchall()
            return [self._row_to_history(r) for r in rows]
