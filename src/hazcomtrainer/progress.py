"""SQLite persistence for the standalone key-value record and the employee directory."""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .models import CertificatePayload, Employee, TrainingRecord

SCHEMA_VERSION = 2

EMPLOYEE_STATUSES = ("current", "overdue", "pending")

# Employee dataclass field -> employees column
_EMPLOYEE_COLUMNS: dict[str, str] = {
    "name": "name",
    "role": "role",
    "completed_module_ids": "completed_modules",
    "pending_module_ids": "pending_modules",
    "last_training_date": "last_training",
    "initial_training_date": "initial_training",
    "status": "status",
}
_LIST_FIELDS = {"completed_module_ids", "pending_module_ids"}


class Database:
    """Owns the SQLite connection and the schema."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()
        self._ensure_column("training_records", "certificate_data", "TEXT")

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            elif version == 2:
                self._migrate_to_v2()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the key-value table used by standalone sessions."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def _migrate_to_v2(self) -> None:
        """Create employee directory tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS employees (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT '',
                    completed_modules TEXT NOT NULL DEFAULT '[]',
                    pending_modules TEXT NOT NULL DEFAULT '[]',
                    initial_training TEXT,
                    last_training TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS training_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    employee_id TEXT NOT NULL,
                    module_id TEXT NOT NULL,
                    completed_date TEXT NOT NULL,
                    score INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
                """)

    def _ensure_column(self, table: str, column: str, definition: str) -> None:
        rows = self._conn.execute(f"PRAGMA table_info({table})").fetchall()
        names = {str(row["name"]) for row in rows}
        if column in names:
            return
        with self._conn:
            self._conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()


class KeyValueStore:
    """String values under string keys, used for the standalone record."""

    def __init__(self, db: Database) -> None:
        self._conn = db.connection

    def get(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def set(self, key: str, value: str) -> None:
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, now),
            )

    def delete(self, key: str) -> bool:
        with self._conn:
            cursor = self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        return cursor.rowcount > 0


class EmployeeDirectory:
    """Employee records and their training history."""

    def __init__(self, db: Database) -> None:
        self._conn = db.connection

    def add_employee(
        self,
        name: str,
        role: str = "",
        pending_module_ids: Iterable[str] = (),
        employee_id: str | None = None,
    ) -> Employee:
        """Create a new employee record with status `pending`."""
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Employee name cannot be empty.")
        new_id = employee_id or uuid.uuid4().hex[:12]
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO employees (id, name, role, completed_modules, pending_modules, status, created_at)
                VALUES (?, ?, ?, '[]', ?, 'pending', ?)
                """,
                (new_id, cleaned, role.strip(), json.dumps(list(pending_module_ids)), now),
            )
        employee = self.get(new_id)
        if employee is None:
            raise RuntimeError("Could not create employee.")
        return employee

    def get(self, employee_id: str) -> Employee | None:
        """Get one employee by id."""
        row = self._conn.execute("SELECT * FROM employees WHERE id = ?", (employee_id,)).fetchone()
        if row is None:
            return None
        return _employee_from_row(row)

    def list_employees(self) -> list[Employee]:
        """Return employees ordered by name."""
        rows = self._conn.execute("SELECT * FROM employees ORDER BY name, id").fetchall()
        return [_employee_from_row(row) for row in rows]

    def update(self, employee_id: str, **fields: Any) -> Employee:
        """Overwrite the named fields of one employee record."""
        unknown = sorted(set(fields) - set(_EMPLOYEE_COLUMNS))
        if unknown:
            raise ValueError(f"Unknown employee field(s): {', '.join(unknown)}")
        if "status" in fields and fields["status"] not in EMPLOYEE_STATUSES:
            raise ValueError(f"Invalid employee status: {fields['status']}")
        if self.get(employee_id) is None:
            raise KeyError(employee_id)
        if fields:
            assignments = ", ".join(f"{_EMPLOYEE_COLUMNS[name]} = ?" for name in fields)
            values = [json.dumps(list(value)) if name in _LIST_FIELDS else value for name, value in fields.items()]
            with self._conn:
                self._conn.execute(
                    f"UPDATE employees SET {assignments} WHERE id = ?",
                    (*values, employee_id),
                )
        employee = self.get(employee_id)
        if employee is None:
            raise KeyError(employee_id)
        return employee

    def append_training_record(
        self,
        employee_id: str,
        module_id: str,
        completed_date: str,
        score: int,
        certificate_payload: CertificatePayload | None = None,
    ) -> TrainingRecord:
        """Append one passed-module entry to an employee's training history."""
        certificate_data = None
        if certificate_payload is not None:
            certificate_data = json.dumps(
                {
                    "employee_name": certificate_payload.employee_name,
                    "company_name": certificate_payload.company_name,
                    "industry": certificate_payload.industry,
                    "date": certificate_payload.date,
                }
            )
        now = datetime.now(UTC).isoformat()
        with self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO training_records (employee_id, module_id, completed_date, score, certificate_data, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (employee_id, module_id, completed_date, int(score), certificate_data, now),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not append training record.")
        return TrainingRecord(
            id=int(row_id),
            employee_id=employee_id,
            module_id=module_id,
            completed_date=completed_date,
            score=int(score),
            certificate_payload=certificate_payload,
        )

    def training_records(self, employee_id: str) -> list[TrainingRecord]:
        """Return an employee's training history, oldest first."""
        rows = self._conn.execute(
            """
            SELECT id, employee_id, module_id, completed_date, score, certificate_data
            FROM training_records
            WHERE employee_id = ?
            ORDER BY id ASC
            """,
            (employee_id,),
        ).fetchall()
        return [_record_from_row(row) for row in rows]


def _employee_from_row(row: sqlite3.Row) -> Employee:
    return Employee(
        id=str(row["id"]),
        name=str(row["name"]),
        role=str(row["role"] or ""),
        completed_module_ids=tuple(str(item) for item in json.loads(row["completed_modules"] or "[]")),
        pending_module_ids=tuple(str(item) for item in json.loads(row["pending_modules"] or "[]")),
        last_training_date=row["last_training"],
        initial_training_date=row["initial_training"],
        status=str(row["status"]),
    )


def _record_from_row(row: sqlite3.Row) -> TrainingRecord:
    payload = None
    if row["certificate_data"]:
        raw = json.loads(row["certificate_data"])
        payload = CertificatePayload(
            employee_name=str(raw["employee_name"]),
            company_name=str(raw["company_name"]),
            industry=str(raw["industry"]),
            date=str(raw["date"]),
        )
    return TrainingRecord(
        id=int(row["id"]),
        employee_id=str(row["employee_id"]),
        module_id=str(row["module_id"]),
        completed_date=str(row["completed_date"]),
        score=int(row["score"]),
        certificate_payload=payload,
    )
