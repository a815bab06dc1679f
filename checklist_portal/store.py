from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .models import ContactEmail, Inspection, Project, ProjectFile, User

LOGGER = logging.getLogger(__name__)

_PROJECT_COLUMNS = [f.name for f in fields(Project) if f.name != "id"]

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        open_id TEXT NOT NULL UNIQUE,
        name TEXT,
        email TEXT,
        password TEXT,
        login_method TEXT,
        role TEXT NOT NULL DEFAULT 'user',
        company TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        last_signed_in TEXT NOT NULL
    )
    """,
    "CREATE TABLE IF NOT EXISTS projects (id INTEGER PRIMARY KEY AUTOINCREMENT, "
    + ", ".join(f"{name} TEXT" for name in _PROJECT_COLUMNS)
    + ")",
    """
    CREATE TABLE IF NOT EXISTS inspections (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL,
        project_name TEXT,
        project_address TEXT,
        opportunity_id TEXT,
        inspection_type TEXT NOT NULL,
        notes TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        ghl_synced INTEGER NOT NULL DEFAULT 0,
        ghl_id TEXT,
        created_by TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contact_emails (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL,
        email TEXT NOT NULL,
        name TEXT,
        ghl_synced INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER NOT NULL,
        file_name TEXT NOT NULL,
        file_url TEXT NOT NULL,
        file_key TEXT NOT NULL,
        file_size INTEGER,
        mime_type TEXT,
        uploaded_by TEXT,
        created_at TEXT NOT NULL
    )
    """,
)

_DATETIME_FIELDS = {
    "created_at",
    "updated_at",
    "last_signed_in",
    "last_updated",
    "synced_at",
}


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _from_db(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    for key in data.keys() & _DATETIME_FIELDS:
        value = data[key]
        data[key] = datetime.fromisoformat(value) if value else None
    return data


class PortalStore:
    """SQLite persistence for synced projects and portal-owned records."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()  # the GHL push pool shares this connection
        if not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock, self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _write(self, sql: str, params: Iterable[Any] = ()) -> int:
        with self._lock, self._conn:
            cursor = self._conn.execute(sql, tuple(params))
            return cursor.lastrowid

    # Users -------------------------------------------------------------------
    def upsert_user(self, user: User) -> User:
        """Insert a user or refresh the stored one with the same open_id."""

        now = datetime.now()
        last_signed_in = user.last_signed_in or now
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO users (
                    open_id, name, email, password, login_method, role, company,
                    created_at, updated_at, last_signed_in
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(open_id) DO UPDATE SET
                    name = COALESCE(excluded.name, users.name),
                    email = COALESCE(excluded.email, users.email),
                    password = COALESCE(excluded.password, users.password),
                    login_method = COALESCE(excluded.login_method, users.login_method),
                    role = excluded.role,
                    company = COALESCE(excluded.company, users.company),
                    updated_at = excluded.updated_at,
                    last_signed_in = excluded.last_signed_in
                """,
                (
                    user.open_id,
                    user.name,
                    user.email,
                    user.password,
                    user.login_method,
                    user.role,
                    user.company,
                    now.isoformat(),
                    now.isoformat(),
                    last_signed_in.isoformat(),
                ),
            )
        stored = self.get_user_by_open_id(user.open_id)
        if stored is None:  # pragma: no cover - the insert above guarantees a row
            raise RuntimeError(f"Failed to store user {user.open_id}")
        return stored

    def get_user_by_open_id(self, open_id: str) -> Optional[User]:
        rows = self._query("SELECT * FROM users WHERE open_id = ? LIMIT 1", (open_id,))
        return User(**_from_db(rows[0])) if rows else None

    def get_user_by_email(self, email: str, login_method: str | None = None) -> Optional[User]:
        """Return the best account for an email.

        Accounts created with ``login_method`` win, then accounts that carry
        a password, then whatever was stored first.
        """

        rows = self._query("SELECT * FROM users WHERE email = ? ORDER BY id", (email,))
        users = [User(**_from_db(row)) for row in rows]
        if not users:
            return None
        if login_method:
            for user in users:
                if user.login_method == login_method:
                    return user
        for user in users:
            if user.password is not None:
                return user
        return users[0]

    # Projects ----------------------------------------------------------------
    def replace_projects(self, projects: List[Project]) -> None:
        placeholders = ", ".join("?" for _ in _PROJECT_COLUMNS)
        sql = f"INSERT INTO projects ({', '.join(_PROJECT_COLUMNS)}) VALUES ({placeholders})"
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM projects")
            self._conn.executemany(
                sql,
                [
                    tuple(_to_db(getattr(project, name)) for name in _PROJECT_COLUMNS)
                    for project in projects
                ],
            )
        LOGGER.debug("Stored %s projects", len(projects))

    def list_projects(self) -> List[Project]:
        """All projects, newest first."""

        rows = self._query("SELECT * FROM projects ORDER BY id DESC")
        return [self._project_from_row(row) for row in rows]

    def get_project(self, project_id: int) -> Optional[Project]:
        rows = self._query("SELECT * FROM projects WHERE id = ? LIMIT 1", (project_id,))
        return self._project_from_row(rows[0]) if rows else None

    @staticmethod
    def _project_from_row(row: sqlite3.Row) -> Project:
        data = _from_db(row)
        for name in _PROJECT_COLUMNS:
            if name not in _DATETIME_FIELDS and data.get(name) is None:
                data[name] = ""
        return Project(**data)

    # Inspections -------------------------------------------------------------
    def create_inspection(self, inspection: Inspection) -> Inspection:
        now = datetime.now()
        inspection_id = self._write(
            """
            INSERT INTO inspections (
                project_id, project_name, project_address, opportunity_id,
                inspection_type, notes, status, ghl_synced, ghl_id, created_by,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                inspection.project_id,
                inspection.project_name,
                inspection.project_address,
                inspection.opportunity_id,
                inspection.inspection_type,
                inspection.notes,
                inspection.status,
                int(inspection.ghl_synced),
                inspection.ghl_id,
                inspection.created_by,
                (inspection.created_at or now).isoformat(),
                now.isoformat(),
            ),
        )
        stored = self.get_inspection(inspection_id)
        if stored is None:  # pragma: no cover
            raise RuntimeError("Failed to store inspection")
        return stored

    def get_inspection(self, inspection_id: int) -> Optional[Inspection]:
        rows = self._query("SELECT * FROM inspections WHERE id = ?", (inspection_id,))
        return self._inspection_from_row(rows[0]) if rows else None

    def list_inspections(self, project_id: int | None = None) -> List[Inspection]:
        if project_id is None:
            rows = self._query("SELECT * FROM inspections ORDER BY id")
        else:
            rows = self._query(
                "SELECT * FROM inspections WHERE project_id = ? ORDER BY id", (project_id,)
            )
        return [self._inspection_from_row(row) for row in rows]

    def list_unsynced_inspections(self) -> List[Inspection]:
        rows = self._query("SELECT * FROM inspections WHERE ghl_synced = 0 ORDER BY id")
        return [self._inspection_from_row(row) for row in rows]

    def update_inspection(self, inspection_id: int, **updates: Any) -> None:
        allowed = {"status", "notes", "inspection_type", "ghl_synced", "ghl_id"}
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Cannot update inspection fields: {', '.join(sorted(unknown))}")
        if not updates:
            return
        assignments = ", ".join(f"{name} = ?" for name in updates)
        params = [_to_db(value) for value in updates.values()]
        params.extend([datetime.now().isoformat(), inspection_id])
        self._write(
            f"UPDATE inspections SET {assignments}, updated_at = ? WHERE id = ?",
            params,
        )

    def mark_inspection_synced(self, inspection_id: int, ghl_id: str | None) -> None:
        self.update_inspection(inspection_id, ghl_synced=True, ghl_id=ghl_id)

    @staticmethod
    def _inspection_from_row(row: sqlite3.Row) -> Inspection:
        data = _from_db(row)
        data["ghl_synced"] = bool(data["ghl_synced"])
        return Inspection(**data)

    # Contact emails ----------------------------------------------------------
    def create_contact_email(self, contact: ContactEmail) -> ContactEmail:
        now = datetime.now().isoformat()
        contact_id = self._write(
            """
            INSERT INTO contact_emails (project_id, email, name, ghl_synced, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (contact.project_id, contact.email, contact.name, int(contact.ghl_synced), now, now),
        )
        rows = self._query("SELECT * FROM contact_emails WHERE id = ?", (contact_id,))
        return self._contact_from_row(rows[0])

    def list_contact_emails(self, project_id: int) -> List[ContactEmail]:
        rows = self._query(
            "SELECT * FROM contact_emails WHERE project_id = ? ORDER BY id", (project_id,)
        )
        return [self._contact_from_row(row) for row in rows]

    def list_unsynced_contact_emails(self) -> List[ContactEmail]:
        rows = self._query("SELECT * FROM contact_emails WHERE ghl_synced = 0 ORDER BY id")
        return [self._contact_from_row(row) for row in rows]

    def mark_contact_synced(self, contact_id: int) -> None:
        self._write(
            "UPDATE contact_emails SET ghl_synced = 1, updated_at = ? WHERE id = ?",
            (datetime.now().isoformat(), contact_id),
        )

    def delete_contact_email(self, contact_id: int, project_id: int | None = None) -> bool:
        if project_id is None:
            sql, params = "DELETE FROM contact_emails WHERE id = ?", (contact_id,)
        else:
            sql = "DELETE FROM contact_emails WHERE id = ? AND project_id = ?"
            params = (contact_id, project_id)
        with self._lock, self._conn:
            return self._conn.execute(sql, params).rowcount > 0

    @staticmethod
    def _contact_from_row(row: sqlite3.Row) -> ContactEmail:
        data = _from_db(row)
        data["ghl_synced"] = bool(data["ghl_synced"])
        return ContactEmail(**data)

    # Project files -----------------------------------------------------------
    def create_project_file(self, project_file: ProjectFile) -> ProjectFile:
        record = asdict(project_file)
        record.pop("id")
        record["created_at"] = (project_file.created_at or datetime.now()).isoformat()
        columns = ", ".join(record)
        placeholders = ", ".join("?" for _ in record)
        file_id = self._write(
            f"INSERT INTO project_files ({columns}) VALUES ({placeholders})",
            record.values(),
        )
        rows = self._query("SELECT * FROM project_files WHERE id = ?", (file_id,))
        return ProjectFile(**_from_db(rows[0]))

    def list_project_files(self, project_id: int | None = None) -> List[ProjectFile]:
        if project_id is None:
            rows = self._query("SELECT * FROM project_files ORDER BY id")
        else:
            rows = self._query(
                "SELECT * FROM project_files WHERE project_id = ? ORDER BY id", (project_id,)
            )
        return [ProjectFile(**_from_db(row)) for row in rows]

    def delete_project_file(self, file_id: int, project_id: int | None = None) -> bool:
        if project_id is None:
            sql, params = "DELETE FROM project_files WHERE id = ?", (file_id,)
        else:
            sql = "DELETE FROM project_files WHERE id = ? AND project_id = ?"
            params = (file_id, project_id)
        with self._lock, self._conn:
            return self._conn.execute(sql, params).rowcount > 0
