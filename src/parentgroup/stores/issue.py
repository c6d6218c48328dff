from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from ..policy import OrderTerm
from ..workspace import Workspace

logger = logging.getLogger(__name__)

ISSUE_STATUSES = (
    "open",
    "in_progress",
    "closed",
)
ORDER_FIELDS = {
    "id": "i.id",
    "parent_id": "i.parent_id",
    "subject": "i.subject",
    "status": "i.status",
    "created_at": "i.created_at",
}


_SCHEMA = """
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS issues (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL,
    parent_id INTEGER REFERENCES issues(id) ON DELETE SET NULL,
    status TEXT NOT NULL,
    created_at INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_issues_parent ON issues(parent_id);
"""

_COLUMNS = "i.id, i.subject, i.parent_id, i.status, i.created_at"


@dataclass(frozen=True)
class Issue:
    id: int
    subject: str
    parent_id: int | None = None
    status: str = "open"
    created_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _normalize_status(status: str) -> str:
    value = status.strip().lower()
    if value not in ISSUE_STATUSES:
        raise ValueError(f"invalid status: {status}")
    return value


def _normalize_id(value: object, *, field: str = "id") -> int:
    if value is None or isinstance(value, bool):
        raise ValueError(f"invalid {field}: {value!r}")
    try:
        issue_id = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid {field}: {value!r}") from exc
    if issue_id < 1:
        raise ValueError(f"invalid {field}: {value!r}")
    return issue_id


def _row_to_issue(row: sqlite3.Row) -> Issue:
    return Issue(
        id=int(row["id"]),
        subject=str(row["subject"]),
        parent_id=(int(row["parent_id"]) if row["parent_id"] is not None else None),
        status=str(row["status"]),
        created_at=int(row["created_at"]),
    )


def order_by_sql(order: Sequence[OrderTerm]) -> str:
    parts: list[str] = []
    for term in order:
        column = ORDER_FIELDS.get(term.field)
        if column is None:
            raise ValueError(f"unknown order field: {term.field}")
        if term.nulls_last:
            parts.append(f"CASE WHEN {column} IS NULL THEN 1 ELSE 0 END ASC")
            continue
        direction = "ASC" if term.direction == "asc" else "DESC"
        parts.append(f"{column} {direction}")
    return ", ".join(parts)


@dataclass
class IssueStore:
    root: Path
    create_on_connect: bool = True

    @classmethod
    def from_workdir(
        cls,
        cwd: Path | None = None,
        *,
        create: bool = True,
    ) -> "IssueStore":
        workspace = Workspace.locate(cwd)
        if create:
            workspace.ensure()
        return cls(workspace.root, create_on_connect=create)

    @property
    def db_path(self) -> Path:
        return Workspace(self.root).db_path

    def _connect(self) -> sqlite3.Connection:
        if self.create_on_connect:
            self.root.mkdir(parents=True, exist_ok=True)
        elif not self.db_path.exists():
            raise FileNotFoundError(str(self.db_path))
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(_SCHEMA)
        return conn

    def _require(self, conn: sqlite3.Connection, issue_id: int) -> None:
        row = conn.execute("SELECT 1 FROM issues WHERE id=?", (issue_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown issue: {issue_id}")

    def create(
        self,
        subject: str,
        *,
        parent_id: int | None = None,
        status: str = "open",
    ) -> Issue:
        issue_subject = subject.strip()
        if not issue_subject:
            raise ValueError("subject cannot be empty")
        issue_status = _normalize_status(status)

        with self._connect() as conn:
            parent_key = None
            if parent_id is not None:
                parent_key = _normalize_id(parent_id, field="parent_id")
                self._require(conn, parent_key)
            cur = conn.execute(
                """
                INSERT INTO issues(subject, parent_id, status, created_at)
                VALUES(?, ?, ?, ?)
                """,
                (issue_subject, parent_key, issue_status, _now_ms()),
            )
            issue_id = int(cur.lastrowid)

        issue = self.get(issue_id)
        if issue is None:
            raise RuntimeError("created issue could not be loaded")
        return issue

    def get(self, issue_id: int) -> Issue | None:
        if not self.db_path.exists():
            return None
        try:
            issue_key = _normalize_id(issue_id)
        except ValueError:
            return None
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM issues i WHERE i.id=?",
                (issue_key,),
            ).fetchone()
        return _row_to_issue(row) if row is not None else None

    def find_many(self, issue_ids: Iterable[int]) -> dict[int, Issue]:
        """Look up several issues in one query; missing ids are left out."""
        keys = sorted({int(issue_id) for issue_id in issue_ids if issue_id is not None})
        if not keys or not self.db_path.exists():
            return {}
        placeholders = ", ".join("?" for _ in keys)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM issues i WHERE i.id IN ({placeholders})",
                tuple(keys),
            ).fetchall()
        logger.debug("resolved %d of %d issue ids", len(rows), len(keys))
        return {int(row["id"]): _row_to_issue(row) for row in rows}

    def list(
        self,
        *,
        order: Sequence[OrderTerm] = (),
        status: str | None = None,
        limit: int | None = None,
    ) -> list[Issue]:
        if limit is not None and int(limit) < 1:
            raise ValueError(f"invalid limit: {limit!r}")
        if not self.db_path.exists():
            return []

        query = f"SELECT {_COLUMNS} FROM issues i"
        params: list[Any] = []
        if status:
            query += " WHERE i.status = ?"
            params.append(_normalize_status(status))

        order_sql = order_by_sql(order)
        query += f" ORDER BY {order_sql}" if order_sql else " ORDER BY i.id ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [_row_to_issue(row) for row in rows]

    def set_parent(self, issue_id: int, parent_id: int | None) -> Issue:
        issue_key = _normalize_id(issue_id)
        with self._connect() as conn:
            self._require(conn, issue_key)
            parent_key = None
            if parent_id is not None:
                parent_key = _normalize_id(parent_id, field="parent_id")
                if parent_key == issue_key:
                    raise ValueError("issue cannot be its own parent")
                self._require(conn, parent_key)
            conn.execute(
                "UPDATE issues SET parent_id=? WHERE id=?",
                (parent_key, issue_key),
            )

        issue = self.get(issue_key)
        if issue is None:
            raise RuntimeError("updated issue could not be loaded")
        return issue

    def delete(self, issue_id: int) -> Issue:
        issue = self.get(issue_id)
        if issue is None:
            raise ValueError(f"unknown issue: {issue_id}")
        with self._connect() as conn:
            conn.execute("DELETE FROM issues WHERE id=?", (issue.id,))
        return issue

    def import_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[Issue]:
        """Insert rows keeping their ids; parents may appear after children."""
        pending: list[tuple[int, str, int | None, str, int]] = []
        for row in rows:
            issue_id = _normalize_id(row.get("id"))
            subject = str(row.get("subject") or "").strip()
            if not subject:
                raise ValueError(f"subject cannot be empty (issue {issue_id})")
            raw_parent = row.get("parent_id")
            parent_key = (
                _normalize_id(raw_parent, field="parent_id")
                if raw_parent is not None
                else None
            )
            if parent_key == issue_id:
                raise ValueError(f"issue cannot be its own parent (issue {issue_id})")
            pending.append(
                (
                    issue_id,
                    subject,
                    parent_key,
                    _normalize_status(str(row.get("status") or "open")),
                    int(row.get("created_at") or _now_ms()),
                )
            )

        try:
            with self._connect() as conn:
                conn.executemany(
                    """
                    INSERT INTO issues(id, subject, parent_id, status, created_at)
                    VALUES(?, ?, NULL, ?, ?)
                    """,
                    [(i, s, st, c) for i, s, _, st, c in pending],
                )
                conn.executemany(
                    "UPDATE issues SET parent_id=? WHERE id=?",
                    [(p, i) for i, _, p, _, _ in pending if p is not None],
                )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"import failed: {exc}") from exc

        found = self.find_many(item[0] for item in pending)
        return [found[item[0]] for item in pending]
