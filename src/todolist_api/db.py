from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Generator, List, Optional, Sequence, Set

from .associations import resolve_tag_ids
from .models import TagEntity, TodoEntity
from .repositories import Repository
from .schemas import TodoCreate, TodoUpdate


@dataclass(frozen=True)
class _TagCols:
    table: str = "tags"
    id: str = "tag_id"
    name: str = "tag_name"
    owner: str = "owner"


@dataclass(frozen=True)
class _TodoCols:
    table: str = "todos"
    id: str = "todo_id"
    description: str = "description"
    done: str = "is_done"
    due_date: str = "due_date"
    created_at: str = "created_at"
    updated_at: str = "updated_at"
    owner: str = "owner"


@dataclass(frozen=True)
class _LinkCols:
    table: str = "todo_tag"
    todo_id: str = "todo_id"
    tag_id: str = "tag_id"


_TAG = _TagCols()
_TODO = _TodoCols()
_LINK = _LinkCols()


# SQLite INTEGER is a signed 64-bit value; larger ids cannot name a row.
_MIN_ID = -(2**63)
_MAX_ID = 2**63 - 1


def _storable(i: int) -> bool:
    return _MIN_ID <= i <= _MAX_ID


def _placeholders(n: int) -> str:
    return ", ".join("?" for _ in range(n))


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class SQLiteRepository(Repository):
    """
    SQLite repository implementing the Repository interface.

    Associations live in a join table whose foreign keys cascade on delete,
    so removing a todo or a tag also removes its links.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TAG.table} (
                    {_TAG.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_TAG.name} VARCHAR(50) NOT NULL,
                    {_TAG.owner} VARCHAR(50) NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TODO.table} (
                    {_TODO.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_TODO.description} TEXT NOT NULL,
                    {_TODO.done} INTEGER NOT NULL DEFAULT 0,
                    {_TODO.due_date} TEXT NULL,
                    {_TODO.created_at} TEXT NOT NULL,
                    {_TODO.updated_at} TEXT NOT NULL,
                    {_TODO.owner} VARCHAR(50) NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_LINK.table} (
                    {_LINK.todo_id} INTEGER NOT NULL
                        REFERENCES {_TODO.table}({_TODO.id}) ON DELETE CASCADE,
                    {_LINK.tag_id} INTEGER NOT NULL
                        REFERENCES {_TAG.table}({_TAG.id}) ON DELETE CASCADE,
                    PRIMARY KEY ({_LINK.todo_id}, {_LINK.tag_id})
                )
                """
            )
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_TAG.table}_owner ON {_TAG.table}({_TAG.owner})")
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_TODO.table}_owner ON {_TODO.table}({_TODO.owner})")
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{_LINK.table}_tag ON {_LINK.table}({_LINK.tag_id})")

    def _row_to_tag(self, row: sqlite3.Row) -> TagEntity:
        return {
            "id": int(row[_TAG.id]),
            "name": str(row[_TAG.name]),
            "owner": str(row[_TAG.owner]),
        }

    def _row_to_todo(self, row: sqlite3.Row, tags: List[TagEntity]) -> TodoEntity:
        return {
            "id": int(row[_TODO.id]),
            "description": str(row[_TODO.description]),
            "done": bool(row[_TODO.done]),
            "due_date": _parse_dt(row[_TODO.due_date]),
            "created_at": _parse_dt(row[_TODO.created_at]),  # type: ignore
            "updated_at": _parse_dt(row[_TODO.updated_at]),  # type: ignore
            "owner": str(row[_TODO.owner]),
            "tags": tags,
        }

    def _tags_by_todo(self, conn: sqlite3.Connection, subject: str, todo_ids: Sequence[int]) -> Dict[int, List[TagEntity]]:
        result: Dict[int, List[TagEntity]] = {i: [] for i in todo_ids}
        if not todo_ids:
            return result
        rows = conn.execute(
            f"""
            SELECT l.{_LINK.todo_id} AS link_todo_id, t.*
            FROM {_LINK.table} l
            JOIN {_TAG.table} t ON t.{_TAG.id} = l.{_LINK.tag_id}
            WHERE t.{_TAG.owner} = ? AND l.{_LINK.todo_id} IN ({_placeholders(len(todo_ids))})
            ORDER BY t.{_TAG.id}
            """,
            [subject, *todo_ids],
        ).fetchall()
        for r in rows:
            result[int(r["link_todo_id"])].append(self._row_to_tag(r))
        return result

    def _link(self, conn: sqlite3.Connection, todo_id: int, tag_ids: Sequence[int]) -> None:
        conn.executemany(
            f"INSERT OR IGNORE INTO {_LINK.table} ({_LINK.todo_id}, {_LINK.tag_id}) VALUES (?, ?)",
            [(todo_id, tag_id) for tag_id in tag_ids],
        )

    def _owned_tag_ids(self, conn: sqlite3.Connection, subject: str, tag_ids: Sequence[int]) -> Set[int]:
        candidates = [i for i in tag_ids if _storable(i)]
        if not candidates:
            return set()
        rows = conn.execute(
            f"""
            SELECT {_TAG.id} FROM {_TAG.table}
            WHERE {_TAG.owner} = ? AND {_TAG.id} IN ({_placeholders(len(candidates))})
            """,
            [subject, *candidates],
        ).fetchall()
        return {int(r[_TAG.id]) for r in rows}

    def _fetch_todo(self, conn: sqlite3.Connection, subject: str, todo_id: int) -> Optional[TodoEntity]:
        if not _storable(todo_id):
            return None
        row = conn.execute(
            f"SELECT * FROM {_TODO.table} WHERE {_TODO.id} = ? AND {_TODO.owner} = ?",
            (todo_id, subject),
        ).fetchone()
        if not row:
            return None
        tags = self._tags_by_todo(conn, subject, [todo_id])[todo_id]
        return self._row_to_todo(row, tags)

    # Tags

    def list_tags(self, subject: str) -> List[TagEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_TAG.table} WHERE {_TAG.owner} = ? ORDER BY {_TAG.id}", (subject,)
            ).fetchall()
            return [self._row_to_tag(r) for r in rows]

    def get_tag(self, subject: str, tag_id: int) -> Optional[TagEntity]:
        if not _storable(tag_id):
            return None
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_TAG.table} WHERE {_TAG.id} = ? AND {_TAG.owner} = ?",
                (tag_id, subject),
            ).fetchone()
            return self._row_to_tag(row) if row else None

    def create_tag(self, subject: str, name: str) -> TagEntity:
        with self._conn() as conn:
            cur = conn.execute(
                f"INSERT INTO {_TAG.table} ({_TAG.name}, {_TAG.owner}) VALUES (?, ?)",
                (name, subject),
            )
            return {"id": int(cur.lastrowid), "name": name, "owner": subject}

    def update_tag(self, subject: str, tag_id: int, name: str) -> bool:
        if not _storable(tag_id):
            return False
        with self._conn() as conn:
            cur = conn.execute(
                f"UPDATE {_TAG.table} SET {_TAG.name} = ? WHERE {_TAG.id} = ? AND {_TAG.owner} = ?",
                (name, tag_id, subject),
            )
            return cur.rowcount > 0

    def delete_tag(self, subject: str, tag_id: int) -> bool:
        if not _storable(tag_id):
            return False
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_TAG.table} WHERE {_TAG.id} = ? AND {_TAG.owner} = ?",
                (tag_id, subject),
            )
            return cur.rowcount > 0

    def owned_tag_ids(self, subject: str, tag_ids: Sequence[int]) -> Set[int]:
        with self._conn() as conn:
            return self._owned_tag_ids(conn, subject, tag_ids)

    # Todos

    def list_todos(self, subject: str) -> List[TodoEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_TODO.table} WHERE {_TODO.owner} = ? ORDER BY {_TODO.id}", (subject,)
            ).fetchall()
            ids = [int(r[_TODO.id]) for r in rows]
            tags = self._tags_by_todo(conn, subject, ids)
            return [self._row_to_todo(r, tags[int(r[_TODO.id])]) for r in rows]

    def get_todo(self, subject: str, todo_id: int) -> Optional[TodoEntity]:
        with self._conn() as conn:
            return self._fetch_todo(conn, subject, todo_id)

    def create_todo(self, subject: str, data: TodoCreate) -> TodoEntity:
        now = datetime.now().isoformat()
        due = data.due_date.isoformat() if data.due_date else None
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_TODO.table} ({_TODO.description}, {_TODO.done}, {_TODO.due_date},
                    {_TODO.created_at}, {_TODO.updated_at}, {_TODO.owner})
                VALUES (?, 0, ?, ?, ?, ?)
                """,
                (data.description, due, now, now, subject),
            )
            new_id = int(cur.lastrowid)
            tag_ids = resolve_tag_ids(
                self, subject, data.tag_ids, lookup=lambda s, ids: self._owned_tag_ids(conn, s, ids)
            )
            self._link(conn, new_id, tag_ids)
            tags = self._tags_by_todo(conn, subject, [new_id])[new_id]
        return {
            "id": new_id,
            "description": data.description,
            "done": False,
            "due_date": _parse_dt(due),
            "created_at": _parse_dt(now),  # type: ignore
            "updated_at": _parse_dt(now),  # type: ignore
            "owner": subject,
            "tags": tags,
        }

    def update_todo(self, subject: str, todo_id: int, data: TodoUpdate) -> bool:
        if not _storable(todo_id):
            return False
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_TODO.table} WHERE {_TODO.id} = ? AND {_TODO.owner} = ?",
                (todo_id, subject),
            ).fetchone()
            if not row:
                return False

            description = data.description if data.description else row[_TODO.description]
            done = data.is_done if data.is_done is not None else bool(row[_TODO.done])
            due_date = data.due_date.isoformat() if data.due_date is not None else row[_TODO.due_date]
            conn.execute(
                f"""
                UPDATE {_TODO.table}
                SET {_TODO.description} = ?, {_TODO.done} = ?, {_TODO.due_date} = ?, {_TODO.updated_at} = ?
                WHERE {_TODO.id} = ? AND {_TODO.owner} = ?
                """,
                (description, 1 if done else 0, due_date, datetime.now().isoformat(), todo_id, subject),
            )

            if data.tag_ids is not None:
                tag_ids = resolve_tag_ids(
                    self, subject, data.tag_ids, lookup=lambda s, ids: self._owned_tag_ids(conn, s, ids)
                )
                conn.execute(f"DELETE FROM {_LINK.table} WHERE {_LINK.todo_id} = ?", (todo_id,))
                self._link(conn, todo_id, tag_ids)
            return True

    def delete_todo(self, subject: str, todo_id: int) -> bool:
        if not _storable(todo_id):
            return False
        with self._conn() as conn:
            cur = conn.execute(
                f"DELETE FROM {_TODO.table} WHERE {_TODO.id} = ? AND {_TODO.owner} = ?",
                (todo_id, subject),
            )
            return cur.rowcount > 0
