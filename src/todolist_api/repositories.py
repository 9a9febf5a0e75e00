from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Dict, List, Optional, Sequence, Set

from .associations import resolve_tag_ids
from .models import TagEntity, TodoEntity
from .schemas import TodoCreate, TodoUpdate
from .settings import Settings


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for todo and tag storage backends.

    Every operation takes the owner subject as its first argument and only
    ever sees rows owned by that subject. A row owned by someone else is
    reported exactly like a missing one.
    """

    # Tags

    @abstractmethod
    def list_tags(self, subject: str) -> List[TagEntity]:
        """Return all tags owned by subject."""

    @abstractmethod
    def get_tag(self, subject: str, tag_id: int) -> Optional[TagEntity]:
        """Return a tag by id, or None if not found for subject."""

    @abstractmethod
    def create_tag(self, subject: str, name: str) -> TagEntity:
        """Create and return a new tag owned by subject."""

    @abstractmethod
    def update_tag(self, subject: str, tag_id: int, name: str) -> bool:
        """Rename a tag. Return False if not found for subject."""

    @abstractmethod
    def delete_tag(self, subject: str, tag_id: int) -> bool:
        """Delete a tag and its todo associations. Return False if not found."""

    @abstractmethod
    def owned_tag_ids(self, subject: str, tag_ids: Sequence[int]) -> Set[int]:
        """Return the subset of tag_ids that exist and are owned by subject."""

    # Todos

    @abstractmethod
    def list_todos(self, subject: str) -> List[TodoEntity]:
        """Return all todos owned by subject, each with its tags."""

    @abstractmethod
    def get_todo(self, subject: str, todo_id: int) -> Optional[TodoEntity]:
        """Return a todo by id, or None if not found for subject."""

    @abstractmethod
    def create_todo(self, subject: str, data: TodoCreate) -> TodoEntity:
        """Create a todo, attach the owned subset of data.tag_ids and return it hydrated."""

    @abstractmethod
    def update_todo(self, subject: str, todo_id: int, data: TodoUpdate) -> bool:
        """Apply the provided fields of data. Return False if not found for subject."""

    @abstractmethod
    def delete_todo(self, subject: str, todo_id: int) -> bool:
        """Delete a todo and its associations. Return False if not found."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._tags: Dict[int, TagEntity] = {}
        self._todos: Dict[int, dict] = {}
        self._todo_tags: Dict[int, List[int]] = {}
        self._next_tag_id = 1
        self._next_todo_id = 1

    def _now(self) -> datetime:
        return datetime.now()

    def _hydrate(self, row: dict) -> TodoEntity:
        tags = [self._tags[i].copy() for i in self._todo_tags.get(row["id"], []) if i in self._tags]
        return {**row, "tags": tags}  # type: ignore[return-value]

    # Tags

    def list_tags(self, subject: str) -> List[TagEntity]:
        with self._lock:
            return [t.copy() for t in self._tags.values() if t["owner"] == subject]

    def get_tag(self, subject: str, tag_id: int) -> Optional[TagEntity]:
        with self._lock:
            tag = self._tags.get(tag_id)
            if tag is None or tag["owner"] != subject:
                return None
            return tag.copy()

    def create_tag(self, subject: str, name: str) -> TagEntity:
        with self._lock:
            tag: TagEntity = {"id": self._next_tag_id, "name": name, "owner": subject}
            self._next_tag_id += 1
            self._tags[tag["id"]] = tag
            return tag.copy()

    def update_tag(self, subject: str, tag_id: int, name: str) -> bool:
        with self._lock:
            tag = self._tags.get(tag_id)
            if tag is None or tag["owner"] != subject:
                return False
            tag["name"] = name
            return True

    def delete_tag(self, subject: str, tag_id: int) -> bool:
        with self._lock:
            tag = self._tags.get(tag_id)
            if tag is None or tag["owner"] != subject:
                return False
            del self._tags[tag_id]
            for ids in self._todo_tags.values():
                if tag_id in ids:
                    ids.remove(tag_id)
            return True

    def owned_tag_ids(self, subject: str, tag_ids: Sequence[int]) -> Set[int]:
        with self._lock:
            return {i for i in tag_ids if i in self._tags and self._tags[i]["owner"] == subject}

    # Todos

    def list_todos(self, subject: str) -> List[TodoEntity]:
        with self._lock:
            return [self._hydrate(row) for row in self._todos.values() if row["owner"] == subject]

    def get_todo(self, subject: str, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            row = self._todos.get(todo_id)
            if row is None or row["owner"] != subject:
                return None
            return self._hydrate(row)

    def create_todo(self, subject: str, data: TodoCreate) -> TodoEntity:
        now = self._now()
        with self._lock:
            row = {
                "id": self._next_todo_id,
                "description": data.description,
                "done": False,
                "due_date": data.due_date,
                "created_at": now,
                "updated_at": now,
                "owner": subject,
            }
            self._next_todo_id += 1
            self._todos[row["id"]] = row
            self._todo_tags[row["id"]] = resolve_tag_ids(self, subject, data.tag_ids)
            return self._hydrate(row)

    def update_todo(self, subject: str, todo_id: int, data: TodoUpdate) -> bool:
        with self._lock:
            row = self._todos.get(todo_id)
            if row is None or row["owner"] != subject:
                return False

            if data.description:
                row["description"] = data.description
            if data.is_done is not None:
                row["done"] = data.is_done
            if data.due_date is not None:
                row["due_date"] = data.due_date
            row["updated_at"] = self._now()

            if data.tag_ids is not None:
                self._todo_tags[todo_id] = resolve_tag_ids(self, subject, data.tag_ids)
            return True

    def delete_todo(self, subject: str, todo_id: int) -> bool:
        with self._lock:
            row = self._todos.get(todo_id)
            if row is None or row["owner"] != subject:
                return False
            del self._todos[todo_id]
            self._todo_tags.pop(todo_id, None)
            return True


# PUBLIC_INTERFACE
def get_repository(settings: Settings) -> Repository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()
