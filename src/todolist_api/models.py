from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TypedDict


# PUBLIC_INTERFACE
class TagEntity(TypedDict):
    """
    A tag owned by a single subject.

    Fields:
    - id: Unique integer identifier
    - name: Tag label (1..50 chars)
    - owner: Subject of the user owning the tag
    """

    id: int
    name: str
    owner: str


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A todo item as returned by the storage backends, hydrated with its tags.

    Fields:
    - id: Unique integer identifier
    - description: Free text, never empty
    - done: Completion flag
    - due_date: Optional due datetime
    - created_at: Creation timestamp, set once
    - updated_at: Last mutation timestamp
    - owner: Subject of the user owning the todo
    - tags: Tags attached to the todo, all owned by the same subject
    """

    id: int
    description: str
    done: bool
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    owner: str
    tags: List[TagEntity]
