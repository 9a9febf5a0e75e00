from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Shared type for incoming due dates which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Normalize due date input into a datetime.
    - Strings are parsed as ISO8601 datetimes, falling back to dates at 00:00.
    - Dates are promoted to datetimes at 00:00.
    - Datetimes are returned as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid dueDate format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for dueDate; expected date, datetime, or ISO8601 string.")


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class TagWrite(CamelModel):
    """
    Schema for creating or renaming a Tag.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"tagName": "groceries"}})

    tag_name: str = Field(..., description="Tag label", min_length=1, max_length=50)

    @field_validator("tag_name")
    @classmethod
    def validate_tag_name(cls, v: str) -> str:
        s = v.strip()
        if not (1 <= len(s) <= 50):
            raise ValueError("tagName length must be between 1 and 50 characters")
        return s


# PUBLIC_INTERFACE
class TagResponse(CamelModel):
    """
    Schema returned by the API for a Tag.
    """

    tag_id: int = Field(..., description="Unique identifier of the tag")
    tag_name: str = Field(..., description="Tag label")


# ---------------------------------------------------------------------------
# Todos
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class TodoCreate(CamelModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries",
                "dueDate": "2025-02-01",
                "tagIds": [1, 2],
            }
        }
    )

    description: str = Field(..., description="What needs to be done", min_length=1)
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    tag_ids: List[int] = Field(
        default_factory=list,
        description="Tags to attach; ids not owned by the caller are ignored",
    )

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description must not be blank")
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(CamelModel):
    """
    Schema for updating an existing Todo item.

    Every field is optional and None means "not provided": the stored value
    is left untouched. An empty description is ignored rather than rejected.
    A tagIds list, even an empty one, replaces the whole tag set.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Buy groceries and supplies",
                "isDone": True,
                "dueDate": "2025-02-02T09:30:00",
                "tagIds": [2],
            }
        }
    )

    description: Optional[str] = Field(default=None, description="What needs to be done")
    is_done: Optional[bool] = Field(default=None, description="Completion status flag")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    tag_ids: Optional[List[int]] = Field(
        default=None, description="Replacement tag set; omit to keep the current tags"
    )

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoResponse(CamelModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "todoId": 123,
                "description": "Buy groceries",
                "isDone": False,
                "dueDate": "2025-02-01T00:00:00",
                "createAt": "2025-01-25T10:15:30.123456",
                "updateAt": "2025-01-26T09:00:00.000001",
                "tags": [{"tagId": 1, "tagName": "groceries"}],
            }
        }
    )

    todo_id: int = Field(..., description="Unique identifier of the todo item")
    description: str = Field(..., description="What needs to be done")
    is_done: bool = Field(..., description="Completion status flag")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    create_at: datetime = Field(..., description="Creation timestamp")
    update_at: datetime = Field(..., description="Last update timestamp")
    tags: List[TagResponse] = Field(default_factory=list, description="Tags attached to the todo")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


# PUBLIC_INTERFACE
class LoginRequest(CamelModel):
    identifier: str = Field(..., min_length=1, description="Email address of the account")
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    success: bool
    access_token: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    message: Optional[str] = None


# PUBLIC_INTERFACE
class RegisterRequest(CamelModel):
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1, description="Email address used to sign in")
    contact: str = Field(..., min_length=1, description="Where the confirmation code is delivered")


class RegisterResponse(CamelModel):
    message: str
    identifier: str


# PUBLIC_INTERFACE
class ConfirmRequest(CamelModel):
    identifier: str = Field(..., min_length=1)
    confirmation_code: str = Field(..., min_length=1)


# PUBLIC_INTERFACE
class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class RefreshResponse(CamelModel):
    access_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_in: Optional[int] = None


class MessageResponse(CamelModel):
    message: str


# PUBLIC_INTERFACE
class UserInfoResponse(CamelModel):
    """Provider-side profile of the caller plus the token subject."""

    username: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    sub: Optional[str] = None
