from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..auth import get_subject, require_bearer_token
from ..dependencies import get_repo
from ..models import TodoEntity
from ..repositories import Repository
from ..schemas import TagResponse, TodoCreate, TodoResponse, TodoUpdate

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
    dependencies=[Depends(require_bearer_token)],
    responses={401: {"description": "Missing, invalid or expired bearer token"}},
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")


def to_response(todo: TodoEntity) -> TodoResponse:
    return TodoResponse(
        todo_id=todo["id"],
        description=todo["description"],
        is_done=todo["done"],
        due_date=todo["due_date"],
        create_at=todo["created_at"],
        update_at=todo["updated_at"],
        tags=[TagResponse(tag_id=t["id"], tag_name=t["name"]) for t in todo["tags"]],
    )


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoResponse],
    summary="List Todos",
    description="List all todos owned by the caller, each with its tags.",
)
def list_todos(
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> List[TodoResponse]:
    return [to_response(t) for t in repo.list_todos(subject)]


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoResponse,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={404: {"description": "Todo not found"}},
)
def get_todo(
    todo_id: int,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> TodoResponse:
    """
    Retrieve a single Todo. Todos of other users are reported as not found.
    """
    item = repo.get_todo(subject, todo_id)
    if not item:
        raise _not_found()
    return to_response(item)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description=(
        "Create a new Todo item and return it with its tags. "
        "Tag ids that do not belong to the caller are ignored."
    ),
    responses={400: {"description": "Validation error"}},
)
def create_todo(
    payload: TodoCreate,
    request: Request,
    response: Response,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> TodoResponse:
    created = repo.create_todo(subject, payload)
    response.headers["Location"] = str(request.url_for("get_todo", todo_id=created["id"]))
    return to_response(created)


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Update Todo",
    description=(
        "Partially update a Todo item. Omitted or null fields keep their value; "
        "an empty description is ignored. Sending tagIds replaces the whole tag set."
    ),
    responses={404: {"description": "Todo not found"}},
)
def update_todo(
    todo_id: int,
    payload: TodoUpdate,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> None:
    if not repo.update_todo(subject, todo_id, payload):
        raise _not_found()
    return None


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Todo",
    description="Delete a Todo item and its tag associations.",
    responses={404: {"description": "Todo not found"}},
)
def delete_todo(
    todo_id: int,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> None:
    if not repo.delete_todo(subject, todo_id):
        raise _not_found()
    return None
