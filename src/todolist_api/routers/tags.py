from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..auth import get_subject, require_bearer_token
from ..dependencies import get_repo
from ..repositories import Repository
from ..schemas import TagResponse, TagWrite

router = APIRouter(
    prefix="/tags",
    tags=["tags"],
    dependencies=[Depends(require_bearer_token)],
    responses={401: {"description": "Missing, invalid or expired bearer token"}},
)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")


# PUBLIC_INTERFACE
@router.get("", response_model=List[TagResponse], summary="List Tags")
def list_tags(
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> List[TagResponse]:
    return [TagResponse(tag_id=t["id"], tag_name=t["name"]) for t in repo.list_tags(subject)]


# PUBLIC_INTERFACE
@router.get(
    "/{tag_id}",
    response_model=TagResponse,
    summary="Get Tag",
    responses={404: {"description": "Tag not found"}},
)
def get_tag(
    tag_id: int,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> TagResponse:
    tag = repo.get_tag(subject, tag_id)
    if not tag:
        raise _not_found()
    return TagResponse(tag_id=tag["id"], tag_name=tag["name"])


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Tag",
    responses={400: {"description": "Validation error"}},
)
def create_tag(
    payload: TagWrite,
    request: Request,
    response: Response,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> TagResponse:
    tag = repo.create_tag(subject, payload.tag_name)
    response.headers["Location"] = str(request.url_for("get_tag", tag_id=tag["id"]))
    return TagResponse(tag_id=tag["id"], tag_name=tag["name"])


# PUBLIC_INTERFACE
@router.put(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Rename Tag",
    responses={404: {"description": "Tag not found"}},
)
def update_tag(
    tag_id: int,
    payload: TagWrite,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> None:
    if not repo.update_tag(subject, tag_id, payload.tag_name):
        raise _not_found()
    return None


# PUBLIC_INTERFACE
@router.delete(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Tag",
    description="Delete a Tag; it is detached from every todo that carried it.",
    responses={404: {"description": "Tag not found"}},
)
def delete_tag(
    tag_id: int,
    subject: str = Depends(get_subject),
    repo: Repository = Depends(get_repo),
) -> None:
    if not repo.delete_tag(subject, tag_id):
        raise _not_found()
    return None
