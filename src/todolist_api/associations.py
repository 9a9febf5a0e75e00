from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Sequence, Set

if TYPE_CHECKING:
    from .repositories import Repository


# PUBLIC_INTERFACE
def resolve_tag_ids(
    repo: "Repository",
    subject: str,
    tag_ids: Iterable[int],
    lookup: Optional[Callable[[str, Sequence[int]], Set[int]]] = None,
) -> List[int]:
    """
    Return the candidate tag ids that belong to tags owned by subject.

    Duplicates are collapsed keeping first-occurrence order. Ids of missing
    tags or of tags owned by someone else are dropped without error, so a
    todo can never be linked to another user's tag.

    lookup replaces repo.owned_tag_ids when the caller must run the ownership
    query inside its own transaction.
    """
    candidates = list(dict.fromkeys(int(i) for i in tag_ids))
    if not candidates:
        return []
    owned = (lookup or repo.owned_tag_ids)(subject, candidates)
    return [i for i in candidates if i in owned]
