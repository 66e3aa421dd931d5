from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.database import get_db
from reviewdesk.routes_shared import get_layout
from reviewdesk.schemas import (
    CommentCreate,
    CommentRead,
    CommentUpdate,
    ConvertTaskResponse,
    ResolveRequest,
)
from reviewdesk.services import comments as comment_svc
from reviewdesk.utils import actor_label, require_authenticated_user

router = APIRouter(prefix="/api", tags=["review-comments"])


@router.get("/reviews/versions/{version_id}/comments", response_model=list[CommentRead])
async def list_version_comments(
    version_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    return [CommentRead.model_validate(c) for c in await comment_svc.list_comments(db, version_id)]


@router.post("/reviews/versions/{version_id}/comments", response_model=CommentRead, status_code=201)
async def add_version_comment(
    version_id: int,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
    layout=Depends(get_layout),
    user=Depends(require_authenticated_user),
):
    draft = comment_svc.CommentDraft(
        **payload.model_dump(exclude={"created_by"}),
        created_by=payload.created_by or actor_label(user),
    )
    comment = await comment_svc.add_comment(db, version_id, draft, layout=layout)
    return CommentRead.model_validate(comment)


@router.put("/review-comments/{comment_id}", response_model=CommentRead)
async def edit_comment(
    comment_id: int,
    payload: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    comment = await comment_svc.update_comment(db, comment_id, payload.model_dump(exclude_unset=True))
    return CommentRead.model_validate(comment)


@router.delete("/review-comments/{comment_id}")
async def remove_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    await comment_svc.delete_comment(db, comment_id)
    return JSONResponse({"ok": True})


@router.put("/reviews/comments/{comment_id}/resolve", response_model=CommentRead)
async def resolve_comment(
    comment_id: int,
    payload: ResolveRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    resolver = (payload.resolved_by if payload else None) or actor_label(user)
    return CommentRead.model_validate(await comment_svc.resolve_comment(db, comment_id, resolver))


@router.post("/reviews/comments/{comment_id}/convert-task", response_model=ConvertTaskResponse)
async def convert_comment_to_task(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    task, comment = await comment_svc.promote_to_task(db, comment_id)
    return ConvertTaskResponse(task_id=task.id, comment_id=comment.id, title=task.title)


__all__ = ["router"]
