"""Routes reachable with nothing but a share token.

Container tokens open the review page (any version, optionally PIN-protected);
version tokens are the per-file links embedded in notifications.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.database import get_db
from reviewdesk.errors import RevisionLimitExceeded
from reviewdesk.routes_shared import get_layout
from reviewdesk.schemas import (
    ActionResponse,
    CommentRead,
    PinCheckRequest,
    PublicActorRequest,
    PublicCommentCreate,
    ReviewRead,
    TokenViewRead,
    VersionBrief,
    VersionRead,
    VersionViewRead,
)
from reviewdesk.services import actions as action_svc
from reviewdesk.services import comments as comment_svc
from reviewdesk.services import gateway
from reviewdesk.services.versions import OVER_BUDGET_WARNING

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["public"])


def _action_response(result) -> ActionResponse:
    return ActionResponse(
        status=result.status,
        review_status=result.review_status,
        revisions_used=result.revisions_used,
        over_budget=result.over_budget,
        warning=OVER_BUDGET_WARNING if result.over_budget else None,
    )


def _public_actor(payload: Optional[PublicActorRequest]) -> action_svc.Actor:
    if not payload:
        return action_svc.Actor()
    return action_svc.Actor(first_name=(payload.name or "").strip() or None, email=payload.email)


@router.get("/review-by-token/{token}")
async def review_by_token(
    token: str,
    v: Optional[int] = Query(None),
    pin: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    if not await gateway.verify_pin(db, token, pin):
        return JSONResponse({"pin_required": True})
    view = await gateway.resolve_by_token(db, token, version_id=v)
    return TokenViewRead(
        container_id=view.review.id,
        version_id=view.version.id,
        project_name=view.project_name,
        is_current=view.is_current,
        requires_pin=view.requires_pin,
        review=ReviewRead.model_validate(view.review),
        version=VersionRead.model_validate(view.version),
        all_versions=[VersionBrief.model_validate(x) for x in view.versions],
    )


@router.post("/review-by-token/{token}/verify-pin")
async def verify_review_pin(token: str, payload: PinCheckRequest, db: AsyncSession = Depends(get_db)):
    return {"valid": await gateway.verify_pin(db, token, payload.pin)}


@router.get("/public/review/{token}", response_model=VersionViewRead)
async def public_version(token: str, db: AsyncSession = Depends(get_db)):
    view = await gateway.resolve_version_token(db, token)
    return VersionViewRead(
        review_id=view.review.id,
        project_id=view.review.project_id,
        project_name=view.project_name,
        title=view.review.title,
        is_current=view.is_current,
        version=VersionRead.model_validate(view.version),
    )


@router.post("/public/review/{token}/request-changes", response_model=ActionResponse)
async def public_request_changes(
    token: str,
    payload: PublicActorRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await action_svc.record_action_by_token(db, token, "request-changes", _public_actor(payload))
    except RevisionLimitExceeded as exc:
        logger.info("Public request-changes rejected for token %s...: %s", token[:6], exc.message)
        raise HTTPException(status_code=403, detail=exc.message)
    return _action_response(result)


@router.post("/public/review/{token}/approve", response_model=ActionResponse)
async def public_approve(
    token: str,
    payload: PublicActorRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    result = await action_svc.record_action_by_token(db, token, "approve", _public_actor(payload))
    return _action_response(result)


@router.get("/public/reviews/versions/{version_id}/comments", response_model=list[CommentRead])
async def public_list_comments(version_id: int, db: AsyncSession = Depends(get_db)):
    return [CommentRead.model_validate(c) for c in await comment_svc.list_comments(db, version_id)]


@router.post("/public/reviews/versions/{version_id}/comments", response_model=CommentRead, status_code=201)
async def public_add_comment(
    version_id: int,
    payload: PublicCommentCreate,
    db: AsyncSession = Depends(get_db),
    layout=Depends(get_layout),
):
    # public authors only ever fill author_name / author_email
    draft = comment_svc.CommentDraft(
        **payload.model_dump(exclude={"author_name"}),
        author_name=(payload.author_name or "").strip() or "Guest",
    )
    comment = await comment_svc.add_comment(db, version_id, draft, layout=layout)
    return CommentRead.model_validate(comment)


__all__ = ["router"]
