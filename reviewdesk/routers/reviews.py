from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.background import run_sync
from reviewdesk.database import get_db
from reviewdesk.errors import ValidationError
from reviewdesk.routes_shared import comment_tree, get_layout, get_processor, review_detail, review_summary
from reviewdesk.schemas import (
    ActionRequest,
    ActionResponse,
    CommentRead,
    PinRequest,
    PurgeResponse,
    ReviewDetail,
    ReviewExport,
    ReviewRead,
    ReviewSummary,
    TokenStateRequest,
    UploadResponse,
    VersionExport,
    VersionRead,
    VersionViewRead,
)
from reviewdesk.services import actions as action_svc
from reviewdesk.services import comments as comment_svc
from reviewdesk.services import gateway
from reviewdesk.services import versions as version_svc
from reviewdesk.services.retention import purge_expired_versions
from reviewdesk.settings.config import settings
from reviewdesk.utils import actor_label, clean_filename, require_admin_user, require_authenticated_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reviews"])

UNLIMITED_WORDS = {"unlimited", "none", "null"}


def _parse_limit(raw: Optional[str]):
    value = (raw or "").strip().lower()
    if not value:
        return version_svc.DEFAULT
    if value in UNLIMITED_WORDS:
        return None
    try:
        limit = int(value)
    except ValueError:
        raise ValidationError("review_limit must be a number or 'unlimited'")
    if limit < 0:
        raise ValidationError("review_limit must be zero or positive")
    return limit


def _store_incoming(upload: UploadFile, dest: Path) -> int:
    dest.parent.mkdir(parents=True, exist_ok=True)
    with open(dest, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return dest.stat().st_size


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
@router.post("/reviews/upload", response_model=UploadResponse)
async def upload_review_version(
    file: UploadFile = File(None),
    project_id: int = Form(...),
    created_by: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    review_limit: Optional[str] = Form(None),
    review_policy: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    processor=Depends(get_processor),
    layout=Depends(get_layout),
    user=Depends(require_authenticated_user),
):
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")
    limit = _parse_limit(review_limit)

    filename = clean_filename(file.filename)
    incoming = layout.absolute(Path("incoming") / f"{uuid.uuid4().hex}-{filename}")
    size = await run_sync(_store_incoming, file, incoming)
    if size > settings.MAX_UPLOAD_MB * 1024 * 1024:
        incoming.unlink(missing_ok=True)
        raise ValidationError(f"File exceeds {settings.MAX_UPLOAD_MB} MB")
    logger.info("[Upload] project=%s file=%s size=%d", project_id, filename, size)

    result = await version_svc.create_version(
        db,
        project_id,
        incoming,
        filename,
        title=title,
        created_by=created_by or actor_label(user),
        review_limit=limit,
        review_policy=review_policy,
        processor=processor,
    )
    return UploadResponse(
        review_id=result.review.id,
        version_id=result.version.id,
        version_number=result.version.version_number,
        ratio=result.ratio,
        over_budget=result.over_budget,
        warning=result.warning,
    )


# ---------------------------------------------------------------------------
# Containers & versions
# ---------------------------------------------------------------------------
@router.get("/reviews", response_model=list[ReviewSummary])
async def list_reviews(db: AsyncSession = Depends(get_db), user=Depends(require_authenticated_user)):
    rows = await version_svc.list_reviews(db)
    return [review_summary(*row) for row in rows]


@router.get("/projects/{project_id}/reviews", response_model=list[ReviewSummary])
async def list_project_reviews(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    rows = await version_svc.list_reviews(db, project_id=project_id)
    return [review_summary(*row) for row in rows]


@router.get("/reviews/version/{version_id}", response_model=VersionViewRead)
async def get_version(
    version_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    view = await gateway.resolve_version_by_id(db, version_id)
    return VersionViewRead(
        review_id=view.review.id,
        project_id=view.review.project_id,
        project_name=view.project_name,
        title=view.review.title,
        is_current=view.is_current,
        version=VersionRead.model_validate(view.version),
    )


@router.get("/reviews/{review_id}", response_model=ReviewDetail)
async def get_review(review_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_authenticated_user)):
    review, project_name, current, versions = await version_svc.get_review_detail(db, review_id)
    return review_detail(review, project_name, current, versions)


@router.get("/reviews/{review_id}/versions", response_model=list[VersionRead])
async def get_review_versions(
    review_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    await version_svc.get_review(db, review_id)
    return [VersionRead.model_validate(v) for v in await version_svc.list_versions(db, review_id)]


@router.post("/reviews/{review_id}/action", response_model=ActionResponse)
async def review_action(
    review_id: int,
    payload: ActionRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    if not payload.action:
        raise ValidationError("action is required")
    result = await action_svc.record_action(
        db,
        review_id,
        payload.version_id,
        payload.action,
        action_svc.Actor(payload.first_name, payload.last_name, payload.email),
    )
    return ActionResponse(
        status=result.status,
        review_status=result.review_status,
        revisions_used=result.revisions_used,
        over_budget=result.over_budget,
        warning=version_svc.OVER_BUDGET_WARNING if result.over_budget else None,
    )


@router.post("/reviews/{review_id}/read", response_model=ReviewRead)
async def mark_review_read(review_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_authenticated_user)):
    return ReviewRead.model_validate(await version_svc.mark_read(db, review_id))


@router.put("/reviews/{review_id}/pin", response_model=ReviewRead)
async def set_review_pin(
    review_id: int,
    payload: PinRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    return ReviewRead.model_validate(await version_svc.set_pin(db, review_id, payload.pin_code))


@router.put("/reviews/{review_id}/token", response_model=ReviewRead)
async def set_review_token_state(
    review_id: int,
    payload: TokenStateRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_authenticated_user),
):
    return ReviewRead.model_validate(await version_svc.set_token_active(db, review_id, payload.active))


# registered ahead of /reviews/{review_id}/export so "versions" is not read as an id
@router.get("/reviews/versions/{version_id}/export", response_model=VersionExport)
async def export_version(version_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_authenticated_user)):
    data = await comment_svc.export_version(db, version_id)
    return VersionExport(
        version_info=data["version_info"],
        comments=[CommentRead.model_validate(c) for c in data["comments"]],
    )


@router.get("/reviews/{review_id}/export", response_model=ReviewExport)
async def export_review(review_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_authenticated_user)):
    data = await comment_svc.export_review(db, review_id)
    return ReviewExport(review_info=data["review_info"], feedback=comment_tree(data["feedback"]))


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------
@router.post("/admin/retention/purge", response_model=PurgeResponse)
async def run_retention_purge(
    db: AsyncSession = Depends(get_db),
    layout=Depends(get_layout),
    admin=Depends(require_admin_user),
):
    report = await purge_expired_versions(db, layout=layout)
    return PurgeResponse(purged=report.purged, missing_files=report.missing_files)


__all__ = ["router"]
