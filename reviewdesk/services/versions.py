# services/versions.py
"""Review containers and their version ledger.

`create_version` is the upload path: compress outside any transaction, then in
one transaction lock (or create) the container, supersede whatever is active,
and append the next version number.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.background import run_sync
from reviewdesk.database import transaction
from reviewdesk.errors import NotFound, RevisionLimitExceeded, ValidationError
from reviewdesk.models import (
    Policy,
    Project,
    Review,
    ReviewStatus,
    ReviewVersion,
    VersionStatus,
    utcnow,
)
from reviewdesk.services.events import log_activity, notify
from reviewdesk.services.processor import DocumentProcessor, PdfProcessor, ProcessedDocument
from reviewdesk.services.revision_policy import ReviewEvent, budget_exhausted, evaluate
from reviewdesk.services.tokens import default_tokens
from reviewdesk.settings.config import settings

logger = logging.getLogger(__name__)

DEFAULT = object()  # "caller did not say"; distinct from None (= unlimited)

OVER_BUDGET_WARNING = "revision_limit_exceeded"


@dataclass
class UploadResult:
    review: Review
    version: ReviewVersion
    ratio: float
    over_budget: bool = False

    @property
    def warning(self) -> Optional[str]:
        return OVER_BUDGET_WARNING if self.over_budget else None


def retention_deadline(now: datetime) -> datetime:
    return now + timedelta(days=settings.RETENTION_DAYS)


def _discard_upload(path: Path) -> None:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Could not delete original upload %s", path)


async def get_review(db: AsyncSession, review_id: int, *, for_update: bool = False) -> Review:
    stmt = select(Review).where(Review.id == review_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    review = (await db.execute(stmt)).scalars().first()
    if not review:
        raise NotFound("Review not found")
    return review


async def list_versions(db: AsyncSession, review_id: int) -> list[ReviewVersion]:
    rows = await db.execute(
        select(ReviewVersion)
        .where(ReviewVersion.review_id == review_id)
        .order_by(ReviewVersion.version_number.desc())
    )
    return list(rows.scalars().all())


async def _lock_container(db: AsyncSession, project_id: int, title: str) -> Review | None:
    return (
        await db.execute(
            select(Review)
            .where(Review.project_id == project_id, Review.title == title)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


async def _append_version(
    db: AsyncSession,
    *,
    project_id: int,
    title: str,
    processed: ProcessedDocument,
    filename: str,
    created_by: str,
    review_limit,
    review_policy: Policy,
    tokens: Callable[[], str],
    now: datetime,
) -> UploadResult:
    over_budget = False
    review = await _lock_container(db, project_id, title)
    if review is None:
        review = Review(
            project_id=project_id,
            title=title,
            status=ReviewStatus.in_review,
            policy=review_policy,
            review_limit=review_limit,
            revisions_used=0,
            unread_count=0,
            token=tokens(),
            is_token_active=True,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        db.add(review)
        await db.flush()
        logger.info("Created review container %s for project %s (%r)", review.id, project_id, title)
    elif budget_exhausted(review.revisions_used, review.review_limit):
        decision = evaluate(review.policy, review.revisions_used, review.review_limit, ReviewEvent.upload)
        if not decision.allowed:
            logger.warning("Upload rejected for review %s: %s", review.id, decision.reason)
            raise RevisionLimitExceeded()
        over_budget = decision.over_budget
        logger.warning(
            "Review %s is over budget (%s/%s) under soft policy; accepting upload",
            review.id, review.revisions_used, review.review_limit,
        )

    # compare-on-write: whatever is active at commit time gets superseded
    await db.execute(
        update(ReviewVersion)
        .where(ReviewVersion.review_id == review.id, ReviewVersion.is_active.is_(True))
        .values(
            is_active=False,
            status=VersionStatus.superseded,
            retention_expires_at=retention_deadline(now),
            updated_at=now,
        )
        .execution_options(synchronize_session="fetch")
    )

    last = (
        await db.execute(
            select(func.max(ReviewVersion.version_number)).where(ReviewVersion.review_id == review.id)
        )
    ).scalar()
    version = ReviewVersion(
        review_id=review.id,
        project_id=project_id,
        version_number=(last or 0) + 1,
        file_url=processed.url,
        file_path=processed.rel_path,
        original_filename=filename,
        token=tokens(),
        is_token_active=True,
        status=VersionStatus.active,
        is_active=True,
        original_size_bytes=processed.original_size,
        compressed_size_bytes=processed.compressed_size,
        compression_ratio=processed.ratio,
        last_accessed_at=now,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )
    db.add(version)
    await db.flush()

    review.current_version_id = version.id
    review.updated_at = now

    log_activity(
        db, "project", project_id, "review_version_uploaded",
        {
            "reviewId": review.id,
            "version": version.version_number,
            "compression": f"{processed.ratio * 100:.1f}%",
            "overBudget": over_budget,
        },
    )
    notify(
        db, "project", "New Review Version",
        f'{created_by} uploaded version {version.version_number} of "{title}".',
        f"/projects/{project_id}",
    )
    await db.flush()
    return UploadResult(review=review, version=version, ratio=processed.ratio, over_budget=over_budget)


async def create_version(
    db: AsyncSession,
    project_id: int,
    source: Path,
    filename: str,
    *,
    title: Optional[str] = None,
    created_by: Optional[str] = None,
    review_limit=DEFAULT,
    review_policy: Optional[str] = None,
    processor: Optional[DocumentProcessor] = None,
    tokens: Callable[[], str] = default_tokens,
    now: Optional[datetime] = None,
) -> UploadResult:
    """Compress `source` and append it as the next version of (project, title).

    The raw upload at `source` is always deleted before returning.
    """
    processor = processor or PdfProcessor()
    title = (title or "").strip() or settings.DEFAULT_REVIEW_TITLE
    created_by = (created_by or "").strip() or "System"
    try:
        policy = Policy(review_policy or settings.DEFAULT_REVIEW_POLICY)
    except ValueError:
        _discard_upload(source)
        raise ValidationError(f"Unknown review policy: {review_policy}")

    project = await db.get(Project, project_id)
    if not project or project.deleted_at is not None:
        _discard_upload(source)
        raise NotFound("Project not found")
    if review_limit is DEFAULT:
        review_limit = project.review_limit if project.review_limit is not None else settings.DEFAULT_REVIEW_LIMIT
    if review_limit is not None and review_limit < 0:
        _discard_upload(source)
        raise ValidationError("review_limit must be zero or positive")
    # end the read transaction before the slow part
    await db.rollback()

    try:
        processed = await run_sync(processor.process, Path(source), project_id, filename)
    finally:
        _discard_upload(source)

    for attempt in (1, 2):
        try:
            async with transaction(db):
                result = await _append_version(
                    db,
                    project_id=project_id,
                    title=title,
                    processed=processed,
                    filename=filename,
                    created_by=created_by,
                    review_limit=review_limit,
                    review_policy=policy,
                    tokens=tokens,
                    now=now or utcnow(),
                )
        except IntegrityError:
            if attempt == 2:
                processor.layout.remove(processed.rel_path)
                raise
            # lost a race for the container row or the version number
            logger.warning("Concurrent upload for project %s %r; retrying", project_id, title)
            continue
        except BaseException:
            processor.layout.remove(processed.rel_path)
            raise
        break

    logger.info(
        "Review %s: version %s uploaded (ratio %.3f)",
        result.review.id, result.version.version_number, result.ratio,
    )
    return result


# ---------------------------------------------------------------------------
# Container administration
# ---------------------------------------------------------------------------

async def list_reviews(db: AsyncSession, project_id: Optional[int] = None):
    """(review, project name, current version) rows, most recently touched first."""
    stmt = (
        select(Review, Project.name, ReviewVersion)
        .join(Project, Project.id == Review.project_id)
        .outerjoin(ReviewVersion, ReviewVersion.id == Review.current_version_id)
    )
    if project_id is not None:
        stmt = stmt.where(Review.project_id == project_id).order_by(Review.created_at.desc(), Review.id.desc())
    else:
        stmt = stmt.where(Project.deleted_at.is_(None)).order_by(Review.updated_at.desc(), Review.id.desc())
    return list((await db.execute(stmt)).all())


async def get_review_detail(db: AsyncSession, review_id: int):
    row = (
        await db.execute(
            select(Review, Project.name, ReviewVersion)
            .join(Project, Project.id == Review.project_id)
            .outerjoin(ReviewVersion, ReviewVersion.id == Review.current_version_id)
            .where(Review.id == review_id)
        )
    ).first()
    if not row:
        raise NotFound("Review not found")
    review, project_name, current = row
    return review, project_name, current, await list_versions(db, review_id)


async def set_pin(db: AsyncSession, review_id: int, pin_code: Optional[str]) -> Review:
    async with transaction(db):
        review = await get_review(db, review_id, for_update=True)
        review.pin_code = (pin_code or "").strip() or None
        review.updated_at = utcnow()
    return review


async def set_token_active(db: AsyncSession, review_id: int, active: bool) -> Review:
    async with transaction(db):
        review = await get_review(db, review_id, for_update=True)
        review.is_token_active = bool(active)
        review.updated_at = utcnow()
    logger.info("Review %s share link %s", review_id, "enabled" if active else "disabled")
    return review


async def mark_read(db: AsyncSession, review_id: int) -> Review:
    async with transaction(db):
        review = await get_review(db, review_id, for_update=True)
        review.unread_count = 0
    return review


__all__ = [
    "DEFAULT",
    "UploadResult",
    "create_version",
    "get_review",
    "get_review_detail",
    "list_reviews",
    "list_versions",
    "set_pin",
    "set_token_active",
    "mark_read",
    "retention_deadline",
]
