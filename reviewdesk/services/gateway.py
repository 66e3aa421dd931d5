# services/gateway.py
"""Anonymous access through share tokens.

Two kinds of token exist: the container token (one link for the whole review,
with a version switcher) and per-version tokens (a link to one specific file).
Nothing here owns data; it resolves references and stamps `last_accessed_at`.
"""
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.database import transaction
from reviewdesk.errors import Gone, NotFound
from reviewdesk.models import Project, Review, ReviewVersion, utcnow

logger = logging.getLogger(__name__)


@dataclass
class TokenView:
    review: Review
    version: ReviewVersion
    project_name: Optional[str]
    is_current: bool
    versions: list[ReviewVersion] = field(default_factory=list)

    @property
    def requires_pin(self) -> bool:
        return bool(self.review.pin_code)


@dataclass
class VersionView:
    version: ReviewVersion
    review: Review
    project_name: Optional[str]

    @property
    def is_current(self) -> bool:
        return self.version.id == self.review.current_version_id


async def track_access(db: AsyncSession, version: ReviewVersion) -> None:
    now = utcnow()
    async with transaction(db):
        await db.execute(
            update(ReviewVersion)
            .where(ReviewVersion.id == version.id)
            .values(last_accessed_at=now)
            .execution_options(synchronize_session=False)
        )
    version.last_accessed_at = now


async def resolve_by_token(
    db: AsyncSession,
    token: str,
    version_id: Optional[int] = None,
) -> TokenView:
    row = (
        await db.execute(
            select(Review, Project.name)
            .join(Project, Project.id == Review.project_id)
            .where(Review.token == token)
        )
    ).first()
    if not row:
        raise NotFound("Review not found")
    review, project_name = row
    if not review.is_token_active:
        logger.info("Inactive container token used for review %s", review.id)
        raise Gone()

    if version_id is not None:
        version = (
            await db.execute(
                select(ReviewVersion).where(
                    ReviewVersion.id == version_id,
                    ReviewVersion.review_id == review.id,
                )
            )
        ).scalars().first()
    elif review.current_version_id is not None:
        version = await db.get(ReviewVersion, review.current_version_id)
    else:
        version = None
    if not version:
        raise NotFound("Review version not found")

    siblings = (
        await db.execute(
            select(ReviewVersion)
            .where(ReviewVersion.review_id == review.id)
            .order_by(ReviewVersion.version_number.desc())
        )
    ).scalars().all()

    await track_access(db, version)
    return TokenView(
        review=review,
        version=version,
        project_name=project_name,
        is_current=version.id == review.current_version_id,
        versions=list(siblings),
    )


async def _version_view(db: AsyncSession, *conditions) -> VersionView:
    row = (
        await db.execute(
            select(ReviewVersion, Review, Project.name)
            .join(Review, Review.id == ReviewVersion.review_id)
            .join(Project, Project.id == Review.project_id)
            .where(*conditions)
        )
    ).first()
    if not row:
        raise NotFound("Version not found")
    version, review, project_name = row
    # always re-checked here; the purge sweep may not have run recently
    if version.file_deleted:
        raise Gone("This review version file has expired")
    return VersionView(version=version, review=review, project_name=project_name)


async def resolve_version_token(db: AsyncSession, token: str) -> VersionView:
    view = await _version_view(db, ReviewVersion.token == token)
    if not view.version.is_token_active:
        raise Gone()
    await track_access(db, view.version)
    return view


async def resolve_version_by_id(db: AsyncSession, version_id: int) -> VersionView:
    view = await _version_view(db, ReviewVersion.id == version_id)
    await track_access(db, view.version)
    return view


async def verify_pin(db: AsyncSession, token: str, pin: Optional[str]) -> bool:
    review = (await db.execute(select(Review).where(Review.token == token))).scalars().first()
    if not review:
        raise NotFound("Review not found")
    if not review.is_token_active:
        raise Gone()
    if not review.pin_code:
        return True
    return hmac.compare_digest(review.pin_code.encode(), (pin or "").strip().encode())


__all__ = [
    "TokenView",
    "VersionView",
    "track_access",
    "resolve_by_token",
    "resolve_version_token",
    "resolve_version_by_id",
    "verify_pin",
]
