# services/actions.py
"""Approve / request-changes processing.

Every action is written to `review_action`, even repeats. Revision credits are
counted per version: the first request-changes recorded against a version
consumes one credit, any further ones on that same version are free.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.database import transaction
from reviewdesk.errors import Gone, NotFound, RevisionLimitExceeded, ValidationError
from reviewdesk.models import (
    ActionType,
    Review,
    ReviewAction,
    ReviewStatus,
    ReviewVersion,
    VersionStatus,
    utcnow,
)
from reviewdesk.services.events import actor_display, log_activity, notify
from reviewdesk.services.gateway import resolve_version_token
from reviewdesk.services.revision_policy import ReviewEvent, evaluate
from reviewdesk.services.versions import get_review

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display(self) -> str:
        return actor_display(self.first_name, self.last_name, self.email)


@dataclass
class ActionResult:
    status: VersionStatus
    revisions_used: int
    review_status: ReviewStatus
    over_budget: bool = False


def parse_action(raw) -> ActionType:
    if isinstance(raw, ActionType):
        return raw
    try:
        return ActionType((raw or "").strip())
    except ValueError:
        raise ValidationError("action must be 'approve' or 'request-changes'")


def _version_status_for(action: ActionType) -> VersionStatus:
    if action is ActionType.approve:
        return VersionStatus.approved
    if action is ActionType.request_changes:
        return VersionStatus.changes_requested
    raise ValueError(f"unhandled action {action!r}")


def _review_status_for(status: VersionStatus) -> ReviewStatus:
    if status is VersionStatus.approved:
        return ReviewStatus.approved
    if status is VersionStatus.changes_requested:
        return ReviewStatus.changes_requested
    raise ValueError(f"version status {status!r} has no container counterpart")


async def _request_changes_count(db: AsyncSession, version_id: int) -> int:
    return (
        await db.execute(
            select(func.count(ReviewAction.id)).where(
                ReviewAction.version_id == version_id,
                ReviewAction.action_type == ActionType.request_changes,
            )
        )
    ).scalar_one()


async def _apply_action(
    db: AsyncSession,
    review: Review,
    version: ReviewVersion,
    action: ActionType,
    actor: Actor,
) -> ActionResult:
    over_budget = False
    if action is ActionType.request_changes:
        decision = evaluate(review.policy, review.revisions_used, review.review_limit, ReviewEvent.request_changes)
        if not decision.allowed:
            logger.warning(
                "request-changes rejected for review %s version %s: %s",
                review.id, version.id, decision.reason,
            )
            raise RevisionLimitExceeded()
        over_budget = decision.over_budget

    now = utcnow()
    db.add(
        ReviewAction(
            review_id=review.id,
            version_id=version.id,
            action_type=action,
            first_name=actor.first_name or None,
            last_name=actor.last_name or None,
            email=actor.email or None,
            created_at=now,
        )
    )
    await db.flush()

    new_status = _version_status_for(action)
    version.status = new_status
    version.updated_at = now

    if action is ActionType.request_changes:
        count = await _request_changes_count(db, version.id)
        if count <= 1:
            review.revisions_used = (review.revisions_used or 0) + 1
            logger.info("Review %s: first change request on v%s, revisions_used=%s",
                        review.id, version.version_number, review.revisions_used)
        else:
            logger.info("Review %s: repeat change request on v%s (%s so far); no credit used",
                        review.id, version.version_number, count)
        review.unread_count = (review.unread_count or 0) + 1

    review.status = _review_status_for(new_status)
    review.updated_at = now

    verb = "approved" if action is ActionType.approve else "requested changes for"
    notify(
        db,
        "review_action",
        "Review Approved" if action is ActionType.approve else "Changes Requested",
        f'{actor.display} ({actor.email or "no email"}) {verb} "{review.title}" v{version.version_number}.',
        f"/projects/{review.project_id}",
    )
    log_activity(
        db, "project", review.project_id,
        "review_approved" if action is ActionType.approve else "review_feedback",
        {"reviewId": review.id, "versionId": version.id, "actor": actor.display},
    )
    await db.flush()
    return ActionResult(
        status=new_status,
        revisions_used=review.revisions_used,
        review_status=review.status,
        over_budget=over_budget,
    )


async def record_action(
    db: AsyncSession,
    review_id: int,
    version_id: Optional[int],
    action,
    actor: Optional[Actor] = None,
) -> ActionResult:
    action = parse_action(action)
    if version_id is None:
        raise ValidationError("versionId is required")
    actor = actor or Actor()

    async with transaction(db):
        # the container row lock serialises concurrent actions on this review
        review = await get_review(db, review_id, for_update=True)
        version = await db.get(ReviewVersion, version_id, populate_existing=True)
        if not version or version.review_id != review.id:
            raise NotFound("Version not found")
        result = await _apply_action(db, review, version, action, actor)

    logger.info("Review %s v%s: %s by %s", review.id, version.version_number, action.value, actor.display)
    return result


async def record_action_by_token(
    db: AsyncSession,
    version_token: str,
    action,
    actor: Optional[Actor] = None,
) -> ActionResult:
    """Public variant keyed by a version-scoped share token."""
    action = parse_action(action)
    # purged files and disabled links are refused here exactly as on read
    view = await resolve_version_token(db, version_token)
    if not view.review.is_token_active:
        logger.info("Action on version %s refused: review %s link disabled", view.version.id, view.review.id)
        raise Gone()
    return await record_action(db, view.review.id, view.version.id, action, actor)


async def latest_approval(db: AsyncSession, review_id: int) -> ReviewAction | None:
    return (
        await db.execute(
            select(ReviewAction)
            .where(ReviewAction.review_id == review_id, ReviewAction.action_type == ActionType.approve)
            .order_by(ReviewAction.created_at.desc(), ReviewAction.id.desc())
            .limit(1)
        )
    ).scalars().first()


__all__ = [
    "Actor",
    "ActionResult",
    "parse_action",
    "record_action",
    "record_action_by_token",
    "latest_approval",
]
