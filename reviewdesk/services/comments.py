# services/comments.py
"""Reviewer comments anchored to a region of a specific version.

Replies point at their parent through `parent_id`. Threads are assembled per
request from an id -> node index; a parent only counts when it sits in the
same version, anything else (deleted, foreign, missing) puts the reply at the
root instead of failing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.background import run_sync
from reviewdesk.database import transaction
from reviewdesk.errors import NotFound, ValidationError
from reviewdesk.models import Project, Review, ReviewComment, ReviewVersion, utcnow
from reviewdesk.services.actions import latest_approval
from reviewdesk.services.events import log_activity, notify
from reviewdesk.services.processor import ArtifactLayout
from reviewdesk.services.screenshots import save_screenshot
from reviewdesk.services.tasks import create_task, next_task_order
from reviewdesk.settings.config import settings

logger = logging.getLogger(__name__)

TASK_CONVERSION_RESOLVER = "System (Task Conversion)"


@dataclass
class CommentDraft:
    content: str
    page_number: int = 1
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None
    type: str = "comment"
    parent_id: Optional[int] = None
    created_by: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    screenshot: Optional[str] = None


@dataclass
class CommentNode:
    comment: ReviewComment
    replies: list["CommentNode"] = field(default_factory=list)


def task_title(content: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.TASK_TITLE_LIMIT
    text = (content or "").strip()
    if len(text) > limit:
        text = text[:limit] + "..."
    return f"Review Task: {text}"


async def _get_comment(db: AsyncSession, comment_id: int) -> ReviewComment:
    comment = await db.get(ReviewComment, comment_id, populate_existing=True)
    if not comment:
        raise NotFound("Comment not found")
    return comment


async def _parent_in_version(db: AsyncSession, version_id: int, parent_id: Optional[int]) -> Optional[int]:
    if not parent_id:
        return None
    found = (
        await db.execute(
            select(ReviewComment.id).where(
                ReviewComment.id == parent_id,
                ReviewComment.version_id == version_id,
            )
        )
    ).scalar_one_or_none()
    if found is None:
        logger.info("Comment parent %s not on version %s; storing reply as a root", parent_id, version_id)
    return found


async def add_comment(
    db: AsyncSession,
    version_id: int,
    draft: CommentDraft,
    *,
    layout: Optional[ArtifactLayout] = None,
) -> ReviewComment:
    """Insert a comment. Never touches version or container status."""
    content = (draft.content or "").strip()
    if not content:
        raise ValidationError("content is required")

    row = (
        await db.execute(
            select(ReviewVersion, Review.title, Review.project_id, Project.name)
            .join(Review, Review.id == ReviewVersion.review_id)
            .join(Project, Project.id == Review.project_id)
            .where(ReviewVersion.id == version_id)
        )
    ).first()
    if not row:
        raise NotFound("Version not found")
    version, review_title, project_id, project_name = row

    layout = layout or ArtifactLayout()
    screenshot_url = await run_sync(save_screenshot, draft.screenshot, layout) if draft.screenshot else None

    author = (draft.author_name or draft.created_by or "Someone").strip()
    try:
        async with transaction(db):
            parent_id = await _parent_in_version(db, version.id, draft.parent_id)
            comment = ReviewComment(
                version_id=version.id,
                review_id=version.review_id,
                page_number=draft.page_number or 1,
                x=draft.x or 0.0,
                y=draft.y or 0.0,
                width=draft.width or None,
                height=draft.height or None,
                type=(draft.type or "comment").strip() or "comment",
                content=content,
                created_by=draft.created_by,
                author_name=draft.author_name,
                author_email=draft.author_email,
                parent_id=parent_id,
                screenshot_url=screenshot_url,
                created_at=utcnow(),
            )
            db.add(comment)
            await db.flush()
            log_activity(
                db, "project", project_id, "review_comment_added",
                {"versionId": version.id, "commentId": comment.id, "author": author},
            )
            notify(
                db, "project", "Review Comment",
                f"{author} added feedback on {project_name} (Version {version.version_number})",
                f"/review/{version.token}",
            )
            await db.flush()
    except BaseException:
        if screenshot_url:
            layout.remove(screenshot_url.removeprefix(layout.url_prefix).lstrip("/"))
        raise
    return comment


async def list_comments(db: AsyncSession, version_id: int) -> list[ReviewComment]:
    rows = await db.execute(
        select(ReviewComment)
        .where(ReviewComment.version_id == version_id)
        .order_by(ReviewComment.page_number.asc(), ReviewComment.created_at.asc(), ReviewComment.id.asc())
    )
    return list(rows.scalars().all())


def build_thread(comments: Iterable[ReviewComment]) -> list[CommentNode]:
    comments = list(comments)
    index = {c.id: CommentNode(comment=c) for c in comments}
    roots: list[CommentNode] = []
    for c in comments:
        node = index[c.id]
        parent = index.get(c.parent_id) if c.parent_id else None
        if parent is not None and parent is not node and parent.comment.version_id == c.version_id:
            parent.replies.append(node)
        else:
            roots.append(node)
    return roots


async def get_thread(db: AsyncSession, review_id: int) -> list[CommentNode]:
    rows = await db.execute(
        select(ReviewComment)
        .where(ReviewComment.review_id == review_id)
        .order_by(ReviewComment.created_at.asc(), ReviewComment.id.asc())
    )
    return build_thread(rows.scalars().all())


async def update_comment(db: AsyncSession, comment_id: int, changes: dict[str, Any]) -> ReviewComment:
    async with transaction(db):
        comment = await _get_comment(db, comment_id)
        if "content" in changes and changes["content"] is not None:
            content = str(changes["content"]).strip()
            if not content:
                raise ValidationError("content cannot be empty")
            comment.content = content
        if "is_resolved" in changes and changes["is_resolved"] is not None:
            comment.is_resolved = bool(changes["is_resolved"])
            if comment.is_resolved:
                comment.resolved_at = changes.get("resolved_at") or utcnow()
                comment.resolved_by = changes.get("resolved_by") or comment.resolved_by or "System"
            else:
                comment.resolved_at = None
                comment.resolved_by = None
        elif changes.get("resolved_by") is not None:
            comment.resolved_by = changes["resolved_by"]
        comment.updated_at = utcnow()
    return comment


async def delete_comment(db: AsyncSession, comment_id: int) -> None:
    async with transaction(db):
        comment = await _get_comment(db, comment_id)
        await db.delete(comment)
    logger.info("Deleted review comment %s", comment_id)


async def resolve_comment(db: AsyncSession, comment_id: int, resolver: Optional[str] = None) -> ReviewComment:
    async with transaction(db):
        comment = await _get_comment(db, comment_id)
        comment.is_resolved = True
        comment.resolved_at = utcnow()
        comment.resolved_by = (resolver or "").strip() or "System"
    return comment


async def promote_to_task(db: AsyncSession, comment_id: int):
    """Turn a comment into a task at the end of the project's board."""
    async with transaction(db):
        row = (
            await db.execute(
                select(ReviewComment, Review.project_id)
                .join(Review, Review.id == ReviewComment.review_id)
                .where(ReviewComment.id == comment_id)
            )
        ).first()
        if not row:
            raise NotFound("Comment not found")
        comment, project_id = row
        order = await next_task_order(db, project_id)
        task = await create_task(db, project_id, task_title(comment.content), comment.content, order)
        comment.is_resolved = True
        comment.resolved_at = utcnow()
        comment.resolved_by = TASK_CONVERSION_RESOLVER
        log_activity(
            db, "project", project_id, "review_comment_converted",
            {"commentId": comment.id, "taskId": task.id},
        )
    logger.info("Comment %s converted into task %s", comment_id, task.id)
    return task, comment


async def export_review(db: AsyncSession, review_id: int) -> dict[str, Any]:
    row = (
        await db.execute(
            select(Review, Project.name, ReviewVersion.version_number)
            .join(Project, Project.id == Review.project_id)
            .outerjoin(ReviewVersion, ReviewVersion.id == Review.current_version_id)
            .where(Review.id == review_id)
        )
    ).first()
    if not row:
        raise NotFound("Review not found")
    review, project_name, version_number = row
    approval = await latest_approval(db, review_id)
    approved_by = None
    if approval:
        approved_by = f"{approval.first_name or ''} {approval.last_name or ''}".strip() or approval.email
    return {
        "review_info": {
            "review_id": review.id,
            "project_name": project_name,
            "title": review.title,
            "version": version_number,
            "status": review.status,
            "revisions_used": review.revisions_used,
            "review_limit": review.review_limit,
            "created_at": review.created_at,
            "approved_at": approval.created_at if approval else None,
            "approved_by": approved_by,
        },
        "feedback": await get_thread(db, review_id),
    }


async def export_version(db: AsyncSession, version_id: int) -> dict[str, Any]:
    """Flat comment listing for one version, in page/creation order."""
    row = (
        await db.execute(
            select(ReviewVersion, Review.title, Project.name)
            .join(Review, Review.id == ReviewVersion.review_id)
            .join(Project, Project.id == Review.project_id)
            .where(ReviewVersion.id == version_id)
        )
    ).first()
    if not row:
        raise NotFound("Version not found")
    version, title, project_name = row
    return {
        "version_info": {
            "version_id": version.id,
            "review_id": version.review_id,
            "project_name": project_name,
            "title": title,
            "version_number": version.version_number,
            "status": version.status,
            "original_filename": version.original_filename,
            "created_at": version.created_at,
        },
        "comments": await list_comments(db, version_id),
    }


__all__ = [
    "CommentDraft",
    "CommentNode",
    "TASK_CONVERSION_RESOLVER",
    "task_title",
    "add_comment",
    "list_comments",
    "build_thread",
    "get_thread",
    "update_comment",
    "delete_comment",
    "resolve_comment",
    "promote_to_task",
    "export_review",
    "export_version",
]
