"""Activity log and notification rows for review events.

Rows are added to the caller's session so they commit (or roll back) together
with the mutation that produced them. Delivering notifications to people is
someone else's job; they read the `notification` table.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.models import ActivityLog, Notification

logger = logging.getLogger(__name__)


def _trim(value: str, *, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


def log_activity(
    db: AsyncSession,
    entity_type: str,
    entity_id: int,
    action: str,
    details: Optional[dict[str, Any]] = None,
) -> ActivityLog:
    row = ActivityLog(entity_type=entity_type, entity_id=entity_id, action=action, details=details or {})
    db.add(row)
    logger.debug("activity %s %s:%s %s", action, entity_type, entity_id, details)
    return row


def notify(
    db: AsyncSession,
    kind: str,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> Notification:
    row = Notification(type=kind, title=title, message=_trim(message, limit=500), link=link)
    db.add(row)
    logger.info("notification [%s] %s: %s", kind, title, row.message)
    return row


def actor_display(first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> str:
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or (email or "").strip() or "Someone"


__all__ = ["log_activity", "notify", "actor_display"]
