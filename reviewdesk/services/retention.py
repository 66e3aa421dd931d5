# services/retention.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewdesk.database import transaction
from reviewdesk.models import ReviewVersion, utcnow
from reviewdesk.services.processor import ArtifactLayout

logger = logging.getLogger(__name__)


@dataclass
class PurgeReport:
    purged: list[int] = field(default_factory=list)
    missing_files: int = 0


async def purge_expired_versions(
    db: AsyncSession,
    now: Optional[datetime] = None,
    layout: Optional[ArtifactLayout] = None,
) -> PurgeReport:
    """Delete stored files of superseded versions past their retention date.

    Selection ignores `status`: a superseded version can still collect reviewer
    actions, and those overwrite its status but not its retention deadline.

    Safe to run any number of times: purged rows are flagged and skipped next time.
    """
    now = now or utcnow()
    layout = layout or ArtifactLayout()
    report = PurgeReport()
    async with transaction(db):
        expired = (
            await db.execute(
                select(ReviewVersion)
                .where(
                    ReviewVersion.file_deleted.is_(False),
                    ReviewVersion.is_active.is_(False),
                    ReviewVersion.retention_expires_at.is_not(None),
                    ReviewVersion.retention_expires_at <= now,
                )
                .with_for_update(skip_locked=True)
            )
        ).scalars().all()
        for version in expired:
            if not layout.remove(version.file_path):
                report.missing_files += 1
            version.file_deleted = True
            version.file_deleted_at = now
            report.purged.append(version.id)
    if report.purged:
        logger.info(
            "Retention sweep purged %d version file(s) (%d already missing): %s",
            len(report.purged), report.missing_files, report.purged,
        )
    else:
        logger.debug("Retention sweep: nothing to purge")
    return report
