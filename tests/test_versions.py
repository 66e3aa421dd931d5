"""Tests for the version ledger: uploads, supersession and revision budgets."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from conftest import FakeProcessor, stored_artifacts
from reviewdesk.errors import NotFound, ProcessingError, RevisionLimitExceeded, ValidationError
from reviewdesk.models import (
    ActivityLog,
    Notification,
    Policy,
    Project,
    Review,
    ReviewStatus,
    ReviewVersion,
    VersionStatus,
)
from reviewdesk.services import versions as version_svc
from reviewdesk.utils import as_utc

pytestmark = pytest.mark.anyio

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


async def _versions(db, review_id):
    db.expire_all()
    return await version_svc.list_versions(db, review_id)


class TestFirstUpload:
    async def test_creates_container_with_defaults(self, upload):
        result = await upload()
        review, version = result.review, result.version

        assert version.version_number == 1
        assert version.status is VersionStatus.active
        assert version.is_active
        assert review.current_version_id == version.id
        assert review.policy is Policy.soft
        assert review.status is ReviewStatus.in_review
        assert review.review_limit == 3  # from the project
        assert review.revisions_used == 0
        assert len(review.token) == 32
        assert len(version.token) == 32
        assert review.token != version.token
        assert result.over_budget is False
        assert result.warning is None

    async def test_records_compression_figures(self, upload):
        result = await upload()
        assert result.version.original_size_bytes > result.version.compressed_size_bytes
        assert result.ratio == pytest.approx(0.5, abs=0.01)
        assert result.version.file_url.startswith("/uploads/projects/")

    async def test_default_title(self, upload):
        result = await upload(title="  ")
        assert result.review.title == "Project Review"

    async def test_explicit_limit_and_policy(self, upload):
        result = await upload(review_limit=None, review_policy="strict")
        assert result.review.review_limit is None
        assert result.review.policy is Policy.strict

    async def test_falls_back_to_setting_when_project_has_no_limit(self, db, upload, project_id):
        project = await db.get(Project, project_id)
        project.review_limit = None
        await db.commit()
        result = await upload()
        assert result.review.review_limit == 3

    async def test_writes_activity_and_notification(self, db, upload, project_id):
        await upload()
        activity = (await db.execute(select(ActivityLog))).scalars().all()
        notes = (await db.execute(select(Notification))).scalars().all()
        assert [a.action for a in activity] == ["review_version_uploaded"]
        assert activity[0].entity_id == project_id
        assert notes[0].title == "New Review Version"
        assert notes[0].link == f"/projects/{project_id}"


class TestSupersession:
    async def test_single_active_and_contiguous_numbers(self, db, upload):
        review_id = None
        for _ in range(4):
            result = await upload()
            review_id = result.review.id

        versions = await _versions(db, review_id)
        assert [v.version_number for v in versions] == [4, 3, 2, 1]
        active = [v for v in versions if v.is_active]
        assert len(active) == 1
        assert active[0].version_number == 4
        assert all(v.status is VersionStatus.superseded for v in versions[1:])

        review = await db.get(Review, review_id, populate_existing=True)
        assert review.current_version_id == active[0].id

    async def test_superseded_version_gets_retention_deadline(self, db, upload):
        first = await upload(now=FIXED_NOW)
        first_id, review_id = first.version.id, first.review.id
        later = FIXED_NOW + timedelta(days=2)
        await upload(now=later)

        old = await db.get(ReviewVersion, first_id, populate_existing=True)
        assert old.status is VersionStatus.superseded
        assert not old.is_active
        assert as_utc(old.retention_expires_at) == later + timedelta(days=90)

        versions = await _versions(db, review_id)
        assert versions[0].retention_expires_at is None

    async def test_retries_after_losing_a_unique_race(self, db, upload, layout):
        first = await upload()
        review_id, first_id, taken = first.review.id, first.version.id, first.version.token
        issued = iter([taken, "f" * 32])

        result = await upload(tokens=lambda: next(issued))
        assert result.version.version_number == 2
        assert result.version.token == "f" * 32

        versions = await _versions(db, review_id)
        assert [v.version_number for v in versions] == [2, 1]
        assert [v.is_active for v in versions] == [True, False]
        assert versions[1].id == first_id
        assert versions[1].status is VersionStatus.superseded
        assert len(stored_artifacts(layout)) == 2

    async def test_titles_are_separate_containers(self, upload):
        a = await upload(title="Brochure")
        b = await upload(title="Poster")
        assert a.review.id != b.review.id
        assert b.version.version_number == 1

    async def test_upload_keeps_container_status(self, db, upload):
        from reviewdesk.services.actions import Actor, record_action

        first = await upload()
        review_id, version_id = first.review.id, first.version.id
        await record_action(db, review_id, version_id, "request-changes", Actor("Ann"))
        await upload()
        review = await db.get(Review, review_id, populate_existing=True)
        assert review.status is ReviewStatus.changes_requested


class TestBudget:
    async def test_strict_rejects_upload_when_exhausted(self, db, upload, layout):
        first = await upload(review_policy="strict", review_limit=0)
        review_id = first.review.id

        with pytest.raises(RevisionLimitExceeded):
            await upload()

        versions = await _versions(db, review_id)
        assert [v.version_number for v in versions] == [1]
        assert versions[0].is_active
        # the rejected upload's compressed file is gone again
        assert len(stored_artifacts(layout)) == 1

    async def test_soft_accepts_upload_over_budget_with_warning(self, upload):
        await upload(review_limit=0)
        result = await upload()
        assert result.version.version_number == 2
        assert result.over_budget is True
        assert result.warning == version_svc.OVER_BUDGET_WARNING

    async def test_unlimited_never_flags(self, upload):
        for _ in range(3):
            result = await upload(review_limit=None)
        assert result.over_budget is False


class TestFailures:
    async def test_processing_error_leaves_nothing_behind(self, db, layout, raw_upload, project_id):
        src = raw_upload()
        with pytest.raises(ProcessingError):
            await version_svc.create_version(
                db, project_id, src, "broken.pdf", processor=FakeProcessor(layout, fail=True)
            )
        assert not src.exists()
        assert stored_artifacts(layout) == []
        count = (await db.execute(select(func.count(Review.id)))).scalar_one()
        assert count == 0

    async def test_original_upload_removed_after_success(self, db, processor, raw_upload, project_id):
        src = raw_upload()
        await version_svc.create_version(db, project_id, src, "ok.pdf", processor=processor)
        assert not src.exists()

    async def test_unknown_project(self, db, processor, raw_upload):
        src = raw_upload()
        with pytest.raises(NotFound):
            await version_svc.create_version(db, 9999, src, "x.pdf", processor=processor)
        assert processor.calls == 0
        assert not src.exists()

    async def test_deleted_project(self, db, processor, raw_upload, project_id):
        project = await db.get(Project, project_id)
        project.deleted_at = FIXED_NOW
        await db.commit()
        with pytest.raises(NotFound):
            await version_svc.create_version(db, project_id, raw_upload(), "x.pdf", processor=processor)

    async def test_unknown_policy(self, upload):
        with pytest.raises(ValidationError):
            await upload(review_policy="lenient")

    async def test_negative_limit(self, upload):
        with pytest.raises(ValidationError):
            await upload(review_limit=-1)


class TestAdministration:
    async def test_pin_token_and_read_state(self, db, upload):
        result = await upload()
        review_id = result.review.id

        review = await version_svc.set_pin(db, review_id, " 4321 ")
        assert review.pin_code == "4321"
        review = await version_svc.set_pin(db, review_id, "")
        assert review.pin_code is None

        review = await version_svc.set_token_active(db, review_id, False)
        assert review.is_token_active is False

        review = await version_svc.mark_read(db, review_id)
        assert review.unread_count == 0

    async def test_missing_review(self, db):
        with pytest.raises(NotFound):
            await version_svc.get_review(db, 404)
        with pytest.raises(NotFound):
            await version_svc.get_review_detail(db, 404)

    async def test_list_reviews_skips_deleted_projects(self, db, upload, session_maker):
        await upload(title="Brochure")
        async with session_maker() as other:
            gone = Project(name="Old Client")
            other.add(gone)
            await other.commit()
            gone_id = gone.id
        await upload(title="Flyer", project_id=gone_id)
        async with session_maker() as other:
            (await other.get(Project, gone_id)).deleted_at = FIXED_NOW
            await other.commit()

        rows = await version_svc.list_reviews(db)
        assert [row[0].title for row in rows] == ["Brochure"]
        assert rows[0][1] == "Acme Brochure"
        assert rows[0][2].version_number == 1

        scoped = await version_svc.list_reviews(db, project_id=gone_id)
        assert [row[0].title for row in scoped] == ["Flyer"]

    async def test_detail_lists_versions_descending(self, db, upload):
        await upload()
        result = await upload()
        review, project_name, current, versions = await version_svc.get_review_detail(db, result.review.id)
        assert project_name == "Acme Brochure"
        assert current.version_number == 2
        assert [v.version_number for v in versions] == [2, 1]
