"""Tests for the retention sweep and its scheduler wiring."""

from datetime import datetime, timedelta, timezone

import pytest

from reviewdesk.errors import Gone
from reviewdesk.models import ReviewVersion, VersionStatus
from reviewdesk.services import gateway, scheduler
from reviewdesk.services.actions import Actor, record_action
from reviewdesk.services.retention import purge_expired_versions

pytestmark = pytest.mark.anyio

T0 = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


async def _two_versions(upload):
    first = await upload(now=T0)
    first_id, first_path, first_token = first.version.id, first.version.file_path, first.version.token
    second = await upload(now=T0 + timedelta(days=1))
    return first_id, first_path, first_token, second.version.id


class TestPurge:
    async def test_purges_expired_superseded_files(self, db, upload, layout):
        first_id, first_path, first_token, second_id = await _two_versions(upload)
        assert layout.absolute(first_path).exists()

        report = await purge_expired_versions(db, now=T0 + timedelta(days=92), layout=layout)
        assert report.purged == [first_id]
        assert report.missing_files == 0
        assert not layout.absolute(first_path).exists()

        old = await db.get(ReviewVersion, first_id, populate_existing=True)
        assert old.file_deleted is True
        assert old.file_deleted_at is not None

        current = await db.get(ReviewVersion, second_id, populate_existing=True)
        assert current.file_deleted is False
        assert layout.absolute(current.file_path).exists()

        with pytest.raises(Gone):
            await gateway.resolve_version_token(db, first_token)

    async def test_is_idempotent(self, db, upload, layout):
        await _two_versions(upload)
        later = T0 + timedelta(days=200)
        first = await purge_expired_versions(db, now=later, layout=layout)
        second = await purge_expired_versions(db, now=later, layout=layout)
        assert len(first.purged) == 1
        assert second.purged == []

    async def test_leaves_unexpired_versions(self, db, upload, layout):
        first_id, first_path, _, _ = await _two_versions(upload)
        report = await purge_expired_versions(db, now=T0 + timedelta(days=30), layout=layout)
        assert report.purged == []
        assert layout.absolute(first_path).exists()

    async def test_missing_file_is_not_an_error(self, db, upload, layout):
        first_id, first_path, _, _ = await _two_versions(upload)
        layout.remove(first_path)
        report = await purge_expired_versions(db, now=T0 + timedelta(days=365), layout=layout)
        assert report.purged == [first_id]
        assert report.missing_files == 1

    async def test_purges_superseded_version_that_later_got_feedback(self, db, upload, layout):
        first_id, first_path, _, second_id = await _two_versions(upload)
        review_id = (await db.get(ReviewVersion, second_id)).review_id
        await record_action(db, review_id, first_id, "request-changes", Actor("Ann"))

        old = await db.get(ReviewVersion, first_id, populate_existing=True)
        assert old.status is VersionStatus.changes_requested
        assert old.retention_expires_at is not None

        report = await purge_expired_versions(db, now=T0 + timedelta(days=200), layout=layout)
        assert report.purged == [first_id]
        assert not layout.absolute(first_path).exists()


class TestScheduler:
    def test_cron_from_settings(self, monkeypatch):
        monkeypatch.setattr(scheduler.settings, "RETENTION_CRON", "15 4 * * *")
        trigger = scheduler._trigger(timezone.utc)
        assert str(trigger.fields[trigger.FIELD_NAMES.index("hour")]) == "4"
        assert str(trigger.fields[trigger.FIELD_NAMES.index("minute")]) == "15"

    def test_bad_cron_falls_back_to_three_am(self, monkeypatch):
        monkeypatch.setattr(scheduler.settings, "RETENTION_CRON", "every day please")
        trigger = scheduler._trigger(timezone.utc)
        assert str(trigger.fields[trigger.FIELD_NAMES.index("hour")]) == "3"

    def test_unknown_timezone_falls_back_to_utc(self, monkeypatch):
        monkeypatch.setattr(scheduler.settings, "APP_TZ", "Mars/Olympus_Mons")
        assert str(scheduler._timezone()) == "UTC"
