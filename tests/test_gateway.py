"""Tests for anonymous access through container and version tokens."""

from datetime import datetime, timezone

import pytest

from reviewdesk.errors import Gone, NotFound
from reviewdesk.models import ReviewVersion
from reviewdesk.services import gateway
from reviewdesk.services.versions import set_pin, set_token_active
from reviewdesk.utils import as_utc

pytestmark = pytest.mark.anyio

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


class TestResolveByToken:
    async def test_defaults_to_current_version(self, db, upload):
        await upload()
        latest = await upload()
        view = await gateway.resolve_by_token(db, latest.review.token)

        assert view.version.id == latest.version.id
        assert view.is_current
        assert view.project_name == "Acme Brochure"
        assert [v.version_number for v in view.versions] == [2, 1]
        assert view.requires_pin is False

    async def test_older_version_by_id(self, db, upload):
        first = await upload()
        first_id = first.version.id
        latest = await upload()
        view = await gateway.resolve_by_token(db, latest.review.token, version_id=first_id)
        assert view.version.version_number == 1
        assert view.is_current is False

    async def test_tracks_access(self, db, upload):
        result = await upload()
        version = await db.get(ReviewVersion, result.version.id)
        version.last_accessed_at = LONG_AGO
        await db.commit()

        await gateway.resolve_by_token(db, result.review.token)
        refreshed = await db.get(ReviewVersion, result.version.id, populate_existing=True)
        assert as_utc(refreshed.last_accessed_at) > LONG_AGO

    async def test_unknown_token(self, db):
        with pytest.raises(NotFound):
            await gateway.resolve_by_token(db, "x" * 32)

    async def test_version_from_another_container(self, db, upload):
        a = await upload(title="A")
        b = await upload(title="B")
        with pytest.raises(NotFound):
            await gateway.resolve_by_token(db, a.review.token, version_id=b.version.id)

    async def test_inactive_token_is_gone_for_any_version(self, db, upload):
        first = await upload()
        review_id, token, version_id = first.review.id, first.review.token, first.version.id
        await set_token_active(db, review_id, False)

        for requested in (None, version_id, 424242):
            with pytest.raises(Gone):
                await gateway.resolve_by_token(db, token, version_id=requested)

    async def test_pin_protection_is_reported(self, db, upload):
        result = await upload()
        token = result.review.token
        await set_pin(db, result.review.id, "2468")
        view = await gateway.resolve_by_token(db, token)
        assert view.requires_pin is True


class TestVersionToken:
    async def test_resolves_version(self, db, upload):
        result = await upload()
        view = await gateway.resolve_version_token(db, result.version.token)
        assert view.version.id == result.version.id
        assert view.review.id == result.review.id
        assert view.is_current

    async def test_purged_file_is_gone(self, db, upload):
        result = await upload()
        version = await db.get(ReviewVersion, result.version.id)
        version.file_deleted = True
        await db.commit()
        with pytest.raises(Gone):
            await gateway.resolve_version_token(db, version.token)
        with pytest.raises(Gone):
            await gateway.resolve_version_by_id(db, version.id)

    async def test_disabled_version_token_is_gone(self, db, upload):
        result = await upload()
        version = await db.get(ReviewVersion, result.version.id)
        version.is_token_active = False
        await db.commit()
        with pytest.raises(Gone):
            await gateway.resolve_version_token(db, version.token)

    async def test_unknown(self, db):
        with pytest.raises(NotFound):
            await gateway.resolve_version_token(db, "missing-token-value")
        with pytest.raises(NotFound):
            await gateway.resolve_version_by_id(db, 31337)


class TestPin:
    async def test_without_pin_anything_passes(self, db, upload):
        result = await upload()
        assert await gateway.verify_pin(db, result.review.token, None) is True

    async def test_pin_must_match(self, db, upload):
        result = await upload()
        token = result.review.token
        await set_pin(db, result.review.id, "2468")
        assert await gateway.verify_pin(db, token, "2468") is True
        assert await gateway.verify_pin(db, token, " 2468 ") is True
        assert await gateway.verify_pin(db, token, "1111") is False
        assert await gateway.verify_pin(db, token, None) is False

    async def test_disabled_link(self, db, upload):
        result = await upload()
        token = result.review.token
        await set_token_active(db, result.review.id, False)
        with pytest.raises(Gone):
            await gateway.verify_pin(db, token, "0000")
