# tests/conftest.py
"""
Shared fixtures for the review engine tests.

Every test gets its own SQLite file (through aiosqlite) and its own storage
directory, so nothing leaks between tests. Environment defaults are set here
before any `reviewdesk` module is imported because settings, the engine and
the auth secret are read at import time.
"""
from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path
from types import SimpleNamespace

_SCRATCH = tempfile.mkdtemp(prefix="reviewdesk-tests-")
os.environ.setdefault("SECRET", "test-secret-not-for-production")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_SCRATCH, "import-time.db")
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RUN_DB_CREATE_ALL"] = "false"
os.environ["STORAGE_ROOT"] = os.path.join(_SCRATCH, "uploads")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from reviewdesk.database import Base  # noqa: E402
from reviewdesk.errors import ProcessingError  # noqa: E402
from reviewdesk.models import Project  # noqa: E402
from reviewdesk.services.processor import ArtifactLayout, ProcessedDocument  # noqa: E402
from reviewdesk.services.versions import create_version  # noqa: E402


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# =========================
# Database
# =========================
@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reviews.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def project_id(session_maker):
    async with session_maker() as session:
        project = Project(name="Acme Brochure", review_limit=3)
        session.add(project)
        await session.commit()
        return project.id


# =========================
# Storage / processing
# =========================
class FakeProcessor:
    """Stands in for the PDF compressor: halves the bytes, or fails on demand."""

    def __init__(self, layout: ArtifactLayout, fail: bool = False):
        self.layout = layout
        self.fail = fail
        self.calls = 0

    def process(self, source, project_id, filename):
        self.calls += 1
        data = Path(source).read_bytes()
        rel = self.layout.relative_path(project_id, filename)
        dst = self.layout.absolute(rel)
        dst.parent.mkdir(parents=True, exist_ok=True)
        if self.fail:
            dst.write_bytes(b"partial")
            self.layout.remove(rel)
            raise ProcessingError()
        dst.write_bytes(data[: max(1, len(data) // 2)])
        return ProcessedDocument(
            rel_path=rel.as_posix(),
            url=self.layout.url_for(rel),
            original_size=len(data),
            compressed_size=dst.stat().st_size,
        )


@pytest.fixture
def layout(tmp_path):
    return ArtifactLayout(storage_root=tmp_path / "storage", url_prefix="/uploads")


@pytest.fixture
def processor(layout):
    return FakeProcessor(layout)


def stored_artifacts(layout: ArtifactLayout) -> list[Path]:
    root = layout.storage_root / "projects"
    if not root.exists():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file())


@pytest.fixture
def raw_upload(tmp_path):
    def _make(body: bytes = b"%PDF-1.4 review body " * 16) -> Path:
        src = tmp_path / "incoming" / f"{uuid.uuid4().hex}.pdf"
        src.parent.mkdir(parents=True, exist_ok=True)
        src.write_bytes(body)
        return src
    return _make


@pytest.fixture
def upload(db, processor, raw_upload, project_id):
    """Push a new version through the ledger with sensible defaults."""
    async def _upload(title: str = "Brochure", **kwargs):
        kwargs.setdefault("processor", processor)
        kwargs.setdefault("created_by", "Dana")
        pid = kwargs.pop("project_id", project_id)
        return await create_version(db, pid, raw_upload(), "brochure.pdf", title=title, **kwargs)
    return _upload


# =========================
# HTTP
# =========================
STAFF_USER = SimpleNamespace(id=1, email="pm@example.com", username="pm", is_active=True, is_superuser=True)


@pytest.fixture
async def client(session_maker, processor, layout):
    from reviewdesk.database import get_db
    from reviewdesk.main import app
    from reviewdesk.routes_shared import get_layout, get_processor
    from reviewdesk.utils import require_admin_user, require_authenticated_user

    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[require_authenticated_user] = lambda: STAFF_USER
    app.dependency_overrides[require_admin_user] = lambda: STAFF_USER
    app.dependency_overrides[get_processor] = lambda: processor
    app.dependency_overrides[get_layout] = lambda: layout

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
