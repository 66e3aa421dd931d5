"""Document processing for review uploads.

The ledger only depends on the `DocumentProcessor` protocol: give it the raw
upload and a destination, get back a size-reduced artifact plus before/after
byte counts. `PdfProcessor` is the production implementation (pypdf).
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from pypdf import PdfReader, PdfWriter

from reviewdesk.errors import ProcessingError
from reviewdesk.settings.config import settings
from reviewdesk.utils import clean_filename

logger = logging.getLogger(__name__)


# ---- Strategy for bucketed paths ----
class ArtifactLayout:
    """
    Places compressed artifacts under:
      projects/<project_id>/reviews/<uuid>-<clean name>
    and maps them to stable public URLs under UPLOAD_URL_PREFIX.
    """
    def __init__(self, storage_root: str | Path | None = None, url_prefix: str | None = None):
        self.storage_root = Path(storage_root or settings.STORAGE_ROOT)
        self.url_prefix = (url_prefix if url_prefix is not None else settings.UPLOAD_URL_PREFIX).rstrip("/")

    def relative_path(self, project_id: int, filename: str) -> Path:
        name = clean_filename(filename or "document.pdf")
        return Path("projects") / str(project_id) / "reviews" / f"{uuid.uuid4().hex[:12]}-{name}"

    def absolute(self, rel: str | Path) -> Path:
        return self.storage_root / Path(rel)

    def url_for(self, rel: str | Path) -> str:
        return f"{self.url_prefix}/{Path(rel).as_posix()}"

    def remove(self, rel: str | Path | None) -> bool:
        """Delete a stored artifact. Returns False when it was already gone."""
        if not rel:
            return False
        path = self.absolute(rel)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False


# ---- Result payload ----
@dataclass
class ProcessedDocument:
    rel_path: str
    url: str
    original_size: int
    compressed_size: int

    @property
    def ratio(self) -> float:
        if not self.original_size:
            return 1.0
        return self.compressed_size / self.original_size


class DocumentProcessor(Protocol):
    layout: ArtifactLayout

    def process(self, source: Path, project_id: int, filename: str) -> ProcessedDocument:
        ...


class PdfProcessor:
    """Rewrites a PDF with compressed content streams and de-duplicated objects."""

    def __init__(self, layout: ArtifactLayout | None = None, compression_level: int = 9):
        self.layout = layout or ArtifactLayout()
        self.compression_level = compression_level

    def _compress(self, src: Path, dst: Path) -> None:
        reader = PdfReader(str(src))
        writer = PdfWriter(clone_from=reader)
        for page in writer.pages:
            page.compress_content_streams(level=self.compression_level)
        writer.compress_identical_objects(remove_identicals=True, remove_orphans=True)
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(dst, "wb") as fh:
            writer.write(fh)

    def process(self, source: Path, project_id: int, filename: str) -> ProcessedDocument:
        source = Path(source)
        rel = self.layout.relative_path(project_id, filename)
        dst = self.layout.absolute(rel)
        try:
            original_size = source.stat().st_size
            self._compress(source, dst)
            compressed_size = dst.stat().st_size
        except Exception as exc:  # noqa: BLE001  pypdf raises more than PyPdfError on broken input
            # leave nothing half-written behind
            self.layout.remove(rel)
            logger.warning("PDF compression failed for %s: %s", filename, exc, exc_info=True)
            raise ProcessingError() from exc

        logger.info(
            "Compressed %s: %d -> %d bytes (%.1f%%)",
            filename, original_size, compressed_size,
            (compressed_size / original_size * 100) if original_size else 100.0,
        )
        return ProcessedDocument(
            rel_path=rel.as_posix(),
            url=self.layout.url_for(rel),
            original_size=original_size,
            compressed_size=compressed_size,
        )


__all__ = ["ArtifactLayout", "ProcessedDocument", "DocumentProcessor", "PdfProcessor"]
