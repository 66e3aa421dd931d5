"""Tests for PDF compression and artifact placement."""

import pytest
from pypdf import PdfReader, PdfWriter

from conftest import stored_artifacts
from reviewdesk.errors import ProcessingError
from reviewdesk.services.processor import ArtifactLayout, PdfProcessor


@pytest.fixture
def pdf_source(tmp_path):
    writer = PdfWriter()
    for _ in range(3):
        writer.add_blank_page(width=595, height=842)
    path = tmp_path / "source.pdf"
    with open(path, "wb") as fh:
        writer.write(fh)
    return path


class TestArtifactLayout:
    def test_paths_and_urls(self, tmp_path):
        layout = ArtifactLayout(storage_root=tmp_path, url_prefix="/files/")
        rel = layout.relative_path(12, "../Client Proof (final).pdf")
        assert rel.parts[:3] == ("projects", "12", "reviews")
        assert rel.name.endswith("-Client_Proof__final_.pdf")
        assert layout.url_for(rel) == f"/files/{rel.as_posix()}"
        assert layout.absolute(rel) == tmp_path / rel

    def test_remove_reports_missing(self, tmp_path):
        layout = ArtifactLayout(storage_root=tmp_path)
        target = tmp_path / "a.pdf"
        target.write_bytes(b"x")
        assert layout.remove("a.pdf") is True
        assert layout.remove("a.pdf") is False
        assert layout.remove(None) is False


class TestPdfProcessor:
    def test_compresses_real_pdf(self, pdf_source, layout):
        processed = PdfProcessor(layout=layout).process(pdf_source, 7, "proof.pdf")

        out = layout.absolute(processed.rel_path)
        assert out.exists()
        assert processed.rel_path.startswith("projects/7/reviews/")
        assert processed.url == f"/uploads/{processed.rel_path}"
        assert processed.original_size == pdf_source.stat().st_size
        assert processed.compressed_size == out.stat().st_size
        assert processed.ratio == pytest.approx(processed.compressed_size / processed.original_size)
        assert len(PdfReader(str(out)).pages) == 3

    def test_garbage_input_raises_and_cleans_up(self, tmp_path, layout):
        junk = tmp_path / "junk.pdf"
        junk.write_bytes(b"this is certainly not a pdf")
        with pytest.raises(ProcessingError) as exc_info:
            PdfProcessor(layout=layout).process(junk, 7, "junk.pdf")
        assert stored_artifacts(layout) == []
        # parser details stay in the log
        assert exc_info.value.message == "Failed to process document"
        assert "pdf" not in str(exc_info.value).lower()

    def test_missing_source(self, tmp_path, layout):
        with pytest.raises(ProcessingError):
            PdfProcessor(layout=layout).process(tmp_path / "nope.pdf", 7, "nope.pdf")
