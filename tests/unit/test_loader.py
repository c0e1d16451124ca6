"""Unit tests for upload validation and PDF text extraction."""

from __future__ import annotations

import pytest

from conftest import make_pdf
from vertex_rag.exceptions import UploadValidationError
from vertex_rag.ingestion.loader import (
    PDF_CONTENT_TYPE,
    extract_pdf_text,
    parse_size,
    validate_upload,
)


class TestParseSize:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("8MB", 8 * 1024**2), ("512kb", 512 * 1024), ("1.5 GB", int(1.5 * 1024**3)), ("10", 10), (42, 42)],
    )
    def test_parse(self, value, expected) -> None:
        assert parse_size(value) == expected

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            parse_size("lots")


class TestValidateUpload:
    def test_accepts_small_pdf(self) -> None:
        validate_upload("doc.pdf", PDF_CONTENT_TYPE, 1024)

    def test_missing_file(self) -> None:
        with pytest.raises(UploadValidationError, match="No file"):
            validate_upload("", PDF_CONTENT_TYPE, 10)

    def test_rejects_other_types(self) -> None:
        with pytest.raises(UploadValidationError, match="Invalid file type"):
            validate_upload("notes.txt", "text/plain", 10)

    def test_rejects_oversize(self) -> None:
        with pytest.raises(UploadValidationError, match="too large") as excinfo:
            validate_upload("big.pdf", PDF_CONTENT_TYPE, 9 * 1024**2, max_size="8MB")
        assert excinfo.value.status_code == 400


class TestExtractPdfText:
    def test_extracts_page_text(self) -> None:
        text = extract_pdf_text(make_pdf("Hello PDF"))
        assert "Hello PDF" in text
