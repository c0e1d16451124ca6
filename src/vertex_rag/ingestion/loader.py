"""Upload validation and PDF text extraction."""

from __future__ import annotations

import os
import re
import tempfile

from langchain_community.document_loaders import PyPDFLoader

from vertex_rag.exceptions import UploadValidationError

PDF_CONTENT_TYPE = "application/pdf"

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)?\s*$", re.IGNORECASE)
_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(value: str | int) -> int:
    """Convert ``"8MB"`` / ``"512KB"`` / ``1024`` into a byte count."""
    if isinstance(value, int):
        return value
    match = _SIZE_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _UNITS[(unit or "B").upper()])


def validate_upload(
    filename: str | None,
    content_type: str | None,
    size: int | None,
    *,
    max_size: str | int = "8MB",
    types: tuple[str, ...] = (PDF_CONTENT_TYPE,),
) -> None:
    """Reject an upload before any pipeline work begins.

    Raises
    ------
    UploadValidationError
        Missing file, disallowed content type, or oversize payload.
    """
    if not filename:
        raise UploadValidationError("No file")
    if types and content_type and content_type not in types:
        raise UploadValidationError(f"Invalid file type: {content_type}")
    limit = parse_size(max_size)
    if size and limit and size > limit:
        raise UploadValidationError(f"File too large: {size} bytes (max {limit})")


def extract_pdf_text(data: bytes) -> str:
    """Extract the text of every page, joined with a single space."""
    fd, path = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        pages = PyPDFLoader(path).load()
    finally:
        os.unlink(path)
    return " ".join(page.page_content for page in pages)
