# parsers.py
from __future__ import annotations
import io
import logging
import mimetypes
import re
from typing import List

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from resumeflame.errors import ValidationError

LOG = logging.getLogger("resumeflame.parsers")

PDF_MIME = "application/pdf"
PDF_MAGIC = b"%PDF-"

NOT_ENOUGH_TEXT = "Could not extract enough text from PDF. Make sure it's not a scanned image."

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _normalize(text: str) -> str:
    """Trim trailing spaces per line and collapse long blank runs."""
    lines = [ln.rstrip() for ln in text.replace("\r\n", "\n").split("\n")]
    return _BLANK_RUN_RE.sub("\n\n", "\n".join(lines)).strip()


def extract_pdf_text(file_bytes: bytes) -> str:
    """Extract visible text from a PDF using pypdf.

    This ignores images (no OCR), but grabs all text from all pages.
    Raises ValidationError when the bytes are not a readable PDF.
    """
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        chunks: List[str] = []
        for page in reader.pages:
            t = page.extract_text() or ""
            if t:
                chunks.append(t)
    except (PdfReadError, ValueError, KeyError) as e:
        LOG.warning("PdfReader failed: %s", e)
        raise ValidationError("Could not read PDF file") from e

    text = _normalize("\n".join(chunks))
    LOG.info("PDF text length: %d chars", len(text))
    return text


def is_pdf(filename: str, mimetype: str | None, head: bytes) -> bool:
    mime = mimetype or mimetypes.guess_type(filename or "")[0] or ""
    return mime == PDF_MIME and head.startswith(PDF_MAGIC)


def parse_resume_upload(
    filename: str,
    mimetype: str | None,
    file_bytes: bytes,
    *,
    max_bytes: int,
    min_chars: int,
) -> str:
    """Validate an uploaded résumé and return its extracted text."""
    if not file_bytes:
        raise ValidationError("No file provided")
    if not is_pdf(filename, mimetype, file_bytes[:8]):
        raise ValidationError("Only PDF files are accepted")
    if len(file_bytes) > max_bytes:
        raise ValidationError(f"File must be under {max_bytes // (1024 * 1024)}MB")

    text = extract_pdf_text(file_bytes)
    if len(text) < min_chars:
        raise ValidationError(NOT_ENOUGH_TEXT)
    return text
