"""Metadata extraction and application utilities."""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Dict, Mapping

from docx.document import Document as DocxDocument
from pypdf import PdfReader

from .models import DocumentMetadata
from .utils import parse_pdf_date

LOGGER = logging.getLogger(__name__)


def _normalise_metadata(raw: Mapping[str, object]) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for key, value in raw.items():
        if not value:
            continue
        normalized_key = key[1:] if key.startswith("/") else key
        text = str(value).strip()
        if text:
            cleaned[normalized_key] = text
    return cleaned


def metadata_from_mapping(raw: Mapping[str, object] | None) -> DocumentMetadata:
    """Build :class:`DocumentMetadata` from a PDF information dictionary."""
    if not raw:
        return DocumentMetadata()
    normalized = _normalise_metadata(raw)
    return DocumentMetadata(
        title=normalized.get("Title"),
        author=normalized.get("Author"),
        subject=normalized.get("Subject"),
        keywords=normalized.get("Keywords"),
        creator=normalized.get("Creator"),
        producer=normalized.get("Producer"),
        creation_date=parse_pdf_date(normalized.get("CreationDate")),
        modification_date=parse_pdf_date(normalized.get("ModDate")),
    )


def extract_metadata(reader: PdfReader) -> DocumentMetadata:
    """Extract document metadata; failures degrade to empty metadata."""
    try:
        return metadata_from_mapping(reader.metadata)
    except Exception as exc:  # pypdf raises a variety of types for broken info dicts
        LOGGER.warning("Metadata extraction failed: %s", exc)
        return DocumentMetadata()


def apply_metadata_to_docx(
    document: DocxDocument,
    metadata: DocumentMetadata,
    *,
    title: str | None = None,
    author: str | None = None,
    subject: str | None = None,
) -> None:
    """Copy source metadata (with explicit overrides) onto DOCX core properties."""
    core = document.core_properties
    resolved_title = title or metadata.title
    resolved_author = author or metadata.author
    resolved_subject = subject or metadata.subject
    if resolved_title:
        core.title = resolved_title
    if resolved_author:
        core.author = resolved_author
    if resolved_subject:
        core.subject = resolved_subject
    if metadata.keywords:
        core.keywords = metadata.keywords
    if metadata.creation_date:
        core.created = metadata.creation_date.astimezone(timezone.utc)
    if metadata.modification_date:
        core.modified = metadata.modification_date.astimezone(timezone.utc)
