"""Validation routines for docflow inputs."""

from __future__ import annotations

import logging
from pathlib import Path

from .constants import MAX_FILE_SIZE, PDF_SIGNATURE, SUPPORTED_FILE_TYPES
from .exceptions import OptionsValidationError, SourceValidationError, ValidationError
from .options import ConversionOptions, validate_conversion_options
from .utils import format_file_size

LOGGER = logging.getLogger(__name__)


def validate_source_bytes(data: bytes, max_size: int = MAX_FILE_SIZE) -> None:
    """Check length, size ceiling and ``%PDF`` signature before parsing."""
    LOGGER.debug("Validating %d source bytes", len(data))
    if len(data) == 0:
        raise SourceValidationError("The file is empty. Please provide a non-empty PDF file.")
    if len(data) > max_size:
        raise SourceValidationError(
            f"File exceeds the {format_file_size(max_size)} size limit "
            f"(received {format_file_size(len(data))})."
        )
    if not data[: len(PDF_SIGNATURE)] == PDF_SIGNATURE:
        raise SourceValidationError(
            "Invalid file format: the file does not start with a %PDF signature."
        )


def is_pdf_file(name: str | Path, content_type: str | None = None) -> bool:
    """Return whether a file name or MIME type denotes a supported PDF."""
    if content_type in SUPPORTED_FILE_TYPES:
        return True
    return str(name).lower().endswith(".pdf")


def validate_source_path(path: Path) -> None:
    if not is_pdf_file(path):
        raise ValidationError("Invalid file type. Please provide a PDF file.")
    if not path.is_file():
        raise ValidationError(f"File not found: {path}")


def validate_options(options: ConversionOptions) -> None:
    errors = validate_conversion_options(options)
    if errors:
        raise OptionsValidationError(errors)
