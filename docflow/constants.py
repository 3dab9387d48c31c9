"""Shared constants for the PDF to Word conversion pipeline."""

from __future__ import annotations

import re

__all__ = [
    "PDF_SIGNATURE",
    "PDF_DATE_PREFIX",
    "MAX_FILE_SIZE",
    "LARGE_DOCUMENT_PAGES",
    "MIN_TEXT_LENGTH",
    "DOCX_MIME_TYPE",
    "SUPPORTED_FILE_TYPES",
    "MIN_TABLE_ROWS",
    "MIN_TABLE_COLUMNS",
    "JPEG_AREA_THRESHOLD",
    "JPEG_QUALITY_TIERS",
    "MAX_IMAGE_DIMENSION",
    "IMAGE_CACHE_CAPACITY",
    "IMAGE_BATCH_SIZE",
    "MAX_IMAGE_WIDTH",
    "HEADING_SIZE_RATIO",
    "BOLD_MARKERS",
    "ITALIC_MARKERS",
    "RTL_RANGES",
    "LIGATURE_TRANSLATION",
    "INVALID_FILENAME_CHARS",
    "MAX_FILENAME_LENGTH",
    "DEFAULT_FILENAME",
]

PDF_SIGNATURE = b"%PDF"
PDF_DATE_PREFIX = "D:"
MAX_FILE_SIZE = 100 * 1024 * 1024
LARGE_DOCUMENT_PAGES = 100
MIN_TEXT_LENGTH = 100

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
SUPPORTED_FILE_TYPES = ("application/pdf", ".pdf")

MIN_TABLE_ROWS = 2
MIN_TABLE_COLUMNS = 2

# Pixel area above which images are re-encoded as JPEG.
JPEG_AREA_THRESHOLD = 250_000
# (max area, quality) pairs; the last tier applies to everything larger.
JPEG_QUALITY_TIERS = (
    (1_000_000, 85),
    (4_000_000, 75),
    (None, 65),
)
MAX_IMAGE_DIMENSION = 2048
IMAGE_CACHE_CAPACITY = 100
IMAGE_BATCH_SIZE = 4

# Widest image placed in the output document, in pixels at 96 DPI.
MAX_IMAGE_WIDTH = 500
HEADING_SIZE_RATIO = 1.2

BOLD_MARKERS = ("bold", "black", "heavy", "semibold", "demi")
ITALIC_MARKERS = ("italic", "oblique")

RTL_RANGES = (
    (0x0590, 0x08FF),
    (0xFB1D, 0xFDFF),
    (0xFE70, 0xFEFC),
)
LIGATURE_TRANSLATION = str.maketrans(
    {
        "ﬁ": "fi",
        "ﬂ": "fl",
        "ﬃ": "ffi",
        "ﬄ": "ffl",
        "ﬀ": "ff",
        "ﬅ": "st",
        "ﬆ": "st",
    }
)

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 100
DEFAULT_FILENAME = "converted_document"
