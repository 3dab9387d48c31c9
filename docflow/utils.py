"""Utility helpers for docflow."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

from .constants import (
    DEFAULT_FILENAME,
    INVALID_FILENAME_CHARS,
    LIGATURE_TRANSLATION,
    MAX_FILENAME_LENGTH,
    PDF_DATE_PREFIX,
    RTL_RANGES,
)

_WHITESPACE = re.compile(r"\s+")


def configure_logging(verbose: bool = False) -> None:
    """Configure package-wide logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@contextmanager
def time_block(logger: logging.Logger, message: str) -> Iterator[None]:
    """Context manager that logs the execution time of a code block."""
    start = datetime.now(tz=timezone.utc)
    logger.debug("Starting %s", message)
    try:
        yield
    finally:
        end = datetime.now(tz=timezone.utc)
        elapsed = (end - start).total_seconds()
        logger.info("%s completed in %.2fs", message, elapsed)


def parse_pdf_date(raw: str | None) -> datetime | None:
    """Parse a PDF date string into a timezone-aware :class:`datetime`.

    Accepts partial dates (``D:2023`` or ``D:202305``); missing components
    default to the start of the period. Returns ``None`` for anything that is
    not a PDF date.
    """
    if not raw:
        return None
    text = raw.strip()
    if text.startswith(PDF_DATE_PREFIX):
        text = text[len(PDF_DATE_PREFIX) :]
    if not text[:4].isdigit():
        return None
    try:
        year = int(text[0:4])
        month = int(text[4:6]) if len(text) >= 6 else 1
        day = int(text[6:8]) if len(text) >= 8 else 1
        hour = int(text[8:10]) if len(text) >= 10 else 0
        minute = int(text[10:12]) if len(text) >= 12 else 0
        second = int(text[12:14]) if len(text) >= 14 else 0
    except ValueError:
        return None
    tz = timezone.utc
    tz_sign = text[14:15]
    if tz_sign in {"+", "-"}:
        try:
            hours = int(text[15:17])
            minutes = int(text[18:20]) if len(text) >= 20 else 0
        except ValueError:
            hours = minutes = 0
        delta = timedelta(hours=hours, minutes=minutes)
        if tz_sign == "-":
            delta = -delta
        tz = timezone(delta)
    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=tz)
    except ValueError:
        return None


def normalise_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalise_text_content(text: str) -> str:
    """Drop soft hyphens and expand typographic ligatures."""
    return text.replace("\u00ad", "").translate(LIGATURE_TRANSLATION)


def is_rtl_text(text: str) -> bool:
    for char in text:
        code = ord(char)
        for start, end in RTL_RANGES:
            if start <= code <= end:
                return True
    return False


def count_words(text: str) -> int:
    return len(text.split())


def safe_filename(original_name: str | None) -> str:
    """Return a download-safe ``.docx`` filename derived from *original_name*."""
    extension = ".docx"
    name = Path(original_name).name if original_name else ""
    name = re.sub(r"\.(pdf|docx?|txt)$", "", name, flags=re.IGNORECASE)
    name = INVALID_FILENAME_CHARS.sub("_", name)
    name = _WHITESPACE.sub("_", name)
    name = re.sub(r"_{2,}", "_", name).strip("_")
    if not name:
        name = DEFAULT_FILENAME
    return name[: MAX_FILENAME_LENGTH - len(extension)] + extension


def format_file_size(size: int) -> str:
    """Format a byte count as a human readable string."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{value:.2f}".rstrip("0").rstrip(".") + f" {units[index]}"


def format_processing_time(seconds: float) -> str:
    milliseconds = int(round(seconds * 1000))
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    if milliseconds < 60_000:
        return f"{milliseconds / 1000:.1f}s"
    return f"{milliseconds // 60_000}m {(milliseconds % 60_000) // 1000}s"
