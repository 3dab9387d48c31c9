"""Conversion orchestration: parse, normalize images, generate."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Union

from .constants import LARGE_DOCUMENT_PAGES, MAX_FILE_SIZE, MIN_TEXT_LENGTH
from .exceptions import ConversionError, DocFlowError, ValidationError
from .generator import DocxGenerator
from .images import ImageCache, ImageNormalizer
from .models import ParsedContent
from .options import ConversionOptions, DocumentOptions
from .parser import parse_document
from .validators import validate_options, validate_source_bytes, validate_source_path

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ConversionStage",
    "ConversionProgress",
    "ConversionMetadata",
    "ConversionResult",
    "PdfToWordConverter",
    "convert",
    "convert_sync",
    "validate_content",
]

Source = Union[bytes, bytearray, memoryview, str, "os.PathLike[str]"]
OptionsLike = Union[ConversionOptions, Mapping[str, object], None]


class ConversionStage(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    PROCESSING = "processing"
    GENERATING = "generating"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class ConversionProgress:
    stage: ConversionStage
    progress: int
    message: str
    current_page: int | None = None
    total_pages: int | None = None


ProgressCallback = Callable[[ConversionProgress], None]


@dataclass(slots=True)
class ConversionMetadata:
    original_title: str | None
    original_author: str | None
    original_pages: int
    converted_pages: int
    word_count: int
    character_count: int
    conversion_time: float
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass(slots=True)
class ConversionResult:
    """Outcome of a conversion.

    ``stage`` is always the terminal :attr:`ConversionStage.COMPLETE`; check
    ``success`` to tell the two apart. On failure ``error`` holds the message
    and ``failed_stage`` the stage that was running. Warnings collected before
    a failure are kept.
    """

    success: bool
    blob: bytes | None = None
    metadata: ConversionMetadata | None = None
    error: str | None = None
    warnings: list[str] | None = None
    stage: ConversionStage = ConversionStage.COMPLETE
    failed_stage: ConversionStage | None = None


def validate_content(content: ParsedContent) -> list[str]:
    """Return advisory warnings about how convertible *content* looks."""

    warnings: list[str] = []
    text_length = len(content.full_text.strip())
    if text_length == 0:
        warnings.append("PDF appears to contain no extractable text content")
    if text_length < MIN_TEXT_LENGTH:
        warnings.append("PDF contains very little text content - this may be an image-based PDF")

    empty_pages = sum(1 for page in content.pages if not page.raw_text.strip())
    if empty_pages:
        warnings.append(f"{empty_pages} page(s) appear to have no extractable text content")

    if content.total_pages > LARGE_DOCUMENT_PAGES:
        warnings.append("Large document detected - conversion may take longer than usual")

    if content.metadata.is_empty():
        warnings.append(
            "PDF metadata is limited - document may not have proper title/author information"
        )
    return warnings


class _ProgressReporter:
    def __init__(self, callback: ProgressCallback | None) -> None:
        self.callback = callback

    def __call__(
        self,
        stage: ConversionStage,
        progress: int,
        message: str,
        *,
        current_page: int | None = None,
        total_pages: int | None = None,
    ) -> None:
        LOGGER.debug("[%s %d%%] %s", stage.value, progress, message)
        if self.callback is None:
            return
        try:
            self.callback(
                ConversionProgress(stage, progress, message, current_page, total_pages)
            )
        except Exception as exc:
            LOGGER.warning("Progress callback raised %s; ignoring", exc)


def _resolve_options(options: OptionsLike) -> ConversionOptions:
    if options is None:
        return ConversionOptions()
    if isinstance(options, ConversionOptions):
        return options
    try:
        return ConversionOptions.from_mapping(options)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid conversion options: {exc}") from exc


class PdfToWordConverter:
    """Convert PDF bytes or files into ``.docx`` bytes.

    Collaborators are injectable; by default each converter owns an image
    normalizer backed by a bounded cache.
    """

    def __init__(
        self,
        normalizer: ImageNormalizer | None = None,
        generator: DocxGenerator | None = None,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self.normalizer = normalizer or ImageNormalizer(ImageCache())
        self.generator = generator or DocxGenerator()
        self.max_file_size = max_file_size

    async def _read_source(self, source: Source | None) -> bytes:
        if source is None:
            raise ValidationError("No file provided")
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source)
        if isinstance(source, (str, os.PathLike)):
            path = Path(source)
            validate_source_path(path)
            try:
                return await asyncio.to_thread(path.read_bytes)
            except OSError as exc:
                raise ConversionError(
                    f"Unable to read {path}: {exc}", stage=ConversionStage.IDLE.value
                ) from exc
        raise ValidationError(
            f"Invalid file input: expected PDF bytes or a path, got {type(source).__name__}"
        )

    async def convert(
        self,
        source: Source | None,
        options: OptionsLike = None,
        on_progress: ProgressCallback | None = None,
    ) -> ConversionResult:
        started = time.perf_counter()
        report = _ProgressReporter(on_progress)
        stage = ConversionStage.IDLE
        warnings: list[str] = []
        try:
            resolved = _resolve_options(options)
            if not resolved.enable_progress_callback:
                report.callback = None
            validate_options(resolved)
            data = await self._read_source(source)
            validate_source_bytes(data, self.max_file_size)

            stage = ConversionStage.PARSING
            report(stage, 0, "Parsing PDF document")
            content = await asyncio.to_thread(parse_document, data, max_size=self.max_file_size)
            report(
                stage,
                30,
                f"Parsed {content.total_pages} page(s)",
                current_page=content.total_pages,
                total_pages=content.total_pages,
            )
            warnings.extend(validate_content(content))
            warnings.extend(content.warnings)

            stage = ConversionStage.PROCESSING
            if not resolved.simple_mode and content.images:
                report(stage, 40, f"Processing {len(content.images)} image(s)")
                warnings.extend(await self._normalize_images(content))
            else:
                report(stage, 40, "No images to process")
            report(stage, 60, "Content processed")

            stage = ConversionStage.GENERATING
            report(stage, 70, "Generating Word document", total_pages=content.total_pages)
            document_options = DocumentOptions.from_conversion(resolved, content.metadata)
            generated = await asyncio.to_thread(
                self.generator.generate, content, document_options
            )
            warnings.extend(generated.warnings)

            stage = ConversionStage.COMPLETE
            elapsed = time.perf_counter() - started
            report(stage, 100, "Conversion complete", total_pages=content.total_pages)
            LOGGER.info(
                "Converted %d page(s) into %d bytes in %.2fs",
                content.total_pages,
                len(generated.blob),
                elapsed,
            )
            return ConversionResult(
                success=True,
                blob=generated.blob,
                metadata=ConversionMetadata(
                    original_title=content.metadata.title,
                    original_author=content.metadata.author,
                    original_pages=content.total_pages,
                    converted_pages=generated.page_count,
                    word_count=generated.word_count,
                    character_count=generated.character_count,
                    conversion_time=elapsed,
                    created_at=generated.created_at,
                ),
                warnings=warnings or None,
                stage=stage,
            )
        except DocFlowError as exc:
            return self._failure(report, stage, exc.message, warnings)
        except Exception as exc:
            LOGGER.exception("Unexpected conversion failure")
            return self._failure(report, stage, f"Unexpected error: {exc}", warnings)

    async def _normalize_images(self, content: ParsedContent) -> list[str]:
        outcomes = iter(await self.normalizer.normalize_all(content.images))
        warnings: list[str] = []
        for page in content.pages:
            normalized = []
            for _ in page.images:
                outcome = next(outcomes)
                if not outcome.ok:
                    warnings.append(
                        f"Image {outcome.value.id} on page {page.page_number} "
                        f"could not be processed: {outcome.reason}"
                    )
                normalized.append(outcome.value)
            page.images = normalized
        return warnings

    def _failure(
        self,
        report: _ProgressReporter,
        stage: ConversionStage,
        message: str,
        warnings: list[str],
    ) -> ConversionResult:
        LOGGER.error("Conversion failed during %s: %s", stage.value, message)
        report(ConversionStage.COMPLETE, 100, "Conversion failed")
        return ConversionResult(
            success=False,
            error=message,
            warnings=warnings or None,
            failed_stage=stage,
        )


async def convert(
    source: Source | None,
    options: OptionsLike = None,
    on_progress: ProgressCallback | None = None,
    *,
    converter: PdfToWordConverter | None = None,
) -> ConversionResult:
    """Convert *source* with a fresh (or supplied) :class:`PdfToWordConverter`."""

    converter = converter or PdfToWordConverter()
    return await converter.convert(source, options, on_progress)


def convert_sync(
    source: Source | None,
    options: OptionsLike = None,
    on_progress: ProgressCallback | None = None,
    *,
    converter: PdfToWordConverter | None = None,
) -> ConversionResult:
    """Blocking wrapper around :func:`convert` for callers without an event loop."""

    return asyncio.run(convert(source, options, on_progress, converter=converter))
