"""Configuration objects for conversions and document generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .constants import MAX_IMAGE_WIDTH
from .models import DocumentMetadata

__all__ = [
    "Margins",
    "ConversionOptions",
    "ImagePlacementOptions",
    "DocumentOptions",
    "validate_conversion_options",
]

DEFAULT_TITLE = "Converted Document"
DEFAULT_AUTHOR = "DocFlow"
DEFAULT_SUBJECT = "PDF to Word Conversion"

_CAMEL_CASE_KEYS = {
    "preserveFormatting": "preserve_formatting",
    "includeMetadata": "include_metadata",
    "includePageNumbers": "include_page_numbers",
    "includeHeaders": "include_headers",
    "includeFooters": "include_footers",
    "fontSize": "font_size",
    "fontFamily": "font_family",
    "lineSpacing": "line_spacing",
    "simpleMode": "simple_mode",
    "enableProgressCallback": "enable_progress_callback",
}


@dataclass(frozen=True, slots=True)
class Margins:
    """Page margins in inches."""

    top: float = 1.0
    bottom: float = 1.0
    left: float = 1.0
    right: float = 1.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> "Margins":
        if not raw:
            return cls()
        defaults = cls()
        return cls(
            top=float(raw.get("top", defaults.top)),
            bottom=float(raw.get("bottom", defaults.bottom)),
            left=float(raw.get("left", defaults.left)),
            right=float(raw.get("right", defaults.right)),
        )


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    """Options controlling a PDF to Word conversion."""

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    preserve_formatting: bool = True
    include_metadata: bool = True
    include_page_numbers: bool = True
    include_headers: bool = True
    include_footers: bool = True
    font_size: float = 11
    font_family: str = "Calibri"
    line_spacing: float = 1.15
    margins: Margins = field(default_factory=Margins)
    simple_mode: bool = False
    enable_progress_callback: bool = True

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> "ConversionOptions":
        """Build options from a JSON-style mapping using snake_case or camelCase keys."""

        if not raw:
            return cls()
        values: dict[str, object] = {}
        for key, value in raw.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in cls.__dataclass_fields__:
                raise KeyError(f"Unknown conversion option: {key}")
            if value is None:
                continue
            values[name] = value
        margins = values.get("margins")
        if isinstance(margins, Mapping):
            values["margins"] = Margins.from_mapping(margins)
        return cls(**values)  # type: ignore[arg-type]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_conversion_options(options: ConversionOptions) -> list[str]:
    """Return human readable problems with *options*; empty when valid."""

    errors: list[str] = []
    if not _is_number(options.font_size):
        errors.append("Font size must be a number")
    elif not 6 <= options.font_size <= 72:
        errors.append("Font size must be between 6 and 72 points")
    if not _is_number(options.line_spacing):
        errors.append("Line spacing must be a number")
    elif not 0.5 <= options.line_spacing <= 3.0:
        errors.append("Line spacing must be between 0.5 and 3.0")
    if not isinstance(options.margins, Margins):
        errors.append("Margins must map top, bottom, left and right to inches")
    else:
        for side in ("top", "bottom", "left", "right"):
            value = getattr(options.margins, side)
            if not _is_number(value):
                errors.append(f"{side.capitalize()} margin must be a number")
            elif not 0 <= value <= 5:
                errors.append(f"{side.capitalize()} margin must be between 0 and 5 inches")
    if not isinstance(options.font_family, str):
        errors.append("Font family must be text")
    elif not options.font_family.strip():
        errors.append("Font family must not be empty")
    return errors


@dataclass(frozen=True, slots=True)
class ImagePlacementOptions:
    alignment: str = "left"
    max_width: int = MAX_IMAGE_WIDTH
    spacing_before: float = 0.1
    spacing_after: float = 0.1


@dataclass(frozen=True, slots=True)
class DocumentOptions:
    """Settings consumed by :class:`~docflow.generator.DocxGenerator`."""

    title: str = DEFAULT_TITLE
    author: str = DEFAULT_AUTHOR
    subject: str = DEFAULT_SUBJECT
    include_metadata: bool = True
    include_page_numbers: bool = True
    include_header: bool = True
    include_footer: bool = True
    preserve_formatting: bool = True
    simple_mode: bool = False
    font_family: str = "Calibri"
    font_size: float = 11
    line_spacing: float = 1.15
    margins: Margins = field(default_factory=Margins)
    image_options: ImagePlacementOptions = field(default_factory=ImagePlacementOptions)

    @classmethod
    def from_conversion(
        cls,
        options: ConversionOptions,
        metadata: DocumentMetadata | None = None,
    ) -> "DocumentOptions":
        """Resolve caller overrides against source metadata and defaults."""

        metadata = metadata or DocumentMetadata()
        return cls(
            title=options.title or metadata.title or DEFAULT_TITLE,
            author=options.author or metadata.author or DEFAULT_AUTHOR,
            subject=options.subject or metadata.subject or DEFAULT_SUBJECT,
            include_metadata=options.include_metadata,
            include_page_numbers=options.include_page_numbers,
            include_header=options.include_headers,
            include_footer=options.include_footers,
            preserve_formatting=options.preserve_formatting,
            simple_mode=options.simple_mode,
            font_family=options.font_family,
            font_size=options.font_size,
            line_spacing=options.line_spacing,
            margins=options.margins,
        )
