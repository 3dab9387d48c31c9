"""Content model shared by the parser, normalizer and generator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar, Union

__all__ = [
    "TextFragment",
    "ImageAsset",
    "TableCell",
    "TableRow",
    "DetectedTable",
    "PageContent",
    "DocumentMetadata",
    "ParsedContent",
    "Ok",
    "Degraded",
    "Outcome",
]

T = TypeVar("T")


@dataclass(slots=True)
class TextFragment:
    """A positioned run of text in PDF page space (origin bottom-left)."""

    text: str
    x: float
    y: float
    width: float
    height: float
    font_name: str | None = None
    font_size: float = 0.0
    bold: bool = False
    italic: bool = False
    direction: str = "ltr"


@dataclass(slots=True)
class ImageAsset:
    """An embedded raster image and, once normalized, its re-encoded payload."""

    id: str
    page_number: int
    x: float
    y: float
    width: int
    height: int
    format: str
    data: bytes
    display_width: float = 0.0
    display_height: float = 0.0
    processed: bytes | None = None
    processed_format: str | None = None
    error: str | None = None


@dataclass(slots=True)
class TableCell:
    content: str
    row_index: int
    column_index: int
    x: float
    y: float
    width: float
    height: float
    row_span: int = 1
    column_span: int = 1


@dataclass(slots=True)
class TableRow:
    cells: list[TableCell] = field(default_factory=list)


@dataclass(slots=True)
class DetectedTable:
    """Table inferred from text positions; approximate by construction."""

    id: str
    page_number: int
    x: float
    y: float
    width: float
    height: float
    row_count: int
    column_count: int
    rows: list[TableRow] = field(default_factory=list)


@dataclass(slots=True)
class PageContent:
    page_number: int
    width: float = 0.0
    height: float = 0.0
    text_items: list[TextFragment] = field(default_factory=list)
    raw_text: str = ""
    images: list[ImageAsset] = field(default_factory=list)
    tables: list[DetectedTable] = field(default_factory=list)


@dataclass(slots=True)
class DocumentMetadata:
    """Information dictionary of the source PDF; every field is optional."""

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    creator: str | None = None
    producer: str | None = None
    keywords: str | None = None
    creation_date: datetime | None = None
    modification_date: datetime | None = None

    def is_empty(self) -> bool:
        return not (self.title or self.author)


@dataclass(slots=True)
class ParsedContent:
    """Page-structured content extracted from a PDF."""

    pages: list[PageContent] = field(default_factory=list)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    full_text: str = ""
    warnings: list[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def images(self) -> list[ImageAsset]:
        return [image for page in self.pages for image in page.images]

    @property
    def tables(self) -> list[DetectedTable]:
        return [table for page in self.pages for table in page.tables]


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Degraded(Generic[T]):
    """A per-item failure; ``value`` is whatever survived (often the input)."""

    reason: str
    value: T | None = None

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Ok[T], Degraded[T]]
