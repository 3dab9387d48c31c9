"""Word document generation with python-docx."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from docx import Document
from docx.document import Document as DocxDocument
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Emu, Inches, Pt, RGBColor

from .constants import HEADING_SIZE_RATIO
from .exceptions import GenerationError
from .metadata import apply_metadata_to_docx
from .models import DetectedTable, Degraded, ImageAsset, Ok, Outcome, PageContent, ParsedContent
from .options import DocumentOptions, Margins
from .tables import group_rows
from .utils import count_words, time_block

LOGGER = logging.getLogger(__name__)

__all__ = ["DocxGenerator", "GenerationResult", "fit_image_size"]

_EMU_PER_PIXEL = 9525
_PLACEHOLDER_COLOR = RGBColor(0x99, 0x99, 0x99)
_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
}


@dataclass(slots=True)
class GenerationResult:
    blob: bytes
    page_count: int
    word_count: int
    character_count: int
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    warnings: list[str] = field(default_factory=list)


def fit_image_size(width: float, height: float, max_width: int) -> tuple[int, int]:
    """Scale pixel dimensions down to *max_width*, preserving aspect ratio."""

    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions {width}x{height}")
    if width <= max_width:
        return int(round(width)), int(round(height))
    scale = max_width / width
    return max_width, max(1, int(round(height * scale)))


class DocxGenerator:
    """Render :class:`ParsedContent` into a ``.docx`` container."""

    def generate(
        self,
        content: ParsedContent,
        options: DocumentOptions | None = None,
    ) -> GenerationResult:
        options = options or DocumentOptions()
        warnings: list[str] = []

        with time_block(LOGGER, "DOCX generation"):
            try:
                document = Document()
                self._configure_styles(document, options)
                self._configure_margins(document.sections[0], options.margins)
            except Exception as exc:
                raise GenerationError(f"Failed to create the Word document: {exc}") from exc

            if options.include_metadata:
                try:
                    apply_metadata_to_docx(
                        document,
                        content.metadata,
                        title=options.title,
                        author=options.author,
                        subject=options.subject,
                    )
                except Exception as exc:
                    LOGGER.warning("Failed to apply document properties: %s", exc)
                    warnings.append(f"Document properties could not be set: {exc}")

            if options.simple_mode:
                produced = self._write_simple(document, content)
            else:
                if options.include_metadata:
                    try:
                        self._write_title_section(document, content, options)
                    except Exception as exc:
                        LOGGER.warning("Failed to write title section: %s", exc)
                        warnings.append(f"Title page could not be created: {exc}")
                try:
                    self._write_header_footer(document, options)
                except Exception as exc:
                    LOGGER.warning("Failed to write header or footer: %s", exc)
                    warnings.append(f"Header or footer could not be created: {exc}")
                produced = self._write_pages(document, content, options, warnings)

            if not produced:
                LOGGER.debug("No page content produced; falling back to full text")
                self._write_lines(document, content.full_text)

            buffer = io.BytesIO()
            try:
                document.save(buffer)
            except Exception as exc:
                raise GenerationError(f"Failed to save the Word document: {exc}") from exc

        return GenerationResult(
            blob=buffer.getvalue(),
            page_count=content.total_pages,
            word_count=count_words(content.full_text),
            character_count=len(content.full_text),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Document setup
    # ------------------------------------------------------------------
    def _configure_styles(self, document: DocxDocument, options: DocumentOptions) -> None:
        normal = document.styles["Normal"]
        normal.font.name = options.font_family
        normal.font.size = Pt(options.font_size)
        normal.paragraph_format.line_spacing = options.line_spacing

    def _configure_margins(self, section, margins: Margins) -> None:
        section.top_margin = Inches(margins.top)
        section.bottom_margin = Inches(margins.bottom)
        section.left_margin = Inches(margins.left)
        section.right_margin = Inches(margins.right)

    def _write_title_section(
        self,
        document: DocxDocument,
        content: ParsedContent,
        options: DocumentOptions,
    ) -> None:
        document.add_heading(options.title, level=0)
        document.add_paragraph(f"Author: {options.author}")
        document.add_paragraph(f"Subject: {options.subject}")
        if content.metadata.creation_date:
            created = content.metadata.creation_date.strftime("%Y-%m-%d %H:%M")
            document.add_paragraph(f"Original creation date: {created}")
        converted = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        document.add_paragraph(f"Converted on: {converted}")
        document.add_paragraph(f"Total pages: {content.total_pages}")
        document.add_section(WD_SECTION.NEW_PAGE)

    def _write_header_footer(self, document: DocxDocument, options: DocumentOptions) -> None:
        section = document.sections[-1]
        if options.include_header:
            header = section.header
            header.is_linked_to_previous = False
            paragraph = header.paragraphs[0]
            paragraph.text = options.title
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if options.include_footer:
            footer = section.footer
            footer.is_linked_to_previous = False
            paragraph = footer.paragraphs[0]
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            paragraph.add_run("Page ")
            _append_page_field(paragraph)

    # ------------------------------------------------------------------
    # Body
    # ------------------------------------------------------------------
    def _write_simple(
        self,
        document: DocxDocument,
        content: ParsedContent,
    ) -> int:
        produced = 0
        for index, page in enumerate(content.pages):
            if index:
                document.add_page_break()
            produced += self._write_lines(document, page.raw_text)
        return produced

    def _write_pages(
        self,
        document: DocxDocument,
        content: ParsedContent,
        options: DocumentOptions,
        warnings: list[str],
    ) -> int:
        produced = 0
        for index, page in enumerate(content.pages):
            if index:
                document.add_page_break()
            if options.include_page_numbers:
                document.add_heading(f"Page {page.page_number}", level=2)
            if options.preserve_formatting and page.text_items:
                produced += self._write_formatted_text(document, page, options)
            else:
                produced += self._write_lines(document, page.raw_text)
            for image in page.images:
                self._write_image(document, image, options, warnings)
                produced += 1
            for table in page.tables:
                self._write_table(document, table, warnings)
                produced += 1
        return produced

    def _write_lines(self, document: DocxDocument, text: str) -> int:
        lines = [line.strip() for line in text.split("\n") if line.strip()]
        for line in lines:
            document.add_paragraph(line)
        return len(lines)

    def _write_formatted_text(
        self,
        document: DocxDocument,
        page: PageContent,
        options: DocumentOptions,
    ) -> int:
        heading_threshold = options.font_size * HEADING_SIZE_RATIO
        lines = group_rows(page.text_items)
        for line in lines:
            paragraph = document.add_paragraph()
            for position, fragment in enumerate(line):
                text = fragment.text if position == 0 else f" {fragment.text}"
                run = paragraph.add_run(text)
                run.italic = fragment.italic or None
                if fragment.font_size > heading_threshold:
                    run.bold = True
                    run.font.size = Pt(fragment.font_size)
                else:
                    run.bold = fragment.bold or None
            if line and line[0].direction == "rtl":
                paragraph.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        return len(lines)

    def _write_image(
        self,
        document: DocxDocument,
        image: ImageAsset,
        options: DocumentOptions,
        warnings: list[str],
    ) -> None:
        placement = options.image_options
        paragraph = document.add_paragraph()
        paragraph.alignment = _ALIGNMENTS.get(placement.alignment, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.paragraph_format.space_before = Inches(placement.spacing_before)
        paragraph.paragraph_format.space_after = Inches(placement.spacing_after)

        outcome = _embed_image(paragraph, image, placement.max_width)
        if outcome.ok:
            return
        _write_placeholder(paragraph, f"[Image could not be loaded: {outcome.reason}]")
        # Normalization failures were already reported upstream.
        if image.error is None:
            warnings.append(
                f"Image {image.id} on page {image.page_number} was replaced by a placeholder: "
                f"{outcome.reason}"
            )

    def _write_table(
        self,
        document: DocxDocument,
        table: DetectedTable,
        warnings: list[str],
    ) -> None:
        outcome = _table_grid(table)
        if not outcome.ok:
            LOGGER.warning("Failed to build table %s: %s", table.id, outcome.reason)
            placeholder = document.add_table(rows=1, cols=1)
            placeholder.style = "Table Grid"
            cell_paragraph = placeholder.cell(0, 0).paragraphs[0]
            _write_placeholder(cell_paragraph, f"[Table could not be created: {outcome.reason}]")
            warnings.append(
                f"Table {table.id} on page {table.page_number} was replaced by a placeholder: "
                f"{outcome.reason}"
            )
            return

        grid = outcome.value
        word_table = document.add_table(rows=len(grid), cols=len(grid[0]))
        word_table.style = "Table Grid"
        for row_index, values in enumerate(grid):
            for column_index, value in enumerate(values):
                word_table.cell(row_index, column_index).text = value
        document.add_paragraph()


def _embed_image(paragraph, image: ImageAsset, max_width: int) -> Outcome[ImageAsset]:
    if image.processed is None:
        return Degraded(image.error or "No image data available", image)
    try:
        width, height = fit_image_size(image.width, image.height, max_width)
        paragraph.add_run().add_picture(
            io.BytesIO(image.processed),
            width=Emu(width * _EMU_PER_PIXEL),
            height=Emu(height * _EMU_PER_PIXEL),
        )
    except Exception as exc:
        LOGGER.warning("Failed to embed image %s: %s", image.id, exc)
        for run in list(paragraph.runs):
            run._r.getparent().remove(run._r)
        return Degraded(str(exc) or exc.__class__.__name__, image)
    return Ok(image)


def _table_grid(table: DetectedTable) -> Outcome[list[list[str]]]:
    """Return cell text as a rectangular grid, padding short rows."""

    if not table.rows:
        return Degraded("table has no rows")
    column_count = max([table.column_count] + [len(row.cells) for row in table.rows])
    if column_count < 1:
        return Degraded("table has no columns")
    grid: list[list[str]] = []
    for row in table.rows:
        values = [cell.content for cell in sorted(row.cells, key=lambda cell: cell.column_index)]
        values.extend([""] * (column_count - len(values)))
        grid.append(values)
    return Ok(grid)


def _write_placeholder(paragraph, text: str) -> None:
    run = paragraph.add_run(text)
    run.italic = True
    run.font.color.rgb = _PLACEHOLDER_COLOR


def _append_page_field(paragraph) -> None:
    field_element = OxmlElement("w:fldSimple")
    field_element.set(qn("w:instr"), " PAGE ")
    run = OxmlElement("w:r")
    text = OxmlElement("w:t")
    text.text = "1"
    run.append(text)
    field_element.append(run)
    paragraph._p.append(field_element)
