from __future__ import annotations

import asyncio
import io
from unittest.mock import patch

from docx import Document

from docflow.converter import (
    ConversionStage,
    PdfToWordConverter,
    convert,
    convert_sync,
    validate_content,
)
from docflow.exceptions import GenerationError
from docflow.generator import DocxGenerator
from docflow.models import DocumentMetadata, PageContent, ParsedContent
from docflow.options import ConversionOptions


def _recorder():
    events = []

    def on_progress(update):
        events.append((update.stage, update.progress))

    return events, on_progress


def test_convert_text_document(text_pdf):
    events, on_progress = _recorder()
    result = convert_sync(text_pdf, {"title": "Custom Title", "author": "QA"}, on_progress)

    assert result.success
    assert result.error is None
    assert result.warnings is None
    assert result.stage is ConversionStage.COMPLETE
    assert result.failed_stage is None
    assert result.metadata.original_title == "Quarterly Report"
    assert result.metadata.original_pages == 1
    assert result.metadata.converted_pages == 1
    assert result.metadata.word_count == 50
    assert result.metadata.conversion_time >= 0

    document = Document(io.BytesIO(result.blob))
    assert document.core_properties.title == "Custom Title"
    assert document.core_properties.author == "QA"
    assert any("word0" in paragraph.text for paragraph in document.paragraphs)

    assert events == [
        (ConversionStage.PARSING, 0),
        (ConversionStage.PARSING, 30),
        (ConversionStage.PROCESSING, 40),
        (ConversionStage.PROCESSING, 60),
        (ConversionStage.GENERATING, 70),
        (ConversionStage.COMPLETE, 100),
    ]


def test_metadata_is_used_when_no_overrides(text_pdf):
    result = convert_sync(text_pdf)
    document = Document(io.BytesIO(result.blob))
    assert document.core_properties.title == "Quarterly Report"
    assert document.core_properties.author == "Jane Doe"


def test_async_convert_accepts_options_object(text_pdf):
    result = asyncio.run(convert(text_pdf, ConversionOptions(simple_mode=True)))
    assert result.success
    assert Document(io.BytesIO(result.blob)).tables == []


def test_convert_from_path(text_pdf_path):
    result = convert_sync(str(text_pdf_path))
    assert result.success
    assert result.metadata.word_count == 50


def test_unreadable_path_fails_before_parsing(text_pdf_path):
    with patch("pathlib.Path.read_bytes", side_effect=PermissionError("denied")):
        result = convert_sync(text_pdf_path)

    assert not result.success
    assert result.error.startswith("Unable to read")
    assert "denied" in result.error
    assert result.stage is ConversionStage.COMPLETE
    assert result.failed_stage is ConversionStage.IDLE


def test_tables_survive_conversion(table_pdf):
    result = convert_sync(table_pdf)
    document = Document(io.BytesIO(result.blob))

    assert result.success
    assert len(document.tables) == 1
    assert [cell.text for cell in document.tables[0].rows[2].cells] == ["Pear", "5", "0.80"]


def test_oversized_input_is_rejected_before_parsing(text_pdf):
    converter = PdfToWordConverter(max_file_size=64)
    with patch("docflow.converter.parse_document") as parse:
        result = convert_sync(text_pdf, converter=converter)

    assert not result.success
    assert "size limit" in result.error
    assert result.blob is None
    parse.assert_not_called()


def test_missing_signature_is_rejected():
    result = convert_sync(b"hello world")
    assert not result.success
    assert "%PDF" in result.error


def test_missing_source_is_rejected():
    events, on_progress = _recorder()
    result = convert_sync(None, on_progress=on_progress)

    assert not result.success
    assert result.error == "No file provided"
    assert result.failed_stage is ConversionStage.IDLE
    assert events == [(ConversionStage.COMPLETE, 100)]


def test_non_pdf_path_is_rejected(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("not a pdf")
    result = convert_sync(notes)
    assert not result.success
    assert "Invalid file type" in result.error


def test_unsupported_source_type_is_rejected():
    result = convert_sync(12345)
    assert not result.success
    assert "Invalid file input" in result.error


def test_invalid_options_are_rejected(text_pdf):
    result = convert_sync(text_pdf, {"fontSize": 100})
    assert not result.success
    assert "Font size must be between 6 and 72 points" in result.error

    result = convert_sync(text_pdf, {"colour": "red"})
    assert not result.success
    assert "Unknown conversion option" in result.error


def test_password_protected_pdf_fails_during_parsing(pdf_factory):
    data = pdf_factory([{"texts": [("Secret", 72, 720)]}], password="letmein")
    result = convert_sync(data)

    assert not result.success
    assert "password" in result.error
    assert result.stage is ConversionStage.COMPLETE
    assert result.failed_stage is ConversionStage.PARSING


def test_blank_document_converts_with_warnings(pdf_factory):
    result = convert_sync(pdf_factory([{}]))

    assert result.success
    assert "PDF appears to contain no extractable text content" in result.warnings
    assert "1 page(s) appear to have no extractable text content" in result.warnings
    assert any("metadata is limited" in warning for warning in result.warnings)


def test_broken_image_degrades_to_placeholder(pdf_factory, fifty_words):
    spec = {
        "name": "Photo",
        "width": 8,
        "height": 8,
        "filter": "/DCTDecode",
        "data": b"\xff\xd8\xff\xe0fake-jpeg",
        "matrix": (50, 0, 0, 50, 72, 300),
    }
    data = pdf_factory(
        [{"texts": [(fifty_words, 72, 720)], "images": [spec]}],
        metadata={"/Title": "Photos", "/Author": "QA"},
    )
    result = convert_sync(data)
    texts = [paragraph.text for paragraph in Document(io.BytesIO(result.blob)).paragraphs]

    assert result.success
    assert any(text.startswith("[Image could not be loaded:") for text in texts)
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Image p1-Photo-0 on page 1 could not be processed")


def test_valid_image_is_embedded(pdf_factory, image_spec, fifty_words):
    data = pdf_factory(
        [{"texts": [(fifty_words, 72, 720)], "images": [image_spec("Im1", 40, 20)]}],
        metadata={"/Title": "Photos", "/Author": "QA"},
    )
    result = convert_sync(data)

    assert result.success
    assert result.warnings is None
    assert len(Document(io.BytesIO(result.blob)).inline_shapes) == 1


def test_failing_progress_callback_is_ignored(text_pdf):
    def on_progress(update):
        raise RuntimeError("listener crashed")

    assert convert_sync(text_pdf, on_progress=on_progress).success


def test_progress_callback_can_be_disabled(text_pdf):
    events, on_progress = _recorder()
    result = convert_sync(text_pdf, {"enableProgressCallback": False}, on_progress)
    assert result.success
    assert events == []


def test_unexpected_errors_are_reported(text_pdf):
    events, on_progress = _recorder()
    with patch("docflow.converter.parse_document", side_effect=RuntimeError("engine exploded")):
        result = convert_sync(text_pdf, on_progress=on_progress)

    assert not result.success
    assert result.error == "Unexpected error: engine exploded"
    assert result.stage is ConversionStage.COMPLETE
    assert result.failed_stage is ConversionStage.PARSING
    assert events[-1] == (ConversionStage.COMPLETE, 100)


def test_validate_content_flags_thin_documents():
    content = ParsedContent(
        pages=[PageContent(page_number=1, raw_text="short"), PageContent(page_number=2)],
        metadata=DocumentMetadata(title="Doc", author="Someone"),
        full_text="short",
    )
    assert validate_content(content) == [
        "PDF contains very little text content - this may be an image-based PDF",
        "1 page(s) appear to have no extractable text content",
    ]


def test_validate_content_flags_large_documents():
    pages = [PageContent(page_number=index + 1, raw_text="x" * 200) for index in range(101)]
    content = ParsedContent(
        pages=pages,
        metadata=DocumentMetadata(title="Doc", author="Someone"),
        full_text="x" * 200,
    )
    assert validate_content(content) == ["Large document detected - conversion may take longer than usual"]


def test_failure_reports_complete_as_terminal_stage():
    events, on_progress = _recorder()
    result = convert_sync(b"%PDF-1.4\ngarbage", on_progress=on_progress)

    assert not result.success
    assert result.stage is ConversionStage.COMPLETE
    assert result.failed_stage is ConversionStage.PARSING
    assert events == [(ConversionStage.PARSING, 0), (ConversionStage.COMPLETE, 100)]


def test_generation_failure_keeps_collected_warnings(pdf_factory):
    with patch.object(DocxGenerator, "generate", side_effect=GenerationError("boom")):
        result = convert_sync(pdf_factory([{}]))

    assert not result.success
    assert result.error == "boom"
    assert result.failed_stage is ConversionStage.GENERATING
    assert "PDF appears to contain no extractable text content" in result.warnings
    assert "1 page(s) appear to have no extractable text content" in result.warnings
    assert any("metadata is limited" in warning for warning in result.warnings)


def test_validate_content_flags_empty_documents_twice():
    content = ParsedContent(
        pages=[PageContent(page_number=1)],
        metadata=DocumentMetadata(title="Doc", author="Someone"),
        full_text="",
    )
    assert validate_content(content)[:2] == [
        "PDF appears to contain no extractable text content",
        "PDF contains very little text content - this may be an image-based PDF",
    ]


def test_mistyped_options_fail_validation(text_pdf):
    result = convert_sync(text_pdf, {"fontSize": "12"})
    assert not result.success
    assert "Font size must be a number" in result.error

    result = convert_sync(text_pdf, {"margins": {"top": "x"}})
    assert not result.success
    assert result.error.startswith("Invalid conversion options")
    assert "Unexpected error" not in result.error
