from __future__ import annotations

from pathlib import Path

import pytest

from docflow.exceptions import OptionsValidationError, SourceValidationError, ValidationError
from docflow.options import ConversionOptions, DocumentOptions, Margins, validate_conversion_options
from docflow.models import DocumentMetadata
from docflow.validators import (
    is_pdf_file,
    validate_options,
    validate_source_bytes,
    validate_source_path,
)


def test_validate_source_bytes_accepts_pdf_signature():
    validate_source_bytes(b"%PDF-1.7\n...")


def test_validate_source_bytes_rejects_empty():
    with pytest.raises(SourceValidationError, match="empty"):
        validate_source_bytes(b"")


def test_validate_source_bytes_rejects_oversized():
    with pytest.raises(SourceValidationError, match="size limit"):
        validate_source_bytes(b"%PDF" + b"0" * 100, max_size=50)


def test_validate_source_bytes_rejects_bad_signature():
    with pytest.raises(SourceValidationError, match="Invalid file format"):
        validate_source_bytes(b"PK\x03\x04not a pdf")


def test_source_validation_error_is_validation_error():
    assert issubclass(SourceValidationError, ValidationError)


@pytest.mark.parametrize(
    ("name", "content_type", "expected"),
    [
        ("report.pdf", None, True),
        ("REPORT.PDF", None, True),
        ("report.docx", None, False),
        ("upload", "application/pdf", True),
    ],
)
def test_is_pdf_file(name, content_type, expected):
    assert is_pdf_file(name, content_type) is expected


def test_validate_source_path(tmp_path: Path):
    with pytest.raises(ValidationError, match="Invalid file type"):
        validate_source_path(tmp_path / "notes.txt")
    with pytest.raises(ValidationError, match="File not found"):
        validate_source_path(tmp_path / "missing.pdf")


def test_default_options_are_valid():
    assert validate_conversion_options(ConversionOptions()) == []
    validate_options(ConversionOptions())


def test_invalid_options_are_reported_together():
    options = ConversionOptions(font_size=4, line_spacing=5, margins=Margins(top=-1))
    errors = validate_conversion_options(options)
    assert len(errors) == 3
    with pytest.raises(OptionsValidationError) as excinfo:
        validate_options(options)
    assert excinfo.value.errors == errors
    assert "Font size" in str(excinfo.value)


def test_wrongly_typed_options_are_reported():
    options = ConversionOptions(
        font_size="12", line_spacing=True, margins=Margins(left="wide"), font_family=3
    )
    assert validate_conversion_options(options) == [
        "Font size must be a number",
        "Line spacing must be a number",
        "Left margin must be a number",
        "Font family must be text",
    ]
    assert validate_conversion_options(ConversionOptions(margins=2)) == [
        "Margins must map top, bottom, left and right to inches"
    ]


def test_options_from_mapping_rejects_unparseable_margins():
    with pytest.raises(ValueError):
        ConversionOptions.from_mapping({"margins": {"top": "x"}})


def test_options_from_mapping_accepts_camel_case():
    options = ConversionOptions.from_mapping(
        {"fontSize": 14, "includeHeaders": False, "margins": {"top": 0.5}, "title": None}
    )
    assert options.font_size == 14
    assert options.include_headers is False
    assert options.margins == Margins(top=0.5)
    assert options.title is None


def test_options_from_mapping_rejects_unknown_keys():
    with pytest.raises(KeyError):
        ConversionOptions.from_mapping({"colour": "red"})


def test_document_options_resolve_overrides_then_metadata_then_defaults():
    metadata = DocumentMetadata(title="Source Title", author="Source Author")
    resolved = DocumentOptions.from_conversion(ConversionOptions(author="Override"), metadata)
    assert resolved.title == "Source Title"
    assert resolved.author == "Override"
    assert resolved.subject == "PDF to Word Conversion"

    defaults = DocumentOptions.from_conversion(ConversionOptions())
    assert defaults.title == "Converted Document"
    assert defaults.author == "DocFlow"
