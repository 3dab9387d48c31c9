"""Top-level package for docflow.

This module exposes the public API for converting PDF documents into Word
``.docx`` files: text with basic formatting, embedded images and detected
tables, plus document metadata.
"""
from .constants import DOCX_MIME_TYPE, MAX_FILE_SIZE, SUPPORTED_FILE_TYPES
from .converter import (
    ConversionMetadata,
    ConversionProgress,
    ConversionResult,
    ConversionStage,
    PdfToWordConverter,
    convert,
    convert_sync,
)
from .exceptions import (
    ConversionError,
    DocFlowError,
    GenerationError,
    ParseError,
    ParseErrorCategory,
    ValidationError,
)
from .generator import DocxGenerator, GenerationResult
from .images import ImageCache, ImageNormalizer
from .models import DocumentMetadata, ParsedContent
from .options import ConversionOptions, DocumentOptions, Margins, validate_conversion_options
from .parser import parse_document
from .tables import detect_tables
from .utils import format_file_size, format_processing_time, safe_filename
from .validators import is_pdf_file

__all__ = [
    "ConversionError",
    "ConversionMetadata",
    "ConversionOptions",
    "ConversionProgress",
    "ConversionResult",
    "ConversionStage",
    "DOCX_MIME_TYPE",
    "DocFlowError",
    "DocumentMetadata",
    "DocumentOptions",
    "DocxGenerator",
    "GenerationError",
    "GenerationResult",
    "ImageCache",
    "ImageNormalizer",
    "MAX_FILE_SIZE",
    "Margins",
    "ParseError",
    "ParseErrorCategory",
    "ParsedContent",
    "PdfToWordConverter",
    "SUPPORTED_FILE_TYPES",
    "ValidationError",
    "convert",
    "convert_sync",
    "detect_tables",
    "format_file_size",
    "format_processing_time",
    "is_pdf_file",
    "parse_document",
    "safe_filename",
    "validate_conversion_options",
]

__version__ = "0.1.0"
