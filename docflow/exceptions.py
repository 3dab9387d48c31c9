"""Custom exceptions for docflow."""

from __future__ import annotations

from enum import Enum


class DocFlowError(RuntimeError):
    """Base class for all docflow exceptions."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown conversion error occurred."


class ValidationError(DocFlowError):
    """Raised when the caller supplied unusable input."""

    @property
    def default_message(self) -> str:
        return "Invalid conversion input."


class SourceValidationError(ValidationError):
    """Raised when source bytes fail the size or signature checks."""

    @property
    def default_message(self) -> str:
        return "Invalid file format. Please provide a PDF file."


class OptionsValidationError(ValidationError):
    """Raised when conversion options are out of range."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid conversion options: " + "; ".join(self.errors))


class ParseErrorCategory(str, Enum):
    CORRUPT = "corrupt"
    ENCRYPTED = "encrypted"
    RUNTIME = "runtime"
    NETWORK = "network"


_PARSE_MESSAGES = {
    ParseErrorCategory.CORRUPT: "The PDF file appears to be corrupted or has an invalid structure.",
    ParseErrorCategory.ENCRYPTED: "The PDF file is password protected and cannot be converted.",
    ParseErrorCategory.RUNTIME: "The PDF engine failed while reading the document.",
    ParseErrorCategory.NETWORK: "A resource required to read the PDF could not be loaded.",
}


class ParseError(DocFlowError):
    """Raised when a PDF document cannot be opened at all."""

    def __init__(self, category: ParseErrorCategory, detail: str | None = None) -> None:
        self.category = category
        self.detail = detail
        message = _PARSE_MESSAGES[category]
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class GenerationError(DocFlowError):
    """Raised when the output container cannot be built."""

    @property
    def default_message(self) -> str:
        return "Failed to generate the Word document."


class ConversionError(DocFlowError):
    """Raised for fatal orchestration failures, tagged with the failing stage."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
