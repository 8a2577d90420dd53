"""Exceptions raised by the extraction backends."""

from typing import Optional

from models.extraction import DocumentFormat


class ExtractionError(Exception):
    """Base class for extraction failures that the factory turns into results."""

    def __init__(self, message: str, file_format: Optional[DocumentFormat] = None):
        super().__init__(message)
        self.file_format = file_format


class UnsupportedFormatError(ExtractionError):
    """The input is not a PDF, DOCX or supported image. Never retried."""


class ParseError(ExtractionError):
    """A PDF or DOCX byte stream could not be parsed. Eligible for OCR fallback."""


class RecognitionError(ExtractionError):
    """The OCR engine could not start or could not recognize the image."""
