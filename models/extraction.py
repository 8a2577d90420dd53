"""Data models for document extraction results."""

import mimetypes
import os
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DocumentFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class ExtractionMethod(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    OCR = "ocr"
    NONE = "none"  # No backend ran (unsupported input)


class FileBlob(BaseModel):
    """An uploaded file: name, raw bytes and declared content type."""
    model_config = ConfigDict(frozen=True)

    name: str
    data: bytes = Field(repr=False)
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, file_path: str, content_type: Optional[str] = None) -> "FileBlob":
        """Read a file from disk, guessing its content type if not given."""
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")
        if not os.path.isfile(file_path):
            raise ValueError(f"Path is not a file: {file_path}")
        if os.path.getsize(file_path) == 0:
            raise ValueError(f"File is empty: {file_path}")

        if content_type is None:
            content_type = mimetypes.guess_type(file_path)[0] or ""

        with open(file_path, "rb") as f:
            data = f.read()

        return cls(name=os.path.basename(file_path), data=data, content_type=content_type)


# ── Backend-specific results ─────────────────────────────────


class PdfMetadata(BaseModel):
    """Fields read from the PDF document information dictionary."""
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[datetime] = None
    modification_date: Optional[datetime] = None


class PdfExtractionResult(BaseModel):
    method: Literal["pdf"] = "pdf"
    text: str = ""
    page_count: int = 0
    metadata: Optional[PdfMetadata] = None
    skipped_pages: list[int] = []  # Requested pages outside the document
    warnings: list[str] = []


class DocxMessage(BaseModel):
    """A diagnostic produced while walking a DOCX document."""
    type: Literal["info", "warning", "error"]
    message: str


class DocxMetadata(BaseModel):
    word_count: int = 0
    paragraph_count: int = 0
    has_images: bool = False


class DocxExtractionResult(BaseModel):
    method: Literal["docx"] = "docx"
    text: str = ""
    html: Optional[str] = None
    messages: list[DocxMessage] = []
    metadata: DocxMetadata = Field(default_factory=DocxMetadata)


class PdfInfo(BaseModel):
    """Quick look at a PDF without extracting its text."""
    page_count: int = 0
    has_text: bool = False  # False usually means a scanned document
    file_size: int = 0
    metadata: Optional[PdfMetadata] = None


class DocxInfo(BaseModel):
    word_count: int = 0
    paragraph_count: int = 0
    has_images: bool = False
    has_warnings: bool = False
    file_size: int = 0
    messages: list[DocxMessage] = []


class OcrExtractionResult(BaseModel):
    method: Literal["ocr"] = "ocr"
    text: str = ""
    confidence: float = 0.0  # Mean word confidence (0-100)
    processing_time: float = 0.0  # Milliseconds
    page_count: int = 0  # Images, frames or rasterized PDF pages recognized


ExtractionDetail = Annotated[
    Union[PdfExtractionResult, DocxExtractionResult, OcrExtractionResult],
    Field(discriminator="method"),
]


# ── Unified envelope ─────────────────────────────────────────


class UnifiedExtractionResult(BaseModel):
    """Result of extracting one file, whichever backend produced it."""
    text: str = ""
    file_type: DocumentFormat
    extraction_method: ExtractionMethod
    success: bool

    detail: Optional[ExtractionDetail] = None

    processing_time: float = Field(default=0.0, ge=0)  # Milliseconds
    file_size: int = 0
    file_name: str

    error: Optional[str] = None
    warnings: list[str] = []

    @model_validator(mode="after")
    def _check_consistency(self) -> "UnifiedExtractionResult":
        if self.success == (self.error is not None):
            raise ValueError("error must be set if and only if success is False")
        if self.detail is not None and self.detail.method != self.extraction_method.value:
            raise ValueError(
                f"detail of type '{self.detail.method}' does not match "
                f"extraction method '{self.extraction_method.value}'"
            )
        if self.file_type == DocumentFormat.UNSUPPORTED:
            if self.success or self.text:
                raise ValueError("unsupported files cannot yield text")
            if self.extraction_method != ExtractionMethod.NONE:
                raise ValueError("unsupported files must use extraction method 'none'")
        return self

    @property
    def pdf_result(self) -> Optional[PdfExtractionResult]:
        return self.detail if isinstance(self.detail, PdfExtractionResult) else None

    @property
    def docx_result(self) -> Optional[DocxExtractionResult]:
        return self.detail if isinstance(self.detail, DocxExtractionResult) else None

    @property
    def ocr_result(self) -> Optional[OcrExtractionResult]:
        return self.detail if isinstance(self.detail, OcrExtractionResult) else None


class ExtractionSummary(BaseModel):
    """Aggregate statistics over a batch of extraction results."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0  # Percentage
    by_type: dict[str, int] = {}
    by_method: dict[str, int] = {}
    total_processing_time: float = 0.0
    average_processing_time: float = 0.0
    total_text_length: int = 0  # Characters, successful results only


class FileValidation(BaseModel):
    is_valid: bool
    file_type: DocumentFormat
    reason: Optional[str] = None
    max_size: Optional[int] = None  # Bytes
