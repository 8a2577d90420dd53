"""Options accepted by the extractors."""

from typing import Callable, Optional

from pydantic import BaseModel, Field

# Receives (stage, fraction_complete) while OCR runs
ProgressCallback = Callable[[str, float], None]


class PdfOptions(BaseModel):
    page_numbers: Optional[list[int]] = None  # 1-based
    include_metadata: bool = False


class DocxOptions(BaseModel):
    include_style_info: bool = False
    ignore_empty_paragraphs: bool = False
    style_map: Optional[list[str]] = None  # e.g. "p[style-name='Clause'] => h3"


class OcrOptions(BaseModel):
    language: str = "eng"  # Tesseract codes, "+"-joined for several
    whitelist: Optional[str] = None
    blacklist: Optional[str] = None
    logger: Optional[ProgressCallback] = None


class ExtractionOptions(BaseModel):
    pdf_options: PdfOptions = Field(default_factory=PdfOptions)
    docx_options: DocxOptions = Field(default_factory=DocxOptions)
    ocr_options: OcrOptions = Field(default_factory=OcrOptions)

    fallback_to_ocr: bool = False  # Retry with OCR if the primary backend fails
    preprocess_image: bool = False  # Grayscale + contrast stretch before OCR
