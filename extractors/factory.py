"""Factory to auto-detect document format and dispatch to the right extractor."""

import logging
import time
from typing import Optional

from models.extraction import (
    DocumentFormat,
    DocxInfo,
    ExtractionMethod,
    ExtractionSummary,
    FileBlob,
    FileValidation,
    PdfInfo,
    UnifiedExtractionResult,
)
from models.options import ExtractionOptions
from extractors.base import BaseExtractor
from extractors.detection import detect_format, validate_file
from extractors.docx_extractor import DOCXExtractor
from extractors.errors import ExtractionError, UnsupportedFormatError
from extractors.ocr_extractor import EngineFactory, OCRConfig, OCRExtractor
from extractors.pdf_extractor import PDFExtractor, PDFWorker
from extractors.summary import get_extraction_summary

logger = logging.getLogger(__name__)

PRIMARY_METHODS: dict[DocumentFormat, ExtractionMethod] = {
    DocumentFormat.PDF: ExtractionMethod.PDF,
    DocumentFormat.DOCX: ExtractionMethod.DOCX,
    DocumentFormat.IMAGE: ExtractionMethod.OCR,
}

LOW_CONFIDENCE_THRESHOLD = 50.0

SUPPORTED_FORMATS_HINT = "PDF, DOCX, and images (JPEG, PNG, GIF, BMP, TIFF, WebP)"


class ExtractorFactory:
    """
    Selects the correct extractor for each file and wraps its output in a
    UnifiedExtractionResult.

    Usage:
        async with ExtractorFactory() as factory:
            result = await factory.extract_text(blob)

            # Retry failed PDF/DOCX parsing with OCR:
            result = await factory.extract_text(
                blob, ExtractionOptions(fallback_to_ocr=True)
            )

    Backend failures never escape extract_text(); they are reported in the
    result's `error` field.
    """

    def __init__(
        self,
        pdf_worker: Optional[PDFWorker] = None,
        ocr_config: Optional[OCRConfig] = None,
        ocr_engine_factory: Optional[EngineFactory] = None,
        ocr_extractor: Optional[OCRExtractor] = None,
    ):
        self._owns_worker = pdf_worker is None
        self.pdf_worker = pdf_worker or PDFWorker()

        self._pdf_extractor = PDFExtractor(self.pdf_worker)
        self._docx_extractor = DOCXExtractor()

        self._ocr_config = ocr_config
        self._ocr_engine_factory = ocr_engine_factory
        self._ocr_extractor = ocr_extractor

    def _get_ocr_extractor(self) -> OCRExtractor:
        """Lazy-initialize the OCR extractor; most uploads never need it."""
        if self._ocr_extractor is None:
            self._ocr_extractor = OCRExtractor(
                config=self._ocr_config,
                engine_factory=self._ocr_engine_factory,
                worker=self.pdf_worker,
            )
        return self._ocr_extractor

    def close(self) -> None:
        if self._owns_worker:
            self.pdf_worker.close()

    async def __aenter__(self) -> "ExtractorFactory":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Detection, validation and inspection ─────────────────

    def detect_format(self, file: FileBlob) -> DocumentFormat:
        return detect_format(file)

    def validate_file(self, file: FileBlob) -> FileValidation:
        return validate_file(file)

    async def get_pdf_info(self, file: FileBlob) -> PdfInfo:
        return await self._pdf_extractor.get_info(file)

    async def get_docx_info(self, file: FileBlob) -> DocxInfo:
        return await self._docx_extractor.get_info(file)

    async def get_supported_languages(self) -> list[str]:
        return await self._get_ocr_extractor().get_supported_languages()

    @staticmethod
    def get_extraction_summary(results: list[UnifiedExtractionResult]) -> ExtractionSummary:
        return get_extraction_summary(results)

    # ── Extraction ───────────────────────────────────────────

    async def extract_text(
        self,
        file: FileBlob,
        options: Optional[ExtractionOptions] = None,
    ) -> UnifiedExtractionResult:
        """
        Extract text from any supported file.

        Args:
            file: The uploaded file.
            options: Per-backend options and the OCR fallback policy.

        Returns:
            UnifiedExtractionResult; `success` is False with `error` set when
            the file is unsupported or every attempted backend failed.
        """
        options = options or ExtractionOptions()
        start_time = time.perf_counter()
        file_type = detect_format(file)

        if file_type == DocumentFormat.UNSUPPORTED:
            error = UnsupportedFormatError(
                f"Unsupported file type: {file.name}. Supported formats: {SUPPORTED_FORMATS_HINT}",
                file_type,
            )
            logger.warning("%s", error)
            return self._failed_result(file, file_type, ExtractionMethod.NONE, str(error), start_time)

        primary_method = PRIMARY_METHODS[file_type]
        try:
            return await self._extract_with(primary_method, file, file_type, options, start_time)
        except ExtractionError as e:
            error_message = str(e)
            logger.warning("%s extraction failed for %s: %s", file_type.value, file.name, e)

        if options.fallback_to_ocr and file_type != DocumentFormat.IMAGE:
            logger.warning("Primary extraction failed for %s, trying OCR as fallback...", file.name)
            try:
                result = await self._extract_with(
                    ExtractionMethod.OCR, file, file_type, options, start_time
                )
            except ExtractionError as ocr_error:
                logger.error("OCR fallback also failed for %s: %s", file.name, ocr_error)
            else:
                result.warnings.append(
                    f"Primary {file_type.value} extraction failed ({error_message}), "
                    f"used OCR as fallback"
                )
                return result

        return self._failed_result(file, file_type, primary_method, error_message, start_time)

    async def extract_text_from_multiple_files(
        self,
        files: list[FileBlob],
        options: Optional[ExtractionOptions] = None,
    ) -> list[UnifiedExtractionResult]:
        """Extract files one at a time; a failing file never stops the batch."""
        results: list[UnifiedExtractionResult] = []

        for file in files:
            start_time = time.perf_counter()
            try:
                results.append(await self.extract_text(file, options))
            except Exception as e:
                logger.exception("Unexpected error extracting %s", file.name)
                file_type = detect_format(file)
                results.append(
                    self._failed_result(
                        file,
                        file_type,
                        PRIMARY_METHODS.get(file_type, ExtractionMethod.NONE),
                        str(e) or type(e).__name__,
                        start_time,
                    )
                )

        return results

    # ── Backend adapters ─────────────────────────────────────

    async def _extract_with(
        self,
        method: ExtractionMethod,
        file: FileBlob,
        file_type: DocumentFormat,
        options: ExtractionOptions,
        start_time: float,
    ) -> UnifiedExtractionResult:
        if method == ExtractionMethod.PDF:
            detail = await self._pdf_extractor.extract(file, options.pdf_options)
            warnings = list(detail.warnings) + [
                f"Page {n} is out of range. PDF has {detail.page_count} pages."
                for n in detail.skipped_pages
            ]
        elif method == ExtractionMethod.DOCX:
            detail = await self._docx_extractor.extract(file, options.docx_options)
            warnings = []
            if any(m.type == "warning" for m in detail.messages):
                warnings.append("DOCX file contains warnings during extraction")
        else:
            detail = await self._get_ocr_extractor().extract(
                file, options.ocr_options, preprocess=options.preprocess_image
            )
            warnings = []
            if detail.confidence < LOW_CONFIDENCE_THRESHOLD:
                warnings.append(f"Low OCR confidence: {detail.confidence:.1f}%")

        return UnifiedExtractionResult(
            text=detail.text,
            file_type=file_type,
            extraction_method=method,
            success=True,
            detail=detail,
            processing_time=BaseExtractor.elapsed_ms(start_time),
            file_size=file.size,
            file_name=file.name,
            warnings=warnings,
        )

    def _failed_result(
        self,
        file: FileBlob,
        file_type: DocumentFormat,
        method: ExtractionMethod,
        error: str,
        start_time: float,
    ) -> UnifiedExtractionResult:
        return UnifiedExtractionResult(
            text="",
            file_type=file_type,
            extraction_method=method,
            success=False,
            processing_time=BaseExtractor.elapsed_ms(start_time),
            file_size=file.size,
            file_name=file.name,
            error=error,
        )


# Convenience function
async def extract_document(
    file_path: str,
    options: Optional[ExtractionOptions] = None,
) -> UnifiedExtractionResult:
    """
    One-liner to extract text from any supported document on disk.

    Usage:
        from extractors.factory import extract_document
        result = asyncio.run(extract_document("path/to/file.pdf"))
        print(result.text)
    """
    blob = FileBlob.from_path(file_path)
    async with ExtractorFactory() as factory:
        return await factory.extract_text(blob, options)
