"""Extract text from the text layer of PDF documents."""

import asyncio
import io
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable, Optional

import fitz  # PyMuPDF
import pdfplumber

from models.extraction import (
    DocumentFormat,
    FileBlob,
    PdfExtractionResult,
    PdfInfo,
    PdfMetadata,
)
from models.options import PdfOptions
from extractors.base import BaseExtractor
from extractors.errors import ParseError

logger = logging.getLogger(__name__)

# D:YYYYMMDDHHmmSS followed by Z, or +HH'mm' / -HH'mm'
PDF_DATE_PATTERN = re.compile(
    r"^D?:?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:([Zz])|([+-])(\d{2})'?(\d{2})?'?)?"
)


class PDFWorker:
    """
    Single dedicated thread that runs every MuPDF and pdfplumber call.

    MuPDF is not safe to drive from several threads, so one worker is
    created up front and shared by everything that opens a PDF (native
    extraction and OCR rasterization). Call close() when done.
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-worker")
        self._closed = False

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self._closed:
            raise RuntimeError("PDFWorker has been closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(fn, *args))

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=True)


class PDFExtractor(BaseExtractor):
    """
    Extracts text-layer words from PDFs using PyMuPDF (fitz).

    Pages are extracted concurrently and joined in page order. A page that
    PyMuPDF cannot read is retried with pdfplumber, and if that fails too
    it contributes an empty string instead of failing the document.
    """

    PAGE_SEPARATOR = "\n\n"

    def __init__(self, worker: Optional[PDFWorker] = None):
        self._owns_worker = worker is None
        self.worker = worker or PDFWorker()

    def supported_formats(self) -> list[DocumentFormat]:
        return [DocumentFormat.PDF]

    def close(self) -> None:
        if self._owns_worker:
            self.worker.close()

    async def extract(
        self, file: FileBlob, options: Optional[PdfOptions] = None
    ) -> PdfExtractionResult:
        options = options or PdfOptions()

        try:
            doc = await self.worker.run(_open_document, file.data)
        except Exception as e:
            raise ParseError(
                f"Failed to extract text from PDF: {e}", DocumentFormat.PDF
            ) from e

        try:
            result = PdfExtractionResult(page_count=doc.page_count)

            if options.include_metadata:
                await self._read_metadata(doc, result)

            selected = (
                options.page_numbers
                if options.page_numbers is not None
                else list(range(1, doc.page_count + 1))
            )
            for page_number in selected:
                if not 1 <= page_number <= doc.page_count:
                    logger.warning(
                        "Page %d is out of range. %s has %d pages.",
                        page_number, file.name, doc.page_count,
                    )
                    result.skipped_pages.append(page_number)

            page_texts = await asyncio.gather(
                *(self._extract_page(doc, file.data, n) for n in selected)
            )
            result.text = self.PAGE_SEPARATOR.join(page_texts).strip()
        finally:
            await self.worker.run(doc.close)

        logger.debug(
            "Extracted %d characters from %d/%d pages of %s",
            len(result.text), len(selected) - len(result.skipped_pages),
            result.page_count, file.name,
        )
        return result

    async def _extract_page(self, doc: "fitz.Document", data: bytes, page_number: int) -> str:
        """Text of one page; never raises."""
        if not 1 <= page_number <= doc.page_count:
            return ""

        try:
            return await self.worker.run(_words_with_pymupdf, doc, page_number)
        except Exception as e:
            logger.warning("PyMuPDF failed on page %d (%s), trying pdfplumber", page_number, e)

        try:
            return await self.worker.run(_words_with_pdfplumber, data, page_number)
        except Exception as e:
            logger.error("Error extracting text from page %d: %s", page_number, e)
            return ""

    async def get_info(self, file: FileBlob) -> PdfInfo:
        """
        Page count, text-layer check and metadata without a full extraction.

        has_text looks at the first page only; a PDF without words there is
        most likely scanned and needs OCR.
        """
        try:
            doc = await self.worker.run(_open_document, file.data)
        except Exception as e:
            raise ParseError(
                f"Failed to get PDF information: {e}", DocumentFormat.PDF
            ) from e

        try:
            info = PdfInfo(page_count=doc.page_count, file_size=file.size)
            try:
                info.has_text = bool(await self.worker.run(_words_with_pymupdf, doc, 1))
            except Exception as e:
                logger.warning("Could not read the first page of %s: %s", file.name, e)

            try:
                info.metadata = await self.worker.run(_metadata_from, doc)
            except Exception as e:
                logger.warning("Failed to extract PDF metadata: %s", e)
        finally:
            await self.worker.run(doc.close)

        return info

    async def _read_metadata(self, doc: "fitz.Document", result: PdfExtractionResult) -> None:
        """Fill result.metadata; a failure only adds a warning."""
        try:
            result.metadata = await self.worker.run(_metadata_from, doc)
        except Exception as e:
            logger.warning("Failed to extract PDF metadata: %s", e)
            result.warnings.append(f"PDF metadata could not be read: {e}")


def _open_document(data: bytes) -> "fitz.Document":
    doc = fitz.open(stream=data, filetype="pdf")
    if doc.page_count == 0:
        doc.close()
        raise ValueError("document has no pages")
    return doc


def _metadata_from(doc: "fitz.Document") -> PdfMetadata:
    info = dict(doc.metadata or {})
    return PdfMetadata(
        title=info.get("title") or None,
        author=info.get("author") or None,
        subject=info.get("subject") or None,
        creator=info.get("creator") or None,
        producer=info.get("producer") or None,
        creation_date=parse_pdf_date(info.get("creationDate")),
        modification_date=parse_pdf_date(info.get("modDate")),
    )


def _words_with_pymupdf(doc: "fitz.Document", page_number: int) -> str:
    # Each entry is (x0, y0, x1, y1, word, block_no, line_no, word_no)
    words = doc[page_number - 1].get_text("words")
    return " ".join(w[4] for w in words)


def _words_with_pdfplumber(data: bytes, page_number: int) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        words = pdf.pages[page_number - 1].extract_words()
    return " ".join(w["text"] for w in words)


def parse_pdf_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a PDF date string such as "D:20240102030405+01'00'"."""
    if not value:
        return None

    match = PDF_DATE_PATTERN.match(value.strip())
    if not match:
        return None

    year, month, day, hour, minute, second, zulu, sign, tz_hour, tz_minute = match.groups()
    tz = timezone.utc
    if sign:
        offset = timedelta(hours=int(tz_hour), minutes=int(tz_minute or 0))
        tz = timezone(offset if sign == "+" else -offset)

    try:
        return datetime(
            int(year), int(month or 1), int(day or 1),
            int(hour or 0), int(minute or 0), int(second or 0),
            tzinfo=tz,
        )
    except ValueError:
        return None
