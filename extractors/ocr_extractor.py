"""Extract text from images (and rasterized PDFs) using Tesseract OCR."""

import asyncio
import io
import logging
import shlex
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import fitz  # PyMuPDF, to convert PDF pages to images
import pytesseract
from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError

from models.extraction import DocumentFormat, FileBlob, OcrExtractionResult
from models.options import OcrOptions
from extractors.base import BaseExtractor
from extractors.errors import RecognitionError
from extractors.pdf_extractor import PDFWorker

logger = logging.getLogger(__name__)


@dataclass
class OCRConfig:
    """Configuration for the OCR backend."""
    tesseract_cmd: Optional[str] = None
    dpi: int = 300  # For PDF-to-image conversion (higher = better quality, slower)
    contrast: float = 1.5  # Used when preprocessing is requested


class EngineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    RECOGNIZING = "recognizing"
    TERMINATED = "terminated"


@dataclass
class RecognizedPage:
    """Raw output of one recognition pass."""
    text: str
    word_confidences: list[float] = field(default_factory=list)


class OCREngine(ABC):
    """
    One OCR engine instance, used for a single extraction.

    Lifecycle: UNINITIALIZED -> READY -> RECOGNIZING -> READY -> TERMINATED.
    Use it as an async context manager so terminate() runs exactly once on
    every exit path. Progress is forwarded to the caller's callback and
    never goes backwards.
    """

    def __init__(self, options: OcrOptions):
        self.language = options.language or "eng"
        self.state = EngineState.UNINITIALIZED
        self.parameters: dict[str, str] = {}
        self._progress_callback = options.logger
        self._progress = 0.0

    # ── Subclass hooks ───────────────────────────────────────

    @abstractmethod
    async def _start(self) -> None:
        """Load the engine and the language model."""

    @abstractmethod
    async def _recognize_image(self, image: Image.Image) -> RecognizedPage:
        """Run recognition on a single image."""

    async def _stop(self) -> None:
        """Release engine resources."""

    # ── Lifecycle ────────────────────────────────────────────

    async def initialize(self) -> None:
        if self.state != EngineState.UNINITIALIZED:
            raise RuntimeError(f"Cannot initialize engine in state '{self.state.value}'")

        self.report_progress("initializing engine", 0.0)
        try:
            await self._start()
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(
                f"Failed to initialize OCR engine: {e}", DocumentFormat.IMAGE
            ) from e

        self.state = EngineState.READY
        self.report_progress("engine ready", 0.1)

    def set_parameters(self, **parameters: str) -> None:
        if self.state != EngineState.READY:
            raise RuntimeError(f"Cannot set parameters in state '{self.state.value}'")
        self.parameters.update(parameters)

    async def recognize(self, image: Image.Image) -> RecognizedPage:
        if self.state != EngineState.READY:
            raise RuntimeError(f"Cannot recognize in state '{self.state.value}'")

        self.state = EngineState.RECOGNIZING
        try:
            return await self._recognize_image(image)
        except RecognitionError:
            raise
        except Exception as e:
            raise RecognitionError(
                f"Failed to extract text from image: {e}", DocumentFormat.IMAGE
            ) from e
        finally:
            self.state = EngineState.READY

    async def terminate(self) -> None:
        if self.state == EngineState.TERMINATED:
            return
        try:
            await self._stop()
        finally:
            self.state = EngineState.TERMINATED

    async def __aenter__(self) -> "OCREngine":
        try:
            await self.initialize()
        except BaseException:
            await self.terminate()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.terminate()

    # ── Progress ─────────────────────────────────────────────

    def report_progress(self, stage: str, progress: float) -> None:
        self._progress = min(1.0, max(self._progress, progress))
        logger.debug("OCR %s: %.0f%%", stage, self._progress * 100)
        if self._progress_callback is not None:
            self._progress_callback(stage, self._progress)


class TesseractEngine(OCREngine):
    """
    OCR engine backed by a local Tesseract install (via pytesseract).

    Prerequisites:
        - Tesseract installed: sudo apt install tesseract-ocr
        - Language packs, e.g.: sudo apt install tesseract-ocr-fra
    """

    def __init__(self, options: OcrOptions, config: Optional[OCRConfig] = None):
        super().__init__(options)
        self.config = config or OCRConfig()

    async def _start(self) -> None:
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(
                "Tesseract not found or not configured. "
                "Install with: sudo apt install tesseract-ocr",
                DocumentFormat.IMAGE,
            ) from e

        available = await asyncio.to_thread(pytesseract.get_languages, "")
        missing = [lang for lang in self.language.split("+") if lang not in available]
        if missing:
            raise RecognitionError(
                f"Tesseract language(s) not installed: {', '.join(missing)}. "
                f"Install with: sudo apt install tesseract-ocr-{missing[0]}",
                DocumentFormat.IMAGE,
            )

        logger.debug("Tesseract %s ready with language '%s'", version, self.language)

    def build_config(self) -> str:
        """Command-line config string for the current parameters."""
        return " ".join(
            f"-c {name}={shlex.quote(value)}" for name, value in self.parameters.items()
        )

    async def _recognize_image(self, image: Image.Image) -> RecognizedPage:
        config = self.build_config()

        text = await asyncio.to_thread(
            pytesseract.image_to_string, image, lang=self.language, config=config
        )
        ocr_data = await asyncio.to_thread(
            pytesseract.image_to_data,
            image,
            lang=self.language,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

        return RecognizedPage(text=text, word_confidences=word_confidences(ocr_data))


def word_confidences(ocr_data: dict) -> list[float]:
    """Per-word confidences (0-100) from Tesseract's image_to_data output."""
    confidences = []
    for word, conf in zip(ocr_data.get("text", []), ocr_data.get("conf", [])):
        if not str(word).strip():
            continue
        try:
            value = float(conf)
        except (TypeError, ValueError):
            continue
        if value >= 0:
            confidences.append(value)
    return confidences


def preprocess_image(image: Image.Image, contrast: float = 1.5) -> Image.Image:
    """Grayscale the image and stretch its contrast around mid-gray."""
    gray = ImageOps.grayscale(image)
    return gray.point(lambda v: max(0, min(255, int(contrast * (v - 128) + 128))))


EngineFactory = Callable[[OcrOptions], OCREngine]


class OCRExtractor(BaseExtractor):
    """
    Extracts text from raster images by running one OCR engine per call.

    Images are loaded with Pillow (every frame of a multi-frame TIFF/GIF
    is recognized). PDF input, which reaches this backend as an OCR
    fallback, is first converted page by page to images via PyMuPDF.
    """

    def __init__(
        self,
        config: Optional[OCRConfig] = None,
        engine_factory: Optional[EngineFactory] = None,
        worker: Optional[PDFWorker] = None,
    ):
        self.config = config or OCRConfig()
        self.engine_factory = engine_factory or (
            lambda options: TesseractEngine(options, self.config)
        )
        self._owns_worker = worker is None
        self.worker = worker or PDFWorker()

    def supported_formats(self) -> list[DocumentFormat]:
        return [DocumentFormat.IMAGE, DocumentFormat.PDF]

    async def get_supported_languages(self) -> list[str]:
        """Language codes installed for the local Tesseract, e.g. ["eng", "fra"]."""
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        try:
            languages = await asyncio.to_thread(pytesseract.get_languages, "")
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionError(
                "Tesseract not found or not configured. "
                "Install with: sudo apt install tesseract-ocr",
                DocumentFormat.IMAGE,
            ) from e
        return sorted(lang for lang in languages if lang != "osd")

    def close(self) -> None:
        if self._owns_worker:
            self.worker.close()

    async def extract(
        self,
        file: FileBlob,
        options: Optional[OcrOptions] = None,
        preprocess: bool = False,
    ) -> OcrExtractionResult:
        options = options or OcrOptions()
        start_time = time.perf_counter()
        pages: list[RecognizedPage] = []

        async with self.engine_factory(options) as engine:
            if options.whitelist:
                engine.set_parameters(tessedit_char_whitelist=options.whitelist)
            if options.blacklist:
                engine.set_parameters(tessedit_char_blacklist=options.blacklist)

            engine.report_progress("loading image", 0.15)
            images = await self._load_images(file)
            if preprocess:
                images = [preprocess_image(image, self.config.contrast) for image in images]

            for idx, image in enumerate(images):
                engine.report_progress("recognizing text", 0.2 + 0.75 * idx / len(images))
                pages.append(await engine.recognize(image))

            engine.report_progress("done", 1.0)

        text = "\n\n".join(p.text.strip() for p in pages if p.text.strip())
        confidences = [c for p in pages for c in p.word_confidences]
        confidence = round(sum(confidences) / len(confidences), 2) if confidences else 0.0

        result = OcrExtractionResult(
            text=text,
            confidence=confidence,
            processing_time=self.elapsed_ms(start_time),
            page_count=len(pages),
        )
        logger.debug(
            "OCR recognized %d characters from %s (confidence %.1f)",
            len(result.text), file.name, result.confidence,
        )
        return result

    async def _load_images(self, file: FileBlob) -> list[Image.Image]:
        if file.data.startswith(b"%PDF-"):
            try:
                return await self.worker.run(_render_pdf_pages, file.data, self.config.dpi)
            except Exception as e:
                raise RecognitionError(
                    f"Failed to extract text from image: cannot rasterize PDF {file.name}: {e}",
                    DocumentFormat.PDF,
                ) from e

        try:
            return await asyncio.to_thread(_open_frames, file.data)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise RecognitionError(
                f"Failed to extract text from image: cannot read image data of {file.name}: {e}",
                DocumentFormat.IMAGE,
            ) from e


def _open_frames(data: bytes) -> list[Image.Image]:
    with Image.open(io.BytesIO(data)) as img:
        return [frame.convert("RGB") for frame in ImageSequence.Iterator(img)]


def _render_pdf_pages(data: bytes, dpi: int) -> list[Image.Image]:
    """Convert each PDF page to an RGB image."""
    images = []
    with fitz.open(stream=data, filetype="pdf") as doc:
        # Matrix controls the zoom/DPI: 300 DPI ≈ zoom of 300/72
        zoom = dpi / 72
        matrix = fitz.Matrix(zoom, zoom)
        for page in doc:
            pixmap = page.get_pixmap(matrix=matrix)
            images.append(Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples))
    return images
