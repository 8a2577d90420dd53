"""Shared fixtures: in-memory documents and a scriptable OCR engine."""

import io
from typing import Optional

import fitz  # PyMuPDF
import pytest
from docx import Document
from PIL import Image

from extractors.ocr_extractor import OCREngine, RecognizedPage
from extractors.pdf_extractor import PDFWorker
from models.options import OcrOptions


def _make_pdf(pages: list[str], metadata: Optional[dict] = None) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    if metadata:
        doc.set_metadata(metadata)
    data = doc.tobytes()
    doc.close()
    return data


def _make_docx(build) -> bytes:
    doc = Document()
    build(doc)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _make_image(fmt: str = "PNG", color=(255, 255, 255), size=(40, 20), mode="RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def pdf_worker():
    worker = PDFWorker()
    yield worker
    worker.close()


@pytest.fixture
def make_pdf():
    return _make_pdf


@pytest.fixture
def make_docx():
    return _make_docx


@pytest.fixture
def make_image():
    return _make_image


class FakeEngine(OCREngine):
    """OCR engine that returns canned text and records its lifecycle."""

    def __init__(self, options: OcrOptions, text: str, confidences: list[float], fail_on=None):
        super().__init__(options)
        self.text = text
        self.confidences = confidences
        self.fail_on = fail_on
        self.calls: list = []
        self.images: list[Image.Image] = []

    async def _start(self) -> None:
        self.calls.append("start")
        if self.fail_on == "start":
            raise RuntimeError("language model missing")

    async def _recognize_image(self, image: Image.Image) -> RecognizedPage:
        self.calls.append(("recognize", self.state))
        self.images.append(image)
        if self.fail_on == "recognize":
            raise RuntimeError("recognition crashed")
        return RecognizedPage(text=f"  {self.text}\n", word_confidences=list(self.confidences))

    async def _stop(self) -> None:
        self.calls.append("stop")


class FakeOCR:
    """Engine factory handing out FakeEngines; tweak attributes per test."""

    def __init__(self):
        self.text = "Hello OCR"
        self.confidences = [90.0, 80.0]
        self.fail_on = None
        self.engines: list[FakeEngine] = []

    def factory(self, options: OcrOptions) -> FakeEngine:
        engine = FakeEngine(options, self.text, self.confidences, self.fail_on)
        self.engines.append(engine)
        return engine


@pytest.fixture
def fake_ocr() -> FakeOCR:
    return FakeOCR()
