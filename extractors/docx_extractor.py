"""Extract text from Microsoft Word (.docx) documents."""

import asyncio
import io
import logging
from typing import Optional

import mammoth
from docx import Document
from docx.document import Document as DocumentObject
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.exceptions import PackageNotFoundError
from docx.table import Table

from models.extraction import (
    DocumentFormat,
    DocxExtractionResult,
    DocxInfo,
    DocxMessage,
    DocxMetadata,
    FileBlob,
)
from models.options import DocxOptions
from extractors.base import BaseExtractor
from extractors.errors import ParseError

logger = logging.getLogger(__name__)

# Paragraph styles of Word's default template that mammoth's built-in map
# leaves unmapped. User rules come first so they take precedence.
EXTRA_STYLE_MAP = [
    "p[style-name='Title'] => h1:fresh",
    "p[style-name='Subtitle'] => h2:fresh",
    "p[style-name='Quote'] => blockquote > p:fresh",
    "p[style-name='Intense Quote'] => blockquote > p:fresh",
]


class DOCXExtractor(BaseExtractor):
    """
    Extracts text from .docx files using python-docx.

    The body is walked in document order. Every paragraph becomes one
    block of raw text and every table row becomes one block with its
    non-empty cells joined by " | ". Blocks are separated by a blank line.
    With include_style_info the document is also converted to HTML by
    mammoth, using the caller's style-map rules ahead of the defaults.
    """

    PARAGRAPH_SEPARATOR = "\n\n"

    def supported_formats(self) -> list[DocumentFormat]:
        return [DocumentFormat.DOCX]

    async def extract(
        self, file: FileBlob, options: Optional[DocxOptions] = None
    ) -> DocxExtractionResult:
        options = options or DocxOptions()
        return await asyncio.to_thread(self._extract_docx, file, options)

    async def get_info(self, file: FileBlob) -> DocxInfo:
        """Counts and diagnostics of a DOCX, as a full extraction would report them."""
        result = await self.extract(file, DocxOptions(include_style_info=True))
        return DocxInfo(
            word_count=result.metadata.word_count,
            paragraph_count=result.metadata.paragraph_count,
            has_images=result.metadata.has_images,
            has_warnings=any(m.type == "warning" for m in result.messages),
            file_size=file.size,
            messages=result.messages,
        )

    def _extract_docx(self, file: FileBlob, options: DocxOptions) -> DocxExtractionResult:
        try:
            doc = Document(io.BytesIO(file.data))
        except PackageNotFoundError as e:
            raise ParseError(
                f"Failed to extract text from DOCX: {file.name} is not a valid .docx package",
                DocumentFormat.DOCX,
            ) from e
        except Exception as e:
            raise ParseError(
                f"Failed to extract text from DOCX: {e}", DocumentFormat.DOCX
            ) from e

        messages = self._image_messages(doc)
        text = self.PARAGRAPH_SEPARATOR.join(self._iter_blocks(doc))

        html = None
        if options.include_style_info:
            html, html_messages = self._convert_to_html(file, options.style_map)
            messages.extend(html_messages)

        if options.ignore_empty_paragraphs:
            text = "\n".join(line for line in text.split("\n") if line.strip())

        metadata = DocxMetadata(
            word_count=len(text.split()),
            paragraph_count=sum(1 for line in text.split("\n") if line.strip()),
            has_images=any(
                "image" in m.message.lower() or m.type == "warning" for m in messages
            ),
        )

        logger.debug(
            "Extracted %d words in %d paragraphs from %s",
            metadata.word_count, metadata.paragraph_count, file.name,
        )
        return DocxExtractionResult(text=text, html=html, messages=messages, metadata=metadata)

    def _convert_to_html(
        self, file: FileBlob, style_map: Optional[list[str]]
    ) -> tuple[str, list[DocxMessage]]:
        """Styled HTML via mammoth; its diagnostics become DocxMessages."""
        rules = list(style_map or []) + EXTRA_STYLE_MAP
        try:
            result = mammoth.convert_to_html(io.BytesIO(file.data), style_map="\n".join(rules))
        except Exception as e:
            raise ParseError(
                f"Failed to convert DOCX to HTML: {e}", DocumentFormat.DOCX
            ) from e

        messages: list[DocxMessage] = []
        for message in result.messages:
            converted = DocxMessage(type=message.type, message=message.message)
            if converted not in messages:
                messages.append(converted)
        for message in messages:
            if message.type == "warning":
                logger.warning("%s: %s", file.name, message.message)
        return result.value, messages

    def _iter_blocks(self, doc: DocumentObject):
        """Yield raw text for each paragraph and table row, in body order."""
        for block in doc.iter_inner_content():
            if isinstance(block, Table):
                yield from self._table_rows(block)
            else:
                yield block.text

    def _table_rows(self, table: Table) -> list[str]:
        rows_text = []
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                rows_text.append(" | ".join(cells))
        return rows_text

    def _image_messages(self, doc: DocumentObject) -> list[DocxMessage]:
        """Report embedded pictures, whose content is not extracted."""
        image_count = sum(
            1 for rel in doc.part.rels.values() if rel.reltype == RT.IMAGE
        )
        if not image_count:
            return []
        return [
            DocxMessage(
                type="info",
                message=f"Document contains {image_count} embedded image(s); "
                        f"image content was not extracted",
            )
        ]
