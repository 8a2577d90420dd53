"""Tests for DOCX extraction and HTML rendering."""

import mammoth
import pytest
from docx.enum.style import WD_STYLE_TYPE

from extractors.docx_extractor import DOCXExtractor
from extractors.errors import ParseError
from models.extraction import FileBlob
from models.options import DocxOptions


def docx_blob(data: bytes, name: str = "lease.docx") -> FileBlob:
    return FileBlob(name=name, data=data, content_type="")


def lease(doc):
    doc.add_heading("Lease Agreement", level=1)
    doc.add_paragraph("The tenant shall pay rent.")
    doc.add_paragraph("")
    doc.add_paragraph("Second clause.")


class TestDOCXExtractor:

    @pytest.mark.asyncio
    async def test_raw_text(self, make_docx):
        result = await DOCXExtractor().extract(docx_blob(make_docx(lease)))

        assert result.text == "Lease Agreement\n\nThe tenant shall pay rent.\n\n\n\nSecond clause."
        assert result.html is None
        assert result.messages == []
        assert result.metadata.word_count == 9
        assert result.metadata.paragraph_count == 3
        assert result.metadata.has_images is False

    @pytest.mark.asyncio
    async def test_ignore_empty_paragraphs(self, make_docx):
        result = await DOCXExtractor().extract(
            docx_blob(make_docx(lease)), DocxOptions(ignore_empty_paragraphs=True)
        )

        assert result.text == "Lease Agreement\nThe tenant shall pay rent.\nSecond clause."
        assert result.metadata.paragraph_count == 3

    @pytest.mark.asyncio
    async def test_tables_in_document_order(self, make_docx):
        def build(doc):
            doc.add_paragraph("Parties")
            table = doc.add_table(rows=2, cols=2)
            table.cell(0, 0).text = "Acme Ltd"
            table.cell(0, 1).text = "Landlord"
            table.cell(1, 0).text = "Jane Doe"
            doc.add_paragraph("Terms follow.")

        result = await DOCXExtractor().extract(docx_blob(make_docx(build)))

        assert result.text == "Parties\n\nAcme Ltd | Landlord\n\nJane Doe\n\nTerms follow."

    @pytest.mark.asyncio
    async def test_html_with_default_styles(self, make_docx):
        def build(doc):
            lease(doc)
            p = doc.add_paragraph("Note: ")
            p.add_run("binding").bold = True
            p.add_run(" & final").italic = True

        result = await DOCXExtractor().extract(
            docx_blob(make_docx(build)), DocxOptions(include_style_info=True)
        )

        assert result.html.startswith("<h1>Lease Agreement</h1><p>The tenant shall pay rent.</p>")
        assert result.html.endswith("<p>Note: <strong>binding</strong><em> &amp; final</em></p>")
        assert not any(m.type == "warning" for m in result.messages)

    @pytest.mark.asyncio
    async def test_title_maps_to_heading(self, make_docx):
        def build(doc):
            doc.add_heading("Deed of Assignment", level=0)
            doc.add_paragraph("Recitals")

        result = await DOCXExtractor().extract(
            docx_blob(make_docx(build)), DocxOptions(include_style_info=True)
        )

        assert result.html == "<h1>Deed of Assignment</h1><p>Recitals</p>"

    @pytest.mark.asyncio
    async def test_style_map_overrides_defaults(self, make_docx):
        options = DocxOptions(
            include_style_info=True,
            style_map=["p[style-name='Heading 1'] => h2.title"],
        )
        result = await DOCXExtractor().extract(docx_blob(make_docx(lease)), options)

        assert result.html.startswith('<h2 class="title">Lease Agreement</h2>')

    @pytest.mark.asyncio
    async def test_style_map_can_drop_paragraphs(self, make_docx):
        def build(doc):
            doc.styles.add_style("Draft Note", WD_STYLE_TYPE.PARAGRAPH)
            doc.add_paragraph("Remove before signing", style="Draft Note")
            doc.add_paragraph("Keep this")

        options = DocxOptions(
            include_style_info=True,
            style_map=["p[style-name='Draft Note'] => !"],
        )
        result = await DOCXExtractor().extract(docx_blob(make_docx(build)), options)

        assert result.html == "<p>Keep this</p>"
        assert "Remove before signing" in result.text

    @pytest.mark.asyncio
    async def test_unrecognised_style_is_a_warning(self, make_docx):
        def build(doc):
            doc.styles.add_style("Clause Note", WD_STYLE_TYPE.PARAGRAPH)
            doc.add_paragraph("See schedule A", style="Clause Note")
            doc.add_paragraph("Again", style="Clause Note")

        result = await DOCXExtractor().extract(
            docx_blob(make_docx(build)), DocxOptions(include_style_info=True)
        )

        warnings = [m for m in result.messages if m.type == "warning"]
        assert len(warnings) == 1
        assert "Unrecognised paragraph style" in warnings[0].message
        assert "Clause Note" in warnings[0].message
        assert "<p>See schedule A</p>" in result.html
        # Warnings also trip the image heuristic
        assert result.metadata.has_images is True

    @pytest.mark.asyncio
    async def test_bad_style_rule_is_ignored_with_warning(self, make_docx):
        options = DocxOptions(include_style_info=True, style_map=["this is not a rule"])
        result = await DOCXExtractor().extract(docx_blob(make_docx(lease)), options)

        warnings = [m for m in result.messages if m.type == "warning"]
        assert len(warnings) == 1
        assert "this is not a rule" in warnings[0].message
        assert result.html.startswith("<h1>Lease Agreement</h1>")

    @pytest.mark.asyncio
    async def test_html_failure_raises_parse_error(self, make_docx, monkeypatch):
        def broken(fileobj, **kwargs):
            raise KeyError("word/document.xml")

        monkeypatch.setattr(mammoth, "convert_to_html", broken)

        with pytest.raises(ParseError, match="Failed to convert DOCX to HTML"):
            await DOCXExtractor().extract(
                docx_blob(make_docx(lease)), DocxOptions(include_style_info=True)
            )

    @pytest.mark.asyncio
    async def test_embedded_image_reported(self, make_docx, make_image):
        import io

        png = make_image()

        def build(doc):
            doc.add_paragraph("Signature:")
            doc.add_picture(io.BytesIO(png))

        result = await DOCXExtractor().extract(docx_blob(make_docx(build)))

        assert result.metadata.has_images is True
        assert any(m.type == "info" and "image" in m.message for m in result.messages)

    @pytest.mark.asyncio
    async def test_corrupt_docx_raises_parse_error(self):
        with pytest.raises(ParseError, match="DOCX"):
            await DOCXExtractor().extract(docx_blob(b"PK\x03\x04 definitely not a docx"))


class TestDOCXInfo:

    @pytest.mark.asyncio
    async def test_counts(self, make_docx):
        data = make_docx(lease)
        info = await DOCXExtractor().get_info(docx_blob(data))

        assert info.word_count == 9
        assert info.paragraph_count == 3
        assert info.has_images is False
        assert info.has_warnings is False
        assert info.file_size == len(data)

    @pytest.mark.asyncio
    async def test_warnings_are_flagged(self, make_docx):
        def build(doc):
            doc.styles.add_style("Clause Note", WD_STYLE_TYPE.PARAGRAPH)
            doc.add_paragraph("See schedule A", style="Clause Note")

        info = await DOCXExtractor().get_info(docx_blob(make_docx(build)))

        assert info.has_warnings is True
        assert any("Clause Note" in m.message for m in info.messages)

    @pytest.mark.asyncio
    async def test_corrupt_docx(self):
        with pytest.raises(ParseError):
            await DOCXExtractor().get_info(docx_blob(b"not a zip"))
