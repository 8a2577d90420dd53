"""CLI entry point for trying the text extraction pipeline on local files."""

import argparse
import asyncio
import json
import logging
import sys

from extractors.errors import ExtractionError
from extractors.factory import ExtractorFactory
from extractors.ocr_extractor import OCRConfig
from models.extraction import DocumentFormat, FileBlob, UnifiedExtractionResult
from models.options import DocxOptions, ExtractionOptions, OcrOptions, PdfOptions


def main():
    parser = argparse.ArgumentParser(
        description="Extract text from PDF, DOCX and image documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract one contract
  python main.py contract.pdf

  # Several files, retrying failed PDF/DOCX parsing with OCR
  python main.py lease.docx scan.png annex.pdf --fallback-ocr

  # Only pages 1 and 3, with PDF metadata
  python main.py contract.pdf --pages 1 3 --metadata

  # French OCR on a preprocessed scan, digits only
  python main.py scan.jpg --lang fra --preprocess --whitelist 0123456789

  # Save all results as JSON
  python main.py *.pdf -o results.json

  # Page count, text layer and metadata only (PDF/DOCX)
  python main.py contract.pdf lease.docx --info

  # Installed OCR languages
  python main.py --list-languages
        """,
    )

    parser.add_argument("files", nargs="*", help="Paths to the document files")
    parser.add_argument("--fallback-ocr", action="store_true",
                        help="Retry with OCR when PDF/DOCX parsing fails")
    parser.add_argument("--lang", default="eng",
                        help="Tesseract language(s), e.g. eng or fra+ara (default: eng)")
    parser.add_argument("--whitelist", help="Only recognize these characters")
    parser.add_argument("--blacklist", help="Never recognize these characters")
    parser.add_argument("--preprocess", action="store_true",
                        help="Grayscale and boost contrast before OCR")
    parser.add_argument("--tesseract-cmd", help="Path to the tesseract binary")
    parser.add_argument("--pages", type=int, nargs="+",
                        help="PDF pages to extract (1-based)")
    parser.add_argument("--metadata", action="store_true",
                        help="Include PDF metadata")
    parser.add_argument("--style-info", action="store_true",
                        help="Render DOCX to HTML as well")
    parser.add_argument("--ignore-empty", action="store_true",
                        help="Drop empty DOCX paragraphs")
    parser.add_argument("--info", action="store_true",
                        help="Inspect PDF/DOCX files without extracting text")
    parser.add_argument("--list-languages", action="store_true",
                        help="List the installed Tesseract languages and exit")
    parser.add_argument("--output", "-o", help="Save results to JSON file")
    parser.add_argument("--text-only", action="store_true",
                        help="Output only the extracted text")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    ocr_config = OCRConfig(tesseract_cmd=args.tesseract_cmd)

    if args.list_languages:
        asyncio.run(_list_languages(ocr_config))
        return
    if not args.files:
        parser.error("at least one file is required")

    options = ExtractionOptions(
        pdf_options=PdfOptions(page_numbers=args.pages, include_metadata=args.metadata),
        docx_options=DocxOptions(
            include_style_info=args.style_info,
            ignore_empty_paragraphs=args.ignore_empty,
        ),
        ocr_options=OcrOptions(
            language=args.lang,
            whitelist=args.whitelist,
            blacklist=args.blacklist,
            logger=None if args.text_only else _print_progress,
        ),
        fallback_to_ocr=args.fallback_ocr,
        preprocess_image=args.preprocess,
    )

    try:
        blobs = [FileBlob.from_path(path) for path in args.files]
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.info:
        asyncio.run(_print_info(blobs))
        return

    results = asyncio.run(_run(blobs, options, ocr_config))

    for result in results:
        if args.text_only:
            print(result.text)
        else:
            _print_result(result)

    summary = ExtractorFactory.get_extraction_summary(results)
    if not args.text_only:
        print(f"\n{'='*60}")
        print(f"📊 Summary: {summary.successful}/{summary.total} succeeded "
              f"({summary.success_rate:.0f}%), {summary.total_text_length:,} characters, "
              f"{summary.total_processing_time:.0f}ms")
        print(f"{'='*60}")

    _save_output(args.output, {
        "results": [r.model_dump(mode="json") for r in results],
        "summary": summary.model_dump(mode="json"),
    })

    if summary.failed:
        sys.exit(1)


async def _run(
    blobs: list[FileBlob], options: ExtractionOptions, ocr_config: OCRConfig
) -> list[UnifiedExtractionResult]:
    async with ExtractorFactory(ocr_config=ocr_config) as factory:
        for blob in blobs:
            validation = factory.validate_file(blob)
            if not validation.is_valid:
                print(f"⚠️  {blob.name}: {validation.reason}", file=sys.stderr)
        return await factory.extract_text_from_multiple_files(blobs, options)


async def _list_languages(ocr_config: OCRConfig):
    async with ExtractorFactory(ocr_config=ocr_config) as factory:
        try:
            languages = await factory.get_supported_languages()
        except ExtractionError as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            sys.exit(1)
    print(f"🌐 {len(languages)} installed languages: {', '.join(languages)}")


async def _print_info(blobs: list[FileBlob]):
    async with ExtractorFactory() as factory:
        for blob in blobs:
            file_type = factory.detect_format(blob)
            try:
                if file_type == DocumentFormat.PDF:
                    info = await factory.get_pdf_info(blob)
                    print(f"📄 {blob.name}: {info.page_count} pages, "
                          f"{'text layer' if info.has_text else 'no text layer (scanned?)'}")
                    if info.metadata and info.metadata.title:
                        print(f"   Title: {info.metadata.title}")
                elif file_type == DocumentFormat.DOCX:
                    info = await factory.get_docx_info(blob)
                    print(f"📄 {blob.name}: {info.word_count:,} words, "
                          f"{info.paragraph_count:,} paragraphs"
                          f"{', has images' if info.has_images else ''}"
                          f"{', has warnings' if info.has_warnings else ''}")
                else:
                    print(f"⏭️  {blob.name}: no inspection available for {file_type.value}")
            except ExtractionError as e:
                print(f"❌ {blob.name}: {e}")


def _print_progress(stage: str, progress: float):
    print(f"\r   🔎 OCR {stage:<20} {progress * 100:5.1f}%", end="", flush=True)
    if progress >= 1.0:
        print()


def _print_result(result: UnifiedExtractionResult):
    print(f"\n{'='*60}")
    print(f"📄 {result.file_name}")
    print(f"{'='*60}")
    print(f"   Type: {result.file_type.value} • Method: {result.extraction_method.value} "
          f"• {result.processing_time:.0f}ms • {result.file_size:,} bytes")

    if result.success:
        print(f"   ✅ Extracted {len(result.text):,} characters")
    else:
        print(f"   ❌ {result.error}")

    for w in result.warnings:
        print(f"   ⚠️  {w}")

    if result.ocr_result:
        print(f"   Confidence: {result.ocr_result.confidence:.1f}%")
    if result.pdf_result:
        print(f"   Pages: {result.pdf_result.page_count}")
        if result.pdf_result.metadata and result.pdf_result.metadata.title:
            print(f"   Title: {result.pdf_result.metadata.title}")
    if result.docx_result:
        meta = result.docx_result.metadata
        print(f"   Words: {meta.word_count:,} • Paragraphs: {meta.paragraph_count:,}")

    if result.text:
        _print_preview("Extracted Text", result.text)


def _print_preview(title: str, text: str, max_chars: int = 1500):
    """Print a text preview."""
    print(f"\n📝 {title} (first {max_chars} chars):")
    print(text[:max_chars])
    if len(text) > max_chars:
        print(f"\n... ({len(text) - max_chars:,} more characters)")


def _save_output(output_path: str, data: dict):
    """Save result to JSON file if path is provided."""
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        print(f"\n💾 Saved to: {output_path}")


if __name__ == "__main__":
    main()
