"""Aggregate statistics over a batch of extraction results."""

from collections import Counter

from models.extraction import ExtractionSummary, UnifiedExtractionResult


def get_extraction_summary(results: list[UnifiedExtractionResult]) -> ExtractionSummary:
    total = len(results)
    successful = sum(1 for r in results if r.success)
    total_processing_time = sum(r.processing_time for r in results)

    return ExtractionSummary(
        total=total,
        successful=successful,
        failed=total - successful,
        success_rate=(successful / total) * 100 if total else 0.0,
        by_type=dict(Counter(r.file_type.value for r in results)),
        by_method=dict(Counter(r.extraction_method.value for r in results)),
        total_processing_time=total_processing_time,
        average_processing_time=total_processing_time / total if total else 0.0,
        total_text_length=sum(len(r.text) for r in results if r.success),
    )
