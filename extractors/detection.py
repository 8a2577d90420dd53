"""Detect the format of an uploaded file and check it against size limits."""

from models.extraction import DocumentFormat, FileBlob, FileValidation

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# File extension to format mapping
EXTENSION_MAP: dict[str, DocumentFormat] = {
    ".pdf": DocumentFormat.PDF,
    ".docx": DocumentFormat.DOCX,
    ".jpg": DocumentFormat.IMAGE,
    ".jpeg": DocumentFormat.IMAGE,
    ".png": DocumentFormat.IMAGE,
    ".gif": DocumentFormat.IMAGE,
    ".bmp": DocumentFormat.IMAGE,
    ".tiff": DocumentFormat.IMAGE,
    ".tif": DocumentFormat.IMAGE,
    ".webp": DocumentFormat.IMAGE,
}

MIME_MAP: dict[str, DocumentFormat] = {
    "application/pdf": DocumentFormat.PDF,
    DOCX_MIME_TYPE: DocumentFormat.DOCX,
    "image/jpeg": DocumentFormat.IMAGE,
    "image/jpg": DocumentFormat.IMAGE,
    "image/png": DocumentFormat.IMAGE,
    "image/gif": DocumentFormat.IMAGE,
    "image/bmp": DocumentFormat.IMAGE,
    "image/tiff": DocumentFormat.IMAGE,
    "image/webp": DocumentFormat.IMAGE,
}

MAX_FILE_SIZES: dict[DocumentFormat, int] = {
    DocumentFormat.PDF: 50 * 1024 * 1024,
    DocumentFormat.DOCX: 25 * 1024 * 1024,
    DocumentFormat.IMAGE: 10 * 1024 * 1024,
}

# PDF and DOCX are checked before images so that a match on either wins
_PRECEDENCE = (DocumentFormat.PDF, DocumentFormat.DOCX, DocumentFormat.IMAGE)


def detect_format(file: FileBlob) -> DocumentFormat:
    """
    Classify a file by its name suffix or declared MIME type.

    Either signal is enough on its own, so a mislabeled MIME type with a
    correct suffix (or the reverse) still classifies correctly.
    """
    name = file.name.lower()
    mime_type = (file.content_type or "").split(";")[0].strip().lower()

    by_mime = MIME_MAP.get(mime_type)
    by_suffix = next(
        (fmt for ext, fmt in EXTENSION_MAP.items() if name.endswith(ext)),
        None,
    )

    for fmt in _PRECEDENCE:
        if fmt in (by_mime, by_suffix):
            return fmt
    return DocumentFormat.UNSUPPORTED


def validate_file(file: FileBlob) -> FileValidation:
    """Check that a file has a supported format and fits its size limit."""
    file_type = detect_format(file)

    if file_type == DocumentFormat.UNSUPPORTED:
        return FileValidation(
            is_valid=False,
            file_type=file_type,
            reason="Unsupported file format",
        )

    max_size = MAX_FILE_SIZES[file_type]
    if file.size > max_size:
        return FileValidation(
            is_valid=False,
            file_type=file_type,
            reason=(
                f"File size exceeds limit ({file.size:,} bytes > "
                f"{max_size // (1024 * 1024)}MB for {file_type.value})"
            ),
            max_size=max_size,
        )

    return FileValidation(is_valid=True, file_type=file_type)
