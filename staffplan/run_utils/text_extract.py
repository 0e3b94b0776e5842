import io
from typing import Optional

import structlog
from docx import Document
from pypdf import PdfReader

from staffplan.utils.errors import EmptyFileError, ExtractionFailed, UnsupportedFileType

logger = structlog.get_logger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

_EXTENSION_MIME = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".txt": TEXT_MIME,
}


def resolve_mime_type(mime_type: Optional[str], filename: Optional[str] = None) -> Optional[str]:
    """Fall back to the file extension when the client sent no useful MIME type."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime and mime != "application/octet-stream":
        return mime
    if filename:
        lowered = filename.lower()
        for ext, guessed in _EXTENSION_MIME.items():
            if lowered.endswith(ext):
                return guessed
    return mime or None


def _pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs)


def extract_text(data: bytes, mime_type: Optional[str], filename: Optional[str] = None) -> str:
    """Return the plain text of an uploaded PDF, DOCX or text document."""
    if not data:
        raise EmptyFileError()

    mime = resolve_mime_type(mime_type, filename)
    logger.info("processing_file", mime_type=mime, size=len(data), file_name=filename)

    if mime == PDF_MIME:
        label, parse = "PDF", _pdf_text
    elif mime == DOCX_MIME:
        label, parse = "Word document", _docx_text
    elif mime == TEXT_MIME:
        label, parse = "Text file", lambda b: b.decode("utf-8")
    else:
        raise UnsupportedFileType(mime)

    try:
        text = parse(data).strip()
    except Exception as e:
        logger.error("document_parse_failed", document=label, error=str(e))
        raise ExtractionFailed(f"{label} parsing failed: {e}") from e

    if not text:
        raise ExtractionFailed(f"Failed to extract text from {label}")

    logger.info("document_parsed", document=label, text_length=len(text))
    return text
