import io

import pytest
from docx import Document
from pypdf import PdfWriter

from staffplan.run_utils.text_extract import (
    DOCX_MIME,
    PDF_MIME,
    extract_text,
    resolve_mime_type,
)
from staffplan.utils.errors import EmptyFileError, ExtractionFailed, UnsupportedFileType


def docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def blank_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


def test_docx_paragraphs_are_joined():
    data = docx_bytes("C.5.1 Systems Engineering", "Provide 2 engineers.")
    assert extract_text(data, DOCX_MIME) == "C.5.1 Systems Engineering\nProvide 2 engineers."


def test_plain_text_is_decoded_and_trimmed():
    assert extract_text(b"  Scope of work\n", "text/plain; charset=utf-8") == "Scope of work"


def test_empty_buffer_is_rejected_before_parsing():
    with pytest.raises(EmptyFileError):
        extract_text(b"", PDF_MIME)


def test_pdf_without_text_fails_extraction():
    with pytest.raises(ExtractionFailed) as info:
        extract_text(blank_pdf_bytes(), PDF_MIME)
    assert "PDF" in str(info.value)


def test_corrupt_pdf_fails_extraction():
    with pytest.raises(ExtractionFailed):
        extract_text(b"this is not a pdf", PDF_MIME)


def test_unsupported_type():
    with pytest.raises(UnsupportedFileType) as info:
        extract_text(b"\x89PNG", "image/png")
    assert info.value.mime_type == "image/png"


def test_extension_decides_for_octet_stream():
    assert resolve_mime_type("application/octet-stream", "rfp.DOCX") == DOCX_MIME
    assert resolve_mime_type(None, "rfp.pdf") == PDF_MIME
    assert resolve_mime_type("application/pdf", "rfp.txt") == PDF_MIME
    assert resolve_mime_type(None, None) is None
