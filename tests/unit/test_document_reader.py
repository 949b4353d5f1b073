"""
Unit tests for the document-to-text contract
"""

import pytest

from carrier_screening.extraction.document_reader import (
    PlainTextDocumentReader,
    normalize_declared_type,
)


@pytest.mark.parametrize("declared, expected", [
    ("pdf", "pdf"),
    (".PDF", "pdf"),
    ("application/pdf", "pdf"),
    ("text/plain", "txt"),
    ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", "docx"),
    ("", ""),
])
def test_normalize_declared_type(declared, expected):
    assert normalize_declared_type(declared) == expected


def test_text_document_decoded():
    document = PlainTextDocumentReader().read("G2P2, 30yo".encode("utf-8"), "text/plain")

    assert document.success is True
    assert document.text == "G2P2, 30yo"
    assert document.error is None


def test_unsupported_type():
    document = PlainTextDocumentReader().read(b"MZ", "exe")

    assert document.success is False
    assert document.error == "Unsupported document type: exe"


def test_content_must_be_bytes():
    document = PlainTextDocumentReader().read("G2P2", "txt")

    assert document.success is False
    assert document.error == "Document content must be bytes"


def test_pdf_needs_converter():
    document = PlainTextDocumentReader().read(b"%PDF-1.7", "pdf")

    assert document.success is False
    assert document.error == "No converter configured for pdf documents"


def test_pdf_with_converter():
    reader = PlainTextDocumentReader(converters={"pdf": lambda content: "G3P3, 35yo"})

    document = reader.read(b"%PDF-1.7", "application/pdf")

    assert document.success is True
    assert document.text == "G3P3, 35yo"


def test_converter_failure_reported():
    def broken(content):
        raise ValueError("encrypted file")

    document = PlainTextDocumentReader(converters={"docx": broken}).read(b"PK", "docx")

    assert document.success is False
    assert document.error == "Could not read docx document: encrypted file"


def test_blank_document_rejected():
    document = PlainTextDocumentReader().read(b"   \n  ", "txt")

    assert document.success is False
    assert document.error == "Document contains no readable text"
