from __future__ import annotations

import pytest

from summarize_document.documents import (
    MAX_DOCUMENT_BYTES,
    DocumentMetadata,
    check_document,
    estimated_processing_seconds,
    extension_for,
    extract_text,
    load_document,
)
from summarize_document.errors import DocumentTooLargeError, UnsupportedDocumentError, ValidationError


def test_extension_and_mime_detection():
    assert extension_for("Report.PDF") == "pdf"
    assert extension_for("archive.tar.gz") == "gz"
    assert extension_for("README") == ""
    assert extension_for(".bashrc") == ""
    photo = DocumentMetadata.for_bytes("photo.JPG", b"\xff\xd8")
    assert photo.is_image
    assert photo.resolved_mime_type == "image/jpeg"
    assert photo.can_send_natively


def test_native_formats():
    assert DocumentMetadata.for_bytes("a.md", b"x").can_send_natively
    assert not DocumentMetadata.for_bytes("a.docx", b"x").can_send_natively
    assert not DocumentMetadata.for_bytes("a.rtf", b"x").can_send_natively


def test_size_cap_is_inclusive():
    check_document(DocumentMetadata(name="edge.pdf", size_bytes=MAX_DOCUMENT_BYTES, extension="pdf"))
    with pytest.raises(DocumentTooLargeError):
        check_document(DocumentMetadata(name="big.pdf", size_bytes=MAX_DOCUMENT_BYTES + 1, extension="pdf"))


def test_unsupported_extension():
    with pytest.raises(UnsupportedDocumentError):
        check_document(DocumentMetadata.for_bytes("noext", b"x"))


def test_load_document_reads_bytes(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"hello world")
    metadata, data = load_document(path)
    assert data == b"hello world"
    assert metadata.size_bytes == 11
    assert metadata.mime_type == "text/plain"
    assert metadata.reference == path.resolve().as_uri()
    with pytest.raises(FileNotFoundError):
        load_document(tmp_path / "missing.pdf")


def test_extract_text_decodes_and_rejects_empty():
    rtf = DocumentMetadata.for_bytes("a.rtf", b"x")
    assert extract_text(rtf, "café".encode("utf-8")) == "café"
    with pytest.raises(ValidationError):
        extract_text(rtf, b"")
    with pytest.raises(ValidationError):
        extract_text(rtf, b"   \n")


def test_processing_estimate_buckets():
    assert estimated_processing_seconds(DocumentMetadata(name="a.pdf", size_bytes=1024, extension="pdf")) == 10
    assert estimated_processing_seconds(DocumentMetadata(name="a.pdf", size_bytes=2 * 1024 * 1024, extension="pdf")) == 30
    assert estimated_processing_seconds(DocumentMetadata(name="a.pdf", size_bytes=8 * 1024 * 1024, extension="pdf")) == 60


def test_metadata_round_trip():
    metadata = DocumentMetadata.for_bytes("a.csv", b"1,2")
    assert DocumentMetadata.from_dict(metadata.to_dict()) == metadata
    assert metadata.size_display == "3 B"
