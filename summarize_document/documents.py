"""Helpers for describing and loading documents selected for summarization."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import DocumentTooLargeError, UnsupportedDocumentError, ValidationError

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "bmp", "svg"})
SUPPORTED_EXTENSIONS = frozenset(
    {"txt", "md", "pdf", "doc", "docx", "rtf", "jpg", "jpeg", "png", "gif", "webp", "bmp", "json", "csv", "xml"}
)
# Formats the remote model accepts as inline bytes.
NATIVE_EXTENSIONS = frozenset({"pdf", "jpg", "jpeg", "png", "gif", "webp", "txt", "md", "json", "csv"})
TEXT_EXTENSIONS = frozenset({"txt", "md", "json", "csv", "xml", "rtf"})

_MIME_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "svg": "image/svg+xml",
    "txt": "text/plain",
    "md": "text/markdown",
    "json": "application/json",
    "csv": "text/csv",
    "xml": "application/xml",
    "rtf": "application/rtf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
_DEFAULT_MIME_TYPE = "application/octet-stream"


def extension_for(name: str) -> str:
    stem, dot, suffix = name.rpartition(".")
    return suffix.lower() if dot and stem else ""


def mime_type_for(extension: str) -> str:
    return _MIME_TYPES.get(extension.lower(), _DEFAULT_MIME_TYPE)


@dataclass(frozen=True)
class DocumentMetadata:
    """What the core needs to know about a selected file."""

    name: str
    size_bytes: int
    extension: str
    mime_type: Optional[str] = None
    path: Optional[str] = None
    selected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def resolved_mime_type(self) -> str:
        return self.mime_type or mime_type_for(self.extension)

    @property
    def is_pdf(self) -> bool:
        return self.extension == "pdf"

    @property
    def is_image(self) -> bool:
        return self.extension in IMAGE_EXTENSIONS

    @property
    def is_text(self) -> bool:
        return self.extension in {"txt", "md"}

    @property
    def is_word(self) -> bool:
        return self.extension in {"doc", "docx"}

    @property
    def can_send_natively(self) -> bool:
        return self.extension in NATIVE_EXTENSIONS

    @property
    def reference(self) -> str:
        """Opaque reference recorded on the first user message."""
        if self.path:
            return Path(self.path).expanduser().resolve().as_uri()
        return f"memory:///{self.name}"

    @property
    def size_display(self) -> str:
        size = self.size_bytes
        if size < 1024:
            return f"{size} B"
        if size < 1024 * 1024:
            return f"{size / 1024:.2f} KB"
        if size < 1024 * 1024 * 1024:
            return f"{size / (1024 * 1024):.2f} MB"
        return f"{size / (1024 * 1024 * 1024):.2f} GB"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "sizeBytes": self.size_bytes,
            "extension": self.extension,
            "mimeType": self.mime_type,
            "selectedAt": self.selected_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentMetadata":
        return cls(
            name=str(data["name"]),
            size_bytes=int(data["sizeBytes"]),
            extension=str(data["extension"]),
            mime_type=data.get("mimeType"),
            path=data.get("path"),
            selected_at=datetime.fromisoformat(str(data["selectedAt"])),
        )

    @classmethod
    def for_bytes(cls, name: str, data: bytes, mime_type: Optional[str] = None) -> "DocumentMetadata":
        extension = extension_for(name)
        return cls(
            name=name,
            size_bytes=len(data),
            extension=extension,
            mime_type=mime_type or mime_type_for(extension),
        )


def check_document(metadata: DocumentMetadata) -> None:
    """Reject documents we will not send to the remote model."""
    if metadata.size_bytes > MAX_DOCUMENT_BYTES:
        raise DocumentTooLargeError(
            f"{metadata.name} is {metadata.size_display}; the limit is 10MB."
        )
    if metadata.extension not in SUPPORTED_EXTENSIONS:
        label = metadata.extension or "no extension"
        raise UnsupportedDocumentError(f"Unsupported file type for {metadata.name} ({label}).")


def load_document(path: Path) -> Tuple[DocumentMetadata, bytes]:
    """Read ``path`` into memory after checking its size and type."""
    path = Path(path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Document not found: {path}")
    extension = extension_for(path.name)
    metadata = DocumentMetadata(
        name=path.name,
        size_bytes=path.stat().st_size,
        extension=extension,
        mime_type=mime_type_for(extension),
        path=str(path),
    )
    check_document(metadata)
    return metadata, path.read_bytes()


def resolve_document_bytes(metadata: DocumentMetadata, data: Optional[bytes]) -> Optional[bytes]:
    """Return the payload to transmit, reading ``metadata.path`` when no buffer was given."""
    if data is None and metadata.path:
        try:
            data = Path(metadata.path).expanduser().read_bytes()
        except OSError as exc:
            raise ValidationError(f"Unable to read {metadata.name}: {exc}") from exc
    if data is not None and len(data) > MAX_DOCUMENT_BYTES:
        raise DocumentTooLargeError(f"{metadata.name} holds {len(data)} bytes; the limit is 10MB.")
    return data


def extract_text(metadata: DocumentMetadata, data: Optional[bytes]) -> str:
    """Degraded path for formats the model cannot read natively.

    Text-like formats are decoded as UTF-8. Anything else yields a
    placeholder naming the file; real PDF/OCR/Word extraction is not done.
    """
    if not data:
        raise ValidationError("Unable to read file content. The file may be empty or corrupted.")
    if metadata.extension in TEXT_EXTENSIONS:
        text = data.decode("utf-8", errors="replace")
    else:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            text = f"Binary document file: {metadata.name}"
    if not text.strip():
        raise ValidationError("Unable to read file content. The file may be empty or corrupted.")
    return text


def estimated_processing_seconds(metadata: DocumentMetadata) -> int:
    """Caller-facing estimate only; nothing enforces it."""
    size_mb = metadata.size_bytes / (1024 * 1024)
    if size_mb < 1:
        return 10
    if size_mb < 5:
        return 30
    return 60
