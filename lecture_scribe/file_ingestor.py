import base64
import logging
import mimetypes
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .errors import ErrorCategory, InvalidOperationError
from .models import EncodedFile

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Reference uploads accepted next to the recordings: images, PDFs, plain text and Word documents
REFERENCE_MIME_TYPES = (
    "application/pdf",
    "text/plain",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
REFERENCE_EXTENSIONS = (".pdf", ".txt", ".docx")


class FileIngestor:
    """Turns uploaded files into EncodedFile records ready for the transcription backend."""

    def __init__(self, max_file_size_mb: float = 200.0):
        """
        Args:
            max_file_size_mb: Uploads above this size are rejected
        """
        self.max_file_size_mb = max_file_size_mb

    def guess_mime_type(self, name: str) -> str:
        """Guess a media type from the file name."""
        mime_type, _ = mimetypes.guess_type(name)
        return mime_type or DEFAULT_MIME_TYPE

    def ingest(self, name: str, payload: bytes, mime_type: Optional[str] = None) -> EncodedFile:
        """
        Encode one file.

        Args:
            name: Original file name
            payload: Raw file bytes
            mime_type: Media type reported by the uploader, guessed from the name if empty

        Returns:
            EncodedFile with base64 data and, for images and PDFs, a data: URL preview
        """
        size_mb = len(payload) / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            raise InvalidOperationError(
                f"{name} is {size_mb:.1f}MB, limit is {self.max_file_size_mb:.0f}MB",
                category=ErrorCategory.USER_INPUT,
                user_message=f"{name} is too large to upload ({size_mb:.1f}MB)."
            )

        if not mime_type or mime_type == DEFAULT_MIME_TYPE:
            mime_type = self.guess_mime_type(name)
        data = base64.b64encode(payload).decode("ascii")
        preview = None
        if mime_type.startswith("image") or "pdf" in mime_type:
            preview = f"data:{mime_type};base64,{data}"

        logger.debug(f"Ingested {name} ({mime_type}, {len(payload)} bytes)")
        return EncodedFile(name=name, data=data, mime_type=mime_type, preview=preview)

    def ingest_path(self, path: Path) -> EncodedFile:
        """Read a file from disk and encode it."""
        path = Path(path)
        return self.ingest(path.name, path.read_bytes())

    def ingest_many(self, files: Iterable[Tuple[str, bytes, Optional[str]]]) -> List[EncodedFile]:
        """Encode several ``(name, payload, mime_type)`` tuples."""
        return [self.ingest(name, payload, mime_type) for name, payload, mime_type in files]

    def ingest_audio(self, name: str, payload: bytes, mime_type: Optional[str] = None) -> EncodedFile:
        """Encode a lecture recording; anything that is not audio/* is refused."""
        encoded = self.ingest(name, payload, mime_type)
        if not is_audio(encoded):
            raise InvalidOperationError(
                f"{name} is not an audio file ({encoded.mime_type})",
                category=ErrorCategory.USER_INPUT,
                user_message=f"{name} is not an audio recording."
            )
        return encoded

    def ingest_reference(self, name: str, payload: bytes, mime_type: Optional[str] = None) -> EncodedFile:
        """Encode a reference document (image, PDF, txt or docx)."""
        encoded = self.ingest(name, payload, mime_type)
        if not is_reference(encoded):
            raise InvalidOperationError(
                f"{name} is not a supported reference document ({encoded.mime_type})",
                category=ErrorCategory.USER_INPUT,
                user_message=f"{name} must be an image, PDF, TXT or DOCX file."
            )
        return encoded


def is_audio(encoded: EncodedFile) -> bool:
    return encoded.mime_type.startswith("audio/")


def is_reference(encoded: EncodedFile) -> bool:
    if encoded.mime_type.startswith("image/") or encoded.mime_type in REFERENCE_MIME_TYPES:
        return True
    return encoded.name.lower().endswith(REFERENCE_EXTENSIONS)
