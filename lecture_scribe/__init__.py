"""Lecture Scribe - Lecture transcription with versioned AI study notes."""

__version__ = "0.1.0"

from .errors import (
    ProcessingError,
    RecordNotFoundError,
    InvalidOperationError,
    VersionConflictError,
    GatewayError
)
from .library_store import LibraryStore, MERGE_SEPARATOR
from .models import (
    EncodedFile,
    TranscriptDraft,
    TranscriptionRecord,
    RecordView
)

__all__ = [
    "LibraryStore",
    "MERGE_SEPARATOR",
    "EncodedFile",
    "TranscriptDraft",
    "TranscriptionRecord",
    "RecordView",
    "ProcessingError",
    "RecordNotFoundError",
    "InvalidOperationError",
    "VersionConflictError",
    "GatewayError"
]
