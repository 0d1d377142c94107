from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class EncodedFile(BaseModel):
    """An uploaded file held in memory as base64 text."""
    model_config = ConfigDict(frozen=True)

    name: str
    data: str  # base64, no data: prefix
    mime_type: str
    preview: Optional[str] = None  # data: URL for images and PDFs

    @property
    def size_bytes(self) -> int:
        """Decoded payload size."""
        padding = self.data.count("=", -2) if self.data else 0
        return len(self.data) * 3 // 4 - padding


class TranscriptDraft(BaseModel):
    """What the transcription backend returns before it becomes a record."""
    title: str
    content: str


class RecordView(str, Enum):
    """Which body of a record is being looked at or exported."""
    TRANSCRIPT = "transcript"
    LATEST_NOTES = "latest_notes"
    PREVIOUS_NOTES = "previous_notes"


class TranscriptionRecord(BaseModel):
    """
    One transcribed lecture with a two-slot notes history.

    Instances are frozen; the library store replaces a record wholesale when
    its notes change, so the four notes fields always move together.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    course_name: str
    timestamp: datetime = Field(default_factory=datetime.now)
    notes_latest: Optional[str] = None
    notes_previous: Optional[str] = None
    latest_version: int = Field(default=0, ge=0)
    previous_version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_versions(self) -> "TranscriptionRecord":
        if self.previous_version > self.latest_version:
            raise ValueError(
                f"previous_version ({self.previous_version}) cannot exceed "
                f"latest_version ({self.latest_version})"
            )
        return self

    @property
    def has_notes(self) -> bool:
        return self.latest_version > 0

    @property
    def has_previous_notes(self) -> bool:
        return self.notes_previous is not None

    def with_new_notes(self, notes: str) -> "TranscriptionRecord":
        """Return a copy with ``notes`` as the latest version and the old latest shifted down."""
        return self.model_copy(update={
            "notes_previous": self.notes_latest,
            "previous_version": self.latest_version,
            "notes_latest": notes,
            "latest_version": self.latest_version + 1,
        })

    def body_for(self, view: RecordView) -> Optional[str]:
        """Text shown for a given view, or None when that slot is empty."""
        if view == RecordView.TRANSCRIPT:
            return self.content
        if view == RecordView.LATEST_NOTES:
            return self.notes_latest
        return self.notes_previous

    def get_status_display(self) -> str:
        """Get user-friendly notes status."""
        if not self.has_notes:
            return "No study notes yet"
        if self.has_previous_notes:
            return f"Notes v{self.latest_version} (previous v{self.previous_version} kept)"
        return f"Notes v{self.latest_version}"
