"""
Asynchronous coordinator between uploads, the AI gateways and the library.

Gateway calls are slow and blocking, so they run in the default executor and
the event loop stays free for other library operations. A record is only
created or updated once its gateway call has returned successfully; failed
calls leave the library exactly as it was.
"""

import asyncio
import logging
import weakref
from datetime import datetime
from typing import Callable, Optional, Sequence

from .config import AppConfig
from .course_catalog import CourseCatalog
from .errors import (
    ErrorCategory, ErrorContext, GatewayError, InvalidOperationError,
    ProcessingError, RetryConfig, error_recovery_manager, handle_processing_error
)
from .gateways import NotesGateway, TranscriptionGateway
from .library_store import LibraryStore
from .models import EncodedFile, TranscriptionRecord
from . import prompts

logger = logging.getLogger(__name__)


class StudyAssistant:
    """
    Runs transcription and notes generation and applies the results to a LibraryStore.
    """

    def __init__(
        self,
        store: LibraryStore,
        transcription_gateway: TranscriptionGateway,
        notes_gateway: NotesGateway,
        catalog: CourseCatalog,
        config: Optional[AppConfig] = None,
        today: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the assistant.

        Args:
            store: Library the results are applied to
            transcription_gateway: Backend producing transcripts from recordings
            notes_gateway: Backend producing study notes from transcripts
            catalog: Course list, used for the default course
            config: Application configuration (retry settings)
            today: Clock used for the default session title
        """
        self.store = store
        self.transcription_gateway = transcription_gateway
        self.notes_gateway = notes_gateway
        self.catalog = catalog
        self.config = config or AppConfig()
        self._today = today
        # entries disappear once no generation holds or awaits the lock
        self._record_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._in_flight: set[str] = set()

    def _retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.config.gemini.max_retries,
            base_delay=self.config.gemini.retry_delay
        )

    def default_session_title(self, course_name: Optional[str] = None) -> str:
        course_name = course_name or self.catalog.default_course
        return prompts.default_session_title(course_name, self._today().strftime("%m/%d"))

    def is_generating(self, record_id: str) -> bool:
        """Whether a notes generation for ``record_id`` is currently running."""
        return record_id in self._in_flight

    async def transcribe(
        self,
        audio_files: Sequence[EncodedFile],
        reference_files: Sequence[EncodedFile] = (),
        session_title: Optional[str] = None,
        course_name: Optional[str] = None
    ) -> TranscriptionRecord:
        """
        Transcribe recordings and add the result to the library.

        Args:
            audio_files: One or more encoded recordings
            reference_files: Slides, handouts or readings used for term correction
            session_title: Lecture title; defaults to "MM/DD <course> 課程紀錄"
            course_name: Course label; defaults to the first catalog course

        Returns:
            TranscriptionRecord: The newly created, now active, record

        Raises:
            InvalidOperationError: If no audio file was provided
            GatewayError: If the backend failed on every attempt
        """
        if not audio_files:
            raise InvalidOperationError(
                "At least one audio file is required",
                category=ErrorCategory.USER_INPUT,
                user_message="Please add a lecture recording before transcribing."
            )

        course_name = course_name or self.catalog.default_course
        if session_title is None:
            session_title = self.default_session_title(course_name)
        session_title = session_title.strip() or prompts.UNTITLED_SESSION

        context = ErrorContext(
            timestamp=datetime.now(),
            component="study_assistant",
            operation="transcribe",
            additional_data={"session_title": session_title, "course_name": course_name}
        )

        async def transcription_operation():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None,
                self.transcription_gateway.transcribe,
                list(audio_files),
                list(reference_files),
                session_title,
                course_name
            )

        try:
            draft = await error_recovery_manager.retry_with_backoff(
                transcription_operation,
                "transcription",
                self._retry_config(),
                context
            )
        except ProcessingError:
            raise
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise handle_processing_error(
                GatewayError(str(e), original_exception=e),
                "study_assistant", "transcribe"
            )

        return self.store.create(draft, course_name)

    async def generate_notes(self, record_id: Optional[str] = None) -> TranscriptionRecord:
        """
        Generate a new notes version for a record (the active one by default).

        Generations for the same record are serialized, and each one is applied
        against the version it started from, so every completed call advances
        the version by exactly one.

        Raises:
            InvalidOperationError: If no record id was given and nothing is active
            RecordNotFoundError: If the record is not (or no longer) in the library
            GatewayError: If the backend failed on every attempt
        """
        if record_id is None:
            active = self.store.active_record
            if active is None:
                raise InvalidOperationError(
                    "No active record to generate notes for",
                    user_message="Open a transcript first."
                )
            record_id = active.id

        async with self._lock_for(record_id):
            self._in_flight.add(record_id)
            try:
                return await self._generate_notes_locked(record_id)
            finally:
                self._in_flight.discard(record_id)

    def _lock_for(self, record_id: str) -> asyncio.Lock:
        # not bound to a local name, so a traceback kept in the error
        # history does not keep the lock alive
        lock = self._record_locks.get(record_id)
        if lock is None:
            lock = self._record_locks[record_id] = asyncio.Lock()
        return lock

    def active_lock_count(self) -> int:
        """Number of records with a notes generation running or queued."""
        return len(self._record_locks)

    async def _generate_notes_locked(self, record_id: str) -> TranscriptionRecord:
        record = self.store.get(record_id)
        started_from = record.latest_version

        context = ErrorContext(
            timestamp=datetime.now(),
            component="study_assistant",
            operation="generate_notes",
            record_id=record_id
        )

        async def notes_operation():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None,
                self.notes_gateway.generate_notes,
                record.content,
                record.title,
                record.course_name
            )

        try:
            notes = await error_recovery_manager.retry_with_backoff(
                notes_operation,
                "notes_generation",
                self._retry_config(),
                context
            )
        except ProcessingError:
            raise
        except Exception as e:
            logger.error(f"Notes generation failed for {record_id}: {e}")
            raise handle_processing_error(
                GatewayError(str(e), original_exception=e),
                "study_assistant", "generate_notes", record_id
            )

        return self.store.regenerate_notes(record_id, notes, expected_version=started_from)

    def merge_selected(self) -> TranscriptionRecord:
        """Merge the selected records in the order they were selected."""
        return self.store.merge(self.store.selection_order)

    def delete_selected(self) -> list[str]:
        """Delete every selected record."""
        return self.store.delete_many(self.store.selection_order)
