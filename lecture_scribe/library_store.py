"""
In-memory library of transcription records.

The store owns the ordered record list (newest first), the active-record
pointer and the selection set used for batch merge/delete. All mutation goes
through its methods and happens under a single lock, so every operation is
atomic from the caller's point of view.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .errors import InvalidOperationError, RecordNotFoundError, VersionConflictError
from .models import TranscriptDraft, TranscriptionRecord

logger = logging.getLogger(__name__)

MERGE_SEPARATOR = "\n\n" + "=" * 40 + "\n\n"
MERGE_TITLE_JOINER = " + "


def _new_record_id() -> str:
    return f"trans-{uuid.uuid4().hex}"


class LibraryStore:
    """Ordered collection of TranscriptionRecord with a two-slot notes history per record."""

    def __init__(
        self,
        id_factory: Callable[[], str] = _new_record_id,
        clock: Callable[[], datetime] = datetime.now
    ):
        self._records: List[TranscriptionRecord] = []
        self._issued_ids: set[str] = set()
        self._active_id: Optional[str] = None
        # dict keeps selection order for merge
        self._selection: Dict[str, None] = {}
        self._id_factory = id_factory
        self._clock = clock
        self._lock = threading.RLock()

    # Read side

    @property
    def records(self) -> List[TranscriptionRecord]:
        """Snapshot of the library, newest first."""
        with self._lock:
            return list(self._records)

    @property
    def active_record(self) -> Optional[TranscriptionRecord]:
        with self._lock:
            if self._active_id is None:
                return None
            return self._find(self._active_id)

    @property
    def active_id(self) -> Optional[str]:
        with self._lock:
            return self._active_id

    @property
    def selection(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._selection)

    @property
    def selection_order(self) -> List[str]:
        """Selected ids in the order they were selected."""
        with self._lock:
            return list(self._selection)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return self._find(record_id) is not None

    def find(self, record_id: str) -> Optional[TranscriptionRecord]:
        with self._lock:
            return self._find(record_id)

    def get(self, record_id: str) -> TranscriptionRecord:
        """
        Look up a record by id.

        Raises:
            RecordNotFoundError: If the id is not in the library
        """
        with self._lock:
            record = self._find(record_id)
            if record is None:
                raise RecordNotFoundError(record_id, operation="get")
            return record

    # Mutations

    def create(self, transcript: TranscriptDraft, course_name: str) -> TranscriptionRecord:
        """
        Add a freshly transcribed record at the front of the library and make it active.

        Args:
            transcript: Successful gateway result
            course_name: Course selected when the transcription was requested

        Returns:
            TranscriptionRecord: The new record, with no notes yet
        """
        with self._lock:
            record = TranscriptionRecord(
                id=self._allocate_id(),
                title=transcript.title,
                content=transcript.content,
                course_name=course_name,
                timestamp=self._clock(),
            )
            self._records.insert(0, record)
            self._active_id = record.id

        logger.info(f"Created record {record.id} '{record.title}' ({record.course_name})")
        return record

    def regenerate_notes(
        self,
        record_id: str,
        generated_notes: str,
        expected_version: Optional[int] = None
    ) -> TranscriptionRecord:
        """
        Install a newly generated notes document as the latest version.

        The current latest notes and version move into the previous slot and
        the version counter goes up by one. The updated record keeps its
        position in the library.

        Args:
            record_id: Record to update
            generated_notes: Notes text from the notes gateway
            expected_version: If given, the latest_version the caller read
                before generating; the update is refused if it has moved

        Returns:
            TranscriptionRecord: The updated record

        Raises:
            RecordNotFoundError: If the id is not in the library
            VersionConflictError: If expected_version no longer matches
        """
        with self._lock:
            index = self._index_of(record_id)
            if index is None:
                raise RecordNotFoundError(record_id, operation="regenerate_notes")

            current = self._records[index]
            if expected_version is not None and current.latest_version != expected_version:
                raise VersionConflictError(record_id, expected_version, current.latest_version)

            updated = current.with_new_notes(generated_notes)
            self._records[index] = updated

        logger.info(f"Record {record_id} notes updated to v{updated.latest_version}")
        return updated

    def delete_many(self, record_ids: Iterable[str]) -> List[str]:
        """
        Remove every record whose id is in ``record_ids``.

        Unknown ids are ignored. The active pointer is cleared if it pointed at
        a removed record, and the selection is cleared.

        Returns:
            List of ids that were actually removed
        """
        doomed = set(record_ids)
        with self._lock:
            removed = [r.id for r in self._records if r.id in doomed]
            if removed:
                self._records = [r for r in self._records if r.id not in doomed]
            if self._active_id in doomed:
                self._active_id = None
            self._selection.clear()

        if removed:
            logger.info(f"Deleted {len(removed)} record(s): {', '.join(removed)}")
        return removed

    def merge(self, ordered_ids: Sequence[str]) -> TranscriptionRecord:
        """
        Combine several records into a new one, in the order given.

        The merged content is each source's title followed by its content,
        joined with MERGE_SEPARATOR. Course comes from the first source. The
        sources stay in the library.

        Raises:
            InvalidOperationError: Fewer than two ids, or an id that does not resolve
        """
        ordered_ids = list(ordered_ids)
        with self._lock:
            if len(ordered_ids) < 2:
                raise InvalidOperationError(
                    f"Merge needs at least 2 records, got {len(ordered_ids)}",
                    user_message="Select at least two transcripts to merge."
                )
            if len(set(ordered_ids)) != len(ordered_ids):
                raise InvalidOperationError(
                    "Merge ids must be distinct",
                    user_message="Each transcript can only be merged once."
                )

            sources = []
            for record_id in ordered_ids:
                record = self._find(record_id)
                if record is None:
                    raise InvalidOperationError(
                        f"Cannot merge missing record {record_id}",
                        user_message="One of the selected transcripts no longer exists."
                    )
                sources.append(record)

            merged = TranscriptionRecord(
                id=self._allocate_id(),
                title=MERGE_TITLE_JOINER.join(r.title for r in sources),
                content=MERGE_SEPARATOR.join(f"{r.title}\n\n{r.content}" for r in sources),
                course_name=sources[0].course_name,
                timestamp=self._clock(),
            )
            self._records.insert(0, merged)
            self._active_id = merged.id
            self._selection.clear()

        logger.info(f"Merged {len(sources)} records into {merged.id}")
        return merged

    def select_toggle(self, record_id: str) -> frozenset[str]:
        """Add ``record_id`` to the selection if absent, remove it if present."""
        with self._lock:
            if record_id in self._selection:
                del self._selection[record_id]
            else:
                self._selection[record_id] = None
            return frozenset(self._selection)

    def clear_selection(self) -> None:
        with self._lock:
            self._selection.clear()

    def set_active(self, record_id: str) -> TranscriptionRecord:
        """Point the active record at ``record_id``."""
        with self._lock:
            record = self._find(record_id)
            if record is None:
                raise RecordNotFoundError(record_id, operation="set_active")
            self._active_id = record_id
            return record

    def clear_active(self) -> None:
        with self._lock:
            self._active_id = None

    # Internals

    def _allocate_id(self) -> str:
        record_id = self._id_factory()
        while record_id in self._issued_ids:
            record_id = self._id_factory()
        self._issued_ids.add(record_id)
        return record_id

    def _index_of(self, record_id: object) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None

    def _find(self, record_id: object) -> Optional[TranscriptionRecord]:
        index = self._index_of(record_id)
        return None if index is None else self._records[index]
