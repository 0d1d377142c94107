import logging
import re
from typing import Literal

from pydantic import BaseModel

from .errors import InvalidOperationError
from .models import RecordView, TranscriptionRecord

logger = logging.getLogger(__name__)

ExportFormat = Literal["txt", "doc"]

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\r\n]+')


class ExportDocument(BaseModel):
    """A downloadable rendering of one record view."""
    filename: str
    media_type: str
    body: str


def export_filename(title: str, view: RecordView, fmt: str) -> str:
    safe_title = _UNSAFE_FILENAME_CHARS.sub("_", title).strip() or "transcript"
    return f"{safe_title}_{view.value}.{fmt}"


def export_record(record: TranscriptionRecord, view: RecordView, fmt: ExportFormat = "txt") -> ExportDocument:
    """
    Render the transcript or one of the notes slots as a plain UTF-8 document.

    Both formats carry the same plain text; ``doc`` only changes the extension
    so word processors open it directly.

    Raises:
        InvalidOperationError: If the format is unknown or the requested notes slot is empty
    """
    if fmt not in ("txt", "doc"):
        raise InvalidOperationError(f"Unsupported export format: {fmt}")

    body = record.body_for(view)
    if body is None:
        raise InvalidOperationError(
            f"Record {record.id} has no {view.value.replace('_', ' ')}",
            user_message="There are no notes to export for this view yet."
        )

    filename = export_filename(record.title, view, fmt)
    logger.info(f"Exporting {record.id} as {filename}")
    return ExportDocument(filename=filename, media_type="text/plain; charset=utf-8", body=body)
