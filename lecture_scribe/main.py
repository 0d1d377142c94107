"""
FastAPI server for Lecture Scribe.

Exposes the transcript library over REST: uploading recordings for
transcription, generating versioned study notes, selecting, merging,
deleting and exporting records, and managing the course list.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from .assistant import StudyAssistant
from .config import config
from .course_catalog import CourseCatalog
from .errors import (
    GatewayError, InvalidOperationError, ProcessingError,
    RecordNotFoundError, VersionConflictError
)
from .exporter import ExportFormat, export_record
from .file_ingestor import FileIngestor
from .gateways import GeminiClient, GeminiNotesGateway, GeminiTranscriptionGateway
from .library_store import LibraryStore
from .models import RecordView, TranscriptionRecord

# Configure logging
logging.basicConfig(level=getattr(logging, config.server.log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Global state
store: Optional[LibraryStore] = None
assistant: Optional[StudyAssistant] = None
catalog: Optional[CourseCatalog] = None
ingestor: Optional[FileIngestor] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    global store, assistant, catalog, ingestor

    logger.info("Starting Lecture Scribe server...")

    try:
        config.ensure_directories()
        store = LibraryStore()
        catalog = CourseCatalog(config.library.courses_file)
        ingestor = FileIngestor(max_file_size_mb=config.ingest.max_file_size_mb)
        client = GeminiClient(config.gemini)
        assistant = StudyAssistant(
            store=store,
            transcription_gateway=GeminiTranscriptionGateway(client),
            notes_gateway=GeminiNotesGateway(client),
            catalog=catalog,
            config=config
        )
        if not config.gemini.api_key:
            logger.warning("GEMINI_API_KEY is not set; transcription and notes requests will fail")
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    yield

    logger.info(f"Shutting down Lecture Scribe server ({len(store)} record(s) discarded)...")


app = FastAPI(
    title="Lecture Scribe API",
    description="REST API for lecture transcription and versioned study notes",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request / response models
class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str
    services: Dict[str, bool]
    message: str


class RecordSummary(BaseModel):
    """Library listing entry."""
    id: str
    title: str
    course_name: str
    timestamp: str
    latest_version: int
    previous_version: int
    selected: bool
    active: bool


class LibraryResponse(BaseModel):
    records: List[RecordSummary]
    active_id: Optional[str] = None
    selection: List[str]


class RecordResponse(BaseModel):
    record: TranscriptionRecord
    status_message: str


class BatchRequest(BaseModel):
    """Ids for merge/delete; the current selection is used when omitted."""
    ids: Optional[List[str]] = None


class DeleteResponse(BaseModel):
    deleted: List[str]
    active_id: Optional[str] = None


class SelectionResponse(BaseModel):
    selection: List[str]


class CourseRequest(BaseModel):
    name: str


class CoursesResponse(BaseModel):
    courses: List[str]
    default_course: str


def _require_services() -> None:
    if store is None or assistant is None or catalog is None or ingestor is None:
        raise HTTPException(status_code=500, detail="Services not initialized")


def _http_error(error: ProcessingError) -> HTTPException:
    """Map an application error to an HTTP status."""
    if isinstance(error, RecordNotFoundError):
        status = 404
    elif isinstance(error, VersionConflictError):
        status = 409
    elif isinstance(error, InvalidOperationError):
        status = 400
    elif isinstance(error, GatewayError):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=error.to_dict())


def _record_response(record: TranscriptionRecord) -> RecordResponse:
    return RecordResponse(record=record, status_message=record.get_status_display())


# Health

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Report which services are available."""
    services = {
        "library_store": store is not None,
        "study_assistant": assistant is not None,
        "course_catalog": catalog is not None,
        "gemini_configured": bool(config.gemini.api_key),
    }
    healthy = all(services.values())
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        services=services,
        message="All services operational" if healthy else "Some services are unavailable"
    )


# Courses

@app.get("/api/courses", response_model=CoursesResponse)
async def list_courses():
    _require_services()
    return CoursesResponse(courses=catalog.courses, default_course=catalog.default_course)


@app.post("/api/courses", response_model=CoursesResponse)
async def add_course(request: CourseRequest):
    _require_services()
    try:
        catalog.add(request.name)
    except ProcessingError as e:
        raise _http_error(e)
    return CoursesResponse(courses=catalog.courses, default_course=catalog.default_course)


@app.delete("/api/courses/{name}", response_model=CoursesResponse)
async def remove_course(name: str):
    _require_services()
    try:
        catalog.remove(name)
    except ProcessingError as e:
        raise _http_error(e)
    return CoursesResponse(courses=catalog.courses, default_course=catalog.default_course)


# Transcription

@app.post("/api/transcriptions", response_model=RecordResponse)
async def create_transcription(
    audio_files: List[UploadFile] = File(...),
    reference_files: List[UploadFile] = File(default=[]),
    session_title: Optional[str] = Form(default=None),
    course_name: Optional[str] = Form(default=None)
):
    """Upload recordings and reference documents and transcribe them into a new record."""
    _require_services()
    try:
        audio = [
            ingestor.ingest_audio(f.filename or "recording", await f.read(), f.content_type)
            for f in audio_files
        ]
        references = [
            ingestor.ingest_reference(f.filename or "reference", await f.read(), f.content_type)
            for f in reference_files
        ]
        record = await assistant.transcribe(audio, references, session_title, course_name)
    except ProcessingError as e:
        raise _http_error(e)

    return _record_response(record)


# Library

@app.get("/api/records", response_model=LibraryResponse)
async def list_records():
    _require_services()
    selection = store.selection
    active_id = store.active_id
    return LibraryResponse(
        records=[
            RecordSummary(
                id=r.id,
                title=r.title,
                course_name=r.course_name,
                timestamp=r.timestamp.isoformat(),
                latest_version=r.latest_version,
                previous_version=r.previous_version,
                selected=r.id in selection,
                active=r.id == active_id
            )
            for r in store.records
        ],
        active_id=active_id,
        selection=store.selection_order
    )


@app.get("/api/records/active", response_model=RecordResponse)
async def get_active_record():
    _require_services()
    record = store.active_record
    if record is None:
        raise HTTPException(status_code=404, detail="No active record")
    return _record_response(record)


@app.post("/api/records/merge", response_model=RecordResponse)
async def merge_records(request: BatchRequest):
    """Merge the given ids (or the current selection, in selection order) into a new record."""
    _require_services()
    try:
        if request.ids is None:
            record = assistant.merge_selected()
        else:
            record = store.merge(request.ids)
    except ProcessingError as e:
        raise _http_error(e)
    return _record_response(record)


@app.post("/api/records/delete", response_model=DeleteResponse)
async def delete_records(request: BatchRequest):
    """Delete the given ids (or the current selection)."""
    _require_services()
    if request.ids is None:
        deleted = assistant.delete_selected()
    else:
        deleted = store.delete_many(request.ids)
    return DeleteResponse(deleted=deleted, active_id=store.active_id)


@app.get("/api/records/{record_id}", response_model=RecordResponse)
async def get_record(record_id: str):
    _require_services()
    try:
        return _record_response(store.get(record_id))
    except ProcessingError as e:
        raise _http_error(e)


@app.post("/api/records/{record_id}/activate", response_model=RecordResponse)
async def activate_record(record_id: str):
    _require_services()
    try:
        return _record_response(store.set_active(record_id))
    except ProcessingError as e:
        raise _http_error(e)


@app.post("/api/records/{record_id}/notes", response_model=RecordResponse)
async def generate_notes(record_id: str):
    """Generate the next study-notes version for a record."""
    _require_services()
    try:
        record = await assistant.generate_notes(record_id)
    except ProcessingError as e:
        raise _http_error(e)
    return _record_response(record)


@app.get("/api/records/{record_id}/export")
async def export_record_view(
    record_id: str,
    view: RecordView = RecordView.TRANSCRIPT,
    fmt: ExportFormat = "txt"
):
    """Download the transcript or one of the notes versions as a text document."""
    _require_services()
    try:
        document = export_record(store.get(record_id), view, fmt)
    except ProcessingError as e:
        raise _http_error(e)

    return Response(
        content=document.body.encode("utf-8"),
        media_type=document.media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.filename)}"}
    )


# Selection

@app.get("/api/selection", response_model=SelectionResponse)
async def get_selection():
    _require_services()
    return SelectionResponse(selection=store.selection_order)


@app.post("/api/selection/{record_id}", response_model=SelectionResponse)
async def toggle_selection(record_id: str):
    _require_services()
    store.select_toggle(record_id)
    return SelectionResponse(selection=store.selection_order)


@app.delete("/api/selection", response_model=SelectionResponse)
async def clear_selection():
    _require_services()
    store.clear_selection()
    return SelectionResponse(selection=[])


def run() -> None:
    """Start the server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "lecture_scribe.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug
    )


if __name__ == "__main__":
    run()
