#!/usr/bin/env python3
"""
Demo script for the StudyAssistant.

Transcribes a lecture recording with Gemini, generates two study-notes
versions and exports the result next to the recording.

Usage:
    GEMINI_API_KEY=... python examples/transcribe_lecture_demo.py lecture.mp3 [slides.pdf ...]
"""

import asyncio
import sys
from pathlib import Path

# Add the parent directory to the path so we can import lecture_scribe
sys.path.insert(0, str(Path(__file__).parent.parent))

from lecture_scribe.assistant import StudyAssistant
from lecture_scribe.config import AppConfig
from lecture_scribe.course_catalog import CourseCatalog
from lecture_scribe.errors import ProcessingError
from lecture_scribe.exporter import export_record
from lecture_scribe.file_ingestor import FileIngestor
from lecture_scribe.gateways import GeminiClient, GeminiNotesGateway, GeminiTranscriptionGateway
from lecture_scribe.library_store import LibraryStore
from lecture_scribe.models import RecordView


async def run(audio_path: Path, reference_paths: list[Path]) -> None:
    config = AppConfig.load_from_env()
    if not config.gemini.api_key:
        print("❌ GEMINI_API_KEY is not set.")
        return

    ingestor = FileIngestor(config.ingest.max_file_size_mb)
    client = GeminiClient(config.gemini)
    store = LibraryStore()
    assistant = StudyAssistant(
        store=store,
        transcription_gateway=GeminiTranscriptionGateway(client),
        notes_gateway=GeminiNotesGateway(client),
        catalog=CourseCatalog(config.library.courses_file),
        config=config
    )

    audio = [ingestor.ingest_path(audio_path)]
    references = [ingestor.ingest_path(p) for p in reference_paths]

    print(f"🎙️  Transcribing {audio_path.name} ({assistant.default_session_title()})...")
    record = await assistant.transcribe(audio, references)
    print(f"✅ {record.title}: {len(record.content)} characters")

    for _ in range(2):
        record = await assistant.generate_notes(record.id)
        print(f"📝 {record.get_status_display()}")

    for view in RecordView:
        document = export_record(record, view)
        target = audio_path.parent / document.filename
        target.write_text(document.body, encoding="utf-8")
        print(f"💾 Saved {target}")


def main():
    """Run the transcription demo."""
    print("📚 Lecture Scribe - Transcription Demo")
    print("=" * 50)

    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    try:
        asyncio.run(run(Path(sys.argv[1]), [Path(p) for p in sys.argv[2:]]))
    except ProcessingError as e:
        print(f"❌ {e.user_message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
