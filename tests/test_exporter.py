import pytest

from lecture_scribe.errors import InvalidOperationError
from lecture_scribe.exporter import export_filename, export_record
from lecture_scribe.models import RecordView, TranscriptionRecord


@pytest.fixture
def record():
    return TranscriptionRecord(
        id="trans-1",
        title="03/14 禪修專題 課程紀錄",
        content="老師：今天談止觀。",
        course_name="禪修專題"
    ).with_new_notes("# 筆記 v1")


class TestExporter:

    def test_export_transcript_txt(self, record):
        document = export_record(record, RecordView.TRANSCRIPT, "txt")

        assert document.filename == "03_14 禪修專題 課程紀錄_transcript.txt"
        assert document.body == "老師：今天談止觀。"
        assert document.media_type.startswith("text/plain")

    def test_export_latest_notes_doc(self, record):
        document = export_record(record, RecordView.LATEST_NOTES, "doc")

        assert document.filename.endswith("_latest_notes.doc")
        assert document.body == "# 筆記 v1"

    def test_export_empty_previous_notes_fails(self, record):
        with pytest.raises(InvalidOperationError):
            export_record(record, RecordView.PREVIOUS_NOTES)

    def test_export_unknown_format_fails(self, record):
        with pytest.raises(InvalidOperationError):
            export_record(record, RecordView.TRANSCRIPT, "pdf")

    def test_path_separators_replaced(self):
        assert export_filename("a/b\\c", RecordView.TRANSCRIPT, "txt") == "a_b_c_transcript.txt"

    def test_blank_title_gets_placeholder(self):
        assert export_filename("   ", RecordView.TRANSCRIPT, "txt") == "transcript_transcript.txt"
