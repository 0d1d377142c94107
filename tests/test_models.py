import pytest
from pydantic import ValidationError

from lecture_scribe.models import EncodedFile, RecordView, TranscriptionRecord


def make_record(**overrides) -> TranscriptionRecord:
    fields = dict(id="trans-1", title="第一講", content="老師：緣起。", course_name="禪修專題")
    fields.update(overrides)
    return TranscriptionRecord(**fields)


class TestTranscriptionRecord:
    """Test TranscriptionRecord invariants and helpers."""

    def test_defaults(self):
        record = make_record()

        assert record.latest_version == 0
        assert record.previous_version == 0
        assert not record.has_notes
        assert record.get_status_display() == "No study notes yet"

    def test_previous_cannot_exceed_latest(self):
        with pytest.raises(ValidationError):
            make_record(latest_version=1, previous_version=2)

    def test_negative_versions_rejected(self):
        with pytest.raises(ValidationError):
            make_record(latest_version=-1)

    def test_record_is_frozen(self):
        record = make_record()

        with pytest.raises(ValidationError):
            record.content = "changed"

    def test_with_new_notes_shifts_slots(self):
        record = make_record().with_new_notes("N1").with_new_notes("N2")

        assert record.notes_latest == "N2"
        assert record.notes_previous == "N1"
        assert record.latest_version == 2
        assert record.previous_version == 1
        assert record.get_status_display() == "Notes v2 (previous v1 kept)"

    def test_with_new_notes_leaves_original_untouched(self):
        original = make_record()
        original.with_new_notes("N1")

        assert original.notes_latest is None
        assert original.latest_version == 0

    def test_body_for_views(self):
        record = make_record().with_new_notes("N1")

        assert record.body_for(RecordView.TRANSCRIPT) == "老師：緣起。"
        assert record.body_for(RecordView.LATEST_NOTES) == "N1"
        assert record.body_for(RecordView.PREVIOUS_NOTES) is None


class TestEncodedFile:

    def test_size_bytes(self):
        # base64 of b"abcd" is "YWJjZA=="
        encoded = EncodedFile(name="a.txt", data="YWJjZA==", mime_type="text/plain")

        assert encoded.size_bytes == 4
