"""
Unit tests for the Gemini-backed transcription and notes gateways.
"""

import json
import pytest
import requests
from unittest.mock import Mock

from lecture_scribe.config import GeminiConfig
from lecture_scribe.errors import ErrorCategory, GatewayError
from lecture_scribe.gateways import (
    GeminiClient, GeminiNotesGateway, GeminiTranscriptionGateway, clean_json_string
)
from lecture_scribe.models import EncodedFile


def gemini_response(text, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.text = text if isinstance(text, str) else json.dumps(text)
    response.json.return_value = {
        "candidates": [{"content": {"parts": [{"text": text}]}}]
    }
    return response


@pytest.fixture
def config():
    return GeminiConfig(api_key="test-key", model_name="test-model", base_url="https://gemini.test/v1beta")


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(config, session):
    return GeminiClient(config, session=session)


@pytest.fixture
def audio():
    return [EncodedFile(name="lecture.mp3", data="QUJD", mime_type="audio/mpeg")]


@pytest.fixture
def references():
    return [EncodedFile(name="slides.pdf", data="UERG", mime_type="application/pdf")]


class TestCleanJsonString:

    def test_strips_fences(self):
        assert clean_json_string('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_json_untouched(self):
        assert clean_json_string('{"a": 1}') == '{"a": 1}'

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_becomes_empty_object(self, text):
        assert clean_json_string(text) == "{}"


class TestGeminiClient:
    """Test request building and error mapping."""

    def test_endpoint(self, client):
        assert client.endpoint == "https://gemini.test/v1beta/models/test-model:generateContent"

    def test_missing_api_key(self, session):
        client = GeminiClient(GeminiConfig(api_key=None), session=session)

        with pytest.raises(GatewayError) as exc_info:
            client.generate([{"text": "hi"}], "system", 1024)

        assert exc_info.value.category == ErrorCategory.CONFIGURATION
        assert exc_info.value.retryable is False
        session.post.assert_not_called()

    def test_request_payload(self, client, session):
        session.post.return_value = gemini_response("ok")

        result = client.generate([{"text": "hi"}], "system prompt", 2048,
                                 response_schema={"type": "OBJECT"})

        assert result == "ok"
        args, kwargs = session.post.call_args
        assert args[0] == client.endpoint
        assert kwargs["headers"] == {"x-goog-api-key": "test-key"}
        payload = kwargs["json"]
        assert payload["contents"][0]["parts"] == [{"text": "hi"}]
        assert payload["systemInstruction"]["parts"][0]["text"] == "system prompt"
        assert payload["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 2048}
        assert payload["generationConfig"]["responseMimeType"] == "application/json"
        assert payload["generationConfig"]["responseSchema"] == {"type": "OBJECT"}

    def test_thought_parts_are_skipped(self, client, session):
        response = gemini_response("unused")
        response.json.return_value = {"candidates": [{"content": {"parts": [
            {"text": "thinking...", "thought": True},
            {"text": "answer"},
        ]}}]}
        session.post.return_value = response

        assert client.generate([{"text": "hi"}], "s", 1) == "answer"

    @pytest.mark.parametrize("exception", [
        requests.exceptions.Timeout("slow"),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.RequestException("other"),
    ])
    def test_transport_errors(self, client, session, exception):
        session.post.side_effect = exception

        with pytest.raises(GatewayError) as exc_info:
            client.generate([{"text": "hi"}], "s", 1)

        assert exc_info.value.category == ErrorCategory.UPSTREAM
        assert exc_info.value.original_exception is exception

    def test_http_error_status(self, client, session):
        response = Mock(status_code=403, text="forbidden")
        response.json.return_value = {"error": {"message": "API key not valid"}}
        session.post.return_value = response

        with pytest.raises(GatewayError) as exc_info:
            client.generate([{"text": "hi"}], "s", 1)

        assert "403" in str(exc_info.value)
        assert "API key not valid" in str(exc_info.value)
        assert exc_info.value.retryable is False

    @pytest.mark.parametrize("status_code,retryable", [
        (400, False),
        (404, False),
        (408, True),
        (429, True),
        (500, True),
        (503, True),
    ])
    def test_http_status_retryability(self, client, session, status_code, retryable):
        response = Mock(status_code=status_code, text="error")
        response.json.return_value = {"error": {"message": "error"}}
        session.post.return_value = response

        with pytest.raises(GatewayError) as exc_info:
            client.generate([{"text": "hi"}], "s", 1)

        assert exc_info.value.retryable is retryable

    def test_http_error_without_json_body(self, client, session):
        response = Mock(status_code=500, text="Internal error")
        response.json.side_effect = ValueError("no json")
        session.post.return_value = response

        with pytest.raises(GatewayError, match="Internal error"):
            client.generate([{"text": "hi"}], "s", 1)

    def test_empty_candidates(self, client, session):
        response = Mock(status_code=200)
        response.json.return_value = {"candidates": []}
        session.post.return_value = response

        with pytest.raises(GatewayError, match="empty"):
            client.generate([{"text": "hi"}], "s", 1)


class TestTranscriptionGateway:

    def test_transcribe(self, client, session, audio, references):
        session.post.return_value = gemini_response(
            '```json\n{"title": "第三講 唯識", "content": "老師：阿賴耶識……"}\n```'
        )
        gateway = GeminiTranscriptionGateway(client)

        draft = gateway.transcribe(audio, references, "03/14 印度佛教史 課程紀錄", "印度佛教史")

        assert draft.title == "第三講 唯識"
        assert draft.content == "老師：阿賴耶識……"

        payload = session.post.call_args.kwargs["json"]
        parts = payload["contents"][0]["parts"]
        assert parts[0] == {"inlineData": {"data": "QUJD", "mimeType": "audio/mpeg"}}
        assert parts[1] == {"inlineData": {"data": "UERG", "mimeType": "application/pdf"}}
        assert "03/14 印度佛教史 課程紀錄" in parts[2]["text"]
        assert "印度佛教史" in payload["systemInstruction"]["parts"][0]["text"]
        assert payload["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 32768

    def test_invalid_json(self, client, session, audio):
        session.post.return_value = gemini_response("this is not json")

        with pytest.raises(GatewayError, match="Invalid JSON"):
            GeminiTranscriptionGateway(client).transcribe(audio, [], "t", "c")

    def test_missing_fields(self, client, session, audio):
        session.post.return_value = gemini_response('{"title": "only title"}')

        with pytest.raises(GatewayError, match="missing title or content"):
            GeminiTranscriptionGateway(client).transcribe(audio, [], "t", "c")


class TestNotesGateway:

    def test_generate_notes(self, client, session):
        session.post.return_value = gemini_response("# 重點摘要\n- 緣起")

        notes = GeminiNotesGateway(client).generate_notes("老師：緣起。", "第一講", "禪修專題")

        assert notes == "# 重點摘要\n- 緣起"
        payload = session.post.call_args.kwargs["json"]
        assert payload["contents"][0]["parts"][0]["text"] == "主題：第一講\n\n內容：\n老師：緣起。"
        assert "禪修專題" in payload["systemInstruction"]["parts"][0]["text"]
        assert "responseSchema" not in payload["generationConfig"]
        assert payload["generationConfig"]["thinkingConfig"]["thinkingBudget"] == 16384
