"""
Transcription and notes gateways backed by the Gemini ``generateContent`` REST API.

The library store never talks to the network; the assistant calls a gateway,
and only a successful result is applied to the store. Every failure here is
raised as GatewayError.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests
from pydantic import ValidationError

from .config import AppConfig, GeminiConfig
from .errors import ErrorCategory, ErrorContext, ErrorSeverity, GatewayError, RecoveryAction
from .models import EncodedFile, TranscriptDraft
from . import prompts

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```json\n?")
_FENCE_CLOSE = re.compile(r"```\n?$")

# 4xx responses other than 408 (request timeout) and 429 (rate limited)
_NON_RETRYABLE_STATUSES = frozenset(range(400, 500)) - {408, 429}


class TranscriptionGateway(Protocol):
    def transcribe(
        self,
        audio_files: Sequence[EncodedFile],
        reference_files: Sequence[EncodedFile],
        session_title: str,
        course_name: str
    ) -> TranscriptDraft: ...


class NotesGateway(Protocol):
    def generate_notes(self, content: str, title: str, course_name: str) -> str: ...


def clean_json_string(text: Optional[str]) -> str:
    """Strip the markdown code fence models sometimes wrap JSON in."""
    if not text:
        return "{}"
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1)).strip()


def _gateway_error(message: str, operation: str, **kwargs) -> GatewayError:
    return GatewayError(
        message,
        context=ErrorContext(
            timestamp=datetime.now(),
            component="gemini_client",
            operation=operation
        ),
        **kwargs
    )


class GeminiClient:
    """Thin ``requests`` wrapper around ``models/{model}:generateContent``."""

    def __init__(self, config: Optional[GeminiConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or AppConfig().gemini
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/models/{self.config.model_name}:generateContent"

    def generate(
        self,
        parts: List[Dict[str, Any]],
        system_instruction: str,
        thinking_budget: int,
        response_schema: Optional[Dict[str, Any]] = None,
        operation: str = "generate_content"
    ) -> str:
        """
        Send one generateContent request and return the concatenated text of the first candidate.

        Raises:
            GatewayError: On missing API key, transport failure, non-200 status or empty output
        """
        if not self.config.api_key:
            raise _gateway_error(
                "API Key is missing. Set GEMINI_API_KEY.",
                operation,
                retryable=False,
                category=ErrorCategory.CONFIGURATION,
                severity=ErrorSeverity.HIGH,
                recovery_actions=[RecoveryAction("manual", "Set GEMINI_API_KEY and restart", False)]
            )

        generation_config: Dict[str, Any] = {
            "thinkingConfig": {"thinkingBudget": thinking_budget},
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        payload = {
            "contents": [{"role": "user", "parts": parts}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": generation_config,
        }

        try:
            logger.debug(f"Calling Gemini model {self.config.model_name} ({operation})")
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers={"x-goog-api-key": self.config.api_key},
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.Timeout as e:
            raise _gateway_error(
                "Gemini request timed out. The recording may be too long; try again.",
                operation, original_exception=e
            )
        except requests.exceptions.ConnectionError as e:
            raise _gateway_error(
                f"Cannot connect to Gemini at {self.config.base_url}: {e}",
                operation, original_exception=e
            )
        except requests.exceptions.RequestException as e:
            raise _gateway_error(f"Network error calling Gemini: {e}", operation, original_exception=e)

        if response.status_code != 200:
            try:
                detail = response.json().get("error", {}).get("message", response.text)
            except (ValueError, AttributeError):
                detail = response.text
            raise _gateway_error(
                f"Gemini API error: {response.status_code} - {detail}",
                operation,
                retryable=response.status_code not in _NON_RETRYABLE_STATUSES,
                severity=ErrorSeverity.HIGH if response.status_code in (401, 403) else ErrorSeverity.MEDIUM,
                technical_details=response.text[:2000]
            )

        try:
            body = response.json()
        except ValueError as e:
            raise _gateway_error(f"Invalid JSON from Gemini: {e}", operation, original_exception=e)

        text = self._extract_text(body)
        if not text.strip():
            raise _gateway_error("Gemini returned an empty response", operation)
        return text

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        candidates = body.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        # thought parts are the model's reasoning, not its answer
        return "".join(p.get("text", "") for p in parts if not p.get("thought"))


class GeminiTranscriptionGateway:
    """Sends recordings plus reference documents and reads back a titled transcript."""

    def __init__(self, client: GeminiClient):
        self.client = client

    def transcribe(
        self,
        audio_files: Sequence[EncodedFile],
        reference_files: Sequence[EncodedFile],
        session_title: str,
        course_name: str
    ) -> TranscriptDraft:
        parts: List[Dict[str, Any]] = []
        for encoded in list(audio_files) + list(reference_files):
            parts.append({"inlineData": {"data": encoded.data, "mimeType": encoded.mime_type}})
        parts.append({"text": prompts.transcription_user_prompt(session_title)})

        logger.info(
            f"Transcribing '{session_title}' for {course_name}: "
            f"{len(audio_files)} recording(s), {len(reference_files)} reference file(s)"
        )
        text = self.client.generate(
            parts,
            system_instruction=prompts.transcription_system_instruction(course_name),
            thinking_budget=self.client.config.transcription_thinking_budget,
            response_schema=prompts.TRANSCRIPT_RESPONSE_SCHEMA,
            operation="transcribe"
        )

        try:
            return TranscriptDraft.model_validate(json.loads(clean_json_string(text)))
        except json.JSONDecodeError as e:
            logger.debug(f"Response text: {text}")
            raise _gateway_error(f"Invalid JSON in transcription response: {e}", "transcribe", original_exception=e)
        except ValidationError as e:
            raise _gateway_error(f"Transcription response missing title or content: {e}", "transcribe", original_exception=e)


class GeminiNotesGateway:
    """Turns a transcript into Markdown study notes."""

    def __init__(self, client: GeminiClient):
        self.client = client

    def generate_notes(self, content: str, title: str, course_name: str) -> str:
        logger.info(f"Generating study notes for '{title}' ({course_name})")
        return self.client.generate(
            [{"text": prompts.notes_user_prompt(title, content)}],
            system_instruction=prompts.notes_system_instruction(course_name),
            thinking_budget=self.client.config.notes_thinking_budget,
            operation="generate_notes"
        )
