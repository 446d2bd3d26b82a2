from __future__ import annotations

import logging
import os
from typing import Any

import requests

from .errors import TranscriptionBackendError
from .models import Segment, TranscriptionOutcome

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class WhisperTranscriptionClient:
    """Client for an OpenAI-compatible ``/audio/transcriptions`` endpoint.

    Callers must keep payloads within the backend's 25 MB ceiling; the size is
    not re-checked here.
    """

    def __init__(
        self,
        *,
        api_token: str | None = None,
        base_url: str | None = None,
        model: str = "whisper-1",
        language: str | None = "en",
        timeout: int = 300,
    ) -> None:
        self.api_token = api_token or os.getenv("OPENAI_API_KEY")
        if not self.api_token:
            raise RuntimeError("OPENAI_API_KEY is not set")

        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.model = model
        self.language = language
        self.timeout = timeout

    def transcribe_text(self, audio_bytes: bytes, file_name: str, mime_type: str) -> str:
        logger.info("Transcribing %s (%d bytes, type: %s)", file_name, len(audio_bytes), mime_type)
        response = self._post(audio_bytes, file_name, mime_type, [("response_format", "text")])
        text = response.text
        logger.info("Transcription complete: %d characters", len(text))
        return text

    def transcribe_segmented(
        self,
        audio_bytes: bytes,
        file_name: str,
        mime_type: str,
        *,
        asset_id: str | None = None,
    ) -> TranscriptionOutcome:
        logger.info(
            "Transcribing with segments: %s (%d bytes, type: %s)", file_name, len(audio_bytes), mime_type
        )
        response = self._post(
            audio_bytes,
            file_name,
            mime_type,
            [("response_format", "verbose_json"), ("timestamp_granularities[]", "segment")],
        )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionBackendError("Transcription response is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise TranscriptionBackendError("Unexpected transcription response payload")

        text = payload.get("text") or ""
        if not isinstance(text, str):
            raise TranscriptionBackendError("Transcription response text is not a string")

        segments = [
            self._parse_segment(raw, asset_id) for raw in payload.get("segments") or []
        ]
        logger.info("Transcription with segments complete: %d segments", len(segments))
        return TranscriptionOutcome(full_text=text, segments=segments)

    def _post(
        self,
        audio_bytes: bytes,
        file_name: str,
        mime_type: str,
        options: list[tuple[str, str]],
    ) -> requests.Response:
        data: list[tuple[str, str]] = [("model", self.model), *options]
        if self.language:
            data.append(("language", self.language))

        headers = {"Authorization": f"Bearer {self.api_token}"}

        try:
            response = requests.post(
                f"{self.base_url}/audio/transcriptions",
                headers=headers,
                data=data,
                files={"file": (file_name, audio_bytes, mime_type)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            detail = _backend_message(exc.response) or str(exc) or exc.__class__.__name__
            raise TranscriptionBackendError(f"Transcription request failed: {detail}") from exc

        return response

    @staticmethod
    def _parse_segment(raw: Any, asset_id: str | None) -> Segment:
        if not isinstance(raw, dict):
            raise TranscriptionBackendError("Unexpected transcription segment payload")
        try:
            start = float(raw["start"])
            end = float(raw["end"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TranscriptionBackendError("Transcription segment is missing timestamps") from exc

        text = raw.get("text")
        speaker = raw.get("speaker")
        return Segment(
            start_seconds=start,
            end_seconds=end,
            text=text.strip() if isinstance(text, str) else "",
            asset_id=asset_id,
            speaker=speaker if isinstance(speaker, str) and speaker else None,
        )


def _backend_message(response: requests.Response | None) -> str | None:
    """Pull the error message out of an OpenAI-style error body."""

    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text or None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return None
