"""
OpenAI-backed service client for Dictation Buddy.

One ServiceClient is built from Settings when the app starts and injected into
every component that talks to the network (extraction, chat, assistant speech,
transcription). Each call carries the configured timeout so a stalled request
cannot leave the UI loading forever.
"""

import json
from typing import Any, Dict, List, Optional

from openai import OpenAI

from .config import Settings
from .errors import MalformedResponse, ServiceUnavailable
from .logger import logger, Timer


class ServiceClient:
    """Thin wrapper around the OpenAI SDK with the app's defaults applied."""

    def __init__(self, settings: Settings, openai_client: Optional[OpenAI] = None) -> None:
        self.settings = settings
        if openai_client is not None:
            self._client: Optional[OpenAI] = openai_client
        elif settings.openai_api_key:
            logger.env("Initializing OpenAI client...")
            self._client = OpenAI(api_key=settings.openai_api_key, timeout=settings.request_timeout)
            logger.env_success("OpenAI client initialized successfully")
        else:
            self._client = None

    def is_available(self) -> bool:
        """Check if the OpenAI API client is properly configured."""
        return self._client is not None

    def _require(self) -> OpenAI:
        if self._client is None:
            raise ServiceUnavailable("OPENAI_API_KEY is not configured")
        return self._client

    # -----------------------------------------------------------------------
    # Chat completions
    # -----------------------------------------------------------------------

    def complete_json(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.2,
        allow_retries: bool = True,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Run a JSON chat completion and return the decoded payload.

        ``response_format`` defaults to plain JSON mode; pass a ``json_schema``
        format to have the backend enforce an exact shape.
        """
        client = self._require()
        if not allow_retries:
            client = client.with_options(max_retries=0)

        logger.api_call("chat.completions.create", model=self.settings.chat_model)
        with Timer() as timer:
            completion = client.chat.completions.create(
                model=self.settings.chat_model,
                response_format=response_format or {"type": "json_object"},
                messages=messages,
                temperature=temperature,
            )
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        raw = completion.choices[0].message.content or ""
        try:
            return json.loads(raw)
        except ValueError as e:
            raise MalformedResponse(f"Response is not valid JSON: {raw[:80]!r}") from e

    def complete_text(self, messages: List[Dict[str, Any]], temperature: float = 0.7) -> str:
        """Run a plain chat completion and return the reply text ("" if none)."""
        client = self._require()

        logger.api_call("chat.completions.create", model=self.settings.chat_model)
        with Timer() as timer:
            completion = client.chat.completions.create(
                model=self.settings.chat_model,
                messages=messages,
                temperature=temperature,
            )
        logger.api_response("chat.completions.create", duration_ms=timer.duration_ms)

        return (completion.choices[0].message.content or "").strip()

    # -----------------------------------------------------------------------
    # Audio
    # -----------------------------------------------------------------------

    def synthesize_speech(self, text: str) -> bytes:
        """Render text to MP3 bytes with the configured TTS voice."""
        client = self._require()

        logger.api_call("audio.speech.create", model=self.settings.tts_model)
        with Timer() as timer:
            response = client.audio.speech.create(
                model=self.settings.tts_model,
                voice=self.settings.tts_voice,
                input=text,
                response_format="mp3",
            )
        logger.api_response("audio.speech.create", duration_ms=timer.duration_ms)

        return response.content

    def transcribe(self, wav_bytes: bytes, language: Optional[str] = None) -> str:
        """Transcribe a WAV recording; ``language`` is an ISO 639-1 hint."""
        client = self._require()

        kwargs: Dict[str, Any] = {
            "model": self.settings.stt_model,
            "file": ("speech.wav", wav_bytes, "audio/wav"),
            "response_format": "text",
        }
        if language:
            kwargs["language"] = language

        logger.api_call("audio.transcriptions.create", model=self.settings.stt_model)
        with Timer() as timer:
            transcription = client.audio.transcriptions.create(**kwargs)
        logger.api_response("audio.transcriptions.create", duration_ms=timer.duration_ms)

        # Response is just the text when response_format="text"
        return transcription.strip() if isinstance(transcription, str) else str(transcription).strip()
