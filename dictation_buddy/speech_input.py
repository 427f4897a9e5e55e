"""
Speech input for the assistant chat.

The learner toggles the microphone on and off and rotates between three
recognition languages. Every recognition result replaces the transcript
buffer; results from one listening session never append to another's.
"""

import io
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np
import soundfile as sf

from .audio_focus import AudioFocus, FocusToken
from .background import run_in_thread
from .client import ServiceClient
from .logger import logger
from .messages import SPEECH_INPUT_UNAVAILABLE

FOCUS_OWNER = "microphone"


@dataclass(frozen=True)
class RecognitionLanguage:
    code: str           # BCP 47 tag
    label: str
    short: str          # toggle button text
    iso_code: str       # transcription language hint


RECOGNITION_LANGUAGES = (
    RecognitionLanguage("zh-HK", "粵語 (Cantonese)", "粵", "zh"),
    RecognitionLanguage("zh-CN", "普通話 (Mandarin)", "普", "zh"),
    RecognitionLanguage("en-US", "英文 (English)", "En", "en"),
)

# One recognition event: a list of results, each a list of alternatives (best first)
ResultHandler = Callable[[List[List[str]]], None]


class RecognitionBackend:
    """Device speech-to-text capability."""

    def start(
        self,
        language: RecognitionLanguage,
        on_result: ResultHandler,
        on_error: Callable[[str], None],
        on_end: Callable[[], None],
    ) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class WhisperRecognitionBackend(RecognitionBackend):
    """
    Microphone capture with sounddevice, transcribed by the OpenAI endpoint.

    While recording, the audio captured so far is re-transcribed every
    INTERIM_INTERVAL seconds and reported as an interim result; a final
    transcription runs when listening stops.
    """

    SAMPLE_RATE = 16000  # Whisper prefers 16kHz
    CHANNELS = 1
    INTERIM_INTERVAL = 2.0
    MAX_SECONDS = 30.0
    MIN_SECONDS = 0.5

    def __init__(self, client: ServiceClient, sounddevice_module) -> None:
        self._client = client
        self._sd = sounddevice_module
        self._stop_event: Optional[threading.Event] = None

    def start(self, language, on_result, on_error, on_end) -> None:
        stop_event = threading.Event()
        self._stop_event = stop_event
        chunks: List[np.ndarray] = []

        def _audio_callback(indata, frames, time_info, status):
            if status:
                logger.warning(f"Audio status: {status}")
            chunks.append(indata.copy())

        def _record() -> None:
            try:
                with self._sd.InputStream(samplerate=self.SAMPLE_RATE, channels=self.CHANNELS,
                                          dtype="float32", callback=_audio_callback):
                    started = time.monotonic()
                    last_interim = started
                    while not stop_event.wait(0.1):
                        now = time.monotonic()
                        if now - started >= self.MAX_SECONDS:
                            logger.mic("Maximum recording length reached")
                            break
                        if now - last_interim >= self.INTERIM_INTERVAL:
                            last_interim = now
                            self._report(list(chunks), language, on_result)
                self._report(list(chunks), language, on_result)
            except Exception as e:
                on_error(str(e))
                return
            on_end()

        run_in_thread(_record)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def _report(self, chunks: List[np.ndarray], language: RecognitionLanguage, on_result: ResultHandler) -> None:
        if not chunks:
            return
        audio = np.concatenate(chunks, axis=0)
        if len(audio) < self.SAMPLE_RATE * self.MIN_SECONDS:
            return

        buffer = io.BytesIO()
        sf.write(buffer, audio, self.SAMPLE_RATE, format="WAV")
        text = self._client.transcribe(buffer.getvalue(), language.iso_code)
        if text:
            on_result([[text]])


def create_recognition_backend(client: ServiceClient) -> Optional[RecognitionBackend]:
    """Return a microphone backend, or None when no microphone or API key is available."""
    if not client.is_available():
        logger.warning("Speech recognition needs OPENAI_API_KEY, disabling microphone")
        return None
    try:
        import sounddevice as sd
        input_devices = [d for d in sd.query_devices() if d["max_input_channels"] > 0]
    except Exception as e:
        logger.warning(f"Audio device error: {e}. On macOS, try: brew install portaudio")
        return None

    if not input_devices:
        logger.warning("No microphone found. Check your system privacy settings.")
        return None

    logger.success(f"Recording available: {len(input_devices)} microphone(s) found")
    return WhisperRecognitionBackend(client, sd)


class _ListeningSession:
    def __init__(self, token: FocusToken) -> None:
        self.token = token
        self.active = True


class SpeechInputAdapter:
    def __init__(
        self,
        backend: Optional[RecognitionBackend],
        focus: AudioFocus,
        notify: Callable[[str], None] = logger.warning,
    ) -> None:
        self._backend = backend
        self._focus = focus
        self._notify = notify
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._language_index = 0
        self._session: Optional[_ListeningSession] = None
        self.transcript = ""

    def subscribe(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever listening state, language or transcript changes."""
        self._listeners.append(listener)

    def _on_change(self) -> None:
        for listener in list(self._listeners):
            listener()

    @property
    def language(self) -> RecognitionLanguage:
        return RECOGNITION_LANGUAGES[self._language_index]

    @property
    def is_listening(self) -> bool:
        with self._lock:
            return self._session is not None and self._session.active

    def cycle_language(self) -> RecognitionLanguage:
        """Rotate Cantonese → Mandarin → English → Cantonese."""
        self._language_index = (self._language_index + 1) % len(RECOGNITION_LANGUAGES)
        logger.mic(f"Recognition language: {self.language.code}")
        self._on_change()
        return self.language

    def toggle(self) -> bool:
        """Start listening if idle, stop if listening. Returns the new listening state."""
        if self.is_listening:
            self.stop()
        else:
            self.start()
        return self.is_listening

    def start(self) -> bool:
        if self.is_listening:
            logger.warning("start() while already listening, ignoring")
            return False
        if self._backend is None:
            self._notify(SPEECH_INPUT_UNAVAILABLE)
            return False

        # Taking the focus silences any local speech (barge-in)
        token = self._focus.acquire(FOCUS_OWNER, on_lost=self.stop)
        session = _ListeningSession(token)
        with self._lock:
            self._session = session
        logger.mic(f"Listening ({self.language.code})...")
        self._on_change()

        try:
            self._backend.start(
                self.language,
                on_result=lambda results: self._on_result(session, results),
                on_error=lambda error: self._on_error(session, error),
                on_end=lambda: self._end(session),
            )
        except Exception as e:
            logger.mic(f"Could not start recognition: {e}")
            self._end(session)
            return False
        return True

    def stop(self) -> None:
        with self._lock:
            session = self._session
        if session is None or not session.active:
            return
        logger.mic("Stopping recognition")
        self._backend.stop()
        self._end(session)

    def clear_transcript(self) -> None:
        """
        Empty the buffer once its text has been used. A session that has
        already stopped is detached, so its late final transcription is dropped.
        """
        with self._lock:
            self.transcript = ""
            if self._session is not None and not self._session.active:
                self._session = None
        self._on_change()

    def _on_result(self, session: _ListeningSession, results: List[List[str]]) -> None:
        with self._lock:
            if session is not self._session:
                return
            # Replace, never append: each event carries the full current results
            self.transcript = "".join(alternatives[0] for alternatives in results if alternatives)
        self._on_change()

    def _on_error(self, session: _ListeningSession, error: str) -> None:
        logger.mic(f"Recognition error: {error}")
        self._end(session)

    def _end(self, session: _ListeningSession) -> None:
        with self._lock:
            if not session.active:
                return
            session.active = False
        self._focus.release(session.token)
        self._on_change()
