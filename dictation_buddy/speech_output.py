"""
Speech output for Dictation Buddy.

Two backends:
- a local synthesized voice (pyttsx3) that reads dictation content, picked by
  locale so Cantonese material is read in Cantonese when the OS has the voice;
- remote pre-rendered audio (OpenAI TTS MP3) for assistant replies, played
  through the shared pygame mixer.

At most one local utterance is audible at a time. Local speech holds the
audio focus while it plays, so starting the microphone cancels it.
"""

import io
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import pygame
import pyttsx3

from .audio_focus import AudioFocus, FocusToken
from .background import run_in_thread
from .logger import logger
from .messages import SPEECH_OUTPUT_UNAVAILABLE
from .models import AudioLanguage

NORMAL_RATE = 0.9
SLOW_RATE = 0.7

# pyttsx3's default speaking rate; utterance rates scale this
BASE_WORDS_PER_MINUTE = 200

DIALECT_TAGS = {
    AudioLanguage.CANTONESE: ("HK", "yue"),
    AudioLanguage.MANDARIN: ("CN",),
}
FAMILY_TAGS = ("CN", "zh")
FAMILY_LOCALE = "zh-CN"

FOCUS_OWNER = "speaker"


@dataclass(frozen=True)
class Voice:
    id: str
    name: str = ""
    languages: Tuple[str, ...] = ()

    def matches(self, tag: str) -> bool:
        haystack = " ".join(self.languages + (self.id, self.name)).lower()
        return tag.lower() in haystack


@dataclass(frozen=True)
class Utterance:
    text: str
    rate: float = NORMAL_RATE


def select_voice(voices: Sequence[Voice], language: AudioLanguage) -> Tuple[Optional[Voice], str]:
    """
    Pick a voice for the dictation language.

    Prefers a voice tagged for the dialect, otherwise falls back to the general
    Chinese family and reads with the family locale. Returns (voice, locale);
    voice is None when nothing matches and the engine default should be used.
    """
    for tag in DIALECT_TAGS[language]:
        for voice in voices:
            if voice.matches(tag):
                return voice, language.locale

    for tag in FAMILY_TAGS:
        for voice in voices:
            if voice.matches(tag):
                return voice, FAMILY_LOCALE

    return None, FAMILY_LOCALE


# ---------------------------------------------------------------------------
# Local voice backends
# ---------------------------------------------------------------------------

class LocalVoiceBackend:
    """Device text-to-speech capability."""

    def voices(self) -> List[Voice]:
        raise NotImplementedError

    def speak(
        self,
        text: str,
        voice_id: Optional[str],
        locale: str,
        rate: float,
        on_done: Callable[[bool], None],
    ) -> None:
        """Start speaking; ``on_done(completed)`` fires exactly once when it ends."""
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


def _decode_language(raw) -> str:
    # espeak reports languages as bytes with a leading priority byte
    if isinstance(raw, bytes):
        return raw[1:].decode("utf-8", errors="ignore") if raw[:1] < b" " else raw.decode("utf-8", errors="ignore")
    return str(raw)


class Pyttsx3Backend(LocalVoiceBackend):
    """Local voice via pyttsx3 (SAPI5 / NSSpeechSynthesizer / eSpeak)."""

    def __init__(self, engine=None) -> None:
        self._engine = engine if engine is not None else pyttsx3.init()
        self._engine_lock = threading.Lock()   # runAndWait is not re-entrant
        self._state_lock = threading.Lock()
        self._generation = 0
        # Read once here; the engine is busy inside runAndWait on worker threads later
        self._voices = self._read_voices()

    def _read_voices(self) -> List[Voice]:
        voices = []
        for v in self._engine.getProperty("voices") or []:
            languages = tuple(_decode_language(lang) for lang in (getattr(v, "languages", None) or []))
            voices.append(Voice(id=v.id, name=getattr(v, "name", "") or "", languages=languages))
        return voices

    def voices(self) -> List[Voice]:
        return list(self._voices)

    def speak(self, text, voice_id, locale, rate, on_done) -> None:
        with self._state_lock:
            self._generation += 1
            generation = self._generation

        def _speak() -> None:
            completed = False
            try:
                with self._engine_lock:
                    if generation == self._generation:
                        if voice_id:
                            self._engine.setProperty("voice", voice_id)
                        self._engine.setProperty("rate", int(BASE_WORDS_PER_MINUTE * rate))
                        logger.speech(f"pyttsx3 speaking ({locale}, rate {rate})")
                        self._engine.say(text)
                        self._engine.runAndWait()
                        completed = generation == self._generation
            except Exception as e:
                logger.speech_error(f"Local speech failed: {e}")
            on_done(completed)

        run_in_thread(_speak)

    def cancel(self) -> None:
        with self._state_lock:
            self._generation += 1
        try:
            self._engine.stop()
        except Exception as e:
            logger.speech_error(f"Failed to stop local speech: {e}")


def create_local_backend() -> Optional[LocalVoiceBackend]:
    """Initialize the device voice, or return None if the OS has no TTS driver."""
    try:
        backend = Pyttsx3Backend()
        logger.success(f"Local speech available: {len(backend.voices())} voice(s)")
        return backend
    except Exception as e:
        logger.warning(f"Local speech not available: {e}")
        return None


# ---------------------------------------------------------------------------
# Remote audio playback
# ---------------------------------------------------------------------------

class RemoteAudioPlayer:
    """Plays pre-rendered MP3 audio through the shared pygame mixer."""

    def __init__(self) -> None:
        if not pygame.mixer.get_init():
            pygame.mixer.init()

    def play(self, audio: bytes) -> None:
        pygame.mixer.music.load(io.BytesIO(audio), "mp3")
        pygame.mixer.music.play()

    def stop(self) -> None:
        pygame.mixer.music.stop()


def create_remote_player() -> Optional[RemoteAudioPlayer]:
    try:
        return RemoteAudioPlayer()
    except pygame.error as e:
        logger.warning(f"Audio playback not available: {e}")
        return None


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class _Sequence:
    def __init__(self, utterances: List[Utterance], on_finished: Callable[[bool], None]) -> None:
        self.utterances = utterances
        self.on_finished = on_finished
        self.position = 0
        self.cancelled = False
        self.finished = False
        self.token: Optional[FocusToken] = None
        self.voice_id: Optional[str] = None
        self.locale = FAMILY_LOCALE


class SpeechOutputAdapter:
    def __init__(
        self,
        local_backend: Optional[LocalVoiceBackend],
        remote_player: Optional[RemoteAudioPlayer],
        focus: AudioFocus,
        notify: Callable[[str], None] = logger.warning,
    ) -> None:
        self._local = local_backend
        self._remote = remote_player
        self._focus = focus
        self._notify = notify
        self._lock = threading.Lock()
        self._current: Optional[_Sequence] = None

    @property
    def is_available(self) -> bool:
        return self._local is not None

    @property
    def is_speaking(self) -> bool:
        with self._lock:
            return self._current is not None and not self._current.finished

    def speak_sequence(
        self,
        utterances: Sequence[Utterance],
        language: AudioLanguage,
        on_finished: Optional[Callable[[bool], None]] = None,
    ) -> bool:
        """
        Speak utterances one after another with the local voice.

        Each utterance starts only after the previous one reports completion.
        Any sequence already playing is cancelled first. ``on_finished`` runs
        once with True if every utterance completed, False on cancel or error.
        Returns False (after notifying the user) when no local voice exists.
        """
        on_finished = on_finished or (lambda completed: None)

        if self._local is None:
            self._notify(SPEECH_OUTPUT_UNAVAILABLE)
            on_finished(False)
            return False

        sequence = _Sequence(list(utterances), on_finished)
        try:
            voice, sequence.locale = select_voice(self._local.voices(), language)
        except Exception as e:
            logger.speech_error(f"Could not list voices: {e}")
            voice = None
        sequence.voice_id = voice.id if voice else None

        sequence.token = self._focus.acquire(FOCUS_OWNER, on_lost=lambda: self._stop(sequence))
        with self._lock:
            self._current = sequence

        self._speak_next(sequence)
        return True

    def cancel(self) -> None:
        """Silence the local voice. Remote playback is unaffected."""
        with self._lock:
            sequence = self._current
        if sequence is not None:
            self._stop(sequence)

    def play_asset(self, audio: bytes) -> bool:
        """Play pre-rendered audio. Failures are logged and reported as False."""
        if self._remote is None:
            logger.speech("No audio output for assistant speech, skipping")
            return False
        try:
            self._remote.play(audio)
            return True
        except Exception as e:
            logger.speech_error(f"Assistant audio playback failed: {e}")
            return False

    def _speak_next(self, sequence: _Sequence) -> None:
        if sequence.cancelled:
            return
        if sequence.position >= len(sequence.utterances):
            self._finish(sequence, True)
            return

        utterance = sequence.utterances[sequence.position]
        sequence.position += 1
        logger.speech_start(utterance.text)
        try:
            self._local.speak(
                utterance.text,
                sequence.voice_id,
                sequence.locale,
                utterance.rate,
                lambda completed: self._on_utterance_done(sequence, completed),
            )
        except Exception as e:
            logger.speech_error(f"Local speech failed: {e}")
            self._finish(sequence, False)

    def _on_utterance_done(self, sequence: _Sequence, completed: bool) -> None:
        if sequence.cancelled:
            return
        if completed:
            self._speak_next(sequence)
        else:
            self._finish(sequence, False)

    def _stop(self, sequence: _Sequence) -> None:
        with self._lock:
            if sequence.finished:
                return
            sequence.cancelled = True
        logger.speech("Cancelling local speech")
        self._local.cancel()
        self._finish(sequence, False)

    def _finish(self, sequence: _Sequence, completed: bool) -> None:
        with self._lock:
            if sequence.finished:
                return
            sequence.finished = True
            if self._current is sequence:
                self._current = None
        if sequence.token is not None:
            self._focus.release(sequence.token)
        sequence.on_finished(completed)
