"""
Pytest Configuration and Fixtures.

Fake device backends and a fake service client so the core can be exercised
without a microphone, speakers or network access. Background work runs inline.
"""
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dictation_buddy.audio_focus import AudioFocus  # noqa: E402
from dictation_buddy.background import run_inline  # noqa: E402
from dictation_buddy.dialogue import AssistantDialogueService  # noqa: E402
from dictation_buddy.logger import logger  # noqa: E402
from dictation_buddy.models import DictationItem  # noqa: E402
from dictation_buddy.speech_input import RecognitionBackend, SpeechInputAdapter  # noqa: E402
from dictation_buddy.speech_output import LocalVoiceBackend, SpeechOutputAdapter, Voice  # noqa: E402

# Keep test output readable
logger.enabled = False


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeVoiceBackend(LocalVoiceBackend):
    """
    Records utterances. With ``auto_complete`` every utterance finishes
    immediately; otherwise tests call ``complete()`` to finish the current one.
    """

    def __init__(self, voices: Optional[List[Voice]] = None, auto_complete: bool = False) -> None:
        self._voices = voices if voices is not None else [Voice(id="zh-HK-voice", name="Sin-ji", languages=("zh_HK",))]
        self.auto_complete = auto_complete
        self.spoken: List[dict] = []
        self.cancels = 0
        self._pending: Optional[Callable[[bool], None]] = None

    def voices(self) -> List[Voice]:
        return list(self._voices)

    def speak(self, text, voice_id, locale, rate, on_done) -> None:
        self.spoken.append({"text": text, "voice_id": voice_id, "locale": locale, "rate": rate})
        if self.auto_complete:
            on_done(True)
        else:
            self._pending = on_done

    @property
    def texts(self) -> List[str]:
        return [entry["text"] for entry in self.spoken]

    @property
    def busy(self) -> bool:
        return self._pending is not None

    def complete(self, completed: bool = True) -> None:
        on_done, self._pending = self._pending, None
        assert on_done is not None, "nothing is being spoken"
        on_done(completed)

    def cancel(self) -> None:
        self.cancels += 1
        on_done, self._pending = self._pending, None
        if on_done is not None:
            on_done(False)


class FakeRecognitionBackend(RecognitionBackend):
    """Captures the callbacks of the latest start() so tests can drive them."""

    def __init__(self) -> None:
        self.started: List[Any] = []
        self.stops = 0
        self.on_result = None
        self.on_error = None
        self.on_end = None

    def start(self, language, on_result, on_error, on_end) -> None:
        self.started.append(language)
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end

    def stop(self) -> None:
        self.stops += 1

    def emit(self, *transcripts: str) -> None:
        self.on_result([[text] for text in transcripts])


class FakeRemotePlayer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.played: List[bytes] = []

    def play(self, audio: bytes) -> None:
        if self.fail:
            raise RuntimeError("mixer exploded")
        self.played.append(audio)

    def stop(self) -> None:
        pass


class FakeServiceClient:
    """Stands in for ServiceClient; each response may be a value or an exception."""

    def __init__(
        self,
        json_response: Any = None,
        text_response: Any = "好！",
        speech_response: Any = b"mp3-bytes",
        available: bool = True,
    ) -> None:
        self.json_response = json_response
        self.text_response = text_response
        self.speech_response = speech_response
        self.available = available
        self.json_calls: List[dict] = []
        self.text_calls: List[list] = []
        self.speech_calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    @staticmethod
    def _resolve(response: Any) -> Any:
        if isinstance(response, BaseException):
            raise response
        return response

    def complete_json(self, messages, temperature=0.2, allow_retries=True, response_format=None):
        self.json_calls.append({
            "messages": messages,
            "allow_retries": allow_retries,
            "response_format": response_format,
        })
        return self._resolve(self.json_response)

    def complete_text(self, messages, temperature=0.7):
        self.text_calls.append(messages)
        return self._resolve(self.text_response)

    def synthesize_speech(self, text):
        self.speech_calls.append(text)
        return self._resolve(self.speech_response)


class Notices:
    """Collects user-facing notices."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def focus():
    return AudioFocus()


@pytest.fixture
def notices():
    return Notices()


@pytest.fixture
def voice_backend():
    return FakeVoiceBackend()


@pytest.fixture
def recognition_backend():
    return FakeRecognitionBackend()


@pytest.fixture
def remote_player():
    return FakeRemotePlayer()


@pytest.fixture
def service_client():
    return FakeServiceClient()


@pytest.fixture
def speech_output(voice_backend, remote_player, focus, notices):
    return SpeechOutputAdapter(voice_backend, remote_player, focus, notify=notices)


@pytest.fixture
def speech_input(recognition_backend, focus, notices):
    return SpeechInputAdapter(recognition_backend, focus, notify=notices)


@pytest.fixture
def dialogue(service_client, speech_output):
    return AssistantDialogueService(service_client, speech_output, run_in_background=run_inline)


@pytest.fixture
def sample_items():
    """Two vocab items for a short session."""
    return [
        DictationItem(id="0", content="獅子", meaning="lion", sub_content="si1 zi2"),
        DictationItem(id="1", content="老虎", meaning="tiger", sub_content="lou5 fu2"),
    ]


@pytest.fixture
def sample_idiom():
    return DictationItem(id="0", content="一石二鳥", meaning="一個行動達到兩個目的", sub_content="jat1 sek6 ji6 niu5")
