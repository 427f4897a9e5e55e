"""
Practice session engine.

The reading/revealed stage machine is a set of pure functions over an
immutable SessionState, so it can be tested without any UI. The controller
wraps it and wires user actions to speech output, speech input and the
assistant.
"""

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from .background import run_inline
from .dialogue import AssistantDialogueService, build_context
from .logger import logger
from .messages import CHAT_FALLBACK, MEANING_PREFIX, SESSION_FINISHED
from .models import AudioLanguage, ChatMessage, DictationItem, DictationMode, Emotion, Stage
from .speech_input import SpeechInputAdapter
from .speech_output import NORMAL_RATE, SLOW_RATE, SpeechOutputAdapter, Utterance


@dataclass(frozen=True)
class SessionState:
    index: int = 0
    stage: Stage = Stage.READING
    finished: bool = False


def reveal(state: SessionState) -> SessionState:
    """reading → revealed. Any other state is returned unchanged."""
    if state.stage is Stage.READING:
        return replace(state, stage=Stage.REVEALED)
    return state


def advance(state: SessionState, length: int) -> Tuple[SessionState, bool]:
    """
    Move to the next item.

    The new index and the ``reading`` stage arrive in the same record, so no
    revealed state is ever observable on the new item. On the last item the
    state becomes finished and the second value is True, exactly once; later
    calls change nothing.
    """
    if state.finished:
        return state, False
    if state.index + 1 < length:
        return SessionState(index=state.index + 1, stage=Stage.READING), False
    return replace(state, finished=True), True


def playback_plan(mode: DictationMode, item: DictationItem) -> List[Utterance]:
    """What the dictation voice says when the learner presses play."""
    mode = DictationMode(mode)
    if mode is DictationMode.PARAGRAPH:
        return [Utterance(item.content, SLOW_RATE)]
    if mode is DictationMode.IDIOM:
        return [
            Utterance(item.content, NORMAL_RATE),
            Utterance(f"{MEANING_PREFIX}{item.meaning}", NORMAL_RATE),
        ]
    return [Utterance(item.content, NORMAL_RATE)]


class PracticeSessionController:
    """
    Owns the item list, the cursor and the mascot emotion for one session.

    ``post`` marshals completions from background workers back onto the UI
    thread (tkinter's ``after(0, ...)``); by default they run inline.
    """

    def __init__(
        self,
        items: Sequence[DictationItem],
        mode: DictationMode,
        audio_language: AudioLanguage,
        speech_output: SpeechOutputAdapter,
        speech_input: SpeechInputAdapter,
        dialogue: AssistantDialogueService,
        post: Callable[[Callable[[], None]], None] = run_inline,
    ) -> None:
        if not items:
            raise ValueError("A practice session needs at least one item")

        self.items: Tuple[DictationItem, ...] = tuple(items)
        self.mode = DictationMode(mode)
        self.audio_language = AudioLanguage(audio_language)
        self.speech_output = speech_output
        self.speech_input = speech_input
        self.dialogue = dialogue
        self._post = post
        self._state = SessionState()
        self._playback_serial = 0
        self.emotion = Emotion.IDLE
        self._listeners: List[Callable[["PracticeSessionController"], None]] = []

        speech_input.subscribe(lambda: self._post(self._changed))
        logger.ui(f"Practice session started: {len(self.items)} {self.mode.value} item(s), "
                  f"voice={self.audio_language.value}")

    # -----------------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_item(self) -> DictationItem:
        return self.items[self._state.index]

    @property
    def progress(self) -> Tuple[int, int]:
        """(1-based position, total)."""
        return self._state.index + 1, len(self.items)

    @property
    def is_last(self) -> bool:
        return self._state.index == len(self.items) - 1

    def add_listener(self, listener: Callable[["PracticeSessionController"], None]) -> None:
        self._listeners.append(listener)

    # -----------------------------------------------------------------------
    # Stage machine
    # -----------------------------------------------------------------------

    def reveal(self) -> SessionState:
        new_state = reveal(self._state)
        if new_state != self._state:
            logger.ui_transition(self._state.stage.value, new_state.stage.value)
            self._state = new_state
            self._changed()
        return self._state

    def advance(self) -> SessionState:
        old_state = self._state
        new_state, finished_now = advance(old_state, len(self.items))
        if new_state == old_state:
            return old_state

        if new_state.index != old_state.index:
            logger.ui_transition(f"item {old_state.index + 1}", f"item {new_state.index + 1}")
            self.emotion = Emotion.IDLE
        self._state = new_state

        if finished_now:
            logger.success("All items completed")
            self.dialogue.announce(SESSION_FINISHED)
            self.emotion = Emotion.HAPPY
        self._changed()
        return self._state

    # -----------------------------------------------------------------------
    # Audio
    # -----------------------------------------------------------------------

    def play(self) -> bool:
        """Read the current item aloud."""
        return self._play_current()

    def replay(self) -> bool:
        """Read the current item again (typically once revealed); the stage is untouched."""
        logger.ui(f"Replay requested in {self._state.stage.value} stage")
        return self._play_current()

    def _play_current(self) -> bool:
        utterances = playback_plan(self.mode, self.current_item)
        self._playback_serial += 1
        serial = self._playback_serial
        self.emotion = Emotion.SPEAKING
        self._changed()
        return self.speech_output.speak_sequence(
            utterances,
            self.audio_language,
            on_finished=lambda completed: self._post(lambda: self._on_speech_finished(serial)),
        )

    def _on_speech_finished(self, serial: int) -> None:
        # A replaced playback finishing must not end the newer one's animation
        if serial != self._playback_serial:
            return
        if self.emotion is Emotion.SPEAKING:
            self.emotion = Emotion.IDLE
            self._changed()

    # -----------------------------------------------------------------------
    # Voice input and chat
    # -----------------------------------------------------------------------

    def toggle_listening(self) -> bool:
        return self.speech_input.toggle()

    def cycle_input_language(self) -> str:
        return self.speech_input.cycle_language().code

    def send_message(self, text: Optional[str] = None) -> Optional[ChatMessage]:
        """Send typed text, or the current voice transcript when ``text`` is None."""
        text = self.speech_input.transcript if text is None else text
        if not text or not text.strip():
            return None

        context = build_context(self.mode, self.current_item, self.items)
        self.emotion = Emotion.THINKING
        user_message = self.dialogue.send(
            text,
            context,
            on_reply=lambda reply: self._post(lambda: self._on_reply(reply)),
        )
        self.speech_input.clear_transcript()
        self._changed()
        return user_message

    def _on_reply(self, reply: ChatMessage) -> None:
        self.emotion = Emotion.SAD if reply.text == CHAT_FALLBACK else Emotion.IDLE
        self._changed()

    def close(self) -> None:
        """Silence everything and drop pending replies; the session is discarded after this."""
        logger.ui("Closing practice session")
        self.speech_output.cancel()
        self.speech_input.stop()
        self.dialogue.close()
        self._listeners.clear()

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)
