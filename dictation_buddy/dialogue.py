"""
The dictation assistant: a short, encouraging chat partner that knows the
current item and the whole list.

Replies never fail from the caller's point of view. A backend error becomes a
fixed fallback sentence, and a failed voice rendering just leaves the reply
as text.
"""

import threading
from typing import Callable, List, Optional, Sequence

from .background import BackgroundRunner, run_in_thread
from .client import ServiceClient
from .logger import logger
from .messages import ASSISTANT_GREETING, CHAT_EMPTY_REPLY, CHAT_FALLBACK
from .models import ChatMessage, DictationItem, DictationMode
from .speech_output import SpeechOutputAdapter

HISTORY_WINDOW = 5

ASSISTANT_PERSONA = (
    "You are a friendly, encouraging robot assistant helping a child study "
    "Chinese dictation. Keep every answer short and encouraging. "
    "Reply in Traditional Chinese."
)


def build_context(mode: DictationMode, item: DictationItem, items: Sequence[DictationItem]) -> str:
    """Flatten the session into the free-text context given to the assistant."""
    full_list = ", ".join(i.content for i in items)
    return (f"Mode: {DictationMode(mode).value}. Current Item: {item.content}. "
            f"Meaning: {item.meaning}. Full List: {full_list}")


class AssistantDialogueService:
    def __init__(
        self,
        client: ServiceClient,
        speech_output: Optional[SpeechOutputAdapter] = None,
        speak_replies: bool = True,
        run_in_background: BackgroundRunner = run_in_thread,
    ) -> None:
        self.client = client
        self.speech_output = speech_output
        self.speak_replies = speak_replies
        self._run_in_background = run_in_background
        self._lock = threading.Lock()
        self._messages: List[ChatMessage] = [ChatMessage.create("model", ASSISTANT_GREETING)]
        self._closed = False

    @property
    def messages(self) -> List[ChatMessage]:
        """Snapshot of the chat log."""
        with self._lock:
            return list(self._messages)

    def history_window(self) -> List[dict]:
        """The most recent turns as ``{role, text}`` dicts."""
        with self._lock:
            recent = self._messages[-HISTORY_WINDOW:]
        return [{"role": m.role, "text": m.text} for m in recent]

    def announce(self, text: str) -> ChatMessage:
        """Append a message from the assistant."""
        message = ChatMessage.create("model", text)
        self._append(message)
        return message

    def reply(self, history: List[dict], message: str, context: str) -> str:
        """
        Produce the assistant's reply. Always returns non-empty text.
        """
        messages = [{"role": "system", "content": f"{ASSISTANT_PERSONA}\nContext: {context or 'No specific list.'}"}]
        for turn in history:
            role = "assistant" if turn["role"] == "model" else "user"
            messages.append({"role": role, "content": turn["text"]})
        messages.append({"role": "user", "content": message})

        try:
            text = self.client.complete_text(messages)
        except Exception as e:
            logger.api_error(f"Chat failed: {e}")
            return CHAT_FALLBACK
        return text or CHAT_EMPTY_REPLY

    def send(
        self,
        message: str,
        context: str,
        on_reply: Optional[Callable[[ChatMessage], None]] = None,
    ) -> Optional[ChatMessage]:
        """
        Post a user message and fetch the reply in the background.

        The history window is read before the new message is appended. Returns
        the appended user message, or None for blank input.
        """
        message = message.strip()
        if not message:
            return None

        history = self.history_window()
        user_message = ChatMessage.create("user", message)
        self._append(user_message)
        logger.task_start("assistant_reply")

        def _reply() -> None:
            text = self.reply(history, message, context)
            if self._closed:
                logger.task("assistant_reply finished after close, dropped")
                return
            reply = self.announce(text)
            logger.task_complete("assistant_reply")
            if on_reply:
                on_reply(reply)
            self._speak(text)

        self._run_in_background(_reply)
        return user_message

    def close(self) -> None:
        """Drop replies that are still in flight."""
        self._closed = True

    def _append(self, message: ChatMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def _speak(self, text: str) -> None:
        if not self.speak_replies or self.speech_output is None or not self.client.is_available():
            return
        try:
            audio = self.client.synthesize_speech(text)
        except Exception as e:
            logger.speech_error(f"Assistant speech generation failed: {e}")
            return
        if audio:
            self.speech_output.play_asset(audio)
