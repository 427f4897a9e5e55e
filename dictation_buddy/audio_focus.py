"""
Audio focus: the single token shared by local speech output and speech input.

Whoever acquires the focus first makes the current holder let go, so starting
the microphone silences the dictation voice (barge-in) and starting the voice
ends listening. Assistant reply audio does not take part.
"""

import itertools
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .logger import logger


@dataclass(frozen=True)
class FocusToken:
    owner: str
    serial: int


class AudioFocus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._serials = itertools.count(1)
        self._holder: Optional[FocusToken] = None
        self._on_lost: Optional[Callable[[], None]] = None

    @property
    def holder(self) -> Optional[str]:
        with self._lock:
            return self._holder.owner if self._holder else None

    def acquire(self, owner: str, on_lost: Callable[[], None]) -> FocusToken:
        """
        Take the focus for ``owner``.

        The previous holder's ``on_lost`` runs (outside the lock) before this
        call returns, so the device is free once we hold the token.
        """
        with self._lock:
            previous = self._holder
            previous_on_lost = self._on_lost
            token = FocusToken(owner=owner, serial=next(self._serials))
            self._holder = token
            self._on_lost = on_lost

        if previous is not None and previous_on_lost is not None:
            logger.debug(f"Audio focus: {previous.owner} → {owner}")
            previous_on_lost()
        return token

    def release(self, token: FocusToken) -> bool:
        """Give the focus back. Stale tokens are ignored."""
        with self._lock:
            if self._holder != token:
                return False
            self._holder = None
            self._on_lost = None
            return True

    def is_held(self, token: FocusToken) -> bool:
        with self._lock:
            return self._holder == token
