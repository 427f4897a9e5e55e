"""Helpers for running blocking work off the UI thread."""

import threading
from typing import Callable

# Signature of the injectable "run this somewhere else" hook used by components.
# Tests pass a runner that calls the function immediately.
BackgroundRunner = Callable[[Callable[[], None]], None]


def run_in_thread(target: Callable[[], None]) -> None:
    """Start ``target`` on a daemon thread and return immediately."""
    thread = threading.Thread(target=target, daemon=True)
    thread.start()


def run_inline(target: Callable[[], None]) -> None:
    target()
