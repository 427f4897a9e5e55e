"""
Colour-coded console logging for Dictation Buddy.

Every line carries a wall-clock time, the time since start-up and a short
category tag, so a single run can be followed across the UI thread and the
background workers:

    14:02:11.532 (+   3.4s) [ API] → Calling chat.completions.create (model: gpt-4o-mini)
    14:02:13.101 (+   5.0s) [ SPK] → Speaking: "一石二鳥"

Usage:
    from dictation_buddy.logger import logger

    logger.speech("Speaking 4 chars at rate 0.9")
    logger.api_error("Extraction failed", exc_info=True)
"""

import sys
import time
import traceback
from datetime import datetime
from typing import Optional, TextIO

# Chinese content and status glyphs must print on Windows consoles too
for _stream in (sys.stdout, sys.stderr):
    if hasattr(_stream, "reconfigure"):
        _stream.reconfigure(encoding="utf-8")

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"

RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
MAGENTA = "\033[95m"
CYAN = "\033[96m"
WHITE = "\033[37m"

# Default colour per category tag
CATEGORY_COLORS = {
    "ENV": MAGENTA,   # settings, .env
    "API": CYAN,      # OpenAI calls
    "SPK": YELLOW,    # dictation voice, assistant audio
    "MIC": MAGENTA,   # microphone, recognition
    "UI": BLUE,       # cards, session stage
    "TASK": WHITE,    # background workers
    "OK": GREEN,
    "WARN": YELLOW,
    "ERR": RED,
    "INFO": WHITE,
    "DBG": DIM,
}


def _clip(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class DebugLogger:
    """
    Categorized console logger.

    ``enabled`` is switched from settings at start-up (``DICTATION_DEBUG``);
    ``color`` defaults to on when stdout is a terminal.
    """

    def __init__(self, enabled: bool = True, stream: Optional[TextIO] = None, color: Optional[bool] = None):
        self.enabled = enabled
        self._stream = stream
        self.color = color if color is not None else sys.stdout.isatty()
        self._start_time = datetime.now()

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def _paint(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return "".join(codes) + text + RESET

    def _timestamp(self) -> str:
        now = datetime.now()
        elapsed = (now - self._start_time).total_seconds()
        return f"{now.strftime('%H:%M:%S')}.{now.microsecond // 1000:03d} (+{elapsed:>6.1f}s)"

    def _log(self, category: str, message: str, color: Optional[str] = None, exc_info: bool = False) -> None:
        if not self.enabled:
            return

        timestamp = self._timestamp()
        tag = self._paint(f"[{category:>4}]", color or CATEGORY_COLORS.get(category, WHITE), BOLD)
        indent = " " * (len(timestamp) + 8)

        first, *rest = message.split("\n")
        print(f"{self._paint(timestamp, DIM)} {tag} {first}", file=self.stream, flush=True)
        for line in rest:
            print(f"{indent}{line}", file=self.stream, flush=True)

        if exc_info:
            for line in traceback.format_exc().splitlines():
                if line.strip():
                    print(self._paint(f"{indent}{line}", RED), file=sys.stderr, flush=True)

    # === Configuration ===
    def env(self, message: str, **kwargs) -> None:
        """Settings and .env loading."""
        self._log("ENV", message, **kwargs)

    def env_success(self, message: str, **kwargs) -> None:
        self._log("ENV", f"✓ {message}", color=GREEN, **kwargs)

    def env_error(self, message: str, **kwargs) -> None:
        self._log("ENV", f"✗ {message}", color=RED, **kwargs)

    # === OpenAI ===
    def api(self, message: str, **kwargs) -> None:
        self._log("API", message, **kwargs)

    def api_call(self, endpoint: str, model: Optional[str] = None, **kwargs) -> None:
        model_info = f" (model: {model})" if model else ""
        self._log("API", f"→ Calling {endpoint}{model_info}", **kwargs)

    def api_response(self, endpoint: str, duration_ms: Optional[float] = None, **kwargs) -> None:
        duration_info = f" ({duration_ms:.0f}ms)" if duration_ms else ""
        self._log("API", f"← Response from {endpoint}{duration_info}", **kwargs)

    def api_error(self, message: str, **kwargs) -> None:
        self._log("API", f"✗ {message}", color=RED, **kwargs)

    # === Speech output ===
    def speech(self, message: str, **kwargs) -> None:
        """Dictation voice and assistant reply audio."""
        self._log("SPK", message, **kwargs)

    def speech_start(self, text: str, **kwargs) -> None:
        self._log("SPK", f'→ Speaking: "{_clip(text)}"', **kwargs)

    def speech_error(self, message: str, **kwargs) -> None:
        self._log("SPK", f"✗ {message}", color=RED, **kwargs)

    # === Speech input ===
    def mic(self, message: str, **kwargs) -> None:
        self._log("MIC", message, **kwargs)

    # === Cards and practice stage ===
    def ui(self, message: str, **kwargs) -> None:
        self._log("UI", message, **kwargs)

    def ui_transition(self, from_state: str, to_state: str, **kwargs) -> None:
        self._log("UI", f"{from_state} → {to_state}", **kwargs)

    # === Background workers ===
    def task(self, message: str, **kwargs) -> None:
        self._log("TASK", message, **kwargs)

    def task_start(self, task_name: str, **kwargs) -> None:
        self._log("TASK", f"⚡ Starting: {task_name}", **kwargs)

    def task_complete(self, task_name: str, duration_ms: Optional[float] = None, **kwargs) -> None:
        duration_info = f" ({duration_ms:.0f}ms)" if duration_ms else ""
        self._log("TASK", f"✓ Completed: {task_name}{duration_info}", color=GREEN, **kwargs)

    def task_error(self, task_name: str, error: str, **kwargs) -> None:
        self._log("TASK", f"✗ Failed: {task_name} - {error}", color=RED, **kwargs)

    # === General status ===
    def success(self, message: str, **kwargs) -> None:
        self._log("OK", f"✓ {message}", **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log("WARN", f"⚠ {message}", **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log("ERR", f"✗ {message}", **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log("INFO", message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._log("DBG", message, **kwargs)

    # === Layout ===
    def separator(self, title: Optional[str] = None) -> None:
        if not self.enabled:
            return
        line = f"{'─' * 20} {title} {'─' * 20}" if title else "─" * 60
        print(f"\n{self._paint(line, DIM)}\n", file=self.stream, flush=True)

    def banner(self, text: str) -> None:
        if not self.enabled:
            return
        width = max(60, len(text) + 4)
        print(self._paint(f"\n{'═' * width}\n{text.center(width)}\n{'═' * width}\n", CYAN, BOLD),
              file=self.stream, flush=True)


# Global logger instance
logger = DebugLogger(enabled=True)


class Timer:
    """Context manager measuring a block in milliseconds (``duration_ms``)."""

    def __init__(self):
        self.duration_ms: float = 0
        self._start: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args) -> None:
        self.duration_ms = (time.perf_counter() - self._start) * 1000
