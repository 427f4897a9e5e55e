"""
Runtime settings for Dictation Buddy.

The API key is expected in a .env file at the project root:

    OPENAI_API_KEY=sk-...

We use python-dotenv + os.getenv so secrets stay out of git. Everything else
has a sensible default and can be overridden the same way.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .logger import logger

DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_TTS_MODEL = "tts-1"      # tts-1 for speed, tts-1-hd for quality
DEFAULT_TTS_VOICE = "nova"       # clear female voice, works well for tonal languages
DEFAULT_STT_MODEL = "whisper-1"
DEFAULT_REQUEST_TIMEOUT = 60.0   # seconds


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, using {default}")
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning(f"{name}={raw!r} is not a boolean, using {default}")
    return default


def mask_key(key: str) -> str:
    """Show the first 8 and last 4 characters of a secret."""
    return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    chat_model: str = DEFAULT_CHAT_MODEL
    tts_model: str = DEFAULT_TTS_MODEL
    tts_voice: str = DEFAULT_TTS_VOICE
    stt_model: str = DEFAULT_STT_MODEL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    speak_replies: bool = True
    debug: bool = True

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Load .env (if present) and build settings from the environment."""
        logger.env("Loading environment variables from .env file...")
        if load_dotenv(dotenv_path):
            logger.env_success("dotenv file loaded successfully")
        else:
            logger.warning("No .env file found or file is empty")

        api_key = os.getenv("OPENAI_API_KEY") or None
        if api_key:
            logger.env_success(f"OPENAI_API_KEY found: {mask_key(api_key)}")
        else:
            logger.env_error("OPENAI_API_KEY not found in environment!")
            logger.warning("Extraction will return no items and chat will use fallback replies")

        settings = cls(
            openai_api_key=api_key,
            chat_model=os.getenv("DICTATION_CHAT_MODEL") or DEFAULT_CHAT_MODEL,
            tts_model=os.getenv("DICTATION_TTS_MODEL") or DEFAULT_TTS_MODEL,
            tts_voice=os.getenv("DICTATION_TTS_VOICE") or DEFAULT_TTS_VOICE,
            stt_model=os.getenv("DICTATION_STT_MODEL") or DEFAULT_STT_MODEL,
            request_timeout=_env_float("DICTATION_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            speak_replies=_env_bool("DICTATION_SPEAK_REPLIES", True),
            debug=_env_bool("DICTATION_DEBUG", True),
        )
        logger.env(f"Chat model: {settings.chat_model}, TTS: {settings.tts_model}/{settings.tts_voice}, "
                   f"STT: {settings.stt_model}, timeout: {settings.request_timeout:.0f}s")
        return settings
