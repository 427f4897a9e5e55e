"""
Setup step: submit source material, wait for extraction, start a session.

Enforces the extraction caller contract: one extraction in flight at a time,
and an empty result never opens the practice view. The user gets a
content-missing notice instead.
"""

from typing import Callable, List, Optional, Sequence

from .background import run_inline
from .extraction import ContentExtractionService, ExtractionJob
from .logger import logger
from .messages import CONTENT_MISSING
from .models import Attachment, AudioLanguage, DictationItem, DictationMode

ReadyHandler = Callable[[List[DictationItem], DictationMode, AudioLanguage], None]


class SetupFlow:
    def __init__(
        self,
        extraction: ContentExtractionService,
        on_ready: ReadyHandler,
        notify: Callable[[str], None],
        post: Callable[[Callable[[], None]], None] = run_inline,
        on_loading_changed: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self.extraction = extraction
        self._on_ready = on_ready
        self._notify = notify
        self._post = post
        self._on_loading_changed = on_loading_changed or (lambda loading: None)
        self._job: Optional[ExtractionJob] = None

    @property
    def is_loading(self) -> bool:
        return self._job is not None

    def submit(
        self,
        raw_text: str,
        attachments: Sequence[Attachment],
        mode: DictationMode,
        audio_language: AudioLanguage,
    ) -> bool:
        """
        Start extracting. Returns False when there is nothing to extract or an
        extraction is already running.
        """
        if not raw_text.strip() and not attachments:
            logger.ui("Submit ignored: no text and no attachments")
            return False
        if self.is_loading:
            logger.warning("Extraction already in progress, ignoring duplicate submit")
            return False

        mode = DictationMode(mode)
        audio_language = AudioLanguage(audio_language)
        job = ExtractionJob()
        self._set_job(job)

        def _on_items(items: List[DictationItem]) -> None:
            self._post(lambda: self._finish(job, items, mode, audio_language))

        self.extraction.extract_async(raw_text, list(attachments), mode, _on_items, job=job)
        return True

    def cancel(self) -> None:
        """Abandon the running extraction; its result is dropped."""
        if self._job is None:
            return
        logger.ui("Extraction cancelled by user")
        self._job.cancel()
        self._set_job(None)

    def _finish(
        self,
        job: ExtractionJob,
        items: List[DictationItem],
        mode: DictationMode,
        audio_language: AudioLanguage,
    ) -> None:
        if job.cancelled or self._job is not job:
            return
        self._set_job(None)

        if not items:
            self._notify(CONTENT_MISSING)
            return
        logger.ui_transition("setup", "practice")
        self._on_ready(items, mode, audio_language)

    def _set_job(self, job: Optional[ExtractionJob]) -> None:
        was_loading = self.is_loading
        self._job = job
        if was_loading != self.is_loading:
            self._on_loading_changed(self.is_loading)
