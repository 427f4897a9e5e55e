"""
Content extraction: source material in, ordered dictation items out.

A single best-effort model call per invocation. Every failure collapses to an
empty list; callers treat ``[]`` as "no content extracted".
"""

import base64
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .background import BackgroundRunner, run_in_thread
from .client import ServiceClient
from .errors import MalformedResponse
from .logger import logger
from .models import Attachment, DictationItem, DictationMode
from .schemas import ModeSchema, schema_for


@dataclass(frozen=True)
class ExtractionRequest:
    """Everything the model needs to produce one item list."""
    mode: DictationMode
    raw_text: str = ""
    attachments: Sequence[Attachment] = field(default_factory=tuple)

    def to_payload(self) -> Dict[str, Any]:
        """Wire form: ``{rawText?, attachments: [{mimeType, binaryData}], mode}``."""
        payload: Dict[str, Any] = {
            "attachments": [
                {
                    "mimeType": attachment.mime_type,
                    "binaryData": base64.b64encode(attachment.data).decode("ascii"),
                }
                for attachment in self.attachments
            ],
            "mode": self.mode.value,
        }
        if self.raw_text.strip():
            payload["rawText"] = self.raw_text
        return payload

    def to_messages(self, schema: ModeSchema) -> List[Dict[str, Any]]:
        """Build chat messages: instructions first, then attachments, then text."""
        payload = self.to_payload()
        parts: List[Dict[str, Any]] = []

        for attachment, wire in zip(self.attachments, payload["attachments"]):
            data_uri = f"data:{wire['mimeType']};base64,{wire['binaryData']}"
            if attachment.is_image:
                parts.append({"type": "image_url", "image_url": {"url": data_uri}})
            else:
                parts.append({
                    "type": "file",
                    "file": {"filename": attachment.name or "source.pdf", "file_data": data_uri},
                })

        if "rawText" in payload:
            parts.append({"type": "text", "text": f'Text content to process: "{payload["rawText"]}"'})

        return [
            {"role": "system", "content": schema.prompt},
            {"role": "user", "content": parts},
        ]


def _raw_items(data: Any) -> List[Dict[str, Any]]:
    """Pull the item array out of the model's JSON, validating its shape."""
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected an item array, got {type(data).__name__}")
    for entry in data:
        if not isinstance(entry, dict):
            raise MalformedResponse(f"Expected item objects, got {type(entry).__name__}")
    return data


def build_items(raw_items: List[Dict[str, Any]], schema: ModeSchema) -> List[DictationItem]:
    """
    Normalize raw items into DictationItems, preserving source order.

    IDs are the final array positions; any id the model supplied is ignored.
    """
    normalized = []
    for raw in raw_items:
        fields = schema.normalize(raw)
        if fields is None:
            logger.warning(f"Dropping item without content: {raw!r:.80}")
            continue
        normalized.append(fields)

    return [DictationItem(id=str(index), **fields) for index, fields in enumerate(normalized)]


class ExtractionJob:
    """Handle for an in-flight background extraction."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Drop the result; the completion callback will not run."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


class ContentExtractionService:
    def __init__(self, client: ServiceClient, run_in_background: BackgroundRunner = run_in_thread) -> None:
        self.client = client
        self._run_in_background = run_in_background

    def extract(
        self,
        raw_text: Optional[str],
        attachments: Sequence[Attachment],
        mode: DictationMode,
    ) -> List[DictationItem]:
        """
        Extract dictation items from text and/or attachments.

        Returns the items in source order, or ``[]`` if anything goes wrong.
        Never raises.
        """
        mode = DictationMode(mode)
        request = ExtractionRequest(mode=mode, raw_text=raw_text or "", attachments=tuple(attachments))
        schema = schema_for(mode)
        logger.api(f"extract() - mode={mode.value}, {len(request.raw_text)} chars, "
                   f"{len(request.attachments)} attachment(s)")

        try:
            data = self.client.complete_json(
                request.to_messages(schema),
                allow_retries=False,
                response_format=schema.response_format,
            )
            items = build_items(_raw_items(data), schema)
        except Exception as e:
            logger.api_error(f"Extraction failed: {e}", exc_info=True)
            return []

        if items:
            logger.success(f"Extracted {len(items)} {mode.value} item(s)")
        else:
            logger.warning("Extraction succeeded but found no content")
        return items

    def extract_async(
        self,
        raw_text: Optional[str],
        attachments: Sequence[Attachment],
        mode: DictationMode,
        callback: Callable[[List[DictationItem]], None],
        job: Optional[ExtractionJob] = None,
    ) -> ExtractionJob:
        """Run ``extract`` on a background worker and hand the items to ``callback``."""
        job = job or ExtractionJob()
        logger.task_start("async_extraction")

        def _extract() -> None:
            start_time = time.perf_counter()
            items = self.extract(raw_text, attachments, mode)
            duration_ms = (time.perf_counter() - start_time) * 1000

            if job.cancelled:
                logger.task("async_extraction finished after cancel, result dropped")
                return
            logger.task_complete("async_extraction", duration_ms=duration_ms)
            callback(items)

        self._run_in_background(_extract)
        return job
