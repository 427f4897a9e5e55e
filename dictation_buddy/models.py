import io
import mimetypes
import os
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image, ImageOps


class DictationMode(str, Enum):
    """Selects the extraction schema and the practice behaviour."""
    PARAGRAPH = "paragraph"
    VOCAB = "vocab"
    IDIOM = "idiom"

    @property
    def label(self) -> str:
        return {
            DictationMode.PARAGRAPH: "段落默寫 (Paragraph)",
            DictationMode.VOCAB: "詞語默寫 (Words)",
            DictationMode.IDIOM: "成語默寫 (Idioms)",
        }[self]


class AudioLanguage(str, Enum):
    """Voice used to read dictation content aloud."""
    CANTONESE = "cantonese"
    MANDARIN = "mandarin"

    @property
    def locale(self) -> str:
        return "zh-HK" if self is AudioLanguage.CANTONESE else "zh-CN"

    @property
    def label(self) -> str:
        return "粵語 (Cantonese)" if self is AudioLanguage.CANTONESE else "普通話 (Mandarin)"


class Stage(str, Enum):
    READING = "reading"      # content hidden, learner writes from audio
    REVEALED = "revealed"    # answer shown


class Emotion(str, Enum):
    """Mascot animation state."""
    IDLE = "idle"
    HAPPY = "happy"
    THINKING = "thinking"
    SPEAKING = "speaking"
    SAD = "sad"


@dataclass(frozen=True)
class DictationItem:
    """One exercise item. Position in the item tuple is its reading order."""
    id: str                          # zero-based ordinal, assigned by extraction
    content: str                     # sentence, word or idiom
    meaning: str
    sub_content: str = ""            # pinyin / jyutping
    example: str = ""                # vocab mode only
    cloze_content: str = ""          # content with blanks
    is_new_paragraph: bool = False   # paragraph mode only


@dataclass(frozen=True)
class ChatMessage:
    """A single entry in the assistant chat log."""
    role: str                        # "user" or "model"
    text: str
    id: str = ""
    audio: Optional[bytes] = None

    @classmethod
    def create(cls, role: str, text: str, audio: Optional[bytes] = None) -> "ChatMessage":
        return cls(role=role, text=text, id=str(uuid.uuid4())[:8], audio=audio)


# Scanned pages larger than this (longest edge, px) are downscaled before upload
MAX_IMAGE_EDGE = 2048


@dataclass(frozen=True)
class Attachment:
    """Binary source material (scanned page or PDF) for extraction."""
    mime_type: str
    data: bytes
    name: str = ""

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @classmethod
    def from_path(cls, path: str) -> "Attachment":
        """
        Load an attachment from disk.

        Images are normalized (EXIF rotation applied, RGB, longest edge capped)
        and re-encoded as JPEG so phone photos of worksheets upload quickly.
        """
        name = os.path.basename(path)
        mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as f:
            data = f.read()

        if mime_type.startswith("image/"):
            data = normalize_scan(data)
            mime_type = "image/jpeg"

        return cls(mime_type=mime_type, data=data, name=name)


def normalize_scan(data: bytes) -> bytes:
    """Re-encode an image so the model sees it upright and at a sane size."""
    with Image.open(io.BytesIO(data)) as image:
        image = ImageOps.exif_transpose(image)
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.thumbnail((MAX_IMAGE_EDGE, MAX_IMAGE_EDGE))

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=90)
        return buffer.getvalue()
