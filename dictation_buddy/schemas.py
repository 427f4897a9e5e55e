"""
Per-mode extraction schemas.

Each dictation mode has its own schema variant carrying the instructions the
extraction model receives, the JSON item shape it must return, and the
normalization policy applied to every returned item. The variant is picked
once from the session mode and passed through extraction unchanged.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple

from .models import DictationMode

# Marker that replaces every blanked-out word in cloze content
CLOZE_MARKER = "______"

OCR_PREAMBLE = """
You are an expert Chinese language teacher preparing dictation practice for a
primary school pupil. Extract dictation content from the provided text and/or
scanned pages.

OCR RULES:
1. High precision: read Traditional Chinese exactly as printed.
2. Contextual correction: fix visually similar misreads (e.g. '傢' vs '像')
   using the surrounding sentence.
3. Output Traditional Chinese (Hong Kong standard).
4. Keep items in the order they appear in the source.
"""

PARAGRAPH_INSTRUCTIONS = f"""
MODE: Paragraph (article cloze)
- Split the source text into sentences, keeping reading order.
- Set "newParagraph": true when a sentence starts a new paragraph in the source.
- Write "clozeContent" for each sentence at HARD difficulty: blank out about
  two thirds (60-70%) of the content.
  - KEEP only simple particles (的, 了, 在, 是, 有, 著), simple pronouns
    (我, 你, 他), basic connecting words and all punctuation.
  - BLANK OUT nouns, verbs, adjectives, idioms, names and complex vocabulary.
  - Replace every blanked word with '{CLOZE_MARKER}'.
- "meaning" is a short, simple explanation of the sentence.

Return JSON:
{{
  "items": [
    {{
      "content": "the complete sentence",
      "clozeContent": "the sentence with about 2/3 of the words replaced by {CLOZE_MARKER}",
      "meaning": "simple meaning",
      "newParagraph": true
    }}
  ]
}}
"""

IDIOM_INSTRUCTIONS = """
MODE: Idioms (chengyu)
- Identify every four-character Chinese idiom in the source.
- Give its pinyin and its meaning explained in Traditional Chinese.

Return JSON:
{
  "items": [
    {
      "content": "the idiom",
      "subContent": "pinyin",
      "meaning": "explanation in Traditional Chinese"
    }
  ]
}
"""

VOCAB_INSTRUCTIONS = f"""
MODE: Vocabulary (contextual fill-in-the-blank)
- Identify the key vocabulary words.
- For EACH word, extract or write one simple example sentence that contains it.
- "clozeContent" is that example sentence with exactly the target word
  replaced by '{CLOZE_MARKER}'.
- Characters must be 100% accurate.

Return JSON:
{{
  "items": [
    {{
      "content": "the word",
      "subContent": "pinyin",
      "meaning": "simple Chinese definition",
      "example": "full example sentence containing the word",
      "clozeContent": "the example sentence with the word replaced by {CLOZE_MARKER}"
    }}
  ]
}}
"""


def _text(value: Any) -> str:
    """Coerce a model-supplied field to a stripped string ("" for missing)."""
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def blank_word(sentence: str, word: str) -> str:
    """Blank the first occurrence of ``word`` in ``sentence``."""
    if not word or word not in sentence:
        return ""
    return sentence.replace(word, CLOZE_MARKER, 1)


@dataclass(frozen=True)
class ModeSchema:
    """Field contract and generation policy for one dictation mode."""
    mode: DictationMode
    instructions: str
    item_fields: Tuple[Tuple[str, str], ...]   # (wire name, JSON type)
    required_fields: FrozenSet[str]

    @property
    def prompt(self) -> str:
        return OCR_PREAMBLE + self.instructions

    @property
    def response_format(self) -> Dict[str, Any]:
        """Structured-output format: an object whose ``items`` array holds this mode's item shape."""
        item = {
            "type": "object",
            "properties": {name: {"type": json_type} for name, json_type in self.item_fields},
            "required": sorted(self.required_fields),
        }
        return {
            "type": "json_schema",
            "json_schema": {
                "name": f"{self.mode.value}_items",
                "schema": {
                    "type": "object",
                    "properties": {"items": {"type": "array", "items": item}},
                    "required": ["items"],
                },
            },
        }

    def normalize(self, raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Coerce one raw model item into DictationItem fields.

        Returns None when the item has no usable content. Optional fields
        default to empty strings; meaning falls back to the phonetic
        annotation, then to the content itself, so it is never empty.
        """
        content = _text(raw.get("content"))
        if not content:
            return None

        sub_content = _text(raw.get("subContent") or raw.get("pinyin"))
        meaning = _text(raw.get("meaning")) or sub_content or content

        fields = {
            "content": content,
            "sub_content": sub_content,
            "meaning": meaning,
            "example": "",
            "cloze_content": _text(raw.get("clozeContent")),
            "is_new_paragraph": False,
        }
        return self._apply_mode_policy(raw, fields)

    def _apply_mode_policy(self, raw: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        return fields


class ParagraphSchema(ModeSchema):
    def _apply_mode_policy(self, raw, fields):
        # Sentences carry no phonetic line, so it cannot stand in for the meaning either
        if fields["meaning"] == fields["sub_content"]:
            fields["meaning"] = fields["content"]
        fields["sub_content"] = ""
        fields["is_new_paragraph"] = _flag(raw.get("newParagraph", raw.get("isNewParagraph", False)))
        return fields


class IdiomSchema(ModeSchema):
    def _apply_mode_policy(self, raw, fields):
        # Idioms are drilled as a whole; no cloze variant
        fields["cloze_content"] = ""
        return fields


class VocabSchema(ModeSchema):
    def _apply_mode_policy(self, raw, fields):
        example = _text(raw.get("example"))
        cloze = fields["cloze_content"]
        if CLOZE_MARKER not in cloze:
            cloze = blank_word(example, fields["content"])
        fields["example"] = example
        fields["cloze_content"] = cloze
        return fields


SCHEMAS: Dict[DictationMode, ModeSchema] = {
    DictationMode.PARAGRAPH: ParagraphSchema(
        mode=DictationMode.PARAGRAPH,
        instructions=PARAGRAPH_INSTRUCTIONS,
        item_fields=(
            ("content", "string"),
            ("clozeContent", "string"),
            ("meaning", "string"),
            ("newParagraph", "boolean"),
        ),
        required_fields=frozenset({"content", "clozeContent", "newParagraph"}),
    ),
    DictationMode.IDIOM: IdiomSchema(
        mode=DictationMode.IDIOM,
        instructions=IDIOM_INSTRUCTIONS,
        item_fields=(("content", "string"), ("subContent", "string"), ("meaning", "string")),
        required_fields=frozenset({"content", "meaning"}),
    ),
    DictationMode.VOCAB: VocabSchema(
        mode=DictationMode.VOCAB,
        instructions=VOCAB_INSTRUCTIONS,
        item_fields=(
            ("content", "string"),
            ("subContent", "string"),
            ("meaning", "string"),
            ("example", "string"),
            ("clozeContent", "string"),
        ),
        required_fields=frozenset({"content", "meaning", "example", "clozeContent"}),
    ),
}


def schema_for(mode: DictationMode) -> ModeSchema:
    """Return the schema variant for a mode."""
    return SCHEMAS[DictationMode(mode)]
