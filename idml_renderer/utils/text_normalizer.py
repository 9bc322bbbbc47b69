"""
Text normalization utilities for IDML story content.

Decodes residual XML entities, maps InDesign's special separator characters to
newlines and normalizes line endings without collapsing any of them.
"""
from __future__ import annotations

import re

_NAMED_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}


class TextNormalizer:
    """Normalizes text fragments extracted from story XML."""

    # InDesign encodes forced line breaks and paragraph separators as these.
    SPECIAL_CHARS = {
        "\u2028": "\n",     # Line separator → newline
        "\u2029": "\n\n",   # Paragraph separator → blank line
        "\ufeff": "",       # Byte order mark → remove
        "\u200b": "",       # Zero-width space → remove
    }

    CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
    TRAILING_SPACE_PATTERN = re.compile(r"[ \t]+\n")
    ENTITY_PATTERN = re.compile(r"&(#x[0-9a-fA-F]+|#\d+|amp|lt|gt|quot|apos);")
    WORD_SPLIT_PATTERN = re.compile(r"\s+")

    def decode_entities(self, text: str) -> str:
        """Decode entities that survived XML parsing (double-encoded content)."""
        if "&" not in text:
            return text
        return self.ENTITY_PATTERN.sub(self._decode_entity, text)

    def normalize_fragment(self, text: str) -> str:
        """Normalize one text fragment as it is emitted into a formatted run."""
        if not text:
            return text
        normalized = self.decode_entities(text)
        for original, replacement in self.SPECIAL_CHARS.items():
            normalized = normalized.replace(original, replacement)
        normalized = self.normalize_line_endings(normalized)
        return self.CONTROL_CHARS_PATTERN.sub("", normalized)

    def clean_plain_text(self, text: str) -> str:
        """Final pass over assembled story text; newlines are never collapsed."""
        cleaned = self.normalize_line_endings(text)
        return self.TRAILING_SPACE_PATTERN.sub("\n", cleaned)

    @staticmethod
    def normalize_line_endings(text: str) -> str:
        return text.replace("\r\n", "\n").replace("\r", "\n")

    def count_words(self, text: str) -> int:
        stripped = text.strip()
        if not stripped:
            return 0
        return len(self.WORD_SPLIT_PATTERN.split(stripped))

    @staticmethod
    def _decode_entity(match: "re.Match[str]") -> str:
        code = match.group(1)
        if not code.startswith("#"):
            return _NAMED_ENTITIES[code]
        try:
            value = int(code[2:], 16) if code.startswith("#x") else int(code[1:])
            return chr(value)
        except (ValueError, OverflowError):
            return match.group(0)
