"""Story content: ordered formatted runs plus derived text metrics."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from idml_renderer.model.style_model import ResolvedFormatting

BREAK_EXPLICIT = "explicit"
BREAK_IMPLICIT = "implicit"
BREAK_PARAGRAPH = "paragraph"
BREAK_EMPTY_PARAGRAPH = "empty-paragraph"


@dataclass(frozen=True, slots=True)
class FormattedRun:
    """One emitted piece of story text in document order."""

    text: str
    formatting: Optional[ResolvedFormatting] = None
    is_break: bool = False
    break_type: Optional[str] = None
    is_space: bool = False
    is_placeholder: bool = False


@dataclass(slots=True)
class LineBreakStats:
    explicit: int = 0
    implicit: int = 0
    paragraph: int = 0
    empty_paragraph: int = 0

    @property
    def total(self) -> int:
        return self.explicit + self.implicit + self.paragraph + self.empty_paragraph

    def count(self, break_type: Optional[str]) -> None:
        if break_type == BREAK_EXPLICIT:
            self.explicit += 1
        elif break_type == BREAK_IMPLICIT:
            self.implicit += 1
        elif break_type == BREAK_PARAGRAPH:
            self.paragraph += 1
        elif break_type == BREAK_EMPTY_PARAGRAPH:
            self.empty_paragraph += 1


@dataclass(slots=True)
class Story:
    """Reconstructed content of one ``Stories/Story_*.xml`` file."""

    story_id: str
    source_file: Optional[str]
    runs: List[FormattedRun] = field(default_factory=list)
    text: str = ""
    word_count: int = 0
    character_count: int = 0
    line_breaks: LineBreakStats = field(default_factory=LineBreakStats)
    newline_count: int = 0
    summary: Optional[ResolvedFormatting] = None
    attributes: Dict[str, object] = field(default_factory=dict)

    @property
    def has_line_breaks(self) -> bool:
        return self.newline_count > 0
