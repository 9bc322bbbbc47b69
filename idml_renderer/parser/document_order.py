"""Document-order trace of text fragments and breaks scanned from raw story XML.

The generic tree groups children by tag, so the interleaving of ``Content`` and
``Br`` inside a ``CharacterStyleRange`` is lost once parsed. The trace restores
it: for every range (numbered in opening-tag order) it records how many breaks
follow each fragment.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from idml_renderer.utils.text_normalizer import TextNormalizer

_TOKEN_PATTERN = re.compile(r"<(/?)(CharacterStyleRange|Content|Br)\b[^>]*?(/?)>")
_PI_PATTERN = re.compile(r"<\?.*?\?>", re.S)
_COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.S)

_NORMALIZER = TextNormalizer()


def fragment_key(text: str) -> str:
    """Comparable form of a fragment, shared by raw and tree-side text."""
    return TextNormalizer.normalize_line_endings(text)


@dataclass(slots=True)
class RunTrace:
    """Fragments of one character range in literal order with their break-after counts."""

    index: int
    leading_breaks: int = 0
    fragments: List[str] = field(default_factory=list)
    breaks_after: List[int] = field(default_factory=list)

    @property
    def signature(self) -> Tuple[str, ...]:
        return tuple(self.fragments)

    @property
    def total_breaks(self) -> int:
        return self.leading_breaks + sum(self.breaks_after)


@dataclass(slots=True)
class StoryTrace:
    runs: List[RunTrace] = field(default_factory=list)

    def find(self, index: int, fragments: Sequence[str], consumed: Set[int]) -> Optional[RunTrace]:
        """Locate the trace entry for the ``index``-th range visited in the tree.

        The positional candidate is used when its fragments match; otherwise the
        first unconsumed entry with identical fragments is taken.
        """
        signature = tuple(fragment_key(text) for text in fragments)
        if 0 <= index < len(self.runs):
            candidate = self.runs[index]
            if candidate.index not in consumed and candidate.signature == signature:
                consumed.add(candidate.index)
                return candidate
        for candidate in self.runs:
            if candidate.index not in consumed and candidate.signature == signature:
                consumed.add(candidate.index)
                return candidate
        return None


def build_story_trace(raw_text: str) -> StoryTrace:
    """Scan unparsed story XML and record fragments/breaks per character range."""
    source = _COMMENT_PATTERN.sub("", raw_text)
    trace = StoryTrace()
    stack: List[RunTrace] = []
    content_start: Optional[int] = None

    for match in _TOKEN_PATTERN.finditer(source):
        closing, name, self_closing = match.group(1), match.group(2), match.group(3)
        if name == "CharacterStyleRange":
            if closing:
                if stack:
                    stack.pop()
                continue
            run = RunTrace(index=len(trace.runs))
            trace.runs.append(run)
            if not self_closing:
                stack.append(run)
            continue

        if not stack:
            continue
        current = stack[-1]
        if name == "Content":
            if closing:
                if content_start is not None and current.fragments:
                    current.fragments[-1] = _decode_fragment(source[content_start:match.start()])
                content_start = None
            else:
                current.fragments.append("")
                current.breaks_after.append(0)
                content_start = None if self_closing else match.end()
        elif not closing:
            if current.breaks_after:
                current.breaks_after[-1] += 1
            else:
                current.leading_breaks += 1
    return trace


def _decode_fragment(raw: str) -> str:
    text = _PI_PATTERN.sub("", raw)
    return fragment_key(_NORMALIZER.decode_entities(text))
