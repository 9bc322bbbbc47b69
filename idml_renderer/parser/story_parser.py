"""Rebuild story text and formatted runs from ``Stories/*.xml`` trees."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Mapping, Optional, Set

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import MalformedXML, TextReconstructionFailure
from idml_renderer.model.story import (
    BREAK_EMPTY_PARAGRAPH,
    BREAK_EXPLICIT,
    BREAK_IMPLICIT,
    BREAK_PARAGRAPH,
    FormattedRun,
    LineBreakStats,
    Story,
)
from idml_renderer.model.style_model import ResolvedFormatting
from idml_renderer.parser.document_order import StoryTrace, build_story_trace
from idml_renderer.parser.style_resolver import StyleResolver
from idml_renderer.parser.styles_parser import PARAGRAPH_KEYS, extract_formatting, normalize_style_ref
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.text_normalizer import TextNormalizer
from idml_renderer.utils.xml_utils import (
    ElementNode,
    LeafNode,
    Node,
    NodeVisitor,
    Tree,
    as_list,
    is_attribute_key,
    root_node,
)

LOGGER = get_logger(__name__)

CHARACTER_RANGE = "CharacterStyleRange"
PARAGRAPH_RANGE = "ParagraphStyleRange"
CONTENT = "Content"
BREAK = "Br"

# Children that never carry story text.
NON_TEXT_TAGS = frozenset({"Properties", "StoryPreference", "InCopyExportOption", "MetadataPacketPreference"})

LEADING_PUNCTUATION = frozenset(".,;:!?(")
TRAILING_PUNCTUATION = frozenset(".,;:!?)")
HEADING_MARKERS = ("title", "heading", "header")
BODY_MARKERS = ("body", "text", "normal")
MAX_NESTING = 64

_RECOVERABLE = (TypeError, ValueError, AttributeError, KeyError, IndexError)


def distribute_breaks(total: int, fragment_count: int) -> List[int]:
    """Spread ``total`` breaks over fragments when no document-order trace exists.

    Non-terminal fragments share the breaks evenly with the remainder going to
    the later ones; the last fragment gets none. A single fragment gets none
    either: its breaks are appended after it by the caller.
    """
    if fragment_count <= 0:
        return []
    if fragment_count == 1 or total <= 0:
        return [0] * fragment_count
    slots = fragment_count - 1
    base, extra = divmod(total, slots)
    counts = [base + (1 if index >= slots - extra else 0) for index in range(slots)]
    return counts + [0]


def story_id_from_path(path: str) -> str:
    stem = PurePosixPath(path).stem
    return stem[len("Story_"):] if stem.startswith("Story_") else stem


@dataclass(slots=True)
class ParagraphContext:
    """Formatting inherited by runs inside a paragraph range."""

    style: Optional[str] = None
    direct: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class RangeInfo:
    """A character range prepared for emission."""

    node: Optional[ElementNode]
    fragments: List[str]
    tree_breaks: int
    formatting: ResolvedFormatting
    character_style: Optional[str]
    paragraph_style: Optional[str]

    @property
    def content(self) -> str:
        return "".join(self.fragments)

    @property
    def style_marker(self) -> Optional[str]:
        return self.character_style or self.paragraph_style


class StoryParser:
    """Turn story trees into :class:`Story` objects, one failure domain per story."""

    def __init__(self, resolver: StyleResolver, context: ProcessingContext) -> None:
        self._resolver = resolver
        self._context = context
        self._normalizer = TextNormalizer()

    def parse(self, stories: Mapping[str, Tree], raw_text: Mapping[str, str]) -> Dict[str, Story]:
        parsed: Dict[str, Story] = {}
        for path, tree in stories.items():
            try:
                story = self.parse_story(path, tree, raw_text.get(path))
            except _RECOVERABLE + (RecursionError,) as exc:
                self._context.record(
                    TextReconstructionFailure(f"story skipped: {exc}", file=path, stage="stories")
                )
                continue
            if story is None:
                continue
            if story.story_id in parsed:
                LOGGER.debug("Story %s defined twice, keeping the first", story.story_id)
                continue
            parsed[story.story_id] = story
        LOGGER.info("Reconstructed %d stories", len(parsed))
        return parsed

    def parse_story(self, path: str, tree: Tree, raw_text: Optional[str] = None) -> Optional[Story]:
        root = root_node(tree)
        if root is None:
            self._context.record(MalformedXML("story part has no root element", file=path, stage="stories"))
            return None
        story_node = root
        while story_node.element("Story") is not None:
            story_node = story_node.element("Story")  # type: ignore[assignment]

        trace = self._trace_for(path, raw_text)
        walker = _StoryWalker(self, path, trace)
        walker.visit_element(story_node)
        return self._build_story(path, story_node, walker.runs)

    # ------------------------------------------------------------------
    # Internal helpers
    def _trace_for(self, path: str, raw_text: Optional[str]) -> Optional[StoryTrace]:
        cached = self._context.trace_for(path)
        if cached is not None:
            return cached
        if not raw_text:
            LOGGER.debug("No raw text for %s; break placement falls back to distribution", path)
            return None
        trace = build_story_trace(raw_text)
        self._context.remember_trace(path, trace)
        return trace

    def _build_story(self, path: str, story_node: ElementNode, runs: List[FormattedRun]) -> Story:
        text = self._normalizer.clean_plain_text("".join(run.text for run in runs))
        stats = LineBreakStats()
        for run in runs:
            if run.is_break:
                stats.count(run.break_type)
        story_id = story_node.attr("Self")
        attributes = {key: value for key, value in story_node.attributes().items() if key != "Self"}
        return Story(
            story_id=str(story_id) if story_id is not None else story_id_from_path(path),
            source_file=path,
            runs=runs,
            text=text,
            word_count=self._normalizer.count_words(text),
            character_count=len(text),
            line_breaks=stats,
            newline_count=text.count("\n"),
            summary=self._resolver.story_summary(runs),
            attributes=attributes,
        )


class _StoryWalker(NodeVisitor):
    """Depth-first walk of one story emitting runs in document order."""

    def __init__(self, parser: StoryParser, path: str, trace: Optional[StoryTrace]) -> None:
        self._parser = parser
        self._resolver = parser._resolver
        self._context = parser._context
        self._normalizer = parser._normalizer
        self._config = parser._context.config
        self._path = path
        self._trace = trace
        self._consumed: Set[int] = set()
        self._range_index = 0
        self._depth = 0
        self._paragraphs: List[ParagraphContext] = [ParagraphContext()]
        self.runs: List[FormattedRun] = []

    # ------------------------------------------------------------------
    # Traversal
    def visit_element(self, node: ElementNode) -> None:
        if self._depth >= MAX_NESTING:
            LOGGER.warning("%s: nesting deeper than %d, remaining content ignored", self._path, MAX_NESTING)
            return
        self._depth += 1
        try:
            self._visit_children(node)
        finally:
            self._depth -= 1

    def visit_leaf(self, node: LeafNode) -> None:
        if node.tag == CONTENT and node.text:
            self._emit_text(node.text, self._context_formatting(None))

    def _visit_children(self, node: ElementNode) -> None:
        for tag in node.child_tags():
            if tag in NON_TEXT_TAGS:
                continue
            children = node.children(tag)
            if tag == PARAGRAPH_RANGE:
                self._visit_paragraphs(children)
            elif tag == CHARACTER_RANGE:
                self._emit_ranges(children)
            elif tag == CONTENT:
                formatting = self._context_formatting(node)
                for child in children:
                    self._emit_text(_node_text(child), formatting)
            elif tag == BREAK:
                self._emit_breaks(len(children), BREAK_EXPLICIT)
            else:
                for child in children:
                    self.visit(child)

    def _visit_paragraphs(self, paragraphs: List[Node]) -> None:
        last = len(paragraphs) - 1
        for position, paragraph in enumerate(paragraphs):
            before = len(self.runs)
            if isinstance(paragraph, ElementNode):
                self._paragraphs.append(self._paragraph_context(paragraph))
                try:
                    self.visit_element(paragraph)
                finally:
                    self._paragraphs.pop()
            elif paragraph.text:
                self._emit_text(paragraph.text, self._context_formatting(None))
            if len(self.runs) == before:
                self._emit_breaks(1, BREAK_EMPTY_PARAGRAPH)
            if position < last:
                self._append(FormattedRun("\n\n", is_break=True, break_type=BREAK_PARAGRAPH))

    def _paragraph_context(self, paragraph: ElementNode) -> ParagraphContext:
        inherited = self._paragraphs[-1]
        style = normalize_style_ref(paragraph.attr("AppliedParagraphStyle"), "ParagraphStyle/") or inherited.style
        direct = dict(inherited.direct)
        direct.update({k: v for k, v in extract_formatting(paragraph).items() if k in PARAGRAPH_KEYS})
        return ParagraphContext(style=style, direct=direct)

    # ------------------------------------------------------------------
    # Character ranges
    def _emit_ranges(self, nodes: List[Node]) -> None:
        ranges = [self._prepare_range(node) for node in nodes]
        for position, current in enumerate(ranges):
            self._emit_range(current)
            if current.node is not None:
                self._visit_nested(current.node)
            if position + 1 >= len(ranges):
                continue
            following = ranges[position + 1]
            if self._implicit_break_due(current, following):
                self._append(FormattedRun("\n", is_break=True, break_type=BREAK_IMPLICIT))
            elif not self.should_merge(current, following) and self._needs_space(following):
                self._append(FormattedRun(" ", formatting=current.formatting, is_space=True))

    def _prepare_range(self, node: Node) -> RangeInfo:
        paragraph = self._paragraphs[-1]
        if isinstance(node, LeafNode):
            formatting = self._resolver.resolve_formatting({}, None, paragraph.style, paragraph.direct)
            return RangeInfo(None, [node.text] if node.text else [], 0, formatting, None, paragraph.style)
        character_style = normalize_style_ref(node.attr("AppliedCharacterStyle"), "CharacterStyle/")
        paragraph_style = normalize_style_ref(node.attr("AppliedParagraphStyle"), "ParagraphStyle/") or paragraph.style
        formatting = self._resolver.resolve_formatting(
            extract_formatting(node), character_style, paragraph_style, paragraph.direct
        )
        fragments = [_node_text(child) for child in node.children(CONTENT)]
        return RangeInfo(
            node=node,
            fragments=fragments,
            tree_breaks=len(node.children(BREAK)),
            formatting=formatting,
            character_style=character_style,
            paragraph_style=paragraph_style,
        )

    def _emit_range(self, info: RangeInfo) -> None:
        index = self._range_index
        self._range_index += 1
        mark = len(self.runs)
        try:
            self._reconstruct(info, index)
        except _RECOVERABLE as exc:
            del self.runs[mark:]
            LOGGER.debug("%s: range %d failed (%s), trying emergency extraction", self._path, index, exc)
            try:
                self._emergency_extract(info)
            except _RECOVERABLE as inner:
                del self.runs[mark:]
                self._context.record(
                    TextReconstructionFailure(f"range {index}: {inner}", file=self._path, stage="stories")
                )
                self._append(FormattedRun(self._config.error_marker, formatting=info.formatting, is_placeholder=True))

    def _reconstruct(self, info: RangeInfo, index: int) -> None:
        if info.fragments and info.tree_breaks:
            run_trace = self._trace.find(index, info.fragments, self._consumed) if self._trace else None
            if run_trace is not None:
                if run_trace.total_breaks != info.tree_breaks:
                    LOGGER.debug(
                        "%s: range %d trace has %d breaks, tree has %d",
                        self._path,
                        index,
                        run_trace.total_breaks,
                        info.tree_breaks,
                    )
                self._emit_breaks(run_trace.leading_breaks, BREAK_EXPLICIT)
                for fragment, breaks in zip(info.fragments, run_trace.breaks_after):
                    self._emit_text(fragment, info.formatting)
                    self._emit_breaks(breaks, BREAK_EXPLICIT)
                return
            counts = distribute_breaks(info.tree_breaks, len(info.fragments))
            for fragment, breaks in zip(info.fragments, counts):
                self._emit_text(fragment, info.formatting)
                self._emit_breaks(breaks, BREAK_EXPLICIT)
            self._emit_breaks(info.tree_breaks - sum(counts), BREAK_EXPLICIT)
        elif info.fragments:
            for fragment in info.fragments:
                self._emit_text(fragment, info.formatting)
        elif info.tree_breaks:
            self._emit_breaks(info.tree_breaks, BREAK_EXPLICIT)
        else:
            self._emergency_extract(info)

    def _emergency_extract(self, info: RangeInfo) -> None:
        """Best effort: any string-valued field of the range, paired one-to-one with breaks.

        Raises ``ValueError`` when the range holds scalar content none of which
        could be read as text.
        """
        texts: List[str] = list(info.fragments)
        unreadable: List[str] = []
        if info.node is not None:
            for key, value in info.node.fields.items():
                if is_attribute_key(key) or key in (CONTENT, BREAK) or key in NON_TEXT_TAGS:
                    continue
                for item in as_list(value):
                    if isinstance(item, str):
                        if item.strip():
                            texts.append(item)
                    elif not isinstance(item, dict):
                        unreadable.append(key)
        breaks = info.tree_breaks
        if not texts and not breaks and unreadable:
            raise ValueError(f"no readable text in {sorted(set(unreadable))}")
        for position, text in enumerate(texts):
            self._emit_text(text, info.formatting)
            if position < breaks:
                self._emit_breaks(1, BREAK_EXPLICIT)
        self._emit_breaks(max(0, breaks - len(texts)), BREAK_EXPLICIT)

    def _visit_nested(self, node: ElementNode) -> None:
        """Visit structures nested inside a range (tables, notes, hyperlinks)."""
        for tag in node.child_tags():
            if tag in (CONTENT, BREAK) or tag in NON_TEXT_TAGS:
                continue
            for child in node.children(tag):
                if isinstance(child, ElementNode):
                    self.visit_element(child)
                else:
                    self.visit_leaf(child)

    # ------------------------------------------------------------------
    # Run boundary heuristics
    def should_merge(self, current: RangeInfo, following: RangeInfo) -> bool:
        """Whether two adjacent ranges form one token (no space between them)."""
        left, right = current.content, following.content
        if not left or not right:
            return False
        if left[-1].isspace() or right[0].isspace():
            return False
        if left[-1] in TRAILING_PUNCTUATION or right[0] in LEADING_PUNCTUATION:
            return False
        combined = left + right
        if combined.isalpha():
            return True
        same_style = (
            current.paragraph_style is not None
            and current.paragraph_style == following.paragraph_style
            and current.formatting.font_family == following.formatting.font_family
            and current.formatting.font_size == following.formatting.font_size
        )
        return same_style and len(combined) <= self._config.merge_max_length

    def _needs_space(self, following: RangeInfo) -> bool:
        emitted = self._tail_text()
        upcoming = following.content
        if not emitted or not upcoming.strip():
            return False
        if emitted[-1].isspace() or upcoming[0].isspace():
            return False
        if emitted[-1] in TRAILING_PUNCTUATION or upcoming[0] in LEADING_PUNCTUATION:
            return False
        return True

    @staticmethod
    def _implicit_break_due(current: RangeInfo, following: RangeInfo) -> bool:
        """Heading-to-body style transition without an explicit break between them."""
        if current.tree_breaks or following.tree_breaks:
            return False
        if not current.content.strip() or not following.content.strip():
            return False
        left, right = current.style_marker, following.style_marker
        if not left or not right or left == right:
            return False
        left, right = left.lower(), right.lower()
        return any(marker in left for marker in HEADING_MARKERS) and any(marker in right for marker in BODY_MARKERS)

    # ------------------------------------------------------------------
    # Emission
    def _context_formatting(self, node: Optional[ElementNode]) -> ResolvedFormatting:
        paragraph = self._paragraphs[-1]
        direct = extract_formatting(node) if node is not None else {}
        return self._resolver.resolve_formatting(direct, None, paragraph.style, paragraph.direct)

    def _emit_text(self, text: str, formatting: ResolvedFormatting) -> None:
        normalized = self._normalizer.normalize_fragment(text)
        if normalized:
            self._append(FormattedRun(normalized, formatting=formatting))

    def _emit_breaks(self, count: int, break_type: str) -> None:
        for _ in range(count):
            self._append(FormattedRun("\n", is_break=True, break_type=break_type))

    def _append(self, run: FormattedRun) -> None:
        self.runs.append(run)

    def _tail_text(self) -> str:
        for run in reversed(self.runs):
            if run.text:
                return run.text
        return ""


def _node_text(node: Node) -> str:
    if isinstance(node, LeafNode):
        return node.text
    return node.text or ""
