"""Resolve effective formatting and colors against the resource catalog."""
from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import StyleResolutionMiss
from idml_renderer.model.story import FormattedRun
from idml_renderer.model.style_model import CHARACTER, PARAGRAPH, ResolvedFormatting, ResourceCatalog
from idml_renderer.parser.styles_parser import PARAGRAPH_KEYS
from idml_renderer.utils import colors
from idml_renderer.utils.logger import get_logger

LOGGER = get_logger(__name__)

AUTO_LEADING_FACTOR = 1.2
MIN_LINE_HEIGHT = 0.8
TEXT_USAGE = "text"
BACKGROUND_USAGE = "background"

_BUILTIN_STYLE_MARKERS = ("[No paragraph style]", "[No character style]")


def process_leading(value: object, font_size: float) -> Tuple[float, str, float]:
    """Return ``(leading, leading_type, line_height_ratio)`` for a raw leading value."""
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "auto")):
        return round(font_size * AUTO_LEADING_FACTOR, 4), "auto", AUTO_LEADING_FACTOR
    if isinstance(value, str) and value.strip().endswith("%"):
        try:
            percent = float(value.strip()[:-1])
        except ValueError:
            return round(font_size * AUTO_LEADING_FACTOR, 4), "auto", AUTO_LEADING_FACTOR
        leading = font_size * percent / 100.0
        return round(leading, 4), "percentage", _line_height(leading, font_size)
    try:
        leading = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return round(font_size * AUTO_LEADING_FACTOR, 4), "auto", AUTO_LEADING_FACTOR
    return round(leading, 4), "fixed", _line_height(leading, font_size)


def _line_height(leading: float, font_size: float) -> float:
    if font_size <= 0:
        return AUTO_LEADING_FACTOR
    return round(max(MIN_LINE_HEIGHT, leading / font_size), 4)


class StyleResolver:
    """Applies run > character style > paragraph style > default precedence."""

    def __init__(self, catalog: ResourceCatalog, context: ProcessingContext) -> None:
        self._catalog = catalog
        self._context = context
        self._config = context.config
        self._effective: Dict[Tuple[str, str], Dict[str, object]] = {}
        self._reported: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Style chains
    def effective_attributes(self, style_type: str, style_id: Optional[str]) -> Dict[str, object]:
        """Attributes of a style merged along its ``basedOn`` chain, nearest wins.

        A chain that loops or exceeds ``max_style_depth`` is unresolvable: the
        style contributes nothing and document defaults apply.
        """
        if not style_id:
            return {}
        key = (style_type, style_id)
        cached = self._effective.get(key)
        if cached is not None:
            return dict(cached)

        chain = []
        visited: Set[str] = set()
        current: Optional[str] = style_id
        while current is not None:
            if current in visited:
                self._miss(style_type, style_id, f"basedOn cycle through {current}")
                chain = []
                break
            if len(chain) >= self._config.max_style_depth:
                self._miss(style_type, style_id, f"basedOn chain deeper than {self._config.max_style_depth}")
                chain = []
                break
            style = self._catalog.get(style_type, current)
            if style is None:
                if not current.endswith(_BUILTIN_STYLE_MARKERS):
                    self._miss(style_type, style_id, f"unknown {style_type} style {current}")
                break
            visited.add(current)
            chain.append(style)
            current = style.based_on

        merged: Dict[str, object] = {}
        for style in reversed(chain):
            merged.update(style.properties)
        self._effective[key] = merged
        return dict(merged)

    def _miss(self, style_type: str, style_id: str, reason: str) -> None:
        if (style_type, style_id) in self._reported:
            return
        self._reported.add((style_type, style_id))
        self._context.record(StyleResolutionMiss(f"{style_id}: {reason}", stage="styles"))

    # ------------------------------------------------------------------
    # Formatting
    def resolve_formatting(
        self,
        direct: Mapping[str, object],
        character_style: Optional[str],
        paragraph_style: Optional[str],
        paragraph_context: Optional[Mapping[str, object]] = None,
    ) -> ResolvedFormatting:
        """Resolve a run's formatting snapshot.

        ``paragraph_context`` carries attributes set directly on the enclosing
        paragraph range; only paragraph-level keys are taken from it.
        """
        merged: Dict[str, object] = {}
        merged.update(self.effective_attributes(PARAGRAPH, paragraph_style))
        merged.update(self.effective_attributes(CHARACTER, character_style))
        if paragraph_context:
            merged.update({k: v for k, v in paragraph_context.items() if k in PARAGRAPH_KEYS})
        merged.update(direct)

        config = self._config
        font_size = _as_float(merged.get("font_size"), config.default_font_size)
        if font_size <= 0:
            font_size = config.default_font_size
        leading, leading_type, line_height = process_leading(merged.get("leading"), font_size)
        fill_color = _as_ref(merged.get("fill_color")) or config.default_fill_color

        return ResolvedFormatting(
            font_family=self.resolve_font(_as_ref(merged.get("font_family"))),
            font_style=_as_ref(merged.get("font_style")) or config.default_font_style,
            font_size=font_size,
            font_size_px=self._context.units.to_pixels(font_size, "Points"),
            fill_color=fill_color,
            color=self.css_color(fill_color, TEXT_USAGE),
            alignment=_as_ref(merged.get("alignment")) or config.default_alignment,
            paragraph_style=paragraph_style,
            character_style=character_style,
            stroke_color=_as_ref(merged.get("stroke_color")),
            leading=leading,
            leading_type=leading_type,
            line_height=line_height,
            left_indent=_as_float(merged.get("left_indent"), 0.0),
            right_indent=_as_float(merged.get("right_indent"), 0.0),
            first_line_indent=_as_float(merged.get("first_line_indent"), 0.0),
            space_before=_as_float(merged.get("space_before"), 0.0),
            space_after=_as_float(merged.get("space_after"), 0.0),
            tracking=_as_float(merged.get("tracking"), 0.0),
            kerning=merged.get("kerning"),
            horizontal_scale=_as_float(merged.get("horizontal_scale"), 100.0),
            vertical_scale=_as_float(merged.get("vertical_scale"), 100.0),
            baseline_shift=_as_float(merged.get("baseline_shift"), 0.0),
            capitalization=_as_ref(merged.get("capitalization")),
            underline=_as_bool(merged.get("underline")),
            strike_through=_as_bool(merged.get("strike_through")),
        )

    def default_font(self) -> str:
        return self._catalog.first_font_family() or self._config.default_font_family

    def resolve_font(self, reference: Optional[str]) -> str:
        """Map a font reference onto a known family name."""
        if not reference:
            return self.default_font()
        exact = self._catalog.font_family_for(reference)
        if exact:
            return exact
        families = self._catalog.font_families
        if not families:
            return reference
        needle = reference.lower()
        for family in families.values():
            name = family.name.lower()
            if name and (name in needle or needle in name):
                return family.name
        LOGGER.debug("Font %r not in catalog, using default", reference)
        return self.default_font()

    # ------------------------------------------------------------------
    # Colors
    def resolve_color(self, color_ref: Optional[str]) -> Optional[colors.RGB]:
        """Resolve a swatch reference to RGB; ``None`` when unresolved or transparent."""
        if not color_ref or color_ref == colors.NONE_COLOR_ID:
            return None
        definition = self._catalog.get_color(color_ref)
        if definition is not None:
            if definition.rgb is not None and any(channel != 0 for channel in definition.rgb):
                return tuple(int(round(channel)) for channel in definition.rgb)  # type: ignore[return-value]
            if definition.cmyk is not None:
                return colors.cmyk_to_rgb(*definition.cmyk)
            if definition.rgb is not None and definition.custom_black:
                return 0, 0, 0
        named = colors.named_color(color_ref)
        if named is not None:
            return named
        cmyk = colors.parse_cmyk_from_ref(color_ref)
        if cmyk is not None:
            return colors.cmyk_to_rgb(*cmyk)
        return colors.parse_rgb_from_ref(color_ref)

    def css_color(self, color_ref: Optional[str], usage: str = TEXT_USAGE) -> str:
        """Resolved color as hex, falling back to black text or a transparent background."""
        rgb = self.resolve_color(color_ref)
        if rgb is None:
            if usage == BACKGROUND_USAGE or color_ref == colors.NONE_COLOR_ID:
                return colors.TRANSPARENT
            return colors.rgb_to_hex(0, 0, 0)
        return colors.rgb_to_hex(*rgb)

    def background_category(self, color_ref: Optional[str]) -> Optional[str]:
        definition = self._catalog.get_color(color_ref)
        if definition is not None and definition.background_category is not None:
            return definition.background_category
        if color_ref == colors.PAPER_COLOR_ID:
            return "paper"
        cmyk = colors.parse_cmyk_from_ref(color_ref)
        if cmyk is not None:
            return colors.analyze_cmyk_for_background(*cmyk)
        return None

    def story_summary(self, runs: Iterable[FormattedRun]) -> Optional[ResolvedFormatting]:
        """Dominant formatting of a story: the first non-break run's snapshot."""
        for run in runs:
            if not run.is_break and not run.is_space and run.formatting is not None:
                return run.formatting
        return None


def _as_ref(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _as_float(value: object, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)
