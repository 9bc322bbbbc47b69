"""Resource model: styles, fonts, swatches and resolved formatting snapshots."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

PARAGRAPH = "paragraph"
CHARACTER = "character"

RGB_SPACE = "RGB"
CMYK_SPACE = "CMYK"
NAMED_SPACE = "named"


@dataclass(slots=True)
class StyleDefinition:
    """A paragraph or character style with its own (unresolved) attributes."""

    style_id: str
    style_type: str
    name: Optional[str]
    properties: Dict[str, object] = field(default_factory=dict)
    based_on: Optional[str] = None
    group: Optional[str] = None


@dataclass(slots=True)
class FontRecord:
    """A single face of a font family."""

    font_id: str
    family: str
    name: Optional[str] = None
    postscript_name: Optional[str] = None
    style_name: Optional[str] = None
    status: Optional[str] = None


@dataclass(slots=True)
class FontFamily:
    family_id: str
    name: str
    fonts: List[FontRecord] = field(default_factory=list)


@dataclass(slots=True)
class ColorDefinition:
    """A swatch. Exactly one of ``rgb``/``cmyk`` is authoritative, per ``space``."""

    color_id: str
    name: Optional[str]
    space: str
    model: Optional[str] = None
    rgb: Optional[Tuple[float, float, float]] = None
    cmyk: Optional[Tuple[float, float, float, float]] = None
    custom_black: bool = False
    background_category: Optional[str] = None


@dataclass(slots=True)
class GradientStop:
    stop_color: Optional[str]
    location: float = 0.0
    midpoint: float = 50.0


@dataclass(slots=True)
class GradientDefinition:
    gradient_id: str
    name: Optional[str]
    gradient_type: Optional[str] = None
    stops: List[GradientStop] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ResolvedFormatting:
    """Fully resolved typography for one run; holds values, not style references."""

    font_family: str
    font_style: str
    font_size: float
    font_size_px: float
    fill_color: Optional[str]
    color: str
    alignment: str
    paragraph_style: Optional[str] = None
    character_style: Optional[str] = None
    stroke_color: Optional[str] = None
    leading: float = 0.0
    leading_type: str = "auto"
    line_height: float = 1.2
    left_indent: float = 0.0
    right_indent: float = 0.0
    first_line_indent: float = 0.0
    space_before: float = 0.0
    space_after: float = 0.0
    tracking: float = 0.0
    kerning: Optional[object] = None
    horizontal_scale: float = 100.0
    vertical_scale: float = 100.0
    baseline_shift: float = 0.0
    capitalization: Optional[str] = None
    underline: bool = False
    strike_through: bool = False


class ResourceCatalog:
    """Read-only collection of the document's styles, fonts and swatches."""

    def __init__(
        self,
        paragraph_styles: Mapping[str, StyleDefinition],
        character_styles: Mapping[str, StyleDefinition],
        font_families: Mapping[str, FontFamily],
        colors: Mapping[str, ColorDefinition],
        gradients: Optional[Mapping[str, GradientDefinition]] = None,
    ) -> None:
        self._styles: Dict[str, Dict[str, StyleDefinition]] = {
            PARAGRAPH: dict(paragraph_styles),
            CHARACTER: dict(character_styles),
        }
        self._fonts = dict(font_families)
        self._colors = dict(colors)
        self._gradients = dict(gradients or {})
        self._font_lookup = self._build_font_lookup()

    def get(self, style_type: str, style_id: Optional[str]) -> Optional[StyleDefinition]:
        """Return the style of ``style_type`` with the given identifier."""
        if style_id is None:
            return None
        return self._styles.get(style_type, {}).get(style_id)

    def all(self, style_type: str) -> Mapping[str, StyleDefinition]:
        """Return a copy of the styles of one kind."""
        return dict(self._styles.get(style_type, {}))

    @property
    def paragraph_styles(self) -> Mapping[str, StyleDefinition]:
        return self.all(PARAGRAPH)

    @property
    def character_styles(self) -> Mapping[str, StyleDefinition]:
        return self.all(CHARACTER)

    @property
    def font_families(self) -> Mapping[str, FontFamily]:
        return dict(self._fonts)

    @property
    def colors(self) -> Mapping[str, ColorDefinition]:
        return dict(self._colors)

    @property
    def gradients(self) -> Mapping[str, GradientDefinition]:
        return dict(self._gradients)

    def get_color(self, color_id: Optional[str]) -> Optional[ColorDefinition]:
        if color_id is None:
            return None
        return self._colors.get(color_id)

    def first_font_family(self) -> Optional[str]:
        for family in self._fonts.values():
            return family.name
        return None

    def font_family_for(self, reference: str) -> Optional[str]:
        """Exact lookup of a font reference by id, family, name or PostScript name."""
        return self._font_lookup.get(reference)

    def _build_font_lookup(self) -> Dict[str, str]:
        lookup: Dict[str, str] = {}
        for family in self._fonts.values():
            lookup.setdefault(family.family_id, family.name)
            lookup.setdefault(family.name, family.name)
            for font in family.fonts:
                for key in (font.font_id, font.name, font.postscript_name):
                    if key:
                        lookup.setdefault(key, family.name)
        return lookup
