"""Extract styles, fonts and swatches from the ``Resources/`` parts."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import MalformedXML
from idml_renderer.model.style_model import (
    CHARACTER,
    CMYK_SPACE,
    NAMED_SPACE,
    PARAGRAPH,
    RGB_SPACE,
    ColorDefinition,
    FontFamily,
    FontRecord,
    GradientDefinition,
    GradientStop,
    ResourceCatalog,
    StyleDefinition,
)
from idml_renderer.utils import colors
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.xml_utils import ElementNode, Tree, root_node

LOGGER = get_logger(__name__)

STYLES_PART = "Resources/Styles.xml"
FONTS_PART = "Resources/Fonts.xml"
GRAPHIC_PART = "Resources/Graphic.xml"

# IDML attribute name -> formatting key shared by styles and text runs.
FORMATTING_ATTRIBUTES: Dict[str, str] = {
    "AppliedFont": "font_family",
    "FontStyle": "font_style",
    "PointSize": "font_size",
    "FillColor": "fill_color",
    "StrokeColor": "stroke_color",
    "Justification": "alignment",
    "LeftIndent": "left_indent",
    "RightIndent": "right_indent",
    "FirstLineIndent": "first_line_indent",
    "SpaceBefore": "space_before",
    "SpaceAfter": "space_after",
    "Leading": "leading",
    "Tracking": "tracking",
    "KerningMethod": "kerning",
    "HorizontalScale": "horizontal_scale",
    "VerticalScale": "vertical_scale",
    "BaselineShift": "baseline_shift",
    "Capitalization": "capitalization",
    "Underline": "underline",
    "StrikeThru": "strike_through",
}

# Formatting keys that belong to the paragraph rather than the run.
PARAGRAPH_KEYS = frozenset(
    {"alignment", "left_indent", "right_indent", "first_line_indent", "space_before", "space_after"}
)

_STYLE_KINDS = (
    (PARAGRAPH, "RootParagraphStyleGroup", "ParagraphStyleGroup", "ParagraphStyle", "ParagraphStyle/"),
    (CHARACTER, "RootCharacterStyleGroup", "CharacterStyleGroup", "CharacterStyle", "CharacterStyle/"),
)

_BUILTIN_SWATCHES = ("Black", "Paper", "Registration")


def extract_formatting(node: ElementNode) -> Dict[str, object]:
    """Read the formatting attributes present on a style or text range."""
    found: Dict[str, object] = {}
    for attribute, key in FORMATTING_ATTRIBUTES.items():
        value = node.attr(attribute)
        if value is None or value == "":
            value = node.property_value(attribute)
        if value is None or value == "":
            continue
        found[key] = value
    return found


def normalize_style_ref(reference: Any, prefix: str) -> Optional[str]:
    """Bring ``BasedOn``/``Applied*Style`` values into ``Kind/Name`` id form."""
    if reference is None:
        return None
    text = str(reference).strip()
    if not text or text.lower() in ("n", "none"):
        return None
    if text.startswith(prefix):
        return text
    return prefix + text


class StylesParser:
    """Parse IDML resource parts into a :class:`ResourceCatalog`."""

    def __init__(self, resources: Mapping[str, Tree], context: ProcessingContext) -> None:
        self._resources = resources
        self._context = context

    def parse(self) -> ResourceCatalog:
        """Build the catalog; unreadable parts are skipped and recorded."""
        paragraph_styles: Dict[str, StyleDefinition] = {}
        character_styles: Dict[str, StyleDefinition] = {}
        font_families: Dict[str, FontFamily] = {}
        color_defs: Dict[str, ColorDefinition] = {}
        gradients: Dict[str, GradientDefinition] = {}

        for name, tree in self._resources.items():
            root = root_node(tree)
            if root is None:
                self._context.record(MalformedXML("resource part has no root element", file=name, stage="resources"))
                continue
            if name == STYLES_PART:
                collected = self._collect_styles(root)
                paragraph_styles.update(collected[PARAGRAPH])
                character_styles.update(collected[CHARACTER])
            elif name == FONTS_PART:
                font_families.update(self._collect_fonts(root))
            elif name == GRAPHIC_PART:
                color_defs.update(self._collect_colors(root))
                gradients.update(self._collect_gradients(root))
            else:
                LOGGER.debug("Resource part %s handled elsewhere", name)

        self._add_builtin_swatches(color_defs)
        LOGGER.info(
            "Resources: %d paragraph styles, %d character styles, %d font families, %d colors",
            len(paragraph_styles),
            len(character_styles),
            len(font_families),
            len(color_defs),
        )
        return ResourceCatalog(paragraph_styles, character_styles, font_families, color_defs, gradients)

    # ------------------------------------------------------------------
    # Styles
    def _collect_styles(self, root: ElementNode) -> Dict[str, Dict[str, StyleDefinition]]:
        collected: Dict[str, Dict[str, StyleDefinition]] = {PARAGRAPH: {}, CHARACTER: {}}
        for kind, root_group, group_tag, style_tag, prefix in _STYLE_KINDS:
            for group in root.children(root_group):
                if isinstance(group, ElementNode):
                    self._walk_style_group(group, kind, group_tag, style_tag, prefix, collected[kind], None)
        return collected

    def _walk_style_group(
        self,
        group: ElementNode,
        kind: str,
        group_tag: str,
        style_tag: str,
        prefix: str,
        into: Dict[str, StyleDefinition],
        group_name: Optional[str],
    ) -> None:
        for node in group.children(style_tag):
            if not isinstance(node, ElementNode):
                continue
            style = self._build_style(node, kind, prefix, group_name)
            if style is None:
                continue
            if style.style_id in into:
                LOGGER.debug("Duplicate %s style %s, keeping the first definition", kind, style.style_id)
                continue
            into[style.style_id] = style
        for nested in group.children(group_tag):
            if isinstance(nested, ElementNode):
                name = nested.attr("Name")
                self._walk_style_group(nested, kind, group_tag, style_tag, prefix, into, str(name) if name else group_name)

    def _build_style(
        self, node: ElementNode, kind: str, prefix: str, group_name: Optional[str]
    ) -> Optional[StyleDefinition]:
        style_id = node.attr("Self")
        if not style_id:
            return None
        based_on = node.property_value("BasedOn")
        if based_on is None:
            based_on = node.attr("BasedOn")
        name = node.attr("Name")
        return StyleDefinition(
            style_id=str(style_id),
            style_type=kind,
            name=str(name) if name is not None else None,
            properties=extract_formatting(node),
            based_on=normalize_style_ref(based_on, prefix),
            group=group_name,
        )

    # ------------------------------------------------------------------
    # Fonts
    def _collect_fonts(self, root: ElementNode) -> Dict[str, FontFamily]:
        families: Dict[str, FontFamily] = {}
        for node in root.children("FontFamily"):
            if not isinstance(node, ElementNode):
                continue
            family_id = str(node.attr("Self") or node.attr("Name") or "")
            family_name = str(node.attr("Name") or family_id)
            if not family_id:
                continue
            family = FontFamily(family_id=family_id, name=family_name)
            for font_node in node.children("Font"):
                if not isinstance(font_node, ElementNode):
                    continue
                family.fonts.append(
                    FontRecord(
                        font_id=str(font_node.attr("Self") or ""),
                        family=str(font_node.attr("FontFamily") or family_name),
                        name=_optional_str(font_node.attr("Name")),
                        postscript_name=_optional_str(font_node.attr("PostScriptName")),
                        style_name=_optional_str(font_node.attr("FontStyleName")),
                        status=_optional_str(font_node.attr("Status")),
                    )
                )
            families[family_id] = family
        return families

    # ------------------------------------------------------------------
    # Swatches
    def _collect_colors(self, root: ElementNode) -> Dict[str, ColorDefinition]:
        found: Dict[str, ColorDefinition] = {}
        for node in root.children("Color"):
            if isinstance(node, ElementNode):
                color = self._build_color(node)
                if color is not None:
                    found[color.color_id] = color
        for node in root.children("Tint"):
            if isinstance(node, ElementNode):
                tint = self._build_tint(node, found)
                if tint is not None:
                    found[tint.color_id] = tint
        return found

    def _build_color(self, node: ElementNode) -> Optional[ColorDefinition]:
        color_id = node.attr("Self")
        if not color_id:
            return None
        color_id = str(color_id)
        space = str(node.attr("Space") or "CMYK").upper()
        values = _parse_components(node.attr("ColorValue"))
        name = _optional_str(node.attr("Name"))
        model = _optional_str(node.attr("Model"))

        if space == "RGB":
            explicit = values is not None and len(values) >= 3
            if not explicit:
                values = _discrete_components(node, ("Red", "Green", "Blue"))
                explicit = values is not None
            rgb = tuple(values[:3]) if values else (0.0, 0.0, 0.0)
            return ColorDefinition(
                color_id=color_id,
                name=name,
                space=RGB_SPACE,
                model=model,
                rgb=rgb,  # type: ignore[arg-type]
                custom_black=explicit and not any(rgb),
                background_category="paper" if color_id == colors.PAPER_COLOR_ID else None,
            )
        if space == "CMYK":
            if values is None or len(values) < 4:
                values = _discrete_components(node, ("Cyan", "Magenta", "Yellow", "Black"))
            if values is None:
                values = colors.parse_cmyk_from_ref(color_id)
            cmyk = tuple(values[:4]) if values else (0.0, 0.0, 0.0, 0.0)
            return ColorDefinition(
                color_id=color_id,
                name=name,
                space=CMYK_SPACE,
                model=model,
                cmyk=cmyk,  # type: ignore[arg-type]
                background_category=colors.analyze_cmyk_for_background(*cmyk, color_id=color_id),
            )
        LOGGER.debug("Color %s uses unsupported space %s, keeping it as a named swatch", color_id, space)
        return ColorDefinition(color_id=color_id, name=name, space=NAMED_SPACE, model=model)

    def _build_tint(self, node: ElementNode, known: Mapping[str, ColorDefinition]) -> Optional[ColorDefinition]:
        tint_id = node.attr("Self")
        base = known.get(str(node.attr("BaseColor") or ""))
        if not tint_id or base is None:
            return None
        try:
            ratio = float(node.attr("TintValue", 100)) / 100.0
        except (TypeError, ValueError):
            ratio = 1.0
        if ratio < 0:
            ratio = 1.0
        if base.cmyk is not None:
            cmyk = tuple(round(v * ratio, 4) for v in base.cmyk)
            return ColorDefinition(
                color_id=str(tint_id),
                name=_optional_str(node.attr("Name")) or base.name,
                space=CMYK_SPACE,
                model=base.model,
                cmyk=cmyk,  # type: ignore[arg-type]
                background_category=colors.analyze_cmyk_for_background(*cmyk),
            )
        if base.rgb is not None:
            rgb = tuple(round(255 - (255 - v) * ratio, 4) for v in base.rgb)
            return ColorDefinition(
                color_id=str(tint_id),
                name=_optional_str(node.attr("Name")) or base.name,
                space=RGB_SPACE,
                model=base.model,
                rgb=rgb,  # type: ignore[arg-type]
                custom_black=base.custom_black and ratio >= 1.0,
            )
        return None

    def _collect_gradients(self, root: ElementNode) -> Dict[str, GradientDefinition]:
        found: Dict[str, GradientDefinition] = {}
        for node in root.children("Gradient"):
            if not isinstance(node, ElementNode) or not node.attr("Self"):
                continue
            gradient = GradientDefinition(
                gradient_id=str(node.attr("Self")),
                name=_optional_str(node.attr("Name")),
                gradient_type=_optional_str(node.attr("Type")),
            )
            for stop in node.children("GradientStop"):
                if not isinstance(stop, ElementNode):
                    continue
                gradient.stops.append(
                    GradientStop(
                        stop_color=_optional_str(stop.attr("StopColor")),
                        location=_as_float(stop.attr("Location"), 0.0),
                        midpoint=_as_float(stop.attr("Midpoint"), 50.0),
                    )
                )
            found[gradient.gradient_id] = gradient
        return found

    def _add_builtin_swatches(self, color_defs: Dict[str, ColorDefinition]) -> None:
        for name in _BUILTIN_SWATCHES:
            color_id = f"Color/{name}"
            if color_id in color_defs:
                continue
            color_defs[color_id] = ColorDefinition(
                color_id=color_id,
                name=name,
                space=NAMED_SPACE,
                background_category="paper" if color_id == colors.PAPER_COLOR_ID else None,
            )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_components(value: Any) -> Optional[List[float]]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return [float(value)]
    try:
        return [float(part) for part in str(value).split()]
    except ValueError:
        return None


def _discrete_components(node: ElementNode, names: Tuple[str, ...]) -> Optional[List[float]]:
    if not any(node.has_attr(name) for name in names):
        return None
    return [_as_float(node.attr(name), 0.0) for name in names]
