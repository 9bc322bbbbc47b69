"""Extract page items from spreads and normalize their geometry to pixels."""
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import MalformedXML
from idml_renderer.model.elements import CornerRadii, Element, PlacedContent, TextFramePreferences
from idml_renderer.model.geometry import Bounds, CoordinateOffset, Geometry, Transform
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.units import UnitConverter
from idml_renderer.utils.xml_utils import ElementNode

LOGGER = get_logger(__name__)

PAGE_ITEM_TYPES = (
    "Rectangle",
    "Oval",
    "Polygon",
    "GraphicLine",
    "TextFrame",
    "Group",
    "Button",
    "Table",
    "Image",
    "EPS",
    "PDF",
    "PlacedItem",
    "ContentFrame",
)
PLACED_CONTENT_TYPES = ("Image", "EPS", "PDF", "PlacedItem", "ImportedPage", "WMF", "PICT")
FRAME_TYPES = frozenset({"Rectangle", "Oval", "Polygon"})
NO_REFERENCE = frozenset({"", "n", "None"})
DEFAULT_BLEND_MODE = "Normal"
FULL_OPACITY = 100.0

_CORNER_ATTRIBUTES = {
    "top_left": "TopLeftCornerRadius",
    "top_right": "TopRightCornerRadius",
    "bottom_left": "BottomLeftCornerRadius",
    "bottom_right": "BottomRightCornerRadius",
}

_RECOVERABLE = (TypeError, ValueError, AttributeError, KeyError, IndexError)


def _numbers(value: object, expected: int) -> Optional[List[float]]:
    if value is None:
        return None
    parts = str(value).split()
    if len(parts) != expected:
        return None
    try:
        return [float(part) for part in parts]
    except ValueError:
        return None


def parse_geometric_bounds(value: object) -> Optional[Bounds]:
    """Parse ``"top left bottom right"``; ``None`` when absent or malformed."""
    numbers = _numbers(value, 4)
    if numbers is None:
        return None
    top, left, bottom, right = numbers
    return Bounds(top=top, left=left, bottom=bottom, right=right)


def parse_transform(value: object) -> Transform:
    """Parse ``"a b c d tx ty"``, defaulting to identity when missing or malformed."""
    numbers = _numbers(value, 6)
    if numbers is None:
        if value not in (None, ""):
            LOGGER.debug("Malformed ItemTransform %r, using identity", value)
        return Transform.identity()
    return Transform(*numbers)


def bounds_from_path(node: ElementNode) -> Optional[Bounds]:
    """Extent of the ``PathGeometry`` anchors of an item, if any."""
    props = node.element("Properties")
    path = props.element("PathGeometry") if props is not None else None
    if path is None:
        return None
    xs: List[float] = []
    ys: List[float] = []
    for geometry in path.children("GeometryPathType"):
        if not isinstance(geometry, ElementNode):
            continue
        array = geometry.element("PathPointArray")
        if array is None:
            continue
        for point in array.children("PathPointType"):
            if not isinstance(point, ElementNode):
                continue
            anchor = _numbers(point.attr("Anchor"), 2)
            if anchor is None:
                continue
            xs.append(anchor[0])
            ys.append(anchor[1])
    if not xs:
        return None
    return Bounds(top=min(ys), left=min(xs), bottom=max(ys), right=max(xs))


def local_bounds(node: ElementNode) -> Bounds:
    """Item bounds from ``GeometricBounds``, else the path, else the default box."""
    return parse_geometric_bounds(node.attr("GeometricBounds")) or bounds_from_path(node) or Bounds.default()


def spread_geometry(bounds: Bounds, transform: Transform) -> Geometry:
    """Place local bounds in spread space: transformed center, scaled size, rotation."""
    center_x, center_y = transform.apply(*bounds.center)
    width = abs(bounds.width) * transform.scale_x
    height = abs(bounds.height) * transform.scale_y
    return Geometry(
        x=center_x - width / 2,
        y=center_y - height / 2,
        width=width,
        height=height,
        rotation=transform.rotation,
    )


def to_pixel_geometry(source: Geometry, offset: CoordinateOffset, units: UnitConverter) -> Geometry:
    """Shift spread-space geometry by the document offset and convert it to pixels."""
    return Geometry(
        x=units.to_pixels(source.x + offset.x),
        y=units.to_pixels(source.y + offset.y),
        width=units.to_pixels(source.width),
        height=units.to_pixels(source.height),
        rotation=round(source.rotation, 2),
    )


def calculate_coordinate_offset(elements: Iterable[Element], units: UnitConverter) -> CoordinateOffset:
    """Offset (source units) that moves negative spread coordinates into positive space.

    Only negative minima produce an offset; the widest stroke is added as padding.
    """
    items = list(elements)
    if not items:
        return CoordinateOffset()
    min_x = min(item.source_geometry.x for item in items)
    min_y = min(item.source_geometry.y for item in items)
    max_stroke = units.from_pixels(max((item.stroke_weight for item in items), default=0.0))
    return CoordinateOffset(
        x=abs(min_x) + max_stroke if min_x < 0 else 0.0,
        y=abs(min_y) + max_stroke if min_y < 0 else 0.0,
    )


def _reference(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return None if text in NO_REFERENCE else text


class ElementParser:
    """Collect page items of a spread (including groups) with spread-space geometry."""

    def __init__(self, context: ProcessingContext) -> None:
        self._context = context
        self._generated = 0

    def parse_spread(self, spread: ElementNode, spread_id: str, source: Optional[str] = None) -> List[Element]:
        """Return every page item of the spread; groups precede their children."""
        elements: List[Element] = []
        self._collect(spread, spread_id, None, "Spread", Transform.identity(), elements, source)
        for page in spread.children("Page"):
            if isinstance(page, ElementNode):
                page_id = str(page.attr("Self") or "")
                self._collect(page, spread_id, page_id or None, "Page", Transform.identity(), elements, source)
        return elements

    def normalize(self, elements: Iterable[Element], offset: CoordinateOffset) -> None:
        """Fill in pixel geometry for elements parsed by :meth:`parse_spread`."""
        for element in elements:
            element.geometry = to_pixel_geometry(element.source_geometry, offset, self._context.units)

    # ------------------------------------------------------------------
    # Collection
    def _collect(
        self,
        container: ElementNode,
        spread_id: str,
        parent_id: Optional[str],
        parent_type: str,
        parent_transform: Transform,
        into: List[Element],
        source: Optional[str],
    ) -> None:
        for item_type in container.child_tags():
            if item_type not in PAGE_ITEM_TYPES:
                continue
            for node in container.children(item_type):
                if not isinstance(node, ElementNode):
                    continue
                try:
                    element = self._build_element(node, item_type, spread_id, parent_id, parent_type, parent_transform)
                except _RECOVERABLE as exc:
                    self._context.record(
                        MalformedXML(f"{item_type} {node.attr('Self')!r} skipped: {exc}", file=source, stage="elements")
                    )
                    continue
                into.append(element)
                if item_type in ("Group", "Button"):
                    start = len(into)
                    composed = element.transform.then(parent_transform)
                    self._collect(node, spread_id, element.element_id, item_type, composed, into, source)
                    element.child_ids = [
                        child.element_id for child in into[start:] if child.parent_id == element.element_id
                    ]

    def _build_element(
        self,
        node: ElementNode,
        item_type: str,
        spread_id: str,
        parent_id: Optional[str],
        parent_type: str,
        parent_transform: Transform,
    ) -> Element:
        bounds = local_bounds(node)
        transform = parse_transform(node.attr("ItemTransform"))
        geometry = spread_geometry(bounds, transform.then(parent_transform))
        placed = self._placed_content(node)
        blend_mode, opacity = self._transparency(node)
        element_type = "ContentFrame" if placed is not None and item_type in FRAME_TYPES else item_type
        units = self._context.units

        element = Element(
            element_id=self._element_id(node, item_type, spread_id),
            element_type=element_type,
            spread_id=spread_id,
            bounds=bounds,
            transform=transform,
            source_geometry=geometry,
            name=_reference(node.attr("Name")),
            parent_id=parent_id,
            parent_type=parent_type,
            fill_color=str(node.attr("FillColor") or "Color/None"),
            stroke_color=str(node.attr("StrokeColor") or "Color/None"),
            stroke_weight=units.to_pixels(node.attr("StrokeWeight", 0)),
            visible=bool(node.attr("Visible", True)),
            locked=bool(node.attr("Locked", False)),
            item_layer=_reference(node.attr("ItemLayer")),
            blend_mode=blend_mode,
            opacity=opacity,
            placed_content=placed,
            corner_radii=self._corner_radii(node),
        )
        if item_type == "TextFrame":
            element.parent_story_id = _reference(node.attr("ParentStory"))
            element.previous_text_frame = _reference(node.attr("PreviousTextFrame"))
            element.next_text_frame = _reference(node.attr("NextTextFrame"))
            element.text_frame_preferences = self._text_frame_preferences(node)
        return element

    def _element_id(self, node: ElementNode, item_type: str, spread_id: str) -> str:
        self_id = node.attr("Self")
        if self_id not in (None, ""):
            return str(self_id)
        self._generated += 1
        generated = f"{spread_id}_{item_type.lower()}_{self._generated}"
        LOGGER.debug("%s without Self attribute, using generated id %s", item_type, generated)
        return generated

    # ------------------------------------------------------------------
    # Item details
    def _placed_content(self, node: ElementNode) -> Optional[PlacedContent]:
        props = node.element("Properties")
        for content_type in PLACED_CONTENT_TYPES:
            graphic = node.element(content_type)
            if graphic is None and props is not None:
                graphic = props.element(content_type)
            if graphic is None:
                continue
            link = graphic.element("Link")
            href = _reference(link.attr("LinkResourceURI")) if link is not None else None
            stored_state = link.attr("StoredState") if link is not None else None
            graphic_props = graphic.element("Properties")
            embedded = stored_state == "Embedded" or (
                graphic_props is not None and graphic_props.has("Contents")
            )
            return PlacedContent(
                content_type=content_type,
                content_id=_reference(graphic.attr("Self")),
                href=href,
                is_embedded=embedded,
                bounds=self._graphic_bounds(graphic),
                transform=parse_transform(graphic.attr("ItemTransform")),
                effective_ppi=_reference(graphic.attr("EffectivePpi")),
                image_type=_reference(graphic.attr("ImageTypeName")),
            )
        return None

    def _graphic_bounds(self, graphic: ElementNode) -> Optional[Bounds]:
        props = graphic.element("Properties")
        graphic_bounds = props.element("GraphicBounds") if props is not None else None
        if graphic_bounds is None:
            return parse_geometric_bounds(graphic.attr("GeometricBounds"))
        try:
            return Bounds(
                top=float(graphic_bounds.attr("Top", 0)),
                left=float(graphic_bounds.attr("Left", 0)),
                bottom=float(graphic_bounds.attr("Bottom", 0)),
                right=float(graphic_bounds.attr("Right", 0)),
            )
        except (TypeError, ValueError):
            return None

    def _text_frame_preferences(self, node: ElementNode) -> Optional[TextFramePreferences]:
        prefs = node.element("TextFramePreference")
        if prefs is None:
            return None
        units = self._context.units
        insets = _numbers(prefs.attr("InsetSpacing"), 4)
        if insets is None:
            single = prefs.attr("InsetSpacing", 0)
            insets = [float(single)] * 4 if isinstance(single, (int, float)) else [0.0] * 4
        try:
            column_count = int(prefs.attr("TextColumnCount", 1))
        except (TypeError, ValueError):
            column_count = 1
        return TextFramePreferences(
            column_count=column_count,
            column_gutter=units.to_pixels(prefs.attr("TextColumnGutter", 0)),
            insets=[units.to_pixels(value) for value in insets],
            vertical_justification=_reference(prefs.attr("VerticalJustification")),
        )

    @staticmethod
    def _transparency(node: ElementNode) -> Tuple[str, float]:
        """Blend mode and opacity (0-100) from ``TransparencySetting/BlendingSetting``."""
        setting = node.element("TransparencySetting")
        blending = setting.element("BlendingSetting") if setting is not None else None
        if blending is None:
            return DEFAULT_BLEND_MODE, FULL_OPACITY
        blend_mode = _reference(blending.attr("BlendMode")) or DEFAULT_BLEND_MODE
        try:
            opacity = float(blending.attr("Opacity", FULL_OPACITY))
        except (TypeError, ValueError):
            opacity = FULL_OPACITY
        return blend_mode, min(max(opacity, 0.0), FULL_OPACITY)

    def _corner_radii(self, node: ElementNode) -> Optional[CornerRadii]:
        if not any(node.has_attr(attribute) for attribute in _CORNER_ATTRIBUTES.values()):
            return None
        units = self._context.units
        values = {key: units.to_pixels(node.attr(attribute, 0)) for key, attribute in _CORNER_ATTRIBUTES.items()}
        if not any(values.values()):
            return None
        return CornerRadii(**values)

