"""Read page setup from ``Resources/Preferences.xml``."""
from __future__ import annotations

from typing import Iterable, Optional

from idml_renderer.context import ProcessingContext
from idml_renderer.model.elements import Margins, PageSetup
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.xml_utils import ElementNode, Tree, root_node

LOGGER = get_logger(__name__)

_BLEED_ATTRIBUTES = {
    "top": "DocumentBleedTopOffset",
    "bottom": "DocumentBleedBottomOffset",
    "inside": "DocumentBleedInsideOrLeftOffset",
    "outside": "DocumentBleedOutsideOrRightOffset",
}


def parse_margins(node: Optional[ElementNode], context: ProcessingContext) -> Margins:
    """Convert a ``MarginPreference`` element into pixel margins."""
    if node is None:
        return Margins()
    units = context.units
    return Margins(
        top=units.to_pixels(node.attr("Top", 0)),
        bottom=units.to_pixels(node.attr("Bottom", 0)),
        left=units.to_pixels(node.attr("Left", 0)),
        right=units.to_pixels(node.attr("Right", 0)),
        column_count=_as_int(node.attr("ColumnCount"), 1),
        column_gutter=units.to_pixels(node.attr("ColumnGutter", 0)),
    )


class PreferencesParser:
    """Collect document, view and margin preferences into a :class:`PageSetup`."""

    def __init__(self, trees: Iterable[Tree], context: ProcessingContext) -> None:
        self._trees = list(trees)
        self._context = context

    def parse(self) -> PageSetup:
        setup = PageSetup()
        for tree in self._trees:
            root = root_node(tree)
            if root is None:
                continue
            self._apply_document_preference(root.element("DocumentPreference"), setup)
            self._apply_view_preference(root.element("ViewPreference"), setup)
            margins = root.element("MarginPreference")
            if margins is not None:
                setup.margins = parse_margins(margins, self._context)
        LOGGER.debug("Page setup: %sx%s px, units %s", setup.page_width, setup.page_height, setup.horizontal_units)
        return setup

    def _apply_document_preference(self, node: Optional[ElementNode], setup: PageSetup) -> None:
        if node is None:
            return
        units = self._context.units
        if node.attr("PageWidth") is not None:
            setup.page_width = units.to_pixels(node.attr("PageWidth"))
        if node.attr("PageHeight") is not None:
            setup.page_height = units.to_pixels(node.attr("PageHeight"))
        setup.facing_pages = bool(node.attr("FacingPages", setup.facing_pages))
        for key, attribute in _BLEED_ATTRIBUTES.items():
            if node.attr(attribute) is not None:
                setup.bleeds[key] = units.to_pixels(node.attr(attribute))

    def _apply_view_preference(self, node: Optional[ElementNode], setup: PageSetup) -> None:
        if node is None:
            return
        setup.horizontal_units = str(node.attr("HorizontalMeasurementUnits") or setup.horizontal_units)
        setup.vertical_units = str(node.attr("VerticalMeasurementUnits") or setup.vertical_units)


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
