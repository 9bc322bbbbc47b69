"""Assemble spreads, pages and master spreads from the structure parts."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List, Mapping, Optional, Tuple

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import MalformedXML, NoPagesExtracted
from idml_renderer.model.document_model import DocumentMetadata
from idml_renderer.model.elements import Element, Layer, MasterPage, MasterSpread, Page, PageSetup, Spread
from idml_renderer.model.geometry import Bounds, CoordinateOffset, Transform
from idml_renderer.parser.element_parser import (
    ElementParser,
    calculate_coordinate_offset,
    parse_geometric_bounds,
    parse_transform,
    spread_geometry,
    to_pixel_geometry,
)
from idml_renderer.parser.idml_loader import DESIGNMAP_PATH, MASTER_SPREADS_PREFIX, SPREADS_PREFIX
from idml_renderer.parser.preferences_parser import parse_margins
from idml_renderer.utils.logger import get_logger
from idml_renderer.utils.xml_utils import ElementNode, Tree, root_node

LOGGER = get_logger(__name__)

STAGE = "structure"


@dataclass(slots=True)
class DocumentStructure:
    """Everything the structure stage produces, geometry already in pixels."""

    metadata: DocumentMetadata
    spreads: List[Spread] = field(default_factory=list)
    pages: List[Page] = field(default_factory=list)
    master_spreads: List[MasterSpread] = field(default_factory=list)
    elements: Dict[str, Element] = field(default_factory=dict)
    layers: Dict[str, Layer] = field(default_factory=dict)
    coordinate_offset: CoordinateOffset = field(default_factory=CoordinateOffset)


class DocumentParser:
    """Parses ``designmap.xml``, ``Spreads/`` and ``MasterSpreads/`` into layout entities."""

    def __init__(self, parts: Mapping[str, Tree], page_setup: PageSetup, context: ProcessingContext) -> None:
        self._parts = parts
        self._page_setup = page_setup
        self._context = context
        self._elements = ElementParser(context)

    def parse(self) -> DocumentStructure:
        """Build the structure; raises :class:`NoPagesExtracted` when no page exists."""
        designmap = self._designmap()
        structure = DocumentStructure(metadata=self._metadata(designmap))
        structure.layers = self._layers(designmap)

        for path in self._spread_order(designmap):
            self._parse_spread(path, structure)
        for path in sorted(name for name in self._parts if name.startswith(MASTER_SPREADS_PREFIX)):
            master = self._parse_master_spread(path)
            if master is not None:
                structure.master_spreads.append(master)

        if not structure.pages:
            self._synthesize_default_pages(structure)
        if not structure.pages:
            raise NoPagesExtracted("No pages could be extracted", file=DESIGNMAP_PATH, stage=STAGE)

        self._check_layers(structure)
        units = self._context.units
        structure.coordinate_offset = calculate_coordinate_offset(structure.elements.values(), units)
        self._elements.normalize(structure.elements.values(), structure.coordinate_offset)
        for page in structure.pages:
            page.geometry = to_pixel_geometry(page.source_geometry, structure.coordinate_offset, units)
        for master in structure.master_spreads:
            self._elements.normalize(master.elements, CoordinateOffset())

        structure.metadata.page_count = len(structure.pages)
        LOGGER.info(
            "Structure: %d spreads, %d pages, %d elements, %d master spreads, %d layers",
            len(structure.spreads),
            len(structure.pages),
            len(structure.elements),
            len(structure.master_spreads),
            len(structure.layers),
        )
        return structure

    # ------------------------------------------------------------------
    # Designmap
    def _designmap(self) -> Optional[ElementNode]:
        tree = self._parts.get(DESIGNMAP_PATH)
        if tree is None:
            LOGGER.warning("designmap.xml unavailable, spreads are read in file order")
            return None
        root = root_node(tree, "Document")
        if root is None:
            self._context.record(MalformedXML("missing Document element", file=DESIGNMAP_PATH, stage=STAGE))
        return root

    def _metadata(self, designmap: Optional[ElementNode]) -> DocumentMetadata:
        metadata = DocumentMetadata(dpi=self._context.config.dpi)
        if designmap is None:
            return metadata
        version = designmap.attr("DOMVersion")
        name = designmap.attr("Name")
        if version not in (None, ""):
            metadata.version = str(version)
        if name not in (None, ""):
            metadata.name = str(name)
        return metadata

    def _layers(self, designmap: Optional[ElementNode]) -> Dict[str, Layer]:
        layers: Dict[str, Layer] = {}
        if designmap is None:
            return layers
        for node in designmap.children("Layer"):
            if not isinstance(node, ElementNode):
                continue
            layer_id = _optional_str(node.attr("Self"))
            if not layer_id:
                LOGGER.debug("Layer without Self attribute skipped")
                continue
            color = node.attr("LayerColor")
            if color is None:
                color = node.property_value("LayerColor")
            layers[layer_id] = Layer(
                layer_id=layer_id,
                name=str(node.attr("Name") or ""),
                visible=node.attr("Visible", True) is not False,
                locked=node.attr("Locked", False) is True,
                printable=node.attr("Printable", True) is not False,
                ignore_wrap=node.attr("IgnoreWrap", False) is True,
                show_guides=node.attr("ShowGuides", True) is not False,
                lock_guides=node.attr("LockGuides", False) is True,
                layer_color=str(color) if color not in (None, "") else "LightBlue",
            )
        return layers

    @staticmethod
    def _check_layers(structure: DocumentStructure) -> None:
        for element in structure.elements.values():
            if element.item_layer is not None and element.item_layer not in structure.layers:
                LOGGER.debug("%s refers to unknown layer %s", element.element_id, element.item_layer)

    def _spread_order(self, designmap: Optional[ElementNode]) -> List[str]:
        listed: List[str] = []
        if designmap is not None:
            for ref in designmap.children("Spread"):
                src = ref.attr("src") if isinstance(ref, ElementNode) else None
                if src and str(src) in self._parts and str(src) not in listed:
                    listed.append(str(src))
        remaining = sorted(name for name in self._parts if name.startswith(SPREADS_PREFIX) and name not in listed)
        return listed + remaining

    # ------------------------------------------------------------------
    # Spreads
    def _parse_spread(self, path: str, structure: DocumentStructure) -> None:
        node = self._spread_node(path, "Spread")
        if node is None:
            return
        spread_id = str(node.attr("Self") or PurePosixPath(path).stem)
        spread = Spread(spread_id=spread_id, source_file=path, transform=parse_transform(node.attr("ItemTransform")))

        for page_node in node.children("Page"):
            if not isinstance(page_node, ElementNode):
                continue
            page = self._build_page(page_node, spread_id, len(structure.pages))
            if page is None:
                continue
            structure.pages.append(page)
            spread.page_ids.append(page.page_id)

        for element in self._elements.parse_spread(node, spread_id, path):
            if element.element_id in structure.elements:
                LOGGER.debug("Duplicate element id %s in %s, keeping the first", element.element_id, path)
                continue
            structure.elements[element.element_id] = element
        structure.spreads.append(spread)

    def _spread_node(self, path: str, tag: str) -> Optional[ElementNode]:
        root = root_node(self._parts[path])
        if root is None:
            self._context.record(MalformedXML(f"no {tag} element", file=path, stage=STAGE))
            return None
        node = root
        while node.element(tag) is not None:
            node = node.element(tag)  # type: ignore[assignment]
        if node.tag != tag:
            self._context.record(MalformedXML(f"no {tag} element", file=path, stage=STAGE))
            return None
        return node

    def _build_page(self, node: ElementNode, spread_id: str, index: int) -> Optional[Page]:
        page_id = node.attr("Self")
        if page_id in (None, ""):
            LOGGER.debug("Page without Self attribute in spread %s skipped", spread_id)
            return None
        bounds, transform = self._page_frame(node)
        margins_node = node.element("MarginPreference")
        margins = parse_margins(margins_node, self._context) if margins_node is not None else self._page_setup.margins
        master = node.attr("AppliedMaster")
        return Page(
            page_id=str(page_id),
            name=str(node.attr("Name")) if node.attr("Name") is not None else None,
            index=index,
            spread_id=spread_id,
            bounds=bounds,
            transform=transform,
            source_geometry=spread_geometry(bounds, transform),
            margins=margins,
            applied_master=None if master in (None, "", "n") else str(master),
        )

    def _page_frame(self, node: ElementNode) -> Tuple[Bounds, Transform]:
        bounds = parse_geometric_bounds(node.attr("GeometricBounds"))
        if bounds is None:
            bounds = self._default_page_bounds()
        return bounds, parse_transform(node.attr("ItemTransform"))

    def _default_page_bounds(self) -> Bounds:
        setup = self._page_setup
        units = self._context.units
        if setup.page_width and setup.page_height:
            return Bounds(0.0, 0.0, units.from_pixels(setup.page_height), units.from_pixels(setup.page_width))
        return Bounds.default()

    def _synthesize_default_pages(self, structure: DocumentStructure) -> None:
        """One page per spread from the document page size when spreads declare none."""
        setup = self._page_setup
        if not (setup.page_width and setup.page_height) or not structure.spreads:
            return
        bounds = self._default_page_bounds()
        # Spread origin sits at the center of a single page.
        transform = Transform(tx=-bounds.width / 2, ty=-bounds.height / 2)
        for spread in structure.spreads:
            page = Page(
                page_id=f"{spread.spread_id}_page",
                name=str(len(structure.pages) + 1),
                index=len(structure.pages),
                spread_id=spread.spread_id,
                bounds=bounds,
                transform=transform,
                source_geometry=spread_geometry(bounds, transform),
                margins=setup.margins,
                is_default_page=True,
            )
            structure.pages.append(page)
            spread.page_ids.append(page.page_id)
        LOGGER.warning("No Page elements found; synthesized %d default pages", len(structure.pages))

    # ------------------------------------------------------------------
    # Master spreads
    def _parse_master_spread(self, path: str) -> Optional[MasterSpread]:
        node = self._spread_node(path, "MasterSpread")
        if node is None:
            return None
        spread_id = str(node.attr("Self") or PurePosixPath(path).stem)
        based_on = node.attr("BasedOn")
        master = MasterSpread(
            spread_id=spread_id,
            name=_optional_str(node.attr("Name")),
            name_prefix=_optional_str(node.attr("NamePrefix")),
            based_on=None if based_on in (None, "", "n") else str(based_on),
            transform=parse_transform(node.attr("ItemTransform")),
        )
        for page_node in node.children("Page"):
            if not isinstance(page_node, ElementNode) or page_node.attr("Self") in (None, ""):
                continue
            margins_node = page_node.element("MarginPreference")
            bounds, _ = self._page_frame(page_node)
            master.pages.append(
                MasterPage(
                    page_id=str(page_node.attr("Self")),
                    name=_optional_str(page_node.attr("Name")),
                    bounds=bounds,
                    margins=parse_margins(margins_node, self._context)
                    if margins_node is not None
                    else self._page_setup.margins,
                )
            )
        master.elements = self._elements.parse_spread(node, spread_id, path)
        return master


def _optional_str(value: object) -> Optional[str]:
    return None if value is None else str(value)
