"""Aggregate root returned by the pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from idml_renderer.errors import Diagnostic
from idml_renderer.model.elements import Element, Layer, MasterSpread, Page, PageSetup, Spread
from idml_renderer.model.geometry import CoordinateOffset
from idml_renderer.model.story import Story
from idml_renderer.model.style_model import ResourceCatalog
from idml_renderer.utils.serialization import serialize


@dataclass(slots=True)
class DocumentMetadata:
    version: str = "Unknown"
    name: str = "Untitled"
    page_count: int = 0
    dpi: float = 96


@dataclass(slots=True)
class DocumentModel:
    """Pages, positioned elements, stories and resources of one IDML document."""

    metadata: DocumentMetadata
    resources: ResourceCatalog
    page_setup: PageSetup
    pages: List[Page]
    spreads: List[Spread]
    elements: Dict[str, Element]
    stories: Dict[str, Story]
    page_element_ids: Dict[str, List[str]]
    master_spreads: List[MasterSpread] = field(default_factory=list)
    layers: Dict[str, Layer] = field(default_factory=dict)
    coordinate_offset: CoordinateOffset = field(default_factory=CoordinateOffset)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def page(self, page_id: str) -> Optional[Page]:
        for page in self.pages:
            if page.page_id == page_id:
                return page
        return None

    def elements_on(self, page_id: str) -> List[Element]:
        return [self.elements[element_id] for element_id in self.page_element_ids.get(page_id, [])]

    def layer_for(self, element: Element) -> Optional[Layer]:
        if element.item_layer is None:
            return None
        return self.layers.get(element.item_layer)

    def story_for(self, element: Element) -> Optional[Story]:
        if element.parent_story_id is None:
            return None
        return self.stories.get(element.parent_story_id)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the model, the contract consumed by renderers."""
        return {
            "document": serialize(self.metadata),
            "page_setup": serialize(self.page_setup),
            "pages": serialize(self.pages),
            "spreads": serialize(self.spreads),
            "master_spreads": serialize(self.master_spreads),
            "layers": serialize(list(self.layers.values())),
            "elements": serialize(list(self.elements.values())),
            "page_element_ids": serialize(self.page_element_ids),
            "stories": serialize(self.stories),
            "resources": {
                "paragraph_styles": serialize(self.resources.paragraph_styles),
                "character_styles": serialize(self.resources.character_styles),
                "fonts": serialize(self.resources.font_families),
                "colors": serialize(self.resources.colors),
                "gradients": serialize(self.resources.gradients),
            },
            "coordinate_offset": serialize(self.coordinate_offset),
            "diagnostics": serialize(self.diagnostics),
        }
