"""Layout entities: spreads, pages, master spreads and positioned page items."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from idml_renderer.model.geometry import Bounds, Geometry, Transform


@dataclass(slots=True)
class Margins:
    """Page margins in pixels."""

    top: float = 0.0
    bottom: float = 0.0
    left: float = 0.0
    right: float = 0.0
    column_count: int = 1
    column_gutter: float = 0.0


@dataclass(slots=True)
class PageSetup:
    """Document-wide page setup from ``Resources/Preferences.xml`` (pixels)."""

    page_width: Optional[float] = None
    page_height: Optional[float] = None
    facing_pages: bool = False
    horizontal_units: str = "Points"
    vertical_units: str = "Points"
    margins: Margins = field(default_factory=Margins)
    bleeds: Dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class Layer:
    """A document layer from ``designmap.xml``; page items refer to it by id."""

    layer_id: str
    name: str = ""
    visible: bool = True
    locked: bool = False
    printable: bool = True
    ignore_wrap: bool = False
    show_guides: bool = True
    lock_guides: bool = False
    layer_color: str = "LightBlue"


@dataclass(slots=True)
class Page:
    page_id: str
    name: Optional[str]
    index: int
    spread_id: str
    bounds: Bounds
    transform: Transform
    source_geometry: Geometry
    geometry: Optional[Geometry] = None
    margins: Margins = field(default_factory=Margins)
    applied_master: Optional[str] = None
    background_color: Optional[str] = None
    background_category: Optional[str] = None
    is_default_page: bool = False


@dataclass(slots=True)
class Spread:
    spread_id: str
    source_file: Optional[str]
    page_ids: List[str] = field(default_factory=list)
    transform: Transform = field(default_factory=Transform.identity)
    background_color: Optional[str] = None


@dataclass(slots=True)
class MasterPage:
    page_id: str
    name: Optional[str]
    bounds: Bounds
    margins: Margins = field(default_factory=Margins)


@dataclass(slots=True)
class MasterSpread:
    spread_id: str
    name: Optional[str]
    name_prefix: Optional[str] = None
    based_on: Optional[str] = None
    transform: Transform = field(default_factory=Transform.identity)
    pages: List[MasterPage] = field(default_factory=list)
    elements: List["Element"] = field(default_factory=list)


@dataclass(slots=True)
class TextFramePreferences:
    column_count: int = 1
    column_gutter: float = 0.0
    insets: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])
    vertical_justification: Optional[str] = None


@dataclass(slots=True)
class PlacedContent:
    """Linked or embedded graphic held by a content frame."""

    content_type: str
    content_id: Optional[str] = None
    href: Optional[str] = None
    is_embedded: bool = False
    bounds: Optional[Bounds] = None
    transform: Transform = field(default_factory=Transform.identity)
    effective_ppi: Optional[str] = None
    image_type: Optional[str] = None


@dataclass(slots=True)
class CornerRadii:
    top_left: float = 0.0
    top_right: float = 0.0
    bottom_left: float = 0.0
    bottom_right: float = 0.0


@dataclass(slots=True)
class Element:
    """A positioned page item: spread-space geometry plus its pixel normalization."""

    element_id: str
    element_type: str
    spread_id: Optional[str]
    bounds: Bounds
    transform: Transform
    source_geometry: Geometry
    geometry: Optional[Geometry] = None
    name: Optional[str] = None
    parent_id: Optional[str] = None
    parent_type: Optional[str] = None
    page_id: Optional[str] = None
    assignment_strategy: Optional[str] = None
    fill_color: str = "Color/None"
    stroke_color: str = "Color/None"
    stroke_weight: float = 0.0
    visible: bool = True
    locked: bool = False
    item_layer: Optional[str] = None
    blend_mode: str = "Normal"
    opacity: float = 100.0
    parent_story_id: Optional[str] = None
    previous_text_frame: Optional[str] = None
    next_text_frame: Optional[str] = None
    text_frame_preferences: Optional[TextFramePreferences] = None
    placed_content: Optional[PlacedContent] = None
    corner_radii: Optional[CornerRadii] = None
    child_ids: List[str] = field(default_factory=list)

    @property
    def is_content_frame(self) -> bool:
        return self.placed_content is not None
