"""Assign every element to exactly one page through an ordered strategy cascade."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import AmbiguousPageAssignment, InconsistentPageIndex
from idml_renderer.model.elements import Element, Page, Spread
from idml_renderer.model.geometry import CoordinateOffset
from idml_renderer.parser.style_resolver import BACKGROUND_USAGE, StyleResolver
from idml_renderer.utils.colors import NONE_COLOR_ID
from idml_renderer.utils.logger import get_logger

LOGGER = get_logger(__name__)

STAGE = "association"


@dataclass(frozen=True, slots=True)
class AssociationContext:
    """Read-only view of the document structure handed to every strategy."""

    pages: Tuple[Page, ...]
    page_ids: FrozenSet[str]
    pages_by_spread: Mapping[str, Tuple[Page, ...]]
    offset: CoordinateOffset

    @classmethod
    def build(cls, pages: Sequence[Page], offset: CoordinateOffset) -> "AssociationContext":
        by_spread: Dict[str, List[Page]] = {}
        for page in pages:
            by_spread.setdefault(page.spread_id, []).append(page)
        return cls(
            pages=tuple(pages),
            page_ids=frozenset(page.page_id for page in pages),
            pages_by_spread={key: tuple(value) for key, value in by_spread.items()},
            offset=offset,
        )

    def spatial_candidates(self, element: Element) -> Tuple[Page, ...]:
        """Pages of the element's spread when it has several, else all document pages."""
        in_spread = self.pages_by_spread.get(element.spread_id or "", ())
        if len(in_spread) > 1:
            return in_spread
        return self.pages if len(self.pages) > 1 else ()


Strategy = Callable[[Element, AssociationContext], Optional[str]]


def containing_pages(element: Element, context: AssociationContext) -> List[Page]:
    """Candidate pages whose pixel bounds contain the element's center point.

    Page and element geometry both already include the coordinate offset.
    """
    if element.geometry is None:
        return []
    center_x, center_y = element.geometry.center
    return [
        page
        for page in context.spatial_candidates(element)
        if page.geometry is not None and page.geometry.contains(center_x, center_y)
    ]


def direct_page(element: Element, context: AssociationContext) -> Optional[str]:
    return element.page_id if element.page_id in context.page_ids else None


def structural_parent(element: Element, context: AssociationContext) -> Optional[str]:
    if element.parent_type == "Page" and element.parent_id in context.page_ids:
        return element.parent_id
    return None


def single_page_spread(element: Element, context: AssociationContext) -> Optional[str]:
    pages = context.pages_by_spread.get(element.spread_id or "", ())
    return pages[0].page_id if len(pages) == 1 else None


def spatial_containment(element: Element, context: AssociationContext) -> Optional[str]:
    found = containing_pages(element, context)
    return found[0].page_id if found else None


def first_page(element: Element, context: AssociationContext) -> Optional[str]:
    return context.pages[0].page_id if context.pages else None


STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("direct", direct_page),
    ("structural_parent", structural_parent),
    ("single_page_spread", single_page_spread),
    ("spatial", spatial_containment),
    ("fallback", first_page),
)


class PageAssociationEngine:
    """Runs the strategy chain and builds the page -> element index."""

    def __init__(
        self,
        context: ProcessingContext,
        strategies: Sequence[Tuple[str, Strategy]] = STRATEGIES,
    ) -> None:
        self._context = context
        self._strategies = tuple(strategies)

    def associate(
        self,
        pages: Sequence[Page],
        elements: Mapping[str, Element],
        offset: CoordinateOffset,
    ) -> Dict[str, List[str]]:
        """Set ``page_id`` on every element and return the inverse index."""
        if not pages:
            raise ValueError("cannot associate elements without pages")
        context = AssociationContext.build(pages, offset)
        counts: Dict[str, int] = {}

        for element in elements.values():
            page_id, strategy = self._assign(element, context)
            element.page_id = page_id
            element.assignment_strategy = strategy
            counts[strategy] = counts.get(strategy, 0) + 1
            self._check_ambiguity(element, strategy, context)

        index: Dict[str, List[str]] = {page.page_id: [] for page in pages}
        for element in elements.values():
            index[element.page_id].append(element.element_id)  # type: ignore[index]
        self._verify(index, elements)
        LOGGER.info("Associated %d elements with %d pages %s", len(elements), len(pages), counts)
        return index

    def _assign(self, element: Element, context: AssociationContext) -> Tuple[str, str]:
        for name, strategy in self._strategies:
            page_id = strategy(element, context)
            if page_id is not None and page_id in context.page_ids:
                return page_id, name
        # A custom chain without a terminal strategy still must not leave elements unassigned.
        return context.pages[0].page_id, "fallback"

    def _check_ambiguity(self, element: Element, strategy: str, context: AssociationContext) -> None:
        if strategy == "fallback" and len(context.pages) > 1:
            self._context.record(
                AmbiguousPageAssignment(
                    f"{element.element_id} matched no page, assigned to first page {element.page_id}",
                    stage=STAGE,
                )
            )
        elif strategy == "spatial":
            found = containing_pages(element, context)
            if len(found) > 1:
                self._context.record(
                    AmbiguousPageAssignment(
                        f"{element.element_id} center lies on pages {[page.page_id for page in found]}, "
                        f"using {element.page_id}",
                        stage=STAGE,
                    )
                )

    @staticmethod
    def _verify(index: Mapping[str, List[str]], elements: Mapping[str, Element]) -> None:
        listed = [element_id for ids in index.values() for element_id in ids]
        if len(listed) != len(set(listed)) or set(listed) != set(elements):
            raise InconsistentPageIndex("page index is not the inverse of the element assignment", stage=STAGE)

    # ------------------------------------------------------------------
    # Backgrounds
    def apply_backgrounds(
        self,
        pages: Sequence[Page],
        spreads: Sequence[Spread],
        index: Mapping[str, List[str]],
        elements: Mapping[str, Element],
        resolver: StyleResolver,
    ) -> None:
        """Take page backgrounds from full-page rectangles; largest area wins."""
        config = self._context.config
        for page in pages:
            candidates = [
                elements[element_id]
                for element_id in index.get(page.page_id, [])
                if is_full_page_rectangle(elements[element_id], page, config.full_page_ratio, config.full_page_edge_px)
            ]
            if not candidates:
                continue
            chosen = candidates[0]
            for candidate in candidates[1:]:
                if candidate.geometry.area > chosen.geometry.area:  # type: ignore[union-attr]
                    chosen = candidate
            if len(candidates) > 1:
                LOGGER.debug(
                    "Page %s has %d full-page rectangles, using %s", page.page_id, len(candidates), chosen.element_id
                )
            page.background_color = resolver.css_color(chosen.fill_color, BACKGROUND_USAGE)
            page.background_category = resolver.background_category(chosen.fill_color)

        backgrounds = {page.page_id: page.background_color for page in pages}
        for spread in spreads:
            for page_id in spread.page_ids:
                if backgrounds.get(page_id):
                    spread.background_color = backgrounds[page_id]
                    break


def is_full_page_rectangle(element: Element, page: Page, ratio: float, edge: float) -> bool:
    """Rectangle with a real fill that starts at the page origin and covers the page."""
    if element.element_type != "Rectangle" or element.geometry is None or page.geometry is None:
        return False
    if not element.fill_color or element.fill_color == NONE_COLOR_ID:
        return False
    geometry, frame = element.geometry, page.geometry
    if geometry.x - frame.x > edge or geometry.y - frame.y > edge:
        return False
    return geometry.width >= frame.width * ratio and geometry.height >= frame.height * ratio
