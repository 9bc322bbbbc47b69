"""Tests for the page association cascade and page backgrounds."""
import unittest

from idml_renderer.context import ProcessingContext
from idml_renderer.errors import InconsistentPageIndex
from idml_renderer.model.elements import Element, Page, Spread
from idml_renderer.model.geometry import Bounds, CoordinateOffset, Geometry, Transform
from idml_renderer.model.style_model import ColorDefinition, ResourceCatalog
from idml_renderer.parser.page_association import STRATEGIES, PageAssociationEngine, is_full_page_rectangle
from idml_renderer.parser.style_resolver import StyleResolver


def _page(page_id: str, spread_id: str, x: float, width: float = 100.0, height: float = 100.0) -> Page:
    geometry = Geometry(x, 0.0, width, height)
    return Page(
        page_id=page_id,
        name=page_id,
        index=0,
        spread_id=spread_id,
        bounds=Bounds.default(),
        transform=Transform.identity(),
        source_geometry=geometry,
        geometry=geometry,
    )


def _element(element_id, spread_id, x, y, width=10.0, height=10.0, element_type="Rectangle", **fields) -> Element:
    geometry = Geometry(x, y, width, height)
    return Element(
        element_id=element_id,
        element_type=element_type,
        spread_id=spread_id,
        bounds=Bounds.default(),
        transform=Transform.identity(),
        source_geometry=geometry,
        geometry=geometry,
        **fields,
    )


class PageAssociationTest(unittest.TestCase):
    """Each element lands on exactly one page via the first matching strategy."""

    def setUp(self) -> None:
        self.context = ProcessingContext()
        self.engine = PageAssociationEngine(self.context)
        self.pages = [_page("p1", "s1", 0.0), _page("p2", "s1", 100.0), _page("p3", "s2", 300.0)]

    def _associate(self, *elements: Element):
        index = self.engine.associate(self.pages, {e.element_id: e for e in elements}, CoordinateOffset())
        return index

    def test_direct_page_reference(self) -> None:
        element = _element("e1", "s1", 10, 10, page_id="p2")
        self._associate(element)
        self.assertEqual((element.page_id, element.assignment_strategy), ("p2", "direct"))

    def test_structural_parent(self) -> None:
        element = _element("e1", "s1", 10, 10, parent_id="p2", parent_type="Page")
        self._associate(element)
        self.assertEqual((element.page_id, element.assignment_strategy), ("p2", "structural_parent"))

    def test_single_page_spread(self) -> None:
        element = _element("e1", "s2", 0, 0)
        self._associate(element)
        self.assertEqual((element.page_id, element.assignment_strategy), ("p3", "single_page_spread"))

    def test_spatial_containment(self) -> None:
        element = _element("e1", "s1", 145, 45)
        self._associate(element)
        self.assertEqual((element.page_id, element.assignment_strategy), ("p2", "spatial"))
        self.assertEqual(self.context.diagnostics, [])

    def test_center_on_shared_edge_is_ambiguous(self) -> None:
        element = _element("e1", "s1", 95, 45)
        self._associate(element)
        self.assertEqual(element.page_id, "p1")
        self.assertEqual(len(self.context.diagnostics_of("AmbiguousPageAssignment")), 1)

    def test_fallback_to_first_page(self) -> None:
        element = _element("e1", "unknown", 1000, 1000)
        self._associate(element)
        self.assertEqual((element.page_id, element.assignment_strategy), ("p1", "fallback"))
        self.assertEqual([d.kind for d in self.context.diagnostics], ["AmbiguousPageAssignment"])

    def test_index_is_inverse_of_assignment(self) -> None:
        elements = [
            _element("a", "s1", 10, 10),
            _element("b", "s1", 150, 10),
            _element("c", "s2", 0, 0),
            _element("d", "elsewhere", 5000, 0),
        ]
        index = self._associate(*elements)
        self.assertEqual(index, {"p1": ["a", "d"], "p2": ["b"], "p3": ["c"]})
        listed = [element_id for ids in index.values() for element_id in ids]
        self.assertEqual(sorted(listed), ["a", "b", "c", "d"])

    def test_unknown_direct_page_is_ignored(self) -> None:
        element = _element("e1", "s2", 0, 0, page_id="p404")
        self._associate(element)
        self.assertEqual(element.page_id, "p3")

    def test_custom_chain_still_assigns(self) -> None:
        engine = PageAssociationEngine(self.context, STRATEGIES[:1])
        element = _element("e1", "s2", 0, 0)
        engine.associate(self.pages, {"e1": element}, CoordinateOffset())
        self.assertEqual((element.page_id, element.assignment_strategy), ("p1", "fallback"))

    def test_no_pages(self) -> None:
        with self.assertRaises(ValueError):
            self.engine.associate([], {}, CoordinateOffset())

    def test_inconsistent_index_is_fatal(self) -> None:
        element = _element("a", "s1", 0, 0)
        for index in ({"p1": ["a", "a"]}, {"p1": []}, {"p1": ["a", "ghost"]}):
            with self.assertRaises(InconsistentPageIndex) as caught:
                PageAssociationEngine._verify(index, {"a": element})
            self.assertIsInstance(caught.exception, ValueError)
            self.assertEqual(caught.exception.stage, "association")


class BackgroundTest(unittest.TestCase):
    """Page backgrounds taken from full-page rectangles."""

    def setUp(self) -> None:
        self.context = ProcessingContext()
        colors = {
            "Color/Sky": ColorDefinition("Color/Sky", "Sky", "RGB", rgb=(0.0, 128.0, 255.0)),
            "Color/Paper": ColorDefinition(
                "Color/Paper", "Paper", "CMYK", cmyk=(0.0, 0.0, 0.0, 0.0), background_category="paper"
            ),
        }
        self.resolver = StyleResolver(ResourceCatalog({}, {}, {}, colors), self.context)
        self.engine = PageAssociationEngine(self.context)
        self.pages = [_page("p1", "s1", 0.0), _page("p2", "s1", 100.0)]
        self.spreads = [Spread("s1", None, page_ids=["p1", "p2"])]

    def _apply(self, *elements: Element) -> None:
        by_id = {element.element_id: element for element in elements}
        index = self.engine.associate(self.pages, by_id, CoordinateOffset())
        self.engine.apply_backgrounds(self.pages, self.spreads, index, by_id, self.resolver)

    def test_largest_full_page_rectangle_wins(self) -> None:
        self._apply(
            _element("inner", "s1", 2, 2, 96, 96, fill_color="Color/Paper"),
            _element("full", "s1", 0, 0, 100, 100, fill_color="Color/Sky"),
            _element("small", "s1", 0, 0, 50, 50, fill_color="Color/Paper"),
        )
        self.assertEqual(self.pages[0].background_color, "#0080ff")
        self.assertIsNone(self.pages[0].background_category)
        self.assertIsNone(self.pages[1].background_color)
        self.assertEqual(self.spreads[0].background_color, "#0080ff")

    def test_paper_background(self) -> None:
        self._apply(_element("bg", "s1", 100, 0, 100, 100, fill_color="Color/Paper"))
        self.assertIsNone(self.pages[0].background_color)
        self.assertEqual(self.pages[1].background_color, "#ffffff")
        self.assertEqual(self.pages[1].background_category, "paper")
        self.assertEqual(self.spreads[0].background_color, "#ffffff")

    def test_tie_keeps_first_rectangle(self) -> None:
        self._apply(
            _element("first", "s1", 0, 0, 100, 100, fill_color="Color/Paper"),
            _element("second", "s1", 0, 0, 100, 100, fill_color="Color/Sky"),
        )
        self.assertEqual(self.pages[0].background_color, "#ffffff")

    def test_is_full_page_rectangle(self) -> None:
        page = self.pages[0]
        self.assertTrue(is_full_page_rectangle(_element("a", "s1", 4, 4, 96, 96, fill_color="Color/Sky"), page, 0.95, 5.0))
        self.assertFalse(is_full_page_rectangle(_element("b", "s1", 6, 0, 100, 100, fill_color="Color/Sky"), page, 0.95, 5.0))
        self.assertFalse(is_full_page_rectangle(_element("c", "s1", 0, 0, 100, 100), page, 0.95, 5.0))
        self.assertFalse(
            is_full_page_rectangle(
                _element("d", "s1", 0, 0, 100, 100, element_type="Oval", fill_color="Color/Sky"), page, 0.95, 5.0
            )
        )


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
