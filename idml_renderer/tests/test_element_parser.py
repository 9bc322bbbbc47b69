"""Tests for page item extraction and geometry normalization."""
import unittest

from idml_renderer.context import ProcessingContext
from idml_renderer.model.elements import Element
from idml_renderer.model.geometry import Bounds, CoordinateOffset, Geometry, Transform
from idml_renderer.parser.element_parser import (
    ElementParser,
    calculate_coordinate_offset,
    parse_geometric_bounds,
    parse_transform,
    spread_geometry,
    to_pixel_geometry,
)
from idml_renderer.utils.units import UnitConverter
from idml_renderer.utils.xml_utils import element_to_tree, parse_xml, root_node

SPREAD_XML = """
<Spread Self="sp1" ItemTransform="1 0 0 1 0 0">
  <Page Self="p1" GeometricBounds="0 0 792 612" ItemTransform="1 0 0 1 -306 -396"/>
  <Rectangle Self="r1" GeometricBounds="0 0 100 100" ItemTransform="1 0 0 1 0 0"
             FillColor="Color/Paper" StrokeWeight="1.5" TopLeftCornerRadius="6">
    <TransparencySetting><BlendingSetting BlendMode="Multiply" Opacity="40"/></TransparencySetting>
    <Image Self="img1" ItemTransform="1 0 0 1 0 0">
      <Properties><GraphicBounds Left="0" Top="0" Right="50" Bottom="40"/></Properties>
      <Link Self="l1" LinkResourceURI="file:/images/photo.jpg" StoredState="Normal"/>
    </Image>
  </Rectangle>
  <TextFrame Self="tf1" ParentStory="u10" PreviousTextFrame="n" NextTextFrame="tf2"
             GeometricBounds="0 0 50 200" ItemTransform="1 0 0 1 -100 -200">
    <TextFramePreference TextColumnCount="2" TextColumnGutter="12" InsetSpacing="0 0 0 0"/>
  </TextFrame>
  <Group Self="g1" ItemTransform="1 0 0 1 10 10">
    <Oval Self="o1" GeometricBounds="0 0 20 20" ItemTransform="1 0 0 1 5 5"/>
  </Group>
  <GraphicLine GeometricBounds="0 0 0 50"/>
</Spread>
"""


def _element(element_id: str, x: float, y: float, stroke: float = 0.0) -> Element:
    geometry = Geometry(x, y, 10.0, 10.0)
    return Element(
        element_id=element_id,
        element_type="Rectangle",
        spread_id="sp1",
        bounds=Bounds.default(),
        transform=Transform.identity(),
        source_geometry=geometry,
        stroke_weight=stroke,
    )


class GeometryHelpersTest(unittest.TestCase):
    """Bounds/transform parsing and spread-space geometry."""

    def test_parse_geometric_bounds(self) -> None:
        self.assertEqual(parse_geometric_bounds("0 10 100 200"), Bounds(0.0, 10.0, 100.0, 200.0))
        self.assertIsNone(parse_geometric_bounds("1 2 3"))
        self.assertIsNone(parse_geometric_bounds(None))

    def test_parse_transform(self) -> None:
        self.assertEqual(parse_transform("1 0 0 1 10 20"), Transform(tx=10.0, ty=20.0))
        self.assertEqual(parse_transform(None), Transform.identity())
        self.assertEqual(parse_transform("bad"), Transform.identity())

    def test_spread_geometry_translation(self) -> None:
        geometry = spread_geometry(Bounds(0, 0, 100, 200), Transform(tx=-50, ty=-20))
        self.assertEqual(geometry, Geometry(-50.0, -20.0, 200.0, 100.0, 0.0))

    def test_spread_geometry_rotation(self) -> None:
        geometry = spread_geometry(Bounds(0, 0, 10, 20), Transform(a=0, b=1, c=-1, d=0))
        self.assertEqual(geometry.rotation, 90.0)
        self.assertEqual((geometry.width, geometry.height), (20.0, 10.0))
        self.assertEqual(geometry.center, (-5.0, 10.0))

    def test_spread_geometry_scale(self) -> None:
        geometry = spread_geometry(Bounds(0, 0, 10, 10), Transform(a=2, d=3))
        self.assertEqual((geometry.width, geometry.height), (20.0, 30.0))

    def test_transform_composition(self) -> None:
        inner = Transform(tx=5, ty=5)
        outer = Transform(a=2, d=2, tx=10, ty=0)
        self.assertEqual(inner.then(outer).apply(0, 0), (20.0, 10.0))

    def test_to_pixel_geometry(self) -> None:
        pixels = to_pixel_geometry(Geometry(-36, 0, 72, 72, 12.3456), CoordinateOffset(36, 0), UnitConverter())
        self.assertEqual(pixels, Geometry(0.0, 0.0, 96.0, 96.0, 12.35))

    def test_coordinate_offset(self) -> None:
        units = UnitConverter()
        offset = calculate_coordinate_offset([_element("a", -50, 10, stroke=4.0), _element("b", 20, 30)], units)
        self.assertEqual(offset, CoordinateOffset(53.0, 0.0))
        self.assertEqual(calculate_coordinate_offset([], units), CoordinateOffset())
        self.assertEqual(calculate_coordinate_offset([_element("c", 0, 0)], units), CoordinateOffset())


class ElementParserTest(unittest.TestCase):
    """Page items of a spread, including groups and content frames."""

    def setUp(self) -> None:
        self.context = ProcessingContext()
        spread = root_node(element_to_tree(parse_xml(SPREAD_XML)), "Spread")
        self.elements = {
            element.element_id: element
            for element in ElementParser(self.context).parse_spread(spread, "sp1", "Spreads/Spread_sp1.xml")
        }

    def test_items_in_document_order(self) -> None:
        self.assertEqual(list(self.elements), ["r1", "tf1", "g1", "o1", "sp1_graphicline_1"])

    def test_content_frame(self) -> None:
        frame = self.elements["r1"]
        self.assertEqual(frame.element_type, "ContentFrame")
        self.assertTrue(frame.is_content_frame)
        self.assertEqual(frame.placed_content.content_type, "Image")
        self.assertEqual(frame.placed_content.href, "file:/images/photo.jpg")
        self.assertFalse(frame.placed_content.is_embedded)
        self.assertEqual(frame.placed_content.bounds, Bounds(0.0, 0.0, 40.0, 50.0))
        self.assertEqual(frame.fill_color, "Color/Paper")
        self.assertEqual(frame.stroke_weight, 2.0)
        self.assertEqual(frame.corner_radii.top_left, 8.0)
        self.assertEqual(frame.corner_radii.bottom_right, 0.0)

    def test_text_frame(self) -> None:
        frame = self.elements["tf1"]
        self.assertEqual(frame.parent_story_id, "u10")
        self.assertIsNone(frame.previous_text_frame)
        self.assertEqual(frame.next_text_frame, "tf2")
        self.assertEqual(frame.text_frame_preferences.column_count, 2)
        self.assertEqual(frame.text_frame_preferences.column_gutter, 16.0)
        self.assertEqual(frame.text_frame_preferences.insets, [0.0, 0.0, 0.0, 0.0])
        self.assertEqual(frame.source_geometry, Geometry(-100.0, -200.0, 200.0, 50.0, 0.0))
        self.assertIsNone(frame.corner_radii)

    def test_transparency(self) -> None:
        frame = self.elements["r1"]
        self.assertEqual((frame.blend_mode, frame.opacity), ("Multiply", 40.0))
        self.assertEqual((self.elements["tf1"].blend_mode, self.elements["tf1"].opacity), ("Normal", 100.0))

    def test_group_children_compose_transforms(self) -> None:
        group, oval = self.elements["g1"], self.elements["o1"]
        self.assertEqual(group.child_ids, ["o1"])
        self.assertEqual((oval.parent_id, oval.parent_type), ("g1", "Group"))
        self.assertEqual((oval.source_geometry.x, oval.source_geometry.y), (15.0, 15.0))
        self.assertEqual((group.parent_id, group.parent_type), (None, "Spread"))

    def test_normalize_fills_pixel_geometry(self) -> None:
        parser = ElementParser(self.context)
        parser.normalize(self.elements.values(), CoordinateOffset(100, 200))
        self.assertEqual(self.elements["tf1"].geometry, Geometry(0.0, 0.0, 266.67, 66.67, 0.0))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
