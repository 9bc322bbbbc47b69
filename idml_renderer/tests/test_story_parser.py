"""Tests for story text reconstruction."""
import unittest
from unittest import mock

from idml_renderer.context import ProcessingContext
from idml_renderer.model.story import BREAK_EMPTY_PARAGRAPH, BREAK_EXPLICIT, BREAK_IMPLICIT, BREAK_PARAGRAPH
from idml_renderer.model.style_model import PARAGRAPH, ResourceCatalog, StyleDefinition
from idml_renderer.parser.story_parser import StoryParser, distribute_breaks, story_id_from_path
from idml_renderer.parser.style_resolver import StyleResolver
from idml_renderer.utils.xml_utils import element_to_tree, parse_xml

PACKAGING_NS = "http://ns.adobe.com/AdobeInDesign/idml/1.0/packaging"
STORY_PATH = "Stories/Story_u1.xml"


def _story_xml(body: str) -> str:
    return (
        f'<idPkg:Story xmlns:idPkg="{PACKAGING_NS}" DOMVersion="18.0">'
        f'<Story Self="u1" AppliedTOCStyle="n">{body}</Story>'
        "</idPkg:Story>"
    )


def _paragraph(ranges: str, style: str = "ParagraphStyle/P1") -> str:
    return f'<ParagraphStyleRange AppliedParagraphStyle="{style}">{ranges}</ParagraphStyleRange>'


def _range(inner: str, **attributes: str) -> str:
    attrs = "".join(f' {key}="{value}"' for key, value in attributes.items())
    return f"<CharacterStyleRange{attrs}>{inner}</CharacterStyleRange>"


class StoryParserTest(unittest.TestCase):
    """Document-order reconstruction of runs, breaks and paragraphs."""

    def setUp(self) -> None:
        catalog = ResourceCatalog(
            {
                "ParagraphStyle/P1": StyleDefinition(
                    "ParagraphStyle/P1", PARAGRAPH, "P1", properties={"font_size": 14}
                )
            },
            {},
            {},
            {},
        )
        self.context = ProcessingContext()
        self.parser = StoryParser(StyleResolver(catalog, self.context), self.context)

    def _parse(self, body: str, with_trace: bool = True):
        xml = _story_xml(body)
        tree = element_to_tree(parse_xml(xml))
        return self.parser.parse_story(STORY_PATH, tree, xml if with_trace else None)

    def test_end_to_end_break_after(self) -> None:
        story = self._parse(
            _paragraph(
                _range('<Content>Intro</Content><Br/>', AppliedCharacterStyle="CharacterStyle/$ID/[No character style]")
                + _range("<Content>Body</Content>", AppliedCharacterStyle="CharacterStyle/$ID/[No character style]")
            )
        )
        self.assertEqual(story.story_id, "u1")
        self.assertEqual(story.text, "Intro\nBody")
        self.assertEqual([run.text for run in story.runs], ["Intro", "\n", "Body"])
        self.assertEqual(story.runs[1].break_type, BREAK_EXPLICIT)
        self.assertEqual(story.runs[0].formatting.font_size, 14.0)
        self.assertEqual(story.runs[2].formatting.font_size, 14.0)
        self.assertEqual(story.word_count, 2)
        self.assertEqual(story.line_breaks.explicit, 1)
        self.assertTrue(story.has_line_breaks)
        self.assertEqual(story.summary.paragraph_style, "ParagraphStyle/P1")
        self.assertEqual(story.attributes, {"AppliedTOCStyle": "n"})

    def test_breaks_keep_their_position_between_fragments(self) -> None:
        story = self._parse(_paragraph(_range("<Content>A</Content><Br/><Br/><Content>B</Content>")))
        self.assertEqual(story.text, "A\n\nB")
        self.assertEqual(story.line_breaks.explicit, 2)
        self.assertEqual(story.newline_count, 2)

    def test_leading_break_uses_trace(self) -> None:
        story = self._parse(_paragraph(_range("<Br/><Content>A</Content><Content>B</Content>")))
        self.assertEqual(story.text, "\nAB")

    def test_breaks_are_distributed_without_trace(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Line</Content><Br/><Br/>")), with_trace=False)
        self.assertEqual(story.text, "Line\n\n")

    def test_range_with_only_breaks(self) -> None:
        story = self._parse(_paragraph(_range("<Content>A</Content>") + _range("<Br/>") + _range("<Content>B</Content>")))
        self.assertEqual(story.text, "A\nB")

    def test_letter_fragments_merge(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Hel</Content>") + _range("<Content>lo</Content>")))
        self.assertEqual(story.text, "Hello")
        self.assertFalse(any(run.is_space for run in story.runs))

    def test_letters_merge_across_a_trailing_break(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Hel</Content>") + _range("<Content>lo</Content><Br/>")))
        self.assertEqual(story.text, "Hello\n")

    def test_letters_merge_after_a_leading_break(self) -> None:
        story = self._parse(_paragraph(_range("<Br/><Content>Hel</Content>") + _range("<Content>lo</Content>")))
        self.assertEqual(story.text, "\nHello")

    def test_punctuation_boundary_gets_no_space(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Hello.</Content>") + _range("<Content>World</Content>")))
        self.assertEqual(story.text, "Hello.World")

    def test_space_between_differently_styled_ranges(self) -> None:
        story = self._parse(
            _paragraph(
                _range("<Content>Total 42</Content>", PointSize="12")
                + _range("<Content>items</Content>", PointSize="10")
            )
        )
        self.assertEqual(story.text, "Total 42 items")
        self.assertEqual([run.is_space for run in story.runs], [False, True, False])

    def test_short_same_style_tokens_merge(self) -> None:
        story = self._parse(_paragraph(_range("<Content>A4</Content>") + _range("<Content>b</Content>")))
        self.assertEqual(story.text, "A4b")

    def test_existing_whitespace_is_not_doubled(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Hello </Content>") + _range("<Content>world</Content>")))
        self.assertEqual(story.text, "Hello world")

    def test_heading_to_body_transition_inserts_implicit_break(self) -> None:
        story = self._parse(
            _paragraph(
                _range("<Content>Title</Content>", AppliedCharacterStyle="CharacterStyle/Heading")
                + _range("<Content>Welcome</Content>", AppliedCharacterStyle="CharacterStyle/Body Text")
            )
        )
        self.assertEqual(story.text, "Title\nWelcome")
        self.assertEqual(story.runs[1].break_type, BREAK_IMPLICIT)
        self.assertEqual(story.line_breaks.implicit, 1)

    def test_paragraphs_and_empty_paragraphs(self) -> None:
        story = self._parse(
            _paragraph(_range("<Content>One</Content>"))
            + '<ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/P1"/>'
            + _paragraph(_range("<Content>Two</Content>"))
        )
        self.assertEqual(story.text, "One\n\n\n\n\nTwo")
        self.assertEqual(
            [run.break_type for run in story.runs if run.is_break],
            [BREAK_PARAGRAPH, BREAK_EMPTY_PARAGRAPH, BREAK_PARAGRAPH],
        )
        self.assertEqual(story.line_breaks.total, 3)

    def test_nested_structures_are_visited(self) -> None:
        story = self._parse(
            _paragraph(
                _range("<Content>See </Content>")
                + '<HyperlinkTextSource Self="h1" Name="link">'
                + _range("<Content>docs</Content>")
                + "</HyperlinkTextSource>"
            )
        )
        self.assertEqual(story.text, "See docs")
        self.assertEqual(len(self.context.trace_for(STORY_PATH).runs), 2)

    def test_properties_are_not_story_text(self) -> None:
        story = self._parse(
            _paragraph(
                _range(
                    '<Properties><AppliedFont type="string">Minion Pro</AppliedFont></Properties><Content>Text</Content>'
                )
            )
        )
        self.assertEqual(story.text, "Text")
        self.assertEqual(story.runs[0].formatting.font_family, "Minion Pro")

    def test_entities_and_separators_are_normalized(self) -> None:
        story = self._parse(_paragraph(_range("<Content>Tom &amp;amp; Jerry&#x2028;Next</Content>")))
        self.assertEqual(story.text, "Tom & Jerry\nNext")

    def test_failed_range_becomes_placeholder(self) -> None:
        with mock.patch.object(self.parser._normalizer, "normalize_fragment", side_effect=ValueError("boom")):
            story = self._parse(_paragraph(_range("<Content>Broken</Content>")))
        self.assertEqual(story.text, "[unreadable text]")
        self.assertTrue(story.runs[0].is_placeholder)
        self.assertEqual(
            [d.kind for d in self.context.diagnostics_of("TextReconstructionFailure")], ["TextReconstructionFailure"]
        )

    def test_text_in_unrecognized_child_is_recovered(self) -> None:
        story = self._parse(_paragraph(_range("<Change>Recovered</Change>")))
        self.assertEqual(story.text, "Recovered")
        self.assertEqual(self.context.diagnostics, [])

    def test_loose_range_text_is_recovered(self) -> None:
        story = self._parse(
            _paragraph(_range('Loose text<Properties><Leading type="unit">14</Leading></Properties>'))
        )
        self.assertEqual(story.text, "Loose text")

    def test_unreadable_range_content_becomes_placeholder(self) -> None:
        tree = {
            "Story": {
                "@_Self": "u1",
                "ParagraphStyleRange": {
                    "@_AppliedParagraphStyle": "ParagraphStyle/P1",
                    "CharacterStyleRange": {"Change": 42},
                },
            }
        }
        story = self.parser.parse_story(STORY_PATH, tree)
        self.assertEqual(story.text, "[unreadable text]")
        self.assertTrue(story.runs[0].is_placeholder)
        self.assertEqual([d.kind for d in self.context.diagnostics], ["TextReconstructionFailure"])

    def test_trace_is_cached_per_context(self) -> None:
        self._parse(_paragraph(_range("<Content>A</Content>")))
        self.assertIn(STORY_PATH, self.context.traces)

    def test_parse_isolates_broken_stories(self) -> None:
        good = _story_xml(_paragraph(_range("<Content>Fine</Content>")))
        stories = {
            STORY_PATH: element_to_tree(parse_xml(good)),
            "Stories/Story_u2.xml": {"Story": ""},
        }
        parsed = self.parser.parse(stories, {STORY_PATH: good})
        self.assertEqual(list(parsed), ["u1"])
        self.assertEqual(parsed["u1"].text, "Fine")
        self.assertEqual([d.kind for d in self.context.diagnostics], ["MalformedXML"])


class BreakDistributionTest(unittest.TestCase):
    def test_distribute_breaks(self) -> None:
        self.assertEqual(distribute_breaks(2, 2), [2, 0])
        self.assertEqual(distribute_breaks(5, 3), [2, 3, 0])
        self.assertEqual(distribute_breaks(1, 3), [0, 1, 0])
        self.assertEqual(distribute_breaks(3, 1), [0])
        self.assertEqual(distribute_breaks(0, 3), [0, 0, 0])
        self.assertEqual(distribute_breaks(2, 0), [])

    def test_story_id_from_path(self) -> None:
        self.assertEqual(story_id_from_path("Stories/Story_u1d3.xml"), "u1d3")
        self.assertEqual(story_id_from_path("Stories/Other.xml"), "Other")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
