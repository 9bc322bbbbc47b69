"""Tests for the raw document-order trace of story fragments and breaks."""
import unittest

from idml_renderer.parser.document_order import build_story_trace

STORY_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Story Self="u1">
  <ParagraphStyleRange AppliedParagraphStyle="ParagraphStyle/Body">
    <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/$ID/[No character style]">
      <Content>A</Content>
      <Br/>
      <Br />
      <Content>B</Content>
    </CharacterStyleRange>
    <CharacterStyleRange AppliedCharacterStyle="CharacterStyle/Emphasis">
      <Br/>
      <Content>C</Content>
      <!-- <Br/> -->
      <Br/>
    </CharacterStyleRange>
  </ParagraphStyleRange>
</Story>
"""


class StoryTraceTest(unittest.TestCase):
    """Fragments and break-after counts in literal order."""

    def setUp(self) -> None:
        self.trace = build_story_trace(STORY_XML)

    def test_ranges_are_numbered_in_opening_order(self) -> None:
        self.assertEqual([run.index for run in self.trace.runs], [0, 1])

    def test_break_after_counts(self) -> None:
        first, second = self.trace.runs
        self.assertEqual(first.fragments, ["A", "B"])
        self.assertEqual(first.breaks_after, [2, 0])
        self.assertEqual(first.leading_breaks, 0)
        self.assertEqual(second.fragments, ["C"])
        self.assertEqual(second.leading_breaks, 1)
        self.assertEqual(second.breaks_after, [1])
        self.assertEqual(second.total_breaks, 2)

    def test_fragments_decode_entities_and_drop_instructions(self) -> None:
        trace = build_story_trace(
            "<Story><CharacterStyleRange><Content>Tom &amp; Jerry</Content>"
            "<Content>a<?ACE 7?>b</Content></CharacterStyleRange></Story>"
        )
        self.assertEqual(trace.runs[0].fragments, ["Tom & Jerry", "ab"])

    def test_find_prefers_position(self) -> None:
        consumed = set()
        found = self.trace.find(0, ["A", "B"], consumed)
        self.assertIs(found, self.trace.runs[0])
        self.assertEqual(consumed, {0})

    def test_find_falls_back_to_signature(self) -> None:
        consumed = set()
        self.assertIs(self.trace.find(5, ["C"], consumed), self.trace.runs[1])
        self.assertIsNone(self.trace.find(1, ["C"], consumed))

    def test_find_without_match(self) -> None:
        self.assertIsNone(self.trace.find(0, ["Z"], set()))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
