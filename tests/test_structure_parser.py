"""Unit tests for StructureParser."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import patch
from models.document import Block, HEADING, PARAGRAPH, TABLE, TABLE_RAW, FIGURE
from services.structure_parser import StructureParser, parse_structure, flatten_blocks


class TestStructureParser:
    """Test suite for StructureParser class."""

    @pytest.fixture
    def parser(self):
        return StructureParser()

    def test_empty_input_returns_no_blocks(self, parser):
        assert parser.parse("") == []
        assert parser.parse("   \n\n  ") == []

    def test_keyword_heading_is_level_one(self, parser):
        blocks = parser.parse("Introduction\nThe trial ran for six weeks.")

        assert blocks[0].type == HEADING
        assert blocks[0].text == "Introduction"
        assert blocks[0].level == 1
        assert blocks[1].type == PARAGRAPH
        assert blocks[1].text == "The trial ran for six weeks."

    def test_numbered_heading_levels(self, parser):
        blocks = parser.parse("1. Overview\n\n2.1 Sampling Plan\n\n3.2.1 Swab Handling")
        headings = [b for b in blocks if b.type == HEADING]

        assert [h.level for h in headings] == [1, 2, 3]

    def test_uppercase_line_is_heading_with_default_level(self, parser):
        blocks = parser.parse("AIRBORNE FUNGAL ANALYSIS\nCounts fell in the treated house.")

        assert blocks[0].type == HEADING
        assert blocks[0].level == 2

    def test_colon_heading_is_cleaned(self, parser):
        blocks = parser.parse("Key findings:\nYield improved.")

        assert blocks[0].type == HEADING
        assert blocks[0].text == "Key findings"

    def test_page_number_is_not_heading(self, parser):
        blocks = parser.parse("The results were consistent\n12")

        assert all(b.type != HEADING for b in blocks)

    def test_sentence_is_not_heading(self, parser):
        blocks = parser.parse("Samples Were Collected Weekly.")

        assert blocks[0].type == PARAGRAPH

    def test_soft_wrapped_lines_are_merged(self, parser):
        text = "the treated house showed lower\nairborne counts throughout the trial."
        blocks = parser.parse(text)

        assert len(blocks) == 1
        assert blocks[0].text == "the treated house showed lower airborne counts throughout the trial."

    def test_sentence_end_keeps_line_break(self, parser):
        text = "the first cycle ended early.\nthe second cycle ran to term."
        blocks = parser.parse(text)

        assert blocks[0].text == "the first cycle ended early.\nthe second cycle ran to term."

    def test_pipe_table_is_parsed(self, parser):
        text = "| House | Yield |\n| --- | --- |\n| Control | 310 kg |\n| Treated | 335 kg |"
        blocks = parser.parse(text)

        assert len(blocks) == 1
        assert blocks[0].type == TABLE
        assert blocks[0].rows == [["House", "Yield"], ["Control", "310 kg"], ["Treated", "335 kg"]]

    def test_whitespace_columns_form_table(self, parser):
        text = "House      Flush 1      Flush 2\nControl    120          95\nTreated    131          104"
        blocks = parser.parse(text)

        assert blocks[0].type == TABLE
        assert blocks[0].rows[0] == ["House", "Flush 1", "Flush 2"]

    def test_single_column_table_falls_back_to_raw(self, parser):
        text = "| Control |\n| Treated |"
        blocks = parser.parse(text)

        assert blocks[0].type == TABLE_RAW
        assert blocks[0].text == text

    def test_figure_caption(self, parser):
        blocks = parser.parse("Figure 3 Relative abundance of Aspergillus")

        assert blocks[0].type == FIGURE
        assert blocks[0].text == "Figure 3 Relative abundance of Aspergillus"

    def test_parse_never_raises(self, parser):
        with patch.object(StructureParser, "_parse_lines", side_effect=RuntimeError("boom")):
            blocks = parser.parse("anything at all")

        assert blocks == [Block(type=PARAGRAPH, text="anything at all")]


class TestFlatten:
    """Test suite for flattening blocks to markdown-style text."""

    def test_flatten_renders_each_block_type(self):
        blocks = [
            Block(type=HEADING, text="Results", level=1),
            Block(type=PARAGRAPH, text="Yield rose."),
            Block(type=TABLE, rows=[["House", "Yield"], ["Treated", "335"]]),
            Block(type=TABLE_RAW, text="a  b"),
            Block(type=FIGURE, text="Figure 1 Yield by flush"),
        ]

        text = flatten_blocks(blocks)

        assert text == (
            "# Results\n\n"
            "Yield rose.\n\n"
            "| House | Yield |\n| --- | --- |\n| Treated | 335 |\n\n"
            "TABLE:\na  b\n\n"
            "FIGURE: Figure 1 Yield by flush"
        )

    def test_heading_level_sets_hash_count(self):
        assert flatten_blocks([Block(type=HEADING, text="Sampling", level=3)]) == "### Sampling"

    def test_parse_then_flatten_keeps_headings_for_segmenter(self):
        text = flatten_blocks(parse_structure("METHODS\nSwabs were taken weekly.\n\nRESULTS\nYield was 12% higher."))

        assert "# METHODS" in text
        assert "Swabs were taken weekly." in text
        assert "# RESULTS" in text
