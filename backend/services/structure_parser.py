"""Structural parser that turns extracted PDF text into typed blocks."""
import logging
import re
from typing import List

from models.document import Block, HEADING, PARAGRAPH, TABLE, TABLE_RAW, FIGURE

logger = logging.getLogger(__name__)

# Common report / NGS headings that are always treated as headings
KEYWORD_HEADINGS = {
    "introduction",
    "summary",
    "conclusion",
    "results",
    "discussion",
    "methods",
    "materials and methods",
    "sample overview",
    "sample summary",
    "sample information",
    "ngs summary",
    "sequencing summary",
    "taxonomic summary",
    "alpha diversity",
    "beta diversity",
    "quality control",
    "qc summary",
    "table of contents",
}

TOP_LEVEL_HEADING_RE = re.compile(
    r"^(introduction|summary|results|discussion|conclusion|methods|"
    r"materials and methods|ngs summary|sequencing summary)$"
)
PAGE_NUMBER_RE = re.compile(r"^(page\s+\d+|\d+)$", re.IGNORECASE)
NUMBERED_HEADING_RE = re.compile(r"^(\d+(\.\d+)*)\s+\S+")
NUMBERED_LEVEL_RE = re.compile(r"^\d+(\.\d+)*\.?\s+\S+")
LABELLED_HEADING_RE = re.compile(r"^(section|chapter|figure|table)\s+\d+", re.IGNORECASE)
FIGURE_TABLE_RE = re.compile(r"^(figure|table)\s+\d+", re.IGNORECASE)
FIGURE_CAPTION_RE = re.compile(r"^(figure|fig\.?|chart|graph)\s*\d+", re.IGNORECASE)
TITLE_WORD_RE = re.compile(r"^[A-Z][a-z]+$")
SENTENCE_END_RE = re.compile(r"[.!?]$")
COLUMN_SPLIT_RE = re.compile(r"\s{2,}")
BLANK_RUN_RE = re.compile(r"\n{3,}")
MARKDOWN_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
DIVIDER_CELL_RE = re.compile(r"^:?-{3,}:?$")

# Characters after which a line break is kept when merging soft-wrapped lines
HARD_BREAK_CHARS = '.!?:"”)'

MAX_HEADING_LENGTH = 70
MAX_SHORT_COLUMN = 25


class StructureParser:
    """Recovers headings, paragraphs, tables and figure captions from flat text.

    The heuristics are tuned for scientific / report-style PDFs. They are a
    best-effort classifier: short all-caps sentences can be mistaken for
    headings and that is accepted.
    """

    def parse(self, raw_text: str) -> List[Block]:
        """
        Convert raw extracted text into an ordered list of blocks.

        Never raises. If nothing can be recognised the whole input comes back
        as a single paragraph block.

        Args:
            raw_text: Plain text extracted from a PDF or similar source

        Returns:
            List of Block objects in reading order
        """
        if not raw_text or not raw_text.strip():
            return []

        try:
            blocks = self._parse_lines(self._normalise(raw_text).split("\n"))
        except Exception as e:
            logger.warning(f"Structure parsing failed, treating input as one paragraph: {e}")
            blocks = []

        if not blocks:
            return [Block(type=PARAGRAPH, text=raw_text.strip())]

        return blocks

    def flatten(self, blocks: List[Block]) -> str:
        """
        Flatten blocks back to markdown-style text for the retrieval pipeline.

        Headings become '#' lines, parsed tables become pipe tables, raw tables
        a labelled block and figures a 'FIGURE:' caption line.
        """
        parts: List[str] = []

        for block in blocks:
            if block.type == HEADING:
                level = min(max(block.level or 2, 1), 6)
                parts.extend([f"{'#' * level} {block.text or ''}".strip(), ""])
            elif block.type == PARAGRAPH:
                if block.text and block.text.strip():
                    parts.extend([block.text.strip(), ""])
            elif block.type == TABLE and block.rows:
                header, body = block.rows[0], block.rows[1:]
                parts.append(f"| {' | '.join(header)} |")
                parts.append(f"| {' | '.join('---' for _ in header)} |")
                parts.extend(f"| {' | '.join(row)} |" for row in body)
                parts.append("")
            elif block.type == TABLE_RAW and block.text:
                parts.extend(["TABLE:", block.text.strip(), ""])
            elif block.type == FIGURE and block.text:
                parts.extend([f"FIGURE: {block.text.strip()}", ""])

        text = "\n".join(parts)
        return BLANK_RUN_RE.sub("\n\n", text).strip()

    def _parse_lines(self, lines: List[str]) -> List[Block]:
        blocks: List[Block] = []
        paragraph_lines: List[str] = []

        def flush_paragraph() -> None:
            if not paragraph_lines:
                return
            text = self._merge_soft_wrapped_lines(paragraph_lines).strip()
            if text:
                blocks.append(Block(type=PARAGRAPH, text=text))
            paragraph_lines.clear()

        i = 0
        while i < len(lines):
            raw_line = lines[i]
            line = raw_line.strip()

            # Blank line -> paragraph boundary
            if not line:
                flush_paragraph()
                i += 1
                continue

            # Consecutive grid-like lines form one table region
            if self._looks_like_table_row(line):
                flush_paragraph()
                j = i + 1
                while j < len(lines) and self._looks_like_table_row(lines[j].strip()):
                    j += 1
                blocks.append(self._parse_table_block(lines[i:j]))
                i = j
                continue

            if FIGURE_CAPTION_RE.match(line):
                flush_paragraph()
                blocks.append(Block(type=FIGURE, text=line))
                i += 1
                continue

            markdown = MARKDOWN_HEADING_RE.match(line)
            if markdown:
                flush_paragraph()
                blocks.append(Block(
                    type=HEADING,
                    level=min(len(markdown.group(1)), 3),
                    text=self._clean_heading(markdown.group(2)),
                ))
                i += 1
                continue

            if self._is_heading(line):
                flush_paragraph()
                blocks.append(Block(
                    type=HEADING,
                    level=self._heading_level(line),
                    text=self._clean_heading(line),
                ))
                i += 1
                continue

            paragraph_lines.append(raw_line)
            i += 1

        flush_paragraph()
        return blocks

    @staticmethod
    def _normalise(raw_text: str) -> str:
        return raw_text.replace("\r\n", "\n").replace("\t", "    ")

    @staticmethod
    def _merge_soft_wrapped_lines(lines: List[str]) -> str:
        """Rejoin soft-wrapped lines, keeping breaks at sentence ends and hyphens."""
        if len(lines) == 1:
            return lines[0]

        merged = lines[0].strip()
        for line in lines[1:]:
            line = line.strip()
            if merged[-1:] in HARD_BREAK_CHARS or merged.endswith("-"):
                merged = f"{merged}\n{line}"
            else:
                merged = f"{merged} {line}"
        return merged

    @staticmethod
    def _is_heading(line: str) -> bool:
        trimmed = line.strip()
        if not trimmed:
            return False

        # Page numbers / bare numbers
        if PAGE_NUMBER_RE.match(trimmed):
            return False

        if trimmed.lower() in KEYWORD_HEADINGS:
            return True

        # Short, title-like line
        if len(trimmed) <= MAX_HEADING_LENGTH:
            long_words = [w for w in trimmed.split() if len(w) > 2]
            if long_words:
                caps_ratio = sum(1 for w in long_words if w == w.upper()) / len(long_words)
                title_ratio = sum(1 for w in long_words if TITLE_WORD_RE.match(w)) / len(long_words)
            else:
                caps_ratio = title_ratio = 0.0

            title_like = caps_ratio > 0.6 or title_ratio > 0.6 or trimmed.endswith(":")
            if title_like and not SENTENCE_END_RE.search(trimmed):
                return True

        # Numbered sections / figures / tables
        return bool(NUMBERED_HEADING_RE.match(trimmed) or LABELLED_HEADING_RE.match(trimmed))

    @staticmethod
    def _heading_level(line: str) -> int:
        trimmed = line.strip()

        if TOP_LEVEL_HEADING_RE.match(trimmed.lower()):
            return 1

        # "1 Title" / "1. Title" -> 1, "2.1 Subtitle" -> 2, deeper -> 3
        if NUMBERED_LEVEL_RE.match(trimmed):
            dot_count = trimmed.split()[0].rstrip(".").count(".")
            if dot_count == 0:
                return 1
            if dot_count == 1:
                return 2
            return 3

        if FIGURE_TABLE_RE.match(trimmed):
            return 3

        return 2

    @staticmethod
    def _clean_heading(line: str) -> str:
        cleaned = line.strip()
        if cleaned.endswith(":"):
            cleaned = cleaned[:-1]
        return COLUMN_SPLIT_RE.sub(" ", cleaned)

    @staticmethod
    def _looks_like_table_row(line: str) -> bool:
        trimmed = line.strip()
        if len(trimmed) < 5:
            return False

        if "|" in trimmed:
            return True

        columns = [c for c in COLUMN_SPLIT_RE.split(trimmed) if c]
        if len(columns) >= 2:
            short_columns = sum(1 for c in columns if len(c) <= MAX_SHORT_COLUMN)
            return short_columns / len(columns) >= 0.5

        return False

    @staticmethod
    def _parse_table_block(lines: List[str]) -> Block:
        rows: List[List[str]] = []
        for line in lines:
            trimmed = line.strip()
            if "|" in trimmed:
                cells = [cell.strip() for cell in trimmed.split("|")]
            else:
                cells = [cell.strip() for cell in COLUMN_SPLIT_RE.split(trimmed)]
            cells = [cell for cell in cells if cell]
            # Skip markdown divider rows ("| --- | --- |")
            if cells and not all(DIVIDER_CELL_RE.match(cell) for cell in cells):
                rows.append(cells)

        # Ambiguous row shape -> keep the original lines
        if not rows or all(len(row) == 1 for row in rows):
            return Block(type=TABLE_RAW, text="\n".join(lines))

        return Block(type=TABLE, rows=rows)


def parse_structure(raw_text: str) -> List[Block]:
    """Parse raw extracted text into blocks with a default parser."""
    return StructureParser().parse(raw_text)


def flatten_blocks(blocks: List[Block]) -> str:
    """Flatten blocks to markdown-style text with a default parser."""
    return StructureParser().flatten(blocks)
