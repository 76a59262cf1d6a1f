"""Section segmentation with strict and fuzzy heading classification."""
import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from models.section import (
    Section,
    EXECUTIVE_SUMMARY,
    METHODOLOGY,
    ENVIRONMENT,
    PERFORMANCE,
    ITS1_FUNGAL,
    S16_BACTERIA,
    S18_EUKARYOTIC,
    MICROBIOLOGY_GENERAL,
    INTERPRETATION,
    CONCLUSION,
    UNKNOWN,
)

logger = logging.getLogger(__name__)

# Exact heading matches (lowercased, trimmed)
STRICT_HEADINGS: Dict[str, str] = {
    "executive summary": EXECUTIVE_SUMMARY,
    "summary": EXECUTIVE_SUMMARY,
    "introduction": EXECUTIVE_SUMMARY,

    "methodology": METHODOLOGY,
    "methods": METHODOLOGY,
    "materials and methods": METHODOLOGY,
    "trial description": METHODOLOGY,
    "trial design": METHODOLOGY,
    "protocol": METHODOLOGY,
    "sampling": METHODOLOGY,

    "environmental conditions": ENVIRONMENT,
    "environment": ENVIRONMENT,
    "airflow": ENVIRONMENT,

    "performance": PERFORMANCE,
    "yield": PERFORMANCE,
    "results": PERFORMANCE,
    "production performance": PERFORMANCE,

    "its1": ITS1_FUNGAL,
    "airborne fungal": ITS1_FUNGAL,
    "fungal": ITS1_FUNGAL,
    "mycobiome": ITS1_FUNGAL,

    "16s": S16_BACTERIA,
    "bacterial": S16_BACTERIA,
    "microbiome": S16_BACTERIA,

    "18s": S18_EUKARYOTIC,
    "eukaryotic": S18_EUKARYOTIC,

    "microbiology": MICROBIOLOGY_GENERAL,
    "microbiological analysis": MICROBIOLOGY_GENERAL,

    "interpretation": INTERPRETATION,
    "integrated interpretation": INTERPRETATION,

    "conclusion": CONCLUSION,
    "conclusions": CONCLUSION,
    "overall conclusion": CONCLUSION,
}

# Fuzzy keyword rules, evaluated in order; the first matching rule wins
FUZZY_RULES: List[Tuple[str, List[Pattern]]] = [
    (EXECUTIVE_SUMMARY, [re.compile(p, re.IGNORECASE) for p in (
        r"summary", r"overview", r"executive", r"introduction")]),
    (METHODOLOGY, [re.compile(p, re.IGNORECASE) for p in (
        r"method", r"protocol", r"sampling", r"trial design", r"setup")]),
    (ENVIRONMENT, [re.compile(p, re.IGNORECASE) for p in (
        r"environment", r"temperature", r"humidity", r"co2", r"airflow")]),
    (PERFORMANCE, [re.compile(p, re.IGNORECASE) for p in (
        r"yield", r"production", r"performance", r"kg", r"class")]),
    (ITS1_FUNGAL, [re.compile(p, re.IGNORECASE) for p in (
        r"its1", r"fungal", r"aspergillus", r"cladosporium", r"wallemia")]),
    (S16_BACTERIA, [re.compile(p, re.IGNORECASE) for p in (
        r"16s", r"bacterial", r"microbiome")]),
    (S18_EUKARYOTIC, [re.compile(p, re.IGNORECASE) for p in (
        r"18s", r"eukaryotic")]),
    (MICROBIOLOGY_GENERAL, [re.compile(p, re.IGNORECASE) for p in (
        r"microbio", r"pathogen", r"sequencing", r"taxonom", r"diversity")]),
    (INTERPRETATION, [re.compile(p, re.IGNORECASE) for p in (
        r"interpretation", r"integrated")]),
    (CONCLUSION, [re.compile(p, re.IGNORECASE) for p in (
        r"conclusion", r"overall")]),
]

# Display names for the evidence panel
SECTION_DISPLAY_NAMES: Dict[str, str] = {
    EXECUTIVE_SUMMARY: "Executive Summary",
    METHODOLOGY: "Methodology",
    ENVIRONMENT: "Environment",
    PERFORMANCE: "Performance",
    ITS1_FUNGAL: "ITS1 Fungal",
    S16_BACTERIA: "16S Bacterial",
    S18_EUKARYOTIC: "18S Eukaryotic",
    MICROBIOLOGY_GENERAL: "Microbiology",
    INTERPRETATION: "Interpretation",
    CONCLUSION: "Conclusion",
    UNKNOWN: "Other",
}

MARKDOWN_HEADING_RE = re.compile(r"^#{1,6}\s+(.*)$")
PLAIN_HEADING_RE = re.compile(r"^[A-Za-z0-9 ()\-–&]+$")
MAX_PLAIN_HEADING_LENGTH = 80


def classify_heading(heading: str) -> str:
    """
    Map heading text to a section label.

    Exact table lookup first, then the fuzzy rules in order, else 'unknown'.
    """
    clean = heading.lower().strip()

    if clean in STRICT_HEADINGS:
        return STRICT_HEADINGS[clean]

    for label, patterns in FUZZY_RULES:
        if any(pattern.search(clean) for pattern in patterns):
            return label

    return UNKNOWN


def format_section_label(section: Optional[str]) -> Optional[str]:
    """Human-readable section name, e.g. 'its1_fungal' -> 'ITS1 Fungal'."""
    if not section:
        return None
    key = section.lower()
    if key in SECTION_DISPLAY_NAMES:
        return SECTION_DISPLAY_NAMES[key]
    return " ".join(word.capitalize() for word in key.split("_"))


class SectionSegmenter:
    """Splits heading-annotated document text into labelled sections."""

    def split_into_sections(self, full_text: str) -> List[Section]:
        """
        Split text into sections at heading lines.

        Heading lines are consumed (not part of any section's text). Text before
        the first heading, or in a document with no headings, is labelled
        'unknown'.

        Args:
            full_text: Flattened document text

        Returns:
            Ordered list of Section objects partitioning the non-heading lines
        """
        current_label = UNKNOWN
        buffer: List[str] = []
        sections: List[Section] = []

        for line in full_text.splitlines() or [""]:
            heading = self.heading_text(line)
            if heading is not None:
                if buffer:
                    sections.append(Section(label=current_label, text="\n".join(buffer)))
                    buffer = []
                current_label = classify_heading(heading)
                logger.debug(f"Heading '{heading[:60]}' -> {current_label}")
                continue

            buffer.append(line)

        if buffer:
            sections.append(Section(label=current_label, text="\n".join(buffer)))

        logger.debug(
            f"Segmented document into {len(sections)} sections: "
            f"{[s.label for s in sections]}"
        )
        return sections

    @staticmethod
    def heading_text(line: str) -> Optional[str]:
        """Return the heading text if the line is a heading, else None."""
        trimmed = line.strip()
        if not trimmed:
            return None

        markdown = MARKDOWN_HEADING_RE.match(trimmed)
        if markdown:
            return markdown.group(1).strip()

        if (
            len(trimmed) < MAX_PLAIN_HEADING_LENGTH
            and PLAIN_HEADING_RE.match(trimmed)
            and trimmed == trimmed.upper()
            and any(c.isalpha() for c in trimmed)
        ):
            return trimmed

        return None
