"""Section label taxonomy and section data model."""
from dataclasses import dataclass

EXECUTIVE_SUMMARY = "executive_summary"
METHODOLOGY = "methodology"
ENVIRONMENT = "environment"
PERFORMANCE = "performance"
ITS1_FUNGAL = "its1_fungal"
S16_BACTERIA = "s16_bacteria"
S18_EUKARYOTIC = "s18_eukaryotic"
MICROBIOLOGY_GENERAL = "microbiology_general"
INTERPRETATION = "interpretation"
CONCLUSION = "conclusion"
UNKNOWN = "unknown"

# Closed taxonomy, in display order
SECTION_LABELS = (
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

MICROBIOLOGY_SUBTYPES = frozenset({ITS1_FUNGAL, S16_BACTERIA, S18_EUKARYOTIC})


@dataclass
class Section:
    """A contiguous run of document lines carrying one section label."""
    label: str
    text: str
