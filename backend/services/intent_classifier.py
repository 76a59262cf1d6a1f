"""
Query intent classifier.

Maps a free-text query to the section labels it is most likely about, using
ordered keyword families. A query can carry several intents at once
("environment and yield"); the result is used to boost matching sections.
"""

from dataclasses import dataclass, field
import logging
import re
from typing import List, Pattern, Tuple

from models.section import (
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
    MICROBIOLOGY_SUBTYPES,
)

logger = logging.getLogger(__name__)


@dataclass
class QueryIntent:
    """
    Result of intent classification.

    Attributes:
        labels: Matched section labels in family order, ["unknown"] if none matched
        matched_terms: The keyword that triggered each label
    """
    labels: List[str]
    matched_terms: List[str] = field(default_factory=list)

    @property
    def has_microbiology_subtype(self) -> bool:
        return any(label in MICROBIOLOGY_SUBTYPES for label in self.labels)


class QueryIntentClassifier:
    """Keyword-family classifier from query text to section labels."""

    # Ordered keyword families; every family that matches contributes its label
    INTENT_FAMILIES: List[Tuple[str, str]] = [
        (EXECUTIVE_SUMMARY, r"\b(summar\w*|overview|key findings|highlights?)\b"),
        (METHODOLOGY, r"\b(method\w*|protocol\w*|design\w*|sampl\w*|setup|set up)\b"),
        (ENVIRONMENT, r"\b(environment\w*|temperature|humidity|co2|airflow|ventilation)\b"),
        # "kg" also matches when glued to a number ("300kg")
        (PERFORMANCE, r"\b(yield\w*|output|production|class\w*|performance|weight gain)\b|(?<![a-z])kg\b"),
        (ITS1_FUNGAL, r"\b(fung\w*|its1|mou?ld\w*|aspergillus|cladosporium|wallemia|mycobiome)\b"),
        (S16_BACTERIA, r"\b(bacteri\w*|16s|microbiome)\b"),
        (S18_EUKARYOTIC, r"\b(eukaryot\w*|18s|protists?)\b"),
        (MICROBIOLOGY_GENERAL, r"\b(microb\w*|pathogens?|sequencing|diversity|taxonom\w*)\b"),
        (INTERPRETATION, r"\b(interpret\w*|implications?|what does (this|it) mean)\b"),
        (CONCLUSION, r"\b(conclu\w*|takeaways?|bottom line)\b"),
    ]

    def __init__(self):
        self._families: List[Tuple[str, Pattern]] = [
            (label, re.compile(pattern)) for label, pattern in self.INTENT_FAMILIES
        ]

    def classify(self, query: str) -> QueryIntent:
        """
        Classify a query into zero or more section intents.

        Args:
            query: User question string

        Returns:
            QueryIntent with matched labels, defaulting to ["unknown"]
        """
        if not query or not query.strip():
            return QueryIntent(labels=[UNKNOWN])

        query_lower = query.lower()
        labels: List[str] = []
        matched_terms: List[str] = []

        for label, pattern in self._families:
            match = pattern.search(query_lower)
            if match:
                labels.append(label)
                matched_terms.append(match.group(0))

        if not labels:
            logger.debug(f"No intent matched for query: {query[:50]}")
            return QueryIntent(labels=[UNKNOWN])

        logger.info(f"Query intents: {labels} (terms: {', '.join(matched_terms)}) - {query[:50]}")
        return QueryIntent(labels=labels, matched_terms=matched_terms)
