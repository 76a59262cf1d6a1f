"""Relevance scoring and ranking of candidate chunks against a query embedding."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from models.chunk import Chunk, ScoredChunk
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
from services.embedding_model import Vector, cosine_similarity
from config import MIN_NORMALIZED_SIMILARITY, TOP_K

logger = logging.getLogger(__name__)

STATIC_WEIGHTED = "static-weighted"
INTENT_BOOSTED = "intent-boosted"

# Values > 1 boost, < 1 down-weight. Tuned for microbiology-heavy questions.
STATIC_SECTION_WEIGHTS: Dict[str, float] = {
    EXECUTIVE_SUMMARY: 1.0,
    METHODOLOGY: 0.9,
    ENVIRONMENT: 1.0,
    PERFORMANCE: 1.1,
    ITS1_FUNGAL: 1.2,
    S16_BACTERIA: 1.1,
    S18_EUKARYOTIC: 1.0,
    MICROBIOLOGY_GENERAL: 1.05,
    INTERPRETATION: 1.1,
    CONCLUSION: 1.15,
    UNKNOWN: 0.9,
}

DIRECT_INTENT_BOOST = 1.5
MICROBIOLOGY_INTENT_BOOST = 1.2

RECENT_DAYS = 30
STALE_DAYS = 180
RECENT_WEIGHT = 1.2
STALE_WEIGHT = 0.9


@dataclass(frozen=True)
class ScoringStrategy:
    """
    How section relevance is weighted.

    kind is either "static-weighted" (fixed per-section weight table) or
    "intent-boosted" (multiplier when the chunk's section matches the query
    intents). Recency weighting is independent of the kind.
    """
    kind: str = STATIC_WEIGHTED
    apply_recency: bool = False
    min_normalized_similarity: float = MIN_NORMALIZED_SIMILARITY
    top_k: int = TOP_K
    section_weights: Dict[str, float] = field(default_factory=lambda: dict(STATIC_SECTION_WEIGHTS))

    def __post_init__(self):
        if self.kind not in (STATIC_WEIGHTED, INTENT_BOOSTED):
            raise ValueError(f"Unknown scoring strategy: {self.kind}")
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")

    @classmethod
    def static_weighted(cls, **kwargs) -> "ScoringStrategy":
        return cls(kind=STATIC_WEIGHTED, **kwargs)

    @classmethod
    def intent_boosted(cls, **kwargs) -> "ScoringStrategy":
        return cls(kind=INTENT_BOOSTED, **kwargs)


def normalize_similarities(values: Sequence[float]) -> List[float]:
    """
    Min-max normalize similarities into [0, 1].

    If all values are identical they all become 1 (a uniform set is treated as
    uniformly maximally relevant).
    """
    if not values:
        return []

    low = min(values)
    high = max(values)
    if high == low:
        return [1.0 for _ in values]

    span = high - low
    return [(value - low) / span for value in values]


def static_section_weight(section: Optional[str], weights: Dict[str, float] = STATIC_SECTION_WEIGHTS) -> float:
    """Fixed per-section weight; unlisted sections are neutral."""
    if not section:
        return 1.0
    return weights.get(section.lower(), 1.0)


def intent_boost(section: Optional[str], intents: Sequence[str]) -> float:
    """
    Multiplier for a chunk's section given the query intents.

    1.5 when the section is itself an intent, 1.2 for a general microbiology
    section when any microbiology subtype was asked about, else 1.0.
    """
    if not section:
        return 1.0
    if section in intents:
        return DIRECT_INTENT_BOOST
    if section == MICROBIOLOGY_GENERAL and any(i in MICROBIOLOGY_SUBTYPES for i in intents):
        return MICROBIOLOGY_INTENT_BOOST
    return 1.0


def recency_weight(uploaded_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Weight by document age: <= 30 days 1.2, <= 180 days 1.0, older 0.9.

    No timestamp is neutral (1.0). Naive datetimes are taken as UTC.
    """
    if uploaded_at is None:
        return 1.0

    now = _as_utc(now or datetime.now(timezone.utc))
    age_days = (now - _as_utc(uploaded_at)).total_seconds() / 86400

    if age_days <= RECENT_DAYS:
        return RECENT_WEIGHT
    if age_days <= STALE_DAYS:
        return 1.0
    return STALE_WEIGHT


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RelevanceScorer:
    """Combines normalized similarity, section weighting and recency into one score."""

    def __init__(self, strategy: Optional[ScoringStrategy] = None):
        self.strategy = strategy or ScoringStrategy()

    def score(
        self,
        candidates: Sequence[Chunk],
        query_embedding: Vector,
        intents: Sequence[str] = (),
        now: Optional[datetime] = None,
        strategy: Optional[ScoringStrategy] = None,
        top_k: Optional[int] = None
    ) -> List[ScoredChunk]:
        """
        Score and rank candidate chunks.

        1. Raw cosine similarity of the query against every candidate
        2. Min-max normalization across the candidate set
        3. Static section weight or intent boost, per strategy
        4. Recency weight (strategy.apply_recency only)
        5. score = normalized * section weight * recency weight
        6. Drop candidates whose normalized similarity is below the minimum,
           whatever their weights
        7. Stable sort by score descending, keep the first top_k

        Args:
            candidates: Chunks with embeddings
            query_embedding: Embedding of the query
            intents: Query intent labels (intent-boosted strategy)
            now: Reference time for recency
            strategy: Overrides the scorer's default strategy
            top_k: Overrides the strategy's top_k

        Returns:
            Ranked ScoredChunks, empty if there are no candidates
        """
        if not candidates:
            return []

        strategy = strategy or self.strategy
        limit = top_k or strategy.top_k
        now = now or datetime.now(timezone.utc)

        raw = [cosine_similarity(query_embedding, chunk.embedding) for chunk in candidates]
        normalized = normalize_similarities(raw)

        scored: List[ScoredChunk] = []
        for chunk, raw_sim, norm_sim in zip(candidates, raw, normalized):
            if strategy.kind == INTENT_BOOSTED:
                section_weight = intent_boost(chunk.section, intents)
            else:
                section_weight = static_section_weight(chunk.section, strategy.section_weights)

            recency = recency_weight(chunk.uploaded_at, now) if strategy.apply_recency else 1.0

            scored.append(ScoredChunk(
                chunk=chunk,
                raw_similarity=raw_sim,
                normalized_similarity=norm_sim,
                section_weight=section_weight,
                recency_weight=recency,
                relevance_score=norm_sim * section_weight * recency
            ))

        filtered = [s for s in scored if s.normalized_similarity >= strategy.min_normalized_similarity]
        if not filtered:
            logger.info(
                f"No chunks above normalized similarity {strategy.min_normalized_similarity}"
            )
            return []

        # sorted() is stable: ties keep candidate order
        ranked = sorted(filtered, key=lambda s: s.relevance_score, reverse=True)[:limit]

        logger.debug(
            f"Scored {len(candidates)} candidates with {strategy.kind}: "
            f"{len(filtered)} above threshold, returning {len(ranked)}"
        )
        return ranked
