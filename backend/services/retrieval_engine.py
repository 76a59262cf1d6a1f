"""Retrieval engine for orchestrating query embedding, intent detection and ranking."""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from models.api import Evidence, EvidenceDebug
from models.chunk import Chunk, ScoredChunk
from services.embedding_model import EmbeddingModel, EmbeddingServiceError
from services.intent_classifier import QueryIntent, QueryIntentClassifier
from services.relevance_scorer import RelevanceScorer, ScoringStrategy
from services.section_segmenter import format_section_label
from config import TEXT_PREVIEW_CHARS

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Embed the query once, then rank a candidate chunk set against it."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        intent_classifier: Optional[QueryIntentClassifier] = None,
        scorer: Optional[RelevanceScorer] = None
    ):
        """
        Initialize the retrieval engine.

        Args:
            embedding_model: EmbeddingModel instance for query embedding
            intent_classifier: Query intent classifier (default instance if omitted)
            scorer: Relevance scorer holding the default strategy
        """
        self.embedding_model = embedding_model
        self.intent_classifier = intent_classifier or QueryIntentClassifier()
        self.scorer = scorer or RelevanceScorer()
        logger.info("Initialized RetrievalEngine")

    def embed_query(self, query: str) -> Optional[List[float]]:
        """
        Embed a query, or return None when it cannot be embedded.

        Callers that score several chunk sets for one question embed once here
        and pass the vector to retrieve().
        """
        if not query or not query.strip():
            return None

        try:
            logger.debug(f"Embedding query: {query[:100]}...")
            return self.embedding_model.embed_text(query)
        except EmbeddingServiceError as e:
            logger.error(f"Query embedding failed, continuing without evidence: {e}")
            return None

    def retrieve(
        self,
        query: str,
        chunk_set: Sequence[Chunk],
        top_k: Optional[int] = None,
        strategy: Optional[ScoringStrategy] = None,
        now: Optional[datetime] = None,
        query_embedding: Optional[Sequence[float]] = None,
        intent: Optional[QueryIntent] = None
    ) -> List[ScoredChunk]:
        """
        Retrieve the ranked evidence set for a query.

        An empty result is a valid outcome meaning "no grounding evidence":
        it is returned for an empty query, an empty candidate set, a candidate
        set with no embedded chunks, or a query the embedding service could
        not embed.

        Args:
            query: User question
            chunk_set: Candidate chunks; chunks without embeddings are skipped
            top_k: Maximum number of chunks (defaults to the strategy's top_k)
            strategy: Scoring strategy for this caller
            now: Reference time for recency weighting
            query_embedding: Precomputed query vector from embed_query()
            intent: Precomputed intent from the classifier

        Returns:
            List of scored chunks, best first
        """
        if not query or not query.strip():
            logger.warning("Empty query string provided, returning empty results")
            return []

        candidates = [chunk for chunk in chunk_set if chunk.is_embedded]
        if len(candidates) < len(chunk_set):
            logger.debug(f"Skipping {len(chunk_set) - len(candidates)} chunks without embeddings")

        if not candidates:
            logger.info("No candidate chunks for query")
            return []

        if query_embedding is None:
            query_embedding = self.embed_query(query)
            if query_embedding is None:
                return []

        if intent is None:
            intent = self.intent_classifier.classify(query)

        scored = self.scorer.score(
            candidates,
            query_embedding,
            intents=intent.labels,
            now=now,
            strategy=strategy,
            top_k=top_k
        )

        if scored:
            logger.info(
                f"Retrieved {len(scored)} chunks from {len(candidates)} candidates "
                f"(top score: {scored[0].relevance_score:.3f})"
            )
        return scored

    @staticmethod
    def to_evidence(
        scored_chunks: Sequence[ScoredChunk],
        include_debug: bool = False,
        preview_chars: int = TEXT_PREVIEW_CHARS
    ) -> List[Evidence]:
        """
        Build the evidence payload for callers and the evidence panel.

        Debug weights are only attached when include_debug is set (privileged
        callers).
        """
        evidence = []
        for rank, scored in enumerate(scored_chunks, start=1):
            chunk = scored.chunk
            debug = None
            if include_debug:
                debug = EvidenceDebug(
                    raw_similarity=scored.raw_similarity,
                    normalized_similarity=scored.normalized_similarity,
                    section_weight=scored.section_weight,
                    recency_weight=scored.recency_weight
                )
            evidence.append(Evidence(
                id=chunk.chunk_id,
                rank=rank,
                section=chunk.section,
                section_display=format_section_label(chunk.section) or "Other",
                text_preview=_preview(chunk.text, preview_chars),
                score=scored.relevance_score,
                document_label=chunk.document_label,
                debug=debug
            ))
        return evidence

    @staticmethod
    def build_context(scored_chunks: Sequence[ScoredChunk]) -> str:
        """Render ranked chunks as numbered context blocks for the prompt."""
        blocks = []
        for rank, scored in enumerate(scored_chunks, start=1):
            chunk = scored.chunk
            section = format_section_label(chunk.section) or "Other"
            blocks.append(f"[{rank}] {chunk.document_label} ({section}):\n{chunk.text.strip()}")
        return "\n\n".join(blocks)


def _preview(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
