"""Unit tests for RelevanceScorer and its weighting functions."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest
from models.chunk import Chunk
from services.relevance_scorer import (
    RelevanceScorer,
    ScoringStrategy,
    normalize_similarities,
    static_section_weight,
    intent_boost,
    recency_weight,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_chunk(chunk_id, section, embedding, uploaded_at=None):
    return Chunk(
        chunk_id=chunk_id,
        document_id="doc",
        document_label="report.pdf",
        section=section,
        text=f"text of {chunk_id}",
        start_offset=0,
        end_offset=10,
        embedding=np.asarray(embedding, dtype=np.float32),
        uploaded_at=uploaded_at
    )


class TestNormalization:
    def test_min_max(self):
        assert normalize_similarities([0.2, 0.6, 1.0]) == pytest.approx([0.0, 0.5, 1.0])

    def test_uniform_set_is_all_one(self):
        assert normalize_similarities([0.4, 0.4, 0.4]) == [1.0, 1.0, 1.0]

    def test_empty(self):
        assert normalize_similarities([]) == []

    def test_bounds(self):
        values = normalize_similarities([-0.9, 0.1, 0.35, 0.8])
        assert min(values) == 0.0
        assert max(values) == 1.0


class TestWeights:
    def test_static_weights(self):
        assert static_section_weight("its1_fungal") == 1.2
        assert static_section_weight("methodology") == 0.9
        assert static_section_weight("not_a_label") == 1.0
        assert static_section_weight(None) == 1.0

    def test_intent_boost_direct_match(self):
        assert intent_boost("its1_fungal", ["its1_fungal"]) == 1.5

    def test_intent_boost_general_microbiology(self):
        assert intent_boost("microbiology_general", ["s16_bacteria"]) == 1.2
        assert intent_boost("microbiology_general", ["performance"]) == 1.0

    def test_intent_boost_no_match(self):
        assert intent_boost("performance", ["its1_fungal"]) == 1.0
        assert intent_boost(None, ["its1_fungal"]) == 1.0

    @pytest.mark.parametrize("age_days,expected", [
        (0, 1.2),
        (30, 1.2),
        (31, 1.0),
        (180, 1.0),
        (181, 0.9),
    ])
    def test_recency_boundaries(self, age_days, expected):
        assert recency_weight(NOW - timedelta(days=age_days), NOW) == expected

    def test_recency_without_timestamp_is_neutral(self):
        assert recency_weight(None, NOW) == 1.0

    def test_naive_timestamp_taken_as_utc(self):
        naive = (NOW - timedelta(days=10)).replace(tzinfo=None)
        assert recency_weight(naive, NOW) == 1.2


class TestScoringStrategy:
    def test_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            ScoringStrategy(kind="bm25")

    def test_rejects_non_positive_top_k(self):
        with pytest.raises(ValueError):
            ScoringStrategy.static_weighted(top_k=0)

    def test_constructors(self):
        assert ScoringStrategy.static_weighted().kind == "static-weighted"
        assert ScoringStrategy.intent_boosted(apply_recency=True).apply_recency is True


class TestRelevanceScorer:
    """Test suite for RelevanceScorer class."""

    def test_empty_candidates(self):
        assert RelevanceScorer().score([], [1.0, 0.0]) == []

    def test_fungal_intent_ranks_first_on_equal_similarity(self):
        candidates = [
            make_chunk("perf", "performance", [1.0, 0.0]),
            make_chunk("fungal", "its1_fungal", [1.0, 0.0]),
        ]
        scorer = RelevanceScorer(ScoringStrategy.intent_boosted())

        ranked = scorer.score(candidates, [1.0, 0.0], intents=["its1_fungal"], now=NOW)

        assert [s.chunk.chunk_id for s in ranked] == ["fungal", "perf"]
        assert ranked[0].relevance_score == pytest.approx(1.5)
        assert ranked[1].relevance_score == pytest.approx(1.0)

    def test_score_is_product_of_factors(self):
        candidates = [
            make_chunk("a", "conclusion", [1.0, 0.0], uploaded_at=NOW - timedelta(days=5)),
            make_chunk("b", "methodology", [0.0, 1.0], uploaded_at=NOW - timedelta(days=400)),
            make_chunk("c", "unknown", [1.0, 1.0]),
        ]
        scorer = RelevanceScorer(ScoringStrategy.static_weighted(apply_recency=True, min_normalized_similarity=0.0))

        ranked = scorer.score(candidates, [1.0, 0.0], now=NOW)

        for s in ranked:
            assert s.relevance_score == pytest.approx(
                s.normalized_similarity * s.section_weight * s.recency_weight
            )
        top = ranked[0]
        assert top.chunk.chunk_id == "a"
        assert top.section_weight == 1.15
        assert top.recency_weight == 1.2

    def test_recency_ignored_unless_enabled(self):
        candidates = [make_chunk("a", "conclusion", [1.0, 0.0], uploaded_at=NOW - timedelta(days=1))]

        ranked = RelevanceScorer(ScoringStrategy.static_weighted()).score(candidates, [1.0, 0.0], now=NOW)

        assert ranked[0].recency_weight == 1.0

    def test_threshold_uses_normalized_similarity_not_weighted_score(self):
        candidates = [
            make_chunk("best", "unknown", [1.0, 0.0]),
            make_chunk("worst", "its1_fungal", [0.0, 1.0]),
        ]
        scorer = RelevanceScorer(ScoringStrategy.intent_boosted(min_normalized_similarity=0.1))

        ranked = scorer.score(candidates, [1.0, 0.0], intents=["its1_fungal"], now=NOW)

        # The boosted chunk has normalized similarity 0 and is dropped despite its boost
        assert [s.chunk.chunk_id for s in ranked] == ["best"]

    def test_normalized_similarity_bounds(self):
        rng = np.random.default_rng(3)
        candidates = [make_chunk(str(i), "unknown", rng.normal(size=4)) for i in range(10)]
        scorer = RelevanceScorer(ScoringStrategy.static_weighted(min_normalized_similarity=0.0, top_k=10))

        ranked = scorer.score(candidates, rng.normal(size=4), now=NOW)

        assert len(ranked) == 10
        assert all(0.0 <= s.normalized_similarity <= 1.0 for s in ranked)

    def test_ties_keep_candidate_order(self):
        candidates = [make_chunk(f"c{i}", "performance", [1.0, 0.0]) for i in range(4)]

        ranked = RelevanceScorer().score(candidates, [1.0, 0.0], now=NOW)

        assert [s.chunk.chunk_id for s in ranked] == ["c0", "c1", "c2", "c3"]

    def test_top_k(self):
        candidates = [make_chunk(f"c{i}", "performance", [1.0, float(i)]) for i in range(8)]
        scorer = RelevanceScorer(ScoringStrategy.static_weighted(top_k=3))

        assert len(scorer.score(candidates, [1.0, 0.0], now=NOW)) == 3
        assert len(scorer.score(candidates, [1.0, 0.0], now=NOW, top_k=5)) == 5

    def test_per_call_strategy_overrides_default(self):
        candidates = [
            make_chunk("method", "methodology", [1.0, 0.0]),
            make_chunk("concl", "conclusion", [1.0, 0.0]),
        ]
        scorer = RelevanceScorer(ScoringStrategy.static_weighted())

        static = scorer.score(candidates, [1.0, 0.0], intents=["methodology"], now=NOW)
        boosted = scorer.score(
            candidates, [1.0, 0.0], intents=["methodology"], now=NOW,
            strategy=ScoringStrategy.intent_boosted()
        )

        assert static[0].chunk.chunk_id == "concl"
        assert boosted[0].chunk.chunk_id == "method"
