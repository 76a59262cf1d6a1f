"""Unit tests for QueryIntentClassifier."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from services.intent_classifier import QueryIntentClassifier


class TestQueryIntentClassifier:
    """Test suite for QueryIntentClassifier class."""

    @pytest.fixture
    def classifier(self):
        return QueryIntentClassifier()

    @pytest.mark.parametrize("query,label", [
        ("what fungal species were found", "its1_fungal"),
        ("Was there less mould in the treated house?", "its1_fungal"),
        ("Which bacteria dominated?", "s16_bacteria"),
        ("Any 18S eukaryotic signal?", "s18_eukaryotic"),
        ("How was sampling done?", "methodology"),
        ("What were the humidity readings?", "environment"),
        ("Did yield improve?", "performance"),
        ("Give me an overview", "executive_summary"),
        ("What are the implications?", "interpretation"),
        ("What is the bottom line?", "conclusion"),
        ("Which pathogens were detected?", "microbiology_general"),
    ])
    def test_single_intent(self, classifier, query, label):
        assert label in classifier.classify(query).labels

    def test_multiple_intents_in_family_order(self, classifier):
        intent = classifier.classify("How did humidity affect yield?")

        assert intent.labels == ["environment", "performance"]
        assert intent.matched_terms == ["humidity", "yield"]

    def test_no_match_defaults_to_unknown(self, classifier):
        intent = classifier.classify("Tell me about the company")

        assert intent.labels == ["unknown"]
        assert intent.matched_terms == []

    def test_empty_query_is_unknown(self, classifier):
        assert classifier.classify("").labels == ["unknown"]
        assert classifier.classify("   ").labels == ["unknown"]

    def test_case_insensitive(self, classifier):
        assert classifier.classify("FUNGAL LOAD").labels == ["its1_fungal"]

    def test_microbiology_subtype_flag(self, classifier):
        assert classifier.classify("bacterial counts").has_microbiology_subtype
        assert not classifier.classify("microbial diversity").has_microbiology_subtype

    def test_word_boundaries(self, classifier):
        # "kg" inside another word must not trigger performance
        assert "performance" not in classifier.classify("background notes").labels

    def test_kg_attached_to_number(self, classifier):
        intent = classifier.classify("was it above 300kg per house")

        assert "performance" in intent.labels
        assert "kg" in intent.matched_terms
