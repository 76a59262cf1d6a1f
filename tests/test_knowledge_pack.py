"""Unit tests for KnowledgePackRepository."""
import json
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest
from services.knowledge_pack import KnowledgePackRepository, KNOWLEDGE_PACK_DOCUMENT_ID

ENTRIES = [
    {
        "id": "mushroom-trial-summary",
        "title": "Mushroom Trial Summary",
        "section": "performance",
        "text": "Treated rooms produced a higher first-flush yield.",
        "embedding": [0.1, 0.2, 0.3]
    },
    {
        "id": "faq-air-safety",
        "title": "Airflow and Safety FAQ",
        "text": "UVC light is enclosed within the unit.",
        "embedding": [0.3, 0.2, 0.1],
        "uploaded_at": "2025-03-01T00:00:00Z"
    },
    {
        "id": "no-embedding-yet",
        "title": "Draft",
        "text": "Not embedded."
    },
]


class TestKnowledgePackRepository:
    """Test suite for KnowledgePackRepository class."""

    @pytest.fixture
    def pack_file(self, tmp_path):
        path = tmp_path / "knowledge_pack.json"
        path.write_text(json.dumps(ENTRIES), encoding="utf-8")
        return path

    def test_from_file(self, pack_file):
        repository = KnowledgePackRepository.from_file(pack_file)

        assert len(repository) == 3
        chunk = repository.get("mushroom-trial-summary")
        assert chunk.document_id == KNOWLEDGE_PACK_DOCUMENT_ID
        assert chunk.document_label == "Mushroom Trial Summary"
        assert chunk.section == "performance"
        assert chunk.embedding.dtype == np.float32
        assert chunk.end_offset == len(chunk.text)

    def test_section_falls_back_to_title(self, pack_file):
        repository = KnowledgePackRepository.from_file(pack_file)

        # "Airflow and Safety FAQ" matches the environment rule
        assert repository.get("faq-air-safety").section == "environment"

    def test_timestamp_is_parsed(self, pack_file):
        chunk = KnowledgePackRepository.from_file(pack_file).get("faq-air-safety")

        assert chunk.uploaded_at.year == 2025
        assert chunk.uploaded_at.tzinfo is not None

    def test_entry_without_embedding_is_kept_unembedded(self, pack_file):
        chunk = KnowledgePackRepository.from_file(pack_file).get("no-embedding-yet")

        assert chunk is not None
        assert not chunk.is_embedded

    def test_embeddings_are_read_only(self, pack_file):
        chunk = KnowledgePackRepository.from_file(pack_file).get("mushroom-trial-summary")

        with pytest.raises(ValueError):
            chunk.embedding[0] = 1.0

    def test_missing_file_gives_empty_repository(self, tmp_path):
        repository = KnowledgePackRepository.from_file(tmp_path / "missing.json")

        assert len(repository) == 0
        assert list(repository) == []

    def test_invalid_json_gives_empty_repository(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        assert len(KnowledgePackRepository.from_file(path)) == 0

    def test_malformed_entry_is_skipped(self):
        repository = KnowledgePackRepository.from_entries([
            {"id": "no-text"},
            {"id": "ok", "text": "Fine."},
        ])

        assert [c.chunk_id for c in repository] == ["ok"]

    def test_chunks_is_immutable_sequence(self, pack_file):
        repository = KnowledgePackRepository.from_file(pack_file)

        assert isinstance(repository.chunks, tuple)
        assert repository.get("unknown-id") is None

    def test_non_dict_entries_are_skipped(self):
        repository = KnowledgePackRepository.from_entries([None, "text", {"id": "ok", "text": "Fine."}])

        assert [c.chunk_id for c in repository] == ["ok"]

    def test_object_root_gives_empty_repository(self, tmp_path):
        path = tmp_path / "object.json"
        path.write_text(json.dumps({"id": "x", "text": "t"}), encoding="utf-8")

        assert len(KnowledgePackRepository.from_file(path)) == 0
