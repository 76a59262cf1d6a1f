"""Unit tests for DocumentStore."""
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import numpy as np
import pytest
from unittest.mock import Mock
from models.document import Document
from services.chunking_engine import ChunkingEngine
from services.document_store import DocumentStore
from services.embedding_model import EmbeddingServiceError

REPORT = "METHODS\nSwabs were taken weekly.\n\nRESULTS\nYield was 12% higher in the treated house."


def fake_embed_batch(texts):
    return [[float(len(text)), 1.0] for text in texts]


class TestDocumentStore:
    """Test suite for DocumentStore class."""

    @pytest.fixture
    def mock_embedding_model(self):
        model = Mock()
        model.embed_batch.side_effect = fake_embed_batch
        return model

    @pytest.fixture
    def store(self, mock_embedding_model):
        return DocumentStore(ChunkingEngine(chunk_size=200, chunk_overlap=20), mock_embedding_model, batch_size=1)

    def make_document(self, document_id="doc-1", text=REPORT):
        return Document(
            document_id=document_id,
            label=f"{document_id}.pdf",
            text=text,
            uploaded_at=datetime(2025, 1, 1, tzinfo=timezone.utc)
        )

    def test_add_document_embeds_every_chunk(self, store, mock_embedding_model):
        stored = store.add_document("s1", self.make_document())

        assert len(stored.chunks) == 2
        assert stored.is_ready
        assert stored.sections == ["methodology", "performance"]
        assert all(isinstance(c.embedding, np.ndarray) for c in stored.chunks)
        assert stored.chunks[0].embedding.dtype == np.float32
        # batch_size=1 -> one request per chunk
        assert mock_embedding_model.embed_batch.call_count == 2

    def test_get_chunks_does_not_re_embed(self, store, mock_embedding_model):
        store.add_document("s1", self.make_document())
        mock_embedding_model.embed_batch.reset_mock()

        chunks = store.get_chunks("s1")

        assert len(chunks) == 2
        mock_embedding_model.embed_batch.assert_not_called()

    def test_sessions_are_isolated(self, store):
        store.add_document("s1", self.make_document())

        assert store.get_chunks("s2") == []
        assert not store.has_documents("s2")
        assert store.has_documents("s1")

    def test_same_document_id_replaces_upload(self, store):
        store.add_document("s1", self.make_document())
        store.add_document("s1", self.make_document(text="Only one paragraph now."))

        documents = store.list_documents("s1")
        assert len(documents) == 1
        assert len(store.get_chunks("s1")) == 1

    def test_failed_embedding_excludes_document(self, store, mock_embedding_model):
        mock_embedding_model.embed_batch.side_effect = EmbeddingServiceError("down")
        stored = store.add_document("s1", self.make_document())

        assert not stored.is_ready
        assert stored.embedded_count == 0
        assert store.has_documents("s1")
        assert store.get_chunks("s1") == []

    def test_failed_document_is_not_re_embedded_on_read(self, store, mock_embedding_model):
        mock_embedding_model.embed_batch.side_effect = EmbeddingServiceError("down")
        store.add_document("s1", self.make_document())
        calls_at_ingest = mock_embedding_model.embed_batch.call_count

        for _ in range(3):
            assert store.get_chunks("s1") == []

        assert mock_embedding_model.embed_batch.call_count == calls_at_ingest

    def test_reupload_replaces_failed_document(self, store, mock_embedding_model):
        mock_embedding_model.embed_batch.side_effect = EmbeddingServiceError("down")
        store.add_document("s1", self.make_document())

        mock_embedding_model.embed_batch.side_effect = fake_embed_batch
        store.add_document("s1", self.make_document())
        chunks = store.get_chunks("s1")

        assert len(chunks) == 2
        assert all(c.is_embedded for c in chunks)

    def test_remove_and_clear(self, store):
        store.add_document("s1", self.make_document("a"))
        store.add_document("s1", self.make_document("b"))

        assert store.remove_document("s1", "a") is True
        assert store.remove_document("s1", "missing") is False
        assert [d.document.document_id for d in store.list_documents("s1")] == ["b"]

        assert store.clear("s1") == 1
        assert store.clear("s1") == 0
        assert store.list_documents("s1") == []
