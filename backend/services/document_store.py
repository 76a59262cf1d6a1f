"""Session-scoped store of uploaded documents and their embedded chunks."""
import logging
from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from models.chunk import Chunk
from models.document import Document
from services.chunking_engine import ChunkingEngine
from services.embedding_model import EmbeddingModel, EmbeddingServiceError

logger = logging.getLogger(__name__)


@dataclass
class StoredDocument:
    """A document together with the chunks built from it."""
    document: Document
    chunks: List[Chunk]

    @property
    def embedded_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.is_embedded)

    @property
    def is_ready(self) -> bool:
        return self.embedded_count == len(self.chunks)

    @property
    def sections(self) -> List[str]:
        seen: List[str] = []
        for chunk in self.chunks:
            if chunk.section not in seen:
                seen.append(chunk.section)
        return seen


class DocumentStore:
    """
    Holds each session's documents for the lifetime of the session.

    Chunks are embedded once at ingestion and the vectors are kept on the
    chunks. A document whose embedding failed stays in the session but is left
    out of retrieval until it is uploaded again.
    """

    def __init__(
        self,
        chunking_engine: ChunkingEngine,
        embedding_model: EmbeddingModel,
        batch_size: int = 32
    ):
        """
        Args:
            chunking_engine: Builds section-aware chunks from document text
            embedding_model: Embedding gateway used for chunk vectors
            batch_size: Chunks per embedding request
        """
        self.chunking_engine = chunking_engine
        self.embedding_model = embedding_model
        self.batch_size = batch_size
        self._sessions: Dict[str, Dict[str, StoredDocument]] = {}

    def add_document(self, session_id: str, document: Document, structured: bool = False) -> StoredDocument:
        """
        Chunk and embed a document, replacing any earlier upload with the same id.

        Args:
            session_id: Owning session / conversation
            document: Decoded document
            structured: Run the structural parser first (PDF-extracted text)

        Returns:
            The stored document with its chunks
        """
        chunks = self.chunking_engine.chunk_document(document, structured=structured)
        stored = StoredDocument(document=document, chunks=chunks)
        self._embed(stored)

        documents = self._sessions.setdefault(session_id, {})
        if document.document_id in documents:
            logger.info(f"Replacing document {document.document_id} in session {session_id}")
        documents[document.document_id] = stored

        logger.info(
            f"Stored {document.label} in session {session_id}: "
            f"{stored.embedded_count}/{len(chunks)} chunks embedded"
        )
        return stored

    def get_chunks(self, session_id: str) -> List[Chunk]:
        """
        Retrievable chunks for a session, in upload order.

        Documents that are not fully embedded are left out; they are not
        re-embedded here, so reads never call the embedding service.
        """
        chunks: List[Chunk] = []
        for stored in self._sessions.get(session_id, {}).values():
            if stored.is_ready:
                chunks.extend(stored.chunks)
        return chunks

    def list_documents(self, session_id: str) -> List[StoredDocument]:
        return list(self._sessions.get(session_id, {}).values())

    def has_documents(self, session_id: str) -> bool:
        return bool(self._sessions.get(session_id))

    def remove_document(self, session_id: str, document_id: str) -> bool:
        removed = self._sessions.get(session_id, {}).pop(document_id, None)
        return removed is not None

    def clear(self, session_id: str) -> int:
        """Drop all of a session's documents. Returns how many were removed."""
        removed = self._sessions.pop(session_id, {})
        if removed:
            logger.info(f"Cleared {len(removed)} documents from session {session_id}")
        return len(removed)

    def _embed(self, stored: StoredDocument) -> bool:
        """Embed any chunks of a document still missing vectors."""
        pending = [chunk for chunk in stored.chunks if not chunk.is_embedded]
        if not pending:
            return True

        try:
            for i in range(0, len(pending), self.batch_size):
                batch = pending[i:i + self.batch_size]
                vectors = self.embedding_model.embed_batch([chunk.text for chunk in batch])
                for chunk, vector in zip(batch, vectors):
                    chunk.embedding = np.asarray(vector, dtype=np.float32)
        except EmbeddingServiceError as e:
            logger.warning(
                f"Embedding failed for {stored.document.label}; "
                f"excluding it from retrieval: {e}",
                extra={"context": {"document_id": stored.document.document_id}}
            )
            return False

        return True
