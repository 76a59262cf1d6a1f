"""Data models for the evidence retrieval backend."""
from .document import Document, Block
from .section import Section, SECTION_LABELS
from .chunk import Chunk, ScoredChunk
from .api import (
    DocumentIngestRequest,
    DocumentSummary,
    IngestResponse,
    DocumentListResponse,
    Evidence,
    EvidenceDebug,
    RetrieveRequest,
    RetrieveResponse,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    TokenUsage,
)

__all__ = [
    "Document",
    "Block",
    "Section",
    "SECTION_LABELS",
    "Chunk",
    "ScoredChunk",
    "DocumentIngestRequest",
    "DocumentSummary",
    "IngestResponse",
    "DocumentListResponse",
    "Evidence",
    "EvidenceDebug",
    "RetrieveRequest",
    "RetrieveResponse",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "TokenUsage",
]
