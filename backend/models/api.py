"""Request and response models for the HTTP API."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class DocumentIngestRequest(BaseModel):
    """Already-extracted document text to add to a session."""
    label: str = Field(min_length=1)
    text: str = Field(min_length=1)
    document_id: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    structured: bool = False  # Run the structural parser first (PDF-extracted text)


class DocumentSummary(BaseModel):
    document_id: str
    label: str
    uploaded_at: Optional[datetime] = None
    chunk_count: int
    embedded_chunk_count: int
    sections: List[str]


class IngestResponse(BaseModel):
    session_id: str
    document: DocumentSummary
    text_preview: Optional[str] = None


class DocumentListResponse(BaseModel):
    session_id: str
    documents: List[DocumentSummary]


class EvidenceDebug(BaseModel):
    """Intermediate scoring values, only shown to privileged callers."""
    raw_similarity: float
    normalized_similarity: float
    section_weight: float
    recency_weight: float


class Evidence(BaseModel):
    """One ranked evidence item for grounding and the evidence panel."""
    id: str
    rank: int
    section: str
    section_display: str
    text_preview: str
    score: float
    document_label: str
    debug: Optional[EvidenceDebug] = None


class RetrieveRequest(BaseModel):
    question: str = Field(min_length=1)
    session_id: Optional[str] = None
    source: Literal["documents", "knowledge_pack"] = "documents"
    strategy: Optional[Literal["static-weighted", "intent-boosted"]] = None
    top_k: Optional[int] = Field(default=None, ge=1, le=20)


class RetrieveResponse(BaseModel):
    evidence: List[Evidence]
    intents: List[str]
    strategy: str


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)
    session_id: Optional[str] = None
    mode: Literal["public", "internal"] = "public"


class TokenUsage(BaseModel):
    input: int
    output: int
    prompt: int  # Counted locally before generation


class ChatResponse(BaseModel):
    reply: ChatMessage
    evidence: List[Evidence]
    grounded: bool
    model_used: str
    tokens: TokenUsage
    latency_ms: int
