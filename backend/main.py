"""Main entry point for the Ilimex evidence retrieval API."""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import tiktoken
from fastapi import FastAPI, File, Header, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from config import (
    PORT,
    LOG_LEVEL,
    CORS_ORIGINS,
    INTERNAL_API_KEY,
    GENERATION_MODEL,
    KNOWLEDGE_PACK_PATH,
    KNOWLEDGE_PACK_TOP_K,
    MAX_UPLOAD_TEXT_CHARS,
)
from logger import setup_logging
from models.api import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    DocumentIngestRequest,
    DocumentListResponse,
    DocumentSummary,
    IngestResponse,
    RetrieveRequest,
    RetrieveResponse,
    TokenUsage,
)
from models.chunk import ScoredChunk
from models.document import Document
from services.chunking_engine import ChunkingEngine
from services.document_loader import DocumentLoader
from services.document_store import DocumentStore, StoredDocument
from services.embedding_model import EmbeddingModel
from services.knowledge_pack import KnowledgePackRepository
from services.llm_client import LLMClient, LLMClientError
from services.relevance_scorer import ScoringStrategy, INTENT_BOOSTED
from services.retrieval_engine import RetrievalEngine

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ilimex Evidence Retrieval API",
    description="Section-aware evidence retrieval and grounded answers over trial reports",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialized on startup
document_store: DocumentStore = None
knowledge_pack: KnowledgePackRepository = None
retrieval_engine: RetrievalEngine = None
llm_client: LLMClient = None
document_loader: DocumentLoader = None
tiktoken_encoder = None

DOCUMENT_STRATEGY = ScoringStrategy.static_weighted(apply_recency=True)
KNOWLEDGE_PACK_STRATEGY = ScoringStrategy.intent_boosted(top_k=KNOWLEDGE_PACK_TOP_K)


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global document_store, knowledge_pack, retrieval_engine
    global llm_client, document_loader, tiktoken_encoder

    logger.info("Initializing evidence retrieval services...")

    try:
        # Prompt token counting for Llama 3 models
        tiktoken_encoder = tiktoken.get_encoding("o200k_base")

        embedding_model = EmbeddingModel()
        document_store = DocumentStore(ChunkingEngine(), embedding_model)
        knowledge_pack = KnowledgePackRepository.from_file(KNOWLEDGE_PACK_PATH)
        retrieval_engine = RetrievalEngine(embedding_model)
        llm_client = LLMClient()
        document_loader = DocumentLoader()

        logger.info(
            "All services initialized successfully",
            extra={"context": {"knowledge_pack_chunks": len(knowledge_pack)}}
        )
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


def is_privileged(internal_key: Optional[str]) -> bool:
    """Debug payloads are only for callers presenting the internal key."""
    return bool(INTERNAL_API_KEY) and internal_key == INTERNAL_API_KEY


def _summarize(stored: StoredDocument) -> DocumentSummary:
    return DocumentSummary(
        document_id=stored.document.document_id,
        label=stored.document.label,
        uploaded_at=stored.document.uploaded_at,
        chunk_count=len(stored.chunks),
        embedded_chunk_count=stored.embedded_count,
        sections=stored.sections
    )


def _resolve_strategy(source: str, override: Optional[str]) -> ScoringStrategy:
    base = KNOWLEDGE_PACK_STRATEGY if source == "knowledge_pack" else DOCUMENT_STRATEGY
    if override is None or override == base.kind:
        return base
    if override == INTENT_BOOSTED:
        return ScoringStrategy.intent_boosted(apply_recency=base.apply_recency, top_k=base.top_k)
    return ScoringStrategy.static_weighted(apply_recency=base.apply_recency, top_k=base.top_k)


def _retrieve_for_chat(question: str, session_id: Optional[str]) -> Tuple[List[ScoredChunk], str]:
    """Session documents when the session has any, otherwise the knowledge pack."""
    session_chunks = []
    if session_id and document_store.has_documents(session_id):
        session_chunks = document_store.get_chunks(session_id)

    if not session_chunks and not knowledge_pack.chunks:
        return [], "none"

    # One embedding and one classification serve both chunk sets
    query_embedding = retrieval_engine.embed_query(question)
    if query_embedding is None:
        return [], "none"
    intent = retrieval_engine.intent_classifier.classify(question)

    if session_chunks:
        scored = retrieval_engine.retrieve(
            question,
            session_chunks,
            strategy=DOCUMENT_STRATEGY,
            query_embedding=query_embedding,
            intent=intent
        )
        if scored:
            return scored, "documents"

    scored = retrieval_engine.retrieve(
        question,
        knowledge_pack.chunks,
        strategy=KNOWLEDGE_PACK_STRATEGY,
        query_embedding=query_embedding,
        intent=intent
    )
    return scored, "knowledge_pack"


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Ilimex Evidence Retrieval API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "ilimex-evidence-retrieval",
        "version": "1.0.0",
        "knowledge_pack_chunks": len(knowledge_pack) if knowledge_pack is not None else 0
    }


@app.post("/sessions/{session_id}/documents", response_model=IngestResponse)
async def ingest_document(session_id: str, request: DocumentIngestRequest) -> IngestResponse:
    """Add already-extracted document text to a session."""
    document = Document(
        document_id=request.document_id or str(uuid.uuid4()),
        label=request.label,
        text=request.text,
        uploaded_at=request.uploaded_at or datetime.now(timezone.utc)
    )
    stored = document_store.add_document(session_id, document, structured=request.structured)
    return IngestResponse(session_id=session_id, document=_summarize(stored))


@app.post("/sessions/{session_id}/uploads", response_model=IngestResponse)
async def upload_document(session_id: str, file: UploadFile = File(...)) -> IngestResponse:
    """
    Upload a PDF, DOCX or text file into a session.

    Files whose text cannot be extracted are rejected with the loader's
    explanation.
    """
    data = await file.read()
    filename = file.filename or "upload"
    extracted = document_loader.extract_text(filename, data)

    if not extracted.extracted or not extracted.text.strip():
        raise HTTPException(status_code=422, detail=extracted.text or f"No text found in {filename}")

    document = Document(
        document_id=str(uuid.uuid4()),
        label=filename,
        text=extracted.text,
        uploaded_at=datetime.now(timezone.utc)
    )
    # PDF text has already been restructured by the loader
    stored = document_store.add_document(session_id, document)

    preview = extracted.text
    if len(preview) > MAX_UPLOAD_TEXT_CHARS:
        preview = preview[:MAX_UPLOAD_TEXT_CHARS] + "\n\n[Text truncated for length]"

    return IngestResponse(session_id=session_id, document=_summarize(stored), text_preview=preview)


@app.get("/sessions/{session_id}/documents", response_model=DocumentListResponse)
async def list_documents(session_id: str) -> DocumentListResponse:
    documents = [_summarize(stored) for stored in document_store.list_documents(session_id)]
    return DocumentListResponse(session_id=session_id, documents=documents)


@app.delete("/sessions/{session_id}/documents")
async def clear_documents(session_id: str):
    removed = document_store.clear(session_id)
    return {"session_id": session_id, "removed": removed}


@app.post("/retrieve", response_model=RetrieveResponse, response_model_exclude_none=True)
async def retrieve_endpoint(
    request: RetrieveRequest,
    x_internal_key: Optional[str] = Header(default=None)
) -> RetrieveResponse:
    """Rank evidence for a question against session documents or the knowledge pack."""
    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    strategy = _resolve_strategy(request.source, request.strategy)

    if request.source == "knowledge_pack":
        chunk_set = knowledge_pack.chunks
    else:
        if not request.session_id:
            raise HTTPException(status_code=400, detail="session_id is required for source 'documents'")
        chunk_set = document_store.get_chunks(request.session_id)

    intent = retrieval_engine.intent_classifier.classify(request.question)
    scored = retrieval_engine.retrieve(
        request.question, chunk_set, top_k=request.top_k, strategy=strategy, intent=intent
    )

    return RetrieveResponse(
        evidence=RetrievalEngine.to_evidence(scored, include_debug=is_privileged(x_internal_key)),
        intents=intent.labels,
        strategy=strategy.kind
    )


@app.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_endpoint(
    request: ChatRequest,
    x_internal_key: Optional[str] = Header(default=None)
) -> ChatResponse:
    """
    Answer the latest user message, grounded in retrieved evidence when there is any.

    1. Retrieve evidence (session documents, else knowledge pack)
    2. Build the prompt with numbered evidence blocks
    3. Count prompt tokens with tiktoken
    4. Generate and format the reply

    Retrieval never fails the request: with no evidence the answer is
    generated ungrounded.
    """
    start_time = time.time()

    try:
        question = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        ).strip()
        if not question:
            raise HTTPException(status_code=400, detail="A user message is required")

        logger.info(f"Processing chat question: {question[:100]}...")

        try:
            scored, source = _retrieve_for_chat(question, request.session_id)
        except Exception as e:
            logger.error(f"Retrieval failed, answering without evidence: {e}", exc_info=True)
            scored, source = [], "none"

        evidence_context = RetrievalEngine.build_context(scored) if scored else None
        messages = LLMClient.build_messages(
            [m.model_dump() for m in request.messages],
            evidence_context=evidence_context,
            mode=request.mode
        )

        prompt_tokens = sum(len(tiktoken_encoder.encode(m["content"])) for m in messages)

        llm_response = llm_client.generate(model=GENERATION_MODEL, messages=messages)
        reply = LLMClient.format_reply(llm_response.text)

        total_latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Chat answered in {total_latency_ms}ms",
            extra={"context": {
                "evidence_source": source,
                "evidence_count": len(scored),
                "prompt_tokens": prompt_tokens,
                "mode": request.mode
            }}
        )

        return ChatResponse(
            reply=ChatMessage(role="assistant", content=reply),
            evidence=RetrievalEngine.to_evidence(scored, include_debug=is_privileged(x_internal_key)),
            grounded=bool(scored),
            model_used=llm_response.model_used,
            tokens=TokenUsage(
                input=llm_response.tokens_input,
                output=llm_response.tokens_output,
                prompt=prompt_tokens
            ),
            latency_ms=total_latency_ms
        )

    except HTTPException:
        raise
    except LLMClientError as e:
        logger.error(f"LLM client error: {e.error.message}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": e.error.code,
                    "message": e.error.message,
                    "details": e.error.details
                }
            }
        )
    except Exception as e:
        logger.error(f"Unexpected error processing chat: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Internal server error: {str(e)}"
        )


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Ilimex Evidence Retrieval API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
