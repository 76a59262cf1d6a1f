"""Services for the Ilimex evidence retrieval backend."""
from .structure_parser import StructureParser
from .section_segmenter import SectionSegmenter
from .chunking_engine import ChunkingEngine
from .embedding_model import EmbeddingModel, EmbeddingServiceError
from .intent_classifier import QueryIntentClassifier, QueryIntent
from .relevance_scorer import RelevanceScorer, ScoringStrategy
from .retrieval_engine import RetrievalEngine
from .document_store import DocumentStore
from .knowledge_pack import KnowledgePackRepository
from .document_loader import DocumentLoader
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError

__all__ = ['StructureParser', 'SectionSegmenter', 'ChunkingEngine', 'EmbeddingModel', 'EmbeddingServiceError', 'QueryIntentClassifier', 'QueryIntent', 'RelevanceScorer', 'ScoringStrategy', 'RetrievalEngine', 'DocumentStore', 'KnowledgePackRepository', 'DocumentLoader', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError']
