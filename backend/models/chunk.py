"""Chunk data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np


@dataclass
class Chunk:
    """Represents a document chunk for retrieval."""
    chunk_id: str  # Format: "{document_id}:{chunk_index}"
    document_id: str
    document_label: str
    section: str
    text: str
    start_offset: int  # Offsets into the normalised section text
    end_offset: int
    embedding: Optional[np.ndarray] = None
    uploaded_at: Optional[datetime] = None

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None


@dataclass
class ScoredChunk:
    """Chunk with relevance score and the weights that produced it."""
    chunk: Chunk
    raw_similarity: float
    normalized_similarity: float  # 0.0 to 1.0 across the candidate set
    section_weight: float  # static section weight or intent boost
    recency_weight: float
    relevance_score: float  # normalized_similarity * section_weight * recency_weight
