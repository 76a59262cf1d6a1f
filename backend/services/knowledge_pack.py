"""Read-only repository for the built-in knowledge pack and its precomputed embeddings."""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from models.chunk import Chunk
from services.section_segmenter import classify_heading

logger = logging.getLogger(__name__)

KNOWLEDGE_PACK_DOCUMENT_ID = "knowledge-pack"


class KnowledgePackRepository:
    """
    Static chunks of the knowledge pack, built once at startup and only read afterwards.

    Embeddings are generated offline by ingest_knowledge_pack.py. Entries
    without an embedding are kept but never retrieved.
    """

    def __init__(self, chunks: Sequence[Chunk] = ()):
        self._chunks: Tuple[Chunk, ...] = tuple(chunks)
        for chunk in self._chunks:
            if chunk.embedding is not None:
                chunk.embedding.setflags(write=False)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KnowledgePackRepository":
        """
        Load the precomputed pack from a JSON file.

        A missing or unreadable file yields an empty repository; retrieval then
        simply finds no knowledge pack evidence.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                entries = json.load(f)
        except FileNotFoundError:
            logger.error(f"Knowledge pack not found at {path}; run ingest_knowledge_pack.py")
            return cls()
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read knowledge pack {path}: {e}")
            return cls()

        if not isinstance(entries, list):
            logger.error(f"Knowledge pack {path} must contain a list of entries, got {type(entries).__name__}")
            return cls()

        repository = cls.from_entries(entries)
        logger.info(f"Loaded {len(repository)} knowledge pack chunks from {path}")
        return repository

    @classmethod
    def from_entries(cls, entries: List[Dict[str, Any]]) -> "KnowledgePackRepository":
        chunks = []
        for entry in entries:
            try:
                chunks.append(cls._entry_to_chunk(entry))
            except (KeyError, TypeError, ValueError) as e:
                entry_id = entry.get("id", "?") if isinstance(entry, dict) else "?"
                logger.warning(f"Skipping malformed knowledge pack entry {entry_id}: {e}")
        return cls(chunks)

    @staticmethod
    def _entry_to_chunk(entry: Dict[str, Any]) -> Chunk:
        text = entry["text"]
        title = entry.get("title") or entry["id"]
        embedding = entry.get("embedding")

        return Chunk(
            chunk_id=entry["id"],
            document_id=KNOWLEDGE_PACK_DOCUMENT_ID,
            document_label=title,
            section=entry.get("section") or classify_heading(title),
            text=text,
            start_offset=0,
            end_offset=len(text),
            embedding=np.asarray(embedding, dtype=np.float32) if embedding else None,
            uploaded_at=_parse_timestamp(entry.get("uploaded_at"))
        )

    @property
    def chunks(self) -> Tuple[Chunk, ...]:
        return self._chunks

    def get(self, chunk_id: str) -> Optional[Chunk]:
        for chunk in self._chunks:
            if chunk.chunk_id == chunk_id:
                return chunk
        return None

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[Chunk]:
        return iter(self._chunks)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
