"""
Knowledge pack ingestion script.

This script:
1. Loads the knowledge pack entries from data/knowledge_pack_source.json
2. Labels each entry with a section (from the entry, else its title)
3. Generates embeddings using the HuggingFace API
4. Writes the precomputed pack to KNOWLEDGE_PACK_PATH, read by the API at startup

Usage:
    python ingest_knowledge_pack.py
"""
import json
import sys
import logging
from pathlib import Path
from typing import Any, Dict, List

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.embedding_model import EmbeddingModel
from services.section_segmenter import classify_heading
from config import HUGGINGFACE_API_KEY, KNOWLEDGE_PACK_SOURCE_PATH, KNOWLEDGE_PACK_PATH

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_entries(path: Path) -> List[Dict[str, Any]]:
    """Load and validate the source entries."""
    with open(path, "r", encoding="utf-8") as f:
        entries = json.load(f)

    for entry in entries:
        if not entry.get("id") or not entry.get("text"):
            raise ValueError(f"Knowledge pack entry is missing id or text: {entry}")
    return entries


def build_pack(
    entries: List[Dict[str, Any]],
    embedding_model: EmbeddingModel,
    batch_size: int = 10
) -> List[Dict[str, Any]]:
    """Attach a section label and an embedding to every entry."""
    pack = []
    total_batches = (len(entries) + batch_size - 1) // batch_size

    for i in range(0, len(entries), batch_size):
        batch = entries[i:i + batch_size]
        logger.info(f"Embedding batch {(i // batch_size) + 1}/{total_batches} ({len(batch)} entries)...")
        vectors = embedding_model.embed_batch([entry["text"] for entry in batch])

        for entry, vector in zip(batch, vectors):
            pack.append({
                "id": entry["id"],
                "title": entry.get("title") or entry["id"],
                "section": entry.get("section") or classify_heading(entry.get("title", "")),
                "text": entry["text"],
                "embedding": vector
            })

    return pack


def main():
    """Main ingestion process."""
    try:
        logger.info("Starting knowledge pack ingestion")

        entries = load_entries(KNOWLEDGE_PACK_SOURCE_PATH)
        logger.info(f"Loaded {len(entries)} entries from {KNOWLEDGE_PACK_SOURCE_PATH}")

        if not entries:
            logger.error("No knowledge pack entries found")
            sys.exit(1)

        embedding_model = EmbeddingModel(api_key=HUGGINGFACE_API_KEY)
        logger.info("Warming up embedding model (may take 15-20 seconds on the free tier)...")
        embedding_model.warmup()

        pack = build_pack(entries, embedding_model)

        KNOWLEDGE_PACK_PATH.parent.mkdir(parents=True, exist_ok=True)
        with open(KNOWLEDGE_PACK_PATH, "w", encoding="utf-8") as f:
            json.dump(pack, f, indent=2)

        logger.info(
            f"Wrote {len(pack)} embedded entries ({len(pack[0]['embedding'])} dimensions) "
            f"to {KNOWLEDGE_PACK_PATH}"
        )
        logger.info("Start the API with: python main.py")

    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Ingestion failed: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
