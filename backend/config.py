"""Configuration management for the Ilimex evidence retrieval backend."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Model Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "llama-3.1-8b-instant")
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.3"))

# Chunking Configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))  # characters
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))  # characters

# Retrieval Configuration
MIN_NORMALIZED_SIMILARITY = float(os.getenv("MIN_NORMALIZED_SIMILARITY", "0.1"))
TOP_K = int(os.getenv("TOP_K", "6"))
KNOWLEDGE_PACK_TOP_K = int(os.getenv("KNOWLEDGE_PACK_TOP_K", "3"))
TEXT_PREVIEW_CHARS = 280

# Upload Configuration
MAX_UPLOAD_TEXT_CHARS = 24000

# Knowledge pack (precomputed embeddings, generated by ingest_knowledge_pack.py)
DATA_DIR = Path(__file__).parent / "data"
KNOWLEDGE_PACK_SOURCE_PATH = DATA_DIR / "knowledge_pack_source.json"
KNOWLEDGE_PACK_PATH = Path(os.getenv("KNOWLEDGE_PACK_PATH", str(DATA_DIR / "knowledge_pack.json")))
