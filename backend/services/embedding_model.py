"""Embedding gateway over the Hugging Face Inference API, plus vector similarity."""
import time
import logging
from typing import List, Optional, Sequence, Union

import httpx
import numpy as np

from config import HUGGINGFACE_API_KEY, EMBEDDING_MODEL

logger = logging.getLogger(__name__)

Vector = Union[Sequence[float], np.ndarray]


class EmbeddingServiceError(RuntimeError):
    """Raised when the embedding service cannot produce embeddings."""


def cosine_similarity(a: Optional[Vector], b: Optional[Vector]) -> float:
    """
    Cosine similarity dot(a, b) / (|a| * |b|), in [-1, 1].

    Returns 0.0 when either vector is missing or empty, has zero magnitude,
    or the two vectors differ in length.
    """
    if a is None or b is None:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or vb.size == 0 or va.shape != vb.shape:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Guard against floating point drift just outside [-1, 1]
    return max(-1.0, min(1.0, similarity))


class EmbeddingModel:
    """Wrapper for Hugging Face Inference API embedding model."""

    def __init__(
        self,
        api_key: Optional[str] = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = 3,
        initial_delay: float = 2.0,
        timeout: float = 60.0
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier (default: sentence-transformers/all-mpnet-base-v2)
            max_retries: Maximum attempts for 503s, timeouts and network errors
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Raises:
            ValueError: If text is empty
            EmbeddingServiceError: If the service fails after all retries
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        return self._embed_with_retry([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in a single API call.

        The returned list is aligned with the input; every text must be non-empty.

        Raises:
            ValueError: If texts is empty or contains empty strings
            EmbeddingServiceError: If the service fails after all retries
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        if any(not t or not t.strip() for t in texts):
            raise ValueError("Texts in batch cannot be empty")

        embeddings = self._embed_with_retry(texts)
        if len(embeddings) != len(texts):
            raise EmbeddingServiceError(
                f"Embedding service returned {len(embeddings)} vectors for {len(texts)} texts"
            )
        return embeddings

    def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Call the inference API, retrying 503 (model loading), timeouts and
        network errors with exponential backoff. 401 and 429 fail immediately.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "inputs": texts,
            "options": {"wait_for_model": True}
        }

        delay = self.initial_delay
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                start_time = time.time()
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)
                elapsed = time.time() - start_time
            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
            except httpx.RequestError as e:
                last_error = f"Network error: {e}"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
            else:
                if response.status_code == 503:
                    last_error = "Model loading (503)"
                    logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
                elif response.status_code == 401:
                    logger.error("Authentication failed for Hugging Face API")
                    raise EmbeddingServiceError("Invalid API key")
                elif response.status_code == 429:
                    logger.error("Rate limit exceeded for Hugging Face API")
                    raise EmbeddingServiceError("Rate limit exceeded. Please try again later.")
                elif response.status_code != 200:
                    error_msg = f"API request failed with status {response.status_code}: {response.text}"
                    logger.error(error_msg)
                    raise EmbeddingServiceError(error_msg)
                else:
                    logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                    try:
                        return self._parse_embeddings(response.json())
                    except (ValueError, TypeError) as e:
                        logger.error(f"Could not parse embedding response: {e}")
                        raise EmbeddingServiceError(f"Unexpected embedding response: {e}") from e

            if attempt < self.max_retries:
                time.sleep(delay)
                delay = min(delay * 2, 60.0)

        error_msg = (
            f"Failed to generate embeddings after {self.max_retries} attempts. "
            f"Last error: {last_error}"
        )
        logger.error(error_msg)
        raise EmbeddingServiceError(error_msg)

    @staticmethod
    def _parse_embeddings(data) -> List[List[float]]:
        if not isinstance(data, list) or not all(isinstance(row, list) for row in data):
            raise EmbeddingServiceError("Unexpected embedding response format")
        return [[float(value) for value in row] for row in data]

    def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()
            self.embed_text("warmup query")
            logger.info(f"Model warmup completed in {time.time() - start_time:.1f}s")
            return True
        except EmbeddingServiceError as e:
            logger.error(f"Model warmup failed: {e}")
            return False
