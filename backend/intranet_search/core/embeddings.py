import asyncio
import logging
from typing import List, Optional

import google.generativeai as genai

from .config import settings
from .search_exceptions import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingEngine:
    """
    Text embedding client for the Gemini embedding API.

    Produces fixed-dimension vectors (768 by default) for index documents and
    for search queries. Input text is truncated to the configured maximum
    length before it is sent.
    """

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
        max_input_chars: Optional[int] = None,
    ):
        """
        Initialize the embedding engine.

        Args:
            api_key: Google Generative AI API key
            model_name: Embedding model (defaults to settings.EMBEDDING_MODEL)
            dimensions: Target vector size (defaults to settings.EMBEDDING_DIMENSIONS)
            max_input_chars: Truncation limit for input text
        """
        self.api_key = api_key
        self.model_name = model_name or settings.EMBEDDING_MODEL
        self.dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self.max_input_chars = max_input_chars or settings.EMBEDDING_MAX_INPUT_CHARS

        genai.configure(api_key=api_key)

    async def embed_document(self, text: str) -> List[float]:
        """Embed a piece of content for storage in the index."""
        return await self._embed(text, task_type="retrieval_document")

    async def embed_query(self, text: str) -> List[float]:
        """Embed a search query."""
        return await self._embed(text, task_type="retrieval_query")

    async def _embed(self, text: str, task_type: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        text = text[:self.max_input_chars]

        try:
            # The SDK call is blocking; run it off the event loop so a batch
            # of embeddings can be in flight together
            response = await asyncio.to_thread(
                genai.embed_content,
                model=self.model_name,
                content=text,
                task_type=task_type,
                output_dimensionality=self.dimensions,
            )
        except Exception as e:
            logger.error(f"Embedding API call failed: {str(e)}")
            raise EmbeddingError(f"Embedding API error: {str(e)}") from e

        embedding = response.get("embedding") if isinstance(response, dict) else None
        if not embedding or len(embedding) != self.dimensions:
            raise EmbeddingError(
                f"Embedding API returned an unexpected vector "
                f"(expected {self.dimensions} dimensions)"
            )

        return [float(value) for value in embedding]


def create_embedding_engine() -> EmbeddingEngine:
    """Create an embedding engine from settings."""
    if not settings.GEMINI_API_KEY:
        raise ConfigurationError("GEMINI_API_KEY not configured")
    return EmbeddingEngine(api_key=settings.GEMINI_API_KEY)
