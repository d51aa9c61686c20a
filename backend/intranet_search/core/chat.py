import logging
from typing import Optional

import google.generativeai as genai

from .config import settings
from .search_exceptions import ChatCompletionError, ConfigurationError

logger = logging.getLogger(__name__)


class ChatCompletionEngine:
    """Single-prompt text generation through the Gemini API."""

    def __init__(self, api_key: str, model_name: Optional[str] = None, temperature: float = 0.4):
        self.api_key = api_key
        self.model_name = model_name or settings.SUGGESTION_MODEL
        self.temperature = temperature

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(self.model_name)

    async def complete(self, prompt: str, max_output_tokens: int = 512) -> str:
        """
        Generate a text answer for ``prompt``.

        Raises:
            ChatCompletionError: If the API fails or returns no text
        """
        generation_config = {
            "temperature": self.temperature,
            "max_output_tokens": max_output_tokens,
        }

        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=generation_config,
            )
        except Exception as e:
            logger.error(f"Gemini API call failed: {str(e)}")
            raise ChatCompletionError(f"Chat completion failed: {str(e)}") from e

        if not response.candidates:
            raise ChatCompletionError("No candidates returned from API")

        try:
            text = response.text
        except ValueError as e:
            # response.text raises when the candidate carries no text parts
            raise ChatCompletionError(f"Chat completion returned no text: {str(e)}") from e

        if not text or not text.strip():
            raise ChatCompletionError("Chat completion returned empty text")

        return text.strip()


def create_chat_engine(model_name: Optional[str] = None) -> ChatCompletionEngine:
    """Create a chat completion engine from settings."""
    if not settings.GEMINI_API_KEY:
        raise ConfigurationError("GEMINI_API_KEY not configured")
    return ChatCompletionEngine(api_key=settings.GEMINI_API_KEY, model_name=model_name)
