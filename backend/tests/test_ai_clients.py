import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from intranet_search.core.chat import ChatCompletionEngine, create_chat_engine
from intranet_search.core.embeddings import EmbeddingEngine, create_embedding_engine
from intranet_search.core.search_exceptions import (
    ChatCompletionError,
    ConfigurationError,
    EmbeddingError,
)


@pytest.fixture
def mock_genai():
    with patch("intranet_search.core.embeddings.genai") as embeddings_genai, \
            patch("intranet_search.core.chat.genai") as chat_genai:
        yield embeddings_genai, chat_genai


class TestEmbeddingEngine:
    """Test the Gemini embedding client."""

    @pytest.mark.asyncio
    async def test_embed_query(self, mock_genai):
        genai, _ = mock_genai
        genai.embed_content.return_value = {"embedding": [0.1] * 768}
        engine = EmbeddingEngine(api_key="key-123")

        vector = await engine.embed_query("férias")

        assert len(vector) == 768
        kwargs = genai.embed_content.call_args.kwargs
        assert kwargs["task_type"] == "retrieval_query"
        assert kwargs["output_dimensionality"] == 768
        assert kwargs["model"] == "models/text-embedding-004"

    @pytest.mark.asyncio
    async def test_document_text_truncated(self, mock_genai):
        genai, _ = mock_genai
        genai.embed_content.return_value = {"embedding": [0.1] * 768}
        engine = EmbeddingEngine(api_key="key-123", max_input_chars=10)

        await engine.embed_document("x" * 50)

        kwargs = genai.embed_content.call_args.kwargs
        assert kwargs["content"] == "x" * 10
        assert kwargs["task_type"] == "retrieval_document"

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, mock_genai):
        genai, _ = mock_genai
        genai.embed_content.side_effect = RuntimeError("429 Resource exhausted")

        with pytest.raises(EmbeddingError, match="429"):
            await EmbeddingEngine(api_key="key-123").embed_query("férias")

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self, mock_genai):
        genai, _ = mock_genai
        genai.embed_content.return_value = {"embedding": [0.1] * 3}

        with pytest.raises(EmbeddingError, match="768"):
            await EmbeddingEngine(api_key="key-123").embed_query("férias")

    @pytest.mark.asyncio
    async def test_empty_text_rejected_without_call(self, mock_genai):
        genai, _ = mock_genai

        with pytest.raises(EmbeddingError):
            await EmbeddingEngine(api_key="key-123").embed_document("   ")

        genai.embed_content.assert_not_called()

    def test_factory_requires_key(self):
        with patch("intranet_search.core.embeddings.settings.GEMINI_API_KEY", None):
            with pytest.raises(ConfigurationError):
                create_embedding_engine()


class TestChatCompletionEngine:
    """Test the Gemini chat client."""

    @pytest.mark.asyncio
    async def test_complete(self, mock_genai):
        _, genai = mock_genai
        response = MagicMock(candidates=[object()], text="  resposta  ")
        genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=response)

        engine = ChatCompletionEngine(api_key="key-123", model_name="gemini-2.5-flash")

        assert await engine.complete("prompt") == "resposta"
        genai.GenerativeModel.assert_called_once_with("gemini-2.5-flash")

    @pytest.mark.asyncio
    async def test_no_candidates(self, mock_genai):
        _, genai = mock_genai
        response = MagicMock(candidates=[], text="")
        genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=response)

        with pytest.raises(ChatCompletionError):
            await ChatCompletionEngine(api_key="key-123").complete("prompt")

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self, mock_genai):
        _, genai = mock_genai
        genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
            side_effect=RuntimeError("503")
        )

        with pytest.raises(ChatCompletionError, match="503"):
            await ChatCompletionEngine(api_key="key-123").complete("prompt")

    def test_factory_requires_key(self):
        with patch("intranet_search.core.chat.settings.GEMINI_API_KEY", None):
            with pytest.raises(ConfigurationError):
                create_chat_engine()
