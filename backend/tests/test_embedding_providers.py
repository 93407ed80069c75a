"""
Tests for embedding provider abstraction.

Tests cover:
- Embedding provider interface
- OpenAI embeddings provider
- Local embeddings provider (sentence-transformers)
- Mock provider
- Provider factory and configuration

Run with: cd backend && pytest tests/test_embedding_providers.py -v
"""
import pytest
from unittest.mock import Mock, AsyncMock, patch


class TestEmbeddingProviderInterface:
    """Tests for the embedding provider interface."""

    def test_interface_defines_required_methods(self):
        """Interface should define embed and dimensions."""
        from peermatch.services.embedding_providers import EmbeddingProvider

        assert hasattr(EmbeddingProvider, "embed")
        assert hasattr(EmbeddingProvider, "dimensions")

    def test_all_providers_implement_interface(self):
        """All providers should satisfy the runtime-checkable protocol."""
        from peermatch.services.embedding_providers import (
            EmbeddingProvider,
            LocalEmbeddings,
            MockEmbeddingProvider,
            OpenAIEmbeddings,
        )

        assert isinstance(OpenAIEmbeddings(api_key="test"), EmbeddingProvider)
        assert isinstance(LocalEmbeddings(lazy_load=True), EmbeddingProvider)
        assert isinstance(MockEmbeddingProvider(), EmbeddingProvider)


class TestOpenAIEmbeddings:
    """Tests for OpenAI embeddings provider."""

    def test_openai_provider_initialization(self):
        """Should initialize with default model."""
        from peermatch.services.embedding_providers import OpenAIEmbeddings

        provider = OpenAIEmbeddings(api_key="test-key")
        assert provider.model == "text-embedding-3-small"
        assert provider.dimensions == 1536

    def test_openai_provider_custom_model(self):
        """Should accept custom model."""
        from peermatch.services.embedding_providers import OpenAIEmbeddings

        provider = OpenAIEmbeddings(api_key="test-key", model="text-embedding-3-large")
        assert provider.dimensions == 3072

    @pytest.mark.asyncio
    async def test_openai_embed_single_text(self):
        """Should embed a single text."""
        from peermatch.services.embedding_providers import OpenAIEmbeddings

        provider = OpenAIEmbeddings(api_key="test-key")

        mock_response = Mock()
        mock_response.data = [Mock(embedding=[0.1] * 1536)]

        with patch.object(provider, "_client") as mock_client:
            mock_client.embeddings.create = AsyncMock(return_value=mock_response)

            embedding = await provider.embed("python mentor")

            assert len(embedding) == 1536
            mock_client.embeddings.create.assert_called_once_with(
                input=["python mentor"], model="text-embedding-3-small"
            )

    @pytest.mark.asyncio
    async def test_openai_handles_empty_text(self):
        """Should return None without calling the API."""
        from peermatch.services.embedding_providers import OpenAIEmbeddings

        provider = OpenAIEmbeddings(api_key="test-key")

        with patch.object(provider, "_client") as mock_client:
            assert await provider.embed("   ") is None
            mock_client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_openai_errors_raise_embedding_error(self):
        from peermatch.services.embedding_providers import EmbeddingError, OpenAIEmbeddings

        provider = OpenAIEmbeddings(api_key="test-key")

        with patch.object(provider, "_client") as mock_client:
            mock_client.embeddings.create = AsyncMock(side_effect=RuntimeError("rate limited"))

            with pytest.raises(EmbeddingError, match="rate limited"):
                await provider.embed("python mentor")


class TestLocalEmbeddings:
    """Tests for local sentence-transformers embeddings."""

    def test_local_provider_initialization(self):
        """Should initialize with default model."""
        from peermatch.services.embedding_providers import LocalEmbeddings

        provider = LocalEmbeddings(lazy_load=True)
        assert provider.model_name == "sentence-transformers/all-MiniLM-L6-v2"
        assert provider.dimensions == 384

    def test_local_provider_dimensions_property(self):
        """Should report correct embedding dimensions."""
        from peermatch.services.embedding_providers import LocalEmbeddings

        provider = LocalEmbeddings(model_name="nomic-ai/nomic-embed-text-v1.5", lazy_load=True)
        assert provider.dimensions == 768

    @pytest.mark.asyncio
    async def test_local_embed_single_text(self):
        """Should embed a single text."""
        import numpy as np
        from peermatch.services.embedding_providers import LocalEmbeddings

        provider = LocalEmbeddings(lazy_load=True)

        # Mock the model - return numpy array like real model does
        mock_model = Mock()
        mock_model.encode.return_value = np.array([0.1] * 384)
        provider._model = mock_model

        embedding = await provider.embed("python mentor")

        assert len(embedding) == 384
        assert isinstance(embedding, list)

    @pytest.mark.asyncio
    async def test_local_handles_empty_text(self):
        """Should return None for empty text."""
        from peermatch.services.embedding_providers import LocalEmbeddings

        provider = LocalEmbeddings(lazy_load=True)
        provider._model = Mock()  # Prevent model loading

        assert await provider.embed("") is None
        provider._model.encode.assert_not_called()

    @pytest.mark.asyncio
    async def test_local_model_unavailable_raises(self):
        from peermatch.services.embedding_providers import EmbeddingError, LocalEmbeddings

        provider = LocalEmbeddings(lazy_load=True)

        with patch.object(LocalEmbeddings, "_load_model"):
            with pytest.raises(EmbeddingError):
                await provider.embed("python mentor")


class TestMockEmbeddingProvider:
    """Tests for the deterministic mock provider."""

    @pytest.mark.asyncio
    async def test_mock_provider_returns_deterministic_embeddings(self):
        from peermatch.services.embedding_providers import MockEmbeddingProvider

        provider = MockEmbeddingProvider()

        assert await provider.embed("python mentor") == await provider.embed("python mentor")

    @pytest.mark.asyncio
    async def test_mock_provider_different_inputs_different_outputs(self):
        from peermatch.services.embedding_providers import MockEmbeddingProvider

        provider = MockEmbeddingProvider()

        assert await provider.embed("python mentor") != await provider.embed("calculus student")

    def test_mock_provider_configurable_dimensions(self):
        from peermatch.services.embedding_providers import MockEmbeddingProvider

        assert MockEmbeddingProvider(dimensions=16).dimensions == 16

    @pytest.mark.asyncio
    async def test_mock_provider_blank_is_none(self):
        from peermatch.services.embedding_providers import MockEmbeddingProvider

        assert await MockEmbeddingProvider().embed("") is None


class TestEmbeddingProviderFactory:
    """Tests for embedding provider factory."""

    def test_factory_creates_openai_provider(self):
        from peermatch.services.embedding_providers import get_embedding_provider, OpenAIEmbeddings

        provider = get_embedding_provider("openai", api_key="test-key")
        assert isinstance(provider, OpenAIEmbeddings)

    def test_factory_openai_requires_key(self):
        from peermatch.services.embedding_providers import get_embedding_provider

        with pytest.raises(ValueError, match="api_key"):
            get_embedding_provider("openai")

    def test_factory_creates_local_provider(self):
        from peermatch.services.embedding_providers import get_embedding_provider, LocalEmbeddings

        provider = get_embedding_provider("local", model_name="sentence-transformers/all-mpnet-base-v2")
        assert isinstance(provider, LocalEmbeddings)
        assert provider.dimensions == 768

    def test_factory_creates_mock_provider(self):
        from peermatch.services.embedding_providers import get_embedding_provider, MockEmbeddingProvider

        provider = get_embedding_provider("mock", dimensions=32)
        assert isinstance(provider, MockEmbeddingProvider)
        assert provider.dimensions == 32

    def test_factory_invalid_provider(self):
        from peermatch.services.embedding_providers import get_embedding_provider

        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_embedding_provider("invalid")
