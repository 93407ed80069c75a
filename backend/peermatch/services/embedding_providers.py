"""
Embedding Providers - Interface for Multiple Embedding Models

Turns profile text into fixed-length vectors. Supports OpenAI and local
sentence-transformers models, plus a deterministic mock for development.

Contract shared by every provider:
    - blank input returns None (no vector, no provider call)
    - any provider fault raises EmbeddingError; callers treat it as
      "no embedding available", never as a crash

Key Classes:
    - EmbeddingProvider: Protocol
    - OpenAIEmbeddings: OpenAI API provider
    - LocalEmbeddings: Local sentence-transformers models
    - MockEmbeddingProvider: Deterministic mock for testing
    - CachedEmbeddingProvider: Redis-backed cache in front of any provider
"""

import asyncio
import hashlib
import logging
import time
from typing import List, Optional, Dict, Any, Protocol, runtime_checkable

from peermatch.middleware.metrics import record_embedding_latency
from peermatch.services.cache import EmbeddingCache, hash_content

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when an embedding provider fails to produce a vector."""


MODEL_DIMENSIONS: Dict[str, int] = {
    # OpenAI models
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    # Local models
    "nomic-ai/nomic-embed-text-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-mpnet-base-v2": 768,
}


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Protocol defining the embedding provider interface.

    All embedding providers must implement:
    - embed(): Single text to embedding (None for blank text)
    - dimensions: Embedding vector size
    """

    @property
    def dimensions(self) -> int:
        ...

    async def embed(self, text: str) -> Optional[List[float]]:
        ...


class OpenAIEmbeddings:
    """
    OpenAI API embeddings provider.

    Example:
        >>> provider = OpenAIEmbeddings(api_key="sk-...")
        >>> embedding = await provider.embed("python mentor")
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small"
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._client = None

    def _get_client(self):
        """Get or create async OpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    @property
    def dimensions(self) -> int:
        return MODEL_DIMENSIONS.get(self.model, 1536)

    async def embed(self, text: str) -> Optional[List[float]]:
        """
        Embed a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector, or None for blank text

        Raises:
            EmbeddingError: If the API call fails
        """
        text = (text or "").replace("\n", " ").strip()
        if not text:
            return None

        client = self._get_client()
        start = time.perf_counter()
        try:
            response = await client.embeddings.create(
                input=[text],
                model=self.model,
            )
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e
        finally:
            record_embedding_latency(self.name, time.perf_counter() - start)

        return list(response.data[0].embedding)


class LocalEmbeddings:
    """
    Local embeddings using sentence-transformers.

    Runs embedding models locally without API calls.

    Example:
        >>> provider = LocalEmbeddings()
        >>> embedding = await provider.embed("python mentor")
    """

    name = "local"

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        lazy_load: bool = True
    ) -> None:
        """
        Args:
            model_name: HuggingFace model name or path
            lazy_load: If True, defer model loading until first use
        """
        self.model_name = model_name
        self._model = None
        self._lazy_load = lazy_load

        if not lazy_load:
            self._load_model()

    def _load_model(self) -> None:
        if self._model is not None:
            return

        try:
            from sentence_transformers import SentenceTransformer
            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name, trust_remote_code=True)
            logger.info("Embedding model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            self._model = None

    @property
    def model(self):
        """Get model, loading lazily if needed."""
        if self._model is None and self._lazy_load:
            self._load_model()
        return self._model

    @property
    def dimensions(self) -> int:
        return MODEL_DIMENSIONS.get(self.model_name, 384)

    async def embed(self, text: str) -> Optional[List[float]]:
        text = (text or "").strip()
        if not text:
            return None

        if self.model is None:
            raise EmbeddingError(f"Embedding model not loaded: {self.model_name}")

        start = time.perf_counter()
        try:
            # Run in executor to avoid blocking the event loop
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None, lambda: self.model.encode(text).tolist()
            )
        except Exception as e:
            raise EmbeddingError(f"Local embedding failed: {e}") from e
        finally:
            record_embedding_latency(self.name, time.perf_counter() - start)


class MockEmbeddingProvider:
    """
    Mock embedding provider for testing and offline development.

    Generates deterministic embeddings based on text hash.
    """

    name = "mock"

    def __init__(self, dimensions: int = 384) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _text_to_embedding(self, text: str) -> Optional[List[float]]:
        """Generate deterministic embedding from text hash."""
        text = (text or "").strip()
        if not text:
            return None

        text_hash = hashlib.md5(text.encode()).hexdigest()

        embedding = []
        for i in range(self._dimensions):
            idx = (i * 2) % len(text_hash)
            char_val = int(text_hash[idx:idx+2], 16)
            # Normalize to [-1, 1]
            embedding.append((char_val / 127.5) - 1)

        return embedding

    async def embed(self, text: str) -> Optional[List[float]]:
        return self._text_to_embedding(text)


class CachedEmbeddingProvider:
    """
    Embedding cache in front of another provider.

    Only successful, non-empty vectors are cached; provider errors pass
    through unchanged.
    """

    def __init__(self, provider: EmbeddingProvider, cache: EmbeddingCache, model: str) -> None:
        self.provider = provider
        self.cache = cache
        self.model = model

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    async def embed(self, text: str) -> Optional[List[float]]:
        text = (text or "").strip()
        if not text:
            return None

        content_hash = hash_content(text)
        cached = await self.cache.get_embedding(self.model, content_hash)
        if cached is not None:
            return cached

        embedding = await self.provider.embed(text)
        if embedding:
            await self.cache.set_embedding(self.model, content_hash, embedding)
        return embedding


def get_embedding_provider(
    provider_name: str = "openai",
    api_key: Optional[str] = None,
    model_name: Optional[str] = None,
    lazy_load: bool = True,
    **kwargs: Any
) -> EmbeddingProvider:
    """
    Factory function to create embedding provider instances.

    Args:
        provider_name: Provider type - "openai", "local", or "mock"
        api_key: API key for cloud providers (required for OpenAI)
        model_name: Optional model name override
        lazy_load: For local models, defer loading until first use
        **kwargs: Additional provider-specific arguments

    Raises:
        ValueError: If provider is unknown or required args missing
    """
    provider_name = provider_name.lower()

    if provider_name == "openai":
        if not api_key:
            raise ValueError("OpenAI embeddings require api_key")
        return OpenAIEmbeddings(
            api_key=api_key,
            model=model_name or "text-embedding-3-small"
        )

    elif provider_name == "local":
        return LocalEmbeddings(
            model_name=model_name or "sentence-transformers/all-MiniLM-L6-v2",
            lazy_load=lazy_load
        )

    elif provider_name == "mock":
        dimensions = kwargs.get("dimensions", 384)
        return MockEmbeddingProvider(dimensions=dimensions)

    else:
        raise ValueError(
            f"Unknown embedding provider: {provider_name}. "
            f"Supported: openai, local, mock"
        )


# ==============================================================================
# Singleton Pattern for Dependency Injection
# ==============================================================================

_embedding_provider: Optional[EmbeddingProvider] = None


def get_default_embedding_provider() -> EmbeddingProvider:
    """
    Shared embedding provider configured from settings.

    Wrapped in CachedEmbeddingProvider unless the cache is disabled.
    """
    global _embedding_provider
    if _embedding_provider is None:
        from peermatch.config import get_settings
        from peermatch.services.cache import get_cache

        settings = get_settings()
        provider_name = settings.embedding_provider.lower()
        model_name = (
            settings.local_embedding_model if provider_name == "local"
            else settings.embedding_model
        )
        provider = get_embedding_provider(
            provider_name,
            api_key=settings.openai_api_key,
            model_name=model_name,
        )
        if settings.embedding_cache_enabled:
            provider = CachedEmbeddingProvider(provider, get_cache(), model=f"{provider_name}:{model_name}")
        _embedding_provider = provider
        logger.info(f"Created embedding provider: {provider_name} ({model_name})")
    return _embedding_provider
