"""
Redis Embedding Cache

Caches embedding vectors keyed by a hash of the embedded text, so that
reprocessing a profile whose expansion did not change, or two users typing
the same phrase, costs no extra provider call.

Cache Key Pattern:
    - emb:{model}:{content_hash} - Embedding vectors (24hr TTL)

Usage:
    cache = get_cache()
    cached = await cache.get_embedding(model, content_hash)
    if cached is None:
        vector = await provider.embed(text)
        await cache.set_embedding(model, content_hash, vector)

Redis being unavailable is never an error: reads become misses and writes
are skipped.
"""

import json
import hashlib
import logging
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from peermatch.config import get_settings
from peermatch.middleware.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)

EMBEDDING_TTL = 86400  # 24 hours


def hash_content(*args: Any) -> str:
    """
    Generate a 16-character hex hash from content.

    Dict keys are sorted for consistent hashing.

    Args:
        *args: Content to hash (will be JSON serialized)

    Returns:
        16-character hex string
    """
    content = json.dumps(args, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


class EmbeddingCache:
    """
    Redis cache for embedding vectors.

    Provides graceful degradation when Redis is unavailable,
    returning None instead of raising exceptions.

    Attributes:
        redis: Async Redis client
        stats: Hit/miss counters
    """

    def __init__(self, redis_url: str, ttl: int = EMBEDDING_TTL):
        self.redis_url = redis_url
        self.ttl = ttl
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, int] = {"hits": 0, "misses": 0}

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    @staticmethod
    def _key(model: str, content_hash: str) -> str:
        return f"emb:{model}:{content_hash}"

    def _miss(self) -> None:
        self.stats["misses"] += 1
        record_cache_miss("embedding")

    async def get_embedding(self, model: str, content_hash: str) -> Optional[List[float]]:
        """
        Get cached embedding vector.

        Args:
            model: Embedding model name (vectors of different models never mix)
            content_hash: Hash of the embedded text

        Returns:
            Embedding vector or None on miss/error
        """
        try:
            client = await self._ensure_connected()
            if not client:
                self._miss()
                return None

            cached = await client.get(self._key(model, content_hash))

            if cached:
                self.stats["hits"] += 1
                record_cache_hit("embedding")
                return json.loads(cached)

            self._miss()
            return None

        except Exception as e:
            logger.warning(f"Redis get error (embedding cache): {e}")
            self._miss()
            return None

    async def set_embedding(
        self,
        model: str,
        content_hash: str,
        embedding: List[float]
    ) -> bool:
        """
        Cache embedding vector.

        Returns:
            True if cached successfully, False otherwise
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.setex(self._key(model, content_hash), self.ttl, json.dumps(embedding))
            return True

        except Exception as e:
            logger.warning(f"Redis set error (embedding cache): {e}")
            return False

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.ping()
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        hits = self.stats["hits"]
        misses = self.stats["misses"]
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "total": total,
            "hit_rate": hits / total if total > 0 else 0.0,
        }

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_cache_instance: Optional[EmbeddingCache] = None


def get_cache(redis_url: Optional[str] = None) -> EmbeddingCache:
    """
    Get or create cache singleton.

    Args:
        redis_url: Optional Redis URL (uses settings if not provided)
    """
    global _cache_instance

    if _cache_instance is None:
        url = redis_url or get_settings().redis_url
        _cache_instance = EmbeddingCache(redis_url=url)

    return _cache_instance


async def close_cache() -> None:
    global _cache_instance

    if _cache_instance is not None:
        await _cache_instance.close()
        _cache_instance = None
