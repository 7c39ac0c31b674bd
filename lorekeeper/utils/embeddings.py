"""Embedding generation for entity content chunks using FastEmbed."""

import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from fastembed import TextEmbedding
from loguru import logger

from lorekeeper.utils.config import DatabaseConfig

_MAX_SEQ_LENGTHS = {
    "BAAI/bge-small-en-v1.5": 512,
    "BAAI/bge-base-en-v1.5": 512,
    "BAAI/bge-large-en-v1.5": 512,
    "sentence-transformers/all-MiniLM-L6-v2": 256,
}


class EmbeddingGenerator:
    """Embed text with a FastEmbed model, batching and caching repeated inputs.

    Example:
        >>> generator = EmbeddingGenerator(config)
        >>> vectors = generator.generate(["# Grok", "Grok lives in [[Mistvale]]."])
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        cache_dir: Optional[Path] = None,
        use_cache: bool = True,
    ) -> None:
        self.config = config or DatabaseConfig()
        self.use_cache = use_cache
        self._cache: Dict[str, np.ndarray] = {}
        self._cache_hits = 0
        self._cache_misses = 0

        try:
            logger.info(f"Loading embedding model: {self.config.embedding_model}")
            self.model = TextEmbedding(
                model_name=self.config.embedding_model,
                cache_dir=str(cache_dir) if cache_dir else None,
            )
        except Exception as e:
            logger.error(f"Error loading embedding model: {e}")
            raise

        self.max_seq_length = _MAX_SEQ_LENGTHS.get(self.config.embedding_model, 512)

    def generate(self, texts: List[str], batch_size: Optional[int] = None) -> List[np.ndarray]:
        """Embed ``texts`` in order, reusing cached vectors for repeated inputs."""
        if not texts:
            return []

        batch_size = batch_size or self.config.embedding_batch_size
        embeddings: List[Optional[np.ndarray]] = []
        to_embed: List[Tuple[int, str]] = []

        for i, text in enumerate(texts):
            key = self._cache_key(text)
            if self.use_cache and key in self._cache:
                embeddings.append(self._cache[key])
                self._cache_hits += 1
                continue
            embeddings.append(None)
            to_embed.append((i, text))
            self._cache_misses += 1

        if to_embed:
            truncated = [self._truncate_text(text) for _, text in to_embed]
            generated = list(self.model.embed(truncated, batch_size=batch_size))
            for (i, original), vector in zip(to_embed, generated):
                array = np.array(vector, dtype=np.float32)
                if self.use_cache:
                    self._cache[self._cache_key(original)] = array
                embeddings[i] = array

        result = [e for e in embeddings if e is not None]
        logger.debug(
            f"Generated {len(result)} embeddings "
            f"(cache hits: {self._cache_hits}, misses: {self._cache_misses})"
        )
        return result

    def generate_single(self, text: str) -> np.ndarray:
        embeddings = self.generate([text])
        return embeddings[0] if embeddings else np.zeros(self.config.embedding_dimension)

    def _truncate_text(self, text: str) -> str:
        # ~4 characters per token
        max_chars = self.max_seq_length * 4
        if len(text) <= max_chars:
            return text
        return text[:max_chars].rsplit(" ", 1)[0] + "..."

    @staticmethod
    def _cache_key(text: str) -> str:
        return hashlib.md5(text.encode()).hexdigest()

    def get_cache_stats(self) -> Dict[str, Any]:
        total = self._cache_hits + self._cache_misses
        return {
            "cache_size": len(self._cache),
            "cache_hits": self._cache_hits,
            "cache_misses": self._cache_misses,
            "hit_rate": self._cache_hits / total if total else 0,
        }

    def __repr__(self) -> str:
        return (
            f"EmbeddingGenerator(model={self.config.embedding_model}, "
            f"dimension={self.config.embedding_dimension})"
        )
