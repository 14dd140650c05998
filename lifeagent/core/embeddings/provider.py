"""
Embedding provider used by the block store and retrieval engine.

Wraps an Embedder backend with text normalization and a zero-vector
fallback: an embedding failure never aborts the caller, it yields a
vector whose similarity to anything is 0. Truncation and dimension
checks belong to the backend.
"""

import re

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _sk_cosine

from lifeagent.core.embeddings.base import Embedder
from lifeagent.utils.exceptions import ExternalServiceError, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace and lowercase."""
    return _WHITESPACE.sub(" ", text or "").strip().lower()


def is_zero_vector(vector: list[float]) -> bool:
    """True for empty or all-zero vectors."""
    return not vector or not np.any(np.asarray(vector, dtype=float))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """
    Cosine similarity between two vectors.

    Defined as 0.0 when either norm is 0 or the dimensions differ.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    if is_zero_vector(a) or is_zero_vector(b):
        return 0.0
    return float(_sk_cosine(np.asarray([a], dtype=float), np.asarray([b], dtype=float))[0][0])


def batch_cosine_similarity(query: list[float], vectors: list[list[float]]) -> list[float]:
    """
    Cosine similarity between a query and many vectors.

    Vectors of a different dimension than the query score 0.0.
    """
    if not vectors:
        return []
    if is_zero_vector(query):
        return [0.0] * len(vectors)

    scores = [0.0] * len(vectors)
    same_dim = [i for i, v in enumerate(vectors) if len(v) == len(query)]
    if not same_dim:
        return scores

    matrix = np.asarray([vectors[i] for i in same_dim], dtype=float)
    # sklearn normalizes zero rows to zero, so their similarity is 0
    similarities = _sk_cosine(np.asarray([query], dtype=float), matrix)[0]
    for i, sim in zip(same_dim, similarities, strict=True):
        scores[i] = float(sim)
    return scores


class EmbeddingProvider:
    """
    Text to fixed-dimension vector, degrading to zeros on failure.
    """

    def __init__(self, embedder: Embedder, dimension: int):
        """
        Initialize provider.

        Args:
            embedder: Backend that performs the actual embedding call
            dimension: Embedding dimension D; the backend is held to it
        """
        if dimension <= 0:
            raise ValidationError("Embedding dimension must be positive")
        if embedder.dimension is None:
            embedder.dimension = dimension
        elif embedder.dimension != dimension:
            raise ValidationError(
                f"Backend produces {embedder.dimension}-dimensional embeddings, expected {dimension}",
                context={"expected": dimension, "actual": embedder.dimension},
            )
        self.embedder = embedder
        self.dimension = dimension

    def zero_vector(self) -> list[float]:
        return [0.0] * self.dimension

    async def embed(self, text: str) -> list[float]:
        """
        Embed text.

        Args:
            text: Raw text

        Returns:
            Embedding of the normalized text, or the zero vector on failure
        """
        normalized = normalize_text(text)
        if not normalized:
            return self.zero_vector()

        try:
            return await self.embedder.embed(normalized)
        except (ExternalServiceError, ValidationError) as e:
            logger.warning(
                f"Embedding failed, using zero vector: {e}",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return self.zero_vector()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed many texts, preserving positions.

        Empty texts map to zero vectors without a backend call. If the batch
        call fails every position gets a zero vector.
        """
        normalized = [normalize_text(t) for t in texts]
        results = [self.zero_vector() for _ in texts]

        pending = [(i, t) for i, t in enumerate(normalized) if t]
        if not pending:
            return results

        try:
            vectors = await self.embedder.batch_embed([t for _, t in pending])
        except (ExternalServiceError, ValidationError) as e:
            logger.warning(
                f"Batch embedding failed, using zero vectors: {e}",
                extra={"num_texts": len(pending), "error": str(e)},
            )
            return results

        for (i, _), vector in zip(pending, vectors, strict=False):
            results[i] = vector
        return results

    async def close(self):
        await self.embedder.close()
