"""
Tests for EmbeddingProvider and the cosine helpers.

Tests cover:
1. Text normalization before embedding
2. Zero-vector fallback on backend failure, empty text and wrong dimension
3. Cosine similarity edge cases
"""

from unittest.mock import AsyncMock, patch

import pytest

from lifeagent.core.embeddings.base import Embedder
from lifeagent.core.embeddings.provider import (
    EmbeddingProvider,
    batch_cosine_similarity,
    cosine_similarity,
    is_zero_vector,
    normalize_text,
)
from lifeagent.utils.exceptions import EmbeddingError, ValidationError


class StaticEmbedder(Embedder):
    """Returns one fixed vector per input, or raises."""

    def __init__(self, vector=None, error=None, dimension=None):
        super().__init__(dimension=dimension)
        self.vector = vector
        self.error = error
        self.requests: list[list[str]] = []

    async def _request(self, texts):
        self.requests.append(texts)
        if self.error is not None:
            raise self.error
        return [list(self.vector) for _ in texts]


@pytest.mark.unit
class TestCosine:
    """Cosine helpers."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_symmetric(self):
        a = [0.3, -1.2, 4.0, 0.0]
        b = [2.5, 0.7, -0.1, 1.9]

        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_zero_norm_is_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch_is_zero(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_batch_scores_each_vector(self):
        scores = batch_cosine_similarity([1.0, 0.0], [[1.0, 0.0], [0.0, 1.0], [0.0, 0.0], [1.0]])

        assert scores[0] == pytest.approx(1.0)
        assert scores[1] == pytest.approx(0.0)
        assert scores[2] == 0.0
        assert scores[3] == 0.0

    def test_batch_with_zero_query(self):
        assert batch_cosine_similarity([0.0, 0.0], [[1.0, 0.0]]) == [0.0]

    def test_normalize_text(self):
        assert normalize_text("  A\tB  ") == "a b"

    def test_is_zero_vector(self):
        assert is_zero_vector([])
        assert is_zero_vector([0.0, 0.0])
        assert not is_zero_vector([0.0, 0.1])


@pytest.mark.unit
@pytest.mark.asyncio
class TestEmbeddingProvider:
    """Provider behaviour on top of a backend."""

    async def test_normalizes_before_embedding(self):
        embedder = StaticEmbedder([1.0, 0.0, 0.0])
        provider = EmbeddingProvider(embedder, dimension=3)

        await provider.embed("  Buy   MILK\n tomorrow ")

        assert embedder.requests == [["buy milk tomorrow"]]

    async def test_backend_truncates_long_input(self):
        embedder = StaticEmbedder([1.0, 0.0, 0.0])
        embedder.max_input_chars = 5
        provider = EmbeddingProvider(embedder, dimension=3)

        await provider.embed("abcdefghij")

        assert embedder.requests == [["abcde"]]

    async def test_empty_text_skips_backend(self):
        embedder = StaticEmbedder([1.0, 0.0, 0.0])
        provider = EmbeddingProvider(embedder, dimension=3)

        assert await provider.embed("   ") == [0.0, 0.0, 0.0]
        assert embedder.requests == []

    async def test_backend_failure_yields_zero_vector(self):
        provider = EmbeddingProvider(StaticEmbedder(error=EmbeddingError("down")), dimension=4)

        assert await provider.embed("hello") == [0.0] * 4

    async def test_wrong_dimension_yields_zero_vector(self):
        provider = EmbeddingProvider(StaticEmbedder([1.0, 2.0]), dimension=3)

        assert await provider.embed("hello") == [0.0, 0.0, 0.0]

    async def test_backend_takes_provider_dimension(self):
        embedder = StaticEmbedder([1.0, 2.0])

        EmbeddingProvider(embedder, dimension=2)

        assert embedder.dimension == 2

    async def test_backend_dimension_conflict(self):
        with pytest.raises(ValidationError):
            EmbeddingProvider(StaticEmbedder([1.0], dimension=1536), dimension=768)

    async def test_batch_preserves_positions(self):
        embedder = StaticEmbedder([1.0, 0.0])
        provider = EmbeddingProvider(embedder, dimension=2)

        vectors = await provider.embed_batch(["first", "", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 0.0], [1.0, 0.0]]
        assert embedder.requests == [["first", "second"]]

    async def test_batch_failure_yields_zero_vectors(self):
        provider = EmbeddingProvider(StaticEmbedder(error=EmbeddingError("down")), dimension=2)

        assert await provider.embed_batch(["a", "b"]) == [[0.0, 0.0], [0.0, 0.0]]

    async def test_close_closes_backend(self):
        embedder = StaticEmbedder([1.0])
        provider = EmbeddingProvider(embedder, dimension=1)

        with patch.object(embedder, "close", new_callable=AsyncMock) as mock_close:
            await provider.close()

        mock_close.assert_awaited_once()

    async def test_invalid_dimension(self):
        with pytest.raises(ValidationError):
            EmbeddingProvider(StaticEmbedder([1.0]), dimension=0)
