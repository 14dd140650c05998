"""
Base class for embedding backends.

A backend sends already-normalized text to an embedding service. The base
class owns the request shaping every service needs: inputs are cut to
`max_input_chars`, split into batches of `max_batch_size`, and every
returned vector must match the backend's dimension.
"""

from abc import ABC, abstractmethod

from lifeagent.utils.exceptions import EmbeddingError, ValidationError
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class Embedder(ABC):
    """
    Text to fixed-dimension vectors via one embedding service.

    `dimension` is either given up front or learned from the first
    response; after that a vector of any other length is an EmbeddingError.
    Backends raise on failure; EmbeddingProvider turns failures into
    zero vectors.
    """

    name = "embedding"
    max_batch_size = 32

    def __init__(self, dimension: int | None = None, max_input_chars: int = 8000):
        """
        Args:
            dimension: Expected vector length (default: learned from the service)
            max_input_chars: Inputs are cut to this many characters
        """
        if dimension is not None and dimension <= 0:
            raise ValidationError("Embedding dimension must be positive")
        self.dimension = dimension
        self.max_input_chars = max_input_chars

    @abstractmethod
    async def _request(self, texts: list[str]) -> list[list[float]]:
        """Embed one batch; one vector per input, in input order."""

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            ValidationError: If text is empty
            EmbeddingError: If the service fails or returns a bad vector
        """
        return (await self.batch_embed([text]))[0]

    async def batch_embed(self, texts: list[str], batch_size: int | None = None) -> list[list[float]]:
        """
        Embed many texts, one request per batch.

        Args:
            texts: Texts to embed; an empty list makes no request
            batch_size: Inputs per request (default: max_batch_size)

        Returns:
            Vectors in input order

        Raises:
            ValidationError: If any text is empty
            EmbeddingError: If the service fails or returns a bad vector
        """
        if any(not text or not text.strip() for text in texts):
            raise ValidationError("Text cannot be empty")

        prepared = [text[: self.max_input_chars] for text in texts]
        size = batch_size or self.max_batch_size

        vectors: list[list[float]] = []
        for start in range(0, len(prepared), size):
            chunk = prepared[start : start + size]
            try:
                response = await self._request(chunk)
            except EmbeddingError:
                raise
            except Exception as e:
                logger.error(
                    f"{self.name} embedding error: {e}",
                    extra={"num_texts": len(chunk), "error": str(e), "error_type": type(e).__name__},
                )
                raise EmbeddingError(f"{self.name} embedding error: {e}") from e

            if len(response) != len(chunk):
                raise EmbeddingError(
                    f"{self.name} returned {len(response)} embeddings for {len(chunk)} inputs"
                )
            vectors.extend(self._check(vector) for vector in response)
        return vectors

    def _check(self, vector: list[float]) -> list[float]:
        if self.dimension is None:
            self.dimension = len(vector)
            logger.info(f"{self.name} embedding dimension: {self.dimension}")
        elif len(vector) != self.dimension:
            raise EmbeddingError(
                f"Expected {self.dimension}-dimensional embedding, got {len(vector)}",
                context={"expected": self.dimension, "actual": len(vector)},
            )
        return [float(x) for x in vector]

    async def get_dimension(self) -> int:
        """Configured dimension, or the length of a test embedding."""
        if self.dimension is None:
            await self.embed("dimension check")
        return self.dimension

    async def close(self):
        """Release client connections."""
