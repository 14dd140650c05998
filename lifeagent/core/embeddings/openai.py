"""
OpenAI embedding backend (official SDK).
"""

from openai import AsyncOpenAI

from lifeagent.core.embeddings.base import Embedder
from lifeagent.utils.exceptions import EmbeddingError

# Native output sizes; text-embedding-3 models can be shortened on request
NATIVE_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedder(Embedder):
    """
    OpenAI (or OpenAI-compatible) embeddings endpoint.

    A configured dimension below a text-embedding-3 model's native size
    is sent as the `dimensions` request parameter.
    """

    name = "OpenAI"
    max_batch_size = 2048

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        timeout: float = 120.0,
        dimension: int | None = None,
        max_input_chars: int = 8000,
    ):
        native = NATIVE_DIMENSIONS.get(model)
        super().__init__(dimension=dimension or native, max_input_chars=max_input_chars)
        self.model = model
        self._shortened = (
            model.startswith("text-embedding-3") and native is not None and self.dimension < native
        )
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        options = {"dimensions": self.dimension} if self._shortened else {}
        response = await self.client.embeddings.create(model=self.model, input=texts, **options)
        if not response.data:
            raise EmbeddingError("OpenAI returned no embeddings", context={"model": self.model})
        return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]

    async def close(self):
        await self.client.close()
