"""
Ollama embedding backend (ollama-python SDK, /api/embed).
"""

import ollama

from lifeagent.core.embeddings.base import Embedder
from lifeagent.utils.exceptions import EmbeddingError

DEFAULT_HOST = "http://localhost:11434"


class OllamaEmbedder(Embedder):
    """
    Local embedding models such as nomic-embed-text or mxbai-embed-large.

    One /api/embed call carries a whole batch.
    """

    name = "Ollama"

    def __init__(
        self,
        host: str | None = None,
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
        dimension: int | None = None,
        max_input_chars: int = 8000,
    ):
        super().__init__(dimension=dimension, max_input_chars=max_input_chars)
        self.host = host or DEFAULT_HOST
        self.model = model
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=self.host, timeout=timeout)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.embed(model=self.model, input=texts)
        embeddings = response["embeddings"] if response else None
        if not embeddings:
            raise EmbeddingError(
                "Ollama returned no embeddings", context={"model": self.model, "host": self.host}
            )
        return embeddings
