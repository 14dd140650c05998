"""
Shared test fixtures.

Everything here runs offline:
- HashingEmbedder: deterministic bag-of-words vectors
- ScriptedLLM: replays queued chat responses and completions
- A fixed clock (Wednesday 2025-01-15 10:00)
- SQLite stores under tmp_path
"""

import hashlib
import re
from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any

import pytest
from pydantic import BaseModel

from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.block_store.repository import SQLiteBlockRepository
from lifeagent.core.embeddings.base import Embedder
from lifeagent.core.embeddings.provider import EmbeddingProvider
from lifeagent.core.llm.base import LLMProvider
from lifeagent.core.vector_index.sqlite import SQLiteVectorIndex
from lifeagent.models.agent import ModelResponse, ToolCall
from lifeagent.services.retrieval_engine import RetrievalEngine
from lifeagent.services.time_service import TimeParser, TimeService
from lifeagent.utils.exceptions import EmbeddingError, LLMError

FIXED_NOW = datetime(2025, 1, 15, 10, 0)
DIMENSION = 64


class HashingEmbedder(Embedder):
    """Each token adds 1.0 to one of `dimension` buckets chosen by its hash."""

    def __init__(self, dimension: int = DIMENSION):
        super().__init__(dimension=dimension)
        self.calls: list[str] = []

    async def _request(self, texts: list[str]) -> list[list[float]]:
        self.calls.extend(texts)
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return vector


class FailingEmbedder(Embedder):
    """Embedder whose backend is always down."""

    async def _request(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError("embedding service unavailable")


class ScriptedLLM(LLMProvider):
    """
    LLM that replays queued outputs.

    chat() pops from `responses` and complete() from `completions`; an
    Exception in either queue is raised instead of returned. An empty chat
    queue answers "Done."; an empty completion queue raises LLMError.
    """

    def __init__(
        self,
        responses: list[ModelResponse | Exception] | None = None,
        completions: list[Any] | None = None,
    ):
        self.responses = list(responses or [])
        self.completions = list(completions or [])
        self.chat_calls: list[dict[str, Any]] = []
        self.complete_calls: list[dict[str, Any]] = []
        self.closed = False

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        self.complete_calls.append({"prompt": prompt, "response_format": response_format})
        if not self.completions:
            raise LLMError("no scripted completion")
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> ModelResponse:
        self.chat_calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        if not self.responses:
            return ModelResponse(text="Done.")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


def tool_call(name: str, call_id: str = "call_1", **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


# Fixtures


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "lifeagent_test.db")


@pytest.fixture
def hashing_embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def embeddings(hashing_embedder) -> EmbeddingProvider:
    return EmbeddingProvider(hashing_embedder, dimension=DIMENSION)


@pytest.fixture
async def vector_index(db_path) -> AsyncGenerator:
    index = SQLiteVectorIndex(db_path=db_path)
    await index.initialize()
    yield index
    await index.close()


@pytest.fixture
async def block_store(db_path, embeddings) -> AsyncGenerator:
    store = BlockStore(
        repository=SQLiteBlockRepository(db_path=db_path),
        vector_index=SQLiteVectorIndex(db_path=db_path),
        embeddings=embeddings,
    )
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def retrieval(block_store) -> RetrievalEngine:
    return RetrievalEngine(
        block_store=block_store,
        vector_index=block_store.vector_index,
        embeddings=block_store.embeddings,
    )


@pytest.fixture
def time_parser(clock) -> TimeParser:
    return TimeParser(now_fn=clock)


@pytest.fixture
def time_service(block_store, time_parser) -> TimeService:
    return TimeService(block_store, parser=time_parser)


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def make_llm():
    """Factory for ScriptedLLM instances with queued outputs."""
    return ScriptedLLM


@pytest.fixture
def make_tool_call():
    return tool_call


@pytest.fixture
def failing_embeddings() -> EmbeddingProvider:
    return EmbeddingProvider(FailingEmbedder(), dimension=DIMENSION)
