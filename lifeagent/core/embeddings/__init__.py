"""
Embedding layer.

Backends:
- Ollama (native SDK)
- OpenAI (official SDK)

EmbeddingProvider normalizes input and falls back to zero vectors.
"""
from lifeagent.core.embeddings.base import Embedder
from lifeagent.core.embeddings.ollama import OllamaEmbedder
from lifeagent.core.embeddings.openai import OpenAIEmbedder
from lifeagent.core.embeddings.provider import (
    EmbeddingProvider,
    batch_cosine_similarity,
    cosine_similarity,
    is_zero_vector,
    normalize_text,
)

__all__ = [
    "Embedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "EmbeddingProvider",
    "batch_cosine_similarity",
    "cosine_similarity",
    "is_zero_vector",
    "normalize_text",
]
