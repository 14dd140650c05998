"""
Builds the model providers and vector index named in a Config.

LLM and embedder configs share one shape (provider, model, base_url,
api_key, timeout), so both resolve their backend the same way.
"""

from urllib.parse import urlparse

from lifeagent.config import Config, EmbedderConfig, LLMConfig
from lifeagent.core.embeddings.base import Embedder
from lifeagent.core.embeddings.ollama import DEFAULT_HOST, OllamaEmbedder
from lifeagent.core.embeddings.openai import OpenAIEmbedder
from lifeagent.core.embeddings.provider import EmbeddingProvider
from lifeagent.core.llm.base import LLMProvider
from lifeagent.core.llm.ollama import OllamaLLM
from lifeagent.core.llm.openai import OpenAILLM
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.core.vector_index.qdrant import QdrantVectorIndex
from lifeagent.core.vector_index.sqlite import SQLiteVectorIndex
from lifeagent.utils.exceptions import ConfigurationError

_LLM_BACKENDS = {"ollama": OllamaLLM, "openai": OpenAILLM}
_EMBEDDER_BACKENDS = {"ollama": OllamaEmbedder, "openai": OpenAIEmbedder}


def _backend_args(config: LLMConfig | EmbedderConfig, kind: str, backends: dict) -> dict:
    if config.provider not in backends:
        raise ConfigurationError(
            f"Unsupported {kind} provider: {config.provider}",
            context={"provider": config.provider, "supported": sorted(backends)},
        )
    if config.provider == "ollama":
        return {"host": config.base_url or DEFAULT_HOST, "model": config.model, "timeout": config.timeout}
    if not config.api_key:
        raise ConfigurationError(
            f"{kind} provider {config.provider} requires an API key",
            context={"provider": config.provider},
        )
    return {
        "api_key": config.api_key,
        "model": config.model,
        "base_url": config.base_url,
        "timeout": config.timeout,
    }


def create_llm(config: LLMConfig) -> LLMProvider:
    """
    Raises:
        ConfigurationError: Unknown provider or missing API key
    """
    args = _backend_args(config, "LLM", _LLM_BACKENDS)
    return _LLM_BACKENDS[config.provider](**args)


def create_embedder(config: EmbedderConfig) -> Embedder:
    """
    Raises:
        ConfigurationError: Unknown provider or missing API key
    """
    args = _backend_args(config, "Embedder", _EMBEDDER_BACKENDS)
    return _EMBEDDER_BACKENDS[config.provider](
        **args, dimension=config.dimension, max_input_chars=config.max_input_chars
    )


async def create_embeddings(config: EmbedderConfig) -> EmbeddingProvider:
    """
    Backend wrapped in a zero-fallback EmbeddingProvider.

    Without a configured or known dimension the backend is asked for a
    test embedding.
    """
    embedder = create_embedder(config)
    return EmbeddingProvider(embedder, dimension=await embedder.get_dimension())


def create_vector_index(config: Config, vector_size: int) -> VectorIndex:
    """
    Raises:
        ConfigurationError: Unknown vector backend
    """
    if config.vector_backend == "sqlite":
        return SQLiteVectorIndex(db_path=config.storage.db_path)
    if config.vector_backend == "qdrant":
        parsed = urlparse(config.qdrant.url)
        return QdrantVectorIndex(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6333,
            collection_name=config.qdrant.collection_name,
            vector_size=vector_size,
            use_grpc=config.qdrant.use_grpc,
            hnsw_m=config.qdrant.hnsw_m,
            hnsw_ef_construct=config.qdrant.hnsw_ef_construct,
            on_disk=config.qdrant.on_disk,
            timeout=config.qdrant.timeout,
        )
    raise ConfigurationError(
        f"Unsupported vector backend: {config.vector_backend}",
        context={"vector_backend": config.vector_backend},
    )
