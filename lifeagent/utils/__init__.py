"""Utility modules for LifeAgent."""

from lifeagent.utils.exceptions import (
    BlockStoreError,
    ConfigurationError,
    EmbeddingError,
    ExternalServiceError,
    LifeAgentError,
    LLMError,
    MergeConflictError,
    NotFoundError,
    PartialToolFailure,
    StoreError,
    ValidationError,
    VectorStoreError,
)
from lifeagent.utils.id_generator import (
    generate_block_id,
    generate_conversation_id,
    generate_template_id,
    generate_tool_call_id,
)
from lifeagent.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_block_id",
    "generate_template_id",
    "generate_conversation_id",
    "generate_tool_call_id",
    # Exceptions
    "LifeAgentError",
    "StoreError",
    "BlockStoreError",
    "VectorStoreError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ExternalServiceError",
    "EmbeddingError",
    "LLMError",
    "MergeConflictError",
    "PartialToolFailure",
]
