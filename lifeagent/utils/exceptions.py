"""
Custom exception hierarchy for LifeAgent.

Provides structured error types for better error handling and debugging.
All exceptions inherit from LifeAgentError for easy catching.
"""

from typing import Any


class LifeAgentError(Exception):
    """
    Base exception for all LifeAgent errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize LifeAgent error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(LifeAgentError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    pass


class BlockStoreError(StoreError):
    """
    Block persistence errors.
    Raised when block or template rows cannot be read or written.
    """

    pass


class VectorStoreError(StoreError):
    """
    Vector index operation errors.
    Raised when vector database operations fail.
    """

    pass


class ValidationError(LifeAgentError):
    """
    Validation errors.
    Raised for malformed input, content/type mismatches and tool argument mismatches.
    """

    pass


class NotFoundError(LifeAgentError):
    """
    Resource not found errors.
    Raised when a requested block, tool or template doesn't exist.
    """

    pass


class ConfigurationError(LifeAgentError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class ExternalServiceError(LifeAgentError):
    """
    External service errors.
    Raised when a call to an embedding or language model service fails.
    """

    pass


class EmbeddingError(ExternalServiceError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class LLMError(ExternalServiceError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, malformed output).
    """

    pass


class MergeConflictError(LifeAgentError):
    """
    Merge conflict errors.
    Raised when new content cannot be merged into a block's current shape.
    """

    pass


class PartialToolFailure(LifeAgentError):
    """
    One or more tool calls in an agent turn failed.

    Never raised out of the agent loop. It is built from the failed results
    and rendered inline in the composed reply.
    """

    def __init__(self, failures: list[tuple[str, str]], context: dict | None = None):
        """
        Initialize partial failure.

        Args:
            failures: (tool_name, error_message) pairs in execution order
            context: Optional context dictionary
        """
        self.failures = failures
        super().__init__(self.describe(), context)

    @classmethod
    def from_results(cls, results: list[Any]) -> "PartialToolFailure | None":
        """
        Build from a turn's tool results.

        Args:
            results: ToolResult objects of one turn

        Returns:
            PartialToolFailure if any result failed, else None
        """
        failures = [(r.tool_call.name, r.error or "unknown error") for r in results if not r.success]
        if not failures:
            return None
        return cls(failures, context={"total": len(results), "failed": len(failures)})

    def describe(self) -> str:
        """Render failures as a single line."""
        return "; ".join(f"{name} ({error})" for name, error in self.failures)
