"""
Configuration for LifeAgent.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    # Ollama host or OpenAI-compatible endpoint; unset means the provider default
    base_url: str | None = None
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    # Ollama host or OpenAI-compatible endpoint; unset means the provider default
    base_url: str | None = None
    api_key: str | None = None
    timeout: float = 120.0
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None
    # Normalized text is cut to this many characters before embedding
    max_input_chars: int = 8000


class StorageConfig(BaseModel):
    """SQLite storage for blocks, templates and the default vector index."""

    db_path: str = "data/lifeagent.db"


class QdrantConfig(BaseModel):
    """Qdrant configuration (used when vector_backend is "qdrant")."""

    url: str = "http://localhost:6333"
    collection_name: str = "blocks"
    use_grpc: bool = False
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    on_disk: bool = False
    timeout: int = 30


class RetrievalConfig(BaseModel):
    """Hybrid search tuning."""

    vector_weight: float = 0.7
    keyword_weight: float = 0.3
    candidate_multiplier: int = 5
    candidate_min_score: float = 0.0
    keyword_scan_limit: int = 500
    query_min_score: float = 0.5
    neighbor_min_score: float = 0.6


class FillConfig(BaseModel):
    """Fill-decision engine settings."""

    candidate_limit: int = 5
    empty_candidates_confidence: float = 0.9
    fallback_confidence: float = 0.6


class AgentConfig(BaseModel):
    """Agent loop settings."""

    max_round_trips: int = 5
    history_capacity: int = 20
    history_retain: int = 16
    temperature: float = 0.1
    # Conversations kept in memory; the least recently used is dropped beyond this
    max_conversations: int = 1000
    max_tokens: int = 2000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    fill: FillConfig = Field(default_factory=FillConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Vector index backend: sqlite, qdrant
    vector_backend: str = "sqlite"

    # Seconds between background index reconciliation runs (0 disables the worker)
    reconcile_interval: int = 0

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            LIFEAGENT_LLM_PROVIDER: LLM provider (ollama, openai)
            LIFEAGENT_LLM_MODEL: LLM model name
            LIFEAGENT_LLM_BASE_URL: LLM base URL
            LIFEAGENT_LLM_API_KEY: LLM API key (for OpenAI)
            LIFEAGENT_EMBEDDER_PROVIDER: Embedder provider
            LIFEAGENT_EMBEDDER_MODEL: Embedder model name
            LIFEAGENT_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            LIFEAGENT_EMBEDDER_DIMENSION: Embedding dimension (optional)
            LIFEAGENT_DB_PATH: SQLite database path
            LIFEAGENT_VECTOR_BACKEND: Vector index backend (sqlite, qdrant)
            LIFEAGENT_QDRANT_URL: Qdrant URL
            LIFEAGENT_QDRANT_COLLECTION: Qdrant collection name
            LIFEAGENT_AGENT_MAX_ROUND_TRIPS: Model round trips per turn
            LIFEAGENT_AGENT_MAX_CONVERSATIONS: Conversations kept in memory
            LIFEAGENT_RECONCILE_INTERVAL: Seconds between reconciliation runs
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None, cast: type | None = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if cast is not None:
                return cast(value)
            # bool must be checked before int
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("LIFEAGENT_LLM_PROVIDER", "ollama"),
                model=get_env("LIFEAGENT_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("LIFEAGENT_LLM_BASE_URL"),
                api_key=get_env("LIFEAGENT_LLM_API_KEY"),
                temperature=get_env("LIFEAGENT_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("LIFEAGENT_LLM_MAX_TOKENS", 2000),
                timeout=get_env("LIFEAGENT_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("LIFEAGENT_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("LIFEAGENT_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("LIFEAGENT_EMBEDDER_BASE_URL"),
                api_key=get_env("LIFEAGENT_EMBEDDER_API_KEY"),
                timeout=get_env("LIFEAGENT_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("LIFEAGENT_EMBEDDER_DIMENSION", cast=int),
                max_input_chars=get_env("LIFEAGENT_EMBEDDER_MAX_INPUT_CHARS", 8000),
            ),
            storage=StorageConfig(
                db_path=get_env("LIFEAGENT_DB_PATH", "data/lifeagent.db"),
            ),
            vector_backend=get_env("LIFEAGENT_VECTOR_BACKEND", "sqlite"),
            qdrant=QdrantConfig(
                url=get_env("LIFEAGENT_QDRANT_URL", "http://localhost:6333"),
                collection_name=get_env("LIFEAGENT_QDRANT_COLLECTION", "blocks"),
                use_grpc=get_env("LIFEAGENT_QDRANT_USE_GRPC", False),
                hnsw_m=get_env("LIFEAGENT_QDRANT_HNSW_M", 16),
                hnsw_ef_construct=get_env("LIFEAGENT_QDRANT_HNSW_EF_CONSTRUCT", 100),
                on_disk=get_env("LIFEAGENT_QDRANT_ON_DISK", False),
            ),
            agent=AgentConfig(
                max_round_trips=get_env("LIFEAGENT_AGENT_MAX_ROUND_TRIPS", 5),
                history_capacity=get_env("LIFEAGENT_AGENT_HISTORY_CAPACITY", 20),
                history_retain=get_env("LIFEAGENT_AGENT_HISTORY_RETAIN", 16),
                temperature=get_env("LIFEAGENT_AGENT_TEMPERATURE", 0.1),
                max_conversations=get_env("LIFEAGENT_AGENT_MAX_CONVERSATIONS", 1000),
            ),
            reconcile_interval=get_env("LIFEAGENT_RECONCILE_INTERVAL", 0),
            logging=LoggingConfig(
                level=get_env("LIFEAGENT_LOG_LEVEL", "INFO"),
                log_to_file=get_env("LIFEAGENT_LOG_TO_FILE", True),
                log_dir=get_env("LIFEAGENT_LOG_DIR", "logs"),
                file_rotation=get_env("LIFEAGENT_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("LIFEAGENT_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("LIFEAGENT_LOG_COMPRESSION", "zip"),
                serialize=get_env("LIFEAGENT_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file)

        final_dict = {**config_dict}

        # Env sections that differ from defaults override YAML sections
        default = cls()
        for section in ("llm", "embedder", "storage", "qdrant", "agent", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        for field in ("vector_backend", "reconcile_interval"):
            if getattr(env_config, field) != getattr(default, field):
                final_dict[field] = getattr(env_config, field)

        return cls(**final_dict) if final_dict else env_config
