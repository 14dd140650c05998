"""
Tests for configuration management.

Tests config loading from:
1. Environment variables
2. YAML files
3. Combined (env overrides YAML)
"""

import os

import pytest
import yaml

from lifeagent.config import AgentConfig, Config, EmbedderConfig, LLMConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any LIFEAGENT_ variables from the environment."""
    for key in list(os.environ.keys()):
        if key.startswith("LIFEAGENT_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_creation(self):
        """Test creating config with defaults."""
        config = Config()

        # LLM defaults
        assert config.llm.provider == "ollama"
        assert config.llm.model == "llama3.1:8b"
        assert config.llm.api_key is None
        assert config.llm.max_tokens == 2000

        # Embedder defaults
        assert config.embedder.provider == "ollama"
        assert config.embedder.model == "nomic-embed-text"
        assert config.embedder.dimension is None  # Auto-detect

        # Storage and index
        assert config.storage.db_path == "data/lifeagent.db"
        assert config.vector_backend == "sqlite"
        assert config.qdrant.collection_name == "blocks"
        assert config.reconcile_interval == 0

    def test_agent_defaults(self):
        agent = Config().agent

        assert agent.max_round_trips == 5
        assert agent.history_capacity == 20
        assert agent.history_retain == 16
        assert agent.temperature == 0.1
        assert agent.max_conversations == 1000

    def test_retrieval_and_fill_defaults(self):
        config = Config()

        assert config.retrieval.vector_weight == 0.7
        assert config.retrieval.keyword_weight == 0.3
        assert config.retrieval.query_min_score == 0.5
        assert config.retrieval.neighbor_min_score == 0.6
        assert config.fill.candidate_limit == 5
        assert config.fill.empty_candidates_confidence == 0.9
        assert config.fill.fallback_confidence == 0.6

    def test_llm_config_creation(self):
        """Test creating LLM config."""
        llm_config = LLMConfig(provider="openai", model="gpt-4o", api_key="sk-test", temperature=0.7)

        assert llm_config.provider == "openai"
        assert llm_config.model == "gpt-4o"
        assert llm_config.api_key == "sk-test"
        assert llm_config.temperature == 0.7

    def test_embedder_config_with_dimension(self):
        embedder_config = EmbedderConfig(provider="openai", model="text-embedding-3-small", dimension=1536)

        assert embedder_config.dimension == 1536


class TestConfigFromEnv:
    """Test loading configuration from environment variables."""

    def test_from_env_basic(self, clean_env):
        clean_env.setenv("LIFEAGENT_LLM_PROVIDER", "openai")
        clean_env.setenv("LIFEAGENT_LLM_MODEL", "gpt-4o-mini")
        clean_env.setenv("LIFEAGENT_LLM_API_KEY", "sk-test-key")
        clean_env.setenv("LIFEAGENT_EMBEDDER_PROVIDER", "openai")
        clean_env.setenv("LIFEAGENT_DB_PATH", "/tmp/agent.db")

        config = Config.from_env()

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key == "sk-test-key"
        assert config.embedder.provider == "openai"
        assert config.storage.db_path == "/tmp/agent.db"

    def test_from_env_with_numbers(self, clean_env):
        """Test loading numeric values from environment."""
        clean_env.setenv("LIFEAGENT_LLM_TEMPERATURE", "0.7")
        clean_env.setenv("LIFEAGENT_EMBEDDER_DIMENSION", "1536")
        clean_env.setenv("LIFEAGENT_AGENT_MAX_ROUND_TRIPS", "3")
        clean_env.setenv("LIFEAGENT_AGENT_MAX_CONVERSATIONS", "50")
        clean_env.setenv("LIFEAGENT_RECONCILE_INTERVAL", "600")

        config = Config.from_env()

        assert config.llm.temperature == 0.7
        assert config.embedder.dimension == 1536
        assert config.agent.max_round_trips == 3
        assert config.agent.max_conversations == 50
        assert config.reconcile_interval == 600

    def test_from_env_with_booleans(self, clean_env):
        """Test loading boolean values from environment."""
        clean_env.setenv("LIFEAGENT_QDRANT_USE_GRPC", "true")
        clean_env.setenv("LIFEAGENT_LOG_TO_FILE", "0")

        config = Config.from_env()

        assert config.qdrant.use_grpc is True
        assert config.logging.log_to_file is False

    def test_from_env_empty_value_uses_default(self, clean_env):
        clean_env.setenv("LIFEAGENT_LLM_MODEL", "")

        assert Config.from_env().llm.model == "llama3.1:8b"

    def test_from_env_vector_backend(self, clean_env):
        clean_env.setenv("LIFEAGENT_VECTOR_BACKEND", "qdrant")
        clean_env.setenv("LIFEAGENT_QDRANT_URL", "http://qdrant:6333")
        clean_env.setenv("LIFEAGENT_QDRANT_COLLECTION", "test_blocks")

        config = Config.from_env()

        assert config.vector_backend == "qdrant"
        assert config.qdrant.url == "http://qdrant:6333"
        assert config.qdrant.collection_name == "test_blocks"

    def test_from_env_with_dotenv_file(self, clean_env, tmp_path):
        """Test loading from .env file."""
        env_file = tmp_path / ".env.test"
        env_file.write_text(
            """
LIFEAGENT_LLM_PROVIDER=openai
LIFEAGENT_LLM_MODEL=gpt-4o
LIFEAGENT_LLM_API_KEY=sk-from-file
"""
        )

        config = Config.from_env(env_file=str(env_file))

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o"
        assert config.llm.api_key == "sk-from-file"

        # load_dotenv writes into os.environ
        for key in ("LIFEAGENT_LLM_PROVIDER", "LIFEAGENT_LLM_MODEL", "LIFEAGENT_LLM_API_KEY"):
            os.environ.pop(key, None)


class TestConfigFromYAML:
    """Test loading configuration from YAML files."""

    def test_from_yaml_basic(self, tmp_path):
        yaml_file = tmp_path / "config.yaml"
        config_data = {
            "llm": {"provider": "openai", "model": "gpt-4o", "temperature": 0.5},
            "embedder": {"provider": "openai", "dimension": 3072},
            "agent": {"max_round_trips": 8},
            "vector_backend": "qdrant",
        }
        yaml_file.write_text(yaml.dump(config_data))

        config = Config.from_yaml(str(yaml_file))

        assert config.llm.provider == "openai"
        assert config.llm.temperature == 0.5
        assert config.embedder.dimension == 3072
        assert config.agent.max_round_trips == 8
        assert config.agent.history_capacity == 20  # default
        assert config.vector_backend == "qdrant"

    def test_from_yaml_empty_file(self, tmp_path):
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")

        assert Config.from_yaml(str(yaml_file)) == Config()

    def test_from_yaml_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml("/nonexistent/config.yaml")

    def test_from_yaml_invalid_yaml(self, tmp_path):
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            Config.from_yaml(str(yaml_file))


class TestConfigFromEnvOrYAML:
    """Test combined loading (env overrides YAML)."""

    def test_env_overrides_yaml(self, tmp_path, clean_env):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(
            yaml.dump({"llm": {"provider": "ollama"}, "agent": {"max_round_trips": 2}, "vector_backend": "qdrant"})
        )
        clean_env.setenv("LIFEAGENT_LLM_PROVIDER", "openai")
        clean_env.setenv("LIFEAGENT_LLM_MODEL", "gpt-4o")

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        # Environment wins
        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o"
        # YAML preserved where no env override
        assert config.agent.max_round_trips == 2
        assert config.vector_backend == "qdrant"

    def test_yaml_only_when_no_env(self, tmp_path, clean_env):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(yaml.dump({"embedder": {"dimension": 768}, "reconcile_interval": 300}))

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        assert config.embedder.dimension == 768
        assert config.reconcile_interval == 300

    def test_env_only_when_no_yaml(self, clean_env):
        clean_env.setenv("LIFEAGENT_RECONCILE_INTERVAL", "60")

        config = Config.from_env_or_yaml(yaml_path="/nonexistent/config.yaml")

        assert config.reconcile_interval == 60
        assert config.agent == AgentConfig()
