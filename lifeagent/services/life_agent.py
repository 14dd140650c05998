"""
LifeAgent - wires every component together.

Brings together:
- Block store + vector index + embedding provider
- Retrieval, fill, time and template services
- Tool registry and per-conversation agent loops
- Background index reconciliation
"""

from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime

from lifeagent.agent.agent_loop import AgentLoop
from lifeagent.agent.stats import BlockStoreStatsProvider
from lifeagent.config import Config
from lifeagent.core.block_store.block_store import BlockStore
from lifeagent.core.block_store.repository import SQLiteBlockRepository
from lifeagent.core.block_store.template_repository import SQLiteTemplateRepository
from lifeagent.core.embeddings.provider import EmbeddingProvider
from lifeagent.core.factory import create_embeddings, create_llm, create_vector_index
from lifeagent.core.llm.base import LLMProvider
from lifeagent.core.vector_index.base import VectorIndex
from lifeagent.models.agent import AgentResponse
from lifeagent.services.content_analyzer import ContentAnalyzer
from lifeagent.services.fill_engine import FillDecisionEngine
from lifeagent.services.reconciliation import IndexReconciler
from lifeagent.services.retrieval_engine import RetrievalEngine
from lifeagent.services.template_service import TemplateService
from lifeagent.services.time_service import TimeParser, TimeService
from lifeagent.tools.block_tools import register_block_tools
from lifeagent.tools.fill_tools import register_fill_tools
from lifeagent.tools.registry import ToolRegistry
from lifeagent.tools.template_tools import register_template_tools
from lifeagent.tools.time_tools import register_time_tools
from lifeagent.utils.exceptions import ValidationError
from lifeagent.utils.id_generator import generate_conversation_id
from lifeagent.utils.logger import get_logger

logger = get_logger(__name__)


class LifeAgent:
    """
    Top-level object owning every component.

    Agent loops are kept per (user_id, conversation_id), so a conversation id
    reused by another user starts a fresh history.
    """

    def __init__(
        self,
        config: Config,
        llm: LLMProvider,
        embeddings: EmbeddingProvider,
        vector_index: VectorIndex,
        now_fn: Callable[[], datetime] | None = None,
    ):
        """
        Initialize LifeAgent.

        Args:
            config: Configuration object
            llm: LLM provider for analysis, fill decisions and chat
            embeddings: Embedding provider (zero-vector fallback)
            vector_index: Vector index backend
            now_fn: Clock shared by time parsing, templates and prompts
        """
        self.config = config
        self.llm = llm
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.now_fn = now_fn or datetime.now

        self.repository = SQLiteBlockRepository(db_path=config.storage.db_path)
        self.block_store = BlockStore(
            repository=self.repository,
            vector_index=vector_index,
            embeddings=embeddings,
        )

        self.retrieval = RetrievalEngine(
            block_store=self.block_store,
            vector_index=vector_index,
            embeddings=embeddings,
            config=config.retrieval,
        )

        self.time_parser = TimeParser(now_fn=self.now_fn)
        self.time_service = TimeService(self.block_store, parser=self.time_parser)

        self.template_service = TemplateService(
            repository=SQLiteTemplateRepository(db_path=config.storage.db_path),
            block_store=self.block_store,
            now_fn=self.now_fn,
        )

        self.analyzer = ContentAnalyzer(
            llm=llm,
            time_parser=self.time_parser,
            max_tokens=config.llm.max_tokens,
        )
        self.fill_engine = FillDecisionEngine(
            retrieval=self.retrieval,
            block_store=self.block_store,
            analyzer=self.analyzer,
            llm=llm,
            config=config.fill,
            now_fn=self.now_fn,
        )

        self.reconciler = IndexReconciler(
            block_store=self.block_store,
            repository=self.repository,
            vector_index=vector_index,
        )

        self.registry = ToolRegistry()
        register_block_tools(self.registry, self.block_store, self.retrieval, self.time_service)
        register_time_tools(self.registry, self.time_service)
        register_template_tools(self.registry, self.template_service)
        register_fill_tools(self.registry, self.fill_engine, self.analyzer)

        self.stats_provider = BlockStoreStatsProvider(self.block_store)
        self._loops: OrderedDict[tuple[str, str], AgentLoop] = OrderedDict()

    @classmethod
    async def create(cls, config: Config) -> "LifeAgent":
        """Build providers and the vector index from configuration."""
        logger.info("Creating LLM provider")
        llm = create_llm(config.llm)

        logger.info("Creating embedding provider")
        embeddings = await create_embeddings(config.embedder)
        logger.info(f"Embedding dimension: {embeddings.dimension}")

        logger.info(f"Creating {config.vector_backend} vector index")
        vector_index = create_vector_index(config, embeddings.dimension)

        return cls(config=config, llm=llm, embeddings=embeddings, vector_index=vector_index)

    async def initialize(self) -> None:
        """Initialize stores and start the reconciliation worker if configured."""
        logger.info("Initializing LifeAgent")

        await self.block_store.initialize()
        logger.info("Block store initialized")

        await self.template_service.initialize()
        logger.info("Template store initialized")

        if self.config.reconcile_interval > 0:
            self.reconciler.start_background_worker(interval_seconds=self.config.reconcile_interval)
            logger.info("Background reconciliation worker started")

        logger.info(f"LifeAgent ready with {len(self.registry.names())} tools")

    def get_agent_loop(self, conversation_id: str, user_id: str) -> AgentLoop:
        """
        Get or create the agent loop for a conversation.

        Loops are kept most-recently-used last; once more than
        agent.max_conversations are held the oldest is dropped.
        """
        if not user_id:
            raise ValidationError("user_id is required")

        key = (user_id, conversation_id)
        loop = self._loops.get(key)
        if loop is not None:
            self._loops.move_to_end(key)
        else:
            loop = AgentLoop(
                llm=self.llm,
                registry=self.registry,
                stats_provider=self.stats_provider,
                user_id=user_id,
                config=self.config.agent,
                now_fn=self.now_fn,
            )
            self._loops[key] = loop
            logger.debug(
                f"Started conversation {conversation_id}",
                extra={"conversation_id": conversation_id, "user_id": user_id},
            )
            while len(self._loops) > self.config.agent.max_conversations:
                (evicted_user, evicted_id), _ = self._loops.popitem(last=False)
                logger.debug(
                    f"Evicted conversation {evicted_id}",
                    extra={"conversation_id": evicted_id, "user_id": evicted_user},
                )
        return loop

    async def chat(
        self, user_id: str, message: str, conversation_id: str | None = None
    ) -> tuple[str, AgentResponse]:
        """
        Process a chat message.

        Returns:
            Tuple of (conversation_id, AgentResponse)
        """
        conversation_id = conversation_id or generate_conversation_id()
        loop = self.get_agent_loop(conversation_id, user_id)
        response = await loop.process_message(message)
        return conversation_id, response

    def end_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Drop a conversation's loop and history."""
        return self._loops.pop((user_id, conversation_id), None) is not None

    async def close(self) -> None:
        """Stop workers and close all connections."""
        logger.info("Closing LifeAgent")

        self.reconciler.stop_background_worker()
        self._loops.clear()

        await self.template_service.close()
        await self.block_store.close()
        await self.embeddings.close()
        await self.llm.close()

        logger.info("LifeAgent closed")
