"""
LifeAgent FastAPI Application

A REST API server for the LifeAgent life-management assistant.
Provides endpoints for block CRUD, hybrid search, intelligent fill and chat.

Every response uses the envelope {"success": bool, "data" | "error": ...}.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from lifeagent.config import Config
from lifeagent.models.block import BlockType, BlockUpdate
from lifeagent.services.life_agent import LifeAgent
from lifeagent.utils.exceptions import LifeAgentError, NotFoundError, ValidationError
from lifeagent.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


# Pydantic models for API
class CreateBlockRequest(BaseModel):
    """Request model for creating a block."""

    user_id: str = Field(..., min_length=1, description="Owner user ID")
    type: BlockType
    content: dict[str, Any] = Field(..., description="Content matching the block type")
    metadata: dict[str, Any] | None = None
    parent_id: str | None = Field(default=None, description="Page to add the block to")


class UpdateBlockRequest(BaseModel):
    """Request model for a partial block update."""

    type: BlockType | None = None
    content: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    parent_id: str | None = None


class SearchRequest(BaseModel):
    """Request model for hybrid search."""

    user_id: str = Field(..., min_length=1)
    query: str = Field(..., description="Search query")
    type: BlockType | None = None
    category: str | None = None
    limit: int = Field(default=10, ge=1, le=100, description="Max results")


class FillRequest(BaseModel):
    """Request model for intelligent fill."""

    user_id: str = Field(..., min_length=1)
    content: str = Field(..., description="Unstructured statement to file")
    dry_run: bool = Field(default=False, description="Return suggestions without writing")


class ChatRequest(BaseModel):
    """Request model for a chat turn."""

    user_id: str = Field(..., min_length=1)
    message: str
    conversation_id: str | None = None


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


def error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def get_agent(request: Request) -> LifeAgent:
    agent = request.app.state.agent
    if agent is None:
        raise StarletteHTTPException(status_code=503, detail="Agent not initialized")
    return agent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    if app.state.agent is None:
        # Load configuration from environment or use defaults
        config = Config.from_env()

        # Initialize logging with config
        setup_logging(
            level=config.logging.level,
            log_to_file=config.logging.log_to_file,
            log_dir=config.logging.log_dir,
            file_rotation=config.logging.file_rotation,
            file_retention=config.logging.file_retention,
            compression=config.logging.compression,
            serialize=config.logging.serialize,
        )

        logger.info("Starting LifeAgent server")
        logger.info(
            f"Configuration: LLM={config.llm.provider}/{config.llm.model}, "
            f"Embedder={config.embedder.provider}/{config.embedder.model}, "
            f"VectorIndex={config.vector_backend}"
        )

        app.state.agent = await LifeAgent.create(config)

    agent: LifeAgent = app.state.agent
    await agent.initialize()
    logger.info("LifeAgent initialized")

    yield

    # Cleanup
    logger.info("Shutting down LifeAgent server")
    await agent.close()
    logger.info("Cleanup complete")


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors onto the response envelope."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return error(exc.message, 400)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return error(details or "Invalid request", 400)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return error(exc.message, 404)

    @app.exception_handler(LifeAgentError)
    async def lifeagent_error_handler(request: Request, exc: LifeAgentError):
        logger.error(f"Request failed: {exc.message}", extra={"path": request.url.path})
        return error(exc.message, 500)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", extra={"path": request.url.path})
        return error("Internal server error", 500)


def register_routes(app: FastAPI) -> None:
    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        agent: LifeAgent | None = request.app.state.agent
        if agent is None:
            return ok({"status": "initializing", "agent_initialized": False})
        return ok(
            {
                "status": "healthy",
                "agent_initialized": True,
                "vector_backend": agent.config.vector_backend,
                "llm": f"{agent.config.llm.provider}/{agent.config.llm.model}",
                "embedder": f"{agent.config.embedder.provider}/{agent.config.embedder.model}",
                "tools": agent.registry.names(),
            }
        )

    # Block endpoints
    @app.post("/blocks", status_code=201)
    async def create_block(body: CreateBlockRequest, request: Request):
        """Create a block and index it."""
        agent = get_agent(request)
        block = await agent.block_store.create_block(
            block_type=body.type,
            content=body.content,
            user_id=body.user_id,
            metadata=body.metadata,
            parent_id=body.parent_id,
        )
        return ok(block.model_dump(mode="json"), status_code=201)

    @app.get("/blocks")
    async def list_blocks(
        request: Request,
        user_id: str = Query(..., min_length=1),
        type: BlockType | None = Query(default=None),
        category: str | None = Query(default=None),
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
    ):
        """List a user's blocks, most recently updated first."""
        agent = get_agent(request)
        blocks = await agent.block_store.list_by_user(
            user_id, block_type=type, category=category, limit=limit, offset=offset
        )
        return ok([block.model_dump(mode="json") for block in blocks])

    @app.get("/blocks/{block_id}")
    async def get_block(block_id: str, request: Request):
        """Retrieve a specific block by ID."""
        agent = get_agent(request)
        block = await agent.block_store.get_block(block_id)
        return ok(block.model_dump(mode="json"))

    @app.patch("/blocks/{block_id}")
    async def update_block(block_id: str, body: UpdateBlockRequest, request: Request):
        """
        Partially update a block.

        metadata is merged key by key; content or type changes re-embed the block.
        """
        agent = get_agent(request)
        block = await agent.block_store.update_block(
            block_id, BlockUpdate.model_validate(body.model_dump(exclude_none=True))
        )
        return ok(block.model_dump(mode="json"))

    @app.delete("/blocks/{block_id}")
    async def delete_block(block_id: str, request: Request):
        """Delete a block; pages take their children with them."""
        agent = get_agent(request)
        deleted = await agent.block_store.delete_block(block_id)
        return ok({"deleted": deleted})

    # Search and fill endpoints
    @app.post("/search")
    async def search(body: SearchRequest, request: Request):
        """Hybrid vector + keyword search over a user's blocks."""
        agent = get_agent(request)
        hits = await agent.retrieval.search_scored(
            body.query,
            body.user_id,
            block_type=body.type,
            category=body.category,
            limit=body.limit,
        )
        return ok([hit.model_dump(mode="json") for hit in hits])

    @app.post("/fill")
    async def fill(body: FillRequest, request: Request):
        """
        File an unstructured statement into a new or existing block.

        With dry_run the analysis, decision and candidates are returned
        without writing anything.
        """
        agent = get_agent(request)
        if body.dry_run:
            suggestion = await agent.fill_engine.get_fill_suggestions(body.content, body.user_id)
            return ok(suggestion.model_dump(mode="json"))
        result = await agent.fill_engine.analyze_and_fill(body.content, body.user_id)
        return ok(result.model_dump(mode="json"))

    # Chat endpoint
    @app.post("/chat")
    async def chat(body: ChatRequest, request: Request):
        """Run one agent turn; a new conversation id is issued when none is given."""
        agent = get_agent(request)
        conversation_id, response = await agent.chat(
            body.user_id, body.message, conversation_id=body.conversation_id
        )
        data = response.model_dump(mode="json")
        data["conversation_id"] = conversation_id
        return ok(data)


def create_app(agent: LifeAgent | None = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        agent: Prebuilt (uninitialized) agent; built from the environment when omitted
    """
    app = FastAPI(
        title="LifeAgent API",
        description="Life management assistant with typed blocks and hybrid search",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.agent = agent

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()
