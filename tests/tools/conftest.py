"""
Fixtures for tool tests: a registry wired to real services over SQLite.
"""

from collections.abc import AsyncGenerator

import pytest

from lifeagent.core.block_store.template_repository import SQLiteTemplateRepository
from lifeagent.services.content_analyzer import ContentAnalyzer
from lifeagent.services.fill_engine import FillDecisionEngine
from lifeagent.services.template_service import TemplateService
from lifeagent.tools import (
    ToolContext,
    ToolRegistry,
    register_block_tools,
    register_fill_tools,
    register_template_tools,
    register_time_tools,
)


@pytest.fixture
async def tool_template_service(db_path, block_store, clock) -> AsyncGenerator:
    service = TemplateService(SQLiteTemplateRepository(db_path=db_path), block_store, now_fn=clock)
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def registry(block_store, retrieval, time_service, time_parser, tool_template_service, clock):
    analyzer = ContentAnalyzer(llm=None, time_parser=time_parser)
    fill_engine = FillDecisionEngine(
        retrieval=retrieval, block_store=block_store, analyzer=analyzer, now_fn=clock
    )

    registry = ToolRegistry()
    register_block_tools(registry, block_store, retrieval, time_service)
    register_time_tools(registry, time_service)
    register_template_tools(registry, tool_template_service)
    register_fill_tools(registry, fill_engine, analyzer)
    return registry


@pytest.fixture
def context():
    return ToolContext(user_id="u1")
