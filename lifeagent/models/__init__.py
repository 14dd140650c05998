"""
Data models for LifeAgent.

Core models:
- Block, BlockType, BlockMetadata: typed content units and their content shapes
- VectorRecord, VectorFilters, ScoredRecord, ScoredBlock: vector index records and hits
- ContentAnalysis, FillDecision, FillResult: fill-decision engine inputs and outputs
- ToolCall, ToolResult, ChatTurn, AgentResponse: agent loop messages
- Template, TemplateBlock, TemplateVariable: reusable block layouts
"""

from lifeagent.models.agent import (
    AgentResponse,
    AgentState,
    ChatRole,
    ChatTurn,
    ModelResponse,
    SystemStats,
    ToolCall,
    ToolResult,
)
from lifeagent.models.analysis import (
    ContentAnalysis,
    FillAction,
    FillCandidate,
    FillDecision,
    FillResult,
    FillSuggestion,
    TimeInfo,
)
from lifeagent.models.block import (
    CONTENT_MODELS,
    Block,
    BlockContent,
    BlockMetadata,
    BlockStats,
    BlockType,
    BlockUpdate,
    CalloutContent,
    CalloutStyle,
    HeadingContent,
    PageContent,
    PageLayout,
    PageVisibility,
    Priority,
    TableContent,
    TextContent,
    TodoContent,
    extract_text,
    parse_block_type,
    parse_content,
    parse_metadata,
)
from lifeagent.models.template import (
    Template,
    TemplateBlock,
    TemplateCategory,
    TemplateVariable,
)
from lifeagent.models.vector import (
    ScoredBlock,
    ScoredRecord,
    VectorFilters,
    VectorRecord,
    compute_content_hash,
)

__all__ = [
    # Blocks
    "Block",
    "BlockType",
    "BlockContent",
    "BlockMetadata",
    "BlockStats",
    "BlockUpdate",
    "CONTENT_MODELS",
    "TextContent",
    "HeadingContent",
    "TodoContent",
    "TableContent",
    "CalloutContent",
    "PageContent",
    "CalloutStyle",
    "PageLayout",
    "PageVisibility",
    "Priority",
    "extract_text",
    "parse_block_type",
    "parse_content",
    "parse_metadata",
    # Vector index
    "VectorRecord",
    "VectorFilters",
    "ScoredRecord",
    "ScoredBlock",
    "compute_content_hash",
    # Fill decisions
    "ContentAnalysis",
    "TimeInfo",
    "FillAction",
    "FillCandidate",
    "FillDecision",
    "FillResult",
    "FillSuggestion",
    # Agent
    "AgentResponse",
    "AgentState",
    "ChatRole",
    "ChatTurn",
    "ModelResponse",
    "SystemStats",
    "ToolCall",
    "ToolResult",
    # Templates
    "Template",
    "TemplateBlock",
    "TemplateCategory",
    "TemplateVariable",
]
