"""
Tools exposed to the language model.
"""

from lifeagent.tools.block_tools import register_block_tools
from lifeagent.tools.fill_tools import register_fill_tools
from lifeagent.tools.registry import (
    ToolContext,
    ToolDefinition,
    ToolParams,
    ToolRegistry,
)
from lifeagent.tools.template_tools import register_template_tools
from lifeagent.tools.time_tools import register_time_tools

__all__ = [
    "ToolContext",
    "ToolDefinition",
    "ToolParams",
    "ToolRegistry",
    "register_block_tools",
    "register_fill_tools",
    "register_template_tools",
    "register_time_tools",
]
