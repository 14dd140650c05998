"""
ID generation utilities for LifeAgent.

Provides consistent ID generation for all entity types:
- Blocks: blk_xxx
- Templates: tpl_xxx
- Conversations: conv_xxx
- Tool calls: call_xxx
"""

from uuid import uuid4


def generate_block_id() -> str:
    """
    Generate unique Block ID.

    Returns:
        ID in format "blk_xxx" where xxx is 12 hex characters
    """
    return f"blk_{uuid4().hex[:12]}"


def generate_template_id() -> str:
    """
    Generate unique Template ID.

    Returns:
        ID in format "tpl_xxx" where xxx is 12 hex characters
    """
    return f"tpl_{uuid4().hex[:12]}"


def generate_conversation_id() -> str:
    """
    Generate unique Conversation ID.

    Returns:
        ID in format "conv_xxx" where xxx is 12 hex characters
    """
    return f"conv_{uuid4().hex[:12]}"


def generate_tool_call_id() -> str:
    """Generate an ID for a tool call the model did not label itself."""
    return f"call_{uuid4().hex[:12]}"
