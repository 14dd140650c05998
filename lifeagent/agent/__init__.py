"""
Conversation agent: bounded history and the tool-calling loop.
"""

from lifeagent.agent.agent_loop import APOLOGY, AgentLoop, compose_reply
from lifeagent.agent.history import ConversationHistory
from lifeagent.agent.stats import BlockStoreStatsProvider, StatsProvider

__all__ = [
    "APOLOGY",
    "AgentLoop",
    "BlockStoreStatsProvider",
    "ConversationHistory",
    "StatsProvider",
    "compose_reply",
]
