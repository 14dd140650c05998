"""
LLM provider abstraction layer.

Supported providers:
- Ollama (native SDK)
- OpenAI (official SDK)
"""
from lifeagent.core.llm.base import LLMProvider, parse_tool_arguments
from lifeagent.core.llm.ollama import OllamaLLM
from lifeagent.core.llm.openai import OpenAILLM

__all__ = [
    "LLMProvider",
    "OllamaLLM",
    "OpenAILLM",
    "parse_tool_arguments",
]
