"""LLM provider implementations."""

from llm.llm_provider import LLMProvider, TokenUsage
from llm.providers import AnthropicProvider, GeminiProvider, OllamaProvider, create_provider
from llm.mock_provider import MockLLMProvider

__all__ = [
    "LLMProvider",
    "TokenUsage",
    "AnthropicProvider",
    "GeminiProvider",
    "OllamaProvider",
    "MockLLMProvider",
    "create_provider",
]
