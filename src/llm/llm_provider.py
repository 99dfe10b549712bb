import asyncio
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


_USAGE_LOCK = threading.Lock()


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by a provider."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens
        )


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    _usage: Optional[TokenUsage] = None

    @abstractmethod
    def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user prompt/message to send to the LLM
            system_prompt: Optional system prompt to set context/behavior

        Returns:
            The generated response text

        Raises:
            Exception: If the LLM request fails
        """

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check if the LLM provider is properly configured and available.

        Returns:
            True if the provider is ready to use, False otherwise
        """

    async def agenerate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Async wrapper around generate_response.

        Provider SDKs are blocking, so the call runs in a worker thread and
        several characters can wait on their providers at the same time.
        """
        return await asyncio.to_thread(self.generate_response, prompt, system_prompt)

    @property
    def total_usage(self) -> Optional[TokenUsage]:
        """Accumulated token usage, or None if the backend never reported any."""
        return self._usage

    def _record_usage(self, input_tokens: int, output_tokens: int) -> None:
        """Add one call's token counts; safe to call from worker threads."""
        with _USAGE_LOCK:
            current = self._usage or TokenUsage()
            self._usage = current + TokenUsage(int(input_tokens or 0), int(output_tokens or 0))
