"""Mock LLM provider for testing and dry runs without API calls."""

from typing import Optional
from llm.llm_provider import LLMProvider


class MockLLMProvider(LLMProvider):
    """Mock LLM provider that returns queued responses without API calls."""

    def __init__(
        self,
        responses: Optional[list[str]] = None,
        available: bool = True,
        cycle: bool = False,
        default_response: str = "[SILENT]",
        fail_on_calls: Optional[set[int]] = None,
        tokens_per_call: Optional[tuple[int, int]] = None
    ):
        """
        Initialize mock provider.

        Args:
            responses: Responses returned in order, one per call
            available: Whether the provider should report as available
            cycle: Cycle through responses instead of falling back to default_response
            default_response: Returned once the queue is exhausted (a silent beat)
            fail_on_calls: Zero-based call indices that raise instead of responding
            tokens_per_call: (input, output) token counts to report for each call
        """
        self.responses = list(responses or [])
        self.available = available
        self.cycle = cycle
        self.default_response = default_response
        self.fail_on_calls = set(fail_on_calls or ())
        self.tokens_per_call = tokens_per_call
        self.call_count = 0
        self.prompts: list[str] = []
        self.last_prompt = None
        self.last_system_prompt = None

    def is_available(self) -> bool:
        """Check if mock provider is available."""
        return self.available

    def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate a mock response without any API calls.

        Raises:
            ValueError: If the provider is unavailable
            RuntimeError: If this call index is configured to fail
        """
        if not self.is_available():
            raise ValueError("Mock LLM provider not available")

        index = self.call_count
        self.call_count += 1
        self.prompts.append(prompt)
        self.last_prompt = prompt
        self.last_system_prompt = system_prompt

        if index in self.fail_on_calls:
            raise RuntimeError(f"Mock failure on call {index}")

        if self.tokens_per_call:
            self._record_usage(*self.tokens_per_call)

        if self.responses and self.cycle:
            return self.responses[index % len(self.responses)]
        if index < len(self.responses):
            return self.responses[index]
        return self.default_response

    def queue_response(self, response: str) -> None:
        """Append a response to the queue."""
        self.responses.append(response)

    def reset(self):
        """Reset call count and stored prompts (useful between tests)."""
        self.call_count = 0
        self.prompts = []
        self.last_prompt = None
        self.last_system_prompt = None
