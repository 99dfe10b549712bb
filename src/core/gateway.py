"""
Agent gateway: the moderator's only route to the characters.

The moderator hands the gateway a character identifier and a prompt and
awaits the reply text. Whatever sits behind it (an LLM provider, a scripted
fake, a remote service) is invisible to the beat loop.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from core.agent import CharacterAgent
from core.models import CostSummary


class AgentGateway(ABC):
    """Asynchronous one-shot text generation per character."""

    @abstractmethod
    async def invoke(self, character: str, prompt: str) -> str:
        """
        Ask one character for its reply.

        Raises:
            Exception: Any failure; the moderator records it and moves on
        """

    def usage(self) -> Optional[CostSummary]:
        """Token and cost accounting for calls made so far, if known."""
        return None


class ProviderGateway(AgentGateway):
    """Gateway that routes each character to its own CharacterAgent."""

    def __init__(
        self,
        characters: Iterable[CharacterAgent],
        input_cost_per_1k: float = 0.0,
        output_cost_per_1k: float = 0.0
    ):
        self.characters: dict[str, CharacterAgent] = {}
        for character in characters:
            if character.name in self.characters:
                raise ValueError(f"Duplicate character: '{character.name}'")
            self.characters[character.name] = character
        self.input_cost_per_1k = input_cost_per_1k
        self.output_cost_per_1k = output_cost_per_1k

    async def invoke(self, character: str, prompt: str) -> str:
        agent = self.characters.get(character)
        if agent is None:
            raise KeyError(f"No agent registered for character '{character}'")
        return await agent.respond(prompt)

    def usage(self) -> Optional[CostSummary]:
        # Characters may share a provider instance; count each provider once.
        providers = {id(agent.llm_provider): agent.llm_provider for agent in self.characters.values()}
        totals = [p.total_usage for p in providers.values() if p.total_usage is not None]
        if not totals:
            return None

        input_tokens = sum(u.input_tokens for u in totals)
        output_tokens = sum(u.output_tokens for u in totals)
        return CostSummary(
            total_tokens=input_tokens + output_tokens,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_usd=(
                input_tokens / 1000 * self.input_cost_per_1k
                + output_tokens / 1000 * self.output_cost_per_1k
            )
        )
