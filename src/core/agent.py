from typing import Optional
from llm.llm_provider import LLMProvider


class CharacterAgent:
    """A scene character backed by its own LLM provider and persona."""

    def __init__(
        self,
        name: str,
        llm_provider: LLMProvider,
        persona: Optional[str] = None,
        description: Optional[str] = None
    ):
        """
        Initialize a character.

        Args:
            name: Character identifier used in scene configs and transcripts
            llm_provider: LLM provider used to generate replies
            persona: System prompt describing personality and behaviour
            description: Short human-readable description
        """
        if not name or not name.strip():
            raise ValueError("Character name must be non-empty")
        if llm_provider is None:
            raise ValueError(f"Character '{name}' must have an llm_provider")

        self.name = name
        self.llm_provider = llm_provider
        self.persona = persona
        self.description = description
        self.response_count = 0

    async def respond(self, prompt: str) -> str:
        """
        Generate this character's reply to a beat prompt.

        Each call is independent: the character keeps no memory between
        beats beyond what the prompt itself contains.
        """
        reply = await self.llm_provider.agenerate(prompt=prompt, system_prompt=self.persona)
        self.response_count += 1
        return reply

    def __repr__(self) -> str:
        return f"CharacterAgent(name={self.name!r})"
