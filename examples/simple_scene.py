#!/usr/bin/env python3
"""
Simple two-character scene using mock providers (no API keys needed).

Usage:
    python examples/simple_scene.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core import CharacterAgent, ProviderGateway, SceneConfig, SceneModerator
from llm.mock_provider import MockLLMProvider


async def main():
    alice = CharacterAgent(
        name="alice",
        persona="You are Alice, a direct and honest person who values truth and clarity.",
        llm_provider=MockLLMProvider(responses=[
            '[TO: bob, TONE: frustrated] "We missed the deadline. What happened?"',
            '[TO: bob, TONE: calm, *nods*] "Okay. Then let\'s split the remaining work."',
            "[SILENT, *writes on the whiteboard*]",
        ]),
    )
    bob = CharacterAgent(
        name="bob",
        persona="You are Bob, a thoughtful and diplomatic person who seeks harmony.",
        llm_provider=MockLLMProvider(responses=[
            "[SILENT, *looks at the floor*]",
            '[TO: alice, TONE: nervous] "The requirements changed twice and I didn\'t flag it."',
            '[INTERRUPT after "split the", TONE: relieved] "I can take the API part."',
        ]),
    )

    config = SceneConfig(
        name="office-discussion",
        prompt="Alice and Bob are discussing a project deadline that was missed.",
        characters=["alice", "bob"],
        initial_speaker="alice",
        max_beats=3,
    )

    moderator = SceneModerator(ProviderGateway([alice, bob]))
    result = await moderator.run_scene(config)

    print("\n=== SCENE RESULT ===\n")
    print("Success:", result.success)
    print("\n=== TRANSCRIPT ===\n")
    print(result.transcript)
    print("\n=== METADATA ===\n")
    print(result.metadata.model_dump_json(indent=2))


if __name__ == "__main__":
    asyncio.run(main())
