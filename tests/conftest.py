"""Pytest configuration for tests."""

import asyncio
import itertools
import sys
import shutil
from pathlib import Path
import pytest

# Add src directory to Python path for all tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from core.gateway import AgentGateway
from core.models import SceneConfig


class ScriptedGateway(AgentGateway):
    """
    Gateway fake that answers from per-character scripts.

    Each script item is either a reply string, an Exception instance (raised),
    or a ``(delay_seconds, reply)`` tuple. Exhausted scripts answer "[SILENT]".
    """

    def __init__(self, scripts=None, default="[SILENT]"):
        self.scripts = {name: list(items) for name, items in (scripts or {}).items()}
        self.default = default
        self.calls: list[tuple[str, str]] = []

    async def invoke(self, character: str, prompt: str) -> str:
        self.calls.append((character, prompt))
        script = self.scripts.get(character, [])
        item = script.pop(0) if script else self.default

        if isinstance(item, tuple):
            delay, item = item
            await asyncio.sleep(delay)
        if isinstance(item, BaseException):
            raise item
        return item

    def prompts_for(self, character: str) -> list[str]:
        return [prompt for name, prompt in self.calls if name == character]


@pytest.fixture
def scripted_gateway():
    """Factory for ScriptedGateway instances."""
    return ScriptedGateway


@pytest.fixture
def scene_config():
    """Factory for valid scene configs with overridable fields."""
    def _make(**overrides):
        fields = dict(
            name="test-scene",
            prompt="Two coworkers argue about a missed deadline.",
            characters=["alice", "bob"],
            max_beats=3,
            response_timeout=5.0,
        )
        fields.update(overrides)
        return SceneConfig(**fields)
    return _make


@pytest.fixture
def fake_clock():
    """Strictly increasing clock so arrival order is deterministic."""
    counter = itertools.count(1)
    return lambda: float(next(counter))


@pytest.fixture(autouse=True)
def cleanup_scene_output():
    """Automatically clean up the default scene output directory after each test."""
    # Run test
    yield

    # Cleanup after test
    output_dir = Path("data/scenes")
    if output_dir.exists():
        try:
            shutil.rmtree(output_dir)
        except OSError:
            pass  # Best effort cleanup
