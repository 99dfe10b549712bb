"""
Character definition loader.

Characters are markdown files whose body is the persona (the system prompt
for the character's LLM) with optional YAML front matter:

    ---
    name: alice
    description: Direct and honest, values clarity
    llm:
      provider: ollama
      model: llama3
    ---
    You are Alice, a direct and honest person who values truth and clarity.

Without front matter the file stem is the character name.
"""

import re
from pathlib import Path
from typing import Any
import yaml


_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z", re.DOTALL)

CHARACTER_SUFFIXES = (".md", ".markdown", ".txt")


class CharacterLoader:
    """Loads character definitions from a directory, with caching."""

    def __init__(self, characters_dir: Path | str):
        self.characters_dir = Path(characters_dir)
        self._cache: dict[str, dict[str, Any]] = {}

    def load(self, name: str) -> dict[str, Any]:
        """
        Load a character by name (file stem) or relative path.

        Raises:
            FileNotFoundError: If no matching file exists
            ValueError: If the file is malformed
        """
        if name in self._cache:
            return dict(self._cache[name])

        path = self._resolve(name)
        character = load_character_file(path)
        self._cache[name] = character
        return dict(character)

    def load_all(self) -> dict[str, dict[str, Any]]:
        """Load every character file in the directory, keyed by character name."""
        if not self.characters_dir.is_dir():
            raise FileNotFoundError(f"Characters directory not found: {self.characters_dir}")

        characters = {}
        for path in sorted(self.characters_dir.iterdir()):
            if path.suffix.lower() not in CHARACTER_SUFFIXES or not path.is_file():
                continue
            character = load_character_file(path)
            if character["name"] in characters:
                raise ValueError(f"Duplicate character name '{character['name']}' in {self.characters_dir}")
            characters[character["name"]] = character
        return characters

    def _resolve(self, name: str) -> Path:
        candidate = self.characters_dir / name
        if candidate.is_file():
            return candidate
        for suffix in CHARACTER_SUFFIXES:
            path = self.characters_dir / f"{name}{suffix}"
            if path.is_file():
                return path
        raise FileNotFoundError(f"Character file not found for '{name}' in {self.characters_dir}")


def load_character_file(path: Path | str) -> dict[str, Any]:
    """
    Parse one character file.

    Returns:
        Dictionary with ``name``, ``persona``, ``description`` and ``llm`` keys

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the front matter is not a YAML mapping or the persona is empty
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Character file not found: {path}")

    text = path.read_text(encoding="utf-8")
    front_matter: dict[str, Any] = {}
    body = text

    match = _FRONT_MATTER_RE.match(text)
    if match:
        try:
            parsed = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML front matter in {path}: {e}")
        if parsed is not None and not isinstance(parsed, dict):
            raise ValueError(f"Front matter must be a YAML mapping: {path}")
        front_matter = parsed or {}
        body = match.group(2)

    persona = body.strip()
    if not persona:
        raise ValueError(f"Character file has no persona text: {path}")

    llm = front_matter.get("llm")
    if llm is not None and not isinstance(llm, dict):
        raise ValueError(f"'llm' in {path} must be a mapping")

    return {
        "name": str(front_matter.get("name") or path.stem),
        "description": front_matter.get("description"),
        "persona": persona,
        "llm": llm,
    }
