"""Unit tests for character file loading."""

import pytest

from utils.character_loader import CharacterLoader, load_character_file


ALICE = """---
name: alice
description: Direct and honest
llm:
  provider: ollama
  model: llama3
---
You are Alice, a direct and honest person.
"""


@pytest.fixture
def characters_dir(tmp_path):
    directory = tmp_path / "characters"
    directory.mkdir()
    (directory / "alice.md").write_text(ALICE)
    (directory / "bob.md").write_text("You are Bob, a diplomatic person.\n")
    (directory / "notes.json").write_text("{}")
    return directory


class TestLoadCharacterFile:
    """Test parsing of a single character file."""

    def test_front_matter(self, characters_dir):
        character = load_character_file(characters_dir / "alice.md")

        assert character == {
            "name": "alice",
            "description": "Direct and honest",
            "persona": "You are Alice, a direct and honest person.",
            "llm": {"provider": "ollama", "model": "llama3"},
        }

    def test_without_front_matter_uses_stem(self, characters_dir):
        character = load_character_file(characters_dir / "bob.md")

        assert character["name"] == "bob"
        assert character["persona"] == "You are Bob, a diplomatic person."
        assert character["description"] is None
        assert character["llm"] is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_character_file(tmp_path / "nobody.md")

    def test_empty_persona(self, tmp_path):
        path = tmp_path / "empty.md"
        path.write_text("---\nname: empty\n---\n   \n")

        with pytest.raises(ValueError, match="no persona"):
            load_character_file(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.md"
        path.write_text("---\nname: [unclosed\n---\nPersona.\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_character_file(path)

    def test_front_matter_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.md"
        path.write_text("---\n- a\n- b\n---\nPersona.\n")

        with pytest.raises(ValueError, match="mapping"):
            load_character_file(path)

    def test_llm_must_be_mapping(self, tmp_path):
        path = tmp_path / "bad_llm.md"
        path.write_text("---\nllm: ollama\n---\nPersona.\n")

        with pytest.raises(ValueError, match="llm"):
            load_character_file(path)


class TestCharacterLoader:
    """Test directory loading and caching."""

    def test_load_by_name(self, characters_dir):
        loader = CharacterLoader(characters_dir)

        assert loader.load("alice")["description"] == "Direct and honest"
        assert loader.load("bob.md")["name"] == "bob"

    def test_load_cached(self, characters_dir):
        loader = CharacterLoader(characters_dir)
        loader.load("bob")
        (characters_dir / "bob.md").write_text("Changed persona.\n")

        assert loader.load("bob")["persona"] == "You are Bob, a diplomatic person."

    def test_load_returns_copy(self, characters_dir):
        loader = CharacterLoader(characters_dir)
        loader.load("alice")["persona"] = "mutated"

        assert loader.load("alice")["persona"] != "mutated"

    def test_load_missing(self, characters_dir):
        with pytest.raises(FileNotFoundError, match="carol"):
            CharacterLoader(characters_dir).load("carol")

    def test_load_all_skips_other_files(self, characters_dir):
        characters = CharacterLoader(characters_dir).load_all()

        assert sorted(characters) == ["alice", "bob"]

    def test_load_all_duplicate_names(self, characters_dir):
        (characters_dir / "alice_copy.md").write_text(ALICE)

        with pytest.raises(ValueError, match="Duplicate character name 'alice'"):
            CharacterLoader(characters_dir).load_all()

    def test_load_all_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            CharacterLoader(tmp_path / "missing").load_all()
