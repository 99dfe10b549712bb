"""Unit tests for scene file parsing."""

import pytest

from core.completion import NeverComplete, PhraseCompletionOracle
from core.models import ScriptedEvent
from llm.mock_provider import MockLLMProvider
from utils.config_parser import (
    create_characters,
    create_completion_oracle,
    load_scene_file,
    parse_character_specs,
    parse_scene_config,
    parse_scripted_events,
    validate_config,
)


def base_config(**scene_overrides):
    scene = {
        "name": "office",
        "prompt": "A tense meeting.",
        "characters": ["alice", "bob"],
        "max_beats": 10,
    }
    scene.update(scene_overrides)
    return {
        "scene": scene,
        "llm": {"provider": "ollama", "model": "llama3"},
        "characters": {
            "alice": {"persona": "You are Alice."},
            "bob": {"persona": "You are Bob.", "llm": {"provider": "anthropic"}},
        },
    }


class TestLoadSceneFile:

    def test_load(self, tmp_path):
        path = tmp_path / "scene.yaml"
        path.write_text("scene:\n  name: office\n")

        assert load_scene_file(path) == {"scene": {"name": "office"}}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Scene file not found"):
            load_scene_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "scene.yaml"
        path.write_text("scene: [unclosed\n")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_scene_file(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "scene.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_scene_file(path)


class TestParseScriptedEvents:

    def test_valid(self):
        events = parse_scripted_events([{"beat": 3, "description": "The alarm rings."}])
        assert events == [ScriptedEvent(beat=3, description="The alarm rings.")]

    def test_empty(self):
        assert parse_scripted_events(None) == []
        assert parse_scripted_events([]) == []

    @pytest.mark.parametrize("events, message", [
        ({"beat": 1}, "must be a list"),
        (["not a dict"], "dictionary"),
        ([{"description": "x"}], "'beat'"),
        ([{"beat": 1}], "'description'"),
        ([{"beat": "one", "description": "x"}], "integer"),
        ([{"beat": True, "description": "x"}], "integer"),
        ([{"beat": -1, "description": "x"}], "negative"),
    ])
    def test_invalid(self, events, message):
        with pytest.raises(ValueError, match=message):
            parse_scripted_events(events)


class TestParseSceneConfig:

    def test_full_scene(self):
        config = base_config(
            initial_speaker="alice",
            context_window=4,
            response_timeout=30,
            scripted_events=[{"beat": 2, "description": "Rain."}],
        )

        scene = parse_scene_config(config)

        assert scene.name == "office"
        assert scene.characters == ("alice", "bob")
        assert scene.initial_speaker == "alice"
        assert scene.max_beats == 10
        assert scene.context_window == 4
        assert scene.response_timeout == 30.0
        assert scene.scripted_events == (ScriptedEvent(beat=2, description="Rain."),)

    def test_characters_default_to_inline_definitions(self):
        config = base_config()
        del config["scene"]["characters"]

        assert parse_scene_config(config).characters == ("alice", "bob")

    def test_missing_scene_section(self):
        with pytest.raises(ValueError, match="'scene' section"):
            parse_scene_config({"characters": {}})

    def test_empty_name_left_for_moderator(self):
        config = base_config()
        del config["scene"]["name"]

        assert parse_scene_config(config).name == ""

    def test_wrong_types(self):
        with pytest.raises(ValueError, match="Invalid scene configuration"):
            parse_scene_config(base_config(max_beats="lots"))


class TestParseCharacterSpecs:

    def test_inline(self):
        specs = parse_character_specs(base_config())

        assert specs["alice"]["persona"] == "You are Alice."
        assert specs["bob"]["llm"] == {"provider": "anthropic"}

    def test_characters_dir_and_override(self, tmp_path):
        characters = tmp_path / "characters"
        characters.mkdir()
        (characters / "alice.md").write_text("---\ndescription: From file\n---\nFile persona.\n")
        config = {
            "characters_dir": "characters",
            "characters": {"alice": {"persona": "Inline persona."}},
        }

        specs = parse_character_specs(config, base_dir=tmp_path)

        assert specs["alice"]["persona"] == "Inline persona."
        assert specs["alice"]["description"] == "From file"

    def test_persona_file(self, tmp_path):
        (tmp_path / "carol.md").write_text("---\nllm:\n  provider: mock\n---\nYou are Carol.\n")
        config = {"characters": {"carol": {"persona_file": "carol.md"}}}

        spec = parse_character_specs(config, base_dir=tmp_path)["carol"]

        assert spec["persona"] == "You are Carol."
        assert spec["llm"] == {"provider": "mock"}

    def test_characters_must_be_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            parse_character_specs({"characters": ["alice"]})

    def test_llm_must_be_mapping(self):
        with pytest.raises(ValueError, match="llm must be a dictionary"):
            parse_character_specs({"characters": {"alice": {"llm": "ollama"}}})


class TestCreateCharacters:

    def test_merges_default_llm(self):
        configs = []

        def factory(llm_config):
            configs.append(llm_config)
            return MockLLMProvider()

        config = base_config()
        agents = create_characters(config, parse_scene_config(config), provider_factory=factory)

        assert [a.name for a in agents] == ["alice", "bob"]
        assert agents[0].persona == "You are Alice."
        assert configs == [
            {"provider": "ollama", "model": "llama3"},
            {"provider": "anthropic", "model": "llama3"},
        ]

    def test_mock_mode(self):
        config = base_config()
        agents = create_characters(config, parse_scene_config(config), mock=True)

        assert all(isinstance(a.llm_provider, MockLLMProvider) for a in agents)

    def test_undefined_character(self):
        config = base_config(characters=["alice", "carol"])

        with pytest.raises(ValueError, match="carol"):
            create_characters(config, parse_scene_config(config), mock=True)


class TestCompletionOracleConfig:

    def test_default_never_completes(self):
        assert isinstance(create_completion_oracle(base_config()), NeverComplete)

    def test_phrases(self):
        oracle = create_completion_oracle(base_config(completion_phrases=["goodbye"]))

        assert isinstance(oracle, PhraseCompletionOracle)
        assert oracle.phrases == ["goodbye"]

    def test_phrases_must_be_list(self):
        with pytest.raises(ValueError, match="list"):
            create_completion_oracle(base_config(completion_phrases="goodbye"))


class TestValidateConfig:

    def test_valid(self):
        assert validate_config(base_config()).name == "office"

    def test_missing_character_definition(self):
        with pytest.raises(ValueError, match="carol"):
            validate_config(base_config(characters=["alice", "carol"]))

    def test_llm_must_be_mapping(self):
        config = base_config()
        config["llm"] = "ollama"

        with pytest.raises(ValueError, match="'llm' must be a dictionary"):
            validate_config(config)
