from pathlib import Path
from typing import Any, Callable, Optional
import yaml
from pydantic import ValidationError

from core.agent import CharacterAgent
from core.completion import CompletionOracle, NeverComplete, PhraseCompletionOracle
from core.models import SceneConfig, ScriptedEvent
from llm.llm_provider import LLMProvider
from llm.providers import create_provider
from utils.character_loader import CharacterLoader, load_character_file


SCENE_FIELDS = (
    "name",
    "prompt",
    "characters",
    "initial_speaker",
    "max_beats",
    "context_window",
    "midpoint_threshold",
    "wrap_up_threshold",
    "response_timeout",
)


def load_scene_file(path: Path | str) -> dict[str, Any]:
    """
    Load a scene definition from YAML.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or not a mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Scene file not found: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in scene file: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"Scene file must contain a YAML mapping: {path}")
    return config


def parse_scripted_events(events_config: list[dict] | None) -> list[ScriptedEvent]:
    """
    Parse scripted world events.

    Expected format:
    [
        {"beat": 3, "description": "The fire alarm goes off."}
    ]
    """
    if not events_config:
        return []
    if not isinstance(events_config, list):
        raise ValueError("scripted_events must be a list")

    events = []
    for event_dict in events_config:
        if not isinstance(event_dict, dict):
            raise ValueError("Each scripted event must be a dictionary")

        for field in ("beat", "description"):
            if field not in event_dict:
                raise ValueError(f"Scripted event missing required field '{field}'")

        if not isinstance(event_dict["beat"], int) or isinstance(event_dict["beat"], bool):
            raise ValueError("Scripted event 'beat' must be an integer")
        if event_dict["beat"] < 0:
            raise ValueError("Scripted event 'beat' must not be negative")

        events.append(ScriptedEvent(beat=event_dict["beat"], description=str(event_dict["description"])))

    return events


def parse_scene_config(config: dict[str, Any]) -> SceneConfig:
    """
    Build a SceneConfig from the ``scene`` section of a scene file.

    Only structure and types are checked here. Empty names, prompts and
    character lists are reported by the moderator as an error result.

    Raises:
        ValueError: If the scene section is missing or has the wrong types
    """
    scene = config.get("scene")
    if not isinstance(scene, dict):
        raise ValueError("Configuration missing required 'scene' section")

    fields = {key: scene[key] for key in SCENE_FIELDS if key in scene}
    fields.setdefault("name", "")
    fields.setdefault("prompt", "")
    if "characters" not in fields:
        fields["characters"] = list((config.get("characters") or {}).keys())

    fields["scripted_events"] = parse_scripted_events(scene.get("scripted_events"))

    try:
        return SceneConfig(**fields)
    except ValidationError as e:
        raise ValueError(f"Invalid scene configuration: {e}") from e


def parse_character_specs(config: dict[str, Any], base_dir: Path | str = ".") -> dict[str, dict[str, Any]]:
    """
    Collect character definitions from a scene file.

    Characters come from ``characters_dir`` (markdown files) and from the
    ``characters`` mapping; inline entries override directory entries.
    Inline entries may give ``persona`` text or a ``persona_file`` path.
    """
    base_dir = Path(base_dir)
    specs: dict[str, dict[str, Any]] = {}

    if config.get("characters_dir"):
        specs.update(CharacterLoader(base_dir / config["characters_dir"]).load_all())

    inline = config.get("characters") or {}
    if not isinstance(inline, dict):
        raise ValueError("'characters' must be a mapping of character name to definition")

    for name, spec in inline.items():
        spec = spec or {}
        if not isinstance(spec, dict):
            raise ValueError(f"Character '{name}': definition must be a dictionary")

        resolved = dict(specs.get(name, {"name": name, "description": None, "persona": None, "llm": None}))
        if spec.get("persona_file"):
            from_file = load_character_file(base_dir / spec["persona_file"])
            resolved.update(persona=from_file["persona"], description=from_file["description"])
            resolved["llm"] = from_file["llm"] or resolved.get("llm")
        for key in ("persona", "description", "llm"):
            if spec.get(key) is not None:
                resolved[key] = spec[key]
        resolved["name"] = name

        if resolved.get("llm") is not None and not isinstance(resolved["llm"], dict):
            raise ValueError(f"Character '{name}': llm must be a dictionary")
        specs[name] = resolved

    return specs


def create_characters(
    config: dict[str, Any],
    scene: SceneConfig,
    base_dir: Path | str = ".",
    provider_factory: Callable[[dict[str, Any]], LLMProvider] = create_provider,
    mock: bool = False
) -> list[CharacterAgent]:
    """
    Instantiate one CharacterAgent per scene character.

    Args:
        config: Full scene file contents
        scene: Parsed scene config (decides which characters take part)
        base_dir: Directory that relative paths are resolved against
        provider_factory: Builds an LLMProvider from an llm config section
        mock: Use MockLLMProvider for every character (dry run)

    Raises:
        ValueError: If a scene character has no definition
    """
    specs = parse_character_specs(config, base_dir)
    default_llm = config.get("llm") or {}

    agents = []
    for name in scene.characters:
        spec = specs.get(name)
        if spec is None:
            raise ValueError(f"Character '{name}' is not defined in the scene file or characters_dir")

        llm_config = {"provider": "mock"} if mock else {**default_llm, **(spec.get("llm") or {})}
        agents.append(CharacterAgent(
            name=name,
            llm_provider=provider_factory(llm_config),
            persona=spec.get("persona"),
            description=spec.get("description")
        ))
    return agents


def create_completion_oracle(config: dict[str, Any]) -> CompletionOracle:
    """Oracle described by ``scene.completion_phrases``; NeverComplete otherwise."""
    phrases: Optional[list[str]] = (config.get("scene") or {}).get("completion_phrases")
    if phrases:
        if not isinstance(phrases, list):
            raise ValueError("completion_phrases must be a list of strings")
        return PhraseCompletionOracle(phrases)
    return NeverComplete()


def validate_config(config: dict[str, Any], base_dir: Path | str = ".") -> SceneConfig:
    """
    Validate an entire scene file.

    Returns:
        The parsed SceneConfig

    Raises:
        ValueError: If the configuration is invalid
    """
    scene = parse_scene_config(config)
    specs = parse_character_specs(config, base_dir)

    missing = [name for name in scene.characters if name not in specs]
    if missing:
        raise ValueError(f"Characters without a definition: {', '.join(missing)}")

    llm = config.get("llm")
    if llm is not None and not isinstance(llm, dict):
        raise ValueError("'llm' must be a dictionary")

    create_completion_oracle(config)
    return scene
