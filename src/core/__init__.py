"""
Scene moderation core.

A SceneModerator runs a scene beat by beat: every character is prompted
concurrently through an AgentGateway, replies are parsed by parse_response,
ordered by arrival and appended to the transcript until a CompletionOracle
ends the scene or max_beats is reached.
"""

from core.models import (
    AgentReply,
    CostSummary,
    DialogEntry,
    ErrorInfo,
    ErrorLog,
    InterruptResponse,
    ParsedResponse,
    ParseWarning,
    ReactResponse,
    SceneConfig,
    SceneMetadata,
    SceneResult,
    SceneUpdate,
    ScriptedEvent,
    SilentResponse,
    SpeakResponse,
    SystemEntry,
    TranscriptEntry,
    WorldEventEntry,
    is_dialog_entry,
    is_system_entry,
    is_world_event_entry,
)
from core.response_parser import parse_response
from core.transcript import Transcript, render_entries, render_entry
from core.agent import CharacterAgent
from core.gateway import AgentGateway, ProviderGateway
from core.completion import CompletionOracle, NeverComplete, PhraseCompletionOracle
from core.prompts import build_character_prompt
from core.scene_moderator import SceneModerator, moderator_note, validate_config

__all__ = [
    # Models
    "AgentReply",
    "CostSummary",
    "DialogEntry",
    "ErrorInfo",
    "ErrorLog",
    "InterruptResponse",
    "ParsedResponse",
    "ParseWarning",
    "ReactResponse",
    "SceneConfig",
    "SceneMetadata",
    "SceneResult",
    "SceneUpdate",
    "ScriptedEvent",
    "SilentResponse",
    "SpeakResponse",
    "SystemEntry",
    "TranscriptEntry",
    "WorldEventEntry",
    "is_dialog_entry",
    "is_system_entry",
    "is_world_event_entry",
    # Parsing and transcript
    "parse_response",
    "Transcript",
    "render_entries",
    "render_entry",
    # Agents
    "CharacterAgent",
    "AgentGateway",
    "ProviderGateway",
    # Completion
    "CompletionOracle",
    "NeverComplete",
    "PhraseCompletionOracle",
    # Moderation
    "build_character_prompt",
    "SceneModerator",
    "moderator_note",
    "validate_config",
]
