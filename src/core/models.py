"""
Data model for scene runs.

Parsed character responses and transcript entries are closed tagged unions
discriminated on ``action`` and ``type`` respectively, so every consumer has
to handle each variant explicitly.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


CompletionReason = Literal["goal_achieved", "natural_end", "max_beats", "cancelled", "error"]
COMPLETION_REASONS: tuple[str, ...] = ("goal_achieved", "natural_end", "max_beats", "cancelled", "error")
# Reasons a completion oracle may report; the rest are set by the moderator.
ORACLE_REASONS: tuple[str, ...] = ("goal_achieved", "natural_end")

DEFAULT_MAX_BEATS = 50
DEFAULT_CONTEXT_WINDOW = 10
DEFAULT_TONE = "neutral"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ============================================================================
# Scene configuration
# ============================================================================

class ScriptedEvent(_Frozen):
    """A world event that is injected at the start of a specific beat."""
    beat: int
    description: str


class SceneConfig(_Frozen):
    """Immutable input for one scene run."""

    name: str
    prompt: str
    characters: tuple[str, ...]
    initial_speaker: Optional[str] = None
    max_beats: int = DEFAULT_MAX_BEATS

    context_window: int = DEFAULT_CONTEXT_WINDOW
    midpoint_threshold: float = 0.6
    wrap_up_threshold: float = 0.8
    response_timeout: Optional[float] = 120.0
    scripted_events: tuple[ScriptedEvent, ...] = ()

    def events_for_beat(self, beat: int) -> list[ScriptedEvent]:
        """Scripted events pinned to the given beat."""
        return [event for event in self.scripted_events if event.beat == beat]


# ============================================================================
# Parsed responses
# ============================================================================

class _ResponseBase(_Frozen):
    tone: str = DEFAULT_TONE
    content: str = ""
    nonverbal: Optional[str] = None
    warning: Optional[str] = None


class SpeakResponse(_ResponseBase):
    action: Literal["speak"] = "speak"
    target: Optional[str] = None


class InterruptResponse(_ResponseBase):
    action: Literal["interrupt"] = "interrupt"
    target: Optional[str] = None
    interrupt_after: Optional[str] = None


class SilentResponse(_ResponseBase):
    action: Literal["silent"] = "silent"


class ReactResponse(_ResponseBase):
    action: Literal["react"] = "react"
    target: Optional[str] = None


ParsedResponse = Annotated[
    Union[SpeakResponse, InterruptResponse, SilentResponse, ReactResponse],
    Field(discriminator="action"),
]


class AgentReply(_Frozen):
    """Raw reply text as received by the moderator."""
    character: str
    raw: str
    timestamp: float
    sequence: int = 0


# ============================================================================
# Transcript entries
# ============================================================================

class DialogEntry(_Frozen):
    type: Literal["dialog"] = "dialog"
    speaker: str
    action: Literal["speak", "interrupt", "react"]
    target: Optional[str] = None
    tone: str = DEFAULT_TONE
    content: str = ""
    nonverbal: Optional[str] = None
    interrupt_after: Optional[str] = None
    beat: int
    timestamp: float


class WorldEventEntry(_Frozen):
    type: Literal["event"] = "event"
    description: str
    beat: int
    timestamp: float


class SystemEntry(_Frozen):
    type: Literal["system"] = "system"
    message: str
    beat: int
    timestamp: float


TranscriptEntry = Annotated[
    Union[DialogEntry, WorldEventEntry, SystemEntry],
    Field(discriminator="type"),
]


def is_dialog_entry(entry) -> bool:
    return entry.type == "dialog"


def is_world_event_entry(entry) -> bool:
    return entry.type == "event"


def is_system_entry(entry) -> bool:
    return entry.type == "system"


# ============================================================================
# Beat context
# ============================================================================

class SceneUpdate(_Frozen):
    """Context handed to every character for one beat."""
    scene_context: str
    transcript: str
    last_event: Optional[TranscriptEntry] = None
    moderator_note: Optional[str] = None
    beat: int


# ============================================================================
# Results
# ============================================================================

class ErrorInfo(_Frozen):
    code: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class ErrorLog(_Frozen):
    beat: int
    character: Optional[str] = None
    error: str
    context: dict[str, Any] = Field(default_factory=dict)


class ParseWarning(_Frozen):
    beat: int
    character: str
    warning: str


class CostSummary(_Frozen):
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_usd: float = 0.0


class SceneMetadata(_Frozen):
    name: str
    duration: float
    total_beats: int
    character_count: int
    characters: list[str]
    goal_achieved: bool
    completion_reason: CompletionReason
    costs: Optional[CostSummary] = None
    errors: list[ErrorLog] = Field(default_factory=list)
    warnings: list[ParseWarning] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class SceneResult(_Frozen):
    """Final, immutable outcome of a scene run."""
    success: bool
    transcript: str
    entries: tuple[TranscriptEntry, ...] = ()
    metadata: SceneMetadata
    error: Optional[ErrorInfo] = None
    trace: tuple[str, ...] = ()

    @property
    def debug_log(self) -> str:
        return "\n".join(self.trace)
