"""
Completion oracles decide when a scene is over.

An oracle receives the transcript so far and the scene config after every
beat. It may be synchronous or asynchronous and returns either a bool
(True means the goal was achieved), "goal_achieved" or "natural_end".
Any other truthy value counts as "goal_achieved".
Oracles must not mutate the transcript they are given.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, Sequence, Union

from core.models import ORACLE_REASONS, SceneConfig, TranscriptEntry, is_dialog_entry


OracleVerdict = Union[bool, str]
OracleCallable = Callable[
    [Sequence[TranscriptEntry], SceneConfig],
    Union[OracleVerdict, Awaitable[OracleVerdict]],
]


class CompletionOracle(ABC):
    """Pluggable policy deciding whether a scene has finished."""

    @abstractmethod
    def evaluate(
        self,
        transcript: Sequence[TranscriptEntry],
        config: SceneConfig
    ) -> Union[OracleVerdict, Awaitable[OracleVerdict]]:
        """Return a truthy verdict (or a completion reason) to stop the scene."""

    def __call__(self, transcript, config):
        return self.evaluate(transcript, config)


class NeverComplete(CompletionOracle):
    """Never signals completion; scenes run until max_beats."""

    def evaluate(self, transcript, config) -> bool:
        return False


class PhraseCompletionOracle(CompletionOracle):
    """
    Ends the scene once a character says one of the closing phrases.

    Matching is case-insensitive against dialog content of the latest beat.
    """

    def __init__(self, phrases: Iterable[str], reason: str = "natural_end"):
        if reason not in ORACLE_REASONS:
            raise ValueError(f"reason must be one of {ORACLE_REASONS}, got {reason!r}")
        self.phrases = [p.lower() for p in phrases if p and p.strip()]
        if not self.phrases:
            raise ValueError("PhraseCompletionOracle needs at least one phrase")
        self.reason = reason

    def evaluate(self, transcript, config) -> OracleVerdict:
        if not transcript:
            return False
        latest_beat = transcript[-1].beat
        for entry in reversed(transcript):
            if entry.beat != latest_beat:
                break
            if is_dialog_entry(entry):
                content = entry.content.lower()
                if any(phrase in content for phrase in self.phrases):
                    return self.reason
        return False
