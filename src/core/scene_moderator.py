"""
Scene moderator: the beat loop that drives a multi-character scene.

Every beat, all characters receive the same context built from the
transcript of previous beats, are invoked concurrently, and their replies
are parsed, ordered by arrival, filtered and appended to the transcript.
Nobody sees another character's reply from the same beat.
"""

import asyncio
import inspect
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from core.completion import CompletionOracle, NeverComplete, OracleCallable
from core.gateway import AgentGateway
from core.models import (
    ORACLE_REASONS,
    AgentReply,
    DialogEntry,
    ErrorInfo,
    ErrorLog,
    ParsedResponse,
    ParseWarning,
    SceneConfig,
    SceneMetadata,
    SceneResult,
    SceneUpdate,
    SystemEntry,
    TranscriptEntry,
    WorldEventEntry,
)
from core.prompts import build_character_prompt
from core.response_parser import parse_response
from core.transcript import Transcript, render_entries
from utils.logging_config import LogLevel, MessageCode, PerformanceTimer, StructuredLogger


MIDPOINT_NOTE = "Scene past midpoint. Consider moving toward resolution."
WRAP_UP_NOTE = "Scene approaching conclusion. Begin wrapping up your character arc."

INVALID_CONFIG = "INVALID_CONFIG"
ORACLE_FAILED = "ORACLE_FAILED"
INTERNAL_ERROR = "INTERNAL_ERROR"

PromptBuilder = Callable[[str, SceneUpdate], str]


def validate_config(config: SceneConfig) -> Optional[str]:
    """Return a description of the first problem with ``config``, or None."""
    if not config.name or not config.name.strip():
        return "Scene name is required"
    if not config.prompt or not config.prompt.strip():
        return "Scene prompt is required"
    if not config.characters:
        return "At least one character is required"
    if config.max_beats < 1:
        return f"max_beats must be a positive integer, got {config.max_beats}"
    if config.context_window < 0:
        return f"context_window must not be negative, got {config.context_window}"
    return None


def moderator_note(beat: int, config: SceneConfig) -> Optional[str]:
    """Guidance for the characters based on how far the scene has progressed."""
    if beat == 0 and config.initial_speaker and config.initial_speaker in config.characters:
        return f"{config.initial_speaker} opens the scene."

    progress = beat / config.max_beats
    if progress > config.wrap_up_threshold:
        return WRAP_UP_NOTE
    if progress > config.midpoint_threshold:
        return MIDPOINT_NOTE
    return None


@dataclass
class _Outcome:
    """Settled result of one gateway call."""
    character: str
    timestamp: float
    sequence: int
    raw: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _SceneRun:
    """Mutable state of one run; never leaves the moderator."""
    config: SceneConfig
    transcript: Transcript = field(default_factory=Transcript)
    errors: list[ErrorLog] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    trace: list[str] = field(default_factory=list)
    sequence: itertools.count = field(default_factory=itertools.count)
    log: Optional[StructuredLogger] = None


class _OracleFailure(Exception):
    pass


class SceneModerator:
    """Orchestrates multi-character scenes with concurrent beats."""

    def __init__(
        self,
        gateway: AgentGateway,
        completion_oracle: Optional[Union[CompletionOracle, OracleCallable]] = None,
        prompt_builder: PromptBuilder = build_character_prompt,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the moderator.

        Args:
            gateway: Route to the character agents
            completion_oracle: Decides when the scene is over (default: never)
            prompt_builder: Renders a character's prompt from the beat context
            logger: Structured logger; nothing is logged when None
            clock: Wall-clock source used to stamp reply arrival
        """
        self.gateway = gateway
        self.completion_oracle = completion_oracle or NeverComplete()
        self.prompt_builder = prompt_builder
        self.logger = logger
        self.clock = clock

    async def run_scene(self, config: SceneConfig, cancel_event=None) -> SceneResult:
        """
        Run a scene from start to finish.

        Args:
            config: Scene configuration
            cancel_event: Optional asyncio.Event or threading.Event; when set,
                the scene stops before the next beat begins

        Returns:
            SceneResult. Only configuration problems, oracle failures and
            internal errors produce ``success=False``.
        """
        started = time.perf_counter()
        run = _SceneRun(config, log=self.logger.bind(scene=config.name) if self.logger is not None else None)

        problem = validate_config(config)
        if problem:
            self._log(run, LogLevel.ERROR, MessageCode.SCN003, "Scene rejected", error=problem)
            return SceneResult(
                success=False,
                transcript="",
                metadata=self._metadata(config, run, 0, started, "error"),
                error=ErrorInfo(code=INVALID_CONFIG, message=problem, context={"config": config.model_dump()}),
                trace=(f"rejected: {problem}",)
            )

        if config.initial_speaker and config.initial_speaker not in config.characters:
            self._log(
                run,
                LogLevel.WARNING,
                MessageCode.CFG002,
                "Initial speaker is not a scene character; ignoring",
                character=config.initial_speaker
            )

        self._log(
            run,
            LogLevel.INFO,
            MessageCode.SCN001,
            "Scene started",
            num_characters=len(config.characters),
            max_beats=config.max_beats
        )

        beat = 0
        reason = "max_beats"
        try:
            while beat < config.max_beats:
                if cancel_event is not None and cancel_event.is_set():
                    reason = "cancelled"
                    run.trace.append(f"beat {beat}: cancelled before start")
                    self._log(run, LogLevel.WARNING, MessageCode.SCN004, "Scene cancelled", beat=beat)
                    break

                with PerformanceTimer(run.log, MessageCode.PRF001, f"Beat {beat}", beat=beat):
                    await self._run_beat(run, beat)

                verdict = await self._evaluate(run)
                beat += 1
                if verdict:
                    reason = verdict
                    run.trace.append(f"beat {beat - 1}: oracle signalled {verdict}")
                    self._log(run, LogLevel.INFO, MessageCode.ORC001, "Completion signalled", beat=beat - 1, reason=verdict)
                    break

        except _OracleFailure as e:
            self._log(run, LogLevel.CRITICAL, MessageCode.ORC002, "Completion oracle failed", beat=beat, error=str(e))
            return self._failure(run, beat + 1, started, ORACLE_FAILED, f"Completion oracle failed: {e}", beat)

        except Exception as e:
            self._log(
                run,
                LogLevel.CRITICAL,
                MessageCode.SCN005,
                "Scene failed with unhandled exception",
                beat=beat,
                error=str(e)
            )
            return self._failure(run, beat, started, INTERNAL_ERROR, f"{type(e).__name__}: {e}", beat)

        if reason == "max_beats":
            run.trace.append(f"max beats reached ({config.max_beats})")

        self._log(
            run,
            LogLevel.INFO,
            MessageCode.SCN002,
            "Scene completed",
            total_beats=beat,
            reason=reason,
            entries=len(run.transcript)
        )
        return SceneResult(
            success=True,
            transcript=run.transcript.render(),
            entries=run.transcript.snapshot(),
            metadata=self._metadata(config, run, beat, started, reason),
            trace=tuple(run.trace)
        )

    # ------------------------------------------------------------------
    # Beat execution
    # ------------------------------------------------------------------

    async def _run_beat(self, run: _SceneRun, beat: int) -> None:
        config = run.config

        for event in config.events_for_beat(beat):
            self._append(run, WorldEventEntry(description=event.description, beat=beat, timestamp=self.clock()))
            run.trace.append(f"beat {beat}: world event '{event.description}'")
            self._log(run, LogLevel.INFO, MessageCode.BET003, "Scripted event injected", beat=beat, description=event.description)

        update = self.create_update(config, run.transcript, beat)
        self._log(run, LogLevel.INFO, MessageCode.BET001, "Beat started", beat=beat, max_beats=config.max_beats)

        outcomes = await self._collect_responses(run, update)

        candidates: list[tuple[float, int, TranscriptEntry]] = []
        silent = []
        for outcome in outcomes:
            if not outcome.ok:
                candidates.append((outcome.timestamp, outcome.sequence, self._record_failure(run, beat, outcome)))
                continue

            parsed = parse_response(outcome.raw)
            if parsed.warning:
                run.warnings.append(ParseWarning(beat=beat, character=outcome.character, warning=parsed.warning))
                self._log(
                    run,
                    LogLevel.WARNING,
                    MessageCode.PRS001,
                    "Degraded parse",
                    beat=beat,
                    character=outcome.character,
                    reason=parsed.warning
                )

            if parsed.action == "silent":
                silent.append(outcome.character)
                continue

            entry = self.response_to_entry(outcome.character, parsed, beat, outcome.timestamp)
            candidates.append((outcome.timestamp, outcome.sequence, entry))

        # Arrival order decides who "spoke first", not invocation order.
        candidates.sort(key=lambda c: (c[0], c[1]))
        for _, _, entry in candidates:
            self._append(run, entry)
            if entry.type == "dialog":
                run.trace.append(f"beat {beat}: {entry.speaker} {entry.action}")

        if silent:
            run.trace.append(f"beat {beat}: silent {', '.join(silent)}")
            self._log(run, LogLevel.DEBUG, MessageCode.BET004, "Silent responses filtered", beat=beat, characters=silent)

        self._log(run, LogLevel.INFO, MessageCode.BET002, "Beat completed", beat=beat, new_entries=len(candidates))

    def create_update(self, config: SceneConfig, transcript: Transcript, beat: int) -> SceneUpdate:
        """Build the context every character sees for this beat."""
        return SceneUpdate(
            scene_context=config.prompt,
            transcript=render_entries(transcript.recent(config.context_window)),
            last_event=transcript.last(),
            moderator_note=moderator_note(beat, config),
            beat=beat
        )

    async def _collect_responses(self, run: _SceneRun, update: SceneUpdate) -> list[_Outcome]:
        """Invoke every character concurrently and wait for all of them to settle."""
        config = run.config
        prompts = {name: self.prompt_builder(name, update) for name in config.characters}

        results = await asyncio.gather(
            *(self._invoke(run, name, prompt, update.beat) for name, prompt in prompts.items()),
            return_exceptions=True
        )

        outcomes = []
        for name, result in zip(prompts, results):
            if isinstance(result, _Outcome):
                outcomes.append(result)
            else:
                # Cancelled from inside the gateway call.
                outcomes.append(_Outcome(
                    character=name,
                    timestamp=self.clock(),
                    sequence=next(run.sequence),
                    error=f"{type(result).__name__}: {result}",
                    reason="cancelled"
                ))
        return outcomes

    async def _invoke(self, run: _SceneRun, character: str, prompt: str, beat: int) -> _Outcome:
        timeout = run.config.response_timeout
        self._log(run, LogLevel.DEBUG, MessageCode.AGT002, "Prompt sent to character", beat=beat, character=character)
        try:
            call = self.gateway.invoke(character, prompt)
            if timeout is not None:
                text = await asyncio.wait_for(call, timeout=timeout)
            else:
                text = await call
        except asyncio.TimeoutError:
            return _Outcome(
                character=character,
                timestamp=self.clock(),
                sequence=next(run.sequence),
                error=f"No response within {timeout}s",
                reason="timeout"
            )
        except Exception as e:
            return _Outcome(
                character=character,
                timestamp=self.clock(),
                sequence=next(run.sequence),
                error=str(e) or type(e).__name__,
                reason="error"
            )

        reply = AgentReply(
            character=character,
            raw=_as_text(text),
            timestamp=self.clock(),
            sequence=next(run.sequence)
        )
        self._log(
            run,
            LogLevel.DEBUG,
            MessageCode.AGT003,
            "Reply received from character",
            beat=beat,
            character=character,
            response=reply.raw
        )
        return _Outcome(character=character, timestamp=reply.timestamp, sequence=reply.sequence, raw=reply.raw)

    def _record_failure(self, run: _SceneRun, beat: int, outcome: _Outcome) -> SystemEntry:
        run.errors.append(ErrorLog(
            beat=beat,
            character=outcome.character,
            error=outcome.error,
            context={"reason": outcome.reason}
        ))
        run.trace.append(f"beat {beat}: {outcome.character} failed ({outcome.reason}): {outcome.error}")

        if outcome.reason == "timeout":
            self._log(
                run,
                LogLevel.WARNING,
                MessageCode.AGT005,
                "Character timed out",
                beat=beat,
                character=outcome.character,
                error=outcome.error
            )
            message = f"{outcome.character} could not respond (timed out)"
        else:
            self._log(
                run,
                LogLevel.ERROR,
                MessageCode.AGT004,
                "Character failed to respond",
                beat=beat,
                character=outcome.character,
                error=outcome.error
            )
            message = f"{outcome.character} could not respond"

        return SystemEntry(message=message, beat=beat, timestamp=outcome.timestamp)

    @staticmethod
    def response_to_entry(speaker: str, parsed: ParsedResponse, beat: int, timestamp: float) -> DialogEntry:
        """Convert a non-silent parsed response into a dialog entry."""
        if parsed.action == "silent":
            raise ValueError("Silent responses never become transcript entries")
        return DialogEntry(
            speaker=speaker,
            action=parsed.action,
            target=parsed.target,
            tone=parsed.tone,
            content=parsed.content,
            nonverbal=parsed.nonverbal,
            interrupt_after=getattr(parsed, "interrupt_after", None),
            beat=beat,
            timestamp=timestamp
        )

    def _append(self, run: _SceneRun, entry: TranscriptEntry) -> None:
        # A wall clock can step backwards; never let that reorder a beat.
        last = run.transcript.last()
        if last is not None and last.beat == entry.beat and entry.timestamp < last.timestamp:
            entry = entry.model_copy(update={"timestamp": last.timestamp})
        run.transcript.append(entry)

    async def _evaluate(self, run: _SceneRun) -> Optional[str]:
        """Ask the oracle whether the scene is over; returns a completion reason or None."""
        try:
            verdict = self.completion_oracle(run.transcript.snapshot(), run.config)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except Exception as e:
            raise _OracleFailure(str(e) or type(e).__name__) from e

        if isinstance(verdict, str) and verdict in ORACLE_REASONS:
            return verdict
        if verdict:
            return "goal_achieved"
        return None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _failure(
        self,
        run: _SceneRun,
        total_beats: int,
        started: float,
        code: str,
        message: str,
        beat: int
    ) -> SceneResult:
        run.trace.append(f"beat {beat}: failed ({code}): {message}")
        return SceneResult(
            success=False,
            transcript=run.transcript.render(),
            entries=run.transcript.snapshot(),
            metadata=self._metadata(run.config, run, total_beats, started, "error"),
            error=ErrorInfo(code=code, message=message, context={"beat": beat}),
            trace=tuple(run.trace)
        )

    def _metadata(
        self,
        config: SceneConfig,
        run: _SceneRun,
        total_beats: int,
        started: float,
        reason: str
    ) -> SceneMetadata:
        return SceneMetadata(
            name=config.name,
            duration=time.perf_counter() - started,
            total_beats=total_beats,
            character_count=len(config.characters),
            characters=list(config.characters),
            goal_achieved=reason == "goal_achieved",
            completion_reason=reason,
            costs=self.gateway.usage(),
            errors=list(run.errors),
            warnings=list(run.warnings)
        )

    @staticmethod
    def _log(run: _SceneRun, level: LogLevel, code: MessageCode, message: str, **context) -> None:
        if run.log is not None:
            run.log.log(level, code, message, context)


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value if isinstance(value, str) else str(value)
