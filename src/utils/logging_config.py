"""
Structured logging for scene runs.

Every record goes to the console as one human-readable line and, when a log
file is configured, to a JSONL file as one JSON object. Records are keyed by
a ``MessageCode`` and carry the scene, beat and character they concern as
top-level fields so a scene log can be filtered without digging into the
free-form context.
"""

import json
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, TextIO
from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Log severity levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
    LogLevel.CRITICAL: 4,
}


class MessageCode(str, Enum):
    """Message codes, grouped by three-letter prefix."""
    # Scene lifecycle (SCN)
    SCN001 = "SCN001"  # Scene started
    SCN002 = "SCN002"  # Scene completed
    SCN003 = "SCN003"  # Scene rejected (invalid config)
    SCN004 = "SCN004"  # Scene cancelled
    SCN005 = "SCN005"  # Scene failed

    # Beats (BET)
    BET001 = "BET001"  # Beat started
    BET002 = "BET002"  # Beat completed
    BET003 = "BET003"  # Scripted world event injected
    BET004 = "BET004"  # Silent responses filtered

    # Characters (AGT)
    AGT001 = "AGT001"  # Character registered
    AGT002 = "AGT002"  # Prompt sent to character
    AGT003 = "AGT003"  # Reply received from character
    AGT004 = "AGT004"  # Character failed to respond
    AGT005 = "AGT005"  # Character timed out

    # Response parsing (PRS)
    PRS001 = "PRS001"  # Degraded parse

    # Completion oracle (ORC)
    ORC001 = "ORC001"  # Completion signalled
    ORC002 = "ORC002"  # Oracle error

    # Scene output (PER)
    PER001 = "PER001"  # Scene directory created
    PER002 = "PER002"  # Transcript written
    PER003 = "PER003"  # Metadata written
    PER004 = "PER004"  # Output error

    # Scene files (CFG)
    CFG001 = "CFG001"  # Scene file loaded
    CFG002 = "CFG002"  # Scene file problem

    # Timing (PRF)
    PRF001 = "PRF001"  # Operation timing


# Lifted out of the context into LogMessage fields.
ROUTING_FIELDS = ("scene", "beat", "character")

# Context keys worth showing on the console line.
_CONSOLE_DETAIL_KEYS = ("reason", "error")


class LogMessage(BaseModel):
    """One log record."""
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    level: LogLevel
    code: MessageCode
    message: str
    scene: Optional[str] = None
    beat: Optional[int] = None
    character: Optional[str] = None
    context: dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    def location(self) -> str:
        """Where in the scene this happened, e.g. ``office beat 3 alice``."""
        parts = []
        if self.scene:
            parts.append(self.scene)
        if self.beat is not None:
            parts.append(f"beat {self.beat}")
        if self.character:
            parts.append(self.character)
        return " ".join(parts)

    def to_console(self) -> str:
        colors = {
            LogLevel.DEBUG: "\033[36m",
            LogLevel.INFO: "\033[32m",
            LogLevel.WARNING: "\033[33m",
            LogLevel.ERROR: "\033[31m",
            LogLevel.CRITICAL: "\033[35m",
        }
        reset = "\033[0m"

        time_str = datetime.fromisoformat(self.timestamp).strftime("%H:%M:%S.%f")[:-3]
        line = f"{time_str} {colors.get(self.level, '')}[{self.level.value}]{reset} [{self.code.value}]"

        location = self.location()
        if location:
            line += f" <{location}>"
        line += f" {self.message}"

        if self.duration_ms is not None:
            line += f" ({self.duration_ms:.2f}ms)"

        details = [f"{key}={self.context[key]}" for key in _CONSOLE_DETAIL_KEYS if key in self.context]
        if details:
            line += f" [{', '.join(details)}]"
        return line


class StructuredLogger:
    """
    Writes LogMessages to the console and an optional JSONL file.

    ``bind()`` returns a child logger that stamps fixed routing fields (for
    example the scene name) on every record and shares this logger's outputs.
    Only the logger that opened the file closes it.
    """

    def __init__(
        self,
        log_file: Optional[Path] = None,
        min_level: LogLevel = LogLevel.INFO,
        console: Optional[TextIO] = sys.stdout
    ):
        """
        Initialize structured logger.

        Args:
            log_file: Path to JSONL log file (if None, only console output)
            min_level: Minimum log level to output
            console: Stream for human-readable output (None disables console output)
        """
        self.log_file = log_file
        self.min_level = min_level
        self.console = console
        self.bound: dict[str, Any] = {}
        self._parent: Optional["StructuredLogger"] = None
        self._log_handle = None

        if self.log_file:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._log_handle = open(self.log_file, "a", encoding="utf-8")

    def bind(self, **fields) -> "StructuredLogger":
        """Child logger that adds ``fields`` (scene, beat, character) to every record."""
        unknown = set(fields) - set(ROUTING_FIELDS)
        if unknown:
            raise ValueError(f"Only {', '.join(ROUTING_FIELDS)} can be bound, got: {', '.join(sorted(unknown))}")

        child = StructuredLogger(log_file=None, min_level=self.min_level, console=None)
        child.log_file = self.log_file
        child.bound = {**self.bound, **fields}
        child._parent = self._root()
        return child

    def _root(self) -> "StructuredLogger":
        return self._parent if self._parent is not None else self

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.min_level]

    def log(
        self,
        level: LogLevel,
        code: MessageCode,
        message: str,
        context: Optional[dict[str, Any]] = None,
        duration_ms: Optional[float] = None
    ):
        """Log a message; routing keys in ``context`` become top-level fields."""
        if not self.is_enabled_for(level):
            return

        context = dict(context or {})
        routing = dict(self.bound)
        for key in ROUTING_FIELDS:
            if key in context:
                routing[key] = context.pop(key)

        self._root()._emit(LogMessage(
            level=level,
            code=code,
            message=message,
            context=_jsonable(context),
            duration_ms=duration_ms,
            **routing
        ))

    def _emit(self, log_msg: LogMessage) -> None:
        if self.console is not None:
            print(log_msg.to_console(), file=self.console)

        if self._log_handle:
            self._log_handle.write(log_msg.to_json() + "\n")
            self._log_handle.flush()

    def debug(self, code: MessageCode, message: str, **context):
        self.log(LogLevel.DEBUG, code, message, context)

    def info(self, code: MessageCode, message: str, **context):
        self.log(LogLevel.INFO, code, message, context)

    def warning(self, code: MessageCode, message: str, **context):
        self.log(LogLevel.WARNING, code, message, context)

    def error(self, code: MessageCode, message: str, **context):
        self.log(LogLevel.ERROR, code, message, context)

    def critical(self, code: MessageCode, message: str, **context):
        self.log(LogLevel.CRITICAL, code, message, context)

    def close(self):
        """Close the log file; a bound child leaves it open."""
        if self._log_handle:
            self._log_handle.close()
            self._log_handle = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _jsonable(context: dict[str, Any]) -> dict[str, Any]:
    """Coerce context values that JSON cannot encode into strings."""
    safe = {}
    for key, value in context.items():
        try:
            json.dumps(value)
            safe[key] = value
        except (TypeError, ValueError):
            safe[key] = str(value)
    return safe


class PerformanceTimer:
    """Times a block and logs its duration under ``code``."""

    def __init__(self, logger: Optional[StructuredLogger], code: MessageCode, operation: str, **context):
        """
        Args:
            logger: Logger instance (None makes the timer a no-op)
            code: Message code for the operation
            operation: Description of operation being timed
            **context: Additional context for the log message
        """
        self.logger = logger
        self.code = code
        self.operation = operation
        self.context = context
        self.start_time = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = datetime.now()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (datetime.now() - self.start_time).total_seconds() * 1000
        if self.logger is None:
            return

        if exc_type is None:
            level, outcome = LogLevel.DEBUG, "completed"
        else:
            level, outcome = LogLevel.ERROR, "failed"
            self.context["error"] = str(exc_val)
        self.logger.log(level, self.code, f"{self.operation} {outcome}", self.context, self.duration_ms)
