import json
import sys
from pathlib import Path
from typing import Optional

from core.models import ErrorLog, SceneResult
from utils.logging_config import LogLevel, MessageCode, PerformanceTimer, StructuredLogger


COMPLETION_LABELS = {
    "goal_achieved": "Goal Achieved",
    "natural_end": "Natural Ending",
    "max_beats": "Max Beats Reached",
    "cancelled": "Cancelled",
    "error": "Error",
}


class SceneOutputWriter:
    """
    Writes scene outputs to a per-scene directory:

        {base_dir}/{scene-name}/
            transcript.txt
            metadata.json
            debug.log
            scene.jsonl
    """

    def __init__(
        self,
        scene_name: str,
        base_dir: Path | str = "data/scenes",
        min_log_level: LogLevel = LogLevel.INFO,
        console_logging: bool = True
    ):
        """
        Initialize the writer and its structured logger.

        Args:
            scene_name: Name of the scene being run
            base_dir: Directory that holds one subdirectory per scene run
            min_log_level: Minimum log level for structured logging
            console_logging: Also print log lines to stdout
        """
        self.scene_name = self._sanitize_scene_name(scene_name)
        self.base_dir = Path(base_dir)
        self.scene_dir = self._create_scene_directory()
        self.transcript_file = self.scene_dir / "transcript.txt"
        self.metadata_file = self.scene_dir / "metadata.json"
        self.debug_file = self.scene_dir / "debug.log"
        self.log_file = self.scene_dir / "scene.jsonl"

        self.logger = StructuredLogger(
            log_file=self.log_file,
            min_level=min_log_level,
            console=sys.stdout if console_logging else None
        )
        self._log = self.logger.bind(scene=self.scene_name)
        self._log.info(MessageCode.PER001, "Scene directory created", path=str(self.scene_dir))

    @staticmethod
    def _sanitize_scene_name(name: str) -> str:
        """Sanitize scene name for use in filesystem paths."""
        name = name.strip() or "scene"
        name = name.replace("/", "_").replace("\\", "_").replace(" ", "_")
        for char in '<>:"|?*':
            name = name.replace(char, "_")
        return name[:50]

    def _create_scene_directory(self) -> Path:
        """Create a unique scene directory; append _1, _2, ... on collision."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

        scene_dir = self.base_dir / self.scene_name
        counter = 1
        while scene_dir.exists():
            scene_dir = self.base_dir / f"{self.scene_name}_{counter}"
            counter += 1

        scene_dir.mkdir(parents=True)
        return scene_dir

    def write(self, result: SceneResult, debug_log: Optional[str] = None) -> Path:
        """
        Write transcript, metadata and debug log for a finished scene.

        Args:
            result: Complete scene result
            debug_log: Debug text to write; defaults to the result's trace

        Returns:
            Path to the scene directory

        Raises:
            OSError: If any file cannot be written
        """
        with PerformanceTimer(self._log, MessageCode.PRF001, "Write scene outputs"):
            try:
                self.transcript_file.write_text(format_transcript_file(result), encoding="utf-8")
                self._log.info(MessageCode.PER002, "Transcript written", path=str(self.transcript_file))

                self._write_json_atomic(self.metadata_file, result.metadata.model_dump(mode="json"))
                self._log.info(MessageCode.PER003, "Metadata written", path=str(self.metadata_file))

                debug_text = debug_log if debug_log is not None else result.debug_log
                if debug_text:
                    self.debug_file.write_text(debug_text + "\n", encoding="utf-8")
            except OSError as e:
                self._log.error(MessageCode.PER004, "Failed to write scene outputs", error=str(e))
                raise

        return self.scene_dir

    def _write_json_atomic(self, path: Path, data: dict) -> None:
        """Write to a temp file first, then rename for atomicity."""
        temp_file = path.with_suffix(".json.tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(path)
        except OSError:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def close(self):
        """Close logger and cleanup resources."""
        if self.logger:
            self.logger.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def format_completion_reason(reason: str) -> str:
    return COMPLETION_LABELS.get(reason, reason)


def format_errors(errors: list[ErrorLog]) -> str:
    lines = []
    for err in errors:
        character = f" ({err.character})" if err.character else ""
        lines.append(f"- Beat {err.beat}{character}: {err.error}")
    return "\n".join(lines)


def format_transcript_file(result: SceneResult) -> str:
    """Full transcript file: header, scene body, statistics footer."""
    meta = result.metadata
    completion = format_completion_reason(meta.completion_reason)

    header = "\n".join([
        f"SCENE: {meta.name}",
        f"CHARACTERS: {', '.join(meta.characters)}",
        f"GENERATED: {meta.timestamp}",
        f"DURATION: {meta.duration:.1f}s",
        f"BEATS: {meta.total_beats}",
        f"GOAL ACHIEVED: {'Yes' if meta.goal_achieved else 'No'}",
        f"COMPLETION: {completion}",
        "",
        "---",
        "",
        "[SCENE START]",
        "",
    ])

    stats = [
        f"- Duration: {meta.total_beats} beats, {meta.duration:.1f}s",
        f"- Characters: {meta.character_count}",
    ]
    if meta.costs:
        stats.append(
            f"- Tokens: {meta.costs.total_tokens} "
            f"({meta.costs.input_tokens} in, {meta.costs.output_tokens} out)"
        )
        stats.append(f"- Estimated cost: ${meta.costs.estimated_usd:.4f} USD")
    if meta.warnings:
        stats.append(f"- Parse warnings: {len(meta.warnings)}")

    footer = [
        "",
        "",
        f"[SCENE END - {'Goal Achieved' if meta.goal_achieved else completion}]",
        "",
        "---",
        "",
        "STATISTICS:",
        *stats,
    ]
    if meta.errors:
        footer += ["", "ERRORS:", format_errors(meta.errors)]
    if result.error:
        footer += ["", f"FAILURE: [{result.error.code}] {result.error.message}"]

    return header + "\n" + result.transcript + "\n".join(footer) + "\n"
