from typing import Iterable, Iterator, Optional

from core.models import DialogEntry, TranscriptEntry, is_dialog_entry, is_world_event_entry


def render_entry(entry: TranscriptEntry) -> str:
    """Format one transcript entry as a single human-readable line."""
    if is_dialog_entry(entry):
        parts = [entry.speaker]
        if entry.target:
            parts.append(f"[TO: {entry.target}]")
        if entry.action == "interrupt":
            if entry.interrupt_after:
                parts.append(f'[INTERRUPTS after "{entry.interrupt_after}"]')
            else:
                parts.append("[INTERRUPTS]")
        elif entry.action == "react":
            parts.append("[REACTS]")
        nonverbal = f", *{entry.nonverbal}*" if entry.nonverbal else ""
        parts.append(f"[TONE: {entry.tone}{nonverbal}]")
        if entry.content or entry.action != "react":
            parts.append(f'"{entry.content}"')
        return " ".join(parts)
    if is_world_event_entry(entry):
        return f"[EVENT: {entry.description}]"
    return f"[SYSTEM: {entry.message}]"


def render_entries(entries: Iterable[TranscriptEntry]) -> str:
    """Format entries one per line; empty input renders as an empty string."""
    return "\n".join(render_entry(entry) for entry in entries)


class Transcript:
    """
    Append-only, ordered log of accepted scene entries.

    Entries are kept ordered by beat, then by timestamp within a beat.
    Appending an entry that would break that order raises ValueError.
    """

    def __init__(self):
        self._entries: list[TranscriptEntry] = []

    def append(self, entry: TranscriptEntry) -> None:
        last = self.last()
        if last is not None:
            if entry.beat < last.beat or (entry.beat == last.beat and entry.timestamp < last.timestamp):
                raise ValueError(
                    f"Out-of-order transcript entry: beat {entry.beat} @ {entry.timestamp} "
                    f"after beat {last.beat} @ {last.timestamp}"
                )
        self._entries.append(entry)

    def extend(self, entries: Iterable[TranscriptEntry]) -> None:
        for entry in entries:
            self.append(entry)

    def last(self) -> Optional[TranscriptEntry]:
        return self._entries[-1] if self._entries else None

    def recent(self, count: int) -> tuple[TranscriptEntry, ...]:
        """The last ``count`` entries, oldest first."""
        if count <= 0:
            return ()
        return tuple(self._entries[-count:])

    def dialog(self) -> list[DialogEntry]:
        return [entry for entry in self._entries if is_dialog_entry(entry)]

    def snapshot(self) -> tuple[TranscriptEntry, ...]:
        """Immutable copy of every entry so far."""
        return tuple(self._entries)

    def render(self, entries: Optional[Iterable[TranscriptEntry]] = None) -> str:
        return render_entries(self._entries if entries is None else entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(tuple(self._entries))
