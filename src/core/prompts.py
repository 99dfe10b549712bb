"""Prompt templates for character agents."""

from core.models import SceneUpdate
from core.transcript import render_entry


RESPONSE_FORMAT = """Respond in this format:
- [TO: <character>, TONE: <emotion>] "dialog" for directed speech
- [TONE: <emotion>] "dialog" for general speech
- [INTERRUPT after "<phrase>", TONE: <emotion>] "dialog" to interrupt
- [SILENT] or [SILENT, *nonverbal action*] to stay quiet
- [REACT, TONE: <emotion>, *nonverbal action*] for non-verbal reaction

Examples:
[TO: Alice, TONE: angry] "Why did you do that?"
[TONE: nervous, *fidgets*] "Maybe we should calm down."
[INTERRUPT after "I think we should", TONE: furious] "No!"
[SILENT, *crosses arms*]

You may speak, stay silent, or interrupt based on your personality and the scene context. Choose wisely."""


def build_character_prompt(character: str, update: SceneUpdate) -> str:
    """
    Build the beat prompt for one character.

    The persona is not part of the prompt; the gateway supplies it as the
    system prompt.
    """
    sections = [
        f"You are {character}, a character in an ongoing scene.",
        f"## Current Scene Context\n{update.scene_context}",
        f"## Recent Transcript\n{update.transcript or '[Scene just started]'}",
    ]
    if update.last_event is not None:
        sections.append(f"## Last Event\n{render_entry(update.last_event)}")
    if update.moderator_note:
        sections.append(f"## Moderator Note\n{update.moderator_note}")
    sections.append(f"## Your Response\nBeat #{update.beat}\n\n{RESPONSE_FORMAT}")
    return "\n\n".join(sections)
