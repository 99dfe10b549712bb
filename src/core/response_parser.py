"""
Parser for character replies.

Characters are asked to answer in an annotated format such as::

    [TO: Bob, TONE: frustrated, *slams the table*] "I can't believe this happened!"
    [INTERRUPT after "I think we should", TONE: furious] "No!"
    [SILENT, *crosses arms*]

Language models do not always comply, so parsing degrades in three tiers
(strict grammar, keyword salvage, empty fallback) and never raises. Degraded
results carry a ``warning`` describing what went wrong.
"""

import re
from typing import Any, Optional

from core.models import (
    DEFAULT_TONE,
    InterruptResponse,
    ParsedResponse,
    ReactResponse,
    SilentResponse,
    SpeakResponse,
)


TONE_KEYWORDS = (
    "angry",
    "frustrated",
    "happy",
    "sad",
    "nervous",
    "excited",
    "calm",
    "surprised",
    "confused",
    "worried",
)

QUOTE_CHARS = "\"'“”‘’"

# Salvage looks for a quoted span only within this many leading characters.
SALVAGE_SEARCH_LIMIT = 10_000

WARN_EMPTY = "Empty or null response"
WARN_MISSING_TONE = "Missing required TONE field, defaulted to neutral"
WARN_MISSING_INTERRUPT_PHRASE = 'INTERRUPT action missing "after" phrase'
WARN_MISSING_CONTENT = "Expected content for speak/interrupt action"
WARN_SALVAGED = "Failed to parse format, salvaged as speech"

_BRACKET_RE = re.compile(r"^\[(.*?)\]\s*(.*)$", re.DOTALL)
_INTERRUPT_RE = re.compile(r"\bINTERRUPT\b")
_SILENT_RE = re.compile(r"\bSILENT\b")
_REACT_RE = re.compile(r"\bREACT\b")
_INTERRUPT_AFTER_RE = re.compile(
    r"\bINTERRUPT\s+after\s+(?:\"([^\"]+)\"|“([^“”]+)”|'([^']+)')"
)
_TARGET_RE = re.compile(r"\bTO:\s*([^,*\]]+)")
_TONE_RE = re.compile(r"\bTONE:\s*([^,*\]]+)")
_NONVERBAL_RE = re.compile(r"\*([^*]+)\*")
_QUOTED_RE = re.compile(r"\"([^\"]+)\"|“([^“”]+)”|(?<!\w)'([^']+)'(?!\w)")


def parse_response(raw: Any) -> ParsedResponse:
    """
    Parse a character's reply into a structured response.

    Never raises: malformed input yields a response with ``warning`` set.

    Args:
        raw: The unparsed model output (``None`` and bytes are tolerated)

    Returns:
        One of SpeakResponse, InterruptResponse, SilentResponse, ReactResponse

    Example:
        parse_response('[TO: Bob, TONE: angry] "Why?"')
        # SpeakResponse(target='Bob', tone='angry', content='Why?')
    """
    try:
        text = _normalize(raw)
        if not text:
            return _fallback(WARN_EMPTY)

        strict = _strict_parse(text)
        if strict is not None:
            return strict
        return _salvage_parse(text)
    except Exception as e:
        return _fallback(f"Parser error ({type(e).__name__}): {e}")


def _normalize(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    elif not isinstance(raw, str):
        raw = str(raw)
    return raw.strip()


def _fallback(warning: str) -> SilentResponse:
    """Nothing usable was said."""
    return SilentResponse(tone=DEFAULT_TONE, content="", warning=warning)


def _strict_parse(text: str) -> Optional[ParsedResponse]:
    """
    Parse the ``[annotations] content`` grammar.

    Returns None when the text does not start with a bracketed section.
    """
    match = _BRACKET_RE.match(text)
    if not match:
        return None

    annotations, remainder = match.group(1), match.group(2)
    warnings = []

    if _INTERRUPT_RE.search(annotations):
        action = "interrupt"
    elif _SILENT_RE.search(annotations):
        action = "silent"
    elif _REACT_RE.search(annotations):
        action = "react"
    else:
        action = "speak"

    interrupt_after = None
    if action == "interrupt":
        phrase_match = _INTERRUPT_AFTER_RE.search(annotations)
        if phrase_match:
            interrupt_after = _first_group(phrase_match)
        if not interrupt_after:
            interrupt_after = None
            warnings.append(WARN_MISSING_INTERRUPT_PHRASE)

    target = _field(_TARGET_RE, annotations)

    tone = _field(_TONE_RE, annotations)
    if tone is None:
        tone = DEFAULT_TONE
        if action != "silent":
            warnings.append(WARN_MISSING_TONE)

    nonverbal = _field(_NONVERBAL_RE, annotations)

    content = _strip_quotes(remainder.strip())
    if not content and action in ("speak", "interrupt"):
        warnings.append(WARN_MISSING_CONTENT)

    common = dict(
        tone=tone,
        content=content,
        nonverbal=nonverbal,
        warning="; ".join(warnings) or None,
    )
    if action == "silent":
        return SilentResponse(**common)
    if action == "react":
        return ReactResponse(target=target, **common)
    if action == "interrupt":
        return InterruptResponse(target=target, interrupt_after=interrupt_after, **common)
    return SpeakResponse(target=target, **common)


def _salvage_parse(text: str) -> SpeakResponse:
    """Treat unformatted text as speech and recover what we can."""
    lowered = text.lower()
    tone = next((keyword for keyword in TONE_KEYWORDS if keyword in lowered), DEFAULT_TONE)

    content = text
    quote_match = _QUOTED_RE.search(text, 0, SALVAGE_SEARCH_LIMIT)
    if quote_match:
        content = _first_group(quote_match).strip() or text

    return SpeakResponse(
        target=_field(_TARGET_RE, text),
        tone=tone,
        content=content,
        warning=WARN_SALVAGED,
    )


def _field(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def _first_group(match: re.Match) -> Optional[str]:
    return next((group for group in match.groups() if group is not None), None)


def _strip_quotes(content: str) -> str:
    """Remove one leading and one trailing quote character."""
    if content[:1] and content[0] in QUOTE_CHARS:
        content = content[1:]
    if content[-1:] and content[-1] in QUOTE_CHARS:
        content = content[:-1]
    return content
