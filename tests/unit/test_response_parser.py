"""Unit tests for the character reply parser."""

import time

import pytest

from core.models import InterruptResponse, ReactResponse, SilentResponse, SpeakResponse
from core.response_parser import (
    SALVAGE_SEARCH_LIMIT,
    TONE_KEYWORDS,
    WARN_EMPTY,
    WARN_MISSING_CONTENT,
    WARN_MISSING_INTERRUPT_PHRASE,
    WARN_MISSING_TONE,
    WARN_SALVAGED,
    parse_response,
)


class TestStrictFormat:
    """Well-formed replies parse without warnings."""

    def test_directed_speech(self):
        """Test speech with target, tone and nonverbal cue."""
        parsed = parse_response('[TO: Bob, TONE: frustrated, *slams the table*] "I can\'t believe this happened!"')

        assert isinstance(parsed, SpeakResponse)
        assert parsed.action == "speak"
        assert parsed.target == "Bob"
        assert parsed.tone == "frustrated"
        assert parsed.nonverbal == "slams the table"
        assert parsed.content == "I can't believe this happened!"
        assert parsed.warning is None

    def test_general_speech(self):
        """Test speech without a target."""
        parsed = parse_response('[TONE: nervous, *fidgets*] "Maybe we should calm down."')

        assert parsed.action == "speak"
        assert parsed.target is None
        assert parsed.tone == "nervous"
        assert parsed.nonverbal == "fidgets"
        assert parsed.content == "Maybe we should calm down."

    def test_interrupt(self):
        """Test interrupt with its trigger phrase."""
        parsed = parse_response('[INTERRUPT after "I think we should", TONE: furious] "No!"')

        assert isinstance(parsed, InterruptResponse)
        assert parsed.interrupt_after == "I think we should"
        assert parsed.tone == "furious"
        assert parsed.content == "No!"
        assert parsed.warning is None

    def test_interrupt_with_single_quoted_phrase(self):
        """Test the trigger phrase may use single quotes."""
        parsed = parse_response("[INTERRUPT after 'we should', TONE: angry] \"Stop.\"")

        assert parsed.action == "interrupt"
        assert parsed.interrupt_after == "we should"

    def test_interrupt_with_target(self):
        """Test an interrupt can be directed at someone."""
        parsed = parse_response('[INTERRUPT after "as I said", TO: Alice, TONE: annoyed] "Enough."')

        assert parsed.target == "Alice"
        assert parsed.interrupt_after == "as I said"

    def test_silent_with_nonverbal(self):
        """Test silence with a nonverbal action."""
        parsed = parse_response("[SILENT, *crosses arms*]")

        assert isinstance(parsed, SilentResponse)
        assert parsed.nonverbal == "crosses arms"
        assert parsed.tone == "neutral"
        assert parsed.content == ""
        assert parsed.warning is None

    def test_silent_keeps_given_tone(self):
        """Test a tone on a silent reply is kept."""
        parsed = parse_response("[SILENT, TONE: sad]")

        assert parsed.action == "silent"
        assert parsed.tone == "sad"

    def test_react_without_content(self):
        """Test a nonverbal reaction needs no content."""
        parsed = parse_response("[REACT, TONE: shocked, *gasps*]")

        assert isinstance(parsed, ReactResponse)
        assert parsed.tone == "shocked"
        assert parsed.nonverbal == "gasps"
        assert parsed.content == ""
        assert parsed.warning is None

    def test_react_with_target(self):
        """Test a reaction can be aimed at a character."""
        parsed = parse_response("[REACT, TO: Bob, TONE: amused, *smirks*]")

        assert parsed.action == "react"
        assert parsed.target == "Bob"

    def test_curly_quotes_stripped(self):
        """Test typographic quotes around content are removed."""
        parsed = parse_response("[TONE: happy] “Curly quotes”")

        assert parsed.content == "Curly quotes"

    def test_unquoted_content(self):
        """Test content without quotes is taken as-is."""
        parsed = parse_response("[TONE: calm] Let's take a break.")

        assert parsed.content == "Let's take a break."
        assert parsed.warning is None

    def test_multiline_content(self):
        """Test content spanning several lines is kept."""
        parsed = parse_response('[TONE: calm] "First line.\nSecond line."')

        assert parsed.content == "First line.\nSecond line."

    def test_surrounding_whitespace_ignored(self):
        """Test leading and trailing whitespace is stripped before parsing."""
        parsed = parse_response('   \n[TONE: calm] "Hi"  \n')

        assert parsed.action == "speak"
        assert parsed.content == "Hi"


class TestKeywordPrecedence:
    """INTERRUPT beats SILENT beats REACT beats plain speech."""

    def test_interrupt_beats_silent(self):
        parsed = parse_response('[SILENT, INTERRUPT after "a", TONE: calm] "x"')
        assert parsed.action == "interrupt"

    def test_silent_beats_react(self):
        parsed = parse_response("[REACT, SILENT, *shrugs*]")
        assert parsed.action == "silent"

    def test_keywords_are_whole_words(self):
        """Test words that merely contain a keyword do not trigger it."""
        parsed = parse_response('[TONE: calm, *REACTIVATES the screen*] "Look."')
        assert parsed.action == "speak"

    def test_keywords_are_case_sensitive(self):
        parsed = parse_response('[silent, TONE: calm] "I said nothing."')
        assert parsed.action == "speak"


class TestDegradedStrictParse:
    """Bracketed replies with missing pieces get defaults and warnings."""

    def test_missing_tone_defaults_to_neutral(self):
        parsed = parse_response('[TO: Bob] "Hi"')

        assert parsed.action == "speak"
        assert parsed.tone == "neutral"
        assert parsed.warning == WARN_MISSING_TONE

    def test_blank_tone_counts_as_missing(self):
        parsed = parse_response('[TONE: ] "Hi"')

        assert parsed.tone == "neutral"
        assert parsed.warning == WARN_MISSING_TONE

    def test_blank_target_is_none(self):
        parsed = parse_response('[TO: , TONE: calm] "Hi"')

        assert parsed.target is None
        assert parsed.warning is None

    def test_interrupt_without_phrase(self):
        parsed = parse_response('[INTERRUPT, TONE: angry] "Stop"')

        assert parsed.action == "interrupt"
        assert parsed.interrupt_after is None
        assert parsed.warning == WARN_MISSING_INTERRUPT_PHRASE

    def test_speak_without_content(self):
        parsed = parse_response("[TONE: calm]")

        assert parsed.action == "speak"
        assert parsed.content == ""
        assert parsed.warning == WARN_MISSING_CONTENT

    def test_multiple_warnings_joined(self):
        parsed = parse_response('[INTERRUPT after "x"]')

        assert parsed.warning == f"{WARN_MISSING_TONE}; {WARN_MISSING_CONTENT}"

    def test_unknown_annotations_still_speech(self):
        parsed = parse_response("[Alice]")

        assert parsed.action == "speak"
        assert WARN_MISSING_TONE in parsed.warning
        assert WARN_MISSING_CONTENT in parsed.warning


class TestSalvage:
    """Replies that ignore the format are salvaged as speech."""

    def test_plain_text_with_tone_keyword(self):
        parsed = parse_response("I'm so angry right now!")

        assert isinstance(parsed, SpeakResponse)
        assert parsed.tone == "angry"
        assert parsed.content == "I'm so angry right now!"
        assert parsed.warning == WARN_SALVAGED

    def test_plain_text_without_keyword(self):
        parsed = parse_response("Fine, whatever you say.")

        assert parsed.tone == "neutral"
        assert parsed.content == "Fine, whatever you say."
        assert parsed.warning == WARN_SALVAGED

    def test_quoted_span_becomes_content(self):
        parsed = parse_response('She smiles, happy, and says "hello there" before leaving.')

        assert parsed.content == "hello there"
        assert parsed.tone == "happy"

    def test_first_keyword_in_vocabulary_order_wins(self):
        """Test the vocabulary order decides between several keywords."""
        parsed = parse_response("Calm down, I'm not angry.")

        assert TONE_KEYWORDS.index("angry") < TONE_KEYWORDS.index("calm")
        assert parsed.tone == "angry"

    def test_keyword_match_is_case_insensitive(self):
        parsed = parse_response("WORRIED about this")
        assert parsed.tone == "worried"

    def test_target_recovered(self):
        parsed = parse_response('TO: Alice, "we need to talk"')

        assert parsed.target == "Alice"
        assert parsed.content == "we need to talk"

    def test_unclosed_bracket_salvaged(self):
        parsed = parse_response('[TO: Bob, TONE: angry "Why?"')

        assert parsed.action == "speak"
        assert parsed.warning == WARN_SALVAGED
        assert parsed.content == "Why?"


class TestEmptyFallback:
    """Nothing usable yields a silent response."""

    @pytest.mark.parametrize("raw", ["", "   ", "\n\t", None])
    def test_empty_input(self, raw):
        parsed = parse_response(raw)

        assert isinstance(parsed, SilentResponse)
        assert parsed.tone == "neutral"
        assert parsed.content == ""
        assert parsed.warning == WARN_EMPTY


class TestTotality:
    """The parser never raises and always returns a valid variant."""

    @pytest.mark.parametrize("raw", [
        "[",
        "]",
        "[]",
        "[[[]]]",
        "[TO:]",
        "[TONE:,,,]",
        '"',
        "*",
        "**",
        '[INTERRUPT after "]',
        "\x00\x01",
        "[SILENT" * 50,
        "🙂 [TONE: happy] 🙂",
        b'[TONE: calm] "bytes"',
        b"\xff\xfe",
        42,
        ["a", "list"],
    ])
    def test_never_raises(self, raw):
        parsed = parse_response(raw)

        assert parsed.action in ("speak", "interrupt", "silent", "react")
        assert isinstance(parsed.tone, str) and parsed.tone
        assert isinstance(parsed.content, str)

    def test_bytes_decoded(self):
        parsed = parse_response(b'[TONE: calm] "bytes"')

        assert parsed.action == "speak"
        assert parsed.content == "bytes"

    def test_non_string_coerced(self):
        parsed = parse_response(42)

        assert parsed.action == "speak"
        assert parsed.content == "42"
        assert parsed.warning == WARN_SALVAGED

    @pytest.mark.parametrize("raw", [
        '[TO: Bob, TONE: angry] "Why?"',
        "I'm so angry right now!",
        "",
        '[INTERRUPT after "x"]',
    ])
    def test_deterministic(self, raw):
        """Test the same input always parses to the same result."""
        assert parse_response(raw) == parse_response(raw)

    def test_results_are_immutable(self):
        parsed = parse_response('[TONE: calm] "Hi"')

        with pytest.raises(Exception):
            parsed.content = "changed"

    @pytest.mark.parametrize("raw", [
        "“" * 50_000,
        "[INTERRUPT after “" * 5_000 + "]",
        "[TO: " + "“" * 50_000 + "]",
        '"' + "a" * 100_000,
        "'" * 100_000,
        "*" + "x" * 100_000,
    ])
    def test_long_input_returns_promptly(self, raw):
        start = time.perf_counter()
        parsed = parse_response(raw)
        elapsed = time.perf_counter() - start

        assert parsed.action in ("speak", "interrupt", "silent", "react")
        assert elapsed < 1.0

    def test_quote_beyond_search_limit_not_salvaged(self):
        text = "a" * SALVAGE_SEARCH_LIMIT + ' "late quote"'
        parsed = parse_response(text)

        assert parsed.warning == WARN_SALVAGED
        assert parsed.content == text

    def test_curly_quote_after_unclosed_opener(self):
        parsed = parse_response("“ nope “found it”")

        assert parsed.content == "found it"
