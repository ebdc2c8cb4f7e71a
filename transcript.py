"""Pure helpers that fold and preview transcript text."""

from __future__ import annotations

TERMINAL_PUNCTUATION = (".", "?", "!")
SEPARATOR = " "


def _capitalize_first_letter(text: str) -> str:
    for index, char in enumerate(text):
        if char.isalpha():
            return text[:index] + char.upper() + text[index + 1 :]
    return text


def _needs_separator(text: str) -> bool:
    return bool(text) and not text[-1].isspace()


def normalize(existing_committed: str, new_segment: str) -> str:
    """Fold a final segment into the committed text.

    The segment is capitalized when it opens a sentence, terminated with a
    period when it carries no terminal punctuation, and followed by a single
    separator. Whitespace already present in either input is left untouched.
    Must be applied once per final segment.
    """
    segment = new_segment.strip()
    if not segment:
        return existing_committed

    context = existing_committed.strip()
    if not context or context.endswith(TERMINAL_PUNCTUATION):
        segment = _capitalize_first_letter(segment)

    if not segment.endswith(TERMINAL_PUNCTUATION):
        segment += "."

    prefix = SEPARATOR if _needs_separator(existing_committed) else ""
    return f"{existing_committed}{prefix}{segment}{SEPARATOR}"


def compose(committed: str, interim: str) -> str:
    """Committed text followed by the provisional fragment, unpunctuated.

    The interim fragment is stripped of surrounding whitespace, so a
    whitespace-only interim leaves the committed text unchanged.
    """
    fragment = interim.strip()
    if not fragment:
        return committed
    prefix = SEPARATOR if _needs_separator(committed) else ""
    return f"{committed}{prefix}{fragment}"


def trim_trailing_separator(text: str) -> str:
    """Drop exactly one trailing separator left by the last fold."""
    if text.endswith(SEPARATOR):
        return text[: -len(SEPARATOR)]
    return text
