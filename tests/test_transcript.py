from __future__ import annotations

import pytest

from transcript import compose, normalize, trim_trailing_separator


# ---------------------------------------------------------------
# normalize
# ---------------------------------------------------------------

def test_first_segment_is_capitalized_and_punctuated() -> None:
    assert normalize("", "hello world") == "Hello world. "


def test_segment_after_sentence_end_is_capitalized() -> None:
    assert normalize("Hello world.", "it is me") == "Hello world. It is me. "


def test_segment_mid_sentence_keeps_case() -> None:
    assert normalize("We walked", "to the lake") == "We walked to the lake. "


def test_existing_punctuation_is_kept() -> None:
    assert normalize("", "is it raining?") == "Is it raining? "
    assert normalize("Wow. ", "what a day!") == "Wow. What a day! "


def test_no_extra_space_when_committed_ends_in_whitespace() -> None:
    assert normalize("Hello world. ", "again") == "Hello world. Again. "


def test_whitespace_only_context_counts_as_empty() -> None:
    assert normalize("  ", "start here") == "  Start here. "


def test_segment_is_trimmed() -> None:
    assert normalize("", "   padded words  ") == "Padded words. "


def test_inner_whitespace_is_untouched() -> None:
    assert normalize("One  two.", "three   four") == "One  two. Three   four. "


def test_capitalizes_first_letter_not_first_char() -> None:
    assert normalize("", '"quoted" words') == '"Quoted" words. '


@pytest.mark.parametrize("segment", ["", "   ", "\n\t"])
def test_empty_segment_is_noop(segment: str) -> None:
    assert normalize("Existing text. ", segment) == "Existing text. "


def test_empty_segment_after_fold_is_noop() -> None:
    folded = normalize("Dear diary.", "today was long")
    assert normalize(folded, "") == folded


# ---------------------------------------------------------------
# compose
# ---------------------------------------------------------------

def test_compose_without_interim_returns_committed_verbatim() -> None:
    assert compose("Hello world. ", "") == "Hello world. "
    assert compose("Hello world.", "   ") == "Hello world."


def test_compose_adds_single_separator() -> None:
    assert compose("Hello world.", "it is") == "Hello world. it is"
    assert compose("Hello world. ", "it is") == "Hello world. it is"


def test_compose_applies_no_punctuation_or_capitalization() -> None:
    assert compose("", "the lake was") == "the lake was"


# ---------------------------------------------------------------
# trim_trailing_separator
# ---------------------------------------------------------------

def test_trim_removes_exactly_one_separator() -> None:
    assert trim_trailing_separator("Done. ") == "Done."
    assert trim_trailing_separator("Done.  ") == "Done. "
    assert trim_trailing_separator("Done.") == "Done."


def test_compose_strips_interim_whitespace() -> None:
    assert compose("Hello world.", "  it is  ") == "Hello world. it is"
    assert compose("", "\tthe lake\n") == "the lake"
