from __future__ import annotations

from overlay import preview_tail


def test_short_text_is_unchanged() -> None:
    assert preview_tail("The lake was calm. ", limit=40) == "The lake was calm. "


def test_long_text_keeps_tail_from_word_boundary() -> None:
    text = "one two three four five six seven eight"
    tail = preview_tail(text, limit=20)

    assert tail.startswith("…")
    assert text.endswith(tail[1:])
    assert not tail[1:].startswith(" ")
    assert len(tail) <= 21
