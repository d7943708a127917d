from app.services.text_highlighter import highlight_stats, highlight_text, strip_highlights

from tests.conftest import SAMPLE_HIGHLIGHTED, SAMPLE_HIGHLIGHTS, SAMPLE_TEXT


def test_longer_phrase_wins_and_is_not_nested():
    result = highlight_text("I like school. School is fun.", ["school", "I like school."])
    assert result == "<b>I like school.</b> <b>School</b> is fun."
    assert "<b><b>" not in result


def test_sample_text():
    assert highlight_text(SAMPLE_TEXT, SAMPLE_HIGHLIGHTS) == SAMPLE_HIGHLIGHTED


def test_case_insensitive_keeps_original_casing():
    assert highlight_text("Hello World. hello again", ["HELLO"]) == "<b>Hello</b> World. <b>hello</b> again"


def test_requires_boundaries():
    # "cat" inside "concatenate" is not a match
    assert highlight_text("concatenate the cat", ["cat"]) == "concatenate the <b>cat</b>"


def test_punctuation_counts_as_boundary():
    assert highlight_text("Wow!great?yes.", ["great"]) == "Wow!<b>great</b>?yes."


def test_adjacent_occurrences():
    assert highlight_text("pizza pizza", ["pizza"]) == "<b>pizza</b> <b>pizza</b>"


def test_regex_characters_are_literal():
    assert highlight_text("Is it (a+b)? yes", ["(a+b)?"]) == "Is it <b>(a+b)?</b> yes"


def test_empty_and_blank_phrases_are_ignored():
    assert highlight_text("some text here", []) == "some text here"
    assert highlight_text("some text here", ["", "   "]) == "some text here"
    assert highlight_text("some text here", None) == "some text here"


def test_highlighting_is_idempotent():
    once = highlight_text(SAMPLE_TEXT, SAMPLE_HIGHLIGHTS)
    assert highlight_text(once, SAMPLE_HIGHLIGHTS) == once


def test_strip_and_stats():
    count, spans = highlight_stats(SAMPLE_HIGHLIGHTED)
    assert count == 2
    assert spans == ["I like school.", "learn a lot"]
    assert strip_highlights(SAMPLE_HIGHLIGHTED) == SAMPLE_TEXT


def test_marker_does_not_count_as_boundary():
    already = "I like school.<b>It is fun</b>"
    assert highlight_text(already, ["I like school.", "It is fun"]) == already


def test_phrase_glued_to_next_word_is_not_wrapped():
    result = highlight_text("Hi.there friend", ["there friend", "Hi."])
    assert result == "Hi.<b>there friend</b>"
    assert highlight_text(result, ["there friend", "Hi."]) == result


def test_neighbouring_spans_both_wrapped_when_separated():
    result = highlight_text("Hi. there friend", ["there friend", "Hi."])
    assert result == "<b>Hi.</b> <b>there friend</b>"
    assert highlight_text(result, ["Hi.", "there friend"]) == result
