import pytest

from tallybar.textwidth import measure_text_width, strip_ansi


def test_strip_ansi_removes_colour_codes():
    assert strip_ansi("\x1b[31mred\x1b[0m") == "red"


def test_strip_ansi_leaves_plain_text_alone():
    text = "plain text, no escapes"
    assert strip_ansi(text) == text


def test_strip_ansi_removes_cursor_movement():
    assert strip_ansi("a\x1b[2Ab\x1b[2Kc") == "abc"


def test_strip_ansi_removes_compound_style():
    assert strip_ansi("\x1b[1;32mok\x1b[0m done") == "ok done"


@pytest.mark.parametrize("text", ["", "abc", "hello world", "=> "])
def test_ascii_width_is_length(text):
    assert measure_text_width(text) == len(text)


def test_width_ignores_escape_codes():
    plain = "Compiling"
    styled = "\x1b[32m\x1b[1m" + plain + "\x1b[0m"
    assert measure_text_width(styled) == measure_text_width(plain)


def test_only_escape_codes_is_zero_width():
    assert measure_text_width("\x1b[31m\x1b[0m") == 0


def test_wide_characters_take_two_columns():
    assert measure_text_width("日本") == 4


def test_width_is_additive_over_concatenation():
    left, right = "abc", "日本語"
    assert measure_text_width(left + right) == measure_text_width(left) + measure_text_width(right)


def test_block_characters_are_single_width():
    text = "█▉▊▋▌"
    assert measure_text_width(text) == len(text)