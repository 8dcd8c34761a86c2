import pytest

from pentathlon.timecodec import format_clock, format_seed_time, format_time, parse_clock, parse_time


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1:10", 7000),
        ("1:10.00", 7000),
        ("1:10.5", 7050),
        ("1:05.32", 6532),
        (":45.20", 4520),
        (":45", 4500),
        ("58.3", 5830),
        ("65", 6500),
        (" 1:10.00 ", 7000),
    ],
)
def test_parse_time_accepts_documented_forms(text, expected):
    assert parse_time(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "1:75.00", "1:100", "1:10.123", "-1:10", None, 7000])
def test_parse_time_returns_zero_for_unreadable_input(text):
    assert parse_time(text) == 0


def test_format_time_pads_minutes_and_clamps_negative():
    assert format_time(7000) == "01:10.00"
    assert format_time(6532) == "01:05.32"
    assert format_time(0) == "00:00.00"
    assert format_time(-25) == "00:00.00"


@pytest.mark.parametrize("text", ["1:10", "1:10.5", ":45", "58.3", "12:3.4"])
def test_parse_format_is_stable_after_one_pass(text):
    once = format_time(parse_time(text))
    assert format_time(parse_time(once)) == once


def test_format_seed_time():
    assert format_seed_time(0) == "NT"
    assert format_seed_time(-1) == "NT"
    assert format_seed_time(6532) == "1:05.32"
    assert format_seed_time(4500) == "0:45.00"


def test_format_clock_rounds_half_up():
    assert format_clock(0) == "0:00"
    assert format_clock(20) == "0:20"
    assert format_clock(89.5) == "1:30"
    assert format_clock(800) == "13:20"
    assert format_clock(-4) == "0:00"


def test_parse_clock():
    assert parse_clock("13:20") == 800.0
    assert parse_clock("13:20.5") == 800.5
    assert parse_clock("800") == 800.0
    assert parse_clock(790) == 790.0
    assert parse_clock("soon") == 0.0
    assert parse_clock(-3) == 0.0
    assert parse_clock(None) == 0.0
