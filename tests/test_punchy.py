import logging
from datetime import timedelta

import pytest

from meshnet.punchy import Punchy, parse_duration


def test_new_punchy_from_settings():
    settings = {}

    p = Punchy(settings)
    assert p.punch is False
    assert p.respond is False
    assert p.delay == timedelta(seconds=1)

    # punchy deprecation
    settings["punchy"] = True
    p = Punchy(settings)
    assert p.punch is True

    # punchy.punch
    settings["punchy"] = {"punch": True}
    p = Punchy(settings)
    assert p.punch is True

    # punch_back deprecation
    settings["punch_back"] = True
    p = Punchy(settings)
    assert p.respond is True

    # punchy.respond
    settings["punchy"] = {"respond": True}
    settings["punch_back"] = False
    p = Punchy(settings)
    assert p.respond is True

    # punchy.delay
    settings["punchy"] = {"delay": "1m"}
    p = Punchy(settings)
    assert p.delay == timedelta(minutes=1)


def test_punchy_reload():
    p = Punchy({"punchy": {"delay": "1m", "respond": False}})
    assert p.delay == timedelta(minutes=1)
    assert p.respond is False

    p.reload({"punchy": {"delay": "10m", "respond": True}}, False)
    assert p.delay == timedelta(minutes=10)
    assert p.respond is True


def test_reload_ignores_punch_change(caplog):
    p = Punchy({"punchy": {"punch": False}})
    with caplog.at_level(logging.WARNING, logger="meshnet.punchy"):
        p.reload({"punchy": {"punch": True}}, False)
    assert p.punch is False
    assert "not supported" in caplog.text


def test_reload_keeps_unchanged_values():
    p = Punchy({"punchy": {"respond": True, "delay": "5s"}})
    p.reload({"punchy": {"respond": True, "delay": "5s"}}, False)
    assert p.respond is True
    assert p.delay == timedelta(seconds=5)


def test_invalid_delay_falls_back_to_default():
    p = Punchy({"punchy": {"delay": "bogus"}})
    assert p.delay == timedelta(seconds=1)


def test_yes_string_is_true():
    p = Punchy({"punchy": {"punch": "yes", "respond": "no"}})
    assert p.punch is True
    assert p.respond is False


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0", timedelta(0)),
        ("1s", timedelta(seconds=1)),
        ("1m", timedelta(minutes=1)),
        ("10m", timedelta(minutes=10)),
        ("1.5h", timedelta(hours=1, minutes=30)),
        ("300ms", timedelta(milliseconds=300)),
        ("1h2m3s", timedelta(hours=1, minutes=2, seconds=3)),
        ("-1s", timedelta(seconds=-1)),
        ("+2s", timedelta(seconds=2)),
        ("1500us", timedelta(microseconds=1500)),
        (".5s", timedelta(milliseconds=500)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "5", "5x", "-", "1s2", "."])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)