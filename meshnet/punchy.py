"""Hole punching settings read from a nested configuration mapping."""

from __future__ import annotations

import copy
import logging
import re
from datetime import timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

_DEFAULT_DELAY = timedelta(seconds=1)

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_UNIT = re.compile(r"[^\d.]+")

_TRUE_WORDS = {"1", "t", "true", "y", "yes"}
_FALSE_WORDS = {"0", "f", "false", "n", "no"}


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m"``, ``"1.5h"`` or ``"1h2m300ms"``.

    Raises ValueError when the text is not a valid duration.
    """
    body = text
    negative = False
    if body[:1] in ("+", "-") and body:
        negative = body[0] == "-"
        body = body[1:]

    if body == "0":
        return timedelta(0)
    if not body:
        raise ValueError(f'invalid duration "{text}"')

    total = Decimal(0)
    pos = 0
    while pos < len(body):
        number = _NUMBER.match(body, pos)
        if number is None:
            raise ValueError(f'invalid duration "{text}"')
        pos = number.end()

        unit = _UNIT.match(body, pos)
        if unit is None:
            raise ValueError(f'missing unit in duration "{text}"')
        if unit.group() not in _UNIT_NANOS:
            raise ValueError(f'unknown unit "{unit.group()}" in duration "{text}"')
        pos = unit.end()

        total += Decimal(number.group()) * _UNIT_NANOS[unit.group()]

    if negative:
        total = -total
    return timedelta(microseconds=int(total / 1000))


def _lookup(settings: Optional[Mapping[str, Any]], key: str) -> Any:
    """Walk a dotted key through nested mappings; None when any part is missing."""
    node: Any = settings
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _get_bool(settings: Mapping[str, Any], key: str, default: bool) -> bool:
    value = _lookup(settings, key)
    if value is None:
        return default
    word = str(value).lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return default


def _get_duration(settings: Mapping[str, Any], key: str, default: timedelta) -> timedelta:
    value = _lookup(settings, key)
    if value is None:
        return default
    try:
        return parse_duration(str(value))
    except ValueError:
        return default


class Punchy:
    """Whether to punch, whether to punch back, and how long to wait first."""

    def __init__(self, settings: Mapping[str, Any]) -> None:
        self._punch = False
        self._respond = False
        self._delay = _DEFAULT_DELAY
        self._settings: Optional[Mapping[str, Any]] = None
        self.reload(settings, True)

    @property
    def punch(self) -> bool:
        return self._punch

    @property
    def respond(self) -> bool:
        return self._respond

    @property
    def delay(self) -> timedelta:
        return self._delay

    def reload(self, settings: Mapping[str, Any], initial: bool) -> None:
        """Apply ``settings``; on a reload only keys that changed are applied."""
        previous = self._settings

        def changed(key: str) -> bool:
            if previous is None:
                return False
            return _lookup(previous, key) != _lookup(settings, key)

        if initial:
            if _lookup(settings, "punchy.punch") is not None:
                self._punch = _get_bool(settings, "punchy.punch", False)
            else:
                # Deprecated fallback
                self._punch = _get_bool(settings, "punchy", False)
        elif changed("punchy.punch") or changed("punchy"):
            logger.warning("Changing punchy.punch with reload is not supported, ignoring.")

        if initial or changed("punchy.respond") or changed("punch_back"):
            if _lookup(settings, "punchy.respond") is not None:
                self._respond = _get_bool(settings, "punchy.respond", False)
            else:
                # Deprecated fallback
                self._respond = _get_bool(settings, "punch_back", False)
            if not initial:
                logger.info("punchy.respond changed to %s", str(self._respond).lower())

        # Only affects the next punch, not any already in progress.
        if initial or changed("punchy.delay"):
            self._delay = _get_duration(settings, "punchy.delay", _DEFAULT_DELAY)
            if not initial:
                logger.info("punchy.delay changed to %s", self._delay)

        self._settings = copy.deepcopy(settings)