"""A shell session that dispatches typed lines to registered commands."""

from __future__ import annotations

import logging
import shlex
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .command import (
    Command,
    check_help_args,
    dump_commands,
    exec_command,
    lookup_command,
    match_command,
)
from .writer import StringWriter

logger = logging.getLogger(__name__)


class Session:
    """One user's session: its own copy of the commands plus ``logout``."""

    def __init__(self, commands: Mapping[str, Any]) -> None:
        self.commands: Dict[str, Any] = dict(commands)
        self.exited = threading.Event()
        self.commands["logout"] = Command(
            name="logout",
            short_description="Ends the current session",
            callback=lambda _flags, _args, _writer: self.close(),
        )

    @property
    def closed(self) -> bool:
        return self.exited.is_set()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def dispatch_command(self, line: str, writer: StringWriter) -> None:
        """Split ``line`` shell-style and run the command it names."""
        try:
            args = shlex.split(line)
        except ValueError as err:
            logger.debug("could not split command line %r: %s", line, err)
            return

        if not args:
            dump_commands(self.commands, writer)
            return

        try:
            command = lookup_command(self.commands, args[0])
        except TypeError as err:
            logger.error("command lookup failed for %r: %s", args[0], err)
            return

        if command is None:
            writer.write_line(f"did not understand: {line}")
            dump_commands(self.commands, writer)
            return

        if check_help_args(args):
            self.dispatch_command(f"help {command.name}", writer)
            return

        try:
            exec_command(command, args[1:], writer)
        except Exception:  # command failures are logged, not fatal to the session
            logger.exception("command %s failed", command.name)

    def complete(self, line: str) -> Tuple[Optional[str], List[str]]:
        """Tab completion: the completed line when one command matches, and all matches."""
        matches = match_command(self.commands, line)
        if len(matches) == 1:
            return matches[0] + " ", matches
        return None, matches

    def close(self) -> None:
        """End the session."""
        self.exited.set()