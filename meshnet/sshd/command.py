"""Commands that a shell session can run, and the built-in help for them."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .writer import StringWriter

# Builds a fresh parser for a command's flags.
CommandFlags = Callable[[], argparse.ArgumentParser]

# Called with the parsed flags (or None), the remaining arguments and the writer.
CommandCallback = Callable[[Optional[argparse.Namespace], List[str], StringWriter], Any]


@dataclass
class Command:
    """A named command with a description, optional flags and a callback."""

    name: str
    short_description: str
    callback: CommandCallback
    help: str = ""
    flags: Optional[CommandFlags] = None


def _parse_flags(
    parser: argparse.ArgumentParser, args: Sequence[str]
) -> Tuple[Optional[argparse.Namespace], List[str]]:
    try:
        namespace, rest = parser.parse_known_args(list(args))
        return namespace, rest
    except (argparse.ArgumentError, SystemExit):
        pass
    # Bad flags are not reported; fall back to the defaults.
    try:
        namespace, _ = parser.parse_known_args([])
    except (argparse.ArgumentError, SystemExit):
        namespace = None
    return namespace, list(args)


def exec_command(command: Command, args: Sequence[str], writer: StringWriter) -> Any:
    """Parse the command's flags out of ``args`` and run its callback."""
    namespace: Optional[argparse.Namespace] = None
    remaining = list(args)
    if command.flags is not None:
        parser = command.flags()
        if parser is not None:
            namespace, remaining = _parse_flags(parser, remaining)
    return command.callback(namespace, remaining, writer)


def all_commands(commands: Mapping[str, Any]) -> List[Command]:
    """Every command in ``commands``, ordered by name."""
    return [commands[name] for name in sorted(commands) if isinstance(commands[name], Command)]


def dump_commands(commands: Mapping[str, Any], writer: StringWriter) -> None:
    """Write a sorted list of available commands and their descriptions."""
    writer.write_line("Available commands:")
    lines = sorted(f"{c.name} - {c.short_description}" for c in all_commands(commands))
    writer.write("\n".join(lines) + "\n\n")


def lookup_command(commands: Mapping[str, Any], name: str) -> Optional[Command]:
    """The command registered as ``name``, or None.

    Raises TypeError when the entry is not a Command.
    """
    if name not in commands:
        return None
    command = commands[name]
    if not isinstance(command, Command):
        raise TypeError("failed to cast command")
    return command


def match_command(commands: Mapping[str, Any], prefix: str) -> List[str]:
    """Sorted names of every command starting with ``prefix``."""
    return sorted(name for name in commands if name.startswith(prefix))


def help_callback(commands: Mapping[str, Any], args: Sequence[str], writer: StringWriter) -> None:
    """List all commands, or describe the one named in ``args``."""
    if not args:
        dump_commands(commands, writer)
        return

    command = lookup_command(commands, args[0])
    if command is None:
        writer.write_line("Command not available " + args[0])
        return

    writer.write_line(f"{command.name} - {command.short_description}")
    if command.help:
        writer.write_line(f"  {command.help}")
    if command.flags is not None:
        parser = command.flags()
        if parser is not None:
            writer.write(parser.format_help())


def help_command(commands: Mapping[str, Any]) -> Command:
    """The ``help`` command, describing whatever is in ``commands`` when run."""
    return Command(
        name="help",
        short_description="prints available commands or help <command> for specific usage info",
        callback=lambda _flags, args, writer: help_callback(commands, args, writer),
    )


def check_help_args(args: Sequence[str]) -> bool:
    """True when ``-h`` or ``-help`` appears among ``args``."""
    return any(a in ("-h", "-help") for a in args)