"""
Helmsman argument reordering.

Scope
- ParsingMode: how much of a command's own region is subject to flag
  interpretation.
- fix_args(): the single-pass state machine turning an interleaved token list
  into "flags, then the command token, then everything else" so a plain
  left-to-right FlagSet can consume it.
- find_command(): exact, then unique fuzzy, command resolution.
- parse_args(): fix, parse, environment fallbacks, "~" expansion and required
  flags, in that order.

Behavior (fix_args)
- Once in SKIPPED mode every token is kept verbatim as positional.
- "--" switches to SKIPPED for good; it is kept unless it is the command slot
  itself (the command pass uses "--" as its default command).
- A token of length > 1 starting with "-" is always a flag token. Known flags
  are rewritten with their canonical name (dash count and "=value" kept) and
  lifted into the flags; a trailing "=" is dropped and means "value follows".
  Unknown ones go to positionals, except in a command pass in NORMAL mode where
  they are kept as flags so the FlagSet rejects them with a proper error.
- A token following a flag that needs a value is that value.
- The first token resolving to a command becomes the command slot and its
  parsing mode takes over.
- In SKIPPED_AFTER_FIRST_ARG mode the first positional switches to SKIPPED.

Example
    >>> fix_args(["-reference=4", "--v=3", "-q", "upload", "file1"], flags, commands, ParsingMode.NORMAL, "")
    ['--v=3', '-quiet', 'upload', '-reference=4', 'file1']
"""
import logging
import os
from enum import IntEnum

from .faults import CommandException, EnvironmentFlagError
from .flags import check_required_flags, expand_shortcut, find_flag
from .values import StringValue

logger = logging.getLogger(__name__)


class ParsingMode(IntEnum):
    """
    NORMAL: flags may appear anywhere around the command token.
    SKIPPED: everything after the command name is opaque positional data.
    SKIPPED_AFTER_FIRST_ARG: flags are read until the first positional, the
    rest is opaque.
    """
    NORMAL = 0
    SKIPPED = 1
    SKIPPED_AFTER_FIRST_ARG = 2


def find_command(commands, name, /):
    """
    resolve name against commands: an exact match wins, otherwise a fuzzy
    match is accepted only when exactly one command answers. the matched
    command remembers the literal token in user_name.
    """
    lowered = name.lower()
    matches = []
    for command in commands or ():
        if command.has_name(lowered, True):
            command.user_name = name
            return command
        if command.has_name(lowered, False):
            matches.append(command)

    if len(matches) == 1:
        matches[0].user_name = name
        return matches[0]
    return None


def _is_flag(token, /):
    return len(token) > 1 and token[0] == "-"


def _clean(flags, token, /):
    name, _, _ = token.partition("=")
    return expand_shortcut(flags, name.lstrip("-"))


def _translate(flags, token, /):
    dashes = "--" if token[1] == "-" else "-"
    name = token.strip("-")
    if (index := name.find("=")) != -1:
        name = expand_shortcut(flags, name[:index]) + name[index:]
    else:
        name = expand_shortcut(flags, name)
    return dashes + name


def fix_args(arguments, flags, commands, mode, default_command, /):
    """
    reorder tokens into flags + [command] + positionals (see module docstring).
    """
    mode = ParsingMode(mode)
    command = default_command
    pending = False
    flagged = []
    unflagged = []

    for argument in arguments:
        if mode is ParsingMode.SKIPPED:
            unflagged.append(argument)
            continue

        if argument == "--":
            mode = ParsingMode.SKIPPED
            if argument != command:
                unflagged.append(argument)
            continue

        if _is_flag(argument):
            pending = False
            if (flag := find_flag(flags, _clean(flags, argument))) is not None:
                argument = _translate(flags, argument)
                if argument.find("=") == len(argument) - 1:
                    argument = argument[:-1]
                if "=" not in argument and flag.takes_value:
                    pending = True
                flagged.append(argument)
            elif default_command == "--" and mode is ParsingMode.NORMAL:
                flagged.append(argument)
                pending = argument.strip().endswith("=")
            else:
                unflagged.append(argument)
            continue

        if pending:
            flagged.append(argument)
            pending = False
            continue

        if not command and (match := find_command(commands, argument)) is not None:
            command = argument
            mode = ParsingMode(match.flag_parsing)
            continue

        if mode is ParsingMode.SKIPPED_AFTER_FIRST_ARG:
            mode = ParsingMode.SKIPPED

        unflagged.append(argument)

    if command:
        flagged.append(command)

    return flagged + unflagged


def expand_home(entry, /):
    """expand a leading "~" in string cells."""
    if type(entry.value) is not StringValue:
        return
    entry.value.set(os.path.expanduser(str(entry.value)))


def parse_flags_from_env(prefixes, flags, flag_set, /):
    """
    fill flags not given on the command line from the environment.

    candidates are the flag's env_vars followed by PREFIX_FLAG_NAME for each
    prefix, consulted in reverse order; empty variables are ignored and every
    non-empty one is applied, so the earliest declared wins for scalars.
    values found here count as explicitly set.
    """
    for flag in flags:
        if flag_set.is_set(flag.name):
            continue

        names = [
            *flag.env_vars,
            *(f"{prefix}_{flag.name}".upper().replace("-", "_") for prefix in prefixes),
        ]

        for variable in reversed(names):
            if not (value := os.environ.get(variable, "")):
                continue

            logger.debug("Using %s from ENV for '%s' configuration entry.", variable, flag.name)
            try:
                flag_set.set(flag.name, value)
            except CommandException as error:
                raise EnvironmentFlagError(f"Failed to set flag {flag.name} with value {value}") from error


def parse_args(flag_set, arguments, flags, prefixes=(), /):
    """
    parse already reordered arguments into flag_set and complete it.

    raises the usage errors of the FlagSet, EnvironmentFlagError and
    MissingFlagError; flag_set keeps whatever was parsed before a failure.
    """
    flag_set.parse(arguments)
    flag_set.visit(lambda entry: logger.debug("Using CLI flags for '%s' configuration entry.", entry.name))

    parse_flags_from_env(prefixes, flags, flag_set)
    flag_set.visit(expand_home)
    check_required_flags(flags, flag_set)


__all__ = (
    "ParsingMode",
    "find_command",
    "fix_args",
    "expand_home",
    "parse_flags_from_env",
    "parse_args",
)
