"""
Helmsman low-level flag set.

A FlagSet knows cells by canonical name only and parses a token list left to
right. It is deliberately simple: reordering, alias expansion and command
resolution all happen earlier (see reorder.fix_args), so by the time tokens
reach a FlagSet they are already "flags first, then everything else".

Accepted forms
- -name / --name                  boolean cells (set to "true")
- -name=value / --name=value      any cell
- -name value / --name value      non-boolean cells

Parsing stops at the first non-flag token (a lone "-" is a non-flag); a bare
"--" is consumed and ends flag parsing. Remaining tokens are available via
args(), including after a failure, at the position reached when it happened.
"""
from .faults import (
    BadFlagSyntaxError,
    ConfigurationError,
    FlagSetError,
    FlagValueRequiredError,
    HelpRequested,
    InvalidFlagValueError,
)


class FlagEntry:
    """one registered cell: its name, usage, the cell itself and its default text."""
    __slots__ = ("name", "usage", "value", "default_text")

    def __init__(self, name, usage, value, default_text, /):
        self.name = name
        self.usage = usage
        self.value = value
        self.default_text = default_text

    def __repr__(self):
        return f"flag-entry(name={self.name!r}, value={str(self.value)!r})"


class FlagSet:
    def __init__(self, name, /):
        if not isinstance(name, str):
            raise TypeError("FlagSet() name must be a string")
        self.name = name
        self._formal = {}
        self._actual = {}
        self._args = []

    def var(self, value, name, usage="", /):
        """register a cell under name; names must be unique within the set."""
        if name in self._formal:
            raise ConfigurationError(f"{self.name} flag redefined: {name}" if self.name else f"flag redefined: {name}")
        self._formal[name] = FlagEntry(name, usage, value, str(value))

    def lookup(self, name, /):
        return self._formal.get(name)

    def set(self, name, text, /):
        """
        set a cell programmatically and record it as explicitly set.

        raises FlagSetError for unknown names, InvalidFlagValueError when the
        cell rejects the text.
        """
        if (entry := self._formal.get(name)) is None:
            raise FlagSetError(f"no such flag -{name}")
        try:
            entry.value.set(text)
        except ValueError as error:
            raise InvalidFlagValueError(f'invalid value "{text}" for flag -{name}: {error}') from error
        self._actual[name] = entry

    def is_set(self, name, /):
        return name in self._actual

    def args(self):
        return list(self._args)

    def narg(self):
        return len(self._args)

    def visit(self, function, /):
        """call function for each explicitly set entry, in lexicographical order."""
        for name in sorted(self._actual):
            function(self._actual[name])

    def visit_all(self, function, /):
        for name in sorted(self._formal):
            function(self._formal[name])

    def parse(self, arguments, /):
        self._args = list(arguments)
        while self._parse_one():
            pass

    def _parse_one(self):
        if not self._args:
            return False

        token = self._args[0]
        if len(token) < 2 or token[0] != "-":
            return False

        dashes = 1
        if token[1] == "-":
            dashes += 1
            if len(token) == 2:
                # "--" terminates the flags
                self._args.pop(0)
                return False

        name = token[dashes:]
        if not name or name[0] in "-=":
            raise BadFlagSyntaxError(f"bad flag syntax: {token}")

        self._args.pop(0)
        name, separator, value = name.partition("=")
        has_value = bool(separator)

        if (entry := self._formal.get(name)) is None:
            if name in ("help", "h"):
                raise HelpRequested("flag: help requested")
            raise FlagSetError(f"flag provided but not defined: -{name}")

        if getattr(entry.value, "is_bool", False):
            try:
                entry.value.set(value if has_value else "true")
            except ValueError as error:
                raise InvalidFlagValueError(f'invalid boolean value "{value}" for -{name}: {error}') from error
        else:
            if not has_value and self._args:
                has_value, value = True, self._args.pop(0)
            if not has_value:
                raise FlagValueRequiredError(f"flag needs an argument: -{name}")
            try:
                entry.value.set(value)
            except ValueError as error:
                raise InvalidFlagValueError(f'invalid value "{value}" for flag -{name}: {error}') from error

        self._actual[name] = entry
        return True


__all__ = (
    "FlagEntry",
    "FlagSet",
)
