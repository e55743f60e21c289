"""
Helmsman positional arguments.

Overview
- Arg: one declared positional slot (name, default, description, optional,
  slice). At most the last slot may be a slice (variadic), and required slots
  cannot follow optional ones; check_args_modes() enforces both at setup.
- ArgDefinition: the ordered slots of a command, rendering the usage suffix
  shown in help (" [--] <file> [<mode>] (<rest>)...").
- Args: read-only view over the positionals bound to a command.

Binding
- Positionals bind by index. A slice slot is never returned by name; its
  values are available through Args.tail().
- check_required_args() reports the first required slot without a value, or
  "Too many arguments" when no slot is variadic and extra values were given.

Quick example
    >>> definition = ArgDefinition([Arg("file"), Arg("rest", optional=True, slice=True)])
    >>> definition.usage()
    ' [--] <file> [<rest>]...'
"""
from collections.abc import Iterable

from .faults import ArgumentShapeError, MissingArgumentError, TooManyArgumentsError
from .utils import SpecType


class Arg(metaclass=SpecType):
    """
    positional slot declaration.

    parameters
    - name: identifier used by Args.get() and in usage output.
    - default: value returned by Args.get() when the slot is not given.
    - description: help text.
    - optional: the slot may be omitted.
    - slice: the slot swallows every remaining positional.
    """
    __introspectable__ = (
        "name",
        "default",
        "description",
        "optional",
        "slice",
    )

    def __init__(self, name, /, default="", description="", *, optional=False, slice=False):
        for field, object in (("name", name), ("default", default), ("description", description)):
            if not isinstance(object, str):
                raise TypeError(f"{type(self).__typename__} '{field}' must be a string")
        if not (name := name.strip()):
            raise ValueError(f"{type(self).__typename__} 'name' cannot be empty")
        for field, object in (("optional", optional), ("slice", slice)):
            if not isinstance(object, bool):
                raise TypeError(f"{type(self).__typename__} '{field}' must be a boolean")

        self._name = name
        self._default = default
        self._description = description
        self._optional = optional
        self._slice = slice

    def describe(self):
        """(name, description) pair for help output."""
        description = self._description
        if self._default:
            description += f' [default: "{self._default}"]'
        if not self._optional:
            description += " (required)"
        return self._name, description.strip()

    def __str__(self):
        return "\t".join(self.describe())


class ArgDefinition(list):
    """ordered Arg slots of one command."""

    def __init__(self, arguments=(), /):
        if not isinstance(arguments, Iterable):
            raise TypeError("ArgDefinition() argument must be an iterable of Arg")
        super().__init__(arguments)
        for argument in self:
            if not isinstance(argument, Arg):
                raise TypeError("ArgDefinition() argument must be an iterable of Arg")

    def usage(self):
        if not self:
            return ""

        elements = [" [--]"]
        for argument in self:
            element = f"<{argument.name}>"
            if argument.optional:
                element = f"[{element}]"
            elif argument.slice:
                element = f"({element})"
            if argument.slice:
                element += "..."
            elements.append(element)

        return " ".join(elements).rstrip()


class Args:
    """
    positionals of one invocation, optionally bound to a command's slots.
    """

    def __init__(self, values, command=None, /):
        self._values = list(values)
        self._command = command

    def get(self, name, /):
        """value of the named non-slice slot, its default, or ""."""
        if self._command is None:
            return ""

        for index, argument in enumerate(self._command.args):
            if argument.name != name or argument.slice:
                continue
            if index < len(self._values):
                return self._values[index]
            return argument.default

        return ""

    def first(self):
        return self._values[0] if self._values else ""

    def tail(self):
        """
        with a command: values from the slice slot onward (empty when there is
        no slice slot). without one: everything after the first value.
        """
        if self._command is not None:
            for index, argument in enumerate(self._command.args):
                if argument.slice:
                    return self._values[index:]
            return []

        return self._values[1:]

    def len(self):
        return len(self._values)

    def present(self):
        return bool(self._values)

    def slice(self):
        return list(self._values)

    def __len__(self):
        return len(self._values)

    def __bool__(self):
        return bool(self._values)

    def __iter__(self):
        return iter(list(self._values))

    def __repr__(self):
        return f"args({self._values!r})"


def check_args_modes(arguments, /):
    """
    reject impossible slot layouts (raised at setup, never at runtime).
    """
    seen = set()
    has_slice = has_optional = False

    for argument in arguments:
        if argument.name in seen:
            raise ArgumentShapeError(f'An argument with name "{argument.name}" already exists.')
        if has_slice:
            raise ArgumentShapeError("Cannot add an argument after an array argument.")
        if not argument.optional and has_optional:
            raise ArgumentShapeError("Cannot add a required argument after an optional one.")

        has_slice = has_slice or argument.slice
        has_optional = has_optional or argument.optional
        seen.add(argument.name)


def check_required_args(arguments, args, /):
    """
    raise MissingArgumentError or TooManyArgumentsError for args bound to the
    declared slots.
    """
    has_slice = False
    maximum = 0

    for argument in arguments:
        if argument.slice:
            has_slice = True
        else:
            maximum += 1

        if argument.optional:
            continue

        if argument.slice:
            if not args.tail():
                raise MissingArgumentError(f'Required argument "{argument.name}" is not set')
            break

        if args.get(argument.name) == "":
            raise MissingArgumentError(f'Required argument "{argument.name}" is not set')

    if not has_slice and len(args) > maximum:
        raise TooManyArgumentsError("Too many arguments")


__all__ = (
    "Arg",
    "ArgDefinition",
    "Args",
    "check_args_modes",
    "check_required_args",
)
