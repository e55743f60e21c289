"""
Helmsman commands.

Overview
- Alias: an alternative command name, optionally hidden from help (hidden
  aliases still resolve).
- Command: a named handler with its own flags, positional slots and parsing
  mode. The full name is "category:name" when a category is set.
- CommandCategory / CommandCategories: commands grouped by category for help
  output, categories sorted by name.

Resolution (has_name)
- exact: the full name or any alias equals the token.
- fuzzy: the token is split on ":" and every segment must prefix the matching
  segment of a candidate, e.g. "p:lis" matches "project:list".
- names are lower-cased once at application setup; callers lower-case tokens.

Lifecycle (run)
- parse the command's region of the arguments (see reorder.fix_args with the
  "--" default command), validate flags and positional slots;
- on a usage failure, show the command help and raise IncorrectUsageError;
- honour -h/--help, run before, then action (help when missing), then after.
  after always runs and its failure is combined with any prior one.
"""
import re
from collections.abc import Callable, Iterable

from .arguments import Arg, ArgDefinition, check_required_args
from .context import Context
from .faults import CommandException, IncorrectUsageError, combine, wrap_panic
from .flags import Flag, check_flags_validity, flag_set, visible_flags
from .reorder import ParsingMode, fix_args, parse_args
from .utils import SpecType


class Alias(metaclass=SpecType):
    __introspectable__ = (
        "name",
        "hidden",
    )

    def __init__(self, name, /, hidden=False):
        if not isinstance(name, str):
            raise TypeError(f"{type(self).__typename__} 'name' must be a string")
        if not isinstance(hidden, bool):
            raise TypeError(f"{type(self).__typename__} 'hidden' must be a boolean")
        self._name = name
        self._hidden = hidden

    def __str__(self):
        return self._name


def _sanitize_aliases(cls, aliases, /):
    if isinstance(aliases, str) or not isinstance(aliases, Iterable):
        raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings or Alias")
    result = []
    for alias in aliases:
        match alias:
            case Alias():
                result.append(alias)
            case str():
                result.append(Alias(alias))
            case _:
                raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings or Alias")
    return result


def _sanitize_metadata(cls, metadata, /):
    """
    validate and normalize command metadata (in place).

    raises
    - TypeError: a field has the wrong type.
    """
    for field in ("name", "usage", "description", "category", "help_name"):
        if not isinstance(metadata[field], str):
            raise TypeError(f"{cls.__typename__} '{field}' must be a string")

    metadata["aliases"] = _sanitize_aliases(cls, metadata["aliases"])

    if isinstance(metadata["flags"], str) or not isinstance(metadata["flags"], Iterable):
        raise TypeError(f"{cls.__typename__} 'flags' must be an iterable of flags")
    metadata["flags"] = list(metadata["flags"])
    for flag in metadata["flags"]:
        if not isinstance(flag, Flag):
            raise TypeError(f"{cls.__typename__} 'flags' must be an iterable of flags")

    if isinstance(metadata["args"], str) or not isinstance(metadata["args"], Iterable):
        raise TypeError(f"{cls.__typename__} 'args' must be an iterable of {Arg.__typename__}")
    metadata["args"] = ArgDefinition(metadata["args"])

    metadata["flag_parsing"] = ParsingMode(metadata["flag_parsing"])

    if not isinstance(metadata["hidden"], bool) and not callable(metadata["hidden"]):
        raise TypeError(f"{cls.__typename__} 'hidden' must be a boolean or a callable")

    for field in ("description_func", "before", "action", "after"):
        if metadata[field] is not None and not callable(metadata[field]):
            raise TypeError(f"{cls.__typename__} '{field}' must be callable")


class Command(metaclass=SpecType):
    """
    command declaration.

    parameters
    - name: command name, combined with category into the full name.
    - aliases: alternative names (strings or Alias).
    - usage: one-line summary; description: longer help text, or
      description_func(command, app) computing it when help is shown.
    - category: namespace shown in help ("self" for built-ins).
    - flags / args: the command's own flags and positional slots.
    - flag_parsing: ParsingMode of the command's region.
    - hidden: bool, or a zero-argument callable evaluated on demand.
    - before / action / after: handlers called with the command context.
    - help_name: name shown in usage lines (defaults to "<app> <full name>").
    """
    __introspectable__ = (
        "name",
        "aliases",
        "usage",
        "category",
        "flags",
        "args",
        "flag_parsing",
    )
    __displayable__ = (
        "name",
        "aliases",
        "category",
        "flag_parsing",
    )

    def __init__(
            self,
            name="",
            /,
            *,
            aliases=(),
            usage="",
            description="",
            description_func=None,
            category="",
            flags=(),
            args=(),
            flag_parsing=ParsingMode.NORMAL,
            hidden=False,
            before=None,
            action=None,
            after=None,
            help_name="",
    ):
        metadata = {
            "name": name,
            "aliases": aliases,
            "usage": usage,
            "description": description,
            "description_func": description_func,
            "category": category,
            "flags": flags,
            "args": args,
            "flag_parsing": flag_parsing,
            "hidden": hidden,
            "before": before,
            "action": action,
            "after": after,
            "help_name": help_name,
        }
        _sanitize_metadata(type(self), metadata)

        self._name = metadata["name"]
        self._aliases = metadata["aliases"]
        self._usage = metadata["usage"]
        self._category = metadata["category"]
        self._flags = metadata["flags"]
        self._args = metadata["args"]
        self._flag_parsing = metadata["flag_parsing"]
        self._hidden = metadata["hidden"]

        self.description = metadata["description"]
        self.description_func = metadata["description_func"]
        self.before = metadata["before"]
        self.action = metadata["action"]
        self.after = metadata["after"]
        self.help_name = metadata["help_name"]
        self.user_name = ""

    def normalize_names(self):
        self._category = self._category.lower()
        self._name = self._name.lower()
        self.help_name = self.help_name.lower()
        for alias in self._aliases:
            alias._name = alias._name.lower()

    def full_name(self):
        if self._category:
            return f"{self._category}:{self._name}"
        return self._name

    def preferred_name(self):
        if name := self.full_name():
            return name
        return ", ".join(alias.name for alias in self._aliases if alias.name)

    def names(self):
        """full name and visible aliases."""
        names = [name] if (name := self.full_name()) else []
        names.extend(alias.name for alias in self._aliases if not alias.hidden and alias.name)
        return names

    def has_name(self, name, exact, /):
        possibilities = [self.full_name(), *(alias.name for alias in self._aliases)]
        if name in possibilities:
            return True
        if exact:
            return False

        pattern = re.compile("^" + "[^:]*:".join(map(re.escape, name.split(":"))) + "[^:]*$")
        return any(pattern.match(possibility) for possibility in possibilities)

    def is_hidden(self):
        if callable(self._hidden):
            return bool(self._hidden())
        return self._hidden

    def arguments(self):
        return ArgDefinition(self._args)

    def visible_flags(self):
        return visible_flags(self._flags)

    def has_flag(self, flag, /):
        return any(existing is flag for existing in self._flags)

    def add_flag(self, flag, /):
        if not self.has_flag(flag):
            self._flags.append(flag)

    def fix_args(self, arguments, /):
        return fix_args(arguments, self._flags, None, self._flag_parsing, "--")

    def parse_args(self, arguments, prefixes=(), /):
        """
        build this command's FlagSet and parse its region of the arguments.

        returns (flag_set, error): the flag set is returned even when parsing
        failed, so the positionals reached so far stay inspectable.
        """
        result = flag_set(self._name, self._flags)
        try:
            parse_args(result, self.fix_args(arguments), self._flags, prefixes)
        except CommandException as error:
            return result, error
        return result, None

    def run(self, context, /):
        """
        run the command below the given (application) context.

        raises IncorrectUsageError for parse and validation failures, and
        whatever the handlers raise (non-command exceptions wrapped as panics).
        """
        from .help import check_command_help, print_command_help

        app = context.app
        if app.help_flag is not None:
            self.add_flag(app.help_flag)

        flags, error = self.parse_args(context.raw_args().tail(), app.flag_env_prefix)
        child = Context(app, flags, context, command=self)
        try:
            if error is not None:
                raise error
            check_flags_validity(self._flags, flags, child)
            check_required_args(self._args, child.args())
        except CommandException as failure:
            print_command_help(context, self)
            app.writer.print()
            raise IncorrectUsageError(failure) from failure

        if check_command_help(child, self):
            return

        error = None
        try:
            if self.before is not None:
                try:
                    self.before(child)
                except Exception:
                    print_command_help(context, self)
                    raise

            if self.action is None:
                print_command_help(context, self)
            else:
                self.action(child)
        except Exception as exception:
            error = wrap_panic(exception)

        if self.after is not None:
            try:
                self.after(child)
            except Exception as exception:
                error = combine(error, wrap_panic(exception))

        if error is not None:
            raise error


class CommandCategory:
    """commands sharing one category, in declaration order."""

    def __init__(self, name, /, commands=()):
        self.name = name
        self.commands = list(commands)

    def visible_commands(self):
        return [command for command in self.commands if not command.is_hidden()]

    def __repr__(self):
        return f"command-category(name={self.name!r}, commands={[command.full_name() for command in self.commands]!r})"


class CommandCategories:
    """categories of an application, kept sorted by name."""

    def __init__(self):
        self._categories = []

    def add_command(self, category, command, /):
        for existing in self._categories:
            if existing.name == category:
                existing.commands.append(command)
                return
        self._categories.append(CommandCategory(category, (command,)))
        self._categories.sort(key=lambda category: category.name)

    def categories(self):
        return list(self._categories)

    def __iter__(self):
        return iter(self.categories())

    def __len__(self):
        return len(self._categories)


__all__ = (
    "Alias",
    "Command",
    "CommandCategory",
    "CommandCategories",
)
