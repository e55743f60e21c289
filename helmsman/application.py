"""
Helmsman application.

An Application owns the global flags, the commands and the output consoles of
one program. It is configured through constructor arguments only; setup()
fills in defaults and injects the built-ins exactly once, on the first run.

Built-ins
- flags: help (-h, --help), version (-V), quiet (-q, --quiet), verbosity
  (-v|vv|vvv, --verbose, --log-level), --no-interaction, --ansi, --no-ansi.
  Leave a parameter Unset to get a fresh default, pass None to disable it.
- commands: "self:help" (aliases help, list) and "self:version" (alias
  version), unless a command already answers to these names.

Run
- run(arguments) parses the global region, configures the consoles, validates,
  resolves the command named by the first positional, runs before, answers
  --help / -V, dispatches, and always runs after. Failures are raised.
- __invoke__() / invoke() are the process entry points: they render a failure
  on the error console and exit with its exit code.

Example
    >>> app = Application("greeter", commands=[Command("hello", action=lambda context: print("hi"))])
    >>> invoke(app, "hello")
    hi
"""
import logging
import os
import shlex
import sys
from collections.abc import Iterable
from datetime import datetime

from rich.console import Console
from rich.text import Text

from .arguments import check_args_modes
from .commands import Command, CommandCategories
from .context import Context
from .faults import CommandException, IncorrectUsageError, MultiError, combine, exit_code_of, handle_error, wrap_panic
from .flags import (
    Flag,
    QuietFlag,
    VerbosityFlag,
    ansi_flag,
    check_flags_unicity,
    check_flags_validity,
    flag_set,
    help_flag,
    no_ansi_flag,
    no_interaction_flag,
    version_flag,
    visible_flags,
)
from .help import (
    check_help,
    check_version,
    help_command,
    print_help,
    print_version,
    show_app_help,
    show_app_help_action,
    show_version,
    version_command,
)
from .reorder import ParsingMode, find_command, fix_args, parse_args
from .utils import SpecType, Unset, coalesce

logger = logging.getLogger(__name__)

DEFAULT_USAGE = "A new cli application"
DEFAULT_VERSION = "0.0.0"
DEFAULT_CHANNEL = "dev"


def _binary_name():
    if sys.argv and sys.argv[0]:
        return os.path.basename(sys.argv[0])
    return "helmsman"


def _sanitize_metadata(cls, metadata, /):
    """
    validate application metadata (in place).

    raises
    - TypeError: a field has the wrong type.
    """
    for field in ("name", "help_name", "usage", "version", "channel", "description", "copyright", "build_date"):
        if not isinstance(metadata[field], str):
            raise TypeError(f"{cls.__typename__} '{field}' must be a string")

    for field, kind in (("commands", Command), ("flags", Flag)):
        if isinstance(metadata[field], str) or not isinstance(metadata[field], Iterable):
            raise TypeError(f"{cls.__typename__} '{field}' must be an iterable of {kind.__typename__}")
        metadata[field] = list(metadata[field])
        if not all(isinstance(object, kind) for object in metadata[field]):
            raise TypeError(f"{cls.__typename__} '{field}' must be an iterable of {kind.__typename__}")

    match metadata["flag_env_prefix"]:
        case str() as prefix:
            metadata["flag_env_prefix"] = [prefix]
        case Iterable() as prefixes if all(isinstance(prefix, str) for prefix in prefixes):
            metadata["flag_env_prefix"] = list(prefixes)
        case _:
            raise TypeError(f"{cls.__typename__} 'flag_env_prefix' must be a string or an iterable of strings")

    for field in ("before", "after", "action", "help_printer", "version_printer"):
        if metadata[field] is not None and not callable(metadata[field]):
            raise TypeError(f"{cls.__typename__} '{field}' must be callable")

    for field in ("writer", "err_writer"):
        if metadata[field] is not None and not isinstance(metadata[field], Console):
            raise TypeError(f"{cls.__typename__} '{field}' must be a rich Console")

    for field in ("help_flag", "version_flag", "no_interaction_flag", "ansi_flag", "no_ansi_flag"):
        if metadata[field] not in (Unset, None) and not isinstance(metadata[field], Flag):
            raise TypeError(f"{cls.__typename__} '{field}' must be a flag, None or Unset")

    if metadata["quiet_flag"] not in (Unset, None) and not isinstance(metadata["quiet_flag"], QuietFlag):
        raise TypeError(f"{cls.__typename__} 'quiet_flag' must be a {QuietFlag.__typename__}, None or Unset")

    if metadata["verbosity_flag"] not in (Unset, None) and not isinstance(metadata["verbosity_flag"], VerbosityFlag):
        raise TypeError(f"{cls.__typename__} 'verbosity_flag' must be a {VerbosityFlag.__typename__}, None or Unset")


class Application(metaclass=SpecType):
    """
    parameters
    - name / help_name: program name (defaults to the basename of argv[0])
      and the name shown in usage lines (defaults to name).
    - usage, version, channel, description, copyright, build_date: metadata
      shown by help and version output.
    - commands / flags: declared commands and global flags.
    - flag_env_prefix: prefix(es) deriving PREFIX_FLAG_NAME environment
      fallbacks for every flag.
    - before / after / action: handlers called with the application context;
      action runs when no command was resolved (help by default).
    - writer / err_writer: rich consoles for regular and error output.
    - *_flag: built-in flags (Unset: default, None: disabled).
    - help_printer(console, renderable) / version_printer(context).
    """
    __displayable__ = (
        "name",
        "version",
        "channel",
        "commands",
    )

    def __init__(
            self,
            name="",
            /,
            *,
            help_name="",
            usage="",
            version="",
            channel="",
            description="",
            copyright="",
            build_date="",
            commands=(),
            flags=(),
            flag_env_prefix=(),
            before=None,
            after=None,
            action=None,
            writer=None,
            err_writer=None,
            help_flag=Unset,
            version_flag=Unset,
            quiet_flag=Unset,
            verbosity_flag=Unset,
            no_interaction_flag=Unset,
            ansi_flag=Unset,
            no_ansi_flag=Unset,
            help_printer=None,
            version_printer=None,
    ):
        metadata = {
            "name": name,
            "help_name": help_name,
            "usage": usage,
            "version": version,
            "channel": channel,
            "description": description,
            "copyright": copyright,
            "build_date": build_date,
            "commands": commands,
            "flags": flags,
            "flag_env_prefix": flag_env_prefix,
            "before": before,
            "after": after,
            "action": action,
            "writer": writer,
            "err_writer": err_writer,
            "help_flag": help_flag,
            "version_flag": version_flag,
            "quiet_flag": quiet_flag,
            "verbosity_flag": verbosity_flag,
            "no_interaction_flag": no_interaction_flag,
            "ansi_flag": ansi_flag,
            "no_ansi_flag": no_ansi_flag,
            "help_printer": help_printer,
            "version_printer": version_printer,
        }
        _sanitize_metadata(type(self), metadata)

        for field, object in metadata.items():
            setattr(self, field, object)

        self.categories = CommandCategories()
        self.help_command = None
        self.version_command = None
        self.interactive = True
        self._ready = False

    def setup(self):
        """
        fill in defaults, inject built-ins and check declarations; runs once.

        raises ConfigurationError for redefined flags or impossible argument
        layouts.
        """
        if self._ready:
            return
        self._ready = True

        self.build_date = self.build_date or datetime.now().astimezone().isoformat(timespec="seconds")
        self.name = self.name or _binary_name()
        self.help_name = self.help_name or self.name
        self.usage = self.usage or DEFAULT_USAGE
        self.version = self.version or DEFAULT_VERSION
        self.channel = self.channel or DEFAULT_CHANNEL
        self.action = self.action or show_app_help_action
        self.writer = self.writer or Console()
        self.err_writer = self.err_writer or Console(stderr=True)
        self.help_printer = self.help_printer or print_help
        self.version_printer = self.version_printer or print_version

        self.help_flag = coalesce(self.help_flag, help_flag())
        self.version_flag = coalesce(self.version_flag, version_flag())
        if (verbosity := coalesce(self.verbosity_flag, VerbosityFlag())) is not None:
            verbosity = verbosity.for_app(self)
        self.verbosity_flag = verbosity
        if (quiet := coalesce(self.quiet_flag, QuietFlag())) is not None:
            quiet = quiet.for_app(self)
        self.quiet_flag = quiet
        self.no_interaction_flag = coalesce(self.no_interaction_flag, no_interaction_flag())
        self.ansi_flag = coalesce(self.ansi_flag, ansi_flag())
        self.no_ansi_flag = coalesce(self.no_ansi_flag, no_ansi_flag())

        for flag in (
            self.version_flag,
            self.verbosity_flag,
            self.quiet_flag,
            self.no_interaction_flag,
            self.ansi_flag,
            self.no_ansi_flag,
        ):
            self._prepend_flag(flag)

        self.help_command = help_command()
        if self.command(self.help_command.name) is None:
            self.commands.insert(0, self.help_command)

        self.version_command = version_command()
        if self.command(self.version_command.name) is None:
            self.commands.insert(0, self.version_command)

        self._prepend_flag(self.help_flag)

        for command in self.commands:
            command.normalize_names()
            if not command.help_name:
                command.help_name = f"{self.help_name} {command.full_name()}"
            check_flags_unicity(self.flags, command.flags, command.full_name())
            check_args_modes(command.args)

        for command in self.commands:
            self.categories.add_command(command.category, command)

    def _prepend_flag(self, flag, /):
        if flag is not None and not any(existing is flag for existing in self.flags):
            self.flags.insert(0, flag)

    def command(self, name, /):
        """the command answering exactly to name, or None."""
        for command in self.commands:
            if command.has_name(name, True):
                command.user_name = name
                return command
        return None

    def best_command(self, name, /):
        """the command answering to name, exactly or as the only fuzzy match."""
        command = find_command(self.commands, name)
        if command is not None:
            logger.debug("Resolved '%s' to command '%s'.", name, command.full_name())
        return command

    def category(self, name, /):
        name = name.lower()
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def visible_categories(self):
        return [category for category in self.categories if category.visible_commands()]

    def visible_commands(self):
        return sorted(
            (command for command in self.commands if not command.is_hidden()),
            key=lambda command: command.name,
        )

    def visible_flags(self):
        return visible_flags(self.flags)

    def silence(self, quiet, /):
        """quiet (or restore) both consoles; quiet also disables interaction."""
        for console in (self.writer, self.err_writer):
            if console is not None:
                console.quiet = quiet
        if quiet:
            self.interactive = False

    def configure_io(self, context, /):
        """apply --ansi / --no-ansi / NO_COLOR and --no-interaction to the consoles."""
        decorated = None
        if self.ansi_flag is not None and context.is_set(self.ansi_flag.name):
            decorated = context.bool(self.ansi_flag.name)
        elif self.no_ansi_flag is not None and context.is_set(self.no_ansi_flag.name):
            decorated = not context.bool(self.no_ansi_flag.name)
        elif "NO_COLOR" in os.environ:
            decorated = False

        if decorated is not None:
            for console in (self.writer, self.err_writer):
                console.no_color = not decorated

        if self.no_interaction_flag is not None and context.is_set(self.no_interaction_flag.name):
            self.interactive = self.interactive and not context.bool(self.no_interaction_flag.name)
        elif sys.stdin is None or not sys.stdin.isatty():
            self.interactive = False

    def fix_args(self, arguments, /):
        return fix_args(arguments, self.flags, self.commands, ParsingMode.NORMAL, "")

    def parse_args(self, arguments, /):
        """(flag_set, error) for the global region of arguments."""
        result = flag_set(self.name, self.flags)
        try:
            parse_args(result, self.fix_args(arguments), self.flags, self.flag_env_prefix)
        except CommandException as error:
            return result, error
        return result, None

    def run(self, arguments=(), /):
        """
        run the application with arguments (without the program name).

        raises IncorrectUsageError for global parse and validation failures,
        CommandNotFoundError for unknown commands, and whatever the commands
        and handlers raise (combined into a MultiError with an after failure).
        """
        if isinstance(arguments, str) or not isinstance(arguments, Iterable):
            raise TypeError("run() argument must be an iterable of strings")

        self.setup()

        flags, error = self.parse_args(list(arguments))
        context = Context(self, flags)
        self.configure_io(context)

        if error is None:
            try:
                check_flags_validity(self.flags, flags, context)
            except CommandException as failure:
                error = failure

        if error is not None:
            show_app_help(context)
            self.writer.print()
            raise IncorrectUsageError(error) from error

        error = None
        try:
            if (args := context.args()).present():
                context.command = self.best_command(args.first())
            self._dispatch(context)
        except Exception as exception:
            error = wrap_panic(exception)

        if self.after is not None:
            try:
                self.after(context)
            except Exception as exception:
                error = combine(error, wrap_panic(exception))

        if error is not None:
            raise error

    def _dispatch(self, context, /):
        if self.before is not None:
            try:
                self.before(context)
            except Exception as exception:
                self.writer.print(Text(f"{exception}\n"))
                show_app_help(context)
                raise

        if check_help(context):
            show_app_help_action(context)
            return

        if check_version(context):
            show_version(context)
            return

        if context.command is not None:
            context.command.run(context)
        else:
            self.action(context)

    def __invoke__(self, prompt=Unset, /):
        """
        process entry point.

        prompt
        - Unset: read sys.argv[1:].
        - str: split with shlex.split.
        - Iterable[str]: used as is.

        failures are rendered on the error console, then the process exits
        with exit_code_of(failure). configuration errors propagate.
        """
        if prompt is Unset:
            arguments = sys.argv[1:]
        elif isinstance(prompt, str):
            arguments = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            arguments = list(prompt)
            if not all(isinstance(argument, str) for argument in arguments):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        try:
            self.run(arguments)
        except (CommandException, MultiError) as error:
            handle_error(error, output=self.err_writer, prog=self.name)
            sys.exit(exit_code_of(error))


def invoke(app, prompt=Unset, /):
    """run app as the program; see Application.__invoke__."""
    if not (hasattr(app, "__invoke__") and callable(app.__invoke__)):
        raise TypeError("invoke() first argument must implement __invoke__ method")
    app.__invoke__(prompt)


__all__ = (
    "DEFAULT_USAGE",
    "DEFAULT_VERSION",
    "DEFAULT_CHANNEL",
    "Application",
    "invoke",
)
