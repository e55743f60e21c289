"""
Helmsman faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain to keep copy consistent and make logs/searches
  predictable.
- ConfigurationError: declaration mistakes made by the application author
  (redefined flags, impossible argument shapes). Raised immediately, never
  confused with runtime usage errors.
- CommandException: base type for runtime failures. Carries a message plus
  options and knows how to render itself through rich.
- MultiError: an ExceptionGroup combining a primary failure with the failure
  of an "after" hook.
- exit_code_of(), wrap_panic(), handle_error(): the helpers the top-level
  runner uses to turn any failure into output and a process exit status.

Exit codes
- An error carrying an explicit exit_code (CommandNotFoundError -> 3, ExitError)
  surfaces that code. A MultiError surfaces the first member carrying one.
  Everything else exits with 1.

Integration
- Parsing and validation layers raise the usage subclasses; the application
  wraps them into IncorrectUsageError after showing contextual help.
- Handlers raise CommandException subclasses to fail; any other exception
  escaping a handler is a panic and gets wrapped into WrappedPanic.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - configuration (100xx)
      • REDEFINED_FLAG, INVALID_ARGUMENT_SHAPE
    - routing (111xx)
      • UNKNOWN_COMMAND
    - flags (1111x)
      • UNKNOWN_FLAG, BAD_FLAG_SYNTAX, FLAG_VALUE_REQUIRED, INVALID_FLAG_VALUE,
        MISSING_FLAG, INVALID_ENVIRONMENT_VALUE, HELP_REQUESTED, FLAG_VALIDATION
    - positionals (1112x)
      • MISSING_ARGUMENT, TOO_MANY_ARGUMENTS
    - usage wrapper and delegated errors (1113x)
      • INCORRECT_USAGE, DELEGATED_ERROR, EXPLICIT_EXIT, PANIC, MULTIPLE_ERRORS
    """
    # --- configuration errors (100xx) ---
    REDEFINED_FLAG              = 10001
    INVALID_ARGUMENT_SHAPE      = 10002

    # --- routing errors (111xx) ---
    UNKNOWN_COMMAND             = 11101

    # --- flag errors (1111x) ---
    UNKNOWN_FLAG                = 11111
    BAD_FLAG_SYNTAX             = 11112
    FLAG_VALUE_REQUIRED         = 11113
    INVALID_FLAG_VALUE          = 11114
    MISSING_FLAG                = 11115
    INVALID_ENVIRONMENT_VALUE   = 11116
    HELP_REQUESTED              = 11117
    FLAG_VALIDATION             = 11118

    # --- positional errors (1112x) ---
    MISSING_ARGUMENT            = 11121
    TOO_MANY_ARGUMENTS          = 11122

    # --- usage and delegated errors (1113x) ---
    INCORRECT_USAGE             = 11130
    DELEGATED_ERROR             = 11131
    EXPLICIT_EXIT               = 11132
    PANIC                       = 11133
    MULTIPLE_ERRORS             = 11134

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class ConfigurationError(Exception):
    """
    raised when declarations cannot work (duplicate flag names, arguments
    declared in an impossible order). this is a programming error in the
    application definition, surfaced at setup time.
    """
    code = FaultCode.REDEFINED_FLAG


class ArgumentShapeError(ConfigurationError):
    """positional slots declared in an order that cannot be bound."""
    code = FaultCode.INVALID_ARGUMENT_SHAPE


class CommandException(Exception):
    """
    base runtime failure carrying a message and rendering options.

    options understood by the renderer
    - prog: program name shown in the header.
    - hint: one-line actionable hint shown below the message.
    - colorful: when False, styles are suppressed (defaults to True).
    - fancy: when True, the fault is wrapped in a panel.
    """
    code = FaultCode.DELEGATED_ERROR
    title = "command failed"
    exit_code = None

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    def __rich__(self):
        return render(self, **self.options)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        clone = type(self).__new__(type(self), *self.args)
        clone.__dict__.update(self.__dict__)
        clone.options = MappingProxyType({**self.options, **overrides})
        return clone


class IncorrectUsageError(CommandException):
    """wraps a parse or validation failure after contextual help was shown."""
    code = FaultCode.INCORRECT_USAGE
    title = "incorrect usage"

    def __init__(self, cause, /, **options):
        super().__init__(f"Incorrect usage: {cause}", **options)
        self.cause = cause


class FlagSetError(CommandException):
    code = FaultCode.UNKNOWN_FLAG
    title = "invalid flag"


class BadFlagSyntaxError(FlagSetError):
    code = FaultCode.BAD_FLAG_SYNTAX


class FlagValueRequiredError(FlagSetError):
    code = FaultCode.FLAG_VALUE_REQUIRED


class InvalidFlagValueError(FlagSetError):
    code = FaultCode.INVALID_FLAG_VALUE


class HelpRequested(FlagSetError):
    code = FaultCode.HELP_REQUESTED
    title = "help requested"


class MissingFlagError(CommandException):
    code = FaultCode.MISSING_FLAG
    title = "missing flag"


class EnvironmentFlagError(CommandException):
    code = FaultCode.INVALID_ENVIRONMENT_VALUE
    title = "invalid environment value"


class FlagValidationError(CommandException):
    code = FaultCode.FLAG_VALIDATION
    title = "invalid flag value"


class MissingArgumentError(CommandException):
    code = FaultCode.MISSING_ARGUMENT
    title = "missing argument"


class TooManyArgumentsError(CommandException):
    code = FaultCode.TOO_MANY_ARGUMENTS
    title = "too many arguments"


class CommandNotFoundError(CommandException):
    """
    the user asked for a command nobody declared.

    alternatives are computed once, against the visible commands of the
    application, and appended to the message as suggestions.
    """
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"
    exit_code = 3

    def __init__(self, command, app, /, **options):
        from .help import find_alternatives

        self.command = command
        self.alternatives = find_alternatives(command, app.visible_commands())

        message = f'Command "{command}" does not exist.'
        match self.alternatives:
            case []:
                pass
            case [alternative]:
                message += "\n\nDid you mean this?\n    " + alternative
            case _:
                message += "\n\nDid you mean one of these?\n    " + "\n    ".join(self.alternatives)

        super().__init__(message, **{"prog": app.name} | options)


class ExitError(CommandException):
    """raise from a handler to fail with a specific process exit status."""
    code = FaultCode.EXPLICIT_EXIT

    def __init__(self, message, exit_code, /, **options):
        if not isinstance(exit_code, int):
            raise TypeError("ExitError() exit code must be an integer")
        super().__init__(message, **options)
        self.exit_code = exit_code


class WrappedPanic(CommandException):
    """an unexpected exception escaped a handler; the original is kept as __cause__."""
    code = FaultCode.PANIC
    title = "panic"

    def __init__(self, cause, /, **options):
        super().__init__(f"panic: {cause}", **options)
        self.__cause__ = cause


class MultiError(ExceptionGroup):
    """
    combination of a primary failure and the failure of an "after" hook.

    the message joins member messages with newlines; exit_code is the one of
    the first member carrying an explicit code.
    """

    def __new__(cls, exceptions, /, **options):
        return super().__new__(cls, "multiple errors", tuple(exceptions))

    def __init__(self, exceptions, /, **options):
        super().__init__("multiple errors", tuple(exceptions))
        self.options = MappingProxyType(options)

    def __str__(self):
        return "\n".join(map(str, self.exceptions))

    def derive(self, exceptions, /):
        return MultiError(exceptions, **self.options)

    def errors(self):
        return list(self.exceptions)

    @property
    def exit_code(self):
        for exception in self.exceptions:
            if (code := getattr(exception, "exit_code", None)) is not None:
                return code
        return None

    def __rich__(self):
        return render(self, **self.options)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return MultiError(self.exceptions, **{**self.options, **overrides})


def combine(error, other, /):
    """
    combine a prior failure with a later one; the later never replaces the prior.
    """
    if error is None:
        return other
    if other is None:
        return error
    return MultiError((error, other))


def wrap_panic(exception, /):
    """
    turn anything escaping a handler into a command failure.

    CommandException and MultiError instances (WrappedPanic included) are
    returned unchanged, so nested runners never wrap twice.
    """
    if isinstance(exception, CommandException | MultiError):
        return exception
    return WrappedPanic(exception)


def exit_code_of(error, /):
    """
    process exit status for a failure: 0 for None, the carried code, or 1.
    """
    if error is None:
        return 0
    if (code := getattr(error, "exit_code", None)) is not None:
        return code
    return 1


def render(fault, /, **options):
    """
    build the rich renderable for a fault.

    palette keys (override through __styles__ in __main__)
    - prog-name, code, error-title, error-message, hint-arrow, hint, title
    """
    main = __import__("__main__")
    colorful = options.get("colorful", True)

    styles = defaultdict(str, {
        # header parts
        "prog-name": "bold #E6E6F0",  # near-white program name
        "code": "bold #00E5FF",  # neon cyan fault code
        "error-title": "bold #FF4DA6",  # friendly pinky title
        "title": "bold #FF4DA6",

        # body
        "error-message": "#C8C8D0",  # soft light gray message
        "hint-arrow": "#9CE19C dim",  # gentle green arrow
        "hint": "italic #9CE19C",  # gentle green hint text
    } | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    prog = text(options.get("prog") or getattr(main, "__prog__", "helmsman"), styler("prog-name"))

    if isinstance(fault, MultiError):
        header = Text.assemble("[ ", prog, " — ", text(fault.message.title(), styler("title")), " ]")
        renders = [render(exception, **options) for exception in fault.exceptions]
        if options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")
        return Group(header, *renders)

    code = getattr(fault, "code", FaultCode.DELEGATED_ERROR)
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize(), styler("code")),
        " | ",
        text(getattr(fault, "title", "error").title(), styler("error-title")),
        " ]"
    )
    message = text(str(fault), styler("error-message"))
    renders = [message]
    if hint := options.get("hint"):
        renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

    if options.get("fancy", False):
        return Panel(Group(*renders), title=header, title_align="left")

    return Group(header, *renders)


def handle_error(error, /, *, output=None, **options):
    """
    print a failure once, member by member for multi-errors.

    empty messages are skipped. output defaults to the module stderr console.
    """
    if error is None:
        return
    output = output if output is not None else console
    if isinstance(error, MultiError):
        for exception in error.exceptions:
            handle_error(exception, output=output, **options)
        return
    if not str(error):
        return
    if isinstance(error, CommandException):
        output.print(error.__replace__(**options))
    else:
        output.print(render(error, **options))


__all__ = (
    "FaultCode",
    "ConfigurationError",
    "ArgumentShapeError",
    "CommandException",
    "IncorrectUsageError",
    "FlagSetError",
    "BadFlagSyntaxError",
    "FlagValueRequiredError",
    "InvalidFlagValueError",
    "HelpRequested",
    "MissingFlagError",
    "EnvironmentFlagError",
    "FlagValidationError",
    "MissingArgumentError",
    "TooManyArgumentsError",
    "CommandNotFoundError",
    "ExitError",
    "WrappedPanic",
    "MultiError",
    "combine",
    "wrap_panic",
    "exit_code_of",
    "render",
    "handle_error",
)
