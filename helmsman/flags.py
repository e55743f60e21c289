"""
Helmsman flag declarations.

Scope
- Flag and its typed variants: the declarative side of a command-line option.
  A flag has one canonical name and any number of aliases; identity is the
  union of both. Each variant names the value cell it owns and the context
  accessor reading it back.
- VerbosityFlag / QuietFlag: the two built-ins with side effects (logger level
  and console silencing). Everything else built in is a plain BoolFlag,
  produced fresh for every application by the *_flag() factories.
- Registry helpers used by the reordering engine and validation layer:
  find_flag, expand_shortcut, flag_set, check_flags_unicity,
  check_required_flags, check_flags_validity, visible_flags.

Capabilities (implemented by every variant)
- names(), is_required(), is_hidden(), takes_value
- apply(flag_set): register the cell(s) on a low-level FlagSet
- validate(context): run the optional validator on the parsed value
- describe(): (names, description) pair used by the help renderer

Validators
- A validator is called as validator(context, value) for explicitly set flags
  and rejects the value by raising ValueError (or a CommandException).
"""
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import timedelta

from .faults import CommandException, ConfigurationError, FlagValidationError, MissingFlagError
from .flagset import FlagSet
from .utils import SpecType, Unset, coalesce
from .values import (
    BoolValue,
    DurationValue,
    Float64Slice,
    Float64Value,
    Generic,
    Int64Slice,
    Int64Value,
    IntSlice,
    IntValue,
    StringMap,
    StringSlice,
    StringValue,
    Uint64Value,
    UintValue,
    Value,
    format_duration,
)

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER = "value"

VERBOSITY_LEVELS = {
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
    5: 5,  # trace
}
VERBOSITY_SHORTCUTS = 3

_NAME = re.compile(r"[^\s=,]+")
_PLACEHOLDER = re.compile(r"`([^`]*)`")


def _sanitize_name(cls, name, /, field="name"):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} '{field}' must be a string")
    if not _NAME.fullmatch(name) or name.startswith("-"):
        raise ValueError(f"{cls.__typename__} '{field}' must be a non-empty name without dashes prefix, spaces, commas or '=' (got {name!r})")
    return name


def _sanitize_names(cls, names, /, field):
    if isinstance(names, str) or not isinstance(names, Iterable):
        raise TypeError(f"{cls.__typename__} '{field}' must be an iterable of strings")
    return [_sanitize_name(cls, name, field) for name in names]


def _sanitize_metadata(cls, metadata, /):
    """
    validate the fields shared by every flag variant (in place).

    raises
    - TypeError: a field has the wrong type.
    - ValueError: a name is empty or malformed.
    """
    metadata["name"] = _sanitize_name(cls, metadata["name"])
    metadata["aliases"] = _sanitize_names(cls, metadata["aliases"], "aliases")
    metadata["env_vars"] = _sanitize_names(cls, metadata["env_vars"], "env_vars")

    for field in ("usage", "default_text"):
        if not isinstance(metadata[field], str):
            raise TypeError(f"{cls.__typename__} '{field}' must be a string")

    for field in ("hidden", "required"):
        if not isinstance(metadata[field], bool):
            raise TypeError(f"{cls.__typename__} '{field}' must be a boolean")

    if metadata["validator"] is not None and not callable(metadata["validator"]):
        raise TypeError(f"{cls.__typename__} 'validator' must be callable")

    if metadata["destination"] is not None and not isinstance(metadata["destination"], cls.cell):
        raise TypeError(f"{cls.__typename__} 'destination' must be a {cls.cell.__name__}")


def _prefix(name, /):
    return "-" if len(name) == 1 else "--"


def _prefixed_names(names, placeholder, /):
    return ", ".join(
        _prefix(name) + name + ("=" + placeholder if placeholder else "")
        for name in names if name
    )


def _unquote_usage(usage, /):
    """return (placeholder, usage) where a back-quoted word names the placeholder."""
    if match := _PLACEHOLDER.search(usage):
        return match[1], usage[:match.start()] + match[1] + usage[match.end():]
    return "", usage


def _with_env_hint(env_vars, text, /):
    if not env_vars:
        return text
    return f"{text} [${', $'.join(env_vars)}]"


class Flag(metaclass=SpecType):
    """
    base flag declaration.

    parameters
    - name: canonical name, without dashes.
    - aliases: alternative names (single letters render with one dash).
    - usage: help text; a back-quoted word becomes the value placeholder.
    - env_vars: fallback environment variables, consulted when the flag is not
      given on the command line.
    - hidden: keep the flag out of help output.
    - default / default_text: initial value and its help rendering override.
    - required: the flag must be explicitly given (or found in the environment).
    - validator: callable(context, value) raising ValueError to reject a value.
    - destination: a caller-owned cell receiving the parsed value.
    """
    __introspectable__ = (
        "name",
        "aliases",
        "usage",
        "env_vars",
        "hidden",
        "default",
        "default_text",
        "required",
    )
    cell = Value
    accessor = None
    default_types = object
    takes_value = True

    def __init__(
            self,
            name,
            /,
            *,
            aliases=(),
            usage="",
            env_vars=(),
            hidden=False,
            default=Unset,
            default_text="",
            required=False,
            validator=None,
            destination=None,
    ):
        metadata = {
            "name": name,
            "aliases": aliases,
            "usage": usage,
            "env_vars": env_vars,
            "hidden": hidden,
            "default_text": default_text,
            "required": required,
            "validator": validator,
            "destination": destination,
        }
        _sanitize_metadata(type(self), metadata)

        self._name = metadata["name"]
        self._aliases = metadata["aliases"]
        self._usage = metadata["usage"]
        self._env_vars = metadata["env_vars"]
        self._hidden = metadata["hidden"]
        self._default_text = metadata["default_text"]
        self._required = metadata["required"]
        self._validator = metadata["validator"]
        self._destination = metadata["destination"]
        self._default = self._sanitize_default(default)

    def _sanitize_default(self, default, /):
        default = coalesce(default, self.cell.zero)
        if not isinstance(default, self.default_types) or isinstance(default, bool) is not (self.default_types is bool):
            raise TypeError(f"{type(self).__typename__} 'default' must be a {self.cell.zero.__class__.__name__}")
        return default

    def names(self):
        return [self._name, *self._aliases]

    def is_required(self):
        return self._required

    def is_hidden(self):
        return self._hidden

    def _cell(self):
        return self.cell()

    def apply(self, flag_set, /):
        cell = self._destination if self._destination is not None else self._cell()
        cell.reset(self._default)
        flag_set.var(cell, self._name, self._usage)

    def lookup(self, context, /):
        return getattr(context, self.accessor)(self._name)

    def validate(self, context, /):
        if self._validator is not None:
            self._validator(context, self.lookup(context))

    def _placeholder(self, placeholder, /):
        return placeholder or DEFAULT_PLACEHOLDER

    def _default_string(self):
        if self._default_text:
            return self._default_text
        if isinstance(self._default, str):
            return f'"{self._default}"' if self._default else ""
        return self.cell.format(self._default)

    def describe(self):
        """
        (names, description) for help output, e.g.
        ("-n, --name=value", 'what it does [default: "x"] (required) [$NAME]')
        """
        placeholder, usage = _unquote_usage(self._usage)
        description = usage
        if default := self._default_string():
            description += f" [default: {default}]"
        if self._required:
            description += " (required)"
        return (
            _prefixed_names(self.names(), self._placeholder(placeholder)),
            _with_env_hint(self._env_vars, description.strip()),
        )

    def __str__(self):
        return "\t".join(self.describe())


class BoolFlag(Flag):
    cell = BoolValue
    accessor = "bool"
    default_types = bool
    takes_value = False

    def _placeholder(self, placeholder, /):
        return ""

    def _default_string(self):
        return self._default_text or ("true" if self._default else "")


class IntFlag(Flag):
    cell = IntValue
    accessor = "int"
    default_types = int


class Int64Flag(IntFlag):
    cell = Int64Value
    accessor = "int64"


class UintFlag(IntFlag):
    cell = UintValue
    accessor = "uint"

    def _sanitize_default(self, default, /):
        if (default := super()._sanitize_default(default)) < 0:
            raise ValueError(f"{type(self).__typename__} 'default' cannot be negative")
        return default


class Uint64Flag(UintFlag):
    cell = Uint64Value
    accessor = "uint64"


class Float64Flag(Flag):
    cell = Float64Value
    accessor = "float64"
    default_types = int | float

    def _sanitize_default(self, default, /):
        return float(super()._sanitize_default(default))


class DurationFlag(Flag):
    cell = DurationValue
    accessor = "duration"
    default_types = timedelta

    def _default_string(self):
        return self._default_text or format_duration(self._default)


class StringFlag(Flag):
    cell = StringValue
    accessor = "string"
    default_types = str


class SliceFlag(Flag):
    """
    repeatable flag; each occurrence appends one element.

    without a destination the default is the given iterable (empty otherwise);
    with one, the destination's own initial content is kept as the default.
    """
    cell = StringSlice
    accessor = "string_slice"
    element_types = str

    def _sanitize_default(self, default, /):
        if default is Unset:
            return Unset
        if isinstance(default, str) or not isinstance(default, Iterable):
            raise TypeError(f"{type(self).__typename__} 'default' must be an iterable")
        default = list(default)
        for element in default:
            if not isinstance(element, self.element_types) or isinstance(element, bool):
                raise TypeError(f"{type(self).__typename__} 'default' elements must be of type {self.element_types}")
        return default

    def _defaults(self):
        if self._default is not Unset:
            return self._default
        if self._destination is not None:
            return self._destination.get()
        return []

    def _default_string(self):
        if self._default_text:
            return self._default_text
        return ", ".join(map(self.cell.element.format, self._defaults()))

    @property
    def default(self):
        return list(self._defaults())


class StringSliceFlag(SliceFlag):
    def _default_string(self):
        if self._default_text:
            return self._default_text
        return ", ".join(f'"{element}"' for element in self._defaults() if element)


class IntSliceFlag(SliceFlag):
    cell = IntSlice
    accessor = "int_slice"
    element_types = int


class Int64SliceFlag(SliceFlag):
    cell = Int64Slice
    accessor = "int64_slice"
    element_types = int


class Float64SliceFlag(SliceFlag):
    cell = Float64Slice
    accessor = "float64_slice"
    element_types = int | float


class StringMapFlag(SliceFlag):
    cell = StringMap
    accessor = "string_map"

    def _sanitize_default(self, default, /):
        if default is Unset:
            return Unset
        if not isinstance(default, Mapping):
            raise TypeError(f"{type(self).__typename__} 'default' must be a mapping")
        return {str(key): str(value) for key, value in default.items()}

    def _defaults(self):
        if self._default is not Unset:
            return self._default
        if self._destination is not None:
            return self._destination.get()
        return {}

    def _placeholder(self, placeholder, /):
        return placeholder or "key=value"

    def _default_string(self):
        return self._default_text or StringMap.format(self._defaults())

    @property
    def default(self):
        return dict(self._defaults())


class GenericFlag(Flag):
    """
    flag backed by any object implementing set(text) and __str__.

    the destination is mandatory and is never reset between runs.
    """
    cell = Generic
    accessor = "generic"

    def __init__(self, name, /, *, destination, **options):
        if not isinstance(destination, Generic):
            raise TypeError(f"{type(self).__typename__} 'destination' must implement set() and __str__()")
        super().__init__(name, destination=destination, **options)

    def _sanitize_default(self, default, /):
        return None

    def apply(self, flag_set, /):
        flag_set.var(self._destination, self._name, self._usage)

    def _default_string(self):
        return self._default_text or str(self._destination)


class Verbosity:
    """
    verbosity level of one application, mirrored on a logger.

    levels go from 1 (errors only) to 5 (trace); see VERBOSITY_LEVELS.
    """

    def __init__(self, logger=Unset, level=1, /):
        self.logger = logging.getLogger(coalesce(logger, "helmsman")) if not isinstance(logger, logging.Logger) else logger
        self._level = level

    @property
    def level(self):
        return self._level

    @level.setter
    def level(self, level):
        if level not in VERBOSITY_LEVELS:
            raise ValueError(f"The provided verbosity level '{level}' is not in the range [1,{len(VERBOSITY_LEVELS)}]")
        self._level = level
        self.logger.setLevel(VERBOSITY_LEVELS[level])

    def is_verbose(self):
        return self._level > 1

    def is_debug(self):
        return self._level > 3


class LogLevelValue(Value):
    """cell for the canonical verbosity flag; writes through to a Verbosity."""
    zero = 1

    def __init__(self, verbosity, /):
        super().__init__()
        self._verbosity = verbosity

    def reset(self, default=Unset, /):
        super().reset(default)
        self._verbosity.level = self._object

    @classmethod
    def parse(cls, text, /):
        try:
            return int(text)
        except ValueError:
            raise ValueError(f'parsing "{text}": invalid syntax') from None

    def set(self, text, /):
        level = self.parse(text)
        self._verbosity.level = level
        self._object = level

    def get(self):
        return self._verbosity.level


class LogLevelShortcutValue(Value):
    """
    boolean-like cell for -v/-vv/--verbose: setting it sets the canonical
    flag, so the canonical name is reported as explicitly set as well.
    """
    is_bool = True
    zero = ""

    def __init__(self, flag_set, target, level, /):
        super().__init__()
        self._flag_set = flag_set
        self._target = target
        self._level = str(level)

    def reset(self, default=Unset, /):
        pass

    def set(self, text, /):
        if text not in ("", "true"):
            self._flag_set.set(self._target, text)
        else:
            self._flag_set.set(self._target, self._level)

    def __str__(self):
        return ""


class VerbosityFlag(Flag):
    """
    the -v|vv|vvv, --verbose, --log-level family.

    shortcuts never take a following value; "-v=3" forwards 3 explicitly.
    expand_shortcut() keeps these names as typed since each shortcut is a
    cell of its own.
    """
    cell = LogLevelValue
    accessor = "int"
    default_types = int
    takes_value = False

    def __init__(
            self,
            name="log-level",
            alias="verbose",
            short_alias="v",
            /,
            *,
            usage="Increase the verbosity of messages: 1 for normal output, 2 and 3 for more verbose outputs and 4 for debug",
            hidden=False,
            default=1,
            logger=Unset,
    ):
        super().__init__(name, aliases=(alias,), usage=usage, hidden=hidden, default=default)
        self._short_alias = _sanitize_name(type(self), short_alias, "short_alias")
        self._bound = logger is not Unset
        self.verbosity = Verbosity(logger, default)

    def for_app(self, application, /):
        """bind to the application's root logger unless a logger was given."""
        if not self._bound:
            self.verbosity.logger = logging.getLogger(application.name)
            self._bound = True
        return self

    def names(self):
        return [
            self._name,
            *self._aliases,
            *(self._short_alias * index for index in range(1, VERBOSITY_SHORTCUTS + 1)),
        ]

    def apply(self, flag_set, /):
        cell = LogLevelValue(self.verbosity)
        cell.reset(self._default)
        flag_set.var(cell, self._name, self._usage)
        for alias in self._aliases:
            flag_set.var(LogLevelShortcutValue(flag_set, self._name, 3), alias, "")
        for index in range(1, VERBOSITY_SHORTCUTS + 1):
            flag_set.var(LogLevelShortcutValue(flag_set, self._name, index + 1), self._short_alias * index, "")

    def validate(self, context, /):
        pass

    def describe(self):
        _, usage = _unquote_usage(self._usage)
        names = _prefix(self._short_alias) + "|".join(
            self._short_alias * index for index in range(1, VERBOSITY_SHORTCUTS + 1)
        )
        for alias in self._aliases:
            names += ", " + _prefix(alias) + alias
        names += ", " + _prefix(self._name) + self._name
        return names, f"{usage.strip()} [default: {self._default}]"


class QuietValue(BoolValue):
    """boolean cell silencing the owning application's consoles when true."""

    def __init__(self, application=None, /):
        super().__init__()
        self._application = application

    def set(self, text, /):
        super().set(text)
        if self._application is not None:
            self._application.silence(self._object)


class QuietFlag(BoolFlag):
    cell = QuietValue

    def __init__(self, name="quiet", /, *, aliases=("q",), usage="Do not output any message", hidden=False, application=None):
        super().__init__(name, aliases=aliases, usage=usage, hidden=hidden)
        self._application = application

    def for_app(self, application, /):
        return QuietFlag(self._name, aliases=self._aliases, usage=self._usage, hidden=self._hidden, application=application)

    def _cell(self):
        return QuietValue(self._application)


def help_flag():
    return BoolFlag("help", aliases=("h",), usage="Show help")


def version_flag():
    return BoolFlag("V", usage="Print the version")


def no_interaction_flag():
    return BoolFlag("no-interaction", usage="Disable all interactions")


def ansi_flag():
    return BoolFlag("ansi", usage="Force ANSI output")


def no_ansi_flag():
    return BoolFlag("no-ansi", usage="Disable ANSI output")


def find_flag(flags, name, /):
    for flag in flags:
        if name in flag.names():
            return flag
    return None


def expand_shortcut(flags, name, /):
    """canonical name of the flag answering to name; verbosity names stay as given."""
    if (flag := find_flag(flags, name)) is not None:
        if isinstance(flag, VerbosityFlag):
            return name
        return flag.name
    return name


def visible_flags(flags, /):
    return [flag for flag in flags if not flag.is_hidden()]


def flag_set(name, flags, /):
    """
    build a FlagSet registering every flag; duplicated names are fatal.
    """
    registered = set()
    result = FlagSet(name)
    for flag in flags:
        for alias in flag.names():
            if alias in registered:
                raise ConfigurationError(f"{name} flag redefined: {alias}" if name else f"flag redefined: {alias}")
            registered.add(alias)
        flag.apply(result)
    return result


def check_flags_unicity(application_flags, command_flags, command_name, /):
    """a command may not reuse any name or alias of the application flags."""
    taken = {alias for flag in application_flags for alias in flag.names()}

    for flag in command_flags:
        for alias in flag.names():
            if alias not in taken:
                continue
            if alias == flag.name:
                raise ConfigurationError(f"flag redefined by command {command_name}: {alias}")
            raise ConfigurationError(f"flag redefined by command {command_name}: {alias} (alias for {flag.name})")


def check_required_flags(flags, flag_set, /):
    for flag in flags:
        if flag.is_required() and not flag_set.is_set(flag.name):
            raise MissingFlagError(f'Required flag "{flag.name}" is not set')


def check_flags_validity(flags, flag_set, context, /):
    """run validators of explicitly set flags, in declaration order."""
    for flag in flags:
        if not flag_set.is_set(flag.name):
            continue
        try:
            flag.validate(context)
        except (ValueError, CommandException) as error:
            raise FlagValidationError(f'invalid value for flag "{flag.name}": {error}') from error


__all__ = (
    "DEFAULT_PLACEHOLDER",
    "VERBOSITY_LEVELS",
    "VERBOSITY_SHORTCUTS",
    "Flag",
    "BoolFlag",
    "IntFlag",
    "Int64Flag",
    "UintFlag",
    "Uint64Flag",
    "Float64Flag",
    "DurationFlag",
    "StringFlag",
    "SliceFlag",
    "StringSliceFlag",
    "IntSliceFlag",
    "Int64SliceFlag",
    "Float64SliceFlag",
    "StringMapFlag",
    "GenericFlag",
    "Verbosity",
    "LogLevelValue",
    "LogLevelShortcutValue",
    "VerbosityFlag",
    "QuietValue",
    "QuietFlag",
    "help_flag",
    "version_flag",
    "no_interaction_flag",
    "ansi_flag",
    "no_ansi_flag",
    "find_flag",
    "expand_shortcut",
    "visible_flags",
    "flag_set",
    "check_flags_unicity",
    "check_required_flags",
    "check_flags_validity",
)
