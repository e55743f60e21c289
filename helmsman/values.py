"""
Helmsman value cells.

Every declared flag owns one mutable cell that the low-level FlagSet writes
into. A cell parses text (set), exposes the typed value (get) and renders it
back to text (str). Boolean-like cells advertise is_bool so the parser never
consumes a following token for them.

Slice and map cells start from their defaults; the first explicit set()
discards them, later sets accumulate. A value starting with the serialization
prefix followed by JSON replaces the whole content (see serialized()).
"""
import json
import re
from datetime import timedelta
from typing import Protocol, runtime_checkable

from .utils import Unset, coalesce

SERIALIZATION_PREFIX = "sl:::"

_TRUE = frozenset(("1", "t", "T", "TRUE", "true", "True"))
_FALSE = frozenset(("0", "f", "F", "FALSE", "false", "False"))

_DURATION = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60_000_000,
    "h": 3_600_000_000,
}


def parse_bool(text, /):
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f'parsing "{text}": invalid syntax')


def parse_duration(text, /):
    """
    Parse a duration such as "300ms", "-1.5h" or "2h45m" into a timedelta.

    Units: ns, us (or µs), ms, s, m, h. A bare "0" is accepted. Precision
    below one microsecond is rounded away.
    """
    if not isinstance(text, str):
        raise TypeError("parse_duration() argument must be a string")

    body, sign = text, 1
    if body.startswith(("-", "+")):
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)

    total, position = 0.0, 0
    for match in _DURATION.finditer(body):
        if match.start() != position:
            break
        total += float(match[1]) * _DURATION_UNITS[match[2]]
        position = match.end()

    if not body or position != len(body):
        raise ValueError(f'time: invalid duration "{text}"')
    return timedelta(microseconds=sign * total)


def _trim(number, /):
    return f"{number:.6f}".rstrip("0").rstrip(".")


def format_duration(value, /):
    """Render a timedelta the way parse_duration() reads it back ("1h30m0s")."""
    micro = value // timedelta(microseconds=1)
    if micro == 0:
        return "0s"

    sign, micro = ("-" if micro < 0 else ""), abs(micro)
    if micro < 1_000:
        return f"{sign}{micro}µs"
    if micro < 1_000_000:
        return f"{sign}{_trim(micro / 1_000)}ms"

    hours, rest = divmod(micro, 3_600_000_000)
    minutes, rest = divmod(rest, 60_000_000)
    rendered = sign
    if hours:
        rendered += f"{hours}h"
    if hours or minutes:
        rendered += f"{minutes}m"
    return rendered + f"{_trim(rest / 1_000_000)}s"


@runtime_checkable
class Generic(Protocol):
    """Any object with set(text) and __str__ can back a GenericFlag."""

    def set(self, text, /): ...

    def __str__(self): ...


class Value:
    """
    base scalar cell.

    behavior
    - reset(default) restores the cell before a parse (flags are re-applied
      on every run, destinations included).
    - set(text) parses with the subclass' parse() and raises ValueError on
      malformed input.
    """
    is_bool = False
    zero = None
    accepts = ()

    def __init__(self, default=Unset, /):
        self._default = coalesce(default, self.zero)
        self._object = self._default

    def reset(self, default=Unset, /):
        self._default = coalesce(default, self._default)
        self._object = self._default

    def set(self, text, /):
        self._object = self.parse(text)

    def get(self):
        return self._object

    @classmethod
    def parse(cls, text, /):
        raise NotImplementedError

    @classmethod
    def format(cls, object, /):
        return str(object)

    @classmethod
    def coerce(cls, object, /):
        """typed value from a decoded JSON element; raises ValueError on a type mismatch."""
        if isinstance(object, bool) or not isinstance(object, cls.accepts):
            raise ValueError(f"unexpected serialized element {json.dumps(object)}")
        return cls.parse(str(object))

    def __str__(self):
        return self.format(self._object)

    def __repr__(self):
        return f"{type(self).__name__}({self._object!r})"


class BoolValue(Value):
    is_bool = True
    zero = False

    @classmethod
    def parse(cls, text, /):
        return parse_bool(text)

    @classmethod
    def format(cls, object, /):
        return "true" if object else "false"


class IntValue(Value):
    zero = 0
    accepts = (int,)
    minimum = -(1 << 63)
    maximum = (1 << 63) - 1

    @classmethod
    def parse(cls, text, /):
        try:
            number = int(text, 0)
        except ValueError:
            raise ValueError(f'parsing "{text}": invalid syntax') from None
        if not cls.minimum <= number <= cls.maximum:
            raise ValueError(f'parsing "{text}": value out of range')
        return number


class Int64Value(IntValue): ...


class UintValue(IntValue):
    minimum = 0
    maximum = (1 << 64) - 1


class Uint64Value(UintValue): ...


class Float64Value(Value):
    zero = 0.0
    accepts = (int, float)

    @classmethod
    def parse(cls, text, /):
        try:
            return float(text)
        except ValueError:
            raise ValueError(f'parsing "{text}": invalid syntax') from None


class DurationValue(Value):
    zero = timedelta(0)

    @classmethod
    def parse(cls, text, /):
        return parse_duration(text)

    @classmethod
    def format(cls, object, /):
        return format_duration(object)


class StringValue(Value):
    zero = ""
    accepts = (str,)

    @classmethod
    def parse(cls, text, /):
        return text


class SliceValue(Value):
    """
    accumulating cell: defaults are dropped on the first explicit set.
    """
    element = StringValue

    def __init__(self, default=(), /):
        self._default = list(default)
        self._object = list(default)
        self._touched = False

    def reset(self, default=Unset, /):
        if default is not Unset:
            self._default = list(default)
        self._object = list(self._default)
        self._touched = False

    def set(self, text, /):
        if not self._touched:
            self._object = []
            self._touched = True

        if text.startswith(SERIALIZATION_PREFIX):
            self._object = self.deserialize(text.removeprefix(SERIALIZATION_PREFIX))
            return

        self._object.append(self.element.parse(text))

    def get(self):
        return list(self._object)

    def serialized(self):
        return SERIALIZATION_PREFIX + json.dumps(self._object)

    @classmethod
    def deserialize(cls, payload, /):
        """
        typed content of a serialized payload.

        raises ValueError for malformed JSON, a payload that is not a list,
        or an element the element cell rejects.
        """
        objects = json.loads(payload)
        if not isinstance(objects, list):
            raise ValueError(f"serialized value must be a list, got {json.dumps(objects)}")
        return [cls.element.coerce(object) for object in objects]

    @classmethod
    def format(cls, object, /):
        return "[" + " ".join(map(cls.element.format, object)) + "]"


class StringSlice(SliceValue):
    element = StringValue


class IntSlice(SliceValue):
    element = IntValue


class Int64Slice(SliceValue):
    element = Int64Value


class Float64Slice(SliceValue):
    element = Float64Value


class StringMap(SliceValue):
    """
    key=value accumulating cell; keys and values are trimmed.
    """

    def __init__(self, default=None, /):
        self._default = dict(default or {})
        self._object = dict(self._default)
        self._touched = False

    def reset(self, default=Unset, /):
        if default is not Unset:
            self._default = dict(default or {})
        self._object = dict(self._default)
        self._touched = False

    def set(self, text, /):
        if not self._touched:
            self._object = {}
            self._touched = True

        if text.startswith(SERIALIZATION_PREFIX):
            self._object = self.deserialize(text.removeprefix(SERIALIZATION_PREFIX))
            return

        key, separator, value = text.partition("=")
        if not separator:
            raise ValueError("please use key=value format")
        self._object[key.strip()] = value.strip()

    def get(self):
        return dict(self._object)

    @classmethod
    def deserialize(cls, payload, /):
        objects = json.loads(payload)
        if not isinstance(objects, dict):
            raise ValueError(f"serialized value must be an object, got {json.dumps(objects)}")
        return {key: StringValue.coerce(object) for key, object in objects.items()}

    @classmethod
    def format(cls, object, /):
        return ", ".join(f'"{key}={object[key]}"' for key in sorted(object))


__all__ = (
    "SERIALIZATION_PREFIX",
    "parse_bool",
    "parse_duration",
    "format_duration",
    "Generic",
    "Value",
    "BoolValue",
    "IntValue",
    "Int64Value",
    "UintValue",
    "Uint64Value",
    "Float64Value",
    "DurationValue",
    "StringValue",
    "SliceValue",
    "StringSlice",
    "IntSlice",
    "Int64Slice",
    "Float64Slice",
    "StringMap",
)
