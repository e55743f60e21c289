"""
Helmsman invocation context.

A Context wraps the FlagSet parsed for one level of the invocation (the
application, then the running command) and links to its parent. Lookups walk
the lineage from the innermost context outwards and stop at the first level
declaring the name; aliases are expanded again at every level, against the
command's flags first and the application's flags second.

Typed accessors never raise: a missing flag or a value that does not parse as
the requested kind yields the kind's zero value.
"""
from .arguments import Args
from .faults import FlagSetError
from .flags import expand_shortcut, find_flag
from .values import (
    BoolValue,
    DurationValue,
    Float64Slice,
    Float64Value,
    Int64Slice,
    Int64Value,
    IntSlice,
    IntValue,
    StringMap,
    StringSlice,
    StringValue,
    Uint64Value,
    UintValue,
)


class Context:
    """
    parameters
    - app: the running Application.
    - flag_set: the FlagSet parsed at this level.
    - parent: the enclosing context (None for the application level).
    - command: the Command this level was parsed for, if any.
    """

    def __init__(self, app, flag_set, parent=None, /, *, command=None):
        self.app = app
        self.flag_set = flag_set
        self.parent = parent
        self.command = command
        self._args = None

    def lineage(self):
        """this context and its ancestors, from child to parent."""
        lineage = []
        current = self
        while current is not None:
            lineage.append(current)
            current = current.parent
        return lineage

    def raw_args(self):
        return Args(self.flag_set.args())

    def args(self):
        """positionals without "--", bound to the command of this level."""
        if self._args is None:
            self._args = Args([argument for argument in self.flag_set.args() if argument != "--"], self.command)
        return self._args

    def narg(self):
        return self.args().len()

    def _expand(self, name, /):
        if self.command is not None:
            name = expand_shortcut(self.command.flags, name)
        if self.app is not None:
            name = expand_shortcut(self.app.flags, name)
        return name

    def lookup_flag_set(self, name, /):
        """
        (flag_set, canonical name) of the first level declaring name, or
        (None, name).
        """
        for context in self.lineage():
            name = context._expand(name)
            if context.flag_set is not None and context.flag_set.lookup(name) is not None:
                return context.flag_set, name
        return None, name

    def lookup_raw_flag(self, name, /):
        """FlagEntry answering to name, or None."""
        flag_set, name = self.lookup_flag_set(name)
        if flag_set is None:
            return None
        return flag_set.lookup(name)

    def lookup_flag(self, name, /):
        """the Flag declaration answering to name, commands first, then the application."""
        for context in self.lineage():
            if context.command is not None and (flag := find_flag(context.command.flags, name)) is not None:
                return flag
        if self.app is not None:
            return find_flag(self.app.flags, name)
        return None

    def has_flag(self, name, /):
        return self.lookup_flag(name) is not None

    def set(self, name, value, /):
        flag_set, canonical = self.lookup_flag_set(name)
        if flag_set is None:
            raise FlagSetError(f"no such flag -{name}")
        flag_set.set(canonical, value)

    def is_set(self, name, /):
        flag_set, canonical = self.lookup_flag_set(name)
        return flag_set is not None and flag_set.is_set(canonical)

    def _scalar(self, name, kind, /):
        if (entry := self.lookup_raw_flag(name)) is None:
            return kind.zero
        if isinstance(entry.value, kind):
            return entry.value.get()
        try:
            return kind.parse(str(entry.value))
        except ValueError:
            return kind.zero

    def _collection(self, name, kind, empty, /):
        if (entry := self.lookup_raw_flag(name)) is None or not isinstance(entry.value, kind):
            return empty()
        return entry.value.get()

    def bool(self, name, /):
        return self._scalar(name, BoolValue)

    def int(self, name, /):
        return self._scalar(name, IntValue)

    def int64(self, name, /):
        return self._scalar(name, Int64Value)

    def uint(self, name, /):
        return self._scalar(name, UintValue)

    def uint64(self, name, /):
        return self._scalar(name, Uint64Value)

    def float64(self, name, /):
        return self._scalar(name, Float64Value)

    def duration(self, name, /):
        return self._scalar(name, DurationValue)

    def string(self, name, /):
        return self._scalar(name, StringValue)

    def string_slice(self, name, /):
        return self._collection(name, StringSlice, list)

    def int_slice(self, name, /):
        return self._collection(name, IntSlice, list)

    def int64_slice(self, name, /):
        return self._collection(name, Int64Slice, list)

    def float64_slice(self, name, /):
        return self._collection(name, Float64Slice, list)

    def string_map(self, name, /):
        return self._collection(name, StringMap, dict)

    def generic(self, name, /):
        """the cell itself (a Generic destination), or None."""
        if (entry := self.lookup_raw_flag(name)) is None:
            return None
        return entry.value

    def __repr__(self):
        command = self.command.full_name() if self.command is not None else None
        return f"context(command={command!r}, args={self.flag_set.args() if self.flag_set is not None else []!r})"


__all__ = (
    "Context",
)
