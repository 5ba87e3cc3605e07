r"""
Switchyard flag specifications and flag sets.

Overview
- Specs
  • Option: named, value-bearing flag (-name value, -name=value, --name value, --name=value).
  • Flag: named boolean switch (-name, --name, or -name=true|false|1|0|t|f).

- FlagSet
  • Holds the specs of one command scope, keyed by bare name (no dashes).
  • Current values live on the set and persist across parses (like bound variables).
  • parse(tokens) consumes leading flag tokens and keeps the remainder in `args`.

- bind_flags(bind, *values)
  • Build a flag-declaration hook that calls bind(flags, value) for each value.

Grammar accepted by FlagSet.parse
- Parsing stops before the first non-flag token; a bare "-" is a non-flag.
- "--" is consumed and stops parsing.
- "---x" and "-=x" are malformed ("bad flag syntax").
- An undeclared "help"/"h" raises HelpRequested; any other undeclared name is a
  FlagError ("flag provided but not defined").
- A value-bearing flag with no "=value" consumes the next token verbatim, even
  when it looks like a flag.

Privacy
- A description starting with "PRIVATE:" marks the spec private: help listings
  omit it unless asked to include private flags; parsing is unaffected.

Quick example:
    >>> flags = FlagSet("tool")
    >>> flags.option("label", descr="Label text")
    >>> flags.flag("n", descr="Do not print a trailing newline")
    >>> flags.parse(["-n", "--label=x", "rest"])
    >>> flags["label"], flags["n"], flags.args
    ('x', True, ['rest'])
"""
import functools
import operator

from .faults import (
    HelpRequested,
    FlagSyntaxError,
    UndefinedFlagError,
    MissingFlagValueError,
    InvalidFlagValueError,
)
from .utils import *

PRIVATE = "PRIVATE:"

HELP = frozenset({"help", "h"})

_booleans = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}

_metavars = {str: "string", int: "int", float: "float"}


def parse_bool(value, /):
    """
    Convert a boolean spelling (1, t, true, 0, f, false in the usual cases) to bool.
    """
    try:
        return _booleans[value]
    except KeyError:
        raise ValueError("parse error") from None


class FlagType(type):
    """
    Metaclass for flag specs: mirrored read-only properties and stable reprs.

    Conventions
    - __typename__ is derived from the class name ("Option" -> "option").
    - every name listed in __introspectable__ becomes a read-only property
      backed by "_{name}" on the instance.
    - sealed=True (class keyword) forbids further subclassing.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, *, sealed=False, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": typename(name),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
            **options,
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        if sealed:
            @rename("__init_subclass__")
            def __init_subclass__(cls, **options):  # NOQA: F-841
                raise TypeError(f"type {self.__name__!r} is not an acceptable base type")
            self.__init_subclass__ = classmethod(__init_subclass__)

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate the fields shared by every spec (name, descr, callback).

    - name: non-empty string, no leading "-", no "=" (the bare flag name).
    - descr: string (may be empty); Unset becomes "".
    - callback: Unset or callable; invoked with the converted value on each set.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} name must be a string")
    elif not name or name.startswith("-") or "=" in name or name != name.strip():
        raise ValueError(f"{cls.__typename__} name {name!r} is not a valid flag name")

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    metadata["descr"] = coalesce(descr, "")

    if metadata["callback"] is not Unset and not callable(metadata["callback"]):
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")


class _Spec(metaclass=FlagType):
    boolean = False

    @property
    def private(self):
        """
        True when the description carries the reserved PRIVATE: marker.
        """
        return self._descr.startswith(PRIVATE)

    @property
    def usage(self):
        """
        Description text with the PRIVATE: marker (and one following space) removed.
        """
        descr = self._descr
        if descr.startswith(PRIVATE):
            descr = descr.removeprefix(PRIVATE).removeprefix(" ")
        return descr

    def convert(self, value, /):
        raise NotImplementedError

    def notify(self, value, /):
        if self._callback is not Unset:
            self._callback(value)


class Option(_Spec, sealed=True):
    """
    Named, value-bearing flag specification.

    Parameters
    - name: bare flag name; "-name" and "--name" both select it.
    - type: converter applied to the raw token (ValueError/TypeError mean "invalid value").
    - default: initial value of the flag in its FlagSet (None when Unset).
    - descr: help text; "PRIVATE:" prefix hides it from listings.
    - metavar: label for the value in help (defaults to the converter's kind).
    - callback: called with every converted value.
    """

    __introspectable__ = (
        "name",
        "type",
        "default",
        "descr",
        "metavar",
    )

    def __init__(self, name, /, *, type=str, default=Unset, descr=Unset, metavar=Unset, callback=Unset):
        metadata = {
            "name": name,
            "type": type,
            "default": coalesce(default),
            "descr": descr,
            "metavar": metavar,
            "callback": callback,
        }
        _sanitize_metadata(Option, metadata)

        if not callable(metadata["type"]):
            raise TypeError(f"{Option.__typename__} 'type' must be callable")

        if not isinstance(metavar := metadata["metavar"], str | Unset):
            raise TypeError(f"{Option.__typename__} 'metavar' must be a string")
        elif isinstance(metavar, str) and not (metavar := metavar.strip()):
            raise ValueError(f"{Option.__typename__} 'metavar' cannot be empty")
        metadata["metavar"] = coalesce(metavar, _metavars.get(type, "value"))

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def convert(self, value, /):
        return self._type(value)


class Flag(_Spec, sealed=True):
    """
    Named boolean switch; presence sets it to True.
    """

    __introspectable__ = (
        "name",
        "default",
        "descr",
    )

    boolean = True
    metavar = None

    def __init__(self, name, /, *, default=False, descr=Unset, callback=Unset):
        metadata = {
            "name": name,
            "default": bool(default),
            "descr": descr,
            "callback": callback,
        }
        _sanitize_metadata(Flag, metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def convert(self, value, /):
        return parse_bool(value)


class FlagSet:
    """
    The flags of one command scope plus their current values.

    Lookup is by bare name. Iteration yields specs in lexical name order, which
    is also the order used by help listings. `flags[name]` returns the current
    value of a declared flag.
    """

    def __init__(self, name="", /):
        if not isinstance(name, str):
            raise TypeError("FlagSet() argument must be a string")
        self._name = name
        self._specs = {}
        self._values = {}
        self._actual = set()
        self._args = []
        self._parsed = False

    name = mirror("name")
    args = mirror("args")
    actual = mirror("actual")
    parsed = mirror("parsed")

    def _declare(self, spec):
        if spec.name in self._specs:
            raise ValueError(f"flag redefined: {spec.name}")
        self._specs[spec.name] = spec
        self._values[spec.name] = spec.default
        return spec

    def option(self, name, /, *, type=str, default=Unset, descr=Unset, metavar=Unset, callback=Unset):
        """
        Declare a value-bearing flag and return its spec.
        """
        return self._declare(Option(name, type=type, default=default, descr=descr, metavar=metavar, callback=callback))

    def flag(self, name, /, *, default=False, descr=Unset, callback=Unset):
        """
        Declare a boolean flag and return its spec.
        """
        return self._declare(Flag(name, default=default, descr=descr, callback=callback))

    def lookup(self, name, /):
        return self._specs.get(name)

    def __contains__(self, name):
        return name in self._specs

    def __iter__(self):
        return iter(sorted(self._specs.values(), key=operator.attrgetter("name")))

    def __len__(self):
        return len(self._specs)

    def __getitem__(self, name):
        if name not in self._specs:
            raise KeyError(name)
        return self._values[name]

    def set(self, name, value, /):
        """
        Set flag `name` from its raw string form, as if it were given on the command line.

        Only conversion failures are reported as InvalidFlagValueError. The
        callback runs after the value is stored; whatever it raises propagates
        unchanged (a callback rejects a value by raising a UsageError).
        """
        if (spec := self._specs.get(name)) is None:
            raise UndefinedFlagError("no such flag -%s" % name, flag=name)
        try:
            converted = spec.convert(value)
        except (ValueError, TypeError) as error:
            raise InvalidFlagValueError("invalid value %r for flag -%s: %s" % (value, name, error), flag=name) from error
        self._values[name] = converted
        self._actual.add(name)
        spec.notify(converted)

    def parse(self, tokens, /):
        """
        Parse leading flag tokens; the unconsumed remainder becomes `args`.

        Raises
        - HelpRequested: "-help"/"-h" given and not declared.
        - FlagSyntaxError, UndefinedFlagError, MissingFlagValueError,
          InvalidFlagValueError: malformed or unknown flags and bad values.
        """
        tokens = list(tokens)
        self._parsed = True
        self._actual = set()
        self._args = tokens
        while tokens:
            token = tokens[0]
            if len(token) < 2 or not token.startswith("-"):
                break
            name = token[1:]
            if name.startswith("-"):
                if len(token) == 2:  # "--" terminates the flags
                    del tokens[0]
                    break
                name = name[1:]
            if not name or name.startswith(("-", "=")):
                raise FlagSyntaxError("bad flag syntax: %s" % token, flag=token)
            del tokens[0]

            name, separator, value = name.partition("=")
            spec = self._specs.get(name)
            if spec is None:
                if name in HELP:
                    raise HelpRequested()
                raise UndefinedFlagError("flag provided but not defined: -%s" % name, flag=name)

            if spec.boolean and not separator:
                value = "true"
            elif not separator:
                if not tokens:
                    raise MissingFlagValueError("flag needs an argument: -%s" % name, flag=name)
                value = tokens.pop(0)
            self.set(name, value)
        self._args = tokens

    def __repr__(self):
        return f"flag-set(name={self._name!r}, flags={[spec.name for spec in self]!r})"


def bind_flags(bind, /, *values):
    """
    Return a flag-declaration hook that calls bind(flags, value) for each value.
    """
    if not callable(bind):
        raise TypeError("bind_flags() first argument must be callable")

    @rename("set_flags")
    def set_flags(env, flags):
        for value in values:
            bind(flags, value)

    return set_flags


__all__ = (
    "PRIVATE",
    "Option",
    "Flag",
    "FlagSet",
    "bind_flags",
    "parse_bool",
)

del FlagType
