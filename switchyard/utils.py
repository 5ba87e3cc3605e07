"""
Switchyard utilities.

Small helpers shared by the flag, command and fault layers.

- Unset: the "argument not given" sentinel, for parameters where None is a
  meaningful value of its own. It is falsy, prints as "Unset", survives
  copy/pickle as the same object and cannot be subclassed. It also joins
  PEP 604 unions, so isinstance(value, str | Unset) reads naturally.
- coalesce(value, default): swap Unset for a default; any other value,
  falsy or not, passes through.
- rename(...): give generated functions a readable __name__/__qualname__.
- mirror(name): a read-only property over self._name that hands out frozen
  copies (tuples, frozensets, fresh dicts) of container state.
- typename(name): class name to label ("FlagSet" -> "flag-set").
- program_name(): base name of sys.argv[0].

    >>> coalesce(Unset, 8)
    8
    >>> coalesce(None, 8) is None
    True
"""
import builtins
import functools
import os.path
import re
import sys
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel; UnsetType() always returns the same object.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Return `default` when `object` is Unset, else `object` unchanged.
    """
    return default if object is Unset else object


def rename(*parameters):
    """
    Rename a callable in place.

    rename(function, name) renames and returns `function`; rename(name)
    returns a decorator doing the same. Callables whose names are read-only
    raise TypeError.
    """
    if len(parameters) == 1:
        name, = parameters
        if not isinstance(name, str):
            raise TypeError("@rename() argument must be a string")

        def decorator(callable):
            if not builtins.callable(callable):
                raise TypeError("@rename() must be applied to a callable")
            return rename(callable, name)

        return rename(decorator, "rename")

    if len(parameters) != 2:
        raise TypeError("rename() takes 1 or 2 arguments (%d given)" % len(parameters))

    callable, name = parameters
    if not builtins.callable(callable):
        raise TypeError("rename() first argument must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() second argument must be a string")
    try:
        callable.__name__ = callable.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError("rename() cannot rename %r" % (callable,)) from None
    return callable


def _frozen(value):
    # strings are sequences too, keep them whole
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        return {key: _frozen(item) for key, item in value.items()}
    if isinstance(value, Sequence):
        return tuple(_frozen(item) for item in value)
    if isinstance(value, Set):
        return frozenset(_frozen(item) for item in value)
    return value


def mirror(name, /):
    """
    Read-only property exposing self._<name>, with containers handed out frozen.

        class Node:
            commands = mirror("commands")    # reads self._commands
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _frozen(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def typename(name, /):
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def program_name():
    """
    Base name of the running program, or "switchyard" when argv is empty.
    """
    if sys.argv and sys.argv[0]:
        return os.path.basename(sys.argv[0])
    return "switchyard"


Unset = UnsetType()


__all__ = (
    "coalesce",
    "rename",
    "mirror",
    "typename",
    "program_name",
    "UnsetType",
    "Unset",
)
