r"""
Switchyard command nodes.

A Command is one node of the statically declared command tree: a name, usage
and help text, a flag-declaration hook, optional init/action hooks, and an
ordered tuple of subcommands. Trees are built once by the caller and walked by
the dispatcher; the only thing that changes afterwards is the one-shot flag
materialization (prepare_flags) of each node.

Quick example:
    >>> def echo(env):
    ...     print(*env.args)
    >>> root = Command(
    ...     "tool",
    ...     help="Do things.",
    ...     commands=[Command("echo", usage="text ...", action=echo)],
    ... )
    >>> root.find("echo").runnable
    True

Or with the decorator, taking name and help from the function:
    >>> @command(usage="text ...")
    ... def echo(env):
    ...     '''Print the arguments.'''
    ...     print(*env.args)
"""
import functools
import inspect
import operator

from .environment import Environment
from .flags import FlagSet
from .utils import *


class NodeType(type):
    """
    Metaclass for command nodes.

    - Expose the names listed in __introspectable__ as read-only properties
      backed by "_{name}" (containers are returned as immutable copies).
    - Provide stable __repr__/__rich_repr__ implementations limited to
      __displayable__ (or __introspectable__ when unset).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
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
            """
            Return a concise, stable representation with key metadata.

            Example
            - command(name='build', usage=('[flags] target',), commands=())
            """
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _nodes(command):
    yield command
    for child in command.commands:
        yield from _nodes(child)


class Command(metaclass=NodeType):
    """
    One node of a command tree.

    Parameters
    - name: the word that selects this command among its siblings.
    - usage: usage summary, one usage sense per line; a leading command name is
      stripped from each line.
    - help: help text; its first non-blank line is the synopsis.
    - set_flags: hook set_flags(env, flags) declaring this node's flags. Runs at
      most once per node, the first time dispatch reaches it.
    - custom_flags: when True the dispatcher does not parse flags for this node;
      the action receives every residual token.
    - unlisted: hide from help listings and help-topic lookups (still runnable
      when named explicitly).
    - init: hook init(env) run after flag parsing and before routing; it may
      adjust the environment for the rest of the subtree.
    - action: action(env) implementing the command; its residual arguments are
      env.args.
    - commands: ordered subcommands. Sibling names must be unique and a node may
      appear only once in a tree.
    """

    __introspectable__ = (
        "name",
        "usage",
        "help",
        "custom_flags",
        "unlisted",
        "set_flags",
        "init",
        "action",
        "commands",
    )

    __displayable__ = (
        "name",
        "usage",
        "unlisted",
        "commands",
    )

    def __init__(
            self,
            name,
            /,
            *,
            usage="",
            help="",
            set_flags=None,
            custom_flags=False,
            unlisted=False,
            init=None,
            action=None,
            commands=(),
    ):
        if not isinstance(name, str):
            raise TypeError("command name must be a string")
        elif not name or name != name.strip() or len(name.split()) != 1:
            raise ValueError(f"command name {name!r} must be a single non-empty word")

        for field, object in (("usage", usage), ("help", help)):
            if not isinstance(object, str):
                raise TypeError(f"command {field!r} must be a string")

        for field, object in (("set_flags", set_flags), ("init", init), ("action", action)):
            if object is not None and not callable(object):
                raise TypeError(f"command {field!r} must be callable")

        children = tuple(commands)
        names = set()
        for child in children:
            if not isinstance(child, Command):
                raise TypeError("command 'commands' must contain commands")
            if child.name in names:
                raise ValueError(f"duplicate subcommand {child.name!r} in command {name!r}")
            names.add(child.name)

        seen = {id(self)}
        for node in (node for child in children for node in _nodes(child)):
            if id(node) in seen:
                raise ValueError(f"command {node.name!r} appears more than once in the tree of {name!r}")
            seen.add(id(node))

        self._name = name
        self._usage = usage
        self._help = inspect.cleandoc(help)
        self._set_flags = set_flags
        self._custom_flags = bool(custom_flags)
        self._unlisted = bool(unlisted)
        self._init = init
        self._action = action
        self._commands = children
        self._flags = FlagSet(name)
        self._materialized = False

    @property
    def flags(self):
        """
        The FlagSet of this node (populated by prepare_flags).
        """
        return self._flags

    @property
    def runnable(self):
        return self._action is not None

    @property
    def has_runnable_descendants(self):
        """
        True if any node below this one (at any depth) has an action.
        """
        return any(child.runnable or child.has_runnable_descendants for child in self._commands)

    @property
    def synopsis(self):
        """
        First non-blank line of the help text ("" when there is none).
        """
        return next((line.strip() for line in self._help.splitlines() if line.strip()), "")

    def find(self, name, /):
        """
        Return the subcommand called `name`, or None.
        """
        for child in self._commands:
            if child.name == name:
                return child
        return None

    def has_flags(self, private=False):
        """
        True if this node parses flags and at least one of them is listable.
        """
        return not self._custom_flags and any(private or not spec.private for spec in self._flags)

    def usage_lines(self, private=False):
        """
        Normalized usage lines: blanks dropped, the command name stripped from the
        head of each line; ["[flags]"] when there is no usage but there are flags.
        """
        lines = []
        for line in self._usage.splitlines():
            if not (line := line.strip()):
                continue
            elif line == self._name:
                lines.append("")
            else:
                lines.append(line.removeprefix(self._name + " "))
        if not lines and self.has_flags(private):
            return ["[flags]"]
        return lines

    def prepare_flags(self, env, /):
        """
        Run the flag-declaration hook once; later calls do nothing.
        """
        if self._set_flags is not None and not self._materialized:
            self._set_flags(env, self._flags)
            self._materialized = True

    def new_env(self, config=None, /, *, output=Unset, merge=False):
        """
        Return a root Environment for this command.
        """
        return Environment(self, config, output=output, merge=merge)

    def info(self, flags=0, /):
        """
        Return a help.CommandInfo describing this command.

        `flags` is a help.HelpFlags mask choosing whether subcommands, unlisted
        subcommands and private flags are included.
        """
        from .help import describe
        return describe(self, flags)


def command(source=Unset, /, **options):
    """
    Build a Command whose action is `source`, or return a decorator that does.

    The name defaults to the function name (underscores become hyphens) and the
    help text to its docstring. Remaining keyword options are forwarded to Command.

        @command(usage="text ...")
        def echo(env): ...
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        settings = {"help": inspect.getdoc(source) or ""} | options
        name = settings.pop("name", source.__name__.replace("_", "-"))
        return Command(name, action=source, **settings)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "Command",
    "command",
)

del NodeType
