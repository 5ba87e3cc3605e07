"""
Switchyard dispatcher.

run(env, args) walks the command tree from env.command, one node per step:

1. prepare: materialize the node's flags (once per node, see Command.prepare_flags).
2. parse: unless the node has custom flags, parse its flags. In merge mode the
   node's flags are first pulled out of the whole token list (split_flags) and
   put in front of the rest (join_flags), so they may follow subcommand names.
   "-help"/"-h" shows the node's short help and raises HelpRequested.
3. init: run the init hook; a CommandError from it becomes InitError.
4. route: if tokens remain and the first names a child that has an action, or
   that has actionable descendants and more tokens follow, recurse into it.
   A child with actionable descendants but no further tokens shows its own
   long help. An unknown word on a node without an action is "not understood".
5. execute: run the node's action with the residual tokens in env.args, or
   show short help when the node has no action.

Any other exception escaping a hook or action is converted exactly once, at
the outermost run() call, into a PanicError carrying the environment that was
active, the formatted traceback and the raw exception. Whatever the outcome,
every cancellation handle owned along the traversed chain is cancelled with it
as the cause.

run_or_fail() and invoke() are the process-level wrappers: they report faults
on stderr with rich and exit with status 2 (help and usage) or 1 (anything else).
"""
import shlex
import sys
import traceback
from collections.abc import Iterable

from .commands import Command
from .faults import (
    CommandError,
    HelpRequested,
    UnknownCommandError,
    UsageError,
    InitError,
    PanicError,
    console,
    trigger,
)
from .help import write_long, write_synopsis, write_usage
from .scopes import join_flags, split_flags
from .utils import Unset


def _traverse(env, args, trail):
    trail.append(env)
    command = env.command

    command.prepare_flags(env)

    if not command.custom_flags:
        try:
            tokens = join_flags(*split_flags(command.flags, args)) if env.merge else args
            command.flags.parse(tokens)
        except HelpRequested:
            write_synopsis(env)
            raise
        except UsageError as error:
            if error.env is None:
                error.env = env
            raise
        args = list(command.flags.args)
    env.args = list(args)

    if command.init is not None:
        try:
            command.init(env)
        except CommandError as error:
            raise InitError(command.name, error) from error

    if args:
        child, rest = command.find(args[0]), args[1:]
        if child is not None:
            nested = child.has_runnable_descendants
            if child.runnable or (nested and rest):
                return _traverse(env.child(child, rest), rest, trail)
            if nested:
                topic = env.child(child, rest)
                trail.append(topic)
                child.prepare_flags(topic)
                write_long(topic)
                raise HelpRequested()
        if command.action is None:
            env.write('Error: %s command "%s" not understood\n' % (command.name, args[0]))
            raise UnknownCommandError('%s command "%s" not understood' % (command.name, args[0]))

    if command.action is None:
        write_synopsis(env)
        raise HelpRequested()
    return command.action(env)


def run(env, args, /):
    """
    Dispatch `args` starting at env.command; return the action's result.

    Raises
    - HelpRequested (and UnknownCommandError/UnknownTopicError): help was written.
    - UsageError: bad flags or arguments; `error.env` is the environment at fault.
    - InitError: an init hook failed.
    - PanicError: any other exception escaped a hook or an action.
    - CommandError raised by an action, unchanged.
    """
    if isinstance(args, str) or not isinstance(args, Iterable):
        raise TypeError("run() second argument must be an iterable of strings")
    args = list(args)
    if not all(isinstance(arg, str) for arg in args):
        raise TypeError("run() second argument must be an iterable of strings")

    trail = []
    outcome = None
    try:
        return _traverse(env, args, trail)
    except CommandError as error:
        outcome = error
        raise
    except Exception as error:
        outcome = PanicError(trail[-1] if trail else env, error, traceback.format_exc())
        raise outcome from error
    except BaseException as error:
        outcome = error
        raise
    finally:
        for each in reversed(trail):
            each._release(outcome)


def run_or_fail(env, args, /):
    """
    Behave as run(), but report failures and exit the process.

    - help requested: exit 2 (help was already written).
    - usage error: report it, write the usage of the environment at fault, exit 2.
    - anything else: report it (with the captured stack for panics), exit 1.
    """
    try:
        return run(env, args)
    except HelpRequested as error:
        trigger(error, status=2, quiet=True)
    except UsageError as error:
        console.print(error)
        write_usage(error.env if error.env is not None else env)
        sys.exit(2)
    except CommandError as error:
        trigger(error, status=1)


def invoke(command, prompt=Unset, /, *, config=None, merge=False):
    """
    Build a root environment for `command` and run_or_fail() it.

    Parameters
    - prompt:
      • Unset: read tokens from sys.argv[1:].
      • str: shell-like string; split with shlex.split.
      • Iterable[str]: pre-tokenized sequence.
    - config: opaque payload for Environment.config.
    - merge: allow flags after subcommand names.
    """
    if not isinstance(command, Command):
        raise TypeError("invoke() first argument must be a command")

    if prompt is Unset:
        tokens = sys.argv[1:]
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() argument must be a string or an iterable of strings")

    return run_or_fail(command.new_env(config, merge=merge), tokens)


__all__ = (
    "run",
    "run_or_fail",
    "invoke",
)
