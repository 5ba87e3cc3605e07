"""
Per-invocation environments.

An Environment is created for every command reached while dispatching one
argument list. Environments form a singly linked chain through `parent`, from
the node being run back to the root environment built by the caller; the chain
lives only as long as the run() call that built it.

What a child copies from its parent
- config (opaque payload), output sink, and merge mode. An init hook may
  change any of them on its own environment; the change then applies to every
  environment derived below it.

What a child does not copy
- the cancellation handle. context() walks up to the nearest environment that
  has one, and the root lazily creates an unowned background handle when none
  was set. set_context() makes an environment own a handle of its own.
"""
import sys

from .context import Context, background
from .faults import UsageError
from .utils import Unset, coalesce


class Environment:
    """
    The state of one command during dispatch.

    Attributes
    - parent: the Environment of the enclosing command, or None at the root.
    - command: the Command this environment represents.
    - config: opaque per-invocation payload shared down the chain.
    - args: residual arguments for this command (set by the dispatcher).
    - output: text sink for diagnostics and help (default: sys.stderr).
    - merge: whether a command's flags may appear after its subcommand names.

    An Environment is itself a writable text stream (write/flush), so it can be
    handed to anything that prints, including a rich Console.
    """

    def __init__(self, command, /, config=None, *, output=Unset, merge=False):
        self.parent = None
        self.command = command
        self.config = config
        self.args = []
        self.output = coalesce(output, sys.stderr)
        self.merge = bool(merge)
        self._context = None
        self._owned = False

    def child(self, command, args=(), /):
        """
        Derive the environment for subcommand `command` with residual `args`.
        """
        child = type(self)(command, self.config, output=self.output, merge=self.merge)
        child.parent = self
        child.args = list(args)
        return child

    @property
    def root(self):
        env = self
        while env.parent is not None:
            env = env.parent
        return env

    @property
    def path(self):
        """
        Command names from the root environment down to this one.
        """
        names = []
        env = self
        while env is not None:
            names.append(env.command.name)
            env = env.parent
        return tuple(reversed(names))

    def write(self, text, /):
        if isinstance(text, bytes | bytearray):
            text = bytes(text).decode(errors="replace")
        return self.output.write(text)

    def flush(self):
        if (flush := getattr(self.output, "flush", None)) is not None:
            flush()

    def isatty(self):
        return False

    def merge_flags(self, merge, /):
        """
        Set the merge mode for this environment and the ones derived from it.
        """
        self.merge = bool(merge)
        return self

    def context(self):
        """
        Return the nearest cancellation handle up the chain.

        When no environment in the chain has one, an unowned background handle
        is created at the root and reused from then on.
        """
        env = self
        while env._context is None:
            if env.parent is None:
                env._context = background()
                break
            env = env.parent
        return env._context

    def set_context(self, context, /):
        """
        Own a new handle derived from `context` for this subtree.

        The handle is cancelled when `context` is, by cancel(), and when the
        run() call that reached this environment returns.
        """
        if not isinstance(context, Context):
            raise TypeError("set_context() argument must be a context")
        self._context = context.derive()
        self._owned = True
        return self

    def cancel(self, cause=None, /):
        """
        Cancel the nearest owned handle up the chain with `cause`.

        Returns True when an owned handle was found, False otherwise.
        """
        env = self
        while env is not None:
            if env._owned:
                env._context.cancel(cause)
                return True
            env = env.parent
        return False

    def _release(self, cause, /):
        if self._owned:
            self._context.cancel(cause)

    def usage_error(self, message, /, *args):
        """
        Return a UsageError for this environment; callers raise it.
        """
        return UsageError(message % args if args else message, env=self)

    def __repr__(self):
        return f"environment(path={' '.join(self.path)!r}, args={self.args!r}, merge={self.merge!r})"


__all__ = (
    "Environment",
)
