"""
Switchyard faults (errors and control signals) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every outcome the
  dispatcher can surface besides plain success. Codes are grouped by domain to
  keep copy consistent and make logs/searches predictable.
- CommandError: base type that carries a message + options and knows how to
  render itself (rich) in a friendly, actionable way.
- The taxonomy mirrors how an embedding shell should react:
  • help-requested signals (HelpRequested, UnknownCommandError, UnknownTopicError)
    mean help text was already written; not a failure.
  • usage errors (UsageError and the FlagError family) carry the Environment at
    fault so the shell can render its usage.
  • InitError wraps a failed init hook with the owning command's name.
  • PanicError is an unexpected exception intercepted at the outermost boundary;
    it carries the originating Environment, the captured stack and the raw value.
- trigger(): central exit point used by the top-level wrapper to surface a
  fault on the diagnostic console and terminate with a status.

Host overrides (looked up in __main__)
- __styles__: palette overrides for fault rendering.
- __codes__: remap numeric codes to friendlier labels (see FaultCode.normalize).
- __prog__: program label used in fault headers.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.text import Text

from .utils import Unset, coalesce, program_name

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the dispatcher (stable identifiers).

    grouping (by high-level domain)
    - signals (100xx): HELP_REQUESTED, UNKNOWN_COMMAND, UNKNOWN_TOPIC
    - usage (111xx): USAGE, FLAG_SYNTAX, UNDEFINED_FLAG, MISSING_FLAG_VALUE, INVALID_FLAG_VALUE
    - execution (112xx): ACTION_FAILED, INIT_FAILED, PANIC, CANCELLED

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- control signals (100xx) ---
    HELP_REQUESTED      = 10001
    UNKNOWN_COMMAND     = 10002
    UNKNOWN_TOPIC       = 10003

    # --- usage errors (111xx) ---
    USAGE               = 11100
    FLAG_SYNTAX         = 11111
    UNDEFINED_FLAG      = 11112
    MISSING_FLAG_VALUE  = 11113
    INVALID_FLAG_VALUE  = 11114

    # --- execution errors (112xx) ---
    ACTION_FAILED       = 11201
    INIT_FAILED         = 11202
    PANIC               = 11203
    CANCELLED           = 11204

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _styles(defaults):
    return defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))


class CommandError(Exception):
    """
    Base of every non-success outcome raised by the dispatcher.

    Subclasses pin a stable `code` and a short `title`; instances carry the
    human-readable message plus read-only options (e.g. hint) for rendering.
    Errors raised by actions with this base are passed through verbatim.
    """
    code = FaultCode.ACTION_FAILED
    title = "command error"

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__}() message must be a string")
        self.message = coalesce(message, self.title)
        self.options = MappingProxyType(options)
        super().__init__(self.message)

    def __str__(self):
        return self.message

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        styles = _styles({
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

        prog = getattr(__import__("__main__"), "__prog__", program_name())
        header = Text.assemble(
            "[ ",
            Text(prog, styles["prog-name"]),
            " — ",
            Text(self.code.normalize(), styles["code"]),
            " | ",
            Text(self.title.title(), styles["error-title"]),
            " ]"
        )
        renders = [header, Text(self.message, styles["error-message"])]
        if self.hint:
            renders.append(Text.assemble(Text(" → ", styles["hint-arrow"]), Text(self.hint, styles["hint"])))
        return Group(*renders)


class HelpRequested(CommandError):
    """
    Control signal: traversal stopped after help text was written.
    """
    code = FaultCode.HELP_REQUESTED
    title = "help requested"


class UnknownCommandError(HelpRequested):
    code = FaultCode.UNKNOWN_COMMAND
    title = "command not understood"


class UnknownTopicError(HelpRequested):
    code = FaultCode.UNKNOWN_TOPIC
    title = "unknown help topic"


class UsageError(CommandError):
    """
    Malformed arguments or flags for a given scope.

    `env` is the Environment at fault; the dispatcher fills it in when the
    error was raised by a collaborator that does not know the Environment.
    """
    code = FaultCode.USAGE
    title = "usage error"

    def __init__(self, message=Unset, /, env=None, **options):
        super().__init__(message, **options)
        self.env = env


class FlagError(UsageError):
    title = "flag error"

    @property
    def flag(self):
        return self.options.get("flag")


class FlagSyntaxError(FlagError):
    code = FaultCode.FLAG_SYNTAX
    title = "bad flag syntax"


class UndefinedFlagError(FlagError):
    code = FaultCode.UNDEFINED_FLAG
    title = "undefined flag"


class MissingFlagValueError(FlagError):
    code = FaultCode.MISSING_FLAG_VALUE
    title = "missing flag value"


class InvalidFlagValueError(FlagError):
    code = FaultCode.INVALID_FLAG_VALUE
    title = "invalid flag value"


class InitError(CommandError):
    """
    An init hook failed; terminal for the subtree of `command`.
    """
    code = FaultCode.INIT_FAILED
    title = "initialization failed"

    def __init__(self, command, cause, /, **options):
        super().__init__('initializing "%s": %s' % (command, cause), **options)
        self.command = command
        self.cause = cause


class PanicError(CommandError):
    """
    An unexpected exception intercepted at the outermost dispatch boundary.

    Attributes
    - env: the Environment that was active when the exception escaped.
    - stack: the formatted traceback captured at interception time.
    - value: the raw exception object.
    """
    code = FaultCode.PANIC
    title = "panic"

    def __init__(self, env, value, stack, /, **options):
        super().__init__("panic: %s" % (value,), **options)
        self.env = env
        self.value = value
        self.stack = stack

    def __rich__(self):
        styles = _styles({"stack": "dim"})
        return Group(super().__rich__(), Text(self.stack.rstrip(), styles["stack"]))


class Cancelled(CommandError):
    code = FaultCode.CANCELLED
    title = "context canceled"


def trigger(fault, /, *, status=1, quiet=False):
    """
    surface a fault on the diagnostic console and exit with `status`.

    contract
    - fault must be a CommandError; it renders itself through __rich__.
    - quiet=True skips rendering (the fault already reported itself, e.g. help).
    """
    if not isinstance(fault, CommandError):
        raise TypeError("trigger() argument must be a command error")
    if not quiet:
        console.print(fault)
    sys.exit(status)


__all__ = (
    "FaultCode",
    "CommandError",
    "HelpRequested",
    "UnknownCommandError",
    "UnknownTopicError",
    "UsageError",
    "FlagError",
    "FlagSyntaxError",
    "UndefinedFlagError",
    "MissingFlagValueError",
    "InvalidFlagValueError",
    "InitError",
    "PanicError",
    "Cancelled",
    "trigger",
)
