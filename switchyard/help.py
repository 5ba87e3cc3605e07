"""
Switchyard help: command descriptions, help rendering and the "help" command.

Overview
- describe(command, flags) / Command.info(flags)
  • Build a CommandInfo (name, synopsis, usage lines, help, listable flags and,
    on request, the subcommands and help topics below the command).
  • HelpFlags chooses what is included: INCLUDE_COMMANDS, INCLUDE_UNLISTED,
    INCLUDE_PRIVATE_FLAGS (INCLUDE_ALL for everything).
  • A child with an action or with children of its own is listed as a
    subcommand; any other child is a help topic.

- Writers (rendered with rich into the environment's sink)
  • write_usage(env): the "Usage:" block only.
  • write_synopsis(env): usage, synopsis and flags (short form).
  • write_long(env): usage, full help, flags, "Subcommands:" and "Help topics:".

- help_command(topics)
  • A ready-made "help" subcommand. `tool help` shows the long help of `tool`,
    `tool help sub ...` the long help of a subcommand, `tool help topic` the
    text of one of the topics given here. Unlisted subcommands are never
    matched; unknown names report 'Unknown help topic "..."'.

Customization
- Define a mapping named __styles__ in __main__ to override palette entries
  (only visible when the sink is a color terminal).
"""
from collections import defaultdict, namedtuple
from enum import IntFlag

from rich.console import Console
from rich.text import Text

from .commands import Command
from .faults import HelpRequested, UnknownTopicError
from .utils import Unset


class HelpFlags(IntFlag):
    INCLUDE_COMMANDS = 1
    INCLUDE_UNLISTED = 2
    INCLUDE_PRIVATE_FLAGS = 4
    INCLUDE_ALL = INCLUDE_COMMANDS | INCLUDE_UNLISTED | INCLUDE_PRIVATE_FLAGS


FlagInfo = namedtuple("FlagInfo", (
    "name",
    "usage",
    "default",
    "metavar",
    "private",
))

CommandInfo = namedtuple("CommandInfo", (
    "name",
    "synopsis",
    "usage",
    "help",
    "flags",
    "runnable",
    "unlisted",
    "commands",
    "topics",
))

HelpTopic = namedtuple("HelpTopic", (
    "name",
    "help",
))

NO_DESCRIPTION = "(no description available)"


def _default_string(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def describe(command, flags=HelpFlags(0), env=None, /):
    """
    Return the CommandInfo of `command` for the HelpFlags mask `flags`.

    The command and its listed subcommands get their flags materialized first
    (through `env` when given, else through a fresh root environment) so their
    info is complete.
    """
    env = command.new_env() if env is None else env
    command.prepare_flags(env)
    flags = HelpFlags(flags)
    private = HelpFlags.INCLUDE_PRIVATE_FLAGS in flags

    specs = () if command.custom_flags else command.flags
    listed = tuple(
        FlagInfo(spec.name, spec.usage, _default_string(spec.default), spec.metavar, spec.private)
        for spec in specs
        if private or not spec.private
    )

    commands, topics = [], []
    if HelpFlags.INCLUDE_COMMANDS in flags:
        for child in command.commands:
            if child.unlisted and HelpFlags.INCLUDE_UNLISTED not in flags:
                continue
            info = describe(child, flags & ~HelpFlags.INCLUDE_COMMANDS, env.child(child))
            if child.runnable or child.commands:
                commands.append(info)
            else:
                topics.append(info)

    return CommandInfo(
        name=command.name,
        synopsis=command.synopsis,
        usage=tuple(command.usage_lines(private)),
        help=command.help,
        flags=listed,
        runnable=command.runnable,
        unlisted=command.unlisted,
        commands=tuple(commands),
        topics=tuple(topics),
    )


def _styles():
    return defaultdict(str, {
        "section-label": "bold #FFFFFF",
        "program-name": "bold #FF4D94",
        "usage": "bold #36C5F0",
        "description": "italic #A3A3A3",
        "flag-name": "bold #22C55E",
        "metavar": "bold #FFD600",
        "children": "bold #36C5F0",
        "children-description": "#9CA3AF",
    } | getattr(__import__("__main__"), "__styles__", {}))


def _console(env):
    return Console(file=env, markup=False, highlight=False, emoji=False, soft_wrap=True)


def _usage_block(info, styles):
    if not info.usage:
        return []
    lines = [Text("Usage:", styles["section-label"]), Text()]
    for line in info.usage:
        lines.append(Text.assemble(
            "  ",
            Text(info.name, styles["program-name"]),
            Text(" " + line if line else "", styles["usage"]),
        ))
    return lines + [Text()]


def _flags_block(info, styles):
    if not info.flags:
        return []
    lines = [Text("Flags:", styles["section-label"])]
    for flag in info.flags:
        head = Text.assemble(
            "  -" if len(flag.name) == 1 else " --",
            Text(flag.name, styles["flag-name"]),
            Text(" " + flag.metavar, styles["metavar"]) if flag.metavar else "",
        )
        usage = flag.usage
        if flag.default and flag.default != "false" and flag.default != "0":
            usage += ' (default "%s")' % flag.default if flag.metavar == "string" else " (default %s)" % flag.default
        if len(flag.name) == 1 and not flag.metavar:
            lines.append(Text.assemble(head, " " * max(1, 8 - len(head)), Text(usage, styles["description"])))
        else:
            lines.append(head)
            for part in usage.splitlines() or [""]:
                lines.append(Text.assemble(" " * 8, Text(part, styles["description"])))
    return lines + [Text()]


def _listing_block(label, base, infos, styles):
    if not infos:
        return []
    names = [base + info.name for info in infos]
    width = max(map(len, names))
    lines = [Text(label, styles["section-label"])]
    for name, info in zip(names, infos):
        lines.append(Text.assemble(
            "  ",
            Text(name.ljust(width), styles["children"]),
            " : ",
            Text(info.synopsis or NO_DESCRIPTION, styles["children-description"]),
        ))
    return lines + [Text()]


def _render(env, lines):
    console = _console(env)
    for line in lines:
        console.print(line)


def write_usage(env, info=Unset, /):
    """
    Write the usage summary of env.command to the environment's sink.
    """
    info = describe(env.command, HelpFlags(0), env) if info is Unset else info
    _render(env, _usage_block(info, _styles()))


def write_synopsis(env, info=Unset, /):
    """
    Write short help: usage, synopsis and flag summary.
    """
    info = describe(env.command, HelpFlags(0), env) if info is Unset else info
    styles = _styles()
    _render(env, [
        *_usage_block(info, styles),
        Text(info.synopsis or NO_DESCRIPTION, styles["description"]),
        Text(),
        *_flags_block(info, styles),
    ])


def write_long(env, info=Unset, /):
    """
    Write long help: usage, full help text, flags, subcommands and help topics.
    """
    info = describe(env.command, HelpFlags.INCLUDE_COMMANDS, env) if info is Unset else info
    styles = _styles()
    _render(env, [
        *_usage_block(info, styles),
        Text(info.help or NO_DESCRIPTION),
        Text(),
        *_flags_block(info, styles),
        *_listing_block("Subcommands:", info.name + " ", info.commands, styles),
        *_listing_block("Help topics:", "", info.topics, styles),
    ])


def _walk(env, args):
    """
    Follow `args` as subcommand names from `env`; None on a miss or an unlisted node.
    """
    current = env
    for arg in args:
        child = current.command.find(arg)
        if child is None or child.unlisted:
            return None
        current = current.child(child)
        child.prepare_flags(current)
    return current


def run_help(env):
    """
    Action of the "help" command.

    Shows the long help of the enclosing command, of one of its subcommands, or
    of one of help's own topics, then raises HelpRequested. Unknown names raise
    UnknownTopicError after writing 'Unknown help topic "..."'.
    """
    target = _walk(env.parent, env.args) if env.parent is not None else None
    if target is not None and target is env.parent:
        info = describe(target.command, HelpFlags.INCLUDE_COMMANDS, target)
        own = describe(env.command, HelpFlags.INCLUDE_COMMANDS, env)
        write_long(target, info._replace(topics=info.topics + own.topics))
    elif target is not None:
        write_long(target)
    elif (target := _walk(env, env.args)) is not None:
        write_long(target)
    else:
        topic = " ".join(env.args)
        env.write('Unknown help topic "%s"\n' % topic)
        raise UnknownTopicError('unknown help topic "%s"' % topic)
    raise HelpRequested()


def help_command(topics=(), /):
    """
    Return a new "help" command carrying `topics` (HelpTopic or (name, help) pairs).

    Each call builds a separate Command, so callers may adjust the result freely.
    """
    return Command(
        "help",
        usage="[topic/command]",
        help="Print help for the specified command or topic.",
        custom_flags=True,
        action=run_help,
        commands=[Command(topic.name, help=topic.help) for topic in map(lambda x: HelpTopic(*x), topics)],
    )


__all__ = (
    "HelpFlags",
    "FlagInfo",
    "CommandInfo",
    "HelpTopic",
    "describe",
    "write_usage",
    "write_synopsis",
    "write_long",
    "run_help",
    "help_command",
)
