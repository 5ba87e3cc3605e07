"""
Demo command tree.

    $ python main.py help
    $ python main.py echo -label hi -n there
    $ python main.py help magic
    $ python main.py secret fort
"""
from types import SimpleNamespace

from rich.pretty import pprint

from switchyard import *

__prog__ = "example"


def current(flags, name):
    """Value given in the last parse, else the declared default."""
    return flags[name] if name in flags.actual else flags.lookup(name).default


def root_flags(env, flags):
    flags.option("label", default="", descr="Label text")
    flags.option("p", type=int, default=0, descr="PRIVATE: Unadvertised flag")
    flags.flag("y", descr="Confirm activity")


def echo_flags(env, flags):
    flags.flag("n", descr="Do not print a trailing newline")


def setup(env):
    flags = env.command.flags
    env.config = SimpleNamespace(
        label=current(flags, "label"),
        private=current(flags, "p"),
        confirm=current(flags, "y"),
    )


@command(usage="text ...", set_flags=echo_flags)
def echo(env):
    """Concatenate the arguments with spaces and print to stdout."""
    opt = env.config
    if opt.label:
        print("[%s] " % opt.label, end="")
    if opt.private > 0:
        print("<%d> " % opt.private, end="")
    print(" ".join(env.args), end="" if current(env.command.flags, "n") else "\n")


@command(usage="args ...", unlisted=True)
def secret(env):
    """A command that is hidden from help listings."""
    print("easter-egg %s" % ", ".join(env.args))


@command(custom_flags=True, unlisted=True)
def dump(env):
    """Pretty-print the command tree."""
    pprint(example)


example = Command(
    "example",
    usage="command args...",
    help="""
        Do interesting things with arguments.

        This program demonstrates the use of the switchyard package.
        This help text is printed by the "help" subcommand.
    """,
    set_flags=root_flags,
    init=setup,
    commands=[
        help_command([
            HelpTopic("special", "This is some useful information a user might care about."),
            HelpTopic("magic", 'The user can write "command help <topic>" to get this text.'),
        ]),
        echo,
        secret,
        dump,
    ],
)


if __name__ == '__main__':
    invoke(example, merge=True)
