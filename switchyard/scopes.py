"""
Flag scope resolution.

split_flags() partitions a token list into the tokens that belong to one
command's flags (including their value tokens) and everything else, without
parsing values. join_flags() puts the two parts back together in a shape that
FlagSet.parse() reads exactly as if the scope's flags had been written first.

This is what lets a command's flags appear after its subcommand names when the
environment is in merge mode:

    >>> split_flags(flags_with_A, ["one", "-A", "1", "x"])
    (['-A', '1'], ['one', 'x'])
    >>> join_flags(['-A', '1'], ['one', 'x'])
    ['-A', '1', '--', 'one', 'x']
"""
from .faults import MissingFlagValueError

TERMINATOR = "--"


def _flag_shaped(token):
    return token.startswith("-") and token != "-"


def split_flags(flags, tokens, /):
    """
    Partition tokens into (flag_tokens, free_tokens), preserving relative order.

    - "-" is always free.
    - TERMINATOR ends classification: it and every later token are free.
    - "-name", "--name", "-name=value", "--name=value" naming a flag of `flags`
      go to flag_tokens; a non-boolean flag without "=value" also takes the
      next token as its value.
    - Flag-shaped tokens naming no flag of `flags` are free (a descendant scope
      may claim them).

    Raises MissingFlagValueError when the last token is a value-bearing flag
    with nothing left to consume.
    """
    tokens = list(tokens)
    flag_tokens, free_tokens = [], []
    pending = None

    for index, token in enumerate(tokens):
        if pending is not None:
            flag_tokens.append(token)
            pending = None
            continue

        if token == TERMINATOR:
            free_tokens.extend(tokens[index:])
            break

        if _flag_shaped(token):
            name = token[1:]
            if name.startswith("-"):
                name = name[1:]
            name, separator, _ = name.partition("=")
            if (spec := flags.lookup(name)) is not None:
                flag_tokens.append(token)
                if not spec.boolean and not separator:
                    pending = token
                continue

        free_tokens.append(token)

    if pending is not None:
        raise MissingFlagValueError('missing value for flag "%s"' % pending, flag=pending)
    return flag_tokens, free_tokens


def join_flags(flag_tokens, free_tokens, /):
    """
    Recombine the output of split_flags() for FlagSet.parse().

    TERMINATOR goes between the parts only when both are non-empty and the
    free part opens with an ordinary argument. A free part that opens with a
    flag-shaped token is appended as-is so the parser still sees it and
    reports it as undefined (or stops at its own TERMINATOR).
    """
    if flag_tokens and free_tokens and not _flag_shaped(free_tokens[0]):
        return [*flag_tokens, TERMINATOR, *free_tokens]
    return [*flag_tokens, *free_tokens]


__all__ = (
    "TERMINATOR",
    "split_flags",
    "join_flags",
)
