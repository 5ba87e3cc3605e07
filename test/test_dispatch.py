"""
Dispatcher behavioral tests (routing, merge mode, help, faults, containment).

Scope
- Flag parsing per scope, with and without merge mode, across a 4-level tree.
- The implicit -help trigger.
- Routing tie-breaks: runnable children, topic nodes, unknown words.
- Init hooks: environment overrides and wrapped failures.
- Panic containment: any stray exception becomes a PanicError exactly once.
- Cancellation of owned handles when run() returns.
- run_or_fail()/invoke() exit statuses.

Conventions
- Test method names follow CamelCase per project convention.
"""
import io
import unittest
from contextlib import redirect_stderr
from unittest import TestCase

from switchyard import Command, Context, help_command, invoke, run, run_or_fail
from switchyard.faults import (
    Cancelled,
    CommandError,
    HelpRequested,
    InitError,
    MissingFlagValueError,
    PanicError,
    UndefinedFlagError,
    UnknownCommandError,
    UnknownTopicError,
    UsageError,
)

NO_SUCH_FLAG = "flag provided but not defined"
MISSING_ARG = "flag needs an argument"
WRONG_ARGS = "wrong args"


def set_flag(name):
    def set_flags(env, flags):
        flags.option(name, default="", descr=name)
    return set_flags


def build_tree(action):
    return Command(
        "root",
        set_flags=set_flag("A"),
        action=action,
        commands=[
            Command(
                "one",
                set_flags=set_flag("B"),
                action=action,
                commands=[
                    Command(
                        "two",
                        set_flags=set_flag("C"),
                        action=action,
                        commands=[
                            Command("four", set_flags=set_flag("E"), action=action),
                        ],
                    ),
                ],
            ),
            Command("three", set_flags=set_flag("D"), action=action),
        ],
    )


def expect_xy(env):
    if env.args != ["x", "y"]:
        raise CommandError("%s: %r" % (WRONG_ARGS, env.args))


class TestParse(TestCase):
    """Flag scopes across a command tree, with and without merge mode."""

    cases = (
        ("rootNoFlags", False, "x y", None),
        ("rootBadFlag", False, "--nonesuch x y", NO_SUCH_FLAG),
        ("rootBadFlagMerged", True, "-nonesuch x", NO_SUCH_FLAG),
        ("rootA", False, "--A=1 x y", None),
        ("rootADash", False, "-A - x y", None),

        ("rootAMergedFront", True, "--A 1 x y", None),
        ("rootAMergedMid", True, "x -A 1 y", None),
        ("rootAMergedBack", True, "x y -A=1", None),

        ("oneNoFlags", False, "one x y", None),
        ("oneB", False, "one -B w x y", None),
        ("oneBLast", False, "one x y -B w", WRONG_ARGS),
        ("oneBLastMerged", True, "one x y -B w", None),
        ("oneMissing", False, "one -B", MISSING_ARG),

        ("twoNoFlags", False, "one two x y", None),
        ("twoMixed", False, "one two -C 2 -B 1 x y", NO_SUCH_FLAG),
        ("twoMixedMerged", True, "one two -C 2 -B -1 x y", None),
        ("twoAllFlags", False, "-A 1 one -B 2 two -C 3 x y", None),
        ("twoMergedFlags", True, "one two -C 3 x --A=1 -B 2 y", None),
        ("oneABCDash", True, "-A - one -B - two x -C - y", None),

        ("threeCDMerged", True, "three -D 4 -C 3", NO_SUCH_FLAG),
        ("threeBadFlagMerged", True, "three -D=1 -other x y", NO_SUCH_FLAG),
        ("threeOtherArgMerged", True, "three -D=1 -- -other x y", WRONG_ARGS),

        ("fourAllMixedMerged", True, "one -A=4 two -B=3 -C=2 four x --E 1 y", None),
        ("fourAllFrontMerged", True, "one two four x y -E=1 -C 2 --B=3 --A 4", None),
        ("fourBadFlagMerged", True, "-A 1 one two -Q ? four x y", NO_SUCH_FLAG),
    )

    def testParseTable(self):
        root = build_tree(expect_xy)
        for name, merge, args, expected in self.cases:
            with self.subTest(name):
                env = root.new_env(output=io.StringIO(), merge=merge)
                if expected is None:
                    run(env, args.split())
                else:
                    with self.assertRaises(CommandError) as context:
                        run(env, args.split())
                    self.assertIn(expected, str(context.exception))

    def testMergedFlagsBindRegardlessOfOrder(self):
        seen = []
        root = build_tree(lambda env: seen.append((env.command.name, env.args)))
        run(root.new_env(output=io.StringIO(), merge=True), "one two -C 3 --A=1 -B 2 x y".split())
        one = root.find("one")
        two = one.find("two")
        self.assertEqual(seen, [("two", ["x", "y"])])
        self.assertEqual((root.flags["A"], one.flags["B"], two.flags["C"]), ("1", "2", "3"))

    def testUnmergedUnknownFlagDoesNotRoute(self):
        seen = []
        root = build_tree(lambda env: seen.append(env.command.name))
        env = root.new_env(output=io.StringIO())
        with self.assertRaises(UndefinedFlagError) as context:
            run(env, ["--nonesuch", "x", "y"])
        self.assertIn(NO_SUCH_FLAG, str(context.exception))
        self.assertIs(context.exception.env, env)
        self.assertEqual(seen, [])

    def testUsageErrorCarriesEnvironmentAtFault(self):
        root = build_tree(expect_xy)
        with self.assertRaises(UsageError) as context:
            run(root.new_env(output=io.StringIO()), ["one", "-B"])
        self.assertIs(context.exception.env.command, root.find("one"))

    def testMergedMissingValue(self):
        root = build_tree(expect_xy)
        with self.assertRaises(MissingFlagValueError) as context:
            run(root.new_env(output=io.StringIO(), merge=True), ["one", "x", "-B"])
        self.assertEqual(str(context.exception), 'missing value for flag "-B"')
        self.assertIs(context.exception.env.command, root.find("one"))

    def testFlagsAreMaterializedOnce(self):
        calls = []

        def set_flags(env, flags):
            calls.append(env.command.name)
            flags.flag("v")

        root = Command("root", set_flags=set_flags, action=lambda env: None)
        run(root.new_env(output=io.StringIO()), ["-v"])
        run(root.new_env(output=io.StringIO()), ["-v"])
        self.assertEqual(calls, ["root"])
        self.assertIs(root.flags["v"], True)

    def testCustomFlagsReceiveRawTokens(self):
        seen = []
        root = Command("root", custom_flags=True, action=lambda env: seen.append(env.args))
        run(root.new_env(output=io.StringIO()), ["-x", "--y=1", "z"])
        self.assertEqual(seen, [["-x", "--y=1", "z"]])

    def testRunReturnsActionResult(self):
        root = Command("root", action=lambda env: 42)
        self.assertEqual(run(root.new_env(output=io.StringIO()), []), 42)

    def testRunRejectsBareString(self):
        root = Command("root", action=lambda env: None)
        with self.assertRaises(TypeError):
            run(root.new_env(output=io.StringIO()), "x y")


class TestHelpFlag(TestCase):
    """-help is recognized even when undeclared, as long as it precedes the arguments."""

    cases = (
        ("sub", None),
        ("sub - --help", None),
        ("sub -- --help", None),
        ("sub --foo -help", HelpRequested),
        ("sub --help", HelpRequested),
        ("sub -foo --help x y -bar", HelpRequested),
        ("sub -foo --help", HelpRequested),
        ("sub -foo -bar", UndefinedFlagError),
        ("sub -foo -help -bar", HelpRequested),
        ("sub -help", HelpRequested),
        ("sub a b -help", None),
        ("sub -foo -- -bar", None),
    )

    def testHelpFlagTable(self):
        root = Command("cmd", commands=[
            Command(
                "sub",
                set_flags=lambda env, flags: flags.flag("foo", descr="A flag for testing"),
                action=lambda env: None,
            ),
        ])
        for args, expected in self.cases:
            for merge in (False, True):
                with self.subTest(args=args, merge=merge):
                    env = root.new_env(output=io.StringIO(), merge=merge)
                    if expected is None:
                        run(env, args.split())
                    else:
                        with self.assertRaises(expected):
                            run(env, args.split())

    def testHelpFlagWritesShortHelp(self):
        output = io.StringIO()
        root = Command("cmd", commands=[
            Command(
                "sub",
                usage="[flags] args",
                help="Do the sub thing.\n\nMore detail.",
                set_flags=lambda env, flags: flags.flag("foo", descr="A flag for testing"),
                action=lambda env: None,
            ),
        ])
        with self.assertRaises(HelpRequested) as context:
            run(root.new_env(output=output), ["sub", "-help"])
        self.assertIn("help requested", str(context.exception))
        text = output.getvalue()
        self.assertIn("Usage:", text)
        self.assertIn("sub [flags] args", text)
        self.assertIn("Do the sub thing.", text)
        self.assertNotIn("More detail.", text)
        self.assertIn("A flag for testing", text)


class TestRouting(TestCase):
    """Routing between runnable nodes, topic nodes and unknown words."""

    def tree(self, seen):
        def record(env):
            seen.append((env.command.name, env.args))

        return Command("root", help="Root help.", commands=[
            Command("group", help="Group help.", commands=[
                Command("leaf", help="Leaf help.", action=record),
            ]),
            Command("runner", action=record, commands=[
                Command("nested", action=record),
            ]),
            Command("notes", help="Just words."),
            Command("secret", unlisted=True, action=record),
            help_command(),
        ])

    def testTopicNodeWithoutArgumentsShowsItsOwnLongHelp(self):
        output = io.StringIO()
        with self.assertRaises(HelpRequested):
            run(self.tree([]).new_env(output=output), ["group"])
        text = output.getvalue()
        self.assertIn("Group help.", text)
        self.assertIn("group leaf", text)
        self.assertNotIn("Root help.", text)

    def testTopicNodeRoutesWithFurtherTokens(self):
        seen = []
        run(self.tree(seen).new_env(output=io.StringIO()), ["group", "leaf", "x"])
        self.assertEqual(seen, [("leaf", ["x"])])

    def testRunnableChildRunsWithoutArguments(self):
        seen = []
        run(self.tree(seen).new_env(output=io.StringIO()), ["runner"])
        self.assertEqual(seen, [("runner", [])])

    def testRunnableChildRoutesDeeperAndKeepsResidue(self):
        seen = []
        tree = self.tree(seen)
        run(tree.new_env(output=io.StringIO()), ["runner", "nested", "a"])
        run(tree.new_env(output=io.StringIO()), ["runner", "other", "a"])
        self.assertEqual(seen, [("nested", ["a"]), ("runner", ["other", "a"])])

    def testUnknownWordIsNotUnderstood(self):
        output = io.StringIO()
        with self.assertRaises(UnknownCommandError) as context:
            run(self.tree([]).new_env(output=output), ["bogus"])
        self.assertIsInstance(context.exception, HelpRequested)
        self.assertIn('Error: root command "bogus" not understood', output.getvalue())

    def testTopicChildOfNodeWithoutActionIsNotUnderstood(self):
        with self.assertRaises(UnknownCommandError):
            run(self.tree([]).new_env(output=io.StringIO()), ["notes"])

    def testNodeWithoutActionShowsShortHelp(self):
        output = io.StringIO()
        with self.assertRaises(HelpRequested):
            run(self.tree([]).new_env(output=output), [])
        self.assertIn("Root help.", output.getvalue())

    def testUnlistedNodeIsDispatchable(self):
        seen = []
        run(self.tree(seen).new_env(output=io.StringIO()), ["secret", "args"])
        self.assertEqual(seen, [("secret", ["args"])])

    def testUnlistedNodeIsAnUnknownHelpTopic(self):
        output = io.StringIO()
        with self.assertRaises(UnknownTopicError):
            run(self.tree([]).new_env(output=output), ["help", "secret"])
        self.assertIn('Unknown help topic "secret"', output.getvalue())


class TestInit(TestCase):
    """Init hooks run after parsing and before routing."""

    def testInitOverridesApplyToSubtree(self):
        seen = []

        def init(env):
            env.config = "from-init"
            env.merge_flags(True)

        leaf = Command(
            "leaf",
            set_flags=lambda env, flags: flags.flag("v"),
            action=lambda env: seen.append((env.config, env.merge, env.args)),
        )
        root = Command("root", init=init, commands=[leaf])
        run(root.new_env("original", output=io.StringIO()), ["leaf", "x", "-v"])
        self.assertEqual(seen, [("from-init", True, ["x"])])
        self.assertIs(leaf.flags["v"], True)

    def testInitSeesParsedArguments(self):
        seen = []
        root = Command("root", init=lambda env: seen.append(env.args), action=lambda env: None)
        run(root.new_env(output=io.StringIO()), ["a", "b"])
        self.assertEqual(seen, [["a", "b"]])

    def testInitErrorIsWrapped(self):
        cause = CommandError("not ready")

        def init(env):
            raise cause

        seen = []
        root = Command("root", init=init, action=lambda env: seen.append(env))
        with self.assertRaises(InitError) as context:
            run(root.new_env(output=io.StringIO()), [])
        self.assertEqual(str(context.exception), 'initializing "root": not ready')
        self.assertIs(context.exception.cause, cause)
        self.assertEqual(context.exception.command, "root")
        self.assertEqual(seen, [])


class TestContainment(TestCase):
    """Stray exceptions become PanicError at the outermost run()."""

    def testPanicInAction(self):
        def freak_out(env):
            raise RuntimeError("boom")

        root = Command("freak-out", action=freak_out)
        with self.assertRaises(PanicError) as context:
            run(root.new_env(output=io.StringIO()), [])
        error = context.exception
        self.assertIsInstance(error.value, RuntimeError)
        self.assertEqual(str(error.value), "boom")
        self.assertIs(error.__cause__, error.value)
        self.assertIs(error.env.command, root)
        self.assertIn("boom", str(error))
        self.assertIn("RuntimeError", error.stack)

    def testPanicValueIsTheRaisedObject(self):
        value = ValueError("boom")

        def freak_out(env):
            raise value

        root = Command("root", commands=[Command("child", action=freak_out)])
        with self.assertRaises(PanicError) as context:
            run(root.new_env(output=io.StringIO()), ["child"])
        self.assertIs(context.exception.value, value)
        self.assertIs(context.exception.env.command, root.find("child"))

    def testPanicInFlagDeclaration(self):
        def set_flags(env, flags):
            raise KeyError("flags")

        child = Command("child", set_flags=set_flags, action=lambda env: None)
        root = Command("root", commands=[child])
        with self.assertRaises(PanicError) as context:
            run(root.new_env(output=io.StringIO()), ["child"])
        self.assertIs(context.exception.env.command, child)

    def testBrokenFlagCallbackIsAPanic(self):
        def broken(value):
            raise ValueError("callback bug")

        root = Command(
            "root",
            set_flags=lambda env, flags: flags.option("mode", callback=broken),
            action=lambda env: None,
        )
        with self.assertRaises(PanicError) as context:
            run(root.new_env(output=io.StringIO()), ["-mode", "x"])
        self.assertNotIsInstance(context.exception, UsageError)
        self.assertEqual(str(context.exception.value), "callback bug")

    def testPanicInInit(self):
        def init(env):
            raise ZeroDivisionError("division")

        root = Command("root", init=init, action=lambda env: None)
        with self.assertRaises(PanicError) as context:
            run(root.new_env(output=io.StringIO()), [])
        self.assertIsInstance(context.exception.value, ZeroDivisionError)

    def testNestedRunConvertsOnce(self):
        inner = Command("inner", action=lambda env: 1 / 0)

        def outer_action(env):
            run(inner.new_env(output=io.StringIO()), [])

        outer = Command("outer", action=outer_action)
        with self.assertRaises(PanicError) as context:
            run(outer.new_env(output=io.StringIO()), [])
        self.assertIsInstance(context.exception.value, ZeroDivisionError)
        self.assertIs(context.exception.env.command, inner)

    def testActionErrorsPassThrough(self):
        error = CommandError("plain failure")

        def fail(env):
            raise error

        root = Command("root", action=fail)
        with self.assertRaises(CommandError) as context:
            run(root.new_env(output=io.StringIO()), [])
        self.assertIs(context.exception, error)

    def testKeyboardInterruptIsNotIntercepted(self):
        def interrupt(env):
            raise KeyboardInterrupt

        root = Command("root", action=interrupt)
        with self.assertRaises(KeyboardInterrupt):
            run(root.new_env(output=io.StringIO()), [])


class TestCancellation(TestCase):
    """Owned handles along the chain are cancelled when run() returns."""

    def testRootHandleCancelledOnSuccess(self):
        active = []
        parent = Context()
        root = Command("root", action=lambda env: active.append(env.context().cancelled))
        env = root.new_env(output=io.StringIO()).set_context(parent)
        run(env, [])
        self.assertEqual(active, [False])
        self.assertTrue(env.context().cancelled)
        self.assertIsInstance(env.context().cause, Cancelled)
        self.assertFalse(parent.cancelled)

    def testRootHandleCancelledWithError(self):
        error = CommandError("failed")

        def fail(env):
            raise error

        root = Command("root", action=fail)
        env = root.new_env(output=io.StringIO()).set_context(Context())
        with self.assertRaises(CommandError):
            run(env, [])
        self.assertIs(env.context().cause, error)

    def testRootHandleCancelledWithPanic(self):
        root = Command("root", action=lambda env: [][1])
        env = root.new_env(output=io.StringIO()).set_context(Context())
        with self.assertRaises(PanicError) as context:
            run(env, [])
        self.assertIs(env.context().cause, context.exception)

    def testHandleOwnedByInitIsCancelled(self):
        handles = []

        def init(env):
            env.set_context(env.context())

        child = Command("child", action=lambda env: handles.append(env.context()))
        root = Command("root", init=init, commands=[child])
        env = root.new_env(output=io.StringIO())
        run(env, ["child"])
        self.assertEqual(len(handles), 1)
        self.assertTrue(handles[0].cancelled)
        self.assertFalse(env.context().parent.cancelled)

    def testRootHandleCancelledWithInterrupt(self):
        interrupt = KeyboardInterrupt()

        def stop(env):
            raise interrupt

        root = Command("root", action=stop)
        env = root.new_env(output=io.StringIO()).set_context(Context())
        with self.assertRaises(KeyboardInterrupt):
            run(env, [])
        self.assertIs(env.context().cause, interrupt)

    def testLongLivedParentDoesNotAccumulateHandles(self):
        parent = Context()
        root = Command("root", action=lambda env: None)
        for _ in range(100):
            run(root.new_env(output=io.StringIO()).set_context(parent), [])
        self.assertEqual(parent._callbacks, [])
        self.assertFalse(parent.cancelled)

    def testActionMayCancel(self):
        seen = []

        def stop(env):
            seen.append(env.cancel(CommandError("stopped")))
            seen.append(env.context().cancelled)

        root = Command("root", action=stop)
        run(root.new_env(output=io.StringIO()).set_context(Context()), [])
        self.assertEqual(seen, [True, True])


class TestRunOrFail(TestCase):
    """Process-level wrappers and exit statuses."""

    def testSuccessReturns(self):
        root = Command("root", action=lambda env: "done")
        self.assertEqual(run_or_fail(root.new_env(output=io.StringIO()), []), "done")

    def testHelpExitsWithTwo(self):
        root = Command("root", commands=[Command("leaf", action=lambda env: None)])
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit) as context:
            run_or_fail(root.new_env(output=io.StringIO()), [])
        self.assertEqual(context.exception.code, 2)

    def testUsageErrorExitsWithTwoAndShowsUsage(self):
        output = io.StringIO()
        root = Command("root", usage="[flags] args", action=lambda env: None)
        with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(SystemExit) as context:
            run_or_fail(root.new_env(output=output), ["-nope"])
        self.assertEqual(context.exception.code, 2)
        self.assertIn("flag provided but not defined: -nope", stderr.getvalue())
        self.assertIn("root [flags] args", output.getvalue())

    def testActionErrorExitsWithOne(self):
        def fail(env):
            raise CommandError("it broke", hint="try again")

        root = Command("root", action=fail)
        with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(SystemExit) as context:
            run_or_fail(root.new_env(output=io.StringIO()), [])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("it broke", stderr.getvalue())
        self.assertIn("try again", stderr.getvalue())

    def testPanicExitsWithOneAndShowsStack(self):
        def freak_out(env):
            raise RuntimeError("omg the sky is falling")

        root = Command("root", action=freak_out)
        with redirect_stderr(io.StringIO()) as stderr, self.assertRaises(SystemExit) as context:
            run_or_fail(root.new_env(output=io.StringIO()), [])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("omg the sky is falling", stderr.getvalue())
        self.assertIn("RuntimeError", stderr.getvalue())

    def testInvokeSplitsPrompt(self):
        seen = []
        root = Command("root", action=lambda env: seen.append((env.config, env.args)))
        with redirect_stderr(io.StringIO()):
            invoke(root, "a 'b c'", config="cfg")
            invoke(root, ["d", "e"])
        self.assertEqual(seen, [("cfg", ["a", "b c"]), (None, ["d", "e"])])

    def testInvokeRejectsBadPrompts(self):
        root = Command("root", action=lambda env: None)
        with self.assertRaises(TypeError):
            invoke(root, 42)
        with self.assertRaises(TypeError):
            invoke(root, ["ok", 1])
        with self.assertRaises(TypeError):
            invoke(lambda env: None, "x")


if __name__ == "__main__":
    unittest.main()
