"""
Reordering engine tests (fix_args, parse_args, environment fallbacks).

Scope
- Global region: flags are lifted before the command token, unknown flags and
  positionals are kept after it, the command's parsing mode takes over.
- Command region: known flags first, then "--", then positionals.
- Verbosity shortcuts and environment fallbacks.

Conventions
- Test method names follow CamelCase per project convention.
- Applications are not set up: fix_args/parse_args work on declared flags.
"""

from __future__ import annotations

import os
import unittest
from unittest import TestCase, mock

from helmsman import (
    Application,
    BoolFlag,
    Command,
    Context,
    IntFlag,
    ParsingMode,
    StringFlag,
    StringSliceFlag,
    VerbosityFlag,
    find_command,
    fix_args,
)
from helmsman.faults import EnvironmentFlagError, FlagSetError, MissingFlagError


def uploadFlags():
    return [
        IntFlag("reference", aliases=("r",)),
        IntFlag("samples", aliases=("s",)),
        BoolFlag("test", aliases=("t",)),
    ]


def makeCommands():
    return {
        "curl": Command("curl", flags=uploadFlags()),
        "upload": Command("upload", flags=uploadFlags()),
        "foo": Command("foo", flags=uploadFlags(), flag_parsing=ParsingMode.SKIPPED),
        "run": Command("run", flags=uploadFlags(), flag_parsing=ParsingMode.SKIPPED_AFTER_FIRST_ARG),
    }


def makeApp():
    commands = makeCommands()
    return Application(
        flags=[
            IntFlag("v", default=1),
            StringFlag("server-id"),
            StringFlag("server-token"),
            StringFlag("config"),
            BoolFlag("quiet", aliases=("q",)),
        ],
        commands=[Command("agent"), *commands.values()],
    )


SERVER_ID = "-server-id=75299154-8b63-4632-9b04-1e10bb19c144"
SERVER_TOKEN = "-server-token=f30f10d62f6f577e90e1be4e218a638ec3d16a0e0454bd69b2459bb046588c6f"


class TestApplicationReordering(TestCase):
    """fix_args/parse_args on the global region."""

    CASES = (
        # (arguments, reordered, positionals, v, quiet)
        (
            ["-reference=4", "--v=3", "-q", "upload", "file1", "file2"],
            ["--v=3", "-quiet", "upload", "-reference=4", "file1", "file2"],
            ["upload", "-reference=4", "file1", "file2"], 3, True,
        ),
        (
            ["-reference", "4", "--v=3", "-q", "upload", "file1", "file2"],
            ["--v=3", "-quiet", "upload", "-reference", "4", "file1", "file2"],
            ["upload", "-reference", "4", "file1", "file2"], 3, True,
        ),
        (
            ["upload", "-reference=4", "-v=3", "-q", "file1", "file2"],
            ["-v=3", "-quiet", "upload", "-reference=4", "file1", "file2"],
            ["upload", "-reference=4", "file1", "file2"], 3, True,
        ),
        (
            ["upload", "-reference=4", "-v=3", "-q", "upload", "file1", "file2"],
            ["-v=3", "-quiet", "upload", "-reference=4", "upload", "file1", "file2"],
            ["upload", "-reference=4", "upload", "file1", "file2"], 3, True,
        ),
        (
            ["curl", "-reference=4", "-v=3", "-q", "-X", "POST", "http://blackfire.io"],
            ["-v=3", "-quiet", "curl", "-reference=4", "-X", "POST", "http://blackfire.io"],
            ["curl", "-reference=4", "-X", "POST", "http://blackfire.io"], 3, True,
        ),
        (
            ["curl"],
            ["curl"],
            ["curl"], 1, False,
        ),
        (
            [SERVER_ID, SERVER_TOKEN, "agent"],
            [SERVER_ID, SERVER_TOKEN, "agent"],
            ["agent"], 1, False,
        ),
        (
            [SERVER_ID, SERVER_TOKEN, "agent", "-v=4"],
            [SERVER_ID, SERVER_TOKEN, "-v=4", "agent"],
            ["agent"], 4, False,
        ),
        (
            ["run", "-v=4", "--reference", "8", "php", "vd.php"],
            ["-v=4", "run", "--reference", "8", "php", "vd.php"],
            ["run", "--reference", "8", "php", "vd.php"], 4, False,
        ),
        (
            ["run", "--", "-v=4", "--reference", "8", "php", "vd.php"],
            ["run", "--", "-v=4", "--reference", "8", "php", "vd.php"],
            ["run", "-v=4", "--reference", "8", "php", "vd.php"], 1, False,
        ),
        (
            ["-v=4", "foo", "--reference", "8", "php", "vd.php"],
            ["-v=4", "foo", "--reference", "8", "php", "vd.php"],
            ["foo", "--reference", "8", "php", "vd.php"], 4, False,
        ),
        (
            ["-config", "/Users/marc/.blackfire-d1.ini", "-reference=19", "upload", "profiler/README.md"],
            ["-config", "/Users/marc/.blackfire-d1.ini", "upload", "-reference=19", "profiler/README.md"],
            ["upload", "-reference=19", "profiler/README.md"], 1, False,
        ),
        (
            ["curl", "-v=4", "-reference=4", "-samples=4", "http://labomedia.org"],
            ["-v=4", "curl", "-reference=4", "-samples=4", "http://labomedia.org"],
            ["curl", "-reference=4", "-samples=4", "http://labomedia.org"], 4, False,
        ),
        (
            ["run", "-v=4", "--reference", "8", "php", "vd.php", "--config=foo", "--foo", "bar"],
            ["-v=4", "run", "--reference", "8", "php", "vd.php", "--config=foo", "--foo", "bar"],
            ["run", "--reference", "8", "php", "vd.php", "--config=foo", "--foo", "bar"], 4, False,
        ),
    )

    def testFixArgs(self):
        app = makeApp()
        for arguments, reordered, _, _, _ in self.CASES:
            with self.subTest(arguments=arguments):
                self.assertEqual(app.fix_args(arguments), reordered)

    def testParseArgs(self):
        for arguments, _, positionals, verbosity, quiet in self.CASES:
            with self.subTest(arguments=arguments):
                app = makeApp()
                flags, error = app.parse_args(arguments)
                self.assertIsNone(error)
                context = Context(app, flags)
                self.assertEqual(context.int("v"), verbosity)
                self.assertEqual(context.bool("quiet"), quiet)
                self.assertEqual(context.args().slice(), positionals)

    def testTrailingEqualsTakesNextToken(self):
        app = makeApp()
        self.assertEqual(app.fix_args(["-config=", "dev.ini", "agent"]), ["-config", "dev.ini", "agent"])

    def testFlagsAfterDoubleDashStayPositional(self):
        app = makeApp()
        self.assertEqual(app.fix_args(["--", "-q", "agent"]), ["--", "-q", "agent"])


class TestVerbosityReordering(TestCase):
    """verbosity shortcuts are global flags writing through to log-level."""

    CASES = (
        ("--log-level=5", 5),
        ("--verbose", 3),
        ("-vvv", 4),
        ("-vv", 3),
        ("-v", 2),
        ("-v=3", 3),
    )

    def makeApp(self):
        return Application(
            flags=[VerbosityFlag("log-level", "verbose", "v", logger="helmsman.test.verbosity")],
            commands=[Command("envs", flags=[StringFlag("project", aliases=("p",))])],
        )

    def testShortcutsSetTheLevel(self):
        for argument, level in self.CASES:
            with self.subTest(argument=argument):
                app = self.makeApp()
                arguments = [argument, "-p", "agb6vnth4arfo", "envs"]
                self.assertEqual(app.fix_args(arguments), [argument, "envs", "-p", "agb6vnth4arfo"])

                flags, error = app.parse_args(arguments)
                self.assertIsNone(error)
                context = Context(app, flags)
                self.assertEqual(context.int("log-level"), level)
                self.assertEqual(app.flags[0].verbosity.level, level)
                self.assertTrue(context.is_set("log-level"))

                command = app.command(context.args().first())
                flags, error = command.parse_args(context.args().tail())
                self.assertIsNone(error)
                self.assertEqual(Context(app, flags, context, command=command).string("project"), "agb6vnth4arfo")

    def testOutOfRangeLevelFails(self):
        app = self.makeApp()
        _, error = app.parse_args(["--log-level=9"])
        self.assertIsInstance(error, FlagSetError)
        self.assertIn("not in the range [1,5]", str(error))


class TestCommandReordering(TestCase):
    """fix_args/parse_args on a command region."""

    ARGUMENTS = ["-reference=4", "--samples=10", "-t", "file1", "-s=", "5", "-H='Host: foo'", "foo"]

    def testNormalMode(self):
        for name in ("curl", "upload"):
            with self.subTest(command=name):
                command = makeCommands()[name]
                self.assertEqual(
                    command.fix_args(self.ARGUMENTS),
                    ["-reference=4", "--samples=10", "-test", "-samples", "5", "-H='Host: foo'", "--", "file1", "foo"],
                )
                flags, error = command.parse_args(self.ARGUMENTS)
                self.assertEqual(str(error), "flag provided but not defined: -H")
                context = Context(makeApp(), flags)
                self.assertEqual(context.int("reference"), 4)
                self.assertEqual(context.int("samples"), 5)
                self.assertTrue(context.bool("test"))
                self.assertEqual(context.args().slice(), ["file1", "foo"])

    def testSkippedMode(self):
        command = makeCommands()["foo"]
        self.assertEqual(command.fix_args(self.ARGUMENTS), ["--", *self.ARGUMENTS])
        flags, error = command.parse_args(self.ARGUMENTS)
        self.assertIsNone(error)
        context = Context(makeApp(), flags)
        self.assertEqual(context.int("reference"), 0)
        self.assertEqual(context.int("samples"), 0)
        self.assertFalse(context.bool("test"))
        self.assertEqual(context.args().slice(), self.ARGUMENTS)

    def testSkippedAfterFirstArgMode(self):
        command = makeCommands()["run"]
        self.assertEqual(
            command.fix_args(self.ARGUMENTS),
            ["-reference=4", "--samples=10", "-test", "--", "file1", "-s=", "5", "-H='Host: foo'", "foo"],
        )
        flags, error = command.parse_args(self.ARGUMENTS)
        self.assertIsNone(error)
        context = Context(makeApp(), flags)
        self.assertEqual(context.int("reference"), 4)
        self.assertEqual(context.int("samples"), 10)
        self.assertTrue(context.bool("test"))
        self.assertEqual(context.args().slice(), ["file1", "-s=", "5", "-H='Host: foo'", "foo"])

    def testDoubleDash(self):
        command = makeCommands()["curl"]
        arguments = ["-reference=4", "-s=", "5", "--", "--samples=10", "file1", "-f=", "3", "foo"]
        self.assertEqual(
            command.fix_args(arguments),
            ["-reference=4", "-samples", "5", "--", "--samples=10", "file1", "-f=", "3", "foo"],
        )
        flags, error = command.parse_args(arguments)
        self.assertIsNone(error)
        context = Context(makeApp(), flags)
        self.assertEqual(context.int("reference"), 4)
        self.assertEqual(context.int("samples"), 5)
        self.assertEqual(context.args().slice(), ["--samples=10", "file1", "-f=", "3", "foo"])

    def testUnknownFlagStopsParsing(self):
        command = makeCommands()["curl"]
        arguments = ["-reference=4", "--unknown", "-r=", "-s=", "5", "--samples=10", "file1", "-f=", "3", "foo"]
        self.assertEqual(
            command.fix_args(arguments),
            ["-reference=4", "--unknown", "-reference", "-samples", "5", "--samples=10", "-f=", "3", "--", "file1", "foo"],
        )
        flags, error = command.parse_args(arguments)
        self.assertIsNotNone(error)
        context = Context(makeApp(), flags)
        self.assertEqual(context.int("reference"), 4)
        self.assertEqual(context.int("samples"), 0)
        self.assertEqual(
            context.args().slice(),
            ["-reference", "-samples", "5", "--samples=10", "-f=", "3", "file1", "foo"],
        )

    def testRequiredFlag(self):
        command = Command("deploy", flags=[StringFlag("target", required=True), StringFlag("optional")])
        _, error = command.parse_args(["--target", "prod"])
        self.assertIsNone(error)
        _, error = command.parse_args(["--optional", "foo"])
        self.assertIsInstance(error, MissingFlagError)
        self.assertEqual(str(error), 'Required flag "target" is not set')


class TestFindCommand(TestCase):
    def testExactMatchWins(self):
        commands = [Command("list", category="project"), Command("link", category="project")]
        self.assertIs(find_command(commands, "project:list"), commands[0])

    def testUniqueFuzzyMatch(self):
        commands = [Command("list", category="project"), Command("link", category="project")]
        self.assertIs(find_command(commands, "p:lis"), commands[0])
        self.assertIsNone(find_command(commands, "p:li"))

    def testUserNameKeepsTheTypedToken(self):
        commands = [Command("list", category="project")]
        self.assertIs(find_command(commands, "Pro:List"), commands[0])
        self.assertEqual(commands[0].user_name, "Pro:List")

    def testNoCommands(self):
        self.assertIsNone(find_command(None, "anything"))
        self.assertEqual(fix_args(["a", "-b"], [], None, ParsingMode.NORMAL, ""), ["a", "-b"])


class TestEnvironmentFallbacks(TestCase):
    def makeCommand(self):
        return Command(
            "deploy",
            flags=[
                StringFlag("target", env_vars=("DEPLOY_TARGET", "TARGET")),
                StringSliceFlag("tag"),
                IntFlag("retries"),
            ],
        )

    def testFirstDeclaredVariableWins(self):
        with mock.patch.dict(os.environ, {"DEPLOY_TARGET": "prod", "TARGET": "staging"}):
            flags, error = self.makeCommand().parse_args([])
        self.assertIsNone(error)
        self.assertEqual(flags.lookup("target").value.get(), "prod")
        self.assertTrue(flags.is_set("target"))

    def testCommandLineBeatsEnvironment(self):
        with mock.patch.dict(os.environ, {"DEPLOY_TARGET": "prod"}):
            flags, error = self.makeCommand().parse_args(["--target=dev"])
        self.assertIsNone(error)
        self.assertEqual(flags.lookup("target").value.get(), "dev")

    def testEmptyVariableIsIgnored(self):
        with mock.patch.dict(os.environ, {"DEPLOY_TARGET": "", "TARGET": "staging"}):
            flags, _ = self.makeCommand().parse_args([])
        self.assertEqual(flags.lookup("target").value.get(), "staging")

    def testPrefixDerivedVariables(self):
        with mock.patch.dict(os.environ, {"APP_TAG": "blue", "APP_RETRIES": "3"}):
            flags, error = self.makeCommand().parse_args([], ["app"])
        self.assertIsNone(error)
        self.assertEqual(flags.lookup("tag").value.get(), ["blue"])
        self.assertEqual(flags.lookup("retries").value.get(), 3)

    def testInvalidEnvironmentValue(self):
        with mock.patch.dict(os.environ, {"APP_RETRIES": "many"}):
            _, error = self.makeCommand().parse_args([], ["app"])
        self.assertIsInstance(error, EnvironmentFlagError)
        self.assertEqual(str(error), "Failed to set flag retries with value many")

    def testHomeIsExpanded(self):
        with mock.patch.dict(os.environ, {"HOME": "/home/helmsman"}):
            flags, _ = self.makeCommand().parse_args(["--target", "~/deploy"])
        self.assertEqual(flags.lookup("target").value.get(), "/home/helmsman/deploy")


if __name__ == "__main__":
    unittest.main()
