"""
Help rendering tests (application, category, command and version output).

Conventions
- Test method names follow CamelCase per project convention.
- Renderables are printed on in-memory rich consoles and checked as text.
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase

from rich.console import Console

from helmsman import (
    Application,
    Arg,
    BoolFlag,
    Command,
    StringFlag,
    render_app_help,
    render_command_help,
    render_version,
)


def makeApp(**options):
    return Application(
        "tool",
        usage="Ship things",
        version="1.2.3",
        channel="stable",
        build_date="2024-01-01",
        commands=[
            Command("deploy", aliases=["ship"], usage="Deploy the application"),
            Command("list", category="project", usage="List projects"),
            Command("purge", category="project", usage="Purge projects", hidden=True),
            Command(
                "run",
                usage="Run a task",
                description="Runs the task named on the command line.",
                flags=[StringFlag("env", usage="Target `name`", default="dev"), BoolFlag("dry", hidden=True)],
                args=[Arg("task", description="Task name"), Arg("extra", optional=True, slice=True)],
            ),
        ],
        flags=[StringFlag("region", usage="Cloud region", env_vars=("TOOL_REGION",))],
        writer=Console(file=io.StringIO(), width=160),
        err_writer=Console(file=io.StringIO(), width=160),
        **options,
    )


def rendered(renderable):
    console = Console(file=io.StringIO(), width=160)
    console.print(renderable)
    return console.file.getvalue()


class TestApplicationHelp(TestCase):
    def setUp(self):
        self.app = makeApp()
        self.app.setup()
        self.text = rendered(render_app_help(self.app))

    def testHeaderAndUsage(self):
        self.assertIn("tool version 1.2.3", self.text)
        self.assertIn("Ship things", self.text)
        self.assertIn("tool [global options] <command> [command options] [arguments...]", self.text)

    def testGlobalOptions(self):
        self.assertIn("Global options:", self.text)
        self.assertIn("--help, -h", self.text)
        self.assertIn("-v|vv|vvv, --verbose, --log-level", self.text)
        self.assertIn("--region=value", self.text)
        self.assertIn("Cloud region [$TOOL_REGION]", self.text)

    def testCommandsByCategory(self):
        self.assertIn("Available commands:", self.text)
        self.assertIn("deploy, ship", self.text)
        self.assertIn("project:list", self.text)
        self.assertIn("self:help, help, list", self.text)
        self.assertNotIn("project:purge", self.text)
        self.assertLess(self.text.index("deploy, ship"), self.text.index("project:list"))
        self.assertLess(self.text.index("project:list"), self.text.index("self:help"))


class TestCommandHelp(TestCase):
    def setUp(self):
        self.app = makeApp()
        self.app.setup()
        self.text = rendered(render_command_help(self.app, self.app.command("run")))

    def testSections(self):
        self.assertIn("Description:", self.text)
        self.assertIn("Run a task", self.text)
        self.assertIn("tool run [options] [--] <task> [<extra>]...", self.text)
        self.assertIn("Arguments:", self.text)
        self.assertIn("Task name (required)", self.text)
        self.assertIn("Options:", self.text)
        self.assertIn("--env=name", self.text)
        self.assertIn('Target name [default: "dev"]', self.text)
        self.assertNotIn("--dry", self.text)
        self.assertIn("Help:", self.text)
        self.assertIn("Runs the task named on the command line.", self.text)

    def testMinimalCommand(self):
        text = rendered(render_command_help(self.app, self.app.command("deploy")))
        self.assertIn("tool deploy", text)
        self.assertNotIn("Arguments:", text)
        self.assertNotIn("Options:", text)


class TestShowHelp(TestCase):
    def output(self, app):
        return app.writer.file.getvalue()

    def testHelpCommandForCommand(self):
        app = makeApp()
        app.run(["help", "run"])
        self.assertIn("tool run [options]", self.output(app))

    def testHelpCommandForCategory(self):
        app = makeApp()
        app.run(["help", "proj"])
        self.assertIn('Available commands for the "project" namespace:', self.output(app))
        self.assertIn("project:list", self.output(app))

    def testListAlias(self):
        app = makeApp()
        app.run(["list"])
        self.assertIn("Available commands:", self.output(app))

    def testCustomPrinter(self):
        printed = []
        app = makeApp(help_printer=lambda console, renderable: printed.append(renderable))
        app.run([])
        self.assertEqual(len(printed), 1)
        self.assertEqual(self.output(app), "")


class TestVersion(TestCase):
    def testRenderVersion(self):
        app = makeApp()
        app.setup()
        self.assertEqual(rendered(render_version(app)).strip(), "tool version 1.2.3 (2024-01-01 - stable)")

    def testVersionFlagAndCommand(self):
        for arguments in (["-V"], ["version"]):
            with self.subTest(arguments=arguments):
                app = makeApp()
                app.run(arguments)
                self.assertEqual(app.writer.file.getvalue().strip(), "tool version 1.2.3 (2024-01-01 - stable)")

    def testCustomVersionPrinter(self):
        calls = []
        app = makeApp(version_printer=lambda context: calls.append(context.app.version))
        app.run(["-V"])
        self.assertEqual(calls, ["1.2.3"])


if __name__ == "__main__":
    unittest.main()
