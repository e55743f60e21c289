"""
Positional argument tests (declaration, usage, binding, checks).

Scope
- Validate Arg declaration faults and help rendering.
- Validate binding of values to slots (get/tail) and the layout checks.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from helmsman import Arg, ArgDefinition, Args, Command, check_args_modes, check_required_args
from helmsman.faults import ConfigurationError, FaultCode, MissingArgumentError, TooManyArgumentsError


class TestArgDeclaration(TestCase):
    def testInvalidFields(self):
        with self.assertRaises(TypeError):
            Arg(1)
        with self.assertRaises(ValueError):
            Arg("  ")
        with self.assertRaises(TypeError):
            Arg("file", optional="yes")
        with self.assertRaises(TypeError):
            ArgDefinition(["file"])

    def testDescribe(self):
        self.assertEqual(Arg("file", description="Input file").describe(), ("file", "Input file (required)"))
        self.assertEqual(
            Arg("mode", "fast", "Run mode", optional=True).describe(),
            ("mode", 'Run mode [default: "fast"]'),
        )

    def testUsage(self):
        definition = ArgDefinition([
            Arg("a"),
            Arg("b", optional=True),
            Arg("c", optional=True, slice=True),
        ])
        self.assertEqual(definition.usage(), " [--] <a> [<b>] [<c>]...")
        self.assertEqual(ArgDefinition([Arg("a"), Arg("rest", slice=True)]).usage(), " [--] <a> (<rest>)...")
        self.assertEqual(ArgDefinition().usage(), "")


class TestArgsBinding(TestCase):
    def makeCommand(self):
        return Command("copy", args=[Arg("source"), Arg("mode", "fast", optional=True), Arg("rest", optional=True, slice=True)])

    def testGet(self):
        args = Args(["a.txt"], self.makeCommand())
        self.assertEqual(args.get("source"), "a.txt")
        self.assertEqual(args.get("mode"), "fast")
        self.assertEqual(args.get("rest"), "")
        self.assertEqual(args.get("unknown"), "")

    def testTail(self):
        args = Args(["a.txt", "slow", "x", "y"], self.makeCommand())
        self.assertEqual(args.tail(), ["x", "y"])
        self.assertEqual(Args(["a", "b"], Command("plain", args=[Arg("a")])).tail(), [])
        self.assertEqual(Args(["a", "b", "c"]).tail(), ["b", "c"])

    def testWithoutCommand(self):
        args = Args(["a", "b"])
        self.assertEqual(args.get("a"), "")
        self.assertEqual(args.first(), "a")
        self.assertEqual(args.len(), 2)
        self.assertTrue(args.present())
        self.assertEqual(list(args), ["a", "b"])
        self.assertFalse(Args([]))
        self.assertEqual(Args([]).first(), "")


class TestArgsChecks(TestCase):
    def testModes(self):
        cases = (
            ([Arg("a"), Arg("a")], 'An argument with name "a" already exists.'),
            ([Arg("a", slice=True), Arg("b")], "Cannot add an argument after an array argument."),
            ([Arg("a", optional=True), Arg("b")], "Cannot add a required argument after an optional one."),
        )
        for arguments, message in cases:
            with self.subTest(message=message):
                with self.assertRaises(ConfigurationError) as caught:
                    check_args_modes(arguments)
                self.assertEqual(str(caught.exception), message)
                self.assertEqual(caught.exception.code, FaultCode.INVALID_ARGUMENT_SHAPE)
        check_args_modes([Arg("a"), Arg("b", optional=True), Arg("c", optional=True, slice=True)])

    def testRequired(self):
        command = Command("copy", args=[Arg("source"), Arg("target")])
        with self.assertRaises(MissingArgumentError) as caught:
            check_required_args(command.args, Args(["a"], command))
        self.assertEqual(str(caught.exception), 'Required argument "target" is not set')
        check_required_args(command.args, Args(["a", "b"], command))

    def testRequiredSlice(self):
        command = Command("copy", args=[Arg("files", slice=True)])
        with self.assertRaises(MissingArgumentError):
            check_required_args(command.args, Args([], command))
        check_required_args(command.args, Args(["a", "b", "c"], command))

    def testTooMany(self):
        command = Command("copy", args=[Arg("source")])
        with self.assertRaises(TooManyArgumentsError):
            check_required_args(command.args, Args(["a", "b"], command))
        with self.assertRaises(TooManyArgumentsError):
            check_required_args([], Args(["a"]))


if __name__ == "__main__":
    unittest.main()
