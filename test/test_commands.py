"""
Commands module behavioral tests (composition, delegation, invocation).

Scope
- Validate Command metadata and the command() factory/decorator.
- Validate MultiCommand selection, flag fall-through and positional forwarding.
- Validate invoke(): prompt normalization, fault surfacing and run() dispatch.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (command, invoke, Command, MultiCommand).
- Every invoke/parse passes an empty environment so no completion run is triggered.
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase

from flagstaff import (
    Command,
    MultiCommand,
    Example,
    Selected,
    command,
    invoke,
    UnknownSubcommandError,
    UnrecognizedFlagError,
    MissingRequiredPositionalError,
    UsageError,
)
from flagstaff.utils import Unset


class Run(Command):
    """run a program with arguments"""

    instances = 0

    def __init__(self):
        super().__init__(name="run", descr="run a program", examples=[("run it", "tool run --flag x")])
        type(self).instances += 1
        self.flags = []
        self.program = None
        self.ran = False
        self.add_flag("flag", labels=("value",), handler=self.flags.append)
        self.expect("program", optional=True, handler=self.setprogram)

    def setprogram(self, program):
        self.program = program

    def run(self):
        self.ran = True
        return "ran"


class Build(Command):
    instances = 0

    def __init__(self):
        super().__init__(name="build", category="development")
        type(self).instances += 1
        self.built = []
        self.expect("targets", arity=..., handler=lambda *targets: self.built.extend(targets))

    def run(self):
        return "built"


class Tool(MultiCommand):
    def __init__(self, **options):
        super().__init__({"build": Build, "run": Run}, name="tool", **options)
        self.verbose = 0
        self.add_flag("verbose", "v", handler=self.louder)

    def louder(self):
        self.verbose += 1


class TestCommand(TestCase):
    """Behavioral tests for Command metadata and the command() factory."""

    def testCommandDecoratorUsesCallbackMetadata(self):
        @command
        def greet():
            """say hello to someone

            more text that is not part of the description
            """
            return "hello"

        self.assertIsInstance(greet, Command)
        self.assertEqual(greet.name, "greet")
        self.assertEqual(greet.descr, "say hello to someone")
        self.assertEqual(greet.run(), "hello")

    def testCommandDecoratorWithOptions(self):
        @command(name="hi", descr="greet", category="fun")
        def greet():
            pass

        self.assertEqual((greet.name, greet.descr, greet.category), ("hi", "greet", "fun"))

    def testCommandRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            command(42)

    def testExamplesAreNormalized(self):
        cmd = Command(name="x", examples=["x --y", ("with descr", "x --z")])
        self.assertEqual(cmd.examples, (Example(None, "x --y"), Example("with descr", "x --z")))

    def testSubclassRunsItsOwnAction(self):
        cmd = Run()
        cmd.parse(["--flag", "a", "prog"], environ={})
        self.assertEqual(cmd.flags, ["a"])
        self.assertEqual(cmd.program, "prog")
        self.assertEqual(cmd.run(), "ran")

    def testDefaultCategory(self):
        self.assertEqual(Run().category, "default")


class TestMultiCommand(TestCase):
    """Behavioral tests for sub-command delegation."""

    def setUp(self):
        Run.instances = 0
        Build.instances = 0

    def testDelegatesToSelectedCommand(self):
        tool = Tool()
        tool.parse(["run", "--flag", "x"], environ={})

        self.assertEqual(Run.instances, 1)
        self.assertEqual(Build.instances, 0)
        self.assertIsInstance(tool.selected, Selected)
        self.assertEqual(tool.selected.name, "run")
        self.assertEqual(tool.selected.command.flags, ["x"])
        self.assertNotIn("flag", tool.longflags)

    def testCommonFlagsWorkBeforeAndAfterName(self):
        tool = Tool()
        tool.parse(["-v", "run", "-v", "--flag", "x"], environ={})
        self.assertEqual(tool.verbose, 2)
        self.assertEqual(tool.selected.command.flags, ["x"])

    def testDelegateFlagBeforeNameIsUnknown(self):
        with self.assertRaises(UnrecognizedFlagError):
            Tool().parse(["--flag", "x", "run"], environ={})

    def testPositionalsAreForwarded(self):
        tool = Tool()
        tool.parse(["build", "a", "b", "c"], environ={})
        self.assertEqual(tool.selected.command.built, ["a", "b", "c"])

    def testUnknownCommandRaises(self):
        with self.assertRaises(UnknownSubcommandError) as context:
            Tool().parse(["rn"], environ={})
        self.assertIn("'rn' is not a recognised command", str(context.exception))

    def testCommandNameIsRequiredByDefault(self):
        with self.assertRaises(MissingRequiredPositionalError):
            Tool().parse([], environ={})

    def testOptionalCommandNameAndRunWithoutSelection(self):
        tool = Tool(optional=True)
        tool.parse([], environ={})
        self.assertIs(tool.selected, Unset)
        with self.assertRaises(MissingRequiredPositionalError):
            tool.run()

    def testRunDelegates(self):
        tool = Tool()
        tool.parse(["build"], environ={})
        self.assertEqual(tool.run(), "built")

    def testReparseSelectsFreshDelegate(self):
        tool = Tool()
        tool.parse(["run", "--flag", "x"], environ={})
        first = tool.selected.command
        tool.parse(["run", "--flag", "x"], environ={})
        self.assertIsNot(tool.selected.command, first)
        self.assertEqual(tool.selected.command.flags, first.flags)
        self.assertEqual(Run.instances, 2)

    def testSelectingTwiceIsAProgrammingError(self):
        tool = Tool()
        tool.parse(["build"], environ={})
        with self.assertRaises(RuntimeError):
            tool.expected[0]("run")

    def testNestedMultiCommand(self):
        outer = MultiCommand({"inner": lambda: MultiCommand({"run": Run}, name="inner")}, name="outer")
        outer.parse(["inner", "run", "--flag", "deep"], environ={})
        self.assertEqual(outer.selected.command.selected.command.flags, ["deep"])

    def testSharedDelegateIsResetOnEverySelection(self):
        built = []
        build = command(lambda: None, name="build")
        build.expect_paths("files", lambda *files: built.append(files))
        tool = MultiCommand({"build": lambda: build})
        tool.parse(["build", "a.c"], environ={})
        tool.parse(["build", "a.c"], environ={})
        self.assertEqual(built, [("a.c",), ("a.c",)])

    def testSharedNestedMultiCommandIsReset(self):
        inner = MultiCommand({"run": Run}, name="inner")
        outer = MultiCommand({"inner": lambda: inner}, name="outer")
        outer.parse(["inner", "run", "x"], environ={})
        outer.parse(["inner", "run", "y"], environ={})
        self.assertIs(outer.selected.command, inner)
        self.assertEqual(inner.selected.command.program, "y")
        self.assertEqual(Run.instances, 2)

    def testFactoryMustReturnCommand(self):
        tool = MultiCommand({"bad": lambda: object()})
        with self.assertRaises(TypeError):
            tool.parse(["bad"], environ={})

    def testCategoriesHaveDefaultHeading(self):
        tool = Tool()
        tool.categorize("development", "development commands")
        self.assertEqual(tool.categories["default"], "available commands")
        self.assertEqual(tool.categories["development"], "development commands")


class TestInvoke(TestCase):
    """Behavioral tests for the invoke() runner."""

    def testInvokeParsesStringAndRuns(self):
        tool = Tool()
        self.assertEqual(invoke(tool, "-v run --flag 'a b'", environ={}), "ran")
        self.assertEqual(tool.selected.command.flags, ["a b"])

    def testInvokeAcceptsIterable(self):
        tool = Tool()
        self.assertEqual(invoke(tool, ["build", "x"], environ={}), "built")

    def testInvokeRaisesUsageErrorsOutsideShell(self):
        with self.assertRaises(UsageError):
            invoke(Tool(), ["--nope"], environ={})

    def testInvokeInShellModeExits(self):
        stderr = io.StringIO()
        from flagstaff import faults
        console = faults.console
        faults.console = type(console)(file=stderr, color_system=None)
        try:
            with self.assertRaises(SystemExit) as context:
                invoke(Tool(shell=True, colorful=False), ["--nope"], environ={})
        finally:
            faults.console = console
        self.assertEqual(context.exception.code, 1)
        self.assertIn("unrecognised flag '--nope'", stderr.getvalue())

    def testInvokeRejectsNonCommand(self):
        with self.assertRaises(TypeError):
            invoke(lambda: None, [], environ={})

    def testInvokeRejectsNonStringTokens(self):
        with self.assertRaises(TypeError):
            invoke(Tool(), ["run", 1], environ={})


if __name__ == "__main__":
    unittest.main()
