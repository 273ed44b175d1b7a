"""
Flagstaff command layer: build, compose, and run CLI commands.

What this module provides
- Command: a Parser (flags + positional queue) bundled with an execution action,
  a one-line description, example usages and a help category.
- MultiCommand: a Command whose single positional slot names a sub-command;
  once selected, the sub-command receives every later flag and positional.
- Factories and helpers:
  • command(...): create a Command from a callback, or a decorator that does.
  • invoke(command, prompt): parse, run, and handle completion/usage faults.

Quick start
    from flagstaff import command, MultiCommand, invoke

    @command(descr="build the given files")
    def build():
        print("building", files)

    files = []
    build.expect_paths("files", lambda *names: files.extend(names))

    @build.flag("jobs", "j", labels=("n",))
    def jobs(n): ...

    tool = MultiCommand({"build": lambda: build})

    if __name__ == "__main__":
        invoke(tool)  # e.g. `tool build -j4 a.c b.c`

Design notes
- Flag lookup in a MultiCommand tries its own (common) flags first, then the
  selected sub-command's flags.
- Sub-command factories are called lazily, once per parse, only for the selected name.
- Usage faults are raised by default; with shell=True they are rendered with rich
  on stderr and the process exits with status 1.
"""
import logging
import shlex
import sys
from collections import namedtuple
from collections.abc import Iterable, Mapping

from rich.text import Text

from .arguments import DEFAULT, ExpectedArg
from .completion import current, needs_completion
from .faults import *
from .parser import Parser
from .utils import *

logger = logging.getLogger(__name__)

Example = namedtuple("Example", ("descr", "command"))
"""
An example usage: a short description and the command line it illustrates.
"""

Selected = namedtuple("Selected", ("name", "command"))
"""
The sub-command chosen by a MultiCommand: the typed name and the instantiated command.
"""


class Command(Parser):
    """
    A named capability: flags, positionals and the action to run after parsing.

    Two ways to define one
    - Subclass and override run(), registering flags/positionals in __init__.
    - Wrap a zero-argument callback via command(...); the callback becomes run().

    Properties
    - name, descr, examples, category: help metadata (read-only).
    - shell, fancy, colorful: presentation options used by invoke() for faults.
    """

    name = mirror("name")
    descr = mirror("descr")
    examples = mirror("examples")
    category = mirror("category")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(
            self,
            callback=Unset,
            /,
            name=Unset,
            descr=Unset,
            examples=(),
            category=DEFAULT,
            *,
            shell=False,
            fancy=False,
            colorful=True,
    ):
        super().__init__()

        if callback is not Unset and not callable(callback):
            raise TypeError("command callback must be callable")
        if not isinstance(name, str | Unset):
            raise TypeError("command 'name' must be a string")
        if not isinstance(descr, str | Text | Unset):
            raise TypeError("command 'descr' must be a string")
        if not isinstance(category, str) or not category.strip():
            raise ValueError("command 'category' must be a non-empty string")

        sanitized = []
        for example in examples:
            if isinstance(example, str):
                example = Example(None, example)
            elif not isinstance(example, Example):
                example = Example(*example)
            sanitized.append(example)

        if callback is Unset:
            name = coalesce(name, type(self).__name__.lower())
        else:
            name = coalesce(name, getattr(callback, "__name__", type(self).__name__.lower()))
            # first docstring line doubles as the one-line description
            if descr is Unset and (doc := (callback.__doc__ or "").strip()):
                descr = doc.splitlines()[0]

        self._callback = callback
        self._name = name
        self._descr = coalesce(descr)
        self._examples = sanitized
        self._category = category.strip()
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)

    def run(self):
        """
        Execute the command after a successful parse (calls the wrapped callback).
        """
        if self._callback is Unset:
            return
        return self._callback()

    def __rich_repr__(self):
        yield "name", self.name
        yield "descr", self.descr
        yield "category", self.category
        yield "flags", tuple(self.longflags)
        yield "expected", tuple(expected.label for expected in self.expected)

    def __repr__(self):
        return "command(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


class MultiCommand(Command):
    """
    A Command that delegates everything after its first positional to a sub-command.

    Parameters
    - commands: Mapping[str, Callable[[], Command]]
      Sub-command factories keyed by the name typed on the command line.
    - optional: bool (keyword-only)
      Whether the command name may be omitted (run() then raises a usage error).
    - everything else: keyword arguments forwarded to Command.

    Properties
    - commands: read-only view of the factory table.
    - categories: read-only mapping of category -> heading for help renderers.
    - selected: Unset until a name is consumed, then Selected(name, command).
    """

    commands = mirror("commands")
    categories = mirror("categories")

    def __init__(self, commands, /, *, optional=False, **kwargs):
        super().__init__(**kwargs)

        if not isinstance(commands, Mapping):
            raise TypeError("multi-command 'commands' must be a mapping")
        for key, factory in commands.items():
            if not isinstance(key, str) or not key:
                raise TypeError("multi-command names must be non-empty strings")
            if not callable(factory):
                raise TypeError("multi-command factory for %r must be callable" % key)

        self._commands = dict(commands)
        self._categories = {DEFAULT: "available commands"}
        self._selected = Unset
        self.expect(ExpectedArg("command", 1, optional, self._select, "the command to run"))

    @property
    def selected(self):
        return self._selected

    def categorize(self, category, heading, /):
        """
        Give a help heading to a command category.
        """
        self._categories[category] = heading

    def _select(self, name):
        if self._selected is not Unset:
            raise RuntimeError("multi-command already selected %r" % self._selected.name)

        if (prefix := needs_completion(name)) is not None:
            current().add(*(key for key in self._commands if hasprefix(key, prefix)))

        try:
            factory = self._commands[name]
        except KeyError:
            raise UnknownSubcommandError("'%s' is not a recognised command" % name, token=name) from None

        if not isinstance(command := factory(), Command):
            raise TypeError("multi-command factory for %r must return a command" % name)
        # factories may hand back an instance used by an earlier parse
        command.reset()
        logger.debug("selected command %r", name)
        self._selected = Selected(name, command)

    def reset(self):
        super().reset()
        self._selected = Unset

    def process_flag(self, tokens):
        if super().process_flag(tokens):
            return True
        return self._selected is not Unset and self._selected.command.process_flag(tokens)

    def process_args(self, pending, finish):
        if self._selected is not Unset:
            return self._selected.command.process_args(pending, finish)
        return super().process_args(pending, finish)

    def run(self):
        if self._selected is Unset:
            raise MissingRequiredPositionalError("no command was given", label="command")
        return self._selected.command.run()


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct callback:
        cmd = command(func, name="x", descr="...")
    - Decorator:
        @command(name="x")
        def func(): ...

    Returns
    - Command | Callable[[Callable], Command]
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def _tokenize(prompt):
    if prompt is Unset:
        return sys.argv[1:]
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("invoke() prompt must be a string or an iterable of strings")


def invoke(command, prompt=Unset, /, *, environ=Unset, stdout=Unset):
    """
    Parse `prompt` against `command`, then run it.

    Parameters
    - command: Command
    - prompt:
      • Unset: read tokens from sys.argv[1:].
      • str: shell-like string; will be split via shlex.split.
      • Iterable[str]: pre-tokenized sequence (empty strings are kept: the shell
        passes an empty word when completing at a blank position).
    - environ: environment mapping used to detect a completion run.
    - stdout: stream receiving completion output (sys.stdout when Unset).

    Behavior
    - Completion run: usage faults are ignored, the suggestions are written to
      stdout (see Completions.render()) and returned; run() is not called.
    - Normal run: usage faults go through trigger() with the command's
      shell/fancy/colorful options (raised, or rendered and exit(1) in shell mode).

    Returns
    - Completions for completion runs, otherwise the value returned by run().
    """
    if not isinstance(command, Command):
        raise TypeError("invoke() first argument must be a command")

    options = {
        "shell": command.shell,
        "fancy": command.fancy,
        "colorful": command.colorful,
        "prog": command.name,
    }

    try:
        completions = command.parse(_tokenize(prompt), environ=environ)
    except UsageError as fault:
        if (completions := command.completions) is None:
            return trigger(fault, **options)
        logger.debug("ignoring usage error during completion: %s", fault)

    if completions is not None:
        coalesce(stdout, sys.stdout).write(completions.render())
        return completions

    try:
        return command.run()
    except UsageError as fault:
        return trigger(fault, **options)


__all__ = (
    "Example",
    "Selected",
    "Command",
    "MultiCommand",
    "command",
    "invoke",
)
