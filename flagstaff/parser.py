"""
Flagstaff parsing core: flag registry, positional queue, tokenizer/dispatcher.

Parser
- add_flag()/flag(): register Flag specs by long name and optional short name.
- expect()/expect_path()/expect_paths(): append ExpectedArg slots to the positional queue.
- hide(): mark categories invisible to completion.
- parse(tokens): one left-to-right pass over argv.

Dispatch rules
- `-qlf` expands to `-q -l -f` and `-j3` to `-j 3` (a leading dash, an ASCII letter
  and more than two characters), only before `--`.
- The first `--` ends flag processing; everything after it is positional.
- Tokens starting with '-' go to process_flag(); unknown flags raise
  UnrecognizedFlagError. A lone '-' is positional.
- Everything else is buffered and flushed into the front positional slot by
  process_args(); a final flush runs at end of input.

Subclasses (MultiCommand) override process_flag()/process_args() to route into a
selected delegate; the working token deque is handed down so a delegate consumes
values from the same stream.
"""
import contextlib
import logging
from collections import deque

from .arguments import ANY, Flag, ExpectedArg, path, paths
from .completion import Completions, current, needs_completion
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


def _letter(char):
    return char.isascii() and char.isalpha()


def _expand(token):
    """
    Split a compound short-flag cluster into its pieces.

    '-qlf' -> ['-q', '-l', '-f'], '-j3' -> ['-j', '3'], '-qj3' -> ['-q', '-j', '3'].
    """
    pieces = ["-" + token[1]]
    for index in range(2, len(token)):
        if not _letter(token[index]):
            pieces.append(token[index:])
            break
        pieces.append("-" + token[index])
    return pieces


def _compound(token):
    return len(token) > 2 and token[0] == "-" and _letter(token[1])


def _flaglike(token):
    return token.startswith("-") and token != "-"


class Parser:
    """
    Declarative argument parser for one command level.

    Properties
    - longflags: Mapping[str, Flag] keyed by long name (read-only view).
    - shortflags: Mapping[str, Flag] keyed by short name (read-only view).
    - expected: declared positional slots, in order (read-only view).
    - hidden: categories excluded from completion suggestions.
    - completions: the Completions context of the last parse (None when the last
      parse was not a completion run).
    """

    longflags = mirror("longflags")
    shortflags = mirror("shortflags")
    expected = mirror("expected")
    hidden = mirror("hidden")
    completions = mirror("completions")

    def __init__(self):
        self._longflags = {}
        self._shortflags = {}
        self._expected = []
        self._queue = deque()
        self._hidden = set()
        self._completions = None

    def add_flag(self, flag, /, *args, **kwargs):
        """
        Register a Flag (or build one from Flag(...) arguments) and return it.

        Raises
        - ValueError: the long or short name is already registered.
        """
        if not isinstance(flag, Flag):
            flag = Flag(flag, *args, **kwargs)
        elif args or kwargs:
            raise TypeError("add_flag() takes no extra arguments when given a Flag")
        if flag.longname in self._longflags:
            raise ValueError("flag '--%s' is already registered" % flag.longname)
        if flag.shortname is not None and flag.shortname in self._shortflags:
            raise ValueError("flag '-%s' is already registered" % flag.shortname)
        self._longflags[flag.longname] = flag
        if flag.shortname is not None:
            self._shortflags[flag.shortname] = flag
        return flag

    def flag(self, *args, **kwargs):
        """
        Decorator registering the decorated function as the handler of a new flag.

            @parser.flag("jobs", "j", labels=("n",))
            def jobs(n): ...
        """
        @rename("flag")
        def wrapper(callback, /):
            if not callable(callback):
                raise TypeError("@flag() must be applied to a callable")
            return self.add_flag(Flag(*args, handler=callback, **kwargs))

        return wrapper

    def expect(self, expected, /, *args, **kwargs):
        """
        Append a positional slot (an ExpectedArg or ExpectedArg(...) arguments) and return it.
        """
        if not isinstance(expected, ExpectedArg):
            expected = ExpectedArg(expected, *args, **kwargs)
        elif args or kwargs:
            raise TypeError("expect() takes no extra arguments when given an ExpectedArg")
        self._expected.append(expected)
        self._queue.append(expected)
        return expected

    def expect_path(self, label, callback=Unset, /, optional=False, descr=Unset):
        return self.expect(path(label, callback, optional=optional, descr=descr))

    def expect_paths(self, label, callback=Unset, /, descr=Unset):
        return self.expect(paths(label, callback, descr=descr))

    def hide(self, *categories):
        self._hidden.update(categories)

    def reset(self):
        """
        Restore per-parse state: the positional queue is refilled from the declared slots.
        """
        self._queue = deque(self._expected)

    def parse(self, tokens, /, *, environ=Unset):
        """
        Parse argv-like tokens (program name already stripped).

        - Detects a completion run from the environment (see completion.ENVIRON).
        - Runs flag and positional handlers as their tokens are consumed.
        - Returns the Completions context of a completion run, else None.

        Raises
        - UsageError subclasses on the first offending token (no recovery).
        """
        completions, tokens = Completions.from_environ(tokens, environ)
        self._completions = completions
        self.reset()
        with completions.activate() if completions is not None else contextlib.nullcontext():
            self._dispatch(deque(tokens))
        return completions

    def _dispatch(self, tokens):
        pending = []
        dashdash = False

        while tokens:
            token = tokens[0]

            if not dashdash and _compound(token):
                tokens.popleft()
                tokens.extendleft(reversed(pieces := _expand(token)))
                logger.debug("expanded %r into %r", token, pieces)
                token = pieces[0]

            if not dashdash and token == "--":
                dashdash = True
                tokens.popleft()
            elif not dashdash and token.startswith("-") and token != "-":
                if not self.process_flag(tokens):
                    raise UnrecognizedFlagError("unrecognised flag '%s'" % token, token=token)
            else:
                pending.append(tokens.popleft())
                if self.process_args(pending, False):
                    pending = []

        self.process_args(pending, True)

    def process_flag(self, tokens):
        """
        Try to resolve the flag at the front of `tokens`, consuming it and its values.

        Returns True when a registered flag matched, False otherwise (the caller
        reports the error).
        """
        token = tokens[0]

        if token.startswith("--"):
            if (prefix := needs_completion(token)) is not None:
                for name, flag in self._longflags.items():
                    if flag.category not in self._hidden and hasprefix(name, prefix[2:]):
                        current().add("--" + name)
            try:
                flag = self._longflags[token[2:]]
            except KeyError:
                return False
            return self._process(tokens, "--" + flag.longname, flag)

        if len(token) == 2:
            try:
                flag = self._shortflags[token[1]]
            except KeyError:
                return False
            return self._process(tokens, "-" + flag.shortname, flag)

        if needs_completion(token) == "-":
            current().add("--", *("-" + name for name in self._shortflags))

        return False

    def _process(self, tokens, name, flag):
        tokens.popleft()
        values = []

        if flag.arity is ANY:
            while tokens and not _flaglike(tokens[0]):
                values.append(self._value(tokens, flag, len(values)))
        else:
            for index in range(flag.arity):
                if not tokens:
                    raise MissingFlagValueError(
                        "flag '%s' requires %d argument(s)" % (name, flag.arity),
                        token=name,
                        arity=flag.arity,
                    )
                values.append(self._value(tokens, flag, index))

        logger.debug("dispatching flag %s with %d value(s)", name, len(values))
        flag(*values)
        return True

    @staticmethod
    def _value(tokens, flag, index):
        if (prefix := needs_completion(tokens[0])) is not None and flag.completer is not None:
            current().add(*(flag.completer(index, prefix) or ()))
        return tokens.popleft()

    def process_args(self, pending, finish):
        """
        Flush pending positional tokens into the front slot of the queue.

        Returns True when the pending buffer was consumed (the caller clears it).

        Raises
        - UnexpectedPositionalError: a token arrived while no slot remains.
        - MissingRequiredPositionalError: end of input with a required slot left.
        """
        if not self._queue:
            if pending:
                raise UnexpectedPositionalError("unexpected argument '%s'" % pending[0], token=pending[0])
            return True

        expected = self._queue[0]
        flushed = False

        if (expected.arity is ANY and finish) or (expected.arity is not ANY and len(pending) == expected.arity):
            logger.debug("flushing %d value(s) into %r", len(pending), expected.label)
            expected(*pending)
            self._queue.popleft()
            flushed = True

        if finish and self._queue and not self._queue[0].optional:
            raise MissingRequiredPositionalError(
                "more arguments are required",
                label=self._queue[0].label,
            )

        return flushed


__all__ = (
    "Parser",
)
