"""
Flagstaff shell-completion protocol.

What this module provides
- Completions: the per-invocation completion context (suggestion set + whether
  path-style completion happened).
- MARKER / ENVIRON: the internal cursor marker and the trigger variable.
- needs_completion(token): the prefix to complete when `token` is the completion
  target of the active context, else None.
- complete_path(index, prefix): glob-based path completion usable as a flag completer.

How a completion run works
- The shell sets FLAGSTAFF_GET_COMPLETIONS to the 1-based index of the word under the
  cursor and runs the program with the words typed so far.
- Completions.from_environ() appends MARKER to that word and allocates an empty context.
- The parser activates the context for the duration of the parse; the injection points
  (long flag names, flag completers, path positionals, sub-command names) add to it.
- Parsing is not short-circuited: handlers still run, possibly with marked values.
- The caller reads the context afterwards and prints it (see Completions.render()).

Notes
- The active context lives in a ContextVar: nothing is process-global and two parses
  never share suggestions.
"""
import glob
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar

from .utils import *

logger = logging.getLogger(__name__)

MARKER = "___COMPLETE___"
ENVIRON = "FLAGSTAFF_GET_COMPLETIONS"

_active = ContextVar("completions", default=None)


class Completions:
    """
    Suggestions collected during one completion-mode parse.

    Properties
    - suggestions: frozenset of suggestion strings.
    - paths: True once path-style completion contributed (shells then avoid
      appending a trailing space after a directory).
    """

    suggestions = mirror("suggestions")
    paths = mirror("paths")

    def __init__(self):
        self._suggestions = set()
        self._paths = False

    @classmethod
    def from_environ(cls, tokens, /, environ=Unset):
        """
        Detect a completion run and mark the completion target.

        Parameters
        - tokens: Iterable[str]
          argv without the program name (before any compound-flag expansion).
        - environ: Unset | Mapping[str, str]
          environment to read ENVIRON from (os.environ when Unset).

        Returns
        - (Completions | None, list[str]): the new context (None when not a
          completion run) and the tokens, with MARKER appended to the target.

        Raises
        - ValueError: when the index is not an integer within 1..len(tokens).
        """
        tokens = list(tokens)
        environ = coalesce(environ, os.environ)
        if (index := environ.get(ENVIRON)) is None:
            return None, tokens
        try:
            index = int(index)
        except ValueError:
            raise ValueError("%s must be an integer, got %r" % (ENVIRON, index)) from None
        if not 0 < index <= len(tokens):
            raise ValueError("%s must be within 1..%d, got %d" % (ENVIRON, len(tokens), index))
        tokens[index - 1] += MARKER
        logger.debug("completion requested for token %d (%r)", index, tokens[index - 1])
        return cls(), tokens

    @staticmethod
    def needs(token, /):
        """
        Return the text before MARKER when `token` is the completion target, else None.
        """
        index = token.find(MARKER)
        return token[:index] if index != -1 else None

    def add(self, *suggestions):
        self._suggestions.update(suggestions)

    def complete_path(self, prefix, /):
        """
        Add every filesystem path matching `prefix*` (tilde-expanded, case-sensitive,
        no escaping) and record that path-style completion happened.
        """
        self._paths = True
        matches = sorted(glob.glob(os.path.expanduser(prefix) + "*"))
        self.add(*matches)
        return matches

    @contextmanager
    def activate(self):
        """
        Make this context the active one for the enclosed block (re-entrant safe).
        """
        token = _active.set(self)
        try:
            yield self
        finally:
            _active.reset(token)

    def render(self):
        """
        Render the shell-facing output: a "filenames"/"no-filenames" header, then
        one suggestion per line in sorted order.
        """
        return "".join(line + "\n" for line in ["filenames" if self._paths else "no-filenames", *self])

    def __iter__(self):
        return iter(sorted(self._suggestions))

    def __len__(self):
        return len(self._suggestions)

    def __contains__(self, suggestion):
        return suggestion in self._suggestions

    def __rich_repr__(self):
        yield "suggestions", sorted(self._suggestions)
        yield "paths", self._paths

    def __repr__(self):
        return "completions(suggestions=%r, paths=%r)" % (sorted(self._suggestions), self._paths)


def current():
    """
    Return the active Completions context, or None outside completion runs.
    """
    return _active.get()


def needs_completion(token, /):
    """
    Return the prefix to complete when a completion run is active and `token` carries
    the marker; otherwise None.
    """
    if (completions := current()) is None:
        return None
    return completions.needs(token)


def complete_path(index, prefix, /):
    """
    Flag completer offering filesystem paths that start with `prefix`.

    Usable as Flag(..., completer=complete_path); `index` (the value slot) is ignored.
    Outside a completion run nothing is globbed and an empty list is returned.
    """
    if (completions := current()) is None:
        return []
    return completions.complete_path(prefix)


__all__ = (
    "MARKER",
    "ENVIRON",
    "Completions",
    "current",
    "needs_completion",
    "complete_path",
)
