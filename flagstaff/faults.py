"""
Flagstaff faults (usage errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing usage
  error. Codes are grouped by domain to keep copy consistent and make
  logs/searches predictable.
- UsageError: base type that carries message + options and knows how to render
  itself in a friendly, lowercased, and actionable way.
- trigger(): central entry point to surface a fault (respecting shell/fancy/colorful).

UX goals
- Token-first messages: every message quotes the offending token or flag so the
  user can see exactly what was rejected.
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Integration
- Parser code raises the concrete UsageError subclasses; nothing is retried.
- The runner (commands.invoke) hands caught faults to trigger(fault, **ctx).
- In non-shell mode, exceptions are raised; in shell mode, they are rendered via rich.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_SUBCOMMAND
    - flags (1111x)
      • UNRECOGNIZED_FLAG, MISSING_FLAG_VALUE, INVALID_FLAG_VALUE
    - positionals (1112x)
      • UNEXPECTED_POSITIONAL, MISSING_POSITIONAL

    normalize() allows host remapping to custom labels while keeping code-stability.
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_SUBCOMMAND          = 11102

    # --- flag errors (11xxx) ---
    UNRECOGNIZED_FLAG           = 11112
    MISSING_FLAG_VALUE          = 11117
    INVALID_FLAG_VALUE          = 11124

    # --- positional errors (11xxx) ---
    UNEXPECTED_POSITIONAL       = 11121
    MISSING_POSITIONAL          = 11125

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class UsageError(Exception):
    """
    base usage error: something on the command line does not fit the declared flags,
    positionals or sub-commands.

    every concrete subclass declares its default code/title/hint; callers only pass
    the message plus any contextual options (token, flag, ...).
    """
    code = Unset
    title = "usage error"
    hint = "check the command line and try again"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType({
            "code": type(self).code,
            "title": type(self).title,
            "hint": type(self).hint,
            "shell": False,
            "fancy": False,
            "colorful": True,
        } | options)

    def __str__(self):
        return self.message if self.message is not Unset else self.options["title"]

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if self.options["colorful"] else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.options["colorful"]:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(getattr(main, "__prog__", self.options.get("prog", "flagstaff")), styler("prog-name"))
        code = self.options["code"]

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "usage", styler("code")),
            " | ",
            text(self.options["title"].title(), styler("error-title")),
            " ]"
        )
        message = text(str(self), styler("error-message"))
        hint = Text.assemble(text(" → ", styler("hint-arrow")), text(self.options["hint"], styler("hint")))

        if self.options["fancy"]:
            return Panel(Group(message, hint), title=header, title_align="left")

        return Group(header, message, hint)

    def __trigger__(self) -> None:
        if not self.options["shell"]:
            raise self from None
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnrecognizedFlagError(UsageError):
    code = FaultCode.UNRECOGNIZED_FLAG
    title = "unrecognised flag"
    hint = "run the command with '--help' to see the accepted flags"


class MissingFlagValueError(UsageError):
    code = FaultCode.MISSING_FLAG_VALUE
    title = "missing flag value"
    hint = "pass the required value(s) right after the flag"


class InvalidFlagValueError(UsageError):
    code = FaultCode.INVALID_FLAG_VALUE
    title = "invalid flag value"
    hint = "pick one of the values the flag accepts"


class UnexpectedPositionalError(UsageError):
    code = FaultCode.UNEXPECTED_POSITIONAL
    title = "unexpected argument"
    hint = "remove the extra value or put it behind the flag it belongs to"


class MissingRequiredPositionalError(UsageError):
    code = FaultCode.MISSING_POSITIONAL
    title = "missing arguments"
    hint = "add the missing arguments in the expected order"


class UnknownSubcommandError(UsageError):
    code = FaultCode.UNKNOWN_SUBCOMMAND
    title = "unknown command"
    hint = "run the program without arguments to see the available commands"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see UsageError).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, the fault is raised.

    typical options
    - shell, fancy, colorful, prog, and any other context the reporter may want to show.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "FaultCode",
    "UsageError",
    "UnrecognizedFlagError",
    "MissingFlagValueError",
    "InvalidFlagValueError",
    "UnexpectedPositionalError",
    "MissingRequiredPositionalError",
    "UnknownSubcommandError",
    "trigger",
)
