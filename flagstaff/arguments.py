r"""
Flagstaff argument specifications and decorators.

Overview
- Specs
  • Flag: named option with a long name, an optional one-character short name, value
    labels and an arity (fixed count or ANY).
  • ExpectedArg: positional slot consumed left-to-right from the positional queue.

- Decorators / factories
  • @flag(...): build a Flag around the decorated handler.
  • @expect(...): build an ExpectedArg around the decorated handler.
  • choice(...): enumerated-value Flag with prefix completion and value validation.
  • path(...) / paths(...): positional slots whose values are filesystem paths
    (path completion is offered for them during completion runs).

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes selected
    fields via read-only properties declared in __introspectable__.

Metadata (sanitized on construction)
- Flag
  • longname: str, non-empty; a leading "--" is accepted and stripped.
  • shortname: Unset | one character; a leading "-" is accepted and stripped.
  • labels: Iterable[str], value labels shown in help (e.g., "file", "hash-algo").
  • arity: Unset | int (>= 0) | ANY. Unset derives the arity from the labels;
    a fixed arity must equal the number of labels.
  • handler: Unset | Callable[..., None], called as handler(*values).
  • completer: Unset | Callable[[int, str], Iterable[str] | None].
  • descr / category: help metadata (category also drives visibility).
- ExpectedArg
  • label: str, non-empty.
  • arity: int (>= 1) | ANY ("consume remaining").
  • optional: bool (may finish the parse without this slot filled).
  • handler: Unset | Callable[..., None], called as handler(*values).

Quick example:
    >>> from flagstaff.arguments import flag, expect
    >>> @flag("jobs", "j", labels=("n",))
    >>> def on_jobs(n): ...
    ...
    >>> @expect("file")
    >>> def on_file(file): ...
    ...
"""
import logging
import re

from rich.text import Text

from .completion import needs_completion, complete_path
from .faults import InvalidFlagValueError
from .utils import *

logger = logging.getLogger(__name__)

ANY = Ellipsis
"""
Arity sentinel meaning “any number of values”.

For flags it consumes values up to the next flag-looking token (or the end of input);
for positionals it consumes every remaining token and is flushed at end of input.
The literal string "..." is accepted wherever an arity is expected.
"""

DEFAULT = "default"
"""
Category assigned to flags and commands that do not declare one.
"""


class ArgumentType(type):
    """
    Metaclass that turns specs into introspectable descriptors.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics and external help renderers.
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - flag(longname='jobs', shortname='j', labels=('n',), arity=1, ...)
            """
            return "%s(%s)" % (type(self).__typename__, ", ".join(
                "%s=%r" % (name, object) for name, object in self.__rich_repr__()
            ))
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield a sequence of (name, object) pairs for pretty printers.
            """
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate shared help metadata ('descr' and, when present, 'category').

    Raises
    - TypeError: if a field is not a string (or Unset).
    - ValueError: if a field is a string but empty after trimming.
    """
    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if "category" in metadata:
        if not isinstance(category := metadata["category"], str | Unset):
            raise TypeError(f"{cls.__typename__} 'category' must be a string")
        elif isinstance(category, str) and not (category := category.strip()):
            raise ValueError(f"{cls.__typename__} 'category' cannot be empty")
        metadata["category"] = coalesce(category, DEFAULT)

    if (handler := metadata["handler"]) is not Unset and not callable(handler):
        raise TypeError(f"{cls.__typename__} 'handler' must be callable")


def _sanitize_arity(cls, arity, /, *, minimum):
    """
    Internal: normalize an arity value (int >= minimum, ANY or its "..." spelling).
    """
    if arity == "...":
        return ANY
    if arity is ANY:
        return arity
    if not isinstance(arity, int) or isinstance(arity, bool):
        raise TypeError(f"{cls.__typename__} 'arity' must be an integer or ANY")
    if arity < minimum:
        raise ValueError(f"{cls.__typename__} 'arity' must be at least {minimum}")
    return arity


class Flag(metaclass=ArgumentType):
    """
    Named option specification.

    A Flag is registered once (at command construction time) and is immutable
    thereafter. Each occurrence on the command line consumes `arity` value tokens
    and calls the handler once with all of them.

    Properties
    - The names listed in __introspectable__ are exposed as read-only attributes.
    """

    __introspectable__ = (
        "longname",
        "shortname",
        "labels",
        "arity",
        "descr",
        "category",
        "completer",
    )

    def __new__(
            cls,
            longname,
            shortname=Unset,
            /,
            labels=(),
            arity=Unset,
            handler=Unset,
            completer=Unset,
            descr=Unset,
            category=Unset,
    ):
        """
        Construct a Flag spec with the provided metadata.

        Parameters
        - longname: str
          Long name, matched by '--longname'. Must be non-empty.
        - shortname: Unset | str
          Single character, matched by '-c'.
        - labels: Iterable[str]
          Labels for the values the flag takes (help metadata).
        - arity: Unset | int | ANY
          Number of values; derived from labels when Unset. A fixed arity must
          equal len(labels).
        - handler: Unset | Callable
          Called as handler(*values) on every occurrence.
        - completer: Unset | Callable[[int, str], Iterable[str] | None]
          Called with (value index, prefix) when a value is the completion target.
        - descr / category: help metadata.

        Raises
        - TypeError / ValueError on malformed metadata (programming errors).
        """
        metadata = {
            "longname": longname,
            "shortname": shortname,
            "labels": labels,
            "arity": arity,
            "handler": handler,
            "completer": completer,
            "descr": descr,
            "category": category,
        }
        _sanitize_metadata(cls, metadata)

        if not isinstance(longname, str):
            raise TypeError(f"{cls.__typename__} 'longname' must be a string")
        if not (longname := longname.strip().removeprefix("--")):
            raise ValueError(f"{cls.__typename__} 'longname' cannot be empty")
        if longname.startswith("-") or re.search(r"\s", longname):
            raise ValueError(f"{cls.__typename__} 'longname' must not start with '-' or contain spaces")
        metadata["longname"] = longname

        if not isinstance(shortname, str | Unset):
            raise TypeError(f"{cls.__typename__} 'shortname' must be a string")
        if isinstance(shortname, str):
            if len(shortname) == 2 and shortname[0] == "-":
                shortname = shortname[1]
            if len(shortname) != 1 or shortname == "-" or shortname.isspace():
                raise ValueError(f"{cls.__typename__} 'shortname' must be a single character")
        metadata["shortname"] = coalesce(shortname)

        if isinstance(labels, str):
            raise TypeError(f"{cls.__typename__} 'labels' must be an iterable of strings")
        labels = tuple(labels)
        if not all(isinstance(label, str) and label for label in labels):
            raise TypeError(f"{cls.__typename__} 'labels' must be non-empty strings")
        metadata["labels"] = labels

        arity = _sanitize_arity(cls, coalesce(arity, len(labels)), minimum=0)
        if arity is not ANY and arity != len(labels):
            raise ValueError(f"{cls.__typename__} 'arity' must match the number of labels")
        metadata["arity"] = arity

        if completer is not Unset and not callable(completer):
            raise TypeError(f"{cls.__typename__} 'completer' must be callable")
        metadata["completer"] = coalesce(completer)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __call__(self, *values):
        """
        Forward one occurrence's values to the bound handler (no-op when unbound).
        """
        if self._handler is Unset:
            return
        return self._handler(*values)


class ExpectedArg(metaclass=ArgumentType):
    """
    Positional slot specification.

    Slots live in a FIFO; only the front slot accumulates values. A slot with a
    fixed arity is flushed as soon as that many values are pending; an ANY slot
    is flushed once at end of input with everything that remained.
    """

    __introspectable__ = (
        "label",
        "arity",
        "optional",
        "descr",
    )

    def __new__(cls, label, /, arity=1, optional=False, handler=Unset, descr=Unset):
        metadata = {
            "label": label,
            "arity": arity,
            "optional": bool(optional),
            "handler": handler,
            "descr": descr,
        }
        _sanitize_metadata(cls, metadata)

        if not isinstance(label, str):
            raise TypeError(f"{cls.__typename__} 'label' must be a string")
        if not (label := label.strip()):
            raise ValueError(f"{cls.__typename__} 'label' cannot be empty")
        metadata["label"] = label
        metadata["arity"] = _sanitize_arity(cls, arity, minimum=1)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __call__(self, *values):
        if self._handler is Unset:
            return
        return self._handler(*values)


def flag(*args, **kwargs):
    """
    Decorator/factory for defining a flag handler.

    Usage
    - As a decorator with metadata:
        @flag("jobs", "j", labels=("n",))
        def on_jobs(n): ...
      The decorated function becomes the handler; the decorator returns the Flag.

    Behavior
    - Validates that it decorates a callable and enforces single application.
    """
    if "handler" in kwargs:
        raise TypeError("@flag() handler is the decorated function")
    applied = False

    @rename("flag")
    def wrapper(callback, /):
        nonlocal applied
        if not callable(callback):
            raise TypeError("@flag() must be applied to a callable")
        if applied:
            raise TypeError("@flag() decorator can only be applied once")
        applied = True
        return Flag(*args, handler=callback, **kwargs)

    return wrapper


def expect(*args, **kwargs):
    """
    Decorator/factory for defining a positional handler.

    Usage
        @expect("file", optional=True)
        def on_file(file): ...
    """
    if "handler" in kwargs:
        raise TypeError("@expect() handler is the decorated function")
    applied = False

    @rename("expect")
    def wrapper(callback, /):
        nonlocal applied
        if not callable(callback):
            raise TypeError("@expect() must be applied to a callable")
        if applied:
            raise TypeError("@expect() decorator can only be applied once")
        applied = True
        return ExpectedArg(*args, handler=callback, **kwargs)

    return wrapper


def choice(longname, shortname=Unset, /, choices=(), callback=Unset, label="choice", descr=Unset, category=Unset):
    """
    Build a one-value Flag restricted to an enumerated set of choices.

    - A value outside `choices` raises InvalidFlagValueError naming the value.
    - During a completion run, the choices sharing the typed prefix are offered.
    - Otherwise the accepted value is handed to `callback`.

    Example
        choice("hash", choices=("md5", "sha1", "sha256", "sha512"), callback=setter,
               label="hash-algo", descr="hash algorithm")
    """
    if isinstance(choices, str):
        raise TypeError("choice() 'choices' must be an iterable of strings")
    choices = tuple(choices)
    if not choices:
        raise ValueError("choice() 'choices' cannot be empty")

    def handler(value):
        if value not in choices:
            raise InvalidFlagValueError(
                "unknown %s '%s' (expected one of %s)" % (label, value, ", ".join(map(repr, choices))),
                token=value,
                choices=choices,
            )
        if callback is not Unset:
            callback(value)

    def completer(index, prefix):
        return [choice for choice in choices if hasprefix(choice, prefix)]

    return Flag(
        longname,
        shortname,
        labels=(label,),
        handler=handler,
        completer=completer,
        descr=coalesce(descr, "one of " + ", ".join(choices)),
        category=category,
    )


def _complete_paths(values):
    for value in values:
        if (prefix := needs_completion(value)) is not None:
            logger.debug("offering path completions for %r", prefix)
            complete_path(0, prefix)


def path(label, callback=Unset, /, optional=False, descr=Unset):
    """
    Build a single-value positional slot for a filesystem path.

    During a completion run the marked value is glob-completed before the
    callback runs (the callback still runs afterwards).
    """
    def handler(value):
        _complete_paths((value,))
        if callback is not Unset:
            callback(value)

    return ExpectedArg(label, 1, optional, handler, descr)


def paths(label, callback=Unset, /, descr=Unset):
    """
    Build a positional slot that consumes every remaining value as a path.
    """
    def handler(*values):
        _complete_paths(values)
        if callback is not Unset:
            callback(*values)

    return ExpectedArg(label, ANY, False, handler, descr)


__all__ = (
    "ANY",
    "DEFAULT",
    "Flag",
    "ExpectedArg",
    "flag",
    "expect",
    "choice",
    "path",
    "paths",
)
