"""Leaf helpers; this module must not import anything else from cmdtree."""

import functools
import inspect
import re
from collections.abc import Iterable
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from attrs import frozen
else:
    from attrs import define

    frozen = functools.partial(define, unsafe_hash=True)


class SentinelMeta(type):
    def __repr__(cls) -> str:
        return f"<{cls.__name__}>"

    def __bool__(cls) -> Literal[False]:
        return False


class Sentinel(metaclass=SentinelMeta):
    def __new__(cls):
        raise ValueError(f"{cls.__name__} is a sentinel; use the class itself.")


class UNSET(Sentinel):
    """No value was provided. **Do not instantiate**."""


def is_class_and_subclass(hint, target_class) -> bool:
    """``issubclass`` that returns :obj:`False` instead of raising for non-classes (unions, generics)."""
    try:
        return inspect.isclass(hint) and issubclass(hint, target_class)
    except TypeError:
        return False


def to_tuple_converter(value: None | Any | Iterable[Any]) -> tuple[Any, ...]:
    """``attrs`` converter: :obj:`None` -> ``()``, a string or scalar -> 1-tuple, an iterable -> tuple."""
    if value is None:
        return ()
    elif isinstance(value, str) or not isinstance(value, Iterable):
        return (value,)
    return tuple(value)


def optional_to_tuple_converter(value: None | Any | Iterable[Any]) -> tuple[Any, ...] | None:
    """Like :func:`to_tuple_converter`, but :obj:`None` stays :obj:`None` ("not specified")."""
    if value is None:
        return None
    return to_tuple_converter(value) if value else ()


_CAMEL_BOUNDARIES = (
    re.compile(r"([A-Z]+)([A-Z][a-z])"),  # HTTPServer -> HTTP_Server
    re.compile(r"([a-z0-9])([A-Z])"),  # fooBar -> foo_Bar
)


def default_name_transform(s: str) -> str:
    """Turn a python identifier into a command or option name.

    ``CamelCase`` and ``snake_case`` both become ``kebab-case``;
    leading and trailing underscores are dropped.

    .. code-block:: python

        default_name_transform("GitClone")  # "git-clone"
        default_name_transform("dry_run")  # "dry-run"
        default_name_transform("run_0")  # "run-0"
    """
    for pattern in _CAMEL_BOUNDARIES:
        s = pattern.sub(r"\1_\2", s)
    return s.lower().replace("_", "-").strip("-")


def is_number(token: str) -> bool:
    """``True`` if ``token`` parses as a (possibly negative) real or complex number."""
    with suppress(ValueError):
        complex(token)
        # "-j" parses as an imaginary number, but on a command line it is a short option.
        return token.lower() != "-j"
    return False


def is_option_like(token: str) -> bool:
    """``True`` for ``-x``, ``--foo`` and friends.

    A lone ``-`` (conventionally standard input) and negative numbers such as
    ``-5`` or ``-1.5e3`` are values, not options.
    """
    return len(token) > 1 and token.startswith("-") and not is_number(token)
