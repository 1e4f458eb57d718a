import collections.abc
import re
import typing
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, get_args, get_origin
from uuid import UUID

from cmdtree.annotations import is_nonetype, is_union, resolve
from cmdtree.exceptions import TypeConversionError
from cmdtree.range import Range
from cmdtree.token import Token
from cmdtree.utils import UNSET, default_name_transform, is_class_and_subclass

if TYPE_CHECKING:
    from cmdtree.model import ArgSpec

AggregateKind = Literal["list", "tuple", "set", "frozenset", "dict"]

_AGGREGATE_KINDS: dict[Any, AggregateKind] = {
    list: "list",
    Iterable: "list",
    Sequence: "list",
    typing.Sequence: "list",
    collections.abc.Collection: "list",
    collections.abc.MutableSequence: "list",
    tuple: "tuple",
    set: "set",
    collections.abc.Set: "set",
    collections.abc.MutableSet: "set",
    frozenset: "frozenset",
    dict: "dict",
    collections.abc.Mapping: "dict",
    collections.abc.MutableMapping: "dict",
}


def _bool(s: str) -> bool:
    s = s.lower()
    if s in {"no", "n", "0", "false", "f"}:
        return False
    elif s in {"yes", "y", "1", "true", "t"}:
        return True
    else:
        # Be a little bit conservative when coercing strings into boolean.
        raise TypeConversionError(target_type=bool)


def _int(s: str) -> int:
    s = s.lower()
    sign = ""
    if s.startswith(("-", "+")):
        sign, s = s[0], s[1:]
    if s.startswith("0x"):
        return int(sign + s[2:], 16)
    elif s.startswith("0o"):
        return int(sign + s[2:], 8)
    elif s.startswith("0b"):
        return int(sign + s[2:], 2)
    else:
        return int(sign + s)


def _bytes(s: str) -> bytes:
    return bytes(s, encoding="utf8")


def _bytearray(s: str) -> bytearray:
    return bytearray(_bytes(s))


def _date(s: str) -> date:
    return date.fromisoformat(s)


def _datetime(s: str) -> datetime:
    """Parse a datetime string.

    Returns
    -------
    datetime.datetime
    """
    formats = [
        "%Y-%m-%d",  # 1956-01-31
        "%Y-%m-%dT%H:%M:%S",  # 1956-01-31T10:00:00
        "%Y-%m-%d %H:%M:%S",  # 1956-01-31 10:00:00
        "%Y-%m-%dT%H:%M:%S%z",  # 1956-01-31T10:00:00+0000
        "%Y-%m-%dT%H:%M:%S.%f",  # 1956-01-31T10:00:00.123456
        "%Y-%m-%dT%H:%M:%S.%f%z",  # 1956-01-31T10:00:00.123456+0000
    ]

    for fmt in formats:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue

    raise ValueError


def _timedelta(s: str) -> timedelta:
    """Parse a duration like ``"1h30m"`` or ``"-2d"``."""
    negative = False
    if s.startswith("-"):
        negative = True
        s = s[1:]

    matches = re.findall(r"((\d+\.\d+|\d+)([smhdwMy]))", s)
    if not matches or "".join(m[0] for m in matches) != s:
        raise ValueError(f"Could not parse duration string: {s}")

    unit_seconds = {
        "s": 1,
        "m": 60,
        "h": 3600,
        "d": 86400,
        "w": 604800,
        "M": 2592000,  # Approximation: 1 month = 30 days
        "y": 31536000,  # Approximation: 1 year = 365 days
    }
    seconds = sum(float(value) * unit_seconds[unit] for _, value, unit in matches)
    if negative:
        seconds = -seconds
    return timedelta(seconds=seconds)


# For types that need more logic than just invoking their type
_converters: dict[Any, Callable[[str], Any]] = {
    bool: _bool,
    int: _int,
    float: float,
    complex: complex,
    str: str,
    bytes: _bytes,
    bytearray: _bytearray,
    date: _date,
    datetime: _datetime,
    timedelta: _timedelta,
    Decimal: Decimal,
    Fraction: Fraction,
    Path: Path,
    UUID: UUID,
}


def aggregate_kind(type_: Any) -> AggregateKind | None:
    """Which kind of container ``type_`` describes, or :obj:`None` for single values."""
    type_ = resolve(type_)
    return _AGGREGATE_KINDS.get(get_origin(type_) or type_)


def _fixed_tuple_types(type_: Any) -> tuple[Any, ...] | None:
    """Element types of a fixed-length ``tuple[A, B]``; :obj:`None` otherwise."""
    type_ = resolve(type_)
    if (get_origin(type_) or type_) is not tuple:
        return None
    args = get_args(type_)
    if not args or ... in args:
        return None
    return args


def is_multi_value(type_: Any) -> bool:
    """``True`` if values for ``type_`` accumulate across tokens and occurrences."""
    return aggregate_kind(type_) is not None and _fixed_tuple_types(type_) is None


def element_types(type_: Any) -> tuple[Any, ...]:
    """The element type(s) a value of ``type_`` is assembled from.

    ``list[int] -> (int,)``, ``dict[str, int] -> (str, int)``,
    ``tuple[int, str] -> (int, str)``; single-valued types return themselves.
    """
    type_ = resolve(type_)
    kind = aggregate_kind(type_)
    args = tuple(x for x in get_args(type_) if x is not ...)
    if kind is None:
        return (type_,)
    elif kind == "dict":
        return args if len(args) == 2 else (str, str)
    elif kind == "tuple" and args:
        return args
    return (args[0],) if args else (str,)


def default_arity(type_: Any, *, positional: bool) -> Range:
    """Arity used when the model does not state one explicitly.

    Options: ``bool`` takes 0 values, sequences/sets/maps ``1..*``, everything else 1.
    Positionals: always at least 1 value per slot, aggregates ``0..*``.
    """
    type_ = resolve(type_)
    if (fixed := _fixed_tuple_types(type_)) is not None:
        return Range(len(fixed))
    elif aggregate_kind(type_) is not None:
        return Range(0 if positional else 1, None)
    elif type_ is bool and not positional:
        return Range(0)
    return Range(1)


class ConverterRegistry:
    """Pluggable ``str -> value`` conversion.

    Converters are looked up by exact type; per-argument converters
    (:attr:`ArgSpec.converter`) take precedence over the registry.

    .. code-block:: python

        registry = ConverterRegistry()


        @registry.register(Point)
        def to_point(s: str) -> Point:
            return Point(*map(int, s.split(",")))
    """

    def __init__(self, converters: dict[Any, Callable[[str], Any]] | None = None):
        self._converters: dict[Any, Callable[[str], Any]] = dict(_converters)
        if converters:
            self._converters.update(converters)

    def register(self, type_: Any, converter: Callable[[str], Any] | None = None):
        """Register ``converter`` for ``type_``; usable as a decorator when ``converter`` is omitted."""
        if converter is None:

            def decorator(func: Callable[[str], Any]) -> Callable[[str], Any]:
                self._converters[type_] = func
                return func

            return decorator

        self._converters[type_] = converter
        return converter

    def get(self, type_: Any) -> Callable[[str], Any] | None:
        return self._converters.get(type_)

    def copy(self) -> "ConverterRegistry":
        out = type(self)()
        out._converters = dict(self._converters)
        return out

    def __contains__(self, type_: Any) -> bool:
        return type_ in self._converters

    def convert_value(
        self,
        type_: Any,
        token: Token,
        *,
        arg: "ArgSpec | None" = None,
        converter: Callable[[str], Any] | None = None,
    ) -> Any:
        """Convert a single token into ``type_``.

        Raises
        ------
        TypeConversionError
            The token's value cannot be converted.
        """
        type_ = resolve(type_)
        try:
            if converter is not None:
                return converter(token.value)
            elif is_union(type_):
                for member in get_args(type_):
                    if is_nonetype(member):
                        continue
                    try:
                        return self.convert_value(member, token, arg=arg)
                    except TypeConversionError:
                        pass
                raise TypeConversionError(target_type=type_)
            elif get_origin(type_) is Literal:
                for choice in get_args(type_):
                    try:
                        value = self.convert_value(type(choice), token, arg=arg)
                    except TypeConversionError:
                        continue
                    if value == choice:
                        return value
                raise TypeConversionError(target_type=type_, valid=tuple(str(x) for x in get_args(type_)))
            elif is_class_and_subclass(type_, Enum) and type_ not in self._converters:
                return _enum_member(type_, token.value)

            func = self._converters.get(type_, type_)
            return func(token.value)
        except TypeConversionError as e:
            if e.token is None:
                e.token = token
            if e.target_type is None:
                e.target_type = type_
            if e.arg is None:
                e.arg = arg
            raise
        except (ValueError, TypeError, ArithmeticError):
            raise TypeConversionError(token=token, target_type=type_, arg=arg) from None

    def convert(self, arg: "ArgSpec", tokens: Sequence[Token], previous: Any = UNSET) -> Any:
        """Convert the raw ``tokens`` of one match of ``arg``.

        For aggregate types the converted elements are appended to (or merged
        into) ``previous``, the value accumulated from earlier occurrences.
        Each token is first split with :attr:`ArgSpec.split`, if set.
        """
        tokens = split_tokens(arg, tokens)
        kind = aggregate_kind(arg.type)
        types = arg.aux_types or element_types(arg.type)
        converters = arg.converter

        def element_converter(i: int) -> Callable[[str], Any] | None:
            return converters[i] if i < len(converters) else None

        if kind is None:
            values = [self.convert_value(types[0], t, arg=arg, converter=element_converter(0)) for t in tokens]
            return values[0] if len(values) == 1 else values
        elif kind == "dict":
            out = dict(previous) if previous is not UNSET else {}
            key_type, value_type = (types + (str, str))[:2]
            for token in tokens:
                key, sep, value = token.value.partition("=")
                if not sep:
                    raise TypeConversionError(
                        msg=f"'{token.value}' should be in KEY=VALUE format",
                        token=token,
                        target_type=arg.type,
                        arg=arg,
                    )
                converted_key = self.convert_value(
                    key_type, token.evolve(value=key), arg=arg, converter=element_converter(0)
                )
                out[converted_key] = self.convert_value(
                    value_type, token.evolve(value=value), arg=arg, converter=element_converter(1)
                )
            return out
        elif (fixed := _fixed_tuple_types(arg.type)) is not None:
            if len(tokens) != len(fixed):
                raise TypeConversionError(
                    msg=f"expected {len(fixed)} values but got {len(tokens)}",
                    token=tokens[0] if tokens else None,
                    target_type=arg.type,
                    arg=arg,
                )
            return tuple(
                self.convert_value(t, token, arg=arg, converter=element_converter(i))
                for i, (t, token) in enumerate(zip(fixed, tokens, strict=True))
            )

        elements = [self.convert_value(types[0], t, arg=arg, converter=element_converter(0)) for t in tokens]
        if previous is not UNSET:
            elements = [*previous, *elements]
        if kind == "tuple":
            return tuple(elements)
        elif kind == "set":
            return set(elements)
        elif kind == "frozenset":
            return frozenset(elements)
        return elements


def _enum_member(type_: type[Enum], value: str) -> Enum:
    """Match ``value`` against an enum's member names, ignoring case."""
    wanted = default_name_transform(value)
    for name, member in type_.__members__.items():
        if name.lower() == value.lower() or default_name_transform(name) == wanted:
            return member
    raise TypeConversionError(target_type=type_, valid=tuple(type_.__members__))


def split_tokens(arg: "ArgSpec", tokens: Sequence[Token]) -> list[Token]:
    """Apply the argument's split pattern to every token."""
    if not arg.split:
        return list(tokens)
    out = []
    for token in tokens:
        out.extend(token.evolve(value=piece) for piece in re.split(arg.split, token.value))
    return out


DEFAULT_REGISTRY = ConverterRegistry()
