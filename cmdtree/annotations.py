"""Type-hint introspection shared by the builder, the converters and error messages."""

import inspect
from types import NoneType, UnionType
from typing import Annotated, Any, Literal, NewType, Union, get_args, get_origin

_AnnotatedAlias = type(Annotated[int, 0])


def is_nonetype(hint) -> bool:
    return hint is NoneType


def is_annotated(hint) -> bool:
    return type(hint) is _AnnotatedAlias


def is_union(hint) -> bool:
    """``Union[A, B]``, ``Optional[A]`` and ``A | B``."""
    if hint is Union or hint is UnionType:
        return True
    return get_origin(hint) in (Union, UnionType)


def strip_optional(hint: Any) -> Any:
    """Drop ``None`` from a union; a union of one remaining member collapses to that member."""
    if not is_union(hint):
        return hint
    members = tuple(x for x in get_args(hint) if not is_nonetype(x))
    if len(members) == 1:
        return members[0]
    return Union[members]  # noqa: UP007


def resolve(hint: Any) -> Any:
    """Reduce a hint to the type values are converted into.

    Unwraps ``Annotated``, ``Optional`` and ``NewType`` until nothing changes.
    A missing annotation or ``Any`` means ``str``.
    """
    if hint is inspect.Parameter.empty or hint is Any:
        return str

    previous = None
    while hint != previous:
        previous = hint
        if is_annotated(hint):
            hint = get_args(hint)[0]
        hint = strip_optional(hint)
        if isinstance(hint, NewType):
            hint = hint.__supertype__
    return hint


def split_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *metadata]`` into ``T`` and its metadata.

    A trailing ``| None`` around the ``Annotated`` is dropped so markers are still found.
    """
    hint = strip_optional(hint)
    if is_annotated(hint):
        inner, *metadata = get_args(hint)
        return inner, tuple(metadata)
    return hint, ()


def get_hint_name(hint) -> str:
    """Short human readable name of a hint, e.g. ``int``, ``list[Path]`` or ``{'a', 'b'}``."""
    if isinstance(hint, str):
        return hint
    elif is_nonetype(hint):
        return "None"
    elif hint is Any:
        return "Any"
    elif is_union(hint):
        return "|".join(get_hint_name(x) for x in get_args(hint))
    elif get_origin(hint) is Literal:
        return "{" + ", ".join(repr(x) for x in get_args(hint)) + "}"
    elif origin := get_origin(hint):
        args = ", ".join("..." if x is ... else get_hint_name(x) for x in get_args(hint))
        return f"{get_hint_name(origin)}[{args}]" if args else get_hint_name(origin)
    return getattr(hint, "__name__", str(hint))
