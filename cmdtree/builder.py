"""Derive :class:`~cmdtree.model.CommandSpec` trees from annotated Python objects.

.. code-block:: python

    from typing import Annotated

    from cmdtree import Option, Parameters, command


    @command(name="cat", mixin_standard_help_options=True)
    class Cat:
        number: Annotated[bool, Option("-n", description="Number all output lines")]
        files: Annotated[list[Path], Parameters(label="FILE")]
"""

import inspect
from collections.abc import Callable, Iterable
from functools import partial
from typing import Any, get_type_hints

from attrs import field

from cmdtree.annotations import resolve, split_annotated
from cmdtree.exceptions import InitializationError
from cmdtree.model import ArgSpec, CommandSpec, OptionSpec, PositionalParamSpec
from cmdtree.range import Range
from cmdtree.utils import default_name_transform, frozen, optional_to_tuple_converter, to_tuple_converter

COMMAND_ATTRIBUTE = "__cmdtree_command__"

_FLAGS = frozenset(
    {
        "unmatched_allowed",
        "abbreviate_options",
        "abbreviate_subcommands",
        "overwritten_options_allowed",
        "posix_clustered_short_options",
        "end_of_options_delimiter",
    }
)


@frozen(kw_only=True)
class _Marker:
    label: str | None = None
    description: tuple[str, ...] | None = field(default=None, converter=optional_to_tuple_converter)
    required: bool | None = None
    arity: Range | int | str | None = None
    default: str | None = None
    split: str | None = None
    hidden: bool = False
    converter: tuple[Callable[[str], Any], ...] = field(default=(), converter=to_tuple_converter)
    type: Any = None
    aux_types: tuple[Any, ...] = field(default=(), converter=to_tuple_converter)

    def _spec_kwargs(self) -> dict[str, Any]:
        out = {
            "label": self.label,
            "required": self.required,
            "arity": self.arity,
            "default": self.default,
            "split": self.split,
            "hidden": self.hidden,
            "converter": self.converter,
            "aux_types": self.aux_types,
        }
        if self.description is not None:
            out["description"] = self.description
        return out


@frozen(kw_only=True, init=False)
class Option(_Marker):
    """Mark an annotated attribute or parameter as an option.

    .. code-block:: python

        verbose: Annotated[bool, Option("-v", "--verbose")]
    """

    names: tuple[str, ...] = ()

    negatable: bool = False

    order: int = -1

    def __init__(self, *names: str, **kwargs):
        self.__attrs_init__(names=names, **kwargs)


@frozen(kw_only=True)
class Parameters(_Marker):
    """Mark an annotated attribute or parameter as positional."""

    index: Range | int | str | None = None


@frozen
class Mixin:
    """Merge the options and positional parameters of the annotated class into the host command."""

    name: str | None = None


@frozen(kw_only=True)
class CommandMeta:
    """Configuration stored on objects decorated with :func:`command`."""

    name: str | None = None
    aliases: tuple[str, ...] = field(default=(), converter=to_tuple_converter)
    description: tuple[str, ...] | None = field(default=None, converter=optional_to_tuple_converter)
    version: tuple[str, ...] = field(default=(), converter=to_tuple_converter)
    mixin_standard_help_options: bool = False
    subcommands: tuple[Any, ...] = field(default=(), converter=to_tuple_converter)
    add_method_subcommands: bool = True
    flags: dict[str, Any] = field(factory=dict, hash=False)


def command(
    obj: Any = None,
    *,
    name: str | None = None,
    aliases: str | Iterable[str] = (),
    description: str | Iterable[str] | None = None,
    version: str | Iterable[str] = (),
    mixin_standard_help_options: bool = False,
    subcommands: Iterable[Any] = (),
    add_method_subcommands: bool = True,
    **flags: Any,
):
    """Decorator marking a class, function or method as a command.

    Parameters
    ----------
    name: str | None
        Command name. Defaults to the object's python name through
        :func:`~cmdtree.utils.default_name_transform`.
    aliases: str | Iterable[str]
        Alternative names.
    description: str | Iterable[str] | None
        Description lines. Defaults to the docstring's short description.
    version: str | Iterable[str]
        Lines printed for ``--version``.
    mixin_standard_help_options: bool
        Add ``-h/--help`` and ``-V/--version``.
    subcommands: Iterable
        Classes, functions or :class:`CommandSpec` to add as child commands.
    add_method_subcommands: bool
        For classes: add ``@command`` methods, including inherited ones, as child commands.
    `**flags`
        Any parsing flag of :class:`~cmdtree.model.CommandSpec`,
        e.g. ``abbreviate_options=True``.
    """
    if obj is None:  # Called ``@command(...)``
        return partial(
            command,
            name=name,
            aliases=aliases,
            description=description,
            version=version,
            mixin_standard_help_options=mixin_standard_help_options,
            subcommands=subcommands,
            add_method_subcommands=add_method_subcommands,
            **flags,
        )

    if unknown := set(flags) - _FLAGS:
        raise TypeError(f"Unknown command flag(s): {', '.join(sorted(unknown))}")

    setattr(
        obj,
        COMMAND_ATTRIBUTE,
        CommandMeta(
            name=name,
            aliases=aliases,
            description=description,
            version=version,
            mixin_standard_help_options=mixin_standard_help_options,
            subcommands=subcommands,
            add_method_subcommands=add_method_subcommands,
            flags=flags,
        ),
    )
    return obj


def _find_marker(metadata: Iterable[Any]) -> _Marker | Mixin | None:
    for item in metadata:
        if isinstance(item, _Marker | Mixin):
            return item
    return None


def _docstring_descriptions(obj: Any) -> tuple[str | None, dict[str, str]]:
    """Short description and per-parameter descriptions from a docstring."""
    from docstring_parser import parse_from_object

    try:
        doc = parse_from_object(obj)
    except (TypeError, OSError):
        return None, {}
    return doc.short_description, {p.arg_name: p.description for p in doc.params if p.description}


def _command_kwargs(meta: CommandMeta | None, short_description: str | None) -> dict[str, Any]:
    if meta is None:
        return {"description": short_description}
    return {
        "aliases": meta.aliases,
        "description": meta.description if meta.description is not None else short_description,
        "version": meta.version,
        "mixin_standard_help_options": meta.mixin_standard_help_options,
        "add_method_subcommands": meta.add_method_subcommands,
        **meta.flags,
    }


def _build_arg(
    python_name: str,
    hint: Any,
    *,
    marker: _Marker | None,
    positional: bool,
    index: Range | str | None,
    python_default: Any,
    docstring: str | None,
) -> ArgSpec:
    """Create the :class:`ArgSpec` for one attribute or parameter."""
    if marker is not None and marker.type is not None:
        type_ = marker.type
    elif hint is None or hint is inspect.Parameter.empty:
        type_ = str if python_default is inspect.Parameter.empty or python_default is None else type(python_default)
    else:
        type_ = hint

    kwargs = marker._spec_kwargs() if marker is not None else {}
    if "description" not in kwargs and docstring:
        kwargs["description"] = docstring
    if python_default is not inspect.Parameter.empty:
        kwargs["initial"] = python_default

    if positional:
        if kwargs.get("required") is None and python_default is not inspect.Parameter.empty:
            kwargs["required"] = False
        return PositionalParamSpec(name=python_name, type=type_, index=index, **kwargs)

    if isinstance(marker, Option):
        names = marker.names or (f"--{default_name_transform(python_name)}",)
        kwargs.update(negatable=marker.negatable, order=marker.order)
    else:
        names = (f"--{default_name_transform(python_name)}",)
        if python_default is inspect.Parameter.empty and resolve(type_) is not bool:
            kwargs["required"] = True
    if kwargs.get("required") is None:
        kwargs["required"] = False
    return OptionSpec(name=python_name, type=type_, names=names, **kwargs)


def _mixin_spec(python_name: str, type_: Any, marker: Mixin) -> tuple[str, CommandSpec]:
    if not inspect.isclass(type_):
        raise InitializationError(f"Mixin {python_name!r} must be annotated with a class, got {type_!r}.")
    return marker.name or python_name, spec_from_class(type_, mixin=True)


def spec_from_callable(func: Callable, *, name: str | None = None) -> CommandSpec:
    """Build a command from a function or method signature.

    Positional parameters without a marker claim the slot matching their
    declaration position (options included); keyword-only parameters without
    a marker become ``--<name>`` options.

    Raises
    ------
    InitializationError
        ``func`` has a ``**kwargs`` parameter, or its markers conflict.
    """
    meta: CommandMeta | None = getattr(func, COMMAND_ATTRIBUTE, None)
    short_description, param_docs = _docstring_descriptions(func)
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        hints = {}

    if name is None:
        name = meta.name if meta is not None and meta.name else default_name_transform(func.__name__)
    spec = CommandSpec(name, user_object=func, **_command_kwargs(meta, short_description))

    parameters = list(inspect.signature(func).parameters.values())
    if parameters and parameters[0].name in ("self", "cls") and not inspect.ismethod(func):
        parameters = parameters[1:]

    for position, iparam in enumerate(parameters):
        if iparam.kind is iparam.VAR_KEYWORD:
            raise InitializationError(f"{func.__qualname__}: **{iparam.name} cannot be mapped to the command line.")

        type_, metadata = split_annotated(hints.get(iparam.name, iparam.annotation))
        marker = _find_marker(metadata)

        if isinstance(marker, Mixin):
            spec.add_mixin(*_mixin_spec(iparam.name, type_, marker))
            continue

        if iparam.kind is iparam.VAR_POSITIONAL:
            index = Range(position, None)
            if isinstance(marker, Parameters) and marker.index is not None:
                index = marker.index
            element = str if type_ is inspect.Parameter.empty else type_
            spec.add(
                _build_arg(
                    iparam.name,
                    list[element],
                    marker=marker,
                    positional=True,
                    index=index,
                    python_default=inspect.Parameter.empty,
                    docstring=param_docs.get(iparam.name),
                )
            )
            continue

        if isinstance(marker, Option):
            positional = False
        elif isinstance(marker, Parameters):
            positional = True
        else:
            positional = iparam.kind is not iparam.KEYWORD_ONLY

        if isinstance(marker, Parameters):
            index = marker.index if marker.index is not None else "0..*"
        else:
            index = Range(position)

        spec.add(
            _build_arg(
                iparam.name,
                type_,
                marker=marker,
                positional=positional,
                index=index if positional else None,
                python_default=iparam.default,
                docstring=param_docs.get(iparam.name),
            )
        )
    return spec


def _class_annotations(cls: type) -> dict[str, Any]:
    """Annotations of ``cls`` and its bases; the class's own first, then inherited ones in MRO order."""
    out: dict[str, Any] = {}
    for klass in cls.__mro__:
        if klass is object:
            continue
        own = inspect.get_annotations(klass)
        try:
            hints = get_type_hints(klass, include_extras=True, localns=dict(vars(klass)))
        except (NameError, TypeError):
            hints = own
        for attr_name in own:
            out.setdefault(attr_name, hints.get(attr_name))
    return out


def command_methods(cls: type, name: str | None = None) -> dict[str, Callable]:
    """``@command`` methods of ``cls``, inherited ones included, keyed by python name.

    Parameters
    ----------
    cls: type
        Class to inspect.
    name: str | None
        If given, only return the method with this python name.
    """
    out: dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for attr_name, member in vars(klass).items():
            if isinstance(member, staticmethod | classmethod):
                member = member.__func__
            if callable(member) and not inspect.isclass(member) and hasattr(member, COMMAND_ATTRIBUTE):
                out[attr_name] = member
            elif attr_name in out:
                # Overridden without the decorator.
                del out[attr_name]
    if name is not None:
        return {k: v for k, v in out.items() if k == name}
    return out


def spec_from_class(cls: type, *, instance: Any = None, mixin: bool = False) -> CommandSpec:
    """Build a command from a class with annotated attributes and ``@command`` methods.

    Parameters
    ----------
    cls: type
        Class carrying :class:`Option`, :class:`Parameters` or :class:`Mixin`
        annotations, and/or decorated with :func:`command`.
    instance: Any
        If given, its current attribute values become the arguments' initial values.
    mixin: bool
        Build a mixin: only the arguments are collected.

    Raises
    ------
    InitializationError
        ``cls`` is not a command, or its option names conflict.
    """
    meta: CommandMeta | None = vars(cls).get(COMMAND_ATTRIBUTE)
    short_description, attr_docs = _docstring_descriptions(cls)
    source = cls if instance is None else instance

    marked = []
    for attr_name, hint in _class_annotations(cls).items():
        type_, metadata = split_annotated(hint)
        marker = _find_marker(metadata)
        if marker is not None:
            marked.append((attr_name, type_, marker))

    if meta is None and not marked and not mixin:
        raise InitializationError(
            f"{cls.__qualname__} is not a command: it has no @command, Option, Parameters or Mixin markers"
        )

    name = meta.name if meta is not None and meta.name else default_name_transform(cls.__name__)
    spec = CommandSpec(
        name,
        user_object=instance if instance is not None else cls,
        **_command_kwargs(meta, short_description),
    )

    for attr_name, type_, marker in marked:
        if isinstance(marker, Mixin):
            spec.add_mixin(*_mixin_spec(attr_name, type_, marker))
            continue
        positional = isinstance(marker, Parameters)
        index = (marker.index if marker.index is not None else "0..*") if positional else None
        spec.add(
            _build_arg(
                attr_name,
                type_,
                marker=marker,
                positional=positional,
                index=index,
                python_default=getattr(source, attr_name, inspect.Parameter.empty),
                docstring=attr_docs.get(attr_name),
            )
        )

    if mixin or meta is None:
        return spec

    if meta.add_method_subcommands:
        for method in command_methods(cls).values():
            spec.add_subcommand(spec_from_callable(method))
    for subcommand in meta.subcommands:
        spec.add_subcommand(build_spec(subcommand))
    return spec


def build_spec(obj: Any) -> CommandSpec:
    """Build a :class:`CommandSpec` from a class, an instance, a function or a bound method."""
    if isinstance(obj, CommandSpec):
        return obj
    elif inspect.isclass(obj):
        return spec_from_class(obj)
    elif inspect.isfunction(obj) or inspect.ismethod(obj):
        return spec_from_callable(obj)
    return spec_from_class(type(obj), instance=obj)

