"""Data model describing what can be parsed.

A :class:`CommandSpec` owns an ordered sequence of :class:`ArgSpec` and a
mapping of child commands. :class:`ArgSpec` is a closed set of two variants,
:class:`OptionSpec` and :class:`PositionalParamSpec`; the matcher only ever
branches on :attr:`ArgSpec.is_option`.
"""

import sys
import weakref
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional

from attrs import Factory, define, field

from cmdtree._convert import default_arity, element_types, is_multi_value
from cmdtree.annotations import resolve
from cmdtree.exceptions import InitializationError, describe
from cmdtree.range import Range
from cmdtree.utils import to_tuple_converter

HELP_DESCRIPTION = "Show this help message and exit."
VERSION_DESCRIPTION = "Print version information and exit."


@define(frozen=True, eq=False, kw_only=True)
class ArgSpec:
    """Attributes shared by options and positional parameters.

    Specs compare and hash by identity: two otherwise identical unnamed
    positionals are still distinct arguments.

    Derived attributes (``label``, ``aux_types``, ``arity``, ``required``, ``initial``)
    are filled in from ``type`` and ``name`` when not given explicitly.
    """

    name: str | None = None
    """Python binding name (field or function parameter)."""

    label: str | None = None

    type: Any = str

    aux_types: tuple[Any, ...] = field(default=(), converter=to_tuple_converter)
    """Element type(s) of aggregate values; ``(key, value)`` for maps."""

    arity: Range | None = field(default=None, converter=lambda x: None if x is None else Range.of(x))

    required: bool | None = None

    default: str | None = None
    """String converted through the registry when the argument is absent from the input."""

    initial: Any = None
    """Python value used when the argument is absent and there is no ``default``."""

    description: tuple[str, ...] = field(default=(), converter=to_tuple_converter)

    converter: tuple[Any, ...] = field(default=(), converter=to_tuple_converter)
    """Per-argument ``str -> value`` callables; take precedence over the registry."""

    split: str | None = None
    """Regular expression splitting a single value into several."""

    hidden: bool = False

    def __attrs_post_init__(self):
        # Circumvent frozen protection for derived attributes.
        if self.label is None:
            object.__setattr__(self, "label", self._default_label())
        if not self.aux_types:
            object.__setattr__(self, "aux_types", element_types(self.type))
        if self.arity is None:
            object.__setattr__(self, "arity", default_arity(self.type, positional=self.is_positional))
        if self.required is None:
            object.__setattr__(self, "required", self.is_positional and self.arity.min > 0)
        if self.initial is None and self.default is None and self.is_option and resolve(self.type) is bool:
            object.__setattr__(self, "initial", False)

    def _default_label(self) -> str:
        return f"<{self.name or 'value'}>"

    @property
    def is_option(self) -> bool:
        raise NotImplementedError

    @property
    def is_positional(self) -> bool:
        return not self.is_option

    @property
    def multi_value(self) -> bool:
        """Values accumulate across tokens and repeated occurrences."""
        return is_multi_value(self.type)

    @property
    def is_flag(self) -> bool:
        """An option that consumes no detached values."""
        return self.is_option and self.arity.max == 0


@define(frozen=True, eq=False, kw_only=True)
class OptionSpec(ArgSpec):
    """A named argument such as ``-x`` or ``--example``."""

    names: tuple[str, ...] = field(default=(), converter=to_tuple_converter)

    negatable: bool = False
    """Also accept ``--no-<name>`` for boolean options."""

    order: int = -1
    """Help ordering key; ignored by matching."""

    usage_help: bool = False
    version_help: bool = False

    def __attrs_post_init__(self):
        if not self.names:
            raise InitializationError(f"Option {self.name!r} must have at least one name.")
        for option_name in self.names:
            if len(option_name) < 2 or not option_name.startswith("-") or any(c.isspace() for c in option_name):
                raise InitializationError(f"Invalid option name {option_name!r}: must start with '-'.")
        if len(set(self.names)) != len(self.names):
            raise InitializationError(f"Option names {self.names} contain duplicates.")
        super().__attrs_post_init__()

    def _default_label(self) -> str:
        return f"<{self.name or self.longest_name.lstrip('-')}>"

    @property
    def is_option(self) -> bool:
        return True

    @property
    def short_names(self) -> tuple[str, ...]:
        return tuple(x for x in self.names if len(x) == 2 and not x.startswith("--"))

    @property
    def long_names(self) -> tuple[str, ...]:
        return tuple(x for x in self.names if x not in self.short_names)

    @property
    def longest_name(self) -> str:
        return max(self.names, key=len)

    @property
    def shortest_name(self) -> str:
        return min(self.names, key=len)

    @property
    def negated_names(self) -> tuple[str, ...]:
        """Names that store the negation of the option; empty unless negatable."""
        if not self.negatable:
            return ()
        out = []
        for option_name in self.names:
            if not option_name.startswith("--"):
                continue
            if option_name.startswith("--no-"):
                out.append("--" + option_name[len("--no-") :])
            else:
                out.append("--no-" + option_name[2:])
        return tuple(out)


@define(frozen=True, eq=False, kw_only=True)
class PositionalParamSpec(ArgSpec):
    """An argument identified by its position among the non-option tokens."""

    index: Range = field(default=Range(0, None), converter=Range.of)
    """Absolute positional slot(s) this parameter may claim."""

    @property
    def is_option(self) -> bool:
        return False


def standard_help_options() -> tuple[OptionSpec, OptionSpec]:
    return (
        OptionSpec(names=("-h", "--help"), type=bool, usage_help=True, description=HELP_DESCRIPTION),
        OptionSpec(names=("-V", "--version"), type=bool, version_help=True, description=VERSION_DESCRIPTION),
    )


def _default_program_name() -> str:
    name = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else ""
    return name or "<main class>"


@define(eq=False)
class CommandSpec:
    """A command: its options, positional parameters and subcommands.

    Built once and treated as read-only while parsing.
    """

    name: str = field(factory=_default_program_name)

    _args: Iterable[ArgSpec] = field(default=(), alias="args", repr=False)

    aliases: tuple[str, ...] = field(default=(), converter=to_tuple_converter, kw_only=True)

    description: tuple[str, ...] = field(default=(), converter=to_tuple_converter, kw_only=True)

    version: tuple[str, ...] = field(default=(), converter=to_tuple_converter, kw_only=True)

    user_object: Any = field(default=None, kw_only=True, repr=False)
    """The class, instance or callable this command was built from."""

    unmatched_allowed: bool = field(default=False, kw_only=True)
    """Record unknown tokens instead of failing."""

    abbreviate_options: bool = field(default=False, kw_only=True)
    """Accept unique prefixes of long option names."""

    abbreviate_subcommands: bool = field(default=False, kw_only=True)
    """Accept unique prefixes of subcommand names."""

    mixin_standard_help_options: bool = field(default=False, kw_only=True)
    """Synthesize ``-h/--help`` and ``-V/--version``."""

    overwritten_options_allowed: bool = field(default=False, kw_only=True)
    """Let a repeated single-valued option overwrite its previous value."""

    posix_clustered_short_options: bool = field(default=True, kw_only=True)
    """Accept ``-rvo`` as ``-r -v -o``."""

    end_of_options_delimiter: str = field(default="--", kw_only=True)
    """Everything after this token is positional; empty string disables."""

    add_method_subcommands: bool = field(default=True, kw_only=True)
    """Whether the model builder adds ``@command`` methods as subcommands."""

    _subcommands: dict[str, "CommandSpec"] = field(default=(), alias="subcommands", kw_only=True, repr=False)

    mixins: dict[str, "CommandSpec"] = field(factory=dict, init=False, repr=False)

    _parent: Optional["weakref.ReferenceType[CommandSpec]"] = field(default=None, init=False, repr=False)

    _option_index: dict[str, OptionSpec] = field(factory=dict, init=False, repr=False)

    _negated_index: dict[str, OptionSpec] = field(factory=dict, init=False, repr=False)

    _names_in_use: set[str] = field(default=Factory(set), init=False, repr=False)

    def __attrs_post_init__(self):
        args, self._args = list(self._args), []
        subcommands = self._subcommands
        self._subcommands = {}

        if self.mixin_standard_help_options:
            for option in standard_help_options():
                self.add(option)
        for arg in args:
            self.add(arg)

        if isinstance(subcommands, dict):
            for subcommand_name, subcommand in subcommands.items():
                self.add_subcommand(subcommand, name=subcommand_name)
        else:
            for subcommand in subcommands:
                self.add_subcommand(subcommand)

    ##############
    # Properties #
    ##############
    @property
    def args(self) -> tuple[ArgSpec, ...]:
        return tuple(self._args)

    @property
    def options(self) -> tuple[OptionSpec, ...]:
        return tuple(x for x in self._args if isinstance(x, OptionSpec))

    @property
    def positionals(self) -> tuple[PositionalParamSpec, ...]:
        return tuple(x for x in self._args if isinstance(x, PositionalParamSpec))

    @property
    def required_args(self) -> tuple[ArgSpec, ...]:
        return tuple(x for x in self._args if x.required)

    @property
    def subcommands(self) -> dict[str, "CommandSpec"]:
        """Child commands keyed by name **and** every alias."""
        return self._subcommands

    @property
    def parent(self) -> Optional["CommandSpec"]:
        return None if self._parent is None else self._parent()

    @property
    def root(self) -> "CommandSpec":
        spec = self
        while (parent := spec.parent) is not None:
            spec = parent
        return spec

    ###########
    # Methods #
    ###########
    def add(self, arg: ArgSpec) -> ArgSpec:
        """Append an option or positional parameter.

        Raises
        ------
        InitializationError
            An option name, or the python binding name, is already in use.
        """
        if not isinstance(arg, OptionSpec | PositionalParamSpec):
            raise TypeError(f"Expected an OptionSpec or PositionalParamSpec, got {type(arg).__name__}.")
        if arg.name is not None and arg.name in self._names_in_use:
            raise InitializationError(f"Command '{self.name}' already has an argument bound to {arg.name!r}.")
        if isinstance(arg, OptionSpec):
            for option_name in arg.names + arg.negated_names:
                existing = self._option_index.get(option_name) or self._negated_index.get(option_name)
                if existing is not None:
                    raise InitializationError(
                        f"Option name '{option_name}' is used by both {describe(existing)} and {describe(arg)}"
                    )
            for option_name in arg.names:
                self._option_index[option_name] = arg
            for option_name in arg.negated_names:
                self._negated_index[option_name] = arg

        if arg.name is not None:
            self._names_in_use.add(arg.name)
        self._args.append(arg)
        return arg

    def add_mixin(self, name: str, mixin: "CommandSpec") -> "CommandSpec":
        """Merge the arguments of ``mixin`` into this command."""
        if name in self.mixins:
            raise InitializationError(f"Command '{self.name}' already has a mixin named {name!r}.")
        for arg in mixin.args:
            self.add(arg)
        self.mixins[name] = mixin
        return mixin

    def add_subcommand(self, subcommand: "CommandSpec", name: str | None = None) -> "CommandSpec":
        """Register ``subcommand`` under its name and all of its aliases.

        Raises
        ------
        InitializationError
            The name or one of the aliases is already registered.
        """
        if name is not None:
            subcommand.name = name
        for key in (subcommand.name, *subcommand.aliases):
            if key in self._subcommands:
                raise InitializationError(
                    f"Another subcommand named '{key}' already exists for command '{self.name}'"
                )
        for key in (subcommand.name, *subcommand.aliases):
            self._subcommands[key] = subcommand
        subcommand._parent = weakref.ref(self)
        return subcommand

    def find_option(self, name: str) -> OptionSpec | None:
        """Find an option by ``"-b"``/``"--branch"``, or by its bare name ``"b"``/``"branch"``."""
        if name.startswith("-"):
            return self._option_index.get(name)
        for prefix in ("-", "--"):
            if (option := self._option_index.get(prefix + name)) is not None:
                return option
        return None

    def lookup(self, name: str) -> tuple[OptionSpec, bool] | None:
        """Exact lookup of an option name, including negated forms.

        Returns
        -------
        tuple[OptionSpec, bool] | None
            The option and whether ``name`` is a negated form.
        """
        if (option := self._option_index.get(name)) is not None:
            return option, False
        if (option := self._negated_index.get(name)) is not None:
            return option, True
        return None

    def option_names(self) -> list[str]:
        return [*self._option_index, *self._negated_index]

    def unique_subcommands(self) -> list["CommandSpec"]:
        """Child commands without their alias entries, in registration order."""
        out = []
        for subcommand in self._subcommands.values():
            if not any(subcommand is x for x in out):
                out.append(subcommand)
        return out

    def qualified_name(self, separator: str = " ") -> str:
        names = []
        spec = self
        while spec is not None:
            names.append(spec.name)
            spec = spec.parent
        return separator.join(reversed(names))

    @property
    def usage_help_option(self) -> OptionSpec | None:
        return next((x for x in self.options if x.usage_help), None)

    @property
    def version_help_option(self) -> OptionSpec | None:
        return next((x for x in self.options if x.version_help), None)
