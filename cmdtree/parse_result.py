from collections.abc import Iterator
from typing import Any

from attrs import define, field

from cmdtree.model import ArgSpec, CommandSpec
from cmdtree.token import Token
from cmdtree.utils import UNSET


@define(eq=False)
class CommandMatch:
    """What one command level of the input matched."""

    spec: CommandSpec

    matched: list[ArgSpec] = field(factory=list)
    """Arguments that appeared in the input, in the order they were first matched."""

    values: dict[ArgSpec, Any] = field(factory=dict)
    """Converted values of the matched arguments."""

    defaults: dict[ArgSpec, Any] = field(factory=dict)
    """Values of unmatched arguments that have a ``default`` or an ``initial`` value."""

    tokens: dict[ArgSpec, list[Token]] = field(factory=dict, repr=False)
    """Raw tokens bound to each matched argument."""

    unmatched: list[str] = field(factory=list)

    original_tokens: list[str] = field(factory=list)
    """Input tokens from this command's name (exclusive) to the end of input."""

    def _resolve(self, key: "ArgSpec | str") -> ArgSpec:
        """Find an argument by spec, python name, option name or positional label."""
        if isinstance(key, ArgSpec):
            return key
        for arg in self.spec.args:
            if arg.name == key:
                return arg
        if (option := self.spec.find_option(key)) is not None:
            return option
        for arg in self.spec.positionals:
            if arg.label == key:
                return arg
        raise KeyError(key)

    def has_matched(self, key: "ArgSpec | str") -> bool:
        return self._resolve(key) in self.values

    def value(self, key: "ArgSpec | str", default: Any = UNSET) -> Any:
        """Matched value, else the argument's default, else ``default``.

        Raises
        ------
        KeyError
            ``key`` names no argument of this command.
        """
        arg = self._resolve(key)
        if arg in self.values:
            return self.values[arg]
        if arg in self.defaults:
            return self.defaults[arg]
        return None if default is UNSET else default

    def arg_values(self) -> list[Any]:
        """Values of all arguments, in declaration order."""
        return [self.value(arg) for arg in self.spec.args]

    def named_values(self) -> dict[str, Any]:
        """Values keyed by python binding name; synthesized help/version options are omitted."""
        return {arg.name: self.value(arg) for arg in self.spec.args if arg.name is not None}

    @property
    def is_usage_help_requested(self) -> bool:
        return any(arg.is_option and arg.usage_help and self.values[arg] for arg in self.matched)

    @property
    def is_version_help_requested(self) -> bool:
        return any(arg.is_option and arg.version_help and self.values[arg] for arg in self.matched)


@define(frozen=True)
class ParseResult:
    """The ordered chain of matched commands, root first.

    Always a path from the root; each entry is a child of the previous one.
    """

    matches: tuple[CommandMatch, ...]

    tokens: tuple[str, ...] = ()
    """All input tokens."""

    def __iter__(self) -> Iterator[CommandMatch]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    def __getitem__(self, index):
        return self.matches[index]

    @property
    def root(self) -> CommandMatch:
        return self.matches[0]

    @property
    def leaf(self) -> CommandMatch:
        return self.matches[-1]

    @property
    def command_names(self) -> list[str]:
        return [x.spec.name for x in self.matches]

    @property
    def unmatched(self) -> list[str]:
        return [token for match in self.matches for token in match.unmatched]

    @property
    def is_usage_help_requested(self) -> bool:
        return any(x.is_usage_help_requested for x in self.matches)

    @property
    def is_version_help_requested(self) -> bool:
        return any(x.is_version_help_requested for x in self.matches)
