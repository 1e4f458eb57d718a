from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional

from attrs import define, field

from cmdtree.annotations import get_hint_name
from cmdtree.token import Token
from cmdtree.utils import is_option_like

if TYPE_CHECKING:
    from cmdtree.model import ArgSpec, CommandSpec


__all__ = [
    "CmdtreeError",
    "FormatError",
    "InitializationError",
    "MissingParameterError",
    "OverwrittenOptionError",
    "TypeConversionError",
    "UnmatchedArgumentError",
]


class FormatError(ValueError):
    """Malformed range or arity text in the command model."""

    # Like InitializationError this is a developer error raised while the model
    # is being built, so it doesn't derive from CmdtreeError.


class InitializationError(Exception):
    """The command model is structurally invalid.

    Raised for duplicate option names, duplicate subcommand names or aliases,
    and for objects that carry no command markers at all.
    """


def describe(arg: "ArgSpec") -> str:
    """Human readable reference to an argument, as used in error messages."""
    if arg.is_option:
        return f"option '{arg.longest_name}' ({arg.label})"
    return f"positional parameter at index {arg.index} ({arg.label})"


def _capitalize(s: str) -> str:
    return s[:1].upper() + s[1:]


def _article(noun: str) -> str:
    return f"an {noun}" if noun[:1].lower() in "aeiou" else f"a {noun}"


@define
class CmdtreeError(Exception):
    """Root exception for parse-time errors.

    As errors bubble up through the dispatcher, more information is added to them.
    """

    msg: str | None = None
    """
    If set, override automatic message generation.
    """

    verbose: bool = False
    """
    Prefix messages with developer-oriented context (exception type and input tokens).
    """

    tokens: list[str] | None = None
    """
    The tokens that were initially fed to the parser.
    """

    command_chain: Sequence[str] | None = None
    """
    Names of the commands resolved before the error occurred.
    """

    spec: Optional["CommandSpec"] = None
    """
    :class:`CommandSpec` being matched when the error occurred.
    """

    arg: Optional["ArgSpec"] = None
    """
    :class:`ArgSpec` involved in the error, if any.
    """

    def __str__(self):
        if self.msg is not None:
            return self.msg
        return self._prefix()

    def _prefix(self) -> str:
        if not self.verbose:
            return ""

        strings = [type(self).__name__]
        if self.command_chain:
            strings.append(f"Command: {' '.join(self.command_chain)}")
        if self.tokens is not None:
            strings.append(f"Input Tokens: {self.tokens}")
        return "\n".join(strings) + "\n"


@define(kw_only=True)
class MissingParameterError(CmdtreeError):
    """A required option or positional parameter was not provided."""

    keyword: str | None = None
    """Option name as typed, when the option was present but lacked values."""

    found: str | None = None
    """Token that was found where a value was expected."""

    values_so_far: list[str] = field(factory=list)
    """If the matched argument requires multiple values, these are the ones parsed so far."""

    def __str__(self):
        if self.msg is not None:
            return self.msg

        assert self.arg is not None
        if self.keyword is not None:
            if self.found is not None:
                message = f"Expected parameter for option '{self.keyword}' but found '{self.found}'"
            else:
                message = f"Missing required parameter for option '{self.keyword}' ({self.arg.label})"
        elif self.arg.is_option:
            display = self.arg.longest_name
            if self.arg.arity.max != 0:
                display += f"={self.arg.label}"
            message = f"Missing required option '{display}'"
        elif self.values_so_far:
            message = (
                f"{_capitalize(describe(self.arg))} requires at least {self.arg.arity.min} values, "
                f"but only {len(self.values_so_far)} were specified: {self.values_so_far}"
            )
        else:
            message = f"Missing required parameter: {self.arg.label}"
        return self._prefix() + message


@define(kw_only=True)
class UnmatchedArgumentError(CmdtreeError):
    """An input token could not be associated with any option, positional or subcommand.

    Also raised for ambiguous abbreviations; then ``candidates`` lists the names it matched.
    """

    token: str
    """First offending token."""

    unmatched: list[str] = field(factory=list)
    """All unmatched tokens of the command level, in input order."""

    candidates: tuple[str, ...] = ()
    """Option or subcommand names an ambiguous abbreviation matched."""

    def __str__(self):
        if self.msg is not None:
            return self.msg

        if self.candidates:
            matches = ", ".join(f"'{x}'" for x in self.candidates)
            kind = "Option" if self.token.startswith("-") else "Subcommand"
            response = f"{kind} '{self.token}' is not unique: it matches {matches}"
        elif is_option_like(self.token):
            response = f"Unknown option: {self.token}"
            if self.spec is not None:
                import difflib

                close_matches = difflib.get_close_matches(self.token, self.spec.option_names(), n=1, cutoff=0.6)
                if close_matches:
                    response += f'. Did you mean "{close_matches[0]}"?'
        elif len(self.unmatched) > 1:
            response = f"Unmatched arguments: {', '.join(self.unmatched)}"
        else:
            response = f"Unmatched argument: {self.token}"
        return self._prefix() + response


@define(kw_only=True)
class TypeConversionError(CmdtreeError):
    """A matched token could not be converted into the argument's declared type."""

    token: Token | None = None
    """
    Input token that couldn't be converted.
    """

    target_type: Any = None
    """
    Intended type to convert into.
    """

    valid: tuple[str, ...] = ()
    """
    Accepted literals, for enumerations.
    """

    def __str__(self):
        value = self.token.value if self.token is not None else ""
        if self.msg is not None:
            detail = self.msg
        elif self.valid:
            detail = f"expected one of [{', '.join(self.valid)}] (case-insensitive) but was '{value}'"
        else:
            detail = f"'{value}' is not {_article(get_hint_name(self.target_type))}"

        if self.arg is None:
            return self._prefix() + detail
        elif self.arg.is_option:
            keyword = self.token.keyword if self.token is not None and self.token.keyword else self.arg.longest_name
            return self._prefix() + f"Invalid value for option '{keyword}': {detail}"
        else:
            return self._prefix() + f"Invalid value for {describe(self.arg)}: {detail}"


@define(kw_only=True)
class OverwrittenOptionError(CmdtreeError):
    """A single-valued argument was specified more than once."""

    token: Token
    """The repeated token."""

    def __str__(self):
        assert self.arg is not None
        if self.arg.is_option:
            keyword = self.token.keyword or self.arg.longest_name
            message = f"option '{keyword}' ({self.arg.label}) should be specified only once"
        else:
            message = f"{describe(self.arg)} should be specified only once"
        return self._prefix() + message
