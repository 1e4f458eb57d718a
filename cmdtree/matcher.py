"""Per-command token matching.

A :class:`Matcher` consumes tokens for a single :class:`~cmdtree.model.CommandSpec`
until the input is exhausted or a subcommand name is found. Recursion into
subcommands is driven by :mod:`cmdtree.dispatch`.
"""

import logging
from collections.abc import Sequence
from enum import Enum, auto
from typing import NamedTuple

from cmdtree._convert import ConverterRegistry
from cmdtree.annotations import resolve
from cmdtree.exceptions import (
    MissingParameterError,
    OverwrittenOptionError,
    UnmatchedArgumentError,
)
from cmdtree.model import ArgSpec, CommandSpec, OptionSpec, PositionalParamSpec
from cmdtree.parse_result import CommandMatch
from cmdtree.token import Token
from cmdtree.utils import UNSET, is_number, is_option_like

logger = logging.getLogger(__name__)


class _State(Enum):
    SCANNING = auto()
    END_OF_OPTIONS = auto()
    SUBCOMMAND_HANDOFF = auto()
    DONE = auto()


class _ResolvedOption(NamedTuple):
    option: OptionSpec
    negated: bool
    keyword: str
    """The option name as it appeared in the input."""
    attached: str | None
    """Value attached with ``=`` or by clustering."""


def find_subcommand(spec: CommandSpec, token: str) -> CommandSpec | None:
    """Resolve ``token`` to a child command by name, alias or unique prefix.

    Raises
    ------
    UnmatchedArgumentError
        Abbreviations are enabled and ``token`` is a prefix of several subcommands.
    """
    if (subcommand := spec.subcommands.get(token)) is not None:
        return subcommand
    if not spec.abbreviate_subcommands or not token:
        return None
    candidates = [name for name in spec.subcommands if name.startswith(token)]
    targets = {id(spec.subcommands[name]) for name in candidates}
    if len(targets) == 1:
        return spec.subcommands[candidates[0]]
    elif len(targets) > 1:
        raise UnmatchedArgumentError(token=token, candidates=tuple(candidates), spec=spec)
    return None


class Matcher:
    """State machine matching the tokens of one command level.

    Parameters
    ----------
    spec: CommandSpec
        Command whose options and positional parameters are matched.
    tokens: Sequence[str]
        The complete input; matching starts at ``start``.
    registry: ConverterRegistry
        Converts raw tokens into typed values.
    start: int
        Index of the first token belonging to this command.
    """

    def __init__(self, spec: CommandSpec, tokens: Sequence[str], registry: ConverterRegistry, start: int = 0):
        self.spec = spec
        self.tokens = tokens
        self.registry = registry
        self.pos = start
        self.state = _State.SCANNING
        self.position = 0
        """Positional counter: number of positional slots consumed so far."""
        self.handoff: CommandSpec | None = None
        self.options_ended = False
        self.match = CommandMatch(spec, original_tokens=list(tokens[start:]))

    def run(self) -> tuple[CommandMatch, CommandSpec | None, int]:
        """Match tokens until the end of input or a subcommand.

        Returns
        -------
        CommandMatch
            What this command level matched.
        CommandSpec | None
            The subcommand to continue with, if any.
        int
            Index of the first token belonging to the subcommand.
        """
        while self.pos < len(self.tokens) and self.state not in (_State.SUBCOMMAND_HANDOFF, _State.DONE):
            token = self.tokens[self.pos]
            logger.debug("[%s] Processing argument %r", self.spec.name, token)

            if self.state is _State.END_OF_OPTIONS:
                if not self._handoff(token):
                    self._process_positional()
            elif self.spec.end_of_options_delimiter and token == self.spec.end_of_options_delimiter:
                logger.debug("[%s] Found end-of-options delimiter %r", self.spec.name, token)
                self.state = _State.END_OF_OPTIONS
                self.options_ended = True
                self.pos += 1
            elif self._looks_like_option(token):
                self._process_option(token)
            elif not self._handoff(token):
                self._process_positional()

        self._validate()
        self._apply_defaults()
        if self.state is not _State.SUBCOMMAND_HANDOFF:
            self.state = _State.DONE
        return self.match, self.handoff, self.pos

    ###########
    # Options #
    ###########
    def _looks_like_option(self, token: str) -> bool:
        head = token.partition("=")[0]
        if self.spec.lookup(token) is not None or self.spec.lookup(head) is not None:
            return True
        return is_option_like(token)

    def _resolve_option(self, token: str) -> tuple[list[_ResolvedOption], str | None]:
        """Identify the option(s) named by an option-like token.

        Returns
        -------
        list[_ResolvedOption]
            The options in the order they appear in ``token``; empty if unknown.
        str | None
            Unrecognized residue of a cluster, e.g. ``-p1`` in ``-vp1``.
        """
        spec = self.spec

        # Exact, possibly negated, name.
        if (found := spec.lookup(token)) is not None:
            return [_ResolvedOption(found[0], found[1], token, None)], None

        # --name=value
        head, sep, attached = token.partition("=")
        if sep and (found := spec.lookup(head)) is not None:
            return [_ResolvedOption(found[0], found[1], head, attached)], None

        if spec.abbreviate_options and head.startswith("--") and len(head) > 2:
            candidates = [name for name in spec.option_names() if name.startswith("--") and name.startswith(head)]
            if candidates:
                options = {id(spec.lookup(name)[0]) for name in candidates}
                if len(options) > 1:
                    raise UnmatchedArgumentError(token=head, candidates=tuple(candidates), spec=spec)
                name = min(candidates, key=len)
                option, negated = spec.lookup(name)
                logger.debug("[%s] Resolved abbreviation %r to %r", spec.name, head, name)
                return [_ResolvedOption(option, negated, name, attached if sep else None)], None

        if spec.posix_clustered_short_options and not token.startswith("--") and not is_number(token):
            return self._resolve_cluster(token)

        return [], None

    def _resolve_cluster(self, token: str) -> tuple[list[_ResolvedOption], str | None]:
        resolved = []
        rest = token[1:]
        while rest:
            name = "-" + rest[0]
            found = self.spec.lookup(name)
            if found is None:
                return resolved, ("-" + rest if resolved else None)
            option, negated = found
            rest = rest[1:]
            if option.is_flag and not rest.startswith("="):
                resolved.append(_ResolvedOption(option, negated, name, None))
                continue
            attached = rest[1:] if rest.startswith("=") else rest
            resolved.append(_ResolvedOption(option, negated, name, attached if rest else None))
            rest = ""
        return resolved, None

    def _process_option(self, token: str):
        index = self.pos
        resolved, residue = self._resolve_option(token)
        self.pos += 1

        if not resolved:
            self._unknown_option(token)
            return

        for item in resolved:
            logger.debug("[%s] Found option %r", self.spec.name, item.keyword)
            self._apply_option(item, index)

        if residue is not None:
            self._unknown_option(residue)

    def _unknown_option(self, token: str):
        if not self.spec.unmatched_allowed:
            raise UnmatchedArgumentError(token=token, unmatched=[token], spec=self.spec)
        logger.debug("[%s] Recording unknown option %r", self.spec.name, token)
        self.match.unmatched.append(token)

    def _apply_option(self, item: _ResolvedOption, index: int):
        option = item.option
        self._check_overwrite(option, Token(keyword=item.keyword, value=item.attached or "", index=index))

        if option.is_flag:
            self._apply_flag(item, index)
            return

        values = []
        if item.attached is not None:
            values.append(Token(keyword=item.keyword, value=item.attached, index=index))
        values.extend(self._consume(option, len(values), keyword=item.keyword))

        if len(values) < option.arity.min:
            found = self.tokens[self.pos] if self.pos < len(self.tokens) else None
            raise MissingParameterError(
                keyword=item.keyword,
                found=found,
                arg=option,
                spec=self.spec,
                values_so_far=[x.value for x in values],
            )

        if values:
            value = self.registry.convert(option, values, self.match.values.get(option, UNSET))
        elif resolve(option.type) is bool:
            value = not item.negated
        else:
            value = option.initial
        self._record(option, value, values)

    def _apply_flag(self, item: _ResolvedOption, index: int):
        option = item.option
        if item.attached is not None:
            token = Token(keyword=item.keyword, value=item.attached, index=index)
            value = self.registry.convert_value(bool, token, arg=option)
            tokens = [token]
        else:
            tokens = [Token(keyword=item.keyword, value="", index=index)]
            if resolve(option.type) is not bool:
                self._record(option, True, tokens)
                return
            value = not self._flag_default(option)
        if item.negated:
            value = not value
        self._record(option, value, tokens)

    def _flag_default(self, option: OptionSpec) -> bool:
        if option.default is not None:
            return self.registry.convert_value(
                bool, Token(keyword=option.longest_name, value=option.default, source="default"), arg=option
            )
        return bool(option.initial)

    def _check_overwrite(self, arg: ArgSpec, token: Token):
        if arg not in self.match.values or arg.multi_value:
            return
        if self.spec.overwritten_options_allowed:
            logger.debug("[%s] Overwriting value of %r", self.spec.name, token.keyword or arg.label)
            return
        raise OverwrittenOptionError(token=token, arg=arg, spec=self.spec)

    ###############
    # Positionals #
    ###############
    def _process_positional(self):
        token = self.tokens[self.pos]
        candidates = [
            arg
            for arg in self.spec.positionals
            if self.position in arg.index and (arg.multi_value or arg not in self.match.values)
        ]
        if not candidates:
            logger.debug("[%s] No positional parameter at index %d for %r", self.spec.name, self.position, token)
            self.match.unmatched.append(token)
            self.position += 1
            self.pos += 1
            return

        arg = candidates[0]
        values = [Token(value=token, index=self.pos)]
        self.pos += 1
        # Slots past the end of the index range belong to the following positionals.
        slots = None if arg.index.max is None else arg.index.max - self.position + 1
        values.extend(self._consume(arg, len(values), limit=slots, positional=True))
        if not arg.multi_value and len(values) < arg.arity.min:
            raise MissingParameterError(arg=arg, spec=self.spec, values_so_far=[x.value for x in values])

        logger.debug("[%s] Matched positional parameter %s at index %d", self.spec.name, arg.label, self.position)
        value = self.registry.convert(arg, values, self.match.values.get(arg, UNSET))
        self._record(arg, value, values)
        self.position += len(values)

    ###########
    # Helpers #
    ###########
    def _consume(
        self,
        arg: ArgSpec,
        have: int,
        keyword: str | None = None,
        limit: int | None = None,
        positional: bool = False,
    ) -> list[Token]:
        """Greedily take following tokens, up to the arity maximum, stopping at recognized options.

        Positional parameters additionally stop at any option-like token and at abbreviated
        subcommand names; both are processed by the main loop instead.
        """
        out = []
        maximum = arg.arity.max
        if limit is not None:
            maximum = limit if maximum is None else min(maximum, limit)
        while (maximum is None or have + len(out) < maximum) and self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            if self._stops_consumption(token):
                break
            if positional and (
                (not self.options_ended and is_option_like(token)) or find_subcommand(self.spec, token) is not None
            ):
                break
            out.append(Token(keyword=keyword, value=token, index=self.pos))
            self.pos += 1
        return out

    def _stops_consumption(self, token: str) -> bool:
        spec = self.spec
        if token in spec.subcommands:
            return True
        if self.options_ended:
            return False
        if spec.end_of_options_delimiter and token == spec.end_of_options_delimiter:
            return True
        if spec.lookup(token) is not None or spec.lookup(token.partition("=")[0]) is not None:
            return True
        if (
            spec.posix_clustered_short_options
            and len(token) > 1
            and token.startswith("-")
            and not token.startswith("--")
            and not is_number(token)
            and spec.lookup(token[:2]) is not None
        ):
            return True
        if spec.abbreviate_options and token.startswith("--") and len(token) > 2:
            head = token.partition("=")[0]
            return any(name.startswith(head) for name in spec.option_names())
        return False

    def _handoff(self, token: str) -> bool:
        subcommand = find_subcommand(self.spec, token)
        if subcommand is None:
            return False
        logger.debug("[%s] Found subcommand %r", self.spec.name, subcommand.name)
        self.handoff = subcommand
        self.state = _State.SUBCOMMAND_HANDOFF
        self.pos += 1
        return True

    def _record(self, arg: ArgSpec, value, tokens: list[Token]):
        if arg not in self.match.values:
            self.match.matched.append(arg)
        self.match.values[arg] = value
        self.match.tokens.setdefault(arg, []).extend(tokens)

    def _validate(self):
        match = self.match
        if not (match.is_usage_help_requested or match.is_version_help_requested):
            for arg in self.spec.args:
                if arg in match.values:
                    if isinstance(arg, PositionalParamSpec) and len(match.tokens[arg]) < arg.arity.min:
                        raise MissingParameterError(
                            arg=arg, spec=self.spec, values_so_far=[x.value for x in match.tokens[arg]]
                        )
                elif arg.required:
                    raise MissingParameterError(arg=arg, spec=self.spec)

        if match.unmatched and not self.spec.unmatched_allowed:
            raise UnmatchedArgumentError(token=match.unmatched[0], unmatched=list(match.unmatched), spec=self.spec)

    def _apply_defaults(self):
        for arg in self.spec.args:
            if arg in self.match.values:
                continue
            if arg.default is not None:
                keyword = arg.longest_name if arg.is_option else None
                token = Token(keyword=keyword, value=arg.default, source="default")
                self.match.defaults[arg] = self.registry.convert(arg, [token])
            elif arg.initial is not None:
                self.match.defaults[arg] = arg.initial
