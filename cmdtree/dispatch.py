import logging
from collections.abc import Iterable

from cmdtree._convert import DEFAULT_REGISTRY, ConverterRegistry
from cmdtree.exceptions import CmdtreeError
from cmdtree.matcher import Matcher
from cmdtree.model import CommandSpec
from cmdtree.parse_result import CommandMatch, ParseResult

logger = logging.getLogger(__name__)


def parse(
    spec: CommandSpec,
    tokens: Iterable[str],
    registry: ConverterRegistry | None = None,
) -> ParseResult:
    """Match ``tokens`` against the command tree rooted at ``spec``.

    Each command level is matched by a :class:`~cmdtree.matcher.Matcher`;
    when it stops at a subcommand name, matching continues with the child
    command and the remaining tokens.

    Parameters
    ----------
    spec: CommandSpec
        Root of the command tree.
    tokens: Iterable[str]
        Pre-split input tokens, **not** including the program name.
    registry: ConverterRegistry | None
        Converters used for typed values. Defaults to the built-in registry.

    Raises
    ------
    CmdtreeError
        The input does not satisfy the command tree. The exception's
        ``tokens``, ``command_chain`` and ``spec`` are filled in.

    Returns
    -------
    ParseResult
        The chain of matched commands, root first.
    """
    tokens = list(tokens)
    if registry is None:
        registry = DEFAULT_REGISTRY

    matches: list[CommandMatch] = []
    current: CommandSpec | None = spec
    position = 0
    try:
        while current is not None:
            match, child, position = Matcher(current, tokens, registry, start=position).run()
            matches.append(match)
            if child is not None:
                logger.debug("Handing over to subcommand %r", child.name)
            current = child
    except CmdtreeError as e:
        if e.tokens is None:
            e.tokens = tokens
        if e.command_chain is None:
            e.command_chain = [x.spec.name for x in matches] + [current.name]
        if e.spec is None:
            e.spec = current
        raise

    logger.debug("Parsed command chain %s", [x.spec.name for x in matches])
    return ParseResult(tuple(matches), tokens=tuple(tokens))
