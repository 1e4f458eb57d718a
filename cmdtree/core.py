import inspect
import logging
import shlex
import sys
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Optional

from attrs import define, field

from cmdtree import _trace
from cmdtree._convert import DEFAULT_REGISTRY, ConverterRegistry
from cmdtree.builder import build_spec, command_methods
from cmdtree.dispatch import parse
from cmdtree.exceptions import CmdtreeError, InitializationError
from cmdtree.help import usage_message, version_message
from cmdtree.model import ArgSpec, CommandSpec
from cmdtree.panel import ErrorPanel
from cmdtree.parse_result import CommandMatch, ParseResult

if TYPE_CHECKING:
    from rich.console import Console

logger = logging.getLogger(__name__)


def normalize_tokens(tokens: None | str | Iterable[str]) -> list[str]:
    if tokens is None:
        tokens = sys.argv[1:]  # Remove the executable
    elif isinstance(tokens, str):
        tokens = shlex.split(tokens)
    else:
        tokens = list(tokens)
    return tokens


def _registry_converter(registry: ConverterRegistry | None) -> ConverterRegistry:
    return DEFAULT_REGISTRY.copy() if registry is None else registry


def _takes_self(func: Callable) -> bool:
    if inspect.ismethod(func):
        return False
    parameters = list(inspect.signature(func).parameters)
    return bool(parameters) and parameters[0] in ("self", "cls")


@define
class CommandLine:
    """Parse, populate and invoke a command tree.

    .. code-block:: python

        @command(mixin_standard_help_options=True, version="1.0")
        def greet(name: str, *, shout: bool = False):
            print(name.upper() if shout else name)


        CommandLine(greet)()
    """

    obj: Any = field()
    """A :class:`~cmdtree.model.CommandSpec`, class, instance, function or bound method."""

    registry: ConverterRegistry = field(default=None, converter=_registry_converter, kw_only=True)

    _console: Optional["Console"] = field(default=None, alias="console", kw_only=True)

    _error_console: Optional["Console"] = field(default=None, alias="error_console", kw_only=True)

    spec: CommandSpec = field(init=False)

    def __attrs_post_init__(self):
        self.spec = build_spec(self.obj)

    @property
    def console(self) -> "Console":
        if self._console is None:
            from rich.console import Console

            self._console = Console()
        return self._console

    @property
    def error_console(self) -> "Console":
        if self._error_console is None:
            from rich.console import Console

            self._error_console = Console(stderr=True)
        return self._error_console

    @property
    def subcommands(self) -> dict[str, "CommandLine"]:
        """A :class:`CommandLine` per child command, keyed by name and alias."""
        return {
            name: CommandLine(
                subcommand, registry=self.registry, console=self._console, error_console=self._error_console
            )
            for name, subcommand in self.spec.subcommands.items()
        }

    def register_converter(self, type_: Any, converter: Callable[[str], Any]) -> "CommandLine":
        self.registry.register(type_, converter)
        return self

    def parse(self, tokens: None | str | Iterable[str] = None) -> ParseResult:
        """Match ``tokens`` against the command tree.

        A fresh :class:`ParseResult` is returned on every call; nothing is
        stored on the :class:`CommandLine`.

        Parameters
        ----------
        tokens: None | str | Iterable[str]
            Either a string, or a list of strings.
            Defaults to ``sys.argv[1:]``.
        """
        return parse(self.spec, normalize_tokens(tokens), self.registry)

    def usage_message(self) -> str:
        return usage_message(self.spec)

    def version_message(self) -> str:
        return version_message(self.spec)

    def populate(self, match: CommandMatch, target: Any = None) -> Any:
        """Set attributes of ``target`` from a :class:`CommandMatch`.

        If ``target`` is not provided, the command's instance is used, or the
        command's class is instantiated.
        Mixin arguments are set on the corresponding mixin attribute.
        """
        spec = match.spec
        if target is None:
            target = spec.user_object() if inspect.isclass(spec.user_object) else spec.user_object

        mixin_args = set()
        for mixin_name, mixin in spec.mixins.items():
            mixin_args.update(id(arg) for arg in mixin.args)
            existing = getattr(target, mixin_name, None)
            if existing is None or inspect.isclass(existing):
                setattr(target, mixin_name, _populate_mixin(mixin, match))
            else:
                _populate_mixin(mixin, match, existing)

        for arg in spec.args:
            if arg.name is not None and id(arg) not in mixin_args:
                _set_value(target, match, arg)
        return target

    def _call_arguments(self, func: Callable, match: CommandMatch) -> tuple[list[Any], dict[str, Any]]:
        spec = match.spec
        by_name = {arg.name: arg for arg in spec.args if arg.name is not None}
        args, kwargs = [], {}

        parameters = list(inspect.signature(func).parameters.values())
        if _takes_self(func):
            parameters = parameters[1:]

        for iparam in parameters:
            if iparam.name in spec.mixins:
                value = _populate_mixin(spec.mixins[iparam.name], match)
            elif (arg := by_name.get(iparam.name)) is not None and (arg in match.values or arg in match.defaults):
                value = match.value(arg)
            elif iparam.default is not iparam.empty:
                value = iparam.default
            elif iparam.kind is iparam.VAR_POSITIONAL:
                continue
            else:
                value = None

            if iparam.kind is iparam.VAR_POSITIONAL:
                args.extend(value)
            elif iparam.kind is iparam.KEYWORD_ONLY:
                kwargs[iparam.name] = value
            else:
                args.append(value)
        return args, kwargs

    def execute(self, tokens: None | str | Iterable[str] = None) -> Any:
        """Parse ``tokens`` and invoke the last command of the chain.

        If usage or version help was requested, the message is printed on
        :attr:`console` and :obj:`None` is returned.

        Returns
        -------
        Any
            The return value of the invoked command.
        """
        result = self.parse(tokens)

        for match in reversed(result.matches):
            if match.is_usage_help_requested:
                self.console.print(usage_message(match.spec), end="", markup=False, highlight=False)
                return None
            if match.is_version_help_requested:
                self.console.print(version_message(match.spec), end="", markup=False, highlight=False)
                return None

        instance = None
        for match in result.matches[:-1]:
            if not inspect.isfunction(match.spec.user_object) and not inspect.ismethod(match.spec.user_object):
                instance = self.populate(match)

        leaf = result.leaf
        target = leaf.spec.user_object
        if inspect.isfunction(target) or inspect.ismethod(target):
            args, kwargs = self._call_arguments(target, leaf)
            if _takes_self(target):
                if instance is None:
                    raise InitializationError(f"Cannot invoke method {target.__qualname__} without an instance.")
                args.insert(0, instance)
            logger.debug("Invoking %s", target.__qualname__)
            return target(*args, **kwargs)

        instance = self.populate(leaf)
        if callable(instance):
            return instance()
        elif callable(run := getattr(instance, "run", None)):
            return run()
        return instance

    @classmethod
    def invoke(cls, name: str, command_class: type, *tokens: str, **kwargs) -> Any:
        """Build a command from the ``@command`` method ``name`` of ``command_class`` and execute it.

        Raises
        ------
        InitializationError
            ``command_class`` has no ``@command`` method called ``name``.
        """
        if name not in command_methods(command_class, name):
            raise InitializationError(f"{command_class.__qualname__} has no @command method {name!r}.")
        method = getattr(command_class(), name)
        return cls(method, **kwargs).execute(list(tokens))

    def __call__(
        self,
        tokens: None | str | Iterable[str] = None,
        *,
        print_error: bool = True,
        exit_on_error: bool = True,
        verbose: bool = False,
    ) -> Any:
        """Interprets and executes a command.

        Parameters
        ----------
        tokens : None | str | Iterable[str]
            Either a string, or a list of strings to launch a command.
            Defaults to ``sys.argv[1:]``.
        print_error: bool
            Print a rich-formatted error on error.
        exit_on_error: bool
            If there is an error parsing the CLI tokens invoke ``sys.exit(2)``.
            Otherwise, continue to raise the exception.
        verbose: bool
            Populate exception strings with more information intended for developers.

        Returns
        -------
        return_value: Any
            The value the command returns.
        """
        _trace.configure()
        try:
            return self.execute(tokens)
        except CmdtreeError as e:
            e.verbose = verbose
            if print_error:
                self.error_console.print(ErrorPanel(e))
            if exit_on_error:
                sys.exit(2)
            raise


def _set_value(target: Any, match: CommandMatch, arg: ArgSpec) -> None:
    if arg in match.values or arg in match.defaults:
        setattr(target, arg.name, match.value(arg))


def _populate_mixin(mixin: CommandSpec, match: CommandMatch, target: Any = None) -> Any:
    if target is None:
        target = mixin.user_object()
    for arg in mixin.args:
        _set_value(target, match, arg)
    return target
