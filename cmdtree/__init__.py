import logging

__version__ = "0.1.0"

__all__ = [
    "ArgSpec",
    "CmdtreeError",
    "CommandLine",
    "CommandMatch",
    "CommandSpec",
    "ConverterRegistry",
    "ErrorPanel",
    "FormatError",
    "InitializationError",
    "MissingParameterError",
    "Mixin",
    "Option",
    "OptionSpec",
    "OverwrittenOptionError",
    "Parameters",
    "ParseResult",
    "PositionalParamSpec",
    "Range",
    "Token",
    "TypeConversionError",
    "UNSET",
    "UnmatchedArgumentError",
    "build_spec",
    "command",
    "command_methods",
    "default_name_transform",
    "parse",
    "spec_from_callable",
    "spec_from_class",
    "usage_message",
    "version_message",
]

from cmdtree._convert import ConverterRegistry
from cmdtree.builder import (
    Mixin,
    Option,
    Parameters,
    build_spec,
    command,
    command_methods,
    spec_from_callable,
    spec_from_class,
)
from cmdtree.core import CommandLine
from cmdtree.dispatch import parse
from cmdtree.exceptions import (
    CmdtreeError,
    FormatError,
    InitializationError,
    MissingParameterError,
    OverwrittenOptionError,
    TypeConversionError,
    UnmatchedArgumentError,
)
from cmdtree.help import usage_message, version_message
from cmdtree.model import ArgSpec, CommandSpec, OptionSpec, PositionalParamSpec
from cmdtree.panel import ErrorPanel
from cmdtree.parse_result import CommandMatch, ParseResult
from cmdtree.range import Range
from cmdtree.token import Token
from cmdtree.utils import UNSET, default_name_transform

logging.getLogger(__name__).addHandler(logging.NullHandler())
