import shlex
from pathlib import Path

import pytest
from rich.console import Console

import cmdtree
from cmdtree import CommandSpec, ConverterRegistry, OptionSpec, PositionalParamSpec


@pytest.fixture
def console():
    return Console(width=70, force_terminal=True, highlight=False, color_system=None, legacy_windows=False)


@pytest.fixture
def registry():
    return ConverterRegistry()


@pytest.fixture
def git():
    """Hand-built ``git`` command tree with ``clone``, ``commit`` and ``push``."""
    clone = CommandSpec(
        "clone",
        [
            OptionSpec(name="local", names=("-l", "--local"), type=bool),
            OptionSpec(name="quiet", names="-q", type=bool, description="Operate quietly."),
            OptionSpec(name="verbose", names="-v", type=bool, description="Run verbosely."),
            OptionSpec(name="branch", names=("-b", "--branch")),
            PositionalParamSpec(name="repository", label="<repository>", index=0),
            PositionalParamSpec(name="directory", index=1, required=False),
        ],
        aliases="cl",
        description="Clone a repository into a new directory",
    )
    commit = CommandSpec(
        "commit",
        [
            OptionSpec(name="message", names=("-m", "--message")),
            OptionSpec(name="squash", names="--squash", label="<commit>"),
            PositionalParamSpec(name="files", label="<file>", type=list[Path]),
        ],
        description="Record changes to the repository",
    )
    push = CommandSpec(
        "push",
        [
            OptionSpec(name="force", names=("-f", "--force"), type=bool),
            OptionSpec(name="tags", names="--tags", type=bool),
            PositionalParamSpec(name="repository", label="<repository>", index=0),
        ],
        description="Update remote refs along with associated objects",
    )
    return CommandSpec(
        "git",
        [OptionSpec(name="path", names="--git-dir", type=Path, description="Set the path to the repository")],
        description="Version control system.",
        version="picocli-3.6.0",
        mixin_standard_help_options=True,
        subcommands=[clone, commit, push],
    )


@pytest.fixture
def assert_parse():
    """Parse a command string against a command tree; returns the :class:`ParseResult`."""

    def inner(spec: CommandSpec, cmd: str, registry: ConverterRegistry | None = None):
        return cmdtree.parse(spec, shlex.split(cmd), registry)

    return inner
