"""Plain-text usage and version messages.

.. code-block:: text

    Usage: git [-hV] [--git-dir=<path>] [COMMAND]
    Version control system.
          --git-dir=<path>   Set the path to the repository
      -h, --help             Show this help message and exit.
      -V, --version          Print version information and exit.
    Commands:
      clone   Clone a repository into a new directory
"""

from cmdtree.model import CommandSpec, OptionSpec, PositionalParamSpec

INDENT = "  "
DESCRIPTION_GAP = 3
COMMAND_GAP = 2


def _sort_key(name: str) -> tuple[str, str]:
    # Case-insensitive; lowercase before uppercase on ties ("v" before "V").
    name = name.lstrip("-")
    return name.lower(), name.swapcase()


def _option_sort_key(option: OptionSpec) -> tuple[str, str]:
    return _sort_key(option.shortest_name)


def _visible(args) -> list:
    return [x for x in args if not x.hidden]


def positional_synopsis(arg: PositionalParamSpec) -> str:
    label = arg.label
    if arg.multi_value or arg.arity.max is None or arg.arity.max > 1:
        label += "..."
    if arg.required:
        return label
    return f"[{label}]"


def option_synopsis(option: OptionSpec) -> str:
    text = option.shortest_name
    if not option.is_flag:
        text += f"={option.label}"
    if not option.required:
        text = f"[{text}]"
    if option.multi_value:
        text += "..."
    return text


def synopsis(spec: CommandSpec) -> str:
    """``Usage: <name> [-flags] [options] <positionals> [COMMAND]``."""
    parts = [f"Usage: {spec.qualified_name()}"]
    options = sorted(_visible(spec.options), key=_option_sort_key)

    clustered = [x for x in options if x.is_flag and x.short_names and not x.required]
    if clustered:
        parts.append("[-" + "".join(x.short_names[0][1:] for x in clustered) + "]")
    parts.extend(option_synopsis(x) for x in options if x not in clustered)
    parts.extend(positional_synopsis(x) for x in _visible(spec.positionals))
    if spec.subcommands:
        parts.append("[COMMAND]")
    return " ".join(parts)


def _option_text(option: OptionSpec) -> str:
    short = option.short_names[0] if option.short_names else ""
    long = option.long_names[0] if option.long_names else ""
    if short and long:
        text = f"{short}, {long}"
    elif short:
        text = short
    else:
        text = " " * 4 + long
    if not option.is_flag:
        text += f"={option.label}"
    return INDENT + text


def _positional_text(arg: PositionalParamSpec) -> str:
    return INDENT + " " * 4 + positional_synopsis(arg)


def _rows(entries: list[tuple[str, tuple[str, ...]]], gap: int) -> list[str]:
    if not entries:
        return []
    width = max(len(text) for text, _ in entries) + gap
    lines = []
    for text, description in entries:
        if not description:
            lines.append(text)
            continue
        lines.append(text.ljust(width) + description[0])
        lines.extend(" " * width + line for line in description[1:])
    return lines


def usage_message(spec: CommandSpec) -> str:
    """Render the usage help of ``spec``; ends with a newline."""
    lines = [synopsis(spec)]
    lines.extend(spec.description)

    entries: list[tuple[str, tuple[str, ...]]] = [
        (_positional_text(x), x.description) for x in _visible(spec.positionals)
    ]
    entries.extend(
        (_option_text(x), x.description) for x in sorted(_visible(spec.options), key=_option_sort_key)
    )
    lines.extend(_rows(entries, DESCRIPTION_GAP))

    if subcommands := spec.unique_subcommands():
        lines.append("Commands:")
        lines.extend(_rows([(INDENT + x.name, x.description) for x in subcommands], COMMAND_GAP))
    return "\n".join(lines) + "\n"


def version_message(spec: CommandSpec) -> str:
    """The version lines of ``spec``, or of its closest ancestor that has any."""
    node: CommandSpec | None = spec
    while node is not None and not node.version:
        node = node.parent
    if node is None:
        return ""
    return "\n".join(node.version) + "\n"

