"""Rich rendering of parse errors."""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from rich.panel import Panel


def ErrorPanel(message: Any, title: str = "Error", style: str = "red") -> "Panel":  # noqa: N802
    """Wrap ``str(message)`` in a rounded, full-width panel.

    :meth:`CommandLine.__call__ <cmdtree.CommandLine.__call__>` prints one of these on the
    error console before exiting:

    .. code-block:: text

        ╭─ Error ──────────────────────────────────╮
        │ Unknown option: -x                       │
        ╰──────────────────────────────────────────╯
    """
    from rich import box
    from rich.panel import Panel
    from rich.text import Text

    # The "default" style keeps the body uncoloured; only the border takes ``style``.
    return Panel(Text(str(message), "default"), title=title, title_align="left", style=style, box=box.ROUNDED)
