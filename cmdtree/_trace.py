"""Opt-in tracing of parser decisions.

Set ``CMDTREE_TRACE`` to ``OFF``, ``WARN``, ``INFO`` or ``DEBUG`` to see how
tokens are matched.
"""

import logging
import os

ENV_VAR = "CMDTREE_TRACE"

_LEVELS = {
    "OFF": None,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def configure(level: str | int | None = None) -> logging.Logger:
    """Attach a :class:`~rich.logging.RichHandler` to the ``cmdtree`` logger.

    Parameters
    ----------
    level: str | int | None
        A logging level or one of ``OFF``, ``WARN``, ``INFO``, ``DEBUG``.
        If not provided, read from the ``CMDTREE_TRACE`` environment variable;
        if that is unset too, the logger is left untouched.

    Raises
    ------
    ValueError
        ``level`` is not a recognized level name.
    """
    logger = logging.getLogger("cmdtree")

    if level is None:
        level = os.getenv(ENV_VAR)
        if not level:
            return logger

    if isinstance(level, str):
        try:
            level = _LEVELS[level.strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid trace level {level!r}; expected one of {', '.join(_LEVELS)}.") from None

    for handler in [h for h in logger.handlers if getattr(h, "_cmdtree_trace", False)]:
        logger.removeHandler(handler)

    if level is None:
        logger.setLevel(logging.CRITICAL + 1)
        return logger

    from rich.console import Console
    from rich.logging import RichHandler

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    handler._cmdtree_trace = True  # pyright: ignore[reportAttributeAccessIssue]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
