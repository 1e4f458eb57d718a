from attrs import evolve, field

from cmdtree.utils import frozen


@frozen(kw_only=True)
class Token:
    """Tracks how a user supplied a value to the application."""

    keyword: str | None = None
    """The option name the value was supplied to (``None`` for positionals)."""

    value: str = ""
    """The raw string value."""

    source: str = "cli"
    """Where the value came from; ``"cli"`` or ``"default"``."""

    index: int = field(default=0, kw_only=True)
    """Absolute position of the originating token in the input."""

    def evolve(self, **kwargs) -> "Token":
        return evolve(self, **kwargs)
