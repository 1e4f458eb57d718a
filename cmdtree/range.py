import re

from attrs import Factory, field

from cmdtree.exceptions import FormatError
from cmdtree.utils import frozen

_RANGE_PATTERN = re.compile(r"^(?P<min>\d+)(?:\.\.(?P<max>\d+|\*))?$")


@frozen
class Range:
    """Closed, possibly open-ended, integer interval.

    Used both for arity (how many values an argument consumes) and for the
    positional slot(s) a positional parameter may claim.

    .. code-block:: python

        Range.parse("1")  # Range(min=1, max=1)
        Range.parse("0..*")  # Range(min=0, max=None)
        Range.parse("2..3")  # Range(min=2, max=3)
    """

    min: int = field()

    max: int | None = field(default=Factory(lambda self: self.min, takes_self=True))
    """Upper bound; :obj:`None` means unbounded."""

    def __attrs_post_init__(self):
        if self.min < 0:
            raise FormatError(f"Invalid range {self}: minimum must not be negative.")
        if self.max is not None and self.max < self.min:
            raise FormatError(f"Invalid range {self}: minimum is larger than maximum.")

    @classmethod
    def parse(cls, text: str) -> "Range":
        """Parse ``"N"``, ``"N..M"``, ``"N..*"`` or ``"*"``.

        Raises
        ------
        FormatError
            ``text`` is not valid range syntax.
        """
        compact = text.replace(" ", "")
        if compact == "*":
            return cls(0, None)
        match = _RANGE_PATTERN.match(compact)
        if match is None:
            raise FormatError(f"Invalid range {text!r}: expected 'N', 'N..M' or 'N..*'.")
        minimum = int(match["min"])
        if match["max"] is None:
            return cls(minimum)
        elif match["max"] == "*":
            return cls(minimum, None)
        return cls(minimum, int(match["max"]))

    @classmethod
    def of(cls, value: "Range | int | str") -> "Range":
        """Coerce a :class:`Range`, an exact count, or range text into a :class:`Range`."""
        if isinstance(value, Range):
            return value
        elif isinstance(value, bool):
            raise FormatError(f"Invalid range {value!r}.")
        elif isinstance(value, int):
            return cls(value)
        elif isinstance(value, str):
            return cls.parse(value)
        raise FormatError(f"Invalid range {value!r}.")

    @property
    def is_unbounded(self) -> bool:
        return self.max is None

    @property
    def is_fixed(self) -> bool:
        return self.max is not None and self.min == self.max

    @property
    def variable(self) -> bool:
        return not self.is_fixed

    def contains(self, n: int) -> bool:
        return n >= self.min and (self.max is None or n <= self.max)

    def __contains__(self, n: int) -> bool:
        return self.contains(n)

    def __str__(self) -> str:
        if self.max is None:
            return f"{self.min}..*"
        elif self.min == self.max:
            return str(self.min)
        return f"{self.min}..{self.max}"
