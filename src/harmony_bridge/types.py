"""
Value types that cross the bridge boundary.

Optional prompt arguments are modelled as ``Absent | Present(text)`` so that
"no system message" and "empty system message" stay distinct until the engine
call, where ``Absent`` becomes a null pointer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Union

from harmony_bridge.errors import ConversionError

TokenSequence = List[int]


class Absent:
    """Marker for an optional argument the caller did not supply."""

    _instance: "Absent | None" = None

    def __new__(cls) -> "Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = Absent()


@dataclass(frozen=True)
class Present:
    """An optional argument the caller supplied, possibly as an empty string."""

    text: str


OptionalText = Union[Absent, Present]


def optional_text(value: object, *, field: str = "value") -> OptionalText:
    """Normalize ``None``/``str``/``Absent``/``Present`` to :data:`OptionalText`."""
    if value is None or isinstance(value, Absent):
        return ABSENT
    if isinstance(value, Present):
        return value
    if isinstance(value, str):
        return Present(value)
    raise ConversionError(f"{field} must be a str or None, got {type(value).__name__}")


def optional_value(value: OptionalText) -> str | None:
    """Return the text of a present argument, ``None`` when absent."""
    if isinstance(value, Present):
        return value.text
    return None
