"""Point values, ship classes and identifier parsing."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from azimuth_cli import names
from azimuth_cli.errors import InvalidPointError

MAX_LEDGER_POINT = 0xFFFFFFFF


class ShipClass(str, Enum):
    GALAXY = "galaxy"
    STAR = "star"
    PLANET = "planet"
    MOON = "moon"


def ship_class_of(value: int) -> ShipClass:
    if value < 0 or value > 0xFFFFFFFFFFFFFFFF:
        raise InvalidPointError(f"point out of range: {value}", raw=value)
    if value <= 0xFF:
        return ShipClass.GALAXY
    if value <= 0xFFFF:
        return ShipClass.STAR
    if value <= 0xFFFFFFFF:
        return ShipClass.PLANET
    return ShipClass.MOON


@dataclass(frozen=True, order=True)
class Point:
    """A validated ledger point (galaxy, star or planet)."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidPointError(f"point must be an integer: {self.value!r}", raw=self.value)
        if self.value < 0 or self.value > MAX_LEDGER_POINT:
            raise InvalidPointError(
                f"point out of ledger range (0..{MAX_LEDGER_POINT}): {self.value}",
                raw=self.value,
            )

    @property
    def ship_class(self) -> ShipClass:
        return ship_class_of(self.value)

    @property
    def name(self) -> str:
        return names.encode(self.value)

    @property
    def short_name(self) -> str:
        """Name without the leading ``~``, as used in artifact file names."""
        return self.name[1:]

    @property
    def parent(self) -> "Point":
        if self.ship_class is ShipClass.GALAXY:
            return self
        if self.ship_class is ShipClass.STAR:
            return Point(self.value & 0xFF)
        return Point(self.value & 0xFFFF)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.name


def parse_point(raw: object) -> Point:
    """Parse a decimal number or ``@p`` name into a :class:`Point`."""
    if isinstance(raw, Point):
        return raw
    if isinstance(raw, bool):
        raise InvalidPointError(f"invalid point: {raw!r}", raw=raw)
    if isinstance(raw, int):
        return _checked(raw, raw)
    if not isinstance(raw, str):
        raise InvalidPointError(f"invalid point: {raw!r}", raw=raw)

    text = raw.strip()
    if not text:
        raise InvalidPointError("empty point identifier", raw=raw)
    if text.isdigit():
        return _checked(int(text), raw)
    try:
        value = names.decode(text)
    except ValueError as exc:
        raise InvalidPointError(str(exc), raw=raw) from exc
    return _checked(value, raw)


def _checked(value: int, raw: object) -> Point:
    try:
        return Point(value)
    except InvalidPointError as exc:
        exc.raw = raw
        raise
