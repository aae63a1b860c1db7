"""Lists of unspawned child points for a galaxy or star."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

from azimuth_cli.errors import ValidationError
from azimuth_cli.points import Point, ShipClass
from azimuth_cli.store import ArtifactStore

logger = logging.getLogger(__name__)

DEFAULT_SPAWN_LIST_NAME = "spawn-list.txt"
PICK_MODES = ("random", "first", "last")

# Children of a parent p are p + stride * i for i in 1..limit.
_CHILD_LAYOUT = {
    ShipClass.GALAXY: (0x100, 0xFF),
    ShipClass.STAR: (0x10000, 0xFFFF),
}


class SpawnedSource(Protocol):
    def get_spawned(self, point: Point) -> list[int]: ...


@dataclass(frozen=True)
class SpawnListResult:
    parent: Point
    points: tuple[Point, ...]
    location: Optional[str]
    written: bool

    def to_dict(self) -> dict:
        return {
            "parent": self.parent.name,
            "points": [point.name for point in self.points],
            "location": self.location,
            "written": self.written,
        }


def child_points(parent: Point) -> list[Point]:
    layout = _CHILD_LAYOUT.get(parent.ship_class)
    if layout is None:
        raise ValidationError(
            f"{parent.name} is a {parent.ship_class.value} and cannot spawn points on chain",
            point=parent.value,
        )
    stride, limit = layout
    return [Point(parent.value + stride * index) for index in range(1, limit + 1)]


def unspawned_children(parent: Point, spawned: Iterable[int]) -> list[Point]:
    taken = {int(value) for value in spawned}
    return [child for child in child_points(parent) if child.value not in taken]


def pick_children(
    children: Sequence[Point],
    count: int,
    pick: str = "random",
    *,
    rng: Optional[random.Random] = None,
) -> list[Point]:
    if count < 1:
        raise ValidationError("count must be at least 1")
    if pick not in PICK_MODES:
        raise ValidationError(f"pick must be one of: {', '.join(PICK_MODES)}")
    if pick == "first":
        return list(children[:count])
    if pick == "last":
        return list(children[-count:]) if children else []
    chooser = rng or random.Random()
    return chooser.sample(list(children), min(count, len(children)))


def render_spawn_list(points: Iterable[Point]) -> bytes:
    return "".join(f"{point.name}\n" for point in points).encode("utf-8")


def generate_spawn_list(
    source: SpawnedSource,
    store: ArtifactStore,
    parent: Point,
    *,
    count: int = 1,
    pick: str = "random",
    name: str = DEFAULT_SPAWN_LIST_NAME,
    force: bool = False,
    rng: Optional[random.Random] = None,
) -> SpawnListResult:
    """Write ``count`` unspawned children of ``parent`` to ``name``.

    An existing list is left alone, without reading the chain, unless
    ``force`` is set.
    """
    if store.exists(name) and not force:
        logger.info("spawn list %s already exists, will not recreate it", name)
        return SpawnListResult(parent=parent, points=(), location=None, written=False)

    available = unspawned_children(parent, source.get_spawned(parent))
    chosen = pick_children(available, count, pick, rng=rng)
    data = render_spawn_list(chosen)
    if store.exists(name):
        location = store.overwrite(name, data)
    else:
        location = store.write_once(name, data)
    logger.info("spawn list for %d point(s) written to %s", len(chosen), location)
    return SpawnListResult(parent=parent, points=tuple(chosen), location=location, written=True)
