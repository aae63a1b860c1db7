from __future__ import annotations

import random

import pytest

from azimuth_cli.errors import ValidationError
from azimuth_cli.points import Point
from azimuth_cli.spawnlist import (
    child_points,
    generate_spawn_list,
    pick_children,
    unspawned_children,
)
from azimuth_cli.store import MemoryArtifactStore


class FakeSpawned:
    def __init__(self, spawned: list[int]) -> None:
        self.spawned = spawned
        self.calls = 0

    def get_spawned(self, point: Point) -> list[int]:
        self.calls += 1
        return self.spawned


def test_children_of_a_galaxy_and_a_star() -> None:
    stars = child_points(Point(0))
    assert len(stars) == 255
    assert stars[0] == Point(256)
    assert stars[-1] == Point(0xFF00)

    planets = child_points(Point(256))
    assert len(planets) == 65535
    assert planets[0] == Point(0x10100)
    assert all(planet.parent == Point(256) for planet in planets[:10])


def test_planets_cannot_spawn() -> None:
    with pytest.raises(ValidationError):
        child_points(Point(0x10100))


def test_unspawned_children_excludes_spawned() -> None:
    remaining = unspawned_children(Point(0), [256, 512])
    assert Point(256) not in remaining
    assert remaining[0] == Point(768)
    assert len(remaining) == 253


def test_pick_modes() -> None:
    children = [Point(value) for value in (256, 512, 768, 1024)]
    assert pick_children(children, 2, "first") == [Point(256), Point(512)]
    assert pick_children(children, 2, "last") == [Point(768), Point(1024)]
    picked = pick_children(children, 3, "random", rng=random.Random(7))
    assert len(set(picked)) == 3
    assert set(picked) <= set(children)
    assert len(pick_children(children, 10, "random")) == 4
    with pytest.raises(ValidationError):
        pick_children(children, 0, "first")
    with pytest.raises(ValidationError):
        pick_children(children, 1, "middle")


def test_spawn_list_is_written_once() -> None:
    store = MemoryArtifactStore()
    source = FakeSpawned([256])

    result = generate_spawn_list(source, store, Point(0), count=2, pick="first")

    assert result.written
    assert [point.name for point in result.points] == ["~binzod", "~wanzod"]
    assert store.read_bytes("spawn-list.txt") == b"~binzod\n~wanzod\n"

    again = generate_spawn_list(source, store, Point(0), count=5, pick="first")
    assert not again.written
    assert source.calls == 1
    assert store.read_bytes("spawn-list.txt") == b"~binzod\n~wanzod\n"


def test_force_replaces_spawn_list() -> None:
    store = MemoryArtifactStore()
    store.write_once("spawn-list.txt", b"~marzod\n")

    result = generate_spawn_list(FakeSpawned([]), store, Point(0), count=1, pick="last", force=True)

    assert result.written
    assert store.read_bytes("spawn-list.txt") == b"~fipzod\n"
