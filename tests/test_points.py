from __future__ import annotations

import json

import pytest

from azimuth_cli.errors import ConfigurationError, InvalidPointError
from azimuth_cli.points import Point, ShipClass, parse_point
from azimuth_cli.resolver import read_points_file, resolve_points


def test_parse_point_accepts_numbers_and_names() -> None:
    assert parse_point(256) == Point(256)
    assert parse_point("256") == Point(256)
    assert parse_point(" ~marzod ") == Point(256)
    assert parse_point(Point(7)) == Point(7)


def test_ship_class_and_parent() -> None:
    planet = parse_point("~sampel-palnet")
    assert planet.ship_class is ShipClass.PLANET
    assert planet.parent == Point(planet.value & 0xFFFF)
    assert Point(256).ship_class is ShipClass.STAR
    assert Point(256).parent == Point(0)
    assert Point(0).parent == Point(0)
    assert Point(256).short_name == "marzod"


@pytest.mark.parametrize("raw", ["", "  ", "-1", "~notaname", True, 1.5, 2**32])
def test_parse_point_rejects_invalid_input(raw) -> None:
    with pytest.raises(InvalidPointError):
        parse_point(raw)


def test_invalid_point_keeps_raw_input() -> None:
    with pytest.raises(InvalidPointError) as excinfo:
        parse_point("~notaname")
    assert excinfo.value.raw == "~notaname"


def test_resolve_points_deduplicates_in_order() -> None:
    resolved = resolve_points(points=["~marzod", "0", "256", "~zod", "1"])
    assert resolved.points == [Point(256), Point(0), Point(1)]
    assert resolved.invalid == []


def test_resolve_points_collects_invalid_entries() -> None:
    resolved = resolve_points(points=["~zod", "nope", "~nec"])
    assert resolved.points == [Point(0), Point(1)]
    assert len(resolved.invalid) == 1
    assert resolved.invalid[0].raw == "nope"


def test_resolve_points_strict_raises() -> None:
    with pytest.raises(InvalidPointError):
        resolve_points(points=["~zod", "nope"], strict=True)


def test_points_file_skips_blanks_and_comments(tmp_path) -> None:
    points_file = tmp_path / "points.txt"
    points_file.write_text("# batch\n~zod\n\n  ~nec  # galaxy one\n~zod\n", encoding="utf-8")

    assert read_points_file(points_file) == ["~zod", "~nec", "~zod"]
    resolved = resolve_points(points_file=points_file)
    assert resolved.points == [Point(0), Point(1)]


def test_points_file_missing(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_points(points_file=tmp_path / "missing.txt")


def test_resolve_points_from_wallet_files(tmp_path) -> None:
    for name in ("~nec", "~zod"):
        payload = {"meta": {"patp": name}, "ownership": {"keys": {"address": "0xABC"}}}
        (tmp_path / f"{name[1:]}-wallet.json").write_text(json.dumps(payload), encoding="utf-8")
    (tmp_path / "notes.json").write_text("{}", encoding="utf-8")

    resolved = resolve_points(wallet_dir=tmp_path)

    assert resolved.points == [Point(1), Point(0)]
    assert resolved.wallets[Point(0)].ownership_address == "0xabc"


def test_resolve_points_requires_exactly_one_source(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        resolve_points()
    with pytest.raises(ConfigurationError):
        resolve_points(points=["~zod"], points_file=tmp_path / "points.txt")
