from __future__ import annotations

import pytest

from azimuth_cli.datasource import DataSourceSelector, parse_data_source
from azimuth_cli.details import PointInfoAggregator
from azimuth_cli.errors import (
    ChainCommunicationError,
    ConfigurationError,
    DataSourceError,
    NotFoundError,
)
from azimuth_cli.models import Dominion
from azimuth_cli.points import Point


def test_parse_data_source() -> None:
    assert parse_data_source(None) is None
    assert parse_data_source("auto") is None
    assert parse_data_source("l1") is Dominion.L1
    assert parse_data_source("L2") is Dominion.L2
    with pytest.raises(ConfigurationError):
        parse_data_source("both")


def test_l2_point_is_read_from_roller(l1_backend, l2_backend) -> None:
    point = Point(256)
    l2_backend.add(point, revision=3)
    aggregator = PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend))

    info = aggregator.get_point_info(point)

    assert info.source is Dominion.L2
    assert info.revision == 3
    assert l1_backend.reads == []


def test_unknown_to_roller_falls_back_to_l1(l1_backend, l2_backend) -> None:
    point = Point(256)
    l1_backend.add(point, revision=1)
    aggregator = PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend))

    info = aggregator.get_point_info(point)

    assert info.source is Dominion.L1
    assert l1_backend.reads == [point]


def test_probe_transport_failure_does_not_fall_back(l1_backend, l2_backend, monkeypatch) -> None:
    point = Point(256)
    l1_backend.add(point)

    def broken_probe(point):  # noqa: ANN001
        raise ChainCommunicationError("roller unreachable: timed out")

    monkeypatch.setattr(l2_backend, "probe", broken_probe)
    aggregator = PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend))

    with pytest.raises(ChainCommunicationError, match="timed out"):
        aggregator.get_point_info(point)
    assert l1_backend.reads == []


def test_forced_source_skips_probe(l1_backend, l2_backend, monkeypatch) -> None:
    point = Point(256)
    l1_backend.add(point)
    l2_backend.add(point)
    probes: list[Point] = []
    monkeypatch.setattr(l2_backend, "probe", probes.append)
    selector = DataSourceSelector(l1_backend, l2_backend, force=Dominion.L1)

    info = PointInfoAggregator(selector).get_point_info(point)

    assert info.source is Dominion.L1
    assert probes == []
    assert l2_backend.reads == []


def test_not_found_on_forced_source_suggests_override(l1_backend, l2_backend) -> None:
    selector = DataSourceSelector(l1_backend, l2_backend, force=Dominion.L2)

    with pytest.raises(NotFoundError, match="--use-azimuth") as excinfo:
        PointInfoAggregator(selector).get_point_info(Point(9))
    assert excinfo.value.point == 9


def test_backend_errors_become_data_source_errors(l1_backend, l2_backend, monkeypatch) -> None:
    point = Point(256)
    l2_backend.add(point)

    def failing_read(point):  # noqa: ANN001
        raise ChainCommunicationError("bad gateway")

    monkeypatch.setattr(l2_backend, "get_point_info", failing_read)

    with pytest.raises(DataSourceError, match="bad gateway"):
        PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend)).get_point_info(point)


def test_sponsored_points_come_from_roller(l1_backend, l2_backend) -> None:
    l2_backend.sponsored_points = lambda point: {"residents": ["~marzod"], "requests": []}
    aggregator = PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend))

    assert aggregator.sponsored_points(Point(0)) == {"residents": ["~marzod"], "requests": []}
