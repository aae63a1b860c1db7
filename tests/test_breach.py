from __future__ import annotations

import threading

import pytest

from azimuth_cli.breach import BreachOrchestrator
from azimuth_cli.datasource import DataSourceSelector
from azimuth_cli.details import PointInfoAggregator
from azimuth_cli.dispatch import STATUS_SUBMITTED, STATUS_UNCHANGED, KeyConfigurationDispatcher
from azimuth_cli.errors import ChainCommunicationError, ConfigurationError
from azimuth_cli.keycache import NetworkKeyCache, key_material_name, keyfile_name
from azimuth_cli.models import Dominion
from azimuth_cli.points import Point
from azimuth_cli.store import MemoryArtifactStore

PLANET = Point(1624961343)
GALAXY = Point(0)
STAR = Point(256)


@pytest.fixture
def store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def orchestrator(l1_backend, l2_backend, store, signer) -> BreachOrchestrator:
    selector = DataSourceSelector(l1_backend, l2_backend)
    dispatcher = KeyConfigurationDispatcher(
        {Dominion.L1: l1_backend, Dominion.L2: l2_backend}, store
    )
    return BreachOrchestrator(
        PointInfoAggregator(selector),
        NetworkKeyCache(store),
        dispatcher,
        signer=signer,
        seed_source=lambda point: "~ticket-" + point.short_name,
    )


def test_set_keys_on_l1_at_current_revision(orchestrator, l1_backend, store) -> None:
    l1_backend.add(STAR, revision=0)

    batch = orchestrator.set_keys([STAR], breach=False)

    assert batch.ok
    [outcome] = batch.outcomes
    assert outcome.result.status == STATUS_SUBMITTED
    assert (outcome.result.revision, outcome.result.continuity) == (0, 0)
    assert len(l1_backend.submissions) == 1
    assert l1_backend.submissions[0]["breach"] is False
    assert l1_backend.submissions[0]["keys"] == outcome.entry.key_pair.public_keys
    assert store.exists(key_material_name(STAR, 0))


def test_set_keys_on_unkeyed_l1_galaxy(orchestrator, l1_backend, l2_backend, store) -> None:
    info = l1_backend.add(GALAXY, revision=0)
    assert (info.sponsor, info.keys) == (None, None)

    batch = orchestrator.set_keys([GALAXY], breach=False)

    assert batch.ok
    [outcome] = batch.outcomes
    assert outcome.point_info.name == "~zod"
    assert outcome.point_info.ship_class == "galaxy"
    assert outcome.result.dominion is Dominion.L1
    assert (outcome.result.revision, outcome.result.continuity) == (0, 0)
    assert len(l1_backend.submissions) == 1
    assert l2_backend.submissions == []
    assert store.exists(key_material_name(GALAXY, 0))


def test_breach_on_l2_bumps_revision_and_continuity(orchestrator, l2_backend, store) -> None:
    l2_backend.add(PLANET, revision=3)

    batch = orchestrator.breach([PLANET])

    assert batch.ok
    [outcome] = batch.outcomes
    assert outcome.point_info.revision == 3
    assert (outcome.entry.key_pair.revision, outcome.entry.key_pair.continuity) == (4, 4)
    assert outcome.result.receipt.dominion is Dominion.L2
    assert outcome.key_file == store.read_bytes(keyfile_name(PLANET, 4))
    assert outcome.result.receipt_path.endswith("-receipt-L2.json")
    assert l2_backend.submissions[0]["breach"] is True


def test_breach_rerun_reuses_cached_keys(orchestrator, l2_backend, store) -> None:
    l2_backend.add(PLANET, revision=3)
    l2_backend.fail_with = ChainCommunicationError("roller unreachable")

    first = orchestrator.breach([PLANET])

    assert not first.ok
    [failed] = first.outcomes
    assert isinstance(failed.error, ChainCommunicationError)
    assert failed.error.point == PLANET.value
    assert failed.entry is not None and failed.entry.created
    assert l2_backend.submissions == []

    l2_backend.fail_with = None
    second = orchestrator.breach([PLANET])

    assert second.ok
    [outcome] = second.outcomes
    assert outcome.entry.created is False
    assert outcome.entry.key_pair == failed.entry.key_pair
    assert len(l2_backend.submissions) == 1
    assert store.writes.count(key_material_name(PLANET, 4)) == 1


def test_set_keys_twice_is_a_no_op(orchestrator, l1_backend) -> None:
    l1_backend.add(STAR, revision=0)

    orchestrator.set_keys([STAR])
    again = orchestrator.set_keys([STAR])

    assert again.ok
    assert again.outcomes[0].result.status == STATUS_UNCHANGED
    assert len(l1_backend.submissions) == 1


def test_failures_are_isolated_per_point(orchestrator, l1_backend, l2_backend) -> None:
    missing = Point(1)
    l1_backend.add(STAR, revision=1)

    batch = orchestrator.breach([missing, STAR])

    assert [outcome.point for outcome in batch.outcomes] == [missing, STAR]
    assert batch.outcomes[0].error is not None
    assert batch.outcomes[1].ok
    assert len(batch.failed) == 1
    assert not batch.ok
    assert batch.to_dict()["failed"] == 1


def test_missing_seed_fails_only_that_point(l1_backend, l2_backend, store, signer) -> None:
    l1_backend.add(STAR)
    orchestrator = BreachOrchestrator(
        PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend)),
        NetworkKeyCache(store),
        KeyConfigurationDispatcher({Dominion.L1: l1_backend, Dominion.L2: l2_backend}, store),
        signer=signer,
    )

    batch = orchestrator.breach([STAR])

    assert isinstance(batch.outcomes[0].error, ConfigurationError)
    assert batch.outcomes[0].point_info is not None
    assert l1_backend.submissions == []


def test_cancel_stops_before_the_next_point(orchestrator, l1_backend) -> None:
    cancel = threading.Event()
    l1_backend.add(STAR)
    l1_backend.add(Point(512))
    original = l1_backend.configure_keys

    def configure_then_cancel(*args, **kwargs):  # noqa: ANN002, ANN003
        cancel.set()
        return original(*args, **kwargs)

    l1_backend.configure_keys = configure_then_cancel

    batch = orchestrator.breach([STAR, Point(512)], cancel_event=cancel)

    assert [outcome.point for outcome in batch.outcomes] == [STAR]
    assert batch.cancelled == [Point(512)]
    assert not batch.ok


def test_generate_does_not_submit(l1_backend, l2_backend, store) -> None:
    l1_backend.add(STAR, revision=2)
    orchestrator = BreachOrchestrator(
        PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend)),
        NetworkKeyCache(store),
        seed_source=lambda point: "~ticket",
    )

    current = orchestrator.generate([STAR])
    following = orchestrator.generate([STAR], breach=True)

    assert current.outcomes[0].entry.revision == 2
    assert following.outcomes[0].entry.revision == 3
    assert store.exists(keyfile_name(STAR, 2))
    assert store.exists(keyfile_name(STAR, 3))
    assert l1_backend.submissions == []
    assert current.to_dict()["results"][0]["keyfile"]


def test_configuring_without_signer_is_a_programming_error(l1_backend, l2_backend, store) -> None:
    orchestrator = BreachOrchestrator(
        PointInfoAggregator(DataSourceSelector(l1_backend, l2_backend)),
        NetworkKeyCache(store),
    )
    with pytest.raises(RuntimeError):
        orchestrator.breach_point(STAR)
