"""Per-point network-key workflows over a batch of points.

Points are processed one at a time: concurrent submissions from a single
signing account would race on transaction and roller nonces. A failure
ends the current point only; the batch result lists every outcome.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional

from azimuth_cli.details import PointInfoAggregator
from azimuth_cli.dispatch import STATUS_UNCHANGED, ConfigureResult, KeyConfigurationDispatcher
from azimuth_cli.errors import AzimuthCLIError, InvalidPointError
from azimuth_cli.keycache import CacheEntry, NetworkKeyCache
from azimuth_cli.models import Dominion, PointInfo
from azimuth_cli.points import Point
from azimuth_cli.signing import SigningIdentity
from azimuth_cli.wallets import WalletRecord

logger = logging.getLogger(__name__)

SeedSource = Callable[[Point], Optional[str]]


@dataclass
class PointOutcome:
    point: Point
    point_info: Optional[PointInfo] = None
    entry: Optional[CacheEntry] = None
    key_file: Optional[bytes] = None
    result: Optional[ConfigureResult] = None
    error: Optional[AzimuthCLIError] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        return self.result is None or self.result.ok

    @property
    def receipt(self):
        return self.result.receipt if self.result is not None else None

    def to_dict(self) -> dict:
        payload: dict = {"point": self.point.value, "name": self.point.name, "ok": self.ok}
        if self.point_info is not None:
            payload["point_info"] = self.point_info.model_dump(mode="json")
        if self.entry is not None:
            payload["revision"] = self.entry.key_pair.revision
            payload["continuity"] = self.entry.key_pair.continuity
            payload["keys_created"] = self.entry.created
        if self.key_file is not None:
            payload["keyfile"] = self.key_file.decode("ascii").strip()
        if self.result is not None:
            payload["status"] = self.result.status
            payload["receipt"] = (
                self.result.receipt.model_dump(mode="json") if self.result.receipt else None
            )
            payload["receipt_path"] = self.result.receipt_path
        error = self.error or (self.result.error if self.result is not None else None)
        if error is not None:
            payload["error"] = {"type": type(error).__name__, "message": str(error)}
        return payload


@dataclass
class BatchResult:
    outcomes: list[PointOutcome] = field(default_factory=list)
    cancelled: list[Point] = field(default_factory=list)
    invalid: list[InvalidPointError] = field(default_factory=list)

    @property
    def succeeded(self) -> list[PointOutcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]

    @property
    def failed(self) -> list[PointOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled and not self.invalid

    def to_dict(self) -> dict:
        return {
            "results": [outcome.to_dict() for outcome in self.outcomes],
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "cancelled": [point.name for point in self.cancelled],
            "invalid": invalid_entries(self.invalid),
        }


def invalid_entries(errors: Iterable[InvalidPointError]) -> list[dict]:
    return [{"input": str(exc.raw), "message": str(exc)} for exc in errors]


def _fixed_seed(seed: Optional[str]) -> SeedSource:
    return lambda point: seed


class BreachOrchestrator:
    def __init__(
        self,
        aggregator: PointInfoAggregator,
        cache: NetworkKeyCache,
        dispatcher: Optional[KeyConfigurationDispatcher] = None,
        *,
        signer: Optional[SigningIdentity] = None,
        seed_source: Optional[SeedSource] = None,
    ) -> None:
        self.aggregator = aggregator
        self.cache = cache
        self.dispatcher = dispatcher
        self.signer = signer
        self.seed_source = seed_source or _fixed_seed(None)

    def _key_entry(
        self,
        point: Point,
        revision: int,
        continuity: int,
        wallet: Optional[WalletRecord],
    ) -> CacheEntry:
        existing = self.cache.lookup(point, revision)
        if existing is not None:
            logger.info("%s: network keys for revision %d already cached", point.name, revision)
            return existing
        seed = None if wallet is not None else self.seed_source(point)
        return self.cache.get_or_generate(
            point, revision, continuity=continuity, seed=seed, wallet=wallet
        )

    def _require_dispatch(self) -> tuple[KeyConfigurationDispatcher, SigningIdentity]:
        if self.dispatcher is None or self.signer is None:
            raise RuntimeError("a dispatcher and signer are required to configure keys")
        return self.dispatcher, self.signer

    def breach_point(
        self,
        point: Point,
        *,
        wallet: Optional[WalletRecord] = None,
        outcome: Optional[PointOutcome] = None,
    ) -> PointOutcome:
        dispatcher, signer = self._require_dispatch()
        outcome = outcome or PointOutcome(point=point)

        # Read immediately before computing the next revision.
        info = self.aggregator.get_point_info(point)
        outcome.point_info = info
        revision = info.revision + 1
        continuity = revision

        entry = self._key_entry(point, revision, continuity, wallet)
        outcome.entry = entry
        outcome.key_file = self.cache.key_file_for(point, entry)

        logger.info(
            "%s: breaching on %s to revision %d", point.name, info.dominion.value, revision
        )
        outcome.result = dispatcher.configure(
            point, info, entry.key_pair, breach=True, signer=signer
        )
        return outcome

    def generate_point(
        self,
        point: Point,
        *,
        breach: bool = False,
        wallet: Optional[WalletRecord] = None,
        outcome: Optional[PointOutcome] = None,
    ) -> PointOutcome:
        outcome = outcome or PointOutcome(point=point)
        info = self.aggregator.get_point_info(point)
        outcome.point_info = info
        revision = info.revision + 1 if breach else info.revision
        entry = self._key_entry(point, revision, revision, wallet)
        outcome.entry = entry
        outcome.key_file = self.cache.key_file_for(point, entry)
        return outcome

    def set_keys_point(
        self,
        point: Point,
        *,
        breach: bool = False,
        wallet: Optional[WalletRecord] = None,
        expected_dominion: Optional[Dominion] = None,
        outcome: Optional[PointOutcome] = None,
    ) -> PointOutcome:
        dispatcher, signer = self._require_dispatch()
        outcome = outcome or PointOutcome(point=point)
        info = self.aggregator.get_point_info(point)
        outcome.point_info = info

        if not breach and info.keys is not None and info.revision > 0:
            # Configuring keys bumps the revision, so keys set by an earlier
            # run are cached one revision below the current one.
            previous = self.cache.lookup(point, info.revision - 1)
            if previous is not None and info.keys.matches(previous.key_pair.public_keys):
                logger.info("the network key is already set for %s", point.name)
                outcome.entry = previous
                outcome.result = ConfigureResult(
                    point=point,
                    status=STATUS_UNCHANGED,
                    dominion=info.dominion,
                    revision=previous.key_pair.revision,
                    continuity=previous.key_pair.continuity,
                )
                return outcome

        revision = info.revision + 1 if breach else info.revision
        entry = self._key_entry(point, revision, revision, wallet)
        outcome.entry = entry
        outcome.result = dispatcher.configure(
            point,
            info,
            entry.key_pair,
            breach=breach,
            signer=signer,
            expected_dominion=expected_dominion,
        )
        return outcome

    def _run(
        self,
        points: Iterable[Point],
        step: Callable[[Point, Optional[WalletRecord], PointOutcome], PointOutcome],
        *,
        wallets: Optional[Mapping[Point, WalletRecord]],
        cancel_event: Optional[threading.Event],
    ) -> BatchResult:
        batch = BatchResult()
        pending = list(points)
        for index, point in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                batch.cancelled.extend(pending[index:])
                logger.warning(
                    "cancelled before %s; %d point(s) not started",
                    point.name,
                    len(pending) - index,
                )
                break
            wallet = wallets.get(point) if wallets else None
            outcome = PointOutcome(point=point)
            batch.outcomes.append(outcome)
            try:
                step(point, wallet, outcome)
            except AzimuthCLIError as exc:
                if exc.point is None:
                    exc.point = point.value
                logger.error("%s: %s", point.name, exc)
                outcome.error = exc
        logger.info(
            "%d point(s) succeeded, %d failed", len(batch.succeeded), len(batch.failed)
        )
        return batch

    def breach(
        self,
        points: Iterable[Point],
        *,
        wallets: Optional[Mapping[Point, WalletRecord]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        """Bump the key revision and continuity of every point in ``points``."""
        return self._run(
            points,
            lambda point, wallet, outcome: self.breach_point(
                point, wallet=wallet, outcome=outcome
            ),
            wallets=wallets,
            cancel_event=cancel_event,
        )

    def generate(
        self,
        points: Iterable[Point],
        *,
        breach: bool = False,
        wallets: Optional[Mapping[Point, WalletRecord]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        return self._run(
            points,
            lambda point, wallet, outcome: self.generate_point(
                point, breach=breach, wallet=wallet, outcome=outcome
            ),
            wallets=wallets,
            cancel_event=cancel_event,
        )

    def set_keys(
        self,
        points: Iterable[Point],
        *,
        breach: bool = False,
        expected_dominion: Optional[Dominion] = None,
        wallets: Optional[Mapping[Point, WalletRecord]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchResult:
        return self._run(
            points,
            lambda point, wallet, outcome: self.set_keys_point(
                point,
                breach=breach,
                wallet=wallet,
                expected_dominion=expected_dominion,
                outcome=outcome,
            ),
            wallets=wallets,
            cancel_event=cancel_event,
        )
