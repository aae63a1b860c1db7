"""Signed L2 ownership and sponsorship operations: escape, adopt, transfer."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional

from azimuth_cli import payloads
from azimuth_cli.backends import L2Backend, Permission
from azimuth_cli.breach import invalid_entries
from azimuth_cli.errors import (
    AuthorizationError,
    AzimuthCLIError,
    InvalidPointError,
    ValidationError,
)
from azimuth_cli.models import Dominion, PointInfo, Receipt, add_hex_prefix
from azimuth_cli.points import Point, ShipClass
from azimuth_cli.signing import SigningIdentity
from azimuth_cli.store import ArtifactStore, write_json_once
from azimuth_cli.wallets import WalletRecord

logger = logging.getLogger(__name__)

OP_ESCAPE = "escape"
OP_ADOPT = "adopt"
OP_TRANSFER = "transferPoint"

STATUS_SUBMITTED = "submitted"
STATUS_SKIPPED = "skipped"
STATUS_UNAUTHORIZED = "unauthorized"


def operation_receipt_name(point: Point, receipt: Receipt) -> str:
    digest = receipt.hash[2:] if receipt.hash.startswith("0x") else receipt.hash
    return (
        f"{point.short_name}-{receipt.operation}-{digest[:8]}"
        f"-receipt-{receipt.dominion.value}.json"
    )


@dataclass
class OperationOutcome:
    point: Point
    operation: str
    status: Optional[str] = None
    reason: Optional[str] = None
    receipt: Optional[Receipt] = None
    receipt_path: Optional[str] = None
    error: Optional[AzimuthCLIError] = None

    @property
    def ok(self) -> bool:
        if self.error is not None or self.status == STATUS_UNAUTHORIZED:
            return False
        if self.status == STATUS_SUBMITTED:
            return self.receipt is not None and self.receipt.success
        return True

    def to_dict(self) -> dict:
        payload: dict = {
            "point": self.point.value,
            "name": self.point.name,
            "operation": self.operation,
            "status": self.status,
            "ok": self.ok,
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.receipt is not None:
            payload["receipt"] = self.receipt.model_dump(mode="json")
            payload["receipt_path"] = self.receipt_path
        if self.error is not None:
            payload["error"] = {"type": type(self.error).__name__, "message": str(self.error)}
        return payload


@dataclass
class OperationBatch:
    outcomes: list[OperationOutcome] = field(default_factory=list)
    cancelled: list[Point] = field(default_factory=list)
    invalid: list[InvalidPointError] = field(default_factory=list)

    @property
    def failed(self) -> list[OperationOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.cancelled and not self.invalid

    def to_dict(self) -> dict:
        return {
            "results": [outcome.to_dict() for outcome in self.outcomes],
            "failed": len(self.failed),
            "cancelled": [point.name for point in self.cancelled],
            "invalid": invalid_entries(self.invalid),
        }


def transfer_permission(info: PointInfo, address: str) -> Permission:
    address = address.lower()
    if info.owner == address:
        return Permission(True, proxy=payloads.PROXY_OWNER)
    if info.transfer_proxy == address:
        return Permission(True, proxy=payloads.PROXY_TRANSFER)
    return Permission(False, f"{address} must be owner or transfer proxy")


def _listed(entries: Iterable, target: Point) -> bool:
    for entry in entries or ():
        value = entry.get("ship") if isinstance(entry, dict) else entry
        if str(value).strip() in {target.name, str(target.value)}:
            return True
    return False


class L2Operations:
    """Run one roller operation per point, signing with a single identity."""

    def __init__(self, backend: L2Backend, store: ArtifactStore, signer: SigningIdentity) -> None:
        self.backend = backend
        self.store = store
        self.signer = signer

    def _l2_info(self, point: Point, outcome: OperationOutcome) -> Optional[PointInfo]:
        info = self.backend.get_point_info(point)
        if info.dominion is not Dominion.L2:
            outcome.status = STATUS_SKIPPED
            outcome.reason = f"{point.name} is not on L2; use the L1 modify command"
            logger.warning(outcome.reason)
            return None
        return info

    def _deny(self, outcome: OperationOutcome, reason: str) -> None:
        outcome.status = STATUS_UNAUTHORIZED
        outcome.reason = reason
        outcome.error = AuthorizationError(reason, point=outcome.point.value)
        logger.warning("cannot %s %s: %s", outcome.operation, outcome.point.name, reason)

    def _submit(self, outcome: OperationOutcome, *, proxy: str, data: dict) -> None:
        receipt = self.backend.submit(
            outcome.point, method=outcome.operation, proxy=proxy, data=data, signer=self.signer
        )
        outcome.receipt = receipt
        outcome.receipt_path = write_json_once(
            self.store,
            operation_receipt_name(outcome.point, receipt),
            receipt.model_dump(mode="json"),
        )
        outcome.status = STATUS_SUBMITTED

    def escape_point(self, point: Point, sponsor: Point, outcome: OperationOutcome) -> None:
        info = self._l2_info(point, outcome)
        if info is None:
            return
        if sponsor.ship_class not in (ShipClass.GALAXY, ShipClass.STAR):
            raise ValidationError(f"{sponsor.name} cannot sponsor other points", point=point.value)
        permission = self.backend.can_configure(point, info, self.signer.address)
        if not permission.allowed:
            self._deny(outcome, permission.reason or "not permitted")
            return
        logger.info("escaping %s to %s", point.name, sponsor.name)
        self._submit(outcome, proxy=permission.proxy, data=payloads.build_escape_data(sponsor.name))

    def adopt_point(self, point: Point, adoptee: Point, outcome: OperationOutcome) -> None:
        info = self._l2_info(point, outcome)
        if info is None:
            return
        sponsored = self.backend.sponsored_points(point)
        if not _listed(sponsored.get("requests", []), adoptee):
            outcome.status = STATUS_SKIPPED
            outcome.reason = f"no open escape request from {adoptee.name} to {point.name}"
            logger.warning(outcome.reason)
            return
        permission = self.backend.can_configure(point, info, self.signer.address)
        if not permission.allowed:
            self._deny(outcome, permission.reason or "not permitted")
            return
        logger.info("%s adopting %s", point.name, adoptee.name)
        self._submit(outcome, proxy=permission.proxy, data=payloads.build_adopt_data(adoptee.name))

    def transfer_point(
        self, point: Point, address: str, outcome: OperationOutcome, *, reset: bool = False
    ) -> None:
        target = add_hex_prefix(address)
        if len(target) != 42:
            raise ValidationError(f"invalid target address: {address}", point=point.value)
        info = self._l2_info(point, outcome)
        if info is None:
            return
        if info.owner == target:
            outcome.status = STATUS_SKIPPED
            outcome.reason = f"{target} already owns {point.name}"
            logger.info(outcome.reason)
            return
        permission = transfer_permission(info, self.signer.address)
        if not permission.allowed:
            self._deny(outcome, permission.reason or "not permitted")
            return
        logger.info("transferring %s to %s", point.name, target)
        self._submit(
            outcome, proxy=permission.proxy, data=payloads.build_transfer_data(target, reset=reset)
        )

    def _run(
        self,
        operation: str,
        points: Iterable[Point],
        step: Callable[[Point, OperationOutcome], None],
        cancel_event: Optional[threading.Event],
    ) -> OperationBatch:
        batch = OperationBatch()
        pending = list(points)
        for index, point in enumerate(pending):
            if cancel_event is not None and cancel_event.is_set():
                batch.cancelled.extend(pending[index:])
                break
            outcome = OperationOutcome(point=point, operation=operation)
            batch.outcomes.append(outcome)
            try:
                step(point, outcome)
            except AzimuthCLIError as exc:
                if exc.point is None:
                    exc.point = point.value
                logger.error("%s: %s", point.name, exc)
                outcome.error = exc
        return batch

    def escape(
        self,
        points: Iterable[Point],
        sponsor: Point,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> OperationBatch:
        return self._run(
            OP_ESCAPE,
            points,
            lambda point, outcome: self.escape_point(point, sponsor, outcome),
            cancel_event,
        )

    def adopt(
        self,
        points: Iterable[Point],
        adoptee: Point,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> OperationBatch:
        return self._run(
            OP_ADOPT,
            points,
            lambda point, outcome: self.adopt_point(point, adoptee, outcome),
            cancel_event,
        )

    def transfer(
        self,
        points: Iterable[Point],
        *,
        address: Optional[str] = None,
        wallets: Optional[Mapping[Point, WalletRecord]] = None,
        reset: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> OperationBatch:
        """Transfer each point to ``address``, or to its wallet's ownership address."""

        def step(point: Point, outcome: OperationOutcome) -> None:
            target = address
            if target is None and wallets and point in wallets:
                target = wallets[point].ownership_address
            if not target:
                raise ValidationError(
                    f"no target address for {point.name}; pass --address or wallet files",
                    point=point.value,
                )
            self.transfer_point(point, target, outcome, reset=reset)

        return self._run(OP_TRANSFER, points, step, cancel_event)
