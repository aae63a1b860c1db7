"""Dominion-routed submission of network-key configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from azimuth_cli.backends import Backend
from azimuth_cli.errors import AuthorizationError, AzimuthCLIError, ValidationError
from azimuth_cli.models import Dominion, NetworkKeyPair, PointInfo, Receipt
from azimuth_cli.points import Point
from azimuth_cli.signing import SigningIdentity
from azimuth_cli.store import ArtifactStore, write_json_once

logger = logging.getLogger(__name__)

STATUS_SUBMITTED = "submitted"
STATUS_UNCHANGED = "unchanged"
STATUS_UNAUTHORIZED = "unauthorized"


def receipt_name(point: Point, revision: int, receipt: Receipt) -> str:
    digest = receipt.hash[2:] if receipt.hash.startswith("0x") else receipt.hash
    return (
        f"{point.short_name}-networkkey-{revision}-{digest[:8]}"
        f"-receipt-{receipt.dominion.value}.json"
    )


@dataclass(frozen=True)
class ConfigureResult:
    point: Point
    status: str
    dominion: Dominion
    revision: int
    continuity: int
    receipt: Optional[Receipt] = None
    receipt_path: Optional[str] = None
    error: Optional[AzimuthCLIError] = None

    @property
    def submitted(self) -> bool:
        return self.status == STATUS_SUBMITTED

    @property
    def ok(self) -> bool:
        if self.status == STATUS_UNCHANGED:
            return True
        return self.submitted and self.receipt is not None and self.receipt.success


class KeyConfigurationDispatcher:
    def __init__(self, backends: Mapping[Dominion, Backend], store: ArtifactStore) -> None:
        self.backends = dict(backends)
        self.store = store

    def configure(
        self,
        point: Point,
        info: PointInfo,
        key_pair: NetworkKeyPair,
        *,
        breach: bool,
        signer: SigningIdentity,
        expected_dominion: Optional[Dominion] = None,
    ) -> ConfigureResult:
        """Configure ``key_pair`` on the backend that owns ``point``.

        Returns an ``unauthorized`` result instead of raising when the signer
        lacks the role, and an ``unchanged`` result when the keys are already
        in place and no breach was requested.
        """
        if expected_dominion is not None and expected_dominion is not info.dominion:
            raise ValidationError(
                f"{point.name} is on {info.dominion.value}; it cannot be modified "
                f"through {expected_dominion.value}",
                point=point.value,
            )
        backend = self.backends[info.dominion]

        def result(status: str, **extra) -> ConfigureResult:
            return ConfigureResult(
                point=point,
                status=status,
                dominion=info.dominion,
                revision=key_pair.revision,
                continuity=key_pair.continuity,
                **extra,
            )

        permission = backend.can_configure(point, info, signer.address)
        if not permission.allowed:
            logger.warning("cannot set network keys for %s: %s", point.name, permission.reason)
            return result(
                STATUS_UNAUTHORIZED,
                error=AuthorizationError(
                    f"cannot set network keys for {point.name}: {permission.reason}",
                    point=point.value,
                ),
            )

        target = key_pair.public_keys
        if not breach and info.keys is not None and info.keys.matches(target):
            logger.info("the network keys are already set for %s", point.name)
            return result(STATUS_UNCHANGED)

        receipt = backend.configure_keys(point, info, target, breach=breach, signer=signer)
        path = write_json_once(
            self.store,
            receipt_name(point, key_pair.revision, receipt),
            receipt.model_dump(mode="json"),
        )
        if receipt.success:
            logger.info("%s: network keys configured (%s)", point.name, receipt.hash)
        else:
            logger.error("%s: configureKeys %s was %s", point.name, receipt.hash, receipt.status)
        return result(STATUS_SUBMITTED, receipt=receipt, receipt_path=path)
