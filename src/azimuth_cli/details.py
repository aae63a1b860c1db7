"""Point state aggregation.

Both backends report point state in their own shape: L1 as a set of
independent contract reads, L2 as one nested roller record. The normalizers
here turn either into the same :class:`PointInfo`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError as PydanticValidationError

from azimuth_cli.errors import AzimuthCLIError, DataSourceError, NotFoundError
from azimuth_cli.models import (
    L2_DEPOSIT_ADDRESS,
    Dominion,
    PointInfo,
    PublicKeys,
    RollerPoint,
    sanitize_address,
)
from azimuth_cli.points import Point

if TYPE_CHECKING:
    from azimuth_cli.datasource import DataSourceSelector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class L1Reads:
    """Raw values read from the Azimuth contract for one point."""

    owner: Optional[str]
    has_sponsor: bool
    sponsor: int
    spawn_proxy: Optional[str]
    transfer_proxy: Optional[str]
    management_proxy: Optional[str]
    revision: int
    continuity: int
    spawn_count: int
    crypt: bytes = b""
    auth: bytes = b""


def _public_keys(crypt: Optional[str], auth: Optional[str]) -> Optional[PublicKeys]:
    if not crypt or not auth:
        return None
    if int(crypt, 16) == 0 and int(auth, 16) == 0:
        return None
    return PublicKeys(crypt=crypt.lower(), auth=auth.lower())


def _l1_dominion(owner: Optional[str]) -> Dominion:
    if owner == L2_DEPOSIT_ADDRESS:
        return Dominion.L2
    return Dominion.L1


def normalize_l1_reads(point: Point, reads: L1Reads) -> PointInfo:
    owner = sanitize_address(reads.owner)
    keys = None
    if reads.crypt and reads.auth:
        keys = _public_keys("0x" + bytes(reads.crypt).hex(), "0x" + bytes(reads.auth).hex())
    return PointInfo(
        point=point.value,
        name=point.name,
        ship_class=point.ship_class.value,
        parent=point.parent.name,
        dominion=_l1_dominion(owner),
        owner=owner,
        spawn_proxy=sanitize_address(reads.spawn_proxy),
        transfer_proxy=sanitize_address(reads.transfer_proxy),
        management_proxy=sanitize_address(reads.management_proxy),
        sponsor=int(reads.sponsor) if reads.has_sponsor else None,
        revision=int(reads.revision),
        continuity=int(reads.continuity),
        spawned_count=int(reads.spawn_count),
        keys=keys,
        source=Dominion.L1,
    )


def normalize_l2_record(point: Point, record: dict, *, spawned_count: int) -> PointInfo:
    try:
        parsed = RollerPoint.model_validate(record)
    except PydanticValidationError as exc:
        raise DataSourceError(
            f"malformed roller record for {point.name}", point=point.value
        ) from exc

    ownership = parsed.ownership
    network = parsed.network
    sponsor = network.sponsor.who if network.sponsor.has else None
    return PointInfo(
        point=point.value,
        name=point.name,
        ship_class=point.ship_class.value,
        parent=point.parent.name,
        dominion=Dominion.parse(parsed.dominion),
        owner=sanitize_address(ownership.owner.address),
        spawn_proxy=sanitize_address(ownership.spawn_proxy.address),
        transfer_proxy=sanitize_address(ownership.transfer_proxy.address),
        management_proxy=sanitize_address(ownership.management_proxy.address),
        sponsor=int(sponsor) if sponsor is not None else None,
        revision=network.keys.life,
        continuity=network.rift,
        spawned_count=spawned_count,
        keys=_public_keys(network.keys.crypt, network.keys.auth),
        source=Dominion.L2,
    )


class PointInfoAggregator:
    """Fetch a fresh :class:`PointInfo` from whichever backend the selector picks."""

    def __init__(self, selector: "DataSourceSelector") -> None:
        self.selector = selector

    def get_point_info(self, point: Point) -> PointInfo:
        backend = self.selector.select(point)
        try:
            info = backend.get_point_info(point)
        except NotFoundError as exc:
            hint = "--use-roller" if backend.dominion is Dominion.L1 else "--use-azimuth"
            raise NotFoundError(
                f"{point.name} not found on {backend.dominion.value}; "
                f"retry with an explicit backend override ({hint})",
                point=point.value,
            ) from exc
        except DataSourceError:
            raise
        except AzimuthCLIError as exc:
            raise DataSourceError(
                f"could not read {point.name} from {backend.dominion.value}: {exc}",
                point=point.value,
            ) from exc
        logger.info(
            "%s: dominion=%s revision=%d continuity=%d (via %s)",
            info.name,
            info.dominion.value,
            info.revision,
            info.continuity,
            info.source.value,
        )
        return info

    def sponsored_points(self, point: Point) -> dict:
        """Residents and pending escape requests of ``point`` (L2 roller only)."""
        roller = self.selector.l2
        try:
            return roller.sponsored_points(point)
        except NotFoundError:
            raise
        except AzimuthCLIError as exc:
            raise DataSourceError(
                f"could not list points sponsored by {point.name}: {exc}", point=point.value
            ) from exc
