from __future__ import annotations

from typing import Optional

import pytest

from azimuth_cli.backends import Permission
from azimuth_cli.errors import NotFoundError
from azimuth_cli.models import Dominion, PointInfo, PublicKeys, Receipt
from azimuth_cli.points import Point
from azimuth_cli.signing import SigningIdentity

TEST_PRIVATE_KEY = "0x" + "11" * 32


def make_info(
    point: Point,
    *,
    dominion: Dominion = Dominion.L1,
    revision: int = 0,
    continuity: Optional[int] = None,
    keys: Optional[PublicKeys] = None,
    owner: Optional[str] = None,
    management_proxy: Optional[str] = None,
    transfer_proxy: Optional[str] = None,
    source: Optional[Dominion] = None,
) -> PointInfo:
    return PointInfo(
        point=point.value,
        name=point.name,
        ship_class=point.ship_class.value,
        parent=point.parent.name,
        dominion=dominion,
        owner=owner,
        management_proxy=management_proxy,
        transfer_proxy=transfer_proxy,
        revision=revision,
        continuity=revision if continuity is None else continuity,
        keys=keys,
        source=source or dominion,
    )


class FakeBackend:
    """In-memory ledger: configure_keys bumps the revision like the contracts do."""

    def __init__(self, dominion: Dominion) -> None:
        self.dominion = dominion
        self.infos: dict[Point, PointInfo] = {}
        self.allowed = True
        self.fail_with: Optional[Exception] = None
        self.submissions: list[dict] = []
        self.reads: list[Point] = []

    def add(self, point: Point, **kwargs) -> PointInfo:
        kwargs.setdefault("dominion", self.dominion)
        info = make_info(point, **kwargs)
        self.infos[point] = info
        return info

    def probe(self, point: Point) -> None:
        if point not in self.infos:
            raise NotFoundError(f"{point.name} not found")

    def get_point_info(self, point: Point) -> PointInfo:
        self.reads.append(point)
        if point not in self.infos:
            raise NotFoundError(f"{point.name} not found")
        return self.infos[point]

    def can_configure(self, point: Point, info: PointInfo, address: str) -> Permission:
        if self.allowed:
            return Permission(True, proxy="own")
        return Permission(False, f"{address} is neither owner nor management proxy")

    def configure_keys(self, point, info, keys, *, breach, signer) -> Receipt:
        if self.fail_with is not None:
            raise self.fail_with
        self.submissions.append({"point": point, "keys": keys, "breach": breach})
        current = self.infos[point]
        self.infos[point] = current.model_copy(
            update={
                "revision": current.revision + 1,
                "continuity": current.continuity + (1 if breach else 0),
                "keys": keys,
            }
        )
        return Receipt(
            dominion=self.dominion,
            operation="configureKeys",
            point=point.value,
            hash="0x" + f"{len(self.submissions):02x}" * 32,
            success=True,
            status="confirmed",
        )


@pytest.fixture
def signer() -> SigningIdentity:
    return SigningIdentity.from_private_key(TEST_PRIVATE_KEY)


@pytest.fixture
def l1_backend() -> FakeBackend:
    return FakeBackend(Dominion.L1)


@pytest.fixture
def l2_backend() -> FakeBackend:
    return FakeBackend(Dominion.L2)
