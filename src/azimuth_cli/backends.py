"""Ledger backends.

Both ledgers are reached through the same small interface so that callers
route by dominion once instead of comparing dominion strings everywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from azimuth_cli import payloads
from azimuth_cli.config import AzimuthConfig
from azimuth_cli.details import L1Reads, normalize_l1_reads, normalize_l2_record
from azimuth_cli.errors import ChainCommunicationError, ValidationError
from azimuth_cli.ethereum import ContractContext
from azimuth_cli.models import CRYPTO_SUITE_VERSION, Dominion, PointInfo, PublicKeys, Receipt
from azimuth_cli.points import Point
from azimuth_cli.roller import RollerClient
from azimuth_cli.signing import SigningIdentity

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (Web3Exception, requests.RequestException, TimeoutError, OSError, ValueError)


@dataclass(frozen=True)
class Permission:
    allowed: bool
    reason: Optional[str] = None
    proxy: Optional[str] = None


class Backend(Protocol):
    dominion: Dominion

    def get_point_info(self, point: Point) -> PointInfo: ...

    def can_configure(self, point: Point, info: PointInfo, address: str) -> Permission: ...

    def configure_keys(
        self,
        point: Point,
        info: PointInfo,
        keys: PublicKeys,
        *,
        breach: bool,
        signer: SigningIdentity,
    ) -> Receipt: ...


def _bytes32(value: str) -> bytes:
    raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) != 32:
        raise ValidationError("network public keys must be 32 bytes")
    return raw


class L1Backend:
    """Azimuth contract reads and Ecliptic transactions."""

    dominion = Dominion.L1

    def __init__(self, context: ContractContext, config: AzimuthConfig) -> None:
        self.context = context
        self.config = config

    def _call(self, function: str, *args: Any) -> Any:
        try:
            return getattr(self.context.azimuth.functions, function)(*args).call()
        except _TRANSPORT_ERRORS as exc:
            raise ChainCommunicationError(f"azimuth {function} failed: {exc}") from exc

    def get_point_info(self, point: Point) -> PointInfo:
        p = point.value
        crypt, auth, _suite, _key_revision = self._call("getKeys", p)
        reads = L1Reads(
            owner=self._call("getOwner", p),
            has_sponsor=bool(self._call("hasSponsor", p)),
            sponsor=int(self._call("getSponsor", p)),
            spawn_proxy=self._call("getSpawnProxy", p),
            transfer_proxy=self._call("getTransferProxy", p),
            management_proxy=self._call("getManagementProxy", p),
            revision=int(self._call("getKeyRevisionNumber", p)),
            continuity=int(self._call("getContinuityNumber", p)),
            spawn_count=int(self._call("getSpawnCount", p)),
            crypt=bytes(crypt),
            auth=bytes(auth),
        )
        return normalize_l1_reads(point, reads)

    def get_spawned(self, point: Point) -> list[int]:
        return [int(child) for child in self._call("getSpawned", point.value)]

    def can_configure(self, point: Point, info: PointInfo, address: str) -> Permission:
        if not self._call("isActive", point.value):
            return Permission(False, f"{point.name} is not active")
        if not self._call("canManage", point.value, Web3.to_checksum_address(address)):
            return Permission(False, f"{address} is neither owner nor management proxy")
        return Permission(True)

    def _gas_price(self) -> int:
        if self.config.gas_price_gwei is not None:
            return int(Web3.to_wei(self.config.gas_price_gwei, "gwei"))
        try:
            return int(self.context.web3.eth.gas_price)
        except _TRANSPORT_ERRORS as exc:
            raise ChainCommunicationError(f"gas price lookup failed: {exc}") from exc

    def configure_keys(
        self,
        point: Point,
        info: PointInfo,
        keys: PublicKeys,
        *,
        breach: bool,
        signer: SigningIdentity,
    ) -> Receipt:
        web3 = self.context.web3
        gas_price = self._gas_price()
        try:
            transaction = self.context.ecliptic.functions.configureKeys(
                point.value,
                _bytes32(keys.crypt),
                _bytes32(keys.auth),
                CRYPTO_SUITE_VERSION,
                bool(breach),
            ).build_transaction(
                {
                    "from": signer.checksum_address,
                    "nonce": web3.eth.get_transaction_count(signer.checksum_address),
                    "gas": int(self.config.gas_limit),
                    "gasPrice": gas_price,
                    "chainId": web3.eth.chain_id,
                }
            )
            raw = signer.sign_transaction(transaction)
            tx_hash = web3.eth.send_raw_transaction(raw)
            logger.info("%s: sent configureKeys tx %s", point.name, Web3.to_hex(tx_hash))
            receipt = web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.config.receipt_timeout
            )
        except ValidationError:
            raise
        except _TRANSPORT_ERRORS as exc:
            raise ChainCommunicationError(
                f"configureKeys for {point.name} failed: {exc}", point=point.value
            ) from exc

        success = int(receipt["status"]) == 1
        return Receipt(
            dominion=Dominion.L1,
            operation="configureKeys",
            point=point.value,
            hash=Web3.to_hex(tx_hash),
            success=success,
            status="confirmed" if success else "reverted",
            details={
                "blockNumber": int(receipt["blockNumber"]),
                "gasUsed": int(receipt["gasUsed"]),
                "gasPrice": gas_price,
                "from": signer.address,
            },
        )


class L2Backend:
    """Roller reads and signed roller transactions."""

    dominion = Dominion.L2

    def __init__(self, client: RollerClient) -> None:
        self.client = client

    def probe(self, point: Point) -> None:
        """Raise :class:`NotFoundError` if the roller does not know ``point``."""
        self.client.get_point(point.name)

    def get_point_info(self, point: Point) -> PointInfo:
        record = self.client.get_point(point.name)
        spawned = self.client.get_spawned(point.name)
        return normalize_l2_record(point, record, spawned_count=len(spawned))

    def sponsored_points(self, point: Point) -> dict:
        return self.client.get_sponsored_points(point.name)

    def _roller_view(self, point: Point, info: PointInfo) -> PointInfo:
        # L1 reads of a deposited point only show the deposit address as owner.
        if info.source is Dominion.L2:
            return info
        record = self.client.get_point(point.name)
        return normalize_l2_record(point, record, spawned_count=info.spawned_count)

    def can_configure(self, point: Point, info: PointInfo, address: str) -> Permission:
        address = address.lower()
        roller_info = self._roller_view(point, info)
        if roller_info.owner == address:
            return Permission(True, proxy=payloads.PROXY_OWNER)
        if roller_info.management_proxy == address:
            return Permission(True, proxy=payloads.PROXY_MANAGEMENT)
        return Permission(False, f"{address} is neither owner nor management proxy")

    def submit(
        self,
        point: Point,
        *,
        method: str,
        proxy: str,
        data: dict,
        signer: SigningIdentity,
    ) -> Receipt:
        ship = point.name
        nonce = self.client.get_nonce(ship=ship, proxy=proxy)
        tx_hash = self.client.hash_transaction(
            nonce=nonce, ship=ship, proxy=proxy, tx_type=method, data=data
        )
        signed = payloads.sign_roller_request(
            ship=ship, proxy=proxy, data=data, tx_hash=tx_hash, signer=signer
        )
        submitted = self.client.submit(method, signed)
        logger.info("%s: submitted %s to roller as %s", ship, method, submitted)
        status = self.client.get_transaction_status(submitted)
        return Receipt(
            dominion=Dominion.L2,
            operation=method,
            point=point.value,
            hash=submitted,
            success=status.lower() != "failed",
            status=status,
            details={"nonce": nonce, "proxy": proxy, "from": signer.address, "data": data},
        )

    def configure_keys(
        self,
        point: Point,
        info: PointInfo,
        keys: PublicKeys,
        *,
        breach: bool,
        signer: SigningIdentity,
    ) -> Receipt:
        permission = self.can_configure(point, info, signer.address)
        return self.submit(
            point,
            method="configureKeys",
            proxy=permission.proxy or payloads.PROXY_OWNER,
            data=payloads.build_configure_keys_data(keys, breach=breach),
            signer=signer,
        )
