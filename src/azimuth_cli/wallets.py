"""Locally stored wallet records (``<name>-wallet.json``)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from azimuth_cli.errors import CacheConsistencyError, InvalidPointError
from azimuth_cli.models import KeyHalf, NetworkKeyPair
from azimuth_cli.points import Point, parse_point

logger = logging.getLogger(__name__)

WALLET_GLOB = "*-wallet.json"


@dataclass(frozen=True)
class WalletRecord:
    point: Point
    path: Path
    payload: dict[str, Any] = field(repr=False)

    def _section(self, *path: str) -> dict[str, Any]:
        node: Any = self.payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        return node if isinstance(node, dict) else {}

    @property
    def ownership_address(self) -> str | None:
        address = self._section("ownership", "keys").get("address")
        return address.lower() if isinstance(address, str) and address else None

    @property
    def ownership_private_key(self) -> str | None:
        private = self._section("ownership", "keys").get("private")
        return private if isinstance(private, str) and private else None

    @property
    def ticket(self) -> str | None:
        ticket = self.payload.get("ticket")
        return ticket if isinstance(ticket, str) and ticket else None

    @property
    def has_network_keys(self) -> bool:
        return bool(self._section("network", "keys").get("crypt"))

    def network_keys(self, revision: int, continuity: int) -> NetworkKeyPair:
        """Network keys stored in the wallet, tagged with the given revision."""
        keys = self._section("network", "keys")
        if not keys:
            raise CacheConsistencyError(
                f"wallet {self.path.name} does not contain network keys",
                point=self.point.value,
            )
        try:
            return NetworkKeyPair(
                crypt=KeyHalf(**keys["crypt"]),
                auth=KeyHalf(**keys["auth"]),
                revision=revision,
                continuity=continuity,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheConsistencyError(
                f"wallet {self.path.name} has malformed network keys",
                point=self.point.value,
            ) from exc


def load_wallet(path: str | Path) -> WalletRecord:
    wallet_path = Path(path)
    try:
        payload = json.loads(wallet_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CacheConsistencyError(f"invalid wallet file: {wallet_path}") from exc
    if not isinstance(payload, dict):
        raise CacheConsistencyError(f"wallet file must contain a JSON object: {wallet_path}")

    meta = payload.get("meta") or {}
    raw_point = meta.get("patp", meta.get("ship"))
    if raw_point is None:
        raise CacheConsistencyError(f"wallet file has no meta.patp or meta.ship: {wallet_path}")
    try:
        point = parse_point(raw_point)
    except InvalidPointError as exc:
        raise CacheConsistencyError(
            f"wallet file names an invalid point: {wallet_path}"
        ) from exc
    return WalletRecord(point=point, path=wallet_path, payload=payload)


def find_wallets(directory: str | Path) -> dict[Point, WalletRecord]:
    """Load every wallet record in ``directory``, ordered by file name."""
    root = Path(directory)
    if not root.is_dir():
        raise CacheConsistencyError(f"wallet directory not found: {root}")

    wallets: dict[Point, WalletRecord] = {}
    for path in sorted(root.glob(WALLET_GLOB)):
        record = load_wallet(path)
        if record.point in wallets:
            logger.warning(
                "ignoring %s: %s already loaded from %s",
                path.name,
                record.point.name,
                wallets[record.point].path.name,
            )
            continue
        wallets[record.point] = record
    logger.info("found %d wallet(s) in %s", len(wallets), root)
    return wallets
