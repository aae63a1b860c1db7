"""Write-once cache of network key material per ``(point, revision)``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from azimuth_cli.errors import CacheConsistencyError, ConfigurationError
from azimuth_cli.keys import (
    KeyDerivation,
    KeyFileBuilder,
    build_keyfile,
    check_key_material,
    derive_network_keys,
)
from azimuth_cli.models import NetworkKeyPair
from azimuth_cli.points import Point
from azimuth_cli.store import ArtifactStore, read_json, write_json_once
from azimuth_cli.wallets import WalletRecord

logger = logging.getLogger(__name__)


def key_material_name(point: Point, revision: int) -> str:
    return f"{point.short_name}-networkkeys-{revision}.json"


def keyfile_name(point: Point, revision: int) -> str:
    return f"{point.short_name}-{revision}.key"


@dataclass(frozen=True)
class CacheEntry:
    point: Point
    key_pair: NetworkKeyPair
    location: str
    created: bool

    @property
    def revision(self) -> int:
        return self.key_pair.revision


class NetworkKeyCache:
    """Generate-once key material and keyfiles backed by an :class:`ArtifactStore`."""

    def __init__(
        self,
        store: ArtifactStore,
        *,
        derive: KeyDerivation = derive_network_keys,
        keyfile_builder: KeyFileBuilder = build_keyfile,
    ) -> None:
        self.store = store
        self.derive = derive
        self.keyfile_builder = keyfile_builder

    def lookup(self, point: Point, revision: int) -> Optional[CacheEntry]:
        key = key_material_name(point, revision)
        if not self.store.exists(key):
            return None
        payload = read_json(self.store, key)
        try:
            pair = NetworkKeyPair.model_validate(payload)
        except PydanticValidationError as exc:
            raise CacheConsistencyError(
                f"cached key material is malformed: {key}", point=point.value
            ) from exc
        if pair.revision != revision:
            raise CacheConsistencyError(
                f"{key} holds keys for revision {pair.revision}", point=point.value
            )
        return CacheEntry(point=point, key_pair=pair, location=key, created=False)

    def get_or_generate(
        self,
        point: Point,
        revision: int,
        *,
        continuity: Optional[int] = None,
        seed: Optional[str] = None,
        wallet: Optional[WalletRecord] = None,
    ) -> CacheEntry:
        """Return the entry for ``(point, revision)``, creating it at most once.

        An existing entry always wins over the supplied seed or wallet. Without
        one, wallet key material is adopted if given, otherwise keys are
        derived from ``seed``.
        """
        existing = self.lookup(point, revision)
        if existing is not None:
            logger.info("%s: using cached network keys for revision %d", point.name, revision)
            return existing

        continuity = revision if continuity is None else continuity
        if wallet is not None:
            if not wallet.has_network_keys:
                raise CacheConsistencyError(
                    f"wallet for {point.name} does not contain network keys",
                    point=point.value,
                )
            pair = wallet.network_keys(revision, continuity)
            check_key_material(pair)
            logger.info("%s: adopting network keys from %s", point.name, wallet.path.name)
        else:
            if not seed:
                raise ConfigurationError(
                    f"no ticket or seed available to derive keys for {point.name}",
                    point=point.value,
                )
            derived = self.derive(seed, point, revision)
            pair = derived.model_copy(update={"continuity": continuity})
            logger.info("%s: derived network keys for revision %d", point.name, revision)

        key = key_material_name(point, revision)
        location = write_json_once(self.store, key, pair.model_dump(mode="json"))
        return CacheEntry(point=point, key_pair=pair, location=location, created=True)

    def key_file_for(self, point: Point, entry: CacheEntry) -> bytes:
        """Keyfile for ``entry``, built on first use and read back afterwards."""
        key = keyfile_name(point, entry.revision)
        if self.store.exists(key):
            return self.store.read_bytes(key)
        contents = self.keyfile_builder(entry.key_pair, point, entry.revision)
        self.store.write_once(key, contents)
        return contents
