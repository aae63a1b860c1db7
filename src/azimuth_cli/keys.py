"""Network key derivation and boot keyfiles.

Key derivation is deterministic in (seed, point, revision): the seed is
stretched with SHA-512 under a domain separator, the first half becomes the
X25519 encryption key and the second half the Ed25519 authentication key.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Callable, Protocol

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from azimuth_cli.errors import CacheConsistencyError, ConfigurationError
from azimuth_cli.models import KeyHalf, NetworkKeyPair
from azimuth_cli.points import Point

KEY_DERIVATION_DOMAIN = b"azimuth-cli/network-keys/v1"
KEYFILE_VERSION = 1


class KeyDerivation(Protocol):
    def __call__(self, seed: str, point: Point, revision: int) -> NetworkKeyPair: ...


def _seed_bytes(seed: str | bytes) -> bytes:
    if isinstance(seed, bytes):
        raw = seed
    else:
        raw = seed.strip().encode("utf-8")
    if not raw:
        raise ConfigurationError("a ticket or seed is required to derive network keys")
    return raw


def derive_network_keys(seed: str | bytes, point: Point, revision: int) -> NetworkKeyPair:
    """Derive the network keypair of ``point`` for ``revision`` from ``seed``."""
    if revision < 0:
        raise ValueError("revision must be >= 0")
    material = hashlib.sha512(
        KEY_DERIVATION_DOMAIN
        + b"\x00"
        + _seed_bytes(seed)
        + b"\x00"
        + point.value.to_bytes(4, "big")
        + revision.to_bytes(4, "big")
    ).digest()

    crypt_private = material[:32]
    auth_private = material[32:]
    crypt_public = (
        X25519PrivateKey.from_private_bytes(crypt_private)
        .public_key()
        .public_bytes(Encoding.Raw, PublicFormat.Raw)
    )
    auth_public = (
        Ed25519PrivateKey.from_private_bytes(auth_private)
        .public_key()
        .public_bytes(Encoding.Raw, PublicFormat.Raw)
    )
    return NetworkKeyPair(
        crypt=KeyHalf(public=crypt_public.hex(), private=crypt_private.hex()),
        auth=KeyHalf(public=auth_public.hex(), private=auth_private.hex()),
        revision=revision,
        continuity=revision,
    )


def check_key_material(pair: NetworkKeyPair) -> None:
    """Reject key material whose halves are not hex or whose public keys are not 32 bytes.

    Wallet records may come from other generators, so public/private
    consistency is not re-derived here.
    """
    for label, half in (("crypt", pair.crypt), ("auth", pair.auth)):
        try:
            public = bytes.fromhex(_strip_hex(half.public))
            private = bytes.fromhex(_strip_hex(half.private))
        except ValueError as exc:
            raise CacheConsistencyError(f"{label} key must be hex encoded") from exc
        if len(public) != 32:
            raise CacheConsistencyError(f"{label} public key must decode to 32 bytes")
        if not private:
            raise CacheConsistencyError(f"{label} private key is empty")


def _strip_hex(value: str) -> str:
    value = value.strip().lower()
    return value[2:] if value.startswith("0x") else value


def _canonical_bytes(payload: dict) -> bytes:
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def build_keyfile(pair: NetworkKeyPair, point: Point, revision: int) -> bytes:
    """Build the boot keyfile. A pure function of its inputs."""
    ring = "B" + _strip_hex(pair.crypt.private) + _strip_hex(pair.auth.private)
    payload = {
        "version": KEYFILE_VERSION,
        "point": point.value,
        "name": point.name,
        "revision": revision,
        "ring": ring,
    }
    return base64.b64encode(_canonical_bytes(payload)) + b"\n"


def parse_keyfile(data: bytes) -> dict:
    try:
        payload = json.loads(base64.b64decode(data.strip(), validate=True))
    except (ValueError, json.JSONDecodeError) as exc:
        raise CacheConsistencyError("keyfile is not valid") from exc
    if not isinstance(payload, dict) or payload.get("version") != KEYFILE_VERSION:
        raise CacheConsistencyError("unsupported keyfile version")
    return payload


KeyFileBuilder = Callable[[NetworkKeyPair, Point, int], bytes]
