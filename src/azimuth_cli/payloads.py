"""Builders for signed roller (L2) transaction requests."""

from __future__ import annotations

from azimuth_cli.models import CRYPTO_SUITE_VERSION, PublicKeys, add_hex_prefix
from azimuth_cli.signing import SigningIdentity

PROXY_OWNER = "own"
PROXY_MANAGEMENT = "manage"
PROXY_TRANSFER = "transfer"


def build_configure_keys_data(keys: PublicKeys, *, breach: bool) -> dict:
    return {
        "encrypt": add_hex_prefix(keys.crypt),
        "auth": add_hex_prefix(keys.auth),
        "cryptoSuite": str(CRYPTO_SUITE_VERSION),
        "breach": bool(breach),
    }


def build_escape_data(sponsor: str) -> dict:
    return {"ship": sponsor}


def build_adopt_data(adoptee: str) -> dict:
    return {"ship": adoptee}


def build_transfer_data(address: str, *, reset: bool) -> dict:
    return {"address": add_hex_prefix(address), "reset": bool(reset)}


def sign_roller_request(
    *,
    ship: str,
    proxy: str,
    data: dict,
    tx_hash: str,
    signer: SigningIdentity,
) -> dict:
    """Wrap ``data`` with the caller's signature over the roller-computed hash."""
    return {
        "address": signer.address,
        "sig": signer.sign_hash_message(tx_hash),
        "from": {"ship": ship, "proxy": proxy},
        "data": dict(data),
    }
