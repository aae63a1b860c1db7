"""Ethereum signing identity used for L1 transactions and L2 roller requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from azimuth_cli.errors import ConfigurationError
from azimuth_cli.wallets import load_wallet


@dataclass(frozen=True)
class SigningIdentity:
    account: LocalAccount = field(repr=False)

    @classmethod
    def from_private_key(cls, private_key: str) -> "SigningIdentity":
        key = private_key.strip()
        if not key:
            raise ConfigurationError("private key must not be empty")
        if not key.startswith("0x"):
            key = "0x" + key
        try:
            return cls(account=Account.from_key(key))
        except (ValueError, TypeError) as exc:
            raise ConfigurationError("private key is not a valid secp256k1 key") from exc

    @property
    def address(self) -> str:
        """Lower-case address, comparable with normalized point records."""
        return self.account.address.lower()

    @property
    def checksum_address(self) -> str:
        return self.account.address

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        signed = self.account.sign_transaction(transaction)
        return bytes(signed.raw_transaction)

    def sign_hash_message(self, message_hash: str) -> str:
        """Personal-sign a hex digest, returning a ``0x``-prefixed signature."""
        signed = self.account.sign_message(encode_defunct(hexstr=message_hash))
        return "0x" + bytes(signed.signature).hex()


def load_signing_identity(
    *,
    private_key: str | None = None,
    wallet_file: str | Path | None = None,
) -> SigningIdentity:
    """Signing identity from exactly one of a raw private key or a wallet file."""
    if private_key and wallet_file:
        raise ConfigurationError("use either a private key or a wallet file, not both")
    if private_key:
        return SigningIdentity.from_private_key(private_key)
    if wallet_file:
        wallet = load_wallet(wallet_file)
        ownership_key = wallet.ownership_private_key
        if not ownership_key:
            raise ConfigurationError(f"wallet {wallet.path.name} has no ownership private key")
        return SigningIdentity.from_private_key(ownership_key)
    raise ConfigurationError("a private key or wallet file is required to sign")
