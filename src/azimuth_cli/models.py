"""Canonical point, key and receipt models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Owner recorded on L1 for points that were deposited to the rollup.
L2_DEPOSIT_ADDRESS = "0x1111111111111111111111111111111111111111"
CRYPTO_SUITE_VERSION = 1


class Dominion(str, Enum):
    L1 = "L1"
    L2 = "L2"

    @classmethod
    def parse(cls, raw: str) -> "Dominion":
        """Map roller/CLI spellings (``l1``, ``l2``, ``spawn``) to a dominion."""
        normalized = str(raw).strip().lower()
        if normalized in {"l1", "spawn", "azimuth"}:
            return cls.L1
        if normalized in {"l2", "roller"}:
            return cls.L2
        raise ValueError(f"unknown dominion: {raw!r}")


def sanitize_address(address: Optional[str]) -> Optional[str]:
    """Lower-case an address, mapping empty and zero addresses to ``None``."""
    if not address:
        return None
    lowered = str(address).strip().lower()
    if not lowered or int(lowered, 16) == 0:
        return None
    return lowered


def add_hex_prefix(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith("0x") else "0x" + value


class PublicKeys(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    crypt: str
    auth: str

    def matches(self, other: "PublicKeys") -> bool:
        return (
            add_hex_prefix(self.crypt) == add_hex_prefix(other.crypt)
            and add_hex_prefix(self.auth) == add_hex_prefix(other.auth)
        )


class PointInfo(BaseModel):
    """Backend-agnostic snapshot of a point's state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    point: int = Field(..., ge=0)
    name: str
    ship_class: str
    parent: str
    dominion: Dominion
    owner: Optional[str] = None
    spawn_proxy: Optional[str] = None
    transfer_proxy: Optional[str] = None
    management_proxy: Optional[str] = None
    sponsor: Optional[int] = None
    revision: int = Field(..., ge=0)
    continuity: int = Field(..., ge=0)
    spawned_count: int = Field(0, ge=0)
    keys: Optional[PublicKeys] = None
    source: Dominion


class KeyHalf(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    public: str
    private: str


class NetworkKeyPair(BaseModel):
    """Encryption and authentication keypairs for one key revision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    crypt: KeyHalf
    auth: KeyHalf
    revision: int = Field(..., ge=0)
    continuity: int = Field(..., ge=0)

    @property
    def public_keys(self) -> PublicKeys:
        return PublicKeys(
            crypt=add_hex_prefix(self.crypt.public),
            auth=add_hex_prefix(self.auth.public),
        )


class Receipt(BaseModel):
    """Result of one submitted mutation, tagged by the backend that accepted it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dominion: Dominion
    operation: str
    point: int
    hash: str
    success: bool
    status: str
    details: Dict[str, Any] = Field(default_factory=dict)


# Roller record shapes. Only the fields read by the normalizer are declared.


class _RollerModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RollerAddress(_RollerModel):
    address: Optional[str] = None


class RollerOwnership(_RollerModel):
    owner: RollerAddress = Field(default_factory=RollerAddress)
    spawn_proxy: RollerAddress = Field(default_factory=RollerAddress, alias="spawnProxy")
    management_proxy: RollerAddress = Field(
        default_factory=RollerAddress, alias="managementProxy"
    )
    transfer_proxy: RollerAddress = Field(default_factory=RollerAddress, alias="transferProxy")


class RollerSponsor(_RollerModel):
    has: bool = False
    who: Optional[int] = None


class RollerKeys(_RollerModel):
    life: int = 0
    suite: Optional[int] = None
    crypt: Optional[str] = None
    auth: Optional[str] = None


class RollerNetwork(_RollerModel):
    keys: RollerKeys = Field(default_factory=RollerKeys)
    sponsor: RollerSponsor = Field(default_factory=RollerSponsor)
    rift: int = 0


class RollerPoint(_RollerModel):
    dominion: Literal["l1", "l2", "spawn"]
    ownership: RollerOwnership = Field(default_factory=RollerOwnership)
    network: RollerNetwork = Field(default_factory=RollerNetwork)
