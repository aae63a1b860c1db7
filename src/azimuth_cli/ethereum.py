"""Web3 context for the Azimuth and Ecliptic contracts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from web3 import Web3

from azimuth_cli.config import AzimuthConfig

logger = logging.getLogger(__name__)


def _function(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]],
    *,
    view: bool = True,
) -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": arg, "type": kind} for arg, kind in inputs],
        "outputs": [{"name": arg, "type": kind} for arg, kind in outputs],
        "stateMutability": "view" if view else "nonpayable",
    }


_POINT = [("_point", "uint32")]

AZIMUTH_ABI = [
    _function("owner", [], [("", "address")]),
    _function("isActive", _POINT, [("equals", "bool")]),
    _function("getOwner", _POINT, [("owner", "address")]),
    _function("hasSponsor", _POINT, [("has", "bool")]),
    _function("getSponsor", _POINT, [("sponsor", "uint32")]),
    _function("getSpawnProxy", _POINT, [("spawnProxy", "address")]),
    _function("getTransferProxy", _POINT, [("transferProxy", "address")]),
    _function("getManagementProxy", _POINT, [("manager", "address")]),
    _function("getKeyRevisionNumber", _POINT, [("revision", "uint32")]),
    _function("getContinuityNumber", _POINT, [("continuityNumber", "uint32")]),
    _function("getSpawnCount", _POINT, [("spawnCount", "uint32")]),
    _function("getSpawned", _POINT, [("spawned", "uint32[]")]),
    _function(
        "getKeys",
        _POINT,
        [
            ("crypt", "bytes32"),
            ("auth", "bytes32"),
            ("suite", "uint32"),
            ("revision", "uint32"),
        ],
    ),
    _function("canManage", _POINT + [("_who", "address")], [("result", "bool")]),
]

ECLIPTIC_ABI = [
    _function(
        "configureKeys",
        _POINT
        + [
            ("_encryptionKey", "bytes32"),
            ("_authenticationKey", "bytes32"),
            ("_cryptoSuiteVersion", "uint32"),
            ("_discontinuous", "bool"),
        ],
        [],
        view=False,
    ),
]


@dataclass
class ContractContext:
    """Web3 connection plus contract handles; the Ecliptic address is read from Azimuth."""

    web3: Any
    azimuth: Any
    _ecliptic: Any = field(default=None, repr=False)

    @property
    def ecliptic(self) -> Any:
        if self._ecliptic is None:
            address = self.azimuth.functions.owner().call()
            logger.debug("ecliptic resolved to %s", address)
            self._ecliptic = self.web3.eth.contract(
                address=Web3.to_checksum_address(address),
                abi=ECLIPTIC_ABI,
            )
        return self._ecliptic


def create_context(config: AzimuthConfig) -> ContractContext:
    web3 = Web3(
        Web3.HTTPProvider(
            config.resolved_eth_rpc_url,
            request_kwargs={"timeout": config.request_timeout},
        )
    )
    azimuth = web3.eth.contract(
        address=Web3.to_checksum_address(config.resolved_azimuth_address),
        abi=AZIMUTH_ABI,
    )
    return ContractContext(web3=web3, azimuth=azimuth)
