from __future__ import annotations

import types

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from web3.exceptions import Web3Exception

from azimuth_cli.backends import L1Backend, L2Backend
from azimuth_cli.config import AzimuthConfig
from azimuth_cli.errors import ChainCommunicationError
from azimuth_cli.keys import derive_network_keys
from azimuth_cli.models import L2_DEPOSIT_ADDRESS, ZERO_ADDRESS, Dominion
from azimuth_cli.points import Point

from conftest import make_info

STAR = Point(256)
TX_HASH = "0x" + "ab" * 32


class FakeRoller:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.status = "pending"
        self.owner = None

    def get_point(self, ship):  # noqa: ANN001
        self.calls.append(("getPoint", ship))
        return {
            "dominion": "l2",
            "ownership": {"owner": {"address": self.owner}},
            "network": {"keys": {"life": 2}, "rift": 1},
        }

    def get_spawned(self, ship):  # noqa: ANN001
        return [65792, 131328]

    def get_nonce(self, *, ship, proxy):  # noqa: ANN001
        self.calls.append(("getNonce", ship, proxy))
        return 7

    def hash_transaction(self, *, nonce, ship, proxy, tx_type, data):  # noqa: ANN001
        self.calls.append(("hashTransaction", nonce, ship, proxy, tx_type, data))
        return TX_HASH

    def submit(self, method, signed_request):  # noqa: ANN001
        self.calls.append((method, signed_request))
        return "0x" + "cd" * 32

    def get_transaction_status(self, tx_hash):  # noqa: ANN001
        return self.status


def test_l2_point_info_uses_roller_record() -> None:
    info = L2Backend(FakeRoller()).get_point_info(STAR)
    assert info.dominion is Dominion.L2
    assert (info.revision, info.continuity, info.spawned_count) == (2, 1, 2)


def test_l2_configure_keys_signs_roller_hash(signer) -> None:
    roller = FakeRoller()
    backend = L2Backend(roller)
    info = make_info(STAR, dominion=Dominion.L2, owner=signer.address)
    keys = derive_network_keys("~ticket", STAR, 1).public_keys

    receipt = backend.configure_keys(STAR, info, keys, breach=True, signer=signer)

    assert receipt.dominion is Dominion.L2
    assert receipt.hash == "0x" + "cd" * 32
    assert receipt.success
    assert receipt.details["nonce"] == 7
    method, signed = roller.calls[-1]
    assert method == "configureKeys"
    assert signed["from"] == {"ship": "~marzod", "proxy": "own"}
    assert signed["address"] == signer.address
    assert signed["data"] == {
        "encrypt": keys.crypt,
        "auth": keys.auth,
        "cryptoSuite": "1",
        "breach": True,
    }
    recovered = Account.recover_message(encode_defunct(hexstr=TX_HASH), signature=signed["sig"])
    assert recovered == signer.checksum_address


def test_l2_management_proxy_signs_as_manage(signer) -> None:
    backend = L2Backend(FakeRoller())
    info = make_info(STAR, dominion=Dominion.L2, owner="0x" + "99" * 20)

    assert not backend.can_configure(STAR, info, signer.address).allowed
    managed = info.model_copy(update={"management_proxy": signer.address})
    permission = backend.can_configure(STAR, managed, signer.address)
    assert permission.allowed
    assert permission.proxy == "manage"


def test_l2_permission_for_l1_read_checks_roller_owner(signer) -> None:
    roller = FakeRoller()
    roller.owner = signer.checksum_address
    deposited = make_info(
        STAR, dominion=Dominion.L2, owner=L2_DEPOSIT_ADDRESS, source=Dominion.L1
    )

    permission = L2Backend(roller).can_configure(STAR, deposited, signer.address)

    assert permission.allowed
    assert permission.proxy == "own"
    assert roller.calls == [("getPoint", "~marzod")]


def test_l2_permission_for_roller_read_uses_given_state(signer) -> None:
    roller = FakeRoller()
    roller.owner = signer.address
    info = make_info(STAR, dominion=Dominion.L2, owner="0x" + "99" * 20)

    assert not L2Backend(roller).can_configure(STAR, info, signer.address).allowed
    assert roller.calls == []


def test_l2_failed_status_is_not_success(signer) -> None:
    roller = FakeRoller()
    roller.status = "failed"
    info = make_info(STAR, dominion=Dominion.L2, owner=signer.address)
    keys = derive_network_keys("~ticket", STAR, 1).public_keys

    receipt = L2Backend(roller).configure_keys(STAR, info, keys, breach=False, signer=signer)

    assert not receipt.success


class _Functions:
    def __init__(self, values: dict) -> None:
        self._values = values

    def __getattr__(self, name: str):
        value = self._values[name]

        def bind(*args):  # noqa: ANN002
            result = value(*args) if callable(value) else value
            return types.SimpleNamespace(call=lambda: result)

        return bind


def _azimuth(owner: str = "0x" + "22" * 20, **overrides) -> types.SimpleNamespace:
    values = {
        "getKeys": (bytes(range(32)), bytes(range(32, 64)), 1, 3),
        "getOwner": owner,
        "hasSponsor": True,
        "getSponsor": 0,
        "getSpawnProxy": ZERO_ADDRESS,
        "getTransferProxy": ZERO_ADDRESS,
        "getManagementProxy": ZERO_ADDRESS,
        "getKeyRevisionNumber": 3,
        "getContinuityNumber": 2,
        "getSpawnCount": 1,
        "getSpawned": [65792],
        "isActive": True,
        "canManage": True,
    }
    values.update(overrides)
    return types.SimpleNamespace(functions=_Functions(values))


def test_l1_point_info_from_contract_reads() -> None:
    context = types.SimpleNamespace(web3=None, azimuth=_azimuth())
    backend = L1Backend(context, AzimuthConfig())

    info = backend.get_point_info(STAR)

    assert info.dominion is Dominion.L1
    assert (info.revision, info.continuity, info.spawned_count) == (3, 2, 1)
    assert info.keys.crypt == "0x" + bytes(range(32)).hex()
    assert backend.get_spawned(STAR) == [65792]


def test_l1_deposited_point_reports_l2() -> None:
    context = types.SimpleNamespace(web3=None, azimuth=_azimuth(owner=L2_DEPOSIT_ADDRESS))
    assert L1Backend(context, AzimuthConfig()).get_point_info(STAR).dominion is Dominion.L2


def test_l1_permission_checks(signer) -> None:
    info = make_info(STAR)
    inactive = L1Backend(
        types.SimpleNamespace(web3=None, azimuth=_azimuth(isActive=False)), AzimuthConfig()
    )
    unmanaged = L1Backend(
        types.SimpleNamespace(web3=None, azimuth=_azimuth(canManage=False)), AzimuthConfig()
    )

    assert "not active" in inactive.can_configure(STAR, info, signer.address).reason
    assert not unmanaged.can_configure(STAR, info, signer.address).allowed


def test_l1_transport_errors_are_wrapped() -> None:
    def broken(*args):  # noqa: ANN002
        raise Web3Exception("connection refused")

    context = types.SimpleNamespace(web3=None, azimuth=_azimuth(getOwner=broken))
    with pytest.raises(ChainCommunicationError, match="getOwner"):
        L1Backend(context, AzimuthConfig()).get_point_info(STAR)


class FakeEth:
    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.gas_price = 30_000_000_000
        self.chain_id = 1

    def get_transaction_count(self, address):  # noqa: ANN001
        return 5

    def send_raw_transaction(self, raw):  # noqa: ANN001
        self.sent.append(raw)
        return bytes.fromhex("ef" * 32)

    def wait_for_transaction_receipt(self, tx_hash, timeout=None):  # noqa: ANN001
        return {"status": 1, "blockNumber": 100, "gasUsed": 51234}


def test_l1_configure_keys_builds_and_sends_transaction(signer) -> None:
    eth = FakeEth()
    built: dict = {}

    def configure_keys(point, crypt, auth, suite, breach):  # noqa: ANN001
        built["args"] = (point, crypt, auth, suite, breach)

        def build_transaction(tx):  # noqa: ANN001
            built["tx"] = tx
            return {**tx, "to": "0x" + "33" * 20, "data": "0x1234", "value": 0}

        return types.SimpleNamespace(build_transaction=build_transaction)

    context = types.SimpleNamespace(
        web3=types.SimpleNamespace(eth=eth),
        azimuth=_azimuth(),
        ecliptic=types.SimpleNamespace(
            functions=types.SimpleNamespace(configureKeys=configure_keys)
        ),
    )
    config = AzimuthConfig(gas_price_gwei=12)
    keys = derive_network_keys("~ticket", STAR, 4).public_keys

    receipt = L1Backend(context, config).configure_keys(
        STAR, make_info(STAR), keys, breach=True, signer=signer
    )

    assert built["args"][0] == 256
    assert built["args"][1] == bytes.fromhex(keys.crypt[2:])
    assert built["args"][3:] == (1, True)
    assert built["tx"]["gasPrice"] == 12_000_000_000
    assert built["tx"]["nonce"] == 5
    assert built["tx"]["from"] == signer.checksum_address
    assert len(eth.sent) == 1
    assert receipt.dominion is Dominion.L1
    assert receipt.hash == "0x" + "ef" * 32
    assert receipt.success
    assert receipt.details["gasUsed"] == 51234
