"""Configuration for azimuth-cli.

One immutable :class:`AzimuthConfig` is built per invocation and passed to
every component. Values come from, in increasing precedence: defaults, a TOML
file (``[azimuth]`` table or top level), environment variables, and explicit
overrides from the command line.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from azimuth_cli.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".azimuth_cli" / "config.toml"

ETH_PROVIDERS = {
    "mainnet": "https://mainnet.infura.io/v3/",
    "ropsten": "https://ropsten.infura.io/v3/",
    "ganache": "http://127.0.0.1:8545",
}
ROLLER_PROVIDERS = {
    "urbit": "https://roller.urbit.org/v1/roller",
    "local": "http://127.0.0.1:8080/v1/roller",
}
AZIMUTH_ADDRESSES = {
    "mainnet": "0x223c067F8CF28ae173EE5CafEa60cA44C335fecB",
    "ropsten": "0x308ab6a6024cf198b57e008d0ac9ad0219886579",
    "ganache": "0x863d9c2e5c4c133596cfac29d55255f0d0f86381",
}
DATA_SOURCES = ("auto", "l1", "l2")

ETH_RPC_URL_ENV_VAR = "AZIMUTH_ETH_RPC_URL"
ROLLER_URL_ENV_VAR = "AZIMUTH_ROLLER_URL"
TICKET_BASE_URL_ENV_VAR = "TICKET_BASE_URL"
TICKET_TOKEN_ENV_VAR = "AZIMUTH_TICKET_TOKEN"


@dataclass(frozen=True)
class AzimuthConfig:
    work_dir: str = "."
    eth_provider: str = "mainnet"
    eth_rpc_url: str | None = None
    roller_provider: str = "urbit"
    roller_url: str | None = None
    azimuth_address: str | None = None
    data_source: str = "auto"
    gas_price_gwei: float | None = None
    gas_limit: int = 200_000
    request_timeout: float = 30.0
    request_retries: int = 2
    receipt_timeout: float = 300.0
    ticket_base_url: str | None = None
    ticket_token: str | None = None
    log_level: str = "INFO"

    @property
    def resolved_eth_rpc_url(self) -> str:
        return self.eth_rpc_url or ETH_PROVIDERS[self.eth_provider]

    @property
    def resolved_roller_url(self) -> str:
        return self.roller_url or ROLLER_PROVIDERS[self.roller_provider]

    @property
    def resolved_azimuth_address(self) -> str:
        return self.azimuth_address or AZIMUTH_ADDRESSES[self.eth_provider]

    def with_overrides(self, **overrides: Any) -> "AzimuthConfig":
        """Return a validated copy with the non-``None`` overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return validate_config(dataclasses.replace(self, **changes))


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigurationError(
                "toml parser unavailable; install tomli for Python < 3.11"
            ) from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigurationError(f"invalid TOML in {path}: {exc}") from exc


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _to_float(value: Any, field_name: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{field_name} must be a number") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{field_name} must be positive")
    return parsed


def _to_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{field_name} must be an integer") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{field_name} must be positive")
    return parsed


def _to_retries(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError("request_retries must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError("request_retries must be an integer") from exc


def validate_config(config: AzimuthConfig) -> AzimuthConfig:
    if config.eth_provider not in ETH_PROVIDERS:
        raise ConfigurationError(
            "eth_provider must be one of: " + ", ".join(sorted(ETH_PROVIDERS))
        )
    if config.roller_provider not in ROLLER_PROVIDERS:
        raise ConfigurationError(
            "roller_provider must be one of: " + ", ".join(sorted(ROLLER_PROVIDERS))
        )
    if config.data_source not in DATA_SOURCES:
        raise ConfigurationError("data_source must be one of: auto, l1, l2")
    if not str(config.work_dir).strip():
        raise ConfigurationError("work_dir must not be empty")
    if config.gas_price_gwei is not None:
        _to_float(config.gas_price_gwei, "gas_price_gwei")
    _to_positive_int(config.gas_limit, "gas_limit")
    if isinstance(config.request_retries, bool) or int(config.request_retries) < 0:
        raise ConfigurationError("request_retries must be zero or more")
    _to_float(config.request_timeout, "request_timeout")
    _to_float(config.receipt_timeout, "receipt_timeout")
    return config


def load_config(path: str | Path | None = None) -> AzimuthConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if path and not config_path.exists():
        raise ConfigurationError(f"config file not found: {config_path}")

    source: dict[str, Any] = {}
    if config_path.exists():
        parsed = _load_toml(config_path)
        section = parsed.get("azimuth")
        if isinstance(section, dict):
            source = section
        elif section is None:
            source = parsed
        else:
            raise ConfigurationError("[azimuth] must be a table")

    gas_price = source.get("gas_price_gwei")
    config = AzimuthConfig(
        work_dir=str(source.get("work_dir", ".")).strip(),
        eth_provider=str(source.get("eth_provider", "mainnet")).strip().lower(),
        eth_rpc_url=os.getenv(ETH_RPC_URL_ENV_VAR) or _optional_str(source.get("eth_rpc_url")),
        roller_provider=str(source.get("roller_provider", "urbit")).strip().lower(),
        roller_url=os.getenv(ROLLER_URL_ENV_VAR) or _optional_str(source.get("roller_url")),
        azimuth_address=_optional_str(source.get("azimuth_address")),
        data_source=str(source.get("data_source", "auto")).strip().lower(),
        gas_price_gwei=None if gas_price is None else _to_float(gas_price, "gas_price_gwei"),
        gas_limit=_to_positive_int(source.get("gas_limit", 200_000), "gas_limit"),
        request_timeout=_to_float(source.get("request_timeout", 30.0), "request_timeout"),
        request_retries=_to_retries(source.get("request_retries", 2)),
        receipt_timeout=_to_float(source.get("receipt_timeout", 300.0), "receipt_timeout"),
        ticket_base_url=(
            os.getenv(TICKET_BASE_URL_ENV_VAR) or _optional_str(source.get("ticket_base_url"))
        ),
        ticket_token=os.getenv(TICKET_TOKEN_ENV_VAR) or _optional_str(source.get("ticket_token")),
        log_level=str(source.get("log_level", "INFO")).strip().upper(),
    )
    return validate_config(config)
