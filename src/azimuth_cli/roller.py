"""JSON-RPC client for the L2 roller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from azimuth_cli.errors import ChainCommunicationError, NotFoundError, RollerRequestError

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("resource not found", "not found")


@dataclass
class RollerClient:
    base_url: str
    timeout: float = 30.0
    connect_retries: int = 2

    def __post_init__(self) -> None:
        self._session = requests.Session()
        # Only connection establishment is retried; a request that reached
        # the roller is never re-sent.
        retry = Retry(
            total=max(0, int(self.connect_retries)),
            connect=max(0, int(self.connect_retries)),
            read=0,
            status=0,
            other=0,
            backoff_factor=0.2,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def _request(self, method: str, params: dict[str, Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": str(uuid4()), "method": method, "params": params}
        logger.debug("roller %s %s", method, params)
        try:
            response = self._session.request(
                "POST",
                self.base_url,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ChainCommunicationError(f"roller unreachable: {exc}") from exc

        body: object | None
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            raise RollerRequestError(
                f"roller request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=body,
            )
        if not isinstance(body, dict):
            raise RollerRequestError(
                f"roller returned a malformed response to {method}",
                status_code=response.status_code,
                body=body,
            )

        error = body.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            if isinstance(message, str) and message.lower().startswith(_NOT_FOUND_MARKERS):
                raise NotFoundError(f"roller: {message}")
            raise RollerRequestError(
                f"roller {method} failed: {message}",
                status_code=response.status_code,
                error_code=code,
                body=body,
            )
        if "result" not in body:
            raise RollerRequestError(
                f"roller returned no result for {method}",
                status_code=response.status_code,
                body=body,
            )
        return body["result"]

    def get_point(self, ship: str) -> dict:
        result = self._request("getPoint", {"ship": ship})
        if not isinstance(result, dict):
            raise RollerRequestError(f"roller returned a malformed point record for {ship}")
        return result

    def get_spawned(self, ship: str) -> list:
        result = self._request("getSpawned", {"ship": ship})
        return list(result or [])

    def get_sponsored_points(self, ship: str) -> dict:
        result = self._request("getSponsoredPoints", {"ship": ship})
        if not isinstance(result, dict):
            return {"residents": [], "requests": []}
        return result

    def get_nonce(self, *, ship: str, proxy: str) -> int:
        result = self._request("getNonce", {"from": {"ship": ship, "proxy": proxy}})
        return int(result)

    def hash_transaction(
        self, *, nonce: int, ship: str, proxy: str, tx_type: str, data: dict
    ) -> str:
        result = self._request(
            "hashTransaction",
            {
                "nonce": nonce,
                "from": {"ship": ship, "proxy": proxy},
                "tx": {"type": tx_type, "data": data},
            },
        )
        return str(result)

    def submit(self, method: str, signed_request: dict) -> str:
        result = self._request(method, signed_request)
        return str(result)

    def get_transaction_status(self, tx_hash: str) -> str:
        result = self._request("getTransactionStatus", {"hash": tx_hash})
        return str(result)


__all__ = ["RollerClient"]
