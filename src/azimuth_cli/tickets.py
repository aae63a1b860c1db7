"""Client for the master-ticket service used to seed breach key derivation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from azimuth_cli.errors import ChainCommunicationError, ConfigurationError, NotFoundError
from azimuth_cli.points import Point

logger = logging.getLogger(__name__)


@dataclass
class TicketClient:
    base_url: str
    admin_token: str | None = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if not self.base_url or not self.base_url.strip():
            raise ConfigurationError("ticket service base URL is not configured")
        self._session = requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def master_ticket(self, point: Point) -> str:
        headers = {"Admin-Token": self.admin_token} if self.admin_token else None
        url = self._url(f"{point.name}/master-ticket")
        logger.info("fetching master ticket for %s", point.name)
        try:
            response = self._session.request("GET", url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ChainCommunicationError(
                f"ticket service unreachable: {exc}", point=point.value
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(f"no master ticket for {point.name}", point=point.value)
        if response.status_code >= 400:
            raise ChainCommunicationError(
                f"ticket service failed: {response.status_code}", point=point.value
            )
        try:
            ticket = response.json().get("ticket")
        except (ValueError, AttributeError) as exc:
            raise ChainCommunicationError(
                "ticket service returned a malformed response", point=point.value
            ) from exc
        if not isinstance(ticket, str) or not ticket.strip():
            raise ChainCommunicationError(
                "ticket service returned no ticket", point=point.value
            )
        ticket = ticket.strip()
        return ticket if ticket.startswith("~") else "~" + ticket
