"""Selection of the backend that is authoritative for a point."""

from __future__ import annotations

import logging
from typing import Optional

from azimuth_cli.backends import Backend, L1Backend, L2Backend
from azimuth_cli.errors import ConfigurationError, NotFoundError
from azimuth_cli.models import Dominion
from azimuth_cli.points import Point

logger = logging.getLogger(__name__)


def parse_data_source(raw: Optional[str]) -> Optional[Dominion]:
    """``auto``/``None`` -> no override, ``l1``/``l2`` -> forced dominion."""
    if raw is None or str(raw).strip().lower() == "auto":
        return None
    try:
        return Dominion.parse(raw)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


class DataSourceSelector:
    """Honour a forced backend, otherwise probe L2 and fall back to L1 on not-found only."""

    def __init__(self, l1: L1Backend, l2: L2Backend, *, force: Optional[Dominion] = None) -> None:
        self.l1 = l1
        self.l2 = l2
        self.force = force

    def backend_for(self, dominion: Dominion) -> Backend:
        return self.l1 if dominion is Dominion.L1 else self.l2

    def select(self, point: Point) -> Backend:
        if self.force is not None:
            return self.backend_for(self.force)
        try:
            self.l2.probe(point)
        except NotFoundError:
            logger.info("%s is unknown to the roller, using L1", point.name)
            return self.l1
        return self.l2
