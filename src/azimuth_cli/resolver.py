"""Expansion of batch point inputs into an ordered work set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from azimuth_cli.errors import ConfigurationError, InvalidPointError
from azimuth_cli.points import Point, parse_point
from azimuth_cli.wallets import WalletRecord, find_wallets

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPoints:
    points: list[Point] = field(default_factory=list)
    invalid: list[InvalidPointError] = field(default_factory=list)
    wallets: dict[Point, WalletRecord] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)


def read_points_file(path: str | Path) -> list[str]:
    """Identifiers from a newline-delimited file, skipping blanks and ``#`` comments."""
    points_path = Path(path)
    try:
        lines = points_path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigurationError(f"cannot read points file: {points_path}") from exc
    entries = []
    for line in lines:
        entry = line.split("#", 1)[0].strip()
        if entry:
            entries.append(entry)
    return entries


def _dedupe(
    raw_entries: Iterable[object], *, strict: bool
) -> tuple[list[Point], list[InvalidPointError]]:
    points: list[Point] = []
    invalid: list[InvalidPointError] = []
    seen: set[Point] = set()
    for raw in raw_entries:
        try:
            point = parse_point(raw)
        except InvalidPointError as exc:
            if strict:
                raise
            logger.warning("skipping invalid point %r: %s", raw, exc)
            invalid.append(exc)
            continue
        if point in seen:
            continue
        seen.add(point)
        points.append(point)
    return points, invalid


def resolve_points(
    *,
    points: Sequence[object] | None = None,
    points_file: str | Path | None = None,
    wallet_dir: str | Path | None = None,
    strict: bool = False,
) -> ResolvedPoints:
    """Build the work set from exactly one of the three point sources."""
    supplied = [
        name
        for name, value in (
            ("points", points),
            ("points_file", points_file),
            ("wallet_dir", wallet_dir),
        )
        if value
    ]
    if not supplied:
        raise ConfigurationError(
            "one of points, points file or wallet directory must be provided"
        )
    if len(supplied) > 1:
        raise ConfigurationError(
            "points, points file and wallet directory are mutually exclusive; got "
            + ", ".join(supplied)
        )

    if wallet_dir:
        wallets = find_wallets(wallet_dir)
        return ResolvedPoints(points=list(wallets), wallets=wallets)

    if points:
        raw_entries = list(points)
    else:
        raw_entries = read_points_file(points_file)  # type: ignore[arg-type]
    resolved, invalid = _dedupe(raw_entries, strict=strict)
    logger.info("resolved %d point(s), %d invalid", len(resolved), len(invalid))
    return ResolvedPoints(points=resolved, invalid=invalid)
