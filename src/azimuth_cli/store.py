"""Write-once artifact storage.

Key material, keyfiles and submission receipts are stored under flat keys
(file names). Existence of a key is authoritative: cached keys and receipts
are never overwritten. Only derived listings such as spawn lists are replaced,
and only on request.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from azimuth_cli.errors import CacheConsistencyError

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    def exists(self, key: str) -> bool: ...

    def read_bytes(self, key: str) -> bytes: ...

    def write_once(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key`` and return its location.

        Raises :class:`CacheConsistencyError` if ``key`` is already present.
        """
        ...

    def overwrite(self, key: str, data: bytes) -> str: ...


def read_json(store: ArtifactStore, key: str) -> dict[str, Any]:
    try:
        payload = json.loads(store.read_bytes(key).decode("utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheConsistencyError(f"stored artifact is unreadable: {key}") from exc
    if not isinstance(payload, dict):
        raise CacheConsistencyError(f"stored artifact must be a JSON object: {key}")
    return payload


def write_json_once(store: ArtifactStore, key: str, payload: Any) -> str:
    data = (json.dumps(payload, sort_keys=True, indent=2) + "\n").encode("utf-8")
    return store.write_once(key, data)


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


class FileArtifactStore:
    """Artifacts as files in a work directory, readable by the owner only."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in {".", ".."}:
            raise ValueError(f"invalid artifact key: {key!r}")
        return self.root / key

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def read_bytes(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def write_once(self, key: str, data: bytes) -> str:
        path = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        try:
            # "x" refuses to replace a file created since the caller's existence check.
            with path.open("xb") as handle:
                handle.write(data)
        except FileExistsError as exc:
            raise CacheConsistencyError(f"artifact already exists: {path}") from exc
        _chmod_owner_only(path)
        logger.info("wrote %s", path)
        return str(path)

    def overwrite(self, key: str, data: bytes) -> str:
        path = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        _chmod_owner_only(path)
        logger.info("replaced %s", path)
        return str(path)


class MemoryArtifactStore:
    """In-process store, used by tests and by callers that only want results."""

    def __init__(self) -> None:
        self.artifacts: dict[str, bytes] = {}
        self.writes: list[str] = []

    def exists(self, key: str) -> bool:
        return key in self.artifacts

    def read_bytes(self, key: str) -> bytes:
        try:
            return self.artifacts[key]
        except KeyError as exc:
            raise FileNotFoundError(key) from exc

    def write_once(self, key: str, data: bytes) -> str:
        if key in self.artifacts:
            raise CacheConsistencyError(f"artifact already exists: {key}")
        self.artifacts[key] = bytes(data)
        self.writes.append(key)
        return f"memory:{key}"

    def overwrite(self, key: str, data: bytes) -> str:
        self.artifacts[key] = bytes(data)
        self.writes.append(key)
        return f"memory:{key}"
