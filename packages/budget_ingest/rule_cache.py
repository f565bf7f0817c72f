"""Local snapshot cache of the merchant rule table.

The cache avoids re-fetching the full rule table on every import and allows an
offline fast path. It is an explicit object over an injected key/value
:class:`Storage`, so nothing here touches ambient global state:

- :class:`MemoryStorage`: process-local dict (tests, short-lived workers).
- :class:`JsonFileStorage`: one JSON file per key under a cache root
  (default ``./.cache``; override with ``BUDGET_INGEST_CACHE_DIR``).

Snapshots are overwritten wholesale on every save. Staleness is a caller
decision (see :meth:`RuleCacheSnapshot.is_stale`); the cache never expires
entries on its own.

Atomicity (file storage): writes target ``<name>.tmp`` first and then
``os.replace`` into place.
"""

from __future__ import annotations

import contextlib
import os
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .logging_setup import get_logger
from .models import MerchantRule, RuleCacheSnapshot

RULES_CACHE_KEY = "source_rules_cache_v1"

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")

_logger = get_logger("budget_ingest.rule_cache")


class Storage(Protocol):
    """Minimal key/value storage used by :class:`RuleCache`."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """In-memory :class:`Storage`."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


def default_cache_root() -> Path:
    """Return the cache root directory.

    Default: ``./.cache`` under the current working directory.
    Override: ``BUDGET_INGEST_CACHE_DIR`` environment variable.
    """

    root = os.getenv("BUDGET_INGEST_CACHE_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".cache").resolve()


class JsonFileStorage:
    """File-backed :class:`Storage`: ``<root>/<key>.json`` per key."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self._root = Path(root) if root is not None else default_cache_root()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        # Keys become file names; reject anything that could escape the root.
        if not _KEY_RE.fullmatch(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise


class RuleCache:
    """Save and load :class:`RuleCacheSnapshot` values through a :class:`Storage`."""

    def __init__(
        self,
        storage: Storage,
        *,
        key: str = RULES_CACHE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def save(self, rules: Iterable[MerchantRule]) -> RuleCacheSnapshot:
        """Replace any prior snapshot with ``rules`` stamped with the current time.

        Storage errors propagate to the caller.
        """

        snapshot = RuleCacheSnapshot(timestamp=self._clock(), rules=list(rules))
        self._storage.set(self._key, snapshot.model_dump_json())
        _logger.debug("rule_cache:saved key=%s rules=%d", self._key, len(snapshot.rules))
        return snapshot

    def load(self) -> RuleCacheSnapshot | None:
        """Return the stored snapshot, or ``None`` when absent, unreadable or invalid."""

        try:
            raw = self._storage.get(self._key)
        except (OSError, UnicodeDecodeError):
            _logger.warning("rule_cache:read_failed key=%s", self._key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return RuleCacheSnapshot.model_validate_json(raw)
        except ValidationError:
            # Covers malformed JSON as well as a missing or non-list ``rules``.
            _logger.warning("rule_cache:invalid snapshot key=%s; ignoring", self._key)
            return None


__all__ = [
    "JsonFileStorage",
    "MemoryStorage",
    "RULES_CACHE_KEY",
    "RuleCache",
    "Storage",
    "default_cache_root",
]
