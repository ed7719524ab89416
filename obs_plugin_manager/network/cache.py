"""Persistent response cache for upstream API calls.

Entries live in a single in-memory mapping that mirrors one JSON file on
disk. The file is read once when the cache is loaded and rewritten after
every insertion. A missing or malformed file degrades to an empty cache.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


def make_cache_key(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build a deterministic cache key from a URL and its query parameters.

    Args:
        url: Request URL
        params: Query parameters (order-insensitive)

    Returns:
        Hex SHA-256 digest
    """
    canonical = json.dumps(dict(params or {}), sort_keys=True, default=str)
    return hashlib.sha256(f"{url}\n{canonical}".encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """A cached upstream payload.

    Attributes:
        key: Cache key (see make_cache_key)
        payload: Decoded JSON payload
        created_at: Unix timestamp of the fetch
        expires_at: Unix timestamp after which the entry is stale
    """

    key: str
    payload: Any
    created_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        """An entry is valid strictly before its expiry time."""
        return now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        del data["key"]
        return data

    @classmethod
    def from_dict(cls, key: str, data: Mapping[str, Any]) -> "CacheEntry":
        return cls(
            key=key,
            payload=data["payload"],
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
        )


class ResponseCache:
    """Key/value cache with a fixed TTL, persisted to one JSON file.

    Example:
        cache = ResponseCache(Path("~/.cache/obs-plugin-manager/cache.json"), ttl=300)
        cache.load()
        cache.set(key, payload)
        entry = cache.get(key)
    """

    def __init__(
        self,
        path: Optional[Path],
        ttl: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            path: Cache file path, or None for an in-memory cache
            ttl: Time-to-live of new entries in seconds
            clock: Returns the current Unix time
        """
        self.path = path
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def load(self) -> None:
        """Load entries from disk, dropping the ones already expired."""
        self._entries.clear()
        if self.path is None or not self.path.exists():
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("cache file is not a JSON object")
            now = self._clock()
            for key, data in raw.items():
                entry = CacheEntry.from_dict(key, data)
                if entry.is_valid(now):
                    self._entries[key] = entry
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to load cache from %s: %s", self.path, e)
            self._entries.clear()
            return

        logger.debug("Loaded %d cache entries from %s", len(self._entries), self.path)

    def save(self) -> None:
        """Write all entries to disk. Failures are logged, not raised."""
        if self.path is None:
            return
        data = {key: entry.to_dict() for key, entry in self._entries.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except (OSError, TypeError) as e:
            logger.error("Failed to save cache to %s: %s", self.path, e)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return a valid entry, evicting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_valid(self._clock()):
            return entry
        del self._entries[key]
        return None

    def set(self, key: str, payload: Any) -> CacheEntry:
        """Store a payload and persist the cache."""
        now = self._clock()
        entry = CacheEntry(
            key=key,
            payload=payload,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self._entries[key] = entry
        self.save()
        return entry

    def clear_expired(self) -> int:
        """Drop expired entries and persist. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
        for key in expired:
            del self._entries[key]
        self.save()
        return len(expired)

    def clear(self) -> None:
        """Drop every entry and delete the cache file."""
        self._entries.clear()
        if self.path is None:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to clear cache file %s: %s", self.path, e)
