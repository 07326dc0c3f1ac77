"""File-based cache of remote API responses."""

import re
from pathlib import Path
from typing import Optional, Union

import structlog

logger = structlog.get_logger(__name__)

# Written in place of a body when the remote answered 404
NOT_FOUND_MARKER = "-"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._\-]")


class _NotFound:
    """Sentinel returned for keys known to be missing remotely."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


class ResponseCache:
    """Persistent cache mapping a request path to its response body.

    Each key is stored as its own JSON file below ``cache_dir`` so a key such
    as ``/repos/owner/name/issues/12`` ends up at
    ``<cache_dir>/repos/owner/name/issues/12.json``. A 404 answer is kept as a
    negative entry so it is never asked for again.
    """

    def __init__(self, cache_dir: Path) -> None:
        """Initialize cache.

        Args:
            cache_dir: Directory to store cache files
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        # Stats
        self.hits = 0
        self.misses = 0
        self.negative_hits = 0

    def _path_for(self, key: str) -> Path:
        """Map a request path onto a file below the cache directory."""
        parts = []
        for segment in key.strip("/").split("/"):
            if segment in ("", ".", ".."):
                continue
            parts.append(_UNSAFE_CHARS.sub("_", segment))
        if not parts:
            parts = ["_root"]
        parts[-1] = parts[-1] + ".json"
        return self.cache_dir.joinpath(*parts)

    def get(self, key: str) -> Union[str, _NotFound, None]:
        """Get a cached body.

        Args:
            key: Request path

        Returns:
            The body, NOT_FOUND for a negative entry, or None if never fetched
        """
        cache_file = self._path_for(key)

        if cache_file.exists():
            try:
                body = cache_file.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("cache_read_failed", key=key, error=str(e))
            else:
                if body == NOT_FOUND_MARKER:
                    self.negative_hits += 1
                    return NOT_FOUND
                self.hits += 1
                return body

        self.misses += 1
        return None

    def put(self, key: str, content: str) -> None:
        """Cache a response body.

        Args:
            key: Request path
            content: Raw response body
        """
        cache_file = self._path_for(key)
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            cache_file.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))

    def put_not_found(self, key: str) -> None:
        """Remember that the remote has nothing at this key."""
        self.put(key, NOT_FOUND_MARKER)

    def delete(self, key: str) -> bool:
        cache_file = self._path_for(key)
        if not cache_file.exists():
            return False
        cache_file.unlink()
        return True

    def clear(self) -> None:
        """Clear all cache files."""
        for cache_file in self.cache_dir.rglob("*.json"):
            cache_file.unlink()

        self.hits = 0
        self.misses = 0
        self.negative_hits = 0

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        total_requests = self.hits + self.negative_hits + self.misses
        served = self.hits + self.negative_hits
        hit_rate = (served / total_requests * 100) if total_requests > 0 else 0.0

        return {
            "hits": self.hits,
            "negative_hits": self.negative_hits,
            "misses": self.misses,
            "hit_rate": f"{hit_rate:.1f}%",
            "cached_responses": len(list(self.cache_dir.rglob("*.json"))),
        }
