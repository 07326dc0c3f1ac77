"""Persistent caches for remote responses and git metadata."""

from releaselog.cache.commit_cache import CachedCommit, CommitCacheFile, CommitMetadataCache
from releaselog.cache.response_cache import NOT_FOUND, ResponseCache

__all__ = [
    "CachedCommit",
    "CommitCacheFile",
    "CommitMetadataCache",
    "NOT_FOUND",
    "ResponseCache",
]
