"""Persistent cache of per-commit git metadata.

Listing the paths a commit touched is cheap, but asking git which branches
contain a commit is very slow on large repositories. Both answers never
change for a given commit, so they are kept in
``<cache_dir>/<repository identity>/commits.json`` between runs.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class CachedCommit(BaseModel):
    """Cached metadata for one commit."""

    model_config = {"extra": "ignore"}

    sha: str = Field(..., description="Lowercase commit SHA")
    branches: Optional[Set[str]] = Field(None, description="Branches containing the commit")
    diff_paths: Optional[Set[str]] = Field(None, description="Paths changed by the commit")


class CommitCacheFile(BaseModel):
    """Root object of the cache file."""

    model_config = {"extra": "ignore"}

    version: str = Field("1.0", description="Cache file format version")
    commits: Dict[str, CachedCommit] = Field(default_factory=dict)


class CommitMetadataCache:
    """Write-through cache of changed paths and containing branches per commit."""

    def __init__(self, cache_dir: Path, repo_identity: str) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Root cache directory
            repo_identity: Repository identity, keeps caches of different repositories apart
        """
        self.cache_dir = Path(cache_dir) / repo_identity
        self.cache_file = self.cache_dir / "commits.json"
        self._data = self._load()

    def _load(self) -> CommitCacheFile:
        if not self.cache_file.exists():
            return CommitCacheFile()
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            logger.info("commit_cache_loaded", path=str(self.cache_file), commits=len(data.get("commits", {})))
            return CommitCacheFile(**data)
        except (OSError, ValueError) as e:
            # Corrupted or unreadable, start over
            logger.warning("commit_cache_load_failed", path=str(self.cache_file), error=str(e))
            return CommitCacheFile()

    def save(self) -> None:
        """Save the cache to disk using atomic write."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.cache_dir, prefix=".commits_", suffix=".json.tmp"
            )
        except OSError as e:
            logger.warning("commit_cache_save_failed", path=str(self.cache_file), error=str(e))
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data.model_dump(mode="json"), f, indent=2, sort_keys=True)
            os.replace(temp_path, self.cache_file)
        except (OSError, TypeError) as e:
            logger.warning("commit_cache_save_failed", path=str(self.cache_file), error=str(e))
            try:
                os.unlink(temp_path)
            except OSError:
                pass

    def _entry(self, sha: str) -> CachedCommit:
        key = sha.lower()
        entry = self._data.commits.get(key)
        if entry is None:
            entry = CachedCommit(sha=key)
            self._data.commits[key] = entry
        return entry

    def get_changed_paths(self, sha: str) -> Optional[Set[str]]:
        entry = self._data.commits.get(sha.lower())
        if entry is None or entry.diff_paths is None:
            return None
        return set(entry.diff_paths)

    def set_changed_paths(self, sha: str, paths: Iterable[str]) -> None:
        self._entry(sha).diff_paths = set(paths)
        self.save()

    def get_containing_branches(self, sha: str) -> Optional[Set[str]]:
        entry = self._data.commits.get(sha.lower())
        if entry is None or entry.branches is None:
            return None
        return set(entry.branches)

    def set_containing_branches(self, sha: str, branches: Iterable[str]) -> None:
        self._entry(sha).branches = set(branches)
        self.save()

    def __len__(self) -> int:
        return len(self._data.commits)
