"""Commit and reference extraction."""

from releaselog.extraction.git_reader import (
    CommitInfo,
    GitRepositoryReader,
    MissingObjectError,
    RefNotFoundError,
)
from releaselog.extraction.references import scan, scan_resolutions

__all__ = [
    "CommitInfo",
    "GitRepositoryReader",
    "MissingObjectError",
    "RefNotFoundError",
    "scan",
    "scan_resolutions",
]
