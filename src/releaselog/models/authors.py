"""Registry of known authors, looked up by email."""

import json
from pathlib import Path
from typing import Iterator, List, Optional

import structlog

from releaselog.models.records import Author

logger = structlog.get_logger(__name__)


class AuthorRegistry:
    """Known authors (committers and regular contributors).

    The registry starts from an optional JSON file, a list of objects with
    ``github``, ``name``, ``emails`` and ``committer`` keys, and grows as new
    authors are discovered during a run.
    """

    def __init__(self, authors: Optional[List[Author]] = None) -> None:
        self._authors: List[Author] = list(authors or [])

    @classmethod
    def load(cls, path: Optional[Path]) -> "AuthorRegistry":
        """Load a registry from a JSON file.

        Args:
            path: JSON file path, or None for an empty registry

        Returns:
            AuthorRegistry instance
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            logger.warning("authors_file_missing", path=str(path))
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        entries = data.get("authors", []) if isinstance(data, dict) else data
        authors = [Author(**entry) for entry in entries]
        logger.debug("authors_loaded", path=str(path), count=len(authors))
        return cls(authors)

    def find(self, email: Optional[str]) -> Optional[Author]:
        if not email:
            return None
        for author in self._authors:
            if author.has_email(email):
                return author
        return None

    def add(self, author: Author) -> None:
        self._authors.append(author)

    def __iter__(self) -> Iterator[Author]:
        return iter(self._authors)

    def __len__(self) -> int:
        return len(self._authors)
