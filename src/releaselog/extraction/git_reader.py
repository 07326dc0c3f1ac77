"""Read-only access to the local git repository."""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

import git
from git import Commit, Repo


class MissingObjectError(Exception):
    """Raised when a commit is not present in the local repository."""


class RefNotFoundError(ValueError):
    """Raised when a tag, branch or commit id cannot be resolved."""


@dataclass(frozen=True)
class CommitInfo:
    """The parts of a git commit the changelog cares about."""

    sha: str
    author_name: str
    author_email: str
    title: str
    body: str
    authored_at: datetime
    parent_count: int

    @property
    def is_merge(self) -> bool:
        return self.parent_count >= 2


class GitRepositoryReader:
    """Queries a git repository through GitPython."""

    def __init__(self, repo_path: Path) -> None:
        """Initialize the reader.

        Args:
            repo_path: Path to the repository working tree

        Raises:
            ValueError: If repository path is invalid
        """
        self.repo_path = Path(repo_path)
        if not self.repo_path.exists():
            raise ValueError(f"Repository path does not exist: {self.repo_path}")

        try:
            self.repo = Repo(self.repo_path)
        except git.exc.InvalidGitRepositoryError as e:
            raise ValueError(f"Invalid Git repository: {self.repo_path}") from e

    @property
    def identity(self) -> str:
        """Stable name for this repository, used to namespace caches."""
        root = Path(self.repo.working_tree_dir or self.repo.git_dir).resolve()
        digest = hashlib.sha256(str(root).encode()).hexdigest()[:8]
        return f"{root.name}-{digest}"

    def close(self) -> None:
        self.repo.close()

    def _lookup(self, name: str) -> Optional[Commit]:
        try:
            return self.repo.commit(name)
        except (git.exc.BadName, git.exc.BadObject, ValueError):
            return None

    def resolve_ref(self, name: str, branch: Optional[str] = None) -> str:
        """Resolve a tag, branch, remote branch or commit id to a commit SHA.

        Args:
            name: Ref to resolve
            branch: Optional branch whose remote HEAD is tried as a last resort

        Returns:
            Full commit SHA

        Raises:
            RefNotFoundError: If nothing matches
        """
        candidates = []
        if "/" in name:
            candidates.append(name)
        candidates.extend([f"refs/tags/{name}", f"refs/heads/{name}", f"refs/remotes/{name}"])
        if branch:
            candidates.append(f"refs/{branch}/HEAD")
        candidates.append(name)

        for candidate in candidates:
            commit = self._lookup(candidate)
            if commit is not None:
                return commit.hexsha

        raise RefNotFoundError(f"Ref not found: {name}")

    def resolve_tag(self, tag_name: str) -> str:
        """Resolve a tag (only a tag) to the commit it points at."""
        commit = self._lookup(f"refs/tags/{tag_name}")
        if commit is None:
            raise RefNotFoundError(f"Ref not found: {tag_name}")
        return commit.hexsha

    def commits_between(self, old: str, new: str) -> List[CommitInfo]:
        """Commits reachable from ``new`` but not from ``old`` (newest first)."""
        return [self._to_info(commit) for commit in self.repo.iter_commits(f"{old}..{new}")]

    def get_commit(self, sha: str) -> CommitInfo:
        """Read a single commit.

        Raises:
            MissingObjectError: If the commit is not in the repository
        """
        return self._to_info(self._require(sha))

    def commit_time(self, ref: str) -> datetime:
        """Committer time of the commit a ref points at."""
        return self._require(ref).committed_datetime

    def changed_paths(self, sha: str) -> Set[str]:
        """Paths touched by a commit, both old and new names of renames.

        Raises:
            MissingObjectError: If the commit is not in the repository
        """
        commit = self._require(sha)

        if not commit.parents:
            return {item.path for item in commit.tree.traverse() if item.type == "blob"}

        paths: Set[str] = set()
        for diff in commit.parents[0].diff(commit):
            if diff.a_path:
                paths.add(diff.a_path)
            if diff.b_path:
                paths.add(diff.b_path)
        return paths

    def branches_containing(self, sha: str) -> Set[str]:
        """Full ref names of local and remote branches that contain a commit."""
        self._require(sha)
        output = self.repo.git.branch("-a", "--contains", sha, "--format=%(refname)")
        return {line.strip() for line in output.splitlines() if line.strip()}

    def _require(self, sha: str) -> Commit:
        commit = self._lookup(sha)
        if commit is None:
            raise MissingObjectError(f"Commit not found: {sha}")
        return commit

    def _to_info(self, commit: Commit) -> CommitInfo:
        return CommitInfo(
            sha=commit.hexsha,
            author_name=commit.author.name or "",
            author_email=commit.author.email or "",
            title=commit.summary if isinstance(commit.summary, str) else commit.summary.decode(),
            body=commit.message if isinstance(commit.message, str) else commit.message.decode(),
            authored_at=commit.authored_datetime,
            parent_count=len(commit.parents),
        )
