"""Change resolution: from a version range to grouped changes.

The engine walks the commits of a range, chases every issue/PR number they
mention through the tracker, repeats until nothing new turns up, and then
groups everything that is still relevant into ``Change`` records.
"""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

import structlog

from releaselog.cache.commit_cache import CommitMetadataCache
from releaselog.extraction.git_reader import CommitInfo, GitRepositoryReader, MissingObjectError
from releaselog.extraction.references import scan, scan_resolutions
from releaselog.github.client import GitHubClient
from releaselog.github.errors import GitHubError, GitHubNotFoundError
from releaselog.models.authors import AuthorRegistry
from releaselog.models.records import (
    Author,
    Change,
    ChangeCommit,
    ChangeIssue,
    InvalidReference,
    IssueDetail,
    IssueType,
    PullRequestDetail,
    Skip,
)
from releaselog.resolution.exclusions import ExclusionRules

logger = structlog.get_logger(__name__)

DEFAULT_MAX_REFERENCES = 5000


class ResolutionError(Exception):
    """Raised when a changelog run cannot complete."""


class ResolutionDeadlineExceeded(ResolutionError):
    """Raised when a run takes longer than its configured deadline."""


@dataclass
class ResolutionStats:
    """Counters describing one run."""

    passes: int = 0
    commits_resolved: int = 0
    issues_resolved: int = 0
    git_lookups: int = 0
    remote_failures: int = 0
    dropped_references: int = 0
    elapsed: float = 0.0


class ChangelogEngine:
    """Resolves commits and issues/PRs of a version range into changes.

    The engine owns the commit and issue tables for the duration of a run.
    Every record is resolved at most once; newly discovered numbers are added
    as unresolved records and picked up by the next pass.
    """

    def __init__(
        self,
        reader: GitRepositoryReader,
        tracker: GitHubClient,
        branch: str,
        rules: Optional[ExclusionRules] = None,
        commit_cache: Optional[CommitMetadataCache] = None,
        authors: Optional[AuthorRegistry] = None,
        fail_fast: bool = True,
        max_references: int = DEFAULT_MAX_REFERENCES,
        deadline_seconds: Optional[float] = None,
        progress: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            reader: Local git repository reader
            tracker: Issue/PR tracker client
            branch: Branch the release is made from; pull requests must target it
            rules: Exclusion rules, none when omitted
            commit_cache: Cache of changed paths and containing branches
            authors: Registry of known authors
            fail_fast: Abort on remote failures other than not-found
            max_references: Upper bound on issue/PR numbers tracked in one run
            deadline_seconds: Abort the run after this many seconds
            progress: Called with a short description as each phase starts
        """
        self.reader = reader
        self.tracker = tracker
        self.branch = branch
        self.rules = rules or ExclusionRules()
        self.commit_cache = commit_cache
        self.authors = authors or AuthorRegistry()
        self.fail_fast = fail_fast
        self.max_references = max_references
        self.deadline_seconds = deadline_seconds
        self._progress = progress

        self.commits: Dict[str, ChangeCommit] = {}
        self.issues: Dict[int, ChangeIssue] = {}
        self.changes: List[Change] = []
        self.stats = ResolutionStats()
        self._started: Optional[float] = None

    # -- run ------------------------------------------------------------

    def discover_changes(self, prior_tag: str, current_ref: str) -> List[Change]:
        """Run every phase for the range ``prior_tag..current_ref``.

        Args:
            prior_tag: Tag of the previous release
            current_ref: Tag, branch or commit id of the release being described

        Returns:
            The changes, numbered from 0

        Raises:
            RefNotFoundError: If either end of the range cannot be resolved
            ResolutionDeadlineExceeded: If the run deadline passes
            GitHubError: On remote failures while in fail-fast mode
        """
        self._started = time.monotonic()

        self._report("Collecting commits")
        self.collect_commits(prior_tag, current_ref)

        self._report("Resolving references")
        self.resolve_until_fixed_point()

        self._report("Checking relevance")
        self.apply_relevance()

        self._report("Grouping changes")
        self.group_changes()

        self.stats.elapsed = time.monotonic() - self._started
        logger.info(
            "changes_discovered",
            changes=len(self.changes),
            commits=len(self.commits),
            issues=len(self.issues),
            passes=self.stats.passes,
            elapsed=round(self.stats.elapsed, 2),
        )
        return self.changes

    def collect_commits(self, prior_tag: str, current_ref: str) -> int:
        """Add and resolve every commit in ``prior_tag..current_ref``.

        Returns:
            Number of commits in the range
        """
        old = self.reader.resolve_tag(prior_tag)
        new = self.reader.resolve_ref(current_ref, self.branch)
        logger.debug("commit_range", old=old, new=new)

        count = 0
        for info in self.reader.commits_between(old, new):
            self._check_deadline()
            self.resolve_commit(self._get_commit(info.sha), info)
            count += 1

        logger.info("commits_collected", count=count, prior=prior_tag, current=current_ref)
        return count

    def resolve_until_fixed_point(self) -> int:
        """Alternate commit and issue passes until nothing is left unresolved.

        Returns:
            Number of passes that did any work
        """
        while True:
            self._check_deadline()
            did_work = False

            if self.unresolved_commits():
                self.resolve_commits_pass()
                did_work = True

            if self.unresolved_issues():
                self.resolve_issues_pass()
                did_work = True

            if not did_work:
                return self.stats.passes
            self.stats.passes += 1

    def unresolved_commits(self) -> List[str]:
        return [sha for sha, commit in self.commits.items() if not commit.resolved]

    def unresolved_issues(self) -> List[int]:
        return [num for num, issue in self.issues.items() if not issue.resolved]

    # -- commits --------------------------------------------------------

    def resolve_commits_pass(self) -> None:
        frontier = self.unresolved_commits()
        logger.info("resolving_commits", count=len(frontier))

        for sha in frontier:
            self._check_deadline()
            record = self.commits[sha]
            if record.resolved:
                continue
            try:
                info = self.reader.get_commit(sha)
            except MissingObjectError:
                logger.warning("commit_missing", sha=sha)
                record.add_skip_reason(Skip.GIT_OBJ_MISSING)
                record.set_resolved()
                self.stats.commits_resolved += 1
                continue
            self.resolve_commit(record, info)

    def resolve_commit(self, record: ChangeCommit, info: CommitInfo) -> None:
        """Fill in a commit record and register every issue/PR it points at.

        Resolving an already resolved record does nothing.
        """
        if record.resolved:
            return
        record.begin_resolving()
        sha = record.sha

        record.author = self._author_for(info)
        record.title = info.title
        record.body = info.body
        record.commit_time = info.authored_at

        refs: Set[int] = set()

        if self.rules.is_merge(info):
            record.add_skip_reason(Skip.IS_MERGE_COMMIT)
        else:
            mentioned = scan(info.title) | scan_resolutions(info.body)
            record.issue_refs.update(mentioned)
            refs |= mentioned

            paths = self.rules.filter_paths(self._changed_paths(sha))
            record.files = sorted(paths)
            if not paths:
                record.add_skip_reason(Skip.NO_INTERESTING_PATHS_LEFT)

            branches = self._containing_branches(sha)
            record.branches = sorted(branches)
            if self.rules.excludes_any_branch(branches):
                record.add_skip_reason(Skip.EXCLUDED_BRANCH)

        pull_requests = self._linked_pull_requests(sha)
        record.pull_request_refs.update(pull_requests)
        refs |= pull_requests

        for num in sorted(refs):
            issue = self._get_issue(num)
            if issue is not None:
                issue.commits.add(sha)

        record.set_resolved()
        self.stats.commits_resolved += 1

    def _changed_paths(self, sha: str) -> Set[str]:
        if self.commit_cache is not None:
            cached = self.commit_cache.get_changed_paths(sha)
            if cached is not None:
                return cached

        paths = self.reader.changed_paths(sha)
        self.stats.git_lookups += 1
        if self.commit_cache is not None:
            self.commit_cache.set_changed_paths(sha, paths)
        return paths

    def _containing_branches(self, sha: str) -> Set[str]:
        if self.commit_cache is not None:
            cached = self.commit_cache.get_containing_branches(sha)
            if cached is not None:
                return cached

        # Slow for large repositories
        branches = self.reader.branches_containing(sha)
        self.stats.git_lookups += 1
        if self.commit_cache is not None:
            self.commit_cache.set_containing_branches(sha, branches)
        return branches

    def _linked_pull_requests(self, sha: str) -> Set[int]:
        try:
            return {pr.number for pr in self.tracker.get_pull_requests_for_commit(sha)}
        except GitHubNotFoundError:
            return set()
        except GitHubError as e:
            if self.fail_fast:
                raise
            logger.warning("commit_pull_requests_failed", sha=sha, error=str(e))
            self.stats.remote_failures += 1
            return set()

    def _author_for(self, info: CommitInfo) -> Author:
        """Known author for the commit email, else a new one enriched with a GitHub login."""
        author = self.authors.find(info.author_email)
        if author is not None:
            return author

        author = Author(name=info.author_name, emails=[info.author_email] if info.author_email else [])
        try:
            remote = self.tracker.get_commit(info.sha)
            if remote.author is not None and remote.author.login:
                author.github = remote.author.login
            else:
                logger.debug("commit_has_no_github_author", sha=info.sha)
        except GitHubError as e:
            logger.debug("author_lookup_failed", sha=info.sha, error=str(e))

        self.authors.add(author)
        return author

    # -- issues and pull requests ----------------------------------------

    def resolve_issues_pass(self) -> None:
        frontier = self.unresolved_issues()
        logger.info("resolving_issues", count=len(frontier))

        for num in frontier:
            self._check_deadline()
            self.resolve_issue(self.issues[num])

    def resolve_issue(self, issue: ChangeIssue) -> None:
        """Fetch an issue/PR, apply the exclusions and link its commits.

        A number the tracker does not know becomes an invalid, skipped
        record. Resolving an already resolved record does nothing.
        """
        if issue.resolved:
            return
        issue.begin_resolving()
        num = issue.num

        try:
            remote = self.tracker.get_issue(num)
            issue.labels.update(label.name for label in remote.labels)

            if remote.is_pull_request:
                pull = self.tracker.get_pull_request(num)
                issue.labels.update(label.name for label in pull.labels)
                issue.title = pull.title
                issue.body = pull.body
                issue.state_name = pull.state
                issue.set_detail(PullRequestDetail(base_ref=pull.base.ref, merged=pull.merged))

                if self.rules.excluded_labels_in(label.name for label in pull.labels):
                    issue.add_skip_reason(Skip.EXCLUDED_LABEL)
                if not pull.merged:
                    issue.add_skip_reason(Skip.NOT_CLOSED)
                if pull.base.ref != self.branch:
                    issue.add_skip_reason(Skip.NOT_CORRECT_BASE_REF)
            else:
                issue.title = remote.title
                issue.body = remote.body
                issue.state_name = remote.state
                issue.set_detail(IssueDetail())

            mentioned = scan(issue.title) | scan_resolutions(issue.body)
            mentioned.discard(num)
            issue.referenced_issues.update(mentioned)
            for ref in sorted(mentioned):
                self._get_issue(ref)

            if self.rules.excluded_labels_in(issue.labels):
                issue.add_skip_reason(Skip.EXCLUDED_LABEL)

            if not issue.skipped:
                self._link_commits(issue)
        except GitHubNotFoundError:
            logger.info("issue_not_found", num=num)
            if issue.detail is None:
                issue.set_detail(InvalidReference())
            issue.add_skip_reason(Skip.INVALID_ISSUE_REF)
        except GitHubError as e:
            if self.fail_fast:
                raise
            logger.warning("issue_resolution_failed", num=num, error=str(e))
            self.stats.remote_failures += 1

        issue.set_resolved()
        self.stats.issues_resolved += 1

    def _link_commits(self, issue: ChangeIssue) -> None:
        num = issue.num
        if issue.type == IssueType.ISSUE:
            for event in self.tracker.get_issue_events(num):
                if event.commit_id:
                    self._link(issue, event.commit_id)
            try:
                references = self.tracker.get_issue_timeline_cross_references(num)
            except GitHubError as e:
                # Only used to fill in base_ref
                logger.warning("cross_references_failed", num=num, error=str(e))
                references = []
            for reference in references:
                if reference.base_ref_name and isinstance(issue.detail, IssueDetail):
                    issue.detail.base_ref = reference.base_ref_name
        elif issue.type == IssueType.PULL_REQUEST:
            for commit in self.tracker.get_pull_request_commits(num):
                self._link(issue, commit.sha)

    def _link(self, issue: ChangeIssue, sha: str) -> None:
        commit = self._get_commit(sha)
        issue.commits.add(commit.sha)
        commit.issue_refs.add(issue.num)

    # -- relevance and grouping ------------------------------------------

    def apply_relevance(self) -> None:
        """Skip every issue/PR none of whose commits survived."""
        for issue in self.issues.values():
            relevant = [
                sha for sha in issue.commits if sha in self.commits and not self.commits[sha].skipped
            ]
            if not relevant:
                issue.add_skip_reason(Skip.NO_RELEVANT_COMMITS)

    def relevant_issues(self) -> List[ChangeIssue]:
        """Non-skipped issues/PRs, highest number first."""
        return sorted(
            (issue for issue in self.issues.values() if not issue.skipped),
            key=lambda issue: issue.num,
            reverse=True,
        )

    def group_changes(self) -> List[Change]:
        """Partition the relevant issues/PRs and their commits into changes.

        Issues are visited from the highest number down; each one not yet
        claimed seeds a new change that pulls in everything reachable from it.
        """
        relevant = self.relevant_issues()
        logger.info("grouping_changes", relevant_issues=len(relevant))

        for issue in relevant:
            if issue.skipped or issue.has_change_ref():
                continue
            change = Change(number=len(self.changes))
            self._collect_into(change, issue.num)
            self.changes.append(change)

        for change in self.changes:
            change.normalize()
        return self.changes

    def _collect_into(self, change: Change, seed: int) -> None:
        pending: Deque[Tuple[str, object]] = deque([("issue", seed)])

        while pending:
            kind, key = pending.popleft()
            if kind == "issue":
                issue = self.issues.get(key)
                if issue is None or issue.skipped or issue.has_change_ref():
                    continue
                issue.set_change_ref(change.number)
                if issue.type == IssueType.ISSUE:
                    change.add_issue(issue)
                elif issue.type == IssueType.PULL_REQUEST:
                    change.add_pull_request(issue)
                pending.extend(("issue", ref) for ref in sorted(issue.referenced_issues))
                pending.extend(("commit", sha) for sha in sorted(issue.commits))
            else:
                commit = self.commits.get(key)
                if commit is None or commit.skipped or commit.has_change_ref():
                    continue
                commit.set_change_ref(change.number)
                change.add_commit(commit)
                change.add_author(commit.author)
                pending.extend(("issue", ref) for ref in sorted(commit.issue_refs))
                pending.extend(("issue", ref) for ref in sorted(commit.pull_request_refs))

    def changed_files(self) -> List[str]:
        """Every interesting path touched by a non-skipped commit, sorted."""
        files: Set[str] = set()
        for commit in self.commits.values():
            if commit.skipped or not commit.files:
                continue
            files.update(commit.files)
        return sorted(files)

    # -- tables -----------------------------------------------------------

    def _get_commit(self, sha: str) -> ChangeCommit:
        key = sha.lower()
        commit = self.commits.get(key)
        if commit is None:
            commit = ChangeCommit(sha=key)
            self.commits[key] = commit
        return commit

    def _get_issue(self, num: int) -> Optional[ChangeIssue]:
        issue = self.issues.get(num)
        if issue is not None:
            return issue
        if len(self.issues) >= self.max_references:
            logger.warning("reference_limit_reached", num=num, limit=self.max_references)
            self.stats.dropped_references += 1
            return None
        issue = ChangeIssue(num=num)
        self.issues[num] = issue
        return issue

    def _check_deadline(self) -> None:
        if self.deadline_seconds is None or self._started is None:
            return
        elapsed = time.monotonic() - self._started
        if elapsed > self.deadline_seconds:
            raise ResolutionDeadlineExceeded(
                f"Resolution exceeded its deadline of {self.deadline_seconds:.0f}s "
                f"({len(self.unresolved_commits())} commits and "
                f"{len(self.unresolved_issues())} issues still unresolved)"
            )

    def _report(self, phase: str) -> None:
        logger.debug("phase", name=phase)
        if self._progress is not None:
            self._progress(phase)
