"""Records tracked while resolving a changelog: commits, issues/PRs and changes."""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Set, Union

from pydantic import BaseModel, Field, field_validator


class Skip(str, Enum):
    """Why a commit or issue/PR is left out of the changelog."""

    # Commit has 2 or more parents
    IS_MERGE_COMMIT = "is_merge_commit"
    # Commit has no interesting diff paths left after exclusions
    NO_INTERESTING_PATHS_LEFT = "no_interesting_paths_left"
    # Issue/PR carries an excluded label
    EXCLUDED_LABEL = "excluded_label"
    # "#<num>" points at something the tracker does not know
    INVALID_ISSUE_REF = "invalid_issue_ref"
    # PR targets a different base branch
    NOT_CORRECT_BASE_REF = "not_correct_base_ref"
    # Commit lives on an excluded branch
    EXCLUDED_BRANCH = "excluded_branch"
    # PR was never merged
    NOT_CLOSED = "not_closed"
    # Issue/PR has no commits, or only skipped ones
    NO_RELEVANT_COMMITS = "no_relevant_commits"
    # Commit object is absent from the local repository
    GIT_OBJ_MISSING = "git_obj_missing"


class ResolutionState(str, Enum):
    """Lifecycle of a single record."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class IssueType(str, Enum):
    """Terminal type of an issue/PR record."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"
    INVALID = "invalid"


class ChangeRefAlreadyAssigned(Exception):
    """Raised when a record is put into a second change."""


class Author(BaseModel):
    """Author of a commit.

    Two authors are the same person when they share a GitHub handle, whatever
    names or emails they used. Without a handle the first email is used.
    """

    github: Optional[str] = Field(None, description="GitHub login")
    name: Optional[str] = Field(None, description="Display name")
    emails: List[str] = Field(default_factory=list, description="Known email addresses")
    committer: bool = Field(False, description="Whether this is a project committer")

    @property
    def identity(self) -> str:
        if self.github:
            return "@" + self.github.lower()
        if self.emails:
            return self.emails[0].lower()
        return (self.name or "").lower()

    def nice_name(self) -> str:
        """Name suitable for a changelog credit line."""
        if self.github:
            return "@" + self.github
        if self.name:
            return self.name
        if not self.emails:
            return "unknown"
        return self.emails[0].split("@", 1)[0]

    def has_email(self, email: str) -> bool:
        wanted = email.lower()
        return any(known.lower() == wanted for known in self.emails)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Author):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)


class ChangeRef(BaseModel):
    """Resolution state, skip reasons and change assignment shared by records."""

    state: ResolutionState = ResolutionState.UNRESOLVED
    skip_set: Set[Skip] = Field(default_factory=set)
    change_ref: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.state == ResolutionState.RESOLVED

    @property
    def skipped(self) -> bool:
        return bool(self.skip_set)

    def begin_resolving(self) -> None:
        self.state = ResolutionState.RESOLVING

    def set_resolved(self) -> None:
        self.state = ResolutionState.RESOLVED

    def add_skip_reason(self, skip: Skip) -> None:
        self.skip_set.add(skip)

    def has_change_ref(self) -> bool:
        return self.change_ref is not None

    def set_change_ref(self, number: int) -> None:
        if self.change_ref is not None:
            raise ChangeRefAlreadyAssigned(
                f"{self!r} already belongs to change {self.change_ref}"
            )
        self.change_ref = number


class ChangeCommit(ChangeRef):
    """A commit discovered in the version range or linked from an issue/PR."""

    sha: str = Field(..., description="Lowercase commit SHA")
    author: Optional[Author] = None
    title: Optional[str] = None
    body: Optional[str] = None
    commit_time: Optional[datetime] = None
    files: Optional[List[str]] = Field(None, description="Interesting paths, None until resolved")
    branches: Optional[List[str]] = Field(None, description="Branches containing the commit, None until resolved")
    issue_refs: Set[int] = Field(default_factory=set)
    pull_request_refs: Set[int] = Field(default_factory=set)

    @field_validator("sha")
    @classmethod
    def _lowercase_sha(cls, value: str) -> str:
        return value.lower()

    def __repr__(self) -> str:
        return f"ChangeCommit({self.sha[:10]}: {self.title!r})"


class IssueDetail(BaseModel):
    """Fields that only exist for plain issues."""

    kind: Literal["issue"] = "issue"
    base_ref: Optional[str] = Field(None, description="Base ref of a PR cross-referencing this issue")


class PullRequestDetail(BaseModel):
    """Fields that only exist for pull requests."""

    kind: Literal["pull_request"] = "pull_request"
    base_ref: Optional[str] = None
    merged: bool = False


class InvalidReference(BaseModel):
    """The tracker does not know this number."""

    kind: Literal["invalid"] = "invalid"


IssueVariant = Annotated[
    Union[IssueDetail, PullRequestDetail, InvalidReference],
    Field(discriminator="kind"),
]

_KIND_TO_TYPE = {
    "issue": IssueType.ISSUE,
    "pull_request": IssueType.PULL_REQUEST,
    "invalid": IssueType.INVALID,
}


class ChangeIssue(ChangeRef):
    """An issue or pull request number referenced during resolution."""

    num: int
    title: Optional[str] = None
    body: Optional[str] = None
    state_name: Optional[str] = Field(None, description="Tracker state, e.g. open or closed")
    labels: Set[str] = Field(default_factory=set)
    commits: Set[str] = Field(default_factory=set)
    referenced_issues: Set[int] = Field(default_factory=set)
    detail: Optional[IssueVariant] = None

    @property
    def type(self) -> Optional[IssueType]:
        if self.detail is None:
            return None
        return _KIND_TO_TYPE[self.detail.kind]

    @property
    def base_ref(self) -> Optional[str]:
        if isinstance(self.detail, (IssueDetail, PullRequestDetail)):
            return self.detail.base_ref
        return None

    def set_detail(self, detail: Union[IssueDetail, PullRequestDetail, InvalidReference]) -> None:
        """Fix the issue/PR type. The type can only be decided once."""
        if self.detail is not None:
            raise ValueError(f"#{self.num} is already typed as {self.detail.kind}")
        self.detail = detail

    def has_label(self, label: str) -> bool:
        return label in self.labels

    def __repr__(self) -> str:
        return f"ChangeIssue(#{self.num}: {self.title!r})"


class Change(BaseModel):
    """One logical change in the changelog, grouping commits and issues/PRs."""

    number: int
    authors: List[Author] = Field(default_factory=list)
    commits: List[ChangeCommit] = Field(default_factory=list)
    issues: List[ChangeIssue] = Field(default_factory=list)
    pull_requests: List[ChangeIssue] = Field(default_factory=list)
    ref_number: Optional[int] = None
    ref_title: Optional[str] = None

    @property
    def labels(self) -> Set[str]:
        found: Set[str] = set()
        for issue in self.issues + self.pull_requests:
            found.update(issue.labels)
        return found

    def has_label(self, label: str) -> bool:
        return label in self.labels

    def add_author(self, author: Optional[Author]) -> None:
        if author is None or author in self.authors:
            return
        self.authors.append(author)

    def add_commit(self, commit: ChangeCommit) -> None:
        self.commits.append(commit)

    def add_issue(self, issue: ChangeIssue) -> None:
        self.issues.append(issue)

    def add_pull_request(self, pull_request: ChangeIssue) -> None:
        self.pull_requests.append(pull_request)

    def normalize(self) -> None:
        """Pick the reference shown for this change.

        A pull request wins over a plain issue; among several candidates the
        lowest number (the original one, not a backport) is used. A change
        made only of commits falls back to the first commit title.
        """
        candidates = self.pull_requests or self.issues
        if candidates:
            ref = min(candidates, key=lambda issue: issue.num)
            self.ref_number = ref.num
            self.ref_title = ref.title
        elif self.commits:
            self.ref_number = None
            self.ref_title = self.commits[0].title
