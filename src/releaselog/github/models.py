"""Views of GitHub API responses.

Only the fields the changelog needs are declared; anything else in a
response is ignored so newer API versions keep parsing.
"""

import time
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Label(GitHubModel):
    name: str


class User(GitHubModel):
    login: Optional[str] = None


class PullRequestLink(GitHubModel):
    url: Optional[str] = None


class GitHubIssue(GitHubModel):
    """``GET /repos/{owner}/{repo}/issues/{number}``. Pull requests show up here too."""

    number: int
    title: Optional[str] = None
    body: Optional[str] = None
    state: Optional[str] = None
    labels: List[Label] = Field(default_factory=list)
    user: Optional[User] = None
    pull_request: Optional[PullRequestLink] = Field(None, description="Present only for pull requests")

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None


class BranchRef(GitHubModel):
    ref: str
    sha: Optional[str] = None


class GitHubPullRequest(GitHubModel):
    """``GET /repos/{owner}/{repo}/pulls/{number}``."""

    number: int
    title: Optional[str] = None
    body: Optional[str] = None
    state: Optional[str] = None
    labels: List[Label] = Field(default_factory=list)
    base: BranchRef
    merged: bool = False


class CommitDetail(GitHubModel):
    message: Optional[str] = None


class GitHubCommit(GitHubModel):
    """``GET /repos/{owner}/{repo}/commits/{sha}``."""

    sha: str
    author: Optional[User] = Field(None, description="GitHub account of the author, if matched")
    commit: Optional[CommitDetail] = None


class IssueEvent(GitHubModel):
    event: Optional[str] = None
    commit_id: Optional[str] = None


class PullRequestCommit(GitHubModel):
    sha: str


class CrossReference(GitHubModel):
    """A pull request that mentions an issue, from the issue timeline."""

    url: Optional[str] = None
    number: Optional[int] = None
    base_ref_name: Optional[str] = Field(None, alias="baseRefName")


class Rate(GitHubModel):
    limit: int = 0
    used: int = 0
    remaining: int = 0
    reset: int = Field(0, description="Epoch seconds when the window resets")

    def __str__(self) -> str:
        reset_in = self.reset - int(time.time())
        human = f"{reset_in:,}s" if reset_in > 0 else f"{-reset_in:,}s ago"
        return f"Rate[u:{self.used}/l:{self.limit}(r:{self.remaining}),reset={human}]"


class RateLimits(GitHubModel):
    """``GET /rate_limit``."""

    resources: Dict[str, Rate] = Field(default_factory=dict)
    rate: Optional[Rate] = None

    def resource(self, name: str) -> Optional[Rate]:
        return self.resources.get(name) or self.rate
