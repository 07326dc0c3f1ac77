"""GitHub API access."""

from releaselog.github.client import GitHubClient, parse_cross_references
from releaselog.github.errors import (
    GitHubError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubTransportError,
    RateLimitExhaustedError,
)
from releaselog.github.models import (
    CrossReference,
    GitHubCommit,
    GitHubIssue,
    GitHubPullRequest,
    IssueEvent,
    PullRequestCommit,
    RateLimits,
)
from releaselog.github.ratelimit import RateLimiter
from releaselog.github.retry import RetryPolicy, call_with_retries

__all__ = [
    "CrossReference",
    "GitHubClient",
    "GitHubCommit",
    "GitHubError",
    "GitHubIssue",
    "GitHubNotFoundError",
    "GitHubPermissionError",
    "GitHubPullRequest",
    "GitHubTransportError",
    "IssueEvent",
    "PullRequestCommit",
    "RateLimiter",
    "RateLimitExhaustedError",
    "RateLimits",
    "RetryPolicy",
    "call_with_retries",
    "parse_cross_references",
]
