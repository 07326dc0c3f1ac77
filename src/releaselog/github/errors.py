"""Errors raised by the GitHub client."""

from typing import Optional


class GitHubError(Exception):
    """Base class for GitHub API failures."""


class GitHubNotFoundError(GitHubError):
    """The requested resource does not exist (HTTP 404)."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Resource not found: {path}")
        self.path = path


class GitHubPermissionError(GitHubError):
    """The resource exists but the token may not read it (HTTP 403)."""

    def __init__(self, path: str, status: int = 403) -> None:
        super().__init__(f"Not permitted to get [{path}]: status code: {status}")
        self.path = path
        self.status = status


class GitHubTransportError(GitHubError):
    """Network failure or unexpected HTTP status."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.retryable = retryable
        self.retry_after = retry_after


class RateLimitExhaustedError(GitHubError):
    """No requests left and the reset is too far away to wait for."""

    def __init__(self, resource: str, reset_in: float) -> None:
        super().__init__(f"GitHub rate limit for '{resource}' exhausted, resets in {reset_in:.0f}s")
        self.resource = resource
        self.reset_in = reset_in
