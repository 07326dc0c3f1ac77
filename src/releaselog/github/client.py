"""GitHub REST/GraphQL client with a persistent response cache."""

import json
import time
from typing import Any, Callable, Dict, List, Optional

import requests
import structlog
from pydantic import TypeAdapter

from releaselog.cache.response_cache import NOT_FOUND, ResponseCache
from releaselog.github.errors import (
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubTransportError,
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
from releaselog.models.config import Settings

logger = structlog.get_logger(__name__)

API_VERSION = "2022-11-28"
PAGE_SIZE = 100

_CROSS_REFERENCE_QUERY = """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    issue(number: $number) {
      timelineItems(itemTypes: [CROSS_REFERENCED_EVENT], first: 100) {
        nodes {
          ... on CrossReferencedEvent {
            source {
              ... on PullRequest {
                url
                number
                baseRefName
              }
            }
          }
        }
      }
    }
  }
}
"""

_pull_requests = TypeAdapter(List[GitHubPullRequest])
_issue_events = TypeAdapter(List[IssueEvent])
_pull_request_commits = TypeAdapter(List[PullRequestCommit])


def _retry_after(response: requests.Response) -> Optional[float]:
    """Seconds to wait before retrying, from Retry-After or X-RateLimit-Reset."""
    value = response.headers.get("Retry-After")
    if value:
        try:
            return max(0.0, float(value))
        except ValueError:
            pass
    reset = response.headers.get("X-RateLimit-Reset")
    if reset:
        try:
            return max(0.0, float(reset) - time.time())
        except ValueError:
            pass
    return None


class GitHubClient:
    """Read-only access to one GitHub repository.

    Every successful GET body is written to the response cache and served
    from it on later runs. A 404 is cached as a negative entry, a 403 is not
    cached at all.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        session: Optional[requests.Session] = None,
        api_url: str = "https://api.github.com",
        request_timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        max_rate_wait: float = 900.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize client.

        Args:
            owner: Repository owner (user or organisation)
            repo: Repository name
            token: Personal access token; anonymous access when None
            cache: Response cache; nothing is cached when None
            session: requests session to send through
            api_url: Base API URL
            request_timeout: Per-request timeout in seconds
            retry_policy: Retry policy for transport failures
            max_rate_wait: Longest wait for a rate limit reset before giving up
            sleep: Sleep function, replaceable in tests
        """
        self.owner = owner
        self.repo = repo
        self.cache = cache
        self.api_url = api_url.rstrip("/")
        self.request_timeout = request_timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "releaselog",
            }
        )
        self.authenticated = bool(token)
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        self.rate_limiter = RateLimiter(self.get_rate_limits, max_wait=max_rate_wait, sleep=sleep)
        self.requests_sent = 0

        logger.info("github_client_ready", repo=f"{owner}/{repo}", authenticated=bool(token))

    @classmethod
    def from_settings(
        cls,
        owner: str,
        repo: str,
        settings: Settings,
        cache: Optional[ResponseCache] = None,
    ) -> "GitHubClient":
        token = settings.resolve_token()
        if not token:
            logger.warning("github_anonymous_access")
        return cls(
            owner,
            repo,
            token=token,
            cache=cache,
            api_url=settings.github_api_url,
            request_timeout=settings.request_timeout,
            retry_policy=RetryPolicy(
                max_retries=settings.max_retries,
                backoff_base=settings.backoff_base,
                max_backoff=settings.max_backoff,
            ),
            max_rate_wait=settings.max_rate_wait,
        )

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> str:
        """One attempt at a request, mapping the status onto an error type."""
        url = self.api_url + path
        try:
            response = self.session.request(method, url, json=payload, timeout=self.request_timeout)
        except requests.RequestException as e:
            raise GitHubTransportError(f"Unable to {method} {url}: {e}", retryable=True) from e
        self.requests_sent += 1

        status = response.status_code
        if status == 200:
            return response.text
        if status == 404:
            raise GitHubNotFoundError(path)
        if status == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                raise GitHubTransportError(
                    f"Rate limited on {method} {url}",
                    status=status,
                    retryable=True,
                    retry_after=_retry_after(response),
                )
            raise GitHubPermissionError(path, status)
        if status == 429 or status >= 500:
            raise GitHubTransportError(
                f"Unable to {method} {url}: status code: {status}",
                status=status,
                retryable=True,
                retry_after=_retry_after(response),
            )
        raise GitHubTransportError(f"Unable to {method} {url}: status code: {status}", status=status)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> str:
        def attempt() -> str:
            self.rate_limiter.acquire()
            return self._send(method, path, payload)

        return call_with_retries(attempt, self.retry_policy, sleep=self._sleep)

    def _get_cached_body(self, path: str) -> str:
        """GET ``path``, serving from and filling the response cache.

        Raises:
            GitHubNotFoundError: If the resource is (or was previously) missing
            GitHubPermissionError: On HTTP 403
            GitHubTransportError: On other failures after retries
        """
        if self.cache is not None:
            cached = self.cache.get(path)
            if cached is NOT_FOUND:
                raise GitHubNotFoundError(path)
            if cached is not None:
                return cached

        try:
            body = self._request("GET", path)
        except GitHubNotFoundError:
            if self.cache is not None:
                self.cache.put_not_found(path)
            raise

        if self.cache is not None:
            self.cache.put(path, body)
        return body

    def get_rate_limits(self) -> Optional[RateLimits]:
        """Current quota. Never cached and not counted against the quota.

        Returns:
            The quota, or None when the server has rate limiting disabled
            (GitHub Enterprise answers 404)

        Raises:
            GitHubTransportError: On any other failure
        """
        try:
            body = call_with_retries(lambda: self._send("GET", "/rate_limit"), self.retry_policy, sleep=self._sleep)
        except GitHubNotFoundError:
            logger.info("github_rate_limit_disabled", api_url=self.api_url)
            return None
        except GitHubPermissionError as e:
            raise GitHubTransportError(str(e), status=e.status) from e
        return RateLimits.model_validate_json(body)

    def get_commit(self, sha: str) -> GitHubCommit:
        body = self._get_cached_body(f"{self.repo_path}/commits/{sha}")
        return GitHubCommit.model_validate_json(body)

    def get_issue(self, number: int) -> GitHubIssue:
        """Fetch an issue or pull request by number.

        Args:
            number: Issue number

        Returns:
            The issue; ``is_pull_request`` tells the two apart
        """
        body = self._get_cached_body(f"{self.repo_path}/issues/{number}")
        return GitHubIssue.model_validate_json(body)

    def get_pull_request(self, number: int) -> GitHubPullRequest:
        body = self._get_cached_body(f"{self.repo_path}/pulls/{number}")
        return GitHubPullRequest.model_validate_json(body)

    def get_pull_requests_for_commit(self, sha: str) -> List[GitHubPullRequest]:
        body = self._get_cached_body(f"{self.repo_path}/commits/{sha}/pulls")
        return _pull_requests.validate_json(body)

    def get_issue_events(self, number: int) -> List[IssueEvent]:
        body = self._get_cached_body(f"{self.repo_path}/issues/{number}/events?per_page={PAGE_SIZE}")
        return _issue_events.validate_json(body)

    def get_pull_request_commits(self, number: int) -> List[PullRequestCommit]:
        body = self._get_cached_body(f"{self.repo_path}/pulls/{number}/commits?per_page={PAGE_SIZE}")
        return _pull_request_commits.validate_json(body)

    def get_issue_timeline_cross_references(self, number: int) -> List[CrossReference]:
        """Pull requests that cross-reference an issue, via GraphQL.

        Args:
            number: Issue number

        Returns:
            Cross-referencing pull requests; empty if the issue is unknown
            or the client has no token (GraphQL requires authentication)
        """
        if not self.authenticated:
            logger.debug("cross_references_skipped_anonymous", number=number)
            return []

        key = f"/graphql{self.repo_path}/issues/{number}/cross-references"
        body = None
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None and cached is not NOT_FOUND:
                body = cached

        if body is None:
            payload = {
                "query": _CROSS_REFERENCE_QUERY,
                "variables": {"owner": self.owner, "name": self.repo, "number": number},
            }
            body = self._request("POST", "/graphql", payload)
            # Error answers come back as 200 with data: null
            if self.cache is not None and _timeline_issue(body) is not None:
                self.cache.put(key, body)

        return parse_cross_references(body)


def _timeline_issue(body: str) -> Optional[Dict[str, Any]]:
    data = json.loads(body)
    if not isinstance(data, dict):
        return None
    return ((data.get("data") or {}).get("repository") or {}).get("issue") or None


def parse_cross_references(body: str) -> List[CrossReference]:
    """Pull the cross-referencing pull requests out of a GraphQL timeline answer."""
    issue = _timeline_issue(body)
    if not issue:
        return []

    references = []
    for node in (issue.get("timelineItems") or {}).get("nodes") or []:
        source = (node or {}).get("source") or {}
        if not source.get("url"):
            continue
        references.append(CrossReference.model_validate(source))
    return references
