"""GitHub API client used by staleness sweeps.

Wraps the REST and GraphQL endpoints a sweep needs:
- open assigned issues and issue timelines (page-numbered pagination)
- activity label removal and addition
- escalation notice comments
- comment minimization (GraphQL ``minimizeComment``)
- project board status of an issue (GraphQL ``projectItems``)

Transient failures are retried here with exponential backoff; callers only
ever see a parsed response or a GitHubAPIError.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx


logger = logging.getLogger(__name__)


DEFAULT_PAGE_SIZE = 100

MINIMIZE_COMMENT_MUTATION = """
mutation MinimizeComment($subjectId: ID!, $classifier: ReportedContentClassifiers!) {
  minimizeComment(input: {subjectId: $subjectId, classifier: $classifier}) {
    minimizedComment {
      isMinimized
      minimizedReason
    }
  }
}
"""

ISSUE_STATUS_QUERY = """
query IssueStatus($owner: String!, $repo: String!, $number: Int!, $field: String!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      projectItems(first: 100) {
        nodes {
          fieldValueByName(name: $field) {
            ... on ProjectV2ItemFieldSingleSelectValue {
              name
            }
          }
        }
      }
    }
  }
}
"""


class GitHubAPIError(Exception):
    """A GitHub request that did not succeed.

    Attributes:
        message: What went wrong.
        status_code: HTTP status, when a response was received.
        response_body: Raw response text, when a response was received.
        request_url: URL of the failed request.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """The primary or secondary rate limit was hit.

    Attributes:
        reset_at: Unix time at which the quota resets, if reported.
        retry_after: Seconds GitHub asked us to wait, if reported.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GitHubClient:
    """Async GitHub client with retries, rate-limit detection and pagination.

    Works against github.com and GitHub Enterprise Server (``/api/v3``).

    Attributes:
        token: Token sent as a Bearer credential.
        base_url: REST API root.
        max_retries: Retries after the first attempt for transient failures.
        base_delay: First backoff ceiling in seconds; doubles per attempt.
        max_delay: Upper bound on any backoff ceiling.
        timeout: Per-request timeout in seconds.
        page_size: ``per_page`` used when paginating.

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     events = await client.list_timeline("owner", "repo", 123)
    """

    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self.page_size = page_size
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client, created on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
            )
        return self._client

    @property
    def graphql_url(self) -> str:
        """GraphQL endpoint matching the REST base URL.

        GitHub Enterprise Server serves REST under /api/v3 and GraphQL
        under /api/graphql; github.com serves GraphQL at /graphql.
        """
        if self.base_url.endswith("/api/v3"):
            return self.base_url[: -len("/v3")] + "/graphql"
        return f"{self.base_url}/graphql"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "IssueStalenessMonitor/1.0",
        }

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Full-jitter delay for a 0-indexed retry attempt."""
        ceiling = min(self.base_delay * (2 ** attempt), self.max_delay)
        return random.uniform(0, ceiling)

    @staticmethod
    def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
        value = headers.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def _rate_limit_error(self, response: httpx.Response) -> RateLimitError:
        reset_at = self._int_header(response.headers, "x-ratelimit-reset")
        retry_after = self._int_header(response.headers, "retry-after")
        if retry_after is None and reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        logger.warning(
            "Rate limited by GitHub",
            extra={
                "status_code": response.status_code,
                "reset_at": reset_at,
                "retry_after": retry_after,
                "limit": self._int_header(response.headers, "x-ratelimit-limit"),
                "used": self._int_header(response.headers, "x-ratelimit-used"),
            },
        )
        return RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.request.url),
        )

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.status_code == 429:
            return True
        return (
            response.status_code == 403
            and self._int_header(response.headers, "x-ratelimit-remaining") == 0
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method.
            path: Path relative to ``base_url``, or an absolute URL.
            json_data: JSON request body.
            params: Query string parameters.

        Returns:
            The first successful response.

        Raises:
            RateLimitError: On 429, or 403 with an exhausted quota.
            GitHubAPIError: On any other error status, or when retries run out.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            retries_left = attempt < self.max_retries
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                    params=params,
                )
            except httpx.RequestError as e:
                last_error = e
                if retries_left:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Transport error talking to GitHub, retrying",
                        extra={
                            "error": str(e),
                            "attempt": attempt + 1,
                            "delay": delay,
                            "path": path,
                        },
                    )
                    await asyncio.sleep(delay)
                    continue
                break

            if self._is_rate_limited(response):
                raise self._rate_limit_error(response)

            if response.status_code in self.RETRYABLE_STATUS_CODES and retries_left:
                delay = self._calculate_backoff(attempt)
                logger.warning(
                    "Transient GitHub error, retrying",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1,
                        "delay": delay,
                        "path": path,
                    },
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                logger.error(
                    "GitHub request failed",
                    extra={
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                        "response_body": response.text[:500],
                    },
                )
                raise GitHubAPIError(
                    message=f"GitHub API error: {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                    request_url=str(response.url),
                )

            return response

        logger.error(
            "GitHub request failed after retries",
            extra={
                "method": method,
                "path": path,
                "max_retries": self.max_retries,
                "last_error": str(last_error),
            },
        )
        raise GitHubAPIError(
            message=f"Request failed after {self.max_retries} retries: {last_error}",
            request_url=f"{self.base_url}{path}",
        )

    async def _paginate(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Collect every item of a page-numbered list endpoint.

        Pages are requested in order until an empty page is returned.

        Raises:
            GitHubAPIError: If any page request fails.
        """
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            query = dict(params or {})
            query.update({"per_page": self.page_size, "page": page})
            response = await self._request(method="GET", path=path, params=query)
            data = response.json()
            if not data:
                break
            items.extend(data)
            page += 1

        logger.debug(
            "Paginated list fetched",
            extra={"path": path, "pages": page - 1, "items": len(items)},
        )
        return items

    async def list_assigned_issues(
        self,
        owner: str,
        repo: str,
    ) -> List[Dict[str, Any]]:
        """List open issues with at least one assignee.

        The issues endpoint also returns pull requests; those carry a
        ``pull_request`` key and are left for the caller to filter.
        """
        logger.info(
            "Listing assigned issues",
            extra={"owner": owner, "repo": repo},
        )
        return await self._paginate(
            f"/repos/{owner}/{repo}/issues",
            params={"state": "open", "assignee": "*"},
        )

    async def list_timeline(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[Dict[str, Any]]:
        """List the complete timeline of an issue, oldest event first."""
        return await self._paginate(
            f"/repos/{owner}/{repo}/issues/{issue_number}/timeline"
        )

    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Post a markdown comment on an issue and return the created comment."""
        context = {"owner": owner, "repo": repo, "issue_number": issue_number}

        response = await self._request(
            method="POST",
            path=f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json_data={"body": body},
        )
        comment = response.json()

        logger.info(
            "Notice comment posted",
            extra={**context, "comment_id": comment.get("id"), "body_length": len(body)},
        )
        return comment

    async def add_labels(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        labels: List[str],
    ) -> List[Dict[str, Any]]:
        """Add labels to an issue in one call.

        Returns:
            The issue's labels after the call.
        """
        response = await self._request(
            method="POST",
            path=f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json_data={"labels": labels},
        )

        logger.info(
            "Labels added",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "labels": labels,
            },
        )
        return response.json()

    async def remove_label(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        label: str,
    ) -> bool:
        """Remove one label from an issue.

        Returns:
            False when the label was not on the issue (404), True otherwise.

        Raises:
            GitHubAPIError: For any failure other than 404.
        """
        context = {
            "owner": owner,
            "repo": repo,
            "issue_number": issue_number,
            "label": label,
        }
        path = (
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels/"
            f"{quote(label, safe='')}"
        )

        try:
            await self._request(method="DELETE", path=path)
        except GitHubAPIError as e:
            if e.status_code != 404:
                raise
            logger.debug("Label not present on issue", extra=context)
            return False

        logger.info("Label removed", extra=context)
        return True

    async def graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a GraphQL query or mutation.

        Returns:
            The ``data`` member of the GraphQL response.

        Raises:
            GitHubAPIError: If the request fails or the response has errors.
        """
        response = await self._request(
            method="POST",
            path=self.graphql_url,
            json_data={"query": query, "variables": variables or {}},
        )
        payload = response.json()

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) for e in errors)
            logger.error(
                "GitHub GraphQL error",
                extra={"errors": messages},
            )
            raise GitHubAPIError(
                message=f"GitHub GraphQL error: {messages}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=self.graphql_url,
            )

        return payload.get("data") or {}

    async def minimize_comment(
        self,
        node_id: str,
        classifier: str = "OUTDATED",
    ) -> bool:
        """Minimize (collapse) a comment without deleting it.

        Args:
            node_id: GraphQL node id of the comment.
            classifier: Reason shown for the minimized comment.

        Returns:
            True if GitHub reports the comment as minimized.

        Raises:
            GitHubAPIError: If the mutation fails.
        """
        data = await self.graphql(
            MINIMIZE_COMMENT_MUTATION,
            {"subjectId": node_id, "classifier": classifier},
        )
        minimized = (
            (data.get("minimizeComment") or {}).get("minimizedComment") or {}
        ).get("isMinimized", False)

        logger.info(
            "Comment minimized",
            extra={"node_id": node_id, "is_minimized": minimized},
        )
        return bool(minimized)

    async def get_issue_status(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        field_name: str = "Status",
    ) -> Optional[str]:
        """Return the issue's project board status.

        The status is the single-select ``field_name`` value of the first
        project item that has one.

        Returns:
            The status option name, or None when the issue is on no project
            or no project sets the field.

        Raises:
            GitHubAPIError: If the query fails.
        """
        data = await self.graphql(
            ISSUE_STATUS_QUERY,
            {
                "owner": owner,
                "repo": repo,
                "number": issue_number,
                "field": field_name,
            },
        )
        issue = (data.get("repository") or {}).get("issue") or {}
        items = (issue.get("projectItems") or {}).get("nodes") or []

        for item in items:
            value = (item or {}).get("fieldValueByName") or {}
            if value.get("name"):
                return value["name"]
        return None

    async def health_check(self) -> bool:
        """Check that the API is reachable and the token is accepted."""
        try:
            response = await self.client.get("/rate_limit")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(
                "GitHub API health check failed",
                extra={"error": str(e)},
            )
            return False
