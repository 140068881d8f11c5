import asyncio
import os
import time
from collections.abc import Awaitable, Callable
from logging import Logger, getLogger
from typing import Any, Literal

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException

from repo_synthesis_mcp.clients.errors.github import (
    APIFailure,
    classify_failure,
    failure_from_exception,
    is_rate_limited,
    is_retryable,
)
from repo_synthesis_mcp.clients.models.github import Err, Ok, Result, token_missing

DEFAULT_BASE_URL = "https://api.github.com"
USER_AGENT = "Repo-Synthesis-MCP"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0

DEFAULT_RATE_LIMIT_WAIT_SECONDS = 60.0
MINIMUM_RATE_LIMIT_WAIT_SECONDS = 1.0

HTTPMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

SleepFunction = Callable[[float], Awaitable[Any]]


def get_github_token() -> str | None:
    for env_var in ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"):
        if token := os.getenv(env_var):
            return token
    return None


def get_base_url() -> str:
    return os.getenv("GITHUB_API_URL", DEFAULT_BASE_URL)


def get_request_timeout() -> float:
    return float(os.getenv("GITHUB_REQUEST_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))


def get_retry_attempts() -> int:
    return int(os.getenv("GITHUB_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS)))


def get_retry_delay() -> float:
    return float(os.getenv("GITHUB_RETRY_DELAY", str(DEFAULT_RETRY_DELAY_SECONDS)))


def get_githubkit_client(token: str, base_url: str | None = None, timeout: float | None = None) -> GitHubKit[TokenAuthStrategy]:
    # Retries are handled by GitHubAPIClient so that rate limits and backoff follow a single policy
    return GitHubKit[TokenAuthStrategy](
        auth=TokenAuthStrategy(token=token),
        base_url=base_url or get_base_url(),
        user_agent=USER_AGENT,
        timeout=timeout or get_request_timeout(),
        auto_retry=False,
    )


class GitHubAPIClient:
    """Authenticated GitHub REST request executor with retry, backoff and rate-limit handling.

    Every request returns a Result; nothing raises past this class."""

    githubkit_client: GitHubKit[Any] | None
    logger: Logger

    retry_attempts: int
    retry_delay: float

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        logger: Logger | None = None,
        sleep: SleepFunction | None = None,
        clock: Callable[[], float] | None = None,
    ):
        if githubkit_client is None and (token := token or get_github_token()):
            githubkit_client = get_githubkit_client(token=token, base_url=base_url, timeout=timeout)

        self.githubkit_client = githubkit_client
        self.retry_attempts = max(1, retry_attempts if retry_attempts is not None else get_retry_attempts())
        self.retry_delay = retry_delay if retry_delay is not None else get_retry_delay()
        self.logger = logger or getLogger(__name__)
        self.sleep = sleep or asyncio.sleep
        self.clock = clock or time.time

    @property
    def is_available(self) -> bool:
        """Whether a token was provided, without it every request is skipped."""
        return self.githubkit_client is not None

    async def request(
        self,
        endpoint: str,
        method: HTTPMethod = "GET",
        body: Any | None = None,  # pyright: ignore[reportAny]
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        action: str | None = None,
    ) -> Result[Any]:
        """Perform a request against the GitHub REST API.

        Args:
            endpoint: The path of the endpoint, for example `/repos/{owner}/{repo}`.
            method: The HTTP method.
            body: The JSON body to send.
            headers: Extra headers to send.
            params: Query parameters to send.
            action: A human readable name for the operation, used in messages and logs.
        """

        if self.githubkit_client is None:
            return token_missing()

        action = action or f"{method} {endpoint}"

        failure: APIFailure | None = None

        for attempt in range(1, self.retry_attempts + 1):
            retry_text = f" (attempt {attempt})" if attempt > 1 else ""
            self.logger.info(f"Performing {action}: {method} {endpoint}{retry_text}")

            try:
                response = await self.githubkit_client.arequest(method, endpoint, params=params, json=body, headers=headers)
            except GitHubKitGitHubException as e:
                failure = failure_from_exception(e)
            else:
                data = response.json() if response.content else None  # pyright: ignore[reportAny]
                self.logger.debug(f"Completed {action}: {method} {endpoint} returned {response.status_code}")
                return Ok(data=data, message=f"{action} completed successfully.")

            if is_rate_limited(failure):
                if attempt == self.retry_attempts:
                    break
                await self._wait_for_rate_limit(failure)
                continue

            if not is_retryable(failure) or attempt == self.retry_attempts:
                break

            await self.sleep(self.retry_delay * attempt)

        return self._classify(failure, action=action, endpoint=endpoint, params=params, attempts=self.retry_attempts)

    def _classify(
        self, failure: APIFailure | None, action: str, endpoint: str, params: dict[str, Any] | None, attempts: int
    ) -> Err:
        failure = failure or APIFailure(message="No attempts were made")
        return classify_failure(
            failure, operation=action, endpoint=endpoint, parameters=params, attempt=attempts, error_logger=self.logger
        )

    async def _wait_for_rate_limit(self, failure: APIFailure) -> None:
        wait_seconds = DEFAULT_RATE_LIMIT_WAIT_SECONDS

        if (reset := failure.rate_limit_reset) is not None:
            wait_seconds = max(reset - self.clock(), MINIMUM_RATE_LIMIT_WAIT_SECONDS)

        self.logger.warning(f"GitHub API rate limit hit, waiting {wait_seconds:.0f}s before retrying")

        await self.sleep(wait_seconds)

    async def get(
        self, endpoint: str, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None, action: str | None = None
    ) -> Result[Any]:
        return await self.request(endpoint, method="GET", params=params, headers=headers, action=action)

    async def post(
        self, endpoint: str, body: Any | None = None, headers: dict[str, str] | None = None, action: str | None = None
    ) -> Result[Any]:
        return await self.request(endpoint, method="POST", body=body, headers=headers, action=action)

    async def put(
        self, endpoint: str, body: Any | None = None, headers: dict[str, str] | None = None, action: str | None = None
    ) -> Result[Any]:
        return await self.request(endpoint, method="PUT", body=body, headers=headers, action=action)

    async def patch(
        self, endpoint: str, body: Any | None = None, headers: dict[str, str] | None = None, action: str | None = None
    ) -> Result[Any]:
        return await self.request(endpoint, method="PATCH", body=body, headers=headers, action=action)

    async def delete(self, endpoint: str, headers: dict[str, str] | None = None, action: str | None = None) -> Result[Any]:
        return await self.request(endpoint, method="DELETE", headers=headers, action=action)
