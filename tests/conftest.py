import json
from collections.abc import Sequence
from typing import Any, overload

import httpx
import pytest
from githubkit.exception import RequestFailed, RequestTimeout
from githubkit.response import Response
from pydantic import BaseModel

from repo_synthesis_mcp.clients.github import GitHubAPIClient
from repo_synthesis_mcp.clients.models.github import Err, ErrorCode, Ok, Result

GITHUB_API_URL = "https://api.github.com"


# Githubkit fakes


class FakeResponse:
    """Quacks like a githubkit Response for successful calls."""

    def __init__(self, data: Any = None, status_code: int = 200):
        self.data = data
        self.status_code = status_code
        self.headers: dict[str, str] = {}

    @property
    def content(self) -> bytes:
        return b"" if self.data is None else json.dumps(self.data).encode()

    def json(self) -> Any:
        return self.data


def make_request_failed(
    status_code: int,
    body: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    method: str = "GET",
    url: str = "/repos/owner/repo",
) -> RequestFailed:
    httpx_response = httpx.Response(
        status_code=status_code,
        json=body or {},
        headers=headers,
        request=httpx.Request(method=method, url=f"{GITHUB_API_URL}{url}"),
    )
    return RequestFailed(Response(httpx_response, Any))


def make_request_timeout() -> RequestTimeout:
    request = httpx.Request(method="GET", url=f"{GITHUB_API_URL}/user")
    return RequestTimeout(httpx.ReadTimeout("The read operation timed out", request=request))


class FakeGitHubKit:
    """Records every `arequest` and replays the scripted outcomes in order."""

    def __init__(self, outcomes: Sequence[FakeResponse | Exception]):
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def arequest(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})

        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome

        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


# API client fake


class FakeAPIClient(GitHubAPIClient):
    """Answers requests from a routing table keyed by `METHOD endpoint` and records every request made."""

    def __init__(self, routes: dict[str, Result[Any] | list[Result[Any]]] | None = None, available: bool = True):
        super().__init__(githubkit_client=None, token="", retry_attempts=1, retry_delay=0)
        self.routes = routes or {}
        self.available = available
        self.calls: list[dict[str, Any]] = []

    @property
    def is_available(self) -> bool:
        return self.available

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        action: str | None = None,
    ) -> Result[Any]:
        self.calls.append({"method": method, "endpoint": endpoint, "body": body, "headers": headers, "params": params})

        route = self.routes.get(f"{method} {endpoint}")

        if route is None:
            return Err(message=f"{action} failed. Resource not found.", error_code=ErrorCode.NOT_FOUND)

        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]

        return route

    def calls_to(self, method: str, endpoint: str | None = None) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["method"] == method and (endpoint is None or call["endpoint"] == endpoint)]


def ok(data: Any = None) -> Ok[Any]:
    return Ok(data=data)


def err(error_code: ErrorCode, message: str = "Request failed.") -> Err:
    return Err(message=message, error_code=error_code)


# Snapshot helpers


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]]:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]
