from datetime import UTC, datetime
from logging import Logger, getLogger
from typing import Any

from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.exception import RequestTimeout as GitHubKitRequestTimeout
from pydantic import BaseModel, Field

from repo_synthesis_mcp.clients.models.github import Err, ErrorCode

ExtraInfoType = dict[str, str | None]

FORBIDDEN = 403
REQUEST_TIMEOUT = 408
UNPROCESSABLE_ENTITY = 422
TOO_MANY_REQUESTS = 429
SERVER_ERROR_STATUSES = frozenset({500, 502, 503, 504})
RETRYABLE_STATUSES = frozenset({REQUEST_TIMEOUT, TOO_MANY_REQUESTS, *SERVER_ERROR_STATUSES})

RATE_LIMIT_RESET_HEADER = "x-ratelimit-reset"

DUPLICATE_REPOSITORY_MESSAGE = "Repository already exists. Please choose a different name."

logger = getLogger(__name__)


class ClientError(Exception):
    """An error raised inside the repository synthesis client."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class RequestError(ClientError):
    """A request to the GitHub API failed."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occured.", extra_info={"action": action, "message": message, **extra_info})


class BlobCreationError(RequestError):
    """A blob could not be created while building a commit."""

    def __init__(self, path: str, message: str | None = None, error_code: ErrorCode = ErrorCode.UNKNOWN_API_ERROR):
        self.path = path
        self.reason = message
        self.error_code = error_code
        super().__init__(action="Create blob", message=message, extra_info={"path": path})


class APIFailure(BaseModel):
    """A failed GitHub API call, reduced to the parts needed to classify it."""

    status: int | None = Field(default=None, description="The HTTP status code, if a response was received.")
    message: str | None = Field(default=None, description="The top-level message returned by the API.")
    errors: list[str] = Field(default_factory=list, description="The nested error messages returned by the API.")
    documentation_url: str | None = Field(default=None, description="The documentation URL returned by the API.")
    headers: dict[str, str] = Field(default_factory=dict, description="The response headers, with lowercase names.")

    @property
    def rate_limit_reset(self) -> int | None:
        """The epoch second at which the rate limit resets, if the API reported one."""

        if reset := self.headers.get(RATE_LIMIT_RESET_HEADER):
            try:
                return int(reset)
            except ValueError:
                return None

        return None


def _extract_body(response: Any) -> dict[str, Any]:  # pyright: ignore[reportAny]
    try:
        body = response.json()  # pyright: ignore[reportAny]
    except ValueError:
        return {}

    return body if isinstance(body, dict) else {}  # pyright: ignore[reportUnknownVariableType]


def failure_from_exception(error: GitHubKitGitHubException) -> APIFailure:
    """Convert a githubkit exception into an APIFailure."""

    if isinstance(error, GitHubKitRequestFailed):
        body = _extract_body(error.response)
        nested_errors: list[str] = [
            str(nested["message"])
            for nested in body.get("errors") or []  # pyright: ignore[reportAny]
            if isinstance(nested, dict) and nested.get("message")  # pyright: ignore[reportUnknownMemberType]
        ]
        return APIFailure(
            status=error.response.status_code,
            message=body.get("message") or str(error),
            errors=nested_errors,
            documentation_url=body.get("documentation_url"),
            headers={key.lower(): value for key, value in error.response.headers.items()},
        )

    if isinstance(error, GitHubKitRequestTimeout):
        return APIFailure(status=REQUEST_TIMEOUT, message=str(error) or "The request timed out")

    return APIFailure(message=str(error) or type(error).__name__)


def is_rate_limited(failure: APIFailure) -> bool:
    if failure.status == TOO_MANY_REQUESTS:
        return True

    return failure.status == FORBIDDEN and "rate limit" in (failure.message or "").lower()


def is_retryable(failure: APIFailure) -> bool:
    return failure.status in RETRYABLE_STATUSES


def error_code_for(failure: APIFailure) -> ErrorCode:
    """Map a failure onto the error taxonomy."""

    if is_rate_limited(failure):
        return ErrorCode.RATE_LIMIT

    match failure.status:
        case 401:
            return ErrorCode.AUTH_ERROR
        case 403:
            return ErrorCode.PERMISSION_ERROR
        case 404:
            return ErrorCode.NOT_FOUND
        case 422:
            return ErrorCode.VALIDATION_ERROR
        case status if status in SERVER_ERROR_STATUSES:
            return ErrorCode.SERVER_ERROR
        case _:
            return ErrorCode.UNKNOWN_API_ERROR


def format_error_message(failure: APIFailure) -> str:
    """Produce a user-facing sentence describing the failure."""

    message = (failure.message or "Unknown GitHub API error").rstrip(".")

    if is_rate_limited(failure):
        if failure.status == TOO_MANY_REQUESTS:
            return "Too many requests. Please wait before trying again."
        return "GitHub API rate limit exceeded. Please wait and try again."

    match failure.status:
        case 401:
            return "Authentication failed. Please check your GitHub token."
        case 403:
            return "Access denied. You may not have permission for this operation."
        case 404:
            return "Resource not found. The repository or user may not exist or be accessible."
        case 422:
            combined = " ".join([message, *failure.errors]).lower()
            if "already exists" in combined:
                return DUPLICATE_REPOSITORY_MESSAGE
            return f"Validation failed: {message}."
        case status if status in SERVER_ERROR_STATUSES:
            return "GitHub service is temporarily unavailable. Please try again later."
        case None:
            return f"GitHub API request failed: {message}."
        case status:
            return f"GitHub API error ({status}): {message}."


def describe_failure(failure: APIFailure, operation: str) -> str:
    message = f"{operation} failed. {format_error_message(failure)}"

    if failure.errors and DUPLICATE_REPOSITORY_MESSAGE not in message:
        message += " (" + ", ".join(failure.errors) + ")"

    if failure.documentation_url and failure.status in {FORBIDDEN, UNPROCESSABLE_ENTITY}:
        message += f" See: {failure.documentation_url}"

    return message


def log_failure(
    failure: APIFailure,
    operation: str,
    endpoint: str | None = None,
    parameters: dict[str, Any] | None = None,
    attempt: int | None = None,
    error_logger: Logger | None = None,
) -> None:
    """Log a classified failure with the context it occurred in."""

    timestamp = datetime.now(tz=UTC).isoformat()

    (error_logger or logger).warning(
        f"GitHub API failure during {operation}: endpoint={endpoint} parameters={parameters} status={failure.status} "
        + f"message={failure.message} attempt={attempt} timestamp={timestamp}"
    )


def classify_failure(
    failure: APIFailure,
    operation: str,
    endpoint: str | None = None,
    parameters: dict[str, Any] | None = None,
    attempt: int | None = None,
    error_logger: Logger | None = None,
) -> Err:
    """Classify a failure into an error envelope, logging it first."""

    log_failure(failure, operation=operation, endpoint=endpoint, parameters=parameters, attempt=attempt, error_logger=error_logger)

    return Err(message=describe_failure(failure, operation=operation), error_code=error_code_for(failure))
