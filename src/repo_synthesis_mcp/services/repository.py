import asyncio
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from logging import Logger, getLogger
from typing import Any, Literal, override

from repo_synthesis_mcp.clients.github import GitHubAPIClient, SleepFunction
from repo_synthesis_mcp.clients.models.github import (
    BulkDeleteEntry,
    BulkDeleteProgress,
    BulkDeleteReport,
    CreatedRepository,
    Err,
    ErrorCode,
    Ok,
    OwnerType,
    RepoConfig,
    RepoIdentifier,
    RepositoryInfo,
    RepositoryListing,
    Result,
    token_missing,
)
from repo_synthesis_mcp.services.auth import GitHubAuthService

DELETION_PAUSE_SECONDS = 1.0
MAX_PER_PAGE = 100

MAX_REPOSITORY_NAME_LENGTH = 100
FALLBACK_REPOSITORY_NAME = "generated-project"

ProgressCallback = Callable[[BulkDeleteProgress], Any]

RepositorySort = Literal["created", "updated", "pushed", "full_name"]
SortDirection = Literal["asc", "desc"]
RepositoryType = Literal["all", "owner", "public", "private", "member", "forks", "sources"]


def generate_repo_name(project_name: str) -> str:
    """Turn a free-form project name into a valid GitHub repository name."""

    name = re.sub(r"[^a-z0-9\-_.]", "-", project_name.lower())
    name = re.sub(r"^[-_.]+|[-_.]+$", "", name)
    name = re.sub(r"[-_.]{2,}", "-", name)

    return name[:MAX_REPOSITORY_NAME_LENGTH] or FALLBACK_REPOSITORY_NAME


class DeletionStrategy(ABC):
    """How a single entry of a bulk deletion is processed."""

    dry_run: bool

    @abstractmethod
    async def process(self, service: "RepositoryService", identifier: RepoIdentifier) -> BulkDeleteEntry: ...


class DryRunDeletion(DeletionStrategy):
    """Only checks that each repository exists and is accessible."""

    dry_run: bool = True

    @override
    async def process(self, service: "RepositoryService", identifier: RepoIdentifier) -> BulkDeleteEntry:
        response = await service.get_repository_info(owner=identifier.owner, repo=identifier.repo)

        if isinstance(response, Err):
            message = f"Repository {identifier.full_name} check failed: {response.message}"
            return BulkDeleteEntry(owner=identifier.owner, repo=identifier.repo, success=False, message=message)

        message = f"Repository {identifier.full_name} exists and is accessible."
        return BulkDeleteEntry(owner=identifier.owner, repo=identifier.repo, success=True, message=message)


class LiveDeletion(DeletionStrategy):
    """Deletes each repository, pausing after every deletion to stay clear of secondary rate limits."""

    dry_run: bool = False

    sleep: SleepFunction
    pause_seconds: float

    def __init__(self, sleep: SleepFunction | None = None, pause_seconds: float = DELETION_PAUSE_SECONDS):
        self.sleep = sleep or asyncio.sleep
        self.pause_seconds = pause_seconds

    @override
    async def process(self, service: "RepositoryService", identifier: RepoIdentifier) -> BulkDeleteEntry:
        response = await service.delete_repository(owner=identifier.owner, repo=identifier.repo)

        await self.sleep(self.pause_seconds)

        return BulkDeleteEntry(owner=identifier.owner, repo=identifier.repo, success=response.success, message=response.message)


class RepositoryService:
    """Creates, deletes, lists and describes repositories."""

    api_client: GitHubAPIClient
    auth_service: GitHubAuthService
    logger: Logger

    def __init__(
        self,
        api_client: GitHubAPIClient,
        auth_service: GitHubAuthService,
        logger: Logger | None = None,
        sleep: SleepFunction | None = None,
    ):
        self.api_client = api_client
        self.auth_service = auth_service
        self.logger = logger or getLogger(__name__)
        self.sleep = sleep or asyncio.sleep

    async def create_repository(self, config: RepoConfig) -> Result[CreatedRepository]:
        """Create a repository under a user or an organization.

        User repositories can only be created for the authenticated user. Repositories are initialized with a README so
        that a default branch and an initial commit exist for later commits to build on."""

        if not self.api_client.is_available:
            return token_missing(action="Repository creation")

        owner_type = await self.auth_service.check_owner_type(config.owner)
        if isinstance(owner_type, Err):
            return owner_type

        if owner_type.data == OwnerType.USER:
            authenticated_user = await self.auth_service.get_authenticated_user()
            if isinstance(authenticated_user, Err):
                return authenticated_user

            if authenticated_user.data.login != config.owner:
                return Err(
                    message=(
                        f"Cannot create repository {config.full_name}: user '{config.owner}' is not the authenticated user "
                        + f"'{authenticated_user.data.login}'."
                    ),
                    error_code=ErrorCode.PERMISSION_ERROR,
                )

            endpoint = "/user/repos"
        else:
            endpoint = f"/orgs/{config.owner}/repos"

        body = {
            "name": config.repo,
            "description": config.description or f"Generated project: {config.repo}",
            "private": config.private,
            "auto_init": True,
        }

        self.logger.info(f"Creating repository {config.full_name} as {owner_type.data} repository")

        response = await self.api_client.post(endpoint, body=body, action="Create repository")

        if isinstance(response, Err):
            if response.error_code == ErrorCode.VALIDATION_ERROR:
                return Err(
                    message=f"Repository {config.full_name} already exists or access was denied. {response.message}",
                    error_code=response.error_code,
                )
            return response

        repository = CreatedRepository.from_repository_data(response.data)

        return Ok(data=repository, message=f"Repository {repository.full_name} created successfully.")

    async def get_repository(self, owner: str, repo: str) -> Result[dict[str, Any]]:
        """Get the raw metadata of a repository."""

        if not self.api_client.is_available:
            return token_missing()

        return await self.api_client.get(f"/repos/{owner}/{repo}", action="Get repository")

    async def get_repository_info(self, owner: str, repo: str) -> Result[RepositoryInfo]:
        response = await self.get_repository(owner=owner, repo=repo)

        if isinstance(response, Err):
            return response

        return Ok(data=RepositoryInfo.from_repository_data(response.data), message=f"Retrieved repository {owner}/{repo}.")

    async def delete_repository(self, owner: str, repo: str) -> Result[None]:
        """Delete a repository after checking that it exists and is accessible."""

        if not self.api_client.is_available:
            return token_missing(action="Repository deletion")

        existing = await self.get_repository_info(owner=owner, repo=repo)

        if isinstance(existing, Err):
            if existing.error_code == ErrorCode.NOT_FOUND:
                return Err(message=f"Repository {owner}/{repo} was not found or is not accessible.", error_code=ErrorCode.NOT_FOUND)
            return existing

        self.logger.info(f"Deleting repository {owner}/{repo}")

        response = await self.api_client.delete(f"/repos/{owner}/{repo}", action="Delete repository")

        if isinstance(response, Err):
            match response.error_code:
                case ErrorCode.PERMISSION_ERROR:
                    return Err(
                        message=(
                            f"Permission denied deleting repository {owner}/{repo}. Deleting requires admin rights on the "
                            + "repository and the delete_repo token scope."
                        ),
                        error_code=ErrorCode.PERMISSION_ERROR,
                    )
                case ErrorCode.NOT_FOUND:
                    return Err(message=f"Repository {owner}/{repo} was not found.", error_code=ErrorCode.NOT_FOUND)
                case _:
                    return response

        return Ok(data=None, message=f"Repository {owner}/{repo} deleted successfully.")

    async def bulk_delete_repositories(
        self,
        repositories: list[RepoIdentifier],
        dry_run: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> Result[BulkDeleteReport]:
        """Delete many repositories, one at a time.

        In a dry run every repository is only checked for access. The report is returned in `details` when any entry
        fails."""

        if not self.api_client.is_available:
            return token_missing(action="Bulk repository deletion")

        strategy: DeletionStrategy = DryRunDeletion() if dry_run else LiveDeletion(sleep=self.sleep)

        report = BulkDeleteReport(dry_run=strategy.dry_run)

        def notify(current: RepoIdentifier | None) -> None:
            if on_progress is None:
                return
            on_progress(
                BulkDeleteProgress(
                    total=len(repositories),
                    completed=len(report.results),
                    successful=report.successful,
                    failed=report.failed,
                    current=current,
                )
            )

        for identifier in repositories:
            notify(current=identifier)
            report.results.append(await strategy.process(self, identifier))

        notify(current=None)

        self.logger.info(report.summary())

        if report.failed:
            return Err(message=report.summary(), error_code=ErrorCode.UNKNOWN_API_ERROR, details=report)

        return Ok(data=report, message=report.summary())

    async def list_repositories(
        self,
        owner: str | None = None,
        name_filter: str | None = None,
        sort: RepositorySort | None = None,
        direction: SortDirection | None = None,
        repository_type: RepositoryType | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> Result[list[RepositoryListing]]:
        """List repositories of an owner, or of the authenticated user when no owner is given.

        The name filter is applied after fetching and matches the name, full name or description."""

        if not self.api_client.is_available:
            return token_missing()

        if owner is None:
            endpoint = "/user/repos"
        else:
            owner_type = await self.auth_service.check_owner_type(owner)
            if isinstance(owner_type, Err):
                return owner_type

            endpoint = f"/orgs/{owner}/repos" if owner_type.data == OwnerType.ORGANIZATION else f"/users/{owner}/repos"

        params: dict[str, Any] = {
            "sort": sort,
            "direction": direction,
            "type": repository_type,
            "page": page,
            "per_page": min(per_page, MAX_PER_PAGE) if per_page is not None else None,
        }
        params = {key: value for key, value in params.items() if value is not None}

        response = await self.api_client.get(endpoint, params=params or None, action="List repositories")

        if isinstance(response, Err):
            return response

        listings = [RepositoryListing.from_repository_data(repository) for repository in response.data or []]

        if name_filter:
            listings = [listing for listing in listings if listing.matches(name_filter)]

        return Ok(data=listings, message=f"Found {len(listings)} repositories.")
