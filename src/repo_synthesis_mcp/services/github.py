from logging import Logger, getLogger
from pathlib import Path
from typing import Any

from repo_synthesis_mcp.clients.github import GitHubAPIClient
from repo_synthesis_mcp.clients.models.github import (
    AuthenticatedUser,
    BulkDeleteReport,
    CommitAuthor,
    CommitFile,
    CommitResult,
    CreatedRepository,
    Err,
    ErrorCode,
    Ok,
    OwnerType,
    PublishResult,
    RepoConfig,
    RepoIdentifier,
    RepositoryAccess,
    RepositoryInfo,
    RepositoryListing,
    Result,
    UserPermissions,
    token_missing,
)
from repo_synthesis_mcp.services.auth import GitHubAuthService
from repo_synthesis_mcp.services.content import ContentService
from repo_synthesis_mcp.services.files import FileCollector
from repo_synthesis_mcp.services.repository import (
    ProgressCallback,
    RepositoryService,
    RepositorySort,
    RepositoryType,
    SortDirection,
    generate_repo_name,
)
from repo_synthesis_mcp.utilities.environment import get_commit_author, get_default_owner, get_max_concurrent_blobs


class GitHubService:
    """The single entry point for turning local projects into GitHub repositories and managing them."""

    api_client: GitHubAPIClient
    auth_service: GitHubAuthService
    repository_service: RepositoryService
    content_service: ContentService
    file_collector: FileCollector
    logger: Logger

    default_owner: str | None

    def __init__(
        self,
        api_client: GitHubAPIClient | None = None,
        auth_service: GitHubAuthService | None = None,
        repository_service: RepositoryService | None = None,
        content_service: ContentService | None = None,
        file_collector: FileCollector | None = None,
        default_owner: str | None = None,
        commit_author: CommitAuthor | None = None,
        logger: Logger | None = None,
    ):
        self.logger = logger or getLogger(__name__)
        self.api_client = api_client or GitHubAPIClient(logger=self.logger)
        self.auth_service = auth_service or GitHubAuthService(api_client=self.api_client, logger=self.logger)
        self.repository_service = repository_service or RepositoryService(
            api_client=self.api_client, auth_service=self.auth_service, logger=self.logger
        )
        self.content_service = content_service or ContentService(
            api_client=self.api_client,
            default_author=commit_author or get_commit_author(),
            max_concurrent_blobs=get_max_concurrent_blobs(),
            logger=self.logger,
        )
        self.file_collector = file_collector or FileCollector(logger=self.logger)
        self.default_owner = default_owner or get_default_owner()

    @property
    def is_available(self) -> bool:
        return self.api_client.is_available

    def clear_caches(self) -> None:
        self.auth_service.clear_caches()

    # Authentication and owners

    async def validate_token(self) -> Result[AuthenticatedUser]:
        return await self.auth_service.validate_token()

    async def get_authenticated_user(self) -> Result[AuthenticatedUser]:
        return await self.auth_service.get_authenticated_user()

    async def check_owner_type(self, owner: str) -> Result[OwnerType]:
        return await self.auth_service.check_owner_type(owner)

    async def can_create_repository(self, owner: str) -> Result[RepositoryAccess]:
        return await self.auth_service.can_create_repository(owner)

    async def check_organization_membership(self, organization: str) -> Result[bool]:
        return await self.auth_service.check_organization_membership(organization)

    async def validate_repository_access(self, owner: str, repo: str) -> Result[RepositoryAccess]:
        return await self.auth_service.validate_repository_access(owner=owner, repo=repo)

    async def validate_user_permissions(self, owner: str) -> Result[UserPermissions]:
        return await self.auth_service.validate_user_permissions(owner)

    async def get_user(self, username: str) -> Result[dict[str, Any]]:
        return await self.auth_service.get_user(username)

    async def get_organization(self, organization: str) -> Result[dict[str, Any]]:
        return await self.auth_service.get_organization(organization)

    async def check_user_exists(self, username: str) -> Result[bool]:
        return await self.auth_service.check_user_exists(username)

    async def check_organization_exists(self, organization: str) -> Result[bool]:
        return await self.auth_service.check_organization_exists(organization)

    async def get_user_repository_count(self, username: str) -> Result[int]:
        return await self.auth_service.get_user_repository_count(username)

    async def get_organization_repository_count(self, organization: str) -> Result[int]:
        return await self.auth_service.get_organization_repository_count(organization)

    # Repositories

    async def create_repository(self, config: RepoConfig) -> Result[CreatedRepository]:
        return await self.repository_service.create_repository(config)

    async def delete_repository(self, owner: str, repo: str) -> Result[None]:
        return await self.repository_service.delete_repository(owner=owner, repo=repo)

    async def bulk_delete_repositories(
        self, repositories: list[RepoIdentifier], dry_run: bool = False, on_progress: ProgressCallback | None = None
    ) -> Result[BulkDeleteReport]:
        return await self.repository_service.bulk_delete_repositories(repositories, dry_run=dry_run, on_progress=on_progress)

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
        return await self.repository_service.list_repositories(
            owner=owner,
            name_filter=name_filter,
            sort=sort,
            direction=direction,
            repository_type=repository_type,
            page=page,
            per_page=per_page,
        )

    async def get_repository(self, owner: str, repo: str) -> Result[dict[str, Any]]:
        return await self.repository_service.get_repository(owner=owner, repo=repo)

    async def get_repository_info(self, owner: str, repo: str) -> Result[RepositoryInfo]:
        return await self.repository_service.get_repository_info(owner=owner, repo=repo)

    @staticmethod
    def generate_repo_name(project_name: str) -> str:
        return generate_repo_name(project_name)

    # Content

    async def commit_files(
        self,
        config: RepoIdentifier,
        files: list[CommitFile],
        message: str,
        author: CommitAuthor | None = None,
        max_concurrent_blobs: int | None = None,
    ) -> Result[CommitResult]:
        return await self.content_service.commit_files(
            config, files=files, message=message, author=author, max_concurrent_blobs=max_concurrent_blobs
        )

    async def get_repository_languages(self, owner: str, repo: str) -> Result[dict[str, int]]:
        return await self.content_service.get_repository_languages(owner=owner, repo=repo)

    async def get_repository_readme(self, owner: str, repo: str) -> Result[str]:
        return await self.content_service.get_repository_readme(owner=owner, repo=repo)

    async def get_repository_topics(self, owner: str, repo: str) -> Result[list[str]]:
        return await self.content_service.get_repository_topics(owner=owner, repo=repo)

    async def update_repository_topics(self, owner: str, repo: str, topics: list[str]) -> Result[list[str]]:
        return await self.content_service.update_repository_topics(owner=owner, repo=repo, topics=topics)

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> Result[str]:
        return await self.content_service.get_file_content(owner=owner, repo=repo, path=path, ref=ref)

    # Local files

    async def collect_files(self, project_path: str | Path) -> list[CommitFile]:
        return await self.file_collector.collect_files(project_path)

    def validate_path(self, path: str | Path) -> bool:
        return self.file_collector.validate_path(path)

    async def resolve_owner(self, owner: str | None = None) -> Result[str]:
        """The owner to publish under: the given owner, the configured default owner, or the authenticated user."""

        if owner := owner or self.default_owner:
            return Ok(data=owner, message=f"Using owner '{owner}'.")

        authenticated_user = await self.auth_service.get_authenticated_user()
        if isinstance(authenticated_user, Err):
            return authenticated_user

        return Ok(data=authenticated_user.data.login, message=f"Using the authenticated user '{authenticated_user.data.login}'.")

    async def publish_directory(
        self,
        project_path: str | Path,
        repo_name: str | None = None,
        owner: str | None = None,
        description: str | None = None,
        private: bool = False,
        commit_message: str | None = None,
    ) -> Result[PublishResult]:
        """Create a repository and commit the files of a local directory to it."""

        if not self.api_client.is_available:
            return token_missing(action="Publishing")

        files = await self.file_collector.collect_files(project_path)
        if not files:
            return Err(message=f"No committable files were found in {project_path}.", error_code=ErrorCode.VALIDATION_ERROR)

        resolved_owner = await self.resolve_owner(owner)
        if isinstance(resolved_owner, Err):
            return resolved_owner

        config = RepoConfig(
            owner=resolved_owner.data,
            repo=repo_name or generate_repo_name(Path(project_path).name),
            description=description,
            private=private,
        )

        repository = await self.repository_service.create_repository(config)
        if isinstance(repository, Err):
            return repository

        commit = await self.content_service.commit_files(config, files=files, message=commit_message or "Initial project files")
        if isinstance(commit, Err):
            return Err(
                message=f"Repository {repository.data.full_name} was created but committing failed. {commit.message}",
                error_code=commit.error_code,
                details=repository.data,
            )

        result = PublishResult(repository=repository.data, commit=commit.data, file_count=len(files))

        return Ok(data=result, message=f"Published {len(files)} files to {repository.data.url}.")
