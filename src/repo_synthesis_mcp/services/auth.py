from logging import Logger, getLogger

from repo_synthesis_mcp.clients.github import GitHubAPIClient
from repo_synthesis_mcp.clients.models.github import (
    AuthenticatedUser,
    Err,
    ErrorCode,
    Ok,
    OwnerType,
    Permission,
    RepositoryAccess,
    Result,
    UserPermissions,
    token_missing,
)


class GitHubAuthService:
    """Resolves who the token belongs to and what kind of account an owner is.

    Both lookups are cached for the lifetime of the instance and only cleared by `clear_caches`."""

    api_client: GitHubAPIClient
    logger: Logger

    owner_type_cache: dict[str, OwnerType]
    authenticated_user: AuthenticatedUser | None

    def __init__(self, api_client: GitHubAPIClient, logger: Logger | None = None):
        self.api_client = api_client
        self.logger = logger or getLogger(__name__)
        self.owner_type_cache = {}
        self.authenticated_user = None

    def clear_caches(self) -> None:
        self.owner_type_cache.clear()
        self.authenticated_user = None

    async def validate_token(self) -> Result[AuthenticatedUser]:
        """Ask GitHub who the token belongs to, refreshing the cached identity."""

        if not self.api_client.is_available:
            return token_missing()

        response = await self.api_client.get("/user", action="Validate token")

        if isinstance(response, Err):
            return response

        self.authenticated_user = AuthenticatedUser.from_user_data(response.data)

        return Ok(data=self.authenticated_user, message=f"Token validation successful, authenticated as '{self.authenticated_user.login}'.")

    async def get_authenticated_user(self) -> Result[AuthenticatedUser]:
        if self.authenticated_user is not None:
            return Ok(data=self.authenticated_user, message="Retrieved authenticated user from cache.")

        return await self.validate_token()

    async def check_owner_type(self, owner: str) -> Result[OwnerType]:
        """Determine whether the owner is an organization or a user.

        The organization lookup runs first; the user lookup only runs when the organization does not exist."""

        if not self.api_client.is_available:
            return token_missing()

        if cached_type := self.owner_type_cache.get(owner):
            return Ok(data=cached_type, message=f"Owner '{owner}' is a {cached_type}.")

        self.logger.info(f"Resolving owner type of '{owner}'")

        org_response = await self.api_client.get(f"/orgs/{owner}", action="Get organization")

        if isinstance(org_response, Ok):
            self.owner_type_cache[owner] = OwnerType.ORGANIZATION
            return Ok(data=OwnerType.ORGANIZATION, message=f"Owner '{owner}' is an organization.")

        if org_response.error_code != ErrorCode.NOT_FOUND:
            return org_response

        user_response = await self.api_client.get(f"/users/{owner}", action="Get user")

        if isinstance(user_response, Ok):
            self.owner_type_cache[owner] = OwnerType.USER
            return Ok(data=OwnerType.USER, message=f"Owner '{owner}' is a user.")

        if user_response.error_code != ErrorCode.NOT_FOUND:
            return user_response

        return Err(message=f"Owner '{owner}' was not found or is not accessible.", error_code=ErrorCode.NOT_FOUND)

    async def check_organization_membership(self, organization: str) -> Result[bool]:
        """Whether the authenticated user is a member of the organization. A 404 means not a member."""

        authenticated_user = await self.get_authenticated_user()
        if isinstance(authenticated_user, Err):
            return Err(
                message=f"Cannot verify the authenticated user. {authenticated_user.message}", error_code=authenticated_user.error_code
            )

        login = authenticated_user.data.login

        response = await self.api_client.get(f"/orgs/{organization}/members/{login}", action="Check organization membership")

        if isinstance(response, Ok):
            return Ok(data=True, message=f"User '{login}' is a member of organization '{organization}'.")

        if response.error_code == ErrorCode.NOT_FOUND:
            return Ok(data=False, message=f"User '{login}' is not a member of organization '{organization}'.")

        return response

    async def can_create_repository(self, owner: str) -> Result[RepositoryAccess]:
        authenticated_user = await self.get_authenticated_user()
        if isinstance(authenticated_user, Err):
            return Err(
                message=f"Cannot verify the authenticated user. {authenticated_user.message}", error_code=authenticated_user.error_code
            )

        owner_type = await self.check_owner_type(owner)
        if isinstance(owner_type, Err):
            return owner_type

        if owner_type.data == OwnerType.USER:
            if authenticated_user.data.login == owner:
                return Ok(
                    data=RepositoryAccess(has_access=True, permission=Permission.ADMIN),
                    message=f"Can create repositories under user '{owner}'.",
                )

            return Ok(
                data=RepositoryAccess(has_access=False),
                message=f"Cannot create repositories under user '{owner}' because it is not the authenticated user.",
            )

        membership = await self.check_organization_membership(owner)
        if isinstance(membership, Err):
            return membership

        if membership.data:
            return Ok(
                data=RepositoryAccess(has_access=True, permission=Permission.WRITE),
                message=f"Can create repositories under organization '{owner}'.",
            )

        return Ok(
            data=RepositoryAccess(has_access=False),
            message=f"Cannot create repositories under organization '{owner}' because the authenticated user is not a member.",
        )

    async def validate_repository_access(self, owner: str, repo: str) -> Result[RepositoryAccess]:
        """Fetch the repository and derive the authenticated user's permission level on it."""

        if not self.api_client.is_available:
            return token_missing()

        response = await self.api_client.get(f"/repos/{owner}/{repo}", action="Validate repository access")

        if isinstance(response, Err):
            return Err(message=f"Repository {owner}/{repo} is not accessible. {response.message}", error_code=response.error_code)

        access = RepositoryAccess.from_permission_flags(response.data.get("permissions"))

        return Ok(data=access, message=f"Access validated for {owner}/{repo} with {access.permission} permission.")

    async def validate_user_permissions(self, owner: str) -> Result[UserPermissions]:
        """Whether the authenticated user can create and delete repositories under the owner."""

        access = await self.can_create_repository(owner)
        if isinstance(access, Err):
            return access

        owner_type = await self.check_owner_type(owner)
        if isinstance(owner_type, Err):
            return owner_type

        # Deleting under an organization needs admin rights on each repository; membership is the best available signal here
        permissions = UserPermissions(can_create=access.data.has_access, can_delete=access.data.has_access, owner_type=owner_type.data)

        return Ok(data=permissions, message=f"Permissions validated for owner '{owner}'.")

    async def get_user(self, username: str) -> Result[dict[str, object]]:
        if not self.api_client.is_available:
            return token_missing()

        return await self.api_client.get(f"/users/{username}", action="Get user")

    async def get_organization(self, organization: str) -> Result[dict[str, object]]:
        if not self.api_client.is_available:
            return token_missing()

        return await self.api_client.get(f"/orgs/{organization}", action="Get organization")

    async def check_user_exists(self, username: str) -> Result[bool]:
        """Whether the user exists. A 404 means it does not."""

        response = await self.get_user(username)

        if isinstance(response, Ok):
            return Ok(data=True, message=f"User '{username}' exists.")

        if response.error_code == ErrorCode.NOT_FOUND:
            return Ok(data=False, message=f"User '{username}' does not exist.")

        return response

    async def check_organization_exists(self, organization: str) -> Result[bool]:
        """Whether the organization exists. A 404 means it does not."""

        response = await self.get_organization(organization)

        if isinstance(response, Ok):
            return Ok(data=True, message=f"Organization '{organization}' exists.")

        if response.error_code == ErrorCode.NOT_FOUND:
            return Ok(data=False, message=f"Organization '{organization}' does not exist.")

        return response

    async def get_user_repository_count(self, username: str) -> Result[int]:
        response = await self.get_user(username)
        if isinstance(response, Err):
            return response

        return self._public_repository_count(response.data, description=f"user '{username}'")

    async def get_organization_repository_count(self, organization: str) -> Result[int]:
        response = await self.get_organization(organization)
        if isinstance(response, Err):
            return response

        return self._public_repository_count(response.data, description=f"organization '{organization}'")

    def _public_repository_count(self, account_data: dict[str, object], description: str) -> Result[int]:
        public_repos = account_data.get("public_repos")

        if not isinstance(public_repos, int):
            return Err(
                message=f"GitHub did not report a public repository count for {description}.", error_code=ErrorCode.UNKNOWN_API_ERROR
            )

        return Ok(data=public_repos, message=f"The {description} has {public_repos} public repositories.")
