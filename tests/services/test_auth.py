import pytest
from inline_snapshot import snapshot

from repo_synthesis_mcp.clients.models.github import Err, ErrorCode, Ok, OwnerType, Permission, RepositoryAccess
from repo_synthesis_mcp.services.auth import GitHubAuthService
from tests.conftest import FakeAPIClient, err, ok


@pytest.fixture
def api_client() -> FakeAPIClient:
    return FakeAPIClient(
        routes={
            "GET /user": ok({"login": "octocat", "id": 1, "name": "The Octocat"}),
            "GET /orgs/acme-org": ok({"login": "acme-org"}),
            "GET /users/octocat": ok({"login": "octocat"}),
            "GET /users/someone-else": ok({"login": "someone-else"}),
            "GET /orgs/acme-org/members/octocat": ok(None),
            "GET /repos/acme-org/demo": ok({"name": "demo", "permissions": {"admin": False, "push": True, "pull": True}}),
        }
    )


@pytest.fixture
def auth_service(api_client: FakeAPIClient) -> GitHubAuthService:
    return GitHubAuthService(api_client=api_client)


class TestOwnerType:
    async def test_organization(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        response = await auth_service.check_owner_type("acme-org")

        assert response == Ok(data=OwnerType.ORGANIZATION, message="Owner 'acme-org' is an organization.")
        assert api_client.calls_to("GET", "/users/acme-org") == []

    async def test_user(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        response = await auth_service.check_owner_type("octocat")

        assert isinstance(response, Ok)
        assert response.data == OwnerType.USER
        assert len(api_client.calls_to("GET", "/orgs/octocat")) == 1
        assert len(api_client.calls_to("GET", "/users/octocat")) == 1

    async def test_cached(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        _ = await auth_service.check_owner_type("octocat")
        _ = await auth_service.check_owner_type("octocat")

        assert len(api_client.calls_to("GET", "/orgs/octocat")) == 1
        assert len(api_client.calls_to("GET", "/users/octocat")) == 1
        assert auth_service.owner_type_cache == {"octocat": OwnerType.USER}

    async def test_clear_caches(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        _ = await auth_service.check_owner_type("acme-org")
        _ = await auth_service.get_authenticated_user()

        auth_service.clear_caches()

        assert auth_service.owner_type_cache == {}
        assert auth_service.authenticated_user is None

        _ = await auth_service.check_owner_type("acme-org")

        assert len(api_client.calls_to("GET", "/orgs/acme-org")) == 2

    async def test_missing(self, auth_service: GitHubAuthService):
        response = await auth_service.check_owner_type("nobody")

        assert response == Err(message="Owner 'nobody' was not found or is not accessible.", error_code=ErrorCode.NOT_FOUND)
        assert auth_service.owner_type_cache == {}

    async def test_organization_lookup_error_is_not_a_fallback(self, api_client: FakeAPIClient, auth_service: GitHubAuthService):
        api_client.routes["GET /orgs/flaky"] = err(ErrorCode.SERVER_ERROR, "Get organization failed. GitHub service is down.")

        response = await auth_service.check_owner_type("flaky")

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.SERVER_ERROR
        assert api_client.calls_to("GET", "/users/flaky") == []

    async def test_token_missing(self):
        auth_service = GitHubAuthService(api_client=FakeAPIClient(available=False))

        response = await auth_service.check_owner_type("octocat")

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.TOKEN_MISSING


class TestAuthenticatedUser:
    async def test_cached(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        first = await auth_service.get_authenticated_user()
        second = await auth_service.get_authenticated_user()

        assert isinstance(first, Ok)
        assert isinstance(second, Ok)
        assert first.data == second.data
        assert first.data.login == "octocat"
        assert len(api_client.calls_to("GET", "/user")) == 1

    async def test_validate_token_refreshes(self, auth_service: GitHubAuthService, api_client: FakeAPIClient):
        _ = await auth_service.get_authenticated_user()
        response = await auth_service.validate_token()

        assert isinstance(response, Ok)
        assert response.message == snapshot("Token validation successful, authenticated as 'octocat'.")
        assert len(api_client.calls_to("GET", "/user")) == 2

    async def test_invalid_token(self, api_client: FakeAPIClient, auth_service: GitHubAuthService):
        api_client.routes["GET /user"] = err(ErrorCode.AUTH_ERROR, "Validate token failed. Authentication failed.")

        response = await auth_service.validate_token()

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.AUTH_ERROR
        assert auth_service.authenticated_user is None


class TestPermissions:
    async def test_member_of_organization(self, auth_service: GitHubAuthService):
        assert await auth_service.check_organization_membership("acme-org") == Ok(
            data=True, message="User 'octocat' is a member of organization 'acme-org'."
        )

    async def test_not_a_member(self, auth_service: GitHubAuthService):
        response = await auth_service.check_organization_membership("other-org")

        assert isinstance(response, Ok)
        assert response.data is False

    async def test_can_create_for_self(self, auth_service: GitHubAuthService):
        response = await auth_service.can_create_repository("octocat")

        assert isinstance(response, Ok)
        assert response.data == RepositoryAccess(has_access=True, permission=Permission.ADMIN)

    async def test_cannot_create_for_other_user(self, auth_service: GitHubAuthService):
        response = await auth_service.can_create_repository("someone-else")

        assert isinstance(response, Ok)
        assert response.data.has_access is False

    async def test_can_create_for_organization(self, auth_service: GitHubAuthService):
        response = await auth_service.can_create_repository("acme-org")

        assert isinstance(response, Ok)
        assert response.data == RepositoryAccess(has_access=True, permission=Permission.WRITE)

    async def test_validate_repository_access(self, auth_service: GitHubAuthService):
        response = await auth_service.validate_repository_access("acme-org", "demo")

        assert isinstance(response, Ok)
        assert response.data.permission == Permission.WRITE

    async def test_validate_repository_access_missing(self, auth_service: GitHubAuthService):
        response = await auth_service.validate_repository_access("acme-org", "missing")

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.NOT_FOUND
        assert response.message.startswith("Repository acme-org/missing is not accessible.")

    async def test_validate_user_permissions(self, auth_service: GitHubAuthService):
        response = await auth_service.validate_user_permissions("acme-org")

        assert isinstance(response, Ok)
        assert response.data.model_dump() == snapshot({"can_create": True, "can_delete": True, "owner_type": "organization"})


class TestAccountLookups:
    async def test_user_exists(self, auth_service: GitHubAuthService):
        assert await auth_service.check_user_exists("octocat") == Ok(data=True, message="User 'octocat' exists.")

        response = await auth_service.check_user_exists("ghost-user")

        assert response == Ok(data=False, message="User 'ghost-user' does not exist.")

    async def test_organization_exists(self, auth_service: GitHubAuthService):
        assert await auth_service.check_organization_exists("acme-org") == Ok(data=True, message="Organization 'acme-org' exists.")

        response = await auth_service.check_organization_exists("ghost-org")

        assert response == Ok(data=False, message="Organization 'ghost-org' does not exist.")

    async def test_existence_check_error(self, api_client: FakeAPIClient, auth_service: GitHubAuthService):
        api_client.routes["GET /users/octocat"] = err(ErrorCode.SERVER_ERROR, "Get user failed.")

        response = await auth_service.check_user_exists("octocat")

        assert response == Err(message="Get user failed.", error_code=ErrorCode.SERVER_ERROR)

    async def test_repository_counts(self, api_client: FakeAPIClient, auth_service: GitHubAuthService):
        api_client.routes["GET /users/octocat"] = ok({"login": "octocat", "public_repos": 8})
        api_client.routes["GET /orgs/acme-org"] = ok({"login": "acme-org", "public_repos": 0})

        assert await auth_service.get_user_repository_count("octocat") == Ok(
            data=8, message="The user 'octocat' has 8 public repositories."
        )
        assert await auth_service.get_organization_repository_count("acme-org") == Ok(
            data=0, message="The organization 'acme-org' has 0 public repositories."
        )

    async def test_repository_count_missing(self, auth_service: GitHubAuthService):
        response = await auth_service.get_user_repository_count("octocat")

        assert response == Err(
            message="GitHub did not report a public repository count for user 'octocat'.", error_code=ErrorCode.UNKNOWN_API_ERROR
        )

    async def test_repository_count_not_found(self, auth_service: GitHubAuthService):
        response = await auth_service.get_organization_repository_count("ghost-org")

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.NOT_FOUND

    async def test_token_missing(self):
        auth_service = GitHubAuthService(api_client=FakeAPIClient(available=False))

        response = await auth_service.check_user_exists("octocat")

        assert isinstance(response, Err)
        assert response.error_code == ErrorCode.TOKEN_MISSING
