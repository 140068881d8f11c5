from datetime import datetime
from enum import StrEnum
from typing import Any, Generic, Literal, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

T = TypeVar("T")


class ErrorCode(StrEnum):
    TOKEN_MISSING = "TOKEN_MISSING"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"
    UNKNOWN_API_ERROR = "UNKNOWN_API_ERROR"


class Ok(BaseModel, Generic[T]):
    """A successful operation and the data it produced."""

    success: Literal[True] = True
    data: T
    message: str = Field(default="Request successful")


class Err(BaseModel):
    """A failed operation, described for display to a user."""

    success: Literal[False] = False
    message: str = Field(description="A complete sentence describing what failed.")
    error_code: ErrorCode = Field(description="The category of the failure.")
    details: Any = Field(default=None, description="Partial results gathered despite the failure.")


type Result[R] = Ok[R] | Err

TOKEN_MISSING_MESSAGE = "GitHub token not available. Set GITHUB_TOKEN to enable GitHub operations."


def token_missing(action: str | None = None) -> Err:
    message = TOKEN_MISSING_MESSAGE if action is None else f"GitHub token not available - {action} skipped."
    return Err(message=message, error_code=ErrorCode.TOKEN_MISSING)


class RepoIdentifier(BaseModel):
    """Addresses exactly one remote repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(description="The user or organization that owns the repository.")
    repo: str = Field(description="The name of the repository.")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class RepoConfig(RepoIdentifier):
    """The settings used to create a repository."""

    description: str | None = Field(default=None, description="The description of the repository.")
    private: bool = Field(default=False, description="Whether the repository is private.")


class CommitFile(BaseModel):
    """A single file to be materialized in a repository."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="The path of the file, relative to the repository root, using forward slashes.")
    content: str = Field(description="The text content of the file.")


class CommitAuthor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: str


class OwnerType(StrEnum):
    USER = "user"
    ORGANIZATION = "organization"


class Permission(StrEnum):
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class AuthenticatedUser(BaseModel):
    """The identity the token authenticates as."""

    login: str
    id: int | None = None
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_user_data(cls, user_data: dict[str, Any]) -> Self:
        return cls(login=user_data["login"], id=user_data.get("id"), name=user_data.get("name"), email=user_data.get("email"))


class RepositoryAccess(BaseModel):
    has_access: bool
    permission: Permission | None = None

    @classmethod
    def from_permission_flags(cls, permissions: dict[str, bool] | None) -> Self:
        """The highest permission level granted by the repository's permission flags."""

        permissions = permissions or {}

        if permissions.get("admin"):
            return cls(has_access=True, permission=Permission.ADMIN)

        if permissions.get("push"):
            return cls(has_access=True, permission=Permission.WRITE)

        return cls(has_access=True, permission=Permission.READ)


class UserPermissions(BaseModel):
    can_create: bool
    can_delete: bool
    owner_type: OwnerType


class RepositoryInfo(BaseModel):
    """A description of a repository."""

    name: str
    full_name: str
    url: str
    description: str | None = None
    private: bool
    default_branch: str

    @classmethod
    def from_repository_data(cls, repository_data: dict[str, Any]) -> Self:
        return cls(
            name=repository_data["name"],
            full_name=repository_data["full_name"],
            url=repository_data["html_url"],
            description=repository_data.get("description"),
            private=repository_data.get("private", False),
            default_branch=repository_data.get("default_branch") or "main",
        )


class RepositoryListing(BaseModel):
    """A repository as returned by a listing."""

    name: str
    full_name: str
    url: str
    private: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    description: str | None = None

    @classmethod
    def from_repository_data(cls, repository_data: dict[str, Any]) -> Self:
        return cls(
            name=repository_data["name"],
            full_name=repository_data["full_name"],
            url=repository_data["html_url"],
            private=repository_data.get("private", False),
            created_at=repository_data.get("created_at"),
            updated_at=repository_data.get("updated_at"),
            description=repository_data.get("description"),
        )

    def matches(self, name_filter: str) -> bool:
        """Whether the name, full name or description contains the filter, ignoring case."""

        name_filter = name_filter.lower()

        return (
            name_filter in self.name.lower()
            or name_filter in self.full_name.lower()
            or (self.description is not None and name_filter in self.description.lower())
        )


class CreatedRepository(BaseModel):
    name: str
    full_name: str
    url: str
    default_branch: str | None = None

    @classmethod
    def from_repository_data(cls, repository_data: dict[str, Any]) -> Self:
        return cls(
            name=repository_data["name"],
            full_name=repository_data["full_name"],
            url=repository_data["html_url"],
            default_branch=repository_data.get("default_branch"),
        )


# Git objects created while building a commit. They only live for the duration of one commit.


class Blob(BaseModel):
    sha: str
    path: str


class TreeEntry(BaseModel):
    path: str
    mode: Literal["100644"] = "100644"
    type: Literal["blob"] = "blob"
    sha: str

    @classmethod
    def from_blob(cls, blob: Blob) -> Self:
        return cls(path=blob.path, sha=blob.sha)


class GitCommit(BaseModel):
    sha: str
    tree_sha: str
    parent_shas: list[str] = Field(default_factory=list)
    message: str | None = None
    url: str | None = None

    @classmethod
    def from_commit_data(cls, commit_data: dict[str, Any]) -> Self:
        return cls(
            sha=commit_data["sha"],
            tree_sha=commit_data["tree"]["sha"],
            parent_shas=[parent["sha"] for parent in commit_data.get("parents") or []],
            message=commit_data.get("message"),
            url=commit_data.get("html_url"),
        )


class GitReference(BaseModel):
    branch: str
    head_sha: str

    @classmethod
    def from_ref_data(cls, branch: str, ref_data: dict[str, Any]) -> Self:
        return cls(branch=branch, head_sha=ref_data["object"]["sha"])


class CommitResult(BaseModel):
    commit_sha: str
    commit_url: str | None
    branch: str
    file_count: int


class BulkDeleteEntry(BaseModel):
    owner: str
    repo: str
    success: bool
    message: str


class BulkDeleteProgress(BaseModel):
    total: int
    completed: int
    successful: int
    failed: int
    current: RepoIdentifier | None = None


class BulkDeleteReport(BaseModel):
    dry_run: bool
    results: list[BulkDeleteEntry] = Field(default_factory=list)

    @computed_field
    @property
    def total(self) -> int:
        return len(self.results)

    @computed_field
    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @computed_field
    @property
    def failed(self) -> int:
        return self.total - self.successful

    def summary(self) -> str:
        operation = "Bulk repository check" if self.dry_run else "Bulk repository deletion"
        return f"{operation} completed: {self.successful} successful, {self.failed} failed."


class PublishResult(BaseModel):
    repository: CreatedRepository
    commit: CommitResult
    file_count: int
