import asyncio
import binascii
from contextlib import AbstractAsyncContextManager, nullcontext
from logging import Logger, getLogger
from typing import Any

from pydantic import ValidationError

from repo_synthesis_mcp.clients.errors.github import BlobCreationError
from repo_synthesis_mcp.clients.github import GitHubAPIClient
from repo_synthesis_mcp.clients.models.github import (
    Blob,
    CommitAuthor,
    CommitFile,
    CommitResult,
    Err,
    ErrorCode,
    GitCommit,
    GitReference,
    Ok,
    RepoIdentifier,
    Result,
    TreeEntry,
    token_missing,
)
from repo_synthesis_mcp.utilities.encoding import decode_content, encode_content

TOPICS_MEDIA_TYPE = "application/vnd.github.mercy-preview+json"


class ContentService:
    """Publishes commits through the Git data API and reads repository content."""

    api_client: GitHubAPIClient
    logger: Logger

    default_author: CommitAuthor | None
    max_concurrent_blobs: int | None

    def __init__(
        self,
        api_client: GitHubAPIClient,
        default_author: CommitAuthor | None = None,
        max_concurrent_blobs: int | None = None,
        logger: Logger | None = None,
    ):
        self.api_client = api_client
        self.default_author = default_author
        self.max_concurrent_blobs = max_concurrent_blobs
        self.logger = logger or getLogger(__name__)

    async def commit_files(
        self,
        config: RepoIdentifier,
        files: list[CommitFile],
        message: str,
        author: CommitAuthor | None = None,
        max_concurrent_blobs: int | None = None,
    ) -> Result[CommitResult]:
        """Commit files on top of the head of the repository's default branch.

        The branch is only moved by the final ref update, so a failure in any earlier step leaves the repository
        unchanged. The head is read once and the ref update is forced, so a concurrent push in between is overwritten.

        Args:
            config: The repository to commit to.
            files: The files to add or replace.
            message: The commit message.
            author: The commit author, defaults to the configured author or the token's user.
            max_concurrent_blobs: The maximum number of blobs created at once, unbounded by default.
        """

        if not self.api_client.is_available:
            return token_missing(action="Commit")

        if not files:
            return Err(message="No files to commit. Provide at least one file.", error_code=ErrorCode.VALIDATION_ERROR)

        author = author or self.default_author
        max_concurrent_blobs = max_concurrent_blobs or self.max_concurrent_blobs

        try:
            return await self._commit(config, files=files, message=message, author=author, max_concurrent_blobs=max_concurrent_blobs)
        except BlobCreationError as e:
            return Err(
                message=f"Commit to {config.full_name} failed while creating the blob for '{e.path}'. {e.reason}",
                error_code=e.error_code,
            )
        except (KeyError, TypeError, ValidationError):
            self.logger.exception(f"Unexpected response while committing to {config.full_name}")
            return Err(
                message=f"Commit to {config.full_name} failed because GitHub returned an unexpected response.",
                error_code=ErrorCode.UNKNOWN_API_ERROR,
            )

    async def _commit(
        self,
        config: RepoIdentifier,
        files: list[CommitFile],
        message: str,
        author: CommitAuthor | None,
        max_concurrent_blobs: int | None,
    ) -> Result[CommitResult]:
        owner, repo = config.owner, config.repo

        repository = await self.api_client.get(f"/repos/{owner}/{repo}", action="Get repository")
        if isinstance(repository, Err):
            return self._step_failed(config, "reading the repository", repository)

        branch: str = repository.data.get("default_branch") or "main"

        ref_response = await self.api_client.get(f"/repos/{owner}/{repo}/git/ref/heads/{branch}", action="Get branch reference")
        if isinstance(ref_response, Err):
            return self._step_failed(config, f"reading branch '{branch}'", ref_response)

        reference = GitReference.from_ref_data(branch=branch, ref_data=ref_response.data)

        head_response = await self.api_client.get(f"/repos/{owner}/{repo}/git/commits/{reference.head_sha}", action="Get head commit")
        if isinstance(head_response, Err):
            return self._step_failed(config, "reading the head commit", head_response)

        head_commit = GitCommit.from_commit_data(head_response.data)

        self.logger.info(f"Creating {len(files)} blobs in {config.full_name}")

        blobs = await self._create_blobs(config, files=files, max_concurrent_blobs=max_concurrent_blobs)

        tree_body = {
            "base_tree": head_commit.tree_sha,
            "tree": [TreeEntry.from_blob(blob).model_dump() for blob in blobs],
        }

        tree_response = await self.api_client.post(f"/repos/{owner}/{repo}/git/trees", body=tree_body, action="Create tree")
        if isinstance(tree_response, Err):
            return self._step_failed(config, "creating the tree", tree_response)

        commit_body: dict[str, Any] = {
            "message": message,
            "tree": tree_response.data["sha"],
            "parents": [reference.head_sha],
        }

        if author is not None:
            commit_body["author"] = author.model_dump()

        commit_response = await self.api_client.post(f"/repos/{owner}/{repo}/git/commits", body=commit_body, action="Create commit")
        if isinstance(commit_response, Err):
            return self._step_failed(config, "creating the commit", commit_response)

        commit = GitCommit.from_commit_data(commit_response.data)

        update_response = await self.api_client.patch(
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            body={"sha": commit.sha, "force": True},
            action="Update branch reference",
        )
        if isinstance(update_response, Err):
            return self._step_failed(config, f"updating branch '{branch}'", update_response)

        result = CommitResult(commit_sha=commit.sha, commit_url=commit.url, branch=branch, file_count=len(files))

        return Ok(data=result, message=f"Committed {len(files)} files to {config.full_name} on branch '{branch}'.")

    async def _create_blobs(self, config: RepoIdentifier, files: list[CommitFile], max_concurrent_blobs: int | None) -> list[Blob]:
        semaphore: AbstractAsyncContextManager[Any] = (
            asyncio.Semaphore(max_concurrent_blobs) if max_concurrent_blobs else nullcontext()
        )

        async def create_blob(file: CommitFile) -> Blob:
            async with semaphore:
                response = await self.api_client.post(
                    f"/repos/{config.owner}/{config.repo}/git/blobs",
                    body={"content": encode_content(file.content), "encoding": "base64"},
                    action="Create blob",
                )

            if isinstance(response, Err):
                raise BlobCreationError(path=file.path, message=response.message, error_code=response.error_code)

            return Blob(sha=response.data["sha"], path=file.path)

        return await asyncio.gather(*[create_blob(file) for file in files])

    def _step_failed(self, config: RepoIdentifier, step: str, error: Err) -> Err:
        return Err(message=f"Commit to {config.full_name} failed while {step}. {error.message}", error_code=error.error_code)

    async def get_repository_languages(self, owner: str, repo: str) -> Result[dict[str, int]]:
        """Get the number of bytes of code per language."""

        if not self.api_client.is_available:
            return token_missing()

        return await self.api_client.get(f"/repos/{owner}/{repo}/languages", action="Get repository languages")

    async def get_repository_readme(self, owner: str, repo: str) -> Result[str]:
        if not self.api_client.is_available:
            return token_missing()

        response = await self.api_client.get(f"/repos/{owner}/{repo}/readme", action="Get repository README")
        if isinstance(response, Err):
            return response

        content: str = response.data.get("content") or ""

        if response.data.get("encoding") == "base64":
            try:
                content = decode_content(content)
            except (binascii.Error, UnicodeDecodeError):
                return Err(message=f"The README of {owner}/{repo} could not be decoded as UTF-8 text.", error_code=ErrorCode.VALIDATION_ERROR)

        return Ok(data=content, message=f"Retrieved the README of {owner}/{repo}.")

    async def get_repository_topics(self, owner: str, repo: str) -> Result[list[str]]:
        if not self.api_client.is_available:
            return token_missing()

        response = await self.api_client.get(
            f"/repos/{owner}/{repo}/topics", headers={"Accept": TOPICS_MEDIA_TYPE}, action="Get repository topics"
        )
        if isinstance(response, Err):
            return response

        return Ok(data=list(response.data.get("names") or []), message=f"Retrieved the topics of {owner}/{repo}.")

    async def update_repository_topics(self, owner: str, repo: str, topics: list[str]) -> Result[list[str]]:
        """Replace all topics of a repository."""

        if not self.api_client.is_available:
            return token_missing(action="Topic update")

        response = await self.api_client.put(
            f"/repos/{owner}/{repo}/topics",
            body={"names": topics},
            headers={"Accept": TOPICS_MEDIA_TYPE},
            action="Update repository topics",
        )
        if isinstance(response, Err):
            return response

        return Ok(data=list(response.data.get("names") or []), message=f"Updated the topics of {owner}/{repo}.")

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> Result[str]:
        """Get the text content of a file. Directories, symlinks and submodules are rejected."""

        if not self.api_client.is_available:
            return token_missing()

        params = {"ref": ref} if ref else None

        response = await self.api_client.get(f"/repos/{owner}/{repo}/contents/{path}", params=params, action="Get file content")
        if isinstance(response, Err):
            return response

        if not isinstance(response.data, dict) or response.data.get("type") != "file":  # pyright: ignore[reportUnknownMemberType]
            return Err(message=f"Path '{path}' in {owner}/{repo} is not a file.", error_code=ErrorCode.VALIDATION_ERROR)

        content: str = response.data.get("content") or ""

        if response.data.get("encoding") == "base64":
            try:
                content = decode_content(content)
            except (binascii.Error, UnicodeDecodeError):
                return Err(message=f"Path '{path}' in {owner}/{repo} could not be decoded as UTF-8 text.", error_code=ErrorCode.VALIDATION_ERROR)

        return Ok(data=content, message=f"Retrieved '{path}' from {owner}/{repo}.")
