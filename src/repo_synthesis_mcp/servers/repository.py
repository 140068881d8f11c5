from logging import Logger
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.tools.tool_transform import ArgTransform, TransformedTool
from fastmcp.utilities.logging import get_logger

from repo_synthesis_mcp.clients.models.github import BulkDeleteProgress, BulkDeleteReport, RepoIdentifier, Result
from repo_synthesis_mcp.servers.shared.annotations import (
    COMMIT_MESSAGE_ARG_TRANSFORM,
    DRY_RUN,
    OWNER_ARG_TRANSFORM,
    PAGE_ARG_TRANSFORM,
    PER_PAGE_ARG_TRANSFORM,
    REPO_ARG_TRANSFORM,
)
from repo_synthesis_mcp.services.github import GitHubService


def description(description: str, /) -> ArgTransform:
    return ArgTransform(description=description)


class RepositoryServer:
    """Exposes repository synthesis and management as MCP tools."""

    github_service: GitHubService
    logger: Logger

    def __init__(self, github_service: GitHubService | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.github_service = github_service or GitHubService(logger=self.logger)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        for tool in self.passthrough_tools().values():
            _ = fastmcp.add_tool(tool=tool)

        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.bulk_delete_repositories))

        return fastmcp

    def passthrough_tools(self) -> dict[str, TransformedTool]:
        owner_repo_args = {
            "owner": OWNER_ARG_TRANSFORM,
            "repo": REPO_ARG_TRANSFORM,
        }

        validate_token_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.validate_token),
            description="Check that the configured GitHub token is valid and return the user it authenticates as.",
        )

        check_owner_type_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.check_owner_type),
            description="Determine whether a GitHub owner is a user or an organization.",
            transform_args={"owner": description("The name of the user or organization.")},
        )

        can_create_repository_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.can_create_repository),
            description="Check whether the authenticated user can create repositories under an owner.",
            transform_args={"owner": description("The user or organization to create repositories under.")},
        )

        validate_repository_access_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.validate_repository_access),
            description="Check the authenticated user's permission level (read, write or admin) on a repository.",
            transform_args={**owner_repo_args},
        )

        create_repository_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.create_repository),
            description="Create a repository, initialized with a README, under the authenticated user or an organization.",
            transform_args={"config": description("The owner, name, description and visibility of the repository to create.")},
        )

        delete_repository_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.delete_repository),
            description="Permanently delete a repository. Requires admin rights and the delete_repo token scope.",
            transform_args={**owner_repo_args},
        )

        list_repositories_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.list_repositories),
            description="List the repositories of an owner, or of the authenticated user when no owner is provided.",
            transform_args={
                "owner": description("The user or organization whose repositories to list."),
                "name_filter": description("Only include repositories whose name, full name or description contains this text."),
                "sort": description("The property to sort the repositories by."),
                "direction": description("The direction to sort the repositories in."),
                "repository_type": description("The type of repositories to include."),
                "page": PAGE_ARG_TRANSFORM,
                "per_page": PER_PAGE_ARG_TRANSFORM,
            },
        )

        get_repository_info_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.get_repository_info),
            name="get_repository",
            description="Get the name, URL, description, visibility and default branch of a repository.",
            transform_args={**owner_repo_args},
        )

        commit_files_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.commit_files),
            description="Commit a set of files to the default branch of a repository in a single commit.",
            transform_args={
                "config": description("The repository to commit to."),
                "files": description("The files to add or replace, with paths relative to the repository root."),
                "message": COMMIT_MESSAGE_ARG_TRANSFORM,
                "author": description("The author of the commit. Defaults to the configured commit author."),
                "max_concurrent_blobs": description("The maximum number of files uploaded at once. Unbounded if not provided."),
            },
        )

        publish_directory_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.publish_directory),
            description="Create a repository from a local project directory and commit its files to it.",
            transform_args={
                "project_path": description("The path of the local project directory."),
                "repo_name": description("The name of the repository. Derived from the directory name if not provided."),
                "owner": description("The owner of the repository. Defaults to the configured owner or the authenticated user."),
                "description": description("The description of the repository."),
                "private": description("Whether the repository is private."),
                "commit_message": COMMIT_MESSAGE_ARG_TRANSFORM,
            },
        )

        get_repository_languages_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.get_repository_languages),
            description="Get the number of bytes of code written in each language of a repository.",
            transform_args={**owner_repo_args},
        )

        get_repository_readme_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.get_repository_readme),
            description="Get the README of a repository as text.",
            transform_args={**owner_repo_args},
        )

        get_repository_topics_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.get_repository_topics),
            description="Get the topics of a repository.",
            transform_args={**owner_repo_args},
        )

        update_repository_topics_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.update_repository_topics),
            description="Replace the topics of a repository.",
            transform_args={**owner_repo_args, "topics": description("The complete list of topics for the repository.")},
        )

        get_file_content_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.github_service.get_file_content),
            description="Get the text content of a file in a repository.",
            transform_args={
                **owner_repo_args,
                "path": description("The path of the file, relative to the repository root."),
                "ref": description("The branch, tag or commit to read the file from. Defaults to the default branch."),
            },
        )

        return {
            tool.name: tool
            for tool in [
                validate_token_tool,
                check_owner_type_tool,
                can_create_repository_tool,
                validate_repository_access_tool,
                create_repository_tool,
                delete_repository_tool,
                list_repositories_tool,
                get_repository_info_tool,
                commit_files_tool,
                publish_directory_tool,
                get_repository_languages_tool,
                get_repository_readme_tool,
                get_repository_topics_tool,
                update_repository_topics_tool,
                get_file_content_tool,
            ]
        }

    def _log_progress(self, progress: BulkDeleteProgress) -> None:
        if progress.current is None:
            self.logger.info(f"Bulk deletion finished {progress.completed}/{progress.total} repositories")
            return

        self.logger.info(f"Bulk deletion processing {progress.current.full_name} ({progress.completed + 1}/{progress.total})")

    async def bulk_delete_repositories(self, repositories: list[RepoIdentifier], dry_run: DRY_RUN = True) -> Result[BulkDeleteReport]:
        """Delete several repositories one at a time. Runs as a dry run unless `dry_run` is false."""

        return await self.github_service.bulk_delete_repositories(repositories, dry_run=dry_run, on_progress=self._log_progress)
