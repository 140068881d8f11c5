from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import configure_logging, get_logger

from repo_synthesis_mcp.servers.repository import RepositoryServer
from repo_synthesis_mcp.services.github import GitHubService

configure_logging()

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="Repo Synthesis MCP")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

github_service: GitHubService = GitHubService(logger=logger)

if not github_service.is_available:
    logger.warning("GITHUB_TOKEN is not set, every GitHub operation will be skipped")

repository_server: RepositoryServer = RepositoryServer(github_service=github_service, logger=logger)
_ = repository_server.register_tools(fastmcp=mcp)


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
