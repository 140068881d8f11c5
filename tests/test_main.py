from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastmcp.client import Client
from fastmcp.client.transports import FastMCPTransport

from repo_synthesis_mcp.main import mcp


def test_main():
    assert mcp is not None


@pytest.fixture
async def main_mcp_client() -> AsyncGenerator[Client[FastMCPTransport], Any]:
    async with Client[FastMCPTransport](transport=mcp) as mcp_client:
        yield mcp_client


async def test_list_tools(main_mcp_client: Client[FastMCPTransport]):
    tools = await main_mcp_client.list_tools()

    assert len(tools) == 16
    assert {"publish_directory", "commit_files", "bulk_delete_repositories"} <= {tool.name for tool in tools}
