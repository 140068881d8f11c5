from typing import Annotated

from fastmcp.tools.tool_transform import ArgTransform
from pydantic import Field

OWNER_DESCRIPTION = "The user or organization that owns the repository."
OWNER_ARG_TRANSFORM = ArgTransform(description=OWNER_DESCRIPTION)

REPO_DESCRIPTION = "The name of the repository."
REPO_ARG_TRANSFORM = ArgTransform(description=REPO_DESCRIPTION)

DRY_RUN_DESCRIPTION = "Only check that each repository exists and is accessible, without deleting anything."
DRY_RUN = Annotated[bool, Field(description=DRY_RUN_DESCRIPTION)]

COMMIT_MESSAGE_DESCRIPTION = "The message of the commit."
COMMIT_MESSAGE_ARG_TRANSFORM = ArgTransform(description=COMMIT_MESSAGE_DESCRIPTION)

PAGE_ARG_TRANSFORM = ArgTransform(description="The page of the results.")
PER_PAGE_ARG_TRANSFORM = ArgTransform(description="The number of results per page, at most 100.")
