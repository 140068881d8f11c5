import os
from logging import getLogger

from repo_synthesis_mcp.clients.models.github import CommitAuthor

logger = getLogger(__name__)


def get_default_owner() -> str | None:
    return os.getenv("GITHUB_DEFAULT_OWNER") or None


def get_commit_author() -> CommitAuthor | None:
    """The author for synthesized commits, only when both the name and the email are configured."""

    name = os.getenv("GITHUB_COMMIT_AUTHOR_NAME")
    email = os.getenv("GITHUB_COMMIT_AUTHOR_EMAIL")

    if not name or not email:
        return None

    return CommitAuthor(name=name, email=email)


def get_max_concurrent_blobs() -> int | None:
    if not (value := os.getenv("MAX_CONCURRENT_BLOBS")):
        return None

    try:
        max_concurrent_blobs = int(value)
    except ValueError:
        logger.warning(f"Ignoring MAX_CONCURRENT_BLOBS={value!r}, expected a positive integer")
        return None

    return max_concurrent_blobs if max_concurrent_blobs > 0 else None
