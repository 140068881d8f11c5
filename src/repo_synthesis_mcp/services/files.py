from fnmatch import fnmatch
from logging import Logger, getLogger
from pathlib import Path

from anyio import Path as AsyncPath

from repo_synthesis_mcp.clients.models.github import CommitFile

MAX_FILE_SIZE_BYTES = 1024 * 1024

SKIP_DIRECTORIES = frozenset(
    {"node_modules", ".git", ".next", "dist", "build", "coverage", ".turbo", ".cache", "tmp", "temp", "__pycache__"}
)

SKIP_FILE_PATTERNS = (".DS_Store", "Thumbs.db", "*.log", "*.tmp", "*.temp", "*.swp", "*.swo", "*~")

DANGEROUS_PATH_PATTERNS = ("../", "/etc/", "/proc/", "/sys/", "c:/windows/", "c:/system32/")


class FileCollector:
    """Collects the committable files below a local directory."""

    logger: Logger
    max_file_size: int

    def __init__(self, logger: Logger | None = None, max_file_size: int = MAX_FILE_SIZE_BYTES):
        self.logger = logger or getLogger(__name__)
        self.max_file_size = max_file_size

    @staticmethod
    def validate_path(path: str | Path) -> bool:
        """Reject empty paths, paths that traverse upwards and paths into system directories."""

        normalized_path = str(path).replace("\\", "/").lower()

        if not normalized_path:
            return False

        return not any(pattern in normalized_path for pattern in DANGEROUS_PATH_PATTERNS)

    @staticmethod
    def should_include(name: str) -> bool:
        if name.startswith("."):
            return False

        if name in SKIP_DIRECTORIES:
            return False

        return not any(fnmatch(name.lower(), pattern.lower()) for pattern in SKIP_FILE_PATTERNS)

    async def collect_files(self, root: str | Path) -> list[CommitFile]:
        """Walk the directory and return its files with forward-slash paths relative to the root.

        Files larger than the size limit and files that are not UTF-8 text are skipped with a warning."""

        if not self.validate_path(root):
            self.logger.warning(f"Invalid project path: {root}")
            return []

        root_path = AsyncPath(root)

        if not await root_path.is_dir():
            self.logger.warning(f"Project path does not exist or is not a directory: {root}")
            return []

        files: list[CommitFile] = []

        await self._walk(root_path, root_path, files)

        self.logger.info(f"Collected {len(files)} files from {root}")

        return files

    async def _walk(self, root: AsyncPath, directory: AsyncPath, files: list[CommitFile]) -> None:
        entries = sorted([entry async for entry in directory.iterdir()], key=lambda entry: entry.name)

        for entry in entries:
            if not self.should_include(entry.name):
                continue

            if await entry.is_dir():
                await self._walk(root, entry, files)
                continue

            if not await entry.is_file():
                continue

            relative_path = entry.relative_to(root).as_posix()

            if (size := (await entry.stat()).st_size) > self.max_file_size:
                self.logger.warning(f"Skipping {relative_path}: {size} bytes exceeds the {self.max_file_size} byte limit")
                continue

            try:
                content = await entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                self.logger.warning(f"Skipping {relative_path}: the file could not be read as text ({e})")
                continue

            files.append(CommitFile(path=relative_path, content=content))
