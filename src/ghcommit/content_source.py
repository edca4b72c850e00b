from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
import logging

from ghcommit.errors import LocalFileNotFound, LocalFileUnreadable, PathValidationError
from ghcommit.observability import log_event


LOGGER = logging.getLogger("ghcommit.content_source")


class ContentSource(ABC):
    @abstractmethod
    def read_text(self, path: str) -> str:
        """Return the current content of a repository-relative path."""


class LocalContentSource(ContentSource):
    def __init__(self, repo_dir: Path) -> None:
        self.repo_dir = repo_dir

    def read_text(self, path: str) -> str:
        root = self.repo_dir.resolve()
        full_path = (root / path).resolve()
        # Symlinks inside the checkout must not pull content from elsewhere.
        if not full_path.is_relative_to(root):
            raise PathValidationError(
                f"Path '{path}' resolves outside the repository root {root}",
                path=path,
            )
        try:
            # newline="" keeps CRLF and lone CR exactly as they are on disk.
            with full_path.open(encoding="utf-8", newline="") as fh:
                content = fh.read()
        except FileNotFoundError as exc:
            raise LocalFileNotFound(f"Local file not found: {full_path}", path=path) from exc
        except IsADirectoryError as exc:
            raise LocalFileNotFound(
                f"Local path is a directory, not a file: {full_path}", path=path
            ) from exc
        except UnicodeDecodeError as exc:
            raise LocalFileUnreadable(
                f"Local file is not valid UTF-8 text: {full_path} "
                f"({exc.reason} at byte {exc.start})",
                path=path,
            ) from exc
        except OSError as exc:
            raise LocalFileUnreadable(
                f"Cannot read local file {full_path}: {exc.strerror or exc}", path=path
            ) from exc
        log_event(LOGGER, "local_file_read", path=path, chars=len(content))
        return content
