"""Normalization of caller-supplied paths into repository-root-relative paths."""

from __future__ import annotations

from collections.abc import Sequence
import os
from pathlib import Path, PurePosixPath

from ghcommit.errors import InvalidRequestError, PathValidationError


def normalize_repo_path(raw: str, *, repo_dir: Path, strict_absolute: bool = False) -> str:
    """Return `raw` as a `/`-joined path relative to the repository root.

    An absolute path under `repo_dir` is made relative to it. An absolute path
    outside `repo_dir` is rejected when `strict_absolute` is set or when it
    names an existing local file; otherwise its leading separator is stripped,
    so `/src/a.py` means `src/a.py`.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise PathValidationError("Path must not be empty", path=str(raw))

    path = raw.replace("\\", "/") if os.name == "nt" else raw
    if path.startswith("/"):
        root = repo_dir.resolve()
        absolute = Path(os.path.normpath(path))
        containing_root = next(
            (
                candidate
                for candidate in (Path(os.path.normpath(repo_dir.absolute())), root)
                if absolute.is_relative_to(candidate)
            ),
            None,
        )
        if containing_root is not None:
            path = absolute.relative_to(containing_root).as_posix()
        elif strict_absolute or absolute.exists():
            raise PathValidationError(
                f"Path '{raw}' must be relative to repository root or within {root}",
                path=raw,
            )
    path = path.strip("/")
    if not path or path == ".":
        raise PathValidationError(f"Path '{raw}' does not name a file", path=raw)

    segments = path.split("/")
    for segment in segments:
        if not segment:
            raise PathValidationError(f"Empty segment in path: {raw!r}", path=raw)
        if segment in (".", ".."):
            raise PathValidationError(f"Invalid path segment {segment!r} in {raw!r}", path=raw)
    return str(PurePosixPath(*segments))


def normalize_repo_paths(
    raw_paths: Sequence[str], *, repo_dir: Path, strict_absolute: bool = False
) -> tuple[str, ...]:
    if isinstance(raw_paths, str):
        raise InvalidRequestError("Paths must be a sequence of strings, not a single string")
    if not raw_paths:
        raise InvalidRequestError("At least one path is required")

    normalized: list[str] = []
    seen: set[str] = set()
    for raw in raw_paths:
        path = normalize_repo_path(raw, repo_dir=repo_dir, strict_absolute=strict_absolute)
        if path in seen:
            raise PathValidationError(f"Duplicate path in request: {path}", path=path)
        seen.add(path)
        normalized.append(path)
    return tuple(normalized)
