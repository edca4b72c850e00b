from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import logging

from ghcommit.config import RepoTarget
from ghcommit.content_source import ContentSource, LocalContentSource
from ghcommit.errors import CommitConstructionError, InvalidRequestError, MutationError
from ghcommit.models import (
    DeleteAction,
    EntryKind,
    MutationRequest,
    MutationResult,
    MutationState,
    MutationStep,
    PathEntry,
    WriteAction,
)
from ghcommit.object_store import ObjectStore
from ghcommit.observability import log_event, log_warning_event
from ghcommit.paths import normalize_repo_paths
from ghcommit.tree_builder import build_tree_entries


LOGGER = logging.getLogger("ghcommit.engine")


class _MutationRun:
    """Tracks the per-call state machine: start -> ... -> ref_updated, or failed."""

    def __init__(self, *, branch: str) -> None:
        self.branch = branch
        self.states: list[MutationState] = ["start"]

    @contextmanager
    def step(self, step: MutationStep) -> Iterator[None]:
        try:
            yield
        except MutationError as exc:
            exc.attach(step=step, branch=self.branch)
            self.states.append("failed")
            raise
        self.states.append(step)


class MutationEngine:
    """Commits or deletes a set of files on one branch as a single commit.

    Nothing is visible on the branch until the final non-forcing ref update, so
    a failure at any earlier step leaves the branch at its prior commit. Trees
    and commits created before a failure stay unreferenced.
    """

    def __init__(
        self,
        target: RepoTarget,
        *,
        store: ObjectStore,
        content_source: ContentSource | None = None,
    ) -> None:
        self.target = target
        self._store = store
        self._content_source = (
            content_source if content_source is not None else LocalContentSource(target.repo_dir)
        )

    def commit_files(self, paths: Sequence[str], message: str) -> MutationResult:
        return self.apply_entries("write", paths, message)

    def delete_files(self, paths: Sequence[str], message: str) -> MutationResult:
        return self.apply_entries("delete", paths, message)

    def apply_entries(self, kind: EntryKind, paths: Sequence[str], message: str) -> MutationResult:
        branch = self.target.branch
        try:
            normalized = self._validate(kind, paths, message)
            self._store.check_credentials()
        except MutationError as exc:
            exc.attach(branch=branch)
            log_warning_event(
                LOGGER,
                "mutation_rejected",
                repo_full_name=self.target.full_name,
                branch=branch,
                kind=kind,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            raise

        log_event(
            LOGGER,
            "mutation_started",
            repo_full_name=self.target.full_name,
            branch=branch,
            kind=kind,
            path_count=len(normalized),
        )
        run = _MutationRun(branch=branch)
        try:
            with run.step("ref_read"):
                base_ref = self._store.get_ref(branch)
            base_commit_hash = base_ref.commit_hash

            with run.step("commit_read"):
                base_commit = self._store.get_commit(base_commit_hash)

            with run.step("tree_built"):
                request = MutationRequest(
                    target_branch=branch,
                    base_commit_hash=base_commit_hash,
                    entries=self._materialize_entries(kind, normalized),
                    message=message,
                )
                tree_entries = build_tree_entries(request.entries)

            with run.step("tree_written"):
                tree = self._store.create_tree(base_commit.tree_hash, tree_entries)

            with run.step("commit_written"):
                commit = self._store.create_commit(message, tree.hash, request.base_commit_hash)
                if commit.parent_hashes and commit.parent_hashes != (request.base_commit_hash,):
                    raise CommitConstructionError(
                        f"Commit {commit.hash} has parents {list(commit.parent_hashes)}, "
                        f"expected [{request.base_commit_hash}]"
                    )

            with run.step("ref_updated"):
                self._store.update_ref(
                    branch, commit.hash, expected_hash=request.base_commit_hash
                )
        except MutationError as exc:
            log_warning_event(
                LOGGER,
                "mutation_failed",
                repo_full_name=self.target.full_name,
                branch=branch,
                kind=kind,
                step=exc.step,
                path=exc.path,
                status_code=exc.status_code,
                error_type=type(exc).__name__,
                error=exc.message,
            )
            raise

        log_event(
            LOGGER,
            "mutation_succeeded",
            repo_full_name=self.target.full_name,
            branch=branch,
            kind=kind,
            base_commit=request.base_commit_hash,
            commit=commit.hash,
            tree=tree.hash,
            paths=request.paths,
        )
        return MutationResult(
            commit_hash=commit.hash,
            tree_hash=tree.hash,
            affected_paths=request.paths,
            kind=kind,
            commit=commit,
            states=tuple(run.states),
        )

    def _validate(self, kind: EntryKind, paths: Sequence[str], message: str) -> tuple[str, ...]:
        if kind not in ("write", "delete"):
            raise InvalidRequestError(f"Unsupported mutation kind: {kind!r}")
        if not isinstance(message, str) or not message.strip():
            raise InvalidRequestError("Commit message must not be empty")
        # Deletes reject every absolute path outside the root, existing or not.
        return normalize_repo_paths(
            paths, repo_dir=self.target.repo_dir, strict_absolute=kind == "delete"
        )

    def _materialize_entries(
        self, kind: EntryKind, paths: tuple[str, ...]
    ) -> tuple[PathEntry, ...]:
        if kind == "delete":
            return tuple(PathEntry(path=path, action=DeleteAction()) for path in paths)
        # Read at call time so the commit reflects the filesystem now, not when queued.
        return tuple(
            PathEntry(path=path, action=WriteAction(content=self._content_source.read_text(path)))
            for path in paths
        )
