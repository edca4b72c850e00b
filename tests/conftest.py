from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
import logging

import pytest

from ghcommit.errors import (
    ConcurrentModification,
    MissingCredential,
    MutationError,
    ObjectNotFound,
    RefNotFound,
    TreeConstructionError,
)
from ghcommit.models import BranchRef, CommitObject, TreeObject
from ghcommit.object_store import ObjectStore


class FakeObjectStore(ObjectStore):
    """In-memory git data store whose ref update only accepts fast-forwards."""

    def __init__(self, *, branch: str = "main", head: str = "H0", tree: str = "T0") -> None:
        self.refs: dict[str, str] = {branch: head}
        self.commits: dict[str, CommitObject] = {
            head: CommitObject(
                hash=head,
                tree_hash=tree,
                parent_hashes=(),
                message="root",
                author="Octo",
                timestamp="2024-01-01T00:00:00Z",
            )
        }
        self.trees: dict[str, dict[str, str]] = {tree: {"README.md": "hello\n"}}
        self.calls: list[tuple[object, ...]] = []
        self.token: str | None = "token"
        self.failures: dict[str, MutationError] = {}
        self.before_update: Callable[[], None] | None = None
        self.commit_parents_override: tuple[str, ...] | None = None
        self._counters: dict[str, int] = {}

    def files_at(self, branch: str) -> dict[str, str]:
        commit = self.commits[self.refs[branch]]
        return dict(self.trees[commit.tree_hash])

    def network_calls(self) -> list[str]:
        return [str(call[0]) for call in self.calls]

    def _next(self, prefix: str) -> str:
        self._counters[prefix] = self._counters.get(prefix, 0) + 1
        return f"{prefix}{self._counters[prefix]}"

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def check_credentials(self) -> None:
        if not self.token:
            raise MissingCredential("GitHub token is required but was not provided")

    def get_ref(self, branch: str) -> BranchRef:
        self.calls.append(("get_ref", branch))
        self._maybe_fail("get_ref")
        if branch not in self.refs:
            raise RefNotFound("Failed to get branch reference: 404 - Not Found", status_code=404)
        return BranchRef(name=branch, commit_hash=self.refs[branch])

    def get_commit(self, commit_hash: str) -> CommitObject:
        self.calls.append(("get_commit", commit_hash))
        self._maybe_fail("get_commit")
        if commit_hash not in self.commits:
            raise ObjectNotFound("Failed to get base commit: 404 - Not Found", status_code=404)
        return self.commits[commit_hash]

    def create_tree(
        self, base_tree_hash: str, entries: Sequence[dict[str, object]]
    ) -> TreeObject:
        self.calls.append(("create_tree", base_tree_hash, [dict(entry) for entry in entries]))
        self._maybe_fail("create_tree")
        if base_tree_hash not in self.trees:
            raise TreeConstructionError("Failed to create tree: 422 - Invalid tree info")
        files = dict(self.trees[base_tree_hash])
        for entry in entries:
            path = str(entry["path"])
            if "sha" in entry and entry["sha"] is None:
                if path not in files:
                    raise TreeConstructionError(
                        f"Failed to create tree: 422 - path '{path}' does not exist",
                        status_code=422,
                        detail=f"path '{path}' does not exist",
                    )
                del files[path]
            else:
                files[path] = str(entry["content"])
        tree_hash = self._next("T")
        self.trees[tree_hash] = files
        return TreeObject(
            hash=tree_hash,
            base_tree_hash=base_tree_hash,
            paths=tuple(str(entry["path"]) for entry in entries),
        )

    def create_commit(self, message: str, tree_hash: str, parent_hash: str) -> CommitObject:
        self.calls.append(("create_commit", message, tree_hash, [parent_hash]))
        self._maybe_fail("create_commit")
        commit = CommitObject(
            hash=self._next("H"),
            tree_hash=tree_hash,
            parent_hashes=self.commit_parents_override or (parent_hash,),
            message=message,
            author="github-actions[bot]",
            timestamp="2024-01-02T00:00:00Z",
        )
        self.commits[commit.hash] = commit
        return commit

    def update_ref(self, branch: str, commit_hash: str, *, expected_hash: str) -> BranchRef:
        self.calls.append(("update_ref", branch, commit_hash, expected_hash))
        if self.before_update is not None:
            hook = self.before_update
            self.before_update = None
            hook()
        self._maybe_fail("update_ref")
        current = self.refs.get(branch)
        if current is None:
            raise RefNotFound("Failed to update reference: 404 - Not Found", status_code=404)
        if self.commits[commit_hash].parent_hashes != (current,):
            raise ConcurrentModification(
                "Failed to update reference: 422 - Update is not a fast forward",
                status_code=422,
                detail="Update is not a fast forward",
            )
        self.refs[branch] = commit_hash
        return BranchRef(name=branch, commit_hash=commit_hash)


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture(autouse=True)
def restore_ghcommit_logger_state() -> Iterator[None]:
    logger = logging.getLogger("ghcommit")
    original_handlers = list(logger.handlers)
    original_level = logger.level
    original_propagate = logger.propagate
    try:
        yield
    finally:
        for handler in logger.handlers:
            if handler not in original_handlers:
                handler.close()
        logger.handlers.clear()
        for handler in original_handlers:
            logger.addHandler(handler)
        logger.setLevel(original_level)
        logger.propagate = original_propagate
