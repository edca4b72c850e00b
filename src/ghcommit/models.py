from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


REGULAR_FILE_MODE = "100644"

EntryKind = Literal["write", "delete"]
MutationStep = Literal[
    "ref_read",
    "commit_read",
    "tree_built",
    "tree_written",
    "commit_written",
    "ref_updated",
]
MutationState = Literal[
    "start",
    "ref_read",
    "commit_read",
    "tree_built",
    "tree_written",
    "commit_written",
    "ref_updated",
    "failed",
]


@dataclass(frozen=True)
class BranchRef:
    name: str
    commit_hash: str


@dataclass(frozen=True)
class CommitObject:
    hash: str
    tree_hash: str
    parent_hashes: tuple[str, ...]
    message: str
    author: str
    timestamp: str


@dataclass(frozen=True)
class TreeObject:
    hash: str
    base_tree_hash: str
    paths: tuple[str, ...]


@dataclass(frozen=True)
class WriteAction:
    content: str
    kind: Literal["write"] = "write"


@dataclass(frozen=True)
class DeleteAction:
    kind: Literal["delete"] = "delete"


EntryAction = WriteAction | DeleteAction


@dataclass(frozen=True)
class PathEntry:
    path: str
    action: EntryAction
    mode: str = REGULAR_FILE_MODE


@dataclass(frozen=True)
class MutationRequest:
    target_branch: str
    base_commit_hash: str
    entries: tuple[PathEntry, ...]
    message: str

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(entry.path for entry in self.entries)


@dataclass(frozen=True)
class MutationResult:
    commit_hash: str
    tree_hash: str
    affected_paths: tuple[str, ...]
    kind: EntryKind
    commit: CommitObject
    states: tuple[MutationState, ...]
