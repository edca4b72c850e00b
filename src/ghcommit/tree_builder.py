from __future__ import annotations

from collections.abc import Sequence

from ghcommit.errors import InvalidRequestError, PathValidationError
from ghcommit.models import DeleteAction, PathEntry, WriteAction


def build_tree_entries(entries: Sequence[PathEntry]) -> list[dict[str, object]]:
    """Shape entries for a create-tree call layered on a base tree.

    A write carries its content inline; a delete carries a null `sha`, which
    removes the path from the resulting tree.
    """
    if not entries:
        raise InvalidRequestError("A mutation must touch at least one path")

    seen: set[str] = set()
    tree: list[dict[str, object]] = []
    for entry in entries:
        if entry.path in seen:
            raise PathValidationError(
                f"Path appears more than once in one mutation: {entry.path}", path=entry.path
            )
        seen.add(entry.path)
        item: dict[str, object] = {"path": entry.path, "mode": entry.mode, "type": "blob"}
        if isinstance(entry.action, WriteAction):
            item["content"] = entry.action.content
        elif isinstance(entry.action, DeleteAction):
            item["sha"] = None
        else:
            raise InvalidRequestError(f"Unsupported entry action: {entry.action!r}")
        tree.append(item)
    return tree
