from __future__ import annotations

import json

from ghcommit.models import MutationResult


def summarize_result(result: MutationResult) -> dict[str, object]:
    files_key = "files" if result.kind == "write" else "deleted_files"
    return {
        "commit": {
            "sha": result.commit_hash,
            "message": result.commit.message,
            "author": result.commit.author,
            "date": result.commit.timestamp,
        },
        files_key: [{"path": path} for path in result.affected_paths],
        "tree": {"sha": result.tree_hash},
    }


def render_result(result: MutationResult) -> str:
    return json.dumps(summarize_result(result), indent=2)


def format_error(exc: BaseException) -> str:
    return f"Error: {exc}"
