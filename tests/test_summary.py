from __future__ import annotations

import json

from ghcommit.errors import RefNotFound
from ghcommit.models import CommitObject, MutationResult
from ghcommit.summary import format_error, render_result, summarize_result


def _result(kind: str, paths: tuple[str, ...]) -> MutationResult:
    return MutationResult(
        commit_hash="H1",
        tree_hash="T1",
        affected_paths=paths,
        kind=kind,  # type: ignore[arg-type]
        commit=CommitObject(
            hash="H1",
            tree_hash="T1",
            parent_hashes=("H0",),
            message="update docs",
            author="github-actions[bot]",
            timestamp="2024-01-02T00:00:00Z",
        ),
        states=(
            "start",
            "ref_read",
            "commit_read",
            "tree_built",
            "tree_written",
            "commit_written",
            "ref_updated",
        ),
    )


def test_summarize_commit_result_lists_files() -> None:
    assert summarize_result(_result("write", ("a.txt", "src/b.py"))) == {
        "commit": {
            "sha": "H1",
            "message": "update docs",
            "author": "github-actions[bot]",
            "date": "2024-01-02T00:00:00Z",
        },
        "files": [{"path": "a.txt"}, {"path": "src/b.py"}],
        "tree": {"sha": "T1"},
    }


def test_summarize_delete_result_lists_deleted_files() -> None:
    summary = summarize_result(_result("delete", ("old.txt",)))

    assert summary["deleted_files"] == [{"path": "old.txt"}]
    assert "files" not in summary


def test_render_result_is_indented_json() -> None:
    rendered = render_result(_result("write", ("a.txt",)))

    assert rendered.startswith("{\n  ")
    assert json.loads(rendered)["commit"]["sha"] == "H1"


def test_format_error_includes_step_context() -> None:
    exc = RefNotFound("Failed to get branch reference: 404 - Not Found", status_code=404)
    exc.attach(step="ref_read", branch="main")

    assert format_error(exc) == (
        "Error: Failed to get branch reference: 404 - Not Found (step=ref_read, branch=main)"
    )
