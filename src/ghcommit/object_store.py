from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
import json
import logging
from typing import cast
from urllib.parse import quote

from ghcommit.config import ApiConfig
from ghcommit.credentials import CredentialProvider
from ghcommit.errors import (
    AuthError,
    CommitConstructionError,
    ConcurrentModification,
    MutationError,
    ObjectNotFound,
    ObjectStoreResponseError,
    ObjectStoreUnavailable,
    RefNotFound,
    TransientNetworkError,
    TreeConstructionError,
)
from ghcommit.models import BranchRef, CommitObject, TreeObject
from ghcommit.observability import log_event, log_warning_event
from ghcommit.shell import CommandTimeout, run


LOGGER = logging.getLogger("ghcommit.object_store")
_ACCEPT_HEADER = "Accept: application/vnd.github+json"
_JSON_CONTENT_TYPE_HEADER = "Content-Type: application/json"
_AUTH_STATUS_CODES = frozenset({401, 403})
_REJECTED_STATUS_CODES = frozenset({409, 422})


class ObjectStore(ABC):
    """The five git-data operations a mutation consumes."""

    @abstractmethod
    def check_credentials(self) -> None:
        """Raise MissingCredential if no credential is available."""

    @abstractmethod
    def get_ref(self, branch: str) -> BranchRef: ...

    @abstractmethod
    def get_commit(self, commit_hash: str) -> CommitObject: ...

    @abstractmethod
    def create_tree(
        self, base_tree_hash: str, entries: Sequence[dict[str, object]]
    ) -> TreeObject: ...

    @abstractmethod
    def create_commit(self, message: str, tree_hash: str, parent_hash: str) -> CommitObject: ...

    @abstractmethod
    def update_ref(self, branch: str, commit_hash: str, *, expected_hash: str) -> BranchRef: ...


@dataclass(frozen=True)
class _FailureKinds:
    operation: str
    not_found: type[MutationError]
    rejected: type[MutationError]
    invalid: type[MutationError]


class GitObjectStore(ObjectStore):
    """GitHub git data API, driven through `gh api`."""

    def __init__(
        self,
        owner: str,
        name: str,
        *,
        credentials: CredentialProvider,
        api: ApiConfig | None = None,
    ) -> None:
        self.owner = owner
        self.name = name
        self._credentials = credentials
        self._api = api if api is not None else ApiConfig()

    @property
    def _repo_path(self) -> str:
        return f"/repos/{quote(self.owner, safe='')}/{quote(self.name, safe='')}"

    def check_credentials(self) -> None:
        self._credentials.token()

    def get_ref(self, branch: str) -> BranchRef:
        payload = self._api_json(
            "GET",
            f"{self._repo_path}/git/ref/heads/{quote(branch, safe='/')}",
            failure=_FailureKinds(
                operation="get branch reference",
                not_found=RefNotFound,
                rejected=RefNotFound,
                invalid=RefNotFound,
            ),
        )
        object_obj = _as_object_dict(payload.get("object"))
        sha = _require_sha(object_obj.get("sha") if object_obj else None, field="object.sha")
        return BranchRef(name=branch, commit_hash=sha)

    def get_commit(self, commit_hash: str) -> CommitObject:
        payload = self._api_json(
            "GET",
            f"{self._repo_path}/git/commits/{quote(commit_hash, safe='')}",
            failure=_FailureKinds(
                operation="get base commit",
                not_found=ObjectNotFound,
                rejected=ObjectNotFound,
                invalid=ObjectNotFound,
            ),
        )
        return _parse_commit(payload)

    def create_tree(
        self, base_tree_hash: str, entries: Sequence[dict[str, object]]
    ) -> TreeObject:
        payload = self._api_json(
            "POST",
            f"{self._repo_path}/git/trees",
            payload={"base_tree": base_tree_hash, "tree": list(entries)},
            failure=_FailureKinds(
                operation="create tree",
                not_found=TreeConstructionError,
                rejected=TreeConstructionError,
                invalid=TreeConstructionError,
            ),
        )
        return TreeObject(
            hash=_require_sha(payload.get("sha"), field="sha"),
            base_tree_hash=base_tree_hash,
            paths=tuple(_as_string(entry.get("path")) for entry in entries),
        )

    def create_commit(self, message: str, tree_hash: str, parent_hash: str) -> CommitObject:
        payload = self._api_json(
            "POST",
            f"{self._repo_path}/git/commits",
            payload={"message": message, "tree": tree_hash, "parents": [parent_hash]},
            failure=_FailureKinds(
                operation="create commit",
                not_found=CommitConstructionError,
                rejected=CommitConstructionError,
                invalid=CommitConstructionError,
            ),
        )
        return _parse_commit(payload)

    def update_ref(self, branch: str, commit_hash: str, *, expected_hash: str) -> BranchRef:
        # GitHub has no compare-and-swap field; a non-forcing update is rejected unless
        # the new commit descends from the current tip, and ours descends from expected_hash.
        try:
            payload = self._api_json(
                "PATCH",
                f"{self._repo_path}/git/refs/heads/{quote(branch, safe='/')}",
                payload={"sha": commit_hash, "force": False},
                failure=_FailureKinds(
                    operation="update reference",
                    not_found=RefNotFound,
                    rejected=ConcurrentModification,
                    invalid=ObjectStoreResponseError,
                ),
            )
        except ConcurrentModification as exc:
            log_warning_event(
                LOGGER,
                "ref_update_rejected",
                repo_full_name=f"{self.owner}/{self.name}",
                branch=branch,
                expected_hash=expected_hash,
                commit_hash=commit_hash,
                detail=exc.detail,
            )
            raise
        object_obj = _as_object_dict(payload.get("object"))
        sha = _require_sha(object_obj.get("sha") if object_obj else None, field="object.sha")
        if sha != commit_hash:
            raise ObjectStoreResponseError(
                f"Reference {branch} points at {sha} after update, expected {commit_hash}"
            )
        return BranchRef(name=branch, commit_hash=sha)

    def _api_json(
        self,
        method: str,
        path: str,
        *,
        failure: _FailureKinds,
        payload: dict[str, object] | None = None,
    ) -> dict[str, object]:
        token = self._credentials.token()
        method_upper = method.upper()
        cmd = [
            self._api.gh_binary,
            "api",
            "--method",
            method_upper,
            "--include",
            "--header",
            _ACCEPT_HEADER,
            "--header",
            f"X-GitHub-Api-Version: {self._api.api_version}",
        ]
        if self._api.hostname:
            cmd.extend(["--hostname", self._api.hostname])
        stdin_payload: str | None = None
        if payload is not None:
            cmd.extend(["--header", _JSON_CONTENT_TYPE_HEADER, "--input", "-"])
            stdin_payload = json.dumps(payload)
        cmd.append(path)

        extra_env = {"GH_TOKEN": token, "GH_ENTERPRISE_TOKEN": token, "GH_PROMPT_DISABLED": "1"}
        try:
            output = run(
                cmd,
                input_text=stdin_payload,
                extra_env=extra_env,
                timeout_seconds=self._api.request_timeout_seconds,
            )
        except CommandTimeout as exc:
            raise TransientNetworkError(
                f"Failed to {failure.operation}: request timed out after "
                f"{self._api.request_timeout_seconds}s"
            ) from exc
        except OSError as exc:
            raise ObjectStoreUnavailable(
                f"Failed to {failure.operation}: cannot run {self._api.gh_binary}: "
                f"{exc.strerror or exc}"
            ) from exc

        try:
            status_code, _headers, body = _parse_http_response(output.stdout)
        except ValueError as exc:
            log_warning_event(
                LOGGER,
                "object_store_unreachable",
                method=method_upper,
                path=path,
                exit_code=output.returncode,
                stderr=_preview_for_log(output.stderr),
            )
            raise TransientNetworkError(
                f"Failed to {failure.operation}: no HTTP response "
                f"(exit {output.returncode}): {output.stderr.strip() or '<empty>'}"
            ) from exc

        log_event(
            LOGGER,
            "object_store_call",
            method=method_upper,
            path=path,
            status_code=status_code,
        )
        if status_code < 200 or status_code >= 300:
            raise _error_for_status(status_code, body, failure=failure)

        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ObjectStoreResponseError(
                f"Failed to {failure.operation}: response body is not JSON: "
                f"{_preview_for_log(body)}",
                status_code=status_code,
            ) from exc
        payload_obj = _as_object_dict(decoded)
        if payload_obj is None:
            raise ObjectStoreResponseError(
                f"Failed to {failure.operation}: expected a JSON object",
                status_code=status_code,
            )
        return payload_obj


def _error_for_status(status_code: int, body: str, *, failure: _FailureKinds) -> MutationError:
    detail = _provider_message(body)
    message = f"Failed to {failure.operation}: {status_code} - {detail}"
    error_type: type[MutationError]
    if status_code == 429 or status_code >= 500:
        error_type = TransientNetworkError
    elif status_code in _AUTH_STATUS_CODES:
        if "rate limit" in detail.lower():
            error_type = TransientNetworkError
        else:
            error_type = AuthError
    elif status_code == 404 or (
        status_code in _REJECTED_STATUS_CODES and "does not exist" in detail.lower()
    ):
        # GitHub answers 422 "Reference does not exist" for a vanished ref.
        error_type = failure.not_found
    elif status_code in _REJECTED_STATUS_CODES:
        error_type = failure.rejected
    else:
        error_type = failure.invalid
    return error_type(message, status_code=status_code, detail=detail)


def _provider_message(body: str) -> str:
    stripped = body.strip()
    if not stripped:
        return "<empty>"
    try:
        decoded = json.loads(stripped)
    except json.JSONDecodeError:
        return stripped
    decoded_obj = _as_object_dict(decoded)
    if decoded_obj is not None:
        message = decoded_obj.get("message")
        if isinstance(message, str) and message:
            return message
    return stripped


def _parse_commit(payload: dict[str, object]) -> CommitObject:
    tree_obj = _as_object_dict(payload.get("tree"))
    author_obj = _as_object_dict(payload.get("author"))
    parents: list[str] = []
    parents_obj = payload.get("parents")
    if isinstance(parents_obj, list):
        for parent in parents_obj:
            parent_obj = _as_object_dict(parent)
            if parent_obj is None:
                continue
            parents.append(_require_sha(parent_obj.get("sha"), field="parents.sha"))
    return CommitObject(
        hash=_require_sha(payload.get("sha"), field="sha"),
        tree_hash=_require_sha(tree_obj.get("sha") if tree_obj else None, field="tree.sha"),
        parent_hashes=tuple(parents),
        message=_as_string(payload.get("message")),
        author=_as_string(author_obj.get("name") if author_obj else None),
        timestamp=_as_string(author_obj.get("date") if author_obj else None),
    )


def _parse_http_response(raw: str) -> tuple[int, dict[str, str], str]:
    normalized = raw.replace("\r\n", "\n")
    lines = normalized.split("\n")

    status_line_index = -1
    for index, line in enumerate(lines):
        if line.startswith("HTTP/"):
            status_line_index = index

    if status_line_index < 0:
        raise ValueError("Unexpected GitHub response: missing HTTP status line")

    status_line = lines[status_line_index]
    status_parts = status_line.split(" ", 2)
    if len(status_parts) < 2:
        raise ValueError(f"Unexpected GitHub response status line: {status_line!r}")

    try:
        status_code = int(status_parts[1])
    except ValueError as exc:
        raise ValueError(f"Unexpected GitHub response status line: {status_line!r}") from exc

    headers: dict[str, str] = {}
    body_start = len(lines)
    for index in range(status_line_index + 1, len(lines)):
        line = lines[index]
        if line == "":
            body_start = index + 1
            break
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip().lower()] = value.strip()

    body = "\n".join(lines[body_start:])
    return status_code, headers, body


def _preview_for_log(text: str, *, limit: int = 240) -> str:
    compact = text.replace("\n", "\\n").strip()
    if not compact:
        return "<empty>"
    if len(compact) <= limit:
        return compact
    return f"{compact[:limit]}..."


def _as_object_dict(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    if not all(isinstance(key, str) for key in value.keys()):
        return None
    return cast(dict[str, object], value)


def _as_string(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _require_sha(value: object, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ObjectStoreResponseError(f"Unexpected GitHub response: missing {field}")
    return value.strip()
