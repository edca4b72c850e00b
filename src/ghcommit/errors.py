from __future__ import annotations

from typing import ClassVar

from ghcommit.models import MutationStep


class MutationError(RuntimeError):
    """Base failure of a repository mutation.

    `step`, `branch` and `path` are filled in as the error propagates through the
    engine, so callers can tell which step failed without parsing the message.
    """

    retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        step: MutationStep | None = None,
        branch: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.branch = branch
        self.path = path
        self.status_code = status_code
        self.detail = detail

    def attach(
        self,
        *,
        step: MutationStep | None = None,
        branch: str | None = None,
        path: str | None = None,
    ) -> None:
        # Innermost context wins; outer layers only fill gaps.
        if self.step is None:
            self.step = step
        if self.branch is None:
            self.branch = branch
        if self.path is None:
            self.path = path

    def __str__(self) -> str:
        context: list[str] = []
        if self.step is not None:
            context.append(f"step={self.step}")
        if self.branch is not None:
            context.append(f"branch={self.branch}")
        if self.path is not None:
            context.append(f"path={self.path}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class AuthError(MutationError):
    pass


class MissingCredential(MutationError):
    pass


class RefNotFound(MutationError):
    pass


class ObjectNotFound(MutationError):
    pass


class TreeConstructionError(MutationError):
    pass


class CommitConstructionError(MutationError):
    pass


class ConcurrentModification(MutationError):
    """The branch moved since it was read; re-run the whole mutation."""

    retryable = True


class TransientNetworkError(MutationError):
    retryable = True


class LocalFileNotFound(MutationError):
    pass


class LocalFileUnreadable(MutationError):
    """The local file exists but cannot be read as UTF-8 text."""


class ObjectStoreResponseError(MutationError):
    """The object store answered 2xx with a payload we cannot interpret."""


class ObjectStoreUnavailable(MutationError):
    """The object store client could not be started, e.g. `gh` is not installed."""


class InvalidRequestError(MutationError):
    pass


class PathValidationError(InvalidRequestError):
    pass


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, MutationError) and exc.retryable
