from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from ghcommit.errors import MissingCredential


# Earlier keys win; an explicit override beats the workflow token.
TOKEN_ENV_KEYS: tuple[str, ...] = ("OVERRIDE_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")


class CredentialProvider(ABC):
    @abstractmethod
    def token(self) -> str:
        """Return the bearer token for object-store calls or raise MissingCredential."""


@dataclass(frozen=True)
class StaticCredentialProvider(CredentialProvider):
    value: str | None

    def token(self) -> str:
        if self.value is None or not self.value.strip():
            raise MissingCredential("GitHub token is required but was not provided")
        return self.value.strip()


@dataclass(frozen=True)
class EnvCredentialProvider(CredentialProvider):
    environ: Mapping[str, str]
    keys: tuple[str, ...] = TOKEN_ENV_KEYS

    def token(self) -> str:
        for key in self.keys:
            value = self.environ.get(key, "").strip()
            if value:
                return value
        raise MissingCredential(
            f"GitHub token is required; set one of {', '.join(self.keys)}"
        )
