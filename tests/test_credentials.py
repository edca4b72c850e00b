from __future__ import annotations

import pytest

from ghcommit.credentials import (
    TOKEN_ENV_KEYS,
    EnvCredentialProvider,
    StaticCredentialProvider,
)
from ghcommit.errors import MissingCredential


def test_override_token_wins_over_workflow_token() -> None:
    provider = EnvCredentialProvider(
        {"GITHUB_TOKEN": "workflow", "OVERRIDE_GITHUB_TOKEN": "override", "GH_TOKEN": "gh"}
    )

    assert provider.token() == "override"


def test_falls_back_through_keys_in_order() -> None:
    assert EnvCredentialProvider({"GITHUB_TOKEN": "workflow", "GH_TOKEN": "gh"}).token() == (
        "workflow"
    )
    assert EnvCredentialProvider({"OVERRIDE_GITHUB_TOKEN": " ", "GH_TOKEN": "gh"}).token() == "gh"


def test_missing_env_token_names_every_key() -> None:
    with pytest.raises(MissingCredential) as exc:
        EnvCredentialProvider({}).token()

    for key in TOKEN_ENV_KEYS:
        assert key in str(exc.value)


def test_custom_keys() -> None:
    provider = EnvCredentialProvider({"MY_TOKEN": "t"}, keys=("MY_TOKEN",))

    assert provider.token() == "t"


def test_static_provider_strips_and_rejects_blank() -> None:
    assert StaticCredentialProvider(" abc \n").token() == "abc"
    with pytest.raises(MissingCredential, match="token is required"):
        StaticCredentialProvider(None).token()
    with pytest.raises(MissingCredential):
        StaticCredentialProvider("").token()
