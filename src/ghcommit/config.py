from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
import tomllib
from typing import cast


DEFAULT_API_VERSION = "2022-11-28"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class RepoTarget:
    owner: str
    name: str
    branch: str
    repo_dir: Path

    def __post_init__(self) -> None:
        for key in ("owner", "name", "branch"):
            value = getattr(self, key)
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"target.{key} must be a non-empty string")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class ApiConfig:
    api_version: str = DEFAULT_API_VERSION
    hostname: str | None = None
    gh_binary: str = "gh"
    request_timeout_seconds: int = 60


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_seconds: float = 5.0
    max_delay_seconds: float = 20.0
    backoff_factor: float = 2.0


@dataclass(frozen=True)
class EngineConfig:
    target: RepoTarget
    api: ApiConfig = field(default_factory=ApiConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)


def load_config(path: Path, *, cwd: Path | None = None) -> EngineConfig:
    with path.open("rb") as fh:
        data = tomllib.load(fh)

    target_data = _require_table(data, "target")
    api_data = _optional_table(data, "api") or {}
    retry_data = _optional_table(data, "retry") or {}

    base_dir = cwd if cwd is not None else Path.cwd()
    repo_dir = _optional_path(target_data, "repo_dir")
    if repo_dir is None:
        repo_dir = base_dir
    elif not repo_dir.is_absolute():
        repo_dir = base_dir / repo_dir

    target = RepoTarget(
        owner=_require_str(target_data, "owner"),
        name=_require_str(target_data, "name"),
        branch=_require_str(target_data, "branch"),
        repo_dir=repo_dir,
    )
    return EngineConfig(
        target=target,
        api=_parse_api_config(api_data),
        retry=_parse_retry_policy(retry_data),
    )


def config_from_env(environ: Mapping[str, str], *, cwd: Path) -> EngineConfig:
    missing = [key for key in ("REPO_OWNER", "REPO_NAME", "BRANCH_NAME") if not environ.get(key)]
    if missing:
        raise ConfigError(
            "REPO_OWNER, REPO_NAME, and BRANCH_NAME environment variables are required "
            f"(missing: {', '.join(missing)})"
        )
    raw_repo_dir = environ.get("REPO_DIR")
    repo_dir = Path(raw_repo_dir).expanduser() if raw_repo_dir else cwd
    api_version = environ.get("GITHUB_API_VERSION") or DEFAULT_API_VERSION
    hostname = environ.get("GH_HOST") or None
    return EngineConfig(
        target=RepoTarget(
            owner=environ["REPO_OWNER"],
            name=environ["REPO_NAME"],
            branch=environ["BRANCH_NAME"],
            repo_dir=repo_dir,
        ),
        api=ApiConfig(api_version=api_version, hostname=hostname),
    )


def _parse_api_config(api_data: dict[str, object]) -> ApiConfig:
    api = ApiConfig(
        api_version=_str_with_default(api_data, "api_version", DEFAULT_API_VERSION),
        hostname=_optional_str(api_data, "hostname"),
        gh_binary=_str_with_default(api_data, "gh_binary", "gh"),
        request_timeout_seconds=_int_with_default(api_data, "request_timeout_seconds", 60),
    )
    if api.request_timeout_seconds < 1:
        raise ConfigError("api.request_timeout_seconds must be >= 1")
    return api


def _parse_retry_policy(retry_data: dict[str, object]) -> RetryPolicy:
    policy = RetryPolicy(
        max_attempts=_int_with_default(retry_data, "max_attempts", 3),
        initial_delay_seconds=_float_with_default(retry_data, "initial_delay_seconds", 5.0),
        max_delay_seconds=_float_with_default(retry_data, "max_delay_seconds", 20.0),
        backoff_factor=_float_with_default(retry_data, "backoff_factor", 2.0),
    )
    if policy.max_attempts < 1:
        raise ConfigError("retry.max_attempts must be >= 1")
    if policy.initial_delay_seconds < 0:
        raise ConfigError("retry.initial_delay_seconds must be >= 0")
    if policy.max_delay_seconds < policy.initial_delay_seconds:
        raise ConfigError("retry.max_delay_seconds must be >= retry.initial_delay_seconds")
    if policy.backoff_factor < 1:
        raise ConfigError("retry.backoff_factor must be >= 1")
    return policy


def _require_table(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] is required and must be a TOML table")
    if not all(isinstance(item, str) for item in value.keys()):
        raise ConfigError(f"[{key}] must have string keys")
    return cast(dict[str, object], value)


def _optional_table(data: dict[str, object], key: str) -> dict[str, object] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] must be a TOML table when provided")
    if not all(isinstance(item, str) for item in value.keys()):
        raise ConfigError(f"[{key}] must have string keys")
    return cast(dict[str, object], value)


def _require_str(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} is required and must be a non-empty string")
    return value


def _optional_str(data: dict[str, object], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string if provided")
    return value


def _str_with_default(data: dict[str, object], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string")
    return value


def _int_with_default(data: dict[str, object], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer")
    return value


def _float_with_default(data: dict[str, object], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigError(f"{key} must be a number")
    return float(value)


def _optional_path(data: dict[str, object], key: str) -> Path | None:
    value = _optional_str(data, key)
    if value is None:
        return None
    return Path(value).expanduser()
