from __future__ import annotations

import argparse
from collections.abc import Mapping
import os
from pathlib import Path
import sys

from ghcommit.config import ConfigError, EngineConfig, config_from_env, load_config
from ghcommit.credentials import EnvCredentialProvider
from ghcommit.engine import MutationEngine
from ghcommit.errors import MutationError
from ghcommit.models import EntryKind, MutationResult
from ghcommit.object_store import GitObjectStore
from ghcommit.observability import configure_logging
from ghcommit.retry import retry_mutation
from ghcommit.summary import format_error, render_result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ghcommit")
    subparsers = parser.add_subparsers(dest="command", required=True)

    commit_parser = subparsers.add_parser(
        "commit", help="Commit local files to the target branch in a single commit"
    )
    commit_parser.add_argument(
        "paths",
        nargs="+",
        help="File paths relative to the repository root; all must exist locally",
    )
    _add_common_arguments(commit_parser)

    delete_parser = subparsers.add_parser(
        "delete", help="Delete files from the target branch in a single commit"
    )
    delete_parser.add_argument(
        "paths",
        nargs="+",
        help="File paths to delete, relative to the repository root",
    )
    _add_common_arguments(delete_parser)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-m", "--message", required=True, help="Commit message")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML config; without it REPO_OWNER, REPO_NAME, BRANCH_NAME and REPO_DIR are used",
    )
    parser.add_argument(
        "--retry",
        action="store_true",
        help="Retry the whole mutation with backoff on conflicts and transient failures",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        nargs="?",
        const="high",
        default=None,
        choices=("low", "high"),
        help="Enable runtime logging to stderr (default mode: high)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Also write logs to UTC daily files in this directory",
    )


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(args.verbose, log_dir=args.log_dir)
    environ = dict(os.environ)
    try:
        config = _load_engine_config(args.config, environ=environ)
    except ConfigError as exc:
        print(format_error(exc), file=sys.stderr)
        raise SystemExit(2) from exc

    if args.command not in ("commit", "delete"):
        raise RuntimeError(f"Unknown command: {args.command}")
    kind: EntryKind = "write" if args.command == "commit" else "delete"
    engine = _build_engine(config, environ=environ)
    try:
        result = _cmd_mutate(
            engine,
            config,
            kind=kind,
            paths=list(args.paths),
            message=args.message,
            retry=bool(args.retry),
        )
    except MutationError as exc:
        print(format_error(exc), file=sys.stderr)
        raise SystemExit(1) from exc
    print(render_result(result))


def _load_engine_config(path: Path | None, *, environ: Mapping[str, str]) -> EngineConfig:
    if path is not None:
        return load_config(path)
    return config_from_env(environ, cwd=Path.cwd())


def _build_engine(config: EngineConfig, *, environ: Mapping[str, str]) -> MutationEngine:
    store = GitObjectStore(
        config.target.owner,
        config.target.name,
        credentials=EnvCredentialProvider(environ),
        api=config.api,
    )
    return MutationEngine(config.target, store=store)


def _cmd_mutate(
    engine: MutationEngine,
    config: EngineConfig,
    *,
    kind: EntryKind,
    paths: list[str],
    message: str,
    retry: bool,
) -> MutationResult:
    def attempt() -> MutationResult:
        return engine.apply_entries(kind, paths, message)

    if not retry:
        return attempt()
    return retry_mutation(attempt, policy=config.retry)
