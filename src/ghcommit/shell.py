from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import subprocess


class CommandTimeout(RuntimeError):
    pass


@dataclass(frozen=True)
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str


LOGGER = logging.getLogger("ghcommit.shell")


def run(
    argv: list[str],
    *,
    input_text: str | None = None,
    extra_env: dict[str, str] | None = None,
    timeout_seconds: float | None = None,
) -> CommandOutput:
    """Run `argv` and return its output; a non-zero exit is left to the caller."""
    env: dict[str, str] | None = None
    if extra_env:
        env = dict(os.environ)
        env.update(extra_env)
    try:
        proc = subprocess.run(
            argv,
            input=input_text,
            env=env,
            text=True,
            capture_output=True,
            timeout=timeout_seconds,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        LOGGER.error(
            "event=command_timed_out command=%s timeout_seconds=%s",
            " ".join(argv),
            timeout_seconds,
        )
        raise CommandTimeout(
            f"Command timed out after {timeout_seconds}s\ncmd: {' '.join(argv)}"
        ) from exc
    return CommandOutput(returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)
