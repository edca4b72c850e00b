from __future__ import annotations

import subprocess

import pytest

from ghcommit.observability import configure_logging
from ghcommit.shell import CommandOutput, CommandTimeout, run


def test_run_success(monkeypatch: pytest.MonkeyPatch) -> None:
    called: dict[str, object] = {}

    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        called["args"] = args
        called["kwargs"] = kwargs
        return subprocess.CompletedProcess(args=["echo"], returncode=0, stdout="ok", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)

    out = run(["echo", "hello"], input_text="hi", timeout_seconds=7)

    assert out == CommandOutput(returncode=0, stdout="ok", stderr="")
    kwargs = called["kwargs"]
    assert isinstance(kwargs, dict)
    assert kwargs["input"] == "hi"
    assert kwargs["check"] is False
    assert kwargs["timeout"] == 7
    assert kwargs["env"] is None


def test_run_merges_extra_env(monkeypatch: pytest.MonkeyPatch) -> None:
    called: dict[str, object] = {}

    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        called["env"] = kwargs["env"]
        return subprocess.CompletedProcess(args=["gh"], returncode=0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    monkeypatch.setenv("GHCOMMIT_SHELL_TEST", "inherited")

    run(["gh"], extra_env={"GH_TOKEN": "t"})

    env = called["env"]
    assert isinstance(env, dict)
    assert env["GH_TOKEN"] == "t"
    assert env["GHCOMMIT_SHELL_TEST"] == "inherited"


def test_run_returns_failed_output_without_raising(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        _ = args, kwargs
        return subprocess.CompletedProcess(
            args=["gh"], returncode=1, stdout="HTTP/2.0 404", stderr="nf"
        )

    monkeypatch.setattr(subprocess, "run", fake_run)

    out = run(["gh"])

    assert out.returncode == 1
    assert out.stdout == "HTTP/2.0 404"
    assert out.stderr == "nf"


def test_run_timeout_raises_command_timeout(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.TimeoutExpired(cmd=["gh", "api"], timeout=3)

    monkeypatch.setattr(subprocess, "run", fake_run)
    configure_logging(verbose="high")

    with pytest.raises(CommandTimeout, match="timed out after 3s"):
        run(["gh", "api"], timeout_seconds=3)
    assert "event=command_timed_out command=gh api timeout_seconds=3" in capsys.readouterr().err


def test_run_lets_missing_binary_propagate(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", "gh")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(FileNotFoundError):
        run(["gh", "api"])
