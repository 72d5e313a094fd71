from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

from arc.core.result import Err, Ok
from arc.platform.process import ProcessError, run


def test_run_returns_stdout(tmp_path: Path) -> None:
    result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
    assert result == Ok("hello\n")


def test_run_nonzero_exit_is_err(tmp_path: Path) -> None:
    result = run(
        [sys.executable, "-c", "import sys; sys.stderr.write('nope'); sys.exit(3)"],
        cwd=tmp_path,
    )
    assert isinstance(result, Err)
    assert result.error.returncode == 3
    assert result.error.stderr == "nope"


def test_run_missing_binary_is_err(tmp_path: Path) -> None:
    result = run(["definitely-not-a-real-binary-arc"], cwd=tmp_path)
    assert isinstance(result, Err)
    assert result.error.returncode == -1


def test_run_timeout_is_err(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*_args: object, **_kwargs: object) -> subprocess.CompletedProcess[str]:
        raise subprocess.TimeoutExpired(cmd="git", timeout=1.0)

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = run(["git", "fetch"], cwd=tmp_path, timeout=1.0)

    assert isinstance(result, Err)
    assert "timed out" in result.error.stderr


def test_process_error_str_truncates_command() -> None:
    err = ProcessError(command=("git", "-C", "/ws", "fetch"), returncode=128, stdout="", stderr="")
    assert str(err) == "git -C /ws ... failed (exit 128)"


def test_run_disables_prompts_and_applies_overrides(tmp_path: Path) -> None:
    script = "import os; print(os.environ['GIT_TERMINAL_PROMPT'], os.environ['ARC_PROBE'])"
    result = run([sys.executable, "-c", script], cwd=tmp_path, env={"ARC_PROBE": "x"})
    assert result == Ok("0 x\n")
