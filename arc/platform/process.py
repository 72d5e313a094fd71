"""Subprocess execution with Result-based error handling.

Every external command arc runs (``git``, ``gh``) goes through ``run`` so
failures come back as data instead of exceptions:

    result = run(["git", "ls-remote", "--tags", url], cwd=repo_path)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.stderr}")

Commands never prompt: credential and pager prompts are disabled, so a
missing login fails fast instead of hanging a release halfway through.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from arc.core.log import get_logger
from arc.core.result import Err, Ok, Result

__all__ = ["ProcessError", "NON_INTERACTIVE_ENV", "run"]

log = get_logger("process")

NON_INTERACTIVE_ENV: dict[str, str] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_PAGER": "cat",
    "GH_PROMPT_DISABLED": "1",
    "GH_NO_UPDATE_NOTIFIER": "1",
}


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not run or exited non-zero.

    ``returncode`` is -1 when the process never ran or timed out.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        shown = " ".join(self.command[:3])
        if len(self.command) > 3:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def _child_env(overrides: Mapping[str, str] | None) -> dict[str, str]:
    env = dict(os.environ)
    env.update(NON_INTERACTIVE_ENV)
    if overrides:
        env.update(overrides)
    return env


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd`` and return its stdout.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Variables added on top of the inherited, non-interactive environment.
        timeout: Seconds before the command is killed (None for no limit).
    """
    argv = tuple(cmd)
    log.debug("run: %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=_child_env(env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        log.debug("run: timed out after %ss", timeout)
        return Err(ProcessError(argv, -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(argv, -1, "", str(e)))

    if proc.returncode != 0:
        log.debug("run: exit %d: %s", proc.returncode, proc.stderr.strip())
        return Err(ProcessError(argv, proc.returncode, proc.stdout, proc.stderr))

    return Ok(proc.stdout)
