from __future__ import annotations

from pathlib import Path

import pytest

from arc.core.result import Err, Ok
from arc.release.version import Version
from arc.services.release.state import ReleaseState, load_release_state, save_release_state


def test_missing_file_means_no_release(tmp_path: Path) -> None:
    assert load_release_state(tmp_path / "release.json") == Ok(None)


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / ".arc" / "release.json"
    assert save_release_state(path, ReleaseState(Version(0, 21, 0))) == Ok(None)
    assert path.read_text(encoding="utf-8") == '{\n  "release_version": "0.21.0"\n}\n'
    assert load_release_state(path) == Ok(ReleaseState(Version(0, 21, 0)))


@pytest.mark.parametrize(
    ("content", "fragment"),
    [
        ("{not json", "invalid JSON"),
        ("[]", "missing 'release_version'"),
        ('{"release_version": "latest"}', "release.json"),
        ('{"release_version": "0.21.0-rc1"}', "must be M.m.p"),
    ],
)
def test_invalid_state(tmp_path: Path, content: str, fragment: str) -> None:
    path = tmp_path / "release.json"
    path.write_text(content, encoding="utf-8")
    result = load_release_state(path)
    assert isinstance(result, Err)
    assert result.error.kind == "state_failed"
    assert fragment in result.error.message
