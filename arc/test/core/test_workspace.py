"""Tests for arc.core.workspace module."""

from __future__ import annotations

from pathlib import Path

import pytest

from arc.core.result import Err, Ok
from arc.core.workspace import (
    ENV_VAR,
    Workspace,
    detect_workspace,
    find_workspace_upward,
    is_workspace_root,
)


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """Create a minimal workspace: just the config file."""
    (tmp_path / ".arc").mkdir()
    (tmp_path / ".arc" / "config.toml").write_text("")
    return tmp_path


@pytest.fixture(autouse=True)
def _no_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ENV_VAR, raising=False)


class TestWorkspace:
    """Test Workspace paths."""

    def test_paths(self, temp_workspace: Path) -> None:
        ws = Workspace(root=temp_workspace)
        assert ws.config_path == temp_workspace / ".arc" / "config.toml"
        assert ws.release_state_path == temp_workspace / ".arc" / "release.json"
        assert ws.repo_dir("s3gw.git") == temp_workspace / "s3gw.git"

    def test_exists(self, temp_workspace: Path, tmp_path: Path) -> None:
        assert Workspace(root=temp_workspace).exists()
        assert not Workspace(root=tmp_path / "nope").exists()


class TestDetection:
    """Test workspace detection order."""

    def test_is_workspace_root(self, temp_workspace: Path) -> None:
        assert is_workspace_root(temp_workspace)
        assert not is_workspace_root(temp_workspace / ".arc")

    def test_find_upward_from_nested(self, temp_workspace: Path) -> None:
        nested = temp_workspace / "s3gw.git" / "src"
        nested.mkdir(parents=True)
        assert find_workspace_upward(nested) == temp_workspace

    def test_detect_from_start_dir(self, temp_workspace: Path) -> None:
        nested = temp_workspace / "charts.git"
        nested.mkdir()
        result = detect_workspace(start_dir=nested)
        assert isinstance(result, Ok)
        assert result.value.root == temp_workspace.resolve()

    def test_detect_not_found(self, tmp_path: Path) -> None:
        result = detect_workspace(start_dir=tmp_path)
        assert isinstance(result, Err)
        assert ".arc/config.toml not found" in result.error.message
        assert result.error.searched_from == tmp_path.resolve()

    def test_env_var_wins(
        self,
        temp_workspace: Path,
        tmp_path_factory: pytest.TempPathFactory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        elsewhere = tmp_path_factory.mktemp("elsewhere")
        monkeypatch.setenv(ENV_VAR, str(temp_workspace))
        result = detect_workspace(start_dir=elsewhere)
        assert isinstance(result, Ok)
        assert result.value.root == temp_workspace.resolve()

    def test_invalid_env_var_is_an_error(
        self,
        temp_workspace: Path,
        tmp_path_factory: pytest.TempPathFactory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A bad $ARC_WORKSPACE does not fall back to searching upward."""
        bogus = tmp_path_factory.mktemp("bogus")
        monkeypatch.setenv(ENV_VAR, str(bogus))
        result = detect_workspace(start_dir=temp_workspace)
        assert isinstance(result, Err)
        assert ENV_VAR in result.error.message
