"""Shared pytest fixtures and configuration."""

from pathlib import Path

import pytest

from dotman.config import Settings


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a temporary home directory and point HOME at it."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    """Create an empty dotfiles repository root."""
    root = tmp_path / "dotfiles"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path: Path, temp_home: Path, repo_root: Path) -> Settings:
    """Settings targeting the temporary home and repository."""
    return Settings(
        config_file=tmp_path / "dotman.conf",
        dotfiles_dir=repo_root,
        home=temp_home,
        verbosity=0,
    )
