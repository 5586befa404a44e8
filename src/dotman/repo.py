"""Fetching and updating the dotfiles repository with Git."""

import shutil
from pathlib import Path
from typing import List, Optional

import typer
from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from .config import Settings
from .core import VERBOSITY_DEBUG, VERBOSITY_INFO, report
from .exceptions import DotmanGitError, RepositoryExistsError, RepositoryNotFoundError


def _describe_git_error(e: GitCommandError, url: str) -> str:
    msg = str(e).lower()
    if "remote branch" in msg and "not found" in msg:
        return f"Branch not found in {url}"
    if "not found" in msg or "does not exist" in msg:
        return f"Repository not found at {url}"
    if "permission denied" in msg or "authentication" in msg:
        return (
            f"Authentication failed for {url}. "
            "Check your SSH keys or credentials."
        )
    return f"Git error: {e}"


def clone_repo(url: str, branch: Optional[str], settings: Settings) -> Path:
    """
    Clone ``url`` into the configured dotfiles directory and return its path.

    An existing, non-empty target is never touched. If the clone fails, any
    directory it created is removed again.
    """
    target = settings.dotfiles_dir
    if target.exists() and (not target.is_dir() or any(target.iterdir())):
        raise RepositoryExistsError(
            f"{target} already exists. Use 'dotman update' to sync."
        )

    report(
        f"Cloning {url} into {target}...",
        VERBOSITY_INFO,
        settings.verbosity,
        fg=typer.colors.WHITE,
    )
    created = not target.exists()
    kwargs = {"branch": branch} if branch else {}
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        repo = Repo.clone_from(url, str(target), **kwargs)
    except GitCommandError as e:
        report(f"git: {e}", VERBOSITY_DEBUG, settings.verbosity, err=True)
        if created and target.exists():
            shutil.rmtree(target)
        raise DotmanGitError(_describe_git_error(e, url)) from e

    if repo.head.is_valid():
        report(
            f"Checked out {repo.head.commit.hexsha[:8]}",
            VERBOSITY_DEBUG,
            settings.verbosity,
        )
    return target


def update_repo(settings: Settings) -> List[str]:
    """Pull the dotfiles repository from origin and return the changed paths."""
    target = settings.dotfiles_dir
    try:
        repo = Repo(str(target))
    except (InvalidGitRepositoryError, NoSuchPathError):
        raise RepositoryNotFoundError(
            f"{target} is not a git repository. Run 'dotman clone' first."
        )

    if "origin" not in [r.name for r in repo.remotes]:
        raise DotmanGitError(f"No 'origin' remote configured in {target}")

    before = repo.head.commit if repo.head.is_valid() else None
    try:
        repo.remotes.origin.pull()
    except GitCommandError as e:
        report(f"git: {e}", VERBOSITY_DEBUG, settings.verbosity, err=True)
        msg = str(e).lower()
        if "divergent branches" in msg or "not possible to fast-forward" in msg:
            raise DotmanGitError(
                "Local and remote branches have diverged. Reconcile them with "
                f"git -C {target} pull --rebase"
            ) from e
        raise DotmanGitError(f"Error pulling from origin: {e}") from e

    if not repo.head.is_valid():
        return []
    after = repo.head.commit
    if before is None:
        return sorted(
            item.path for item in after.tree.traverse() if item.type == "blob"
        )
    if before == after:
        return []
    changed = {diff.b_path or diff.a_path for diff in before.diff(after)}
    return sorted(path for path in changed if path)
