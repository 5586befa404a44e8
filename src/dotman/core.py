"""Core reconciliation engine for dotman.

Classifies the relationship between a source file in the dotfiles
repository and its destination in the home directory, and applies the
minimal safe link or copy action for that classification.
"""

import difflib
import filecmp
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import typer
from rich.console import Console
from rich.syntax import Syntax

from .exceptions import (
    ConflictingDestinationError,
    ContentMismatchError,
    MissingSourceError,
)

PathLike = Union[str, Path]

# Verbosity levels
VERBOSITY_DEFAULT = 0
VERBOSITY_INFO = 1
VERBOSITY_TRACE = 2
VERBOSITY_DEBUG = 3

# Global console instance
console = Console()


class Classification(Enum):
    """Relationship between a source file and its destination."""

    SOURCE_MISSING = "source missing"
    DEST_MISSING = "destination missing"
    HARD_LINKED = "hard linked"
    SYMLINKED_TO_SOURCE = "symlinked to source"
    IDENTICAL_CONTENT = "identical content"
    DIVERGED = "diverged"


class Outcome(Enum):
    """Terminal state of a manifest entry."""

    CREATED = "created"
    SATISFIED = "satisfied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    """Result of a link or copy action that did not raise."""

    outcome: Outcome
    classification: Classification
    message: str


# ============================================================================
# OUTPUT
# ============================================================================


def report(
    message: str,
    level: int = VERBOSITY_DEFAULT,
    verbosity: int = VERBOSITY_DEFAULT,
    fg: Optional[str] = None,
    err: bool = False,
) -> None:
    """Print ``message`` if ``verbosity`` reaches ``level``."""
    if verbosity >= level:
        typer.secho(message, fg=fg, err=err)


def show_diff(diff: str) -> None:
    console.print(Syntax(diff, "diff", theme="ansi_dark", background_color="default"))


# ============================================================================
# PATH RESOLUTION
# ============================================================================


def resolve_destination(dest: PathLike, home: Path) -> Path:
    """
    Resolve a manifest destination against the target home directory.

    ``~`` and ``~/...`` refer to ``home`` (not the invoking user's home),
    absolute paths are kept, anything else is relative to ``home``.
    """
    text = str(dest)
    if text == "~":
        return home
    if text.startswith("~/"):
        return home / text[2:]
    path = Path(text).expanduser()
    if path.is_absolute():
        return path
    return home / path


def canonical_dest(dest: PathLike) -> Path:
    """
    Canonicalize the existing parent components of ``dest``.

    The final component is left untouched so that a symlink at ``dest`` is
    inspected rather than followed.
    """
    dest = Path(os.path.abspath(dest))
    return Path(os.path.realpath(dest.parent)) / dest.name


def _same_file(a: os.stat_result, b: os.stat_result) -> bool:
    return a.st_ino == b.st_ino and a.st_dev == b.st_dev


# ============================================================================
# CLASSIFICATION
# ============================================================================


def classify(source: PathLike, dest: PathLike) -> Classification:
    """
    Classify the relationship between ``source`` and ``dest``.

    The checks run in a fixed order and the first match wins, so an existing
    symlink to the right target is recognized before any content comparison.
    """
    source = Path(source)
    # exists() follows symlinks, so a broken source symlink counts as missing
    if not source.exists():
        return Classification.SOURCE_MISSING
    source = source.resolve()

    dest = canonical_dest(dest)
    if not os.path.lexists(dest):
        return Classification.DEST_MISSING

    source_stat = source.stat()
    if _same_file(dest.lstat(), source_stat):
        return Classification.HARD_LINKED

    try:
        dest_stat = dest.stat()
    except FileNotFoundError:
        # Dangling symlink at the destination
        return Classification.DIVERGED
    if _same_file(dest_stat, source_stat):
        return Classification.SYMLINKED_TO_SOURCE

    if source.is_file() and dest.is_file():
        if filecmp.cmp(source, dest, shallow=False):
            return Classification.IDENTICAL_CONTENT

    return Classification.DIVERGED


def diff_files(source: PathLike, dest: PathLike) -> str:
    """Return a unified diff from ``source`` to ``dest``, or "" if not textual."""
    source = Path(source)
    dest = Path(dest)
    if not (source.is_file() and dest.is_file()):
        return ""
    try:
        source_lines = source.read_text().splitlines(keepends=True)
        dest_lines = dest.read_text().splitlines(keepends=True)
    except (OSError, UnicodeDecodeError):
        return ""
    return "".join(
        difflib.unified_diff(
            source_lines, dest_lines, fromfile=str(source), tofile=str(dest)
        )
    )


# ============================================================================
# ACTIONS
# ============================================================================


def link_dotfile(
    source: PathLike, dest: PathLike, verbosity: int = VERBOSITY_DEFAULT
) -> ActionResult:
    """
    Make ``dest`` a symlink to ``source``.

    Only a missing destination is ever written. Anything other than a
    correct symlink raises ConflictingDestinationError and is left alone.
    """
    source = Path(source)
    dest = Path(dest)
    classification = classify(source, dest)
    report(
        f"    {dest}: {classification.value}",
        VERBOSITY_TRACE,
        verbosity,
    )

    if classification is Classification.SOURCE_MISSING:
        raise MissingSourceError(
            f"Cannot link {dest} -> {source}: {classification.value}",
            source,
            dest,
            classification,
        )

    if classification is Classification.DEST_MISSING:
        target = canonical_dest(dest)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.symlink_to(source.resolve())
        return ActionResult(
            Outcome.CREATED, classification, f"Linked {dest} -> {source}"
        )

    if classification is Classification.SYMLINKED_TO_SOURCE:
        return ActionResult(
            Outcome.SATISFIED, classification, f"{dest} already linked"
        )

    raise ConflictingDestinationError(
        f"Cannot link {dest} -> {source}: destination exists "
        f"({classification.value})",
        source,
        dest,
        classification,
    )


def copy_dotfile(
    source: PathLike, dest: PathLike, verbosity: int = VERBOSITY_DEFAULT
) -> ActionResult:
    """
    Copy ``source`` to ``dest`` if the destination does not exist yet.

    A diverged destination is never overwritten: ContentMismatchError is
    raised instead, carrying a diff for manual resolution. A hard link, a
    symlink to the source or identical content all count as already copied.
    """
    source = Path(source)
    dest = Path(dest)
    classification = classify(source, dest)
    report(
        f"    {dest}: {classification.value}",
        VERBOSITY_TRACE,
        verbosity,
    )

    if classification is Classification.SOURCE_MISSING:
        raise MissingSourceError(
            f"Cannot copy {source} -> {dest}: {classification.value}",
            source,
            dest,
            classification,
        )

    if classification is Classification.DEST_MISSING:
        target = canonical_dest(dest)
        target.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, target, symlinks=True)
        else:
            shutil.copy(source, target)
        return ActionResult(
            Outcome.CREATED, classification, f"Copied {source} -> {dest}"
        )

    if classification is Classification.DIVERGED:
        raise ContentMismatchError(
            f"Not copying {source} -> {dest}: {classification.value}",
            source,
            dest,
            classification,
            diff=diff_files(source, dest),
        )

    return ActionResult(
        Outcome.SATISFIED, classification, f"{dest} already up to date"
    )
