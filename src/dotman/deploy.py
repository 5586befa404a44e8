"""Deployment orchestration for dotman."""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

import typer

from .config import Settings
from .core import VERBOSITY_TRACE, Outcome, report
from .exceptions import DotmanProgramError, RepositoryNotFoundError
from .manifest import MANIFEST_SUFFIX, EntryResult, process_manifest


@dataclass
class Summary:
    """Aggregated results of a deploy or check run."""

    entries: List[EntryResult] = field(default_factory=list)
    program_errors: Dict[str, str] = field(default_factory=dict)
    programs: List[str] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for entry in self.entries if entry.outcome is outcome)

    @property
    def created(self) -> int:
        return self.count(Outcome.CREATED)

    @property
    def satisfied(self) -> int:
        return self.count(Outcome.SATISFIED)

    @property
    def skipped(self) -> int:
        return self.count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(Outcome.FAILED)

    @property
    def ok(self) -> bool:
        """True unless an entry failed or a program could not be processed."""
        return self.failed == 0 and not self.program_errors


@contextmanager
def working_directory(path: Path) -> Iterator[None]:
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(previous)


def discover_programs(repo_root: Path) -> List[str]:
    """Return the subdirectories ``d`` of ``repo_root`` holding ``d/d.dotfiles``."""
    repo_root = Path(repo_root)
    if not repo_root.is_dir():
        return []
    return sorted(
        item.name
        for item in repo_root.iterdir()
        if item.is_dir()
        and not item.name.startswith(".")
        and (item / f"{item.name}{MANIFEST_SUFFIX}").is_file()
    )


def resolve_programs(
    programs: Sequence[str], deploy_all: bool, repo_root: Path
) -> List[str]:
    """Explicit programs first, then any discovered ones not already named."""
    resolved: List[str] = []
    for name in programs:
        if name not in resolved:
            resolved.append(name)
    if deploy_all:
        for name in discover_programs(repo_root):
            if name not in resolved:
                resolved.append(name)
    return resolved


def _run(
    programs: Sequence[str], run_all: bool, settings: Settings, dry_run: bool
) -> Summary:
    repo_root = settings.dotfiles_dir
    if not repo_root.is_dir():
        raise RepositoryNotFoundError(
            f"Dotfiles repository {repo_root} not found. Run 'dotman clone' first."
        )

    summary = Summary(programs=resolve_programs(programs, run_all, repo_root))
    report(
        f"Programs: {', '.join(summary.programs) or '(none)'}",
        VERBOSITY_TRACE,
        settings.verbosity,
    )

    for program in summary.programs:
        program_dir = repo_root / program
        if not dry_run:
            report(
                f"Deploying {program}...",
                verbosity=settings.verbosity,
                fg=typer.colors.CYAN,
            )
        try:
            if not program_dir.is_dir():
                raise DotmanProgramError(
                    f"Program directory {program_dir} does not exist"
                )
            with working_directory(program_dir):
                results = process_manifest(
                    program_dir, program, settings, dry_run=dry_run
                )
        except (DotmanProgramError, OSError) as e:
            summary.program_errors[program] = str(e)
            report(
                f"Error: {program}: {e}",
                verbosity=settings.verbosity,
                fg=typer.colors.RED,
                err=True,
            )
            continue
        summary.entries.extend(results)

    return summary


def deploy(
    programs: Sequence[str], deploy_all: bool, settings: Settings
) -> Summary:
    """
    Deploy each resolved program and return the aggregated Summary.

    Every program is attempted even if an earlier one fails; callers decide
    the exit status from ``Summary.ok`` once all have run.
    """
    return _run(programs, deploy_all, settings, dry_run=False)


def check(programs: Sequence[str], check_all: bool, settings: Settings) -> Summary:
    """Classify every entry like ``deploy`` would, without changing anything."""
    return _run(programs, check_all, settings, dry_run=True)
