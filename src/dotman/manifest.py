"""Manifest parsing and processing for dotman.

A manifest named ``<program>.dotfiles`` lives in each program directory and
holds one directive per line::

    # comment
    link bashrc ~/.bashrc
    copy "my settings.json" .config/app/settings.json
"""

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

import typer

from .config import Settings
from .core import (
    VERBOSITY_INFO,
    VERBOSITY_TRACE,
    Classification,
    Outcome,
    classify,
    copy_dotfile,
    link_dotfile,
    report,
    resolve_destination,
    show_diff,
)
from .exceptions import (
    ConflictingDestinationError,
    ContentMismatchError,
    DotmanError,
    ManifestNotFoundError,
    ManifestReadError,
    MissingSourceError,
    UnknownDirectiveError,
)

MANIFEST_SUFFIX = ".dotfiles"
VERB_LINK = "link"
VERB_COPY = "copy"


# ============================================================================
# DIRECTIVES
# ============================================================================


@dataclass(frozen=True)
class LinkDirective:
    source: str
    dest: str
    lineno: int = 0
    verb = VERB_LINK


@dataclass(frozen=True)
class CopyDirective:
    source: str
    dest: str
    lineno: int = 0
    verb = VERB_COPY


@dataclass(frozen=True)
class UnknownDirective:
    raw: str
    lineno: int = 0
    reason: str = "unknown directive"
    verb = ""


Directive = Union[LinkDirective, CopyDirective, UnknownDirective]


@dataclass
class EntryResult:
    """What happened to one manifest entry."""

    program: str
    lineno: int
    verb: str
    outcome: Outcome
    message: str
    source: Optional[Path] = None
    dest: Optional[Path] = None
    classification: Optional[Classification] = None
    error: Optional[DotmanError] = None


def manifest_path(program_dir: Path, program: str) -> Path:
    return Path(program_dir) / f"{program}{MANIFEST_SUFFIX}"


def parse_line(text: str, lineno: int = 0) -> Optional[Directive]:
    """
    Parse a single manifest line.

    Returns None for blank and comment lines. Quoted tokens may contain
    whitespace; a line that cannot be tokenized or has the wrong shape comes
    back as an UnknownDirective rather than raising.
    """
    try:
        tokens = shlex.split(text, comments=True)
    except ValueError as e:
        return UnknownDirective(text.strip(), lineno, f"cannot tokenize: {e}")

    if not tokens:
        return None

    verb, operands = tokens[0], tokens[1:]
    if verb not in (VERB_LINK, VERB_COPY):
        return UnknownDirective(text.strip(), lineno, f"unknown verb '{verb}'")
    if len(operands) != 2:
        return UnknownDirective(
            text.strip(),
            lineno,
            f"'{verb}' expects <source> <destination>, "
            f"got {len(operands)} operand(s)",
        )

    if verb == VERB_LINK:
        return LinkDirective(operands[0], operands[1], lineno)
    return CopyDirective(operands[0], operands[1], lineno)


def read_manifest(path: Path) -> Iterator[Directive]:
    """Yield the directives of a manifest file in order."""
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            directive = parse_line(line, lineno)
            if directive is not None:
                yield directive


# ============================================================================
# PROCESSING
# ============================================================================


def _entry(
    directive: Directive, outcome: Outcome, message: str, **kwargs
) -> EntryResult:
    return EntryResult(
        program="",
        lineno=directive.lineno,
        verb=directive.verb,
        outcome=outcome,
        message=message,
        **kwargs,
    )


def _plan_entry(
    directive: Union[LinkDirective, CopyDirective], source: Path, dest: Path
) -> EntryResult:
    """Work out what applying ``directive`` would do, without touching disk."""
    classification = classify(source, dest)
    satisfied = (
        (Classification.SYMLINKED_TO_SOURCE,)
        if directive.verb == VERB_LINK
        else (
            Classification.HARD_LINKED,
            Classification.SYMLINKED_TO_SOURCE,
            Classification.IDENTICAL_CONTENT,
        )
    )

    error: Optional[DotmanError] = None
    message = f"{dest}: {classification.value}"
    if classification is Classification.SOURCE_MISSING:
        outcome = Outcome.FAILED
        if directive.verb == VERB_LINK:
            pair = f"{dest} -> {source}"
        else:
            pair = f"{source} -> {dest}"
        error = MissingSourceError(
            f"Cannot {directive.verb} {pair}: {classification.value}",
            source,
            dest,
            classification,
        )
    elif classification is Classification.DEST_MISSING:
        outcome = Outcome.CREATED
    elif classification in satisfied:
        outcome = Outcome.SATISFIED
    elif directive.verb == VERB_COPY:
        outcome = Outcome.SKIPPED
        message = f"Not copying {source} -> {dest}: {classification.value}"
    else:
        outcome = Outcome.FAILED
        error = ConflictingDestinationError(
            f"Cannot link {dest} -> {source}: destination exists "
            f"({classification.value})",
            source,
            dest,
            classification,
        )

    return _entry(
        directive,
        outcome,
        str(error) if error else message,
        source=source,
        dest=dest,
        classification=classification,
        error=error,
    )


def _apply_entry(
    directive: Union[LinkDirective, CopyDirective],
    source: Path,
    dest: Path,
    verbosity: int,
) -> EntryResult:
    action = link_dotfile if directive.verb == VERB_LINK else copy_dotfile
    try:
        result = action(source, dest, verbosity=verbosity)
    except ContentMismatchError as e:
        return _entry(
            directive,
            Outcome.SKIPPED,
            str(e),
            source=source,
            dest=dest,
            classification=e.classification,
            error=e,
        )
    except DotmanError as e:
        return _entry(
            directive,
            Outcome.FAILED,
            str(e),
            source=source,
            dest=dest,
            classification=getattr(e, "classification", None),
            error=e,
        )
    except OSError as e:
        message = f"Could not {directive.verb} {source} -> {dest}: {e}"
        return _entry(
            directive,
            Outcome.FAILED,
            message,
            source=source,
            dest=dest,
            error=DotmanError(message),
        )

    return _entry(
        directive,
        result.outcome,
        result.message,
        source=source,
        dest=dest,
        classification=result.classification,
    )


def _report_entry(result: EntryResult, verbosity: int) -> None:
    where = f"{result.program}:{result.lineno}"
    if result.outcome is Outcome.CREATED:
        report(f"  ✓ {result.message}", verbosity=verbosity, fg=typer.colors.GREEN)
    elif result.outcome is Outcome.SATISFIED:
        report(
            f"  - {result.message}",
            VERBOSITY_INFO,
            verbosity,
            fg=typer.colors.BLUE,
        )
    elif result.outcome is Outcome.SKIPPED:
        report(
            f"  ! {where}: {result.message}",
            verbosity=verbosity,
            fg=typer.colors.YELLOW,
            err=True,
        )
        if (
            verbosity >= VERBOSITY_INFO
            and isinstance(result.error, ContentMismatchError)
            and result.error.diff
        ):
            show_diff(result.error.diff)
    else:
        report(
            f"  ✗ {where}: {result.message}",
            verbosity=verbosity,
            fg=typer.colors.RED,
            err=True,
        )


def process_manifest(
    program_dir: Path,
    program: str,
    settings: Settings,
    dry_run: bool = False,
) -> List[EntryResult]:
    """
    Apply every directive in ``<program_dir>/<program>.dotfiles``.

    Entry errors are recorded, never raised, so one bad line does not stop
    the rest of the manifest. A missing manifest raises ManifestNotFoundError.
    With ``dry_run`` entries are only classified and nothing is written.
    """
    program_dir = Path(program_dir)
    path = manifest_path(program_dir, program)
    if not path.is_file():
        raise ManifestNotFoundError(f"Manifest {path} not found")

    report(f"  Reading {path}", VERBOSITY_TRACE, settings.verbosity)

    # Read the whole manifest first so a decode error applies nothing.
    try:
        directives = list(read_manifest(path))
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestReadError(f"Could not read manifest {path}: {e}") from e

    results: List[EntryResult] = []
    for directive in directives:
        if isinstance(directive, UnknownDirective):
            error = UnknownDirectiveError(f"{directive.reason}: {directive.raw}")
            result = _entry(directive, Outcome.FAILED, str(error), error=error)
        else:
            source = program_dir / directive.source
            dest = resolve_destination(directive.dest, settings.home)
            if dry_run:
                try:
                    result = _plan_entry(directive, source, dest)
                except OSError as e:
                    message = f"Could not inspect {source} -> {dest}: {e}"
                    result = _entry(
                        directive,
                        Outcome.FAILED,
                        message,
                        source=source,
                        dest=dest,
                        error=DotmanError(message),
                    )
            else:
                result = _apply_entry(directive, source, dest, settings.verbosity)

        result.program = program
        if not dry_run:
            _report_entry(result, settings.verbosity)
        results.append(result)

    return results
