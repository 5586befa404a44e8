"""CLI commands for dotman - a manifest-driven dotfiles deployer."""

from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from .config import (
    CONFIG_ENV_VAR,
    KEY_DOTFILES,
    Settings,
    build_settings,
    save_config_file,
)
from .core import Outcome
from .deploy import Summary
from .deploy import check as check_programs
from .deploy import deploy as deploy_programs
from .exceptions import DotmanConfigurationError, DotmanError
from .repo import clone_repo, update_repo

# Constants
DEFAULT_VERSION = "0.1.0"

# Global app and console instances
app = typer.Typer(help="dotman - deploy dotfiles from a git repository")
console = Console()

OUTCOME_STYLES = {
    Outcome.CREATED: "green",
    Outcome.SATISFIED: "blue",
    Outcome.SKIPPED: "yellow",
    Outcome.FAILED: "red",
}


def _settings(ctx: typer.Context) -> Settings:
    settings: Settings = ctx.obj
    return settings


def _fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _require_programs(
    programs: Optional[List[str]], all_programs: bool
) -> List[str]:
    programs = programs or []
    if not programs and not all_programs:
        raise typer.BadParameter("Name at least one PROGRAM or pass --all")
    return programs


def _print_summary(summary: Summary, verb: str) -> None:
    color = typer.colors.GREEN if summary.ok else typer.colors.RED
    typer.secho(
        f"\n{verb}: {summary.created} created, {summary.satisfied} already "
        f"satisfied, {summary.skipped} skipped, {summary.failed} failed "
        f"across {len(summary.programs)} program(s)",
        fg=color,
        bold=True,
    )
    for program, error in summary.program_errors.items():
        typer.secho(f"  ✗ {program}: {error}", fg=typer.colors.RED, err=True)


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            help="Config file (default: ~/.config/dotman/dotman.conf)",
            envvar=CONFIG_ENV_VAR,
        ),
    ] = None,
    home: Annotated[
        Optional[Path],
        typer.Option("--home", help="Target home directory for deployed files"),
    ] = None,
    dotfiles: Annotated[
        Optional[Path],
        typer.Option("--dotfiles", help="Dotfiles repository root"),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity"),
    ] = 0,
) -> None:
    """
    Deploy dotfiles from a git repository into your home directory.

    Each program directory in the repository holds a <program>.dotfiles
    manifest of 'link <source> <dest>' and 'copy <source> <dest>' lines.
    """
    try:
        ctx.obj = build_settings(
            config_file=config, dotfiles_dir=dotfiles, home=home, verbosity=verbose
        )
    except DotmanConfigurationError as e:
        raise typer.BadParameter(str(e), param_hint="--config")


@app.command()
def clone(
    ctx: typer.Context,
    git_url: Annotated[
        str, typer.Argument(help="Remote repository URL to clone (SSH or HTTPS)")
    ],
    branch: Annotated[
        Optional[str], typer.Argument(help="Branch to check out")
    ] = None,
) -> None:
    """
    Clone a dotfiles repository into the dotfiles directory.

    Examples:
      dotman clone git@github.com:username/dotfiles.git
      dotman clone https://github.com/username/dotfiles.git main
    """
    settings = _settings(ctx)
    try:
        target = clone_repo(git_url, branch, settings)
    except DotmanError as e:
        _fail(str(e))

    typer.secho(f"✓ Cloned {git_url} into {target}", fg=typer.colors.GREEN)

    if not settings.config_file.exists():
        save_config_file(settings.config_file, {KEY_DOTFILES: target})
        typer.secho(
            f"✓ Saved configuration to {settings.config_file}",
            fg=typer.colors.GREEN,
        )
    typer.echo("Next step: dotman deploy --all")


@app.command()
def deploy(
    ctx: typer.Context,
    programs: Annotated[
        Optional[List[str]], typer.Argument(help="Programs to deploy")
    ] = None,
    all_programs: Annotated[
        bool,
        typer.Option("--all", "-a", help="Deploy every program in the repository"),
    ] = False,
) -> None:
    """Link and copy the dotfiles of the given programs into the home directory."""
    settings = _settings(ctx)
    names = _require_programs(programs, all_programs)
    try:
        summary = deploy_programs(names, all_programs, settings)
    except DotmanError as e:
        _fail(str(e))

    _print_summary(summary, "Deploy complete")
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command()
def check(
    ctx: typer.Context,
    programs: Annotated[
        Optional[List[str]], typer.Argument(help="Programs to check")
    ] = None,
    all_programs: Annotated[
        bool,
        typer.Option("--all", "-a", help="Check every program in the repository"),
    ] = False,
) -> None:
    """Report the state of every entry without changing anything."""
    settings = _settings(ctx)
    names = _require_programs(programs, all_programs)
    try:
        summary = check_programs(names, all_programs, settings)
    except DotmanError as e:
        _fail(str(e))

    table = Table(title="dotman check")
    table.add_column("Program")
    table.add_column("Line", justify="right")
    table.add_column("Verb")
    table.add_column("Destination")
    table.add_column("State")
    table.add_column("Action")
    for entry in summary.entries:
        style = OUTCOME_STYLES[entry.outcome]
        if entry.classification is not None:
            state = entry.classification.value
        else:
            state = entry.message
        if entry.outcome is Outcome.CREATED:
            action = "create"
        else:
            action = entry.outcome.value
        table.add_row(
            entry.program,
            str(entry.lineno),
            entry.verb or "?",
            str(entry.dest or ""),
            state,
            f"[{style}]{action}[/{style}]",
        )
    console.print(table)

    for entry in summary.entries:
        if entry.outcome is Outcome.FAILED:
            typer.secho(
                f"  ✗ {entry.program}:{entry.lineno}: {entry.message}",
                fg=typer.colors.RED,
                err=True,
            )

    _print_summary(summary, "Check complete")
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command()
def update(ctx: typer.Context) -> None:
    """Pull the latest changes into the dotfiles repository."""
    settings = _settings(ctx)
    try:
        changed = update_repo(settings)
    except DotmanError as e:
        _fail(str(e))

    if not changed:
        typer.secho("Already up to date", fg=typer.colors.BLUE)
        return
    typer.secho(f"✓ Pulled {len(changed)} changed file(s):", fg=typer.colors.GREEN)
    for path in changed:
        typer.echo(f"  {path}")


@app.command()
def version() -> None:
    """Show dotman version."""
    try:
        from importlib.metadata import version as get_version

        version_str = get_version("dotman")
    except Exception:
        version_str = DEFAULT_VERSION

    typer.secho(f"dotman version {version_str}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
