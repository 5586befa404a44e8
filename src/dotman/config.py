"""Configuration handling for dotman.

Settings are resolved once at startup with first-set-wins precedence:
command-line flag, then config file, then built-in default.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import typer

from .exceptions import DotmanConfigurationError

# Constants
CONFIG_DIR_NAME = ".config/dotman"
CONFIG_FILENAME = "dotman.conf"
DOTFILES_DIR_NAME = "dotfiles"
CONFIG_ENV_VAR = "DOTMAN_CONFIG"

KEY_CONFIG = "dotman-conf"
KEY_DOTFILES = "dotman-files"
RECOGNIZED_KEYS = (KEY_CONFIG, KEY_DOTFILES)


# ============================================================================
# PATH MANAGEMENT
# ============================================================================


def get_home_dir() -> Path:
    """Get the home directory, respecting environment variables for testing."""
    if "HOME" in os.environ:
        return Path(os.environ["HOME"])
    return Path.home()


def default_config_file(home_dir: Optional[Path] = None) -> Path:
    if home_dir is None:
        home_dir = get_home_dir()
    return home_dir / CONFIG_DIR_NAME / CONFIG_FILENAME


def default_dotfiles_dir(home_dir: Optional[Path] = None) -> Path:
    if home_dir is None:
        home_dir = get_home_dir()
    return home_dir / CONFIG_DIR_NAME / DOTFILES_DIR_NAME


def _resolve_value(value: str, base_dir: Path) -> Path:
    """Expand ``~`` and anchor relative paths at the config file's directory."""
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return Path(os.path.abspath(path))


# ============================================================================
# SETTINGS
# ============================================================================


@dataclass(frozen=True)
class Settings:
    """Resolved, immutable configuration for a single dotman invocation."""

    config_file: Path
    dotfiles_dir: Path
    home: Path
    verbosity: int = 0


def load_config_file(path: Path) -> Dict[str, Path]:
    """
    Read a ``key = value`` config file and return recognized keys mapped to
    absolute paths. A missing file yields an empty mapping.

    Unknown keys and malformed lines produce a warning and are ignored. When
    a key is repeated the first value is kept.
    """
    values: Dict[str, Path] = {}
    if not path.exists():
        return values

    try:
        text = path.read_text()
    except OSError as e:
        raise DotmanConfigurationError(f"Could not read config file {path}: {e}")

    base_dir = path.parent
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if not sep or not key or not value:
            typer.secho(
                f"Warning: {path}:{lineno}: malformed line ignored: {raw!r}",
                fg=typer.colors.YELLOW,
                err=True,
            )
            continue

        if key not in RECOGNIZED_KEYS:
            typer.secho(
                f"Warning: {path}:{lineno}: unknown key '{key}' ignored",
                fg=typer.colors.YELLOW,
                err=True,
            )
            continue

        values.setdefault(key, _resolve_value(value, base_dir))

    return values


def save_config_file(path: Path, values: Dict[str, Path]) -> None:
    """Write recognized keys to a config file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["# dotman configuration"]
    for key in RECOGNIZED_KEYS:
        if key in values:
            lines.append(f"{key} = {values[key]}")
    path.write_text("\n".join(lines) + "\n")


def build_settings(
    config_file: Optional[Path] = None,
    dotfiles_dir: Optional[Path] = None,
    home: Optional[Path] = None,
    verbosity: int = 0,
) -> Settings:
    """
    Build the Settings for this run.

    Values passed in (from command-line flags) win; the config file only
    fills what is still unset, and built-in defaults fill the rest.
    """
    if home is None:
        home = get_home_dir()
    home = Path(os.path.abspath(Path(home).expanduser()))

    if config_file is not None:
        config_file = Path(os.path.abspath(Path(config_file).expanduser()))
    else:
        config_file = default_config_file()

    file_values = load_config_file(config_file)

    if dotfiles_dir is not None:
        dotfiles_dir = Path(os.path.abspath(Path(dotfiles_dir).expanduser()))
    else:
        dotfiles_dir = file_values.get(KEY_DOTFILES, default_dotfiles_dir())

    return Settings(
        config_file=config_file,
        dotfiles_dir=dotfiles_dir,
        home=home,
        verbosity=max(0, verbosity),
    )
