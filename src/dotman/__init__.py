"""
dotman - deploy dotfiles from a git repository.

Each program in the repository carries a ``<program>.dotfiles`` manifest of
``link`` and ``copy`` directives. dotman materializes them into the home
directory and never overwrites a file it did not create.
"""

__version__ = "0.1.0"
__license__ = "GPL-3.0-or-later"

from .config import Settings, build_settings
from .core import Classification, Outcome, classify, copy_dotfile, link_dotfile
from .deploy import Summary, check, deploy, discover_programs
from .manifest import parse_line, process_manifest
from .repo import clone_repo, update_repo

__all__ = [
    "Settings",
    "build_settings",
    "Classification",
    "Outcome",
    "classify",
    "link_dotfile",
    "copy_dotfile",
    "parse_line",
    "process_manifest",
    "Summary",
    "deploy",
    "check",
    "discover_programs",
    # Repository functions
    "clone_repo",
    "update_repo",
]
