"""Exception classes for dotman - a manifest-driven dotfiles deployer."""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .core import Classification


class DotmanError(Exception):
    """Base exception for all dotman-related errors."""

    pass


# ============================================================================
# ENTRY-LEVEL ERRORS
# ============================================================================


class DotmanEntryError(DotmanError):
    """Errors that concern a single manifest entry."""

    def __init__(
        self,
        message: str,
        source: Optional[Path] = None,
        dest: Optional[Path] = None,
        classification: Optional["Classification"] = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.dest = dest
        self.classification = classification


class MissingSourceError(DotmanEntryError):
    """Raised when the source file of an entry does not exist."""

    pass


class ConflictingDestinationError(DotmanEntryError):
    """Raised when a link destination exists and is not the expected symlink."""

    pass


class ContentMismatchError(DotmanEntryError):
    """Raised when a copy destination has diverged from its source.

    This is not a failure: the entry is skipped and left for manual
    resolution. ``diff`` holds a unified diff when one could be produced.
    """

    def __init__(
        self,
        message: str,
        source: Optional[Path] = None,
        dest: Optional[Path] = None,
        classification: Optional["Classification"] = None,
        diff: str = "",
    ) -> None:
        super().__init__(message, source, dest, classification)
        self.diff = diff


class UnknownDirectiveError(DotmanEntryError):
    """Raised for a manifest line that is not a valid link/copy directive."""

    pass


# ============================================================================
# PROGRAM-LEVEL ERRORS
# ============================================================================


class DotmanProgramError(DotmanError):
    """Errors that abort a single program but not the whole deployment."""

    pass


class ManifestNotFoundError(DotmanProgramError):
    """Raised when a program has no <program>.dotfiles manifest."""

    pass


class ManifestReadError(DotmanProgramError):
    """Raised when a manifest exists but cannot be read or decoded."""

    pass


# ============================================================================
# REPOSITORY AND CONFIGURATION ERRORS
# ============================================================================


class DotmanRepositoryError(DotmanError):
    """Errors related to the dotfiles repository."""

    pass


class RepositoryNotFoundError(DotmanRepositoryError):
    """Raised when the dotfiles repository root is missing."""

    pass


class RepositoryExistsError(DotmanRepositoryError):
    """Raised when cloning over an existing, non-empty repository root."""

    pass


class DotmanGitError(DotmanRepositoryError):
    """Errors related to Git operations."""

    pass


class DotmanConfigurationError(DotmanError):
    """Errors related to configuration management."""

    pass
