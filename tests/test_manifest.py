"""Tests for manifest parsing and processing."""

from pathlib import Path

import pytest
from helpers.builders import ProgramBuilder

from dotman.config import Settings
from dotman.core import Classification, Outcome
from dotman.exceptions import (
    ConflictingDestinationError,
    ContentMismatchError,
    ManifestNotFoundError,
    ManifestReadError,
    UnknownDirectiveError,
)
from dotman.manifest import (
    CopyDirective,
    LinkDirective,
    UnknownDirective,
    parse_line,
    process_manifest,
    read_manifest,
)


class TestParseLine:
    """Test parsing of single manifest lines."""

    @pytest.mark.parametrize("line", ["", "   ", "\n", "# comment", "   # indented"])
    def test_blank_and_comment_lines(self, line: str):
        assert parse_line(line) is None

    def test_link(self):
        assert parse_line("link bashrc ~/.bashrc", 3) == LinkDirective(
            "bashrc", "~/.bashrc", 3
        )

    def test_copy(self):
        assert parse_line("copy gitconfig .gitconfig") == CopyDirective(
            "gitconfig", ".gitconfig"
        )

    def test_quoted_paths_with_spaces(self):
        directive = parse_line('link "my file.conf" \'.config/my app/file.conf\'')
        assert directive == LinkDirective("my file.conf", ".config/my app/file.conf")

    def test_trailing_comment(self):
        assert parse_line("link a b  # keep in sync") == LinkDirective("a", "b")

    def test_extra_whitespace(self):
        assert parse_line("\tcopy   a\t b  ") == CopyDirective("a", "b")

    def test_unknown_verb(self):
        directive = parse_line("move a b", 7)
        assert isinstance(directive, UnknownDirective)
        assert directive.lineno == 7
        assert "move" in directive.reason

    @pytest.mark.parametrize("line", ["link a", "copy a b c", "link"])
    def test_wrong_operand_count(self, line: str):
        directive = parse_line(line)
        assert isinstance(directive, UnknownDirective)
        assert directive.raw == line

    def test_unbalanced_quote(self):
        directive = parse_line('link "a b')
        assert isinstance(directive, UnknownDirective)
        assert "tokenize" in directive.reason

    def test_verbs_are_case_sensitive(self):
        assert isinstance(parse_line("LINK a b"), UnknownDirective)


class TestReadManifest:
    """Test reading a manifest file."""

    def test_line_numbers_and_order(self, tmp_path: Path):
        manifest = tmp_path / "prog.dotfiles"
        manifest.write_text("# header\n\nlink a .a\nbogus\ncopy b .b\n")

        directives = list(read_manifest(manifest))

        assert [d.lineno for d in directives] == [3, 4, 5]
        assert isinstance(directives[0], LinkDirective)
        assert isinstance(directives[1], UnknownDirective)
        assert isinstance(directives[2], CopyDirective)


class TestProcessManifest:
    """Test applying a whole manifest."""

    def test_missing_manifest(self, repo_root: Path, settings: Settings):
        program_dir = ProgramBuilder("vim").without_manifest().build(repo_root)

        with pytest.raises(ManifestNotFoundError):
            process_manifest(program_dir, "vim", settings)

    def test_applies_link_and_copy(
        self, repo_root: Path, temp_home: Path, settings: Settings
    ):
        program_dir = (
            ProgramBuilder("zsh")
            .with_file("zshrc", "export A=1\n")
            .with_file("env", "B=2\n")
            .link("zshrc", "~/.zshrc")
            .copy("env", ".config/zsh/env")
            .build(repo_root)
        )

        results = process_manifest(program_dir, "zsh", settings)

        assert [r.outcome for r in results] == [Outcome.CREATED, Outcome.CREATED]
        assert all(r.program == "zsh" for r in results)
        assert (temp_home / ".zshrc").resolve() == (program_dir / "zshrc").resolve()
        assert (temp_home / ".config/zsh/env").read_text() == "B=2\n"
        assert not (temp_home / ".config/zsh/env").is_symlink()

    def test_partial_failure_isolation(
        self, repo_root: Path, temp_home: Path, settings: Settings
    ):
        program_dir = (
            ProgramBuilder("git")
            .with_file("gitconfig")
            .with_file("gitignore")
            .link("gitconfig", ".gitconfig")
            .with_line("frobnicate gitignore .gitignore")
            .copy("gitignore", ".gitignore")
            .build(repo_root)
        )

        results = process_manifest(program_dir, "git", settings)

        failed = [r for r in results if r.outcome is Outcome.FAILED]
        assert len(failed) == 1
        assert failed[0].lineno == 2
        assert isinstance(failed[0].error, UnknownDirectiveError)
        assert (temp_home / ".gitconfig").is_symlink()
        assert (temp_home / ".gitignore").is_file()

    def test_link_conflict_is_recorded(
        self, repo_root: Path, temp_home: Path, settings: Settings
    ):
        program_dir = (
            ProgramBuilder("tmux")
            .with_file("tmux.conf", "set -g mouse on\n")
            .with_file("extra.conf", "bind r source-file\n")
            .link("tmux.conf", ".tmux.conf")
            .link("extra.conf", ".tmux.extra.conf")
            .build(repo_root)
        )
        (temp_home / ".tmux.conf").write_text("local\n")

        results = process_manifest(program_dir, "tmux", settings)

        assert results[0].outcome is Outcome.FAILED
        assert isinstance(results[0].error, ConflictingDestinationError)
        assert results[0].classification is Classification.DIVERGED
        assert results[1].outcome is Outcome.CREATED
        assert (temp_home / ".tmux.conf").read_text() == "local\n"

    def test_copy_mismatch_is_skipped(
        self, repo_root: Path, temp_home: Path, settings: Settings, capsys
    ):
        program_dir = (
            ProgramBuilder("ssh")
            .with_file("config", "Host *\n")
            .copy("config", ".ssh/config")
            .build(repo_root)
        )
        target = temp_home / ".ssh" / "config"
        target.parent.mkdir()
        target.write_text("Host work\n")

        results = process_manifest(program_dir, "ssh", settings)

        assert results[0].outcome is Outcome.SKIPPED
        assert isinstance(results[0].error, ContentMismatchError)
        assert target.read_text() == "Host work\n"
        captured = capsys.readouterr()
        assert str(target) in captured.err
        assert "diverged" in captured.err
        assert "+Host work" not in captured.out

    def test_copy_mismatch_shows_diff_when_verbose(
        self, repo_root: Path, temp_home: Path, settings: Settings, capsys
    ):
        program_dir = (
            ProgramBuilder("ssh")
            .with_file("config", "Host *\n")
            .copy("config", ".ssh/config")
            .build(repo_root)
        )
        target = temp_home / ".ssh" / "config"
        target.parent.mkdir()
        target.write_text("Host work\n")
        verbose = Settings(
            settings.config_file, settings.dotfiles_dir, settings.home, verbosity=1
        )

        process_manifest(program_dir, "ssh", verbose)

        assert "+Host work" in capsys.readouterr().out

    def test_missing_source_is_recorded(
        self, repo_root: Path, temp_home: Path, settings: Settings, capsys
    ):
        program_dir = (
            ProgramBuilder("bash")
            .link("bashrc", ".bashrc")
            .build(repo_root)
        )

        results = process_manifest(program_dir, "bash", settings)

        assert results[0].outcome is Outcome.FAILED
        assert results[0].classification is Classification.SOURCE_MISSING
        err = capsys.readouterr().err
        assert str(temp_home / ".bashrc") in err
        assert str(program_dir / "bashrc") in err
        assert "source missing" in err

    def test_source_tilde_stays_inside_program(
        self, repo_root: Path, temp_home: Path, settings: Settings
    ):
        program_dir = (
            ProgramBuilder("odd")
            .with_file("~/rc", "odd\n")
            .link("~/rc", ".rc")
            .build(repo_root)
        )

        results = process_manifest(program_dir, "odd", settings)

        assert results[0].outcome is Outcome.CREATED
        assert results[0].source == program_dir / "~" / "rc"
        assert (temp_home / ".rc").read_text() == "odd\n"

    def test_undecodable_manifest_raises_read_error(
        self, repo_root: Path, settings: Settings
    ):
        program_dir = ProgramBuilder("bad").without_manifest().build(repo_root)
        (program_dir / "bad.dotfiles").write_bytes(b"link \xff\xfe x .x\n")

        with pytest.raises(ManifestReadError):
            process_manifest(program_dir, "bad", settings)

    def test_dry_run_does_not_touch_disk(
        self, repo_root: Path, temp_home: Path, settings: Settings
    ):
        program_dir = (
            ProgramBuilder("zsh")
            .with_file("zshrc")
            .with_file("env", "B=2\n")
            .link("zshrc", ".zshrc")
            .copy("env", ".env")
            .build(repo_root)
        )
        (temp_home / ".env").write_text("B=3\n")

        results = process_manifest(program_dir, "zsh", settings, dry_run=True)

        assert [r.outcome for r in results] == [Outcome.CREATED, Outcome.SKIPPED]
        assert not (temp_home / ".zshrc").exists()
        assert (temp_home / ".env").read_text() == "B=3\n"
