from __future__ import annotations

import os
import tomllib
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dotlink.cli import app
from dotlink.config import DEFAULT_CONFIG_FILENAME

runner = CliRunner()


def _write_config(directory: Path, dotfiles: Path, home: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    config_path = directory / DEFAULT_CONFIG_FILENAME
    config_path.write_text(
        f"""
[settings]
dotfiles_dir = "{dotfiles}"
home_dir = "{home}"
root_dir = "{home.parent / 'rootfs'}"
"""
    )
    return config_path


def _write(path: Path, content: str = "data\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def test_cli_init_writes_config(tmp_path: Path, fake_home: Path) -> None:
    dots = tmp_path / "dots"
    config_path = tmp_path / "conf" / DEFAULT_CONFIG_FILENAME

    result = runner.invoke(app, ["init", "--dotfiles-dir", str(dots), "--write-config", str(config_path)])

    assert result.exit_code == 0
    assert "created" in result.stdout
    assert (dots / "Configs").is_dir()
    assert (dots / "Hooks").is_dir()
    assert (dots / "Secrets").is_dir()

    data = tomllib.loads(config_path.read_text())
    assert data["settings"]["dotfiles_dir"] == str(dots)
    assert data["groups"]["exclude"] == []

    again = runner.invoke(app, ["init", "--dotfiles-dir", str(dots), "--write-config", str(config_path)])
    assert again.exit_code == 1
    assert "--force" in again.stdout


def test_cli_add_status_rm_flow(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "Configs" / "zsh" / ".zshrc")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    pending = runner.invoke(app, ["status", "--config", str(config_path)])
    assert pending.exit_code == 1
    assert "pending" in pending.stdout

    add_result = runner.invoke(app, ["add", "zsh", "--config", str(config_path)])
    assert add_result.exit_code == 0
    assert "linked" in add_result.stdout
    assert (fake_home / ".zshrc").is_symlink()

    status_result = runner.invoke(app, ["status", "-c", str(config_path)])
    assert status_result.exit_code == 0
    assert "zsh" in status_result.stdout

    rm_result = runner.invoke(app, ["rm", "zsh", "-c", str(config_path)])
    assert rm_result.exit_code == 0
    assert "unlinked" in rm_result.stdout
    assert not (fake_home / ".zshrc").exists()


def test_cli_add_reports_conflicts(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "Configs" / "zsh" / ".zshrc", "managed\n")
    _write(fake_home / ".zshrc", "local\n")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    status_result = runner.invoke(app, ["status", "-c", str(config_path)])
    assert status_result.exit_code == 1
    assert "Conflicting" in status_result.stdout

    add_result = runner.invoke(app, ["add", "zsh", "-c", str(config_path)])
    assert add_result.exit_code == 0
    assert "--force" in add_result.stdout
    assert not (fake_home / ".zshrc").is_symlink()

    adopt_result = runner.invoke(app, ["add", "zsh", "--adopt", "-c", str(config_path)])
    assert adopt_result.exit_code == 0
    assert "adopted" in adopt_result.stdout
    assert (dotfiles / "Configs" / "zsh" / ".zshrc").read_text() == "local\n"


def test_cli_unknown_group_exit_code(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    result = runner.invoke(app, ["add", "nope", "-c", str(config_path)])

    assert result.exit_code == 3
    assert "doesn't exist" in result.stdout


def test_cli_missing_dotfiles_exit_code(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path / "project", tmp_path / "missing", fake_home)

    result = runner.invoke(app, ["status", "-c", str(config_path)])

    assert result.exit_code == 2
    assert "dotlink init" in result.stdout


def test_cli_status_empty_tree(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    result = runner.invoke(app, ["status", "-c", str(config_path)])

    assert result.exit_code == 1
    assert "To get started" in result.stdout


def test_cli_invalid_config(tmp_path: Path, fake_home: Path) -> None:
    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text("[settings\n")

    result = runner.invoke(app, ["status", "-c", str(config_path)])

    assert result.exit_code == 1
    assert "TOML" in result.stdout


def test_cli_push_groupis_pop(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(fake_home / ".gitconfig", "[user]\n")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    push_result = runner.invoke(app, ["push", "git", str(fake_home / ".gitconfig"), "-c", str(config_path)])
    assert push_result.exit_code == 0
    assert "copied" in push_result.stdout
    assert (dotfiles / "Configs" / "git" / ".gitconfig").exists()

    groupis_result = runner.invoke(
        app, ["groupis", str(dotfiles / "Configs" / "git" / ".gitconfig"), "-c", str(config_path)]
    )
    assert groupis_result.exit_code == 0
    assert "git" in groupis_result.stdout

    loose = runner.invoke(app, ["groupis", str(fake_home / ".gitconfig"), "-c", str(config_path)])
    assert loose.exit_code == 1

    pop_result = runner.invoke(app, ["pop", "git", "--yes", "-c", str(config_path)])
    assert pop_result.exit_code == 0
    assert "removed" in pop_result.stdout
    assert not (dotfiles / "Configs" / "git").exists()


def test_cli_pop_aborts_without_confirmation(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "Configs" / "git" / ".gitconfig")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    result = runner.invoke(app, ["pop", "git", "-c", str(config_path)], input="n\n")

    assert result.exit_code == 1
    assert (dotfiles / "Configs" / "git").exists()


def test_cli_listings(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "Hooks" / "zsh" / "pre.sh")
    _write(dotfiles / "Secrets" / "ssh" / "key")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    hooks_result = runner.invoke(app, ["ls-hooks", "-c", str(config_path)])
    assert hooks_result.exit_code == 0
    assert "zsh" in hooks_result.stdout

    secrets_result = runner.invoke(app, ["ls-secrets", "-c", str(config_path)])
    assert secrets_result.exit_code == 0
    assert "ssh" in secrets_result.stdout


def test_cli_from_stow(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "tmux" / ".tmux.conf")
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    result = runner.invoke(app, ["from-stow", "-c", str(config_path)])

    assert result.exit_code == 0
    assert "tmux" in result.stdout
    assert (dotfiles / "Configs" / "tmux" / ".tmux.conf").exists()


@pytest.mark.skipif(os.name == "nt", reason="hook fixtures are POSIX shell scripts")
def test_cli_set_runs_hooks(tmp_path: Path, fake_home: Path, dotfiles: Path) -> None:
    _write(dotfiles / "Configs" / "zsh" / ".zshrc")
    hook = _write(dotfiles / "Hooks" / "zsh" / "post.sh", "#!/bin/sh\ntouch hooked.flag\n")
    hook.chmod(0o755)
    failing = _write(dotfiles / "Hooks" / "bad" / "pre.sh", "#!/bin/sh\nexit 1\n")
    failing.chmod(0o755)
    config_path = _write_config(tmp_path / "project", dotfiles, fake_home)

    result = runner.invoke(app, ["set", "zsh", "-c", str(config_path)])
    assert result.exit_code == 0
    assert (fake_home / "hooked.flag").exists()
    assert (fake_home / ".zshrc").is_symlink()

    failed = runner.invoke(app, ["set", "bad", "-c", str(config_path)])
    assert failed.exit_code == 1
    assert "Failed to hook" in failed.stdout
