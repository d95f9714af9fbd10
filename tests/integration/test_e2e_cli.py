from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from dotlink.cli import app

runner = CliRunner()


def _init(tmp_path: Path, fake_home: Path) -> tuple[Path, Path]:
    dots = fake_home / ".dotfiles"
    config_path = tmp_path / "config" / "dotlink.toml"
    result = runner.invoke(app, ["init", "--dotfiles-dir", str(dots), "--write-config", str(config_path)])
    assert result.exit_code == 0
    return dots, config_path


def test_cli_full_cycle(tmp_path: Path, fake_home: Path) -> None:
    dots, config_path = _init(tmp_path, fake_home)
    nvim = fake_home / ".config" / "nvim"
    nvim.mkdir(parents=True)
    (nvim / "init.lua").write_text("-- init\n")
    (fake_home / ".zshrc").write_text("export EDITOR=nvim\n")

    push_result = runner.invoke(
        app, ["push", "shell", str(fake_home / ".zshrc"), str(nvim), "--config", str(config_path)]
    )
    assert push_result.exit_code == 0

    # the originals are still in place, so linking reports conflicts until adopted
    status_result = runner.invoke(app, ["status", "--config", str(config_path)])
    assert status_result.exit_code == 1

    add_result = runner.invoke(app, ["add", "*", "--adopt", "--config", str(config_path)])
    assert add_result.exit_code == 0
    assert (fake_home / ".zshrc").is_symlink()
    # adopting replaces files, so the existing directories stay real
    assert not (fake_home / ".config" / "nvim").is_symlink()
    assert (fake_home / ".config" / "nvim" / "init.lua").is_symlink()
    assert (fake_home / ".config" / "nvim" / "init.lua").read_text() == "-- init\n"

    healthy = runner.invoke(app, ["status", "--config", str(config_path)])
    assert healthy.exit_code == 0
    assert "shell" in healthy.stdout

    groupis_result = runner.invoke(app, ["groupis", str(fake_home / ".zshrc"), "--config", str(config_path)])
    assert groupis_result.exit_code == 0
    assert "shell" in groupis_result.stdout

    rm_result = runner.invoke(app, ["rm", "*", "--config", str(config_path)])
    assert rm_result.exit_code == 0
    assert not (fake_home / ".zshrc").exists()
    assert (dots / "Configs" / "shell" / ".zshrc").read_text() == "export EDITOR=nvim\n"

    pop_result = runner.invoke(app, ["pop", "shell", "--yes", "--config", str(config_path)])
    assert pop_result.exit_code == 0
    assert not (dots / "Configs" / "shell").exists()

    empty = runner.invoke(app, ["status", "--config", str(config_path)])
    assert empty.exit_code == 1
    assert "To get started" in empty.stdout


def test_cli_foreign_link_survives_cycle(tmp_path: Path, fake_home: Path) -> None:
    dots, config_path = _init(tmp_path, fake_home)
    (dots / "Configs" / "git").mkdir()
    (dots / "Configs" / "git" / ".gitconfig").write_text("[user]\n")
    elsewhere = tmp_path / "elsewhere.gitconfig"
    elsewhere.write_text("[core]\n")
    (fake_home / ".gitconfig").symlink_to(elsewhere)

    add_result = runner.invoke(app, ["add", "git", "--config", str(config_path)])
    rm_result = runner.invoke(app, ["rm", "git", "--config", str(config_path)])

    assert add_result.exit_code == 0
    assert rm_result.exit_code == 0
    assert "protected" in rm_result.stdout
    assert (fake_home / ".gitconfig").resolve() == elsewhere
