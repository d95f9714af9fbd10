from __future__ import annotations

from pathlib import Path

import pytest

from dotlink.layout import ROOT_GROUP, Layout, NoManagedTreeError, NotInManagedTreeError, UnknownGroupError


def _layout(tmp_path: Path) -> Layout:
    return Layout(dotfiles_dir=tmp_path / "dots", home_dir=tmp_path / "home", root_dir=tmp_path / "root")


def test_resolve_nested_entry(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    managed = layout.resolve(layout.configs_dir / "nvim" / ".config" / "nvim" / "init.lua")

    assert managed.group_name == "nvim"
    assert managed.group_root == layout.configs_dir / "nvim"
    assert managed.relative_path == Path(".config/nvim/init.lua")
    assert not managed.is_group_root


def test_resolve_group_root_and_other_trees(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    group_root = layout.resolve(layout.configs_dir / "zsh")
    assert group_root.is_group_root
    assert group_root.group_name == "zsh"

    hook = layout.resolve(layout.hooks_dir / "zsh" / "pre.sh")
    assert hook.group_name == "zsh"
    assert hook.group_root == layout.hooks_dir / "zsh"

    tree_root = layout.resolve(layout.secrets_dir)
    assert tree_root.group_name == "Secrets"
    assert tree_root.is_group_root


def test_resolve_normalises_dot_segments(tmp_path: Path) -> None:
    layout = _layout(tmp_path)
    managed = layout.resolve(layout.configs_dir / "zsh" / "sub" / ".." / ".zshrc")

    assert managed.path == layout.configs_dir / "zsh" / ".zshrc"


def test_resolve_rejects_outside_paths(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    with pytest.raises(NotInManagedTreeError):
        layout.resolve(tmp_path / "home" / ".zshrc")
    with pytest.raises(NotInManagedTreeError):
        layout.resolve(layout.dotfiles_dir / "README.md")


def test_target_path_maps_home_and_root(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    home_entry = layout.resolve(layout.configs_dir / "zsh" / ".zshrc")
    assert layout.target_path(home_entry) == tmp_path / "home" / ".zshrc"

    root_entry = layout.resolve(layout.configs_dir / ROOT_GROUP / "etc" / "hosts")
    assert layout.targets_root(root_entry)
    assert layout.target_path(root_entry) == tmp_path / "root" / "etc" / "hosts"


def test_require_configs(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    with pytest.raises(NoManagedTreeError) as missing_root:
        layout.require_configs()
    assert missing_root.value.exit_code == 2

    layout.dotfiles_dir.mkdir()
    with pytest.raises(NoManagedTreeError):
        layout.require_configs()

    layout.configs_dir.mkdir()
    assert layout.require_configs() == layout.configs_dir


def test_contains(tmp_path: Path) -> None:
    layout = _layout(tmp_path)

    assert layout.contains(layout.dotfiles_dir)
    assert layout.contains(layout.configs_dir / "zsh")
    assert not layout.contains(tmp_path / "home")


def test_unknown_group_error_lists_groups() -> None:
    error = UnknownGroupError(["vim", "zsh"])

    assert error.groups == ("vim", "zsh")
    assert error.exit_code == 3
    assert str(error) == "Group(s) vim, zsh doesn't exist"
