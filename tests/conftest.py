from __future__ import annotations

from pathlib import Path

import pytest

from dotlink.config import Config, Settings
from dotlink.manager import DotlinkManager
from dotlink.platforms import Platform

LINUX = Platform(os="linux", family="unix")


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("DOTLINK_CONFIG", raising=False)
    monkeypatch.delenv("DOTLINK_DIR", raising=False)
    return home


@pytest.fixture
def dotfiles(fake_home: Path) -> Path:
    root = fake_home / ".dotfiles"
    for name in ("Configs", "Hooks", "Secrets"):
        (root / name).mkdir(parents=True)
    return root


@pytest.fixture
def system_root(tmp_path: Path) -> Path:
    root = tmp_path / "rootfs"
    root.mkdir()
    return root


@pytest.fixture
def config(dotfiles: Path, fake_home: Path, system_root: Path) -> Config:
    settings = Settings(dotfiles_dir=dotfiles, home_dir=fake_home, root_dir=system_root)
    return Config(settings=settings)


@pytest.fixture
def manager(config: Config) -> DotlinkManager:
    return DotlinkManager(config, platform=LINUX)
