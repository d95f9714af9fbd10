"""TOML configuration loading for dotlink."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from .layout import Layout

DEFAULT_CONFIG_FILENAME = "dotlink.toml"
CONFIG_ENV_VAR = "DOTLINK_CONFIG"
DOTFILES_ENV_VAR = "DOTLINK_DIR"


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


def default_home_dir() -> Path:
    return Path.home().resolve(strict=False)


def default_dotfiles_dir(home_dir: Path | None = None) -> Path:
    """Return the dotfiles directory used when the configuration names none.

    ``$DOTLINK_DIR`` wins; otherwise the first existing of ``~/.dotfiles`` and
    ``~/.config/dotfiles`` is used, falling back to ``~/.dotfiles``.
    """

    home = home_dir or default_home_dir()
    from_env = os.environ.get(DOTFILES_ENV_VAR)
    if from_env:
        return _expand_path(from_env, base_dir=Path.cwd())

    candidates = (home / ".dotfiles", home / ".config" / "dotfiles")
    for candidate in candidates:
        if candidate.is_dir():
            return candidate.resolve(strict=False)
    return candidates[0]


def default_config_path() -> Path:
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env).expanduser()
    return Path.home() / ".config" / "dotlink" / DEFAULT_CONFIG_FILENAME


class Settings(BaseModel):
    """Global configuration options."""

    model_config = ConfigDict(frozen=True)

    dotfiles_dir: Path = Field(default_factory=default_dotfiles_dir)
    home_dir: Path = Field(default_factory=default_home_dir)
    root_dir: Path = Field(default_factory=lambda: Path(Path.cwd().anchor))

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "Settings":
        home_raw = raw.get("home_dir")
        home = _expand_path(home_raw, base_dir=base_dir) if home_raw is not None else default_home_dir()

        dotfiles_raw = raw.get("dotfiles_dir")
        dotfiles = (
            _expand_path(dotfiles_raw, base_dir=base_dir)
            if dotfiles_raw is not None
            else default_dotfiles_dir(home)
        )

        root_raw = raw.get("root_dir")
        if root_raw is None:
            return cls(dotfiles_dir=dotfiles, home_dir=home)
        return cls(dotfiles_dir=dotfiles, home_dir=home, root_dir=_expand_path(root_raw, base_dir=base_dir))

    def layout(self) -> Layout:
        return Layout(dotfiles_dir=self.dotfiles_dir, home_dir=self.home_dir, root_dir=self.root_dir)


class Config(BaseModel):
    """Fully parsed configuration."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None = None
    settings: Settings = Field(default_factory=Settings)
    exclude: tuple[str, ...] = ()


def load_config(path: Path | None = None) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or the directory holding it. When
            omitted, ``$DOTLINK_CONFIG`` or ``~/.config/dotlink/dotlink.toml`` is
            read if present, and built-in defaults are used otherwise.
    """

    if path is None:
        candidate = default_config_path()
        if not candidate.is_file():
            return Config()
        path = candidate

    config_path = _resolve_config_path(path)
    base_dir = config_path.parent

    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc

    settings_section = data.get("settings") or {}
    if not isinstance(settings_section, Mapping):
        raise ConfigError("[settings] must be a table")
    settings = Settings.from_raw(settings_section, base_dir=base_dir)

    groups_section = data.get("groups") or {}
    if not isinstance(groups_section, Mapping):
        raise ConfigError("[groups] must be a table")
    exclude_raw = groups_section.get("exclude", [])
    if not isinstance(exclude_raw, list) or not all(isinstance(item, str) for item in exclude_raw):
        raise ConfigError("[groups] exclude must be a list of group names")

    return Config(config_path=config_path, settings=settings, exclude=tuple(exclude_raw))


def _resolve_config_path(path: Path) -> Path:
    path = Path(path)

    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)
