"""Dotfile identity: where managed files live and where they deploy to."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .models import ManagedFile, TreeKind

ROOT_GROUP = "Root"


class DotlinkError(RuntimeError):
    """Raised when dotlink encounters an unrecoverable state."""

    exit_code = 1


class NoManagedTreeError(DotlinkError):
    """Raised when the dotfiles directory or its Configs tree is missing."""

    exit_code = 2


class UnknownGroupError(DotlinkError):
    """Raised when a named group has no directory in the managed tree."""

    exit_code = 3

    def __init__(self, groups: list[str] | tuple[str, ...]) -> None:
        self.groups = tuple(groups)
        names = ", ".join(self.groups)
        super().__init__(f"Group(s) {names} doesn't exist")


class NotInManagedTreeError(DotlinkError):
    """Raised when a path does not belong to any managed root."""

    exit_code = 4


@dataclass(frozen=True, slots=True)
class Layout:
    """Paths of the dotfiles tree and the directories it deploys into."""

    dotfiles_dir: Path
    home_dir: Path
    root_dir: Path = field(default_factory=lambda: Path(Path.cwd().anchor))

    @property
    def configs_dir(self) -> Path:
        return self.dotfiles_dir / TreeKind.CONFIGS.value

    @property
    def hooks_dir(self) -> Path:
        return self.dotfiles_dir / TreeKind.HOOKS.value

    @property
    def secrets_dir(self) -> Path:
        return self.dotfiles_dir / TreeKind.SECRETS.value

    def tree_dir(self, kind: TreeKind) -> Path:
        return self.dotfiles_dir / kind.value

    def managed_roots(self) -> tuple[Path, ...]:
        return tuple(self.tree_dir(kind) for kind in TreeKind)

    def group_dir(self, group: str, kind: TreeKind = TreeKind.CONFIGS) -> Path:
        return self.tree_dir(kind) / group

    def require_configs(self) -> Path:
        """Return the Configs directory or raise ``NoManagedTreeError``."""

        if not self.dotfiles_dir.is_dir():
            raise NoManagedTreeError(
                f"Couldn't find dotfiles directory '{self.dotfiles_dir}'. "
                "Make sure it exists or run 'dotlink init'."
            )
        if not self.configs_dir.is_dir():
            raise NoManagedTreeError(f"No Configs directory set up in '{self.dotfiles_dir}'")
        return self.configs_dir

    def contains(self, path: Path) -> bool:
        """Return ``True`` if ``path`` lies inside the dotfiles directory."""

        return path == self.dotfiles_dir or self.dotfiles_dir in path.parents

    def resolve(self, path: Path | str) -> ManagedFile:
        """Return the ``ManagedFile`` identity for ``path``."""

        candidate = Path(os.path.normpath(Path(path).absolute()))
        for root in self.managed_roots():
            if candidate == root:
                return ManagedFile(path=candidate, group_root=root, group_name=root.name)
            if root in candidate.parents:
                group_root = root / candidate.relative_to(root).parts[0]
                return ManagedFile(path=candidate, group_root=group_root, group_name=group_root.name)

        raise NotInManagedTreeError(f"Path '{path}' does not belong to the dotfiles directory")

    def targets_root(self, managed: ManagedFile) -> bool:
        """Return ``True`` if ``managed`` belongs to the reserved Root group."""

        return managed.group_root == self.configs_dir / ROOT_GROUP

    def target_path(self, managed: ManagedFile) -> Path:
        """Return where ``managed`` should be deployed."""

        relative = managed.relative_path
        if self.targets_root(managed):
            return self.root_dir / relative
        return self.home_dir / relative

