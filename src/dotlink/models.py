"""Shared models and enums for dotlink."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping


class TreeKind(str, Enum):
    """Top-level directories of the dotfiles tree."""

    CONFIGS = "Configs"
    HOOKS = "Hooks"
    SECRETS = "Secrets"


@dataclass(frozen=True, slots=True)
class ManagedFile:
    """Identifies a file or directory inside the managed tree."""

    path: Path
    group_root: Path
    group_name: str

    @property
    def is_group_root(self) -> bool:
        return self.path == self.group_root

    @property
    def relative_path(self) -> Path:
        return self.path.relative_to(self.group_root)


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """One entry produced while walking the managed tree."""

    path: Path
    is_dir: bool
    link_destination: Path | None = None

    @property
    def is_symlink(self) -> bool:
        return self.link_destination is not None


@dataclass(frozen=True, slots=True)
class TargetState:
    """What currently occupies a target path, without following its final symlink."""

    exists: bool
    is_dir: bool = False
    link_destination: Path | None = None

    @property
    def is_symlink(self) -> bool:
        return self.link_destination is not None


class LinkState(str, Enum):
    """Classification of a managed entry against its target."""

    LINKED = "linked"
    PENDING = "pending"
    FOREIGN = "foreign"


GroupMap = Mapping[str, frozenset[ManagedFile]]


@dataclass(frozen=True)
class Partition:
    """Managed entries split by ``LinkState`` and keyed by group name."""

    linked: GroupMap = field(default_factory=dict)
    pending: GroupMap = field(default_factory=dict)
    foreign: GroupMap = field(default_factory=dict)

    def groups(self, state: LinkState) -> GroupMap:
        if state is LinkState.LINKED:
            return self.linked
        if state is LinkState.PENDING:
            return self.pending
        return self.foreign

    def is_empty(self) -> bool:
        return not (self.linked or self.pending or self.foreign)

    def group_names(self) -> set[str]:
        return set(self.linked) | set(self.pending) | set(self.foreign)


class LinkAction(str, Enum):
    """Outcome of a link or unlink operation for an entry."""

    LINKED = "linked"
    UNLINKED = "unlinked"
    ALREADY_EXISTS = "already_exists"
    PROTECTED = "protected"
    REPLACED = "replaced"
    ADOPTED = "adopted"
    SKIPPED = "skipped"
    FAILED = "failed"
    MISSING_GROUP = "missing_group"
    UNSUPPORTED = "unsupported"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class LinkResult:
    """Result emitted for one entry of a link or unlink batch."""

    group: str
    action: LinkAction
    source: Path | None = None
    target: Path | None = None
    details: str | None = None


class PushAction(str, Enum):
    """Outcome of copying a home file into a group."""

    COPIED = "copied"
    MISSING = "missing"
    OUTSIDE_HOME = "outside_home"
    ALREADY_MANAGED = "already_managed"


@dataclass(frozen=True, slots=True)
class PushResult:
    """Result emitted when pushing a file into the managed tree."""

    group: str
    source: Path
    managed: Path | None
    action: PushAction


class GroupState(str, Enum):
    """High-level states reported by ``dotlink status``."""

    LINKED = "linked"
    PENDING = "pending"
    UNSUPPORTED = "unsupported"
    MISSING = "missing"


class ConflictKind(str, Enum):
    """Why a target path blocks linking."""

    EXISTS = "already exists"
    FOREIGN = "symlinks elsewhere"


@dataclass(frozen=True, slots=True)
class Conflict:
    """A target path occupied by something dotlink does not own."""

    group: str
    target: Path
    kind: ConflictKind


@dataclass(frozen=True, slots=True)
class GroupStatus:
    """Status of a base group with its conditional variants folded in."""

    group: str
    state: GroupState
    variants: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Collection of status results for a manager run."""

    entries: tuple[GroupStatus, ...]
    conflicts: tuple[Conflict, ...] = ()

    @property
    def healthy(self) -> bool:
        return bool(self.entries) and not self.conflicts and all(
            entry.state is GroupState.LINKED for entry in self.entries
        )
