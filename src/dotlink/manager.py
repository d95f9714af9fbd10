"""High level orchestration for dotlink operations."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, Sequence

from .config import Config
from .engine import Snapshot, compute_state
from .filesystem import (
    ManagedTree,
    copy_entry,
    create_symlink,
    lexists,
    link_destination,
    inspect_target,
    remove_path,
)
from .layout import ROOT_GROUP, Layout, NoManagedTreeError, NotInManagedTreeError, UnknownGroupError
from .models import (
    Conflict,
    ConflictKind,
    GroupState,
    GroupStatus,
    LinkAction,
    LinkResult,
    PushAction,
    PushResult,
    StatusReport,
    TreeEntry,
    TreeKind,
)
from .platforms import Platform, base_group, current_platform, is_conditional

logger = logging.getLogger(__name__)

WILDCARD = "*"


class DotlinkManager:
    """Coordinates link, unlink and status operations over the dotfiles tree."""

    def __init__(self, config: Config, *, platform: Platform | None = None) -> None:
        self.config = config
        self.layout: Layout = config.settings.layout()
        self.platform = platform or current_platform()
        self._snapshot: Snapshot | None = None
        self._warnings: list[str] = []

    @property
    def snapshot(self) -> Snapshot:
        """Current classification, computed on first use after any mutation."""

        if self._snapshot is None:
            self._snapshot = compute_state(self.layout, self.platform)
            self._warnings.extend(self._snapshot.warnings)
        return self._snapshot

    def refresh(self) -> Snapshot:
        self._snapshot = None
        return self.snapshot

    def pull_warnings(self) -> list[str]:
        messages = list(self._warnings)
        self._warnings.clear()
        return messages

    # ------------------------------------------------------------------
    # Linking

    def link(
        self,
        groups: Iterable[str],
        exclude: Iterable[str] = (),
        *,
        force: bool = False,
        adopt: bool = False,
    ) -> list[LinkResult]:
        """Symlink every requested group, with its conditional variants, into place."""

        excluded = set(exclude)
        names = self._expand_groups(groups, excluded, want_linked=False)
        results: list[LinkResult] = []
        processed: set[str] = set()

        try:
            for name in names:
                if not self.platform.applies_to(name):
                    results.append(
                        LinkResult(name, LinkAction.UNSUPPORTED, details="Not supported on this platform")
                    )
                    continue

                family = [
                    group for group in self._resolve_family(name, excluded, want_linked=False) if group not in processed
                ]
                processed.update(family)

                if adopt or force:
                    results.extend(self._clear_conflicts(family, adopt=adopt))
                for group in family:
                    results.extend(self._link_group(group))
        finally:
            self._snapshot = None

        return results

    def unlink(self, groups: Iterable[str], exclude: Iterable[str] = ()) -> list[LinkResult]:
        """Remove the symlinks owned by every requested group and its conditional variants."""

        excluded = set(exclude)
        names = self._expand_groups(groups, excluded, want_linked=True)
        results: list[LinkResult] = []
        processed: set[str] = set()

        try:
            for name in names:
                for group in self._resolve_family(name, excluded, want_linked=True):
                    if group in processed:
                        continue
                    processed.add(group)
                    results.extend(self._unlink_group(group))
        finally:
            self._snapshot = None

        return results

    # ------------------------------------------------------------------
    # Status

    def status(self, groups: Iterable[str] | None = None) -> StatusReport:
        snapshot = self.snapshot
        names = list(dict.fromkeys(groups)) if groups else self._display_groups()
        entries: list[GroupStatus] = []
        conflicts: list[Conflict] = []

        for name in names:
            if not self.layout.group_dir(name).is_dir():
                entries.append(GroupStatus(name, GroupState.MISSING))
                continue
            if not self.platform.applies_to(name):
                entries.append(GroupStatus(name, GroupState.UNSUPPORTED))
                continue

            variants = tuple(
                group for group in sorted(snapshot.partition.group_names()) if self.platform.is_variant_of(group, name)
            )
            family = (*variants, name)

            unresolved = any(group in snapshot.pending or group in snapshot.foreign for group in family)
            linked = any(group in snapshot.linked for group in family)
            state = GroupState.LINKED if linked and not unresolved else GroupState.PENDING
            entries.append(GroupStatus(name, state, variants=variants))

            for group in family:
                for managed, is_foreign in snapshot.occupied_targets(group):
                    conflicts.append(
                        Conflict(
                            group=group,
                            target=self.layout.target_path(managed),
                            kind=ConflictKind.FOREIGN if is_foreign else ConflictKind.EXISTS,
                        )
                    )

        return StatusReport(entries=tuple(entries), conflicts=tuple(conflicts))

    # ------------------------------------------------------------------
    # Managed tree maintenance

    def initialize(self) -> Path:
        """Create the Configs, Hooks and Secrets directories."""

        for root in self.layout.managed_roots():
            root.mkdir(parents=True, exist_ok=True)
        logger.info("Initialized dotfiles directory %s", self.layout.dotfiles_dir)
        return self.layout.dotfiles_dir

    def push(self, group: str, files: Iterable[Path | str]) -> list[PushResult]:
        """Copy deployed files into ``group`` at their home-relative location."""

        group_dir = self.layout.require_configs() / group
        base = self.layout.root_dir if group == ROOT_GROUP else self.layout.home_dir
        results: list[PushResult] = []

        for raw in files:
            source = _absolute(raw)
            if not lexists(source):
                results.append(PushResult(group, source, None, PushAction.MISSING))
                continue

            if source.is_symlink() and self.layout.contains(link_destination(source)):
                results.append(PushResult(group, source, None, PushAction.ALREADY_MANAGED))
                continue

            try:
                relative = source.relative_to(base)
            except ValueError:
                relative = None
            if relative is None or relative == Path("."):
                results.append(PushResult(group, source, None, PushAction.OUTSIDE_HOME))
                continue

            managed = group_dir / relative
            copy_entry(source, managed)
            logger.info("Copied %s into %s", source, managed)
            results.append(PushResult(group, source, managed, PushAction.COPIED))

        self._snapshot = None
        return results

    def pop(self, groups: Sequence[str]) -> list[LinkResult]:
        """Unlink and delete whole groups from the Configs tree."""

        self.layout.require_configs()
        self._check_groups(groups)
        results: list[LinkResult] = []

        try:
            for group in dict.fromkeys(groups):
                group_dir = self.layout.group_dir(group)
                results.extend(
                    result for result in self._unlink_group(group) if result.action is not LinkAction.SKIPPED
                )
                shutil.rmtree(group_dir)
                logger.info("Removed group directory %s", group_dir)
                results.append(LinkResult(group, LinkAction.REMOVED, source=group_dir))
        finally:
            self._snapshot = None

        return results

    def which_group(self, path: Path | str) -> str | None:
        """Return the group that owns ``path``, or ``None``."""

        candidate = _absolute(path)
        try:
            managed = self.layout.resolve(candidate)
        except NotInManagedTreeError:
            pass
        else:
            if not managed.is_group_root:
                return managed.group_name

        anchor = candidate
        while not anchor.is_symlink():
            if anchor.parent == anchor:
                return None
            anchor = anchor.parent

        try:
            owner = self.layout.resolve(anchor.resolve(strict=False))
        except NotInManagedTreeError:
            owner = None
        if owner is not None and not owner.is_group_root:
            return owner.group_name

        configs_dir = self.layout.require_configs()
        for group_dir in sorted(child for child in configs_dir.iterdir() if child.is_dir()):
            base = self.layout.root_dir if group_dir.name == ROOT_GROUP else self.layout.home_dir
            try:
                relative = anchor.relative_to(base)
            except ValueError:
                continue
            if lexists(group_dir / relative):
                return group_dir.name
        return None

    def from_stow(self) -> list[Path]:
        """Move stow-style package directories into Configs."""

        dotfiles_dir = self.layout.dotfiles_dir
        if not dotfiles_dir.is_dir():
            raise NoManagedTreeError(f"Couldn't find dotfiles directory '{dotfiles_dir}'")

        configs_dir = self.layout.configs_dir
        configs_dir.mkdir(parents=True, exist_ok=True)
        reserved = {kind.value for kind in TreeKind}
        moved: list[Path] = []

        for child in sorted(dotfiles_dir.iterdir()):
            if child.name.startswith(".") or child.name in reserved:
                continue
            if child.is_symlink() or not child.is_dir():
                continue
            destination = configs_dir / child.name
            if lexists(destination):
                self._warnings.append(f"'{destination}' already exists; left '{child}' in place")
                continue
            child.rename(destination)
            logger.info("Moved %s to %s", child, destination)
            moved.append(destination)

        self._snapshot = None
        return moved

    def hook_groups(self) -> list[tuple[str, bool, bool]]:
        """Return ``(group, has_prehook, has_posthook)`` for every hook group."""

        hooks_dir = self.layout.hooks_dir
        if not hooks_dir.is_dir():
            raise NoManagedTreeError(f"There's no directory set up for Hooks in '{self.layout.dotfiles_dir}'")

        rows: list[tuple[str, bool, bool]] = []
        for group_dir in sorted(child for child in hooks_dir.iterdir() if child.is_dir()):
            names = [script.name for script in group_dir.iterdir()]
            rows.append(
                (
                    group_dir.name,
                    any(name.startswith("pre") for name in names),
                    any(name.startswith("post") for name in names),
                )
            )
        return rows

    def secret_groups(self) -> list[str]:
        secrets_dir = self.layout.secrets_dir
        if not secrets_dir.is_dir():
            raise NoManagedTreeError(f"There's no directory set up for Secrets in '{self.layout.dotfiles_dir}'")
        return sorted(child.name for child in secrets_dir.iterdir())

    def config_groups(self) -> list[str]:
        configs_dir = self.layout.require_configs()
        return sorted(child.name for child in configs_dir.iterdir() if child.is_dir())

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_groups(self, groups: Iterable[str]) -> None:
        missing = [
            name for name in dict.fromkeys(groups) if name != WILDCARD and not self.layout.group_dir(name).is_dir()
        ]
        if missing:
            raise UnknownGroupError(missing)

    def _expand_groups(self, groups: Iterable[str], excluded: set[str], *, want_linked: bool) -> list[str]:
        requested = list(groups)
        snapshot = self.snapshot
        self._check_groups(requested)

        names: list[str] = []
        for name in requested:
            if name == WILDCARD:
                source = snapshot.linked if want_linked else snapshot.pending
                candidates = [
                    group
                    for group in sorted(source)
                    if group not in self.config.exclude and self.platform.applies_to(group)
                ]
            else:
                candidates = [name]

            for candidate in candidates:
                if candidate not in excluded and candidate not in names:
                    names.append(candidate)
        return names

    def _resolve_family(self, name: str, excluded: set[str], *, want_linked: bool) -> list[str]:
        snapshot = self.snapshot
        family = snapshot.related_groups(name, want_linked=want_linked)
        if family is None:
            # nothing recorded for the base group itself; variants may still need work
            family = [*snapshot.conditional_variants(name, want_linked=want_linked), name]
        return [group for group in family if group == name or group not in excluded]

    def _clear_conflicts(self, groups: Iterable[str], *, adopt: bool) -> list[LinkResult]:
        snapshot = self.snapshot
        results: list[LinkResult] = []

        for group in groups:
            for managed, _is_foreign in snapshot.occupied_targets(group):
                target = self.layout.target_path(managed)
                try:
                    if adopt:
                        content = target.resolve(strict=False) if target.is_symlink() else target
                        if lexists(content):
                            copy_entry(content, managed.path)
                        remove_path(target)
                        action = LinkAction.ADOPTED
                    else:
                        remove_path(target)
                        action = LinkAction.REPLACED
                except OSError as exc:
                    results.append(LinkResult(group, LinkAction.FAILED, managed.path, target, str(exc)))
                    continue

                logger.info("%s %s for %s", action.value.capitalize(), target, managed.path)
                results.append(LinkResult(group, action, managed.path, target))

        return results

    def _link_group(self, group: str) -> list[LinkResult]:
        group_dir = self.layout.group_dir(group)
        if not group_dir.is_dir():
            return [LinkResult(group, LinkAction.MISSING_GROUP, source=group_dir, details="There's no dotfiles for group")]

        results: list[LinkResult] = []
        tree = ManagedTree(group_dir, on_error=self._record_unreadable, descend=self._target_is_real_dir)

        for entry in tree:
            managed = self.layout.resolve(entry.path)
            target = self.layout.target_path(managed)

            if entry.link_destination is not None and not self.layout.contains(entry.link_destination):
                results.append(
                    LinkResult(group, LinkAction.SKIPPED, managed.path, target, "Points outside the dotfiles directory")
                )
                continue

            try:
                state = inspect_target(target)
            except OSError as exc:
                self._record_unreadable(exc)
                continue

            if state.exists:
                if state.is_dir and not state.is_symlink and entry.is_dir:
                    continue
                if state.link_destination == managed.path:
                    details = "Already linked"
                elif state.is_symlink:
                    details = "Symlinks elsewhere"
                else:
                    details = "Already exists"
                results.append(LinkResult(group, LinkAction.ALREADY_EXISTS, managed.path, target, details))
                continue

            try:
                create_symlink(target, managed.path)
            except OSError as exc:
                results.append(LinkResult(group, LinkAction.FAILED, managed.path, target, str(exc)))
                continue

            logger.info("Linked %s -> %s", target, managed.path)
            results.append(LinkResult(group, LinkAction.LINKED, managed.path, target))

        return results

    def _unlink_group(self, group: str) -> list[LinkResult]:
        group_dir = self.layout.group_dir(group)
        if not group_dir.is_dir():
            return [LinkResult(group, LinkAction.MISSING_GROUP, source=group_dir, details="There's no group called this")]

        results: list[LinkResult] = []
        for entry in ManagedTree(group_dir, on_error=self._record_unreadable):
            managed = self.layout.resolve(entry.path)
            target = self.layout.target_path(managed)
            try:
                state = inspect_target(target)
            except OSError as exc:
                self._record_unreadable(exc)
                continue

            if not state.is_symlink:
                continue
            if state.link_destination != managed.path:
                results.append(LinkResult(group, LinkAction.PROTECTED, managed.path, target, "Symlinks elsewhere"))
                continue

            try:
                remove_path(target)
            except OSError as exc:
                results.append(LinkResult(group, LinkAction.FAILED, managed.path, target, str(exc)))
                continue

            logger.info("Unlinked %s", target)
            results.append(LinkResult(group, LinkAction.UNLINKED, managed.path, target))

        if not results:
            results.append(LinkResult(group, LinkAction.SKIPPED, source=group_dir, details="Nothing linked"))
        return results

    def _target_is_real_dir(self, entry: TreeEntry) -> bool:
        target = self.layout.target_path(self.layout.resolve(entry.path))
        return target.is_dir() and not target.is_symlink()

    def _display_groups(self) -> list[str]:
        on_disk = set(self.config_groups())
        names: set[str] = set()
        for group in self.snapshot.partition.group_names():
            base = base_group(group)
            names.add(base if is_conditional(group) and base in on_disk else group)
        return sorted(names)

    def _record_unreadable(self, exc: OSError) -> None:
        logger.warning("Skipping unreadable entry: %s", exc)
        self._warnings.append(str(exc))


def _absolute(path: Path | str) -> Path:
    return Path(os.path.normpath(Path(path).expanduser().absolute()))
