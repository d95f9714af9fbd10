"""Reconciliation of the Configs tree against the home directory.

Every entry below ``Configs`` is classified by looking at its deployment
target:

- *linked*: the target is a symlink whose destination is the entry itself.
- *foreign*: the target is a symlink pointing somewhere else.
- *pending*: the target is missing, a plain file, or a real directory in
  place of a managed file. A managed directory whose target is a real
  directory is not recorded; its children are classified instead.

The raw classification is then reduced so that a linked directory covers all
pending entries beneath it, so that a foreign symlink blocking a directory
hides the entries reached through it, and so that each group reports only its
shallowest entries per state. Linking one directory is enough to deploy
everything inside it, so reporting its children separately would only add
noise.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Callable, Iterable

from .filesystem import ErrorHandler, ManagedTree, lexists, link_destination, inspect_target
from .layout import Layout
from .models import GroupMap, ManagedFile, Partition, TargetState, TreeEntry
from .platforms import Platform, current_platform

logger = logging.getLogger(__name__)

TargetInspector = Callable[[Path], TargetState]


def _log_unreadable(exc: OSError) -> None:
    logger.warning("Skipping unreadable entry: %s", exc)


def classify(
    entries: Iterable[TreeEntry],
    layout: Layout,
    *,
    inspect: TargetInspector = inspect_target,
    on_error: ErrorHandler | None = None,
) -> Partition:
    """Split ``entries`` into linked, pending and foreign sets keyed by group."""

    on_error = on_error or _log_unreadable
    linked: dict[str, set[ManagedFile]] = defaultdict(set)
    pending: dict[str, set[ManagedFile]] = defaultdict(set)
    foreign: dict[str, set[ManagedFile]] = defaultdict(set)

    for entry in entries:
        managed = layout.resolve(entry.path)
        # a group directory would target the home directory itself
        if managed.is_group_root:
            continue

        if entry.link_destination is not None and not layout.contains(entry.link_destination):
            foreign[managed.group_name].add(managed)
            continue

        try:
            target = inspect(layout.target_path(managed))
        except OSError as exc:
            on_error(exc)
            continue

        if target.link_destination is not None:
            bucket = linked if target.link_destination == managed.path else foreign
        elif target.is_dir and entry.is_dir:
            continue
        else:
            bucket = pending
        bucket[managed.group_name].add(managed)

    return Partition(
        linked=_freeze(linked),
        pending=_freeze(pending),
        foreign=_freeze(foreign),
    )


def cancel_linked_descendants(partition: Partition) -> Partition:
    """Drop pending entries that sit below a linked entry of the same group."""

    pending = _drop_pending_below(partition.pending, partition.linked)
    return Partition(linked=partition.linked, pending=pending, foreign=partition.foreign)


def cancel_foreign_descendants(partition: Partition) -> Partition:
    """Drop pending entries that sit below a foreign entry of the same group.

    Their targets are reached through a symlink dotlink does not own, so the
    foreign entry is the only thing that can be acted on.
    """

    pending = _drop_pending_below(partition.pending, partition.foreign)
    return Partition(linked=partition.linked, pending=pending, foreign=partition.foreign)


def _drop_pending_below(pending: GroupMap, covering: GroupMap) -> dict[str, frozenset[ManagedFile]]:
    result: dict[str, frozenset[ManagedFile]] = {}
    for group, files in pending.items():
        covered = {item.path for item in covering.get(group, ())}
        if not covered:
            result[group] = files
            continue
        result[group] = frozenset(
            item for item in files if item.path not in covered and covered.isdisjoint(item.path.parents)
        )
    return _drop_empty(result)


def canonicalize(partition: Partition) -> Partition:
    """Keep only the shallowest entries of each group within each state."""

    return Partition(
        linked=_canonicalize_groups(partition.linked),
        pending=_canonicalize_groups(partition.pending),
        foreign=_canonicalize_groups(partition.foreign),
    )


def _canonicalize_groups(groups: GroupMap) -> dict[str, frozenset[ManagedFile]]:
    result: dict[str, frozenset[ManagedFile]] = {}
    for group, files in groups.items():
        paths = {item.path for item in files}
        result[group] = frozenset(item for item in files if paths.isdisjoint(item.path.parents))
    return _drop_empty(result)


def _freeze(groups: dict[str, set[ManagedFile]]) -> dict[str, frozenset[ManagedFile]]:
    return _drop_empty({group: frozenset(files) for group, files in groups.items()})


def _drop_empty(groups: dict[str, frozenset[ManagedFile]]) -> dict[str, frozenset[ManagedFile]]:
    return {group: files for group, files in groups.items() if files}


class Snapshot:
    """Classification of the managed tree at one point in time."""

    def __init__(
        self,
        layout: Layout,
        partition: Partition,
        *,
        platform: Platform,
        warnings: Iterable[str] = (),
    ) -> None:
        self.layout = layout
        self.partition = partition
        self.platform = platform
        self.warnings = list(warnings)

    @property
    def linked(self) -> GroupMap:
        return self.partition.linked

    @property
    def pending(self) -> GroupMap:
        return self.partition.pending

    @property
    def foreign(self) -> GroupMap:
        return self.partition.foreign

    def is_empty(self) -> bool:
        return self.partition.is_empty()

    def conditional_variants(self, base: str, *, want_linked: bool) -> list[str]:
        """Return the applicable conditional variants of ``base`` in the selected map."""

        groups = self.linked if want_linked else self.pending
        return sorted(name for name in groups if self.platform.is_variant_of(name, base))

    def related_groups(self, base: str, *, want_linked: bool) -> list[str] | None:
        """Return ``base`` and its applicable conditional variants.

        Looks in the linked map when ``want_linked`` is set, otherwise in the
        pending map. Returns ``None`` when ``base`` has no entries there. The
        base group is always the last element.
        """

        groups = self.linked if want_linked else self.pending
        if base not in groups:
            return None
        return [*self.conditional_variants(base, want_linked=want_linked), base]

    def occupied_targets(self, group: str) -> list[tuple[ManagedFile, bool]]:
        """Return entries of ``group`` whose target is taken by something else.

        Each item carries ``True`` when the occupant is a foreign symlink and
        ``False`` when it is a plain file.
        """

        occupied: list[tuple[ManagedFile, bool]] = []
        for managed in sorted(self.pending.get(group, ()), key=lambda item: item.path):
            if lexists(self.layout.target_path(managed)):
                occupied.append((managed, False))
        for managed in sorted(self.foreign.get(group, ()), key=lambda item: item.path):
            if self._escapes_tree(managed):
                continue
            if self.layout.target_path(managed).is_symlink():
                occupied.append((managed, True))
        return occupied

    def _escapes_tree(self, managed: ManagedFile) -> bool:
        if not managed.path.is_symlink():
            return False
        return not self.layout.contains(link_destination(managed.path))


def compute_state(layout: Layout, platform: Platform | None = None) -> Snapshot:
    """Walk ``Configs`` once and return the reconciled ``Snapshot``."""

    configs_dir = layout.require_configs()
    warnings: list[str] = []

    def record(exc: OSError) -> None:
        _log_unreadable(exc)
        warnings.append(str(exc))

    tree = ManagedTree(configs_dir, on_error=record)
    partition = classify(tree, layout, on_error=record)
    partition = canonicalize(cancel_foreign_descendants(cancel_linked_descendants(partition)))
    logger.debug(
        "Classified %d linked, %d pending and %d foreign group(s) under %s",
        len(partition.linked),
        len(partition.pending),
        len(partition.foreign),
        configs_dir,
    )
    return Snapshot(layout, partition, platform=platform or current_platform(), warnings=warnings)
