"""Filesystem helpers for dotlink."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path
from typing import Callable, Iterator

from .models import TargetState, TreeEntry

ErrorHandler = Callable[[OSError], None]


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def lexists(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def link_destination(path: Path) -> Path:
    """Return the absolute, normalised destination of the symlink at ``path``."""

    raw = os.readlink(path)
    return Path(os.path.normpath(os.path.join(path.parent, raw)))


def inspect_target(path: Path) -> TargetState:
    """Describe what occupies ``path`` without following a final symlink."""

    try:
        stat_result = path.lstat()
    except (FileNotFoundError, NotADirectoryError):
        return TargetState(exists=False)

    if stat.S_ISLNK(stat_result.st_mode):
        return TargetState(exists=True, is_dir=path.is_dir(), link_destination=link_destination(path))
    return TargetState(exists=True, is_dir=stat.S_ISDIR(stat_result.st_mode))


def symlink_points_to(source: Path, target: Path) -> bool:
    """Return ``True`` if ``source`` is a symlink whose destination is exactly ``target``."""

    if not source.is_symlink():
        return False
    return link_destination(source) == Path(os.path.normpath(target))


def create_symlink(link: Path, target: Path) -> None:
    """Create ``link`` pointing at ``target``.

    Directories are linked as directory symlinks, which matters on Windows.
    """

    ensure_parent(link)
    link.symlink_to(target, target_is_directory=target.is_dir())


def copy_entry(source: Path, destination: Path) -> None:
    """Copy ``source`` into ``destination``, replacing whatever is there."""

    ensure_parent(destination)
    remove_path(destination)

    if source.is_symlink():
        raw = os.readlink(source)
        # a relative destination only makes sense next to the original link
        destination.symlink_to(raw if os.path.isabs(raw) else link_destination(source))
    elif source.is_dir():
        shutil.copytree(
            source,
            destination,
            symlinks=True,
            copy_function=shutil.copy2,
            dirs_exist_ok=False,
        )
    else:
        shutil.copy2(source, destination)


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink.

    Symlinks are removed themselves; the directory they point at is left alone.
    """

    if not lexists(path):
        return
    if path.is_symlink() or not path.is_dir():
        path.unlink()
        return
    shutil.rmtree(path)


def _scan_entry(entry: os.DirEntry[str]) -> TreeEntry:
    path = Path(entry.path)
    if entry.is_symlink():
        return TreeEntry(path=path, is_dir=entry.is_dir(), link_destination=link_destination(path))
    return TreeEntry(path=path, is_dir=entry.is_dir(follow_symlinks=False))


def _descend_into_directories(entry: TreeEntry) -> bool:
    return entry.is_dir and not entry.is_symlink


class ManagedTree:
    """Lazy, restartable walk over every entry below ``root``.

    ``root`` itself is not yielded. Symlinked directories are yielded but not
    descended into. ``descend`` is consulted after the consumer has handled an
    entry, so it may depend on changes the consumer made. Entries that cannot be
    read are passed to ``on_error`` and skipped; without a handler the error is
    raised.
    """

    def __init__(
        self,
        root: Path,
        *,
        on_error: ErrorHandler | None = None,
        descend: Callable[[TreeEntry], bool] | None = None,
    ) -> None:
        self.root = root
        self.on_error = on_error
        self.descend = descend

    def __iter__(self) -> Iterator[TreeEntry]:
        stack = [self.root]
        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as handle:
                    children = sorted(handle, key=lambda item: item.name)
            except OSError as exc:
                self._fail(exc)
                continue

            for child in children:
                try:
                    entry = _scan_entry(child)
                except OSError as exc:
                    self._fail(exc)
                    continue

                yield entry

                if not _descend_into_directories(entry):
                    continue
                if self.descend is None or self.descend(entry):
                    stack.append(entry.path)

    def _fail(self, exc: OSError) -> None:
        if self.on_error is None:
            raise exc
        self.on_error(exc)
