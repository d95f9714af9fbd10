"""Hook scripts run around linking.

Deploying a group runs its stages in order: every ``Hooks/<group>/pre*``
script, then the group's symlinks, then every ``Hooks/<group>/post*`` script.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from .layout import DotlinkError, UnknownGroupError
from .manager import WILDCARD, DotlinkManager
from .models import LinkResult, TreeKind

logger = logging.getLogger(__name__)


class HookError(DotlinkError):
    """Raised when a hook script fails or cannot be started."""


class DeployStage(str, Enum):
    """Stages of a group deployment, in execution order."""

    PRE_HOOK = "pre"
    SYMLINK = "symlink"
    POST_HOOK = "post"


@dataclass(frozen=True, slots=True)
class StageResult:
    """What one stage did for one group."""

    group: str
    stage: DeployStage
    scripts: tuple[Path, ...] = ()
    links: tuple[LinkResult, ...] = ()


def find_hooks(hook_dir: Path, stage: DeployStage) -> list[Path]:
    """Return the scripts in ``hook_dir`` that belong to ``stage``."""

    if stage is DeployStage.SYMLINK or not hook_dir.is_dir():
        return []
    return sorted(path for path in hook_dir.iterdir() if path.is_file() and path.name.startswith(stage.value))


def run_hook(script: Path, *, group: str, cwd: Path | None = None) -> None:
    logger.info("Running %s hook for %s", script.name, group)
    try:
        completed = subprocess.run([str(script)], cwd=cwd, check=False)
    except OSError as exc:
        raise HookError(f"Could not run hook '{script}' for group '{group}': {exc}") from exc

    if completed.returncode != 0:
        raise HookError(f"Hook '{script.name}' for group '{group}' exited with status {completed.returncode}")


class HookRunner:
    """Runs the pre-hook, symlink, post-hook pipeline for groups."""

    def __init__(self, manager: DotlinkManager) -> None:
        self.manager = manager

    def deploy(
        self,
        groups: Iterable[str],
        exclude: Iterable[str] = (),
        *,
        force: bool = False,
        adopt: bool = False,
        on_stage: Callable[[str, DeployStage], None] | None = None,
    ) -> list[StageResult]:
        excluded = tuple(exclude)
        layout = self.manager.layout
        results: list[StageResult] = []

        for group in self._expand_groups(groups, set(excluded)):
            if not self.manager.platform.applies_to(group):
                logger.info("Skipping %s: not supported on this platform", group)
                continue

            for stage in DeployStage:
                if on_stage is not None:
                    on_stage(group, stage)

                if stage is DeployStage.SYMLINK:
                    links: list[LinkResult] = []
                    if layout.group_dir(group).is_dir():
                        links = self.manager.link([group], excluded, force=force, adopt=adopt)
                    results.append(StageResult(group, stage, links=tuple(links)))
                    continue

                scripts = find_hooks(layout.group_dir(group, TreeKind.HOOKS), stage)
                for script in scripts:
                    run_hook(script, group=group, cwd=layout.home_dir)
                results.append(StageResult(group, stage, scripts=tuple(scripts)))

        return results

    def _expand_groups(self, groups: Iterable[str], excluded: set[str]) -> list[str]:
        layout = self.manager.layout
        available = set(_child_dirs(layout.hooks_dir)) | set(_child_dirs(layout.configs_dir))

        requested = list(dict.fromkeys(groups))
        missing = [name for name in requested if name != WILDCARD and name not in available]
        if missing:
            raise UnknownGroupError(missing)

        names: list[str] = []
        for name in requested:
            if name == WILDCARD:
                candidates = sorted(
                    group
                    for group in available
                    if not any(self.manager.platform.is_variant_of(group, other) for other in available)
                    and group not in self.manager.config.exclude
                )
            else:
                candidates = [name]
            for candidate in candidates:
                if candidate not in excluded and candidate not in names:
                    names.append(candidate)
        return names


def _child_dirs(path: Path) -> list[str]:
    if not path.is_dir():
        return []
    return [child.name for child in path.iterdir() if child.is_dir()]
