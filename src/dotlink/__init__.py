"""Core package for the dotlink project."""

from .cli import app, run
from .config import Config, ConfigError, Settings
from .engine import Snapshot, compute_state
from .hooks import DeployStage, HookError, HookRunner
from .layout import DotlinkError, Layout, NoManagedTreeError, NotInManagedTreeError, UnknownGroupError
from .manager import DotlinkManager
from .models import (
    GroupState,
    GroupStatus,
    LinkAction,
    LinkResult,
    ManagedFile,
    Partition,
    PushAction,
    PushResult,
    StatusReport,
)
from .platforms import Platform, current_platform

__all__ = [
    "Config",
    "ConfigError",
    "Settings",
    "Layout",
    "DotlinkManager",
    "DotlinkError",
    "NoManagedTreeError",
    "NotInManagedTreeError",
    "UnknownGroupError",
    "HookRunner",
    "HookError",
    "DeployStage",
    "Snapshot",
    "compute_state",
    "Platform",
    "current_platform",
    "GroupState",
    "GroupStatus",
    "LinkAction",
    "LinkResult",
    "ManagedFile",
    "Partition",
    "PushAction",
    "PushResult",
    "StatusReport",
    "app",
    "run",
]
