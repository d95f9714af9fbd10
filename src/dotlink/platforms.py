"""Platform-conditional group suffixes."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from functools import lru_cache

OS_TOKENS = (
    "windows",
    "macos",
    "ios",
    "linux",
    "android",
    "freebsd",
    "dragonfly",
    "openbsd",
    "netbsd",
    "none",
)
FAMILY_TOKENS = ("unix", "windows")

# "_windows" is both an OS and a family value
VALID_SUFFIXES = tuple(f"_{token}" for token in dict.fromkeys(OS_TOKENS + FAMILY_TOKENS))

_SYS_PLATFORM_PREFIXES = (
    ("win32", "windows", "windows"),
    ("darwin", "macos", "unix"),
    ("ios", "ios", "unix"),
    ("android", "android", "unix"),
    ("linux", "linux", "unix"),
    ("freebsd", "freebsd", "unix"),
    ("dragonfly", "dragonfly", "unix"),
    ("openbsd", "openbsd", "unix"),
    ("netbsd", "netbsd", "unix"),
)


def conditional_suffix(group_name: str) -> str | None:
    """Return the platform suffix carried by ``group_name``, if any."""

    matches = [suffix for suffix in VALID_SUFFIXES if group_name.endswith(suffix)]
    if not matches:
        return None
    return max(matches, key=len)


def is_conditional(group_name: str) -> bool:
    return conditional_suffix(group_name) is not None


def base_group(group_name: str) -> str:
    """Strip the platform suffix from ``group_name``."""

    suffix = conditional_suffix(group_name)
    if suffix is None or len(suffix) == len(group_name):
        return group_name
    return group_name[: -len(suffix)]


@dataclass(frozen=True, slots=True)
class Platform:
    """Operating system and OS family the current run targets."""

    os: str
    family: str

    @classmethod
    def detect(cls, sys_platform: str | None = None) -> "Platform":
        value = sys_platform if sys_platform is not None else sys.platform
        for prefix, os_name, family in _SYS_PLATFORM_PREFIXES:
            if value.startswith(prefix):
                return cls(os=os_name, family=family)
        return cls(os=value, family="unix")

    def applies_to(self, group_name: str) -> bool:
        """Return ``True`` if ``group_name`` should be deployed on this platform.

        Groups without a recognised suffix always apply. Suffixed groups apply
        when the suffix names either the current OS or the current OS family.
        """

        if not is_conditional(group_name):
            return True
        return group_name.endswith(f"_{self.os}") or group_name.endswith(f"_{self.family}")

    def is_variant_of(self, group_name: str, base: str) -> bool:
        """Return ``True`` if ``group_name`` is an applicable conditional variant of ``base``."""

        if group_name == base or not group_name.startswith(base):
            return False
        return group_name[len(base) :] in VALID_SUFFIXES and self.applies_to(group_name)


@lru_cache(maxsize=1)
def current_platform() -> Platform:
    """Platform of the running process, read once."""

    return Platform.detect()
