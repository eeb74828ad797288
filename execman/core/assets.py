"""
Platform asset matching.

Release assets follow loose naming conventions such as
``tool_Linux_x86_64.tar.gz`` or ``tool-darwin-arm64``. Matching is driven by
the alias tables below so the accepted dialects can be audited in one place.
"""

import logging
import platform
import re
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from ..exceptions import AssetNotFoundError
from .github_client import ReleaseAsset

logger = logging.getLogger(__name__)

OS_ALIASES = {
    "linux": ("linux",),
    "darwin": ("darwin", "macos"),
    "windows": ("windows", "win"),
    "freebsd": ("freebsd",),
}

ARCH_ALIASES = {
    "amd64": ("amd64", "x86_64", "x64"),
    "arm64": ("arm64", "aarch64"),
    "386": ("386", "i386", "x86"),
    "arm": ("arm", "armv7", "armv6"),
}

SEPARATORS = ("_", "-")

EXTENSIONS = (".tar.gz", ".tgz", ".zip")

CHECKSUM_MANIFEST_PATTERN = re.compile(
    r"^(?:.*[_.-])?checksums?\.txt$|^sha256sums(?:\.txt)?$", re.IGNORECASE
)

# platform.machine() spellings mapped onto the Go-style names used above
_MACHINE_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def _aliases(table: dict, token: str) -> Tuple[str, ...]:
    token = token.lower()
    return table.get(token, (token,))


def compile_patterns(os_name: str, arch: str) -> List[Pattern]:
    """
    Build the asset-name patterns for a platform.

    The OS token and the architecture token must be adjacent, joined by the
    same separator, and end the name apart from an optional archive
    extension.
    """
    os_group = "|".join(re.escape(a) for a in _aliases(OS_ALIASES, os_name))
    arch_group = "|".join(re.escape(a) for a in _aliases(ARCH_ALIASES, arch))
    ext_group = "|".join(re.escape(e) for e in EXTENSIONS)
    return [
        re.compile(
            rf"{re.escape(sep)}(?:{os_group}){re.escape(sep)}(?:{arch_group})(?:{ext_group})?$",
            re.IGNORECASE,
        )
        for sep in SEPARATORS
    ]


class AssetMatcher:
    """Selects the release asset built for one OS/architecture pair."""

    def __init__(self, os_name: str, arch: str):
        self.os_name = os_name.lower()
        self.arch = arch.lower()
        self.patterns = compile_patterns(self.os_name, self.arch)

    @property
    def platform(self) -> str:
        return f"{self.os_name}/{self.arch}"

    def matches(self, name: str) -> bool:
        return any(pattern.search(name) for pattern in self.patterns)

    def find(self, assets: Sequence[ReleaseAsset]) -> ReleaseAsset:
        """
        Return the first asset, in list order, built for this platform.

        Raises:
            AssetNotFoundError: If no asset name matches
        """
        for asset in assets:
            if self.matches(asset.name):
                logger.debug(f"Matched asset {asset.name} for {self.platform}")
                return asset

        names = [asset.name for asset in assets]
        raise AssetNotFoundError(
            f"No matching asset found for {self.platform}",
            {"platform": self.platform, "assets": names},
        )


def find_checksums_asset(assets: Iterable[ReleaseAsset]) -> Optional[ReleaseAsset]:
    """Locate a checksums manifest among a release's assets."""
    for asset in assets:
        if CHECKSUM_MANIFEST_PATTERN.match(asset.name):
            return asset
    return None


def detect_platform() -> Tuple[str, str]:
    """Return the host platform as a Go-style ``(os, arch)`` pair."""
    os_name = platform.system().lower()
    machine = platform.machine().lower()
    return os_name, _MACHINE_NAMES.get(machine, machine)
