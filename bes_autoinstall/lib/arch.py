from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..errors import ArchitectureError

logger = logging.getLogger(__name__)

DEFAULT_ARCH = "amd64"


@dataclass(frozen=True)
class ArchProfile:
    name: str
    # GPT type GUID for the root filesystem (Discoverable Partitions Spec).
    root_partition_type: str
    # Bootloader packages that only make sense on other architectures.
    excluded_packages: Tuple[str, ...]


ARCH_PROFILES = {
    "amd64": ArchProfile(
        name="amd64",
        root_partition_type="4f68bce3-e8cd-4db1-96e7-fbcaf984b709",
        excluded_packages=("grub-efi-arm64",),
    ),
    "arm64": ArchProfile(
        name="arm64",
        root_partition_type="b921b045-1df0-41c3-af44-4c6f280d3fae",
        excluded_packages=("grub-efi-amd64", "grub-pc"),
    ),
}


def normalize_arch(machine: str) -> str:
    m = machine.strip().lower()
    return {
        "x86_64": "amd64",
        "amd64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
    }.get(m, m)


def resolve_arch(tag: Optional[str]) -> ArchProfile:
    """Return the profile for an architecture tag.

    An absent tag means DEFAULT_ARCH. Anything else must be a known
    architecture; there is no fallback for unknown tags.
    """

    if tag is None or not tag.strip():
        logger.info("No architecture given; using default %s", DEFAULT_ARCH)
        return ARCH_PROFILES[DEFAULT_ARCH]

    arch = normalize_arch(tag)
    profile = ARCH_PROFILES.get(arch)
    if profile is None:
        raise ArchitectureError(
            f"Unsupported architecture: {tag!r} (expected one of {', '.join(sorted(ARCH_PROFILES))})"
        )
    return profile


def filter_packages(packages: Iterable[str], arch: ArchProfile) -> List[str]:
    excluded = set(arch.excluded_packages)
    kept: List[str] = []
    dropped: List[str] = []
    for pkg in packages:
        if pkg in excluded:
            dropped.append(pkg)
        else:
            kept.append(pkg)
    if dropped:
        logger.info("Excluded packages for %s: %s", arch.name, ", ".join(dropped))
    return kept
