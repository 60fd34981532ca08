from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Union

from ..errors import InputUnavailableError, PlanConfigError

logger = logging.getLogger(__name__)

# Paths are relative to the sources directory given on the command line.
DEFAULT_SOURCE_PATHS: Dict[str, str] = {
    "migrate_script": "migrate-to-btrfs.sh",
    "firewall_script": "common/setup-firewall.sh",
    "tailscale_setup_script": "common/setup-tailscale.sh",
    "tailscale_first_boot_script": "common/tailscale-first-boot.sh",
    "tailscale_first_boot_service": "common/tailscale-first-boot.service",
    "tailscale_apt_key": "ansible/roles/tailscale/files/apt.gpg",
    "packages": "common/packages.txt",
}


@dataclass(frozen=True)
class Sources:
    """Content read from disk, keyed by source name."""

    contents: Mapping[str, Union[str, bytes]] = field(default_factory=dict)

    def text(self, name: str) -> str:
        value = self._get(name)
        if not isinstance(value, str):
            raise PlanConfigError(f"Source '{name}' was loaded as binary but is used as text")
        return value

    def data(self, name: str) -> bytes:
        value = self._get(name)
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    def _get(self, name: str) -> Union[str, bytes]:
        if name not in self.contents:
            raise PlanConfigError(f"Source '{name}' was not loaded")
        return self.contents[name]


def resolve_source_path(base_dir: str, name: str, overrides: Mapping[str, str] | None = None) -> Path:
    rel = (overrides or {}).get(name) or DEFAULT_SOURCE_PATHS.get(name)
    if not rel:
        raise PlanConfigError(f"No path configured for source '{name}'")
    p = Path(rel).expanduser()
    if p.is_absolute():
        return p
    return Path(base_dir) / p


def load_sources(
    base_dir: str,
    required: Mapping[str, bool],
    *,
    overrides: Mapping[str, str] | None = None,
) -> Sources:
    """Read every required source up front.

    required maps source name -> binary flag. Any missing or unreadable
    source aborts before a single plan node is built.
    """

    contents: Dict[str, Union[str, bytes]] = {}
    for name, binary in required.items():
        p = resolve_source_path(base_dir, name, overrides)
        try:
            if binary:
                contents[name] = p.read_bytes()
            else:
                contents[name] = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InputUnavailableError(name, str(p), e.__class__.__name__) from e
        logger.info("Loaded source %s from %s", name, str(p))
    return Sources(contents=contents)


def parse_package_list(text: str) -> List[str]:
    """One package per line; blank lines and '#' comments are ignored."""

    packages: List[str] = []
    for line in text.split("\n"):
        name = line.strip()
        if not name or name.startswith("#"):
            continue
        packages.append(name)
    return packages
