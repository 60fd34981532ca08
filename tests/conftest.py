import logging

import pytest

PACKAGES_TXT = """\
# Base system
openssh-server
btrfs-progs

# Bootloaders (filtered per architecture)
grub-efi-amd64
grub-efi-arm64
grub-pc
  tailscale
"""

APT_KEY = bytes(range(256)) * 3

SOURCE_FILES = {
    "migrate-to-btrfs.sh": "#!/bin/bash\nset -euo pipefail\necho \"migrating to btrfs\"\n",
    "common/setup-firewall.sh": "#!/bin/bash\nufw default deny incoming\nufw allow ssh\nufw --force enable\n",
    "common/setup-tailscale.sh": "#!/bin/bash\napt-key add /tmp/tailscale-apt.gpg\n",
    "common/tailscale-first-boot.sh": "#!/bin/bash\ntailscale up --ssh\n",
    "common/tailscale-first-boot.service": (
        "[Unit]\nDescription=Tailscale first boot\n\n"
        "[Service]\nType=oneshot\nExecStart=/usr/local/bin/tailscale-first-boot\n\n"
        "[Install]\nWantedBy=multi-user.target\n"
    ),
    "common/packages.txt": PACKAGES_TXT,
}


@pytest.fixture
def sources_dir(tmp_path):
    root = tmp_path / "sources"
    for rel, text in SOURCE_FILES.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
    key = root / "ansible/roles/tailscale/files/apt.gpg"
    key.parent.mkdir(parents=True, exist_ok=True)
    key.write_bytes(APT_KEY)
    return root


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    for h in getattr(root, "_bes_handlers", []):
        root.removeHandler(h)
        h.close()
    for attr in ("_bes_configured", "_bes_log_path", "_bes_handlers"):
        if hasattr(root, attr):
            delattr(root, attr)
