"""Tests for storage layout construction and validation."""

import pytest

from bes_autoinstall.errors import LayoutError, PlanConfigError
from bes_autoinstall.lib.arch import resolve_arch
from bes_autoinstall.lib.storage import (
    LINUX_DATA_TYPE,
    REFERENCES,
    SWAP_TYPE,
    StoragePlan,
    build_storage,
    layout_nodes,
    validate_layout,
)
from bes_autoinstall.lib.tree import as_node, to_python

AMD64 = resolve_arch("amd64")
ARM64 = resolve_arch("arm64")


def _by_id(nodes):
    return {n["id"]: n for n in nodes}


def _validate(nodes):
    validate_layout(as_node(nodes).items)


# ---------------------------------------------------------------------------
# construction
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("variant", ["simple", "matched"])
@pytest.mark.parametrize("arch", [AMD64, ARM64])
def test_references_point_strictly_earlier(variant, arch):
    nodes = layout_nodes(StoragePlan(variant=variant), arch)
    for pos, node in enumerate(nodes):
        ref = REFERENCES.get(node["type"])
        if not ref:
            continue
        positions = [i for i, n in enumerate(nodes) if n["id"] == node[ref[0]]]
        assert positions and positions[0] < pos


def test_dependency_order():
    types = [n["type"] for n in layout_nodes(StoragePlan(), AMD64)]
    assert types == ["disk"] + ["partition"] * 4 + ["format"] * 3 + ["mount"] * 3


def test_simple_variant_shape():
    storage = to_python(build_storage(StoragePlan(variant="simple"), AMD64))
    assert list(storage) == ["layout"]
    assert storage["layout"]["name"] == "custom"

    nodes = _by_id(storage["layout"]["config"])
    assert nodes["disk0"] == {"type": "disk", "id": "disk0", "ptable": "gpt", "grub_device": True}
    assert nodes["efi"] == {"type": "partition", "id": "efi", "device": "disk0", "size": "512M", "flag": "boot"}
    assert nodes["root"] == {"type": "partition", "id": "root", "device": "disk0", "size": -1}
    assert not any("partition_name" in n for n in nodes.values())
    assert nodes["staging-mnt"]["path"] == "/"


def test_matched_variant_shape():
    plan = StoragePlan(variant="matched", boot_id="xboot", staging_role="swap")
    storage = to_python(build_storage(plan, ARM64))
    assert list(storage) == ["version", "swap", "grub", "config"]
    assert storage["version"] == 2
    assert storage["swap"] == {"size": 0}
    assert storage["grub"] == {"reorder_uefi": False}

    nodes = _by_id(storage["config"])
    assert nodes["disk0"]["match"] == [{"size": "largest", "ssd": True}, {"size": "largest"}]
    assert nodes["disk0"]["wipe"] == "superblock-recursive"
    assert nodes["efi"] == {
        "type": "partition",
        "id": "efi",
        "device": "disk0",
        "size": "512M",
        "flag": "boot",
        "partition_name": "efi",
        "partition_type": "c12a7328-f81f-11d2-ba4b-00a0c93ec93b",
        "grub_device": True,
        "wipe": "superblock",
        "preserve": False,
    }
    assert nodes["root"]["partition_type"] == ARM64.root_partition_type
    assert nodes["staging"]["partition_name"] == "swap"
    assert nodes["staging"]["partition_type"] == SWAP_TYPE
    assert nodes["xboot-fmt"]["volume"] == "xboot"
    assert nodes["xboot-mnt"]["path"] == "/boot"


def test_staging_as_filesystem():
    nodes = _by_id(layout_nodes(StoragePlan(variant="matched", staging_role="filesystem"), AMD64))
    assert nodes["staging"]["partition_name"] == "staging"
    assert nodes["staging"]["partition_type"] == LINUX_DATA_TYPE
    assert nodes["staging-fmt"]["fstype"] == "ext4"


def test_unknown_variant_and_role():
    with pytest.raises(PlanConfigError):
        StoragePlan(variant="lvm")
    with pytest.raises(PlanConfigError):
        StoragePlan(staging_role="encrypted")


# ---------------------------------------------------------------------------
# validate_layout
# ---------------------------------------------------------------------------

DISK = {"type": "disk", "id": "d"}
PART = {"type": "partition", "id": "p", "device": "d"}
FMT = {"type": "format", "id": "f", "volume": "p", "fstype": "ext4"}
MNT = {"type": "mount", "id": "m", "device": "f", "path": "/"}


def test_valid_minimal_layout():
    _validate([DISK, PART, FMT, MNT])


def test_forward_reference_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, FMT, PART, MNT])


def test_undefined_reference_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, dict(PART, device="nope"), FMT, MNT])


def test_wrong_reference_type_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, PART, FMT, dict(MNT, device="p")])


def test_duplicate_id_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, PART, dict(FMT, id="p"), MNT])


def test_missing_root_mount_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, PART, FMT, dict(MNT, path="/srv")])


def test_duplicate_mount_path_rejected():
    with pytest.raises(LayoutError):
        _validate([DISK, PART, FMT, MNT, dict(MNT, id="m2")])


def test_unknown_type_and_missing_id():
    with pytest.raises(LayoutError):
        _validate([DISK, {"type": "lvm_volgroup", "id": "vg"}])
    with pytest.raises(LayoutError):
        _validate([{"type": "disk"}])
