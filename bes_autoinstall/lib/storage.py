from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..errors import LayoutError, PlanConfigError
from .arch import ArchProfile
from .tree import Map, Node, Seq, as_node, map_scalar, seq_of_maps

logger = logging.getLogger(__name__)

VARIANTS = ("simple", "matched")
STAGING_ROLES = ("filesystem", "swap")

# GPT partition type GUIDs (Discoverable Partitions Specification).
ESP_TYPE = "c12a7328-f81f-11d2-ba4b-00a0c93ec93b"
XBOOTLDR_TYPE = "bc13c2ff-59e6-4262-a352-b275fd6f7172"
SWAP_TYPE = "0657fd6d-a4ab-43c4-84e5-0933c84b4f4f"
LINUX_DATA_TYPE = "0fc63daf-8483-4772-8e79-3d69d8477de4"

DEFAULT_MATCH: Tuple[Dict[str, Any], ...] = (
    {"size": "largest", "ssd": True},
    {"size": "largest"},
)

# node type -> (reference field, type the reference must point at)
REFERENCES = {
    "partition": ("device", "disk"),
    "format": ("volume", "partition"),
    "mount": ("device", "format"),
}
NODE_TYPES = ("disk", "partition", "format", "mount")


@dataclass(frozen=True)
class PartitionSpec:
    id: str
    size: Union[str, int]
    name: str
    type_guid: str
    flag: Optional[str] = None
    fstype: Optional[str] = None  # None leaves the partition unformatted
    mount: Optional[str] = None
    grub_device: bool = False


@dataclass(frozen=True)
class StoragePlan:
    """Whole-layout selection; fields of one variant never leak into the other."""

    variant: str = "simple"
    ptable: str = "gpt"
    esp_size: str = "512M"
    boot_size: str = "1G"
    staging_size: str = "4G"
    boot_id: str = "boot"
    # Staging holds the installed system until it is migrated onto root;
    # "swap" labels it for reuse as swap afterwards.
    staging_role: str = "filesystem"
    wipe: str = "superblock-recursive"
    match: Tuple[Dict[str, Any], ...] = field(default_factory=lambda: DEFAULT_MATCH)
    swap_size: int = 0
    reorder_uefi: bool = False

    def __post_init__(self) -> None:
        if self.variant not in VARIANTS:
            raise PlanConfigError(f"Unknown storage variant: {self.variant} (expected one of {', '.join(VARIANTS)})")
        if self.staging_role not in STAGING_ROLES:
            raise PlanConfigError(f"storage.staging_role must be one of {', '.join(STAGING_ROLES)}, got: {self.staging_role}")


def partition_specs(plan: StoragePlan, arch: ArchProfile) -> List[PartitionSpec]:
    """Layout:
    - ESP (FAT32) mounted at /boot/efi, the grub device
    - /boot (ext4)
    - staging (ext4) mounted at / during install
    - root takes the rest, left unformatted for the migration script
    """

    staging_swap = plan.staging_role == "swap"
    return [
        PartitionSpec(
            id="efi",
            size=plan.esp_size,
            name="efi",
            type_guid=ESP_TYPE,
            flag="boot",
            fstype="fat32",
            mount="/boot/efi",
            grub_device=True,
        ),
        PartitionSpec(
            id=plan.boot_id,
            size=plan.boot_size,
            name="boot",
            type_guid=XBOOTLDR_TYPE,
            fstype="ext4",
            mount="/boot",
        ),
        PartitionSpec(
            id="staging",
            size=plan.staging_size,
            name="swap" if staging_swap else "staging",
            type_guid=SWAP_TYPE if staging_swap else LINUX_DATA_TYPE,
            fstype="ext4",
            mount="/",
        ),
        PartitionSpec(
            id="root",
            size=-1,
            name="root",
            type_guid=arch.root_partition_type,
        ),
    ]


def _disk_node(plan: StoragePlan) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "disk", "id": "disk0", "ptable": plan.ptable}
    if plan.variant == "simple":
        node["grub_device"] = True
    else:
        node["wipe"] = plan.wipe
        node["preserve"] = False
        node["match"] = [dict(m) for m in plan.match]
    return node


def _partition_node(plan: StoragePlan, spec: PartitionSpec) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "partition", "id": spec.id, "device": "disk0", "size": spec.size}
    if spec.flag:
        node["flag"] = spec.flag
    if plan.variant == "matched":
        node["partition_name"] = spec.name
        node["partition_type"] = spec.type_guid
        if spec.grub_device:
            node["grub_device"] = True
        node["wipe"] = "superblock"
        node["preserve"] = False
    return node


def layout_nodes(plan: StoragePlan, arch: ArchProfile) -> List[Dict[str, Any]]:
    """Emit disk, then partitions, then formats, then mounts."""

    specs = partition_specs(plan, arch)
    nodes: List[Dict[str, Any]] = [_disk_node(plan)]
    nodes += [_partition_node(plan, s) for s in specs]
    nodes += [
        {"type": "format", "id": f"{s.id}-fmt", "volume": s.id, "fstype": s.fstype}
        for s in specs
        if s.fstype
    ]
    nodes += [
        {"type": "mount", "id": f"{s.id}-mnt", "device": f"{s.id}-fmt", "path": s.mount}
        for s in specs
        if s.fstype and s.mount
    ]
    return nodes


def validate_layout(nodes: Sequence[Node]) -> None:
    """Check that every reference resolves to an earlier node of the right type."""

    seen: Dict[str, str] = {}
    mount_paths: Dict[str, str] = {}

    for pos, node in enumerate(seq_of_maps(nodes)):
        node_type = map_scalar(node, "type")
        node_id = map_scalar(node, "id")

        if node_type not in NODE_TYPES:
            raise LayoutError(f"Storage entry #{pos} has unknown type: {node_type!r}")
        if not isinstance(node_id, str) or not node_id:
            raise LayoutError(f"Storage entry #{pos} ({node_type}) has no id")
        if node_id in seen:
            raise LayoutError(f"Duplicate storage id: {node_id}")

        ref = REFERENCES.get(node_type)
        if ref:
            ref_field, want = ref
            target = map_scalar(node, ref_field)
            if target not in seen:
                raise LayoutError(
                    f"{node_type} '{node_id}' references {ref_field}={target!r}, which is not defined earlier"
                )
            if seen[target] != want:
                raise LayoutError(
                    f"{node_type} '{node_id}' references {ref_field}={target!r} of type {seen[target]}, expected {want}"
                )

        if node_type == "mount":
            path = map_scalar(node, "path")
            if not isinstance(path, str) or not path.startswith("/"):
                raise LayoutError(f"mount '{node_id}' has invalid path: {path!r}")
            if path in mount_paths:
                raise LayoutError(f"mount path {path} used by both {mount_paths[path]} and {node_id}")
            mount_paths[path] = node_id

        seen[node_id] = node_type

    if "/" not in mount_paths:
        raise LayoutError("Storage layout has no mount for /")


def build_storage(plan: StoragePlan, arch: ArchProfile) -> Map:
    """Build the whole storage section for the selected variant."""

    config = as_node(layout_nodes(plan, arch))
    assert isinstance(config, Seq)
    validate_layout(config.items)

    logger.info(
        "Storage layout variant=%s staging_role=%s root_type=%s (%d entries)",
        plan.variant,
        plan.staging_role,
        arch.root_partition_type,
        len(config),
    )

    if plan.variant == "simple":
        return as_node({"layout": {"name": "custom", "config": config}})  # type: ignore[return-value]

    return as_node(  # type: ignore[return-value]
        {
            "version": 2,
            "swap": {"size": plan.swap_size},
            "grub": {"reorder_uefi": plan.reorder_uefi},
            "config": config,
        }
    )
