from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .errors import LayoutError
from .lib.arch import ArchProfile
from .lib.commands import parse_actions, required_sources
from .lib.sources import Sources
from .lib.storage import validate_layout
from .lib.tree import Map, Node, Seq, as_node
from .plan_config import PlanConfig
from .plan_sections import ALL_SECTIONS, PlanCtx

logger = logging.getLogger(__name__)


def plan_sources(cfg: PlanConfig) -> Dict[str, bool]:
    """Every source the plan reads (name -> binary flag)."""

    required = {cfg.packages_source: False}
    required.update(required_sources(parse_actions(cfg.late_commands)))
    return required


def _storage_config(storage: Node) -> Seq:
    if isinstance(storage, Map):
        layout = storage.get("layout")
        holder = layout if isinstance(layout, Map) else storage
        config = holder.get("config")
        if isinstance(config, Seq):
            return config
    raise LayoutError("storage section has no config list")


def build_plan(cfg: PlanConfig, sources: Sources, arch: ArchProfile) -> Map:
    """Assemble the full autoinstall document tree.

    Sections run in a fixed order; a section returning None is left out.
    The storage layout is checked again on the finished tree so nothing
    inconsistent reaches the renderer.
    """

    ctx = PlanCtx(cfg=cfg, arch=arch, sources=sources)
    entries: List[Tuple[str, Node]] = []

    for key, fn in ALL_SECTIONS:
        value = fn(ctx=ctx)
        if value is None:
            logger.debug("Section %s omitted", key)
            continue
        entries.append((key, as_node(value)))

    plan = Map(tuple(entries))
    validate_layout(_storage_config(plan["storage"]).items)

    late = plan.get("late-commands")
    logger.info(
        "Built plan profile=%s arch=%s (%d late commands)",
        cfg.profile,
        arch.name,
        len(late) if isinstance(late, Seq) else 0,
    )
    return plan
