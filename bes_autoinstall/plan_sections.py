from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from .lib.arch import ArchProfile, filter_packages
from .lib.commands import expand_actions, parse_actions
from .lib.sources import Sources, parse_package_list
from .lib.storage import build_storage
from .plan_config import PlanConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanCtx:
    cfg: PlanConfig
    arch: ArchProfile
    sources: Sources


def section_version(*, ctx: PlanCtx) -> Optional[Any]:
    return ctx.cfg.version


def section_source(*, ctx: PlanCtx) -> Optional[Any]:
    if not ctx.cfg.source_id:
        return None
    return {"id": ctx.cfg.source_id}


def section_interactive(*, ctx: PlanCtx) -> Optional[Any]:
    sections = ctx.cfg.interactive_sections
    if not sections:
        return None
    return {"sections": sections}


def section_locale(*, ctx: PlanCtx) -> Optional[Any]:
    return ctx.cfg.locale


def section_timezone(*, ctx: PlanCtx) -> Optional[Any]:
    return ctx.cfg.timezone


def section_keyboard(*, ctx: PlanCtx) -> Optional[Any]:
    return {"layout": ctx.cfg.keyboard_layout}


def section_identity(*, ctx: PlanCtx) -> Optional[Any]:
    identity = {}
    if ctx.cfg.hostname:
        identity["hostname"] = ctx.cfg.hostname
    identity["username"] = ctx.cfg.username
    if ctx.cfg.password:
        identity["password"] = ctx.cfg.password
    return identity


def section_ssh(*, ctx: PlanCtx) -> Optional[Any]:
    return {
        "install-server": ctx.cfg.ssh_install_server,
        "allow-pw": ctx.cfg.ssh_allow_pw,
    }


def section_storage(*, ctx: PlanCtx) -> Optional[Any]:
    return build_storage(ctx.cfg.storage_plan, ctx.arch)


def section_packages(*, ctx: PlanCtx) -> Optional[Any]:
    packages = parse_package_list(ctx.sources.text(ctx.cfg.packages_source))
    resolved = filter_packages(packages, ctx.arch)
    logger.info("Resolved %d packages for %s", len(resolved), ctx.arch.name)
    return resolved


def section_user_data(*, ctx: PlanCtx) -> Optional[Any]:
    return ctx.cfg.user_data or None


def section_late_commands(*, ctx: PlanCtx) -> Optional[Any]:
    return expand_actions(
        parse_actions(ctx.cfg.late_commands),
        ctx.sources,
        target_root=ctx.cfg.target_root,
        prefix=ctx.cfg.in_target_prefix,
    )


def section_error_commands(*, ctx: PlanCtx) -> Optional[Any]:
    return ctx.cfg.error_commands


SectionFn = Callable[..., Optional[Any]]

ALL_SECTIONS: List[Tuple[str, SectionFn]] = [
    ("version", section_version),
    ("source", section_source),
    ("interactive", section_interactive),
    ("locale", section_locale),
    ("timezone", section_timezone),
    ("keyboard", section_keyboard),
    ("identity", section_identity),
    ("ssh", section_ssh),
    ("storage", section_storage),
    ("packages", section_packages),
    ("user-data", section_user_data),
    ("late-commands", section_late_commands),
    ("error-commands", section_error_commands),
]
