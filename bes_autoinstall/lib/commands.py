from __future__ import annotations

import logging
import posixpath
import shlex
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import PlanConfigError
from .heredoc import DEFAULT_MARKER, embed_binary, embed_text
from .sources import Sources

logger = logging.getLogger(__name__)

ACTION_KINDS = ("write", "write_binary", "run", "enable", "in_target", "shell")
WRITE_KINDS = ("write", "write_binary")


@dataclass(frozen=True)
class Action:
    kind: str
    # Source name for writes, script path for run, unit for enable,
    # command text for in_target/shell.
    arg: str
    path: Optional[str] = None
    marker: str = DEFAULT_MARKER
    executable: bool = False
    allow_fallback: bool = True


def parse_action(raw: Mapping[str, Any]) -> Action:
    if not isinstance(raw, Mapping):
        raise PlanConfigError(f"late_commands entries must be mappings, got: {raw!r}")

    kinds = [k for k in ACTION_KINDS if k in raw]
    if len(kinds) != 1:
        raise PlanConfigError(f"late_commands entry needs exactly one of {', '.join(ACTION_KINDS)}: {dict(raw)!r}")
    kind = kinds[0]
    arg = str(raw[kind] or "").strip()
    if not arg:
        raise PlanConfigError(f"late_commands entry '{kind}' is empty")

    path = raw.get("path")
    if kind in WRITE_KINDS and not path:
        raise PlanConfigError(f"late_commands entry '{kind}: {arg}' requires a path")

    executable = _flag(raw, "executable", False)
    if executable and kind != "write":
        raise PlanConfigError(f"late_commands entry '{kind}: {arg}': executable applies to text writes only")

    return Action(
        kind=kind,
        arg=arg,
        path=str(path) if path else None,
        marker=str(raw.get("marker") or DEFAULT_MARKER),
        executable=executable,
        allow_fallback=_flag(raw, "allow_fallback", True),
    )


def _flag(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise PlanConfigError(f"late_commands {key} must be true or false, got {value!r}")
    return value


def parse_actions(raw: Sequence[Mapping[str, Any]]) -> List[Action]:
    return [parse_action(r) for r in raw]


def required_sources(actions: Sequence[Action]) -> Dict[str, bool]:
    """Source name -> binary flag for every file the actions embed."""

    out: Dict[str, bool] = {}
    for a in actions:
        if a.kind in WRITE_KINDS:
            out[a.arg] = a.kind == "write_binary"
    return out


def in_target_cmd(prefix: str, argv: Sequence[str]) -> str:
    """Command string run inside the installed system."""

    return f"{prefix} {' '.join(shlex.quote(a) for a in argv)}"


def check_order(actions: Sequence[Action]) -> None:
    """A script must be written before it runs, a unit before it is enabled."""

    planned = {a.path: i for i, a in enumerate(actions) if a.kind in WRITE_KINDS}
    planned_units = {posixpath.basename(p): i for p, i in planned.items() if p}

    for i, a in enumerate(actions):
        if a.kind == "run":
            written_at = planned.get(a.arg)
            if written_at is None:
                raise PlanConfigError(f"run: {a.arg} refers to a script this plan never writes")
            if written_at > i:
                raise PlanConfigError(f"run: {a.arg} is ordered before the command that writes it")
        elif a.kind == "enable":
            written_at = planned_units.get(a.arg)
            if written_at is not None and written_at > i:
                raise PlanConfigError(f"enable: {a.arg} is ordered before the command that writes its unit")


def expand_actions(
    actions: Sequence[Action],
    sources: Sources,
    *,
    target_root: str,
    prefix: str,
) -> List[str]:
    """Turn profile actions into the ordered late-commands list."""

    check_order(actions)

    commands: List[str] = []
    for a in actions:
        if a.kind == "write":
            assert a.path is not None
            emb = embed_text(
                a.path,
                sources.text(a.arg),
                marker=a.marker,
                target_root=target_root,
                executable=a.executable,
                allow_fallback=a.allow_fallback,
            )
            commands.extend(emb.commands)
        elif a.kind == "write_binary":
            assert a.path is not None
            emb = embed_binary(
                a.path,
                sources.data(a.arg),
                marker=a.marker,
                target_root=target_root,
                allow_fallback=a.allow_fallback,
            )
            commands.extend(emb.commands)
        elif a.kind == "run":
            commands.append(in_target_cmd(prefix, ["bash", a.arg]))
        elif a.kind == "enable":
            commands.append(in_target_cmd(prefix, ["systemctl", "enable", a.arg]))
        elif a.kind == "in_target":
            commands.append(f"{prefix} {a.arg}")
        elif a.kind == "shell":
            commands.append(a.arg)
        else:
            raise PlanConfigError(f"Unknown action kind: {a.kind}")

    logger.info("Expanded %d actions into %d commands", len(actions), len(commands))
    return commands
