from __future__ import annotations

import base64
import logging
import re
import shlex
from dataclasses import dataclass
from typing import Tuple

from ..errors import DelimiterCollisionError, PlanConfigError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_ROOT = "/target"
DEFAULT_MARKER = "EOF"

# Suffixed candidates tried after the preferred marker collides.
MAX_MARKER_ATTEMPTS = 100

_MARKER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Embedding:
    path: str
    host_path: str
    marker: str
    commands: Tuple[str, ...]


def target_path(target_root: str, path: str) -> str:
    """Map an in-target absolute path to where the installer sees it."""

    if not path.startswith("/"):
        raise PlanConfigError(f"Embedded file path must be absolute: {path!r}")
    root = target_root.rstrip("/")
    return f"{root}/{path.lstrip('/')}"


def _check_marker(marker: str) -> None:
    if not _MARKER_RE.match(marker):
        raise PlanConfigError(f"Invalid heredoc marker: {marker!r}")


def choose_delimiter(payload: str, preferred: str = DEFAULT_MARKER, *, allow_fallback: bool = True) -> str:
    """Pick a heredoc marker that is not a standalone line of payload.

    The shell ends a heredoc at the first line equal to the marker, so a
    colliding marker would silently truncate the file.
    """

    _check_marker(preferred)
    lines = set(payload.split("\n"))

    if preferred not in lines:
        return preferred
    if not allow_fallback:
        raise DelimiterCollisionError(f"Payload contains the heredoc marker {preferred!r} as a line")

    for n in range(1, MAX_MARKER_ATTEMPTS):
        candidate = f"{preferred}_{n}"
        if candidate not in lines:
            logger.warning("Heredoc marker %s collides with payload; using %s", preferred, candidate)
            return candidate

    raise DelimiterCollisionError(
        f"No collision-free heredoc marker derived from {preferred!r} after {MAX_MARKER_ATTEMPTS} attempts"
    )


def heredoc_write(host_path: str, payload: str, marker: str) -> str:
    """Build a command that writes payload to host_path.

    A missing final newline is added; an existing one is not doubled.
    """

    _check_marker(marker)
    body = payload
    if body and not body.endswith("\n"):
        body += "\n"
    if marker in body.split("\n"):
        raise DelimiterCollisionError(f"Payload contains the heredoc marker {marker!r} as a line")
    return f"cat > {shlex.quote(host_path)} << '{marker}'\n{body}{marker}"


def embed_text(
    path: str,
    payload: str,
    *,
    marker: str = DEFAULT_MARKER,
    target_root: str = DEFAULT_TARGET_ROOT,
    executable: bool = False,
    allow_fallback: bool = True,
) -> Embedding:
    host = target_path(target_root, path)
    chosen = choose_delimiter(payload, marker, allow_fallback=allow_fallback)

    commands = [heredoc_write(host, payload, chosen)]
    if executable:
        commands.append(f"chmod +x {shlex.quote(host)}")

    logger.info("Embedded %s (%d bytes, marker=%s)", path, len(payload.encode("utf-8")), chosen)
    return Embedding(path=path, host_path=host, marker=chosen, commands=tuple(commands))


def embed_binary(
    path: str,
    data: bytes,
    *,
    marker: str = DEFAULT_MARKER,
    target_root: str = DEFAULT_TARGET_ROOT,
    allow_fallback: bool = True,
) -> Embedding:
    """Embed bytes as base64 text plus a paired decode command."""

    host = target_path(target_root, path)
    encoded_path = f"{host}.b64"
    encoded = base64.encodebytes(data).decode("ascii")
    chosen = choose_delimiter(encoded, marker, allow_fallback=allow_fallback)

    commands = (
        heredoc_write(encoded_path, encoded, chosen),
        f"base64 -d {shlex.quote(encoded_path)} > {shlex.quote(host)} && rm -f {shlex.quote(encoded_path)}",
    )

    logger.info("Embedded binary %s (%d bytes, marker=%s)", path, len(data), chosen)
    return Embedding(path=path, host_path=host, marker=chosen, commands=commands)
