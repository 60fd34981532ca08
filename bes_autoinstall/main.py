from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .errors import PlanError
from .lib.arch import ArchProfile, resolve_arch
from .lib.render import STYLES, render_document
from .lib.sources import load_sources
from .logging_utils import configure_logging, verbosity_level
from .plan import build_plan, plan_sources
from .plan_config import list_profiles, load_plan_config

logger = logging.getLogger(__name__)


def write_output(text: str, path: Optional[str]) -> None:
    """Write the rendered document to path, or stdout for None/'-'."""

    if not path or path == "-":
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    logger.info("Wrote %s (%d bytes)", str(p), len(text.encode("utf-8")))


def generate(
    *,
    arch: Optional[str] = None,
    profile: Optional[str] = None,
    config_path: Optional[str] = None,
    sources_dir: str = ".",
    style: Optional[str] = None,
) -> tuple[str, ArchProfile]:
    """Build and render the plan in memory; nothing is written here."""

    cfg = load_plan_config(profile, config_path)
    arch_profile = resolve_arch(arch)
    sources = load_sources(sources_dir, plan_sources(cfg), overrides=cfg.source_paths)

    plan = build_plan(cfg, sources, arch_profile)
    text = render_document(plan, style=style or cfg.render_style)
    return text, arch_profile


def run(
    *,
    output: Optional[str] = None,
    arch: Optional[str] = None,
    profile: Optional[str] = None,
    config_path: Optional[str] = None,
    sources_dir: str = ".",
    style: Optional[str] = None,
    log_path: Optional[str] = None,
    verbose: int = 0,
) -> ArchProfile:
    configure_logging(log_path=log_path, level=verbosity_level(verbose))

    try:
        text, arch_profile = generate(
            arch=arch,
            profile=profile,
            config_path=config_path,
            sources_dir=sources_dir,
            style=style,
        )
    except PlanError:
        raise
    except Exception:
        logger.exception("Plan generation failed")
        raise

    # Only reached with a complete document; failures above write nothing.
    write_output(text, output)
    return arch_profile


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="bes-autoinstall",
        description="Generate an Ubuntu autoinstall #cloud-config document.",
    )
    p.add_argument("output", nargs="?", default=None, help="Output file (default: stdout)")
    p.add_argument("arch", nargs="?", default=None, help="Target architecture (amd64|arm64, default amd64)")
    p.add_argument("--profile", default=None, help=f"Built-in profile ({'|'.join(list_profiles())})")
    p.add_argument("--config", default=None, help="YAML file merged over the profile")
    p.add_argument("--sources", default=".", help="Directory holding scripts, keys and packages.txt")
    p.add_argument("--style", default=None, choices=STYLES, help="Output rendering (default from profile)")
    p.add_argument("--log", default=None, help="Also log to this file")
    p.add_argument("-v", "--verbose", action="count", default=0)

    args = p.parse_args(argv)

    try:
        arch_profile = run(
            output=args.output,
            arch=args.arch,
            profile=args.profile,
            config_path=args.config,
            sources_dir=args.sources,
            style=args.style,
            log_path=args.log,
            verbose=args.verbose,
        )
    except PlanError as e:
        logger.error("%s", e)
        return 1

    if args.output and args.output != "-":
        print(f"Generated {args.output} for {arch_profile.name}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
