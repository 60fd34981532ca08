from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import InputUnavailableError, PlanConfigError
from .lib.heredoc import DEFAULT_TARGET_ROOT
from .lib.storage import DEFAULT_MATCH, StoragePlan

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "iso"


def _profiles_dir() -> Path:
    # bes_autoinstall/plan_config.py -> bes_autoinstall/profiles
    return Path(__file__).resolve().parent / "profiles"


def _load_yaml_mapping(p: Path, name: str = "config") -> Dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("PyYAML is required to read plan profiles and config files") from e

    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise InputUnavailableError(name, str(p), e.__class__.__name__) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise PlanConfigError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(data, dict):
        raise PlanConfigError(f"{p} must contain a mapping/object")
    return data


def list_profiles() -> List[str]:
    return sorted(p.stem for p in _profiles_dir().glob("*.yaml"))


def load_profile(profile_id: str) -> Dict[str, Any]:
    p = _profiles_dir() / f"{profile_id}.yaml"
    if not p.exists():
        raise PlanConfigError(f"Unknown profile: {profile_id} (available: {', '.join(list_profiles())})")
    return _load_yaml_mapping(p, f"profile:{profile_id}")


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base. Mappings merge; everything else replaces."""

    out = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _bool(section: Mapping[str, Any], key: str, default: bool) -> bool:
    """Read a flag that must be a real YAML boolean.

    Quoted values such as "false" or "no" are rejected rather than
    coerced by truthiness.
    """

    value = section.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise PlanConfigError(f"{key} must be true or false, got {value!r}")
    return value


def _int(section: Mapping[str, Any], key: str, default: int) -> int:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise PlanConfigError(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise PlanConfigError(f"{key} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class PlanConfig:
    raw: Dict[str, Any]

    def _section(self, key: str) -> Dict[str, Any]:
        value = self.raw.get(key) or {}
        if not isinstance(value, dict):
            raise PlanConfigError(f"{key} must be a mapping")
        return value

    @property
    def profile(self) -> str:
        return str(self.raw.get("profile") or DEFAULT_PROFILE)

    @property
    def version(self) -> int:
        return _int(self.raw, "version", 1)

    @property
    def source_id(self) -> Optional[str]:
        value = self._section("source").get("id")
        return str(value) if value else None

    @property
    def interactive_sections(self) -> List[str]:
        return [str(s) for s in (self.raw.get("interactive_sections") or [])]

    @property
    def locale(self) -> str:
        return str(self.raw.get("locale") or "en_US.UTF-8")

    @property
    def timezone(self) -> str:
        return str(self.raw.get("timezone") or "Etc/UTC")

    @property
    def keyboard_layout(self) -> str:
        return str(self._section("keyboard").get("layout") or "us")

    @property
    def hostname(self) -> Optional[str]:
        value = self._section("identity").get("hostname")
        return str(value) if value else None

    @property
    def username(self) -> str:
        return str(self._section("identity").get("username") or "ubuntu")

    @property
    def password(self) -> Optional[str]:
        # Crypted hash (mkpasswd), never plain text.
        value = self._section("identity").get("password")
        return str(value) if value else None

    @property
    def ssh_install_server(self) -> bool:
        return _bool(self._section("ssh"), "install_server", True)

    @property
    def ssh_allow_pw(self) -> bool:
        return _bool(self._section("ssh"), "allow_pw", False)

    @property
    def user_data(self) -> Dict[str, Any]:
        value = self.raw.get("user_data")
        if value is None:
            return {"disable_root": True, "package_update": True, "package_upgrade": True}
        if not isinstance(value, dict):
            raise PlanConfigError("user_data must be a mapping")
        return dict(value)

    @property
    def storage_plan(self) -> StoragePlan:
        s = self._section("storage")
        match = s.get("match")
        if match and (not isinstance(match, list) or not all(isinstance(m, dict) for m in match)):
            raise PlanConfigError("storage.match must be a list of mappings")
        return StoragePlan(
            variant=str(s.get("variant") or "simple"),
            ptable=str(s.get("ptable") or "gpt"),
            esp_size=str(s.get("esp_size") or "512M"),
            boot_size=str(s.get("boot_size") or "1G"),
            staging_size=str(s.get("staging_size") or "4G"),
            boot_id=str(s.get("boot_id") or "boot"),
            staging_role=str(s.get("staging_role") or "filesystem"),
            wipe=str(s.get("wipe") or "superblock-recursive"),
            match=tuple(dict(m) for m in match) if match else DEFAULT_MATCH,
            swap_size=_int(s, "swap_size", 0),
            reorder_uefi=_bool(s, "reorder_uefi", False),
        )

    @property
    def target_root(self) -> str:
        return str(self.raw.get("target_root") or DEFAULT_TARGET_ROOT)

    @property
    def in_target_prefix(self) -> str:
        return str(self.raw.get("in_target_prefix") or f"curtin in-target --target={self.target_root} --")

    @property
    def packages_source(self) -> str:
        return str(self.raw.get("packages_source") or "packages")

    @property
    def late_commands(self) -> List[Dict[str, Any]]:
        value = self.raw.get("late_commands") or []
        if not isinstance(value, list):
            raise PlanConfigError("late_commands must be a list")
        return list(value)

    @property
    def error_commands(self) -> List[str]:
        value = self.raw.get("error_commands") or []
        if not isinstance(value, list):
            raise PlanConfigError("error_commands must be a list")
        return [str(c) for c in value]

    @property
    def source_paths(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in self._section("sources").items()}

    @property
    def render_style(self) -> str:
        return str(self.raw.get("render_style") or "indented")


def load_plan_config(profile: Optional[str] = None, config_path: Optional[str] = None) -> PlanConfig:
    """Load a built-in profile and merge an optional user config over it.

    The user config may name the profile itself (`profile: autoinstall`);
    an explicit profile argument wins.
    """

    overrides: Dict[str, Any] = {}
    if config_path:
        p = Path(config_path)
        if not p.exists():
            raise InputUnavailableError("config", config_path, "not found")
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise PlanConfigError("plan config must be YAML")
        overrides = _load_yaml_mapping(p)

    profile_id = profile or str(overrides.get("profile") or DEFAULT_PROFILE)
    raw = deep_merge(load_profile(profile_id), overrides)
    raw["profile"] = profile_id

    logger.info("Loaded profile %s%s", profile_id, f" with overrides from {config_path}" if config_path else "")
    return PlanConfig(raw=raw)
