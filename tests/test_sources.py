"""Tests for loading named sources from disk."""

import pytest

from bes_autoinstall.errors import InputUnavailableError, PlanConfigError
from bes_autoinstall.lib.sources import Sources, load_sources, parse_package_list, resolve_source_path

from conftest import APT_KEY, SOURCE_FILES


def test_loads_text_and_binary(sources_dir):
    sources = load_sources(str(sources_dir), {"migrate_script": False, "tailscale_apt_key": True})
    assert sources.text("migrate_script") == SOURCE_FILES["migrate-to-btrfs.sh"]
    assert sources.data("tailscale_apt_key") == APT_KEY


def test_missing_source_is_input_unavailable(tmp_path):
    with pytest.raises(InputUnavailableError) as exc:
        load_sources(str(tmp_path), {"migrate_script": False})
    assert exc.value.name == "migrate_script"
    assert exc.value.path.endswith("migrate-to-btrfs.sh")


def test_undecodable_text_is_input_unavailable(tmp_path):
    (tmp_path / "migrate-to-btrfs.sh").write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(InputUnavailableError):
        load_sources(str(tmp_path), {"migrate_script": False})


def test_directory_instead_of_file(tmp_path):
    (tmp_path / "migrate-to-btrfs.sh").mkdir()
    with pytest.raises(InputUnavailableError):
        load_sources(str(tmp_path), {"migrate_script": False})


def test_path_overrides(tmp_path):
    (tmp_path / "custom.sh").write_text("echo custom\n", encoding="utf-8")
    absolute = tmp_path / "abs.txt"
    absolute.write_text("pkg\n", encoding="utf-8")

    sources = load_sources(
        "/nonexistent",
        {"migrate_script": False, "packages": False},
        overrides={"migrate_script": str(tmp_path / "custom.sh"), "packages": str(absolute)},
    )
    assert sources.text("migrate_script") == "echo custom\n"
    assert sources.text("packages") == "pkg\n"


def test_relative_override_resolves_against_base(tmp_path):
    assert resolve_source_path(str(tmp_path), "packages", {"packages": "lists/p.txt"}) == tmp_path / "lists/p.txt"


def test_unknown_source_name(tmp_path):
    with pytest.raises(PlanConfigError):
        resolve_source_path(str(tmp_path), "no_such_source")


def test_sources_accessors():
    sources = Sources(contents={"t": "text", "b": b"\x00\x01"})
    assert sources.data("t") == b"text"
    with pytest.raises(PlanConfigError):
        sources.text("b")
    with pytest.raises(PlanConfigError):
        sources.text("missing")


def test_parse_package_list():
    text = "# header\n  openssh-server  \n\n   # indented comment\nbtrfs-progs\r\n"
    assert parse_package_list(text) == ["openssh-server", "btrfs-progs"]
