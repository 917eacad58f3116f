"""Tests for symdedupe.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from symdedupe.config import ConfigError, DeduperConfig, SymDedupeConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, SymDedupeConfig)
    assert config.root == tmp_path.resolve()
    assert config.module_dir == "node_modules"
    assert config.module_path == tmp_path.resolve() / "node_modules"
    assert config.scope_prefix == "@"
    assert config.descriptor == "package.json"
    assert config.dependency_dir == "node_modules"
    assert config.concurrency == 8
    assert config.link_type == "junction"
    assert config.deduper == DeduperConfig()
    assert config.deduper.command is None
    assert config.deduper.args == ["dedupe"]


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".symdedupe.yml"
    config_file.write_text(
        """
module_dir: "vendor_modules"
scope_prefix: "~"
descriptor: "manifest.json"
dependency_dir: "deps"
concurrency: 2
link_type: dir
deduper:
  command: pnpm
  args: [dedupe, --offline]
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.module_dir == "vendor_modules"
    assert config.module_path == tmp_path.resolve() / "vendor_modules"
    assert config.scope_prefix == "~"
    assert config.descriptor == "manifest.json"
    assert config.dependency_dir == "deps"
    assert config.concurrency == 2
    assert config.link_type == "dir"
    assert config.deduper.command == "pnpm"
    assert config.deduper.args == ["dedupe", "--offline"]


def test_load_config_splits_string_arguments(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text(
        "deduper:\n  args: dedupe --prefer-offline\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.deduper.command is None
    assert config.deduper.args == ["dedupe", "--prefer-offline"]


def test_load_config_resolves_sibling_file(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text("concurrency: 3\n", encoding="utf-8")

    config = load_config(tmp_path / "package.json")

    assert config.root == tmp_path.resolve()
    assert config.concurrency == 3


def test_load_config_handles_empty_file(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text("\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.concurrency == 8


@pytest.mark.parametrize("value", ["0", "-4", "eight", "true", "[2]"])
def test_load_config_rejects_invalid_concurrency(tmp_path: Path, value: str) -> None:
    (tmp_path / ".symdedupe.yml").write_text(f"concurrency: {value}\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="concurrency"):
        load_config(tmp_path)


def test_load_config_rejects_unknown_link_type(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text("link_type: hardlink\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="link_type"):
        load_config(tmp_path)


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_reports_yaml_errors(tmp_path: Path) -> None:
    (tmp_path / ".symdedupe.yml").write_text("deduper: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(tmp_path)
