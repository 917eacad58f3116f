"""Configuration loading for symdedupe (.symdedupe.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".symdedupe.yml"

LINK_TYPES = ("junction", "dir")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class DeduperConfig:
    """External deduper invocation."""

    command: Optional[str] = None
    args: List[str] = field(default_factory=lambda: ["dedupe"])


@dataclass
class SymDedupeConfig:
    """Represents the settings defined in .symdedupe.yml."""

    root: Path
    module_dir: str = "node_modules"
    scope_prefix: str = "@"
    descriptor: str = "package.json"
    dependency_dir: str = "node_modules"
    concurrency: int = 8
    link_type: str = "junction"
    deduper: DeduperConfig = field(default_factory=DeduperConfig)

    @property
    def module_path(self) -> Path:
        return self.root / self.module_dir


def load_config(config_path: Path) -> SymDedupeConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return SymDedupeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = SymDedupeConfig(root=root)
    config.module_dir = _as_str(data.get("module_dir")) or config.module_dir
    config.scope_prefix = _as_str(data.get("scope_prefix")) or config.scope_prefix
    config.descriptor = _as_str(data.get("descriptor")) or config.descriptor
    config.dependency_dir = _as_str(data.get("dependency_dir")) or config.dependency_dir

    raw_concurrency = data.get("concurrency")
    if raw_concurrency is not None:
        concurrency = _as_int(raw_concurrency)
        if concurrency is None or concurrency < 1:
            raise ConfigError(f"concurrency must be a positive integer (got {raw_concurrency!r})")
        config.concurrency = concurrency

    link_type = _as_str(data.get("link_type"))
    if link_type is not None:
        if link_type not in LINK_TYPES:
            raise ConfigError(
                f"link_type must be one of {', '.join(LINK_TYPES)} (got {link_type!r})"
            )
        config.link_type = link_type

    deduper_data = _as_dict(data.get("deduper"))
    if deduper_data:
        command = _as_str(deduper_data.get("command"))
        if command:
            config.deduper.command = command
        if "args" in deduper_data:
            config.deduper.args = _as_str_list(deduper_data.get("args"))

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
