"""TOML-based configuration for nullify.

Usage:
    from nullify.toml_config import find_config_file, load_toml_config

    config_path = find_config_file(Path.cwd())
    if config_path:
        config = load_toml_config(config_path)
        engine = config.build_engine()

Example nullify.toml:
    scope_name = "tests"

    [engine]
    forward_declare = true
    dedupe_members = true

    [backend]
    module_name = "myapp.nulls"

    [logging]
    level = "debug"
    format = "json"

In pyproject.toml the same keys live under [tool.nullify].
"""

from __future__ import annotations

import json
import math
import re
import tomllib
from pathlib import Path
from typing import Any

from nullify.config import NullifyConfig

# Config file names to search for (in order of preference)
CONFIG_FILE_NAMES = ["nullify.toml", ".nullifyrc.toml", "pyproject.toml"]

_BARE_KEY = re.compile(r"[A-Za-z0-9_-]+")


def find_config_file(
    start_dir: Path,
    config_names: list[str] | None = None,
) -> Path | None:
    """Find a config file by searching up the directory hierarchy.

    Args:
        start_dir: Directory to start searching from
        config_names: Config file names to look for (default: CONFIG_FILE_NAMES)

    Returns:
        Path to the config file, or None if not found
    """
    config_names = config_names or CONFIG_FILE_NAMES
    current = start_dir.resolve()

    while True:
        for name in config_names:
            config_path = current / name
            if not config_path.exists():
                continue
            # pyproject.toml only counts with a [tool.nullify] section
            if name != "pyproject.toml" or _has_nullify_section(config_path):
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _has_nullify_section(pyproject_path: Path) -> bool:
    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return False
    return "nullify" in data.get("tool", {})


def load_toml_config(path: Path) -> NullifyConfig:
    """Load a NullifyConfig from a TOML file.

    Supports nullify.toml (full file) and pyproject.toml (under [tool.nullify]).
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    if path.name == "pyproject.toml":
        if "nullify" not in data.get("tool", {}):
            raise ValueError(f"No [tool.nullify] section in {path}")
        data = data["tool"]["nullify"]

    return _build_config_from_dict(data)


def _build_config_from_dict(data: dict[str, Any]) -> NullifyConfig:
    config = NullifyConfig()

    if "scope_name" in data:
        config.scope_name = data["scope_name"]

    if "engine" in data:
        engine = data["engine"]
        if "forward_declare" in engine:
            config.engine.forward_declare = engine["forward_declare"]
        if "dedupe_members" in engine:
            config.engine.dedupe_members = engine["dedupe_members"]

    if "backend" in data:
        backend = data["backend"]
        if "module_name" in backend:
            config.backend.module_name = backend["module_name"]

    if "logging" in data:
        logging_section = data["logging"]
        if "level" in logging_section:
            config.logging.level = logging_section["level"]
        if "format" in logging_section:
            config.logging.format = logging_section["format"]

    if "metadata" in data:
        config.metadata.update(data["metadata"])

    return config


def merge_configs(base: NullifyConfig, override: NullifyConfig) -> NullifyConfig:
    """Merge two configs; settings changed from their defaults in ``override`` win."""
    defaults = NullifyConfig()
    result = NullifyConfig()

    def pick(section: str, key: str) -> Any:
        value = getattr(getattr(override, section), key)
        if value != getattr(getattr(defaults, section), key):
            return value
        return getattr(getattr(base, section), key)

    result.scope_name = override.scope_name or base.scope_name

    result.engine.forward_declare = pick("engine", "forward_declare")
    result.engine.dedupe_members = pick("engine", "dedupe_members")
    result.backend.module_name = pick("backend", "module_name")
    result.logging.level = pick("logging", "level")
    result.logging.format = pick("logging", "format")

    result.metadata = {**base.metadata, **override.metadata}

    return result


def config_to_toml(config: NullifyConfig) -> str:
    """Convert a NullifyConfig to TOML format."""
    lines = []

    lines.append(f"scope_name = {_toml_value(config.scope_name)}")
    lines.append("")

    lines.append("[engine]")
    lines.append(f"forward_declare = {str(config.engine.forward_declare).lower()}")
    lines.append(f"dedupe_members = {str(config.engine.dedupe_members).lower()}")
    lines.append("")

    lines.append("[backend]")
    lines.append(f"module_name = {_toml_value(config.backend.module_name)}")
    lines.append("")

    lines.append("[logging]")
    lines.append(f"level = {_toml_value(config.logging.level)}")
    lines.append(f"format = {_toml_value(config.logging.format)}")
    lines.append("")

    if config.metadata:
        lines.append("[metadata]")
        for key, value in config.metadata.items():
            lines.append(f"{_toml_key(key)} = {_toml_value(value)}")
        lines.append("")

    return "\n".join(lines)


def _toml_string(text: str) -> str:
    # JSON escapes are valid in TOML basic strings; TOML also requires DEL escaped
    return json.dumps(text, ensure_ascii=False).replace("\x7f", "\\u007f")


def _toml_key(key: str) -> str:
    return key if _BARE_KEY.fullmatch(key) else _toml_string(key)


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        return repr(value)
    if isinstance(value, str):
        return _toml_string(value)
    if isinstance(value, list | tuple):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{_toml_key(k)} = {_toml_value(v)}" for k, v in value.items())
        return "{" + items + "}"
    raise TypeError(f"Cannot write {type(value).__name__} values to TOML")


__all__ = [
    "CONFIG_FILE_NAMES",
    "config_to_toml",
    "find_config_file",
    "load_toml_config",
    "merge_configs",
]
